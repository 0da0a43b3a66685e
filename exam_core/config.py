from __future__ import annotations
import os, json, pathlib
from typing import Callable, TypeVar

N = TypeVar("N", int, float)

_TRUTHY = {"1", "true", "yes", "on"}


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    return default if raw is None else raw.strip().lower() in _TRUTHY


def _env_number(name: str, default: N, cast: Callable[[str], N]) -> N:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return cast(raw)
    except ValueError:
        return default

DEFAULT_DURATION_MINUTES: int = 60
WARNING_THRESHOLD_SECONDS: int = 300
TICK_INTERVAL_SECONDS: float = 1.0

ATTEMPT_HISTORY_LIMIT: int = 10

WRITING_TASK_WEIGHTS: dict[str, int] = {"task1": 1, "task2": 2}
WRITING_CRITERIA: tuple[str, ...] = (
    "task_response",
    "coherence_cohesion",
    "lexical_resource",
    "grammatical_range_accuracy",
)
WRITING_MIN_WORDS: dict[str, int] = {"task1": 150, "task2": 250}

WRITING_ROUTE_PROMPT: bool = True
CLOCK_AUTOSTART: bool = True
LOG_LEVEL: str = "INFO"

# // env overrides for staging/ops
DEFAULT_DURATION_MINUTES = _env_number("DEFAULT_DURATION_MINUTES", DEFAULT_DURATION_MINUTES, int)
WARNING_THRESHOLD_SECONDS = _env_number("WARNING_THRESHOLD_SECONDS", WARNING_THRESHOLD_SECONDS, int)
TICK_INTERVAL_SECONDS = _env_number("TICK_INTERVAL_SECONDS", TICK_INTERVAL_SECONDS, float)
ATTEMPT_HISTORY_LIMIT = _env_number("ATTEMPT_HISTORY_LIMIT", ATTEMPT_HISTORY_LIMIT, int)
WRITING_ROUTE_PROMPT = _env_bool("WRITING_ROUTE_PROMPT", WRITING_ROUTE_PROMPT)
CLOCK_AUTOSTART = _env_bool("CLOCK_AUTOSTART", CLOCK_AUTOSTART)
LOG_LEVEL = os.getenv("LOG_LEVEL", LOG_LEVEL)

_LLM_ENV_KEYS = ("AZURE_OPENAI_ENDPOINT", "AZURE_OPENAI_API_VERSION", "AZURE_OPENAI_API_KEY", "AZURE_OPENAI_DEPLOYMENT")


def load_config(path: str = "config.json") -> dict:
    """Optional JSON config with the LLM switches from the environment layered on top."""
    p = pathlib.Path(path)
    cfg: dict = {}
    if p.exists():
        try: cfg = json.loads(p.read_text(encoding="utf-8"))
        except (OSError, ValueError): cfg = {}
    if os.getenv("USE_LLM_OPEN"): cfg["USE_LLM_OPEN"] = _env_bool("USE_LLM_OPEN", False)
    for k in ("LLM_BACKEND",) + _LLM_ENV_KEYS:
        if os.getenv(k): cfg[k] = os.getenv(k)
    return cfg

def get_backend(cfg: dict) -> str | None:
    """Name of the essay grader to use, or None for the heuristic."""
    if not cfg.get("USE_LLM_OPEN"): return None
    return "azure" if str(cfg.get("LLM_BACKEND") or "").strip().lower() == "azure" else None
