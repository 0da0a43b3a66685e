# exam_core/azure_cfg.py
"""Azure OpenAI connection settings for the writing grader.

Environment variables win; missing keys fall back to a JSON file named by
EXAM_AZURE_CONFIG (default .azure_config.json).
"""
from __future__ import annotations
import os, json, pathlib
from dataclasses import dataclass
from openai import AzureOpenAI

_KEYS = {
    "endpoint":    "AZURE_OPENAI_ENDPOINT",
    "api_key":     "AZURE_OPENAI_API_KEY",
    "api_version": "AZURE_OPENAI_API_VERSION",
    "deployment":  "AZURE_OPENAI_DEPLOYMENT",
}

@dataclass(frozen=True)
class AzureSettings:
    endpoint: str
    api_key: str
    deployment: str
    api_version: str

def _from_json(path: str | None = None) -> dict[str, str]:
    p = pathlib.Path(path or os.getenv("EXAM_AZURE_CONFIG", ".azure_config.json"))
    if not p.exists(): return {}
    try:
        j = json.loads(p.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return {}
    return {k: str(j.get(k, "")) for k in _KEYS}

def is_configured() -> bool:
    return all(os.getenv(v) for v in _KEYS.values())

def settings() -> AzureSettings:
    cfg = {k: os.getenv(env, "") for k, env in _KEYS.items()}
    if not all(cfg.values()):
        for k, v in _from_json().items():
            if not cfg.get(k): cfg[k] = v
    missing = [_KEYS[k] for k, v in cfg.items() if not v]
    if missing:
        raise RuntimeError(f"Azure OpenAI writing grader not configured. Missing: {', '.join(missing)}")
    return AzureSettings(**cfg)

def client() -> AzureOpenAI:
    s = settings()
    return AzureOpenAI(azure_endpoint=s.endpoint, api_key=s.api_key, api_version=s.api_version)
