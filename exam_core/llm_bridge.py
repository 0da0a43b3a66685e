from __future__ import annotations
import json, logging, os, time
from typing import Any, Dict

from .azure_cfg import client as azure_client, settings as azure_settings
from .config import WRITING_CRITERIA, get_backend, load_config
from .heuristics import heuristic_essay_band

log = logging.getLogger(__name__)

_SYSTEM = ("You are a certified IELTS writing examiner. "
           "Return ONLY compact JSON with keys: task_response, coherence_cohesion, "
           "lexical_resource, grammatical_range_accuracy, summary. "
           "Criteria values are bands from 0 to 9 in steps of 0.5. No explanations outside JSON.")

def backend_in_use() -> str:
    return get_backend(load_config()) or "none"

def _grade_azure(prompt: str, essay: str, task_type: str) -> str:
    s = azure_settings(); cli = azure_client()
    user = f"[{task_type}] {(prompt or '').strip()}\n\nEssay:\n{(essay or '').strip()}"
    resp = cli.chat.completions.create(
        model=s.deployment, messages=[{"role":"system","content":_SYSTEM},{"role":"user","content":user}],
        temperature=0.0, max_tokens=300, top_p=1.0,
    )
    return resp.choices[0].message.content or "{}"

def _parse_grade(raw: str) -> Dict[str, Any]:
    data = json.loads(raw)
    criteria = {k: max(0.0, min(9.0, float(data[k]))) for k in WRITING_CRITERIA}
    band = sum(criteria.values()) / len(criteria)
    return {"band": band, "criteria": criteria, "summary": str(data.get("summary", ""))}

def score_essay(task_id: str, prompt: str, essay: str, task_type: str = "task2") -> Dict[str, Any]:
    """Band one essay. Falls back to the heuristic when the LLM is off or fails."""
    t0 = time.time()
    backend = backend_in_use()
    raw: str | None = None
    try:
        if backend == "azure":
            raw = _grade_azure(prompt, essay, task_type)
            graded = _parse_grade(raw)
        else:
            graded = heuristic_essay_band(essay, task_type)
    except Exception as e:
        log.warning("writing grader %s failed for %s: %s", backend, task_id, e)
        graded = heuristic_essay_band(essay, task_type); graded["error"] = str(e)
        backend = "heuristic"
    graded["backend"] = backend if backend != "none" else "heuristic"
    log_path = os.getenv("LLM_LOG_PATH")
    if log_path:
        entry = {
            "ts": round(time.time(), 3),
            "task": task_id,
            "backend": graded["backend"],
            "prompt": (prompt or "")[:800],
            "essay": (essay or "")[:1200],
            "raw": raw,
            "band": graded.get("band"),
            "rt_ms": int((time.time()-t0)*1000),
        }
        try:
            with open(log_path, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry, ensure_ascii=False) + "\n")
        except OSError as e:
            log.warning("could not append grading log %s: %s", log_path, e)
    return graded
