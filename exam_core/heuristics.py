# exam_core/heuristics.py
from __future__ import annotations
import re

from .config import WRITING_MIN_WORDS

_LINK_RX     = re.compile(r'\b(however|moreover|furthermore|therefore|consequently|in addition|on the other hand|for example|for instance|in conclusion|to sum up|whereas|although|nevertheless)\b', re.I)
_OPINION_RX  = re.compile(r'\b(i (?:believe|think|agree|disagree)|in my (?:view|opinion)|this essay|it is (?:clear|evident))\b', re.I)
_DATA_RX     = re.compile(r'\b(\d+(?:\.\d+)?%|percent|per cent|increase[ds]?|decrease[ds]?|rose|fell|peak(?:ed)?|trend|proportion|figure)\b', re.I)
_SENT_RX     = re.compile(r'[.!?]+(?:\s|$)')
_WORD_RX     = re.compile(r"[a-zA-Z']+")

def _clamp_band(x: float) -> float:
    return max(0.0, min(9.0, x))

def heuristic_essay_band(text: str, task_type: str = "task2") -> dict:
    """Rough four-criteria band estimate used when no LLM grader is configured."""
    if not isinstance(text, str) or not text.strip():
        return {"band": 0.0, "criteria": {}, "summary": "No answer submitted."}
    t = text.strip()
    words = _WORD_RX.findall(t.lower())
    wc = len(words)
    min_words = WRITING_MIN_WORDS.get(task_type, 250)

    variety = len(set(words)) / max(1, wc)
    sentences = max(1, len(_SENT_RX.findall(t)))
    paragraphs = len([p for p in re.split(r'\n\s*\n', t) if p.strip()])
    links = len(_LINK_RX.findall(t))
    topical = bool(_DATA_RX.search(t)) if task_type == "task1" else bool(_OPINION_RX.search(t))

    tr = 4.0 + (1.5 if wc >= min_words else 3.0 * wc / min_words - 1.5) + (1.0 if topical else 0.0)
    cc = 4.0 + min(2.0, links * 0.5) + (1.0 if paragraphs >= 3 else 0.0)
    lr = 3.5 + min(3.0, variety * 5.0)
    avg_len = wc / sentences
    gra = 4.0 + (1.5 if 12 <= avg_len <= 28 else 0.5) + (0.5 if sentences >= 8 else 0.0)

    criteria = {
        "task_response": _clamp_band(tr),
        "coherence_cohesion": _clamp_band(cc),
        "lexical_resource": _clamp_band(lr),
        "grammatical_range_accuracy": _clamp_band(gra),
    }
    band = sum(criteria.values()) / len(criteria)
    summary = f"{wc} words, {paragraphs} paragraph(s), {links} linking phrase(s)."
    return {"band": _clamp_band(band), "criteria": criteria, "summary": summary}
