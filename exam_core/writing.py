"""Writing-task answers and band aggregation.

Writing is never scored by the band table; per-task bands come from the
grading collaborator and are combined here with task 2 weighted double.
"""
from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Sequence

from .bands import half_step
from .config import WRITING_CRITERIA, WRITING_TASK_WEIGHTS
from .types import WritingAnswer, WritingTask


def word_count(text: str) -> int:
    return len((text or "").split())


def build_writing_answers(writing: Sequence[str], tasks: Sequence[WritingTask]) -> List[WritingAnswer]:
    """Pair non-blank answers with their task; blank answers are dropped."""

    out: List[WritingAnswer] = []
    for index, answer in enumerate(writing):
        text = answer if isinstance(answer, str) else str(answer or "")
        if index >= len(tasks) or not text.strip():
            continue
        task = tasks[index]
        out.append(
            WritingAnswer(
                task_id=task.id,
                task_title=task.title or f"Task {index + 1}",
                answer_text=text,
                word_count=word_count(text),
            )
        )
    return out


def _weight(task_type: str) -> int:
    return WRITING_TASK_WEIGHTS.get(task_type, 1)


def writing_overall_band(task_results: Iterable[Mapping[str, object]]) -> float:
    """Weighted mean of per-task ``band`` values, rounded to the half band."""

    results = list(task_results)
    if not results:
        return 0.0
    if len(results) == 1:
        return half_step(float(results[0].get("band") or 0))
    total = sum(float(r.get("band") or 0) * _weight(str(r.get("task_type"))) for r in results)
    base = sum(_weight(str(r.get("task_type"))) for r in results)
    return half_step(total / base) if base else 0.0


def criteria_bands(task_results: Iterable[Mapping[str, object]]) -> Dict[str, float]:
    sums = {k: 0.0 for k in WRITING_CRITERIA}
    weights = {k: 0 for k in WRITING_CRITERIA}
    for r in task_results:
        w = _weight(str(r.get("task_type")))
        criteria = r.get("criteria") or {}
        if not isinstance(criteria, Mapping):
            continue
        for key in WRITING_CRITERIA:
            try:
                raw = float(criteria[key])
            except (KeyError, TypeError, ValueError):
                continue
            sums[key] += raw * w
            weights[key] += w
    return {k: (half_step(sums[k] / weights[k]) if weights[k] else 0.0) for k in WRITING_CRITERIA}


def performance_label(band: float) -> str:
    if band >= 7: return "Strong"
    if band >= 6: return "Developing"
    return "Needs Improvement"
