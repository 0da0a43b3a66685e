from __future__ import annotations
from dataclasses import replace
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple
import logging
import re

from .layout import _as_document, _scored_items, build_slots
from .types import ChoiceOption, ReviewEntry, Slot, Step, SubmissionResult, Verdict

log = logging.getLogger(__name__)


class AnswerKind(str, Enum):
    TEXT = "text"      # free text: any synonym matches
    CHOICE = "choice"  # option label or text, compared by text
    ID = "id"          # pool candidate id, text fallback


KIND_BY_TYPE: Dict[str, AnswerKind] = {
    "mult_choice": AnswerKind.CHOICE,
    "multiple_choice": AnswerKind.CHOICE,
    "multiple_choice_single": AnswerKind.CHOICE,
    "multiple_choice_multi": AnswerKind.CHOICE,
    "mult_choice_multi": AnswerKind.CHOICE,
    "true_false_notgiven": AnswerKind.CHOICE,
    "tfng": AnswerKind.CHOICE,
    "yes_no_notgiven": AnswerKind.CHOICE,
    "ynng": AnswerKind.CHOICE,
    "matching": AnswerKind.ID,
    "matching_headings": AnswerKind.ID,
    "matching_features": AnswerKind.ID,
    "matching_info": AnswerKind.ID,
    "matching_information": AnswerKind.ID,
    "matching_sentence_endings": AnswerKind.ID,
    "summary_completion": AnswerKind.ID,
    "gap_fill": AnswerKind.TEXT,
    "sentence_completion": AnswerKind.TEXT,
    "note_completion": AnswerKind.TEXT,
    "form_completion": AnswerKind.TEXT,
    "table_completion": AnswerKind.TEXT,
    "flow_chart_completion": AnswerKind.TEXT,
    "diagram_label_completion": AnswerKind.TEXT,
    "diagram_label": AnswerKind.TEXT,
    "short_answer": AnswerKind.TEXT,
    "plan_map_diagram": AnswerKind.TEXT,
    "listening_map": AnswerKind.TEXT,
}

_ALIASES: Dict[str, str] = {
    "not given": "not given",
    "not": "not given",
    "ng": "not given",
    "true": "true",
    "t": "true",
    "false": "false",
    "f": "false",
    "yes": "yes",
    "y": "yes",
    "no": "no",
    "n": "no",
}

_WS_RX = re.compile(r"\s+")
_ARTICLE_RX = re.compile(r"^(?:a|an|the)\s+")
# "iv. ", "ii ", "b) ", "3." at the start of a candidate label; a bare
# roman numeral needs the following space so words are left whole
_PREFIX_RX = re.compile(r"^\(?(?:[ivx]+(?:[.)]\s*|\s+)|(?:[ivxlcdm]+|[a-z]|\d+)[.)]\s*)")


def kind_for(group_type: str) -> AnswerKind:
    return KIND_BY_TYPE.get((group_type or "").strip().lower(), AnswerKind.TEXT)


def _collapse(value: object) -> str:
    if value is None:
        return ""
    return _WS_RX.sub(" ", str(value).strip())


def normalize_answer(value: object) -> str:
    n = _collapse(value).lower()
    return _ALIASES.get(n, n)


def strip_prefix(value: str) -> str:
    return _PREFIX_RX.sub("", value, count=1).strip()


def _text_key(value: object) -> str:
    return _ARTICLE_RX.sub("", normalize_answer(value), count=1)


def _compare_text(slot: Slot, sub: str, correct: Sequence[str]) -> bool:
    key = _text_key(sub)
    return any(_text_key(c) == key for c in correct)


def _choices(slot: Slot) -> Tuple[ChoiceOption, ...]:
    pooled = tuple(ChoiceOption(label=c.id, text=c.text) for c in slot.options)
    return tuple(slot.option) + pooled


def _compare_choice(slot: Slot, sub: str, correct: Sequence[str]) -> bool:
    by_label = {normalize_answer(o.label): normalize_answer(o.text) for o in _choices(slot) if o.label}

    def option_text(value: object) -> str:
        n = normalize_answer(value)
        return by_label.get(n, n)

    chosen = option_text(sub)
    return any(option_text(c) == chosen for c in correct)


def _compare_id(slot: Slot, sub: str, correct: Sequence[str]) -> bool:
    n_sub = normalize_answer(sub)
    if any(normalize_answer(c) == n_sub for c in correct):
        return True
    # ids and labels drift apart in authored data; fall back to candidate text
    pool = {normalize_answer(c.id): normalize_answer(c.text) for c in tuple(slot.headings) + tuple(slot.options) if c.id}

    def candidate_text(value: object) -> str:
        n = normalize_answer(value)
        return strip_prefix(pool.get(n, n))

    chosen = candidate_text(sub)
    return bool(chosen) and any(candidate_text(c) == chosen for c in correct)


_COMPARATORS: Dict[AnswerKind, Callable[[Slot, str, Sequence[str]], bool]] = {
    AnswerKind.TEXT: _compare_text,
    AnswerKind.CHOICE: _compare_choice,
    AnswerKind.ID: _compare_id,
}


def compare(slot: Slot, submitted: object, correct_answers: Iterable[str]) -> Verdict:
    """Type-aware correctness of one submitted answer against its synonym list."""

    correct = [c for c in correct_answers if _collapse(c)]
    your = _collapse(submitted)
    shown = _collapse(correct[0]) if correct else ""
    if not your or not correct:
        return Verdict(is_correct=False, your_answer=your, correct_answer=shown)
    ok = _COMPARATORS[kind_for(slot.type)](slot, your, correct)
    return Verdict(is_correct=ok, your_answer=your, correct_answer=shown)


# ---- aggregate ----

def tally(review: Sequence[ReviewEntry]) -> Tuple[int, int, int, int]:
    """(score, total, wrong, skipped); the last three always sum to total."""
    score = sum(1 for r in review if r.is_correct)
    wrong = sum(1 for r in review if not r.is_correct and _collapse(r.your_answer))
    total = len(review)
    return score, total, wrong, total - score - wrong


def percentage(score: int, total: int) -> Optional[int]:
    return int(score * 100 / total + 0.5) if total else None


def stats_by_type(review: Sequence[ReviewEntry]) -> Dict[str, Dict[str, int]]:
    out: Dict[str, Dict[str, int]] = {}
    for r in review:
        st = out.setdefault(r.type or "other", {"total": 0, "correct": 0, "wrong": 0, "skipped": 0})
        st["total"] += 1
        if r.is_correct:
            st["correct"] += 1
        elif _collapse(r.your_answer):
            st["wrong"] += 1
        else:
            st["skipped"] += 1
    return out


def _is_pooled_choice(group) -> bool:
    return kind_for(group.type) == AnswerKind.CHOICE and group.type.startswith("mult") and len(group.questions) > 1


def grade_answers(doc, answers: Sequence[str], time_taken_ms: int = 0) -> SubmissionResult:
    """Grade a full answer vector against the document's authoritative answers."""

    exam = _as_document(doc)
    slots = build_slots(exam)
    review: List[ReviewEntry] = []
    idx = 0

    def submitted_at(i: int) -> str:
        return answers[i] if i < len(answers) and answers[i] is not None else ""

    for item_type, item in _scored_items(exam):
        for group in item.question_groups:
            pool: Optional[List[Optional[Tuple[str, ...]]]] = None
            if _is_pooled_choice(group):
                # "choose TWO": any order, each correct answer used once
                pool = [q.correct_answers for q in group.questions]
            for q in group.questions:
                slot = slots[idx]
                sub = submitted_at(idx)
                if pool is None:
                    verdict = compare(slot, sub, q.correct_answers)
                else:
                    hit = False
                    for j, variants in enumerate(pool):
                        if variants is not None and compare(slot, sub, variants).is_correct:
                            hit = True
                            pool[j] = None
                            break
                    shown = _collapse(q.correct_answers[0]) if q.correct_answers else ""
                    verdict = Verdict(hit, _collapse(sub), shown)
                choices = q.option or tuple(ChoiceOption(c.id, c.text) for c in group.options)
                review.append(
                    ReviewEntry(
                        q_number=q.q_number,
                        type=group.type,
                        your_answer=verdict.your_answer,
                        correct_answer=verdict.correct_answer,
                        is_correct=verdict.is_correct,
                        question_text=q.text,
                        options=[{"label": o.label, "text": o.text} for o in choices],
                        headings=[{"id": h.id, "text": h.text} for h in group.headings],
                        explanation=q.explanation,
                        passage_reference=q.passage_reference,
                        item_type=item_type,
                    )
                )
                idx += 1

    score, total, wrong, skipped = tally(review)
    log.debug("graded %s: %d/%d wrong=%d skipped=%d", exam.id, score, total, wrong, skipped)
    return SubmissionResult(
        score=score,
        total=total,
        wrong=wrong,
        skipped=skipped,
        question_review=review,
        time_taken_ms=int(time_taken_ms or 0),
        percentage=percentage(score, total),
        stats_by_type=stats_by_type(review),
    )


def scope_result(result: SubmissionResult, step: Step, step_index: Optional[int] = None) -> SubmissionResult:
    """Restrict a full-session result to one step's slot range and re-tally it."""

    start, end = step.start_slot_index, step.end_slot_index
    part = [r for i, r in enumerate(result.question_review) if start <= i < end]
    score, total, wrong, skipped = tally(part)
    return replace(
        result,
        score=score,
        total=total,
        wrong=wrong,
        skipped=skipped,
        question_review=part,
        percentage=percentage(score, total),
        band=None,
        is_practice=True,
        scoped_step=step_index,
        stats_by_type=stats_by_type(part),
    )
