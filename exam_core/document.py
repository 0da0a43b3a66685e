"""Turn raw exam JSON into an immutable ExamDocument.

Authored content arrives in more than one spelling (``question_groups`` or
``questionGroups``, ``q_number`` or ``qNumber``) and is frequently partial.
Everything here is total: wrong shapes become empty tuples or defaults,
nothing raises.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Tuple

from .config import DEFAULT_DURATION_MINUTES
from .types import (
    Candidate,
    ChoiceOption,
    ExamDocument,
    Passage,
    Question,
    QuestionGroup,
    WritingTask,
)

log = logging.getLogger(__name__)


def _pick(raw: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in raw and raw[key] is not None:
            return raw[key]
    return default


def _as_list(value: Any) -> list:
    if isinstance(value, (list, tuple)):
        return list(value)
    return []


def _as_str(value: Any, default: str = "") -> str:
    if value is None:
        return default
    return str(value)


def _opt_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    s = str(value)
    return s if s.strip() else None


def _as_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _candidates(values: Iterable[Any]) -> Tuple[Candidate, ...]:
    out = []
    for v in values:
        if isinstance(v, Mapping):
            cid = _as_str(_pick(v, "id", "_id", "label"))
            out.append(Candidate(id=cid, text=_as_str(v.get("text"))))
        elif isinstance(v, str):
            out.append(Candidate(id=v, text=v))
    return tuple(out)


def _choice_options(values: Iterable[Any]) -> Tuple[ChoiceOption, ...]:
    out = []
    for v in values:
        if isinstance(v, Mapping):
            out.append(ChoiceOption(label=_as_str(_pick(v, "label", "id")), text=_as_str(v.get("text"))))
        elif isinstance(v, str):
            out.append(ChoiceOption(label=v, text=v))
    return tuple(out)


def _correct_answers(raw: Mapping[str, Any]) -> Tuple[str, ...]:
    value = _pick(raw, "correct_answers", "correctAnswers", "correct_answer", "correctAnswer")
    if isinstance(value, (list, tuple)):
        return tuple(str(v) for v in value if v is not None)
    if value is None:
        return ()
    return (str(value),)


def parse_question(raw: Any, fallback_number: int = 0) -> Optional[Question]:
    if not isinstance(raw, Mapping):
        return None
    return Question(
        q_number=_as_int(_pick(raw, "q_number", "qNumber", "number"), fallback_number),
        correct_answers=_correct_answers(raw),
        text=_opt_str(raw.get("text")),
        option=_choice_options(_as_list(_pick(raw, "option", "options"))),
        explanation=_as_str(raw.get("explanation")),
        passage_reference=_as_str(_pick(raw, "passage_reference", "passageReference")),
    )


def parse_group(raw: Any) -> Optional[QuestionGroup]:
    if not isinstance(raw, Mapping):
        return None
    questions = []
    for idx, q in enumerate(_as_list(raw.get("questions")), start=1):
        parsed = parse_question(q, fallback_number=idx)
        if parsed is not None:
            questions.append(parsed)
    return QuestionGroup(
        type=_as_str(raw.get("type")).strip().lower(),
        questions=tuple(questions),
        instructions=_opt_str(raw.get("instructions")),
        text=_opt_str(raw.get("text")),
        headings=_candidates(_as_list(raw.get("headings"))),
        options=_candidates(_as_list(raw.get("options"))),
        layout=_opt_str(_pick(raw, "group_layout", "layout")),
    )


def parse_passage(raw: Any, fallback_id: str = "") -> Optional[Passage]:
    if not isinstance(raw, Mapping):
        return None
    groups = [g for g in (parse_group(x) for x in _as_list(_pick(raw, "question_groups", "questionGroups"))) if g]
    return Passage(
        id=_as_str(_pick(raw, "id", "_id"), fallback_id),
        title=_as_str(raw.get("title")),
        content=_as_str(raw.get("content")),
        audio_url=_opt_str(_pick(raw, "audio_url", "audioUrl")),
        question_groups=tuple(groups),
    )


def parse_writing_task(raw: Any, fallback_id: str = "") -> Optional[WritingTask]:
    if not isinstance(raw, Mapping):
        return None
    task_type = _as_str(_pick(raw, "task_type", "taskType"), "task2").lower()
    return WritingTask(
        id=_as_str(_pick(raw, "id", "_id"), fallback_id),
        title=_as_str(raw.get("title")),
        prompt=_as_str(_pick(raw, "prompt", "content", "text")),
        task_type=task_type if task_type in ("task1", "task2") else "task2",
        image_url=_opt_str(_pick(raw, "image_url", "imageUrl")),
        min_words=_as_int(_pick(raw, "min_words", "minWords"), 0),
    )


def parse_document(raw: Any, test_id: str = "") -> ExamDocument:
    """Build an ExamDocument from a JSON-like mapping. Never raises on shape."""

    if isinstance(raw, ExamDocument):
        return raw
    if not isinstance(raw, Mapping):
        log.warning("exam %s: document is %s, treating as empty", test_id or "?", type(raw).__name__)
        raw = {}

    doc_id = _as_str(_pick(raw, "id", "_id"), test_id)
    reading = [parse_passage(p, f"{doc_id}-p{i}") for i, p in enumerate(_as_list(_pick(raw, "reading", "reading_passages")), start=1)]
    listening = [parse_passage(s, f"{doc_id}-s{i}") for i, s in enumerate(_as_list(_pick(raw, "listening", "listening_sections")), start=1)]
    writing = [parse_writing_task(w, f"{doc_id}-w{i}") for i, w in enumerate(_as_list(_pick(raw, "writing", "writing_tasks")), start=1)]

    exam_type = _as_str(raw.get("type"), "").lower()
    if exam_type not in ("reading", "listening", "writing"):
        exam_type = "listening" if listening and not reading else ("writing" if writing and not (reading or listening) else "reading")

    duration = _as_int(_pick(raw, "duration_minutes", "durationMinutes", "duration"), DEFAULT_DURATION_MINUTES)
    if duration <= 0:
        duration = DEFAULT_DURATION_MINUTES

    return ExamDocument(
        id=doc_id,
        title=_as_str(raw.get("title")),
        duration_minutes=duration,
        type=exam_type,  # type: ignore[arg-type]
        reading=tuple(p for p in reading if p),
        listening=tuple(s for s in listening if s),
        writing=tuple(w for w in writing if w),
        is_real_test=bool(_pick(raw, "is_real_test", "isRealTest", default=False)),
        full_audio=_opt_str(_pick(raw, "full_audio", "fullAudio")),
    )


def load_document_file(path: str | Path) -> ExamDocument:
    p = Path(path)
    data = json.loads(p.read_text(encoding="utf-8"))
    return parse_document(data, test_id=p.stem)
