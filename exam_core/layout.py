"""Flatten an exam document into slots (answer positions) and steps (navigation ranges)."""
from __future__ import annotations

from typing import Any, Iterator, List, Tuple

from .document import parse_document
from .types import ExamDocument, Passage, Slot, Step

_STEP_LABELS = {"reading": "Passage", "listening": "Section", "writing": "Task"}


def _as_document(doc: Any) -> ExamDocument:
    return doc if isinstance(doc, ExamDocument) else parse_document(doc)


def _scored_items(doc: ExamDocument) -> Iterator[Tuple[str, Passage]]:
    # passages before sections; this order is the slot address space
    for passage in doc.reading:
        yield "reading", passage
    for section in doc.listening:
        yield "listening", section


def build_slots(doc: Any) -> Tuple[Slot, ...]:
    exam = _as_document(doc)
    slots: List[Slot] = []
    for _, item in _scored_items(exam):
        for group in item.question_groups:
            for q in group.questions:
                slots.append(
                    Slot(
                        absolute_index=len(slots),
                        type=group.type,
                        q_number=q.q_number,
                        instructions=group.instructions,
                        headings=group.headings,
                        options=group.options,
                        text=q.text,
                        option=q.option,
                    )
                )
    return tuple(slots)


def build_steps(doc: Any) -> Tuple[Step, ...]:
    exam = _as_document(doc)
    steps: List[Step] = []
    slot_index = 0
    counters = {"reading": 0, "listening": 0}
    for kind, item in _scored_items(exam):
        start = slot_index
        for group in item.question_groups:
            slot_index += len(group.questions)
        counters[kind] += 1
        steps.append(Step(kind, f"{_STEP_LABELS[kind]} {counters[kind]}", item, start, slot_index))  # type: ignore[arg-type]
    for task_index, task in enumerate(exam.writing):
        # writing answers live in their own vector, indexed by task
        steps.append(Step("writing", f"{_STEP_LABELS['writing']} {task_index + 1}", task, -1, -1, task_index=task_index))
    return tuple(steps)


def slot_count(doc: Any) -> int:
    exam = _as_document(doc)
    return sum(len(g.questions) for _, item in _scored_items(exam) for g in item.question_groups)
