from __future__ import annotations

from exam_core.document import parse_document
from exam_core.layout import build_slots, build_steps, slot_count
from tests.conftest import build_synthetic_exam


def test_slot_count_matches_questions_and_skips_writing():
    raw = build_synthetic_exam(reading=(10, 15, 15), writing=2)
    slots = build_slots(raw)
    assert len(slots) == 40 == slot_count(raw)
    assert [s.absolute_index for s in slots] == list(range(40))
    assert slots[0].q_number == 1 and slots[-1].q_number == 40
    assert slots[0].instructions == "Write NO MORE THAN TWO WORDS."


def test_steps_partition_slot_space():
    steps = build_steps(build_synthetic_exam(reading=(10, 15, 15)))
    assert [(s.start_slot_index, s.end_slot_index) for s in steps] == [(0, 10), (10, 25), (25, 40)]
    assert [s.label for s in steps] == ["Passage 1", "Passage 2", "Passage 3"]
    for left, right in zip(steps, steps[1:]):
        assert left.end_slot_index == right.start_slot_index
    assert sum(len(s) for s in steps) == 40


def test_reading_before_listening_in_slot_order():
    raw = build_synthetic_exam(reading=(5,), listening=(10, 10))
    steps = build_steps(raw)
    assert [(s.type, s.label) for s in steps] == [("reading", "Passage 1"), ("listening", "Section 1"), ("listening", "Section 2")]
    assert [(s.start_slot_index, s.end_slot_index) for s in steps] == [(0, 5), (5, 15), (15, 25)]
    assert steps[-1].end_slot_index == len(build_slots(raw))


def test_writing_steps_use_empty_sentinel_range():
    raw = build_synthetic_exam(reading=(3,), writing=2)
    steps = build_steps(raw)
    writing = [s for s in steps if s.is_writing]
    assert [(s.label, s.task_index) for s in writing] == [("Task 1", 0), ("Task 2", 1)]
    assert all(s.start_slot_index == -1 and s.end_slot_index == -1 for s in writing)
    assert all(len(s) == 0 for s in writing)
    assert steps[0].end_slot_index == 3


def test_malformed_document_degrades_to_empty():
    doc = parse_document({"reading": "nope", "listening": [None, {"question_groups": "x"}], "duration": -5}, test_id="bad")
    assert doc.id == "bad"
    assert doc.reading == ()
    assert len(doc.listening) == 1 and doc.listening[0].question_groups == ()
    assert doc.type == "listening"
    assert doc.duration_minutes == 60
    assert build_slots(doc) == ()
    steps = build_steps(doc)
    assert len(steps) == 1 and (steps[0].start_slot_index, steps[0].end_slot_index) == (0, 0)


def test_parse_accepts_camel_case_keys():
    raw = {
        "_id": "cam",
        "durationMinutes": 20,
        "isRealTest": True,
        "reading": [{"questionGroups": [{"type": "TFNG", "questions": [{"qNumber": 7, "correctAnswer": "TRUE"}]}]}],
    }
    doc = parse_document(raw)
    assert doc.id == "cam" and doc.duration_minutes == 20 and doc.is_real_test
    (slot,) = build_slots(doc)
    assert slot.type == "tfng" and slot.q_number == 7
    assert doc.reading[0].question_groups[0].questions[0].correct_answers == ("TRUE",)


def test_non_mapping_document_is_empty():
    doc = parse_document(["not", "a", "document"], test_id="x")
    assert doc.type == "reading"
    assert build_slots(doc) == () and build_steps(doc) == ()
