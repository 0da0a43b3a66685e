from __future__ import annotations

import threading
from typing import Any

import pytest

from exam_core.backends import InMemoryStore, LocalGradingBackend, StoreContentBackend
from exam_core.session import ExamSession


def build_synthetic_exam(
    *,
    test_id: str = "exam-1",
    reading: tuple[int, ...] = (10, 15, 15),
    listening: tuple[int, ...] = (),
    writing: int = 0,
    group_type: str = "gap_fill",
    duration_minutes: int = 60,
    is_real_test: bool = False,
) -> dict[str, Any]:
    """Create a deterministic raw exam document.

    Every passage/section holds one question group; question ``n`` (1-based,
    numbered across the whole exam) has the single correct answer ``answer{n}``.
    """

    q_number = 0

    def _item(prefix: str, idx: int, size: int) -> dict[str, Any]:
        nonlocal q_number
        questions = []
        for _ in range(size):
            q_number += 1
            questions.append({"q_number": q_number, "text": f"Question {q_number}", "correct_answers": [f"answer{q_number}"]})
        return {
            "id": f"{test_id}-{prefix}{idx}",
            "title": f"{prefix.upper()}{idx}",
            "question_groups": [{"type": group_type, "instructions": "Write NO MORE THAN TWO WORDS.", "questions": questions}],
        }

    doc: dict[str, Any] = {
        "id": test_id,
        "title": f"Synthetic {test_id}",
        "duration_minutes": duration_minutes,
        "is_real_test": is_real_test,
        "reading": [_item("p", i, n) for i, n in enumerate(reading, start=1)],
        "listening": [_item("s", i, n) for i, n in enumerate(listening, start=1)],
        "writing": [
            {
                "id": f"{test_id}-w{i}",
                "title": f"Writing Task {i}",
                "prompt": "Describe the chart." if i == 1 else "Discuss both views and give your opinion.",
                "task_type": "task1" if i == 1 else "task2",
            }
            for i in range(1, writing + 1)
        ],
    }
    return doc


def correct_answer(slot_index: int) -> str:
    return f"answer{slot_index + 1}"


SAMPLE_ESSAY = (
    "Some people believe that cities should invest in public transport, while others think roads matter more. "
    "In my opinion, public transport is the better investment.\n\n"
    "Firstly, buses and trains move many people at once. For example, a single train can replace hundreds of cars. "
    "Moreover, this reduces pollution and congestion in crowded centres.\n\n"
    "On the other hand, roads are still needed for deliveries and emergency services. "
    "However, these needs can be met without building ever wider motorways.\n\n"
    "In conclusion, although roads have a role, I believe public transport deserves the larger share of funding."
)


class FakeGrader:
    """GradingBackend double that counts calls and can fail or block on demand."""

    def __init__(self, inner=None, fail_times: int = 0, gate: threading.Event | None = None, ai_fail_times: int = 0):
        self.inner = inner
        self.fail_times = fail_times
        self.ai_fail_times = ai_fail_times
        self.gate = gate
        self.entered = threading.Event()
        self.calls = 0
        self.ai_calls = 0
        self.payloads: list[dict[str, Any]] = []

    def submit(self, test_id, payload):
        self.calls += 1
        self.payloads.append(dict(payload))
        self.entered.set()
        if self.gate is not None:
            self.gate.wait(5)
        if self.fail_times > 0:
            self.fail_times -= 1
            raise RuntimeError("grader unavailable")
        return self.inner.submit(test_id, payload)

    def score_writing_with_ai(self, submission_id):
        self.ai_calls += 1
        if self.ai_fail_times > 0:
            self.ai_fail_times -= 1
            raise RuntimeError("writing grader unavailable")
        return self.inner.score_writing_with_ai(submission_id)


@pytest.fixture
def synthetic_exam() -> dict[str, Any]:
    return build_synthetic_exam()


@pytest.fixture
def memory_store(synthetic_exam) -> InMemoryStore:
    return InMemoryStore({"exam-1": synthetic_exam})


@pytest.fixture
def make_session(memory_store):
    """Factory for loaded sessions over the in-memory store; clocks are driven by hand."""

    def _make(test_id: str = "exam-1", *, doc: dict[str, Any] | None = None, user_id: str | None = None, **kwargs):
        if doc is not None:
            memory_store.exams[test_id] = doc
        grader = kwargs.pop("grader", None) or FakeGrader(LocalGradingBackend(memory_store, user_id=user_id))
        if grader.inner is None:
            grader.inner = LocalGradingBackend(memory_store, user_id=user_id)
        kwargs.setdefault("autostart_clock", False)
        sess = ExamSession.open(test_id, StoreContentBackend(memory_store), grader, **kwargs)
        return sess, grader

    return _make
