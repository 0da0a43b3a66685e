"""Collaborators the session talks to, and local implementations of them.

The session only sees ``ContentBackend`` and ``GradingBackend``. The local
implementations grade with this package's comparator and keep their state in
any object that satisfies ``ExamStore`` (the JSON file store in
``api.storage`` or ``InMemoryStore`` below).
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import asdict
from typing import Any, Dict, List, Mapping, Optional, Protocol

from .document import parse_document
from .errors import LoadError, SubmissionError
from .llm_bridge import score_essay
from .scoring import grade_answers
from .types import ExamDocument, SubmissionResult
from .writing import build_writing_answers, criteria_bands, performance_label, writing_overall_band

log = logging.getLogger(__name__)


class ContentBackend(Protocol):
    def get_exam(self, test_id: str) -> ExamDocument: ...


class GradingBackend(Protocol):
    def submit(self, test_id: str, payload: Mapping[str, Any]) -> SubmissionResult: ...

    def score_writing_with_ai(self, submission_id: str) -> SubmissionResult: ...


class ExamStore(Protocol):
    def load_exam(self, test_id: str) -> Optional[Dict[str, Any]]: ...

    def save_writing_submission(self, submission_id: str, payload: Dict[str, Any]) -> None: ...

    def load_writing_submission(self, submission_id: str) -> Optional[Dict[str, Any]]: ...

    def save_attempt(self, user_id: str, test_id: str, attempt: Dict[str, Any]) -> str: ...


class InMemoryStore:
    def __init__(self, exams: Optional[Dict[str, Dict[str, Any]]] = None):
        self.exams: Dict[str, Dict[str, Any]] = dict(exams or {})
        self.writing: Dict[str, Dict[str, Any]] = {}
        self.attempts: List[Dict[str, Any]] = []

    def load_exam(self, test_id: str) -> Optional[Dict[str, Any]]:
        return self.exams.get(test_id)

    def save_writing_submission(self, submission_id: str, payload: Dict[str, Any]) -> None:
        self.writing[submission_id] = payload

    def load_writing_submission(self, submission_id: str) -> Optional[Dict[str, Any]]:
        return self.writing.get(submission_id)

    def save_attempt(self, user_id: str, test_id: str, attempt: Dict[str, Any]) -> str:
        attempt_id = str(uuid.uuid4())
        self.attempts.append({"id": attempt_id, "userId": user_id, "testId": test_id, **attempt})
        return attempt_id


class StoreContentBackend:
    def __init__(self, store: ExamStore):
        self.store = store

    def get_exam(self, test_id: str) -> ExamDocument:
        try:
            raw = self.store.load_exam(test_id)
        except OSError as e:
            raise LoadError(f"could not read exam {test_id}: {e}") from e
        if raw is None:
            raise LoadError(f"exam {test_id} not found")
        return parse_document(raw, test_id=test_id)


class LocalGradingBackend:
    """Authoritative grader backed by an ExamStore."""

    def __init__(self, store: ExamStore, user_id: Optional[str] = None):
        self.store = store
        self.user_id = user_id

    def _exam(self, test_id: str) -> ExamDocument:
        raw = self.store.load_exam(test_id)
        if raw is None:
            raise SubmissionError(f"test {test_id} not found", status_code=404)
        return parse_document(raw, test_id=test_id)

    def submit(self, test_id: str, payload: Mapping[str, Any]) -> SubmissionResult:
        doc = self._exam(test_id)
        answers = payload.get("answers")
        writing = payload.get("writing")
        if doc.type != "writing" and not isinstance(answers, (list, tuple)):
            raise SubmissionError("answers must be an array", status_code=400)
        safe_answers = list(answers or [])
        safe_writing = list(writing or []) if isinstance(writing, (list, tuple)) else []
        is_practice = payload.get("isPractice") is True

        result = grade_answers(doc, safe_answers, time_taken_ms=int(payload.get("timeTaken") or 0))
        result.is_practice = is_practice

        written = build_writing_answers(safe_writing, doc.writing)
        if written:
            submission_id = str(uuid.uuid4())
            tasks = {t.id: t for t in doc.writing}
            self.store.save_writing_submission(
                submission_id,
                {
                    "id": submission_id,
                    "testId": test_id,
                    "userId": self.user_id,
                    "status": "pending",
                    "answers": [
                        {**asdict(w), "prompt": tasks[w.task_id].prompt, "task_type": tasks[w.task_id].task_type}
                        for w in written
                    ],
                },
            )
            result.writing_answers = written
            result.writing_submission_id = submission_id
            result.writing_status = "pending"
            log.info("writing submission %s created for %s (%d task(s))", submission_id, test_id, len(written))

        if self.user_id and not is_practice:
            result.attempt_id = self.store.save_attempt(
                self.user_id,
                test_id,
                {
                    "type": doc.type,
                    "score": None if doc.type == "writing" else result.score,
                    "total": None if doc.type == "writing" else result.total,
                    "wrong": None if doc.type == "writing" else result.wrong,
                    "skipped": None if doc.type == "writing" else result.skipped,
                    "percentage": None if doc.type == "writing" else result.percentage,
                    "timeTakenMs": result.time_taken_ms,
                    "answers": [
                        {
                            "questionNumber": r.q_number,
                            "questionType": r.type,
                            "isCorrect": r.is_correct,
                            "userAnswer": r.your_answer,
                            "correctAnswer": r.correct_answer,
                        }
                        for r in result.question_review
                    ],
                },
            )
        return result

    def score_writing_with_ai(self, submission_id: str) -> SubmissionResult:
        sub = self.store.load_writing_submission(submission_id)
        if not sub:
            raise SubmissionError(f"writing submission {submission_id} not found", status_code=404)

        task_results = []
        for entry in sub.get("answers") or []:
            graded = score_essay(
                str(entry.get("task_id")),
                str(entry.get("prompt") or ""),
                str(entry.get("answer_text") or ""),
                str(entry.get("task_type") or "task2"),
            )
            task_results.append({"task_id": entry.get("task_id"), "task_type": entry.get("task_type"), **graded})

        band = writing_overall_band(task_results)
        feedback = {
            "criteria": criteria_bands(task_results),
            "tasks": task_results,
            "label": performance_label(band),
        }
        self.store.save_writing_submission(submission_id, {**sub, "status": "scored", "band": band, "feedback": feedback})
        log.info("writing submission %s scored: band %.1f", submission_id, band)
        return SubmissionResult(
            score=0,
            total=0,
            wrong=0,
            skipped=0,
            writing_submission_id=submission_id,
            writing_status="scored",
            writing_band=band,
            writing_feedback=feedback,
        )
