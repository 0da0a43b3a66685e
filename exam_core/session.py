# exam_core/session.py
from __future__ import annotations
from dataclasses import asdict, replace
from typing import Any, Callable, Dict, Optional, Tuple
import logging
import threading
import time

from .answers import AnswerStore
from .backends import ContentBackend, GradingBackend
from .bands import band_for
from .clock import SessionClock
from .config import WRITING_ROUTE_PROMPT
from .errors import AnswerLockedError, ExamError, LoadError, SubmissionError
from .layout import build_slots, build_steps
from .scoring import scope_result
from .types import ExamDocument, SessionStatus, Slot, Step, SubmissionResult, WritingRoute

log = logging.getLogger(__name__)

ROUTES: Tuple[str, ...] = ("standard", "ai")


class ExamSession:
    """One test-taker working through one exam.

    States: loading -> active -> submitting -> submitted | error, with
    ``awaiting_route`` parked between active and submitting while a writing
    practice session waits for the standard/AI choice. At most one submission
    is ever in flight; the clock is stopped before any submission starts.
    """

    def __init__(
        self,
        test_id: str,
        content: ContentBackend,
        grading: GradingBackend,
        practice_step: Optional[int] = None,
        autostart_clock: bool = True,
        now: Callable[[], float] = time.monotonic,
        clock_factory: Callable[..., SessionClock] = SessionClock,
    ):
        self.test_id = test_id
        self.content = content
        self.grading = grading
        self.practice_step = practice_step
        self.autostart_clock = autostart_clock
        self._now = now
        self._clock_factory = clock_factory

        self.status: SessionStatus = "loading"
        self.doc: Optional[ExamDocument] = None
        self.slots: Tuple[Slot, ...] = ()
        self.steps: Tuple[Step, ...] = ()
        self.store: Optional[AnswerStore] = None
        self.clock: Optional[SessionClock] = None
        self.current_step = 0
        self.result: Optional[SubmissionResult] = None
        self.error: Optional[str] = None
        self.error_kind: Optional[str] = None

        self._lock = threading.Lock()
        self._in_flight = False
        self._route: Optional[str] = None
        # delegate result kept across a failed AI scoring call so a retry does not resubmit
        self._graded: Optional[SubmissionResult] = None
        self._started_at: Optional[float] = None
        self._snapshot: Tuple[Tuple[str, ...], Tuple[str, ...]] = ((), ())

    @classmethod
    def open(cls, test_id: str, content: ContentBackend, grading: GradingBackend, **kwargs: Any) -> "ExamSession":
        sess = cls(test_id, content, grading, **kwargs)
        sess.load()
        return sess

    @property
    def is_practice(self) -> bool:
        return self.practice_step is not None

    @property
    def step(self) -> Optional[Step]:
        if 0 <= self.current_step < len(self.steps):
            return self.steps[self.current_step]
        return None

    # ---- lifecycle ----
    def load(self) -> None:
        if self.status != "loading":
            raise ExamError(f"session {self.test_id} already loaded")
        try:
            doc = self.content.get_exam(self.test_id)
        except LoadError as e:
            self._fail_load(str(e))
            raise
        except Exception as e:
            self._fail_load(str(e))
            raise LoadError(str(e)) from e

        slots = build_slots(doc)
        steps = build_steps(doc)
        if self.practice_step is not None and not (0 <= self.practice_step < len(steps)):
            self._fail_load(f"part {self.practice_step} out of range 0..{len(steps) - 1}")
            raise LoadError(self.error or "")

        self.doc, self.slots, self.steps = doc, slots, steps
        self.store = AnswerStore(len(slots), len(doc.writing))
        self.current_step = self.practice_step or 0
        self.clock = self._clock_factory(
            doc.duration_minutes * 60,
            on_expire=self._on_clock_expired,
            on_warning=self._on_clock_warning,
        )
        self._started_at = self._now()
        self.status = "active"
        log.info("session %s active: %d slot(s), %d step(s), %d min", self.test_id, len(slots), len(steps), doc.duration_minutes)
        if self.autostart_clock:
            self.clock.start()

    def _fail_load(self, message: str) -> None:
        self.status = "error"
        self.error = message
        self.error_kind = "load"
        log.warning("session %s failed to load: %s", self.test_id, message)

    def close(self) -> None:
        """Tear down background work; called when the UI leaves the exam."""
        if self.clock is not None:
            self.clock.stop()

    # ---- answers ----
    def _require_active(self) -> AnswerStore:
        if self.status != "active" or self.store is None:
            raise AnswerLockedError(f"answers can only change while active (state: {self.status})")
        return self.store

    def set_answer(self, index: int, value: str) -> None:
        with self._lock:
            store = self._require_active()
            store.set_answer(index, value)

    def set_writing_answer(self, task_index: int, value: str) -> None:
        with self._lock:
            store = self._require_active()
            store.set_writing_answer(task_index, value)

    def toggle_eliminated(self, index: int, option: str) -> bool:
        with self._lock:
            return self._require_active().toggle_eliminated(index, option)

    # ---- navigation ----
    def go_to_step(self, index: int) -> Step:
        if not (0 <= index < len(self.steps)):
            raise IndexError(f"step {index} out of range 0..{len(self.steps) - 1}")
        self.current_step = index
        return self.steps[index]

    def next_step(self) -> Optional[Step]:
        return self.go_to_step(min(self.current_step + 1, len(self.steps) - 1)) if self.steps else None

    def previous_step(self) -> Optional[Step]:
        return self.go_to_step(max(self.current_step - 1, 0)) if self.steps else None

    # ---- submission ----
    def _needs_route(self) -> bool:
        step = self.step
        return bool(
            WRITING_ROUTE_PROMPT
            and self.is_practice
            and step is not None
            and step.is_writing
            and self.doc
            and not self.doc.is_real_test
        )

    def _leave_active_locked(self) -> None:
        if self.store is None:
            raise ExamError(f"session {self.test_id} is not loaded")
        if self.clock is not None:
            self.clock.stop()
        self._snapshot = self.store.freeze()

    def _begin_locked(self) -> None:
        self._leave_active_locked()
        self._in_flight = True
        self.status = "submitting"
        self.error = None
        self.error_kind = None

    def _can_submit_locked(self) -> bool:
        return self.status == "active" or (self.status == "error" and self.error_kind == "submit")

    def confirm_submit(self) -> Optional[SubmissionResult]:
        """Submit the current answers.

        Returns the result, or None when nothing was submitted (a submission is
        already in flight, or the session is waiting for a writing route).
        Calling again after success returns the same result without grading.
        """
        with self._lock:
            if self.status == "submitted":
                return self.result
            if self._in_flight or not self._can_submit_locked():
                return None
            if self.status == "active" and self._needs_route():
                self._leave_active_locked()
                self.status = "awaiting_route"
                log.info("session %s awaiting writing route", self.test_id)
                return None
            self._begin_locked()
            route = self._route
        return self._run_submission(route=route)

    def choose_writing_scoring_route(self, route: WritingRoute) -> Optional[SubmissionResult]:
        if route not in ROUTES:
            raise ValueError(f"unknown scoring route {route!r}")
        with self._lock:
            if self.status == "submitted":
                return self.result
            retrying = self.status == "error" and self.error_kind == "submit" and self._route is not None
            if self._in_flight or not (self.status == "awaiting_route" or retrying):
                return None
            self._route = route
            self._begin_locked()
        return self._run_submission(route=route)

    def cancel_route(self) -> None:
        with self._lock:
            if self.status != "awaiting_route" or self.store is None:
                return
            self.store.unfreeze()
            self.status = "active"
            self._route = None
        if self.clock is not None and self.autostart_clock:
            self.clock.start()

    def _time_taken_ms(self) -> int:
        if self._started_at is None:
            return (self.doc.duration_minutes if self.doc else 0) * 60 * 1000
        return max(0, int((self._now() - self._started_at) * 1000))

    def _run_submission(self, route: Optional[str]) -> SubmissionResult:
        answers, writing = self._snapshot
        payload = {
            "answers": list(answers),
            "writing": list(writing),
            "timeTaken": self._time_taken_ms(),
            "isPractice": self.is_practice,
        }
        log.info("session %s submitting (route=%s, practice=%s)", self.test_id, route or "-", self.is_practice)
        try:
            result = self._graded
            if result is None:
                result = self.grading.submit(self.test_id, payload)
                self._graded = result
            if route == "ai" and result.writing_submission_id:
                scored = self.grading.score_writing_with_ai(result.writing_submission_id)
                result = replace(
                    result,
                    writing_status=scored.writing_status,
                    writing_band=scored.writing_band,
                    writing_feedback=scored.writing_feedback,
                )
            result = self._finalize(result)
        except Exception as e:
            with self._lock:
                self.status = "error"
                self.error = str(e)
                self.error_kind = "submit"
                self._in_flight = False
                if self.store is not None:
                    self.store.unfreeze()
            log.warning("session %s submission failed: %s", self.test_id, e)
            if isinstance(e, SubmissionError):
                raise
            raise SubmissionError(str(e)) from e

        with self._lock:
            self.result = result
            self.status = "submitted"
            self._in_flight = False
            self._graded = None
        if self.store is not None:
            self.store.clear_scratch()
        log.info("session %s submitted: %d/%d", self.test_id, result.score, result.total)
        return result

    def _finalize(self, result: SubmissionResult) -> SubmissionResult:
        if self.doc is None:
            raise ExamError(f"session {self.test_id} is not loaded")
        if self.practice_step is not None:
            # the full-session tally is never used for a single-part practice
            return scope_result(result, self.steps[self.practice_step], self.practice_step)
        if self.doc.type in ("reading", "listening"):
            return replace(result, band=band_for(result.score, self.doc.type), is_practice=False)
        return replace(result, is_practice=False)

    def recover(self) -> bool:
        """Return a failed submission to active so the same answers can be edited or resent.

        Refused once the clock has run out: the deadline has passed, so the
        only way forward is resubmitting the frozen answers.
        """
        with self._lock:
            if self.status != "error" or self.error_kind != "submit":
                return False
            if self.clock is not None and self.clock.expired:
                return False
            self._route = None
            self._graded = None
            self.status = "active"
            self.error = None
            self.error_kind = None
        if self.clock is not None and self.autostart_clock:
            self.clock.start()
        return True

    # ---- clock callbacks ----
    def _on_clock_warning(self) -> None:
        log.info("session %s: time warning", self.test_id)

    def _on_clock_expired(self) -> None:
        with self._lock:
            if self.status != "active" or self._in_flight:
                return
            self._begin_locked()
        log.info("session %s: time up, auto-submitting", self.test_id)
        try:
            self._run_submission(route=None)
        except SubmissionError as e:
            log.info("session %s: auto-submit left the session in error: %s", self.test_id, e)

    # ---- read model ----
    def get_session_state(self) -> Dict[str, Any]:
        clock = self.clock
        return {
            "testId": self.test_id,
            "title": self.doc.title if self.doc else None,
            "type": self.doc.type if self.doc else None,
            "status": self.status,
            "remainingSeconds": clock.remaining_seconds if clock else None,
            "remaining": clock.format_remaining() if clock else None,
            "warning": clock.warning_crossed if clock else False,
            "currentStep": self.current_step,
            "steps": [
                {"label": s.label, "type": s.type, "start": s.start_slot_index, "end": s.end_slot_index}
                for s in self.steps
            ],
            "slotCount": len(self.slots),
            "answeredCount": self.store.answered_count() if self.store else 0,
            "isPractice": self.is_practice,
            "practiceStep": self.practice_step,
            "isRealTest": bool(self.doc and self.doc.is_real_test),
            "error": self.error,
            "errorKind": self.error_kind,
            "result": asdict(self.result) if self.result is not None else None,
        }
