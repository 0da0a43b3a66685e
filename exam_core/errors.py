"""Exceptions raised by the exam session engine."""
from __future__ import annotations


class ExamError(Exception):
    """Base class for engine errors."""


class LoadError(ExamError):
    """The exam document could not be fetched; the session never became active."""


class SubmissionError(ExamError):
    """The grading delegate failed. The answers are intact and can be resubmitted."""

    def __init__(self, message: str, status_code: int = 502):
        super().__init__(message)
        self.status_code = status_code


class AnswerLockedError(ExamError):
    """An answer write arrived after the submission snapshot was taken."""
