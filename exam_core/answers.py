from __future__ import annotations

import logging
import threading
from typing import Dict, List, Set, Tuple

from .errors import AnswerLockedError

log = logging.getLogger(__name__)


class AnswerStore:
    """Index-aligned answer vectors for one session.

    ``answers`` is addressed by slot index and ``writing`` by writing-task
    index. Both are sized once and never resized. Eliminated-option flags are
    UI scratch state and play no part in scoring.
    """

    def __init__(self, slot_count: int, writing_count: int = 0):
        self._answers: List[str] = [""] * max(0, int(slot_count))
        self._writing: List[str] = [""] * max(0, int(writing_count))
        self._eliminated: Dict[int, Set[str]] = {}
        self._frozen = False
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._answers)

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def answers(self) -> Tuple[str, ...]:
        return tuple(self._answers)

    @property
    def writing(self) -> Tuple[str, ...]:
        return tuple(self._writing)

    @staticmethod
    def _check_index(index: int, size: int, what: str) -> int:
        if isinstance(index, bool) or not isinstance(index, int):
            raise IndexError(f"{what} index must be an int, got {index!r}")
        if index < 0 or index >= size:
            raise IndexError(f"{what} index {index} out of range 0..{size - 1}")
        return index

    def set_answer(self, index: int, value: str) -> None:
        with self._lock:
            if self._frozen:
                raise AnswerLockedError("answers are locked for submission")
            i = self._check_index(index, len(self._answers), "slot")
            self._answers[i] = "" if value is None else str(value)
        log.debug("answer[%d] = %r", i, value)

    def set_writing_answer(self, task_index: int, value: str) -> None:
        with self._lock:
            if self._frozen:
                raise AnswerLockedError("answers are locked for submission")
            i = self._check_index(task_index, len(self._writing), "writing task")
            self._writing[i] = "" if value is None else str(value)

    def is_answered(self, index: int) -> bool:
        return bool(self._answers[self._check_index(index, len(self._answers), "slot")].strip())

    def answered_count(self) -> int:
        return sum(1 for a in self._answers if a.strip())

    def freeze(self) -> Tuple[Tuple[str, ...], Tuple[str, ...]]:
        """Lock the store and return the snapshot that gets submitted."""
        with self._lock:
            self._frozen = True
            return tuple(self._answers), tuple(self._writing)

    def unfreeze(self) -> None:
        with self._lock:
            self._frozen = False

    # ---- eliminated options (scratch) ----
    def toggle_eliminated(self, index: int, option: str) -> bool:
        i = self._check_index(index, len(self._answers), "slot")
        with self._lock:
            flags = self._eliminated.setdefault(i, set())
            if option in flags:
                flags.discard(option)
                return False
            flags.add(option)
            return True

    def eliminated(self, index: int) -> Set[str]:
        return set(self._eliminated.get(index, ()))

    def clear_scratch(self) -> None:
        with self._lock:
            self._eliminated.clear()
