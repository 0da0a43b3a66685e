# exam_core/clock.py
from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from .config import TICK_INTERVAL_SECONDS, WARNING_THRESHOLD_SECONDS

log = logging.getLogger(__name__)

Callback = Callable[[], None]


class SessionClock:
    """Countdown for one exam session.

    ``tick()`` advances one second and can be driven directly (tests, replays);
    ``start()`` drives it from a repeating ``threading.Timer``. ``stop()`` is
    synchronous: once it returns, no later tick changes state or fires a
    callback, including a timer that was already in flight.
    """

    def __init__(
        self,
        duration_seconds: int,
        on_expire: Optional[Callback] = None,
        on_warning: Optional[Callback] = None,
        warning_threshold: int = WARNING_THRESHOLD_SECONDS,
        interval: float = TICK_INTERVAL_SECONDS,
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
    ):
        self.remaining_seconds = max(0, int(duration_seconds))
        self.warning_crossed = False
        self.warning_threshold = int(warning_threshold)
        self.interval = float(interval)
        self._on_expire = on_expire
        self._on_warning = on_warning
        self._timer_factory = timer_factory
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()
        self._running = False
        self._stopped = False
        self._expired = self.remaining_seconds == 0

    @classmethod
    def for_minutes(cls, minutes: int, **kwargs) -> "SessionClock":
        return cls(int(minutes) * 60, **kwargs)

    @property
    def running(self) -> bool:
        return self._running

    @property
    def expired(self) -> bool:
        return self._expired

    def start(self) -> None:
        with self._lock:
            if self._running or self._expired:
                return
            self._stopped = False
            self._running = True
            self._schedule_locked()
        log.debug("clock started at %ds", self.remaining_seconds)

    def stop(self) -> None:
        with self._lock:
            self._stopped = True
            self._running = False
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def _schedule_locked(self) -> None:
        t = self._timer_factory(self.interval, self._on_timer)
        t.daemon = True
        self._timer = t
        t.start()

    def _on_timer(self) -> None:
        self.tick()
        with self._lock:
            if self._running and not self._stopped and not self._expired:
                self._schedule_locked()

    def tick(self) -> bool:
        """Advance one second. Returns True when this tick expired the clock."""

        fire_warning = False
        fire_expire = False
        with self._lock:
            if self._stopped or self._expired:
                return False
            self.remaining_seconds = max(0, self.remaining_seconds - 1)
            if not self.warning_crossed and self.remaining_seconds <= self.warning_threshold:
                self.warning_crossed = True
                fire_warning = True
            if self.remaining_seconds == 0:
                self._expired = True
                self._running = False
                if self._timer is not None:
                    self._timer.cancel()
                    self._timer = None
                fire_expire = True

        if fire_warning:
            log.info("clock warning: %ds left", self.remaining_seconds)
            if self._on_warning is not None:
                self._on_warning()
        if fire_expire:
            log.info("clock expired")
            if self._on_expire is not None:
                self._on_expire()
        return fire_expire

    def format_remaining(self) -> str:
        mins, secs = divmod(self.remaining_seconds, 60)
        return f"{mins:02d}:{secs:02d}"
