from __future__ import annotations

from exam_core.clock import SessionClock


class FakeTimer:
    def __init__(self, interval, fn):
        self.interval = interval
        self.fn = fn
        self.daemon = False
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True


class TimerLog:
    def __init__(self):
        self.timers: list[FakeTimer] = []

    def __call__(self, interval, fn):
        t = FakeTimer(interval, fn)
        self.timers.append(t)
        return t


def test_ticks_fire_warning_once_and_expire_once():
    events: list[str] = []
    clock = SessionClock(5, on_expire=lambda: events.append("expire"), on_warning=lambda: events.append("warn"), warning_threshold=3)
    results = [clock.tick() for _ in range(8)]
    assert results == [False, False, False, False, True, False, False, False]
    assert events == ["warn", "expire"]
    assert clock.remaining_seconds == 0 and clock.expired and clock.warning_crossed


def test_default_warning_threshold_is_five_minutes():
    warned = []
    clock = SessionClock(302, on_warning=lambda: warned.append(clock.remaining_seconds))
    clock.tick()
    assert warned == []
    clock.tick()
    assert warned == [300]


def test_stop_is_synchronous():
    events: list[str] = []
    timers = TimerLog()
    clock = SessionClock(2, on_expire=lambda: events.append("expire"), timer_factory=timers)
    clock.start()
    assert clock.running and len(timers.timers) == 1 and timers.timers[0].daemon
    clock.stop()
    assert timers.timers[0].cancelled and not clock.running
    # a timer already in flight when stop() returned changes nothing
    timers.timers[0].fn()
    assert clock.tick() is False
    assert clock.remaining_seconds == 2 and events == []


def test_timer_callback_ticks_and_reschedules():
    timers = TimerLog()
    clock = SessionClock(2, timer_factory=timers, interval=0.5)
    clock.start()
    clock.start()
    assert len(timers.timers) == 1 and timers.timers[0].interval == 0.5
    timers.timers[0].fn()
    assert clock.remaining_seconds == 1 and len(timers.timers) == 2
    timers.timers[1].fn()
    assert clock.expired and not clock.running and len(timers.timers) == 2


def test_for_minutes_and_format():
    clock = SessionClock.for_minutes(1)
    assert clock.remaining_seconds == 60 and clock.format_remaining() == "01:00"
    assert SessionClock(125).format_remaining() == "02:05"
    assert SessionClock(0).expired
