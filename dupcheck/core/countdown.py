from typing import Callable

from dupcheck.core.timers import SLOT_EXPIRY, SLOT_TICK, TimerSlots


class Countdown:
    """
    Visible auto-advance countdown: a recurring tick lowers `remaining` and a
    single expiry fires after the full duration. `seconds` is a count of
    ticks: the countdown lasts seconds * tick_seconds, so a non-default tick
    length stretches or shrinks the whole countdown. Both handles live in the
    session's TimerSlots, so any session transition disposes them.
    """

    def __init__(self, timers: TimerSlots, seconds: int, tick_seconds: float, on_expired: Callable[[], None]):
        self._timers = timers
        self.seconds = int(seconds)
        self.tick_seconds = float(tick_seconds)
        self._on_expired = on_expired
        self.remaining = int(seconds)

    @property
    def running(self) -> bool:
        return self._timers.active(SLOT_EXPIRY)

    def start(self) -> None:
        self.cancel()
        self.remaining = self.seconds
        self._timers.set(SLOT_TICK, self.tick_seconds, self._tick)
        self._timers.set(SLOT_EXPIRY, self.seconds * self.tick_seconds, self._expire)

    def cancel(self) -> None:
        self._timers.cancel(SLOT_TICK)
        self._timers.cancel(SLOT_EXPIRY)

    def _tick(self) -> None:
        self._timers.release(SLOT_TICK)
        if self.remaining > 0:
            self.remaining -= 1
        if self.remaining > 0 and self.running:
            self._timers.set(SLOT_TICK, self.tick_seconds, self._tick)

    def _expire(self) -> None:
        self._timers.release(SLOT_EXPIRY)
        self._timers.cancel(SLOT_TICK)
        self.remaining = 0
        self._on_expired()
