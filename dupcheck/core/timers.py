"""
Timer ownership for a search session
------------------------------------
Every timer a session starts lives in one named slot of a TimerSlots object
owned by that session. Setting a slot cancels whatever handle it held, so at
most one live timer of each kind exists; dispose() cancels all of them.

The Scheduler seam wraps the running asyncio loop. Tests replace it with a
virtual clock.
"""
from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Dict, Protocol

SLOT_DEBOUNCE = "debounce"
SLOT_TICK = "tick"
SLOT_EXPIRY = "expiry"


class Cancellable(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> Cancellable: ...

    def spawn(self, coro: Awaitable[Any]) -> "asyncio.Future[Any]": ...


class LoopScheduler:
    """Schedules on the asyncio loop running at call time."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return asyncio.get_running_loop().call_later(max(0.0, float(delay)), callback)

    def spawn(self, coro: Awaitable[Any]) -> "asyncio.Future[Any]":
        return asyncio.ensure_future(coro)


class TimerSlots:
    def __init__(self, scheduler: Scheduler):
        self._scheduler = scheduler
        self._handles: Dict[str, Cancellable] = {}

    def set(self, slot: str, delay: float, callback: Callable[[], None]) -> None:
        self.cancel(slot)
        self._handles[slot] = self._scheduler.call_later(delay, callback)

    def cancel(self, slot: str) -> None:
        handle = self._handles.pop(slot, None)
        if handle is not None:
            handle.cancel()

    def release(self, slot: str) -> None:
        """Forget a handle whose callback is running now (nothing left to cancel)."""
        self._handles.pop(slot, None)

    def active(self, slot: str) -> bool:
        return slot in self._handles

    def dispose(self) -> None:
        for slot in list(self._handles.keys()):
            self.cancel(slot)

    def __len__(self) -> int:
        return len(self._handles)
