import asyncio
from typing import Any, Callable, List

import pytest

from dupcheck.core.profiles import get_profile
from dupcheck.core.session import SearchSession


class _Handle:
    def __init__(self, when: float, seq: int, callback: Callable[[], None]):
        self.when = when
        self.seq = seq
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Virtual clock: timers only fire when the test calls advance()."""

    def __init__(self):
        self.now = 0.0
        self._seq = 0
        self._handles: List[_Handle] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> _Handle:
        self._seq += 1
        handle = _Handle(self.now + max(0.0, float(delay)), self._seq, callback)
        self._handles.append(handle)
        return handle

    def spawn(self, coro):
        return asyncio.ensure_future(coro)

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [h for h in self._handles if not h.cancelled and h.when <= target]
            if not due:
                break
            handle = min(due, key=lambda h: (h.when, h.seq))
            self._handles.remove(handle)
            self.now = max(self.now, handle.when)
            handle.callback()
        self.now = target
        self._handles = [h for h in self._handles if not h.cancelled]

    @property
    def live(self) -> List[_Handle]:
        return [h for h in self._handles if not h.cancelled]


class FakeLookup:
    """Each call parks on a future the test resolves."""

    def __init__(self):
        self.calls: List[dict] = []
        self._futures: List[asyncio.Future] = []

    async def __call__(self, criteria):
        fut = asyncio.get_running_loop().create_future()
        self.calls.append(dict(criteria))
        self._futures.append(fut)
        return await fut

    def resolve(self, value: Any, index: int = -1) -> None:
        self._futures[index].set_result(value)

    def fail(self, exc: BaseException, index: int = -1) -> None:
        self._futures[index].set_exception(exc)


async def settle(rounds: int = 10) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def lookup():
    return FakeLookup()


@pytest.fixture
def advances():
    return []


@pytest.fixture
def outputs():
    return []


@pytest.fixture
def make_session(scheduler, lookup, advances, outputs):
    created = []

    def _make(profile: str = "individual", actions=("NEXT", "BACK"), **kwargs):
        kwargs.setdefault("debounce_seconds", 0.25)
        kwargs.setdefault("countdown_seconds", 5)
        kwargs.setdefault("tick_seconds", 1.0)
        session = SearchSession(
            get_profile(profile),
            lookup,
            session_id=f"sess-{len(created) + 1}",
            available_actions=actions,
            scheduler=scheduler,
            on_advance=lambda s, source: advances.append(source),
            on_output_change=lambda s, name, value: outputs.append((name, value)),
            **kwargs,
        )
        created.append(session)
        return session

    yield _make
    for s in created:
        s.dispose()
