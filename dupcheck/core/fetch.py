"""
Single-flight lookup coordination
---------------------------------
At most one lookup per session is outstanding. Criteria that change while a
lookup runs are parked as ONE pending refetch (latest wins) and dispatched
the moment the running lookup completes, skipping the debounce delay. The
running lookup is never cancelled for being stale; its outcome is simply
superseded by the refetch.

Failures and unrecognised responses complete the same way as an empty
result; the kind on the LookupOutcome is the only difference.
"""
from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, Optional

from dupcheck.core.timers import Scheduler
from dupcheck.lookup.extract import LookupOutcome, parse_lookup_response
from dupcheck.observability.logging import log
from dupcheck.store.models import FetchRequest

Lookup = Callable[[Dict[str, str]], Awaitable[Any]]
StartedHook = Callable[[FetchRequest], None]
CompletedHook = Callable[[FetchRequest, LookupOutcome, bool], None]


class FetchCoordinator:
    def __init__(
        self,
        scheduler: Scheduler,
        lookup: Lookup,
        on_started: StartedHook,
        on_completed: CompletedHook,
        session_id: str = "",
    ):
        self._scheduler = scheduler
        self._lookup = lookup
        self._on_started = on_started
        self._on_completed = on_completed
        self._session_id = session_id

        self.outstanding = False
        self.pending: Optional[FetchRequest] = None
        self.current: Optional[FetchRequest] = None
        self.dispatch_count = 0
        self._task: Optional[asyncio.Future] = None
        self._closed = False

    @property
    def has_pending(self) -> bool:
        return self.pending is not None

    def mark_pending(self, request: FetchRequest) -> None:
        self.pending = request

    def clear_pending(self) -> None:
        self.pending = None

    def dispatch(self, request: FetchRequest) -> bool:
        if self._closed:
            return False
        if self.outstanding:
            # Upstream never dispatches during a lookup; keep the request as the refetch anyway.
            self.pending = request
            log(event="dispatch_refused_inflight", sessionId=self._session_id, signature=request.signature)
            return False

        self.outstanding = True
        self.current = request
        self.dispatch_count += 1
        self._on_started(request)
        log(
            event="lookup_dispatched",
            sessionId=self._session_id,
            dispatchNo=self.dispatch_count,
            criteria=dict(request.criteria),
        )
        self._task = self._scheduler.spawn(self._run(request))
        return True

    async def _run(self, request: FetchRequest) -> None:
        start = time.monotonic()
        try:
            raw = await self._lookup(dict(request.criteria))
            outcome = parse_lookup_response(raw)
        except Exception as e:
            outcome = LookupOutcome.failure()
            log(
                event="lookup_failed",
                sessionId=self._session_id,
                errorType=type(e).__name__,
                error=str(e)[:300],
            )
        elapsed_ms = int((time.monotonic() - start) * 1000)

        self.outstanding = False
        self._task = None
        if self._closed:
            return

        superseded = self.pending is not None
        log(
            event="lookup_completed",
            sessionId=self._session_id,
            kind=outcome.kind,
            count=len(outcome.records),
            elapsedMs=elapsed_ms,
            superseded=superseded,
        )

        if superseded:
            follow_up = self.pending
            self.pending = None
            self._on_completed(request, outcome, True)
            self.dispatch(follow_up)
            return

        self._on_completed(request, outcome, False)

    def close(self) -> None:
        """Session teardown: drop the pending refetch and cancel the running task."""
        self._closed = True
        self.pending = None
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
