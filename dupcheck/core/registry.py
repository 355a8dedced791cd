"""
Live session registry (host side)
---------------------------------
Search sessions own event-loop timers, so they live in this process. The
registry creates them with the right lookup client per profile, keeps them
addressable by id for the HTTP layer, and wires the host-facing side
effects: snapshot persistence on output changes / advance / close, advance
metrics, and the optional advance webhook.

An advanced session is closed and dropped right away; its final snapshot
stays readable through find_snapshot. Webhook tasks are held until done.
"""
from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Set

from dupcheck.callback.client import build_advance_payload, send_advance_notification
from dupcheck.core.fetch import Lookup
from dupcheck.core.profiles import SearchProfile, get_profile
from dupcheck.core.session import SearchSession
from dupcheck.core.timers import LoopScheduler, Scheduler
from dupcheck.lookup.client import RemoteLookup
from dupcheck.observability.logging import log
from dupcheck.settings import settings
from dupcheck.store.models import SessionSnapshot
import dupcheck.observability.metrics as metrics
import dupcheck.store.session_repo as session_repo


def default_lookup_factory(profile: SearchProfile) -> Lookup:
    return RemoteLookup(profile.lookup_path)


class SessionRegistry:
    def __init__(
        self,
        *,
        scheduler: Optional[Scheduler] = None,
        lookup_factory: Callable[[SearchProfile], Lookup] = default_lookup_factory,
        notifier=send_advance_notification,
    ):
        self._scheduler = scheduler or LoopScheduler()
        self._lookup_factory = lookup_factory
        self._notifier = notifier
        self._sessions: Dict[str, SearchSession] = {}
        self._background: Set["asyncio.Future[Any]"] = set()

    def create(
        self,
        profile_name: str,
        available_actions: Iterable[str] = (),
        criteria: Optional[Mapping[str, Any]] = None,
    ) -> SearchSession:
        profile = get_profile(profile_name)
        session = SearchSession(
            profile,
            self._lookup_factory(profile),
            available_actions=available_actions,
            scheduler=self._scheduler,
            on_advance=self._on_advance,
            on_output_change=self._on_output_change,
        )
        if criteria:
            # Validate before registering so a bad field leaves nothing behind
            session.update_criteria(criteria)
        self._sessions[session.session_id] = session
        log(event="session_created", sessionId=session.session_id, profile=profile.name)
        return session

    def get(self, session_id: str) -> Optional[SearchSession]:
        return self._sessions.get(session_id)

    def close(self, session_id: str) -> Optional[SessionSnapshot]:
        session = self._sessions.pop(session_id, None)
        if session is None:
            return None
        session.close()
        snap = session.snapshot()
        self._persist(snap)
        return snap

    def close_all(self) -> None:
        for session_id in list(self._sessions.keys()):
            self.close(session_id)
        for task in list(self._background):
            task.cancel()

    async def aclose(self, timeout: Optional[float] = None) -> None:
        """Shutdown: give in-flight webhooks a chance to finish, then close everything."""
        if timeout is None:
            timeout = settings.ADVANCE_WEBHOOK_TIMEOUT_SEC
        if self._background:
            await asyncio.wait(list(self._background), timeout=timeout)
        self.close_all()

    @property
    def pending_notifications(self) -> int:
        return len(self._background)

    def find_snapshot(self, session_id: str) -> Optional[SessionSnapshot]:
        """Live view when the session is open, else the last stored snapshot."""
        session = self.get(session_id)
        if session is not None:
            return session.snapshot()
        if not settings.STORE_SNAPSHOTS:
            return None
        try:
            return session_repo.load_snapshot(session_id)
        except Exception as e:
            log(event="snapshot_load_failed", sessionId=session_id, errorType=type(e).__name__, error=str(e)[:300])
            return None

    def summary(self) -> Dict[str, str]:
        return {sid: s.state for sid, s in self._sessions.items()}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    # ------------------------------------------------------------------
    # Session hooks
    # ------------------------------------------------------------------
    def _persist(self, snap: SessionSnapshot) -> None:
        if not settings.STORE_SNAPSHOTS:
            return
        try:
            session_repo.save_snapshot(snap)
        except Exception as e:
            log(event="snapshot_save_failed", sessionId=snap.sessionId, errorType=type(e).__name__, error=str(e)[:300])

    def _on_output_change(self, session: SearchSession, name: str, value: Any) -> None:
        log(event="output_changed", sessionId=session.session_id, output=name, **{name: value})
        self._persist(session.snapshot())

    def _on_advance(self, session: SearchSession, source: str) -> None:
        metrics.increment_advance(source)
        # Terminal: nothing can change the session any more
        self._sessions.pop(session.session_id, None)
        session.close()
        snap = session.snapshot()
        self._persist(snap)
        if settings.ADVANCE_WEBHOOK_URL:
            task = self._scheduler.spawn(self._notifier(build_advance_payload(snap)))
            self._background.add(task)
            task.add_done_callback(self._background.discard)


registry = SessionRegistry()
