from typing import Callable, Optional

from dupcheck.observability.logging import log


class TransitionGate:
    """
    Exactly-once guard for the workflow advance signal.

    Countdown expiry, row selection and the create-new button all call
    request_advance(); only the first call made while the workflow permits
    advancing emits. `fired` is set before emitting so a re-entrant call from
    the emit hook is already a no-op.
    """

    def __init__(self, can_advance: Callable[[], bool], emit: Callable[[str], None], session_id: str = ""):
        self._can_advance = can_advance
        self._emit = emit
        self._session_id = session_id
        self.fired = False
        self.source: Optional[str] = None

    def request_advance(self, source: str) -> bool:
        if self.fired:
            log(event="advance_ignored", sessionId=self._session_id, source=source, firedBy=self.source)
            return False
        if not self._can_advance():
            log(event="advance_refused", sessionId=self._session_id, source=source)
            return False
        self.fired = True
        self.source = source
        self._emit(source)
        return True
