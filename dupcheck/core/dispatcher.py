from dupcheck.core.fetch import FetchCoordinator
from dupcheck.core.timers import SLOT_DEBOUNCE, TimerSlots
from dupcheck.observability.logging import log
from dupcheck.store.models import FetchRequest

# on_criteria_changed outcomes
CLEARED = "cleared"
PENDING = "pending"
SCHEDULED = "scheduled"


class DebouncedDispatcher:
    """
    Coalesces rapid criteria changes into one dispatch after a quiet period.
    While a lookup is outstanding, changes are queued on the coordinator as a
    pending refetch instead of starting a timer.
    """

    def __init__(self, timers: TimerSlots, fetch: FetchCoordinator, delay_seconds: float, session_id: str = ""):
        self._timers = timers
        self._fetch = fetch
        self.delay_seconds = float(delay_seconds)
        self._session_id = session_id

    def on_criteria_changed(self, request: FetchRequest, any_input: bool) -> str:
        if not any_input:
            self._timers.cancel(SLOT_DEBOUNCE)
            self._fetch.clear_pending()
            return CLEARED

        if self._fetch.outstanding:
            self._timers.cancel(SLOT_DEBOUNCE)
            self._fetch.mark_pending(request)
            log(event="refetch_marked_pending", sessionId=self._session_id, signature=request.signature)
            return PENDING

        # Last write wins: set() replaces any unfired timer
        self._timers.set(SLOT_DEBOUNCE, self.delay_seconds, lambda: self._fire(request))
        log(
            event="debounce_scheduled",
            sessionId=self._session_id,
            delayMs=int(self.delay_seconds * 1000),
            signature=request.signature,
        )
        return SCHEDULED

    def cancel(self) -> None:
        self._timers.cancel(SLOT_DEBOUNCE)

    @property
    def scheduled(self) -> bool:
        return self._timers.active(SLOT_DEBOUNCE)

    def _fire(self, request: FetchRequest) -> None:
        self._timers.release(SLOT_DEBOUNCE)
        self._fetch.dispatch(request)
