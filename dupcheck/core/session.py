"""
Duplicate-check search session
------------------------------
One SearchSession backs one duplicate-check screen. It owns the criteria,
the timers and the single-flight lookup, and walks this state machine:

  IDLE -> DEBOUNCING -> FETCHING -> AWAITING_SELECTION | COUNTING_DOWN
                          |  ^
                          v  |
            FETCHING_WITH_PENDING_REFETCH

  COUNTING_DOWN --expiry--> TRANSITIONED (or AWAITING_SELECTION if NEXT
  is not available), any state --row click / create-new--> TRANSITIONED

Every state change disposes the timers of the state being left.
"""
from __future__ import annotations

import time
import uuid
from typing import Any, Callable, Iterable, Mapping, Optional

from dupcheck.core import state_machine as sm
from dupcheck.core.countdown import Countdown
from dupcheck.core.dispatcher import DebouncedDispatcher
from dupcheck.core.fetch import FetchCoordinator, Lookup
from dupcheck.core.gate import TransitionGate
from dupcheck.core.profiles import MALFORMED_MESSAGE, SearchProfile
from dupcheck.core.signature import compute_signature, has_any_input, normalize_criteria, normalize_value
from dupcheck.core.timers import LoopScheduler, Scheduler, TimerSlots
from dupcheck.lookup.extract import KIND_ERROR, KIND_MALFORMED, LookupOutcome
from dupcheck.observability.logging import log
from dupcheck.settings import settings
from dupcheck.store.models import FetchRequest, ResultSet, SessionSnapshot

OUTPUT_SELECTED_EXISTING = "selectedExisting"
OUTPUT_SELECTED_ACCOUNT_ID = "selectedAccountId"

ROW_SELECT_KEYS = ("Enter", " ")


class UnknownFieldError(ValueError):
    pass


class SearchSession:
    def __init__(
        self,
        profile: SearchProfile,
        lookup: Lookup,
        *,
        session_id: Optional[str] = None,
        available_actions: Iterable[str] = (),
        scheduler: Optional[Scheduler] = None,
        debounce_seconds: Optional[float] = None,
        countdown_seconds: Optional[int] = None,
        tick_seconds: Optional[float] = None,
        on_advance: Optional[Callable[["SearchSession", str], None]] = None,
        on_output_change: Optional[Callable[["SearchSession", str, Any], None]] = None,
    ):
        self.session_id = session_id or uuid.uuid4().hex
        self.profile = profile
        self.available_actions = set(available_actions or ())
        self._on_advance = on_advance
        self._on_output_change = on_output_change

        if debounce_seconds is None:
            debounce_seconds = settings.DEBOUNCE_MS / 1000.0
        if countdown_seconds is None:
            countdown_seconds = settings.COUNTDOWN_SECONDS
        if tick_seconds is None:
            tick_seconds = settings.COUNTDOWN_TICK_SECONDS

        self.state = sm.IDLE
        self.criteria = normalize_criteria(profile.fields, {})
        self.results: Optional[ResultSet] = None
        self.create_new_checked = False
        self.selected_existing = False
        self.selected_account_id = ""
        self.closed = False
        # Gates the empty state: only shown after a real lookup with input
        self._completed_with_input = False

        scheduler = scheduler or LoopScheduler()
        self.timers = TimerSlots(scheduler)
        self.fetch = FetchCoordinator(
            scheduler,
            lookup,
            on_started=self._on_fetch_started,
            on_completed=self._on_fetch_completed,
            session_id=self.session_id,
        )
        self.dispatcher = DebouncedDispatcher(self.timers, self.fetch, debounce_seconds, session_id=self.session_id)
        self.countdown = Countdown(self.timers, countdown_seconds, tick_seconds, on_expired=self._on_countdown_expired)
        self.gate = TransitionGate(self.can_advance, self._on_gate_fired, session_id=self.session_id)

    # ------------------------------------------------------------------
    # Derived view
    # ------------------------------------------------------------------
    @property
    def signature(self) -> str:
        return compute_signature(self.criteria)

    @property
    def loading(self) -> bool:
        return self.fetch.outstanding

    @property
    def has_records(self) -> bool:
        return self.results is not None and self.results.has_records

    @property
    def show_empty_state(self) -> bool:
        return (
            not self.has_records
            and not self.loading
            and self._completed_with_input
            and not self.fetch.has_pending
        )

    @property
    def create_disabled(self) -> bool:
        return not self.create_new_checked

    @property
    def seconds_remaining(self) -> int:
        # A cancelled countdown keeps its partial count; only a running one is shown
        return self.countdown.remaining if self.countdown.running else 0

    @property
    def transitioned(self) -> bool:
        return self.state == sm.TRANSITIONED

    def can_advance(self) -> bool:
        return sm.ACTION_NEXT in self.available_actions

    # ------------------------------------------------------------------
    # Input handlers
    # ------------------------------------------------------------------
    def set_field(self, name: str, value: Any) -> None:
        self._check_fields([name])
        self.criteria[name] = normalize_value(value)
        self._criteria_changed()

    def update_criteria(self, values: Mapping[str, Any]) -> None:
        """Apply several field edits as a single input change."""
        self._check_fields(values.keys())
        for name, value in values.items():
            self.criteria[name] = normalize_value(value)
        self._criteria_changed()

    def refresh(self) -> bool:
        """Fetch again now for the current criteria, skipping the debounce."""
        if self._ignored("refresh"):
            return False
        if not has_any_input(self.criteria):
            return False
        request = self._current_request()
        self.countdown.cancel()
        self.dispatcher.cancel()
        if self.fetch.outstanding:
            self._transition(sm.FETCHING_WITH_PENDING_REFETCH)
            self.fetch.mark_pending(request)
            return True
        return self.fetch.dispatch(request)

    def set_available_actions(self, actions: Iterable[str]) -> None:
        self.available_actions = set(actions or ())

    def select_record(self, record_id: Any) -> bool:
        """Row click: report the chosen record, then try to advance."""
        record_id = normalize_value(record_id)
        if not record_id or self._ignored("select_record"):
            return False

        self._set_output(OUTPUT_SELECTED_EXISTING, True)
        self._set_output(OUTPUT_SELECTED_ACCOUNT_ID, record_id)

        self.countdown.cancel()
        return self._advance_or_settle(sm.SOURCE_ROW_SELECT)

    def handle_row_key(self, key: str, record_id: Any) -> bool:
        if key not in ROW_SELECT_KEYS:
            return False
        return self.select_record(record_id)

    def set_create_new(self, checked: bool) -> None:
        self.create_new_checked = bool(checked)
        if self.create_new_checked and not self.transitioned:
            self._set_output(OUTPUT_SELECTED_EXISTING, False)
            self._set_output(OUTPUT_SELECTED_ACCOUNT_ID, "")

    def advance(self) -> bool:
        """Create-new button; enabled only while the create-new toggle is on."""
        if self.create_disabled or self._ignored("advance"):
            return False
        self.countdown.cancel()
        return self._advance_or_settle(sm.SOURCE_CREATE_NEW)

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------
    def dispose(self) -> None:
        self.timers.dispose()

    def close(self) -> None:
        if self.closed:
            return
        self.dispose()
        self.fetch.close()
        self.closed = True
        log(event="session_closed", sessionId=self.session_id, state=self.state)

    def snapshot(self) -> SessionSnapshot:
        results = self.results or ResultSet()
        return SessionSnapshot(
            sessionId=self.session_id,
            profile=self.profile.name,
            state=self.state,
            criteria=dict(self.criteria),
            availableActions=sorted(self.available_actions),
            records=list(results.records),
            message=results.message,
            resultKind=self.results.kind if self.results is not None else None,
            loading=self.loading,
            showEmptyState=self.show_empty_state,
            secondsRemaining=int(self.seconds_remaining),
            createNewChecked=self.create_new_checked,
            createDisabled=self.create_disabled,
            createLabel=self.profile.create_label,
            selectedExisting=self.selected_existing,
            selectedAccountId=self.selected_account_id,
            advanced=self.gate.fired,
            advanceSource=self.gate.source,
            closed=self.closed,
            lastUpdatedAtEpoch=int(time.time()),
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _check_fields(self, names: Iterable[str]) -> None:
        unknown = [n for n in names if n not in self.profile.fields]
        if unknown:
            raise UnknownFieldError(
                f"Unknown field(s) for profile {self.profile.name!r}: {', '.join(sorted(unknown))}"
            )

    def _ignored(self, action: str) -> bool:
        if self.closed or self.transitioned:
            log(event="session_input_ignored", sessionId=self.session_id, action=action, state=self.state)
            return True
        return False

    def _current_request(self) -> FetchRequest:
        return FetchRequest(signature=self.signature, criteria=dict(self.criteria))

    def _transition(self, new_state: str) -> None:
        old_state = self.state
        self.timers.dispose()
        self.state = new_state
        if old_state != new_state:
            log(event="session_state_changed", sessionId=self.session_id, fromState=old_state, toState=new_state)

    def _criteria_changed(self) -> None:
        if self._ignored("criteria_changed"):
            return

        request = self._current_request()
        any_input = has_any_input(self.criteria)

        if not any_input:
            self._transition(sm.FETCHING if self.fetch.outstanding else sm.IDLE)
            self.dispatcher.on_criteria_changed(request, any_input)
            if not self.fetch.outstanding:
                self.results = None
                self._completed_with_input = False
            return

        if self.fetch.outstanding:
            self._transition(sm.FETCHING_WITH_PENDING_REFETCH)
        else:
            self._transition(sm.DEBOUNCING)
        self.dispatcher.on_criteria_changed(request, any_input)

    def _on_fetch_started(self, request: FetchRequest) -> None:
        self._transition(sm.FETCHING)

    def _on_fetch_completed(self, request: FetchRequest, outcome: LookupOutcome, superseded: bool) -> None:
        if self.transitioned:
            return

        if not has_any_input(self.criteria):
            # Criteria were cleared while the lookup ran; nothing to show for empty input.
            self.results = None
            self._completed_with_input = False
            self._transition(sm.IDLE)
            return

        self.results = self._result_set(request, outcome)
        self._completed_with_input = True

        if superseded:
            # A refetch is dispatched right after this returns.
            return

        if self.results.has_records:
            self._transition(sm.AWAITING_SELECTION)
            return

        self._transition(sm.COUNTING_DOWN)
        self.countdown.start()
        log(
            event="countdown_started",
            sessionId=self.session_id,
            seconds=self.countdown.seconds,
            kind=self.results.kind,
            canAdvance=self.can_advance(),
        )

    def _result_set(self, request: FetchRequest, outcome: LookupOutcome) -> ResultSet:
        message = outcome.message
        if outcome.kind == KIND_ERROR:
            message = self.profile.failure_message
        elif outcome.kind == KIND_MALFORMED and not message:
            message = MALFORMED_MESSAGE
        return ResultSet(
            records=list(outcome.records),
            message=message,
            kind=outcome.kind,
            signature=request.signature,
        )

    def _on_countdown_expired(self) -> None:
        log(event="countdown_expired", sessionId=self.session_id, canAdvance=self.can_advance())
        self._advance_or_settle(sm.SOURCE_COUNTDOWN)

    def _advance_or_settle(self, source: str) -> bool:
        if self.gate.request_advance(source):
            return True
        # Refused: stay on the screen without timers, no automatic retry.
        if self.state == sm.COUNTING_DOWN:
            self._transition(sm.AWAITING_SELECTION)
        return False

    def _on_gate_fired(self, source: str) -> None:
        self.fetch.clear_pending()
        self._transition(sm.TRANSITIONED)
        log(
            event="advance_emitted",
            sessionId=self.session_id,
            source=source,
            selectedExisting=self.selected_existing,
        )
        if self._on_advance is not None:
            self._on_advance(self, source)

    def _set_output(self, name: str, value: Any) -> None:
        if name == OUTPUT_SELECTED_EXISTING:
            self.selected_existing = bool(value)
        elif name == OUTPUT_SELECTED_ACCOUNT_ID:
            self.selected_account_id = str(value)
        if self._on_output_change is not None:
            self._on_output_change(self, name, value)
