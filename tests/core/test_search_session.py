import asyncio

import httpx
import pytest

from dupcheck.core import state_machine as sm
from dupcheck.core.profiles import MALFORMED_MESSAGE, get_profile
from dupcheck.core.session import SearchSession, UnknownFieldError
from dupcheck.core.timers import SLOT_EXPIRY, SLOT_TICK
from tests.conftest import settle

INDIVIDUAL_FAILURE = "Er is een fout opgetreden bij het zoeken."


async def _fetch_once(session, scheduler, **fields):
    session.update_criteria(fields)
    scheduler.advance(0.25)
    await settle()


async def _reach_countdown(session, scheduler, lookup):
    await _fetch_once(session, scheduler, email="jan@example.nl")
    lookup.resolve({"results": [], "message": "Geen klanten gevonden"})
    await settle()
    assert session.state == sm.COUNTING_DOWN


@pytest.mark.asyncio
async def test_burst_within_debounce_issues_one_lookup(make_session, scheduler, lookup):
    s = make_session()
    s.set_field("email", "j")
    scheduler.advance(0.1)
    s.set_field("email", "jan@")
    scheduler.advance(0.1)
    s.set_field("email", " jan@example.nl ")
    assert s.state == sm.DEBOUNCING
    await settle()
    assert lookup.calls == []

    scheduler.advance(0.25)
    await settle()

    assert lookup.calls == [{"email": "jan@example.nl", "phone": "", "mobile": ""}]
    assert s.state == sm.FETCHING
    assert s.loading is True


@pytest.mark.asyncio
async def test_change_during_fetch_refetches_once_with_latest(make_session, scheduler, lookup):
    s = make_session()
    await _fetch_once(s, scheduler, email="a@x.nl")
    assert len(lookup.calls) == 1

    s.set_field("phone", "0101")
    assert s.state == sm.FETCHING_WITH_PENDING_REFETCH
    s.set_field("phone", "0101234567")
    # Queued behind the running call, no debounce timer
    assert scheduler.live == []

    lookup.resolve([{"Id": "001"}], index=0)
    await settle()

    assert len(lookup.calls) == 2
    assert lookup.calls[1] == {"email": "a@x.nl", "phone": "0101234567", "mobile": ""}
    assert s.state == sm.FETCHING

    lookup.resolve([], index=1)
    await settle()
    assert len(lookup.calls) == 2
    assert s.state == sm.COUNTING_DOWN


@pytest.mark.asyncio
async def test_no_countdown_while_refetch_pending(make_session, scheduler, lookup):
    s = make_session()
    await _fetch_once(s, scheduler, email="a@x.nl")
    s.set_field("mobile", "0612345678")

    lookup.resolve([], index=0)
    await settle()

    assert not s.countdown.running
    assert not s.timers.active(SLOT_TICK)
    assert s.state == sm.FETCHING
    assert s.show_empty_state is False


@pytest.mark.asyncio
async def test_countdown_advances_after_exact_duration(make_session, scheduler, lookup, advances):
    s = make_session()
    await _reach_countdown(s, scheduler, lookup)
    assert s.seconds_remaining == 5
    assert s.show_empty_state is True
    assert s.results.message == "Geen klanten gevonden"

    scheduler.advance(1.0)
    assert s.seconds_remaining == 4

    scheduler.advance(3.75)
    assert s.seconds_remaining == 1
    assert advances == []

    scheduler.advance(0.25)
    assert advances == [sm.SOURCE_COUNTDOWN]
    assert s.state == sm.TRANSITIONED
    assert s.seconds_remaining == 0
    assert scheduler.live == []


@pytest.mark.asyncio
async def test_countdown_without_next_never_advances(make_session, scheduler, lookup, advances):
    s = make_session(actions=("BACK",))
    await _reach_countdown(s, scheduler, lookup)

    scheduler.advance(10)

    assert advances == []
    assert s.state == sm.AWAITING_SELECTION
    assert s.show_empty_state is True
    assert scheduler.live == []

    # No automatic retry once the workflow allows advancing
    s.set_available_actions(["NEXT"])
    scheduler.advance(10)
    assert advances == []


@pytest.mark.asyncio
async def test_expiry_and_row_click_emit_once(make_session, scheduler, lookup, advances):
    s = make_session()
    await _reach_countdown(s, scheduler, lookup)

    scheduler.advance(5)
    assert s.select_record("001") is False
    assert s.advance() is False

    assert advances == [sm.SOURCE_COUNTDOWN]


@pytest.mark.asyncio
async def test_row_click_cancels_countdown_before_advance(make_session, scheduler, lookup, advances, outputs):
    s = make_session()
    await _reach_countdown(s, scheduler, lookup)

    seen = {}
    original = s.gate.request_advance

    def spy(source):
        seen["tick"] = s.timers.active(SLOT_TICK)
        seen["expiry"] = s.timers.active(SLOT_EXPIRY)
        return original(source)

    s.gate.request_advance = spy

    assert s.select_record("001") is True
    assert seen == {"tick": False, "expiry": False}
    assert outputs == [("selectedExisting", True), ("selectedAccountId", "001")]
    assert advances == [sm.SOURCE_ROW_SELECT]

    scheduler.advance(10)
    assert advances == [sm.SOURCE_ROW_SELECT]


@pytest.mark.asyncio
async def test_row_click_without_next_stops_countdown(make_session, scheduler, lookup, advances):
    s = make_session(actions=())
    await _reach_countdown(s, scheduler, lookup)

    assert s.select_record("001") is False
    assert s.state == sm.AWAITING_SELECTION
    assert scheduler.live == []
    assert s.selected_existing is True
    assert advances == []


@pytest.mark.asyncio
async def test_clearing_criteria_cancels_debounce(make_session, scheduler, lookup):
    s = make_session()
    s.set_field("email", "a@x.nl")
    scheduler.advance(0.1)
    s.set_field("email", "   ")

    assert s.state == sm.IDLE
    assert scheduler.live == []
    scheduler.advance(1)
    await settle()
    assert lookup.calls == []


@pytest.mark.asyncio
async def test_clearing_criteria_cancels_countdown(make_session, scheduler, lookup, advances):
    s = make_session()
    await _reach_countdown(s, scheduler, lookup)

    s.update_criteria({"email": ""})

    assert s.state == sm.IDLE
    assert scheduler.live == []
    assert s.results is None
    assert s.show_empty_state is False
    scheduler.advance(10)
    await settle()
    assert advances == []
    assert len(lookup.calls) == 1


@pytest.mark.asyncio
async def test_clearing_during_fetch_drops_pending_and_result(make_session, scheduler, lookup):
    s = make_session()
    await _fetch_once(s, scheduler, email="a@x.nl")
    s.set_field("phone", "010")
    s.update_criteria({"email": None, "phone": ""})
    assert s.state == sm.FETCHING
    assert s.fetch.pending is None

    lookup.resolve([])
    await settle()

    assert len(lookup.calls) == 1
    assert s.state == sm.IDLE
    assert s.results is None
    assert scheduler.live == []


@pytest.mark.asyncio
async def test_matches_await_selection(make_session, scheduler, lookup):
    s = make_session()
    await _fetch_once(s, scheduler, email="a@x.nl")

    lookup.resolve({"records": [{"Id": "001"}, {"Id": "002"}]})
    await settle()

    assert s.state == sm.AWAITING_SELECTION
    assert s.results.kind == "matches"
    assert [r["Id"] for r in s.results.records] == ["001", "002"]
    assert s.show_empty_state is False
    assert scheduler.live == []


@pytest.mark.asyncio
async def test_lookup_failure_behaves_like_empty_result(make_session, scheduler, lookup):
    s = make_session()
    await _fetch_once(s, scheduler, email="a@x.nl")

    lookup.fail(httpx.ConnectError("connection refused"))
    await settle()

    assert s.state == sm.COUNTING_DOWN
    assert s.results.kind == "error"
    assert s.results.records == []
    assert s.results.message == INDIVIDUAL_FAILURE
    assert s.loading is False


@pytest.mark.asyncio
async def test_business_failure_message(make_session, scheduler, lookup):
    s = make_session(profile="business")
    await _fetch_once(s, scheduler, kvkNumber="12345678")

    assert lookup.calls[0] == {
        "companyName": "", "kvkNumber": "12345678", "vatNumber": "",
        "email": "", "phone": "", "mobile": "",
    }
    lookup.fail(RuntimeError("500"))
    await settle()

    assert s.results.message == get_profile("business").failure_message


@pytest.mark.asyncio
async def test_malformed_response_uses_generic_message(make_session, scheduler, lookup):
    s = make_session()
    await _fetch_once(s, scheduler, email="a@x.nl")

    lookup.resolve("<html>gateway timeout</html>")
    await settle()

    assert s.state == sm.COUNTING_DOWN
    assert s.results.kind == "malformed"
    assert s.results.message == MALFORMED_MESSAGE


@pytest.mark.asyncio
async def test_create_new_requires_toggle(make_session, scheduler, lookup, advances, outputs):
    s = make_session()
    await _fetch_once(s, scheduler, email="a@x.nl")
    lookup.resolve([{"Id": "001"}])
    await settle()

    assert s.create_disabled is True
    assert s.advance() is False

    s.set_create_new(True)
    assert outputs == [("selectedExisting", False), ("selectedAccountId", "")]
    assert s.advance() is True
    assert advances == [sm.SOURCE_CREATE_NEW]
    assert s.state == sm.TRANSITIONED


@pytest.mark.asyncio
async def test_row_key_selects_on_enter_and_space(make_session, advances):
    s = make_session()
    assert s.handle_row_key("Tab", "001") is False
    assert s.handle_row_key(" ", "001") is True
    assert advances == [sm.SOURCE_ROW_SELECT]


@pytest.mark.asyncio
async def test_input_after_transition_is_ignored(make_session, scheduler, lookup):
    s = make_session()
    s.select_record("001")
    assert s.state == sm.TRANSITIONED

    s.set_field("email", "late@x.nl")
    assert s.state == sm.TRANSITIONED
    assert scheduler.live == []
    assert s.refresh() is False


@pytest.mark.asyncio
async def test_completion_after_transition_is_dropped(make_session, scheduler, lookup):
    s = make_session()
    await _fetch_once(s, scheduler, email="a@x.nl")
    s.select_record("001")

    lookup.resolve([])
    await settle()

    assert s.state == sm.TRANSITIONED
    assert scheduler.live == []


@pytest.mark.asyncio
async def test_refresh_skips_debounce(make_session, scheduler, lookup):
    s = make_session()
    await _fetch_once(s, scheduler, email="a@x.nl")
    lookup.resolve([{"Id": "001"}])
    await settle()

    assert s.refresh() is True
    await settle()
    assert len(lookup.calls) == 2
    assert s.state == sm.FETCHING


@pytest.mark.asyncio
async def test_refresh_cancels_countdown(make_session, scheduler, lookup, advances):
    s = make_session()
    await _reach_countdown(s, scheduler, lookup)

    s.refresh()
    await settle()
    assert not s.countdown.running
    scheduler.advance(10)
    assert advances == []


def test_unknown_field_is_rejected(make_session):
    s = make_session()
    with pytest.raises(UnknownFieldError):
        s.set_field("kvkNumber", "123")
    assert s.state == sm.IDLE


@pytest.mark.asyncio
async def test_close_cancels_inflight_lookup(make_session, scheduler, lookup):
    s = make_session()
    await _fetch_once(s, scheduler, email="a@x.nl")
    task = s.fetch._task

    s.close()
    await settle()

    assert s.closed is True
    assert task.cancelled()
    assert scheduler.live == []


@pytest.mark.asyncio
async def test_snapshot_reflects_session(make_session, scheduler, lookup):
    s = make_session()
    await _reach_countdown(s, scheduler, lookup)

    snap = s.snapshot()
    assert snap.sessionId == s.session_id
    assert snap.profile == "individual"
    assert snap.state == sm.COUNTING_DOWN
    assert snap.criteria == {"email": "jan@example.nl", "phone": "", "mobile": ""}
    assert snap.availableActions == ["BACK", "NEXT"]
    assert snap.resultKind == "empty"
    assert snap.showEmptyState is True
    assert snap.secondsRemaining == 5
    assert snap.advanced is False


@pytest.mark.asyncio
async def test_default_loop_scheduler_runs_real_timers(lookup):
    session = SearchSession(
        get_profile("individual"),
        lookup,
        available_actions=["NEXT"],
        debounce_seconds=0.01,
    )
    session.set_field("email", "a@x.nl")
    await asyncio.sleep(0.05)
    assert len(lookup.calls) == 1
    lookup.resolve([{"Id": "001"}])
    await settle()
    assert session.state == sm.AWAITING_SELECTION
    session.close()


@pytest.mark.asyncio
async def test_cancelled_countdown_reports_zero(make_session, scheduler, lookup):
    s = make_session()
    await _reach_countdown(s, scheduler, lookup)
    scheduler.advance(2)
    assert s.seconds_remaining == 3

    s.set_field("phone", "0101234567")

    assert s.state == sm.DEBOUNCING
    assert s.seconds_remaining == 0
    assert s.snapshot().secondsRemaining == 0


@pytest.mark.asyncio
async def test_refresh_clears_visible_countdown(make_session, scheduler, lookup):
    s = make_session()
    await _reach_countdown(s, scheduler, lookup)
    scheduler.advance(1)

    s.refresh()

    assert s.snapshot().secondsRemaining == 0


def test_snapshot_carries_create_label(make_session):
    assert make_session().snapshot().createLabel == "Nieuwe klant aanmaken"
    assert make_session(profile="business").snapshot().createLabel == "Nieuw bedrijf aanmaken"
