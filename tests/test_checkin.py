from datetime import date

import pytest

from accountability.checkin import CheckinStateMachine, logged_on
from accountability.exceptions import CheckinRejectedError
from accountability.models import CheckinState, LogEntry, RoundState

TODAY = date(2024, 3, 10)


def _entry(day: date) -> LogEntry:
    return LogEntry(date=day, note="done", mood=3, delta=2)


def test_pending_until_logged_today():
    machine = CheckinStateMachine()
    assert machine.state_for(1, [], TODAY) == CheckinState.PENDING
    assert machine.state_for(1, [_entry(date(2024, 3, 9))], TODAY) == CheckinState.PENDING
    assert machine.state_for(1, [_entry(TODAY)], TODAY) == CheckinState.SCORED


def test_begin_marks_submitted_and_rejects_second_submission():
    machine = CheckinStateMachine()
    machine.begin(1, [], TODAY)
    assert machine.state_for(1, [], TODAY) == CheckinState.SUBMITTED

    with pytest.raises(CheckinRejectedError) as exc:
        machine.begin(1, [], TODAY)
    assert exc.value.state == "submitted"


def test_scored_goal_is_rejected():
    machine = CheckinStateMachine()
    with pytest.raises(CheckinRejectedError) as exc:
        machine.begin(1, [_entry(TODAY)], TODAY)
    assert exc.value.state == "scored"
    assert "already checked in" in exc.value.message


def test_finish_and_abort_clear_in_flight():
    machine = CheckinStateMachine()
    machine.begin(1, [], TODAY)
    machine.finish(1, TODAY)
    assert machine.state_for(1, [_entry(TODAY)], TODAY) == CheckinState.SCORED
    assert not machine.in_flight

    machine.begin(2, [], TODAY)
    machine.abort(2, TODAY)
    assert machine.state_for(2, [], TODAY) == CheckinState.PENDING
    machine.begin(2, [], TODAY)


def test_new_day_resets_without_explicit_reset():
    machine = CheckinStateMachine()
    logs = [_entry(TODAY)]
    assert machine.state_for(1, logs, TODAY) == CheckinState.SCORED
    assert machine.state_for(1, logs, date(2024, 3, 11)) == CheckinState.PENDING


def test_round_state():
    machine = CheckinStateMachine()
    goal_logs = {1: [_entry(TODAY)], 2: []}
    assert machine.round_state(goal_logs, TODAY) == RoundState.PENDING
    assert machine.pending_goals(goal_logs, TODAY) == [2]

    goal_logs[2] = [_entry(TODAY)]
    assert machine.round_state(goal_logs, TODAY) == RoundState.COMPLETE
    assert machine.pending_goals(goal_logs, TODAY) == []


def test_round_with_no_goals_is_complete():
    assert CheckinStateMachine().round_state({}, TODAY) == RoundState.COMPLETE


def test_states_map_and_logged_on():
    machine = CheckinStateMachine()
    machine.begin(3, [], TODAY)
    states = machine.states({1: [_entry(TODAY)], 2: [], 3: []}, TODAY)
    assert states == {1: CheckinState.SCORED, 2: CheckinState.PENDING, 3: CheckinState.SUBMITTED}
    assert logged_on([_entry(TODAY)], TODAY)
    assert not logged_on([], TODAY)
