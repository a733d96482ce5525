"""
Daily check-in state machine.

Per (goal, calendar day)::

    PENDING --begin--> SUBMITTED --finish--> SCORED

Nothing about pendingness is stored. SCORED means "a log entry dated today
exists"; SUBMITTED means "a coach call for this goal and day is in flight";
anything else is PENDING. A new calendar day therefore resets every goal
without an explicit reset operation.
"""
from datetime import date
from typing import Dict, Iterable, List, Mapping, Sequence, Set, Tuple

from accountability.exceptions import CheckinRejectedError
from accountability.logger import get_logger
from accountability.models import CheckinState, LogEntry, RoundState

logger = get_logger("checkin")


def logged_on(logs: Sequence[LogEntry], day: date) -> bool:
    return any(e.date == day for e in logs)


class CheckinStateMachine:
    """Tracks in-flight submissions; everything else is derived from the logs."""

    def __init__(self):
        self._in_flight: Set[Tuple[int, date]] = set()

    def state_for(self, category_id: int, logs: Sequence[LogEntry], today: date) -> CheckinState:
        if logged_on(logs, today):
            return CheckinState.SCORED
        if (category_id, today) in self._in_flight:
            return CheckinState.SUBMITTED
        return CheckinState.PENDING

    def begin(self, category_id: int, logs: Sequence[LogEntry], today: date) -> None:
        """
        PENDING -> SUBMITTED.

        Raises:
            CheckinRejectedError: goal already SCORED today, or a submission
                for the same goal and day is still outstanding.
        """
        state = self.state_for(category_id, logs, today)
        if state != CheckinState.PENDING:
            logger.info("Rejected check-in for goal %s on %s (state=%s)", category_id, today, state.value)
            raise CheckinRejectedError(category_id, state.value)
        self._in_flight.add((category_id, today))

    def finish(self, category_id: int, today: date) -> None:
        """SUBMITTED -> SCORED; the caller has already appended today's entry."""
        self._in_flight.discard((category_id, today))

    def abort(self, category_id: int, today: date) -> None:
        """SUBMITTED -> PENDING, used when the submission never produced an entry."""
        self._in_flight.discard((category_id, today))

    def round_state(self, goal_logs: Mapping[int, Sequence[LogEntry]], today: date) -> RoundState:
        """COMPLETE once every goal is SCORED today. No goals counts as complete."""
        if self.pending_goals(goal_logs, today):
            return RoundState.PENDING
        return RoundState.COMPLETE

    def pending_goals(self, goal_logs: Mapping[int, Sequence[LogEntry]], today: date) -> List[int]:
        return [
            cid for cid in sorted(goal_logs)
            if self.state_for(cid, goal_logs[cid], today) != CheckinState.SCORED
        ]

    def states(self, goal_logs: Mapping[int, Sequence[LogEntry]], today: date) -> Dict[int, CheckinState]:
        return {cid: self.state_for(cid, goal_logs[cid], today) for cid in sorted(goal_logs)}

    @property
    def in_flight(self) -> Iterable[Tuple[int, date]]:
        return frozenset(self._in_flight)
