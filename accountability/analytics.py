"""
Streak & analytics calculator.

Pure functions over a goal's log sequence (and, for the summaries, over the
whole account). Nothing here mutates state or touches persistence.
"""
import math
from collections import OrderedDict
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Dict, List, Optional, Sequence

from accountability.config_manager import config
from accountability.models import Account, LogEntry, Trend


@dataclass(frozen=True)
class WheelPoint:
    category_id: int
    angle: float   # radians, first point at -pi/2 (12 o'clock)
    radius: float
    x: float
    y: float


@dataclass(frozen=True)
class GoalStats:
    total: int
    this_month: int
    streak: int
    best_delta: Optional[int]
    average_mood: Optional[float]


@dataclass(frozen=True)
class MomentumPhase:
    name: str
    color: str
    suggestion: str


@dataclass(frozen=True)
class AccountSummary:
    average_score: int
    total_logs: int
    top_goals: List[int]
    needs_work: List[int]


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


# ---------------------------------------------------------------------------
# Per-goal log analytics
# ---------------------------------------------------------------------------

def streak(logs: Sequence[LogEntry], today: Optional[date] = None) -> int:
    """
    Consecutive-day check-in count, walking backward from today.

    Dates are deduplicated first, so several logs on one day count once.
    Each date must be at most one day older than the previously counted one;
    the first gap larger than a day ends the streak.
    """
    if not logs:
        return 0
    cursor = today or date.today()
    count = 0
    for day in sorted({e.date for e in logs}, reverse=True):
        if (cursor - day).days <= 1:
            count += 1
            cursor = day
        else:
            break
    return count


def monthly_groups(logs: Sequence[LogEntry]) -> "OrderedDict[str, List[LogEntry]]":
    """Partition entries by YYYY-MM, keeping insertion order inside each group."""
    groups: "OrderedDict[str, List[LogEntry]]" = OrderedDict()
    for entry in logs:
        groups.setdefault(entry.date.isoformat()[:7], []).append(entry)
    return groups


def month_label(month_key: str) -> str:
    """'2024-01' -> 'January 2024'."""
    return datetime.strptime(month_key, "%Y-%m").strftime("%B %Y")


def trend_symbol(logs: Sequence[LogEntry]) -> Trend:
    if not logs:
        return Trend.UNKNOWN
    delta = logs[-1].delta
    if delta > 0:
        return Trend.UP
    if delta < 0:
        return Trend.DOWN
    return Trend.FLAT


def running_journey(logs: Sequence[LogEntry], window_size: Optional[int] = None) -> List[int]:
    """
    Approximate score curve for display.

    Replays the deltas of the last ``window_size`` entries starting from the
    default score, clamping at every step. This assumes the goal was at the
    default score exactly ``window_size`` entries ago, which is usually not
    true: never treat the result as an authoritative score history.
    """
    window = config.JOURNEY_WINDOW if window_size is None else window_size
    if window <= 0:
        return []
    running = config.DEFAULT_SCORE
    points = []
    for entry in list(logs)[-window:]:
        running = max(config.SCORE_MIN, min(config.SCORE_MAX, running + entry.delta))
        points.append(running)
    return points


def journey_trend(points: Sequence[int]) -> int:
    if len(points) < 2:
        return 0
    return points[-1] - points[0]


def goal_stats(logs: Sequence[LogEntry], today: Optional[date] = None) -> GoalStats:
    today = today or date.today()
    this_month = today.isoformat()[:7]
    if not logs:
        return GoalStats(0, 0, 0, None, None)
    return GoalStats(
        total=len(logs),
        this_month=len(monthly_groups(logs).get(this_month, [])),
        streak=streak(logs, today),
        best_delta=max(e.delta for e in logs),
        average_mood=sum(e.mood for e in logs) / len(logs),
    )


# ---------------------------------------------------------------------------
# Account-wide views
# ---------------------------------------------------------------------------

def life_wheel(
    goal_ids: Sequence[int],
    score_of: Callable[[int], int],
    max_radius: Optional[float] = None,
    center: Optional[float] = None,
) -> List[WheelPoint]:
    """
    Radar points, one per goal, at equal angular spacing.

    Point order is the caller's goal order (it is also the visual order).
    Fewer than three goals cannot form a polygon, so the result is empty.
    """
    n = len(goal_ids)
    if n < 3:
        return []
    max_r = config.WHEEL_MAX_RADIUS if max_radius is None else max_radius
    c = config.WHEEL_CENTER if center is None else center
    points = []
    for i, cid in enumerate(goal_ids):
        angle = (i / n) * 2 * math.pi - math.pi / 2
        r = (score_of(cid) / 100) * max_r
        points.append(WheelPoint(cid, angle, r, c + r * math.cos(angle), c + r * math.sin(angle)))
    return points


def life_wheel_grid(
    n: int,
    pct: float,
    max_radius: Optional[float] = None,
    center: Optional[float] = None,
) -> List[tuple]:
    """Vertices of the background ring at ``pct`` percent of the radius."""
    if n < 3:
        return []
    max_r = config.WHEEL_MAX_RADIUS if max_radius is None else max_radius
    c = config.WHEEL_CENTER if center is None else center
    r = (pct / 100) * max_r
    return [
        (c + r * math.cos((i / n) * 2 * math.pi - math.pi / 2),
         c + r * math.sin((i / n) * 2 * math.pi - math.pi / 2))
        for i in range(n)
    ]


def momentum_phase(score: int, goal_text: str = "") -> MomentumPhase:
    """Coaching phase for a score band: <30, <60, <80, and the rest."""
    if score < 30:
        return MomentumPhase(
            "Starting Out",
            "#E87C7C",
            f'Focus on showing up consistently. Even small daily actions for '
            f'"{goal_text[:40]}…" compound over time.',
        )
    if score < 60:
        return MomentumPhase(
            "Building Momentum",
            "#E8D07C",
            "You're building momentum. Push through resistance. The next 20 points will feel the hardest.",
        )
    if score < 80:
        return MomentumPhase(
            "Accelerating",
            "#7CB9E8",
            "You're in flow. This is where real transformation happens. Don't slow down now.",
        )
    return MomentumPhase(
        "Mastery Zone",
        "#7CE8A0",
        "You're in the mastery zone. Raise the standard: what does 110% look like for this goal?",
    )


def account_summary(account: Account, goal_ids: Optional[Sequence[int]] = None) -> AccountSummary:
    ids = list(goal_ids) if goal_ids is not None else sorted(account.goals)

    def score_of(cid: int) -> int:
        return account.scores.get(cid, config.DEFAULT_SCORE)

    if not ids:
        return AccountSummary(0, 0, [], [])
    avg = _round_half_up(sum(score_of(cid) for cid in ids) / len(ids))
    total = sum(len(account.logs.get(cid, [])) for cid in ids)
    return AccountSummary(
        average_score=avg,
        total_logs=total,
        top_goals=sorted(ids, key=lambda cid: -score_of(cid)),
        needs_work=sorted(ids, key=score_of)[:3],
    )


def score_map(account: Account) -> Dict[int, int]:
    return {cid: account.scores.get(cid, config.DEFAULT_SCORE) for cid in sorted(account.goals)}
