"""
Score Engine: turns a raw coach reply plus the current score into a new score.

Reply grammar (appended by the coach per the check-in system prompt)::

    <free text> DELTA:<sign?><digits>

Only the first well-formed ``DELTA:`` token is used. A missing or malformed
token means a delta of 0; parsing never raises. The raw delta is kept as-is
(the coach is asked to stay within +/-20 but nothing enforces it); only the
resulting score is clamped.
"""
import re
from dataclasses import dataclass
from typing import Optional

from accountability.config_manager import config

DELTA_PATTERN = re.compile(r"DELTA:([+-]?[0-9]+)")


@dataclass(frozen=True)
class ScoreResult:
    new_score: int
    delta: int
    cleaned_text: str


def clamp_score(value: int, low: Optional[int] = None, high: Optional[int] = None) -> int:
    low = config.SCORE_MIN if low is None else low
    high = config.SCORE_MAX if high is None else high
    return max(low, min(high, value))


def parse_delta(reply_text: Optional[str]) -> int:
    if not reply_text:
        return 0
    match = DELTA_PATTERN.search(reply_text)
    if not match:
        return 0
    try:
        return int(match.group(1))
    except ValueError:
        return 0


def strip_delta_token(reply_text: Optional[str]) -> str:
    if not reply_text:
        return ""
    return DELTA_PATTERN.sub("", reply_text, count=1).strip()


def apply_checkin(current_score: int, reply_text: Optional[str]) -> ScoreResult:
    """
    Pure: no side effects. The caller commits the LogEntry and the score.

    Args:
        current_score: score before this check-in
        reply_text: verbatim coach reply (may be the fallback error text)

    Returns:
        ScoreResult with the clamped new score, the raw delta and the reply
        with its DELTA token removed.
    """
    delta = parse_delta(reply_text)
    return ScoreResult(
        new_score=clamp_score(current_score + delta),
        delta=delta,
        cleaned_text=strip_delta_token(reply_text),
    )
