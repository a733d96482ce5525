"""
Core data models for Stay on One.

Account is the aggregate root: one user, at most one goal per category,
a score per goal, an append-only log and chat transcript per category,
and a free-text life vision. Dataclasses keep asdict() compatibility.
"""
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional

from accountability.logger import get_logger

logger = get_logger("models")


class ChatRole(str, Enum):
    USER = "user"
    COACH = "coach"


class CheckinState(str, Enum):
    PENDING = "pending"      # 今日尚未打卡
    SUBMITTED = "submitted"  # Coach 调用进行中
    SCORED = "scored"        # 今日已有日志


class RoundState(str, Enum):
    PENDING = "pending"
    COMPLETE = "complete"


class Trend(str, Enum):
    UP = "up"
    DOWN = "down"
    FLAT = "flat"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Category:
    id: int
    name: str
    icon: str
    color: str


@dataclass
class Goal:
    category_id: int
    text: str
    metric: Optional[str] = None


@dataclass
class LogEntry:
    """One day's check-in record for a goal."""
    date: date
    note: str
    mood: int
    delta: int
    ai_reply: str = ""


@dataclass
class ChatMessage:
    role: ChatRole
    content: str


@dataclass
class Account:
    name: str = ""
    goals: Dict[int, Goal] = field(default_factory=dict)
    scores: Dict[int, int] = field(default_factory=dict)
    logs: Dict[int, List[LogEntry]] = field(default_factory=dict)
    chats: Dict[int, List[ChatMessage]] = field(default_factory=dict)
    vision: str = ""


# ---------------------------------------------------------------------------
# Document mapping (JSON-shaped persistence document)
# ---------------------------------------------------------------------------

def _entry_to_dict(entry: LogEntry) -> Dict[str, Any]:
    return {
        "date": entry.date.isoformat(),
        "note": entry.note,
        "mood": entry.mood,
        "delta": entry.delta,
        "aiReply": entry.ai_reply,
    }


def _dict_to_entry(d: Dict[str, Any]) -> LogEntry:
    return LogEntry(
        date=date.fromisoformat(str(d["date"])[:10]),
        note=d.get("note", ""),
        mood=int(d.get("mood", 3)),
        delta=int(d.get("delta", 0)),
        ai_reply=d.get("aiReply", d.get("ai_reply", "")),
    )


def _role_from_str(raw: str) -> ChatRole:
    # Documents written by the browser app used "assistant" for coach turns.
    if raw == "assistant":
        return ChatRole.COACH
    try:
        return ChatRole(raw)
    except ValueError:
        return ChatRole.USER


def account_to_document(account: Account) -> Dict[str, Any]:
    """Serialize the whole aggregate; JSON object keys are category ids as strings."""
    return {
        "name": account.name,
        "goals": {
            str(cid): {"goal": g.text, "metrics": g.metric or ""}
            for cid, g in account.goals.items()
        },
        "scores": {str(cid): s for cid, s in account.scores.items()},
        "logs": {
            str(cid): [_entry_to_dict(e) for e in entries]
            for cid, entries in account.logs.items()
        },
        "chats": {
            str(cid): [{"role": m.role.value, "content": m.content} for m in messages]
            for cid, messages in account.chats.items()
        },
        "vision": account.vision,
    }


def account_from_document(doc: Optional[Dict[str, Any]]) -> Account:
    """
    Rebuild an Account from a stored document.

    Tolerates the legacy ``userName`` key and skips malformed entries
    instead of failing the whole load.
    """
    if not doc:
        return Account()

    account = Account(
        name=doc.get("name") or doc.get("userName") or "",
        vision=doc.get("vision") or "",
    )

    for raw_id, g in _section(doc, "goals"):
        cid = _category_id(raw_id, "goal")
        if cid is None or not isinstance(g, dict):
            continue
        text = g.get("goal")
        if not isinstance(text, str) or not text.strip():
            continue
        account.goals[cid] = Goal(
            category_id=cid,
            text=text,
            metric=(g.get("metrics") or None),
        )

    for raw_id, score in _section(doc, "scores"):
        cid = _category_id(raw_id, "score")
        if cid is None:
            continue
        try:
            account.scores[cid] = int(score)
        except (TypeError, ValueError):
            logger.warning("Skipping malformed score for %s: %r", raw_id, score)

    for raw_id, entries in _section(doc, "logs"):
        cid = _category_id(raw_id, "log list")
        if cid is None:
            continue
        parsed: List[LogEntry] = []
        for d in entries if isinstance(entries, list) else []:
            try:
                parsed.append(_dict_to_entry(d))
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed log entry for %s: %s", raw_id, e)
        account.logs[cid] = parsed

    for raw_id, messages in _section(doc, "chats"):
        cid = _category_id(raw_id, "chat")
        if cid is None:
            continue
        turns: List[ChatMessage] = []
        for m in messages if isinstance(messages, list) else []:
            if not isinstance(m, dict) or not isinstance(m.get("content", ""), str):
                logger.warning("Skipping malformed chat message for %s: %r", raw_id, m)
                continue
            turns.append(ChatMessage(role=_role_from_str(m.get("role", "user")), content=m.get("content", "")))
        account.chats[cid] = turns

    return account


def _section(doc: Dict[str, Any], key: str):
    value = doc.get(key)
    if not isinstance(value, dict):
        if value:
            logger.warning("Ignoring malformed '%s' section", key)
        return []
    return value.items()


def _category_id(raw_id: Any, what: str) -> Optional[int]:
    try:
        return int(raw_id)
    except (TypeError, ValueError):
        logger.warning("Skipping %s with non-numeric category id %r", what, raw_id)
        return None
