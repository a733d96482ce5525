from dataclasses import asdict
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from accountability.analytics import (
    account_summary,
    goal_stats,
    journey_trend,
    life_wheel,
    life_wheel_grid,
    momentum_phase,
    month_label,
    running_journey,
    score_map,
    trend_symbol,
)
from accountability.categories import all_categories, category_or_default
from accountability.coach import create_coach_adapter
from accountability.config_manager import config
from accountability.exceptions import (
    AccountabilityError,
    CheckinRejectedError,
    GoalNotFoundError,
    ValidationError,
)
from accountability.models import ChatMessage, LogEntry
from accountability.persistence import JsonFileDocumentStore
from accountability.store import AccountStore

router = APIRouter()

WHEEL_RINGS = (25, 50, 75, 100)


class NameRequest(BaseModel):
    name: str


class GoalRequest(BaseModel):
    text: str
    metric: Optional[str] = None


class CheckinRequest(BaseModel):
    note: str
    mood: int = 3


class ChatRequest(BaseModel):
    content: str


class CoachTurn(BaseModel):
    role: str = "user"
    content: str


class CoachRequest(BaseModel):
    messages: List[CoachTurn] = Field(default_factory=list)
    page: str = "dashboard"


class VisionRequest(BaseModel):
    text: str


_store: Optional[AccountStore] = None


async def get_store() -> AccountStore:
    """Lazily build and load the process-wide store (file persistence + configured coach)."""
    global _store
    if _store is None:
        store = AccountStore(JsonFileDocumentStore(), create_coach_adapter())
        await store.load()
        _store = store
    return _store


async def close_store() -> None:
    global _store
    if _store is not None:
        await _store.close()
        _store = None


def _http_error(e: AccountabilityError) -> HTTPException:
    if isinstance(e, GoalNotFoundError):
        return HTTPException(status_code=404, detail=e.message)
    if isinstance(e, CheckinRejectedError):
        return HTTPException(status_code=409, detail=e.message)
    if isinstance(e, ValidationError):
        return HTTPException(status_code=400, detail=e.message)
    return HTTPException(status_code=500, detail=e.message)


def _entry_payload(entry: LogEntry) -> Dict[str, Any]:
    return {
        "date": entry.date.isoformat(),
        "note": entry.note,
        "mood": entry.mood,
        "delta": entry.delta,
        "ai_reply": entry.ai_reply,
    }


def _message_payload(message: ChatMessage) -> Dict[str, Any]:
    return {"role": message.role.value, "content": message.content}


def _goal_payload(store: AccountStore, category_id: int) -> Dict[str, Any]:
    goal = store.require_goal(category_id)
    logs = store.logs_for(category_id)
    score = store.score_of(category_id)
    return {
        "category": asdict(category_or_default(category_id)),
        "goal": goal.text,
        "metric": goal.metric,
        "score": score,
        "state": store.checkin_state(category_id).value,
        "streak": store.streak_for(category_id),
        "trend": trend_symbol(logs).value,
        "phase": asdict(momentum_phase(score, goal.text)),
        "recent": [_entry_payload(e) for e in logs[-config.SPARKLINE_WINDOW:]],
    }


@router.get("/categories")
async def list_categories():
    return [asdict(c) for c in all_categories()]


@router.get("")
async def get_account():
    store = await get_store()
    account = store.account
    summary = account_summary(account, store.active_goal_ids())
    return {
        "name": account.name,
        "vision": account.vision,
        "today": store.today().isoformat(),
        "round": store.round_state().value,
        "pending": store.pending_goals(),
        "goals": [_goal_payload(store, cid) for cid in store.active_goal_ids()],
        "scores": score_map(account),
        "summary": asdict(summary),
    }


@router.put("/name")
async def update_name(req: NameRequest):
    store = await get_store()
    try:
        store.set_name(req.name)
    except AccountabilityError as e:
        raise _http_error(e)
    return {"name": store.account.name}


@router.put("/goals/{category_id}")
async def put_goal(category_id: int, req: GoalRequest):
    store = await get_store()
    try:
        store.set_goal(category_id, req.text, req.metric)
    except AccountabilityError as e:
        raise _http_error(e)
    return _goal_payload(store, category_id)


@router.delete("/goals/{category_id}")
async def delete_goal(category_id: int, purge: bool = False):
    store = await get_store()
    try:
        if purge:
            store.purge_goal(category_id)
        else:
            store.remove_goal(category_id)
    except AccountabilityError as e:
        raise _http_error(e)
    return {"success": True, "purged": purge}


@router.post("/goals/{category_id}/checkin")
async def post_checkin(category_id: int, req: CheckinRequest):
    store = await get_store()
    try:
        outcome = await store.record_checkin(category_id, req.note, req.mood)
    except AccountabilityError as e:
        raise _http_error(e)
    return {
        "entry": _entry_payload(outcome.entry),
        "previous_score": outcome.previous_score,
        "score": outcome.new_score,
        "feedback": outcome.feedback,
        "coach_ok": outcome.coach_ok,
        "round": store.round_state().value,
    }


@router.get("/goals/{category_id}/progress")
async def get_progress(category_id: int, window: Optional[int] = None):
    store = await get_store()
    try:
        store.require_goal(category_id)
    except AccountabilityError as e:
        raise _http_error(e)
    logs = store.logs_for(category_id)
    journey = running_journey(logs, window)
    return {
        "stats": asdict(goal_stats(logs, store.today())),
        "months": [
            {"month": key, "label": month_label(key), "entries": [_entry_payload(e) for e in entries]}
            for key, entries in store.monthly_logs(category_id).items()
        ],
        "journey": journey,
        "journey_trend": journey_trend(journey),
        "trend": trend_symbol(logs).value,
    }


@router.get("/goals/{category_id}/chat")
async def get_chat(category_id: int):
    store = await get_store()
    return [_message_payload(m) for m in store.chat_for(category_id)]


@router.post("/goals/{category_id}/chat")
async def post_chat(category_id: int, req: ChatRequest):
    store = await get_store()
    try:
        reply = await store.send_goal_chat(category_id, req.content)
    except AccountabilityError as e:
        raise _http_error(e)
    return {"reply": _message_payload(reply), "history": [_message_payload(m) for m in store.chat_for(category_id)]}


@router.post("/coach")
async def post_coach(req: CoachRequest):
    store = await get_store()
    reply = await store.ask_coach([m.model_dump() for m in req.messages], req.page)
    return {"reply": reply.text, "ok": reply.ok}


@router.post("/vision")
async def regenerate_vision():
    store = await get_store()
    try:
        result = await store.regenerate_vision()
    except AccountabilityError as e:
        raise _http_error(e)
    return {"ok": result.ok, "text": result.text, "vision": store.account.vision}


@router.put("/vision")
async def put_vision(req: VisionRequest):
    store = await get_store()
    store.set_vision(req.text)
    return {"vision": store.account.vision}


@router.get("/wheel")
async def get_wheel():
    store = await get_store()
    ids = store.active_goal_ids()
    return {
        "points": [asdict(p) for p in life_wheel(ids, store.score_of)],
        "rings": {pct: life_wheel_grid(len(ids), pct) for pct in WHEEL_RINGS},
        "max_radius": config.WHEEL_MAX_RADIUS,
        "center": config.WHEEL_CENTER,
    }


@router.get("/round")
async def get_round():
    store = await get_store()
    return {
        "round": store.round_state().value,
        "pending": store.pending_goals(),
        "states": {cid: s.value for cid, s in store.checkin_states().items()},
        "today": store.today().isoformat(),
    }
