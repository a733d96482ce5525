"""
Account aggregate store.

Owns the canonical in-memory Account and is the only thing that mutates it.
Every mutation ends with a fire-and-forget snapshot of the whole document;
the in-memory state stays the source of truth for the session even when a
write fails.

Lifecycle::

    store = AccountStore(documents, coach)
    await store.load()
    ...
    await store.close()   # flushes outstanding writes
"""
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Sequence

from accountability.analytics import monthly_groups, streak
from accountability.categories import category_or_default, is_known
from accountability.checkin import CheckinStateMachine
from accountability.coach import CoachProvider, CoachReply, MessageLike, call_coach
from accountability.config_manager import SystemConfig, config as default_config
from accountability.exceptions import GoalNotFoundError, ValidationError
from accountability.logger import get_logger
from accountability.models import (
    Account,
    ChatMessage,
    ChatRole,
    CheckinState,
    Goal,
    LogEntry,
    RoundState,
    account_from_document,
    account_to_document,
)
from accountability.persistence import DocumentStore, SnapshotWriter
from accountability.prompts import (
    checkin_system_prompt,
    checkin_user_message,
    coach_system_prompt,
    goal_chat_system_prompt,
)
from accountability.score_engine import apply_checkin
from accountability.vision import VisionResult, VisionSynthesizer

logger = get_logger("store")


@dataclass(frozen=True)
class CheckinOutcome:
    category_id: int
    entry: LogEntry
    previous_score: int
    new_score: int
    coach_ok: bool

    @property
    def feedback(self) -> str:
        sign = "+" if self.entry.delta >= 0 else ""
        return f"{self.entry.ai_reply}\n\n{sign}{self.entry.delta} pts → {self.new_score}/100"


class AccountStore:
    """Single owned aggregate with an explicit mutation API."""

    def __init__(
        self,
        documents: DocumentStore,
        coach: CoachProvider,
        clock: Callable[[], date] = date.today,
        config: Optional[SystemConfig] = None,
        key: Optional[str] = None,
    ):
        self.config = config or default_config
        self.coach = coach
        self.clock = clock
        self._account = Account()
        self._checkins = CheckinStateMachine()
        self._writer = SnapshotWriter(documents, key or self.config.ACCOUNT_KEY)
        self._vision = VisionSynthesizer(coach, self.config)
        self._loaded = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def load(self) -> Account:
        doc = await self._writer.load()
        try:
            self._account = account_from_document(doc)
        except (AttributeError, TypeError, ValueError) as e:
            logger.warning("Stored account document unreadable, starting empty: %s", e)
            self._account = Account()
        self._repair_scores()
        self._loaded = True
        logger.info("Loaded account '%s' with %d goals", self._account.name, len(self._account.goals))
        return self._account

    async def close(self) -> None:
        await self._writer.flush()

    async def __aenter__(self) -> "AccountStore":
        await self.load()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def _repair_scores(self) -> None:
        for cid in self._account.goals:
            if cid not in self._account.scores:
                logger.warning("Goal %s had no score; defaulting to %s", cid, self.config.DEFAULT_SCORE)
                self._account.scores[cid] = self.config.DEFAULT_SCORE

    def _commit(self) -> None:
        self._writer.schedule(account_to_document(self._account))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    @property
    def account(self) -> Account:
        return self._account

    @property
    def loaded(self) -> bool:
        return self._loaded

    def today(self) -> date:
        return self.clock()

    def goal(self, category_id: int) -> Optional[Goal]:
        return self._account.goals.get(category_id)

    def require_goal(self, category_id: int) -> Goal:
        goal = self.goal(category_id)
        if goal is None:
            raise GoalNotFoundError(category_id)
        return goal

    def active_goal_ids(self) -> List[int]:
        """Ascending category ids: the stable order used for the life wheel."""
        return sorted(self._account.goals)

    def score_of(self, category_id: int) -> int:
        return self._account.scores.get(category_id, self.config.DEFAULT_SCORE)

    def logs_for(self, category_id: int) -> List[LogEntry]:
        return list(self._account.logs.get(category_id, []))

    def chat_for(self, category_id: int) -> List[ChatMessage]:
        return list(self._account.chats.get(category_id, []))

    def _goal_logs(self) -> Dict[int, List[LogEntry]]:
        return {cid: self._account.logs.get(cid, []) for cid in self._account.goals}

    def checkin_state(self, category_id: int) -> CheckinState:
        self.require_goal(category_id)
        return self._checkins.state_for(category_id, self._account.logs.get(category_id, []), self.today())

    def round_state(self) -> RoundState:
        return self._checkins.round_state(self._goal_logs(), self.today())

    def pending_goals(self) -> List[int]:
        return self._checkins.pending_goals(self._goal_logs(), self.today())

    def streak_for(self, category_id: int) -> int:
        return streak(self._account.logs.get(category_id, []), self.today())

    def checkin_states(self) -> Dict[int, CheckinState]:
        return self._checkins.states(self._goal_logs(), self.today())

    def monthly_logs(self, category_id: int):
        return monthly_groups(self._account.logs.get(category_id, []))

    def to_document(self) -> Dict[str, Any]:
        return account_to_document(self._account)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def set_name(self, name: str) -> None:
        if not name or not name.strip():
            raise ValidationError("Name must not be empty", field="name")
        self._account.name = name.strip()
        self._commit()

    def set_goal(self, category_id: int, text: str, metric: Optional[str] = None) -> Goal:
        """
        Create or overwrite the goal of a category.

        Raises:
            ValidationError: blank text or a category outside the registry.
        """
        if not is_known(category_id):
            raise ValidationError(f"Unknown category {category_id}", field="category_id")
        if not text or not text.strip():
            raise ValidationError("Goal text must not be empty", field="text")

        goal = Goal(category_id=category_id, text=text, metric=metric or None)
        self._account.goals[category_id] = goal
        self._account.scores.setdefault(category_id, self.config.DEFAULT_SCORE)
        self._commit()
        logger.info("Goal set for category %s", category_id)
        return goal

    def remove_goal(self, category_id: int) -> None:
        """
        Remove the goal record only.

        Score, logs and chat history stay in place, so setting a goal for the
        same category again resurrects that history. Use purge_goal to drop
        everything.
        """
        self.require_goal(category_id)
        del self._account.goals[category_id]
        self._commit()
        logger.info("Goal removed for category %s (history kept)", category_id)

    def purge_goal(self, category_id: int) -> None:
        """Remove the goal together with its score, logs and chat history."""
        self._account.goals.pop(category_id, None)
        self._account.scores.pop(category_id, None)
        self._account.logs.pop(category_id, None)
        self._account.chats.pop(category_id, None)
        self._commit()
        logger.info("Goal purged for category %s", category_id)

    async def record_checkin(self, category_id: int, note: str, mood: int = 3) -> CheckinOutcome:
        """
        Run today's check-in for one goal.

        Validation happens before the coach is called. A failed or
        unparseable coach reply still completes the check-in, with delta 0
        and the fallback text as the reply.

        Raises:
            ValidationError: blank note, mood out of range, or no goal.
            CheckinRejectedError: already checked in today, or in flight.
        """
        goal = self.require_goal(category_id)
        if not note or not note.strip():
            raise ValidationError("Check-in note must not be empty", field="note")
        valid_mood = isinstance(mood, int) and not isinstance(mood, bool)
        if not valid_mood or not self.config.MOOD_MIN <= mood <= self.config.MOOD_MAX:
            raise ValidationError(
                f"Mood must be between {self.config.MOOD_MIN} and {self.config.MOOD_MAX}", field="mood"
            )

        today = self.today()
        history = self._account.logs.get(category_id, [])
        self._checkins.begin(category_id, history, today)
        try:
            recent = history[-self.config.RECENT_LOG_CONTEXT:] if self.config.RECENT_LOG_CONTEXT > 0 else []
            reply = await call_coach(
                self.coach,
                [{"role": "user", "content": checkin_user_message(goal.text, recent, today, mood, note)}],
                checkin_system_prompt(),
                max_tokens=self.config.COACH_MAX_TOKENS,
            )
        except BaseException:
            self._checkins.abort(category_id, today)
            raise

        previous = self.score_of(category_id)
        result = apply_checkin(previous, reply.text)
        entry = LogEntry(date=today, note=note, mood=mood, delta=result.delta, ai_reply=result.cleaned_text)
        self._account.logs.setdefault(category_id, []).append(entry)
        self._account.scores[category_id] = result.new_score
        self._checkins.finish(category_id, today)
        self._commit()

        logger.info(
            "Check-in for %s on %s: delta=%s score %s -> %s", category_id, today, result.delta, previous, result.new_score
        )
        return CheckinOutcome(
            category_id=category_id,
            entry=entry,
            previous_score=previous,
            new_score=result.new_score,
            coach_ok=reply.ok,
        )

    def append_chat_message(self, category_id: int, role: ChatRole, content: str) -> ChatMessage:
        if not is_known(category_id):
            raise ValidationError(f"Unknown category {category_id}", field="category_id")
        try:
            chat_role = ChatRole(role)
        except ValueError:
            raise ValidationError(f"Unknown chat role '{role}'", field="role")
        message = ChatMessage(role=chat_role, content=content)
        self._account.chats.setdefault(category_id, []).append(message)
        self._commit()
        return message

    async def send_goal_chat(self, category_id: int, content: str) -> ChatMessage:
        """Append the user's turn, ask the goal coach, append and return its reply."""
        goal = self.require_goal(category_id)
        if not content or not content.strip():
            raise ValidationError("Message must not be empty", field="content")

        self.append_chat_message(category_id, ChatRole.USER, content)
        reply = await call_coach(
            self.coach,
            self.chat_for(category_id),
            goal_chat_system_prompt(
                self._account.name,
                category_or_default(category_id).name,
                goal.text,
                self.score_of(category_id),
            ),
            max_tokens=self.config.COACH_MAX_TOKENS,
        )
        return self.append_chat_message(category_id, ChatRole.COACH, reply.text)

    async def ask_coach(self, history: Sequence[MessageLike], page: str = "dashboard") -> CoachReply:
        """Account-wide coach conversation; the transcript is the caller's and is not stored."""
        goal_lines = [
            f'- {category_or_default(cid).name}: "{self._account.goals[cid].text}" (score: {self.score_of(cid)}/100)'
            for cid in self.active_goal_ids()
        ]
        return await call_coach(
            self.coach,
            history,
            coach_system_prompt(self._account.name, goal_lines, self._account.vision, page),
            max_tokens=self.config.COACH_MAX_TOKENS,
        )

    def set_vision(self, text: str) -> None:
        self._account.vision = text
        self._commit()

    async def regenerate_vision(self) -> VisionResult:
        """
        Ask the coach for a new manifesto.

        Only a successful reply replaces the stored vision; on failure the
        previous text is kept and the result carries ``ok=False``.
        """
        result = await self._vision.synthesize(self._account)
        if result.ok:
            self.set_vision(result.text)
        return result
