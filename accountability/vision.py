"""
Vision synthesis: assemble the account context and ask the coach for a
Life Vision manifesto. The returned prose is opaque and never parsed.
"""
from dataclasses import dataclass
from typing import List, Optional, Sequence

from accountability.categories import category_or_default
from accountability.coach import CoachProvider, call_coach
from accountability.config_manager import SystemConfig, config as default_config
from accountability.exceptions import ValidationError
from accountability.logger import get_logger
from accountability.models import Account
from accountability.prompts import vision_system_prompt, vision_user_message

logger = get_logger("vision")


@dataclass(frozen=True)
class VisionResult:
    text: str
    ok: bool


class VisionSynthesizer:
    """Builds the manifesto request; committing the text is the store's job."""

    def __init__(self, coach: CoachProvider, config: Optional[SystemConfig] = None):
        self.coach = coach
        self.config = config or default_config

    def goal_lines(self, account: Account, goal_ids: Optional[Sequence[int]] = None) -> List[str]:
        ids = list(goal_ids) if goal_ids is not None else sorted(account.goals)
        lines = []
        for cid in ids:
            goal = account.goals[cid]
            score = account.scores.get(cid, self.config.DEFAULT_SCORE)
            count = len(account.logs.get(cid, []))
            lines.append(
                f"{category_or_default(cid).name} (score {score}/100, {count} check-ins): {goal.text}"
            )
        return lines

    async def synthesize(self, account: Account) -> VisionResult:
        """
        Raises:
            ValidationError: the account has no goals to synthesize from.
        """
        if not account.goals:
            raise ValidationError("Add at least one goal before generating a vision", field="goals")

        message = vision_user_message(account.name, self.goal_lines(account))
        reply = await call_coach(
            self.coach,
            [{"role": "user", "content": message}],
            vision_system_prompt(),
            max_tokens=self.config.COACH_MAX_TOKENS,
        )
        if not reply.ok:
            logger.warning("Vision synthesis failed; previous vision kept")
        return VisionResult(text=reply.text, ok=reply.ok)
