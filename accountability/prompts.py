"""
Prompt builders for every coach conversation.

System prompts can be overridden by dropping a Markdown file into
config/prompts/ (e.g. ``checkin_system.md``); ``{var}`` placeholders are
filled in the same way for overrides and built-in defaults.
"""
import os
import re
from datetime import date
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from accountability.config_manager import config
from accountability.logger import get_logger
from accountability.models import LogEntry
from accountability.paths import CONFIG_DIR

logger = get_logger("prompts")

PROMPTS_DIR = CONFIG_DIR / "prompts"

_PLACEHOLDER = re.compile(r"\{(\w+)\}")

DEFAULT_PROMPTS: Dict[str, str] = {
    "checkin_system": (
        "You are an accountability coach. In 2-3 sentences: acknowledge what they did, "
        "assess if it moved them toward or away from their goal, give one sharp insight. "
        "End with exactly: DELTA:+8 or DELTA:-5 (range -{delta_limit} to +{delta_limit}). Nothing after."
    ),
    "goal_chat_system": (
        'You are a focused coach for {user_name}\'s goal in {category}: "{goal}". '
        "Score: {score}/100. Be specific and direct."
    ),
    "coach_system": (
        'You are Coach inside "Stay on One", a life accountability app inspired by Paul Graham\'s '
        "philosophy that greatness comes from compounding one thing long enough.\n\n"
        "User: {user_name}\n"
        "Goals:\n{goals}{vision}\n"
        "Context: {page}\n\n"
        "Be warm but direct. Reference actual goals by name. Keep responses to 2-4 sentences. "
        "If they want to chase something new, redirect to their one thing."
    ),
    "vision_system": (
        "You are a master life architect. Create a profound personal Life Vision manifesto in "
        "second person. Inspired by Paul Graham: greatness compounds. Structure: opening identity "
        "→ key themes → ONE core thread → 90-day challenge → closing commitment. "
        "Bold, specific, poetic."
    ),
}

PAGE_CONTEXT = {
    "vision": "Viewing Life Vision.",
    "checkin": "Doing daily check-in.",
    "progress": "Reviewing progress history.",
    "dashboard": "On the main dashboard.",
    "setup": "Setting up goals.",
}


def load_prompt(name: str, variables: Optional[Dict[str, Any]] = None, prompts_dir: Optional[Path] = None) -> str:
    """
    Load a prompt template and fill ``{var}`` placeholders.

    Args:
        name: prompt name, subdirectories allowed ("coach/checkin_system")
        variables: values substituted for ``{key}``
        prompts_dir: override directory (defaults to config/prompts)

    Returns:
        The rendered prompt; the built-in default when no override file exists.
    """
    base = prompts_dir or PROMPTS_DIR
    prompt_path = base / f"{name.replace('/', os.sep)}.md"

    if prompt_path.exists():
        template = prompt_path.read_text(encoding="utf-8")
    elif name in DEFAULT_PROMPTS:
        template = DEFAULT_PROMPTS[name]
    else:
        logger.warning("Prompt '%s' not found at %s", name, prompt_path)
        return ""

    if variables:
        # Single pass: substituted values are never rescanned for placeholders.
        template = _PLACEHOLDER.sub(
            lambda m: str(variables[m.group(1)]) if m.group(1) in variables else m.group(0),
            template,
        )
    return template


def checkin_system_prompt() -> str:
    return load_prompt("checkin_system", {"delta_limit": config.DELTA_LIMIT})


def checkin_user_message(
    goal_text: str,
    recent: Sequence[LogEntry],
    today: date,
    mood: int,
    note: str,
) -> str:
    history = "\n".join(f"{e.date.isoformat()}: {e.note} (mood {e.mood}/5)" for e in recent)
    return (
        f"Goal: {goal_text}\n"
        f"Recent:\n{history or 'First check-in'}\n\n"
        f"Today {today.isoformat()}, mood {mood}/5:\n{note}"
    )


def goal_chat_system_prompt(user_name: str, category_name: str, goal_text: str, score: int) -> str:
    return load_prompt(
        "goal_chat_system",
        {"user_name": user_name, "category": category_name, "goal": goal_text, "score": score},
    )


def coach_system_prompt(user_name: str, goal_lines: Sequence[str], vision: str, page: str) -> str:
    vision_ctx = ""
    if vision:
        vision_ctx = f"\n\nLife Vision:\n{vision[:config.VISION_CONTEXT_CHARS]}..."
    return load_prompt(
        "coach_system",
        {
            "user_name": user_name or "this person",
            "goals": "\n".join(goal_lines) if goal_lines else "No goals set yet.",
            "vision": vision_ctx,
            "page": PAGE_CONTEXT.get(page, ""),
        },
    )


def vision_system_prompt() -> str:
    return load_prompt("vision_system")


def vision_user_message(user_name: str, goal_lines: Sequence[str]) -> str:
    goals_text = "\n".join(goal_lines)
    return f"Name: {user_name}\nGoals:\n{goals_text}\n\nWrite their Life Vision."
