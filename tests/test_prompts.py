from datetime import date

from accountability.models import LogEntry
from accountability.prompts import (
    checkin_user_message,
    coach_system_prompt,
    goal_chat_system_prompt,
    load_prompt,
    vision_user_message,
)


def test_goal_text_with_braces_is_kept_verbatim():
    prompt = goal_chat_system_prompt("Ada", "Financial Life", "Save {score} dollars", 50)
    assert '"Save {score} dollars"' in prompt
    assert "Score: 50/100" in prompt


def test_coach_prompt_does_not_rewrite_goal_lines():
    prompt = coach_system_prompt("Ada", ['- Career: "Ship {page} v2" (score: 40/100)'], "", "checkin")
    assert '"Ship {page} v2"' in prompt
    assert "Context: Doing daily check-in." in prompt


def test_load_prompt_override_and_unknown_placeholders(tmp_path):
    (tmp_path / "custom.md").write_text("Hi {name}, keep {unknown}", encoding="utf-8")
    assert load_prompt("custom", {"name": "{unknown}"}, prompts_dir=tmp_path) == "Hi {unknown}, keep {unknown}"
    assert load_prompt("missing", prompts_dir=tmp_path) == ""
    assert "DELTA:+8" in load_prompt("checkin_system", {"delta_limit": 20}, prompts_dir=tmp_path)


def test_message_builders():
    recent = [LogEntry(date(2024, 3, 9), "Ran 2km", 3, 4)]
    message = checkin_user_message("Run a 5k", recent, date(2024, 3, 10), 4, "Ran 3km")
    assert message == "Goal: Run a 5k\nRecent:\n2024-03-09: Ran 2km (mood 3/5)\n\nToday 2024-03-10, mood 4/5:\nRan 3km"
    assert vision_user_message("Ada", ["a", "b"]) == "Name: Ada\nGoals:\na\nb\n\nWrite their Life Vision."
