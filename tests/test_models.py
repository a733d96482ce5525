from datetime import date

from accountability.categories import UNKNOWN_CATEGORY, all_categories, category_or_default, is_known, lookup
from accountability.models import (
    Account,
    ChatMessage,
    ChatRole,
    Goal,
    LogEntry,
    account_from_document,
    account_to_document,
)


def test_document_uses_string_keys_and_camel_case_reply():
    account = Account(
        name="Ada",
        goals={1: Goal(1, "Run a 5k", "km per week")},
        scores={1: 56},
        logs={1: [LogEntry(date(2024, 3, 10), "Ran 3km", 4, 6, "Good effort.")]},
        chats={1: [ChatMessage(ChatRole.USER, "hi"), ChatMessage(ChatRole.COACH, "hello")]},
        vision="Be strong.",
    )
    doc = account_to_document(account)

    assert doc["name"] == "Ada"
    assert doc["goals"] == {"1": {"goal": "Run a 5k", "metrics": "km per week"}}
    assert doc["scores"] == {"1": 56}
    assert doc["logs"]["1"][0] == {
        "date": "2024-03-10",
        "note": "Ran 3km",
        "mood": 4,
        "delta": 6,
        "aiReply": "Good effort.",
    }
    assert doc["chats"]["1"][1] == {"role": "coach", "content": "hello"}

    restored = account_from_document(doc)
    assert restored == account


def test_legacy_document_shape_is_accepted():
    doc = {
        "userName": "Grace",
        "goals": {"2": {"goal": "Read daily", "metrics": ""}, "3": {"goal": "   "}},
        "scores": {"2": "61"},
        "logs": {
            "2": [
                {"date": "2024-01-05T08:00:00", "note": "read", "mood": 5, "delta": 4, "aiReply": "ok"},
                {"note": "no date"},
            ]
        },
        "chats": {"2": [{"role": "assistant", "content": "keep going"}]},
    }
    account = account_from_document(doc)

    assert account.name == "Grace"
    assert list(account.goals) == [2]
    assert account.goals[2].metric is None
    assert account.scores[2] == 61
    assert len(account.logs[2]) == 1
    assert account.logs[2][0].date == date(2024, 1, 5)
    assert account.chats[2][0].role == ChatRole.COACH
    assert account.vision == ""


def test_empty_document_is_empty_account():
    assert account_from_document(None) == Account()
    assert account_from_document({}) == Account()


def test_category_registry():
    cats = all_categories()
    assert [c.id for c in cats] == list(range(1, 13))
    assert lookup(1).name == "Health & Fitness"
    assert lookup(12).icon == "★"
    assert lookup(13) is None
    assert is_known(10)
    assert not is_known(0)
    assert category_or_default(99) == UNKNOWN_CATEGORY


def test_malformed_fields_are_skipped_without_losing_the_account():
    doc = {
        "name": "Ada",
        "goals": {
            "1": {"goal": "Run a 5k", "metrics": ""},
            "x": {"goal": "bad id"},
            "4": "not a dict",
        },
        "scores": {"1": 70, "2": None, "nine": 40},
        "logs": {
            "1": [{"date": "2024-03-10", "note": "ran", "mood": 4, "delta": 5}, "junk"],
            "2": "not a list",
        },
        "chats": {"1": [{"role": "user", "content": "hi"}, "junk", {"role": "coach", "content": 7}]},
        "vision": "keep me",
    }
    account = account_from_document(doc)

    assert account.name == "Ada"
    assert account.vision == "keep me"
    assert list(account.goals) == [1]
    assert account.scores == {1: 70}
    assert len(account.logs[1]) == 1
    assert account.logs[2] == []
    assert account.chats[1] == [ChatMessage(ChatRole.USER, "hi")]
