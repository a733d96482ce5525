import asyncio

import httpx
import pytest
import yaml

import accountability.coach as coach_module
from accountability.coach import (
    AnthropicAdapter,
    CoachResponse,
    OllamaAdapter,
    RuleBasedAdapter,
    call_coach,
    create_coach_adapter,
    load_coach_config,
    to_wire_messages,
)
from accountability.exceptions import CoachAuthError, CoachTimeoutError, ConfigError
from accountability.models import ChatMessage, ChatRole


class ScriptedCoach:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    async def generate(self, messages, system_prompt=None, max_tokens=1000):
        self.calls.append({"messages": list(messages), "system_prompt": system_prompt, "max_tokens": max_tokens})
        if self.error is not None:
            raise self.error
        return self.response

    def get_model_name(self):
        return "scripted"


def test_call_coach_returns_reply_text():
    coach = ScriptedCoach(CoachResponse(content="Nice. DELTA:+3", model="m"))
    reply = asyncio.run(call_coach(coach, [{"role": "user", "content": "hi"}], "sys"))
    assert reply.ok
    assert reply.text == "Nice. DELTA:+3"
    assert coach.calls[0]["system_prompt"] == "sys"
    assert coach.calls[0]["max_tokens"] == 1000


@pytest.mark.parametrize(
    "coach",
    [
        ScriptedCoach(error=CoachAuthError("anthropic", "m", "u")),
        ScriptedCoach(error=RuntimeError("boom")),
        ScriptedCoach(CoachResponse(content="", model="m")),
        ScriptedCoach(CoachResponse(content="partial", model="m", error="overloaded")),
    ],
)
def test_call_coach_never_raises(coach):
    reply = asyncio.run(call_coach(coach, [], "sys"))
    assert not reply.ok
    assert reply.text == "Connection error. Please try again."


def test_to_wire_messages_maps_roles():
    wire = to_wire_messages([
        ChatMessage(ChatRole.USER, "q"),
        ChatMessage(ChatRole.COACH, "a"),
        {"role": "assistant", "content": "b"},
        {"role": "system", "content": "c"},
    ])
    assert [m["role"] for m in wire] == ["user", "assistant", "assistant", "user"]
    assert [m["content"] for m in wire] == ["q", "a", "b", "c"]


def test_load_coach_config_defaults_to_rule_based(tmp_path):
    assert load_coach_config(config_dir=tmp_path) == {"provider": "rule_based"}


def test_load_coach_config_selects_profile_and_expands_env(tmp_path, monkeypatch):
    monkeypatch.setenv("TEST_COACH_KEY", "sk-test")
    (tmp_path / "model.yaml").write_text(
        yaml.safe_dump({
            "active_profile": "cloud",
            "profiles": {
                "cloud": {"provider": "anthropic", "api_key": "${TEST_COACH_KEY}", "model_name": "m1"},
                "local": {"provider": "ollama", "model_name": "qwen"},
            },
        }),
        encoding="utf-8",
    )
    assert load_coach_config(config_dir=tmp_path) == {"provider": "anthropic", "api_key": "sk-test", "model_name": "m1"}
    assert load_coach_config("local", config_dir=tmp_path)["provider"] == "ollama"
    assert load_coach_config("missing", config_dir=tmp_path) == {"provider": "rule_based"}


def test_local_model_yaml_takes_priority(tmp_path):
    (tmp_path / "model.yaml").write_text(yaml.safe_dump({"provider": "openai"}), encoding="utf-8")
    (tmp_path / "local_model.yaml").write_text(yaml.safe_dump({"provider": "ollama"}), encoding="utf-8")
    assert load_coach_config(config_dir=tmp_path)["provider"] == "ollama"


def test_unset_env_var_is_config_error(tmp_path, monkeypatch):
    monkeypatch.delenv("TEST_COACH_MISSING", raising=False)
    (tmp_path / "model.yaml").write_text(
        yaml.safe_dump({"provider": "anthropic", "api_key": "${TEST_COACH_MISSING}"}), encoding="utf-8"
    )
    with pytest.raises(ConfigError):
        load_coach_config(config_dir=tmp_path)


def test_factory(monkeypatch):
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    assert isinstance(create_coach_adapter({"provider": "rule_based"}), RuleBasedAdapter)
    assert isinstance(create_coach_adapter({"provider": "Ollama"}), OllamaAdapter)
    assert isinstance(create_coach_adapter({"provider": "anthropic", "api_key": "k"}), AnthropicAdapter)
    with pytest.raises(ConfigError):
        create_coach_adapter({"provider": "anthropic"})
    with pytest.raises(ConfigError):
        create_coach_adapter({"provider": "carrier-pigeon"})


def test_rule_based_reply_has_no_delta():
    response = asyncio.run(RuleBasedAdapter({}).generate([]))
    assert response.success
    assert "DELTA:" not in response.content


class _FakeResponse:
    def __init__(self, status_code, body=None, headers=None):
        self.status_code = status_code
        self._body = body or {}
        self.headers = headers or {}
        self.text = str(self._body)
        self.request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")

    def raise_for_status(self):
        if self.status_code >= 400:
            raise httpx.HTTPStatusError("error", request=self.request, response=self)

    def json(self):
        return self._body


class _FakeClient:
    def __init__(self, outcome):
        self.outcome = outcome
        self.sent = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def post(self, url, headers=None, json=None):
        self.sent = {"url": url, "headers": headers, "json": json}
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


def _patch_client(monkeypatch, outcome):
    client = _FakeClient(outcome)
    monkeypatch.setattr(coach_module.httpx, "AsyncClient", lambda **kwargs: client)
    return client


def test_anthropic_adapter_joins_text_blocks(monkeypatch):
    client = _patch_client(monkeypatch, _FakeResponse(200, {
        "model": "m1",
        "content": [{"type": "text", "text": "Good effort. "}, {"type": "text", "text": "DELTA:+6"}],
        "usage": {"input_tokens": 10, "output_tokens": 5},
    }))
    adapter = AnthropicAdapter({"api_key": "k", "model_name": "m1"})
    response = asyncio.run(adapter.generate([ChatMessage(ChatRole.USER, "Ran 3km")], system_prompt="sys"))

    assert response.content == "Good effort. DELTA:+6"
    assert client.sent["url"] == "https://api.anthropic.com/v1/messages"
    assert client.sent["headers"]["x-api-key"] == "k"
    assert client.sent["json"]["system"] == "sys"
    assert client.sent["json"]["messages"] == [{"role": "user", "content": "Ran 3km"}]


def test_anthropic_adapter_maps_http_errors(monkeypatch):
    adapter = AnthropicAdapter({"api_key": "k"})

    _patch_client(monkeypatch, _FakeResponse(401, {"error": "bad key"}))
    with pytest.raises(CoachAuthError):
        asyncio.run(adapter.generate([]))

    _patch_client(monkeypatch, httpx.ReadTimeout("slow"))
    with pytest.raises(CoachTimeoutError):
        asyncio.run(adapter.generate([]))


def test_collaborator_error_user_message_has_context_once():
    error = CoachAuthError("anthropic", "m1", "https://api.anthropic.com")
    assert error.message == "[anthropic/m1] authentication failed"
    assert error.get_user_message() == (
        "Coach call failed (anthropic/m1): authentication failed\nHint: Check the configured API key"
    )
