"""
Coach adapter for Stay on One.

Provides a unified async interface to the text-generation service that plays
the coach. Supports: Anthropic Messages API, OpenAI-compatible chat
completions, Ollama (local), and an offline rule-based fallback.

Adapters raise CollaboratorError subclasses; ``call_coach`` is the single
place where those errors are absorbed and replaced by the fallback reply.
"""
import os
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence, Union

import httpx
import yaml

from accountability.config_manager import config as system_config
from accountability.exceptions import (
    CoachAuthError,
    CoachConnectionError,
    CoachRateLimitError,
    CoachTimeoutError,
    CollaboratorError,
    ConfigError,
)
from accountability.logger import get_logger
from accountability.models import ChatMessage, ChatRole
from accountability.paths import CONFIG_DIR

logger = get_logger("coach")

MODEL_CONFIG_PATH = CONFIG_DIR / "model.yaml"
LOCAL_MODEL_CONFIG_PATH = CONFIG_DIR / "local_model.yaml"

MessageLike = Union[ChatMessage, Dict[str, str]]


@dataclass
class CoachResponse:
    """Structured response from the coach service."""
    content: str
    model: str
    usage: Optional[Dict[str, int]] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class CoachReply:
    """What the engine sees: text to use, and whether it came from the coach."""
    text: str
    ok: bool


class CoachProvider(Protocol):
    """Protocol defining the coach collaborator interface."""

    async def generate(
        self,
        messages: Sequence[MessageLike],
        system_prompt: Optional[str] = None,
        max_tokens: int = 1000,
    ) -> CoachResponse:
        ...

    def get_model_name(self) -> str:
        ...


def to_wire_messages(messages: Sequence[MessageLike]) -> List[Dict[str, str]]:
    """Map transcript turns to the user/assistant roles chat APIs expect."""
    wire = []
    for m in messages:
        if isinstance(m, ChatMessage):
            role, content = m.role, m.content
        else:
            role, content = m.get("role", "user"), m.get("content", "")
        role_value = role.value if isinstance(role, ChatRole) else str(role)
        wire.append({
            "role": "assistant" if role_value in (ChatRole.COACH.value, "assistant") else "user",
            "content": content,
        })
    return wire


class BaseCoachAdapter(ABC):
    """Base class for coach adapters."""

    provider = "unknown"
    timeout_seconds = 60.0

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.model_name = config.get("model_name", "unknown")
        self.base_url = config.get("base_url", "")

    @abstractmethod
    async def generate(
        self,
        messages: Sequence[MessageLike],
        system_prompt: Optional[str] = None,
        max_tokens: int = 1000,
    ) -> CoachResponse:
        pass

    def get_model_name(self) -> str:
        return self.model_name

    async def _post(self, url: str, payload: Dict[str, Any], headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await client.post(url, headers=headers, json=payload)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status == 401:
                raise CoachAuthError(self.provider, self.model_name, self.base_url)
            if status == 429:
                retry_after = e.response.headers.get("retry-after")
                raise CoachRateLimitError(
                    self.provider,
                    self.model_name,
                    self.base_url,
                    retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
                )
            raise CollaboratorError(
                message=f"HTTP {status} - {e.response.text[:200]}",
                provider=self.provider,
                model_name=self.model_name,
                endpoint=self.base_url,
            )
        except httpx.ConnectError:
            raise CoachConnectionError(self.provider, self.model_name, self.base_url)
        except httpx.TimeoutException:
            raise CoachTimeoutError(
                self.provider, self.model_name, self.base_url, timeout_seconds=self.timeout_seconds
            )
        except (httpx.HTTPError, ValueError) as e:
            raise CollaboratorError(
                message=f"request failed: {e}",
                provider=self.provider,
                model_name=self.model_name,
                endpoint=self.base_url,
            )


class AnthropicAdapter(BaseCoachAdapter):
    """Adapter for the Anthropic Messages API."""

    provider = "anthropic"

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        self.api_key = config.get("api_key") or os.environ.get("ANTHROPIC_API_KEY")
        self.base_url = config.get("base_url", "https://api.anthropic.com")
        self.model_name = config.get("model_name", "claude-sonnet-4-20250514")
        self.api_version = config.get("api_version", "2023-06-01")

        if not self.api_key:
            raise ConfigError(
                "Anthropic API key not found. Set ANTHROPIC_API_KEY or add 'api_key' to the profile",
                str(MODEL_CONFIG_PATH),
            )

    async def generate(
        self,
        messages: Sequence[MessageLike],
        system_prompt: Optional[str] = None,
        max_tokens: int = 1000,
    ) -> CoachResponse:
        payload: Dict[str, Any] = {
            "model": self.model_name,
            "max_tokens": max_tokens,
            "messages": to_wire_messages(messages),
        }
        if system_prompt:
            payload["system"] = system_prompt
        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": self.api_version,
            "Content-Type": "application/json",
        }
        data = await self._post(f"{self.base_url}/v1/messages", payload, headers)
        text = "".join(block.get("text", "") for block in data.get("content") or [])
        return CoachResponse(
            content=text or "No response.",
            model=data.get("model", self.model_name),
            usage=data.get("usage"),
        )


class OpenAIAdapter(BaseCoachAdapter):
    """Adapter for OpenAI API (also compatible with other OpenAI-compatible APIs)."""

    provider = "openai"

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        self.api_key = config.get("api_key") or os.environ.get("OPENAI_API_KEY")
        self.base_url = config.get("base_url", "https://api.openai.com/v1")
        self.model_name = config.get("model_name", "gpt-4o-mini")

        if not self.api_key:
            raise ConfigError(
                "OpenAI API key not found. Set OPENAI_API_KEY or add 'api_key' to the profile",
                str(MODEL_CONFIG_PATH),
            )

    async def generate(
        self,
        messages: Sequence[MessageLike],
        system_prompt: Optional[str] = None,
        max_tokens: int = 1000,
    ) -> CoachResponse:
        wire = to_wire_messages(messages)
        if system_prompt:
            wire.insert(0, {"role": "system", "content": system_prompt})
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        payload = {"model": self.model_name, "messages": wire, "max_tokens": max_tokens}
        data = await self._post(f"{self.base_url}/chat/completions", payload, headers)
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            raise CollaboratorError("malformed response body", self.provider, self.model_name, self.base_url)
        return CoachResponse(content=content or "", model=data.get("model", self.model_name), usage=data.get("usage"))


class OllamaAdapter(BaseCoachAdapter):
    """Adapter for local Ollama models."""

    provider = "ollama"
    timeout_seconds = 120.0

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        self.base_url = config.get("base_url", "http://localhost:11434")
        self.model_name = config.get("model_name", "qwen2.5:7b")

    async def generate(
        self,
        messages: Sequence[MessageLike],
        system_prompt: Optional[str] = None,
        max_tokens: int = 1000,
    ) -> CoachResponse:
        wire = to_wire_messages(messages)
        if system_prompt:
            wire.insert(0, {"role": "system", "content": system_prompt})
        payload = {
            "model": self.model_name,
            "messages": wire,
            "stream": False,
            "options": {"num_predict": max_tokens},
        }
        data = await self._post(f"{self.base_url}/api/chat", payload)
        return CoachResponse(
            content=(data.get("message") or {}).get("content", ""),
            model=data.get("model", self.model_name),
            usage={
                "prompt_tokens": data.get("prompt_eval_count", 0),
                "completion_tokens": data.get("eval_count", 0),
            },
        )


class RuleBasedAdapter(BaseCoachAdapter):
    """
    Offline coach used when no model is configured.
    Replies carry no DELTA token, so check-ins score a delta of 0.
    """

    provider = "rule_based"

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        self.model_name = "rule_based"

    async def generate(
        self,
        messages: Sequence[MessageLike],
        system_prompt: Optional[str] = None,
        max_tokens: int = 1000,
    ) -> CoachResponse:
        return CoachResponse(
            content="[offline coach] Logged. Keep showing up: small daily actions compound.",
            model=self.model_name,
            usage={"prompt_tokens": 0, "completion_tokens": 0},
        )


async def call_coach(
    coach: CoachProvider,
    messages: Sequence[MessageLike],
    system_prompt: str,
    max_tokens: Optional[int] = None,
) -> CoachReply:
    """
    Invoke the coach and never raise.

    Any failure (adapter error, empty reply, unexpected exception) is logged
    and replaced by the configured fallback text with ``ok=False``.
    """
    try:
        response = await coach.generate(
            messages,
            system_prompt=system_prompt,
            max_tokens=max_tokens or system_config.COACH_MAX_TOKENS,
        )
    except CollaboratorError as e:
        logger.warning("Coach call failed: %s", e.message)
        return CoachReply(system_config.FALLBACK_REPLY, ok=False)
    except Exception:
        logger.exception("Unexpected error from coach adapter")
        return CoachReply(system_config.FALLBACK_REPLY, ok=False)

    if not response.success or not response.content:
        logger.warning("Coach returned no content: %s", response.error or "empty reply")
        return CoachReply(system_config.FALLBACK_REPLY, ok=False)
    return CoachReply(response.content, ok=True)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

def load_coach_config(
    profile_name: Optional[str] = None,
    config_dir: Optional[Path] = None,
) -> Dict[str, Any]:
    """
    Load coach configuration from YAML.
    Priority: local_model.yaml > model.yaml

    Args:
        profile_name: Optional profile name. If None, uses active_profile.
        config_dir: Directory holding the YAML files (defaults to config/).

    Returns:
        Configuration dict for the selected profile; ``{"provider": "rule_based"}``
        when nothing is configured.
    """
    base = config_dir or CONFIG_DIR
    local_path = base / LOCAL_MODEL_CONFIG_PATH.name
    default_path = base / MODEL_CONFIG_PATH.name

    raw_config: Dict[str, Any] = {}
    for path in (local_path, default_path):
        if path.exists():
            try:
                with open(path, "r", encoding="utf-8") as f:
                    raw_config = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML: {e}", str(path))
            break

    if "profiles" in raw_config:
        profiles = raw_config["profiles"] or {}
        active = profile_name or raw_config.get("active_profile", "")
        if active not in profiles:
            logger.warning("Coach profile '%s' not found, using rule-based coach", active)
            return {"provider": "rule_based"}
        return _expand_env_vars(profiles[active])

    if raw_config:
        return _expand_env_vars(raw_config)

    return {"provider": "rule_based"}


_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}")


def _expand_env_vars(config: Dict[str, Any]) -> Dict[str, Any]:
    """Expand ${VAR} placeholders; an unset variable is a configuration error."""
    result: Dict[str, Any] = {}
    for key, value in config.items():
        if isinstance(value, str):
            match = _ENV_PATTERN.fullmatch(value)
            if match:
                env_value = os.environ.get(match.group(1))
                if not env_value:
                    raise ConfigError(
                        f"'{key}' refers to ${{{match.group(1)}}} but that variable is not set",
                        str(LOCAL_MODEL_CONFIG_PATH),
                    )
                result[key] = env_value
            else:
                result[key] = value
        elif isinstance(value, dict):
            result[key] = _expand_env_vars(value)
        else:
            result[key] = value
    return result


def create_coach_adapter(
    config: Optional[Dict[str, Any]] = None,
    profile_name: Optional[str] = None,
) -> BaseCoachAdapter:
    """
    Factory function to create the appropriate coach adapter.

    Args:
        config: Optional config dict. If None, loads from model.yaml.
        profile_name: Optional profile name. Only used when config is None.
    """
    if config is None:
        config = load_coach_config(profile_name)

    provider = str(config.get("provider", "rule_based")).lower()

    if provider == "anthropic":
        return AnthropicAdapter(config)
    if provider == "openai":
        return OpenAIAdapter(config)
    if provider == "ollama":
        return OllamaAdapter(config)
    if provider == "rule_based":
        return RuleBasedAdapter(config)
    raise ConfigError(f"Unknown coach provider: '{provider}'", str(MODEL_CONFIG_PATH))
