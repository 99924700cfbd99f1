# =============================================================================
# Completion Provider — Pluggable LLM Backend
# =============================================================================
#
# Every agent talks to the language model through the LLMProvider protocol.
# Two implementations cover the providers the firm uses:
#
#   LLMProvider (Protocol)
#   ├── AnthropicProvider        — Claude via native Anthropic SDK
#   │   └── complete()           — system prompt as top-level kwarg
#   ├── OpenAICompatibleProvider — OpenAI and OpenAI-compatible gateways
#   │   └── complete()           — system prompt as message role
#   ├── get_llm_provider()       — lazy factory, reads from config
#   └── create_provider_from_id() — fresh instance from "type/model@url"
#
# DESIGN DECISION: Failures are exceptions.
# Providers never return mock text on error. SDK errors (network, status,
# rate limit) propagate to the caller, and each agent operation converts
# them into its own fallback value at its boundary.
#
# DESIGN DECISION: Async only.
# Agents are awaited from FastAPI handlers and from asyncio code.
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from cabinet.config import settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class LLMResponse:
    """One completion as the agents see it, whatever the backend."""

    content: str
    model: str
    # Backend-specific stop reason: "stop", "length", "end_turn", ...
    finish_reason: str = "stop"
    input_tokens: int = 0
    output_tokens: int = 0


# ---------------------------------------------------------------------------
# Protocol Definition
# ---------------------------------------------------------------------------


class LLMProvider(Protocol):
    """
    What an agent needs from a model: one async `complete()`.

    Agents, the insights engine and the tests (AsyncMock doubles) only
    rely on this shape.
    """

    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        """
        Answer a conversation.

        `messages` holds {"role", "content"} turns. `system` is the
        agent's instruction; a "system" turn inside `messages` is merged
        into it. Unset temperature and max_tokens fall back to the
        LLM_TEMPERATURE and LLM_MAX_TOKENS settings.

        Raises whatever the SDK raises on transport or API failure.
        """
        ...


def _split_system(
    messages: list[dict[str, str]],
    system: str | None,
) -> tuple[str, list[dict[str, str]]]:
    """Pull "system" turns out of a conversation and join them to `system`."""
    parts = [system] if system else []
    turns = []
    for message in messages:
        if message["role"] == "system":
            parts.append(message["content"])
        else:
            turns.append(message)
    return "\n\n".join(parts), turns


# ---------------------------------------------------------------------------
# Implementation 1: Anthropic (Claude)
# ---------------------------------------------------------------------------


class AnthropicProvider:
    """Claude through the Messages API; the instruction goes in `system=`."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
    ) -> None:
        from anthropic import AsyncAnthropic

        resolved_key = api_key or settings.llm_api_key or settings.anthropic_api_key
        if not resolved_key:
            raise ValueError(
                "No Anthropic API key configured. Set LLM_API_KEY or "
                "ANTHROPIC_API_KEY in .env"
            )

        self._client = AsyncAnthropic(api_key=resolved_key)
        self._model = model or settings.llm_model
        self._temperature = settings.llm_temperature
        self._max_tokens = settings.llm_max_tokens

        logger.info("Initialized AnthropicProvider (model=%s)", self._model)

    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        instruction, turns = _split_system(messages, system)

        kwargs: dict = {
            "model": self._model,
            "messages": turns,
            "max_tokens": max_tokens or self._max_tokens,
            "temperature": (
                temperature if temperature is not None else self._temperature
            ),
        }
        if instruction:
            kwargs["system"] = instruction

        response = await self._client.messages.create(**kwargs)

        # Tool-use and thinking blocks carry no answer text
        content = "".join(
            block.text for block in response.content if block.type == "text"
        )

        return LLMResponse(
            content=content,
            model=response.model,
            finish_reason=response.stop_reason or "end_turn",
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )


# ---------------------------------------------------------------------------
# Implementation 2: OpenAI-Compatible
# ---------------------------------------------------------------------------


class OpenAICompatibleProvider:
    """
    Chat Completions backend: OpenAI itself, or any gateway speaking the
    same protocol when LLM_BASE_URL is set.

    The agent instruction is sent as the leading "system" turn.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
    ) -> None:
        from openai import AsyncOpenAI

        resolved_key = api_key or settings.llm_api_key or settings.openai_api_key
        if not resolved_key:
            raise ValueError(
                "No API key configured for OpenAI-compatible provider. "
                "Set LLM_API_KEY in .env"
            )

        client_kwargs: dict = {"api_key": resolved_key}
        resolved_base_url = base_url or settings.llm_base_url
        if resolved_base_url:
            client_kwargs["base_url"] = resolved_base_url

        self._client = AsyncOpenAI(**client_kwargs)
        self._model = model or settings.llm_model
        self._temperature = settings.llm_temperature
        self._max_tokens = settings.llm_max_tokens

        logger.info(
            "Initialized OpenAICompatibleProvider (model=%s, base_url=%s)",
            self._model,
            resolved_base_url or "https://api.openai.com/v1",
        )

    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        instruction, turns = _split_system(messages, system)
        if instruction:
            turns.insert(0, {"role": "system", "content": instruction})

        response = await self._client.chat.completions.create(
            model=self._model,
            messages=turns,
            max_tokens=max_tokens or self._max_tokens,
            temperature=(
                temperature if temperature is not None else self._temperature
            ),
        )

        choice = response.choices[0]
        usage = response.usage

        return LLMResponse(
            content=choice.message.content or "",
            model=response.model or self._model,
            finish_reason=choice.finish_reason or "stop",
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
        )


# ---------------------------------------------------------------------------
# Cabinet-wide Provider
# ---------------------------------------------------------------------------

_provider: AnthropicProvider | OpenAICompatibleProvider | None = None


def get_llm_provider() -> AnthropicProvider | OpenAICompatibleProvider:
    """
    The provider shared by the default cabinet, built on first call from
    LLM_PROVIDER ("anthropic" or "openai_compatible").
    """
    global _provider
    if _provider is None:
        if settings.llm_provider == "openai_compatible":
            _provider = OpenAICompatibleProvider()
        else:
            _provider = AnthropicProvider()
    return _provider


# ---------------------------------------------------------------------------
# Per-agent Providers
# ---------------------------------------------------------------------------
# POST /agents may name a provider_id so one agent runs on another model
# than the rest of the cabinet. Each call builds a new instance.
# ---------------------------------------------------------------------------


_KNOWN_PROVIDER_TYPES = {"anthropic", "openai_compatible"}


def _parse_provider_id(
    provider_id: str,
) -> tuple[str, str, str | None]:
    """
    "anthropic/claude-sonnet-4-6" → ("anthropic", "claude-sonnet-4-6", None)
    "openai_compatible/gpt-4o@https://gw/v1" → (..., "gpt-4o", "https://gw/v1")
    """
    if "/" not in provider_id:
        raise ValueError(
            f"Invalid provider_id '{provider_id}'. "
            "Expected format: 'provider_type/model' or "
            "'provider_type/model@base_url'"
        )

    provider_type, rest = provider_id.split("/", 1)
    model, _, base_url = rest.partition("@")

    if provider_type not in _KNOWN_PROVIDER_TYPES:
        raise ValueError(
            f"Unknown provider type '{provider_type}'. "
            f"Supported types: {sorted(_KNOWN_PROVIDER_TYPES)}"
        )

    return provider_type, model, base_url or None


def create_provider_from_id(
    provider_id: str,
    api_key: str | None = None,
) -> AnthropicProvider | OpenAICompatibleProvider:
    """New provider for a provider_id; ValueError on a bad id or missing key."""
    provider_type, model, base_url = _parse_provider_id(provider_id)

    if provider_type == "anthropic":
        return AnthropicProvider(api_key=api_key, model=model)

    return OpenAICompatibleProvider(
        api_key=api_key, model=model, base_url=base_url,
    )
