# =============================================================================
# Agent Base Class — Identity, Memory, Audit Trail
# =============================================================================
#
# An Agent is an addressable actor with:
#   - an identity (name, description, capability tags)
#   - a system instruction for its domain
#   - an append-only conversation memory
#   - a local copy of its own conscience journal entries
#   - a `process(input) -> output` contract
#
# Side channels are explicit: hosts and the orchestrator attach an
# AgentObserver and are called back on message-received, message-sent and
# conscience-log. Observers are fire-and-forget; a failing observer is
# logged and never breaks the agent.
#
# DESIGN DECISION: Provider failures stop at the agent boundary.
# Every operation that calls the completion provider goes through
# _complete(), which enforces the configured timeout. The conversation
# path turns any failure into the agent's apology string, the structured
# path (_extract) into a StructuredError, and text helpers (_ask) into a
# fixed fallback string. Nothing a provider raises reaches the caller.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any, TypeVar

from cabinet.config import settings
from cabinet.models.domain import ConscienceLogEntry, Message, StructuredError
from cabinet.services.llm import LLMProvider, LLMResponse
from cabinet.services.structured import (
    extract_json_block,
    invalid_format,
    with_json_instruction,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Observer Interface
# ---------------------------------------------------------------------------


class AgentObserver:
    """
    Callbacks for agent events. Override only what you need.

    The orchestrator is itself an observer of every registered agent.
    """

    def on_message_received(self, agent: Agent, message: Message) -> None:
        pass

    def on_message_sent(self, agent: Agent, message: Message) -> None:
        pass

    def on_conscience_log(self, entry: ConscienceLogEntry) -> None:
        pass


# ---------------------------------------------------------------------------
# Agent
# ---------------------------------------------------------------------------


class Agent(ABC):
    """
    Abstract specialised actor.

    Subclasses set the class-level defaults below and implement `process`.
    Constructor arguments override the defaults, so the same class can be
    registered twice under different names.
    """

    default_name: str = ""
    default_description: str = ""
    default_system_prompt: str = ""
    default_capabilities: tuple[str, ...] = ()

    # Sampling temperature of the free conversation path
    conversation_temperature: float = 0.5

    apology: str = (
        "Désolé, une erreur est survenue lors du traitement de votre "
        "demande. Veuillez réessayer."
    )

    def __init__(
        self,
        llm: LLMProvider,
        name: str | None = None,
        description: str | None = None,
        system_prompt: str | None = None,
        capabilities: list[str] | None = None,
        max_memory: int | None = None,
        timeout: float | None = None,
    ) -> None:
        self.name = name or self.default_name or type(self).__name__
        self.description = description or self.default_description
        self.system_prompt = system_prompt or self.default_system_prompt
        self.capabilities = list(
            capabilities if capabilities is not None else self.default_capabilities
        )
        self.max_memory = max_memory
        self.timeout = timeout if timeout is not None else settings.llm_timeout_seconds

        self._llm = llm
        self._memory: list[Message] = []
        self._conscience_log: list[ConscienceLogEntry] = []
        self._observers: list[AgentObserver] = []

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"

    # -----------------------------------------------------------------------
    # Public state
    # -----------------------------------------------------------------------

    @property
    def memory(self) -> list[Message]:
        """Snapshot of the conversation memory, oldest first."""
        return list(self._memory)

    @property
    def conscience_log(self) -> list[ConscienceLogEntry]:
        """Snapshot of this agent's own journal entries."""
        return list(self._conscience_log)

    def add_observer(self, observer: AgentObserver) -> None:
        self._observers.append(observer)

    def remove_observer(self, observer: AgentObserver) -> None:
        self._observers.remove(observer)

    # -----------------------------------------------------------------------
    # Messaging
    # -----------------------------------------------------------------------

    def receive_message(self, message: Message) -> None:
        """Append an incoming message to memory. Always succeeds."""
        self._remember(message)
        self._notify("on_message_received", self, message)
        self._log_conscience(
            f"{self.name} received: {preview(message.content)}"
        )

    def send_message(
        self,
        content: str,
        metadata: dict[str, Any] | None = None,
    ) -> Message:
        """Record an outgoing assistant message and return it."""
        message = Message(role="assistant", content=content, metadata=metadata)
        self._remember(message)
        self._notify("on_message_sent", self, message)
        self._log_conscience(f"{self.name} sent: {preview(content)}")
        return message

    @abstractmethod
    async def process(self, input_text: str) -> str:
        """
        Turn free-text input into a free-text response.

        Implementations must not raise on provider failure: they return a
        user-facing apology instead.
        """

    # -----------------------------------------------------------------------
    # Provider access (shared by subclasses)
    # -----------------------------------------------------------------------

    async def _complete(
        self,
        messages: list[dict[str, str]],
        temperature: float,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        """Call the completion provider with this agent's system prompt."""
        return await asyncio.wait_for(
            self._llm.complete(
                messages=messages,
                system=self.system_prompt,
                temperature=temperature,
                max_tokens=max_tokens,
            ),
            timeout=self.timeout,
        )

    async def _converse(self, input_text: str) -> str:
        """
        Default conversation path: {system, memory, new user turn}.

        The reply is recorded through send_message(). When the orchestrator
        has already delivered `input_text` as the last user message, that
        turn is not sent twice.
        """
        messages = [
            {"role": m.role, "content": m.content} for m in self._memory
        ]
        last = self._memory[-1] if self._memory else None
        if last is None or last.role != "user" or last.content != input_text:
            messages.append({"role": "user", "content": input_text})

        try:
            response = await self._complete(
                messages, temperature=self.conversation_temperature,
            )
        except Exception as e:
            logger.warning("%s: completion failed: %s", self.name, e)
            self._log_conscience(f"{self.name} could not answer: {e}")
            return self.apology

        self.send_message(
            response.content,
            {"model": response.model, "finish_reason": response.finish_reason},
        )
        return response.content

    async def _ask(
        self,
        operation: str,
        prompt: str,
        temperature: float,
        fallback: str,
    ) -> str:
        """One-shot free-text generation with a fixed fallback string."""
        try:
            response = await self._complete(
                [{"role": "user", "content": prompt}], temperature=temperature,
            )
        except Exception as e:
            logger.warning("%s: %s failed: %s", self.name, operation, e)
            self._log_conscience(f"{self.name} {operation} failed: {e}")
            return fallback
        return response.content

    async def _extract(
        self,
        operation: str,
        prompt: str,
        temperature: float,
        parse: Callable[[Any], T],
    ) -> T | StructuredError:
        """
        One-shot structured generation.

        Asks for a fenced JSON block, then validates it with `parse`.
        Provider failures become StructuredError("<operation> failed"),
        missing or malformed blocks become the invalid-format error.
        """
        try:
            response = await self._complete(
                [{"role": "user", "content": with_json_instruction(prompt)}],
                temperature=temperature,
            )
        except Exception as e:
            logger.warning("%s: %s failed: %s", self.name, operation, e)
            self._log_conscience(f"{self.name} {operation} failed: {e}")
            return StructuredError(error=f"{operation} failed")

        try:
            return parse(extract_json_block(response.content))
        except (ValueError, TypeError) as e:
            # StructuredOutputError and pydantic ValidationError are ValueErrors
            logger.warning(
                "%s: could not parse %s response: %s", self.name, operation, e,
            )
            self._log_conscience(
                f"{self.name} {operation}: invalid response format"
            )
            return invalid_format()

    # -----------------------------------------------------------------------
    # Internals
    # -----------------------------------------------------------------------

    def _remember(self, message: Message) -> None:
        self._memory.append(message)
        if self.max_memory is not None and len(self._memory) > self.max_memory:
            del self._memory[: len(self._memory) - self.max_memory]

    def _log_conscience(self, text: str) -> None:
        entry = ConscienceLogEntry(agent=self.name, entry=text)
        self._conscience_log.append(entry)
        logger.info("[Conscience Journal] %s: %s", self.name, text)
        self._notify("on_conscience_log", entry)

    def _notify(self, event: str, *args: Any) -> None:
        for observer in list(self._observers):
            try:
                getattr(observer, event)(*args)
            except Exception:
                logger.exception(
                    "%s: observer %r failed on %s", self.name, observer, event,
                )


def preview(content: str) -> str:
    """Content truncated for the journal (at most the configured length)."""
    limit = settings.conscience_preview_chars
    if len(content) <= limit:
        return content
    return content[:limit] + "..."
