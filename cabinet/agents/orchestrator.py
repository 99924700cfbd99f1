# =============================================================================
# Orchestrator — Agent Registry, Message Routing, Conscience Journal
# =============================================================================
#
# The orchestrator owns the registry of agents for a session and mediates
# all traffic between them and the user:
#
#   register_agent()      → name must be unique, journal "Registered agent"
#   send_message()        → agent-to-agent, metadata tagged with "from"
#   send_user_message()   → user-to-agent
#   dispatch()            → user message + process() + optional forward
#
# It also keeps the single conscience journal of the session: its own
# registration/routing entries plus every entry mirrored from its agents,
# in the order it observed them.
#
# DESIGN DECISION: Routing is synchronous, processing is async.
# Delivering a message only appends to the target's memory, so it needs no
# await. Only dispatch() suspends, at the completion provider call made by
# the target agent. Independent dispatches can be gathered with
# asyncio.gather; each agent's memory is only touched by its own calls.
#
# DESIGN DECISION: Registration is lock-guarded.
# FastAPI may run sync handlers in a threadpool, so the check-then-insert
# on the registry is serialised to keep names unique.
# =============================================================================

from __future__ import annotations

import logging
import threading
from typing import Any

from cabinet.agents.base import Agent, AgentObserver, preview
from cabinet.exceptions import AgentNameConflictError, UnknownAgentError
from cabinet.models.domain import AgentInfo, ConscienceLogEntry, Message

logger = logging.getLogger(__name__)

ORCHESTRATOR_NAME = "Orchestrator"


class Orchestrator(AgentObserver):
    """Registry and router for a set of agents."""

    def __init__(self) -> None:
        self._agents: dict[str, Agent] = {}
        self._journal: list[ConscienceLogEntry] = []
        self._observers: list[AgentObserver] = []
        self._lock = threading.Lock()

    # -----------------------------------------------------------------------
    # Registry
    # -----------------------------------------------------------------------

    def register_agent(self, agent: Agent) -> None:
        """
        Add an agent to the registry.

        Raises:
            AgentNameConflictError: An agent with this name already exists.
                The registry is left untouched.
        """
        with self._lock:
            if agent.name in self._agents:
                raise AgentNameConflictError(agent.name)
            self._agents[agent.name] = agent

        agent.add_observer(self)
        self._record(f"Registered agent: {agent.name} - {agent.description}")

    def get_agent(self, name: str) -> Agent:
        agent = self._agents.get(name)
        if agent is None:
            raise UnknownAgentError(name)
        return agent

    def get_agents(self) -> list[AgentInfo]:
        """Registered agents in registration order."""
        return [
            AgentInfo(name=agent.name, description=agent.description)
            for agent in self._agents.values()
        ]

    def get_conscience_log(self) -> list[ConscienceLogEntry]:
        """Copy of the full journal, oldest first."""
        return list(self._journal)

    def add_observer(self, observer: AgentObserver) -> None:
        """
        Subscribe a host to the session.

        The observer receives every journal entry (on_conscience_log) and
        every reply sent by a registered agent (on_message_sent).
        """
        self._observers.append(observer)

    # -----------------------------------------------------------------------
    # Routing
    # -----------------------------------------------------------------------

    def send_message(
        self,
        from_name: str,
        to_name: str,
        content: str,
        metadata: dict[str, Any] | None = None,
    ) -> Message:
        """
        Deliver `content` from one registered agent to another.

        Raises:
            UnknownAgentError: Either name is unregistered. Nothing is
                delivered and no memory is modified.
        """
        if from_name not in self._agents:
            raise UnknownAgentError(from_name, role="Source")
        target = self.get_agent(to_name)

        message = Message(
            role="assistant",
            content=content,
            metadata={**(metadata or {}), "from": from_name},
        )
        self._record(
            f"Routing message from {from_name} to {to_name}: {preview(content)}"
        )
        target.receive_message(message)
        return message

    def send_user_message(
        self,
        to_name: str,
        content: str,
        metadata: dict[str, Any] | None = None,
    ) -> Message:
        """
        Deliver a user message to a registered agent.

        Raises:
            UnknownAgentError: The target is unregistered.
        """
        target = self.get_agent(to_name)

        message = Message(role="user", content=content, metadata=metadata)
        self._record(f"Routing user message to {to_name}: {preview(content)}")
        target.receive_message(message)
        return message

    async def dispatch(
        self,
        to_name: str,
        content: str,
        metadata: dict[str, Any] | None = None,
        forward_to: str | None = None,
    ) -> str:
        """
        Full round trip: deliver a user message, let the agent answer,
        optionally forward the answer to another agent.

        Both names are checked before anything is delivered.

        Returns:
            The agent's reply (its apology string if the provider failed).
        """
        agent = self.get_agent(to_name)
        if forward_to is not None:
            self.get_agent(forward_to)

        self.send_user_message(to_name, content, metadata)

        logger.info(
            "Dispatching to %s: '%s' (forward_to=%s)",
            to_name, content[:80], forward_to,
        )
        reply = await agent.process(content)

        if forward_to is not None:
            self.send_message(to_name, forward_to, reply)
        return reply

    # -----------------------------------------------------------------------
    # AgentObserver callbacks
    # -----------------------------------------------------------------------

    def on_conscience_log(self, entry: ConscienceLogEntry) -> None:
        self._append(entry)

    def on_message_sent(self, agent: Agent, message: Message) -> None:
        for observer in list(self._observers):
            try:
                observer.on_message_sent(agent, message)
            except Exception:
                logger.exception("Observer %r failed on message-sent", observer)

    # -----------------------------------------------------------------------
    # Journal
    # -----------------------------------------------------------------------

    def _record(self, text: str) -> None:
        self._append(ConscienceLogEntry(agent=ORCHESTRATOR_NAME, entry=text))

    def _append(self, entry: ConscienceLogEntry) -> None:
        self._journal.append(entry)
        logger.info(
            "[%s] %s: %s", entry.timestamp.isoformat(), entry.agent, entry.entry,
        )
        for observer in list(self._observers):
            try:
                observer.on_conscience_log(entry)
            except Exception:
                logger.exception("Observer %r failed on conscience-log", observer)
