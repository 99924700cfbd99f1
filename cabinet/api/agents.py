# =============================================================================
# Agents API — Registry, Dispatch, Routing, Conscience Journal
# =============================================================================
#
#   GET  /agents                   → registered agents, registration order
#   POST /agents                   → register another instance of a kind
#   POST /agents/{name}/messages   → user message + agent reply (+ forward)
#   POST /agents/{from_name}/route → agent-to-agent delivery
#   GET  /conscience-log           → the session's audit journal
#
# Unknown agent names surface as 404 and duplicate names as 409 through
# the exception handlers installed in cabinet.main. Provider failures are
# not HTTP errors: the agent's apology is returned as its reply.
# =============================================================================

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from cabinet.agents import Cabinet, Orchestrator
from cabinet.api.deps import get_cabinet, get_orchestrator
from cabinet.models.domain import AgentInfo
from cabinet.models.requests import (
    AgentMessageRequest,
    RegisterAgentRequest,
    RouteMessageRequest,
)
from cabinet.models.responses import (
    AgentListResponse,
    AgentReplyResponse,
    ConscienceLogResponse,
    RouteResponse,
)
from cabinet.services.llm import create_provider_from_id

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Agents"])


@router.get(
    "/agents",
    response_model=AgentListResponse,
    summary="List registered agents",
)
async def list_agents(
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> AgentListResponse:
    return AgentListResponse(agents=orchestrator.get_agents())


@router.post(
    "/agents",
    response_model=AgentInfo,
    status_code=201,
    summary="Register an agent",
    description=(
        "Register another instance of a known agent kind under a new name, "
        "optionally with its own description and system prompt. "
        "Returns 409 if the name is already taken."
    ),
)
async def register_agent(
    request: RegisterAgentRequest,
    cabinet: Cabinet = Depends(get_cabinet),
) -> AgentInfo:
    llm = None
    if request.provider_id is not None:
        try:
            llm = create_provider_from_id(request.provider_id)
        except ValueError as e:
            # Unknown provider type or missing API key
            logger.error("Configuration error: %s", e)
            raise HTTPException(
                status_code=503,
                detail=f"Service configuration error: {e}",
            ) from e

    agent = cabinet.new_agent(
        request.kind,
        llm=llm,
        name=request.name,
        description=request.description,
        system_prompt=request.system_prompt,
    )
    cabinet.orchestrator.register_agent(agent)
    logger.info("Registered %s agent '%s' via API", request.kind, agent.name)
    return AgentInfo(name=agent.name, description=agent.description)


@router.post(
    "/agents/{name}/messages",
    response_model=AgentReplyResponse,
    summary="Send a user message to an agent",
)
async def send_to_agent(
    name: str,
    request: AgentMessageRequest,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> AgentReplyResponse:
    """
    Deliver the message, let the agent answer, and optionally forward the
    answer to another agent. Both names are checked before delivery.
    """
    reply = await orchestrator.dispatch(
        name,
        request.content,
        metadata=request.metadata,
        forward_to=request.forward_to,
    )
    return AgentReplyResponse(
        agent=name, response=reply, forwarded_to=request.forward_to,
    )


@router.post(
    "/agents/{from_name}/route",
    response_model=RouteResponse,
    summary="Route a message between two agents",
)
async def route_message(
    from_name: str,
    request: RouteMessageRequest,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> RouteResponse:
    message = orchestrator.send_message(
        from_name, request.to, request.content, request.metadata,
    )
    return RouteResponse(from_agent=from_name, to_agent=request.to, message=message)


@router.get(
    "/conscience-log",
    response_model=ConscienceLogResponse,
    summary="Session audit journal",
)
async def conscience_log(
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> ConscienceLogResponse:
    entries = orchestrator.get_conscience_log()
    return ConscienceLogResponse(entries=entries, total=len(entries))
