# =============================================================================
# API Response Models — Pydantic V2 Schemas
# =============================================================================
#
# These models define the shape of data coming OUT of the host API.
# They serve as the contract between the core and its front ends:
# 1. Ensure consistent response structure across all endpoints
# 2. Automatically serialized to JSON by FastAPI
# 3. Generate OpenAPI response schemas (visible at /docs)
#
# Domain records that are already the right shape (AdvisorResponse,
# WarehouseAnswer, HypothesisForecast, Insight...) are returned as is;
# the models below wrap what needs a envelope.
# =============================================================================

from pydantic import BaseModel, Field

from cabinet.models.domain import AgentInfo, ConscienceLogEntry, Insight, Message


class HealthResponse(BaseModel):
    """Response for GET /health — confirms the API is running."""

    status: str = "ok"
    version: str
    service: str
    agents: int = Field(description="Number of registered agents")


class AgentListResponse(BaseModel):
    """Response for GET /agents — registered agents in registration order."""

    agents: list[AgentInfo]


class AgentReplyResponse(BaseModel):
    """
    Response for POST /agents/{name}/messages.

    `response` is the agent's answer, or its apology when the completion
    provider failed. Provider failures are not HTTP errors.
    """

    agent: str
    response: str
    forwarded_to: str | None = None


class RouteResponse(BaseModel):
    """Response for POST /agents/{from_name}/route — the delivered message."""

    from_agent: str
    to_agent: str
    message: Message


class ConscienceLogResponse(BaseModel):
    """Response for GET /conscience-log — full journal, oldest first."""

    entries: list[ConscienceLogEntry]
    total: int


class InsightListResponse(BaseModel):
    """Response for GET /insights and POST /insights/cross."""

    insights: list[Insight]
    total: int


class InsightsSummaryResponse(BaseModel):
    """Response for GET /insights/summary."""

    summary: str
    insight_count: int
