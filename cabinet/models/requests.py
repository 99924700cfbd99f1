# =============================================================================
# API Request Models — Pydantic V2 Schemas
# =============================================================================
#
# These models define the shape of data coming INTO the host API.
# FastAPI uses them for:
# 1. Request body validation (automatic 422 errors for invalid data)
# 2. OpenAPI documentation generation (visible at /docs)
# 3. Type hints for IDE autocompletion in route handlers
#
# Domain records (insight candidates, company records...) are reused from
# cabinet.models.domain rather than redeclared here.
# =============================================================================

from typing import Any, Literal

from pydantic import BaseModel, Field

from cabinet.models.domain import AccountingEntry, CompanyRecord


class AgentMessageRequest(BaseModel):
    """
    Request body for POST /agents/{name}/messages — talk to one agent.

    Example:
        {
            "content": "Quels leviers pour améliorer la trésorerie ?",
            "forward_to": "Conseiller Stratégique IA"
        }
    """

    content: str = Field(
        ...,
        min_length=1,
        max_length=20000,
        description="The user message delivered to the agent",
        examples=["Quels leviers pour améliorer la trésorerie ?"],
    )

    metadata: dict[str, Any] | None = Field(
        default=None,
        description="Free-form metadata stored with the message",
    )

    # Optional: deliver the agent's reply to another registered agent
    forward_to: str | None = Field(
        default=None,
        description="Name of an agent that receives the reply as a message",
    )


class RouteMessageRequest(BaseModel):
    """Request body for POST /agents/{from_name}/route — agent-to-agent."""

    to: str = Field(..., min_length=1, description="Target agent name")
    content: str = Field(..., min_length=1, max_length=20000)
    metadata: dict[str, Any] | None = None


class AdvisorRequest(BaseModel):
    """Request body for POST /advisor."""

    query: str = Field(
        ...,
        min_length=1,
        max_length=5000,
        examples=["Comment améliorer la rentabilité de mon entreprise ?"],
    )


class WarehouseQueryRequest(BaseModel):
    """Request body for POST /warehouse/query."""

    question: str = Field(
        ...,
        min_length=1,
        max_length=5000,
        examples=["Quelle est la marge moyenne dans le secteur ?"],
    )
    sector: str | None = Field(default=None, examples=["Programmation informatique"])


class HypothesisRequest(BaseModel):
    """Request body for POST /forecast/hypothesis."""

    hypothesis: str = Field(
        ...,
        min_length=3,
        max_length=2000,
        examples=["Recruter 2 développeurs supplémentaires"],
    )
    sector: str | None = None


class CrossInsightsRequest(BaseModel):
    """
    Request body for POST /insights/cross.

    Each source is passed to the model as JSON; any shape is accepted.
    """

    financial: Any = None
    sectoral: Any = None
    client: Any = None
    regulatory: Any = None


class RegisterAgentRequest(BaseModel):
    """
    Request body for POST /agents — register another instance of a known
    agent kind under its own name.

    Example:
        {"kind": "counsel", "name": "Conseiller Fiscal", "description": "..."}
    """

    kind: Literal[
        "counsel",
        "forecaster",
        "review",
        "sectoral",
        "client_strategy",
        "safe_advisor",
        "warehouse",
    ]
    name: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
    system_prompt: str | None = None

    # Optional: run this agent on its own model, e.g.
    # "anthropic/claude-haiku-4-5" or "openai_compatible/gpt-4o@https://gw/v1"
    provider_id: str | None = Field(
        default=None,
        description="Provider id ('type/model' or 'type/model@base_url')",
    )


class FinancialReviewRequest(BaseModel):
    """
    Request body for POST /review/financials.

    Peers are the warehouse's company records; `sector` defaults to the
    company's own sector.
    """

    entries: list[AccountingEntry] = Field(default_factory=list)
    company: CompanyRecord
    sector: str | None = None
