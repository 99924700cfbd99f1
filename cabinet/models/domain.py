# =============================================================================
# Domain Records — Pydantic V2 Models
# =============================================================================
#
# Typed records for everything the agents exchange or produce:
#   - Conversation:  Message, ConscienceLogEntry
#   - Insights:      InsightCandidate, Insight, AdmissionResult
#   - Forecasting:   Scenario, ForecastScenarios, HypothesisForecast
#   - Counsel:       MissionProposal
#   - Review:        AccountingEntry, CompanyRecord, FinancialKPIs,
#                    SectorComparison, Anomaly, MissionRecommendation,
#                    ODProposal, FinancialReview
#   - Advisory:      AdvisorResponse, WarehouseAnswer
#   - Errors:        StructuredError
#
# DESIGN DECISION: Records parsed from LLM output allow extra keys.
# The model is asked for a shape, but it often adds useful fields
# (fees, planning, sources...). `extra="allow"` validates the fields we
# rely on and keeps the rest, so nothing the model produced is lost.
#
# DESIGN DECISION: French accounting vocabulary is kept where it is the
# domain's own (ca, resultat, dso, OD...). FEC/JSON keys are accepted as
# aliases so records can be built straight from the firm's exports.
# =============================================================================

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


def _now() -> datetime:
    return datetime.now(UTC)


# ---------------------------------------------------------------------------
# Conversation
# ---------------------------------------------------------------------------

Role = Literal["system", "user", "assistant"]


class Message(BaseModel):
    """A single conversation turn. Immutable once created."""

    role: Role
    content: str
    timestamp: datetime = Field(default_factory=_now)
    metadata: dict[str, Any] | None = None

    model_config = ConfigDict(frozen=True)


class ConscienceLogEntry(BaseModel):
    """One line of the append-only audit trail."""

    agent: str
    timestamp: datetime = Field(default_factory=_now)
    entry: str

    model_config = ConfigDict(frozen=True)


class AgentInfo(BaseModel):
    """Public identity of a registered agent."""

    name: str
    description: str


# ---------------------------------------------------------------------------
# Insights
# ---------------------------------------------------------------------------


class InsightType(str, Enum):
    FINANCIAL = "financial"
    SECTORAL = "sectoral"
    OPERATIONAL = "operational"
    REGULATORY = "regulatory"
    STRATEGIC = "strategic"
    RISK = "risk"


class ConfidenceLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# Confidence rank, also used as the weight in relevance x confidence scoring
CONFIDENCE_WEIGHTS: dict[ConfidenceLevel, int] = {
    ConfidenceLevel.LOW: 1,
    ConfidenceLevel.MEDIUM: 2,
    ConfidenceLevel.HIGH: 3,
}


class InsightSource(BaseModel):
    agent: str
    data: str = ""


class InsightCandidate(BaseModel):
    """An analytical finding submitted to the insights engine."""

    type: InsightType
    title: str
    description: str
    confidence: ConfidenceLevel
    relevance: int = Field(ge=1, le=10)
    source: InsightSource
    metadata: dict[str, Any] | None = None


class Insight(InsightCandidate):
    """A candidate once the engine has assigned it an id and timestamp."""

    id: str
    timestamp: datetime = Field(default_factory=_now)

    @property
    def score(self) -> int:
        """Ranking score: relevance x confidence weight."""
        return self.relevance * CONFIDENCE_WEIGHTS[self.confidence]


class AdmissionResult(BaseModel):
    """Outcome of InsightsEngine.add_insight."""

    insight: Insight
    admitted: bool


# ---------------------------------------------------------------------------
# Forecasting
# ---------------------------------------------------------------------------


class MonthlyValue(BaseModel):
    month: int
    value: float


class Scenario(BaseModel):
    """One 24-month projection."""

    revenue_evolution: list[MonthlyValue] = Field(default_factory=list)
    cash_evolution: list[MonthlyValue] = Field(default_factory=list)
    wc_requirements: list[MonthlyValue] = Field(default_factory=list)
    risks: list[str] = Field(default_factory=list)
    opportunities: list[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="allow")


class ForecastScenarios(BaseModel):
    """The neutral / optimized / critical trio produced by the forecaster."""

    neutral_scenario: Scenario
    optimized_scenario: Scenario
    critical_scenario: Scenario

    model_config = ConfigDict(extra="allow")


class HypothesisScenario(BaseModel):
    """Headline deltas for one outcome of a business hypothesis."""

    revenue: str | float | None = Field(default=None, alias="CA")
    margin: str | float | None = Field(default=None, alias="marge")
    cash: str | float | None = Field(default=None, alias="tresorerie")
    headcount: str | float | None = Field(default=None, alias="effectifs")
    investments: str | float | None = Field(default=None, alias="investissements")

    model_config = ConfigDict(extra="allow", populate_by_name=True)


class ImpactScore(BaseModel):
    financial: float
    operational: float
    investment: float
    total: float


class HypothesisForecast(BaseModel):
    """Full answer to "what if" questions asked to the forecaster."""

    hypothesis: str
    sector: str | None = None
    scenarios: dict[str, HypothesisScenario]
    justification: str
    key_factors: list[str] = Field(default_factory=list)
    reliability: float
    insights: list[str] = Field(default_factory=list)
    impact_scores: dict[str, ImpactScore] = Field(default_factory=dict)
    fallback: bool = False


# ---------------------------------------------------------------------------
# Counsel
# ---------------------------------------------------------------------------


class MissionProposal(BaseModel):
    """A billable engagement proposed to a client."""

    name: str = Field(validation_alias=AliasChoices("name", "titre", "title", "mission"))
    description: str = ""
    impact: str | None = None

    model_config = ConfigDict(extra="allow", populate_by_name=True)


# ---------------------------------------------------------------------------
# Review
# ---------------------------------------------------------------------------


class AccountingEntry(BaseModel):
    """A single FEC line, reduced to what the review uses."""

    account_number: str = Field(alias="compteNum")
    account_label: str = Field(default="", alias="compteLib")
    amount: float = Field(alias="montant")
    debit: bool
    date: str | None = Field(default=None, alias="dateEcr")
    journal_code: str | None = Field(default=None, alias="journalCode")
    label: str | None = Field(default=None, alias="ecritureLib")

    model_config = ConfigDict(populate_by_name=True)


class CompanyRecord(BaseModel):
    """Headline figures of one company, client or warehouse peer."""

    siren: str | None = None
    raison_sociale: str | None = Field(default=None, alias="raisonSociale")
    secteur: str | None = None
    ca: float | None = None
    resultat: float | None = None
    effectif: float | None = None
    charges: float | None = None
    marge: float | None = None
    dso: float | None = None
    dpo: float | None = None
    tresorerie: float | None = None

    model_config = ConfigDict(extra="allow", populate_by_name=True)


class FinancialKPIs(BaseModel):
    ca: float = 0.0
    resultat: float = 0.0
    effectif: float = 0.0
    charges: float = 0.0
    marge: float = 0.0
    dso: float = 45.0
    dpo: float = 30.0
    tresorerie: float = 0.0
    account_balances: dict[str, float] = Field(default_factory=dict)


class SectorComparison(BaseModel):
    value: float
    average: float
    gap: float
    gap_pct: float


class Severity(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class Anomaly(BaseModel):
    metric: str
    label: str
    gap_pct: float
    gap_value: float
    severity: Severity
    description: str


class MissionType(str, Enum):
    RH = "RH"
    GESTION = "GESTION"
    JURIDIQUE = "JURIDIQUE"
    FISCAL = "FISCAL"
    OPTIMISATION = "OPTIMISATION"


class MissionRecommendation(BaseModel):
    title: str
    description: str
    type: MissionType = MissionType.OPTIMISATION
    estimated_impact: str = ""
    priority: int
    difficulty: int
    duration: str = ""


class FinancialReview(BaseModel):
    kpis: FinancialKPIs
    comparisons: dict[str, SectorComparison]
    anomalies: list[Anomaly]
    recommendations: list[MissionRecommendation]
    recommendations_fallback: bool = False
    # No peer matched the sector; comparisons use every peer
    sector_fallback: bool = False


class ODMovement(BaseModel):
    """One debit/credit line of a correcting entry."""

    account: str = Field(validation_alias=AliasChoices("account", "compte"))
    label: str = Field(default="", validation_alias=AliasChoices("label", "libelle"))
    debit: float = 0.0
    credit: float = 0.0

    model_config = ConfigDict(extra="allow", populate_by_name=True)


class ODProposal(BaseModel):
    """A proposed correcting entry (opération diverse)."""

    description: str
    date: str | None = None
    movements: list[ODMovement] = Field(
        default_factory=list,
        validation_alias=AliasChoices("movements", "mouvements"),
    )
    justification: str = ""
    impact: str | None = None

    model_config = ConfigDict(extra="allow", populate_by_name=True)


# ---------------------------------------------------------------------------
# Advisory
# ---------------------------------------------------------------------------


class SafetyLevel(str, Enum):
    SAFE = "safe"
    REFORMULATED = "reformulated"
    BLOCKED = "blocked"


class AdvisorResponse(BaseModel):
    response: str
    safety: SafetyLevel
    original_query: str


class MetricStatistics(BaseModel):
    mean: float
    median: float
    count: int


class WarehouseData(BaseModel):
    metrics: list[str]
    sector: str
    statistics: dict[str, MetricStatistics] = Field(default_factory=dict)
    # The requested sector matched no record
    sector_fallback: bool = False


class WarehouseAnswer(BaseModel):
    response: str
    data: WarehouseData | None
    source_count: int
    confidence: float
    original_query: str


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class StructuredError(BaseModel):
    """Typed error payload returned instead of raising from extractions."""

    error: str
