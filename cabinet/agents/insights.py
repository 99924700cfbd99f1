# =============================================================================
# Insights Engine — Confidence-Weighted Cross-Source Findings
# =============================================================================
#
# Collects analytical findings ("insights") from any component, keeps only
# the credible and relevant ones, bounds how many are kept per category,
# and turns the best of them into a narrative summary.
#
# ADMISSION:  confidence rank >= min_confidence AND relevance >= min_relevance
# RETENTION:  at most max_insights_per_type per InsightType; the surplus with
#             the lowest score is evicted
# SCORE:      relevance x confidence weight (low=1, medium=2, high=3)
#
# DESIGN DECISION: Explicit admission result.
# add_insight() returns the constructed Insight together with an
# `admitted` flag, so callers can tell stored findings from filtered ones.
#
# DESIGN DECISION: Deterministic tie-break.
# Ranking uses Python's stable sort on the score, so among equal scores
# the earliest-inserted insight ranks first and the most recent one is
# evicted first.
#
# DESIGN DECISION: One engine per host, injected.
# The host builds the engine once at startup and passes it around. The
# admit-then-evict sequence runs under a lock, since FastAPI may call
# add_insight from threadpool workers.
# =============================================================================

from __future__ import annotations

import asyncio
import itertools
import logging
import threading
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from cabinet.config import settings
from cabinet.models.domain import (
    CONFIDENCE_WEIGHTS,
    AdmissionResult,
    ConfidenceLevel,
    Insight,
    InsightCandidate,
    InsightSource,
    InsightType,
)
from cabinet.services.llm import LLMProvider
from cabinet.services.structured import (
    StructuredOutputError,
    extract_json_block,
    to_prompt_json,
    with_json_instruction,
)

logger = logging.getLogger(__name__)

ENGINE_NAME = "InsightsEngine"

NO_INSIGHTS_MESSAGE = "Aucun insight disponible actuellement."
SUMMARY_FAILURE_MESSAGE = "Erreur lors de la génération du résumé des insights."

SUMMARY_TOP_N = 10


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

_CROSS_SYSTEM = (
    "Tu es un moteur d'analyse multidimensionnelle expert en détection "
    "d'insights croisés.\n"
    "Tu excelles à identifier des patterns et connections non évidentes "
    "entre différentes sources de données.\n"
    "Tes insights doivent être actionnables, précis et pertinents pour un "
    "cabinet d'expertise comptable."
)

_SUMMARY_SYSTEM = (
    "Tu es un expert en synthèse stratégique pour cabinet d'expertise "
    "comptable.\n"
    "Ta mission est de transformer des insights complexes en "
    "recommandations claires et actionnables.\n"
    "Ton style est concis, précis et professionnel."
)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass
class InsightsConfig:
    """Admission and retention policy."""

    min_confidence: ConfidenceLevel = ConfidenceLevel.MEDIUM
    min_relevance: int = 5
    max_insights_per_type: int = 10
    context_window_days: int = 30  # informational only

    @classmethod
    def from_settings(cls) -> InsightsConfig:
        return cls(
            min_confidence=ConfidenceLevel(settings.insights_min_confidence),
            min_relevance=settings.insights_min_relevance,
            max_insights_per_type=settings.insights_max_per_type,
            context_window_days=settings.insights_context_window_days,
        )


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


def insight_score(insight: InsightCandidate) -> int:
    """relevance x confidence weight."""
    return insight.relevance * CONFIDENCE_WEIGHTS[insight.confidence]


def rank_insights(insights: Iterable[Insight]) -> list[Insight]:
    """Highest score first; equal scores keep their input order."""
    return sorted(insights, key=insight_score, reverse=True)


def map_insight_type(value: Any) -> InsightType:
    """Map a free-text type to InsightType by keyword containment."""
    text = str(value or "").lower()
    if "financ" in text:
        return InsightType.FINANCIAL
    if "sector" in text:
        return InsightType.SECTORAL
    if "operat" in text:
        return InsightType.OPERATIONAL
    if "regul" in text:
        return InsightType.REGULATORY
    if "strat" in text:
        return InsightType.STRATEGIC
    if "risk" in text:
        return InsightType.RISK
    return InsightType.STRATEGIC


def map_confidence(value: Any) -> ConfidenceLevel:
    """Map a free-text confidence to ConfidenceLevel by keyword containment."""
    text = str(value or "").lower()
    if "high" in text:
        return ConfidenceLevel.HIGH
    if "med" in text:
        return ConfidenceLevel.MEDIUM
    if "low" in text:
        return ConfidenceLevel.LOW
    return ConfidenceLevel.MEDIUM


def _coerce_relevance(value: Any) -> int:
    try:
        relevance = int(round(float(value)))
    except (TypeError, ValueError, OverflowError):
        relevance = 1
    return max(1, min(10, relevance))


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class InsightsEngine:
    """Aggregator of scored findings with per-type retention."""

    def __init__(
        self,
        llm: LLMProvider,
        config: InsightsConfig | None = None,
        timeout: float | None = None,
    ) -> None:
        self.config = config or InsightsConfig.from_settings()
        self.timeout = timeout if timeout is not None else settings.llm_timeout_seconds
        self._llm = llm
        self._insights: list[Insight] = []
        self._listeners: list[Callable[[Insight], None]] = []
        self._lock = threading.Lock()
        self._sequence = itertools.count(1)

    def add_listener(self, listener: Callable[[Insight], None]) -> None:
        """Subscribe to new-insight events (admitted insights only)."""
        self._listeners.append(listener)

    # -----------------------------------------------------------------------
    # Admission
    # -----------------------------------------------------------------------

    def add_insight(self, candidate: InsightCandidate) -> AdmissionResult:
        """
        Build an Insight from `candidate` and store it if it passes the
        confidence/relevance filter, then enforce the per-type cap.
        """
        insight = Insight(
            **candidate.model_dump(),
            id=self._next_id(),
        )

        if not self._passes_filter(insight):
            logger.debug(
                "Insight rejected: %s (confidence=%s, relevance=%d)",
                insight.title, insight.confidence.value, insight.relevance,
            )
            return AdmissionResult(insight=insight, admitted=False)

        with self._lock:
            self._insights.append(insight)
            evicted = self._enforce_cap(insight.type)
        admitted = insight.id not in evicted

        if admitted:
            logger.info(
                "Insight admitted: [%s] %s (score=%d)",
                insight.type.value, insight.title, insight_score(insight),
            )
            for listener in list(self._listeners):
                try:
                    listener(insight)
                except Exception:
                    logger.exception("new-insight listener failed")
        else:
            logger.info(
                "Insight evicted on arrival: [%s] %s", insight.type.value, insight.title,
            )

        return AdmissionResult(insight=insight, admitted=admitted)

    def _passes_filter(self, insight: Insight) -> bool:
        minimum = CONFIDENCE_WEIGHTS[self.config.min_confidence]
        return (
            CONFIDENCE_WEIGHTS[insight.confidence] >= minimum
            and insight.relevance >= self.config.min_relevance
        )

    def _enforce_cap(self, insight_type: InsightType) -> set[str]:
        """Evict the lowest-ranked surplus of one type. Caller holds the lock."""
        same_type = [i for i in self._insights if i.type == insight_type]
        if len(same_type) <= self.config.max_insights_per_type:
            return set()

        surplus = rank_insights(same_type)[self.config.max_insights_per_type:]
        evicted = {i.id for i in surplus}
        self._insights = [i for i in self._insights if i.id not in evicted]
        logger.info(
            "Evicted %d %s insight(s) over the cap of %d",
            len(evicted), insight_type.value, self.config.max_insights_per_type,
        )
        return evicted

    def _next_id(self) -> str:
        return f"ins_{int(time.time() * 1000)}_{next(self._sequence)}"

    # -----------------------------------------------------------------------
    # Reads
    # -----------------------------------------------------------------------

    def get_all_insights(self) -> list[Insight]:
        return list(self._insights)

    def get_insights_by_type(self, insight_type: InsightType) -> list[Insight]:
        return [i for i in self._insights if i.type == insight_type]

    # -----------------------------------------------------------------------
    # Generation
    # -----------------------------------------------------------------------

    async def generate_cross_insights(
        self,
        financial_data: Any,
        sectoral_data: Any,
        client_data: Any,
        regulatory_data: Any,
    ) -> list[Insight]:
        """
        Ask the model for 5-10 insights crossing the four sources and run
        each through add_insight().

        Returns every insight constructed, admitted or not. Returns an
        empty list on provider or parse failure.
        """
        prompt = with_json_instruction(
            "Analyse ces différentes sources de données pour identifier des "
            "insights croisés actionnables:\n\n"
            f"Données financières:\n{to_prompt_json(financial_data)}\n\n"
            f"Données sectorielles:\n{to_prompt_json(sectoral_data)}\n\n"
            f"Données client:\n{to_prompt_json(client_data)}\n\n"
            f"Données réglementaires:\n{to_prompt_json(regulatory_data)}\n\n"
            "Génère 5 à 10 insights actionnables en croisant ces différentes "
            "sources. Chaque insight doit révéler une information non évidente "
            "qui émerge de la mise en relation de plusieurs sources.\n\n"
            "Renvoie une liste JSON d'objets avec les clés:\n"
            "- type (financial, sectoral, operational, regulatory, strategic, risk)\n"
            "- title: titre court et explicite\n"
            "- description: description détaillée de l'insight\n"
            "- confidence (low, medium, high)\n"
            "- relevance: pertinence stratégique (1-10)\n"
            "- source: combinaison de données ayant permis cet insight"
        )

        try:
            response = await asyncio.wait_for(
                self._llm.complete(
                    messages=[{"role": "user", "content": prompt}],
                    system=_CROSS_SYSTEM,
                    temperature=0.5,
                ),
                timeout=self.timeout,
            )
        except Exception as e:
            logger.warning("Cross insights generation failed: %s", e)
            return []

        try:
            raw_insights = extract_json_block(response.content)
        except StructuredOutputError as e:
            logger.warning("Could not parse cross insights: %s", e)
            return []

        if isinstance(raw_insights, dict):
            raw_insights = raw_insights.get("insights", [])
        if not isinstance(raw_insights, list):
            logger.warning("Cross insights block is not a list")
            return []

        constructed: list[Insight] = []
        for raw in raw_insights:
            if not isinstance(raw, dict):
                continue
            candidate = InsightCandidate(
                type=map_insight_type(raw.get("type")),
                title=str(raw.get("title") or "Insight"),
                description=str(raw.get("description") or ""),
                confidence=map_confidence(raw.get("confidence")),
                relevance=_coerce_relevance(raw.get("relevance")),
                source=InsightSource(
                    agent=ENGINE_NAME, data=str(raw.get("source") or ""),
                ),
                metadata={"generated": True},
            )
            constructed.append(self.add_insight(candidate).insight)

        logger.info(
            "Cross insights: %d constructed, %d stored in total",
            len(constructed), len(self._insights),
        )
        return constructed

    async def generate_insights_summary(self) -> str:
        """Narrative summary of the top insights."""
        insights = self.get_all_insights()
        if not insights:
            return NO_INSIGHTS_MESSAGE

        top = rank_insights(insights)[:SUMMARY_TOP_N]
        prompt = (
            "Voici les insights les plus pertinents identifiés par le système:\n\n"
            f"{to_prompt_json(top)}\n\n"
            "Génère un résumé synthétique (3-4 paragraphes) qui:\n"
            "1. Identifie les thèmes principaux qui émergent de ces insights\n"
            "2. Met en évidence les opportunités stratégiques clés\n"
            "3. Souligne les risques majeurs à surveiller\n"
            "4. Propose 2-3 axes d'action prioritaires\n\n"
            "Le résumé doit être concis, actionnable et écrit dans un style "
            "professionnel adapté à un expert-comptable."
        )

        try:
            response = await asyncio.wait_for(
                self._llm.complete(
                    messages=[{"role": "user", "content": prompt}],
                    system=_SUMMARY_SYSTEM,
                    temperature=0.4,
                ),
                timeout=self.timeout,
            )
        except Exception as e:
            logger.warning("Insights summary failed: %s", e)
            return SUMMARY_FAILURE_MESSAGE

        return response.content
