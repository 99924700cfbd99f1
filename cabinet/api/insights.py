# =============================================================================
# Insights API — Store, Cross-Source Generation, Summary
# =============================================================================
#
#   GET  /insights          → stored insights (optionally one type)
#   POST /insights          → submit a candidate; returns AdmissionResult
#   POST /insights/cross    → generate insights from four data sources
#   GET  /insights/summary  → narrative summary of the top insights
#
# A rejected candidate is not an error: POST /insights answers 200 with
# admitted=false.
# =============================================================================

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query

from cabinet.agents import InsightsEngine
from cabinet.api.deps import get_insights_engine
from cabinet.models.domain import AdmissionResult, InsightCandidate, InsightType
from cabinet.models.requests import CrossInsightsRequest
from cabinet.models.responses import InsightListResponse, InsightsSummaryResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/insights", tags=["Insights"])


@router.get("", response_model=InsightListResponse, summary="List stored insights")
async def list_insights(
    insight_type: InsightType | None = Query(default=None, alias="type"),
    engine: InsightsEngine = Depends(get_insights_engine),
) -> InsightListResponse:
    if insight_type is None:
        insights = engine.get_all_insights()
    else:
        insights = engine.get_insights_by_type(insight_type)
    return InsightListResponse(insights=insights, total=len(insights))


@router.post("", response_model=AdmissionResult, summary="Submit an insight")
async def add_insight(
    candidate: InsightCandidate,
    engine: InsightsEngine = Depends(get_insights_engine),
) -> AdmissionResult:
    return engine.add_insight(candidate)


@router.post(
    "/cross",
    response_model=InsightListResponse,
    summary="Generate cross-source insights",
    description=(
        "Ask the model for insights crossing financial, sectoral, client and "
        "regulatory data. Returns every insight constructed, admitted or "
        "not; an empty list when generation failed."
    ),
)
async def cross_insights(
    request: CrossInsightsRequest,
    engine: InsightsEngine = Depends(get_insights_engine),
) -> InsightListResponse:
    insights = await engine.generate_cross_insights(
        request.financial, request.sectoral, request.client, request.regulatory,
    )
    return InsightListResponse(insights=insights, total=len(insights))


@router.get(
    "/summary",
    response_model=InsightsSummaryResponse,
    summary="Summarise the top insights",
)
async def insights_summary(
    engine: InsightsEngine = Depends(get_insights_engine),
) -> InsightsSummaryResponse:
    summary = await engine.generate_insights_summary()
    return InsightsSummaryResponse(
        summary=summary, insight_count=len(engine.get_all_insights()),
    )
