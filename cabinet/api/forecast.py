# =============================================================================
# Forecast & Review API
# =============================================================================
#
#   POST /forecast/hypothesis → ForecasterAgent.forecast_hypothesis()
#   POST /review/financials   → ReviewAgent.review_financials() against the
#                               warehouse's company records
#
# The hypothesis forecast always answers; `fallback=true` marks the
# default forecast used when the model could not produce one.
# =============================================================================

from __future__ import annotations

from fastapi import APIRouter, Depends

from cabinet.agents import ForecasterAgent, ReviewAgent, WarehouseQueryAgent
from cabinet.api.deps import get_forecaster, get_review, get_warehouse
from cabinet.models.domain import FinancialReview, HypothesisForecast
from cabinet.models.requests import FinancialReviewRequest, HypothesisRequest

router = APIRouter(tags=["Forecast & Review"])


@router.post(
    "/forecast/hypothesis",
    response_model=HypothesisForecast,
    summary="Forecast the impact of a business hypothesis",
)
async def forecast_hypothesis(
    request: HypothesisRequest,
    forecaster: ForecasterAgent = Depends(get_forecaster),
) -> HypothesisForecast:
    return await forecaster.forecast_hypothesis(request.hypothesis, request.sector)


@router.post(
    "/review/financials",
    response_model=FinancialReview,
    summary="Review a company's figures against its sector",
)
async def review_financials(
    request: FinancialReviewRequest,
    review: ReviewAgent = Depends(get_review),
    warehouse: WarehouseQueryAgent = Depends(get_warehouse),
) -> FinancialReview:
    return await review.review_financials(
        request.entries,
        request.company,
        warehouse.records,
        sector=request.sector,
    )
