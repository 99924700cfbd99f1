# =============================================================================
# Advisory API — Safe Advice and Warehouse Questions
# =============================================================================
#
#   POST /advisor          → SafeAdvisorAgent.advise()
#   POST /warehouse/query  → WarehouseQueryAgent.query()
#
# Both agents answer every request: a blocked query or a provider failure
# is a normal 200 response described by its `safety` / `data` fields.
# =============================================================================

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from cabinet.agents import SafeAdvisorAgent, WarehouseQueryAgent
from cabinet.api.deps import get_advisor, get_warehouse
from cabinet.models.domain import AdvisorResponse, WarehouseAnswer
from cabinet.models.requests import AdvisorRequest, WarehouseQueryRequest

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Advisory"])


@router.post(
    "/advisor",
    response_model=AdvisorResponse,
    summary="Ask the safe advisor",
    description=(
        "General accounting advice. Tax or legal questions get a general "
        "answer with a warning; questions involving fraud, illegality or "
        "money laundering are refused."
    ),
)
async def advise(
    request: AdvisorRequest,
    advisor: SafeAdvisorAgent = Depends(get_advisor),
) -> AdvisorResponse:
    result = await advisor.advise(request.query)
    logger.info("Advisor answered with safety=%s", result.safety.value)
    return result


@router.post(
    "/warehouse/query",
    response_model=WarehouseAnswer,
    summary="Query the mutualised data warehouse",
)
async def warehouse_query(
    request: WarehouseQueryRequest,
    warehouse: WarehouseQueryAgent = Depends(get_warehouse),
) -> WarehouseAnswer:
    return await warehouse.query(request.question, sector=request.sector)
