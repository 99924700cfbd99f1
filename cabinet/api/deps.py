# =============================================================================
# API Dependencies — Components from Application State
# =============================================================================
#
# The host builds one Cabinet (orchestrator, insights engine, agents) in
# the FastAPI lifespan and stores it on app.state. Route handlers receive
# its parts through the dependencies below.
#
# DESIGN DECISION: FastAPI dependency (not module globals) for components.
# - Each endpoint declares exactly what it uses via Depends(...)
# - Testable via dependency_overrides or by setting app.state.cabinet
# - A misconfigured provider (missing API key) leaves app.state.cabinet
#   unset and every dependent endpoint answers 503 instead of crashing
#   the process at startup
# =============================================================================

from __future__ import annotations

import logging

from fastapi import Depends, HTTPException, Request

from cabinet.agents import (
    Cabinet,
    ForecasterAgent,
    InsightsEngine,
    Orchestrator,
    ReviewAgent,
    SafeAdvisorAgent,
    WarehouseQueryAgent,
)

logger = logging.getLogger(__name__)


def get_cabinet(request: Request) -> Cabinet:
    """
    The session's Cabinet.

    Raises:
        HTTPException 503: The completion provider could not be configured.
    """
    cabinet: Cabinet | None = getattr(request.app.state, "cabinet", None)
    if cabinet is None:
        error = getattr(request.app.state, "config_error", "not initialised")
        raise HTTPException(
            status_code=503,
            detail=f"Service configuration error: {error}",
        )
    return cabinet


def get_orchestrator(cabinet: Cabinet = Depends(get_cabinet)) -> Orchestrator:
    return cabinet.orchestrator


def get_insights_engine(cabinet: Cabinet = Depends(get_cabinet)) -> InsightsEngine:
    return cabinet.insights


def get_advisor(cabinet: Cabinet = Depends(get_cabinet)) -> SafeAdvisorAgent:
    return cabinet.advisor


def get_warehouse(cabinet: Cabinet = Depends(get_cabinet)) -> WarehouseQueryAgent:
    return cabinet.warehouse


def get_forecaster(cabinet: Cabinet = Depends(get_cabinet)) -> ForecasterAgent:
    return cabinet.forecaster


def get_review(cabinet: Cabinet = Depends(get_cabinet)) -> ReviewAgent:
    return cabinet.review
