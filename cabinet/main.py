# =============================================================================
# Host Application — FastAPI Entry Point
# =============================================================================
#
# Thin HTTP host around the multi-agent core. At startup the lifespan:
#   1. configures logging from settings.log_level
#   2. builds the completion provider (and the news provider if configured)
#   3. loads the mutualised company records for the warehouse agent
#   4. assembles the Cabinet (orchestrator + agents + insights engine)
#
# DESIGN DECISION: A missing LLM key does not stop the process.
# The provider factory raises ValueError; the lifespan records the error
# and every endpoint needing the core answers 503, while /health stays up
# and reports zero agents.
#
# Run with:
#   uvicorn cabinet.main:app --reload
# =============================================================================

from __future__ import annotations

import json
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import TypeAdapter

from cabinet.agents import build_cabinet
from cabinet.api import advisor, agents, forecast, insights
from cabinet.config import settings
from cabinet.exceptions import AgentNameConflictError, UnknownAgentError
from cabinet.models.domain import CompanyRecord
from cabinet.models.responses import HealthResponse
from cabinet.services.llm import get_llm_provider
from cabinet.services.news import get_news_provider

logger = logging.getLogger(__name__)

_records_adapter = TypeAdapter(list[CompanyRecord])


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def load_warehouse_records(path: str | None) -> list[CompanyRecord]:
    """Company records from a JSON list file; empty when no path is set."""
    if not path:
        return []
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    records = _records_adapter.validate_python(raw)
    logger.info("Loaded %d warehouse records from %s", len(records), path)
    return records


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    configure_logging()
    logger.info("Starting %s v%s", settings.app_name, settings.app_version)

    try:
        llm = get_llm_provider()
    except ValueError as e:
        logger.error("Completion provider not configured: %s", e)
        app.state.cabinet = None
        app.state.config_error = str(e)
        yield
        return

    try:
        news = get_news_provider()
    except ValueError as e:
        logger.warning("News provider disabled: %s", e)
        news = None

    app.state.cabinet = build_cabinet(
        llm,
        news=news,
        records=load_warehouse_records(settings.warehouse_data_path),
    )
    yield
    logger.info("Shutting down %s", settings.app_name)


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan,
    )

    @app.exception_handler(UnknownAgentError)
    async def unknown_agent_handler(
        request: Request, exc: UnknownAgentError,
    ) -> JSONResponse:
        logger.warning("%s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(AgentNameConflictError)
    async def name_conflict_handler(
        request: Request, exc: AgentNameConflictError,
    ) -> JSONResponse:
        logger.warning("%s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=409, content={"detail": str(exc)})

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health(request: Request) -> HealthResponse:
        cabinet = getattr(request.app.state, "cabinet", None)
        return HealthResponse(
            status="ok" if cabinet is not None else "degraded",
            version=settings.app_version,
            service=settings.app_name,
            agents=len(cabinet.orchestrator.get_agents()) if cabinet else 0,
        )

    app.include_router(agents.router)
    app.include_router(advisor.router)
    app.include_router(forecast.router)
    app.include_router(insights.router)
    return app


app = create_app()
