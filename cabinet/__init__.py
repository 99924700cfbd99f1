# =============================================================================
# Cabinet Multi-Agent Core
# =============================================================================
# A multi-agent assistant for an accounting firm. Specialised agents
# (counsel, forecasting, review, sector watch, client strategy, safe
# advice, warehouse statistics) are registered with an orchestrator that
# routes messages between them and keeps a single audit journal.
#
# Package structure:
#   cabinet/
#   ├── api/          → FastAPI route handlers (agents, advisory, forecast,
#   │                    review, insights)
#   ├── agents/       → Agent base class, orchestrator, insights engine and
#   │                    the domain agents
#   ├── models/       → Pydantic V2 domain records and API schemas
#   ├── services/     → Completion and news providers, fenced-JSON contract
#   ├── config.py     → pydantic-settings configuration
#   └── main.py       → FastAPI host (lifespan, exception handlers)
# =============================================================================
