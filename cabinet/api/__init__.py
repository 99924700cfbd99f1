# =============================================================================
# API Package — FastAPI Route Handlers
# =============================================================================
# Each module defines a FastAPI APIRouter for one area:
#   - agents.py: Registry listing/registration, dispatch, routing, journal
#   - advisor.py: Safe advisor and warehouse questions
#   - forecast.py: Hypothesis forecasting and financial review
#   - insights.py: Insight submission, cross-source generation, summary
#   - deps.py: Dependencies reading the Cabinet from app.state
# =============================================================================
