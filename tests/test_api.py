# =============================================================================
# Unit Tests — Host API
# =============================================================================
#
# Exercises the FastAPI host without API keys or a running server.
# The Cabinet is built around an AsyncMock provider and placed on
# app.state directly; TestClient is used without its context manager so
# the lifespan (which would build real providers) does not run.
#
# Test groups:
#   1. Health and degraded mode
#   2. Agents: list, register, dispatch, route, journal
#   3. Advisory and warehouse
#   4. Insights
#   5. Forecast and review
#   6. Request model validation
# =============================================================================

from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient
from pydantic import ValidationError

from cabinet.agents import InsightsConfig, build_cabinet
from cabinet.main import create_app
from cabinet.models.domain import CompanyRecord, ConfidenceLevel
from cabinet.models.requests import HypothesisRequest, RegisterAgentRequest
from cabinet.services.llm import LLMResponse


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


def _llm(content: str = "Réponse.") -> AsyncMock:
    mock_llm = AsyncMock()
    mock_llm.complete.return_value = LLMResponse(content=content, model="test-model")
    return mock_llm


def _client(llm=None, records=None) -> TestClient:
    app = create_app()
    app.state.cabinet = build_cabinet(
        llm or _llm(),
        records=records,
        insights_config=InsightsConfig(min_confidence=ConfidenceLevel.MEDIUM, min_relevance=5),
    )
    return TestClient(app)


INSIGHT = {
    "type": "financial",
    "title": "Trésorerie tendue",
    "description": "Le BFR augmente plus vite que le CA.",
    "confidence": "high",
    "relevance": 8,
    "source": {"agent": "Review", "data": "bilan 2024"},
}


# ---------------------------------------------------------------------------
# 1. Health
# ---------------------------------------------------------------------------


class TestHealth:
    def test_health_reports_agents(self):
        response = _client().get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["agents"] == 7

    def test_degraded_without_cabinet(self):
        app = create_app()
        app.state.cabinet = None
        app.state.config_error = "Anthropic API key not configured."
        client = TestClient(app)

        health = client.get("/health").json()
        assert health["status"] == "degraded"
        assert health["agents"] == 0

        response = client.get("/agents")
        assert response.status_code == 503
        assert "API key" in response.json()["detail"]


# ---------------------------------------------------------------------------
# 2. Agents
# ---------------------------------------------------------------------------


class TestAgentsAPI:
    def test_list_in_registration_order(self):
        agents = _client().get("/agents").json()["agents"]
        assert len(agents) == 7
        assert agents[0]["name"] == "Conseiller Stratégique IA"
        assert [a["name"] for a in agents][-2:] == ["SafeAdvisor", "WarehouseQuery"]

    def test_dispatch_to_agent(self):
        client = _client(_llm("Pensez à relancer vos clients."))
        response = client.post(
            "/agents/SafeAdvisor/messages",
            json={"content": "Comment améliorer ma trésorerie ?"},
        )
        assert response.status_code == 200
        assert response.json() == {
            "agent": "SafeAdvisor",
            "response": "Pensez à relancer vos clients.",
            "forwarded_to": None,
        }

    def test_dispatch_unknown_agent_is_404(self):
        response = _client().post("/agents/Nobody/messages", json={"content": "x"})
        assert response.status_code == 404
        assert response.json()["detail"] == "Target agent Nobody not found."

    def test_provider_failure_is_still_200(self):
        mock_llm = AsyncMock()
        mock_llm.complete.side_effect = RuntimeError("down")
        response = _client(mock_llm).post(
            "/agents/Agent de Révision/messages", json={"content": "x"},
        )
        assert response.status_code == 200
        assert response.json()["response"].startswith("Désolé")

    def test_route_between_agents(self):
        client = _client()
        response = client.post(
            "/agents/SafeAdvisor/route",
            json={"to": "WarehouseQuery", "content": "Statistiques BTP ?"},
        )
        assert response.status_code == 200
        assert response.json()["message"]["metadata"] == {"from": "SafeAdvisor"}

        entries = client.get("/conscience-log").json()["entries"]
        assert entries[-2]["entry"] == (
            "Routing message from SafeAdvisor to WarehouseQuery: Statistiques BTP ?"
        )

    def test_route_unknown_source_is_404(self):
        response = _client().post(
            "/agents/Nobody/route", json={"to": "SafeAdvisor", "content": "x"},
        )
        assert response.status_code == 404

    def test_register_agent(self):
        client = _client()
        response = client.post(
            "/agents",
            json={"kind": "counsel", "name": "Conseiller Fiscal", "description": "TVA"},
        )
        assert response.status_code == 201
        assert response.json() == {"name": "Conseiller Fiscal", "description": "TVA"}
        assert len(client.get("/agents").json()["agents"]) == 8

    def test_registered_warehouse_agent_shares_records(self):
        records = [CompanyRecord(secteur="BTP", ca=100, marge=4)]
        client = _client(_llm("Marge moyenne: 4%."), records=records)
        client.post("/agents", json={"kind": "warehouse", "name": "Stats BTP"})

        agent = client.app.state.cabinet.orchestrator.get_agent("Stats BTP")
        assert agent.records == records

        answer = _run(agent.query("Marge moyenne ?", sector="BTP"))
        assert answer.source_count == 1

    def test_register_duplicate_is_409(self):
        response = _client().post(
            "/agents", json={"kind": "safe_advisor", "name": "SafeAdvisor"},
        )
        assert response.status_code == 409
        assert response.json()["detail"] == "Agent with name SafeAdvisor already exists."

    def test_register_bad_provider_is_503(self):
        response = _client().post(
            "/agents",
            json={"kind": "review", "name": "Réviseur 2", "provider_id": "bogus"},
        )
        assert response.status_code == 503

    def test_register_unknown_kind_is_422(self):
        response = _client().post("/agents", json={"kind": "poet", "name": "X"})
        assert response.status_code == 422

    def test_conscience_log_starts_with_registrations(self):
        body = _client().get("/conscience-log").json()
        assert body["total"] == 7
        assert body["entries"][0]["entry"].startswith("Registered agent: ")


# ---------------------------------------------------------------------------
# 3. Advisory
# ---------------------------------------------------------------------------


class TestAdvisoryAPI:
    def test_blocked_query(self):
        mock_llm = _llm()
        response = _client(mock_llm).post(
            "/advisor", json={"query": "Comment faire de la fraude fiscale ?"},
        )
        assert response.status_code == 200
        assert response.json()["safety"] == "blocked"
        mock_llm.complete.assert_not_called()

    def test_reformulated_query(self):
        response = _client(_llm("Régime général.")).post(
            "/advisor", json={"query": "Quel est le régime fiscal des dividendes ?"},
        )
        body = response.json()
        assert body["safety"] == "reformulated"
        assert body["response"].endswith("Régime général.")

    def test_empty_query_is_422(self):
        assert _client().post("/advisor", json={"query": ""}).status_code == 422

    def test_warehouse_query(self):
        records = [
            CompanyRecord(secteur="BTP", ca=100, marge=4),
            CompanyRecord(secteur="BTP", ca=300, marge=6),
        ]
        response = _client(_llm("Marge moyenne: 5%."), records=records).post(
            "/warehouse/query", json={"question": "Marge moyenne ?", "sector": "BTP"},
        )
        body = response.json()
        assert body["source_count"] == 2
        assert body["confidence"] == 1.0
        assert body["data"]["statistics"]["marge"]["mean"] == 5


# ---------------------------------------------------------------------------
# 4. Insights
# ---------------------------------------------------------------------------


class TestInsightsAPI:
    def test_submit_and_list(self):
        client = _client()
        admitted = client.post("/insights", json=INSIGHT).json()
        assert admitted["admitted"] is True
        assert admitted["insight"]["id"].startswith("ins_")

        rejected = client.post("/insights", json={**INSIGHT, "confidence": "low"}).json()
        assert rejected["admitted"] is False

        listing = client.get("/insights").json()
        assert listing["total"] == 1
        assert client.get("/insights", params={"type": "risk"}).json()["total"] == 0

    def test_invalid_relevance_is_422(self):
        response = _client().post("/insights", json={**INSIGHT, "relevance": 11})
        assert response.status_code == 422

    def test_cross_insights(self):
        payload = [{"type": "risk", "title": "Dépendance client", "confidence": "high",
                    "relevance": 9, "source": "ventes + secteur"}]
        client = _client(_llm(f"```json\n{json.dumps(payload)}\n```"))

        body = client.post("/insights/cross", json={"financial": {"ca": 1}}).json()

        assert body["total"] == 1
        assert body["insights"][0]["source"]["agent"] == "InsightsEngine"

    def test_summary_without_insights(self):
        body = _client().get("/insights/summary").json()
        assert body == {
            "summary": "Aucun insight disponible actuellement.",
            "insight_count": 0,
        }


# ---------------------------------------------------------------------------
# 5. Forecast and Review
# ---------------------------------------------------------------------------


class TestForecastReviewAPI:
    def test_hypothesis_fallback(self):
        response = _client(_llm("pas de json")).post(
            "/forecast/hypothesis", json={"hypothesis": "Recruter 2 développeurs"},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["fallback"] is True
        assert set(body["scenarios"]) == {"optimiste", "neutre", "pessimiste"}

    def test_review_financials_against_warehouse(self):
        records = [CompanyRecord(secteur="BTP", ca=1000, resultat=50, tresorerie=0)]
        mock_llm = _llm()
        response = _client(mock_llm, records=records).post(
            "/review/financials",
            json={
                "entries": [{"compteNum": "512", "montant": 10, "debit": True}],
                "company": {"secteur": "BTP", "ca": 1000, "resultat": 50},
            },
        )
        assert response.status_code == 200
        body = response.json()
        assert body["kpis"]["tresorerie"] == 10
        assert body["anomalies"] == []
        mock_llm.complete.assert_not_called()


# ---------------------------------------------------------------------------
# 6. Request Model Validation
# ---------------------------------------------------------------------------


class TestRequestModels:
    def test_hypothesis_too_short(self):
        with pytest.raises(ValidationError):
            HypothesisRequest(hypothesis="ab")

    def test_register_defaults(self):
        request = RegisterAgentRequest(kind="warehouse", name="Stats")
        assert request.description is None
        assert request.provider_id is None
