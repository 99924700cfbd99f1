# =============================================================================
# Unit Tests — Warehouse Query Agent
# =============================================================================

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from cabinet.agents.warehouse import (
    ALL_SECTORS,
    DEFAULT_METRICS,
    WarehouseQueryAgent,
    coverage,
    extract_metrics,
    metric_statistics,
)
from cabinet.models.domain import CompanyRecord
from cabinet.services.llm import LLMResponse


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


def _llm(content: str = "La marge moyenne est de 6%.") -> AsyncMock:
    mock_llm = AsyncMock()
    mock_llm.complete.return_value = LLMResponse(content=content, model="test-model")
    return mock_llm


RECORDS = [
    CompanyRecord(secteur="BTP", ca=100, marge=5, effectif=3),
    CompanyRecord(secteur="BTP", ca=200, effectif=5),
    CompanyRecord(secteur="BTP second œuvre", ca=600, marge=7, effectif=8),
    CompanyRecord(secteur="Commerce", ca=1000, marge=2, effectif=12),
]


# ---------------------------------------------------------------------------
# Test: Metric Extraction
# ---------------------------------------------------------------------------


class TestExtractMetrics:
    @pytest.mark.parametrize(
        "question, expected",
        [
            ("Quelle est la marge moyenne dans le BTP ?", ["marge"]),
            ("Quel est le CA médian ?", ["ca"]),
            ("Combien d'employés et quel chiffre d'affaires ?", ["ca", "effectif"]),
            ("Quel bénéfice pour les cafés ?", ["resultat"]),
            ("Quelles dépenses moyennes ?", ["charges"]),
        ],
    )
    def test_keywords(self, question, expected):
        assert extract_metrics(question) == expected

    def test_ca_needs_word_boundary(self):
        assert extract_metrics("Un cas particulier") == DEFAULT_METRICS

    def test_typographic_apostrophe(self):
        assert extract_metrics("Quel chiffre d’affaires ?") == ["ca"]


# ---------------------------------------------------------------------------
# Test: Statistics
# ---------------------------------------------------------------------------


class TestStatistics:
    def test_missing_values_are_skipped(self):
        stats = metric_statistics(RECORDS[:3], ["marge", "ca"])
        assert stats["marge"].mean == 6
        assert stats["marge"].median == 6
        assert stats["marge"].count == 2
        assert stats["ca"].median == 200

    def test_metric_without_values_is_omitted(self):
        assert metric_statistics(RECORDS, ["dso"]) == {}

    def test_coverage(self):
        assert coverage(RECORDS[:3], ["marge"]) == pytest.approx(2 / 3)
        assert coverage([], ["ca"]) == 0.0


# ---------------------------------------------------------------------------
# Test: Query
# ---------------------------------------------------------------------------


class TestQuery:
    def test_sector_answer(self):
        mock_llm = _llm()
        agent = WarehouseQueryAgent(mock_llm, records=RECORDS)

        answer = _run(agent.query("Quelle est la marge moyenne ?", sector="BTP"))

        assert answer.response == "La marge moyenne est de 6%."
        assert answer.source_count == 3
        assert answer.confidence == pytest.approx(2 / 3)
        assert answer.data.sector == "BTP"
        assert answer.data.metrics == ["marge"]
        assert answer.data.statistics["marge"].mean == 6

        prompt = mock_llm.complete.call_args.kwargs["messages"][0]["content"]
        assert "moyenne 6.00" in prompt
        assert "3 entreprises" in prompt

    def test_unknown_sector_uses_all_records(self):
        mock_llm = _llm()
        agent = WarehouseQueryAgent(mock_llm, records=RECORDS)

        answer = _run(agent.query("CA moyen ?", sector="Agriculture"))

        assert answer.source_count == 4
        assert answer.data.sector == ALL_SECTORS
        assert answer.data.sector_fallback is True

        prompt = mock_llm.complete.call_args.kwargs["messages"][0]["content"]
        assert "tous secteurs confondus" in prompt
        assert "Agriculture" not in prompt

    def test_matching_sector_is_not_a_fallback(self):
        answer = _run(WarehouseQueryAgent(_llm(), records=RECORDS).query("CA ?", sector="commerce"))
        assert answer.data.sector == "commerce"
        assert answer.data.sector_fallback is False

    def test_no_sector(self):
        agent = WarehouseQueryAgent(_llm(), records=RECORDS)
        answer = _run(agent.query("Effectif moyen ?"))
        assert answer.data.sector == ALL_SECTORS
        assert answer.confidence == 1.0

    def test_empty_warehouse(self):
        mock_llm = _llm("Aucune donnée.")
        answer = _run(WarehouseQueryAgent(mock_llm).query("CA moyen ?"))
        assert answer.source_count == 0
        assert answer.confidence == 0.0
        prompt = mock_llm.complete.call_args.kwargs["messages"][0]["content"]
        assert "aucune donnée disponible" in prompt

    def test_failure(self):
        mock_llm = AsyncMock()
        mock_llm.complete.side_effect = RuntimeError("down")
        agent = WarehouseQueryAgent(mock_llm, records=RECORDS)

        answer = _run(agent.query("CA moyen ?"))

        assert answer.response == agent.apology
        assert answer.data is None
        assert answer.source_count == 0
        assert answer.confidence == 0.0
        assert answer.original_query == "CA moyen ?"
