# =============================================================================
# Unit Tests — Review Agent
# =============================================================================
#
# The local financial review is tested as pure functions (KPIs, sector
# averages, gaps, severities, mission parsing); the LLM paths use
# AsyncMock completion providers.
# =============================================================================

from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock

import pytest

from cabinet.agents.review import (
    DEFAULT_RECOMMENDATIONS,
    ReviewAgent,
    average_sector_metrics,
    compare_with_sector,
    compute_kpis,
    describe_anomaly,
    detect_anomalies,
    filter_by_sector,
    parse_mission_recommendations,
    sector_records,
    severity_for,
)
from cabinet.models.domain import (
    AccountingEntry,
    CompanyRecord,
    FinancialKPIs,
    MissionType,
    ODProposal,
    SectorComparison,
    Severity,
    StructuredError,
)
from cabinet.services.llm import LLMResponse


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


def _llm(content: str = "") -> AsyncMock:
    mock_llm = AsyncMock()
    mock_llm.complete.return_value = LLMResponse(content=content, model="test-model")
    return mock_llm


def _entry(account: str, amount: float, debit: bool = True) -> AccountingEntry:
    return AccountingEntry(compteNum=account, montant=amount, debit=debit)


ENTRIES = [
    _entry("601000", 400_000),
    _entry("641000", 300_000),
    _entry("512000", 100_000),
    _entry("512000", 20_000, debit=False),
    _entry("706000", 1_000_000, debit=False),
]

COMPANY = CompanyRecord(
    raisonSociale="Boulangerie Martin",
    secteur="Commerce de détail",
    ca=1_000_000,
    resultat=50_000,
    effectif=10,
)


def _peer(**overrides) -> CompanyRecord:
    values = dict(
        secteur="Commerce de détail", ca=1_000_000, resultat=50_000, effectif=10,
        charges=700_000, marge=5, dso=45, dpo=30, tresorerie=80_000,
    )
    values.update(overrides)
    return CompanyRecord(**values)


# ---------------------------------------------------------------------------
# Test: KPIs
# ---------------------------------------------------------------------------


class TestComputeKpis:
    def test_kpis_from_entries_and_record(self):
        kpis = compute_kpis(ENTRIES, COMPANY)

        assert kpis.ca == 1_000_000
        assert kpis.charges == 700_000
        assert kpis.tresorerie == 80_000
        assert kpis.marge == 5.0
        assert kpis.dso == 45
        assert kpis.dpo == 30
        assert kpis.account_balances["706000"] == -1_000_000

    def test_entries_accept_fec_aliases(self):
        entry = AccountingEntry.model_validate(
            {"compteNum": "606", "compteLib": "Achats", "montant": 12.5, "debit": True},
        )
        assert entry.account_number == "606"
        assert entry.account_label == "Achats"

    def test_zero_revenue_gives_zero_margin(self):
        kpis = compute_kpis([], CompanyRecord(resultat=-5_000))
        assert kpis.marge == 0.0


# ---------------------------------------------------------------------------
# Test: Sector Comparison
# ---------------------------------------------------------------------------


class TestSectorComparison:
    def test_filter_by_sector_substring(self):
        peers = [_peer(), _peer(secteur="Industrie")]
        assert len(filter_by_sector(peers, "commerce")) == 1

    def test_filter_falls_back_to_all_records(self):
        peers = [_peer(), _peer(secteur="Industrie")]
        assert len(filter_by_sector(peers, "Agriculture")) == 2

    def test_sector_records_reports_fallback(self):
        peers = [_peer(), _peer(secteur="Industrie")]
        assert sector_records(peers, "industrie") == ([peers[1]], False)
        assert sector_records(peers, "Agriculture") == (peers, True)
        assert sector_records(peers, None) == (peers, False)

    def test_missing_values_count_as_zero(self):
        peers = [
            CompanyRecord(secteur="BTP", ca=100, effectif=10),
            CompanyRecord(secteur="BTP", ca=300),
        ]
        averages = average_sector_metrics(peers, "BTP")
        assert averages["ca"] == 200
        assert averages["effectif"] == 5
        assert averages["dso"] == 0

    def test_no_peers(self):
        assert set(average_sector_metrics([]).values()) == {0.0}

    def test_metrics_averaging_zero_are_skipped(self):
        comparisons = compare_with_sector(
            FinancialKPIs(ca=120), {"ca": 100, "dso": 0},
        )
        assert list(comparisons) == ["ca"]
        assert comparisons["ca"].gap == 20
        assert comparisons["ca"].gap_pct == pytest.approx(20.0)


# ---------------------------------------------------------------------------
# Test: Anomalies
# ---------------------------------------------------------------------------


class TestAnomalies:
    @pytest.mark.parametrize(
        "gap_pct, expected",
        [
            (15, None),
            (-15, None),
            (16, Severity.LOW),
            (30, Severity.LOW),
            (31, Severity.MEDIUM),
            (50, Severity.MEDIUM),
            (51, Severity.HIGH),
            (-60, Severity.HIGH),
        ],
    )
    def test_thresholds(self, gap_pct, expected):
        assert severity_for(gap_pct) == expected

    def test_description(self):
        assert describe_anomaly("tresorerie", -60) == (
            "Niveau de trésorerie 60.0% inférieur à la moyenne sectorielle"
        )
        assert describe_anomaly("dso", 40) == (
            "Délai de paiement clients 40.0% supérieur à la moyenne sectorielle"
        )

    def test_detect_keeps_significant_gaps(self):
        comparisons = {
            "ca": SectorComparison(value=110, average=100, gap=10, gap_pct=10),
            "tresorerie": SectorComparison(value=40, average=100, gap=-60, gap_pct=-60),
        }
        anomalies = detect_anomalies(comparisons)
        assert [a.metric for a in anomalies] == ["tresorerie"]
        assert anomalies[0].label == "Trésorerie"
        assert anomalies[0].gap_value == -60


# ---------------------------------------------------------------------------
# Test: Mission Parsing
# ---------------------------------------------------------------------------


MISSIONS_TEXT = """Titre: Optimisation du BFR
Description: Réduire les délais clients
Type: GESTION
Impact: 20 000€
Difficulté: 3
Durée: 2 mois

Title: Revue fiscale
Description: Vérifier la TVA déductible
Type: inconnu
Difficulte: 7/10

Titre: Sans description
Type: RH

Quelques mots de conclusion."""


class TestParseMissions:
    def test_blocks(self):
        missions = parse_mission_recommendations(MISSIONS_TEXT)

        assert [m.title for m in missions] == ["Optimisation du BFR", "Revue fiscale"]
        first, second = missions
        assert first.type == MissionType.GESTION
        assert first.priority == 7
        assert first.estimated_impact == "20 000€"
        assert first.duration == "2 mois"
        assert second.type == MissionType.OPTIMISATION
        assert second.difficulty == 7
        assert second.priority == 3

    def test_default_difficulty(self):
        missions = parse_mission_recommendations("Titre: A\nDescription: B")
        assert missions[0].difficulty == 5
        assert missions[0].priority == 5

    def test_nothing_parsable(self):
        assert parse_mission_recommendations("Aucune mission.") == []


# ---------------------------------------------------------------------------
# Test: Financial Review
# ---------------------------------------------------------------------------


class TestReviewFinancials:
    def test_no_significant_anomaly_skips_model(self):
        mock_llm = _llm()
        agent = ReviewAgent(mock_llm)

        review = _run(agent.review_financials(ENTRIES, COMPANY, [_peer(), _peer()]))

        assert review.anomalies == []
        assert review.recommendations == []
        assert review.recommendations_fallback is False
        mock_llm.complete.assert_not_called()

    def test_anomalies_trigger_recommendations(self):
        mock_llm = _llm(MISSIONS_TEXT)
        agent = ReviewAgent(mock_llm)

        review = _run(agent.review_financials(
            ENTRIES, COMPANY, [_peer(tresorerie=200_000)],
        ))

        assert [a.metric for a in review.anomalies] == ["tresorerie"]
        assert review.anomalies[0].severity == Severity.HIGH
        assert len(review.recommendations) == 2
        kwargs = mock_llm.complete.call_args.kwargs
        assert kwargs["temperature"] == 0.7
        assert "Boulangerie Martin" in kwargs["messages"][0]["content"]

    def test_unparsable_answer_uses_defaults(self):
        agent = ReviewAgent(_llm("Je ne sais pas."))
        review = _run(agent.review_financials(
            ENTRIES, COMPANY, [_peer(tresorerie=200_000)],
        ))
        assert review.recommendations == DEFAULT_RECOMMENDATIONS
        assert review.recommendations_fallback is True

    def test_default_recommendations_are_copies(self):
        agent = ReviewAgent(_llm("Je ne sais pas."))
        original_title = DEFAULT_RECOMMENDATIONS[0].title
        review = _run(agent.review_financials(
            ENTRIES, COMPANY, [_peer(tresorerie=200_000)],
        ))

        review.recommendations[0].title = "Modifié"

        assert DEFAULT_RECOMMENDATIONS[0].title == original_title

    def test_peers_from_sector(self):
        review = _run(ReviewAgent(_llm()).review_financials(
            ENTRIES, COMPANY, [_peer(), _peer(secteur="Industrie", ca=9_000_000)],
        ))
        assert review.sector_fallback is False
        assert review.comparisons["ca"].average == 1_000_000

    def test_no_peer_in_sector_is_flagged(self):
        review = _run(ReviewAgent(_llm()).review_financials(
            ENTRIES, COMPANY, [_peer(secteur="Industrie"), _peer(secteur="Transport")],
        ))
        assert review.sector_fallback is True
        assert review.anomalies == []

    def test_low_anomaly_only_skips_model(self):
        mock_llm = _llm()
        review = _run(ReviewAgent(mock_llm).review_financials(
            ENTRIES, COMPANY, [_peer(effectif=8)],
        ))
        assert [a.severity for a in review.anomalies] == [Severity.LOW]
        mock_llm.complete.assert_not_called()


# ---------------------------------------------------------------------------
# Test: LLM Review
# ---------------------------------------------------------------------------


class TestLLMReview:
    def test_od_proposals(self):
        payload = [{
            "description": "Reclassement",
            "mouvements": [
                {"compte": "606", "libelle": "Achats", "debit": 100},
                {"compte": "615", "credit": 100},
            ],
            "justification": "PCG art. 946",
        }]
        mock_llm = _llm(f"```json\n{json.dumps(payload)}\n```")

        proposals = _run(ReviewAgent(mock_llm).generate_od_proposals([{"type": "compte"}]))

        assert isinstance(proposals[0], ODProposal)
        assert proposals[0].movements[0].account == "606"
        assert proposals[0].movements[1].credit == 100
        assert mock_llm.complete.call_args.kwargs["temperature"] == 0.4

    def test_analyze_entries_wraps_bare_list(self):
        mock_llm = _llm('```json\n[{"type": "doublon"}]\n```')
        result = _run(ReviewAgent(mock_llm).analyze_entries({}, {}))
        assert result == {"anomalies": [{"type": "doublon"}]}
        assert mock_llm.complete.call_args.kwargs["temperature"] == 0.3

    def test_sectoral_gaps_invalid_format(self):
        result = _run(ReviewAgent(_llm("pas de json")).analyze_sectoral_gaps({}, {}))
        assert result == StructuredError(error="invalid response format")
