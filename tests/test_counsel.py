# =============================================================================
# Unit Tests — Counsel Agent
# =============================================================================

from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock

from cabinet.agents.counsel import CounselAgent
from cabinet.models.domain import MissionProposal, StructuredError
from cabinet.services.llm import LLMResponse


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


def _llm(content: str) -> AsyncMock:
    mock_llm = AsyncMock()
    mock_llm.complete.return_value = LLMResponse(content=content, model="test-model")
    return mock_llm


def _failing_llm() -> AsyncMock:
    mock_llm = AsyncMock()
    mock_llm.complete.side_effect = RuntimeError("API down")
    return mock_llm


CLIENT = {"raisonSociale": "Boulangerie Martin", "ca": 850000, "secteur": "Commerce"}
SIGNALS = ["hausse des charges de personnel", "trésorerie tendue"]


# ---------------------------------------------------------------------------
# Test: Mission Proposals
# ---------------------------------------------------------------------------


class TestMissionProposals:
    def test_three_proposals_with_name_aliases(self):
        payload = [
            {"name": "Audit des coûts", "description": "d1", "honoraires": "3-5 k€"},
            {"titre": "Prévisionnel de trésorerie", "description": "d2"},
            {"mission": "Optimisation de la paie", "impact": "-8% de charges"},
        ]
        agent = CounselAgent(_llm(f"```json\n{json.dumps(payload)}\n```"))

        proposals = _run(agent.generate_mission_proposals(CLIENT, SIGNALS))

        assert [p.name for p in proposals] == [
            "Audit des coûts",
            "Prévisionnel de trésorerie",
            "Optimisation de la paie",
        ]
        assert all(isinstance(p, MissionProposal) for p in proposals)
        # Extra fields are kept
        assert proposals[0].model_extra["honoraires"] == "3-5 k€"

    def test_wrapped_in_missions_key(self):
        payload = {"missions": [{"name": "Audit"}]}
        agent = CounselAgent(_llm(f"```json\n{json.dumps(payload)}\n```"))
        assert [p.name for p in _run(agent.generate_mission_proposals({}, []))] == ["Audit"]

    def test_prompt_carries_client_data(self):
        mock_llm = _llm('```json\n[]\n```')
        agent = CounselAgent(mock_llm)
        _run(agent.generate_mission_proposals(CLIENT, SIGNALS))

        kwargs = mock_llm.complete.call_args.kwargs
        assert kwargs["temperature"] == 0.6
        assert "Boulangerie Martin" in kwargs["messages"][0]["content"]

    def test_no_block_is_invalid_format(self):
        agent = CounselAgent(_llm("Voici trois missions: audit, paie, trésorerie."))
        result = _run(agent.generate_mission_proposals(CLIENT, SIGNALS))
        assert result == StructuredError(error="invalid response format")

    def test_item_without_name_is_invalid_format(self):
        agent = CounselAgent(_llm('```json\n[{"description": "sans titre"}]\n```'))
        result = _run(agent.generate_mission_proposals(CLIENT, SIGNALS))
        assert result.error == "invalid response format"

    def test_provider_failure(self):
        agent = CounselAgent(_failing_llm())
        result = _run(agent.generate_mission_proposals(CLIENT, SIGNALS))
        assert result == StructuredError(error="generate_mission_proposals failed")


# ---------------------------------------------------------------------------
# Test: Prose Outputs
# ---------------------------------------------------------------------------


class TestProse:
    def test_justification(self):
        mock_llm = _llm("Cette mission est pertinente car...")
        agent = CounselAgent(mock_llm)

        text = _run(agent.generate_mission_justification({"name": "Audit"}, CLIENT))

        assert text == "Cette mission est pertinente car..."
        assert mock_llm.complete.call_args.kwargs["temperature"] == 0.4

    def test_justification_failure(self):
        agent = CounselAgent(_failing_llm())
        text = _run(agent.generate_mission_justification({}, {}))
        assert text == "Erreur lors de la génération de la justification."

    def test_letter(self):
        mock_llm = _llm("LETTRE DE MISSION\n...")
        agent = CounselAgent(mock_llm)

        text = _run(agent.generate_mission_letter({"name": "Audit"}, CLIENT, {"nom": "Cabinet X"}))

        assert text.startswith("LETTRE DE MISSION")
        assert mock_llm.complete.call_args.kwargs["temperature"] == 0.3
        assert "Cabinet X" in mock_llm.complete.call_args.kwargs["messages"][0]["content"]

    def test_letter_failure(self):
        agent = CounselAgent(_failing_llm())
        text = _run(agent.generate_mission_letter({}, {}, {}))
        assert text == "Erreur lors de la génération de la lettre de mission."

    def test_conversation_temperature(self):
        mock_llm = _llm("Bonjour.")
        _run(CounselAgent(mock_llm).process("Bonjour"))
        assert mock_llm.complete.call_args.kwargs["temperature"] == 0.5
