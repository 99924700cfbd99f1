# =============================================================================
# Unit Tests — Structured Output Contract
# =============================================================================
#
# Tests the fenced-JSON helpers on their own: no agent, no provider.
# =============================================================================

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from cabinet.models.domain import InsightSource, StructuredError
from cabinet.services.structured import (
    INVALID_FORMAT,
    StructuredOutputError,
    extract_json_block,
    invalid_format,
    to_prompt_json,
    with_json_instruction,
)

# ---------------------------------------------------------------------------
# Test: Prompt Instruction
# ---------------------------------------------------------------------------


class TestWithJsonInstruction:
    def test_appends_fence_instruction(self):
        prompt = with_json_instruction("Génère des missions.")
        assert prompt.startswith("Génère des missions.")
        assert "```json" in prompt

    def test_strips_trailing_whitespace_before_instruction(self):
        prompt = with_json_instruction("Question   \n\n")
        assert prompt.startswith("Question\n\n")


# ---------------------------------------------------------------------------
# Test: Block Extraction
# ---------------------------------------------------------------------------


class TestExtractJsonBlock:
    def test_parses_list_block(self):
        text = 'Voici:\n```json\n[{"name": "Audit"}]\n```\nFin.'
        assert extract_json_block(text) == [{"name": "Audit"}]

    def test_parses_object_block(self):
        text = '```json\n{"a": 1, "b": [2, 3]}\n```'
        assert extract_json_block(text) == {"a": 1, "b": [2, 3]}

    def test_first_block_wins(self):
        text = '```json\n{"first": true}\n```\n```json\n{"second": true}\n```'
        assert extract_json_block(text) == {"first": True}

    def test_label_is_case_insensitive(self):
        assert extract_json_block('```JSON\n[1]\n```') == [1]

    def test_crlf_line_endings(self):
        assert extract_json_block('```json\r\n{"x": 1}\r\n```') == {"x": 1}

    def test_unlabelled_fence_is_ignored(self):
        with pytest.raises(StructuredOutputError):
            extract_json_block('```\n{"x": 1}\n```')

    def test_missing_block_raises(self):
        with pytest.raises(StructuredOutputError, match="no"):
            extract_json_block("Pas de JSON ici.")

    def test_empty_block_raises(self):
        with pytest.raises(StructuredOutputError, match="empty"):
            extract_json_block("```json\n   \n```")

    def test_invalid_json_raises(self):
        with pytest.raises(StructuredOutputError, match="invalid JSON"):
            extract_json_block("```json\n{not json}\n```")

    def test_none_text_raises(self):
        with pytest.raises(StructuredOutputError):
            extract_json_block(None)

    def test_error_is_a_value_error(self):
        assert issubclass(StructuredOutputError, ValueError)


# ---------------------------------------------------------------------------
# Test: Error Payload and Prompt Serialisation
# ---------------------------------------------------------------------------


class TestHelpers:
    def test_invalid_format_payload(self):
        error = invalid_format()
        assert isinstance(error, StructuredError)
        assert error.error == INVALID_FORMAT == "invalid response format"

    def test_to_prompt_json_keeps_accents(self):
        assert "trésorerie" in to_prompt_json({"poste": "trésorerie"})

    def test_to_prompt_json_dumps_models_inside_containers(self):
        text = to_prompt_json({"sources": [InsightSource(agent="Review")]})
        assert '"agent": "Review"' in text

    def test_to_prompt_json_handles_datetimes(self):
        text = to_prompt_json({"at": datetime(2025, 1, 1, tzinfo=UTC)})
        assert "2025-01-01" in text
