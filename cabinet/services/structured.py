# =============================================================================
# Structured Output Contract — Fenced JSON Blocks
# =============================================================================
#
# When an agent needs machine-readable output it asks the model to wrap a
# JSON document in a fenced block labelled `json`:
#
#     Some commentary...
#     ```json
#     [{"name": "...", "description": "..."}]
#     ```
#
# This module owns both halves of that contract:
#   - with_json_instruction(): appends the formatting instruction to a prompt
#   - extract_json_block(): returns the parsed JSON of the FIRST such block
#
# DESIGN DECISION: Only labelled fences count.
# Unlabelled ``` blocks often hold examples or code. Requiring the `json`
# label keeps the parser predictable; the label match is case-insensitive.
# =============================================================================

from __future__ import annotations

import json
import re
from typing import Any

from cabinet.models.domain import StructuredError

# Error payload text shared by every structured extraction
INVALID_FORMAT = "invalid response format"

_JSON_FENCE = re.compile(
    r"```[ \t]*json[ \t]*\r?\n(.*?)```",
    re.DOTALL | re.IGNORECASE,
)

_JSON_INSTRUCTION = (
    "Présente les résultats sous forme structurée dans un format JSON, "
    "dans un unique bloc délimité par ```json et ```."
)


class StructuredOutputError(ValueError):
    """Raised when a response has no fenced JSON block or it is not valid JSON."""


def with_json_instruction(prompt: str) -> str:
    """Append the fenced-JSON output instruction to a prompt."""
    return f"{prompt.rstrip()}\n\n{_JSON_INSTRUCTION}"


def extract_json_block(text: str) -> Any:
    """
    Parse the first ```json fenced block found in `text`.

    Raises:
        StructuredOutputError: No labelled block, an empty block, or
            invalid JSON inside it.
    """
    match = _JSON_FENCE.search(text or "")
    if match is None:
        raise StructuredOutputError("no ```json block in response")

    payload = match.group(1).strip()
    if not payload:
        raise StructuredOutputError("empty ```json block in response")

    try:
        return json.loads(payload)
    except json.JSONDecodeError as e:
        raise StructuredOutputError(f"invalid JSON in block: {e}") from e


def invalid_format() -> StructuredError:
    """The error payload returned when the structured block is missing or bad."""
    return StructuredError(error=INVALID_FORMAT)


def to_prompt_json(data: Any) -> str:
    """
    Serialise arbitrary input data for embedding in a prompt.

    Pydantic models are dumped first so records and plain dicts can be
    mixed freely by callers.
    """
    return json.dumps(_dump(data), indent=2, ensure_ascii=False, default=str)


def _dump(data: Any) -> Any:
    if hasattr(data, "model_dump"):
        return data.model_dump(mode="json")
    if isinstance(data, dict):
        return {key: _dump(value) for key, value in data.items()}
    if isinstance(data, (list, tuple)):
        return [_dump(item) for item in data]
    return data
