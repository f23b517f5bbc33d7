"""
Response size presets and the compression envelope.

Every shaped response reports how large it is (characters and an estimated
token count), which mode produced it, and how to ask for more.
"""

import json
import math
import re
from typing import Any

from pydantic import BaseModel

from vault_context.models.context import CompressionEnvelope, CompressionMode

SEARCH_DEFAULT_LIMIT = {CompressionMode.AGGRESSIVE: 3, CompressionMode.BALANCED: 5}
SEARCH_DEFAULT_EXCERPT = {CompressionMode.AGGRESSIVE: 220, CompressionMode.BALANCED: 500}
READ_DEFAULT_CONTENT_MAX_CHARS = {CompressionMode.AGGRESSIVE: 1200, CompressionMode.BALANCED: 2500}
READ_DEFAULT_BACKLINK_LIMIT = {CompressionMode.AGGRESSIVE: 5, CompressionMode.BALANCED: 10}

ACTION_DEFAULT_MAX_OUTPUT_CHARS = {
    "search": {CompressionMode.AGGRESSIVE: 1800, CompressionMode.BALANCED: 2500},
    "read": {CompressionMode.AGGRESSIVE: 2200, CompressionMode.BALANCED: 4000},
    "collect_context": {CompressionMode.AGGRESSIVE: 2800, CompressionMode.BALANCED: 5200},
    "load_memory": {CompressionMode.AGGRESSIVE: 2000, CompressionMode.BALANCED: 3200},
}

CHARS_PER_TOKEN = 3

_WHITESPACE = re.compile(r"\s+")


def resolve_max_output_chars(
    action: str, mode: CompressionMode, requested: int | None
) -> int | None:
    """
    Output budget for an action.

    Args:
        action: Action name
        mode: Compression mode
        requested: Caller-supplied budget, if any

    Returns:
        The requested budget, else the mode default; None means unbounded
    """
    if requested is not None:
        return requested
    return ACTION_DEFAULT_MAX_OUTPUT_CHARS.get(action, {}).get(mode)


def to_json_dict(payload: BaseModel | dict[str, Any]) -> dict[str, Any]:
    """Wire representation of a payload."""
    if isinstance(payload, BaseModel):
        return payload.model_dump(mode="json", by_alias=True)
    return payload


def json_char_length(payload: BaseModel | dict[str, Any]) -> int:
    """Length of the compact JSON serialization."""
    return len(json.dumps(to_json_dict(payload), ensure_ascii=False, separators=(",", ":")))


def estimate_tokens(output_chars: int) -> int:
    """Rough token estimate used for budgeting."""
    return math.ceil(output_chars / CHARS_PER_TOKEN)


def finalize_with_compression(
    payload: BaseModel | dict[str, Any],
    mode: CompressionMode,
    source_chars: int,
    max_output_chars: int | None,
    truncated: bool,
    expand_hint: str,
) -> dict[str, Any]:
    """
    Attach the compression envelope to a payload.

    Args:
        payload: Response payload without envelope
        mode: Compression mode used
        source_chars: Characters of source material considered
        max_output_chars: Budget applied, if any
        truncated: Whether anything was cut or left for a later call
        expand_hint: How to retrieve what was cut

    Returns:
        JSON-ready dict with a ``compression`` key
    """
    data = to_json_dict(payload)
    output_chars = json_char_length(data)
    envelope = CompressionEnvelope(
        mode=mode,
        source_chars=source_chars,
        output_chars=output_chars,
        estimated_tokens=estimate_tokens(output_chars),
        max_output_chars=max_output_chars,
        truncated=truncated,
        expand_hint=expand_hint,
    )
    return {**data, "compression": envelope.model_dump(mode="json")}


def trim_with_ellipsis(value: str, max_chars: int) -> str:
    """Cut text to max_chars, marking the cut with '...'."""
    if len(value) <= max_chars:
        return value
    return f"{value[:max_chars]}..."


def normalize_whitespace(value: str) -> str:
    """Collapse whitespace runs to single spaces and strip the ends."""
    return _WHITESPACE.sub(" ", value).strip()


def strip_frontmatter_block(content: str) -> str:
    """Drop a leading '---' frontmatter block from raw file text."""
    if not content.startswith("---"):
        return content
    end = content.find("\n---", 3)
    if end == -1:
        return content
    return content[end + 4 :].lstrip()
