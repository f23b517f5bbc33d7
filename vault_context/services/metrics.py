"""
Response size metrics.

Appends one JSON line per shaped tool response so output budgets can be
tuned from real usage.
"""

import asyncio
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from vault_context.models.context import CompressionEnvelope
from vault_context.models.responses import ToolResponse
from vault_context.utils.logger import get_logger

logger = get_logger(__name__)


def _doc_count(action: str, payload: dict[str, Any]) -> int:
    documents = payload.get("documents")
    if isinstance(documents, list):
        return len(documents)
    if isinstance(payload.get("documents_count"), int):
        return payload["documents_count"]
    if action == "search" and isinstance(payload.get("found"), int):
        return payload["found"]
    if action == "read" and any(key in payload for key in ("filename", "fullPath", "filePath")):
        return 1
    return 0


def build_metric(action: str, payload: dict[str, Any]) -> dict[str, Any] | None:
    """
    Metric record for a response payload.

    Args:
        action: Tool action
        payload: Response payload

    Returns:
        Record dict, or None when the payload has no valid compression envelope
    """
    raw = payload.get("compression")
    if not isinstance(raw, dict):
        return None
    try:
        envelope = CompressionEnvelope.model_validate(raw)
    except PydanticValidationError:
        return None

    record: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "action": action,
        "mode": envelope.mode.value,
        "estimated_tokens": envelope.estimated_tokens,
        "truncated": envelope.truncated,
        "doc_count": _doc_count(action, payload),
        "output_chars": envelope.output_chars,
        "source_chars": envelope.source_chars,
        "max_output_chars": envelope.max_output_chars,
    }
    cache = payload.get("cache")
    if isinstance(cache, dict) and isinstance(cache.get("hit"), bool):
        record["cache_hit"] = cache["hit"]
    return record


class ResponseMetricsRecorder:
    """
    JSONL writer for response metrics.

    Usage:
        recorder = ResponseMetricsRecorder("logs/response_metrics.jsonl")
        await recorder.record("search", response)
    """

    def __init__(self, log_path: str | Path):
        self.log_path = Path(log_path)

    async def record(self, action: str, response: ToolResponse) -> None:
        """
        Append a metric line for a response. Errors are logged, never raised.

        Args:
            action: Tool action
            response: Tool response
        """
        if response.is_error:
            return
        record = build_metric(action, response.payload)
        if record is None:
            return

        line = json.dumps(record, ensure_ascii=False) + "\n"
        try:
            await asyncio.to_thread(self._append, line)
        except OSError as e:
            logger.warning(f"Failed to write response metrics to {self.log_path}: {e}")

    def _append(self, line: str) -> None:
        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        with self.log_path.open("a", encoding="utf-8") as handle:
            handle.write(line)
