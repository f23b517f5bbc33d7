"""
Tagged tool responses.

Every tool call resolves to exactly one ToolResponse. The ``kind`` tag tells
callers whether the payload is a full result, a quiet result, a not-found
report or an error, instead of inferring it from the payload shape.
"""

import json
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ResponseKind(str, Enum):
    """Response variants."""

    SUCCESS = "success"
    QUIET = "quiet"
    NOT_FOUND = "not_found"
    ERROR = "error"


class ToolResponse(BaseModel):
    """Result of a vault tool call."""

    kind: ResponseKind
    payload: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_error(self) -> bool:
        """Not-found and error responses are both reported as tool errors."""
        return self.kind in (ResponseKind.NOT_FOUND, ResponseKind.ERROR)

    @classmethod
    def success(cls, payload: dict[str, Any]) -> "ToolResponse":
        return cls(kind=ResponseKind.SUCCESS, payload=payload)

    @classmethod
    def quiet(cls, payload: dict[str, Any]) -> "ToolResponse":
        return cls(kind=ResponseKind.QUIET, payload=payload)

    @classmethod
    def not_found(cls, message: str, suggestion: str | None = None) -> "ToolResponse":
        return cls(kind=ResponseKind.NOT_FOUND, payload=_error_payload(message, suggestion))

    @classmethod
    def error(cls, message: str, suggestion: str | None = None) -> "ToolResponse":
        return cls(kind=ResponseKind.ERROR, payload=_error_payload(message, suggestion))

    def to_text(self) -> str:
        """Render the payload the way tool clients receive it."""
        return json.dumps(self.payload, ensure_ascii=False, indent=2)


def _error_payload(message: str, suggestion: str | None) -> dict[str, Any]:
    payload: dict[str, Any] = {"error": message}
    if suggestion:
        payload["suggestion"] = suggestion
    return payload
