"""
Continuation tokens for paginated collect_context calls.

A token is unpadded base64url over the JSON of a ContinuationToken. Tokens are
opaque to callers and carry everything needed to resume a scan.
"""

import base64
import binascii
import json

from pydantic import ValidationError as PydanticValidationError

from vault_context.models.context import ContinuationToken
from vault_context.utils.exceptions import InvalidContinuationTokenError

TOKEN_VERSION = 1


def encode_continuation_token(token: ContinuationToken) -> str:
    """
    Serialize a continuation token.

    Args:
        token: Scan position and parameters

    Returns:
        base64url string without padding
    """
    raw = token.model_dump_json(by_alias=True).encode("utf-8")
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def decode_continuation_token(value: str) -> ContinuationToken:
    """
    Parse a continuation token.

    Args:
        value: Token string from a previous response

    Returns:
        ContinuationToken

    Raises:
        InvalidContinuationTokenError: If the token is malformed or of another version
    """
    stripped = value.strip()
    try:
        padded = stripped + "=" * (-len(stripped) % 4)
        raw = base64.urlsafe_b64decode(padded.encode("ascii"))
        data = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeError, ValueError) as e:
        raise InvalidContinuationTokenError(
            "Continuation token is not valid base64url JSON", context={"token": value}
        ) from e

    # bool and float compare equal to 1, so the type is checked as well
    if (
        not isinstance(data, dict)
        or type(data.get("v")) is not int
        or data["v"] != TOKEN_VERSION
    ):
        raise InvalidContinuationTokenError(
            "Unsupported continuation token version", context={"token": value}
        )

    try:
        return ContinuationToken.model_validate(data)
    except PydanticValidationError as e:
        raise InvalidContinuationTokenError(
            f"Continuation token fields are invalid: {e.error_count()} errors",
            context={"token": value},
        ) from e
