"""
Core schemas - shared Pydantic types for API requests and responses.
"""

import base64
import binascii
import re
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, Field, PlainSerializer
from webauthn.helpers import bytes_to_base64url

_BASE64URL_ALPHABET = re.compile(r"[A-Za-z0-9_-]*")


def _decode_base64url(value: Any) -> bytes:
    if isinstance(value, bytes | bytearray | memoryview):
        return bytes(value)
    if not isinstance(value, str):
        raise ValueError("expected a base64url string")
    unpadded = value.rstrip("=")
    # A single trailing character can never encode a whole byte
    if not _BASE64URL_ALPHABET.fullmatch(unpadded) or len(unpadded) % 4 == 1:
        raise ValueError("invalid base64url encoding")
    try:
        return base64.b64decode(
            unpadded + "=" * (-len(unpadded) % 4), altchars=b"-_", validate=True
        )
    except binascii.Error as e:
        raise ValueError("invalid base64url encoding") from e


Base64URLBytes = Annotated[
    bytes,
    BeforeValidator(_decode_base64url),
    PlainSerializer(bytes_to_base64url, return_type=str),
]
"""
Binary value that crosses the API as unpadded base64url (WebAuthn JSON
convention) and is ``bytes`` inside the application.
"""


class ErrorResponse(BaseModel):
    """Standard error response format."""

    detail: str = Field(..., description="Human-readable error message")

    model_config = {"json_schema_extra": {"example": {"detail": "Challenge expired."}}}
