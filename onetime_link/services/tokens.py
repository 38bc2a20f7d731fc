"""URL-safe random token generation."""

from __future__ import annotations

import base64
import math
import secrets

from onetime_link.core.exceptions import InvalidInputError

# Width of the token column; 48 random bytes is the most that fits.
MAX_TOKEN_LENGTH = 64
MAX_TOKEN_BYTES = 48


def encoded_length(length: int) -> int:
    return math.ceil(length * 4 / 3)


def generate_token(length: int) -> str:
    """Return ``length`` random bytes as unpadded base64url text."""
    if length < 1:
        raise InvalidInputError("token_length_must_be_positive", field="length")
    raw = secrets.token_bytes(length)
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")
