"""Cryptographically secure token and identifier generation."""

from __future__ import annotations

import secrets
import string
from uuid import uuid4

TOKEN_ALPHABET = string.ascii_letters + string.digits
MIN_TOKEN_LENGTH = 32


def generate_token(length: int = MIN_TOKEN_LENGTH) -> str:
    """Return a uniformly random alphanumeric token of *length* characters.

    Drawn from :mod:`secrets`; the alphabet contains no characters that
    need quoting inside a DNS TXT record.
    """
    if length < MIN_TOKEN_LENGTH:
        msg = f"Token length must be >= {MIN_TOKEN_LENGTH} (got {length})"
        raise ValueError(msg)
    return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(length))


def generate_challenge_id() -> str:
    """Return a fresh, collision-resistant challenge identifier."""
    return str(uuid4())
