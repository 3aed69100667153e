"""Enumerated types for the verification engine.

Enums inherit from ``StrEnum`` so their ``.value`` is a plain string
that JSON-based storage backends round-trip naturally.
"""

from __future__ import annotations

from enum import StrEnum

# ---------------------------------------------------------------------------
# Challenge
# ---------------------------------------------------------------------------


class ChallengeStatus(StrEnum):
    PENDING = "pending"
    VERIFIED = "verified"
    EXPIRED = "expired"
    FAILED = "failed"


# ---------------------------------------------------------------------------
# Attempt outcome
# ---------------------------------------------------------------------------


class AttemptOutcome(StrEnum):
    VERIFIED = "verified"
    DNS_FAILED = "dns_failed"
    ENDPOINT_FAILED = "endpoint_failed"
