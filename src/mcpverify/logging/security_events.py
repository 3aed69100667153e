"""Structured security event logger.

Emits standardized verification audit events.  All events are logged
to the ``mcpverify.security`` logger with a consistent ``event_id``
field for filtering and alerting.

Secrets (tokens, expected TXT values) are redacted via
:func:`~mcpverify.logging.sanitize.sanitize_for_logs` before emission.
"""

from __future__ import annotations

import logging
from typing import Any

from mcpverify.logging.sanitize import sanitize_for_logs

security_log = logging.getLogger("mcpverify.security")


def _emit(
    event_id: str,
    message: str,
    *args: Any,  # noqa: ANN401
    challenge_id: str | None = None,
    domain: str | None = None,
    severity: str = "INFO",
    **extra: Any,  # noqa: ANN401
) -> None:
    """Emit a structured security event.

    All *extra* keyword arguments are sanitized before logging.
    """
    data: dict[str, object] = {
        "event_id": event_id,
        "severity": severity,
    }
    if challenge_id is not None:
        data["challenge_id"] = challenge_id
    if domain is not None:
        data["domain"] = domain
    data.update(sanitize_for_logs(extra))
    level = getattr(logging, severity.upper(), logging.INFO)
    security_log.log(level, message, *args, extra=data)


def challenge_issued(
    challenge_id: str,
    domain: str,
    endpoint: str,
    expires_at: str,
) -> None:
    """Log issuance of a new verification challenge."""
    _emit(
        "mcpverify.security.challenge_issued",
        "Challenge issued for %s",
        domain,
        challenge_id=challenge_id,
        domain=domain,
        endpoint=endpoint,
        expires_at=expires_at,
    )


def verification_attempted(
    challenge_id: str,
    domain: str,
    outcome: str,
    confirming: int,
    resolver_count: int,
) -> None:
    """Log a verification attempt and its outcome."""
    _emit(
        "mcpverify.security.verification_attempted",
        "Verification attempt for %s: %s (%d/%d resolvers confirmed)",
        domain,
        outcome,
        confirming,
        resolver_count,
        challenge_id=challenge_id,
        domain=domain,
        outcome=outcome,
        confirming=confirming,
        resolver_count=resolver_count,
    )


def challenge_verified(challenge_id: str, domain: str, endpoint: str) -> None:
    """Log the first successful verification of a challenge."""
    _emit(
        "mcpverify.security.challenge_verified",
        "Domain ownership verified: %s",
        domain,
        challenge_id=challenge_id,
        domain=domain,
        endpoint=endpoint,
    )


def challenge_expired(challenge_id: str, domain: str) -> None:
    """Log rejection and removal of an expired challenge."""
    _emit(
        "mcpverify.security.challenge_expired",
        "Challenge expired for %s",
        domain,
        challenge_id=challenge_id,
        domain=domain,
        severity="WARNING",
    )


def challenge_deleted(challenge_id: str, domain: str) -> None:
    """Log explicit deletion (revocation) of a challenge."""
    _emit(
        "mcpverify.security.challenge_deleted",
        "Challenge deleted for %s",
        domain,
        challenge_id=challenge_id,
        domain=domain,
        severity="WARNING",
    )


def consensus_disagreement(
    record_name: str,
    confirming: list[str],
    dissenting: list[str],
) -> None:
    """Log resolvers disagreeing about a record that reached consensus.

    A dissenting minority after consensus can indicate stale caches or
    a spoofed answer from one vantage point.
    """
    _emit(
        "mcpverify.security.consensus_disagreement",
        "Resolvers disagree on %s: %d confirming, %d dissenting",
        record_name,
        len(confirming),
        len(dissenting),
        record_name=record_name,
        confirming=confirming,
        dissenting=dissenting,
        severity="WARNING",
    )
