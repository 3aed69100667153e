"""Challenge state machine.

Status is never stored.  It is derived from ``verified_at``,
``expires_at`` and ``attempts`` so the fields cannot diverge::

    pending ──attempt failed──▶ failed ──attempt failed──▶ failed
       │                          │
       ├──────── verified ◀───────┤
       └──────── expired  ◀───────┘

``verified`` and ``expired`` are terminal.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

from mcpverify.core.types import ChallengeStatus

if TYPE_CHECKING:
    from datetime import datetime

log = logging.getLogger(__name__)


class _ChallengeLike(Protocol):
    verified_at: datetime | None
    expires_at: datetime
    attempts: int


CHALLENGE_TRANSITIONS: dict[ChallengeStatus, frozenset[ChallengeStatus]] = {
    ChallengeStatus.PENDING: frozenset(
        {
            ChallengeStatus.VERIFIED,
            ChallengeStatus.EXPIRED,
            ChallengeStatus.FAILED,
        }
    ),
    ChallengeStatus.FAILED: frozenset(
        {
            ChallengeStatus.VERIFIED,
            ChallengeStatus.EXPIRED,
            ChallengeStatus.FAILED,  # another failed attempt
        }
    ),
    ChallengeStatus.VERIFIED: frozenset(),
    ChallengeStatus.EXPIRED: frozenset(),
}


def derive_status(challenge: _ChallengeLike, now: datetime) -> ChallengeStatus:
    """Compute the status of *challenge* at *now*."""
    if challenge.verified_at is not None:
        return ChallengeStatus.VERIFIED
    if now > challenge.expires_at:
        return ChallengeStatus.EXPIRED
    if challenge.attempts > 0:
        return ChallengeStatus.FAILED
    return ChallengeStatus.PENDING


def assert_transition(current: ChallengeStatus, target: ChallengeStatus) -> None:
    """Raise :class:`ValueError` if *current* → *target* is not allowed."""
    allowed = CHALLENGE_TRANSITIONS.get(current)
    if allowed is None:
        msg = f"Unknown status {current!r}"
        raise ValueError(msg)
    if target not in allowed:
        msg = (
            f"Invalid transition {current.value!r} -> {target.value!r}; "
            f"allowed targets: {sorted(s.value for s in allowed) or '(terminal)'}"
        )
        raise ValueError(msg)


def log_transition(
    challenge_id: str,
    from_status: ChallengeStatus,
    to_status: ChallengeStatus,
    *,
    reason: str | None = None,
) -> None:
    """Emit a structured log entry for a state transition."""
    extra = {
        "event": "state_transition",
        "challenge_id": challenge_id,
        "from_status": from_status.value,
        "to_status": to_status.value,
    }
    if reason:
        extra["reason"] = reason
    log.info(
        "challenge %s: %s -> %s%s",
        challenge_id,
        from_status.value,
        to_status.value,
        f" ({reason})" if reason else "",
        extra=extra,
    )
