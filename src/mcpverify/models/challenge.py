"""Verification challenge entity and its public projection."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from mcpverify.core.state import derive_status

if TYPE_CHECKING:
    from mcpverify.core.types import ChallengeStatus


@dataclass(frozen=True)
class VerificationAttempt:
    attempted_at: datetime
    success: bool
    detail: str | None = None


@dataclass(frozen=True)
class VerificationChallenge:
    challenge_id: str
    domain: str
    endpoint: str
    contact_email: str
    token: str
    txt_record_name: str
    txt_record_value: str
    created_at: datetime
    expires_at: datetime
    instructions: str = ""
    attempts: int = 0
    last_attempt_at: datetime | None = None
    verified_at: datetime | None = None
    history: tuple[VerificationAttempt, ...] = ()

    @property
    def is_verified(self) -> bool:
        return self.verified_at is not None

    def is_expired(self, now: datetime) -> bool:
        """Past the deadline and never verified."""
        return self.verified_at is None and now > self.expires_at

    def status(self, now: datetime) -> ChallengeStatus:
        return derive_status(self, now)

    def to_view(self, now: datetime) -> ChallengeView:
        """Project to the public view; the token is not carried over."""
        return ChallengeView(
            challenge_id=self.challenge_id,
            domain=self.domain,
            endpoint=self.endpoint,
            txt_record_name=self.txt_record_name,
            txt_record_value=self.txt_record_value,
            instructions=self.instructions,
            status=self.status(now),
            created_at=self.created_at,
            expires_at=self.expires_at,
            attempts=self.attempts,
            last_attempt_at=self.last_attempt_at,
            verified_at=self.verified_at,
        )


@dataclass(frozen=True)
class ChallengeView:
    """Read-only view handed to the API layer."""

    challenge_id: str
    domain: str
    endpoint: str
    txt_record_name: str
    txt_record_value: str
    instructions: str
    status: ChallengeStatus
    created_at: datetime
    expires_at: datetime
    attempts: int
    last_attempt_at: datetime | None
    verified_at: datetime | None
