"""Dictionary serialization for challenges.

:func:`challenge_to_dict` / :func:`challenge_from_dict` are meant for
key-value storage backends (JSON documents, ISO-8601 timestamps).
:func:`view_to_dict` produces the public representation handed to the
API layer; it never contains the token.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from mcpverify.models.challenge import VerificationAttempt, VerificationChallenge

if TYPE_CHECKING:
    from mcpverify.models.challenge import ChallengeView


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def challenge_to_dict(challenge: VerificationChallenge) -> dict[str, Any]:
    """Serialize the full stored record, token included."""
    return {
        "challenge_id": challenge.challenge_id,
        "domain": challenge.domain,
        "endpoint": challenge.endpoint,
        "contact_email": challenge.contact_email,
        "token": challenge.token,
        "txt_record_name": challenge.txt_record_name,
        "txt_record_value": challenge.txt_record_value,
        "created_at": _iso(challenge.created_at),
        "expires_at": _iso(challenge.expires_at),
        "instructions": challenge.instructions,
        "attempts": challenge.attempts,
        "last_attempt_at": _iso(challenge.last_attempt_at),
        "verified_at": _iso(challenge.verified_at),
        "history": [
            {
                "attempted_at": _iso(a.attempted_at),
                "success": a.success,
                "detail": a.detail,
            }
            for a in challenge.history
        ],
    }


def challenge_from_dict(data: dict[str, Any]) -> VerificationChallenge:
    """Rebuild a :class:`VerificationChallenge` from :func:`challenge_to_dict` output."""
    return VerificationChallenge(
        challenge_id=data["challenge_id"],
        domain=data["domain"],
        endpoint=data["endpoint"],
        contact_email=data.get("contact_email", ""),
        token=data["token"],
        txt_record_name=data["txt_record_name"],
        txt_record_value=data["txt_record_value"],
        created_at=_parse(data["created_at"]),
        expires_at=_parse(data["expires_at"]),
        instructions=data.get("instructions", ""),
        attempts=data.get("attempts", 0),
        last_attempt_at=_parse(data.get("last_attempt_at")),
        verified_at=_parse(data.get("verified_at")),
        history=tuple(
            VerificationAttempt(
                attempted_at=_parse(a["attempted_at"]),
                success=a["success"],
                detail=a.get("detail"),
            )
            for a in data.get("history", [])
        ),
    )


def view_to_dict(view: ChallengeView) -> dict[str, Any]:
    """Serialize a :class:`ChallengeView` for API responses."""
    result: dict[str, Any] = {
        "challenge_id": view.challenge_id,
        "domain": view.domain,
        "endpoint": view.endpoint,
        "txt_record_name": view.txt_record_name,
        "txt_record_value": view.txt_record_value,
        "instructions": view.instructions,
        "status": view.status.value,
        "created_at": view.created_at.isoformat(),
        "expires_at": view.expires_at.isoformat(),
        "attempts": view.attempts,
    }
    if view.last_attempt_at:
        result["last_attempt_at"] = view.last_attempt_at.isoformat()
    if view.verified_at:
        result["verified_at"] = view.verified_at.isoformat()
    return result
