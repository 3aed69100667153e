"""Tests for mcpverify.models: the challenge entity and its serializers."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from mcpverify.core.types import ChallengeStatus
from mcpverify.models.challenge import VerificationAttempt, VerificationChallenge
from mcpverify.models.serializers import challenge_from_dict, challenge_to_dict, view_to_dict

NOW = datetime(2025, 1, 15, 12, 0, 0, tzinfo=UTC)


def _challenge(**overrides) -> VerificationChallenge:
    fields = {
        "challenge_id": "c-1",
        "domain": "example.com",
        "endpoint": "https://example.com/mcp",
        "contact_email": "ops@example.com",
        "token": "T" * 32,
        "txt_record_name": "_mcplookup-verify.example.com",
        "txt_record_value": "mcplookup-verify=" + "T" * 32 + ".1736942400",
        "created_at": NOW,
        "expires_at": NOW + timedelta(hours=24),
        "instructions": "publish it",
    }
    fields.update(overrides)
    return VerificationChallenge(**fields)


class TestVerificationChallenge:
    def test_is_expired_only_when_unverified(self):
        later = NOW + timedelta(days=2)
        assert _challenge().is_expired(later) is True
        assert _challenge(verified_at=NOW).is_expired(later) is False
        assert _challenge().is_expired(NOW) is False

    def test_view_drops_token(self):
        view = _challenge().to_view(NOW)
        assert view.status == ChallengeStatus.PENDING
        assert view.instructions == "publish it"
        assert "token" not in view.__dataclass_fields__


class TestSerializers:
    def test_to_dict_uses_iso_timestamps(self):
        data = challenge_to_dict(_challenge())
        assert data["created_at"] == "2025-01-15T12:00:00+00:00"
        assert data["verified_at"] is None
        assert data["history"] == []

    def test_round_trip_with_history(self):
        original = _challenge(
            attempts=2,
            last_attempt_at=NOW + timedelta(minutes=5),
            verified_at=NOW + timedelta(minutes=5),
            history=(
                VerificationAttempt(NOW + timedelta(minutes=1), False, "nxdomain"),
                VerificationAttempt(NOW + timedelta(minutes=5), True),
            ),
        )
        assert challenge_from_dict(challenge_to_dict(original)) == original

    def test_from_dict_defaults(self):
        data = challenge_to_dict(_challenge())
        for key in ("contact_email", "instructions", "attempts", "last_attempt_at", "verified_at", "history"):
            del data[key]
        restored = challenge_from_dict(data)
        assert restored.attempts == 0
        assert restored.history == ()
        assert restored.contact_email == ""

    def test_view_to_dict(self):
        data = view_to_dict(_challenge().to_view(NOW))
        assert data["status"] == "pending"
        assert "token" not in data
        assert "verified_at" not in data
        assert "last_attempt_at" not in data

    def test_view_to_dict_verified(self):
        data = view_to_dict(_challenge(verified_at=NOW).to_view(NOW))
        assert data["status"] == "verified"
        assert data["verified_at"] == NOW.isoformat()
