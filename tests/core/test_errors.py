"""Tests for the mcpverify.core.errors hierarchy."""

from __future__ import annotations

import pytest

from mcpverify.core.errors import (
    ChallengeExpired,
    ChallengeNotFound,
    InvalidDomain,
    InvalidEndpoint,
    StorageError,
    VerificationError,
)


class TestErrorHierarchy:
    @pytest.mark.parametrize(
        "exc",
        [
            InvalidDomain("bad"),
            InvalidEndpoint("bad"),
            StorageError("down"),
            ChallengeNotFound("abc"),
            ChallengeExpired("abc"),
        ],
    )
    def test_all_derive_from_base(self, exc):
        assert isinstance(exc, VerificationError)

    def test_detail_and_retryable(self):
        exc = InvalidDomain("bad domain")
        assert exc.detail == "bad domain"
        assert exc.retryable is False
        assert str(exc) == "bad domain"

    def test_storage_error_retryable_by_default(self):
        assert StorageError("down").retryable is True
        assert StorageError("corrupt", retryable=False).retryable is False

    def test_not_found_message(self):
        exc = ChallengeNotFound("abc")
        assert exc.challenge_id == "abc"
        assert "abc" in str(exc)
        assert "not found" in str(exc)

    def test_expired_message(self):
        exc = ChallengeExpired("abc")
        assert exc.challenge_id == "abc"
        assert "expired" in exc.detail
        assert exc.retryable is False
