"""Root conftest for the mcpverify test suite."""

from __future__ import annotations

import sys
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

# ---------------------------------------------------------------------------
# Make ``src/`` importable without installing the package
# ---------------------------------------------------------------------------
_SRC = str(Path(__file__).resolve().parent.parent / "src")
if _SRC not in sys.path:
    sys.path.insert(0, _SRC)

from mcpverify.config.settings import build_settings  # noqa: E402
from mcpverify.repositories.challenge import InMemoryChallengeStore  # noqa: E402

EPOCH = datetime(2025, 1, 15, 12, 0, 0, tzinfo=UTC)


class FakeClock:
    """Manually advanced UTC clock for deterministic expiry tests."""

    def __init__(self, start: datetime = EPOCH) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


# ---------------------------------------------------------------------------
# Shared fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def settings():
    """All-defaults settings tree."""
    return build_settings()


@pytest.fixture()
def store() -> InMemoryChallengeStore:
    return InMemoryChallengeStore()


@pytest.fixture()
def minimal_config_data() -> dict:
    """Return a small but complete config dict."""
    return {
        "verification": {"record_prefix": "mcplookup", "ttl_seconds": 3600},
        "dns": {
            "resolvers": ["1.1.1.1", "8.8.8.8", "9.9.9.9", "208.67.222.222", "8.8.4.4"],
            "timeout_seconds": 3,
        },
        "endpoint": {"timeout_seconds": 5},
    }
