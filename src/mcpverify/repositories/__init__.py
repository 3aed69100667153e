"""Challenge storage contract and the in-memory reference store."""

from mcpverify.repositories.challenge import (
    ChallengePage,
    ChallengeQuery,
    ChallengeStats,
    ChallengeStore,
    CleanupResult,
    InMemoryChallengeStore,
)

__all__ = [
    "ChallengePage",
    "ChallengeQuery",
    "ChallengeStats",
    "ChallengeStore",
    "CleanupResult",
    "InMemoryChallengeStore",
]
