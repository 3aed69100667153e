"""Domain ownership verification engine for MCP server registration.

Public API::

    from mcpverify import build_engine, InMemoryChallengeStore

    engine = build_engine(settings, InMemoryChallengeStore())
    challenge = engine.issuer.issue("example.com", "https://example.com/mcp", "ops@example.com")
    engine.lifecycle.attempt_verification(challenge.challenge_id)
"""

from mcpverify.engine import VerificationEngine, build_engine
from mcpverify.repositories.challenge import InMemoryChallengeStore

__version__ = "1.0.0"

__all__ = [
    "InMemoryChallengeStore",
    "VerificationEngine",
    "build_engine",
]
