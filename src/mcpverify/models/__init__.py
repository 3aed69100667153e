"""Entity models for the verification engine.

All models are frozen dataclasses.  Use :func:`dataclasses.replace`
for modifications (copy-on-write).
"""

from mcpverify.models.challenge import ChallengeView, VerificationAttempt, VerificationChallenge

__all__ = [
    "ChallengeView",
    "VerificationAttempt",
    "VerificationChallenge",
]
