"""Exception taxonomy for the verification engine.

Only structural problems are raised: bad input, storage failure,
unknown or expired challenges.  A challenge that simply has not been
verified yet is reported as ``False``, never as an exception.
"""

from __future__ import annotations


class VerificationError(Exception):
    """Base class for all engine errors.

    Parameters
    ----------
    detail:
        Human-readable description of the failure.
    retryable:
        Whether the caller may repeat the same request later.

    """

    def __init__(self, detail: str, *, retryable: bool = False) -> None:  # noqa: FBT001, FBT002
        self.detail = detail
        self.retryable = retryable
        super().__init__(detail)


class InvalidDomain(VerificationError):
    """The domain is not a syntactically plausible DNS name."""


class InvalidEndpoint(VerificationError):
    """The endpoint is not an absolute ``http``/``https`` URL."""


class StorageError(VerificationError):
    """The challenge store could not complete an operation."""

    def __init__(self, detail: str, *, retryable: bool = True) -> None:  # noqa: FBT001, FBT002
        super().__init__(detail, retryable=retryable)


class ChallengeNotFound(VerificationError):
    """No challenge exists for the given id (unknown or deleted)."""

    def __init__(self, challenge_id: str) -> None:
        self.challenge_id = challenge_id
        super().__init__(f"Challenge '{challenge_id}' not found")


class ChallengeExpired(VerificationError):
    """The challenge passed its deadline; a new one must be issued."""

    def __init__(self, challenge_id: str) -> None:
        self.challenge_id = challenge_id
        super().__init__(
            f"Challenge '{challenge_id}' has expired; issue a new challenge",
        )
