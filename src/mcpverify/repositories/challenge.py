"""Challenge store contract.

The engine never persists anything itself: it is handed a
:class:`ChallengeStore` and relies only on per-key last-write-wins
semantics.  Implementations signal any backend failure by raising
:class:`~mcpverify.core.errors.StorageError`; a missing key on a
read is ``None``, not an error.

:class:`InMemoryChallengeStore` is the reference implementation used
by tests and single-process embedders.  Durable backends (Redis,
hosted caches) live outside this package.
"""

from __future__ import annotations

import abc
import logging
import threading
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from mcpverify.core.errors import ChallengeNotFound
from mcpverify.core.types import ChallengeStatus
from mcpverify.models.challenge import VerificationAttempt

if TYPE_CHECKING:
    from mcpverify.models.challenge import VerificationChallenge

log = logging.getLogger(__name__)

_DEFAULT_PAGE_SIZE = 50


@dataclass(frozen=True)
class ChallengeQuery:
    """Filters and pagination for :meth:`ChallengeStore.get_challenges_by_domain`."""

    status: ChallengeStatus | None = None
    created_after: datetime | None = None
    created_before: datetime | None = None
    offset: int = 0
    limit: int = _DEFAULT_PAGE_SIZE

    def __post_init__(self) -> None:
        if self.limit < 1:
            msg = f"limit must be >= 1 (got {self.limit})"
            raise ValueError(msg)
        if self.offset < 0:
            msg = f"offset must be >= 0 (got {self.offset})"
            raise ValueError(msg)


@dataclass(frozen=True)
class ChallengePage:
    items: tuple[VerificationChallenge, ...]
    total: int
    has_more: bool
    next_offset: int | None = None


@dataclass(frozen=True)
class CleanupResult:
    removed_count: int
    dry_run: bool = False
    challenge_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class ChallengeStats:
    total: int
    active: int
    verified: int
    expired: int
    failed: int
    average_verification_seconds: float


class ChallengeStore(abc.ABC):
    """Persistence contract required by the verification engine."""

    @abc.abstractmethod
    def store_challenge(self, challenge_id: str, challenge: VerificationChallenge) -> None:
        """Create or overwrite the record for *challenge_id*."""

    @abc.abstractmethod
    def get_challenge(self, challenge_id: str) -> VerificationChallenge | None:
        """Return the record or ``None`` if it does not exist."""

    @abc.abstractmethod
    def delete_challenge(self, challenge_id: str) -> None:
        """Remove the record; deleting a missing id is a no-op."""

    @abc.abstractmethod
    def mark_challenge_verified(self, challenge_id: str, verified_at: datetime) -> None:
        """Set ``verified_at`` unless already set.

        Raises :class:`ChallengeNotFound` for a missing record.
        """

    @abc.abstractmethod
    def record_verification_attempt(
        self,
        challenge_id: str,
        success: bool,  # noqa: FBT001
        detail: str | None = None,
        *,
        attempted_at: datetime,
    ) -> None:
        """Increment ``attempts``, set ``last_attempt_at`` and append history.

        Raises :class:`ChallengeNotFound` for a missing record.
        """

    @abc.abstractmethod
    def get_challenges_by_domain(
        self,
        domain: str,
        query: ChallengeQuery | None = None,
        *,
        now: datetime | None = None,
    ) -> ChallengePage:
        """Return a page of challenges for *domain*, newest first."""

    @abc.abstractmethod
    def get_verified_domains(self) -> list[str]:
        """Distinct domains holding at least one verified challenge, sorted."""

    @abc.abstractmethod
    def cleanup_expired_challenges(
        self,
        dry_run: bool = False,  # noqa: FBT001, FBT002
        *,
        now: datetime | None = None,
        include_verified: bool = False,
    ) -> CleanupResult:
        """Delete (or with *dry_run* only count) expired challenges."""

    @abc.abstractmethod
    def get_stats(self, *, now: datetime | None = None) -> ChallengeStats:
        """Aggregate counts across all stored challenges."""


class InMemoryChallengeStore(ChallengeStore):
    """Thread-safe dict-backed store with a per-domain secondary index."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._challenges: dict[str, VerificationChallenge] = {}
        self._by_domain: dict[str, set[str]] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._challenges)

    # -- writes -------------------------------------------------------------

    def store_challenge(self, challenge_id: str, challenge: VerificationChallenge) -> None:
        with self._lock:
            previous = self._challenges.get(challenge_id)
            if previous is not None and previous.domain != challenge.domain:
                self._unindex(challenge_id, previous.domain)
            self._challenges[challenge_id] = challenge
            self._by_domain.setdefault(challenge.domain, set()).add(challenge_id)

    def delete_challenge(self, challenge_id: str) -> None:
        with self._lock:
            challenge = self._challenges.pop(challenge_id, None)
            if challenge is not None:
                self._unindex(challenge_id, challenge.domain)

    def mark_challenge_verified(self, challenge_id: str, verified_at: datetime) -> None:
        with self._lock:
            challenge = self._challenges.get(challenge_id)
            if challenge is None:
                raise ChallengeNotFound(challenge_id)
            if challenge.verified_at is not None:
                return
            self._challenges[challenge_id] = replace(challenge, verified_at=verified_at)

    def record_verification_attempt(
        self,
        challenge_id: str,
        success: bool,  # noqa: FBT001
        detail: str | None = None,
        *,
        attempted_at: datetime,
    ) -> None:
        with self._lock:
            challenge = self._challenges.get(challenge_id)
            if challenge is None:
                raise ChallengeNotFound(challenge_id)
            attempt = VerificationAttempt(
                attempted_at=attempted_at,
                success=success,
                detail=detail,
            )
            self._challenges[challenge_id] = replace(
                challenge,
                attempts=challenge.attempts + 1,
                last_attempt_at=attempted_at,
                history=(*challenge.history, attempt),
            )

    # -- reads --------------------------------------------------------------

    def get_challenge(self, challenge_id: str) -> VerificationChallenge | None:
        with self._lock:
            return self._challenges.get(challenge_id)

    def get_challenges_by_domain(
        self,
        domain: str,
        query: ChallengeQuery | None = None,
        *,
        now: datetime | None = None,
    ) -> ChallengePage:
        q = query or ChallengeQuery()
        now = now or datetime.now(UTC)
        with self._lock:
            ids = self._by_domain.get(domain, set())
            candidates = [self._challenges[i] for i in ids]

        if q.status is not None:
            candidates = [c for c in candidates if c.status(now) == q.status]
        if q.created_after is not None:
            candidates = [c for c in candidates if c.created_at >= q.created_after]
        if q.created_before is not None:
            candidates = [c for c in candidates if c.created_at <= q.created_before]

        candidates.sort(key=lambda c: (c.created_at, c.challenge_id), reverse=True)
        total = len(candidates)
        start = q.offset
        items = tuple(candidates[start : start + q.limit])
        has_more = start + q.limit < total
        return ChallengePage(
            items=items,
            total=total,
            has_more=has_more,
            next_offset=start + q.limit if has_more else None,
        )

    def get_verified_domains(self) -> list[str]:
        with self._lock:
            return sorted({c.domain for c in self._challenges.values() if c.verified_at is not None})

    # -- maintenance --------------------------------------------------------

    def cleanup_expired_challenges(
        self,
        dry_run: bool = False,  # noqa: FBT001, FBT002
        *,
        now: datetime | None = None,
        include_verified: bool = False,
    ) -> CleanupResult:
        now = now or datetime.now(UTC)
        with self._lock:
            expired = [
                cid
                for cid, c in self._challenges.items()
                if now > c.expires_at and (include_verified or c.verified_at is None)
            ]
            if not dry_run:
                for cid in expired:
                    challenge = self._challenges.pop(cid)
                    self._unindex(cid, challenge.domain)

        if expired:
            log.info(
                "%s %d expired challenge(s)",
                "Would remove" if dry_run else "Removed",
                len(expired),
            )
        return CleanupResult(
            removed_count=len(expired),
            dry_run=dry_run,
            challenge_ids=tuple(sorted(expired)),
        )

    def get_stats(self, *, now: datetime | None = None) -> ChallengeStats:
        now = now or datetime.now(UTC)
        with self._lock:
            challenges = list(self._challenges.values())

        statuses = [c.status(now) for c in challenges]
        durations = [
            (c.verified_at - c.created_at).total_seconds()
            for c in challenges
            if c.verified_at is not None
        ]
        return ChallengeStats(
            total=len(challenges),
            active=sum(1 for s in statuses if s in (ChallengeStatus.PENDING, ChallengeStatus.FAILED)),
            verified=statuses.count(ChallengeStatus.VERIFIED),
            expired=statuses.count(ChallengeStatus.EXPIRED),
            failed=statuses.count(ChallengeStatus.FAILED),
            average_verification_seconds=(sum(durations) / len(durations) if durations else 0.0),
        )

    # -- helpers ------------------------------------------------------------

    def _unindex(self, challenge_id: str, domain: str) -> None:
        ids = self._by_domain.get(domain)
        if ids is None:
            return
        ids.discard(challenge_id)
        if not ids:
            del self._by_domain[domain]
