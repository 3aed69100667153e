"""Challenge lifecycle controller: orchestrates verification attempts.

Ties the store, the resolver consensus checker and the endpoint
validator together and owns the only state changes a challenge goes
through after issuance:

- ``pending``/``failed`` -> ``failed`` (attempt recorded, retryable)
- ``pending``/``failed`` -> ``verified`` (terminal)
- ``pending``/``failed`` -> ``expired`` (terminal, record deleted)

Expiry is lazy: it is detected whenever a challenge is read or
attempted, plus the explicit :meth:`cleanup_expired_challenges` sweep.
No timers run inside the engine.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import replace
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from mcpverify.core.domains import normalize_domain, parent_domains
from mcpverify.core.errors import (
    ChallengeExpired,
    ChallengeNotFound,
    InvalidDomain,
    StorageError,
)
from mcpverify.core.state import assert_transition, log_transition
from mcpverify.core.types import AttemptOutcome, ChallengeStatus
from mcpverify.logging import security_events
from mcpverify.metrics.collector import CHALLENGES_EXPIRED, VERIFICATION_ATTEMPTS
from mcpverify.repositories.challenge import ChallengeQuery

if TYPE_CHECKING:
    from mcpverify.challenge.consensus import ResolverConsensusChecker
    from mcpverify.challenge.endpoint import EndpointProtocolValidator
    from mcpverify.metrics.collector import MetricsCollector
    from mcpverify.models.challenge import ChallengeView, VerificationChallenge
    from mcpverify.repositories.challenge import (
        ChallengePage,
        ChallengeStats,
        ChallengeStore,
        CleanupResult,
    )

log = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _live_status(challenge: VerificationChallenge) -> ChallengeStatus:
    """Status ignoring the deadline; used as the *from* side of a transition."""
    return ChallengeStatus.FAILED if challenge.attempts > 0 else ChallengeStatus.PENDING


class ChallengeLifecycleController:
    """Drives challenges from issuance to ``verified`` or ``expired``."""

    def __init__(
        self,
        store: ChallengeStore,
        checker: ResolverConsensusChecker,
        validator: EndpointProtocolValidator,
        *,
        clock: Callable[[], datetime] = _utcnow,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self._store = store
        self._checker = checker
        self._validator = validator
        self._clock = clock
        self._metrics = metrics

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def attempt_verification(self, challenge_id: str) -> bool:
        """Run one verification attempt for *challenge_id*.

        1. Load the challenge; unknown ids raise :class:`ChallengeNotFound`.
        2. Already verified: return ``True`` without touching the store.
        3. Past ``expires_at``: delete it and raise :class:`ChallengeExpired`.
        4. Check DNS consensus; on failure record the attempt, return ``False``.
        5. Validate the endpoint; on failure record the attempt, return ``False``.
        6. Re-check the deadline against the clock after both checks; a
           challenge that ran out meanwhile is expired as in step 3.
        7. Record the successful attempt, mark verified, return ``True``.

        A not-yet-verified challenge is a ``False`` return, never an
        exception.  Store failures surface as :class:`StorageError`.
        """
        now = self._clock()
        challenge = self._load(challenge_id)

        if challenge.is_verified:
            log.debug("Challenge %s already verified; nothing to do", challenge_id)
            return True

        if challenge.is_expired(now):
            self._expire(challenge)
            raise ChallengeExpired(challenge_id)

        from_status = _live_status(challenge)
        consensus = self._checker.poll(challenge.txt_record_name, challenge.txt_record_value)

        if not consensus.reached:
            self._fail(
                challenge,
                from_status,
                AttemptOutcome.DNS_FAILED,
                f"DNS consensus not reached: {consensus.summary()}",
                attempted_at=now,
                confirming=consensus.confirming,
                resolver_count=consensus.resolver_count,
            )
            return False

        if not self._validator.validate_endpoint(challenge.endpoint):
            self._fail(
                challenge,
                from_status,
                AttemptOutcome.ENDPOINT_FAILED,
                f"Endpoint {challenge.endpoint} failed MCP validation",
                attempted_at=now,
                confirming=consensus.confirming,
                resolver_count=consensus.resolver_count,
            )
            return False

        # The checks can outlast the deadline; decide against the time they finished
        decided_at = self._clock()
        if challenge.is_expired(decided_at):
            self._expire(challenge)
            raise ChallengeExpired(challenge_id)

        assert_transition(from_status, ChallengeStatus.VERIFIED)
        self._call_store(
            "record_verification_attempt",
            challenge_id,
            True,
            consensus.summary(),
            attempted_at=decided_at,
        )
        self._call_store("mark_challenge_verified", challenge_id, decided_at)

        log_transition(challenge_id, from_status, ChallengeStatus.VERIFIED)
        self._count_attempt(AttemptOutcome.VERIFIED)
        security_events.verification_attempted(
            challenge_id,
            challenge.domain,
            AttemptOutcome.VERIFIED.value,
            consensus.confirming,
            consensus.resolver_count,
        )
        security_events.challenge_verified(challenge_id, challenge.domain, challenge.endpoint)
        log.info(
            "Verified ownership of %s for endpoint %s",
            challenge.domain,
            challenge.endpoint,
            extra={"challenge_id": challenge_id, "domain": challenge.domain},
        )
        return True

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_status(self, challenge_id: str) -> ChallengeView:
        """Return the public view of *challenge_id* with its derived status.

        An unverified challenge found past its deadline is deleted and
        reported as :class:`ChallengeNotFound`.
        """
        now = self._clock()
        challenge = self._load(challenge_id)
        if challenge.is_expired(now):
            self._expire(challenge)
            raise ChallengeNotFound(challenge_id)
        return challenge.to_view(now)

    def list_domain_challenges(
        self,
        domain: str,
        query: ChallengeQuery | None = None,
    ) -> ChallengePage:
        """Return a page of public views for *domain*, newest first."""
        normalized = normalize_domain(domain)
        now = self._clock()
        page = self._call_store("get_challenges_by_domain", normalized, query, now=now)
        return replace(page, items=tuple(c.to_view(now) for c in page.items))

    def is_domain_verified(self, domain: str) -> bool:
        """Whether *domain* or one of its parent domains holds a verified challenge."""
        try:
            normalized = normalize_domain(domain)
        except InvalidDomain:
            log.debug("is_domain_verified: rejecting invalid domain %r", domain)
            return False

        now = self._clock()
        verified_only = ChallengeQuery(status=ChallengeStatus.VERIFIED, limit=1)
        for candidate in parent_domains(normalized):
            page = self._call_store("get_challenges_by_domain", candidate, verified_only, now=now)
            if page.total > 0:
                if candidate != normalized:
                    log.debug("%s is covered by verified parent %s", normalized, candidate)
                return True
        return False

    def verified_domains(self) -> list[str]:
        """Every domain with a completed verification, subdomain grants not expanded."""
        return self._call_store("get_verified_domains")

    def get_stats(self) -> ChallengeStats:
        return self._call_store("get_stats", now=self._clock())

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def delete_challenge(self, challenge_id: str) -> None:
        """Revoke *challenge_id* regardless of its status."""
        challenge = self._load(challenge_id)
        self._call_store("delete_challenge", challenge_id)
        log.info(
            "Deleted challenge %s for %s",
            challenge_id,
            challenge.domain,
            extra={"challenge_id": challenge_id, "domain": challenge.domain},
        )
        security_events.challenge_deleted(challenge_id, challenge.domain)

    def cleanup_expired_challenges(
        self,
        dry_run: bool = False,  # noqa: FBT001, FBT002
        *,
        include_verified: bool = False,
    ) -> CleanupResult:
        """Sweep expired challenges out of the store.

        Verified challenges are kept unless *include_verified* is set,
        since they back :meth:`is_domain_verified`.
        """
        result = self._call_store(
            "cleanup_expired_challenges",
            dry_run,
            now=self._clock(),
            include_verified=include_verified,
        )
        if not dry_run and result.removed_count and self._metrics is not None:
            self._metrics.increment(CHALLENGES_EXPIRED, result.removed_count)
        return result

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _load(self, challenge_id: str) -> VerificationChallenge:
        challenge = self._call_store("get_challenge", challenge_id)
        if challenge is None:
            raise ChallengeNotFound(challenge_id)
        return challenge

    def _expire(self, challenge: VerificationChallenge) -> None:
        from_status = _live_status(challenge)
        self._call_store("delete_challenge", challenge.challenge_id)
        log_transition(
            challenge.challenge_id,
            from_status,
            ChallengeStatus.EXPIRED,
            reason="deadline passed",
        )
        security_events.challenge_expired(challenge.challenge_id, challenge.domain)
        if self._metrics is not None:
            self._metrics.increment(CHALLENGES_EXPIRED)

    def _fail(  # noqa: PLR0913
        self,
        challenge: VerificationChallenge,
        from_status: ChallengeStatus,
        outcome: AttemptOutcome,
        detail: str,
        *,
        attempted_at: datetime,
        confirming: int,
        resolver_count: int,
    ) -> None:
        self._call_store(
            "record_verification_attempt",
            challenge.challenge_id,
            False,
            detail,
            attempted_at=attempted_at,
        )
        log_transition(challenge.challenge_id, from_status, ChallengeStatus.FAILED, reason=outcome.value)
        self._count_attempt(outcome)
        security_events.verification_attempted(
            challenge.challenge_id,
            challenge.domain,
            outcome.value,
            confirming,
            resolver_count,
        )

    def _count_attempt(self, outcome: AttemptOutcome) -> None:
        if self._metrics is not None:
            self._metrics.increment(VERIFICATION_ATTEMPTS, labels={"outcome": outcome.value})

    def _call_store(self, operation: str, *args: Any, **kwargs: Any) -> Any:  # noqa: ANN401
        """Invoke a store method, normalising backend failures to StorageError."""
        method = getattr(self._store, operation)
        try:
            return method(*args, **kwargs)
        except (StorageError, ChallengeNotFound):
            raise
        except Exception as exc:
            log.exception("Store operation %s failed", operation)
            msg = f"Store operation '{operation}' failed: {exc}"
            raise StorageError(msg) from exc
