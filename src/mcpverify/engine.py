"""Engine assembly: wires settings, store and components together.

Created once by the embedding application::

    from mcpverify import build_engine, InMemoryChallengeStore
    from mcpverify.config import load_settings

    engine = build_engine(load_settings("verifier.yaml"), InMemoryChallengeStore())

The engine holds no mutable state of its own; everything that changes
lives in the injected store.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from mcpverify.challenge.consensus import ResolverConsensusChecker
from mcpverify.challenge.endpoint import EndpointProtocolValidator
from mcpverify.challenge.instructions import InstructionRenderer
from mcpverify.challenge.issuer import ChallengeIssuer
from mcpverify.config.settings import build_settings
from mcpverify.metrics.collector import MetricsCollector
from mcpverify.repositories.challenge import InMemoryChallengeStore
from mcpverify.services.lifecycle import ChallengeLifecycleController

if TYPE_CHECKING:
    from mcpverify.config.settings import VerifierSettings
    from mcpverify.models.challenge import ChallengeView, VerificationChallenge
    from mcpverify.repositories.challenge import ChallengeStore

log = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class VerificationEngine:
    """Bundle of the wired components plus shortcuts for the common calls."""

    settings: VerifierSettings
    store: ChallengeStore
    issuer: ChallengeIssuer
    checker: ResolverConsensusChecker
    validator: EndpointProtocolValidator
    lifecycle: ChallengeLifecycleController
    metrics: MetricsCollector | None = None

    def issue_challenge(
        self,
        domain: str,
        endpoint: str,
        contact_email: str,
        *,
        ttl: timedelta | None = None,
    ) -> VerificationChallenge:
        return self.issuer.issue(domain, endpoint, contact_email, ttl=ttl)

    def attempt_verification(self, challenge_id: str) -> bool:
        return self.lifecycle.attempt_verification(challenge_id)

    def get_status(self, challenge_id: str) -> ChallengeView:
        return self.lifecycle.get_status(challenge_id)


def build_engine(
    settings: VerifierSettings | None = None,
    store: ChallengeStore | None = None,
    *,
    metrics: MetricsCollector | None = None,
    clock: Callable[[], datetime] = _utcnow,
) -> VerificationEngine:
    """Construct a :class:`VerificationEngine`.

    Parameters
    ----------
    settings:
        Typed settings; all defaults when omitted.
    store:
        Challenge store; an :class:`InMemoryChallengeStore` when omitted.
    metrics:
        Collector to use; one is created when metrics are enabled and
        none is given.
    clock:
        Source of the current UTC time, shared by issuer and controller.

    """
    settings = settings or build_settings()
    if store is None:
        log.info("No challenge store supplied; using in-memory store")
        store = InMemoryChallengeStore()
    if metrics is None and settings.metrics.enabled:
        metrics = MetricsCollector()

    renderer = InstructionRenderer(settings.verification.templates_path)
    issuer = ChallengeIssuer(
        store,
        settings.verification,
        renderer,
        clock=clock,
        metrics=metrics,
    )
    checker = ResolverConsensusChecker(settings.resolvers, metrics=metrics)
    validator = EndpointProtocolValidator(settings.endpoint)
    lifecycle = ChallengeLifecycleController(
        store,
        checker,
        validator,
        clock=clock,
        metrics=metrics,
    )
    log.debug(
        "Verification engine ready (%d resolvers, ttl=%ss)",
        len(checker.resolvers),
        settings.verification.ttl_seconds,
    )
    return VerificationEngine(
        settings=settings,
        store=store,
        issuer=issuer,
        checker=checker,
        validator=validator,
        lifecycle=lifecycle,
        metrics=metrics,
    )
