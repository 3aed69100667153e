"""Challenge issuer: creates and persists verification challenges.

A challenge binds a domain to a claimed endpoint and carries the TXT
record the registrant must publish.  Issuance is all-or-nothing: if
the store rejects the write, no challenge is returned.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

from mcpverify.core.domains import normalize_domain
from mcpverify.core.errors import InvalidEndpoint, StorageError
from mcpverify.core.records import txt_record_name, txt_record_value
from mcpverify.core.tokens import generate_challenge_id, generate_token
from mcpverify.logging import security_events
from mcpverify.metrics.collector import CHALLENGES_ISSUED
from mcpverify.models.challenge import VerificationChallenge

if TYPE_CHECKING:
    from mcpverify.challenge.instructions import InstructionRenderer
    from mcpverify.config.settings import VerificationSettings
    from mcpverify.metrics.collector import MetricsCollector
    from mcpverify.repositories.challenge import ChallengeStore

log = logging.getLogger(__name__)

_ALLOWED_SCHEMES = frozenset({"http", "https"})
_UNSAFE_CHARS_RE = re.compile(r"[\s\x00-\x1f\x7f]")


def _utcnow() -> datetime:
    return datetime.now(UTC)


def validate_endpoint_url(endpoint: str) -> str:
    """Return *endpoint* stripped, or raise :class:`InvalidEndpoint`."""
    if not isinstance(endpoint, str) or not endpoint.strip():
        msg = "Endpoint must be a non-empty URL"
        raise InvalidEndpoint(msg)
    candidate = endpoint.strip()
    if _UNSAFE_CHARS_RE.search(candidate):
        msg = f"Endpoint {endpoint!r} contains whitespace or control characters"
        raise InvalidEndpoint(msg)
    try:
        parts = urlsplit(candidate)
    except ValueError as exc:
        msg = f"Endpoint '{endpoint}' is not a valid URL: {exc}"
        raise InvalidEndpoint(msg) from exc
    if parts.scheme.lower() not in _ALLOWED_SCHEMES:
        msg = f"Endpoint '{endpoint}' must use http or https"
        raise InvalidEndpoint(msg)
    if not parts.hostname:
        msg = f"Endpoint '{endpoint}' has no host"
        raise InvalidEndpoint(msg)
    return candidate


class ChallengeIssuer:
    """Builds a :class:`VerificationChallenge` and persists it."""

    def __init__(  # noqa: PLR0913
        self,
        store: ChallengeStore,
        settings: VerificationSettings,
        renderer: InstructionRenderer,
        *,
        clock: Callable[[], datetime] = _utcnow,
        token_factory: Callable[[int], str] = generate_token,
        id_factory: Callable[[], str] = generate_challenge_id,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self._store = store
        self._settings = settings
        self._renderer = renderer
        self._clock = clock
        self._token_factory = token_factory
        self._id_factory = id_factory
        self._metrics = metrics

    @property
    def default_ttl(self) -> timedelta:
        return timedelta(seconds=self._settings.ttl_seconds)

    def issue(
        self,
        domain: str,
        endpoint: str,
        contact_email: str,
        *,
        ttl: timedelta | None = None,
    ) -> VerificationChallenge:
        """Create, persist and return a new challenge.

        Raises
        ------
        InvalidDomain
            *domain* is not a plausible DNS name.
        InvalidEndpoint
            *endpoint* is not an absolute http(s) URL.
        StorageError
            The store could not persist the challenge.

        """
        normalized = normalize_domain(domain)
        endpoint = validate_endpoint_url(endpoint)
        lifetime = ttl if ttl is not None else self.default_ttl
        if lifetime <= timedelta(0):
            msg = f"Challenge TTL must be positive (got {lifetime})"
            raise ValueError(msg)

        prefix = self._settings.record_prefix
        challenge_id = self._id_factory()
        token = self._token_factory(self._settings.token_length)
        created_at = self._clock()
        expires_at = created_at + lifetime

        record_name = txt_record_name(normalized, prefix)
        record_value = txt_record_value(token, created_at, prefix)

        challenge = VerificationChallenge(
            challenge_id=challenge_id,
            domain=normalized,
            endpoint=endpoint,
            contact_email=contact_email,
            token=token,
            txt_record_name=record_name,
            txt_record_value=record_value,
            created_at=created_at,
            expires_at=expires_at,
            instructions=self._renderer.render(
                challenge_id=challenge_id,
                domain=normalized,
                endpoint=endpoint,
                txt_record_name=record_name,
                txt_record_value=record_value,
                created_at=created_at,
                expires_at=expires_at,
            ),
        )

        try:
            self._store.store_challenge(challenge_id, challenge)
        except StorageError:
            log.exception("Failed to persist challenge for %s", normalized)
            raise
        except Exception as exc:  # noqa: BLE001
            log.exception("Failed to persist challenge for %s", normalized)
            msg = f"Failed to store verification challenge: {exc}"
            raise StorageError(msg) from exc

        log.info(
            "Issued challenge %s for %s (expires %s)",
            challenge_id,
            normalized,
            expires_at.isoformat(),
            extra={"challenge_id": challenge_id, "domain": normalized},
        )
        security_events.challenge_issued(
            challenge_id,
            normalized,
            endpoint,
            expires_at.isoformat(),
        )
        if self._metrics is not None:
            self._metrics.increment(CHALLENGES_ISSUED)
        return challenge
