"""Resolver consensus checker for DNS TXT ownership proofs.

Queries the verification record through several independent public
resolvers at once and accepts it only when a strict majority of them
report the exact expected value.  A minority of stale, unreachable or
spoofed resolvers cannot flip the decision either way.

Each resolver is queried through its own ``dns.resolver.Resolver``
bound to a single nameserver, so no answer can be served from another
vantage point's cache.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import TYPE_CHECKING

import dns.exception
import dns.rdatatype
import dns.resolver

from mcpverify.logging import security_events
from mcpverify.metrics.collector import RESOLVER_QUERIES

if TYPE_CHECKING:
    from mcpverify.config.settings import ResolverSettings
    from mcpverify.metrics.collector import MetricsCollector

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolverVote:
    """Outcome of one resolver's query."""

    resolver: str
    confirmed: bool
    detail: str


@dataclass(frozen=True)
class ConsensusResult:
    record_name: str
    votes: tuple[ResolverVote, ...]

    @property
    def resolver_count(self) -> int:
        return len(self.votes)

    @property
    def confirming(self) -> int:
        return sum(1 for v in self.votes if v.confirmed)

    @property
    def reached(self) -> bool:
        """Strict majority: more than half, a tie is not consensus."""
        return self.resolver_count > 0 and self.confirming > self.resolver_count / 2

    def summary(self) -> str:
        parts = ", ".join(f"{v.resolver}={'ok' if v.confirmed else v.detail}" for v in self.votes)
        return f"{self.confirming}/{self.resolver_count} resolvers confirmed ({parts})"


def _txt_values(answer) -> list[bytes]:
    """Join each TXT rdata's character-strings into one value."""
    return [b"".join(rdata.strings) for rdata in answer]


class ResolverConsensusChecker:
    """Checks a TXT record against a fixed set of public resolvers.

    Parameters
    ----------
    settings:
        Resolver IPs and the per-query timeout.
    metrics:
        Optional collector for per-resolver query outcomes.

    """

    def __init__(
        self,
        settings: ResolverSettings,
        metrics: MetricsCollector | None = None,
    ) -> None:
        if not settings.resolvers:
            msg = "At least one resolver is required for consensus"
            raise ValueError(msg)
        self._resolvers = tuple(settings.resolvers)
        self._timeout = settings.timeout_seconds
        self._metrics = metrics

    @property
    def resolvers(self) -> tuple[str, ...]:
        return self._resolvers

    def check_consensus(self, record_name: str, expected_value: str) -> bool:
        """Return ``True`` iff a strict majority of resolvers confirm the value."""
        return self.poll(record_name, expected_value).reached

    def poll(self, record_name: str, expected_value: str) -> ConsensusResult:
        """Query every resolver concurrently and collect all votes.

        Waits for every query to finish; each one is bounded by its own
        timeout.  Never raises for DNS problems: a failed query is a
        non-confirming vote.
        """
        expected = expected_value.encode("utf-8")

        with ThreadPoolExecutor(
            max_workers=len(self._resolvers),
            thread_name_prefix="mcpverify-dns",
        ) as pool:
            futures = {
                pool.submit(self._query_resolver, ip, record_name, expected): ip
                for ip in self._resolvers
            }
            wait(futures)

        votes: list[ResolverVote] = []
        for future, ip in futures.items():
            try:
                vote = future.result()
            except Exception as exc:  # noqa: BLE001
                log.exception("Resolver %s query for %s crashed", ip, record_name)
                vote = ResolverVote(resolver=ip, confirmed=False, detail=f"error: {exc}")
            votes.append(vote)

        # Report in configured order regardless of completion order
        order = {ip: idx for idx, ip in enumerate(self._resolvers)}
        votes.sort(key=lambda v: order[v.resolver])
        result = ConsensusResult(record_name=record_name, votes=tuple(votes))

        log.info(
            "Consensus for %s: %s -> %s",
            record_name,
            result.summary(),
            "reached" if result.reached else "not reached",
        )
        if result.reached and result.confirming < result.resolver_count:
            security_events.consensus_disagreement(
                record_name,
                [v.resolver for v in result.votes if v.confirmed],
                [v.resolver for v in result.votes if not v.confirmed],
            )
        return result

    def _make_resolver(self, nameserver: str) -> dns.resolver.Resolver:
        resolver = dns.resolver.Resolver(configure=False)
        resolver.nameservers = [nameserver]
        resolver.timeout = self._timeout
        resolver.lifetime = self._timeout
        return resolver

    def _query_resolver(
        self,
        nameserver: str,
        record_name: str,
        expected: bytes,
    ) -> ResolverVote:
        """Query one resolver; every DNS failure becomes a non-confirming vote."""
        resolver = self._make_resolver(nameserver)
        try:
            answer = resolver.resolve(record_name, dns.rdatatype.TXT)
        except dns.resolver.NXDOMAIN:
            return self._vote(nameserver, confirmed=False, detail="nxdomain")
        except dns.resolver.NoAnswer:
            return self._vote(nameserver, confirmed=False, detail="no_answer")
        except dns.resolver.NoNameservers:
            return self._vote(nameserver, confirmed=False, detail="servfail")
        except dns.exception.Timeout:
            log.debug("Resolver %s timed out after %ss for %s", nameserver, self._timeout, record_name)
            return self._vote(nameserver, confirmed=False, detail="timeout")
        except (dns.exception.DNSException, OSError) as exc:
            log.debug("Resolver %s failed for %s: %s", nameserver, record_name, exc)
            return self._vote(nameserver, confirmed=False, detail="error")

        values = _txt_values(answer)
        if expected in values:
            return self._vote(nameserver, confirmed=True, detail="match")
        log.debug(
            "Resolver %s returned %d TXT value(s) for %s, none matched",
            nameserver,
            len(values),
            record_name,
        )
        return self._vote(nameserver, confirmed=False, detail="mismatch")

    def _vote(self, nameserver: str, *, confirmed: bool, detail: str) -> ResolverVote:
        if self._metrics is not None:
            self._metrics.increment(RESOLVER_QUERIES, labels={"result": detail})
        return ResolverVote(resolver=nameserver, confirmed=confirmed, detail=detail)
