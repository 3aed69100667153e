"""Tests for mcpverify.engine.build_engine wiring."""

from __future__ import annotations

from datetime import timedelta

import mcpverify
from mcpverify.config.settings import build_settings
from mcpverify.core.types import ChallengeStatus
from mcpverify.engine import VerificationEngine, build_engine
from mcpverify.metrics.collector import CHALLENGES_ISSUED, MetricsCollector
from mcpverify.repositories.challenge import InMemoryChallengeStore


class TestBuildEngine:
    def test_defaults(self):
        engine = build_engine()
        assert isinstance(engine, VerificationEngine)
        assert isinstance(engine.store, InMemoryChallengeStore)
        assert isinstance(engine.metrics, MetricsCollector)
        assert engine.checker.resolvers == build_settings().resolvers.resolvers

    def test_metrics_disabled(self):
        engine = build_engine(build_settings({"metrics": {"enabled": False}}))
        assert engine.metrics is None

    def test_injected_metrics_and_store(self, store):
        metrics = MetricsCollector()
        engine = build_engine(store=store, metrics=metrics)
        assert engine.store is store
        assert engine.metrics is metrics

    def test_shared_clock_and_shortcuts(self, store, clock):
        engine = build_engine(store=store, clock=clock)
        challenge = engine.issue_challenge("example.com", "https://example.com/mcp", "ops@example.com")

        assert challenge.created_at == clock.now
        assert engine.get_status(challenge.challenge_id).status == ChallengeStatus.PENDING
        assert engine.metrics.get(CHALLENGES_ISSUED) == 1

        clock.advance(hours=25)
        assert engine.lifecycle.cleanup_expired_challenges().removed_count == 1

    def test_custom_ttl_via_shortcut(self, store, clock):
        engine = build_engine(store=store, clock=clock)
        challenge = engine.issue_challenge(
            "example.com",
            "https://example.com/mcp",
            "ops@example.com",
            ttl=timedelta(minutes=10),
        )
        assert challenge.expires_at == clock.now + timedelta(minutes=10)

    def test_package_exports(self):
        assert mcpverify.build_engine is build_engine
        assert mcpverify.InMemoryChallengeStore is InMemoryChallengeStore
        assert mcpverify.__version__ == "1.0.0"
