"""Tests for mcpverify.metrics.collector.MetricsCollector."""

from __future__ import annotations

import threading

import pytest

from mcpverify.metrics.collector import (
    CHALLENGES_ISSUED,
    VERIFICATION_ATTEMPTS,
    MetricsCollector,
)


class TestMetricsCollector:
    def test_increment_and_get(self):
        m = MetricsCollector()
        m.increment(CHALLENGES_ISSUED)
        m.increment(CHALLENGES_ISSUED, 2)
        assert m.get(CHALLENGES_ISSUED) == 3

    def test_unknown_counter_is_zero(self):
        assert MetricsCollector().get("nope") == 0

    def test_labels_are_separate_series(self):
        m = MetricsCollector()
        m.increment(VERIFICATION_ATTEMPTS, labels={"outcome": "verified"})
        m.increment(VERIFICATION_ATTEMPTS, labels={"outcome": "dns_failed"})
        m.increment(VERIFICATION_ATTEMPTS, labels={"outcome": "dns_failed"})
        assert m.get(VERIFICATION_ATTEMPTS, labels={"outcome": "verified"}) == 1
        assert m.get(VERIFICATION_ATTEMPTS, labels={"outcome": "dns_failed"}) == 2
        assert m.get(VERIFICATION_ATTEMPTS) == 0

    def test_export_prometheus_text(self):
        m = MetricsCollector()
        m.increment(CHALLENGES_ISSUED)
        m.increment(VERIFICATION_ATTEMPTS, labels={"outcome": "verified"})
        out = m.export()

        assert "# TYPE mcpverify_uptime_seconds gauge" in out
        assert "# TYPE mcpverify_challenges_issued_total counter" in out
        assert "mcpverify_challenges_issued_total 1" in out
        assert 'mcpverify_verification_attempts_total{outcome="verified"} 1' in out
        assert out.endswith("\n")

    def test_thread_safety(self):
        m = MetricsCollector()

        def worker():
            for _ in range(1000):
                m.increment(CHALLENGES_ISSUED)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert m.get(CHALLENGES_ISSUED) == 8000

    def test_snapshot(self):
        m = MetricsCollector()
        m.increment(VERIFICATION_ATTEMPTS, labels={"outcome": "endpoint_failed"})
        assert m.snapshot() == {'mcpverify_verification_attempts_total{outcome="endpoint_failed"}': 1}

    def test_counters_cannot_decrease(self):
        with pytest.raises(ValueError, match="cannot decrease"):
            MetricsCollector().increment(CHALLENGES_ISSUED, -1)
