"""In-process metrics for the verification engine.

Counters only, keyed by metric name plus an optional label set.
:meth:`MetricsCollector.export` renders Prometheus text exposition
format so an embedding service can serve it from its own endpoint.
"""

from __future__ import annotations

import threading
import time

CHALLENGES_ISSUED = "mcpverify_challenges_issued_total"
VERIFICATION_ATTEMPTS = "mcpverify_verification_attempts_total"
CHALLENGES_EXPIRED = "mcpverify_challenges_expired_total"
RESOLVER_QUERIES = "mcpverify_resolver_queries_total"

_HELP = {
    CHALLENGES_ISSUED: "Verification challenges issued",
    VERIFICATION_ATTEMPTS: "Verification attempts by outcome",
    CHALLENGES_EXPIRED: "Challenges removed after their deadline",
    RESOLVER_QUERIES: "Per-resolver TXT lookups by result",
}

_LabelSet = tuple[tuple[str, str], ...]


def _label_set(labels: dict | None) -> _LabelSet:
    if not labels:
        return ()
    return tuple(sorted((str(k), str(v)) for k, v in labels.items()))


def _series_name(name: str, labels: _LabelSet) -> str:
    if not labels:
        return name
    rendered = ",".join(f'{k}="{v}"' for k, v in labels)
    return f"{name}{{{rendered}}}"


class MetricsCollector:
    """Thread-safe counter registry shared by the engine components."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._series: dict[tuple[str, _LabelSet], int] = {}
        self._started = time.monotonic()

    def increment(self, name: str, amount: int = 1, labels: dict | None = None) -> None:
        if amount < 0:
            msg = f"Counter {name} cannot decrease (got {amount})"
            raise ValueError(msg)
        key = (name, _label_set(labels))
        with self._lock:
            self._series[key] = self._series.get(key, 0) + amount

    def get(self, name: str, labels: dict | None = None) -> int:
        """Current value of one series; unknown series read as zero."""
        with self._lock:
            return self._series.get((name, _label_set(labels)), 0)

    def snapshot(self) -> dict[str, int]:
        """All series keyed by their exposition name."""
        with self._lock:
            items = list(self._series.items())
        return {_series_name(name, labels): value for (name, labels), value in items}

    def export(self) -> str:
        """Render every counter, plus process uptime, as Prometheus text."""
        with self._lock:
            items = sorted(self._series.items())

        lines = [
            "# HELP mcpverify_uptime_seconds Seconds since the collector was created",
            "# TYPE mcpverify_uptime_seconds gauge",
            f"mcpverify_uptime_seconds {time.monotonic() - self._started:.1f}",
            "",
        ]
        current = None
        for (name, labels), value in items:
            if name != current:
                if current is not None:
                    lines.append("")
                current = name
                if name in _HELP:
                    lines.append(f"# HELP {name} {_HELP[name]}")
                lines.append(f"# TYPE {name} counter")
            lines.append(f"{_series_name(name, labels)} {value}")
        return "\n".join(lines) + "\n"
