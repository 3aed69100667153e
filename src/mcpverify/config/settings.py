"""Typed, frozen dataclasses for every configuration section.

This module is the **single source of truth** for default values.
JSON Schema defaults exist only for documentation; these builders
are what the engine actually reads.

Access pattern::

    from mcpverify.config import load_settings

    settings = load_settings("verifier.yaml")
    settings.resolvers.timeout_seconds
"""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_RESOLVERS = (
    "1.1.1.1",  # Cloudflare
    "8.8.8.8",  # Google
    "9.9.9.9",  # Quad9
    "208.67.222.222",  # OpenDNS
)

# ---------------------------------------------------------------------------
# Challenge issuance
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class VerificationSettings:
    """Challenge issuance settings (record prefix, lifetime, token size)."""

    record_prefix: str
    ttl_seconds: float
    token_length: int
    templates_path: str | None


def _build_verification(data: dict | None) -> VerificationSettings:
    d = data or {}
    return VerificationSettings(
        record_prefix=d.get("record_prefix", "mcplookup"),
        ttl_seconds=d.get("ttl_seconds", 86400),
        token_length=d.get("token_length", 32),
        templates_path=d.get("templates_path"),
    )


# ---------------------------------------------------------------------------
# DNS resolvers
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ResolverSettings:
    """Public resolvers queried for consensus, each with its own timeout."""

    resolvers: tuple[str, ...]
    timeout_seconds: float


def _build_resolvers(data: dict | None) -> ResolverSettings:
    d = data or {}
    return ResolverSettings(
        resolvers=tuple(d.get("resolvers", DEFAULT_RESOLVERS)),
        timeout_seconds=d.get("timeout_seconds", 5),
    )


# ---------------------------------------------------------------------------
# Endpoint validation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EndpointSettings:
    """Reachability check and protocol handshake settings."""

    timeout_seconds: float
    protocol_version: str
    client_name: str
    client_version: str
    user_agent: str
    max_response_bytes: int
    blocked_networks: tuple[str, ...]


def _build_endpoint(data: dict | None) -> EndpointSettings:
    d = data or {}
    return EndpointSettings(
        timeout_seconds=d.get("timeout_seconds", 10),
        protocol_version=d.get("protocol_version", "2024-11-05"),
        client_name=d.get("client_name", "mcplookup-verifier"),
        client_version=d.get("client_version", "1.0.0"),
        user_agent=d.get("user_agent", "mcpverify/1.0"),
        max_response_bytes=d.get("max_response_bytes", 1048576),
        blocked_networks=tuple(
            d.get(
                "blocked_networks",
                [
                    "127.0.0.0/8",
                    "::1/128",
                    "169.254.0.0/16",
                    "fe80::/10",
                ],
            )
        ),
    )


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AuditLogSettings:
    """Audit log output settings (file, rotation)."""

    enabled: bool
    file: str | None
    max_file_size_bytes: int
    backup_count: int


@dataclass(frozen=True)
class LoggingSettings:
    """Engine logging configuration (level, format, audit)."""

    level: str
    format: str
    audit: AuditLogSettings


def _build_logging(data: dict | None) -> LoggingSettings:
    d = data or {}
    a = d.get("audit") or {}
    return LoggingSettings(
        level=d.get("level", "INFO"),
        format=d.get("format", "json"),
        audit=AuditLogSettings(
            enabled=a.get("enabled", True),
            file=a.get("file"),
            max_file_size_bytes=a.get("max_file_size_bytes", 104857600),
            backup_count=a.get("backup_count", 10),
        ),
    )


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MetricsSettings:
    enabled: bool


def _build_metrics(data: dict | None) -> MetricsSettings:
    d = data or {}
    return MetricsSettings(enabled=d.get("enabled", True))


# ---------------------------------------------------------------------------
# Root settings aggregate
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class VerifierSettings:
    verification: VerificationSettings
    resolvers: ResolverSettings
    endpoint: EndpointSettings
    logging: LoggingSettings
    metrics: MetricsSettings


def build_settings(data: dict | None = None) -> VerifierSettings:
    """Build the full typed settings tree from raw config data.

    Called by the loader after schema validation and environment
    variable resolution; an empty or missing dict yields all defaults.
    """
    d = data or {}
    return VerifierSettings(
        verification=_build_verification(d.get("verification")),
        resolvers=_build_resolvers(d.get("dns")),
        endpoint=_build_endpoint(d.get("endpoint")),
        logging=_build_logging(d.get("logging")),
        metrics=_build_metrics(d.get("metrics")),
    )
