"""Configuration subsystem for mcpverify.

Public API::

    from mcpverify.config import load_settings, build_settings

    settings = load_settings("verifier.yaml")   # validated file
    defaults = build_settings()                 # all defaults
"""

from mcpverify.config.loader import (
    ConfigValidationError,
    load_settings,
    settings_from_dict,
)
from mcpverify.config.settings import (
    DEFAULT_RESOLVERS,
    AuditLogSettings,
    EndpointSettings,
    LoggingSettings,
    MetricsSettings,
    ResolverSettings,
    VerificationSettings,
    VerifierSettings,
    build_settings,
)

__all__ = [
    "DEFAULT_RESOLVERS",
    "AuditLogSettings",
    "ConfigValidationError",
    "EndpointSettings",
    "LoggingSettings",
    "MetricsSettings",
    "ResolverSettings",
    "VerificationSettings",
    "VerifierSettings",
    "build_settings",
    "load_settings",
    "settings_from_dict",
]
