"""Configuration loader: YAML/JSON file -> validated :class:`VerifierSettings`.

Lifecycle::

    settings = load_settings("/etc/mcpverify/verifier.yaml")
    engine = build_engine(settings, store)

Loading runs in four steps: read the file, resolve ``${VAR}`` /
``${VAR:-default}`` references, validate against the bundled JSON
Schema, then run cross-field checks.  All cross-field problems are
collected and raised together as one :class:`ConfigValidationError`.
There is no process-wide singleton; callers hold on to the returned
settings and inject them.
"""

from __future__ import annotations

import ipaddress
import json
import logging
import os
import re
from pathlib import Path
from typing import Any

import jsonschema
import yaml

from mcpverify.config.settings import VerifierSettings, build_settings

_SCHEMA_PATH = Path(__file__).parent / "schema.json"

_ENV_RE = re.compile(
    r"^\$\{([^}:]+?)(?::-(.*))?\}$",
    re.DOTALL,
)

_MIN_RESOLVERS = 4

log = logging.getLogger(__name__)


class ConfigValidationError(Exception):
    """Raised when schema or cross-field validation finds problems."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = errors
        body = "\n".join(f"  - {e}" for e in errors)
        super().__init__(f"Configuration validation failed:\n{body}")


# ---------------------------------------------------------------------------
# Environment variable resolution
# ---------------------------------------------------------------------------


def _expand(value: str, where: str) -> str:
    """Substitute a whole-string ``${VAR}`` / ``${VAR:-default}`` reference."""
    match = _ENV_RE.match(value)
    if match is None:
        return value
    var_name, fallback = match.groups()
    if var_name in os.environ:
        return os.environ[var_name]
    if fallback is not None:
        return fallback
    msg = f"{where}: environment variable {var_name} is not set and has no default"
    raise ConfigValidationError([msg])


def _resolve_env_vars(node: Any, where: str = "(root)") -> Any:  # noqa: ANN401
    """Return a copy of *node* with every environment reference expanded."""
    if isinstance(node, str):
        return _expand(node, where)
    if isinstance(node, dict):
        return {
            key: _resolve_env_vars(value, key if where == "(root)" else f"{where}.{key}")
            for key, value in node.items()
        }
    if isinstance(node, list):
        return [_resolve_env_vars(item, f"{where}[{i}]") for i, item in enumerate(node)]
    return node


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def _load_schema() -> dict:
    return json.loads(_SCHEMA_PATH.read_text(encoding="utf-8"))


def _validate_schema(data: dict) -> None:
    validator = jsonschema.Draft7Validator(_load_schema())
    problems = sorted(validator.iter_errors(data), key=lambda e: [str(p) for p in e.path])
    if problems:
        errors = []
        for problem in problems:
            location = ".".join(str(p) for p in problem.path) or "(root)"
            errors.append(f"{location}: {problem.message}")
        raise ConfigValidationError(errors)


def _additional_checks(data: dict) -> None:
    """Semantic & cross-field validation run after the schema passes."""
    errors: list[str] = []
    warnings: list[str] = []

    dns_cfg = data.get("dns") or {}
    endpoint = data.get("endpoint") or {}

    # -- Resolvers --
    resolvers = dns_cfg.get("resolvers")
    if resolvers is not None:
        if len(resolvers) < _MIN_RESOLVERS:
            errors.append(
                f"dns.resolvers must list at least {_MIN_RESOLVERS} independent "
                f"resolvers for consensus (got {len(resolvers)})",
            )
        elif len(resolvers) % 2 == 0:
            warnings.append(
                f"dns.resolvers has an even count ({len(resolvers)}); a strict "
                "majority needs more than half, so a tie never verifies",
            )
        for idx, entry in enumerate(resolvers):
            try:
                ipaddress.ip_address(entry)
            except ValueError:
                errors.append(
                    f"dns.resolvers[{idx}] '{entry}' is not an IP address",
                )

    # -- Endpoint --
    for idx, cidr in enumerate(endpoint.get("blocked_networks", [])):
        try:
            ipaddress.ip_network(cidr, strict=False)
        except ValueError:
            errors.append(
                f"endpoint.blocked_networks[{idx}] '{cidr}' is not a valid network",
            )

    dns_timeout = dns_cfg.get("timeout_seconds", 5)
    endpoint_timeout = endpoint.get("timeout_seconds", 10)
    if dns_timeout > endpoint_timeout * 3:
        warnings.append(
            f"dns.timeout_seconds ({dns_timeout}) is much larger than "
            f"endpoint.timeout_seconds ({endpoint_timeout}); a single slow "
            "resolver will dominate verification latency",
        )

    for w in warnings:
        log.warning("Config warning: %s", w)

    if errors:
        raise ConfigValidationError(errors)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def settings_from_dict(data: dict | None) -> VerifierSettings:
    """Validate raw config *data* and build :class:`VerifierSettings`.

    *data* is not modified; environment references are expanded into
    a new tree before validation.
    """
    resolved = _resolve_env_vars(data or {})
    _validate_schema(resolved)
    _additional_checks(resolved)
    return build_settings(resolved)


def load_settings(config_file: str | Path) -> VerifierSettings:
    """Read *config_file* (YAML or JSON) and return validated settings."""
    path = Path(config_file)
    try:
        with path.open(encoding="utf-8") as f:
            if path.suffix in (".yaml", ".yml"):
                data = yaml.safe_load(f)
            else:
                data = json.load(f)
    except OSError as exc:
        raise ConfigValidationError(
            [f"Cannot read config file '{path}': {exc}"],
        ) from exc
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        raise ConfigValidationError(
            [f"Config file '{path}' is not valid YAML/JSON: {exc}"],
        ) from exc

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigValidationError(
            [f"Config file '{path}' must contain a mapping at the top level"],
        )
    data["_source"] = str(path)
    log.debug("Loading configuration from %s", path)
    return settings_from_dict(data)
