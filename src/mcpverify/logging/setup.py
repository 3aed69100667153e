"""Structured logging configuration for mcpverify.

Provides JSON and text formatters, a context filter that guarantees
the challenge attributes every formatter expects, and a one-call
``configure_logging`` function driven by config settings.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mcpverify.config.settings import AuditLogSettings, LoggingSettings

ROOT_LOGGER = "mcpverify"
AUDIT_LOGGER = "mcpverify.security"

_CONTEXT_ATTRS = ("challenge_id", "domain")

# Everything a bare LogRecord carries; any other attribute came from extra=
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None)),
) | {"message", "asctime", *_CONTEXT_ATTRS}

_NOISY_LIBRARIES = ("urllib3", "dns")


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------


class StructuredFormatter(logging.Formatter):
    """One JSON object per line.

    Standard fields come first, then the challenge context, then any
    caller-supplied ``extra`` attributes.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for attr in _CONTEXT_ATTRS:
            value = getattr(record, attr, None)
            if value is not None:
                payload[attr] = value

        payload.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and not key.startswith("_") and key not in payload
        )

        if record.exc_info and record.exc_info[0] is not None:
            payload["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            payload["stack_info"] = self.formatStack(record.stack_info)
        return json.dumps(payload, default=str)


class TextFormatter(logging.Formatter):
    """Single-line console format for development."""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s %(levelname)-8s [%(challenge_id)s] %(name)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )


# ---------------------------------------------------------------------------
# Filter
# ---------------------------------------------------------------------------


class ContextFilter(logging.Filter):
    """Default ``challenge_id`` to ``"-"`` and ``domain`` to ``None``.

    Callers pass both through ``extra=``; the defaults keep the text
    format string from failing on records that carry neither.
    """

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        if not hasattr(record, "challenge_id"):
            record.challenge_id = "-"  # type: ignore[attr-defined]
        if not hasattr(record, "domain"):
            record.domain = None  # type: ignore[attr-defined]
        return True


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def _configure_audit(audit_settings: AuditLogSettings, fallback: logging.Logger) -> None:
    audit = logging.getLogger(AUDIT_LOGGER)
    for handler in list(audit.handlers):
        audit.removeHandler(handler)
        handler.close()

    if not audit_settings.enabled:
        # Above CRITICAL: security events are dropped entirely
        audit.setLevel(logging.CRITICAL + 1)
        return

    audit.setLevel(logging.INFO)
    if not audit_settings.file:
        return
    try:
        handler = RotatingFileHandler(
            audit_settings.file,
            maxBytes=audit_settings.max_file_size_bytes,
            backupCount=audit_settings.backup_count,
            encoding="utf-8",
        )
    except OSError as exc:
        fallback.warning("Could not open audit log file %s: %s", audit_settings.file, exc)
        return
    # Audit output is always JSON regardless of the console format
    handler.setFormatter(StructuredFormatter())
    handler.addFilter(ContextFilter())
    audit.addHandler(handler)


def configure_logging(settings: LoggingSettings) -> logging.Logger:
    """Configure the ``mcpverify`` logger hierarchy from settings.

    Safe to call repeatedly: previous handlers are replaced.  Returns
    the ``mcpverify`` root logger.
    """
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(getattr(logging, settings.level.upper(), logging.INFO))
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.propagate = False

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(StructuredFormatter() if settings.format == "json" else TextFormatter())
    console.addFilter(ContextFilter())
    root.addHandler(console)

    _configure_audit(settings.audit, root)

    for lib in _NOISY_LIBRARIES:
        logging.getLogger(lib).setLevel(logging.WARNING)

    return root
