"""Sensitive data sanitization for log output.

Challenge tokens are secrets until the registrant publishes them in
DNS.  :func:`sanitize_for_logs` keeps them out of log files: explicit
``token`` fields are masked and TXT values keep only their label and
timestamp.
"""

from __future__ import annotations

import re
from typing import Any

_SECRET_FIELDS = frozenset({"token", "expected_value", "txt_record_value"})

_TOKEN_PREVIEW_LENGTH = 4

# <label>-verify=<token>.<unix-seconds>
_TXT_VALUE_RE = re.compile(r"^([a-z0-9-]+-verify=)([A-Za-z0-9]+)(\.\d+)$")


def redact_token(token: str) -> str:
    """Keep a short prefix of *token* for correlation, mask the rest."""
    if len(token) <= _TOKEN_PREVIEW_LENGTH:
        return "[REDACTED]"
    return token[:_TOKEN_PREVIEW_LENGTH] + "…[REDACTED]"


def redact_txt_value(value: str) -> str:
    """Mask the token part of a ``<label>-verify=<token>.<ts>`` value."""
    match = _TXT_VALUE_RE.match(value)
    if match is None:
        return redact_token(value)
    return f"{match.group(1)}{redact_token(match.group(2))}{match.group(3)}"


def sanitize_for_logs(data: Any) -> Any:
    """Recursively sanitize secrets in *data*.

    Handles dicts (by key name), lists and tuples.  Other values pass
    through unchanged.
    """
    if isinstance(data, dict):
        result = {}
        for key, value in data.items():
            if key in _SECRET_FIELDS and isinstance(value, str):
                result[key] = redact_txt_value(value) if "=" in value else redact_token(value)
            else:
                result[key] = sanitize_for_logs(value)
        return result

    if isinstance(data, (list, tuple)):
        return type(data)(sanitize_for_logs(item) for item in data)

    return data
