"""DNS TXT record format for domain ownership proofs.

Format::

    name:  _<prefix>-verify.<domain>
    value: <prefix>-verify=<token>.<unix-seconds-at-issuance>

Both sides are pure functions of their inputs so a stored challenge
can always be re-derived and compared byte for byte.
"""

from __future__ import annotations

from datetime import datetime

RECORD_TYPE = "TXT"
DEFAULT_PREFIX = "mcplookup"


def verify_label(prefix: str = DEFAULT_PREFIX) -> str:
    """Return the ``<prefix>-verify`` label used on both record sides."""
    return f"{prefix}-verify"


def unix_seconds(moment: datetime) -> int:
    """Whole seconds since the epoch for an aware *moment*."""
    return int(moment.timestamp())


def txt_record_name(domain: str, prefix: str = DEFAULT_PREFIX) -> str:
    """Return the owner name of the verification TXT record."""
    return f"_{verify_label(prefix)}.{domain}"


def txt_record_value(
    token: str,
    issued_at: datetime,
    prefix: str = DEFAULT_PREFIX,
) -> str:
    """Return the exact TXT value the resolvers must report."""
    return f"{verify_label(prefix)}={token}.{unix_seconds(issued_at)}"
