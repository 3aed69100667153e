"""Domain name syntax checks and ownership scope.

:func:`normalize_domain` turns user input into the canonical form
stored on a challenge (lower-case A-labels, no trailing dot) and
rejects anything that is not a plausible DNS host name.
"""

from __future__ import annotations

import encodings.idna  # noqa: F401 - ensure IDNA codec is available
import re

from mcpverify.core.errors import InvalidDomain

_MAX_DOMAIN_LENGTH = 253
_MAX_LABEL_LENGTH = 63

_LABEL_RE = re.compile(r"^[a-z0-9]([a-z0-9-]*[a-z0-9])?$")
_TLD_RE = re.compile(r"^([a-z]{2,}|xn--[a-z0-9-]+)$")


def _encode_label(label: str, value: str) -> str:
    try:
        label.encode("ascii")
    except UnicodeEncodeError:
        pass
    else:
        return label.lower()

    try:
        return label.encode("idna").decode("ascii").lower()
    except UnicodeError as err:
        msg = f"Invalid internationalized label '{label}' in '{value}'"
        raise InvalidDomain(msg) from err


def normalize_domain(value: str) -> str:
    """Return the canonical form of *value* or raise :class:`InvalidDomain`.

    Rules:

    * surrounding whitespace and a single trailing dot are dropped;
    * labels are IDNA-encoded and lower-cased;
    * at least two labels, the last one alphabetic (or punycode);
    * each label 1-63 octets of ``[a-z0-9-]`` without leading or
      trailing hyphen; the whole name at most 253 octets.
    """
    if not isinstance(value, str):
        msg = f"Domain must be a string, got {type(value).__name__}"
        raise InvalidDomain(msg)

    candidate = value.strip()
    candidate = candidate.removesuffix(".")
    if not candidate:
        msg = "Domain must not be empty"
        raise InvalidDomain(msg)
    if "://" in candidate or "/" in candidate:
        msg = f"Domain '{value}' must be a bare host name, not a URL"
        raise InvalidDomain(msg)

    labels = candidate.split(".")
    if len(labels) < 2:  # noqa: PLR2004
        msg = f"Domain '{value}' must contain at least two labels"
        raise InvalidDomain(msg)

    encoded: list[str] = []
    for label in labels:
        if not label:
            msg = f"Domain '{value}' contains an empty label"
            raise InvalidDomain(msg)
        ascii_label = _encode_label(label, value)
        if len(ascii_label) > _MAX_LABEL_LENGTH:
            msg = (
                f"Domain label '{label}' exceeds {_MAX_LABEL_LENGTH}-byte limit "
                f"({len(ascii_label)} bytes)"
            )
            raise InvalidDomain(msg)
        if not _LABEL_RE.match(ascii_label):
            msg = f"Domain label '{label}' contains invalid characters"
            raise InvalidDomain(msg)
        encoded.append(ascii_label)

    if not _TLD_RE.match(encoded[-1]):
        msg = f"Domain '{value}' has an invalid top-level label '{labels[-1]}'"
        raise InvalidDomain(msg)

    result = ".".join(encoded)
    if len(result) > _MAX_DOMAIN_LENGTH:
        msg = f"Domain '{value}' exceeds {_MAX_DOMAIN_LENGTH} characters"
        raise InvalidDomain(msg)
    return result


def is_valid_domain(value: str) -> bool:
    """Return ``True`` if :func:`normalize_domain` accepts *value*."""
    try:
        normalize_domain(value)
    except InvalidDomain:
        return False
    return True


def is_domain_or_subdomain(target: str, verified: str) -> bool:
    """Check whether *target* falls inside the ownership of *verified*.

    Owning ``api.example.com`` grants ``api.example.com`` and
    ``v1.api.example.com`` but never ``example.com`` or
    ``other.example.com``.  Suffix matching happens on label
    boundaries, so ``evilexample.com`` is not inside ``example.com``.
    """
    if not target or not verified:
        return False
    try:
        target_norm = normalize_domain(target)
        verified_norm = normalize_domain(verified)
    except InvalidDomain:
        return False

    if target_norm == verified_norm:
        return True
    return target_norm.endswith("." + verified_norm)


def parent_domains(domain: str) -> list[str]:
    """Return *domain* followed by each registrable parent, nearest first.

    ``a.b.example.com`` yields
    ``["a.b.example.com", "b.example.com", "example.com"]``.
    """
    labels = normalize_domain(domain).split(".")
    return [".".join(labels[i:]) for i in range(len(labels) - 1)]
