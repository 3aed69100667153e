"""Jinja2 renderer for human-readable DNS setup instructions.

Resolves templates with a two-tier loader:
1. User-specified ``templates_path`` (overrides)
2. Built-in templates shipped with the package
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from jinja2 import BaseLoader, ChoiceLoader, Environment, FileSystemLoader, PackageLoader

from mcpverify.core.records import RECORD_TYPE

if TYPE_CHECKING:
    from datetime import datetime

_TEMPLATE_NAME = "dns_instructions.txt"


class InstructionRenderer:
    """Renders provider-agnostic TXT record setup instructions."""

    def __init__(self, templates_path: str | None = None) -> None:
        loaders: list[BaseLoader] = []
        if templates_path:
            loaders.append(FileSystemLoader(templates_path))
        loaders.append(PackageLoader("mcpverify.challenge", "templates"))

        self._env = Environment(
            loader=ChoiceLoader(loaders),
            autoescape=False,  # noqa: S701 - plain-text output
            keep_trailing_newline=False,
        )

    def render(  # noqa: PLR0913
        self,
        *,
        challenge_id: str,
        domain: str,
        endpoint: str,
        txt_record_name: str,
        txt_record_value: str,
        created_at: datetime,
        expires_at: datetime,
    ) -> str:
        """Render instructions that echo the record name and value verbatim."""
        ttl_hours = round((expires_at - created_at).total_seconds() / 3600, 2)
        if ttl_hours == int(ttl_hours):
            ttl_hours = int(ttl_hours)
        template = self._env.get_template(_TEMPLATE_NAME)
        return template.render(
            challenge_id=challenge_id,
            domain=domain,
            endpoint=endpoint,
            record_type=RECORD_TYPE,
            txt_record_name=txt_record_name,
            txt_record_value=txt_record_value,
            host_label=txt_record_name.removesuffix("." + domain),
            expires_at=expires_at.isoformat(),
            ttl_hours=ttl_hours,
        ).strip()
