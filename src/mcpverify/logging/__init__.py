"""Logging subsystem for mcpverify.

Public API::

    from mcpverify.logging import configure_logging

    configure_logging(settings.logging)
"""

from mcpverify.logging.setup import configure_logging

__all__ = ["configure_logging"]
