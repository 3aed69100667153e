"""Endpoint protocol validator.

Confirms that a claimed endpoint is a live MCP server rather than a
placeholder URL, in two sequential steps:

1. Reachability check: ``GET`` the URL; any status below 500 counts as
   reachable (MCP servers often answer a bare GET with 4xx).
2. Handshake: ``POST`` a JSON-RPC 2.0 ``initialize`` request and
   require a non-empty ``result`` object in the reply.  Streamable-HTTP
   servers may answer with ``text/event-stream``; the first ``data:``
   event is used.

Each step is bounded by its own timeout.  The validator never raises:
every failure is logged and reported as ``False``.
"""

from __future__ import annotations

import http.client
import ipaddress
import json
import logging
import socket
import urllib.error
import urllib.request
from typing import TYPE_CHECKING, Any
from urllib.parse import urlsplit

if TYPE_CHECKING:
    from mcpverify.config.settings import EndpointSettings

log = logging.getLogger(__name__)

_SERVER_ERROR_THRESHOLD = 500
_HANDSHAKE_REQUEST_ID = 1
_ACCEPT = "application/json, text/event-stream"


class EndpointValidationError(Exception):
    """Internal signal for a failed step; never escapes the validator."""


def _parse_event_stream(body: str) -> Any:  # noqa: ANN401
    """Return the JSON payload of the first ``data:`` event in *body*."""
    data_lines: list[str] = []
    for line in body.splitlines():
        if line.startswith("data:"):
            data_lines.append(line[5:].removeprefix(" "))
        elif not line.strip() and data_lines:
            break
    if not data_lines:
        msg = "event stream contained no data event"
        raise EndpointValidationError(msg)
    return json.loads("\n".join(data_lines))


class EndpointProtocolValidator:
    """Checks an endpoint is reachable and performs the MCP ``initialize`` handshake."""

    def __init__(self, settings: EndpointSettings) -> None:
        self._settings = settings
        self._blocked_networks = []
        for cidr in settings.blocked_networks:
            try:
                self._blocked_networks.append(ipaddress.ip_network(cidr, strict=False))
            except ValueError:
                log.warning("Ignoring unparseable blocked_network: %s", cidr)

    @property
    def timeout(self) -> float:
        return self._settings.timeout_seconds

    def handshake_request(self) -> dict:
        """Build the JSON-RPC ``initialize`` request body."""
        return {
            "jsonrpc": "2.0",
            "id": _HANDSHAKE_REQUEST_ID,
            "method": "initialize",
            "params": {
                "protocolVersion": self._settings.protocol_version,
                "capabilities": {},
                "clientInfo": {
                    "name": self._settings.client_name,
                    "version": self._settings.client_version,
                },
            },
        }

    def validate_endpoint(self, url: str) -> bool:
        """Return ``True`` only if the reachability check and the handshake both succeed."""
        try:
            self._check_address(url)
            self.check_reachable(url)
            self.handshake(url)
        except EndpointValidationError as exc:
            log.info("Endpoint validation failed for %s: %s", url, exc)
            return False
        log.info("Endpoint validation succeeded for %s", url)
        return True

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def check_reachable(self, url: str) -> int:
        """GET *url*; returns the HTTP status or raises on failure."""
        req = urllib.request.Request(  # noqa: S310
            url,
            method="GET",
            headers={"User-Agent": self._settings.user_agent, "Accept": _ACCEPT},
        )
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:  # noqa: S310
                status = resp.status
        except urllib.error.HTTPError as exc:
            status = exc.code
        except (urllib.error.URLError, http.client.HTTPException, OSError, ValueError) as exc:
            msg = f"unreachable: {exc}"
            raise EndpointValidationError(msg) from exc

        if status >= _SERVER_ERROR_THRESHOLD:
            msg = f"unreachable: GET returned HTTP {status}"
            raise EndpointValidationError(msg)
        log.debug("GET %s returned HTTP %s", url, status)
        return status

    def handshake(self, url: str) -> dict:
        """Send ``initialize`` and return the ``result`` object."""
        body = json.dumps(self.handshake_request()).encode("utf-8")
        req = urllib.request.Request(  # noqa: S310
            url,
            data=body,
            method="POST",
            headers={
                "Content-Type": "application/json",
                "Accept": _ACCEPT,
                "User-Agent": self._settings.user_agent,
            },
        )
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:  # noqa: S310
                content_type = resp.headers.get_content_type()
                raw = resp.read(self._settings.max_response_bytes)
        except urllib.error.HTTPError as exc:
            msg = f"handshake returned HTTP {exc.code}"
            raise EndpointValidationError(msg) from exc
        except (urllib.error.URLError, http.client.HTTPException, OSError, ValueError) as exc:
            msg = f"handshake request failed: {exc}"
            raise EndpointValidationError(msg) from exc

        try:
            text = raw.decode("utf-8")
            if content_type == "text/event-stream":
                payload = _parse_event_stream(text)
            else:
                payload = json.loads(text)
        except ValueError as exc:
            msg = f"handshake reply is not valid JSON: {exc}"
            raise EndpointValidationError(msg) from exc

        return self._extract_result(payload)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _extract_result(payload: Any) -> dict:  # noqa: ANN401
        if not isinstance(payload, dict):
            msg = "handshake reply is not a JSON object"
            raise EndpointValidationError(msg)
        if payload.get("error") is not None:
            msg = f"handshake returned JSON-RPC error: {payload['error']}"
            raise EndpointValidationError(msg)
        result = payload.get("result")
        if not isinstance(result, dict) or not result:
            msg = "handshake reply has no result object"
            raise EndpointValidationError(msg)
        return result

    def _check_address(self, url: str) -> None:
        """Refuse endpoints whose host resolves only into blocked networks."""
        try:
            parts = urlsplit(url)
            host = parts.hostname
            port = parts.port
        except ValueError as exc:
            msg = f"malformed URL: {exc}"
            raise EndpointValidationError(msg) from exc
        if parts.scheme not in ("http", "https") or not host:
            msg = "URL must be absolute http(s)"
            raise EndpointValidationError(msg)
        if not self._blocked_networks:
            return

        port = port or (443 if parts.scheme == "https" else 80)
        try:
            addrinfos = socket.getaddrinfo(host, port, proto=socket.IPPROTO_TCP)
        except (socket.gaierror, UnicodeError) as exc:
            msg = f"unreachable: could not resolve {host}: {exc}"
            raise EndpointValidationError(msg) from exc

        resolved = {info[4][0] for info in addrinfos}
        allowed = set()
        for ip_str in resolved:
            try:
                ip = ipaddress.ip_address(ip_str)
            except ValueError:
                continue
            if not any(ip in net for net in self._blocked_networks):
                allowed.add(ip_str)
        if not allowed:
            msg = f"all resolved addresses for {host} are in blocked networks ({sorted(resolved)})"
            raise EndpointValidationError(msg)
