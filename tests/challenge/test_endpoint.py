"""Tests for mcpverify.challenge.endpoint.EndpointProtocolValidator."""

from __future__ import annotations

import http.client
import io
import json
import socket
import urllib.error
from email.message import Message
from unittest.mock import MagicMock, patch

import pytest

from mcpverify.challenge.endpoint import EndpointProtocolValidator
from mcpverify.config.settings import build_settings

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

URL = "https://mcp.example.com/mcp"

INIT_RESULT = {
    "protocolVersion": "2024-11-05",
    "capabilities": {"tools": {}},
    "serverInfo": {"name": "example", "version": "0.1"},
}


def _make_response(
    body: bytes = b"",
    status: int = 200,
    content_type: str = "application/json",
) -> MagicMock:
    """Create a mock HTTP response usable as a context manager."""
    resp = MagicMock()
    resp.__enter__.return_value = resp
    resp.__exit__.return_value = False
    resp.status = status
    headers = Message()
    headers["Content-Type"] = content_type
    resp.headers = headers
    resp.read.return_value = body
    return resp


def _json_reply(payload) -> MagicMock:
    return _make_response(json.dumps(payload).encode("utf-8"))


def _http_error(code: int) -> urllib.error.HTTPError:
    return urllib.error.HTTPError(
        url=URL,
        code=code,
        msg="error",
        hdrs=MagicMock(),
        fp=io.BytesIO(b""),
    )


def _validator(**overrides) -> EndpointProtocolValidator:
    endpoint = {"blocked_networks": [], "timeout_seconds": 7}
    endpoint.update(overrides)
    return EndpointProtocolValidator(build_settings({"endpoint": endpoint}).endpoint)


# ---------------------------------------------------------------------------
# Handshake request
# ---------------------------------------------------------------------------


class TestHandshakeRequest:
    def test_initialize_body(self):
        body = _validator().handshake_request()
        assert body == {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "initialize",
            "params": {
                "protocolVersion": "2024-11-05",
                "capabilities": {},
                "clientInfo": {"name": "mcplookup-verifier", "version": "1.0.0"},
            },
        }

    def test_configurable_client_info(self):
        body = _validator(client_name="registry", client_version="2.0").handshake_request()
        assert body["params"]["clientInfo"] == {"name": "registry", "version": "2.0"}


# ---------------------------------------------------------------------------
# validate_endpoint
# ---------------------------------------------------------------------------


class TestValidateEndpoint:
    @patch("mcpverify.challenge.endpoint.urllib.request.urlopen")
    def test_success(self, mock_urlopen):
        mock_urlopen.side_effect = [
            _make_response(status=200),
            _json_reply({"jsonrpc": "2.0", "id": 1, "result": INIT_RESULT}),
        ]

        assert _validator().validate_endpoint(URL) is True

        get_req = mock_urlopen.call_args_list[0].args[0]
        assert get_req.get_method() == "GET"
        assert mock_urlopen.call_args_list[0].kwargs["timeout"] == 7

        handshake_req = mock_urlopen.call_args_list[1].args[0]
        assert handshake_req.get_method() == "POST"
        assert handshake_req.full_url == URL
        assert handshake_req.get_header("Content-type") == "application/json"
        assert "text/event-stream" in handshake_req.get_header("Accept")
        sent = json.loads(handshake_req.data)
        assert sent["method"] == "initialize"
        assert mock_urlopen.call_args_list[1].kwargs["timeout"] == 7

    @patch("mcpverify.challenge.endpoint.urllib.request.urlopen")
    def test_reachability_4xx_counts_as_reachable(self, mock_urlopen):
        mock_urlopen.side_effect = [
            _http_error(405),
            _json_reply({"jsonrpc": "2.0", "id": 1, "result": INIT_RESULT}),
        ]
        assert _validator().validate_endpoint(URL) is True

    @patch("mcpverify.challenge.endpoint.urllib.request.urlopen")
    def test_reachability_5xx_fails_without_handshake(self, mock_urlopen):
        mock_urlopen.side_effect = [_http_error(503)]
        assert _validator().validate_endpoint(URL) is False
        assert mock_urlopen.call_count == 1

    @patch("mcpverify.challenge.endpoint.urllib.request.urlopen")
    def test_reachability_timeout_skips_handshake(self, mock_urlopen):
        mock_urlopen.side_effect = [TimeoutError("timed out")]
        assert _validator().validate_endpoint(URL) is False
        assert mock_urlopen.call_count == 1

    @pytest.mark.parametrize(
        "error",
        [
            urllib.error.URLError("Connection refused"),
            socket.timeout("timed out"),
            ConnectionResetError("reset"),
            http.client.RemoteDisconnected("closed"),
        ],
    )
    @patch("mcpverify.challenge.endpoint.urllib.request.urlopen")
    def test_reachability_network_errors(self, mock_urlopen, error):
        mock_urlopen.side_effect = [error]
        assert _validator().validate_endpoint(URL) is False
        assert mock_urlopen.call_count == 1

    @patch("mcpverify.challenge.endpoint.urllib.request.urlopen")
    def test_handshake_http_error(self, mock_urlopen):
        mock_urlopen.side_effect = [_make_response(), _http_error(404)]
        assert _validator().validate_endpoint(URL) is False

    @patch("mcpverify.challenge.endpoint.urllib.request.urlopen")
    def test_handshake_timeout(self, mock_urlopen):
        mock_urlopen.side_effect = [_make_response(), TimeoutError("timed out")]
        assert _validator().validate_endpoint(URL) is False

    @pytest.mark.parametrize(
        "payload",
        [
            {"jsonrpc": "2.0", "id": 1},
            {"jsonrpc": "2.0", "id": 1, "result": {}},
            {"jsonrpc": "2.0", "id": 1, "result": "ok"},
            {"jsonrpc": "2.0", "id": 1, "error": {"code": -32601, "message": "nope"}},
            ["not", "an", "object"],
        ],
    )
    @patch("mcpverify.challenge.endpoint.urllib.request.urlopen")
    def test_handshake_without_result_fails(self, mock_urlopen, payload):
        mock_urlopen.side_effect = [_make_response(), _json_reply(payload)]
        assert _validator().validate_endpoint(URL) is False

    @patch("mcpverify.challenge.endpoint.urllib.request.urlopen")
    def test_handshake_invalid_json(self, mock_urlopen):
        mock_urlopen.side_effect = [_make_response(), _make_response(b"<html>hello</html>")]
        assert _validator().validate_endpoint(URL) is False

    @patch("mcpverify.challenge.endpoint.urllib.request.urlopen")
    def test_handshake_non_utf8(self, mock_urlopen):
        mock_urlopen.side_effect = [_make_response(), _make_response(b"\xff\xfe\x00")]
        assert _validator().validate_endpoint(URL) is False

    @patch("mcpverify.challenge.endpoint.urllib.request.urlopen")
    def test_handshake_event_stream(self, mock_urlopen):
        payload = json.dumps({"jsonrpc": "2.0", "id": 1, "result": INIT_RESULT})
        body = f"event: message\ndata: {payload}\n\n".encode()
        mock_urlopen.side_effect = [
            _make_response(),
            _make_response(body, content_type="text/event-stream"),
        ]
        assert _validator().validate_endpoint(URL) is True

    @patch("mcpverify.challenge.endpoint.urllib.request.urlopen")
    def test_handshake_event_stream_without_data(self, mock_urlopen):
        mock_urlopen.side_effect = [
            _make_response(),
            _make_response(b": keep-alive\n\n", content_type="text/event-stream"),
        ]
        assert _validator().validate_endpoint(URL) is False

    @patch("mcpverify.challenge.endpoint.urllib.request.urlopen")
    def test_response_read_is_bounded(self, mock_urlopen):
        handshake = _json_reply({"jsonrpc": "2.0", "id": 1, "result": INIT_RESULT})
        mock_urlopen.side_effect = [_make_response(), handshake]

        _validator(max_response_bytes=4096).validate_endpoint(URL)

        handshake.read.assert_called_once_with(4096)

    @patch("mcpverify.challenge.endpoint.urllib.request.urlopen")
    def test_never_raises_on_malformed_url(self, mock_urlopen):
        assert _validator().validate_endpoint("not a url") is False
        mock_urlopen.assert_not_called()


# ---------------------------------------------------------------------------
# Blocked networks
# ---------------------------------------------------------------------------


def _addrinfo(*ips: str) -> list:
    return [(socket.AF_INET, socket.SOCK_STREAM, 6, "", (ip, 443)) for ip in ips]


class TestBlockedNetworks:
    @patch("mcpverify.challenge.endpoint.urllib.request.urlopen")
    @patch("mcpverify.challenge.endpoint.socket.getaddrinfo")
    def test_loopback_rejected_without_connecting(self, mock_gai, mock_urlopen):
        mock_gai.return_value = _addrinfo("127.0.0.1")
        validator = EndpointProtocolValidator(build_settings().endpoint)

        assert validator.validate_endpoint("http://localhost.example.com/mcp") is False
        mock_urlopen.assert_not_called()

    @patch("mcpverify.challenge.endpoint.urllib.request.urlopen")
    @patch("mcpverify.challenge.endpoint.socket.getaddrinfo")
    def test_public_address_allowed(self, mock_gai, mock_urlopen):
        mock_gai.return_value = _addrinfo("93.184.216.34")
        mock_urlopen.side_effect = [
            _make_response(),
            _json_reply({"jsonrpc": "2.0", "id": 1, "result": INIT_RESULT}),
        ]
        validator = EndpointProtocolValidator(build_settings().endpoint)

        assert validator.validate_endpoint(URL) is True
        mock_gai.assert_called_once_with("mcp.example.com", 443, proto=socket.IPPROTO_TCP)

    @patch("mcpverify.challenge.endpoint.urllib.request.urlopen")
    @patch("mcpverify.challenge.endpoint.socket.getaddrinfo")
    def test_unresolvable_host(self, mock_gai, mock_urlopen):
        mock_gai.side_effect = socket.gaierror("Name or service not known")
        validator = EndpointProtocolValidator(build_settings().endpoint)

        assert validator.validate_endpoint(URL) is False
        mock_urlopen.assert_not_called()

    @patch("mcpverify.challenge.endpoint.socket.getaddrinfo")
    def test_disabled_when_no_networks(self, mock_gai):
        with patch("mcpverify.challenge.endpoint.urllib.request.urlopen") as mock_urlopen:
            mock_urlopen.side_effect = [
                _make_response(),
                _json_reply({"jsonrpc": "2.0", "id": 1, "result": INIT_RESULT}),
            ]
            assert _validator().validate_endpoint(URL) is True
        mock_gai.assert_not_called()
