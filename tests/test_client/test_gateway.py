"""Tests for the gateway HTTP client."""

from __future__ import annotations

import socket
import threading
import time
from typing import Any

import httpx
import pytest

from kilo_provider.client.gateway import GatewayClient
from kilo_provider.config import GatewayConfig
from kilo_provider.exceptions import (
    FetchFailedError,
    FetchTimeoutError,
    GatewayConnectionError,
    InitiationFailedError,
    InvalidResponseShapeError,
    MissingTokenError,
    PollFailedError,
    RateLimitedError,
)
from kilo_provider.models import PollStatus


def _json_response(data: Any, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code=status_code, json=data)


SESSION_BODY = {
    "code": "ABCD-1234",
    "verificationUrl": "https://kilo.test/device?code=ABCD-1234",
    "expiresIn": 600,
}


# ---------------------------------------------------------------------------
# Context manager
# ---------------------------------------------------------------------------


class TestContextManager:
    def test_supplied_client_left_open(self, gateway_config) -> None:
        http_client = httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        with GatewayClient(gateway_config, http_client=http_client):
            pass
        assert not http_client.is_closed
        http_client.close()

    def test_owned_client_closed(self, gateway_config) -> None:
        client = GatewayClient(gateway_config)
        http_client = client._http()
        with client:
            pass
        assert http_client.is_closed
        assert client._client is None

    def test_default_config_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("KILO_API_URL", "http://localhost:9999")
        assert GatewayClient().config.api_base == "http://localhost:9999"


# ---------------------------------------------------------------------------
# Initiate
# ---------------------------------------------------------------------------


class TestInitiateDeviceAuth:
    def test_success(self, make_client) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return _json_response(SESSION_BODY)

        before = time.monotonic()
        session = make_client(handler).initiate_device_auth()
        after = time.monotonic()

        assert session.code == "ABCD-1234"
        assert session.verification_url == "https://kilo.test/device?code=ABCD-1234"
        assert session.expires_in == 600
        assert before + 600 <= session.deadline <= after + 600

        assert seen[0].method == "POST"
        assert str(seen[0].url) == "https://kilo.test/api/device-auth/codes"
        assert seen[0].headers["content-type"] == "application/json"

    def test_rate_limited(self, make_client) -> None:
        client = make_client(lambda r: httpx.Response(429))
        with pytest.raises(RateLimitedError, match="Too many pending authorization requests"):
            client.initiate_device_auth()

    def test_other_status_fails(self, make_client) -> None:
        client = make_client(lambda r: httpx.Response(500))
        with pytest.raises(InitiationFailedError) as exc_info:
            client.initiate_device_auth()
        assert exc_info.value.status == 500
        assert str(exc_info.value) == "Failed to initiate device authorization: 500"

    def test_missing_fields(self, make_client) -> None:
        client = make_client(lambda r: _json_response({"code": "X"}))
        with pytest.raises(InvalidResponseShapeError):
            client.initiate_device_auth()

    def test_not_json(self, make_client) -> None:
        client = make_client(lambda r: httpx.Response(200, text="<html>"))
        with pytest.raises(InvalidResponseShapeError, match="not JSON"):
            client.initiate_device_auth()

    def test_connection_error(self, make_client) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Connection refused", request=request)

        with pytest.raises(GatewayConnectionError) as exc_info:
            make_client(handler).initiate_device_auth()
        assert exc_info.value.exit_code == 6

    def test_timeout_is_connection_error(self, make_client) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(GatewayConnectionError, match="timed out"):
            make_client(handler).initiate_device_auth()


# ---------------------------------------------------------------------------
# Poll
# ---------------------------------------------------------------------------


class TestPollDeviceAuth:
    def test_url_includes_code(self, make_client) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(202)

        make_client(handler).poll_device_auth("ABCD-1234")
        assert seen[0].method == "GET"
        assert str(seen[0].url) == "https://kilo.test/api/device-auth/codes/ABCD-1234"

    @pytest.mark.parametrize(
        "status_code, expected",
        [(202, PollStatus.PENDING), (403, PollStatus.DENIED), (410, PollStatus.EXPIRED)],
    )
    def test_status_codes(self, make_client, status_code: int, expected: PollStatus) -> None:
        result = make_client(lambda r: httpx.Response(status_code)).poll_device_auth("C")
        assert result.status is expected
        assert result.token is None

    def test_approved(self, make_client) -> None:
        body = {"status": "approved", "token": "tok-1", "userEmail": "dev@example.com"}
        result = make_client(lambda r: _json_response(body)).poll_device_auth("C")
        assert result.status is PollStatus.APPROVED
        assert result.token == "tok-1"
        assert result.user_email == "dev@example.com"

    def test_pending_body(self, make_client) -> None:
        result = make_client(lambda r: _json_response({"status": "pending"})).poll_device_auth("C")
        assert result.status is PollStatus.PENDING

    def test_approved_without_token(self, make_client) -> None:
        client = make_client(lambda r: _json_response({"status": "approved"}))
        with pytest.raises(MissingTokenError, match="no token received"):
            client.poll_device_auth("C")

    def test_approved_with_empty_token(self, make_client) -> None:
        client = make_client(lambda r: _json_response({"status": "approved", "token": ""}))
        with pytest.raises(MissingTokenError):
            client.poll_device_auth("C")

    def test_unknown_status(self, make_client) -> None:
        client = make_client(lambda r: _json_response({"status": "weird"}))
        with pytest.raises(InvalidResponseShapeError, match="weird"):
            client.poll_device_auth("C")

    def test_server_error(self, make_client) -> None:
        client = make_client(lambda r: httpx.Response(500))
        with pytest.raises(PollFailedError) as exc_info:
            client.poll_device_auth("C")
        assert str(exc_info.value) == "Failed to poll device authorization: 500"
        assert exc_info.value.exit_code == 3


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


class TestFetchCatalog:
    def test_anonymous_request(self, make_client, catalog_body) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return _json_response(catalog_body)

        records = make_client(handler).fetch_catalog()
        assert [r.id for r in records] == [m["id"] for m in catalog_body["data"]]
        assert str(seen[0].url) == "https://kilo.test/api/gateway/models"
        assert "authorization" not in seen[0].headers
        assert seen[0].headers["user-agent"] == "pi-kilo-provider"

    def test_bearer_token(self, make_client) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return _json_response({"data": []})

        make_client(handler).fetch_catalog(token="tok-1")
        assert seen[0].headers["authorization"] == "Bearer tok-1"

    def test_non_success(self, make_client) -> None:
        client = make_client(lambda r: httpx.Response(503))
        with pytest.raises(FetchFailedError) as exc_info:
            client.fetch_catalog()
        assert exc_info.value.status == 503
        assert str(exc_info.value) == "Failed to fetch models: 503 Service Unavailable"
        assert exc_info.value.exit_code == 5

    def test_missing_data_array(self, make_client) -> None:
        client = make_client(lambda r: _json_response({"models": []}))
        with pytest.raises(InvalidResponseShapeError, match="missing data array"):
            client.fetch_catalog()

    def test_data_not_a_list(self, make_client) -> None:
        client = make_client(lambda r: _json_response({"data": {"id": "x"}}))
        with pytest.raises(InvalidResponseShapeError):
            client.fetch_catalog()

    def test_timeout(self, make_client) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(FetchTimeoutError, match="10s"):
            make_client(handler).fetch_catalog()

    def test_malformed_records_skipped(self, make_client, raw_record) -> None:
        body = {
            "data": [
                raw_record("ok/one"),
                {"name": "no id", "context_length": 1000},
                {"id": "no/context"},
                "not-an-object",
                raw_record("ok/two"),
            ]
        }
        records = make_client(lambda r: _json_response(body)).fetch_catalog()
        assert [r.id for r in records] == ["ok/one", "ok/two"]


# ---------------------------------------------------------------------------
# Catalog deadline against a real socket
# ---------------------------------------------------------------------------


CATALOG_BYTES = b'{"data": []}'


def _serve_once(listener: socket.socket, byte_delay: float) -> None:
    """Answer one request, sending the body one byte every *byte_delay* seconds."""
    conn, _ = listener.accept()
    with conn:
        conn.recv(65536)
        head = (
            "HTTP/1.1 200 OK\r\n"
            "Content-Type: application/json\r\n"
            f"Content-Length: {len(CATALOG_BYTES)}\r\n"
            "Connection: close\r\n\r\n"
        )
        try:
            conn.sendall(head.encode())
            for i in range(len(CATALOG_BYTES)):
                time.sleep(byte_delay)
                conn.sendall(CATALOG_BYTES[i : i + 1])
        except OSError:
            pass


@pytest.fixture
def dripping_server():
    """Start a one-shot server; yields a function taking the per-byte delay."""
    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    listener.bind(("127.0.0.1", 0))
    listener.listen(1)
    threads: list[threading.Thread] = []

    def _start(byte_delay: float) -> GatewayConfig:
        thread = threading.Thread(target=_serve_once, args=(listener, byte_delay), daemon=True)
        thread.start()
        threads.append(thread)
        host, port = listener.getsockname()
        return GatewayConfig(api_base=f"http://{host}:{port}")

    yield _start
    for thread in threads:
        thread.join(timeout=10)
    listener.close()


class TestFetchCatalogDeadline:
    def test_slow_body_hits_deadline(self, dripping_server) -> None:
        config = dripping_server(0.3)
        with httpx.Client(trust_env=False) as http_client:
            client = GatewayClient(config, http_client=http_client)
            started = time.monotonic()
            with pytest.raises(FetchTimeoutError, match="1s"):
                client.fetch_catalog(timeout=1.0)
            elapsed = time.monotonic() - started

        # the full body would take 3.6s to arrive
        assert elapsed < 2.0

    def test_fast_body_within_deadline(self, dripping_server) -> None:
        config = dripping_server(0.0)
        with httpx.Client(trust_env=False) as http_client:
            records = GatewayClient(config, http_client=http_client).fetch_catalog(timeout=5.0)
        assert records == []
