"""Synchronous HTTP client for the Kilo gateway.

This module provides :class:`GatewayClient`, which issues the three
outbound calls the provider needs and maps transport and status outcomes to
typed results or typed exceptions:

- :meth:`~GatewayClient.initiate_device_auth` -- ``POST /api/device-auth/codes``
- :meth:`~GatewayClient.poll_device_auth` -- ``GET /api/device-auth/codes/{code}``
- :meth:`~GatewayClient.fetch_catalog` -- ``GET /api/gateway/models``

The client never retries. Callers decide whether an operation is worth
re-invoking.

See Also:
    :mod:`kilo_provider.auth.device_flow` -- drives the poll loop.
    :mod:`kilo_provider.catalog.fetcher` -- filters and normalizes the
    catalog.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from kilo_provider.config import MODELS_FETCH_TIMEOUT, USER_AGENT, GatewayConfig, load_config
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
from kilo_provider.models import (
    DeviceAuthPollResult,
    DeviceAuthSession,
    PollStatus,
    RawModelRecord,
)

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = 30.0


class GatewayClient:
    """Blocking client for the gateway's device-auth and catalog endpoints.

    Wraps :class:`httpx.Client`. When *http_client* is supplied (for example
    one built on :class:`httpx.MockTransport`) it is used as-is and left
    open on exit; otherwise the client owns and closes its own transport.

    Args:
        config: Resolved endpoints. Defaults to :func:`~kilo_provider.config.load_config`.
        http_client: Optional pre-built :class:`httpx.Client`.

    Example::

        with GatewayClient() as client:
            session = client.initiate_device_auth()
            result = client.poll_device_auth(session.code)
    """

    def __init__(
        self,
        config: Optional[GatewayConfig] = None,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        self._config = config or load_config()
        self._client = http_client
        self._owns_client = http_client is None

    @property
    def config(self) -> GatewayConfig:
        return self._config

    # ------------------------------------------------------------------ #
    # Context manager
    # ------------------------------------------------------------------ #

    def __enter__(self) -> GatewayClient:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def close(self) -> None:
        """Close the underlying transport if this client created it."""
        if self._owns_client and self._client is not None:
            self._client.close()
            self._client = None

    # ------------------------------------------------------------------ #
    # Device authorization
    # ------------------------------------------------------------------ #

    def initiate_device_auth(self) -> DeviceAuthSession:
        """Request a new device code.

        Returns:
            A :class:`~kilo_provider.models.DeviceAuthSession` whose
            ``deadline`` is ``time.monotonic() + expiresIn`` at call time.

        Raises:
            RateLimitedError: On HTTP 429.
            InitiationFailedError: On any other non-2xx status.
            InvalidResponseShapeError: If the body lacks
                ``code``/``verificationUrl``/``expiresIn``.
            GatewayConnectionError: On network failures.
        """
        started = time.monotonic()
        response = self._send(
            "POST",
            self._config.device_auth_endpoint,
            headers={"Content-Type": "application/json"},
        )

        if response.status_code == 429:
            raise RateLimitedError()
        if not response.is_success:
            raise InitiationFailedError(response.status_code)

        body = self._json_object(response, "device authorization")
        try:
            session = DeviceAuthSession.model_validate(body)
        except ValidationError as exc:
            raise InvalidResponseShapeError(
                f"Invalid device authorization response: {exc.error_count()} invalid field(s)"
            ) from exc
        session.deadline = started + session.expires_in
        logger.debug("Device code issued, expires in %ss", session.expires_in)
        return session

    def poll_device_auth(self, code: str) -> DeviceAuthPollResult:
        """Poll the status of a device code once.

        Args:
            code: The code returned by :meth:`initiate_device_auth`.

        Returns:
            A :class:`~kilo_provider.models.DeviceAuthPollResult`. HTTP 202,
            403 and 410 map to pending, denied and expired without reading
            the body. A 200 body whose ``status`` is not one of the four
            known values is rejected rather than treated as still pending.

        Raises:
            PollFailedError: On any other non-2xx status.
            MissingTokenError: If the gateway reports approval without a token.
            InvalidResponseShapeError: If a 200 body has no valid ``status``.
            GatewayConnectionError: On network failures.
        """
        response = self._send("GET", f"{self._config.device_auth_endpoint}/{code}")

        status = response.status_code
        if status == 202:
            return DeviceAuthPollResult(status=PollStatus.PENDING)
        if status == 403:
            return DeviceAuthPollResult(status=PollStatus.DENIED)
        if status == 410:
            return DeviceAuthPollResult(status=PollStatus.EXPIRED)
        if not response.is_success:
            raise PollFailedError(status)

        body = self._json_object(response, "device authorization poll")
        try:
            result = DeviceAuthPollResult.model_validate(body)
        except ValidationError as exc:
            raise InvalidResponseShapeError(
                f"Invalid device authorization poll response: {body.get('status')!r}"
            ) from exc

        if result.status is PollStatus.APPROVED:
            if not result.token:
                raise MissingTokenError()
            if result.user_email:
                logger.debug("Device code approved for %s", result.user_email)
        return result

    # ------------------------------------------------------------------ #
    # Catalog
    # ------------------------------------------------------------------ #

    def fetch_catalog(
        self,
        token: Optional[str] = None,
        timeout: float = MODELS_FETCH_TIMEOUT,
    ) -> list[RawModelRecord]:
        """Fetch the raw model catalog.

        Args:
            token: Optional bearer token. Without it the gateway returns the
                anonymous catalog.
            timeout: Hard limit in seconds on the whole request, body included.

        Returns:
            Every record in ``data`` that validates. Records without an
            ``id`` or ``context_length`` are skipped.

        Raises:
            FetchTimeoutError: If the request exceeds *timeout*.
            FetchFailedError: On a non-2xx status.
            InvalidResponseShapeError: If ``data`` is missing or not a list.
            GatewayConnectionError: On other network failures.
        """
        headers = {
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            status, reason, content = self._get_within(
                self._config.models_endpoint, headers, time.monotonic() + timeout
            )
        except httpx.TimeoutException as exc:
            raise FetchTimeoutError(timeout) from exc

        if not 200 <= status < 300:
            raise FetchFailedError(status, reason)

        body = self._parse_object(content, "models")
        data = body.get("data")
        if not isinstance(data, list):
            raise InvalidResponseShapeError("Invalid models response: missing data array")

        records: list[RawModelRecord] = []
        for item in data:
            try:
                records.append(RawModelRecord.model_validate(item))
            except ValidationError as exc:
                model_id = item.get("id") if isinstance(item, dict) else None
                logger.debug("Skipping malformed model record %r: %s", model_id, exc)
        return records

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _http(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=_DEFAULT_TIMEOUT, follow_redirects=True)
        return self._client

    def _send(
        self,
        method: str,
        url: str,
        headers: Optional[dict[str, str]] = None,
    ) -> httpx.Response:
        """Send one device-auth request, translating transport errors."""
        try:
            return self._http().request(method, url, headers=headers or {})
        except httpx.TimeoutException:
            raise GatewayConnectionError(f"{method} {url} timed out") from None
        except httpx.HTTPError as exc:
            raise GatewayConnectionError(f"{method} {url} failed: {exc}") from exc

    def _get_within(
        self, url: str, headers: dict[str, str], deadline: float
    ) -> tuple[int, str, bytes]:
        """GET *url* and read the whole body before the monotonic *deadline*.

        httpx timeouts bound each connect, write and read separately, so a
        server dripping bytes could hold a plain request open indefinitely.
        The body is streamed instead and the deadline is checked after every
        chunk. Each request phase is given only the time left at the start.

        Returns:
            ``(status_code, reason_phrase, body)``. The body is empty for
            non-2xx responses.

        Raises:
            httpx.TimeoutException: Once *deadline* has passed.
            GatewayConnectionError: On other transport failures.
        """
        try:
            with self._http().stream(
                "GET", url, headers=headers, timeout=_time_left(deadline)
            ) as response:
                if not response.is_success:
                    return response.status_code, response.reason_phrase, b""
                body = bytearray()
                for chunk in response.iter_bytes():
                    body.extend(chunk)
                    _time_left(deadline)
                return response.status_code, response.reason_phrase, bytes(body)
        except httpx.TimeoutException:
            raise
        except httpx.HTTPError as exc:
            raise GatewayConnectionError(f"GET {url} failed: {exc}") from exc

    @staticmethod
    def _json_object(response: httpx.Response, what: str) -> dict[str, Any]:
        return GatewayClient._parse_object(response.content, what)

    @staticmethod
    def _parse_object(content: bytes, what: str) -> dict[str, Any]:
        try:
            body = json.loads(content)
        except ValueError as exc:
            raise InvalidResponseShapeError(f"Invalid {what} response: not JSON") from exc
        if not isinstance(body, dict):
            raise InvalidResponseShapeError(f"Invalid {what} response: expected an object")
        return body


def _time_left(deadline: float) -> float:
    """Seconds until *deadline*; raises :class:`httpx.TimeoutException` once it has passed."""
    left = deadline - time.monotonic()
    if left <= 0:
        raise httpx.TimeoutException("catalog fetch deadline exceeded")
    return left
