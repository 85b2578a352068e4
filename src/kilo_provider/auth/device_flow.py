"""Device authorization login for the Kilo gateway.

For environments where the user approves the login in a browser that may
live on another machine. Works like ``gh auth login`` with a one-time code.

Flow:
    1. POST to the device-auth endpoint to obtain a ``code`` and a
       ``verificationUrl``.
    2. Hand the URL and "Enter code: {code}" to the caller.
    3. Poll ``/codes/{code}`` every three seconds until the code is
       approved, denied or expired, the deadline passes, or the caller
       cancels.
    4. On approval: return :class:`~kilo_provider.models.Credentials`
       valid for one year.

The wait between polls is :meth:`threading.Event.wait`, so setting the
caller's cancellation event interrupts a sleep immediately instead of after
the interval has elapsed.

See Also:
    :class:`kilo_provider.auth.base.LoginCallbacks` for the caller contract.
"""

from __future__ import annotations

import enum
import logging
import math
import threading
import time
from typing import NoReturn

from kilo_provider.auth.base import AuthPrompt, LoginCallbacks
from kilo_provider.auth.credentials import build_credentials
from kilo_provider.client.gateway import GatewayClient
from kilo_provider.config import POLL_INTERVAL
from kilo_provider.exceptions import (
    AuthenticationTimeoutError,
    AuthorizationDeniedError,
    CodeExpiredError,
    KiloError,
    LoginCancelledError,
    MissingTokenError,
)
from kilo_provider.models import Credentials, DeviceAuthPollResult, DeviceAuthSession, PollStatus

logger = logging.getLogger(__name__)


class LoginState(str, enum.Enum):
    """Lifecycle of one login attempt. Everything after ``AWAITING_APPROVAL`` is terminal."""

    IDLE = "idle"
    INITIATING = "initiating"
    AWAITING_APPROVAL = "awaiting_approval"
    APPROVED = "approved"
    DENIED = "denied"
    EXPIRED = "expired"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


class DeviceAuthFlow:
    """Drive a single device-authorization login to a terminal state.

    One instance handles one login attempt; :attr:`state` records how far
    it got. Every poll iteration ends either in "still pending, keep
    waiting" or in a terminal state, so the flow is never left ambiguous.

    Args:
        client: Gateway client used for the initiate and poll calls.
        poll_interval: Seconds to wait before each poll.

    Example::

        with GatewayClient() as client:
            flow = DeviceAuthFlow(client)
            creds = flow.login(LoginCallbacks(on_auth=lambda p: print(p.url)))
    """

    def __init__(self, client: GatewayClient, poll_interval: float = POLL_INTERVAL) -> None:
        self._client = client
        self._poll_interval = poll_interval
        self.state = LoginState.IDLE

    def login(self, callbacks: LoginCallbacks) -> Credentials:
        """Run the full device flow.

        Args:
            callbacks: Prompt, progress and cancellation hooks.

        Returns:
            Credentials whose access and refresh tokens both hold the
            approved token.

        Raises:
            LoginCancelledError: If ``callbacks.signal`` is set before or
                during a wait.
            AuthorizationDeniedError: If the user denies the code.
            CodeExpiredError: If the gateway expires the code.
            AuthenticationTimeoutError: If the deadline passes unresolved.
            KiloError: Any gateway error from initiating or polling
                (:class:`~kilo_provider.exceptions.RateLimitedError`,
                :class:`~kilo_provider.exceptions.PollFailedError`, ...).
        """
        signal = callbacks.signal if callbacks.signal is not None else threading.Event()

        self._transition(LoginState.INITIATING)
        callbacks.progress("Initiating device authorization...")
        try:
            session = self._client.initiate_device_auth()
        except KiloError:
            self._transition(LoginState.FAILED)
            raise

        self._transition(LoginState.AWAITING_APPROVAL)
        callbacks.on_auth(
            AuthPrompt(url=session.verification_url, instructions=f"Enter code: {session.code}")
        )
        callbacks.progress("Waiting for browser authorization...")

        return self._poll_until_resolved(session, signal, callbacks)

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _poll_until_resolved(
        self,
        session: DeviceAuthSession,
        signal: threading.Event,
        callbacks: LoginCallbacks,
    ) -> Credentials:
        deadline = session.deadline

        while time.monotonic() < deadline:
            if signal.is_set():
                self._cancel()
            if signal.wait(self._poll_interval):
                self._cancel()
            if time.monotonic() >= deadline:
                break

            try:
                result = self._client.poll_device_auth(session.code)
            except KiloError:
                self._transition(LoginState.FAILED)
                raise

            if result.status is PollStatus.APPROVED:
                return self._approve(result, callbacks)
            if result.status is PollStatus.DENIED:
                self._transition(LoginState.DENIED)
                raise AuthorizationDeniedError()
            if result.status is PollStatus.EXPIRED:
                self._transition(LoginState.EXPIRED)
                raise CodeExpiredError()

            remaining = max(0, math.ceil(deadline - time.monotonic()))
            callbacks.progress(f"Waiting for browser authorization... ({remaining}s remaining)")

        self._transition(LoginState.TIMED_OUT)
        raise AuthenticationTimeoutError()

    def _approve(self, result: DeviceAuthPollResult, callbacks: LoginCallbacks) -> Credentials:
        if not result.token:
            self._transition(LoginState.FAILED)
            raise MissingTokenError()
        self._transition(LoginState.APPROVED)
        callbacks.progress("Login successful!")
        return build_credentials(result.token)

    def _cancel(self) -> NoReturn:
        self._transition(LoginState.CANCELLED)
        raise LoginCancelledError()

    def _transition(self, state: LoginState) -> None:
        logger.debug("Device login: %s -> %s", self.state.value, state.value)
        self.state = state
