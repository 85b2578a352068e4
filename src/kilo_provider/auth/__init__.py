"""Device-authorization login and credential handling for kilo_provider.

The main entry points are:

- :class:`DeviceAuthFlow` -- the login state machine (initiate, poll,
  resolve) with cancellation and timeout.
- :class:`LoginCallbacks` / :class:`AuthPrompt` -- the caller contract.
- :func:`refresh_credentials` -- pass-through validity check; the gateway
  has no refresh exchange, so expiry forces a full re-login.

Typical usage::

    from kilo_provider.auth import DeviceAuthFlow, LoginCallbacks

    flow = DeviceAuthFlow(client)
    creds = flow.login(LoginCallbacks(on_auth=show_prompt))
"""

from kilo_provider.auth.base import AuthPrompt, LoginCallbacks
from kilo_provider.auth.credentials import (
    build_credentials,
    get_api_key,
    is_expired,
    refresh_credentials,
)
from kilo_provider.auth.device_flow import DeviceAuthFlow, LoginState

__all__ = [
    "AuthPrompt",
    "DeviceAuthFlow",
    "LoginCallbacks",
    "LoginState",
    "build_credentials",
    "get_api_key",
    "is_expired",
    "refresh_credentials",
]
