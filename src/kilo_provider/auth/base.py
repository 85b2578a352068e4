"""Caller-facing types for the login flow.

This module defines the two small containers that connect the device
authorization engine to whoever is driving it (a host application or the
developer CLI):

- :class:`AuthPrompt` -- what the user must act on: a URL and instructions.
- :class:`LoginCallbacks` -- how the engine reports to the caller and how
  the caller cancels the engine.

See Also:
    :class:`~kilo_provider.auth.device_flow.DeviceAuthFlow` for the state
    machine that consumes these.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Callable, Optional


@dataclass(frozen=True)
class AuthPrompt:
    """The single point at which the user must act.

    Attributes:
        url: Verification page to open in a browser.
        instructions: Human-readable instructions, e.g. ``"Enter code: ABCD"``.
    """

    url: str
    instructions: str


@dataclass
class LoginCallbacks:
    """Hooks supplied by the caller of a login.

    Attributes:
        on_auth: Called exactly once with the :class:`AuthPrompt` after a
            device code has been issued.
        on_progress: Optional status sink; receives short human-readable
            messages including the remaining wait time.
        signal: Optional cancellation token. Setting the event aborts the
            login, including in the middle of a poll interval.
    """

    on_auth: Callable[[AuthPrompt], None]
    on_progress: Optional[Callable[[str], None]] = None
    signal: Optional[threading.Event] = None

    def progress(self, message: str) -> None:
        if self.on_progress is not None:
            self.on_progress(message)
