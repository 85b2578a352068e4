"""Exception hierarchy for kilo_provider.

All exceptions inherit from :class:`KiloError`, which carries an
``exit_code`` attribute mapped to a constant from
:mod:`kilo_provider.exit_codes`. The CLI entry point in
:func:`kilo_provider.app.main` catches ``KiloError`` and exits with the
appropriate code. Host integrations catch the catalog branch at
non-critical call sites and degrade to the free model list.

Subclass hierarchy::

    KiloError (exit 1)
    +-- ConfigError                 (exit 1)
    +-- GatewayConnectionError      (exit 6)
    +-- AuthError                   (exit 3)
    |   +-- RateLimitedError
    |   +-- InitiationFailedError
    |   +-- PollFailedError
    |   +-- MissingTokenError
    |   +-- AuthorizationDeniedError
    |   +-- CodeExpiredError
    |   +-- LoginCancelledError     (exit 130)
    |   +-- AuthenticationTimeoutError
    |   +-- CredentialsExpiredError
    +-- CatalogError                (exit 5)
        +-- FetchFailedError
        +-- FetchTimeoutError
        +-- InvalidResponseShapeError
"""

from kilo_provider.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CANCELLED,
    EXIT_CATALOG_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
)


class KiloError(Exception):
    """Base exception for all kilo_provider errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`kilo_provider.exit_codes`.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigError(KiloError):
    """Raised for configuration problems (missing API key, bad gateway URL)."""

    exit_code = EXIT_GENERIC_FAILURE


class GatewayConnectionError(KiloError):
    """Raised on network-level failures talking to the gateway (DNS, refused connection)."""

    exit_code = EXIT_CONNECTION_ERROR


# --- Device authorization ---


class AuthError(KiloError):
    """Raised when device authorization fails or credentials are unusable."""

    exit_code = EXIT_AUTH_FAILURE


class RateLimitedError(AuthError):
    """The gateway refused to issue a new device code (HTTP 429)."""

    def __init__(self) -> None:
        super().__init__(
            "Too many pending authorization requests. Please try again later."
        )


class InitiationFailedError(AuthError):
    """The device-code request returned a non-success status."""

    def __init__(self, status: int) -> None:
        super().__init__(f"Failed to initiate device authorization: {status}")
        self.status = status


class PollFailedError(AuthError):
    """A device-code poll returned an unexpected non-success status."""

    def __init__(self, status: int) -> None:
        super().__init__(f"Failed to poll device authorization: {status}")
        self.status = status


class MissingTokenError(AuthError):
    """The gateway reported approval but sent no token."""

    def __init__(self) -> None:
        super().__init__("Authorization approved but no token received")


class AuthorizationDeniedError(AuthError):
    """The user denied the device code in the browser."""

    def __init__(self) -> None:
        super().__init__("Authorization denied by user.")


class CodeExpiredError(AuthError):
    """The gateway reported the device code as expired."""

    def __init__(self) -> None:
        super().__init__("Authorization code expired. Please try again.")


class LoginCancelledError(AuthError):
    """The caller fired the cancellation signal while waiting for approval."""

    exit_code = EXIT_CANCELLED

    def __init__(self) -> None:
        super().__init__("Login cancelled")


class AuthenticationTimeoutError(AuthError):
    """The device code deadline passed without a resolution."""

    def __init__(self) -> None:
        super().__init__("Authentication timed out. Please try again.")


class CredentialsExpiredError(AuthError):
    """Stored credentials are past their expiry; a full re-login is required."""

    def __init__(self) -> None:
        super().__init__(
            "Kilo token expired. Please run /login kilo to re-authenticate."
        )


# --- Model catalog ---


class CatalogError(KiloError):
    """Raised when the gateway model catalog cannot be retrieved."""

    exit_code = EXIT_CATALOG_FAILURE


class FetchFailedError(CatalogError):
    """The models endpoint returned a non-success status."""

    def __init__(self, status: int, status_text: str = "") -> None:
        super().__init__(f"Failed to fetch models: {status} {status_text}".rstrip())
        self.status = status
        self.status_text = status_text


class FetchTimeoutError(CatalogError):
    """The models request exceeded its hard timeout."""

    def __init__(self, timeout: float) -> None:
        super().__init__(f"Timed out fetching models after {timeout:g}s")
        self.timeout = timeout


class InvalidResponseShapeError(CatalogError):
    """A gateway response body did not have the expected structure."""
