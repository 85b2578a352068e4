"""Credential construction and validity checks.

The gateway issues one opaque, long-lived token and offers no refresh
exchange. "Refreshing" therefore means: hand the credentials back unchanged
while they are valid, and demand a full re-login once they have expired.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from kilo_provider.config import TOKEN_VALIDITY
from kilo_provider.exceptions import CredentialsExpiredError
from kilo_provider.models import Credentials


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def build_credentials(token: str, now: Optional[datetime] = None) -> Credentials:
    """Wrap a freshly approved token.

    Args:
        token: The token from an approved device-code poll.
        now: Reference time; defaults to the current UTC time.

    Returns:
        :class:`~kilo_provider.models.Credentials` with both token fields
        set to *token* and a one-year expiry.
    """
    issued = now or _utcnow()
    return Credentials(
        refresh_token=token,
        access_token=token,
        expires_at=issued + TOKEN_VALIDITY,
    )


def is_expired(credentials: Credentials, now: Optional[datetime] = None) -> bool:
    """Return ``True`` once ``expires_at`` is no longer in the future.

    Naive ``expires_at`` values are interpreted as UTC.
    """
    expires = credentials.expires_at
    if expires.tzinfo is None:
        expires = expires.replace(tzinfo=timezone.utc)
    return expires <= (now or _utcnow())


def refresh_credentials(credentials: Credentials) -> Credentials:
    """Pass valid credentials through; reject expired ones.

    Args:
        credentials: Credentials previously returned by a login.

    Returns:
        The same *credentials* object.

    Raises:
        CredentialsExpiredError: If the credentials have expired.
    """
    if is_expired(credentials):
        raise CredentialsExpiredError()
    return credentials


def get_api_key(credentials: Credentials) -> str:
    """Return the value to send as the bearer token."""
    return credentials.access_token
