"""Gateway configuration resolved from the environment.

This module holds every constant the provider needs and the single
environment-driven setting the host can override:

* **Gateway base** -- ``KILO_API_URL`` (default ``https://api.kilo.ai``).
  The device-auth endpoint, the gateway base and the models endpoint are
  all derived from it. See :func:`load_config`.
* **Static API key** -- ``KILO_API_KEY``. The host reads it as an
  alternative to device-flow login; the developer CLI reads it through
  :func:`resolve_api_key`.

Derived URLs are exposed on :class:`GatewayConfig` so that tests can build
a config pointing anywhere without touching the process environment.
"""

from __future__ import annotations

import os
from datetime import timedelta
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from kilo_provider.exceptions import ConfigError

BASE_URL_ENV_VAR = "KILO_API_URL"
API_KEY_ENV_VAR = "KILO_API_KEY"

DEFAULT_API_BASE = "https://api.kilo.ai"

PROVIDER_NAME = "kilo"
"""Provider tag under which models are registered with the host."""

PROVIDER_DISPLAY_NAME = "Kilo"
WIRE_API = "openai-completions"

POLL_INTERVAL = 3.0
"""Seconds between device-code polls."""

MODELS_FETCH_TIMEOUT = 10.0
"""Hard timeout in seconds for a catalog fetch."""

TOKEN_VALIDITY = timedelta(days=365)
TOS_URL = "https://kilo.ai/terms"

USER_AGENT = "pi-kilo-provider"
PROVIDER_HEADERS: dict[str, str] = {
    "X-KILOCODE-EDITORNAME": "Pi",
    "User-Agent": USER_AGENT,
}


class GatewayConfig(BaseModel):
    """Resolved gateway endpoints.

    Only ``api_base`` is stored; everything else is derived so the
    endpoints can never disagree with each other.

    Example::

        config = GatewayConfig(api_base="http://localhost:3000/")
        assert config.models_endpoint == "http://localhost:3000/api/gateway/models"
    """

    api_base: str = Field(default=DEFAULT_API_BASE, description="Gateway root URL")

    @field_validator("api_base")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        value = value.strip().rstrip("/")
        if not value.startswith(("http://", "https://")):
            raise ValueError(f"gateway URL must be http(s), got '{value}'")
        return value

    @property
    def gateway_base(self) -> str:
        """OpenAI-compatible base URL handed to the host as the provider base."""
        return f"{self.api_base}/api/gateway"

    @property
    def device_auth_endpoint(self) -> str:
        return f"{self.api_base}/api/device-auth/codes"

    @property
    def models_endpoint(self) -> str:
        return f"{self.gateway_base}/models"


def load_config() -> GatewayConfig:
    """Build a :class:`GatewayConfig` from the process environment.

    An empty ``KILO_API_URL`` is treated as unset.

    Returns:
        The resolved configuration.

    Raises:
        ConfigError: If ``KILO_API_URL`` is set to something that is not an
            http(s) URL.
    """
    override = os.environ.get(BASE_URL_ENV_VAR, "")
    if not override:
        return GatewayConfig()
    try:
        return GatewayConfig(api_base=override)
    except ValueError as exc:
        raise ConfigError(f"Invalid {BASE_URL_ENV_VAR}: {exc}") from exc


def resolve_api_key(explicit: Optional[str] = None) -> Optional[str]:
    """Return the API key to authenticate catalog requests with.

    Args:
        explicit: A token passed on the command line. Takes precedence.

    Returns:
        ``explicit`` if given, else the value of ``KILO_API_KEY``, else
        ``None`` (anonymous, free models only).
    """
    if explicit:
        return explicit
    return os.environ.get(API_KEY_ENV_VAR) or None
