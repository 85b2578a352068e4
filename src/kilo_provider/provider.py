"""Kilo provider -- wires login and the model catalog into host lifecycle hooks.

The provider is always registered with the free model list, so it is usable
before any login. Once credentials exist, the host calls
:meth:`KiloProvider.modify_models` on every registry refresh and the free
list is swapped for the full authenticated catalog cached in
:class:`ProviderState`. After logout the host stops calling
``modify_models`` and the free list comes back on its own.

The cache is warmed at two points:

1. right after a successful :meth:`KiloProvider.login`, so the registry
   refresh the host runs after login already sees the full catalog;
2. on ``session_start`` when valid OAuth credentials are already stored,
   followed by a re-registration to trigger ``modify_models``.

Catalog fetches at these points and at startup never fail the surrounding
operation: errors are logged as warnings and the free list stays in place.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from kilo_provider.auth.base import LoginCallbacks
from kilo_provider.auth.credentials import get_api_key, is_expired, refresh_credentials
from kilo_provider.auth.device_flow import DeviceAuthFlow
from kilo_provider.catalog.fetcher import fetch_and_filter
from kilo_provider.catalog.reconciler import reconcile
from kilo_provider.client.gateway import GatewayClient
from kilo_provider.config import (
    API_KEY_ENV_VAR,
    POLL_INTERVAL,
    PROVIDER_DISPLAY_NAME,
    PROVIDER_HEADERS,
    PROVIDER_NAME,
    TOS_URL,
    WIRE_API,
)
from kilo_provider.exceptions import KiloError
from kilo_provider.host import (
    BEFORE_AGENT_START,
    SESSION_START,
    AgentMessage,
    ExtensionHost,
    HookContext,
    OAuthDescriptor,
    ProviderConfig,
)
from kilo_provider.models import Credentials, NormalizedModel, ProviderModel

logger = logging.getLogger(__name__)


@dataclass
class ProviderState:
    """Cross-hook state owned by one :class:`KiloProvider`.

    Attributes:
        free_models: Anonymous catalog fetched at load time.
        full_catalog: Latest authenticated catalog. Only ever replaced as a
            whole by a completed fetch; read by :func:`reconcile`.
        tos_shown: Whether the first-use terms notice has been handled.
    """

    free_models: list[NormalizedModel] = field(default_factory=list)
    full_catalog: list[NormalizedModel] = field(default_factory=list)
    tos_shown: bool = False


class KiloProvider:
    """Registers the Kilo gateway with a host and reacts to its lifecycle events.

    Writes to :attr:`state` are not synchronized. The host must not run a
    login and a session-start warm-up concurrently.

    Args:
        client: Gateway client shared by every call. Defaults to one built
            from the environment.
        state: Initial state, mainly for tests.
        poll_interval: Seconds between device-code polls.
    """

    def __init__(
        self,
        client: Optional[GatewayClient] = None,
        state: Optional[ProviderState] = None,
        poll_interval: float = POLL_INTERVAL,
    ) -> None:
        self._client = client or GatewayClient()
        self._poll_interval = poll_interval
        self.state = state or ProviderState()

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, host: ExtensionHost) -> None:
        """Fetch the free catalog, register the provider and subscribe to hooks."""
        free = self._fetch(token=None, free_only=True, when="at startup")
        self.state.free_models = free or []

        host.register_provider(PROVIDER_NAME, self.provider_config())
        host.on(SESSION_START, self.on_session_start)
        host.on(BEFORE_AGENT_START, self.on_before_agent_start)
        logger.info("Registered provider '%s' with %d free models", PROVIDER_NAME, len(self.state.free_models))

    def provider_config(self) -> ProviderConfig:
        """Build the registration payload around the current free list."""
        return ProviderConfig(
            base_url=self._client.config.gateway_base,
            api_key=API_KEY_ENV_VAR,
            api=WIRE_API,
            headers=dict(PROVIDER_HEADERS),
            models=list(self.state.free_models),
            oauth=self.oauth_descriptor(),
        )

    def oauth_descriptor(self) -> OAuthDescriptor:
        return OAuthDescriptor(
            name=PROVIDER_DISPLAY_NAME,
            login=self.login,
            refresh_token=refresh_credentials,
            get_api_key=get_api_key,
            modify_models=self.modify_models,
        )

    # ------------------------------------------------------------------
    # OAuth descriptor callbacks
    # ------------------------------------------------------------------

    def login(self, callbacks: LoginCallbacks) -> Credentials:
        """Run the device flow, then warm the full catalog with the new token.

        Raises:
            AuthError: Any login failure; catalog failures are only logged.
        """
        credentials = DeviceAuthFlow(self._client, self._poll_interval).login(callbacks)

        catalog = self._fetch(token=credentials.access_token, free_only=False, when="after login")
        if catalog is not None:
            self.state.full_catalog = catalog
        return credentials

    def modify_models(
        self, models: list[ProviderModel], credentials: Credentials
    ) -> list[ProviderModel]:
        return reconcile(models, self.state.full_catalog, PROVIDER_NAME)

    # ------------------------------------------------------------------
    # Lifecycle hooks
    # ------------------------------------------------------------------

    def on_session_start(self, event: Any, ctx: HookContext) -> None:
        """Pre-fetch the full catalog for an already logged-in user."""
        stored = ctx.model_registry.auth_storage.get(PROVIDER_NAME)
        if stored is None or not stored.is_oauth:
            return
        assert stored.credentials is not None
        if is_expired(stored.credentials):
            logger.info("Stored %s credentials have expired; keeping free models", PROVIDER_NAME)
            return

        catalog = self._fetch(
            token=stored.credentials.access_token, free_only=False, when="at session start"
        )
        if catalog is None:
            return
        self.state.full_catalog = catalog
        if catalog:
            ctx.model_registry.register_provider(PROVIDER_NAME, self.provider_config())

    def on_before_agent_start(self, event: Any, ctx: HookContext) -> Optional[AgentMessage]:
        """Show the terms notice once, the first time an anonymous user picks a Kilo model."""
        if self.state.tos_shown:
            return None
        if ctx.model is None or ctx.model.provider != PROVIDER_NAME:
            return None

        self.state.tos_shown = True
        stored = ctx.model_registry.auth_storage.get(PROVIDER_NAME)
        if stored is not None and stored.is_oauth:
            return None

        return AgentMessage(
            custom_type=PROVIDER_NAME,
            content=f"By using Kilo, you agree to the Terms of Service: {TOS_URL}",
        )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _fetch(
        self, token: Optional[str], free_only: bool, when: str
    ) -> Optional[list[NormalizedModel]]:
        """Fetch a catalog, returning ``None`` instead of raising on failure."""
        try:
            return fetch_and_filter(self._client, token=token, free_only=free_only)
        except KiloError as exc:
            logger.warning("Failed to fetch %s models %s: %s", PROVIDER_NAME, when, exc)
            return None


def register(host: ExtensionHost) -> KiloProvider:
    """Extension entry point: create a provider and register it with *host*."""
    provider = KiloProvider()
    provider.register(host)
    return provider
