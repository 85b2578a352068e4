"""Host-facing contract: what the provider needs from its host and what it hands back.

The host application owns the provider registry, the credential store and
the event loop that fires lifecycle hooks. This module describes those
collaborators as abstract base classes so the provider can be driven by
any host (and by test doubles):

* :class:`AuthStorage` -- read access to stored credentials.
* :class:`ModelRegistry` -- re-registration surface available inside hooks.
* :class:`ExtensionHost` -- registration surface available at load time.
* :class:`HookContext` -- per-event context passed to hook handlers.

In the other direction, the provider gives the host a
:class:`ProviderConfig` carrying an :class:`OAuthDescriptor`, and may answer
``before_agent_start`` with an :class:`AgentMessage`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from kilo_provider.auth.base import LoginCallbacks
from kilo_provider.models import Credentials, NormalizedModel, ProviderModel

SESSION_START = "session_start"
"""Fired once a host session has started and stored credentials are readable."""

BEFORE_AGENT_START = "before_agent_start"
"""Fired before each agent run with the currently selected model."""

HookHandler = Callable[[Any, "HookContext"], Optional["AgentMessage"]]


@dataclass
class StoredCredential:
    """A credential as the host stores it.

    Attributes:
        type: ``"oauth"`` for device-flow logins, ``"api_key"`` for static keys.
        credentials: Present when ``type == "oauth"``.
        key: Present when ``type == "api_key"``.
    """

    type: str
    credentials: Optional[Credentials] = None
    key: Optional[str] = None

    @property
    def is_oauth(self) -> bool:
        return self.type == "oauth" and self.credentials is not None


@dataclass
class OAuthDescriptor:
    """Login integration handed to the host registry.

    Attributes:
        name: Display name shown in the host's login picker.
        login: Runs the interactive login and returns credentials.
        refresh_token: Called by the host before reusing stored credentials.
        get_api_key: Extracts the bearer value from credentials.
        modify_models: Called by the host on every registry refresh while
            credentials exist; may rewrite the registered model list.
    """

    name: str
    login: Callable[[LoginCallbacks], Credentials]
    refresh_token: Callable[[Credentials], Credentials]
    get_api_key: Callable[[Credentials], str]
    modify_models: Callable[[list[ProviderModel], Credentials], list[ProviderModel]]


@dataclass
class ProviderConfig:
    """Everything the host needs to register a provider."""

    base_url: str
    api_key: str
    api: str
    headers: dict[str, str] = field(default_factory=dict)
    models: list[NormalizedModel] = field(default_factory=list)
    oauth: Optional[OAuthDescriptor] = None


@dataclass
class AgentMessage:
    """A message the host shows inline before an agent run."""

    custom_type: str
    content: str
    display: str = "inline"


class AuthStorage(ABC):
    """Read access to the host's credential store."""

    @abstractmethod
    def get(self, provider: str) -> Optional[StoredCredential]:
        """Return the stored credential for *provider*, or ``None``."""
        ...


class ModelRegistry(ABC):
    """The host's provider registry as seen from inside a hook."""

    @property
    @abstractmethod
    def auth_storage(self) -> AuthStorage:
        ...

    @abstractmethod
    def register_provider(self, name: str, config: ProviderConfig) -> None:
        """Register or replace provider *name*.

        Hosts apply ``config.oauth.modify_models`` to the resulting model
        list when credentials for *name* exist.
        """
        ...


class ExtensionHost(ABC):
    """The registration surface handed to the provider at load time."""

    @abstractmethod
    def register_provider(self, name: str, config: ProviderConfig) -> None:
        ...

    @abstractmethod
    def on(self, event: str, handler: HookHandler) -> None:
        """Subscribe *handler* to a lifecycle *event*."""
        ...


@dataclass
class HookContext:
    """Context passed to lifecycle hook handlers.

    Attributes:
        model_registry: Registry access, including stored credentials.
        model: The currently selected model, when the event has one.
    """

    model_registry: ModelRegistry
    model: Optional[ProviderModel] = None
