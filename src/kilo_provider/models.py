"""Canonical Pydantic models shared across all kilo_provider modules.

The models fall into three groups:

**Device authorization** -- produced by the gateway client and consumed by
the login state machine:
    :class:`DeviceAuthSession`, :class:`PollStatus`,
    :class:`DeviceAuthPollResult`, and :class:`Credentials`.

**Vendor catalog records** -- the OpenRouter-compatible shape returned by
``GET /api/gateway/models``:
    :class:`ModelPricing`, :class:`ModelArchitecture`,
    :class:`TopProvider`, and :class:`RawModelRecord`. Vendor data is
    untrusted: malformed optional fields are coerced to ``None`` instead of
    failing validation, so the normalizer can apply its documented defaults.

**Canonical host records** -- what the host registry understands:
    :class:`ModelCost`, :class:`NormalizedModel`, and
    :class:`ProviderModel`.
"""

from __future__ import annotations

import enum
import math
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# --- Lenient coercion for vendor fields ---


def _lenient_str(value: Any) -> Optional[str]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    return None


def _lenient_str_list(value: Any) -> Optional[list[str]]:
    if not isinstance(value, (list, tuple)):
        return None
    return [item for item in value if isinstance(item, str)]


def _lenient_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return int(value)
    return None


# --- Device authorization ---


class DeviceAuthSession(BaseModel):
    """An issued device code awaiting user approval.

    Created by :meth:`~kilo_provider.client.gateway.GatewayClient.initiate_device_auth`
    from the ``{code, verificationUrl, expiresIn}`` response body. The
    ``deadline`` is a :func:`time.monotonic` timestamp fixed at call time.
    """

    model_config = ConfigDict(populate_by_name=True)

    code: str
    verification_url: str = Field(alias="verificationUrl")
    expires_in: float = Field(alias="expiresIn", ge=0)
    deadline: float = Field(default=0.0, description="time.monotonic() deadline")


class PollStatus(str, enum.Enum):
    """Outcome of a single device-code poll."""

    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"
    EXPIRED = "expired"


class DeviceAuthPollResult(BaseModel):
    """One poll response. ``token`` is only meaningful when approved."""

    model_config = ConfigDict(populate_by_name=True)

    status: PollStatus
    token: Optional[str] = None
    user_email: Optional[str] = Field(default=None, alias="userEmail")


class Credentials(BaseModel):
    """OAuth credentials handed to the host's credential store.

    The gateway issues a single opaque token with no refresh exchange, so
    ``refresh_token`` and ``access_token`` always carry the same value.
    """

    refresh_token: str
    access_token: str
    expires_at: datetime = Field(description="UTC expiry time")


# --- Vendor catalog records ---


class ModelPricing(BaseModel):
    """Per-token USD prices as decimal strings (OpenRouter convention)."""

    prompt: Optional[str] = None
    completion: Optional[str] = None
    input_cache_read: Optional[str] = None
    input_cache_write: Optional[str] = None

    @field_validator("*", mode="before")
    @classmethod
    def _coerce(cls, value: Any) -> Optional[str]:
        return _lenient_str(value)


class ModelArchitecture(BaseModel):
    input_modalities: Optional[list[str]] = None
    output_modalities: Optional[list[str]] = None

    @field_validator("*", mode="before")
    @classmethod
    def _coerce(cls, value: Any) -> Optional[list[str]]:
        return _lenient_str_list(value)


class TopProvider(BaseModel):
    max_completion_tokens: Optional[int] = None

    @field_validator("max_completion_tokens", mode="before")
    @classmethod
    def _coerce(cls, value: Any) -> Optional[int]:
        return _lenient_int(value)


class RawModelRecord(BaseModel):
    """A model entry from the gateway catalog, exactly as the vendor describes it.

    Only ``id`` and ``context_length`` are required; a record missing either
    is skipped by the gateway client. Nested blocks that are not objects are
    dropped to ``None``.
    """

    id: str
    name: str = ""
    context_length: int = Field(ge=0)
    max_completion_tokens: Optional[int] = None
    pricing: Optional[ModelPricing] = None
    architecture: Optional[ModelArchitecture] = None
    top_provider: Optional[TopProvider] = None
    supported_parameters: Optional[list[str]] = None

    @field_validator("max_completion_tokens", mode="before")
    @classmethod
    def _coerce_int(cls, value: Any) -> Optional[int]:
        return _lenient_int(value)

    @field_validator("supported_parameters", mode="before")
    @classmethod
    def _coerce_list(cls, value: Any) -> Optional[list[str]]:
        return _lenient_str_list(value)

    @field_validator("pricing", "architecture", "top_provider", mode="before")
    @classmethod
    def _coerce_block(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else None


# --- Canonical host records ---


class ModelCost(BaseModel):
    """USD per million tokens. Every field is a non-negative finite number."""

    input: float = 0.0
    output: float = 0.0
    cache_read: float = 0.0
    cache_write: float = 0.0


class NormalizedModel(BaseModel):
    """A catalog entry in the host's canonical model-config shape."""

    id: str
    name: str
    reasoning: bool = False
    input: list[str] = Field(default_factory=lambda: ["text"])
    cost: ModelCost = Field(default_factory=ModelCost)
    context_window: int
    max_tokens: int


class ProviderModel(BaseModel):
    """A model as registered with the host, tagged with its provider.

    Besides the normalized fields it carries provider-level routing
    metadata (``api``, ``base_url``, ``headers``). Hosts may attach their
    own fields; those are kept in ``model_extra``.
    """

    model_config = ConfigDict(extra="allow")

    id: str
    name: str
    provider: str
    api: str = ""
    base_url: str = ""
    headers: dict[str, str] = Field(default_factory=dict)
    reasoning: bool = False
    input: list[str] = Field(default_factory=lambda: ["text"])
    cost: ModelCost = Field(default_factory=ModelCost)
    context_window: int = 0
    max_tokens: int = 0

    @classmethod
    def from_template(cls, template: ProviderModel, model: NormalizedModel) -> ProviderModel:
        """Build a registered model from *template* metadata and *model* data.

        Provider metadata and host extras come from *template*; identity,
        capabilities, cost and limits come from *model*. Nothing else is
        copied, so the override set is closed.

        Args:
            template: An existing registered model of the same provider.
            model: The catalog entry to register.

        Returns:
            A new :class:`ProviderModel`; *template* is not modified.
        """
        return cls(
            **dict(template.model_extra or {}),
            provider=template.provider,
            api=template.api,
            base_url=template.base_url,
            headers=dict(template.headers),
            id=model.id,
            name=model.name,
            reasoning=model.reasoning,
            input=list(model.input),
            cost=model.cost.model_copy(),
            context_window=model.context_window,
            max_tokens=model.max_tokens,
        )
