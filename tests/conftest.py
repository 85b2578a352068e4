"""Shared test fixtures for kilo_provider.

Provides an isolated environment, a gateway client backed by
:class:`httpx.MockTransport`, and factories for raw catalog records.
These fixtures are automatically discovered by pytest and available to
all test modules without explicit imports.
"""

from __future__ import annotations

from typing import Any, Callable

import httpx
import pytest

from kilo_provider.client.gateway import GatewayClient
from kilo_provider.config import GatewayConfig
from kilo_provider.output import reset_output

TEST_API_BASE = "https://kilo.test"


# ---------------------------------------------------------------------------
# Auto-reset global state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale.
    """
    yield
    reset_output()


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Make sure the developer's own gateway settings never leak into tests."""
    monkeypatch.delenv("KILO_API_URL", raising=False)
    monkeypatch.delenv("KILO_API_KEY", raising=False)


# ---------------------------------------------------------------------------
# Gateway client on a mock transport
# ---------------------------------------------------------------------------


Handler = Callable[[httpx.Request], httpx.Response]


@pytest.fixture
def gateway_config() -> GatewayConfig:
    return GatewayConfig(api_base=TEST_API_BASE)


@pytest.fixture
def make_client(gateway_config: GatewayConfig) -> Callable[[Handler], GatewayClient]:
    """Return a factory building a :class:`GatewayClient` around a handler."""

    def _factory(handler: Handler) -> GatewayClient:
        http_client = httpx.Client(transport=httpx.MockTransport(handler))
        return GatewayClient(gateway_config, http_client=http_client)

    return _factory


# ---------------------------------------------------------------------------
# Catalog records
# ---------------------------------------------------------------------------


def raw_record(model_id: str, **overrides: Any) -> dict[str, Any]:
    """Build a vendor catalog record as the gateway would send it."""
    record: dict[str, Any] = {
        "id": model_id,
        "name": model_id.split("/")[-1].title(),
        "context_length": 100000,
        "pricing": {"prompt": "0.000001", "completion": "0.000002"},
        "architecture": {"input_modalities": ["text"], "output_modalities": ["text"]},
    }
    record.update(overrides)
    return record


def free_record(model_id: str, **overrides: Any) -> dict[str, Any]:
    """A record priced at zero for both prompt and completion."""
    overrides.setdefault("pricing", {"prompt": "0", "completion": "0"})
    return raw_record(model_id, **overrides)


@pytest.fixture
def catalog_body() -> dict[str, Any]:
    """A small mixed catalog: free, gated, zero-priced-but-gated, image output."""
    return {
        "data": [
            free_record("vendor/model-a:free"),
            raw_record("vendor/model-b", supported_parameters=["reasoning", "tools"]),
            free_record("vendor/gated-zero"),
            free_record(
                "vendor/painter:free",
                architecture={"input_modalities": ["text"], "output_modalities": ["image"]},
            ),
            free_record("kilo/auto"),
        ]
    }


@pytest.fixture(name="raw_record")
def _raw_record_fixture() -> Callable[..., dict[str, Any]]:
    return raw_record


@pytest.fixture(name="free_record")
def _free_record_fixture() -> Callable[..., dict[str, Any]]:
    return free_record
