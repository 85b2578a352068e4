"""Tests for fetching and filtering the gateway catalog."""

from __future__ import annotations

import logging
from unittest.mock import MagicMock

import httpx
import pytest

from kilo_provider.catalog import fetch_and_filter
from kilo_provider.exceptions import FetchFailedError


class TestFetchAndFilter:
    def test_full_catalog_drops_image_generators(self, make_client, catalog_body) -> None:
        client = make_client(lambda r: httpx.Response(200, json=catalog_body))
        models = fetch_and_filter(client, token="tok")
        assert [m.id for m in models] == [
            "vendor/model-a:free",
            "vendor/model-b",
            "vendor/gated-zero",
            "kilo/auto",
        ]

    def test_free_only(self, make_client, catalog_body) -> None:
        client = make_client(lambda r: httpx.Response(200, json=catalog_body))
        models = fetch_and_filter(client, free_only=True)
        assert [m.id for m in models] == ["vendor/model-a:free", "kilo/auto"]

    def test_models_are_normalized(self, make_client, catalog_body) -> None:
        client = make_client(lambda r: httpx.Response(200, json=catalog_body))
        by_id = {m.id: m for m in fetch_and_filter(client)}
        model_b = by_id["vendor/model-b"]
        assert model_b.reasoning is True
        assert model_b.cost.input == pytest.approx(1.0)
        assert model_b.cost.output == pytest.approx(2.0)
        assert model_b.max_tokens == 20000

    def test_empty_catalog(self, make_client) -> None:
        client = make_client(lambda r: httpx.Response(200, json={"data": []}))
        assert fetch_and_filter(client, free_only=True) == []

    def test_passes_token_and_timeout(self) -> None:
        client = MagicMock()
        client.fetch_catalog.return_value = []
        fetch_and_filter(client, token="tok", timeout=2.5)
        client.fetch_catalog.assert_called_once_with(token="tok", timeout=2.5)

    def test_errors_propagate(self, make_client) -> None:
        client = make_client(lambda r: httpx.Response(500))
        with pytest.raises(FetchFailedError):
            fetch_and_filter(client)

    def test_logs_counts(self, make_client, catalog_body, caplog: pytest.LogCaptureFixture) -> None:
        client = make_client(lambda r: httpx.Response(200, json=catalog_body))
        with caplog.at_level(logging.DEBUG, logger="kilo_provider.catalog.fetcher"):
            fetch_and_filter(client, free_only=True)
        assert "5 records, 2 kept" in caplog.text
