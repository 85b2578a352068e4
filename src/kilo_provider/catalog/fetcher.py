"""Fetch, filter and normalize the gateway catalog in one pass."""

from __future__ import annotations

import logging
from typing import Optional

from kilo_provider.catalog.normalizer import is_free_model, is_image_generator, normalize_model
from kilo_provider.client.gateway import GatewayClient
from kilo_provider.config import MODELS_FETCH_TIMEOUT
from kilo_provider.models import NormalizedModel

logger = logging.getLogger(__name__)


def fetch_and_filter(
    client: GatewayClient,
    token: Optional[str] = None,
    free_only: bool = False,
    timeout: float = MODELS_FETCH_TIMEOUT,
) -> list[NormalizedModel]:
    """Return the usable catalog as normalized models.

    Image-generation models are always dropped. With *free_only*, records
    that fail :func:`~kilo_provider.catalog.normalizer.is_free_model` are
    dropped too. Filtering runs on the raw records because the pricing
    strings and output modalities it inspects do not survive normalization.

    Args:
        client: Gateway client to fetch with.
        token: Optional bearer token for the authenticated catalog.
        free_only: Keep only models usable without authentication.
        timeout: Hard request timeout in seconds.

    Returns:
        Normalized models in gateway order.

    Raises:
        CatalogError: Propagated from
            :meth:`~kilo_provider.client.gateway.GatewayClient.fetch_catalog`.
    """
    records = client.fetch_catalog(token=token, timeout=timeout)

    kept = [record for record in records if not is_image_generator(record)]
    if free_only:
        kept = [record for record in kept if is_free_model(record)]

    logger.debug(
        "Catalog: %d records, %d kept (free_only=%s)", len(records), len(kept), free_only
    )
    return [normalize_model(record) for record in kept]
