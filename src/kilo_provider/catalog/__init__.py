"""Model catalog handling for kilo_provider.

Three steps turn the gateway's vendor catalog into models the host can
register:

* :func:`fetch_and_filter` -- fetch, drop image generators and (optionally)
  gated models, then normalize.
* :func:`normalize_model` / :func:`is_free_model` -- per-record mapping and
  free-tier classification.
* :func:`reconcile` -- swap a provider's free list for its full list inside
  the host's registered models.
"""

from kilo_provider.catalog.fetcher import fetch_and_filter
from kilo_provider.catalog.normalizer import (
    convert_price,
    is_free_model,
    is_image_generator,
    normalize_model,
    parse_price,
)
from kilo_provider.catalog.reconciler import reconcile

__all__ = [
    "convert_price",
    "fetch_and_filter",
    "is_free_model",
    "is_image_generator",
    "normalize_model",
    "parse_price",
    "reconcile",
]
