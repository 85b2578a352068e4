"""Vendor model record normalization.

Converts OpenRouter-shaped :class:`~kilo_provider.models.RawModelRecord`
entries into the host's canonical :class:`~kilo_provider.models.NormalizedModel`
shape and classifies records as free or gated.

Pricing: the gateway reports USD per single token as a decimal string; the
host expects USD per million tokens. Anything that does not parse to a
finite, non-negative number becomes ``0``.
"""

from __future__ import annotations

import math
from typing import Optional

from kilo_provider.models import (
    ModelCost,
    ModelPricing,
    NormalizedModel,
    RawModelRecord,
)

TOKENS_PER_PRICE_UNIT = 1_000_000
MAX_TOKENS_CONTEXT_RATIO = 0.2

FREE_SUFFIX = ":free"
FREE_ROUTER_PREFIXES = ("kilo/", "openrouter/")


def parse_price(value: Optional[str]) -> Optional[float]:
    """Parse a per-token price string.

    Returns:
        The parsed float, or ``None`` when *value* is missing, blank, not a
        number, or not finite.
    """
    if value is None:
        return None
    text = value.strip()
    if not text:
        return None
    try:
        parsed = float(text)
    except ValueError:
        return None
    if not math.isfinite(parsed):
        return None
    return parsed


def convert_price(value: Optional[str]) -> float:
    """Convert a per-token price string to USD per million tokens.

    >>> convert_price("0.5")
    500000.0
    >>> convert_price(None), convert_price(""), convert_price("abc")
    (0.0, 0.0, 0.0)
    """
    parsed = parse_price(value)
    if parsed is None or parsed < 0:
        return 0.0
    return parsed * TOKENS_PER_PRICE_UNIT


def is_free_model(record: RawModelRecord) -> bool:
    """Decide whether *record* can be used without authentication.

    Zero prompt and completion prices are required but not sufficient:
    some gated models report zero. One corroborating signal must also
    hold: the id carries the ``:free`` suffix, the id has no vendor prefix
    (a gateway-native model), or the id belongs to a free router
    (``kilo/`` or ``openrouter/``).
    """
    pricing = record.pricing or ModelPricing()
    if parse_price(pricing.prompt) != 0 or parse_price(pricing.completion) != 0:
        return False

    model_id = record.id
    if FREE_SUFFIX in model_id:
        return True
    if "/" not in model_id:
        return True
    return model_id.startswith(FREE_ROUTER_PREFIXES)


def is_image_generator(record: RawModelRecord) -> bool:
    """Return ``True`` for models whose output modalities include images."""
    architecture = record.architecture
    if architecture is None or not architecture.output_modalities:
        return False
    return "image" in architecture.output_modalities


def resolve_max_tokens(record: RawModelRecord) -> int:
    """Pick the output-token cap for *record*.

    The provider-reported cap wins, then the record-level
    ``max_completion_tokens``, then a fifth of the context window.
    """
    if record.top_provider is not None and record.top_provider.max_completion_tokens is not None:
        return record.top_provider.max_completion_tokens
    if record.max_completion_tokens is not None:
        return record.max_completion_tokens
    return math.ceil(record.context_length * MAX_TOKENS_CONTEXT_RATIO)


def normalize_model(record: RawModelRecord) -> NormalizedModel:
    """Map a vendor record onto the canonical model shape."""
    architecture = record.architecture
    input_modalities = ["text"]
    if architecture is not None and architecture.input_modalities is not None:
        input_modalities = architecture.input_modalities

    pricing = record.pricing or ModelPricing()

    return NormalizedModel(
        id=record.id,
        name=record.name or record.id,
        reasoning="reasoning" in (record.supported_parameters or []),
        input=["text", "image"] if "image" in input_modalities else ["text"],
        cost=ModelCost(
            input=convert_price(pricing.prompt),
            output=convert_price(pricing.completion),
            cache_read=convert_price(pricing.input_cache_read),
            cache_write=convert_price(pricing.input_cache_write),
        ),
        context_window=record.context_length,
        max_tokens=resolve_max_tokens(record),
    )
