"""Per-generation pricing for image models.

The executor receives a pricing function ``(model, resolution) -> cost``
and never hard-codes prices.  :class:`PricingTable` is the default
implementation; pass a different table (or any callable) to price
generations differently.
"""

from __future__ import annotations

import logging
from typing import Protocol

logger = logging.getLogger(__name__)

# USD per generated image.
DEFAULT_PRICES: dict[str, dict[str, float]] = {
    "nano-banana": {"1K": 0.039, "2K": 0.039, "4K": 0.039},
    "nano-banana-pro": {"1K": 0.134, "2K": 0.134, "4K": 0.24},
}


class PricingFunction(Protocol):
    def __call__(self, model: str, resolution: str) -> float: ...


class PricingTable:
    """Price lookup keyed by (model, resolution).

    Args:
        prices: Mapping of model id to a mapping of resolution to price.
            Defaults to :data:`DEFAULT_PRICES`.
    """

    def __init__(self, prices: dict[str, dict[str, float]] | None = None) -> None:
        self._prices = prices if prices is not None else DEFAULT_PRICES

    def __call__(self, model: str, resolution: str) -> float:
        by_resolution = self._prices.get(model)
        if by_resolution is None:
            logger.warning("No pricing for model '%s'; counting as 0.", model)
            return 0.0
        if resolution not in by_resolution:
            logger.warning(
                "No pricing for model '%s' at resolution '%s'; counting as 0.", model, resolution
            )
            return 0.0
        return by_resolution[resolution]
