from __future__ import annotations

import logging
import math
from typing import Any

from streettrader.content.items import ItemDef, ItemRegistry
from streettrader.content.locations import LocationRegistry
from streettrader.sim.rng import RandomSource, roll_int, roll_uniform
from streettrader.sim.state import MarketEntry

logger = logging.getLogger(__name__)

PRICE_VARIANCE_RANGE = (0.5, 1.5)
VOLATILITY_SWING = 0.3
VOLATILITY_WEIGHTS: dict[str, float] = {"high": 1.5, "medium": 1.0, "low": 0.5}
AVAILABILITY_BY_RARITY: dict[str, float] = {"rare": 0.3, "medium": 0.6, "common": 0.9}
BASE_QUANTITY_BY_RARITY: dict[str, int] = {"rare": 20, "medium": 50, "common": 100}
QUANTITY_FRACTION_RANGE = (0.5, 1.0)


class MarketSystem:
    """Per-location price and stock generator.

    Apart from its random source the generator is pure: each call builds a
    fresh market for one location and never touches other locations.
    """

    def __init__(self, items: ItemRegistry, locations: LocationRegistry, rng: RandomSource) -> None:
        self._items = items
        self._locations = locations
        self._rng = rng

    @property
    def items(self) -> ItemRegistry:
        return self._items

    def generate_market_prices(self, location: str) -> dict[str, MarketEntry]:
        location_def = self._locations.by_id().get(location)
        if location_def is None:
            raise ValueError(f"unknown location: {location}")

        market: dict[str, MarketEntry] = {}
        for item in self._items.items:
            price = self._roll_price(item, location_def.market_modifier)
            available = self._rng.random() < AVAILABILITY_BY_RARITY[item.rarity]
            quantity = 0
            if available:
                fraction = roll_uniform(self._rng, *QUANTITY_FRACTION_RANGE)
                quantity = math.floor(BASE_QUANTITY_BY_RARITY[item.rarity] * fraction)
            market[item.item_id] = MarketEntry(price=price, available=available, quantity=quantity)

        logger.debug(
            "generated market location=%s available=%d",
            location,
            sum(1 for entry in market.values() if entry.available),
        )
        return market

    def _roll_price(self, item: ItemDef, modifier: float) -> int:
        base_price = roll_int(self._rng, item.min_price, item.max_price)
        variance = roll_uniform(self._rng, *PRICE_VARIANCE_RANGE)
        swing = (self._rng.random() - 0.5) * VOLATILITY_SWING * VOLATILITY_WEIGHTS[item.volatility]
        price = base_price * variance * (1 + swing) * modifier
        return max(1, math.floor(price))


def available_items(market: dict[str, MarketEntry]) -> list[str]:
    return [item_id for item_id, entry in market.items() if entry.available and entry.quantity > 0]


def is_item_available(market: dict[str, MarketEntry], item_id: str) -> bool:
    entry = market.get(item_id)
    return entry is not None and entry.available and entry.quantity > 0


def market_data(location: str, market: dict[str, MarketEntry]) -> dict[str, Any]:
    """JSON-ready view of one location's market, items sorted by id."""
    return {
        "location": location,
        "items": {item_id: entry.to_dict() for item_id, entry in sorted(market.items())},
        "available_items": sorted(available_items(market)),
    }
