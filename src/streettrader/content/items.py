from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

ITEMS_SCHEMA_VERSION = 1
DEFAULT_ITEMS_PATH = "content/items/items.json"
VALID_VOLATILITIES = ("low", "medium", "high")
VALID_RARITIES = ("common", "medium", "rare")


@dataclass(frozen=True)
class ItemDef:
    item_id: str
    base_price_range: tuple[int, int]
    volatility: str
    rarity: str

    @property
    def min_price(self) -> int:
        return self.base_price_range[0]

    @property
    def max_price(self) -> int:
        return self.base_price_range[1]


@dataclass(frozen=True)
class ItemRegistry:
    schema_version: int
    items: tuple[ItemDef, ...]

    def by_id(self) -> dict[str, ItemDef]:
        return {item.item_id: item for item in self.items}

    def item_ids(self) -> list[str]:
        return [item.item_id for item in self.items]


def load_items_json(path: str | Path = DEFAULT_ITEMS_PATH) -> ItemRegistry:
    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    return _registry_from_payload(payload)


def _registry_from_payload(payload: dict[str, Any]) -> ItemRegistry:
    if not isinstance(payload, dict):
        raise ValueError("item registry payload must be an object")

    schema_version = payload.get("schema_version")
    if not isinstance(schema_version, int):
        raise ValueError("item registry must contain integer field: schema_version")
    if schema_version != ITEMS_SCHEMA_VERSION:
        raise ValueError(f"unsupported item registry schema_version: {schema_version}")

    items = payload.get("items")
    if not isinstance(items, list) or not items:
        raise ValueError("item registry must contain non-empty list field: items")

    normalized: list[ItemDef] = []
    seen_item_ids: set[str] = set()
    for index, row in enumerate(items):
        if not isinstance(row, dict):
            raise ValueError(f"items[{index}] must be an object")

        item_id = row.get("item_id")
        if not isinstance(item_id, str) or not item_id:
            raise ValueError(f"items[{index}].item_id must be a non-empty string")
        if item_id in seen_item_ids:
            raise ValueError(f"duplicate item_id: {item_id}")
        seen_item_ids.add(item_id)

        price_range = row.get("base_price_range")
        if (
            not isinstance(price_range, list)
            or len(price_range) != 2
            or not all(isinstance(value, int) and not isinstance(value, bool) for value in price_range)
        ):
            raise ValueError(f"items[{index}].base_price_range must be a [min, max] integer pair")
        low, high = price_range
        if low < 1 or high < low:
            raise ValueError(f"items[{index}].base_price_range must satisfy 1 <= min <= max")

        volatility = row.get("volatility")
        if volatility not in VALID_VOLATILITIES:
            raise ValueError(f"items[{index}].volatility must be one of: {', '.join(VALID_VOLATILITIES)}")

        rarity = row.get("rarity")
        if rarity not in VALID_RARITIES:
            raise ValueError(f"items[{index}].rarity must be one of: {', '.join(VALID_RARITIES)}")

        normalized.append(
            ItemDef(
                item_id=item_id,
                base_price_range=(low, high),
                volatility=volatility,
                rarity=rarity,
            )
        )

    normalized.sort(key=lambda item: item.item_id)
    return ItemRegistry(schema_version=schema_version, items=tuple(normalized))
