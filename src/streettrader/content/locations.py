from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

LOCATIONS_SCHEMA_VERSION = 1
DEFAULT_LOCATIONS_PATH = "content/locations/locations.json"


@dataclass(frozen=True)
class LocationDef:
    location_id: str
    market_modifier: float
    is_starting_location: bool
    tags: tuple[str, ...]


@dataclass(frozen=True)
class LocationRegistry:
    schema_version: int
    locations: tuple[LocationDef, ...]

    def by_id(self) -> dict[str, LocationDef]:
        return {location.location_id: location for location in self.locations}

    def location_ids(self) -> list[str]:
        return [location.location_id for location in self.locations]

    def starting_location(self) -> LocationDef:
        for location in self.locations:
            if location.is_starting_location:
                return location
        return self.locations[0]


def load_locations_json(path: str | Path = DEFAULT_LOCATIONS_PATH) -> LocationRegistry:
    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    return _registry_from_payload(payload)


def _registry_from_payload(payload: dict[str, Any]) -> LocationRegistry:
    if not isinstance(payload, dict):
        raise ValueError("location registry payload must be an object")

    schema_version = payload.get("schema_version")
    if not isinstance(schema_version, int):
        raise ValueError("location registry must contain integer field: schema_version")
    if schema_version != LOCATIONS_SCHEMA_VERSION:
        raise ValueError(f"unsupported location registry schema_version: {schema_version}")

    locations = payload.get("locations")
    if not isinstance(locations, list) or not locations:
        raise ValueError("location registry must contain non-empty list field: locations")

    normalized: list[LocationDef] = []
    seen_location_ids: set[str] = set()
    starting_count = 0
    for index, row in enumerate(locations):
        if not isinstance(row, dict):
            raise ValueError(f"locations[{index}] must be an object")

        location_id = row.get("location_id")
        if not isinstance(location_id, str) or not location_id:
            raise ValueError(f"locations[{index}].location_id must be a non-empty string")
        if location_id in seen_location_ids:
            raise ValueError(f"duplicate location_id: {location_id}")
        seen_location_ids.add(location_id)

        modifier = row.get("market_modifier")
        if not isinstance(modifier, (int, float)) or isinstance(modifier, bool) or modifier <= 0:
            raise ValueError(f"locations[{index}].market_modifier must be a positive number")

        is_starting = row.get("is_starting_location", False)
        if not isinstance(is_starting, bool):
            raise ValueError(f"locations[{index}].is_starting_location must be a boolean")
        if is_starting:
            starting_count += 1

        tags_payload = row.get("tags", [])
        if not isinstance(tags_payload, list):
            raise ValueError(f"locations[{index}].tags must be a list when present")
        tags: list[str] = []
        for tag_index, tag in enumerate(tags_payload):
            if not isinstance(tag, str) or not tag:
                raise ValueError(f"locations[{index}].tags[{tag_index}] must be a non-empty string")
            tags.append(tag)

        normalized.append(
            LocationDef(
                location_id=location_id,
                market_modifier=float(modifier),
                is_starting_location=is_starting,
                tags=tuple(sorted(dict.fromkeys(tags))),
            )
        )

    if starting_count > 1:
        raise ValueError("location registry may mark at most one starting location")

    # Catalog order is the travel menu order.
    return LocationRegistry(schema_version=schema_version, locations=tuple(normalized))
