from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

EVENT_TABLE_SCHEMA_VERSION = 1
DEFAULT_EVENT_TABLE_PATH = "content/events/random_events.json"

ECONOMIC_EVENT_TYPE = "economic"
SAFETY_EVENT_TYPE = "safety"
OPPORTUNITY_EVENT_TYPE = "opportunity"
VALID_EVENT_TYPES = (ECONOMIC_EVENT_TYPE, SAFETY_EVENT_TYPE, OPPORTUNITY_EVENT_TYPE)
VALID_CHOICES = ("accept", "decline", "buy", "continue")


@dataclass(frozen=True)
class EventArchetype:
    event_id: str
    event_type: str
    title: str
    weight: int
    choices: tuple[str, ...]

    @property
    def requires_choice(self) -> bool:
        return bool(self.choices)


@dataclass(frozen=True)
class EventTable:
    schema_version: int
    table_id: str
    events: tuple[EventArchetype, ...]

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "EventTable":
        validate_event_table_payload(payload)
        normalized: list[EventArchetype] = []
        for row in payload["events"]:
            normalized.append(
                EventArchetype(
                    event_id=row["event_id"],
                    event_type=row["event_type"],
                    title=row["title"],
                    weight=int(row["weight"]),
                    choices=tuple(dict.fromkeys(row.get("choices", []))),
                )
            )
        # Catalog order is significant: cumulative weighted selection walks it front to back.
        return cls(
            schema_version=int(payload["schema_version"]),
            table_id=payload["table_id"],
            events=tuple(normalized),
        )

    def by_id(self) -> dict[str, EventArchetype]:
        return {event.event_id: event for event in self.events}


def validate_event_table_payload(payload: dict[str, Any]) -> None:
    if not isinstance(payload, dict):
        raise ValueError("event table payload must be an object")

    schema_version = payload.get("schema_version")
    if not isinstance(schema_version, int):
        raise ValueError("event table must contain integer field: schema_version")
    if schema_version != EVENT_TABLE_SCHEMA_VERSION:
        raise ValueError(f"unsupported event table schema_version: {schema_version}")

    table_id = payload.get("table_id")
    if not isinstance(table_id, str) or not table_id:
        raise ValueError("event table must contain non-empty string field: table_id")

    events = payload.get("events")
    if not isinstance(events, list) or not events:
        raise ValueError("event table must contain non-empty list field: events")

    seen_ids: set[str] = set()
    for index, row in enumerate(events):
        if not isinstance(row, dict):
            raise ValueError(f"events[{index}] must be an object")

        event_id = row.get("event_id")
        if not isinstance(event_id, str) or not event_id:
            raise ValueError(f"events[{index}] must contain non-empty string field: event_id")
        if event_id in seen_ids:
            raise ValueError(f"duplicate event_id: {event_id}")
        seen_ids.add(event_id)

        event_type = row.get("event_type")
        if event_type not in VALID_EVENT_TYPES:
            raise ValueError(f"events[{index}].event_type must be one of: {', '.join(VALID_EVENT_TYPES)}")

        title = row.get("title")
        if not isinstance(title, str) or not title:
            raise ValueError(f"events[{index}] must contain non-empty string field: title")

        weight = row.get("weight")
        if not isinstance(weight, int) or isinstance(weight, bool) or weight < 1:
            raise ValueError(f"events[{index}] must contain integer weight >= 1")

        choices = row.get("choices", [])
        if not isinstance(choices, list):
            raise ValueError(f"events[{index}] field choices must be a list when present")
        for choice_index, choice in enumerate(choices):
            if choice not in VALID_CHOICES:
                raise ValueError(f"events[{index}].choices[{choice_index}] unsupported choice: {choice}")


def load_event_table_json(path: str | Path = DEFAULT_EVENT_TABLE_PATH) -> EventTable:
    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    return EventTable.from_payload(payload)
