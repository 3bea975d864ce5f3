from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

MILESTONES_SCHEMA_VERSION = 1
DEFAULT_MILESTONES_PATH = "content/story/milestones.json"
MAX_STORY_PHASE = 5


@dataclass(frozen=True)
class MilestoneDef:
    milestone_id: str
    day: int
    phase: int
    title: str
    text: str


@dataclass(frozen=True)
class MilestoneTable:
    schema_version: int
    milestones: tuple[MilestoneDef, ...]

    def by_id(self) -> dict[str, MilestoneDef]:
        return {milestone.milestone_id: milestone for milestone in self.milestones}


def load_milestones_json(path: str | Path = DEFAULT_MILESTONES_PATH) -> MilestoneTable:
    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    return _table_from_payload(payload)


def _table_from_payload(payload: dict[str, Any]) -> MilestoneTable:
    if not isinstance(payload, dict):
        raise ValueError("milestone table payload must be an object")

    schema_version = payload.get("schema_version")
    if not isinstance(schema_version, int):
        raise ValueError("milestone table must contain integer field: schema_version")
    if schema_version != MILESTONES_SCHEMA_VERSION:
        raise ValueError(f"unsupported milestone table schema_version: {schema_version}")

    milestones = payload.get("milestones")
    if not isinstance(milestones, list) or not milestones:
        raise ValueError("milestone table must contain non-empty list field: milestones")

    normalized: list[MilestoneDef] = []
    seen_ids: set[str] = set()
    for index, row in enumerate(milestones):
        if not isinstance(row, dict):
            raise ValueError(f"milestones[{index}] must be an object")

        milestone_id = row.get("milestone_id")
        if not isinstance(milestone_id, str) or not milestone_id:
            raise ValueError(f"milestones[{index}].milestone_id must be a non-empty string")
        if milestone_id in seen_ids:
            raise ValueError(f"duplicate milestone_id: {milestone_id}")
        seen_ids.add(milestone_id)

        day = row.get("day")
        if not isinstance(day, int) or isinstance(day, bool) or day < 1:
            raise ValueError(f"milestones[{index}].day must be an integer >= 1")

        phase = row.get("phase")
        if not isinstance(phase, int) or isinstance(phase, bool) or not 0 <= phase <= MAX_STORY_PHASE:
            raise ValueError(f"milestones[{index}].phase must be an integer within [0, {MAX_STORY_PHASE}]")

        for field_name in ("title", "text"):
            value = row.get(field_name)
            if not isinstance(value, str) or not value:
                raise ValueError(f"milestones[{index}].{field_name} must be a non-empty string")

        normalized.append(
            MilestoneDef(
                milestone_id=milestone_id,
                day=day,
                phase=phase,
                title=row["title"],
                text=row["text"],
            )
        )

    normalized.sort(key=lambda milestone: (milestone.day, milestone.milestone_id))
    return MilestoneTable(schema_version=schema_version, milestones=tuple(normalized))
