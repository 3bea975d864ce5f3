from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

VEHICLES_SCHEMA_VERSION = 1
DEFAULT_VEHICLES_PATH = "content/vehicles/vehicles.json"
DEFAULT_VEHICLE_ID = "On Foot"


@dataclass(frozen=True)
class VehicleDef:
    vehicle_id: str
    cost: int
    event_risk_reduction: float
    description: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "vehicle_id": self.vehicle_id,
            "cost": self.cost,
            "event_risk_reduction": self.event_risk_reduction,
            "description": self.description,
        }


@dataclass(frozen=True)
class VehicleRegistry:
    schema_version: int
    vehicles: tuple[VehicleDef, ...]

    def by_id(self) -> dict[str, VehicleDef]:
        return {vehicle.vehicle_id: vehicle for vehicle in self.vehicles}

    def vehicle_ids(self) -> list[str]:
        return [vehicle.vehicle_id for vehicle in self.vehicles]


def load_vehicles_json(path: str | Path = DEFAULT_VEHICLES_PATH) -> VehicleRegistry:
    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    return _registry_from_payload(payload)


def _registry_from_payload(payload: dict[str, Any]) -> VehicleRegistry:
    if not isinstance(payload, dict):
        raise ValueError("vehicle registry payload must be an object")

    schema_version = payload.get("schema_version")
    if not isinstance(schema_version, int):
        raise ValueError("vehicle registry must contain integer field: schema_version")
    if schema_version != VEHICLES_SCHEMA_VERSION:
        raise ValueError(f"unsupported vehicle registry schema_version: {schema_version}")

    vehicles = payload.get("vehicles")
    if not isinstance(vehicles, list):
        raise ValueError("vehicle registry must contain list field: vehicles")

    normalized: list[VehicleDef] = []
    seen_vehicle_ids: set[str] = set()
    for index, row in enumerate(vehicles):
        if not isinstance(row, dict):
            raise ValueError(f"vehicles[{index}] must be an object")

        vehicle_id = row.get("vehicle_id")
        if not isinstance(vehicle_id, str) or not vehicle_id:
            raise ValueError(f"vehicles[{index}].vehicle_id must be a non-empty string")
        if vehicle_id in seen_vehicle_ids:
            raise ValueError(f"duplicate vehicle_id: {vehicle_id}")
        seen_vehicle_ids.add(vehicle_id)

        cost = row.get("cost")
        if not isinstance(cost, int) or isinstance(cost, bool) or cost < 0:
            raise ValueError(f"vehicles[{index}].cost must be an integer >= 0")

        reduction = row.get("event_risk_reduction")
        if not isinstance(reduction, (int, float)) or isinstance(reduction, bool):
            raise ValueError(f"vehicles[{index}].event_risk_reduction must be numeric")
        if float(reduction) < 0.0 or float(reduction) > 1.0:
            raise ValueError(f"vehicles[{index}].event_risk_reduction must be within [0.0, 1.0]")

        description = row.get("description", "")
        if not isinstance(description, str):
            raise ValueError(f"vehicles[{index}].description must be a string when present")

        normalized.append(
            VehicleDef(
                vehicle_id=vehicle_id,
                cost=cost,
                event_risk_reduction=float(reduction),
                description=description,
            )
        )

    if DEFAULT_VEHICLE_ID not in seen_vehicle_ids:
        raise ValueError(f"vehicle registry must include default vehicle: {DEFAULT_VEHICLE_ID}")

    normalized.sort(key=lambda vehicle: (vehicle.cost, vehicle.vehicle_id))
    return VehicleRegistry(schema_version=schema_version, vehicles=tuple(normalized))
