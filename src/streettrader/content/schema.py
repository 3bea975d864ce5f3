from __future__ import annotations

from typing import Any

SUPPORTED_SCHEMA_VERSIONS = {1}
REQUIRED_PLAYER_INT_FIELDS = ("cash", "day", "max_days", "inventory_capacity", "health")
REQUIRED_PLAYER_STRING_FIELDS = ("current_location", "vehicle", "difficulty")
REQUIRED_MARKET_ENTRY_FIELDS = {"price", "available", "quantity"}
REQUIRED_LOAN_FIELDS = {"principal", "interest_rate", "repayment_amount", "due_day", "days_to_repay"}


def _is_json_primitive(value: Any) -> bool:
    return value is None or isinstance(value, (bool, int, float, str))


def _validate_json_value(value: Any, *, field_name: str) -> None:
    if _is_json_primitive(value):
        return
    if isinstance(value, list):
        for item in value:
            _validate_json_value(item, field_name=field_name)
        return
    if isinstance(value, dict):
        for key, nested_value in value.items():
            if not isinstance(key, str):
                raise ValueError(f"{field_name} keys must be strings")
            _validate_json_value(nested_value, field_name=field_name)
        return
    raise ValueError(f"{field_name} must contain only canonical JSON primitives")


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _validate_player(player: Any) -> None:
    if not isinstance(player, dict):
        raise ValueError("game_state.player must be an object")

    for field_name in REQUIRED_PLAYER_INT_FIELDS:
        if not _is_int(player.get(field_name)):
            raise ValueError(f"game_state.player.{field_name} must be an integer")
    if player["cash"] < 0:
        raise ValueError("game_state.player.cash must be >= 0")
    if player["day"] < 1:
        raise ValueError("game_state.player.day must be >= 1")

    for field_name in REQUIRED_PLAYER_STRING_FIELDS:
        value = player.get(field_name)
        if not isinstance(value, str) or not value:
            raise ValueError(f"game_state.player.{field_name} must be a non-empty string")

    inventory = player.get("inventory")
    if not isinstance(inventory, dict):
        raise ValueError("game_state.player.inventory must be an object")
    for item_id, quantity in inventory.items():
        if not _is_int(quantity) or quantity <= 0:
            raise ValueError(f"game_state.player.inventory[{item_id}] must be a positive integer")

    owned = player.get("owned_vehicles")
    if not isinstance(owned, list) or not all(isinstance(value, str) for value in owned):
        raise ValueError("game_state.player.owned_vehicles must be a list of strings")


def _validate_markets(markets: Any) -> None:
    if not isinstance(markets, dict):
        raise ValueError("game_state.markets must be an object")
    for location, entries in markets.items():
        if not isinstance(entries, dict):
            raise ValueError(f"game_state.markets[{location}] must be an object")
        for item_id, entry in entries.items():
            field_name = f"game_state.markets[{location}][{item_id}]"
            if not isinstance(entry, dict):
                raise ValueError(f"{field_name} must be an object")
            missing = REQUIRED_MARKET_ENTRY_FIELDS - set(entry)
            if missing:
                raise ValueError(f"{field_name} missing fields: {sorted(missing)}")
            if not _is_int(entry["price"]) or entry["price"] < 1:
                raise ValueError(f"{field_name}.price must be an integer >= 1")
            if not _is_int(entry["quantity"]) or entry["quantity"] < 0:
                raise ValueError(f"{field_name}.quantity must be an integer >= 0")
            if not isinstance(entry["available"], bool):
                raise ValueError(f"{field_name}.available must be a boolean")


def _validate_loans(loans: Any) -> None:
    if not isinstance(loans, list):
        raise ValueError("game_state.loans must be a list")
    for index, loan in enumerate(loans):
        if not isinstance(loan, dict):
            raise ValueError(f"game_state.loans[{index}] must be an object")
        missing = REQUIRED_LOAN_FIELDS - set(loan)
        if missing:
            raise ValueError(f"game_state.loans[{index}] missing fields: {sorted(missing)}")


def validate_game_state_payload(game_state: Any) -> None:
    if not isinstance(game_state, dict):
        raise ValueError("save payload must contain object field: game_state")

    _validate_player(game_state.get("player"))

    if not _is_int(game_state.get("starting_cash")) or game_state["starting_cash"] <= 0:
        raise ValueError("game_state.starting_cash must be an integer > 0")

    _validate_markets(game_state.get("markets"))
    _validate_loans(game_state.get("loans"))

    story = game_state.get("story")
    if not isinstance(story, dict):
        raise ValueError("game_state.story must be an object")

    if not isinstance(game_state.get("game_ended"), bool):
        raise ValueError("game_state.game_ended must be a boolean")

    event_trace = game_state.get("event_trace")
    if not isinstance(event_trace, list):
        raise ValueError("game_state.event_trace must be a list")

    _validate_json_value(game_state, field_name="game_state")


def validate_save_payload(payload: dict[str, Any]) -> None:
    if not isinstance(payload, dict):
        raise ValueError("save payload must be an object")

    schema_version = payload.get("schema_version")
    if not isinstance(schema_version, int):
        raise ValueError("save payload must contain integer field: schema_version")
    if schema_version not in SUPPORTED_SCHEMA_VERSIONS:
        raise ValueError(f"unsupported schema_version: {schema_version}")

    save_digest = payload.get("save_hash")
    if not isinstance(save_digest, str) or not save_digest:
        raise ValueError("save payload must contain string field: save_hash")

    validate_game_state_payload(payload.get("game_state"))

    if "metadata" in payload:
        if not isinstance(payload["metadata"], dict):
            raise ValueError("save payload field metadata must be an object when present")
        _validate_json_value(payload["metadata"], field_name="metadata")
