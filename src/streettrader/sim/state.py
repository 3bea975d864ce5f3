from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any

from streettrader.content.vehicles import DEFAULT_VEHICLE_ID

INITIAL_INVENTORY_CAPACITY = 100
MAX_INVENTORY_CAPACITY = 300
MAX_HEALTH = 100
MAX_EVENT_TRACE = 256
DEFAULT_DIFFICULTY = "medium"
PERFORMANCE_LEVELS = ("poor", "average", "good", "excellent")
RISK_PROFILE_KEYS = ("high_risk_financial", "smart_opportunity", "conservative_choices")


@dataclass(frozen=True)
class DifficultyDef:
    starting_cash: int
    max_days: int
    score_multiplier: float


DIFFICULTY_SETTINGS: dict[str, DifficultyDef] = {
    "easy": DifficultyDef(starting_cash=5000, max_days=45, score_multiplier=1.0),
    "medium": DifficultyDef(starting_cash=2000, max_days=30, score_multiplier=1.5),
    "hard": DifficultyDef(starting_cash=1000, max_days=20, score_multiplier=2.0),
}


def resolve_difficulty(name: str | None) -> str:
    """Unknown difficulty names fall back to medium."""
    if name in DIFFICULTY_SETTINGS:
        return str(name)
    return DEFAULT_DIFFICULTY


@dataclass
class MarketEntry:
    price: int
    available: bool
    quantity: int

    def to_dict(self) -> dict[str, Any]:
        return {"price": self.price, "available": self.available, "quantity": self.quantity}

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "MarketEntry":
        return cls(
            price=int(payload["price"]),
            available=bool(payload["available"]),
            quantity=int(payload["quantity"]),
        )


@dataclass
class Loan:
    principal: int
    interest_rate: float
    repayment_amount: int
    due_day: int
    days_to_repay: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "principal": self.principal,
            "interest_rate": self.interest_rate,
            "repayment_amount": self.repayment_amount,
            "due_day": self.due_day,
            "days_to_repay": self.days_to_repay,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Loan":
        return cls(
            principal=int(payload["principal"]),
            interest_rate=float(payload["interest_rate"]),
            repayment_amount=int(payload["repayment_amount"]),
            due_day=int(payload["due_day"]),
            days_to_repay=int(payload["days_to_repay"]),
        )


@dataclass
class PlayerState:
    cash: int
    current_location: str
    max_days: int
    difficulty: str = DEFAULT_DIFFICULTY
    inventory: dict[str, int] = field(default_factory=dict)
    inventory_capacity: int = INITIAL_INVENTORY_CAPACITY
    vehicle: str = DEFAULT_VEHICLE_ID
    owned_vehicles: list[str] = field(default_factory=lambda: [DEFAULT_VEHICLE_ID])
    day: int = 1
    health: int = MAX_HEALTH

    def __post_init__(self) -> None:
        if self.cash < 0:
            raise ValueError("player.cash must be >= 0")
        if self.day < 1:
            raise ValueError("player.day must be >= 1")
        if not INITIAL_INVENTORY_CAPACITY <= self.inventory_capacity <= MAX_INVENTORY_CAPACITY:
            raise ValueError(
                f"player.inventory_capacity must be within [{INITIAL_INVENTORY_CAPACITY}, {MAX_INVENTORY_CAPACITY}]"
            )
        for item_id, quantity in self.inventory.items():
            if not isinstance(quantity, int) or quantity <= 0:
                raise ValueError(f"player.inventory[{item_id}] must be a positive integer")
        if DEFAULT_VEHICLE_ID not in self.owned_vehicles:
            self.owned_vehicles.insert(0, DEFAULT_VEHICLE_ID)
        self.health = max(0, min(MAX_HEALTH, self.health))

    def inventory_usage(self) -> int:
        return sum(self.inventory.values())

    def available_space(self) -> int:
        return self.inventory_capacity - self.inventory_usage()

    def add_item(self, item_id: str, quantity: int) -> None:
        if quantity <= 0:
            raise ValueError("quantity must be > 0")
        self.inventory[item_id] = self.inventory.get(item_id, 0) + quantity

    def remove_item(self, item_id: str, quantity: int) -> int:
        """Remove up to ``quantity`` units and return how many were actually removed."""
        owned = self.inventory.get(item_id, 0)
        removed = max(0, min(owned, quantity))
        remaining = owned - removed
        if remaining > 0:
            self.inventory[item_id] = remaining
        else:
            self.inventory.pop(item_id, None)
        return removed

    def spend(self, amount: int) -> int:
        """Deduct cash clamped at zero and return the amount actually taken."""
        taken = max(0, min(self.cash, amount))
        self.cash -= taken
        return taken

    def damage(self, amount: int) -> int:
        before = self.health
        self.health = max(0, self.health - max(0, amount))
        return before - self.health

    def to_dict(self) -> dict[str, Any]:
        return {
            "cash": self.cash,
            "inventory": dict(sorted(self.inventory.items())),
            "inventory_capacity": self.inventory_capacity,
            "current_location": self.current_location,
            "vehicle": self.vehicle,
            "owned_vehicles": list(self.owned_vehicles),
            "day": self.day,
            "max_days": self.max_days,
            "difficulty": self.difficulty,
            "health": self.health,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "PlayerState":
        return cls(
            cash=int(payload["cash"]),
            current_location=str(payload["current_location"]),
            max_days=int(payload["max_days"]),
            difficulty=resolve_difficulty(payload.get("difficulty")),
            inventory={str(key): int(value) for key, value in payload.get("inventory", {}).items()},
            inventory_capacity=int(payload.get("inventory_capacity", INITIAL_INVENTORY_CAPACITY)),
            vehicle=str(payload.get("vehicle", DEFAULT_VEHICLE_ID)),
            owned_vehicles=[str(value) for value in payload.get("owned_vehicles", [DEFAULT_VEHICLE_ID])],
            day=int(payload.get("day", 1)),
            health=int(payload.get("health", MAX_HEALTH)),
        )


def _default_risk_profile() -> dict[str, int]:
    return {key: 0 for key in RISK_PROFILE_KEYS}


def _default_narrative_consistency() -> dict[str, Any]:
    return {"character_traits": {}, "decision_patterns": {}, "story_themes": []}


@dataclass
class StoryState:
    current_phase: int = 0
    events_triggered: list[str] = field(default_factory=list)
    player_performance: str = "average"
    player_choices: dict[str, dict[str, Any]] = field(default_factory=dict)
    risk_profile: dict[str, int] = field(default_factory=_default_risk_profile)
    narrative_consistency: dict[str, Any] = field(default_factory=_default_narrative_consistency)

    def __post_init__(self) -> None:
        if self.player_performance not in PERFORMANCE_LEVELS:
            raise ValueError(f"story.player_performance must be one of: {', '.join(PERFORMANCE_LEVELS)}")
        for key in RISK_PROFILE_KEYS:
            self.risk_profile.setdefault(key, 0)
        for key, default in _default_narrative_consistency().items():
            self.narrative_consistency.setdefault(key, default)

    @property
    def character_traits(self) -> dict[str, int]:
        return self.narrative_consistency["character_traits"]

    @property
    def decision_patterns(self) -> dict[str, int]:
        return self.narrative_consistency["decision_patterns"]

    @property
    def story_themes(self) -> list[str]:
        return self.narrative_consistency["story_themes"]

    def to_dict(self) -> dict[str, Any]:
        return {
            "current_phase": self.current_phase,
            "events_triggered": list(self.events_triggered),
            "player_performance": self.player_performance,
            "player_choices": copy.deepcopy(self.player_choices),
            "risk_profile": dict(self.risk_profile),
            "narrative_consistency": copy.deepcopy(self.narrative_consistency),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "StoryState":
        return cls(
            current_phase=int(payload.get("current_phase", 0)),
            events_triggered=[str(value) for value in payload.get("events_triggered", [])],
            player_performance=str(payload.get("player_performance", "average")),
            player_choices=copy.deepcopy(payload.get("player_choices", {})),
            risk_profile={str(key): int(value) for key, value in payload.get("risk_profile", {}).items()},
            narrative_consistency=copy.deepcopy(payload.get("narrative_consistency", {})),
        )


@dataclass
class GameState:
    """Canonical mutable game state; one instance per engine."""

    player: PlayerState
    starting_cash: int
    markets: dict[str, dict[str, MarketEntry]] = field(default_factory=dict)
    loans: list[Loan] = field(default_factory=list)
    story: StoryState = field(default_factory=StoryState)
    game_ended: bool = False
    final_report: dict[str, Any] | None = None
    event_trace: list[dict[str, Any]] = field(default_factory=list)

    def market_for(self, location: str) -> dict[str, MarketEntry]:
        return self.markets.get(location, {})

    def current_market(self) -> dict[str, MarketEntry]:
        return self.market_for(self.player.current_location)

    def append_trace(self, entry: dict[str, Any]) -> None:
        required = {"day", "kind", "params"}
        if not required.issubset(entry):
            raise ValueError("event_trace entries missing required fields")
        self.event_trace.append(copy.deepcopy(entry))
        if len(self.event_trace) > MAX_EVENT_TRACE:
            del self.event_trace[: len(self.event_trace) - MAX_EVENT_TRACE]

    def to_dict(self) -> dict[str, Any]:
        return {
            "player": self.player.to_dict(),
            "starting_cash": self.starting_cash,
            "markets": {
                location: {item_id: entry.to_dict() for item_id, entry in sorted(entries.items())}
                for location, entries in sorted(self.markets.items())
            },
            "loans": [loan.to_dict() for loan in self.loans],
            "story": self.story.to_dict(),
            "game_ended": self.game_ended,
            "final_report": copy.deepcopy(self.final_report),
            "event_trace": copy.deepcopy(self.event_trace),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "GameState":
        return cls(
            player=PlayerState.from_dict(payload["player"]),
            starting_cash=int(payload["starting_cash"]),
            markets={
                str(location): {str(item_id): MarketEntry.from_dict(entry) for item_id, entry in entries.items()}
                for location, entries in payload.get("markets", {}).items()
            },
            loans=[Loan.from_dict(row) for row in payload.get("loans", [])],
            story=StoryState.from_dict(payload.get("story", {})),
            game_ended=bool(payload.get("game_ended", False)),
            final_report=copy.deepcopy(payload.get("final_report")),
            event_trace=copy.deepcopy(payload.get("event_trace", [])),
        )
