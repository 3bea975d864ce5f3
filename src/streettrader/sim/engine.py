from __future__ import annotations

import copy
import logging
import math
from typing import TYPE_CHECKING, Any, Protocol

from streettrader.content.events import EventTable, load_event_table_json
from streettrader.content.items import ItemRegistry, load_items_json
from streettrader.content.locations import LocationRegistry, load_locations_json
from streettrader.content.story import MilestoneTable
from streettrader.content.vehicles import DEFAULT_VEHICLE_ID, VehicleDef, VehicleRegistry, load_vehicles_json
from streettrader.sim.events import ActionResult, EventInstance, EventSystem
from streettrader.sim.market import MarketSystem, available_items
from streettrader.sim.rng import RandomSource, make_rng
from streettrader.sim.state import (
    DEFAULT_DIFFICULTY,
    DIFFICULTY_SETTINGS,
    INITIAL_INVENTORY_CAPACITY,
    MAX_INVENTORY_CAPACITY,
    GameState,
    MarketEntry,
    PlayerState,
    resolve_difficulty,
)
from streettrader.sim.story import OPENING_MILESTONE_ID, StoryManager

if TYPE_CHECKING:
    from streettrader.content.io import SaveStore

logger = logging.getLogger(__name__)

MIN_EXPANSION = 20
MAX_EXPANSION = 50
LOAN_PENALTY_RATE = 0.5
INVENTORY_WARNING_PERCENT = 75
INVENTORY_CRITICAL_PERCENT = 90
GAME_ENDED_MESSAGE = "The game has ended. Start a new game to keep playing."


class DisplaySink(Protocol):
    def render(self, snapshot: dict[str, Any]) -> None:
        ...


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


class GameEngine:
    """Owns the canonical game state and exposes every player-facing mutation.

    Each mutating call either returns an unsuccessful ``ActionResult`` without
    touching state, or applies its change, persists through the optional
    store and publishes a fresh snapshot to the optional display.
    """

    def __init__(
        self,
        *,
        store: "SaveStore | None" = None,
        display: DisplaySink | None = None,
        rng: RandomSource | None = None,
        seed: int | None = None,
        items: ItemRegistry | None = None,
        locations: LocationRegistry | None = None,
        vehicles: VehicleRegistry | None = None,
        events: EventTable | None = None,
        milestones: MilestoneTable | None = None,
    ) -> None:
        self.items = items if items is not None else load_items_json()
        self.locations = locations if locations is not None else load_locations_json()
        self.vehicles = vehicles if vehicles is not None else load_vehicles_json()
        self.store = store
        self.display = display
        self._rng = rng if rng is not None else make_rng(seed)
        self.market_system = MarketSystem(self.items, self.locations, self._rng)
        self.story_manager = StoryManager(milestones)
        self.event_system = EventSystem(
            self,
            events if events is not None else load_event_table_json(),
            self._rng,
        )
        self.state = self._build_initial_state(DEFAULT_DIFFICULTY)
        self._notices: list[str] = []

    def _build_initial_state(self, difficulty: str) -> GameState:
        key = resolve_difficulty(difficulty)
        settings = DIFFICULTY_SETTINGS[key]
        player = PlayerState(
            cash=settings.starting_cash,
            current_location=self.locations.starting_location().location_id,
            max_days=settings.max_days,
            difficulty=key,
            inventory_capacity=INITIAL_INVENTORY_CAPACITY,
            vehicle=DEFAULT_VEHICLE_ID,
            owned_vehicles=[DEFAULT_VEHICLE_ID],
            day=1,
        )
        return GameState(player=player, starting_cash=settings.starting_cash)

    # -- lifecycle -----------------------------------------------------------------

    def start_new_game(self, difficulty: str = DEFAULT_DIFFICULTY) -> ActionResult:
        if self.store is not None:
            self.store.clear()
        self.event_system.clear_current_event()
        self._notices.clear()
        self.state = self._build_initial_state(difficulty)
        start = self.state.player.current_location
        self.state.markets[start] = self.market_system.generate_market_prices(start)
        opening = self.story_manager.trigger_story_event(self.state, OPENING_MILESTONE_ID)
        self.state.append_trace({"day": 1, "kind": "new_game", "params": {"difficulty": self.state.player.difficulty}})
        logger.info("new game difficulty=%s location=%s", self.state.player.difficulty, start)
        self._commit()
        return ActionResult(
            True,
            f"New {self.state.player.difficulty} game started in {start}.",
            {"story_event": opening.to_dict() if opening is not None else None},
        )

    def restart_game(self) -> ActionResult:
        return self.start_new_game(self.state.player.difficulty)

    def load_saved_game(self) -> bool:
        if self.store is None:
            return False
        loaded = self.store.load()
        if loaded is None:
            return False
        self.event_system.clear_current_event()
        self.state = loaded
        if self.state.player.current_location not in self.state.markets:
            location = self.state.player.current_location
            self.state.markets[location] = self.market_system.generate_market_prices(location)
        logger.info("loaded saved game day=%d location=%s", self.state.player.day, self.state.player.current_location)
        self._publish()
        return True

    def _ended_result(self) -> ActionResult:
        return ActionResult(False, GAME_ENDED_MESSAGE)

    # -- travel and trading --------------------------------------------------------

    def travel_to_location(self, destination: str) -> ActionResult:
        if self.state.game_ended:
            return self._ended_result()
        if destination not in self.locations.by_id():
            return ActionResult(False, "Invalid location")
        player = self.state.player
        if destination == player.current_location:
            return ActionResult(False, "You are already at this location")

        # Offers made at the old location do not follow the player.
        self.event_system.clear_current_event()
        event = self.event_system.trigger_random_event()
        event_result = self.event_system.execute_current_event() if event is not None else None

        origin = player.current_location
        player.current_location = destination
        player.day += 1
        story_event = self.story_manager.check_for_story_milestone(self.state)
        self.state.markets[destination] = self.market_system.generate_market_prices(destination)
        self.state.append_trace(
            {"day": player.day, "kind": "travel", "params": {"from": origin, "to": destination}}
        )
        logger.debug("travel from=%s to=%s day=%d", origin, destination, player.day)
        self._commit()

        message = f"Traveled to {destination}"
        if event is not None and event_result is not None:
            message += f"\n\nDuring travel: {event.title}\n{event_result.message}"
        if story_event is not None:
            message += f"\n\n{story_event.title}\n{story_event.description}"
        return ActionResult(
            True,
            message,
            {
                "location": destination,
                "day": player.day,
                "event_result": event_result.to_dict() if event_result is not None else None,
                "story_event": story_event.to_dict() if story_event is not None else None,
                "game_ended": self.state.game_ended,
            },
            event=event,
        )

    def buy_item(self, item_id: str, quantity: int) -> ActionResult:
        if self.state.game_ended:
            return self._ended_result()
        if not item_id or not isinstance(quantity, int) or quantity <= 0:
            return ActionResult(False, "Invalid item or quantity")
        if item_id not in self.items.by_id():
            return ActionResult(False, "Item does not exist")

        entry = self.state.current_market().get(item_id)
        if entry is None:
            return ActionResult(False, "Item not available at this location")
        if not entry.available:
            return ActionResult(False, f"{item_id} is not available here")
        if quantity > entry.quantity:
            return ActionResult(False, f"Only {entry.quantity} {item_id} available")

        player = self.state.player
        total_cost = entry.price * quantity
        if total_cost > player.cash:
            return ActionResult(
                False,
                f"Not enough cash. Need ${total_cost:,}, have ${player.cash:,}",
            )
        space = player.available_space()
        if quantity > space:
            message = f"Not enough inventory space. Need {quantity} units, have {space} available."
            if player.inventory_capacity < MAX_INVENTORY_CAPACITY:
                message += " Look for opportunities to expand your inventory capacity!"
            return ActionResult(False, message)

        player.cash -= total_cost
        player.add_item(item_id, quantity)
        entry.quantity -= quantity
        if entry.quantity <= 0:
            entry.quantity = 0
            entry.available = False

        story_note = self.story_manager.adapt_story_to_player_actions(
            self.state, "major_purchase", {"cost": total_cost, "cash_after": player.cash}
        )
        self.state.append_trace(
            {"day": player.day, "kind": "buy", "params": {"item": item_id, "quantity": quantity, "total": total_cost}}
        )
        logger.debug("buy item=%s quantity=%d total=%d", item_id, quantity, total_cost)
        event = self.event_system.trigger_random_event()
        self._commit()
        return ActionResult(
            True,
            f"Bought {quantity} {item_id} for ${total_cost:,}",
            {"total_cost": total_cost, "story_note": story_note},
            event=event,
        )

    def sell_item(self, item_id: str, quantity: int) -> ActionResult:
        if self.state.game_ended:
            return self._ended_result()
        if not item_id or not isinstance(quantity, int) or quantity <= 0:
            return ActionResult(False, "Invalid item or quantity")
        if item_id not in self.items.by_id():
            return ActionResult(False, "Item does not exist")

        player = self.state.player
        owned = player.inventory.get(item_id, 0)
        if owned <= 0:
            return ActionResult(False, f"You don't have any {item_id}")
        if quantity > owned:
            return ActionResult(False, f"You only have {owned} {item_id}")

        entry = self.state.current_market().get(item_id)
        if entry is None:
            return ActionResult(False, "Cannot sell this item at this location")

        total_earnings = entry.price * quantity
        player.cash += total_earnings
        player.remove_item(item_id, quantity)
        entry.quantity += quantity
        entry.available = True

        story_note = self.story_manager.adapt_story_to_player_actions(
            self.state, "large_trade", {"earnings": total_earnings}
        )
        self.state.append_trace(
            {"day": player.day, "kind": "sell", "params": {"item": item_id, "quantity": quantity, "total": total_earnings}}
        )
        logger.debug("sell item=%s quantity=%d total=%d", item_id, quantity, total_earnings)
        event = self.event_system.trigger_random_event()
        self._commit()
        return ActionResult(
            True,
            f"Sold {quantity} {item_id} for ${total_earnings:,}",
            {"total_earnings": total_earnings, "story_note": story_note},
            event=event,
        )

    # -- random events -------------------------------------------------------------

    @property
    def current_event(self) -> EventInstance | None:
        return self.event_system.current_event

    def check_for_random_event(self) -> EventInstance | None:
        if self.state.game_ended:
            return None
        return self.event_system.trigger_random_event()

    def execute_current_event(self, choice: str | None = None) -> ActionResult:
        if self.state.game_ended:
            self.event_system.clear_current_event()
            return self._ended_result()
        result = self.event_system.execute_current_event(choice)
        if result.event is not None:
            self._commit()
        return result

    # -- market and inventory queries ----------------------------------------------

    def current_market(self) -> dict[str, MarketEntry]:
        return self.state.current_market()

    def available_items(self) -> list[str]:
        return available_items(self.state.current_market())

    def total_inventory_usage(self) -> int:
        return self.state.player.inventory_usage()

    def available_inventory_space(self) -> int:
        return self.state.player.available_space()

    def has_inventory_space(self, required: int = 1) -> bool:
        return self.available_inventory_space() >= required

    def inventory_status(self) -> dict[str, Any]:
        player = self.state.player
        usage = player.inventory_usage()
        percentage = usage / player.inventory_capacity * 100
        status = "normal"
        if percentage >= INVENTORY_CRITICAL_PERCENT:
            status = "critical"
        elif percentage >= INVENTORY_WARNING_PERCENT:
            status = "warning"
        return {
            "usage": usage,
            "capacity": player.inventory_capacity,
            "available": player.inventory_capacity - usage,
            "percentage": _round_half_up(percentage),
            "status": status,
        }

    def detailed_inventory(self) -> dict[str, Any]:
        player = self.state.player
        market = self.state.current_market()
        rows = []
        for item_id, quantity in sorted(player.inventory.items()):
            entry = market.get(item_id)
            price = entry.price if entry is not None else 0
            rows.append({"item": item_id, "quantity": quantity, "current_price": price, "total_value": price * quantity})
        usage = player.inventory_usage()
        return {
            "items": rows,
            "total_items": usage,
            "capacity": player.inventory_capacity,
            "available_space": player.available_space(),
            "total_value": sum(row["total_value"] for row in rows),
            "capacity_percentage": _round_half_up(usage / player.inventory_capacity * 100),
        }

    def expand_inventory(self, amount: int) -> ActionResult:
        if self.state.game_ended:
            return self._ended_result()
        return self._committed(self.apply_inventory_expansion(amount))

    # The apply_* variants mutate without committing; event handlers use them so the
    # enclosing engine call persists and renders once.

    def apply_inventory_expansion(self, amount: int) -> ActionResult:
        if not isinstance(amount, int) or not MIN_EXPANSION <= amount <= MAX_EXPANSION:
            return ActionResult(False, "Invalid expansion amount")

        player = self.state.player
        current = player.inventory_capacity
        if current >= MAX_INVENTORY_CAPACITY:
            return ActionResult(False, f"Inventory already at maximum capacity ({MAX_INVENTORY_CAPACITY} units)")

        new_capacity = min(MAX_INVENTORY_CAPACITY, current + amount)
        actual = new_capacity - current
        player.inventory_capacity = new_capacity
        if new_capacity == MAX_INVENTORY_CAPACITY and actual < amount:
            message = f"Inventory expanded by {actual} units to maximum capacity ({MAX_INVENTORY_CAPACITY} units)"
        else:
            message = f"Inventory expanded by {actual} units ({current} -> {new_capacity})"
        return ActionResult(True, message, {"actual_expansion": actual, "capacity": new_capacity})

    # -- vehicles ------------------------------------------------------------------

    def current_vehicle_def(self) -> VehicleDef:
        vehicles = self.vehicles.by_id()
        return vehicles.get(self.state.player.vehicle, vehicles[DEFAULT_VEHICLE_ID])

    def current_vehicle_info(self) -> dict[str, Any]:
        vehicle = self.current_vehicle_def()
        return {
            **vehicle.to_dict(),
            "event_reduction_percentage": _round_half_up(vehicle.event_risk_reduction * 100),
        }

    def available_vehicles(self) -> list[dict[str, Any]]:
        player = self.state.player
        rows = []
        for vehicle in self.vehicles.vehicles:
            owned = vehicle.vehicle_id in player.owned_vehicles
            affordable = player.cash >= vehicle.cost
            rows.append(
                {
                    **vehicle.to_dict(),
                    "event_reduction_percentage": _round_half_up(vehicle.event_risk_reduction * 100),
                    "owned": owned,
                    "current": vehicle.vehicle_id == player.vehicle,
                    "affordable": affordable,
                    "can_purchase": not owned and affordable,
                }
            )
        return rows

    def purchase_vehicle(self, vehicle_id: str) -> ActionResult:
        if self.state.game_ended:
            return self._ended_result()
        vehicle = self.vehicles.by_id().get(vehicle_id)
        if vehicle is None:
            return ActionResult(False, "Invalid vehicle type")
        return self._committed(
            self._acquire_vehicle(vehicle, vehicle.cost, suffix=" You can switch between your vehicles anytime.")
        )

    def purchase_discounted_vehicle(self, vehicle_id: str, discounted_price: int) -> ActionResult:
        if self.state.game_ended:
            return self._ended_result()
        return self._committed(self.apply_discounted_vehicle_purchase(vehicle_id, discounted_price))

    def apply_discounted_vehicle_purchase(self, vehicle_id: str, discounted_price: int) -> ActionResult:
        vehicle = self.vehicles.by_id().get(vehicle_id)
        if vehicle is None:
            return ActionResult(False, "Invalid vehicle type")
        if not isinstance(discounted_price, int) or discounted_price < 0:
            return ActionResult(False, "Invalid price")
        return self._acquire_vehicle(vehicle, discounted_price, suffix="")

    def _acquire_vehicle(self, vehicle: VehicleDef, price: int, *, suffix: str) -> ActionResult:
        player = self.state.player
        if vehicle.vehicle_id in player.owned_vehicles:
            return ActionResult(False, f"You already own a {vehicle.vehicle_id}")
        if player.cash < price:
            return ActionResult(False, f"Not enough cash. Need ${price:,}, have ${player.cash:,}")

        player.cash -= price
        player.owned_vehicles.append(vehicle.vehicle_id)
        player.vehicle = vehicle.vehicle_id
        story_note = self.story_manager.adapt_story_to_player_actions(self.state, "vehicle_purchase", {"cost": price})
        self.state.append_trace(
            {"day": player.day, "kind": "vehicle_purchase", "params": {"vehicle": vehicle.vehicle_id, "price": price}}
        )
        return ActionResult(
            True,
            f"Purchased {vehicle.vehicle_id} for ${price:,}.{suffix}",
            {"cost": price, "vehicle": vehicle.vehicle_id, "story_note": story_note},
        )

    def select_vehicle(self, vehicle_id: str) -> ActionResult:
        if self.state.game_ended:
            return self._ended_result()
        if vehicle_id not in self.vehicles.by_id():
            return ActionResult(False, "Invalid vehicle type")
        player = self.state.player
        if vehicle_id not in player.owned_vehicles:
            return ActionResult(False, f"You don't own a {vehicle_id}")
        if player.vehicle == vehicle_id:
            return ActionResult(False, f"You are already using the {vehicle_id}")
        player.vehicle = vehicle_id
        self._commit()
        return ActionResult(True, f"Switched to {vehicle_id}")

    def steal_vehicle(self) -> ActionResult:
        if self.state.game_ended:
            return self._ended_result()
        return self._committed(self.apply_vehicle_theft())

    def apply_vehicle_theft(self) -> ActionResult:
        player = self.state.player
        stolen = player.vehicle
        if stolen == DEFAULT_VEHICLE_ID:
            return ActionResult(False, "No vehicle to steal")
        player.vehicle = DEFAULT_VEHICLE_ID
        if stolen in player.owned_vehicles:
            player.owned_vehicles.remove(stolen)
        return ActionResult(
            True,
            f"Your {stolen} was stolen! You're back to traveling on foot.",
            {"stolen_vehicle": stolen},
        )

    def offer_discounted_vehicle(self, vehicle_id: str, discount_percentage: float) -> dict[str, Any] | None:
        vehicle = self.vehicles.by_id().get(vehicle_id)
        if vehicle is None:
            return None
        discounted = math.floor(vehicle.cost * (1 - discount_percentage / 100))
        return {
            "vehicle": vehicle_id,
            "original_price": vehicle.cost,
            "discounted_price": discounted,
            "savings": vehicle.cost - discounted,
            "discount_percentage": discount_percentage,
            "description": vehicle.description,
            "affordable": self.state.player.cash >= discounted,
        }

    # -- loans and game end --------------------------------------------------------

    def check_loans(self) -> ActionResult | None:
        player = self.state.player
        overdue = [loan for loan in self.state.loans if player.day > loan.due_day]
        if not overdue:
            return None
        penalty = sum(math.floor(loan.repayment_amount * LOAN_PENALTY_RATE) for loan in overdue)
        paid = player.spend(penalty)
        self.state.loans = [loan for loan in self.state.loans if player.day <= loan.due_day]
        message = f"Loan shark penalty! You failed to repay {len(overdue)} loan(s). Penalty: ${penalty:,}"
        self.state.append_trace(
            {"day": player.day, "kind": "loan_penalty", "params": {"loans": len(overdue), "penalty": penalty, "paid": paid}}
        )
        self._notices.append(message)
        logger.warning("overdue loans penalized count=%d penalty=%d", len(overdue), penalty)
        return ActionResult(True, message, {"penalty": penalty, "paid": paid, "loans": len(overdue)})

    def check_game_end(self) -> bool:
        if self.state.game_ended:
            return True
        self.check_loans()
        if self.state.player.day > self.state.player.max_days:
            self.end_game()
            return True
        return False

    def end_game(self) -> dict[str, Any]:
        if self.state.game_ended and self.state.final_report is not None:
            return copy.deepcopy(self.state.final_report)

        player = self.state.player
        settings = DIFFICULTY_SETTINGS[resolve_difficulty(player.difficulty)]
        starting_cash = self.state.starting_cash
        profit = player.cash - starting_cash
        days_played = player.day - 1
        report = {
            "final_score": math.floor(player.cash * settings.score_multiplier),
            "final_cash": player.cash,
            "starting_cash": starting_cash,
            "total_profit": profit,
            "profit_percentage": _round_half_up(profit / starting_cash * 100),
            "days_played": days_played,
            "profit_per_day": math.floor(profit / days_played) if days_played > 0 else 0,
            "difficulty": player.difficulty,
            "story_conclusion": self.story_manager.generate_detailed_story_conclusion(self.state),
        }
        self.state.game_ended = True
        self.state.final_report = report
        self.event_system.clear_current_event()
        self.state.append_trace({"day": player.day, "kind": "game_end", "params": {"final_score": report["final_score"]}})
        logger.info("game ended score=%d cash=%d", report["final_score"], player.cash)
        self._persist()
        return copy.deepcopy(report)

    # -- snapshots and collaborators -----------------------------------------------

    def drain_notices(self) -> list[str]:
        notices = list(self._notices)
        self._notices.clear()
        return notices

    def game_state_snapshot(self) -> dict[str, Any]:
        return self.state.to_dict()

    def display_snapshot(self) -> dict[str, Any]:
        event = self.event_system.current_event
        return {
            "player": self.state.player.to_dict(),
            "market": {item_id: entry.to_dict() for item_id, entry in sorted(self.state.current_market().items())},
            "inventory": self.detailed_inventory(),
            "inventory_status": self.inventory_status(),
            "vehicle": self.current_vehicle_info(),
            "vehicles": self.available_vehicles(),
            "locations": self.locations.location_ids(),
            "loans": [loan.to_dict() for loan in self.state.loans],
            "story": self.story_manager.story_status(self.state),
            "hints": self.story_manager.generate_performance_hints(self.state),
            "pending_event": event.to_dict() if event is not None else None,
            "game_ended": self.state.game_ended,
            "final_report": copy.deepcopy(self.state.final_report),
        }

    def _persist(self) -> None:
        if self.store is not None:
            self.store.save(self.state)

    def _publish(self, *, persist: bool = False) -> None:
        # Loan penalties and the end-of-game freeze land before the snapshot is saved or shown.
        if not self.state.game_ended:
            self.check_game_end()
        if persist:
            self._persist()
        if self.display is not None:
            self.display.render(self.display_snapshot())

    def _commit(self) -> None:
        self._publish(persist=True)

    def _committed(self, result: ActionResult) -> ActionResult:
        if result.success:
            self._commit()
        return result
