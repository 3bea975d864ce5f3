from __future__ import annotations

import copy
import logging
import math
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable

from streettrader.content.events import (
    ECONOMIC_EVENT_TYPE,
    OPPORTUNITY_EVENT_TYPE,
    SAFETY_EVENT_TYPE,
    EventArchetype,
    EventTable,
)
from streettrader.content.vehicles import DEFAULT_VEHICLE_ID
from streettrader.sim import narrative
from streettrader.sim.narrative import format_money
from streettrader.sim.rng import RandomSource, pick, roll_int, roll_uniform
from streettrader.sim.state import Loan

if TYPE_CHECKING:
    from streettrader.sim.engine import GameEngine

logger = logging.getLogger(__name__)

BASE_EVENT_PROBABILITY = 0.15

MARKET_SURGE = "market_surge"
MARKET_CRASH = "market_crash"
THEFT = "theft"
CHEAP_DEAL = "cheap_deal"
BULK_SELLER = "bulk_seller"
LOAN_SHARK = "loan_shark"
POLICE_ENCOUNTER = "police_encounter"
POLICE_RAID = "police_raid"
GANG_FIGHT = "gang_fight"
RIVAL_DEALER = "rival_dealer"
TIP = "tip"
VEHICLE_THEFT = "vehicle_theft"
VEHICLE_DEAL = "vehicle_deal"
INVENTORY_EXPANSION = "inventory_expansion"
SAFE_HOUSE = "safe_house"
LUCKY_FIND = "lucky_find"
ABANDONED_STASH = "abandoned_stash"
INSIDER_INFO = "insider_info"
DESPERATE_BUYER = "desperate_buyer"
COUNTERFEIT_GOODS = "counterfeit_goods"
UNDERCOVER_COP = "undercover_cop"
INFORMANT = "informant"
GANG_RECRUITMENT = "gang_recruitment"
STREET_CONTACT = "street_contact"
EQUIPMENT_UPGRADE = "equipment_upgrade"

POLICE_CONFISCATION = "confiscation"
POLICE_FINE = "fine"
POLICE_HEALTH = "health"
GANG_INVENTORY = "inventory"
GANG_MEDICAL = "medical"

RAID_DUMP_PERCENT = 30
UNLISTED_ITEM_PRICE = 1000

STREET_CONTACT_BENEFITS = (
    "They might have good deals in the future.",
    "They know about upcoming market changes.",
    "They can warn you about police activity.",
    "They have connections in other neighborhoods.",
)
EQUIPMENT_UPGRADES = (
    "better hiding spots for inventory",
    "improved communication equipment",
    "enhanced security measures",
    "faster transportation options",
)


@dataclass
class ActionResult:
    success: bool
    message: str
    details: dict[str, Any] = field(default_factory=dict)
    event: "EventInstance | None" = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "details": copy.deepcopy(self.details),
            "event": self.event.to_dict() if self.event is not None else None,
        }


@dataclass
class EventInstance:
    instance_id: str
    event_id: str
    event_type: str
    title: str
    description: str
    params: dict[str, Any]
    choices: tuple[str, ...]
    day: int
    timestamp: float
    story_context: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {
            "instance_id": self.instance_id,
            "event_id": self.event_id,
            "event_type": self.event_type,
            "title": self.title,
            "description": self.description,
            "params": copy.deepcopy(self.params),
            "choices": list(self.choices),
            "day": self.day,
            "timestamp": self.timestamp,
            "story_context": dict(self.story_context),
        }


def calculate_narrative_weight(archetype: EventArchetype, phase: int, performance: str) -> float:
    weight = 1.0
    if phase >= 4:
        if archetype.event_type == SAFETY_EVENT_TYPE:
            weight *= 1.3
        elif archetype.event_type == OPPORTUNITY_EVENT_TYPE:
            weight *= 1.2
    elif phase <= 1:
        if archetype.event_type == ECONOMIC_EVENT_TYPE:
            weight *= 1.2
        elif archetype.event_type == SAFETY_EVENT_TYPE:
            weight *= 0.8

    if performance == "excellent":
        if archetype.event_id == POLICE_ENCOUNTER:
            weight *= 1.4
        elif archetype.event_id == VEHICLE_DEAL:
            weight *= 1.3
    elif performance == "poor":
        if archetype.event_id == THEFT:
            weight *= 1.2
        elif archetype.event_id == LOAN_SHARK:
            weight *= 1.4
    return weight


class EventSystem:
    """Random street events: whether one fires, which one, and what it does.

    At most one event is pending at a time. ``trigger_random_event`` replaces
    any pending event and ``execute_current_event`` consumes it exactly once.
    """

    def __init__(self, engine: "GameEngine", table: EventTable, rng: RandomSource) -> None:
        self._engine = engine
        self._table = table
        self._rng = rng
        self._current_event: EventInstance | None = None
        self._next_event_counter = 1

    @property
    def table(self) -> EventTable:
        return self._table

    @property
    def current_event(self) -> EventInstance | None:
        return self._current_event

    def clear_current_event(self) -> None:
        self._current_event = None

    def should_occur(self) -> bool:
        vehicle = self._engine.current_vehicle_def()
        probability = BASE_EVENT_PROBABILITY * (1.0 - vehicle.event_risk_reduction)
        return self._rng.random() < probability

    def select_weighted_event(self) -> EventArchetype:
        story = self._engine.state.story
        weighted = [
            (archetype, archetype.weight * calculate_narrative_weight(archetype, story.current_phase, story.player_performance))
            for archetype in self._table.events
        ]
        total_weight = sum(weight for _, weight in weighted)
        draw = self._rng.random() * total_weight
        for archetype, weight in weighted:
            draw -= weight
            if draw <= 0:
                return archetype
        return self._table.events[0]

    def event_story_context(self, archetype: EventArchetype) -> dict[str, Any]:
        story = self._engine.state.story
        return {
            "phase": story.current_phase,
            "performance": story.player_performance,
            "event_type": archetype.event_type,
            "narrative_weight": calculate_narrative_weight(archetype, story.current_phase, story.player_performance),
        }

    def generate_event_parameters(self, archetype: EventArchetype) -> dict[str, Any]:
        builder = PARAMETER_BUILDERS.get(archetype.event_id)
        if builder is None:
            return {}
        return builder(self._engine, self._rng)

    def trigger_random_event(self) -> EventInstance | None:
        if not self.should_occur():
            return None

        archetype = self.select_weighted_event()
        params = self.generate_event_parameters(archetype)
        story = self._engine.state.story
        instance = EventInstance(
            instance_id=f"evt-{self._next_event_counter:06d}",
            event_id=archetype.event_id,
            event_type=archetype.event_type,
            title=archetype.title,
            description=narrative.story_enhanced_description(
                archetype.event_id,
                params,
                story.player_performance,
                story.current_phase,
            ),
            params=params,
            choices=archetype.choices,
            day=self._engine.state.player.day,
            timestamp=time.time(),
            story_context=self.event_story_context(archetype),
        )
        self._next_event_counter += 1
        self._current_event = instance
        self._engine.state.append_trace(
            {
                "day": instance.day,
                "kind": "random_event",
                "params": {"instance_id": instance.instance_id, "event_id": instance.event_id},
            }
        )
        logger.debug("random event triggered id=%s event=%s", instance.instance_id, instance.event_id)
        return instance

    def execute_current_event(self, choice: str | None = None) -> ActionResult:
        event = self._current_event
        if event is None:
            return ActionResult(False, "No active event")

        handler = EVENT_HANDLERS.get(event.event_id)
        if handler is None:
            self.clear_current_event()
            return ActionResult(False, f"Unknown event: {event.event_id}")

        effective_choice = choice if choice in event.choices else None
        result = handler(self._engine, event.params, effective_choice, self._rng)
        result.event = event
        if result.success:
            self._engine.story_manager.record_event_outcome(
                self._engine.state,
                event_id=event.event_id,
                event_type=event.event_type,
                title=event.title,
                choice=effective_choice,
                message=result.message,
            )
        self._engine.state.append_trace(
            {
                "day": self._engine.state.player.day,
                "kind": "event_outcome",
                "params": {
                    "instance_id": event.instance_id,
                    "event_id": event.event_id,
                    "choice": effective_choice,
                    "success": result.success,
                },
            }
        )
        logger.debug(
            "random event executed id=%s choice=%s success=%s",
            event.instance_id,
            effective_choice,
            result.success,
        )
        self.clear_current_event()
        return result


def _random_item(engine: "GameEngine", rng: RandomSource) -> str:
    return pick(rng, engine.items.item_ids())


def _params_market_shift(low: float, high: float) -> Callable[["GameEngine", RandomSource], dict[str, Any]]:
    def build(engine: "GameEngine", rng: RandomSource) -> dict[str, Any]:
        return {"item": _random_item(engine, rng), "multiplier": roll_uniform(rng, low, high)}

    return build


def _params_theft(engine: "GameEngine", rng: RandomSource) -> dict[str, Any]:
    return {"loss_percentage": roll_int(rng, 10, 50)}


def _discounted_offer(
    engine: "GameEngine",
    rng: RandomSource,
    *,
    quantity_range: tuple[int, int],
    price_factor: float | None,
) -> dict[str, Any]:
    item = _random_item(engine, rng)
    quantity = roll_int(rng, *quantity_range)
    factor = price_factor if price_factor is not None else roll_uniform(rng, 0.6, 0.8)
    entry = engine.state.current_market().get(item)
    market_price = entry.price if entry is not None else 0
    return {
        "item": item,
        "quantity": quantity,
        "market_price": market_price,
        "discount_percentage": round((1 - factor) * 100),
        "discounted_price": max(1, math.floor(market_price * factor)) if entry is not None else None,
    }


def _params_cheap_deal(engine: "GameEngine", rng: RandomSource) -> dict[str, Any]:
    return _discounted_offer(engine, rng, quantity_range=(5, 24), price_factor=0.5)


def _params_bulk_seller(engine: "GameEngine", rng: RandomSource) -> dict[str, Any]:
    return _discounted_offer(engine, rng, quantity_range=(10, 39), price_factor=None)


def _params_loan_shark(engine: "GameEngine", rng: RandomSource) -> dict[str, Any]:
    loan_amount = math.floor(engine.state.player.cash * roll_uniform(rng, 0.5, 2.0))
    interest_rate = roll_int(rng, 25, 75)
    days_to_repay = roll_int(rng, 3, 7)
    return {
        "loan_amount": loan_amount,
        "interest_rate": interest_rate,
        "days_to_repay": days_to_repay,
        "repayment_amount": math.floor(loan_amount * (1 + interest_rate / 100)),
    }


def _params_police_encounter(engine: "GameEngine", rng: RandomSource) -> dict[str, Any]:
    outcome = POLICE_HEALTH
    if engine.state.player.inventory:
        roll = rng.random()
        if roll < 0.4:
            outcome = POLICE_CONFISCATION
        elif roll < 0.7:
            outcome = POLICE_FINE
    return {
        "outcome": outcome,
        "fine_amount": math.floor(engine.state.player.cash * roll_uniform(rng, 0.1, 0.4)),
        "health_damage": roll_int(rng, 10, 40),
    }


def _params_gang_fight(engine: "GameEngine", rng: RandomSource) -> dict[str, Any]:
    return {
        "outcome": GANG_INVENTORY if rng.random() < 0.5 else GANG_MEDICAL,
        "inventory_loss_percentage": roll_int(rng, 10, 40),
        "medical_cost": roll_int(rng, 500, 1499),
        "health_loss": roll_int(rng, 10, 30),
    }


def _params_rival_dealer(engine: "GameEngine", rng: RandomSource) -> dict[str, Any]:
    return {"tax_amount": roll_int(rng, 100, 399), "loss_quantity": roll_int(rng, 1, 3)}


def _params_tip(engine: "GameEngine", rng: RandomSource) -> dict[str, Any]:
    current = engine.state.player.current_location
    others = [location for location in engine.locations.location_ids() if location != current]
    return {
        "location": pick(rng, others),
        "item": _random_item(engine, rng),
        "tip_type": "high_price" if rng.random() < 0.5 else "low_price",
    }


def _params_vehicle_deal(engine: "GameEngine", rng: RandomSource) -> dict[str, Any]:
    owned = set(engine.state.player.owned_vehicles)
    candidates = [
        vehicle
        for vehicle in engine.vehicles.vehicles
        if vehicle.vehicle_id != DEFAULT_VEHICLE_ID and vehicle.vehicle_id not in owned
    ]
    if not candidates:
        return {"vehicle": None}
    vehicle = pick(rng, candidates)
    discount_percentage = roll_int(rng, 30, 50)
    return {
        "vehicle": vehicle.vehicle_id,
        "discount_percentage": discount_percentage,
        "original_price": vehicle.cost,
        "discounted_price": math.floor(vehicle.cost * (1 - discount_percentage / 100)),
    }


def _params_expansion(engine: "GameEngine", rng: RandomSource) -> dict[str, Any]:
    return {"expansion_amount": roll_int(rng, 20, 50)}


def _params_lucky_find(engine: "GameEngine", rng: RandomSource) -> dict[str, Any]:
    return {"cash_amount": roll_int(rng, 50, 349)}


def _params_abandoned_stash(engine: "GameEngine", rng: RandomSource) -> dict[str, Any]:
    return {"item": _random_item(engine, rng), "quantity": roll_int(rng, 2, 9)}


def _params_insider_info(engine: "GameEngine", rng: RandomSource) -> dict[str, Any]:
    return {"location": pick(rng, engine.locations.location_ids()), "item": _random_item(engine, rng)}


def _params_desperate_buyer(engine: "GameEngine", rng: RandomSource) -> dict[str, Any]:
    item = _random_item(engine, rng)
    entry = engine.state.current_market().get(item)
    market_price = entry.price if entry is not None else UNLISTED_ITEM_PRICE
    return {"item": item, "premium_price": math.floor(market_price * roll_uniform(rng, 1.3, 2.0))}


def _params_item_only(engine: "GameEngine", rng: RandomSource) -> dict[str, Any]:
    return {"item": _random_item(engine, rng)}


def _params_undercover_cop(engine: "GameEngine", rng: RandomSource) -> dict[str, Any]:
    return {"fine_amount": roll_int(rng, 200, 699)}


def _params_gang_recruitment(engine: "GameEngine", rng: RandomSource) -> dict[str, Any]:
    return {"protection_fee": roll_int(rng, 200, 599)}


def _params_street_contact(engine: "GameEngine", rng: RandomSource) -> dict[str, Any]:
    return {"benefit": pick(rng, STREET_CONTACT_BENEFITS)}


def _params_equipment_upgrade(engine: "GameEngine", rng: RandomSource) -> dict[str, Any]:
    return {"upgrade_cost": roll_int(rng, 200, 999), "benefit": pick(rng, EQUIPMENT_UPGRADES)}


PARAMETER_BUILDERS: dict[str, Callable[["GameEngine", RandomSource], dict[str, Any]]] = {
    MARKET_SURGE: _params_market_shift(2.0, 5.0),
    MARKET_CRASH: _params_market_shift(0.3, 0.7),
    THEFT: _params_theft,
    CHEAP_DEAL: _params_cheap_deal,
    BULK_SELLER: _params_bulk_seller,
    LOAN_SHARK: _params_loan_shark,
    POLICE_ENCOUNTER: _params_police_encounter,
    POLICE_RAID: lambda engine, rng: {},
    GANG_FIGHT: _params_gang_fight,
    RIVAL_DEALER: _params_rival_dealer,
    TIP: _params_tip,
    VEHICLE_THEFT: lambda engine, rng: {},
    VEHICLE_DEAL: _params_vehicle_deal,
    INVENTORY_EXPANSION: _params_expansion,
    SAFE_HOUSE: _params_expansion,
    LUCKY_FIND: _params_lucky_find,
    ABANDONED_STASH: _params_abandoned_stash,
    INSIDER_INFO: _params_insider_info,
    DESPERATE_BUYER: _params_desperate_buyer,
    COUNTERFEIT_GOODS: _params_item_only,
    UNDERCOVER_COP: _params_undercover_cop,
    INFORMANT: lambda engine, rng: {},
    GANG_RECRUITMENT: _params_gang_recruitment,
    STREET_CONTACT: _params_street_contact,
    EQUIPMENT_UPGRADE: _params_equipment_upgrade,
}


EventHandler = Callable[["GameEngine", dict[str, Any], "str | None", RandomSource], ActionResult]


def _random_owned_item(engine: "GameEngine", rng: RandomSource) -> str | None:
    owned = sorted(engine.state.player.inventory)
    if not owned:
        return None
    return pick(rng, owned)


def _execute_market_surge(engine: "GameEngine", params: dict[str, Any], choice: str | None, rng: RandomSource) -> ActionResult:
    item = params["item"]
    entry = engine.state.current_market().get(item)
    if entry is None:
        return ActionResult(False, f"{item} is not available at this location for the price surge.")
    original_price = entry.price
    entry.price = max(1, math.floor(original_price * params["multiplier"]))
    increase = round((params["multiplier"] - 1) * 100)
    return ActionResult(
        True,
        f"{item} prices surged {increase}%! New price: {format_money(entry.price)} (was {format_money(original_price)})",
        {"item": item, "old_price": original_price, "new_price": entry.price},
    )


def _execute_market_crash(engine: "GameEngine", params: dict[str, Any], choice: str | None, rng: RandomSource) -> ActionResult:
    item = params["item"]
    entry = engine.state.current_market().get(item)
    if entry is None:
        return ActionResult(False, f"{item} is not traded at this location.")
    original_price = entry.price
    entry.price = max(1, math.floor(original_price * params["multiplier"]))
    return ActionResult(
        True,
        f"Market crash hits {item}! Price dropped to {format_money(entry.price)} (was {format_money(original_price)}).",
        {"item": item, "old_price": original_price, "new_price": entry.price},
    )


def _execute_theft(engine: "GameEngine", params: dict[str, Any], choice: str | None, rng: RandomSource) -> ActionResult:
    player = engine.state.player
    cash_before = player.cash
    if cash_before <= 0:
        return ActionResult(True, "The muggers found nothing worth taking.", {"amount_lost": 0})
    loss = player.spend(math.floor(cash_before * params["loss_percentage"] / 100))
    share = round(loss / cash_before * 100)
    return ActionResult(True, f"You lost {format_money(loss)} ({share}% of your cash)!", {"amount_lost": loss})


def _execute_discounted_purchase(
    engine: "GameEngine",
    params: dict[str, Any],
    choice: str | None,
    *,
    pitch: str,
) -> ActionResult:
    item = params["item"]
    if choice == "decline":
        return ActionResult(True, "You decided to pass on the deal.")
    if choice != "buy":
        return ActionResult(True, f"{pitch} Use the event choices to buy or decline.")

    price = params.get("discounted_price")
    if price is None:
        return ActionResult(False, f"{item} is not available at this location.")
    player = engine.state.player
    quantity = params["quantity"]
    total_cost = price * quantity
    if total_cost > player.cash:
        return ActionResult(
            False,
            f"Not enough cash. Need {format_money(total_cost)}, have {format_money(player.cash)}.",
        )
    if quantity > player.available_space():
        return ActionResult(
            False,
            f"Not enough inventory space. Need {quantity} units, have {player.available_space()} available.",
        )

    player.cash -= total_cost
    player.add_item(item, quantity)
    savings = max(0, params["market_price"] * quantity - total_cost)
    return ActionResult(
        True,
        f"Bought {quantity} {item} for {format_money(total_cost)} (saved {format_money(savings)})!",
        {"item": item, "quantity": quantity, "total_cost": total_cost, "savings": savings},
    )


def _execute_cheap_deal(engine: "GameEngine", params: dict[str, Any], choice: str | None, rng: RandomSource) -> ActionResult:
    return _execute_discounted_purchase(
        engine, params, choice, pitch=f"A great deal on {params['item']} is available!"
    )


def _execute_bulk_seller(engine: "GameEngine", params: dict[str, Any], choice: str | None, rng: RandomSource) -> ActionResult:
    return _execute_discounted_purchase(
        engine,
        params,
        choice,
        pitch=f"A bulk seller offers {params['quantity']} units of {params['item']} below market rate!",
    )


def _execute_loan_shark(engine: "GameEngine", params: dict[str, Any], choice: str | None, rng: RandomSource) -> ActionResult:
    if choice == "decline":
        return ActionResult(True, "You wisely declined the loan shark's offer.")
    if choice != "accept":
        return ActionResult(True, "A loan shark offers you money at high interest. Use the event choices to accept or decline.")

    loan_amount = params["loan_amount"]
    if loan_amount <= 0:
        return ActionResult(False, "The loan shark takes one look at your empty pockets and walks away.")
    state = engine.state
    loan = Loan(
        principal=loan_amount,
        interest_rate=float(params["interest_rate"]),
        repayment_amount=params["repayment_amount"],
        due_day=state.player.day + params["days_to_repay"],
        days_to_repay=params["days_to_repay"],
    )
    state.player.cash += loan_amount
    state.loans.append(loan)
    return ActionResult(
        True,
        f"Loan accepted! You received {format_money(loan_amount)}. "
        f"You must repay {format_money(loan.repayment_amount)} by day {loan.due_day}.",
        {"loan": loan.to_dict()},
    )


def _execute_police_encounter(engine: "GameEngine", params: dict[str, Any], choice: str | None, rng: RandomSource) -> ActionResult:
    player = engine.state.player
    outcome = params["outcome"]
    if outcome == POLICE_CONFISCATION:
        item = _random_owned_item(engine, rng)
        if item is None:
            return ActionResult(True, "Police searched you but found nothing to confiscate.", {"outcome": outcome})
        fraction = roll_uniform(rng, 0.3, 0.7)
        removed = player.remove_item(item, math.floor(player.inventory[item] * fraction))
        if removed == 0:
            return ActionResult(
                True,
                f"Police searched your {item} but let you keep it.",
                {"outcome": outcome, "item": item, "quantity_lost": 0},
            )
        return ActionResult(
            True,
            f"Police confiscated {removed} units of {item}!",
            {"outcome": outcome, "item": item, "quantity_lost": removed},
        )
    if outcome == POLICE_FINE:
        paid = player.spend(params["fine_amount"])
        return ActionResult(
            True,
            f"Police found your stash and fined you {format_money(paid)}!",
            {"outcome": outcome, "amount_paid": paid},
        )

    lost = player.damage(params["health_damage"])
    return ActionResult(
        True,
        f"Police roughed you up during the search! Lost {lost} health (now {player.health}/100).",
        {"outcome": POLICE_HEALTH, "health_lost": lost},
    )


def _execute_police_raid(engine: "GameEngine", params: dict[str, Any], choice: str | None, rng: RandomSource) -> ActionResult:
    item = _random_owned_item(engine, rng)
    if item is None:
        return ActionResult(True, "Police raid in progress! Luckily you're not carrying anything suspicious.")
    player = engine.state.player
    removed = player.remove_item(item, math.ceil(player.inventory[item] * RAID_DUMP_PERCENT / 100))
    return ActionResult(
        True,
        f"Police raid! You had to dump {removed} {item} to avoid getting caught.",
        {"item": item, "quantity_lost": removed},
    )


def _execute_gang_fight(engine: "GameEngine", params: dict[str, Any], choice: str | None, rng: RandomSource) -> ActionResult:
    player = engine.state.player
    if params["outcome"] == GANG_INVENTORY:
        item = _random_owned_item(engine, rng)
        if item is None:
            return ActionResult(True, "Gang fight occurred but you had no inventory to damage.", {"outcome": GANG_INVENTORY})
        removed = player.remove_item(item, math.floor(player.inventory[item] * params["inventory_loss_percentage"] / 100))
        if removed == 0:
            return ActionResult(
                True,
                f"Gang fight broke out nearby but your {item} made it through untouched.",
                {"outcome": GANG_INVENTORY, "item": item, "quantity_lost": 0},
            )
        return ActionResult(
            True,
            f"Gang fight damaged your stash! Lost {removed} units of {item}.",
            {"outcome": GANG_INVENTORY, "item": item, "quantity_lost": removed},
        )

    paid = player.spend(params["medical_cost"])
    lost = player.damage(params["health_loss"])
    return ActionResult(
        True,
        f"Gang fight left you injured! Medical costs: {format_money(paid)}, health lost: {lost}.",
        {"outcome": GANG_MEDICAL, "amount_paid": paid, "health_lost": lost},
    )


def _execute_rival_dealer(engine: "GameEngine", params: dict[str, Any], choice: str | None, rng: RandomSource) -> ActionResult:
    player = engine.state.player
    if choice == "accept":
        tax = params["tax_amount"]
        if tax > player.cash:
            return ActionResult(False, "Not enough cash to pay!")
        player.cash -= tax
        return ActionResult(True, f"Paid {format_money(tax)} to avoid trouble.", {"amount_paid": tax})
    if choice == "decline":
        item = _random_owned_item(engine, rng)
        if item is None:
            return ActionResult(True, "They roughed you up but you had nothing to take.")
        removed = player.remove_item(item, params["loss_quantity"])
        return ActionResult(
            True,
            f'They took {removed} {item} as "payment"!',
            {"item": item, "quantity_lost": removed},
        )
    return ActionResult(True, "Rival dealers demand a tax for operating in their territory. Pay up or refuse.")


def _execute_tip(engine: "GameEngine", params: dict[str, Any], choice: str | None, rng: RandomSource) -> ActionResult:
    item = params["item"]
    location = params["location"]
    if params["tip_type"] == "high_price":
        message = f"Hot tip: {item} is selling for premium prices in {location}! Might be worth a trip."
    else:
        message = f"Insider info: {item} is dirt cheap in {location} right now. Good buying opportunity!"
    return ActionResult(True, message, dict(params))


def _execute_vehicle_theft(engine: "GameEngine", params: dict[str, Any], choice: str | None, rng: RandomSource) -> ActionResult:
    if engine.state.player.vehicle == DEFAULT_VEHICLE_ID:
        return ActionResult(True, "Some thieves tried to steal your vehicle, but you're on foot!")
    result = engine.apply_vehicle_theft()
    return ActionResult(True, result.message, dict(result.details))


def _execute_vehicle_deal(engine: "GameEngine", params: dict[str, Any], choice: str | None, rng: RandomSource) -> ActionResult:
    vehicle = params.get("vehicle")
    if not vehicle:
        return ActionResult(False, "No vehicles available for discount deals.")
    if choice == "decline":
        return ActionResult(True, "You decided to pass on the vehicle deal.")
    if choice != "buy":
        return ActionResult(True, f"A vehicle dealer offers you a {vehicle} at a discount! Use the event choices to buy or decline.")

    result = engine.apply_discounted_vehicle_purchase(vehicle, params["discounted_price"])
    if not result.success:
        return result
    savings = params["original_price"] - params["discounted_price"]
    return ActionResult(True, f"{result.message} (saved {format_money(savings)})!", dict(result.details))


def _execute_expansion(engine: "GameEngine", params: dict[str, Any], choice: str | None, rng: RandomSource) -> ActionResult:
    result = engine.apply_inventory_expansion(params["expansion_amount"])
    if result.success:
        return ActionResult(True, f"Lucky break! {result.message}", dict(result.details))
    return ActionResult(False, f"Expansion opportunity failed: {result.message}")


def _execute_lucky_find(engine: "GameEngine", params: dict[str, Any], choice: str | None, rng: RandomSource) -> ActionResult:
    amount = params["cash_amount"]
    engine.state.player.cash += amount
    return ActionResult(True, f"Found {format_money(amount)} someone dropped!", {"amount_gained": amount})


def _execute_abandoned_stash(engine: "GameEngine", params: dict[str, Any], choice: str | None, rng: RandomSource) -> ActionResult:
    item = params["item"]
    quantity = params["quantity"]
    player = engine.state.player
    if quantity > player.available_space():
        return ActionResult(True, f"Found {quantity} {item} in an abandoned stash, but you don't have space to carry it!")
    player.add_item(item, quantity)
    return ActionResult(
        True,
        f"Lucky find! Discovered {quantity} {item} in an abandoned stash.",
        {"item": item, "quantity": quantity},
    )


def _execute_insider_info(engine: "GameEngine", params: dict[str, Any], choice: str | None, rng: RandomSource) -> ActionResult:
    item = params["item"]
    location = params["location"]
    return ActionResult(
        True,
        f"Insider tip: {item} is in high demand in {location}. Prices might be good there.",
        dict(params),
    )


def _execute_desperate_buyer(engine: "GameEngine", params: dict[str, Any], choice: str | None, rng: RandomSource) -> ActionResult:
    item = params["item"]
    premium_price = params["premium_price"]
    player = engine.state.player
    owned = player.inventory.get(item, 0)
    if owned == 0:
        return ActionResult(True, f"A desperate buyer wants {item}, but you don't have any to sell.")
    if choice == "decline":
        return ActionResult(True, "You decided to keep your goods.")
    if choice != "accept":
        return ActionResult(
            True,
            f"Desperate buyer offers {format_money(premium_price)} per unit for {item} (above market rate)! "
            "Use the event choices to accept or decline.",
        )

    sold = player.remove_item(item, owned)
    earnings = premium_price * sold
    player.cash += earnings
    return ActionResult(
        True,
        f"Sold {sold} {item} for {format_money(earnings)}!",
        {"item": item, "quantity": sold, "total_earnings": earnings},
    )


def _execute_counterfeit_goods(engine: "GameEngine", params: dict[str, Any], choice: str | None, rng: RandomSource) -> ActionResult:
    item = params["item"]
    return ActionResult(
        True,
        f"Warning: Fake {item} is circulating. Be careful who you buy from - counterfeits are worthless!",
        {"item": item},
    )


def _execute_undercover_cop(engine: "GameEngine", params: dict[str, Any], choice: str | None, rng: RandomSource) -> ActionResult:
    paid = engine.state.player.spend(params["fine_amount"])
    return ActionResult(
        True,
        f"That buyer was an undercover cop! You barely escaped. Lost {format_money(paid)} avoiding arrest.",
        {"amount_paid": paid},
    )


def _execute_informant(engine: "GameEngine", params: dict[str, Any], choice: str | None, rng: RandomSource) -> ActionResult:
    return ActionResult(True, "You spot a known informant. Better lay low for a while.")


def _execute_gang_recruitment(engine: "GameEngine", params: dict[str, Any], choice: str | None, rng: RandomSource) -> ActionResult:
    fee = params["protection_fee"]
    if choice == "decline":
        return ActionResult(True, "You politely declined their offer.")
    if choice != "accept":
        return ActionResult(
            True,
            f'Local gang offers "protection" services for {format_money(fee)}. Use the event choices to accept or decline.',
        )
    player = engine.state.player
    if fee > player.cash:
        return ActionResult(False, "Not enough cash for protection!")
    player.cash -= fee
    return ActionResult(True, "Paid protection fee. You'll have fewer problems in this area.", {"amount_paid": fee})


def _execute_street_contact(engine: "GameEngine", params: dict[str, Any], choice: str | None, rng: RandomSource) -> ActionResult:
    return ActionResult(True, f"Made a new street contact. {params['benefit']}")


def _execute_equipment_upgrade(engine: "GameEngine", params: dict[str, Any], choice: str | None, rng: RandomSource) -> ActionResult:
    cost = params["upgrade_cost"]
    benefit = params["benefit"]
    if choice == "decline":
        return ActionResult(True, "You passed on the upgrade.")
    if choice != "buy":
        return ActionResult(
            True,
            f"Equipment dealer offers {benefit} for {format_money(cost)}. Use the event choices to buy or decline.",
        )
    player = engine.state.player
    if cost > player.cash:
        return ActionResult(False, "Not enough cash for the upgrade!")
    player.cash -= cost
    return ActionResult(True, f"Purchased {benefit}!", {"amount_paid": cost, "benefit": benefit})


EVENT_HANDLERS: dict[str, EventHandler] = {
    MARKET_SURGE: _execute_market_surge,
    MARKET_CRASH: _execute_market_crash,
    THEFT: _execute_theft,
    CHEAP_DEAL: _execute_cheap_deal,
    BULK_SELLER: _execute_bulk_seller,
    LOAN_SHARK: _execute_loan_shark,
    POLICE_ENCOUNTER: _execute_police_encounter,
    POLICE_RAID: _execute_police_raid,
    GANG_FIGHT: _execute_gang_fight,
    RIVAL_DEALER: _execute_rival_dealer,
    TIP: _execute_tip,
    VEHICLE_THEFT: _execute_vehicle_theft,
    VEHICLE_DEAL: _execute_vehicle_deal,
    INVENTORY_EXPANSION: _execute_expansion,
    SAFE_HOUSE: _execute_expansion,
    LUCKY_FIND: _execute_lucky_find,
    ABANDONED_STASH: _execute_abandoned_stash,
    INSIDER_INFO: _execute_insider_info,
    DESPERATE_BUYER: _execute_desperate_buyer,
    COUNTERFEIT_GOODS: _execute_counterfeit_goods,
    UNDERCOVER_COP: _execute_undercover_cop,
    INFORMANT: _execute_informant,
    GANG_RECRUITMENT: _execute_gang_recruitment,
    STREET_CONTACT: _execute_street_contact,
    EQUIPMENT_UPGRADE: _execute_equipment_upgrade,
}
