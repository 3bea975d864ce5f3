import pytest

from conftest import ScriptedRandom, stock_market
from streettrader.sim.engine import GameEngine
from streettrader.sim.events import (
    BASE_EVENT_PROBABILITY,
    EVENT_HANDLERS,
    PARAMETER_BUILDERS,
    POLICE_CONFISCATION,
    POLICE_FINE,
    POLICE_HEALTH,
    calculate_narrative_weight,
)


def _archetype(engine: GameEngine, event_id: str):
    return engine.event_system.table.by_id()[event_id]


def _trigger(engine: GameEngine, rng: ScriptedRandom, select_draw: float, *param_draws: float):
    rng.queue(0.0, select_draw, *param_draws)
    return engine.check_for_random_event()


def test_event_probability_is_reduced_by_vehicle(engine: GameEngine, scripted_rng: ScriptedRandom) -> None:
    scripted_rng.queue(BASE_EVENT_PROBABILITY - 0.01, BASE_EVENT_PROBABILITY)
    assert engine.event_system.should_occur() is True
    assert engine.event_system.should_occur() is False

    engine.state.player.owned_vehicles.append("Car")
    engine.state.player.vehicle = "Car"
    scripted_rng.queue(0.08, 0.07)
    assert engine.event_system.should_occur() is False
    assert engine.event_system.should_occur() is True


def test_narrative_weight_follows_phase_and_performance(engine: GameEngine) -> None:
    police = _archetype(engine, "police_encounter")
    loan = _archetype(engine, "loan_shark")
    tip = _archetype(engine, "tip")

    assert calculate_narrative_weight(police, 4, "excellent") == pytest.approx(1.3 * 1.4)
    assert calculate_narrative_weight(police, 0, "average") == pytest.approx(0.8)
    assert calculate_narrative_weight(loan, 1, "poor") == pytest.approx(1.2 * 1.4)
    assert calculate_narrative_weight(tip, 2, "average") == pytest.approx(1.0)
    assert calculate_narrative_weight(tip, 5, "good") == pytest.approx(1.2)


def test_weighted_selection_walks_cumulative_weights(engine: GameEngine, scripted_rng: ScriptedRandom) -> None:
    # Opening phase, average performance: economic x1.2, safety x0.8, total 389.8.
    scripted_rng.queue(0.0, 0.12, 0.3, 0.999)

    assert engine.event_system.select_weighted_event().event_id == "market_surge"
    assert engine.event_system.select_weighted_event().event_id == "theft"
    assert engine.event_system.select_weighted_event().event_id == "loan_shark"
    assert engine.event_system.select_weighted_event().event_id == "equipment_upgrade"


def test_no_event_when_probability_draw_misses(engine: GameEngine, scripted_rng: ScriptedRandom) -> None:
    scripted_rng.queue(0.5)

    assert engine.check_for_random_event() is None
    assert engine.current_event is None


def test_triggered_event_is_pending_until_executed_once(engine: GameEngine, scripted_rng: ScriptedRandom) -> None:
    stock_market(engine, {"Acid": 1000, "Weed": 500})

    event = _trigger(engine, scripted_rng, 0.0, 0.0, 0.5)

    assert event is not None
    assert event.instance_id == "evt-000001"
    assert event.event_id == "market_surge"
    assert event.params["item"] == "Acid"
    assert event.params["multiplier"] == pytest.approx(3.5)
    assert "Acid" in event.description
    assert engine.current_event is event
    assert engine.state.event_trace[-1]["kind"] == "random_event"

    result = engine.execute_current_event()

    assert result.success is True
    assert result.message.startswith("Acid prices surged 250%!")
    assert engine.current_market()["Acid"].price == 3500
    assert engine.current_event is None
    assert engine.state.story.decision_patterns["economic_none"] == 1
    assert engine.state.story.player_choices["market_surge!_1"]["choice"] is None

    again = engine.execute_current_event()
    assert again.success is False
    assert again.message == "No active event"


def test_loan_acceptance_records_debt_and_risk_profile(engine: GameEngine, scripted_rng: ScriptedRandom) -> None:
    # cash 2000 * 0.5 = 1000 at 50% over 5 days
    event = _trigger(engine, scripted_rng, 0.3, 0.0, 0.5, 0.5)

    assert event is not None and event.event_id == "loan_shark"
    assert event.params == {"loan_amount": 1000, "interest_rate": 50, "days_to_repay": 5, "repayment_amount": 1500}
    assert event.description.startswith("A loan shark approaches")

    result = engine.execute_current_event("accept")

    assert result.success is True
    assert engine.state.player.cash == 3000
    [loan] = engine.state.loans
    assert loan.due_day == 6
    assert loan.repayment_amount == 1500
    assert engine.state.story.risk_profile["high_risk_financial"] == 1
    assert engine.state.story.character_traits["risk_taking"] == 1


def test_loan_decline_counts_as_conservative_choice(engine: GameEngine, scripted_rng: ScriptedRandom) -> None:
    _trigger(engine, scripted_rng, 0.3, 0.0, 0.5, 0.5)

    result = engine.execute_current_event("decline")

    assert result.success is True
    assert engine.state.loans == []
    assert engine.state.player.cash == 2000
    assert engine.state.story.risk_profile["conservative_choices"] == 1
    assert engine.state.story.character_traits["cautious"] == 1
    assert "survival_over_success" in engine.state.story.story_themes


def test_unsupported_choice_is_treated_as_no_choice(engine: GameEngine, scripted_rng: ScriptedRandom) -> None:
    _trigger(engine, scripted_rng, 0.3, 0.0, 0.5, 0.5)

    result = engine.execute_current_event("buy")

    assert result.success is True
    assert "Use the event choices" in result.message
    assert engine.state.loans == []
    assert engine.state.story.decision_patterns["economic_none"] == 1


def test_cheap_deal_parameters_and_purchase(engine: GameEngine, scripted_rng: ScriptedRandom) -> None:
    stock_market(engine, {"Weed": 500})
    scripted_rng.queue(0.9, 0.0)
    params = engine.event_system.generate_event_parameters(_archetype(engine, "cheap_deal"))

    assert params == {
        "item": "Weed",
        "quantity": 5,
        "market_price": 500,
        "discount_percentage": 50,
        "discounted_price": 250,
    }

    result = EVENT_HANDLERS["cheap_deal"](engine, params, "buy", scripted_rng)

    assert result.success is True
    assert engine.state.player.cash == 750
    assert engine.state.player.inventory == {"Weed": 5}
    assert result.details["savings"] == 1250


def test_deal_for_item_missing_from_market_cannot_be_bought(engine: GameEngine) -> None:
    engine.state.markets[engine.state.player.current_location] = {}
    params = {"item": "Weed", "quantity": 5, "market_price": 0, "discount_percentage": 50, "discounted_price": None}

    result = EVENT_HANDLERS["cheap_deal"](engine, params, "buy", ScriptedRandom())

    assert result.success is False
    assert engine.state.player.cash == 2000


def test_police_outcome_uses_single_draw_when_carrying(engine: GameEngine, scripted_rng: ScriptedRandom) -> None:
    archetype = _archetype(engine, "police_encounter")
    engine.state.player.add_item("Weed", 10)

    outcomes = []
    for draw in (0.3, 0.5, 0.8):
        scripted_rng.queue(draw, 0.5, 0.5)
        outcomes.append(engine.event_system.generate_event_parameters(archetype)["outcome"])

    assert outcomes == [POLICE_CONFISCATION, POLICE_FINE, POLICE_HEALTH]


def test_police_without_inventory_always_roughs_up(engine: GameEngine, scripted_rng: ScriptedRandom) -> None:
    scripted_rng.queue(0.0, 0.0)
    params = engine.event_system.generate_event_parameters(_archetype(engine, "police_encounter"))

    assert params["outcome"] == POLICE_HEALTH
    assert params["health_damage"] == 10

    result = EVENT_HANDLERS["police_encounter"](engine, params, None, ScriptedRandom())

    assert engine.state.player.health == 90
    assert result.details["health_lost"] == 10


def test_police_confiscation_removes_part_of_one_stack(engine: GameEngine) -> None:
    engine.state.player.add_item("Weed", 10)
    params = {"outcome": POLICE_CONFISCATION, "fine_amount": 0, "health_damage": 10}

    result = EVENT_HANDLERS["police_encounter"](engine, params, None, ScriptedRandom([0.0, 0.5]))

    assert result.details == {"outcome": POLICE_CONFISCATION, "item": "Weed", "quantity_lost": 5}
    assert engine.state.player.inventory == {"Weed": 5}


def test_theft_takes_percentage_of_cash(engine: GameEngine) -> None:
    result = EVENT_HANDLERS["theft"](engine, {"loss_percentage": 25}, None, ScriptedRandom())

    assert result.details["amount_lost"] == 500
    assert engine.state.player.cash == 1500


def test_gang_medical_bill_is_clamped_to_cash(engine: GameEngine) -> None:
    engine.state.player.cash = 300
    params = {"outcome": "medical", "inventory_loss_percentage": 10, "medical_cost": 1000, "health_loss": 20}

    result = EVENT_HANDLERS["gang_fight"](engine, params, None, ScriptedRandom())

    assert engine.state.player.cash == 0
    assert engine.state.player.health == 80
    assert result.details["amount_paid"] == 300


def test_rival_dealer_tax_requires_cash(engine: GameEngine) -> None:
    engine.state.player.cash = 50

    refused = EVENT_HANDLERS["rival_dealer"](engine, {"tax_amount": 200, "loss_quantity": 2}, "accept", ScriptedRandom())

    assert refused.success is False
    assert engine.state.player.cash == 50


def test_vehicle_deal_without_candidates_reports_failure(engine: GameEngine) -> None:
    engine.state.player.owned_vehicles.extend(["Skateboard", "Bicycle", "Car"])

    params = engine.event_system.generate_event_parameters(_archetype(engine, "vehicle_deal"))
    result = EVENT_HANDLERS["vehicle_deal"](engine, params, "buy", ScriptedRandom())

    assert params == {"vehicle": None}
    assert result.success is False


def test_abandoned_stash_needs_space(engine: GameEngine) -> None:
    engine.state.player.add_item("Ludes", 98)

    result = EVENT_HANDLERS["abandoned_stash"](engine, {"item": "Weed", "quantity": 5}, None, ScriptedRandom())

    assert result.success is True
    assert "Weed" not in engine.state.player.inventory


def test_market_surge_price_holds_for_later_trades(engine: GameEngine) -> None:
    stock_market(engine, {"Weed": 500})

    result = EVENT_HANDLERS["market_surge"](engine, {"item": "Weed", "multiplier": 2.0}, None, ScriptedRandom())
    bought = engine.buy_item("Weed", 1)

    assert result.message.startswith("Weed prices surged 100%! New price: $1,000 (was $500)")
    assert result.details == {"item": "Weed", "old_price": 500, "new_price": 1000}
    assert bought.details["total_cost"] == 1000
    assert engine.state.player.cash == 1000


def test_market_crash_cuts_listed_price(engine: GameEngine) -> None:
    stock_market(engine, {"Weed": 500})

    crashed = EVENT_HANDLERS["market_crash"](engine, {"item": "Weed", "multiplier": 0.5}, None, ScriptedRandom())
    missing = EVENT_HANDLERS["market_crash"](engine, {"item": "Acid", "multiplier": 0.5}, None, ScriptedRandom())

    assert crashed.message == "Market crash hits Weed! Price dropped to $250 (was $500)."
    assert engine.current_market()["Weed"].price == 250
    assert missing.success is False


def test_gang_fight_destroys_share_of_one_stack(engine: GameEngine) -> None:
    engine.state.player.add_item("Weed", 10)
    params = {"outcome": "inventory", "inventory_loss_percentage": 40, "medical_cost": 500, "health_loss": 10}

    result = EVENT_HANDLERS["gang_fight"](engine, params, None, ScriptedRandom())

    assert result.details == {"outcome": "inventory", "item": "Weed", "quantity_lost": 4}
    assert engine.state.player.inventory == {"Weed": 6}
    assert engine.state.player.cash == 2000
    assert engine.state.player.health == 100


def test_gang_fight_spares_stack_too_small_to_lose_a_unit(engine: GameEngine) -> None:
    engine.state.player.add_item("Weed", 1)
    params = {"outcome": "inventory", "inventory_loss_percentage": 40, "medical_cost": 500, "health_loss": 10}

    result = EVENT_HANDLERS["gang_fight"](engine, params, None, ScriptedRandom())

    assert result.success is True
    assert result.details["quantity_lost"] == 0
    assert engine.state.player.inventory == {"Weed": 1}


def test_police_confiscation_spares_single_unit(engine: GameEngine) -> None:
    engine.state.player.add_item("Weed", 1)
    params = {"outcome": POLICE_CONFISCATION, "fine_amount": 0, "health_damage": 10}

    result = EVENT_HANDLERS["police_encounter"](engine, params, None, ScriptedRandom([0.0, 0.5]))

    assert result.details == {"outcome": POLICE_CONFISCATION, "item": "Weed", "quantity_lost": 0}
    assert engine.state.player.inventory == {"Weed": 1}


@pytest.mark.parametrize(("cash", "paid"), [(2000, 500), (300, 300)])
def test_police_fine_is_clamped_to_cash(engine: GameEngine, cash: int, paid: int) -> None:
    engine.state.player.cash = cash
    engine.state.player.add_item("Weed", 3)
    params = {"outcome": POLICE_FINE, "fine_amount": 500, "health_damage": 10}

    result = EVENT_HANDLERS["police_encounter"](engine, params, None, ScriptedRandom())

    assert result.details == {"outcome": POLICE_FINE, "amount_paid": paid}
    assert engine.state.player.cash == cash - paid
    assert engine.state.player.inventory == {"Weed": 3}


def test_police_raid_dumps_thirty_percent_rounded_up(engine: GameEngine) -> None:
    quiet = EVENT_HANDLERS["police_raid"](engine, {}, None, ScriptedRandom())
    engine.state.player.add_item("Weed", 10)

    raided = EVENT_HANDLERS["police_raid"](engine, {}, None, ScriptedRandom())

    assert quiet.message == "Police raid in progress! Luckily you're not carrying anything suspicious."
    assert raided.message == "Police raid! You had to dump 3 Weed to avoid getting caught."
    assert engine.state.player.inventory == {"Weed": 7}


def _bulk_offer() -> dict:
    return {"item": "Weed", "quantity": 10, "market_price": 500, "discount_percentage": 30, "discounted_price": 350}


def test_bulk_seller_purchase(engine: GameEngine) -> None:
    engine.state.player.cash = 5000

    result = EVENT_HANDLERS["bulk_seller"](engine, _bulk_offer(), "buy", ScriptedRandom())

    assert result.message == "Bought 10 Weed for $3,500 (saved $1,500)!"
    assert engine.state.player.cash == 1500
    assert engine.state.player.inventory == {"Weed": 10}


def test_bulk_seller_decline_changes_nothing(engine: GameEngine) -> None:
    result = EVENT_HANDLERS["bulk_seller"](engine, _bulk_offer(), "decline", ScriptedRandom())

    assert result.success is True
    assert result.message == "You decided to pass on the deal."
    assert engine.state.player.cash == 2000
    assert engine.state.player.inventory == {}


def test_bulk_seller_needs_inventory_space(engine: GameEngine) -> None:
    engine.state.player.cash = 5000
    engine.state.player.add_item("Ludes", 95)

    result = EVENT_HANDLERS["bulk_seller"](engine, _bulk_offer(), "buy", ScriptedRandom())

    assert result.success is False
    assert result.message == "Not enough inventory space. Need 10 units, have 5 available."
    assert engine.state.player.cash == 5000
    assert engine.state.player.inventory == {"Ludes": 95}


def test_lucky_find_adds_cash(engine: GameEngine) -> None:
    result = EVENT_HANDLERS["lucky_find"](engine, {"cash_amount": 120}, None, ScriptedRandom())

    assert result.message == "Found $120 someone dropped!"
    assert engine.state.player.cash == 2120


def test_desperate_buyer_offer_tracks_market_price(engine: GameEngine, scripted_rng: ScriptedRandom) -> None:
    archetype = _archetype(engine, "desperate_buyer")
    stock_market(engine, {"Weed": 500})
    scripted_rng.queue(0.9, 0.0)
    listed = engine.event_system.generate_event_parameters(archetype)

    engine.state.markets[engine.state.player.current_location] = {}
    scripted_rng.queue(0.9, 0.0)
    unlisted = engine.event_system.generate_event_parameters(archetype)

    assert listed == {"item": "Weed", "premium_price": 650}
    assert unlisted == {"item": "Weed", "premium_price": 1300}


def test_desperate_buyer_takes_whole_stack(engine: GameEngine) -> None:
    params = {"item": "Weed", "premium_price": 650}
    empty_handed = EVENT_HANDLERS["desperate_buyer"](engine, params, "accept", ScriptedRandom())
    engine.state.player.add_item("Weed", 4)

    kept = EVENT_HANDLERS["desperate_buyer"](engine, params, "decline", ScriptedRandom())
    sold = EVENT_HANDLERS["desperate_buyer"](engine, params, "accept", ScriptedRandom())

    assert empty_handed.message == "A desperate buyer wants Weed, but you don't have any to sell."
    assert kept.message == "You decided to keep your goods."
    assert sold.message == "Sold 4 Weed for $2,600!"
    assert engine.state.player.cash == 4600
    assert engine.state.player.inventory == {}


def test_undercover_cop_fine_is_clamped_to_cash(engine: GameEngine) -> None:
    first = EVENT_HANDLERS["undercover_cop"](engine, {"fine_amount": 500}, None, ScriptedRandom())
    engine.state.player.cash = 100
    second = EVENT_HANDLERS["undercover_cop"](engine, {"fine_amount": 500}, None, ScriptedRandom())

    assert first.details == {"amount_paid": 500}
    assert second.message.endswith("Lost $100 avoiding arrest.")
    assert engine.state.player.cash == 0


def test_gang_recruitment_fee_requires_cash(engine: GameEngine) -> None:
    params = {"protection_fee": 300}

    declined = EVENT_HANDLERS["gang_recruitment"](engine, params, "decline", ScriptedRandom())
    paid = EVENT_HANDLERS["gang_recruitment"](engine, params, "accept", ScriptedRandom())
    engine.state.player.cash = 100
    broke = EVENT_HANDLERS["gang_recruitment"](engine, params, "accept", ScriptedRandom())

    assert declined.message == "You politely declined their offer."
    assert paid.message == "Paid protection fee. You'll have fewer problems in this area."
    assert broke.success is False
    assert broke.message == "Not enough cash for protection!"
    assert engine.state.player.cash == 100


def test_equipment_upgrade_offer_is_bought_through_engine(engine: GameEngine, scripted_rng: ScriptedRandom) -> None:
    # last archetype in the table, then cost and benefit draws
    event = _trigger(engine, scripted_rng, 0.999, 0.0, 0.5)

    assert event is not None and event.event_id == "equipment_upgrade"
    assert event.params == {"upgrade_cost": 200, "benefit": "enhanced security measures"}
    assert event.choices == ("buy", "decline")

    result = engine.execute_current_event("buy")

    assert result.message == "Purchased enhanced security measures!"
    assert engine.state.player.cash == 1800
    assert engine.state.story.decision_patterns["opportunity_buy"] == 1


def test_equipment_upgrade_requires_cash(engine: GameEngine) -> None:
    engine.state.player.cash = 150
    params = {"upgrade_cost": 200, "benefit": "faster transportation options"}

    result = EVENT_HANDLERS["equipment_upgrade"](engine, params, "buy", ScriptedRandom())
    passed = EVENT_HANDLERS["equipment_upgrade"](engine, params, "decline", ScriptedRandom())

    assert result.success is False
    assert result.message == "Not enough cash for the upgrade!"
    assert passed.message == "You passed on the upgrade."
    assert engine.state.player.cash == 150


@pytest.mark.parametrize(
    ("event_id", "params", "expected"),
    [
        (
            "insider_info",
            {"location": "Manhattan", "item": "Acid"},
            "Insider tip: Acid is in high demand in Manhattan. Prices might be good there.",
        ),
        (
            "counterfeit_goods",
            {"item": "Heroin"},
            "Warning: Fake Heroin is circulating. Be careful who you buy from - counterfeits are worthless!",
        ),
        ("informant", {}, "You spot a known informant. Better lay low for a while."),
        (
            "street_contact",
            {"benefit": "They can warn you about police activity."},
            "Made a new street contact. They can warn you about police activity.",
        ),
    ],
)
def test_informational_events_leave_state_alone(engine: GameEngine, event_id: str, params: dict, expected: str) -> None:
    before = engine.game_state_snapshot()

    result = EVENT_HANDLERS[event_id](engine, params, None, ScriptedRandom())

    assert result.success is True
    assert result.message == expected
    assert engine.game_state_snapshot() == before


def test_every_catalog_event_has_builder_and_handler(engine: GameEngine) -> None:
    event_ids = {archetype.event_id for archetype in engine.event_system.table.events}

    assert event_ids <= set(PARAMETER_BUILDERS)
    assert event_ids <= set(EVENT_HANDLERS)
