from conftest import RecordingDisplay, ScriptedRandom, stock_market
from streettrader.sim.engine import GAME_ENDED_MESSAGE, GameEngine
from streettrader.sim.state import MarketEntry


def test_new_game_starts_in_bronx_with_difficulty_settings(engine: GameEngine) -> None:
    player = engine.state.player

    assert player.cash == 2000
    assert player.day == 1
    assert player.max_days == 30
    assert player.current_location == "Bronx"
    assert player.inventory == {}
    assert player.inventory_capacity == 100
    assert player.vehicle == "On Foot"
    assert player.owned_vehicles == ["On Foot"]
    assert engine.state.starting_cash == 2000
    assert set(engine.current_market()) == {"Acid", "Cocaine", "Hashish", "Heroin", "Ludes", "Weed"}
    assert engine.state.story.events_triggered == ["opening"]
    assert engine.state.event_trace[-1]["kind"] == "new_game"


def test_new_game_returns_opening_story_event() -> None:
    game = GameEngine(rng=ScriptedRandom())

    result = game.start_new_game("hard")

    assert result.success is True
    assert result.details["story_event"]["milestone_id"] == "opening"
    assert result.details["story_event"]["title"] == "The Debt Collector"
    assert game.state.player.cash == 1000
    assert game.state.player.max_days == 20


def test_unknown_difficulty_falls_back_to_medium() -> None:
    game = GameEngine(rng=ScriptedRandom())

    game.start_new_game("nightmare")

    assert game.state.player.difficulty == "medium"
    assert game.state.player.cash == 2000


def test_buy_rejects_purchase_beyond_cash(engine: GameEngine) -> None:
    stock_market(engine, {"Weed": 500})

    result = engine.buy_item("Weed", 10)

    assert result.success is False
    assert result.message == "Not enough cash. Need $5,000, have $2,000"
    assert engine.state.player.cash == 2000
    assert engine.state.player.inventory == {}


def test_buy_deducts_cash_and_stock(engine: GameEngine) -> None:
    stock_market(engine, {"Weed": 500})

    result = engine.buy_item("Weed", 3)

    assert result.success is True
    assert result.message == "Bought 3 Weed for $1,500"
    assert engine.state.player.cash == 500
    assert engine.state.player.inventory == {"Weed": 3}
    assert engine.current_market()["Weed"].quantity == 47
    assert engine.state.event_trace[-1]["kind"] == "buy"


def test_buying_out_the_market_marks_item_unavailable(engine: GameEngine) -> None:
    stock_market(engine, {"Ludes": 10}, quantity=5)

    engine.buy_item("Ludes", 5)

    assert engine.current_market()["Ludes"] == MarketEntry(price=10, available=False, quantity=0)
    assert engine.available_items() == []


def test_buy_validations(engine: GameEngine) -> None:
    stock_market(engine, {"Weed": 500}, quantity=4)
    engine.current_market()["Heroin"] = MarketEntry(price=9000, available=False, quantity=0)

    assert engine.buy_item("Weed", 0).message == "Invalid item or quantity"
    assert engine.buy_item("", 1).message == "Invalid item or quantity"
    assert engine.buy_item("Caviar", 1).message == "Item does not exist"
    assert engine.buy_item("Acid", 1).message == "Item not available at this location"
    assert engine.buy_item("Heroin", 1).message == "Heroin is not available here"
    assert engine.buy_item("Weed", 5).message == "Only 4 Weed available"


def test_buy_rejects_when_inventory_is_full(engine: GameEngine) -> None:
    stock_market(engine, {"Ludes": 10})
    engine.state.player.add_item("Hashish", 98)

    result = engine.buy_item("Ludes", 5)

    assert result.success is False
    assert result.message.startswith("Not enough inventory space. Need 5 units, have 2 available.")
    assert "expand your inventory" in result.message


def test_sell_credits_cash_and_restocks_market(engine: GameEngine) -> None:
    stock_market(engine, {"Weed": 700}, quantity=10)
    engine.current_market()["Acid"] = MarketEntry(price=3000, available=False, quantity=0)
    engine.state.player.add_item("Weed", 4)
    engine.state.player.add_item("Acid", 2)

    weed = engine.sell_item("Weed", 4)
    acid = engine.sell_item("Acid", 1)

    assert weed.success is True
    assert weed.details["total_earnings"] == 2800
    assert acid.success is True
    assert engine.state.player.cash == 2000 + 2800 + 3000
    assert engine.state.player.inventory == {"Acid": 1}
    assert engine.current_market()["Weed"].quantity == 14
    assert engine.current_market()["Acid"] == MarketEntry(price=3000, available=True, quantity=1)


def test_sell_validations(engine: GameEngine) -> None:
    engine.state.markets["Bronx"] = {"Weed": MarketEntry(price=500, available=True, quantity=5)}
    engine.state.player.add_item("Weed", 2)
    engine.state.player.add_item("Heroin", 1)

    assert engine.sell_item("Weed", -1).message == "Invalid item or quantity"
    assert engine.sell_item("Acid", 1).message == "You don't have any Acid"
    assert engine.sell_item("Weed", 3).message == "You only have 2 Weed"
    assert engine.sell_item("Heroin", 1).message == "Cannot sell this item at this location"
    assert engine.state.player.cash == 2000


def test_large_sale_adds_story_note(engine: GameEngine) -> None:
    stock_market(engine, {"Cocaine": 20000})
    engine.state.player.add_item("Cocaine", 1)

    result = engine.sell_item("Cocaine", 1)

    assert result.details["story_note"] == "This significant payday could be the turning point in your operation."


def test_trade_can_leave_a_pending_event(engine: GameEngine, scripted_rng: ScriptedRandom) -> None:
    stock_market(engine, {"Weed": 500})
    # occurrence, loan shark selection, then loan amount, rate and term
    scripted_rng.queue(0.0, 0.3, 0.0, 0.5, 0.5)

    result = engine.buy_item("Weed", 2)

    assert result.success is True
    assert result.event is not None
    assert result.event.event_id == "loan_shark"
    assert result.event.params["loan_amount"] == 500
    assert engine.current_event is result.event


def test_travel_discards_offer_left_pending_by_trade(engine: GameEngine, scripted_rng: ScriptedRandom) -> None:
    stock_market(engine, {"Weed": 500})
    scripted_rng.queue(0.0, 0.3, 0.0, 0.5, 0.5)
    assert engine.buy_item("Weed", 2).event is not None

    result = engine.travel_to_location("Ghetto")

    assert result.event is None
    assert engine.current_event is None
    late = engine.execute_current_event("accept")
    assert late.success is False
    assert late.message == "No active event"
    assert engine.state.loans == []
    assert engine.state.player.cash == 1000


def test_travel_validations(engine: GameEngine) -> None:
    assert engine.travel_to_location("Atlantis").message == "Invalid location"
    assert engine.travel_to_location("Bronx").message == "You are already at this location"
    assert engine.state.player.day == 1


def test_travel_advances_day_and_regenerates_destination_market(engine: GameEngine) -> None:
    result = engine.travel_to_location("Ghetto")

    assert result.success is True
    assert result.message == "Traveled to Ghetto"
    assert result.event is None
    assert result.details["day"] == 2
    assert engine.state.player.current_location == "Ghetto"
    assert engine.state.player.day == 2
    assert "Ghetto" in engine.state.markets
    assert engine.state.event_trace[-1]["kind"] == "travel"


def test_travel_resolves_event_without_choice_automatically(engine: GameEngine, scripted_rng: ScriptedRandom) -> None:
    # occurrence, robbery selection, 10% loss
    scripted_rng.queue(0.0, 0.12, 0.0)

    result = engine.travel_to_location("Brooklyn")

    assert result.event is not None
    assert result.event.event_id == "theft"
    assert "During travel: Robbery!" in result.message
    assert result.details["event_result"]["details"]["amount_lost"] == 200
    assert engine.state.player.cash == 1800
    assert engine.current_event is None


def test_travel_reaching_milestone_day_appends_story(engine: GameEngine) -> None:
    engine.state.player.day = 4

    result = engine.travel_to_location("Manhattan")

    assert result.details["story_event"]["milestone_id"] == "day5"
    assert "First Week Survival" in result.message
    assert engine.state.story.current_phase == 1


def test_ended_game_rejects_mutations(engine: GameEngine) -> None:
    stock_market(engine, {"Weed": 500})
    engine.end_game()

    for result in (
        engine.buy_item("Weed", 1),
        engine.sell_item("Weed", 1),
        engine.travel_to_location("Ghetto"),
        engine.purchase_vehicle("Skateboard"),
        engine.expand_inventory(20),
    ):
        assert result.success is False
        assert result.message == GAME_ENDED_MESSAGE
    assert engine.state.player.cash == 2000


def test_display_receives_snapshot_after_each_mutation(scripted_rng: ScriptedRandom) -> None:
    display = RecordingDisplay()
    game = GameEngine(rng=scripted_rng, display=display)
    game.start_new_game()
    stock_market(game, {"Weed": 500})

    game.buy_item("Weed", 1)

    snapshot = display.snapshots[-1]
    assert len(display.snapshots) == 2
    assert set(snapshot) == {
        "player",
        "market",
        "inventory",
        "inventory_status",
        "vehicle",
        "vehicles",
        "locations",
        "loans",
        "story",
        "hints",
        "pending_event",
        "game_ended",
        "final_report",
    }
    assert snapshot["player"]["cash"] == 1500
    assert snapshot["inventory"]["items"] == [{"item": "Weed", "quantity": 1, "current_price": 500, "total_value": 500}]


def test_game_state_snapshot_is_detached_copy(engine: GameEngine) -> None:
    stock_market(engine, {"Weed": 400})
    engine.buy_item("Weed", 3)

    snapshot = engine.game_state_snapshot()
    snapshot["player"]["inventory"]["Weed"] = 99

    assert engine.total_inventory_usage() == 3
    assert engine.state.player.inventory == {"Weed": 3}
    assert snapshot["player"]["cash"] == 800


def test_vehicle_stolen_during_travel_renders_once(scripted_rng: ScriptedRandom) -> None:
    display = RecordingDisplay()
    game = GameEngine(rng=scripted_rng, display=display)
    game.start_new_game()
    game.state.player.owned_vehicles.append("Car")
    game.state.player.vehicle = "Car"
    rendered = len(display.snapshots)
    # occurrence, then vehicle theft selection
    scripted_rng.queue(0.0, 0.76)

    result = game.travel_to_location("Ghetto")

    assert result.event is not None and result.event.event_id == "vehicle_theft"
    assert game.state.player.vehicle == "On Foot"
    assert len(display.snapshots) == rendered + 1
    assert display.snapshots[-1]["player"]["current_location"] == "Ghetto"


def test_executed_storage_event_renders_once(scripted_rng: ScriptedRandom) -> None:
    display = RecordingDisplay()
    game = GameEngine(rng=scripted_rng, display=display)
    game.start_new_game()
    # occurrence, storage opportunity selection, 20 extra units
    scripted_rng.queue(0.0, 0.81, 0.0)
    event = game.check_for_random_event()
    rendered = len(display.snapshots)

    result = game.execute_current_event()

    assert event is not None and event.event_id == "inventory_expansion"
    assert result.success is True
    assert game.state.player.inventory_capacity == 120
    assert len(display.snapshots) == rendered + 1
    assert display.snapshots[-1]["inventory_status"]["capacity"] == 120
