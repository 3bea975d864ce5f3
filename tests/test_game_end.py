from conftest import ScriptedRandom
from streettrader.sim.engine import GAME_ENDED_MESSAGE, GameEngine
from streettrader.sim.state import Loan


def _loan(due_day: int, repayment_amount: int = 1500) -> Loan:
    return Loan(principal=1000, interest_rate=50.0, repayment_amount=repayment_amount, due_day=due_day, days_to_repay=5)


def test_game_continues_until_max_days_is_passed(engine: GameEngine) -> None:
    engine.state.player.day = 30

    assert engine.check_game_end() is False
    assert engine.state.game_ended is False

    engine.state.player.day = 31

    assert engine.check_game_end() is True
    assert engine.state.game_ended is True


def test_final_report_arithmetic(engine: GameEngine) -> None:
    engine.state.player.cash = 6000
    engine.state.player.day = 31

    report = engine.end_game()

    assert report["final_score"] == 9000
    assert report["final_cash"] == 6000
    assert report["starting_cash"] == 2000
    assert report["total_profit"] == 4000
    assert report["profit_percentage"] == 200
    assert report["days_played"] == 30
    assert report["profit_per_day"] == 133
    assert report["difficulty"] == "medium"
    assert report["story_conclusion"]["title"] == "Solid Success"
    assert set(report["story_conclusion"]["metrics"]) == {
        "profit_multiplier",
        "survival_rate",
        "story_engagement",
        "risk_tolerance",
        "efficiency",
    }


def test_break_even_report_on_first_day(engine: GameEngine) -> None:
    report = engine.end_game()

    assert report["final_score"] == 3000
    assert report["total_profit"] == 0
    assert report["days_played"] == 0
    assert report["profit_per_day"] == 0
    assert report["story_conclusion"]["title"] == "Modest Progress"


def test_end_game_is_idempotent(engine: GameEngine) -> None:
    first = engine.end_game()
    engine.state.player.cash = 99999

    second = engine.end_game()

    assert second == first
    assert engine.state.final_report == first


def test_travel_past_last_day_ends_the_game(engine: GameEngine) -> None:
    engine.state.player.day = 30

    result = engine.travel_to_location("Ghetto")

    assert result.success is True
    assert result.details["game_ended"] is True
    assert engine.state.game_ended is True
    assert engine.state.final_report is not None
    assert engine.state.event_trace[-1]["kind"] == "game_end"
    assert engine.travel_to_location("Bronx").message == GAME_ENDED_MESSAGE


def test_game_end_discards_pending_event(engine: GameEngine, scripted_rng: ScriptedRandom) -> None:
    scripted_rng.queue(0.0, 0.3, 0.0, 0.5, 0.5)
    assert engine.check_for_random_event() is not None

    engine.end_game()

    assert engine.current_event is None
    assert engine.execute_current_event("accept").message == GAME_ENDED_MESSAGE
    assert engine.state.loans == []


def test_overdue_loan_is_penalized_and_removed(engine: GameEngine) -> None:
    engine.state.loans = [_loan(due_day=6)]
    engine.state.player.day = 7

    result = engine.check_loans()

    assert result is not None
    assert result.details == {"penalty": 750, "paid": 750, "loans": 1}
    assert engine.state.player.cash == 1250
    assert engine.state.loans == []
    assert engine.drain_notices() == ["Loan shark penalty! You failed to repay 1 loan(s). Penalty: $750"]
    assert engine.drain_notices() == []


def test_loan_is_not_overdue_on_its_due_day(engine: GameEngine) -> None:
    engine.state.loans = [_loan(due_day=6)]
    engine.state.player.day = 6

    assert engine.check_loans() is None
    assert len(engine.state.loans) == 1


def test_loan_penalty_cannot_push_cash_below_zero(engine: GameEngine) -> None:
    engine.state.player.cash = 100
    engine.state.loans = [_loan(due_day=2), _loan(due_day=10)]
    engine.state.player.day = 3

    result = engine.check_loans()

    assert result is not None
    assert result.details["paid"] == 100
    assert engine.state.player.cash == 0
    assert [loan.due_day for loan in engine.state.loans] == [10]


def test_travel_applies_overdue_penalty(engine: GameEngine) -> None:
    engine.state.loans = [_loan(due_day=1)]

    engine.travel_to_location("Ghetto")

    assert engine.state.player.cash == 1250
    assert engine.state.loans == []
    assert engine.drain_notices()
