from __future__ import annotations

from typing import Iterable

import pytest

from streettrader.sim.engine import GameEngine
from streettrader.sim.state import MarketEntry

# A default above every event probability keeps random events from firing.
NO_EVENT_DRAW = 0.99


class ScriptedRandom:
    """Random source that replays queued draws, then returns ``default`` forever."""

    def __init__(self, values: Iterable[float] = (), *, default: float = NO_EVENT_DRAW) -> None:
        self.values = list(values)
        self.default = default
        self.calls = 0

    def queue(self, *values: float) -> None:
        self.values.extend(values)

    def random(self) -> float:
        self.calls += 1
        if self.values:
            return self.values.pop(0)
        return self.default


class RecordingDisplay:
    def __init__(self) -> None:
        self.snapshots: list[dict] = []

    def render(self, snapshot: dict) -> None:
        self.snapshots.append(snapshot)


def stock_market(engine: GameEngine, prices: dict[str, int], *, quantity: int = 50) -> None:
    """Replace the current location's market with fixed, fully stocked prices."""
    location = engine.state.player.current_location
    engine.state.markets[location] = {
        item_id: MarketEntry(price=price, available=True, quantity=quantity) for item_id, price in prices.items()
    }


@pytest.fixture
def scripted_rng() -> ScriptedRandom:
    return ScriptedRandom()


@pytest.fixture
def engine(scripted_rng: ScriptedRandom) -> GameEngine:
    game = GameEngine(rng=scripted_rng)
    game.start_new_game("medium")
    return game
