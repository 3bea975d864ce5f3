from streettrader.sim.engine import GameEngine
from streettrader.sim.hash import state_hash

ROUTE = ("Ghetto", "Central Park", "Manhattan", "Coney Island", "Brooklyn", "Bronx")


def _play_route(seed: int) -> GameEngine:
    game = GameEngine(seed=seed)
    game.start_new_game("medium")
    for destination in ROUTE:
        game.travel_to_location(destination)
    return game


def test_same_seed_and_route_produce_identical_hash() -> None:
    game_a = _play_route(seed=42)
    game_b = _play_route(seed=42)

    assert state_hash(game_a.state) == state_hash(game_b.state)
    assert game_a.state.event_trace == game_b.state.event_trace


def test_different_seeds_produce_different_markets() -> None:
    game_a = GameEngine(seed=1)
    game_b = GameEngine(seed=2)
    game_a.start_new_game()
    game_b.start_new_game()

    assert state_hash(game_a.state) != state_hash(game_b.state)
