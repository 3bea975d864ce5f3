from __future__ import annotations

import argparse
import logging
from typing import Sequence

from streettrader.cli.pygame_viewer import _env_flag_enabled, run_pygame_viewer
from streettrader.cli.viewer import AsciiViewer, run_session
from streettrader.content.io import DEFAULT_SAVE_PATH, SaveStore
from streettrader.sim.engine import GameEngine
from streettrader.sim.state import DEFAULT_DIFFICULTY, DIFFICULTY_SETTINGS

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="python -m streettrader.cli.play", description="StreetTrader launcher.")
    parser.add_argument(
        "--difficulty",
        choices=sorted(DIFFICULTY_SETTINGS),
        default=DEFAULT_DIFFICULTY,
        help="Difficulty used when a new game is started.",
    )
    parser.add_argument("--seed", type=int, default=None, help="Optional seed for reproducible markets and events.")
    parser.add_argument("--save-path", default=DEFAULT_SAVE_PATH, help="Save JSON path resumed at startup when present.")
    parser.add_argument("--new", action="store_true", help="Ignore any existing save and start a new game.")
    parser.add_argument("--log-level", choices=LOG_LEVELS, default="WARNING", help="Logging level for engine diagnostics.")
    parser.add_argument("--pygame", action="store_true", help="Open the pygame viewer instead of the terminal session.")
    parser.add_argument("--headless", action="store_true", help="With --pygame, run startup path in headless mode.")
    return parser


def _start_engine(engine: GameEngine, *, difficulty: str, new_game: bool, save_path: str) -> None:
    if not new_game and engine.load_saved_game() and not engine.state.game_ended:
        player = engine.state.player
        print(f"[streettrader.play] resumed path={save_path} day={player.day} cash={player.cash}")
        return
    result = engine.start_new_game(difficulty)
    print(f"[streettrader.play] {result.message}")
    story_event = result.details.get("story_event")
    if story_event:
        print(f"{story_event['title']}\n{story_event['description']}")


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(name)s: %(message)s")

    if args.pygame:
        return run_pygame_viewer(
            difficulty=args.difficulty,
            seed=args.seed,
            save_path=args.save_path,
            new_game=args.new,
            headless=args.headless or _env_flag_enabled("STREETTRADER_HEADLESS"),
        )

    viewer = AsciiViewer(echo=False)
    engine = GameEngine(store=SaveStore(args.save_path), display=viewer, seed=args.seed)
    _start_engine(engine, difficulty=args.difficulty, new_game=args.new, save_path=args.save_path)
    return run_session(engine, viewer)


if __name__ == "__main__":
    raise SystemExit(main())
