from __future__ import annotations

import argparse
import importlib.metadata
import os
import platform
import sys
from typing import Any

from streettrader.content.io import DEFAULT_SAVE_PATH, SaveStore
from streettrader.sim.engine import GameEngine
from streettrader.sim.events import ActionResult
from streettrader.sim.narrative import format_money
from streettrader.sim.state import DEFAULT_DIFFICULTY, DIFFICULTY_SETTINGS

WINDOW_SIZE = (1280, 800)
PANEL_MARGIN = 12
PANEL_GAP = 10
LINE_HEIGHT = 20
MESSAGE_LOG_LIMIT = 8
BULK_QUANTITY = 10

BACKGROUND_COLOR = (18, 18, 24)
PANEL_COLOR = (34, 36, 46)
PANEL_BORDER_COLOR = (70, 74, 92)
TITLE_COLOR = (255, 210, 90)
TEXT_COLOR = (235, 235, 235)
HIGHLIGHT_COLOR = (90, 200, 140)
EVENT_COLOR = (255, 120, 100)

KEY_HELP = (
    "UP/DOWN select | B buy (shift x10) | S sell (shift all) | 1-9 travel | "
    "V switch vehicle | P buy next vehicle | Y/N/ENTER resolve event | R restart | ESC quit"
)

LEFT_SECTIONS: tuple[str, ...] = ("status", "market", "inventory")
RIGHT_SECTIONS: tuple[str, ...] = ("event", "locations", "vehicles", "story", "messages")

pygame: Any | None = None


class PygameDisplay:
    """Display hook that keeps the most recent engine snapshot for the draw loop."""

    def __init__(self) -> None:
        self.snapshot: dict[str, Any] | None = None
        self.render_count = 0

    def render(self, snapshot: dict[str, Any]) -> None:
        self.snapshot = snapshot
        self.render_count += 1


class ViewerController:
    """Maps key names to engine commands; holds only selection and message state."""

    def __init__(self, engine: GameEngine) -> None:
        self.engine = engine
        self.selected_index = 0
        self.messages: list[str] = []

    @property
    def selected_item(self) -> str:
        item_ids = sorted(self.engine.items.item_ids())
        return item_ids[self.selected_index % len(item_ids)]

    def push_message(self, message: str) -> None:
        for line in message.split("\n"):
            if line.strip():
                self.messages.append(line)
        del self.messages[:-MESSAGE_LOG_LIMIT]

    def _report(self, result: ActionResult) -> None:
        self.push_message(result.message if result.success else f"failed: {result.message}")
        story_note = result.details.get("story_note")
        if story_note:
            self.push_message(story_note)
        for notice in self.engine.drain_notices():
            self.push_message(notice)

    def handle_key(self, key_name: str, *, shift: bool = False) -> bool:
        """Apply one key press. Returns ``False`` when the viewer should close."""
        if key_name == "escape":
            return False
        if key_name == "r":
            self._report(self.engine.restart_game())
            return True
        if self.engine.state.game_ended:
            self.push_message("game over: press R to start again")
            return True

        pending = self.engine.current_event
        if pending is not None:
            self._handle_event_key(key_name, pending.choices)
            return True

        item_count = len(self.engine.items.item_ids())
        if key_name == "up":
            self.selected_index = (self.selected_index - 1) % item_count
        elif key_name == "down":
            self.selected_index = (self.selected_index + 1) % item_count
        elif key_name == "b":
            self._report(self.engine.buy_item(self.selected_item, BULK_QUANTITY if shift else 1))
        elif key_name == "s":
            owned = self.engine.state.player.inventory.get(self.selected_item, 0)
            self._report(self.engine.sell_item(self.selected_item, owned if shift else 1))
        elif key_name.isdigit() and key_name != "0":
            locations = self.engine.locations.location_ids()
            index = int(key_name) - 1
            if index < len(locations):
                self._report(self.engine.travel_to_location(locations[index]))
        elif key_name == "v":
            self._cycle_vehicle()
        elif key_name == "p":
            self._purchase_next_vehicle()
        return True

    def _handle_event_key(self, key_name: str, choices: tuple[str, ...]) -> None:
        if key_name == "y" and choices:
            choice = "buy" if "buy" in choices else "accept"
            self._report(self.engine.execute_current_event(choice))
        elif key_name == "n" and choices:
            self._report(self.engine.execute_current_event("decline"))
        elif key_name == "return" and not choices:
            self._report(self.engine.execute_current_event())
        else:
            self.push_message("resolve the event first")

    def _cycle_vehicle(self) -> None:
        player = self.engine.state.player
        owned = [vehicle_id for vehicle_id in self.engine.vehicles.vehicle_ids() if vehicle_id in player.owned_vehicles]
        if len(owned) < 2:
            self.push_message("no other vehicle owned")
            return
        position = owned.index(player.vehicle) if player.vehicle in owned else 0
        self._report(self.engine.select_vehicle(owned[(position + 1) % len(owned)]))

    def _purchase_next_vehicle(self) -> None:
        for row in self.engine.available_vehicles():
            if not row["owned"]:
                self._report(self.engine.purchase_vehicle(row["vehicle_id"]))
                return
        self.push_message("you already own every vehicle")


def _panel_lines(snapshot: dict[str, Any], *, selected_item: str | None = None) -> dict[str, list[str]]:
    player = snapshot["player"]
    inventory_status = snapshot["inventory_status"]
    sections: dict[str, list[str]] = {
        "status": [
            f"Day {player['day']} of {player['max_days']} ({player['difficulty']})",
            f"Location: {player['current_location']}",
            f"Cash: {format_money(player['cash'])}   Health: {player['health']}",
            f"Vehicle: {player['vehicle']} (-{snapshot['vehicle']['event_reduction_percentage']}% events)",
            f"Inventory: {inventory_status['usage']}/{inventory_status['capacity']} ({inventory_status['status']})",
        ],
        "market": [],
        "inventory": [],
        "event": [],
        "locations": [],
        "vehicles": [],
        "story": [],
    }

    for item_id, entry in snapshot["market"].items():
        marker = ">" if item_id == selected_item else " "
        if entry["available"]:
            sections["market"].append(f"{marker} {item_id:<9} {format_money(entry['price']):>8}  x{entry['quantity']}")
        else:
            sections["market"].append(f"{marker} {item_id:<9} {'--':>8}  sold out")

    for row in snapshot["inventory"]["items"]:
        sections["inventory"].append(f"{row['item']:<9} x{row['quantity']:<4} {format_money(row['total_value'])}")
    for loan in snapshot["loans"]:
        sections["inventory"].append(f"Loan: {format_money(loan['repayment_amount'])} due day {loan['due_day']}")
    if not sections["inventory"]:
        sections["inventory"].append("<empty>")

    event = snapshot["pending_event"]
    if event is not None:
        sections["event"].append(event["title"])
        sections["event"].extend(line for line in event["description"].split("\n") if line.strip())
        if event["choices"]:
            sections["event"].append("Y = " + ("buy" if "buy" in event["choices"] else "accept") + ", N = decline")
        else:
            sections["event"].append("ENTER to continue")

    for index, location in enumerate(snapshot["locations"], start=1):
        marker = "*" if location == player["current_location"] else " "
        sections["locations"].append(f"{index} {marker} {location}")

    for row in snapshot["vehicles"]:
        if row["current"]:
            state = "in use"
        elif row["owned"]:
            state = "owned"
        else:
            state = format_money(row["cost"])
        sections["vehicles"].append(f"{row['vehicle_id']:<11} {state}")

    story = snapshot["story"]
    sections["story"].append(f"Phase {story['current_phase']} / performance {story['player_performance']}")
    sections["story"].extend(snapshot["hints"])

    report = snapshot["final_report"]
    if snapshot["game_ended"] and report is not None:
        sections["event"] = [
            "GAME OVER",
            f"Final score: {report['final_score']:,}",
            f"Profit: {format_money(report['total_profit'])} ({report['profit_percentage']}%)",
            report["story_conclusion"]["title"],
        ]
    return sections


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m streettrader.cli.pygame_viewer",
        description="Run the StreetTrader pygame viewer.",
    )
    parser.add_argument(
        "--difficulty",
        choices=sorted(DIFFICULTY_SETTINGS),
        default=DEFAULT_DIFFICULTY,
        help="Difficulty used when a new game is started.",
    )
    parser.add_argument("--seed", type=int, default=None, help="Optional seed for reproducible markets and events.")
    parser.add_argument(
        "--save-path",
        default=DEFAULT_SAVE_PATH,
        help="Save JSON path; the game is resumed from it when present.",
    )
    parser.add_argument("--new", action="store_true", help="Ignore any existing save and start a new game.")
    parser.add_argument(
        "--headless",
        action="store_true",
        help="Force SDL dummy video driver for CI/testing and exit without opening a real window.",
    )
    return parser


def _env_flag_enabled(var_name: str) -> bool:
    return os.environ.get(var_name, "").strip().lower() in {"1", "true", "yes", "on"}


def _print_startup_banner() -> None:
    try:
        pygame_version = importlib.metadata.version("pygame")
    except importlib.metadata.PackageNotFoundError:
        pygame_version = "not-installed"
    print(
        "[streettrader.viewer] startup "
        f"python={platform.python_version()} "
        f"pygame={pygame_version} "
        f"platform={platform.platform()}"
    )
    for name in ("SDL_VIDEODRIVER", "SDL_AUDIODRIVER"):
        value = os.environ.get(name, "<unset>")
        print(f"[streettrader.viewer] env {name}={value}")


def _ensure_pygame_imported() -> Any:
    global pygame
    if pygame is None:
        import pygame as pygame_module

        pygame = pygame_module
    return pygame


def _wrap_text_to_pixel_width(text: str, font: Any, max_width: int) -> list[str]:
    if max_width <= 0:
        return [text]
    words = text.split(" ")
    lines: list[str] = []
    current = words[0]
    for word in words[1:]:
        candidate = f"{current} {word}"
        if font.size(candidate)[0] <= max_width:
            current = candidate
            continue
        lines.extend(_hard_wrap_text(current, font, max_width))
        current = word
    lines.extend(_hard_wrap_text(current, font, max_width))
    return lines


def _hard_wrap_text(text: str, font: Any, max_width: int) -> list[str]:
    if not text or font.size(text)[0] <= max_width:
        return [text]
    rows: list[str] = []
    remaining = text
    while remaining:
        cut = len(remaining)
        while cut > 1 and font.size(remaining[:cut])[0] > max_width:
            cut -= 1
        rows.append(remaining[:cut])
        remaining = remaining[cut:]
    return rows


def _draw_panel(screen: Any, rect: Any, title: str, lines: list[str], font: Any, title_font: Any, *, color: tuple[int, int, int]) -> int:
    pygame_module = _ensure_pygame_imported()
    wrapped: list[str] = []
    for line in lines:
        wrapped.extend(_wrap_text_to_pixel_width(line, font, rect.width - 16))
    height = 30 + LINE_HEIGHT * max(1, len(wrapped))
    panel = pygame_module.Rect(rect.x, rect.y, rect.width, min(height, rect.height))
    pygame_module.draw.rect(screen, PANEL_COLOR, panel)
    pygame_module.draw.rect(screen, PANEL_BORDER_COLOR, panel, 1)
    screen.blit(title_font.render(title.upper(), True, TITLE_COLOR), (panel.x + 8, panel.y + 6))
    y = panel.y + 28
    for line in wrapped:
        if y + LINE_HEIGHT > panel.bottom:
            break
        line_color = HIGHLIGHT_COLOR if line.startswith(">") else color
        screen.blit(font.render(line, True, line_color), (panel.x + 8, y))
        y += LINE_HEIGHT
    return panel.bottom


def _draw_frame(screen: Any, snapshot: dict[str, Any], controller: ViewerController, font: Any, title_font: Any) -> None:
    pygame_module = _ensure_pygame_imported()
    screen.fill(BACKGROUND_COLOR)
    sections = _panel_lines(snapshot, selected_item=controller.selected_item)
    sections["messages"] = list(controller.messages) or ["<no messages>"]

    column_width = (WINDOW_SIZE[0] - PANEL_MARGIN * 3) // 2
    bottom = WINDOW_SIZE[1] - PANEL_MARGIN - LINE_HEIGHT
    columns = (
        (PANEL_MARGIN, LEFT_SECTIONS),
        (PANEL_MARGIN * 2 + column_width, RIGHT_SECTIONS),
    )
    for x, names in columns:
        y = PANEL_MARGIN
        for name in names:
            lines = sections.get(name, [])
            if not lines:
                continue
            rect = pygame_module.Rect(x, y, column_width, max(0, bottom - y))
            if rect.height < 40:
                break
            color = EVENT_COLOR if name == "event" else TEXT_COLOR
            y = _draw_panel(screen, rect, name, lines, font, title_font, color=color) + PANEL_GAP

    screen.blit(font.render(KEY_HELP, True, TEXT_COLOR), (PANEL_MARGIN, WINDOW_SIZE[1] - PANEL_MARGIN - LINE_HEIGHT + 4))
    pygame_module.display.flip()


def run_pygame_viewer(
    *,
    difficulty: str = DEFAULT_DIFFICULTY,
    seed: int | None = None,
    save_path: str = DEFAULT_SAVE_PATH,
    new_game: bool = False,
    headless: bool = False,
) -> int:
    if headless:
        os.environ["SDL_VIDEODRIVER"] = "dummy"
        print("[streettrader.viewer] warning: headless mode active; no window will open.")

    _print_startup_banner()
    pygame_module = _ensure_pygame_imported()

    try:
        pygame_module.init()
    except Exception as exc:
        print(
            "[streettrader.viewer] failed during pygame.init(): "
            f"{exc}. Hint: verify a working SDL video driver (set SDL_VIDEODRIVER=dummy for headless mode).",
            file=sys.stderr,
        )
        return 1

    display = PygameDisplay()
    try:
        engine = GameEngine(store=SaveStore(save_path), display=display, seed=seed)
    except (OSError, ValueError) as exc:
        print(f"[streettrader.viewer] failed to load game content: {exc}", file=sys.stderr)
        pygame_module.quit()
        return 1

    controller = ViewerController(engine)
    if not new_game and engine.load_saved_game() and not engine.state.game_ended:
        controller.push_message(f"Resumed game from {save_path}")
        print(f"[streettrader.viewer] loaded path={save_path} day={engine.state.player.day}")
    else:
        result = engine.start_new_game(difficulty)
        controller.push_message(result.message)
        story_event = result.details.get("story_event")
        if story_event:
            controller.push_message(story_event["title"])

    try:
        pygame_module.display.set_caption("StreetTrader")
        screen = pygame_module.display.set_mode(WINDOW_SIZE)
    except Exception as exc:
        print(
            "[streettrader.viewer] failed during pygame.display.set_mode(...): "
            f"{exc}. Hint: GUI sessions require a valid display; use --headless or STREETTRADER_HEADLESS=1.",
            file=sys.stderr,
        )
        pygame_module.quit()
        return 1

    driver_name = pygame_module.display.get_driver()
    print(f"[streettrader.viewer] display initialized: {driver_name}, window size={WINDOW_SIZE}")

    font = pygame_module.font.SysFont("consolas", 16)
    title_font = pygame_module.font.SysFont("consolas", 15, bold=True)

    if headless:
        _draw_frame(screen, display.snapshot or engine.display_snapshot(), controller, font, title_font)
        pygame_module.quit()
        return 0

    clock = pygame_module.time.Clock()
    running = True
    while running:
        clock.tick(30)
        for event in pygame_module.event.get():
            if event.type == pygame_module.QUIT:
                running = False
            elif event.type == pygame_module.KEYDOWN:
                shift = bool(event.mod & pygame_module.KMOD_SHIFT)
                running = controller.handle_key(pygame_module.key.name(event.key), shift=shift)
        _draw_frame(screen, display.snapshot or engine.display_snapshot(), controller, font, title_font)

    pygame_module.quit()
    return 0


def main(argv: list[str] | None = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)
    headless = args.headless or _env_flag_enabled("STREETTRADER_HEADLESS")
    raise SystemExit(
        run_pygame_viewer(
            difficulty=args.difficulty,
            seed=args.seed,
            save_path=args.save_path,
            new_game=args.new,
            headless=headless,
        )
    )


if __name__ == "__main__":
    main()
