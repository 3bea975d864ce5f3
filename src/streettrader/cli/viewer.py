from __future__ import annotations

import sys
from typing import Any, Callable, TextIO

from streettrader.sim.engine import GameEngine
from streettrader.sim.events import ActionResult
from streettrader.sim.narrative import format_money

COMMAND_HELP = (
    "Commands: status | market | inventory | vehicles | story | hints | buy <item> <qty> | "
    "sell <item> <qty|all> | travel <location> | vehicle buy|use <name> | "
    "event [accept|decline|buy] | new [easy|medium|hard] | restart | quit"
)


def _match_name(raw: str, options: list[str]) -> str | None:
    wanted = raw.strip().lower()
    for option in options:
        if option.lower() == wanted:
            return option
    return None


class AsciiViewer:
    """Read-only projection of engine snapshots for terminal display.

    ``render`` is the engine's display hook: it remembers the latest snapshot
    and, when ``echo`` is set, writes a one-line status bar to ``stream``.
    The ``format_*`` helpers turn a snapshot into printable panels.
    """

    def __init__(self, stream: TextIO | None = None, *, echo: bool = True) -> None:
        self.stream = stream
        self.echo = echo
        self.latest: dict[str, Any] | None = None

    def render(self, snapshot: dict[str, Any]) -> None:
        self.latest = snapshot
        if self.echo:
            print(self.format_status_line(snapshot), file=self.stream or sys.stdout)

    def format_status_line(self, snapshot: dict[str, Any]) -> str:
        player = snapshot["player"]
        inventory = snapshot["inventory_status"]
        return (
            f"day={player['day']}/{player['max_days']} location={player['current_location']} "
            f"cash={format_money(player['cash'])} health={player['health']} "
            f"inventory={inventory['usage']}/{inventory['capacity']} ({inventory['status']}) "
            f"vehicle={player['vehicle']}"
        )

    def format_market(self, snapshot: dict[str, Any]) -> str:
        lines = [f"Market at {snapshot['player']['current_location']}:"]
        for item_id, entry in snapshot["market"].items():
            if entry["available"]:
                lines.append(f"  {item_id:<10} {format_money(entry['price']):>8}  qty={entry['quantity']}")
            else:
                lines.append(f"  {item_id:<10} {'--':>8}  not available")
        return "\n".join(lines)

    def format_inventory(self, snapshot: dict[str, Any]) -> str:
        inventory = snapshot["inventory"]
        lines = [
            f"Inventory {inventory['total_items']}/{inventory['capacity']} "
            f"({inventory['capacity_percentage']}%) value={format_money(inventory['total_value'])}"
        ]
        if not inventory["items"]:
            lines.append("  <empty>")
        for row in inventory["items"]:
            lines.append(
                f"  {row['item']:<10} x{row['quantity']:<4} @ {format_money(row['current_price'])} "
                f"= {format_money(row['total_value'])}"
            )
        for loan in snapshot["loans"]:
            lines.append(f"  loan: owe {format_money(loan['repayment_amount'])} by day {loan['due_day']}")
        return "\n".join(lines)

    def format_vehicles(self, snapshot: dict[str, Any]) -> str:
        lines = ["Vehicles:"]
        for row in snapshot["vehicles"]:
            if row["current"]:
                marker = "*"
            elif row["owned"]:
                marker = "+"
            else:
                marker = " "
            lines.append(
                f" {marker} {row['vehicle_id']:<11} {format_money(row['cost']):>7} "
                f"-{row['event_reduction_percentage']}% events  {row['description']}"
            )
        return "\n".join(lines)

    def format_story(self, snapshot: dict[str, Any]) -> str:
        story = snapshot["story"]
        lines = [f"Story phase {story['current_phase']} performance={story['player_performance']}"]
        for milestone in story["milestones"]:
            check = "x" if milestone["triggered"] else " "
            lines.append(f"  [{check}] day {milestone['day']:>2} {milestone['title']}")
        return "\n".join(lines)

    def format_event(self, event: dict[str, Any]) -> str:
        lines = [f"EVENT: {event['title']}", event["description"]]
        if event["choices"]:
            lines.append("Choices: " + " | ".join(f"event {choice}" for choice in event["choices"]))
        else:
            lines.append("Type 'event' to continue.")
        return "\n".join(lines)

    def format_final_report(self, report: dict[str, Any]) -> str:
        conclusion = report["story_conclusion"]
        lines = [
            "GAME OVER",
            f"  final score: {report['final_score']:,}",
            f"  final cash:  {format_money(report['final_cash'])} (started with {format_money(report['starting_cash'])})",
            f"  profit:      {format_money(report['total_profit'])} ({report['profit_percentage']}%)",
            f"  days played: {report['days_played']} ({format_money(report['profit_per_day'])}/day)",
            "",
            conclusion["title"],
            conclusion["description"],
        ]
        lines.extend(f"  - {line}" for line in conclusion.get("analysis", []))
        lines.extend(f"  * {line}" for line in conclusion.get("recommendations", []))
        return "\n".join(lines)


class GameController:
    """Small command adapter; issues commands to the engine but does not own state."""

    def __init__(self, engine: GameEngine, viewer: AsciiViewer) -> None:
        self.engine = engine
        self.viewer = viewer

    def _snapshot(self) -> dict[str, Any]:
        return self.engine.display_snapshot()

    def handle(self, raw: str) -> str | None:
        """Run one command line and return the text to show, or ``None`` to quit."""
        parts = raw.strip().split()
        if not parts:
            return ""
        command, args = parts[0].lower(), parts[1:]
        if command in {"quit", "exit"}:
            return None
        if command == "help":
            return COMMAND_HELP
        if command == "status":
            return self.viewer.format_status_line(self._snapshot())
        if command == "market":
            return self.viewer.format_market(self._snapshot())
        if command == "inventory":
            return self.viewer.format_inventory(self._snapshot())
        if command == "vehicles":
            return self.viewer.format_vehicles(self._snapshot())
        if command == "story":
            return self.viewer.format_story(self._snapshot())
        if command == "hints":
            return "\n".join(self.engine.story_manager.generate_performance_hints(self.engine.state))
        if command in {"buy", "sell"} and len(args) == 2:
            return self._trade(command, args[0], args[1])
        if command == "travel" and args:
            return self._travel(" ".join(args))
        if command == "vehicle" and len(args) >= 2 and args[0] in {"buy", "use"}:
            return self._vehicle(args[0], " ".join(args[1:]))
        if command == "event":
            return self._resolve_event(args[0].lower() if args else None)
        if command == "new":
            result = self.engine.start_new_game(args[0] if args else self.engine.state.player.difficulty)
            return self._describe(result)
        if command == "restart":
            return self._describe(self.engine.restart_game())
        return "unknown command (type 'help')"

    def _trade(self, command: str, raw_item: str, raw_quantity: str) -> str:
        item_id = _match_name(raw_item, self.engine.items.item_ids())
        if item_id is None:
            return f"unknown item: {raw_item}"
        if command == "sell" and raw_quantity.lower() == "all":
            quantity = self.engine.state.player.inventory.get(item_id, 0)
        else:
            try:
                quantity = int(raw_quantity)
            except ValueError:
                return f"invalid quantity: {raw_quantity}"
        if command == "buy":
            return self._describe(self.engine.buy_item(item_id, quantity))
        return self._describe(self.engine.sell_item(item_id, quantity))

    def _travel(self, raw_location: str) -> str:
        location = _match_name(raw_location, self.engine.locations.location_ids())
        if location is None:
            return f"unknown location: {raw_location}"
        return self._describe(self.engine.travel_to_location(location))

    def _vehicle(self, action: str, raw_vehicle: str) -> str:
        vehicle_id = _match_name(raw_vehicle, self.engine.vehicles.vehicle_ids())
        if vehicle_id is None:
            return f"unknown vehicle: {raw_vehicle}"
        if action == "buy":
            return self._describe(self.engine.purchase_vehicle(vehicle_id))
        return self._describe(self.engine.select_vehicle(vehicle_id))

    def _resolve_event(self, choice: str | None) -> str:
        if self.engine.current_event is None:
            return "no event is waiting"
        return self._describe(self.engine.execute_current_event(choice))

    def _describe(self, result: ActionResult) -> str:
        lines = [result.message if result.success else f"failed: {result.message}"]
        story_note = result.details.get("story_note")
        if story_note:
            lines.append(story_note)
        story_event = result.details.get("story_event")
        if story_event and story_event["title"] not in result.message:
            lines.append(f"{story_event['title']}\n{story_event['description']}")
        lines.extend(f"! {notice}" for notice in self.engine.drain_notices())
        pending = self.engine.current_event
        if pending is not None:
            lines.append(self.viewer.format_event(pending.to_dict()))
        final_report = self.engine.state.final_report
        if self.engine.state.game_ended and final_report is not None:
            lines.append(self.viewer.format_final_report(final_report))
        return "\n".join(lines)


def run_session(
    engine: GameEngine,
    viewer: AsciiViewer,
    *,
    input_fn: Callable[[str], str] | None = None,
) -> int:
    read_line = input_fn or input
    controller = GameController(engine, viewer)
    print("StreetTrader. " + COMMAND_HELP)
    snapshot = engine.display_snapshot()
    print(viewer.format_status_line(snapshot))
    print(viewer.format_market(snapshot))

    while True:
        try:
            raw = read_line("> ")
        except EOFError:
            break
        output = controller.handle(raw)
        if output is None:
            break
        if output:
            print(output)
    print("[streettrader.play] session closed")
    return 0
