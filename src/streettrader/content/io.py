from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Any

from streettrader.content.schema import validate_save_payload
from streettrader.sim.hash import save_hash
from streettrader.sim.state import GameState

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
CANONICAL_JSON_INDENT = 2
CANONICAL_JSON_SEPARATORS = (",", ": ")
DEFAULT_SAVE_PATH = "saves/streettrader_save.json"


def _build_game_payload(state: GameState, metadata: dict[str, Any] | None = None) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "schema_version": SCHEMA_VERSION,
        "game_state": state.to_dict(),
        "metadata": dict(metadata or {}),
    }
    payload["save_hash"] = save_hash(payload)
    return payload


def _canonical_json(payload: dict[str, Any]) -> str:
    return json.dumps(
        payload,
        indent=CANONICAL_JSON_INDENT,
        separators=CANONICAL_JSON_SEPARATORS,
        sort_keys=True,
    )


def _write_atomic_json(path: str | Path, payload: dict[str, Any]) -> None:
    destination = Path(path)
    destination.parent.mkdir(parents=True, exist_ok=True)
    serialized = _canonical_json(payload)

    temp_path: Path | None = None
    try:
        with NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            dir=destination.parent,
            delete=False,
            suffix=".tmp",
        ) as temp_file:
            temp_file.write(serialized)
            temp_file.flush()
            os.fsync(temp_file.fileno())
            temp_path = Path(temp_file.name)
        os.replace(temp_path, destination)
    except Exception:
        if temp_path is not None:
            temp_path.unlink(missing_ok=True)
        raise


def _load_canonical_game_payload(payload: dict[str, Any]) -> GameState:
    validate_save_payload(payload)

    expected_hash = payload["save_hash"]
    actual_hash = save_hash(payload)
    if expected_hash != actual_hash:
        raise ValueError(
            f"save_hash mismatch while loading save (stored={expected_hash}, recomputed={actual_hash})"
        )
    return GameState.from_dict(payload["game_state"])


def save_game_json(path: str | Path, state: GameState, metadata: dict[str, Any] | None = None) -> None:
    payload = _build_game_payload(state, metadata)
    validate_save_payload(payload)
    _write_atomic_json(path, payload)


def load_game_json(path: str | Path) -> GameState:
    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    return _load_canonical_game_payload(payload)


class SaveStore:
    """File-backed persistence collaborator.

    Failures never propagate to the engine: a save that cannot be written
    reports ``False`` and an unreadable or tampered save reads as no save.
    """

    def __init__(self, path: str | Path = DEFAULT_SAVE_PATH) -> None:
        self.path = Path(path)

    def has_saved_game(self) -> bool:
        return self.path.is_file()

    def save(self, state: GameState) -> bool:
        try:
            save_game_json(self.path, state)
        except (OSError, ValueError, TypeError) as exc:
            logger.warning("failed to save game path=%s error=%s", self.path, exc)
            return False
        return True

    def load(self) -> GameState | None:
        if not self.has_saved_game():
            return None
        try:
            return load_game_json(self.path)
        except (OSError, ValueError, KeyError, TypeError) as exc:
            logger.warning("ignoring unreadable save path=%s error=%s", self.path, exc)
            return None

    def clear(self) -> bool:
        try:
            self.path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("failed to clear save path=%s error=%s", self.path, exc)
            return False
        return True
