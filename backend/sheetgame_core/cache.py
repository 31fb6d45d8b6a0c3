from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict

from .errors import MalformedRecordError
from .records import StudentRecord
from .session import SessionState


logger = logging.getLogger(__name__)


class LocalCache:
    """Single-player cache persisted as one JSON document.

    Holds the active player's record under ``currentPlayer`` next to the
    session flags, so both survive a restart.
    """

    def __init__(self, data_dir: Path | None = None) -> None:
        env_dir = os.getenv("SHEETGAME_DATA_DIR", "")
        self.data_dir = data_dir or (Path(env_dir) if env_dir else Path(__file__).parent.parent / "data")
        self.path = self.data_dir / "player_local.json"

    def load_player(self) -> StudentRecord | None:
        row = self._read().get("currentPlayer")
        if not row:
            return None
        try:
            return StudentRecord.from_row(row)
        except MalformedRecordError as exc:
            logger.warning("Ignoring unreadable cached player in %s: %s", self.path, exc)
            return None

    def save_player(self, record: StudentRecord) -> None:
        data = self._read()
        data["currentPlayer"] = record.to_row()
        self._write(data)

    def load_state(self) -> SessionState:
        return SessionState.from_flags(self._read())

    def save_state(self, state: SessionState) -> None:
        data = self._read()
        data.update(state.to_flags())
        self._write(data)

    def clear(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            return
        except OSError as exc:  # pragma: no cover - logged for diagnosis
            logger.warning("Failed to remove local data store %s: %s", self.path, exc)

    def _read(self) -> Dict[str, Any]:
        try:
            if not self.path.exists():
                return {}
            with self.path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Falling back to empty cache for %s due to read error: %s", self.path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, Any]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("w", encoding="utf-8") as handle:
                json.dump(data, handle, indent=2, sort_keys=True)
        except OSError as exc:
            raise RuntimeError(f"Failed to write local data store {self.path}") from exc
