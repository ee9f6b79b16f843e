"""Persistence of the TUI's screen, selection and last error."""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path

from aistack.tui.types import Screen, UIState

logger = logging.getLogger(__name__)

UI_STATE_FILE_NAME = "ui_state.json"


class UIStateError(Exception):
    """Raised when the UI state cannot be read, parsed or written."""


class UIStateManager:
    """Reads and writes ui_state.json inside a state directory."""

    def __init__(self, state_dir: str | os.PathLike[str]) -> None:
        self.state_dir = Path(state_dir)

    @property
    def path(self) -> Path:
        return self.state_dir / UI_STATE_FILE_NAME

    def load(self) -> UIState:
        """Load the state, or a default menu state when no file exists."""
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            return UIState(current_screen=Screen.MENU, selection=0, last_error="")
        except OSError as exc:
            raise UIStateError(f"failed to read state file: {exc}") from exc

        try:
            data = json.loads(raw)
            return UIState.from_dict({} if data is None else data)
        except ValueError as exc:
            raise UIStateError(f"failed to unmarshal state: {exc}") from exc

    def save(self, state: UIState) -> None:
        """Stamp the state with the current time and write it atomically."""
        try:
            self.state_dir.mkdir(mode=0o750, parents=True, exist_ok=True)
        except OSError as exc:
            raise UIStateError(f"failed to create state directory: {exc}") from exc

        state.updated = datetime.now(timezone.utc)
        payload = json.dumps(state.to_dict(), indent=2)

        state_path = self.path
        tmp_path = state_path.with_name(state_path.name + ".tmp")
        try:
            fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o644)
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
        except OSError as exc:
            raise UIStateError(f"failed to write temp state file: {exc}") from exc

        try:
            os.replace(tmp_path, state_path)
        except OSError as exc:
            try:
                tmp_path.unlink()
            except FileNotFoundError:
                pass
            except OSError as remove_exc:
                logger.warning(
                    "tui.state.tmp_cleanup_failed: failed to remove %s: %s", tmp_path, remove_exc
                )
            raise UIStateError(f"failed to rename state file: {exc}") from exc

        logger.debug(
            "tui.state.saved: screen=%s selection=%d", state.current_screen, state.selection
        )

    def save_error(self, message: str) -> None:
        """Record an error message, starting from a fresh state if loading fails."""
        try:
            state = self.load()
        except UIStateError:
            state = UIState(current_screen=Screen.MENU, selection=0, last_error=message)
        else:
            state.last_error = message
        self.save(state)

    def clear_error(self) -> None:
        """Remove the recorded error message."""
        state = self.load()
        state.last_error = ""
        self.save(state)