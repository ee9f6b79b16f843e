"""Persistent auto-suspend state: whether it is enabled and when activity was last seen."""

from __future__ import annotations

import json
import logging
import os
import time
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Any, Mapping

logger = logging.getLogger(__name__)

IDLE_TIMEOUT_SECONDS = 300
DEFAULT_STATE_DIR = "/var/lib/aistack"
STATE_FILE_NAME = "suspend_state.json"
STATE_DIR_ENV = "AISTACK_STATE_DIR"


class SuspendError(Exception):
    """Raised when suspend state cannot be read, parsed or written."""


@dataclass
class State:
    """Suspend configuration and the time of the last observed activity."""

    enabled: bool = False
    last_active_timestamp: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "last_active_timestamp": self.last_active_timestamp,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "State":
        if not isinstance(data, Mapping):
            raise ValueError("state must be a JSON object")
        enabled = data.get("enabled", False)
        if enabled is None:
            enabled = False
        if not isinstance(enabled, bool):
            raise ValueError("field 'enabled' must be a boolean")
        timestamp = data.get("last_active_timestamp", 0)
        if timestamp is None:
            timestamp = 0
        if isinstance(timestamp, bool) or not isinstance(timestamp, int):
            raise ValueError("field 'last_active_timestamp' must be an integer")
        return cls(enabled=enabled, last_active_timestamp=timestamp)


def state_dir() -> str:
    """Return the state directory, honouring the AISTACK_STATE_DIR variable."""
    env = os.environ.get(STATE_DIR_ENV, "")
    if env:
        return os.path.abspath(env)
    return DEFAULT_STATE_DIR


class SuspendStateManager:
    """Loads and stores suspend state as JSON on disk."""

    def __init__(self, state_file: str | os.PathLike[str] | None = None) -> None:
        if state_file is None:
            state_file = Path(state_dir()) / STATE_FILE_NAME
        self.state_file = Path(state_file)

    def load_state(self) -> State:
        """Read the state, creating and saving an enabled default if none exists."""
        try:
            raw = self.state_file.read_bytes()
        except FileNotFoundError:
            logger.info("suspend.state.init: creating default suspend state (enabled=True)")
            state = State(enabled=True, last_active_timestamp=int(time.time()))
            try:
                self.save_state(state)
            except SuspendError as exc:
                raise SuspendError(f"save default state: {exc}") from exc
            return state
        except OSError as exc:
            raise SuspendError(f"read state file: {exc}") from exc

        try:
            data = json.loads(raw)
            state = State.from_dict({} if data is None else data)
        except ValueError as exc:
            raise SuspendError(f"parse state JSON: {exc}") from exc

        logger.debug(
            "suspend.state.loaded: enabled=%s last_active_age=%.0fs",
            state.enabled,
            time.time() - state.last_active_timestamp,
        )
        return state

    def save_state(self, state: State) -> None:
        """Write the state atomically through a temporary file."""
        directory = self.state_file.parent
        try:
            directory.mkdir(mode=0o750, parents=True, exist_ok=True)
        except OSError as exc:
            raise SuspendError(f"create state directory: {exc}") from exc

        payload = json.dumps(state.to_dict(), indent=2)
        temp_file = self.state_file.with_name(self.state_file.name + ".tmp")
        try:
            fd = os.open(temp_file, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o640)
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
        except OSError as exc:
            raise SuspendError(f"write temp state file: {exc}") from exc

        try:
            os.replace(temp_file, self.state_file)
        except OSError as exc:
            raise SuspendError(f"rename state file: {exc}") from exc

        logger.debug("suspend.state.saved: enabled=%s", state.enabled)

    def enable(self) -> None:
        """Turn auto-suspend on and reset the activity timestamp."""
        state = self._load_for_update()
        if state.enabled:
            logger.info("suspend.already_enabled: auto-suspend already enabled")
            return
        state.enabled = True
        state.last_active_timestamp = int(time.time())
        self._save_after_update(state)
        logger.info("suspend.enabled: auto-suspend enabled")

    def disable(self) -> None:
        """Turn auto-suspend off."""
        state = self._load_for_update()
        if not state.enabled:
            logger.info("suspend.already_disabled: auto-suspend already disabled")
            return
        state.enabled = False
        self._save_after_update(state)
        logger.info("suspend.disabled: auto-suspend disabled")

    def idle_duration(self, state: State) -> timedelta:
        """Time elapsed since the last recorded activity."""
        return timedelta(seconds=time.time() - state.last_active_timestamp)

    def should_suspend(self, state: State) -> bool:
        """True when suspend is enabled and the idle timeout has been reached."""
        if not state.enabled:
            return False
        return self.idle_duration(state) >= timedelta(seconds=IDLE_TIMEOUT_SECONDS)

    def reset_activity_timestamp(self) -> None:
        """Record the current time as the last activity, e.g. after resume."""
        state = self._load_for_update()
        state.last_active_timestamp = int(time.time())
        self._save_after_update(state)
        logger.info(
            "suspend.timestamp.reset: activity timestamp reset to %d",
            state.last_active_timestamp,
        )

    def _load_for_update(self) -> State:
        try:
            return self.load_state()
        except SuspendError as exc:
            raise SuspendError(f"load state: {exc}") from exc

    def _save_after_update(self, state: State) -> None:
        try:
            self.save_state(state)
        except SuspendError as exc:
            raise SuspendError(f"save state: {exc}") from exc