"""Screens, menu entries and the persisted UI state record."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Mapping


class Screen(str, Enum):
    """The screens the TUI can show."""

    MENU = "menu"
    STATUS = "status"
    INSTALL = "install"
    MODELS = "models"
    LOGS = "logs"
    DIAGNOSTICS = "diagnostics"
    SETTINGS = "settings"
    HELP = "help"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class MenuItem:
    """One entry of the main menu."""

    key: str
    label: str
    description: str
    screen: Screen


_ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)

_TIME_RE = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})[Tt](\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?([Zz]|[+-]\d{2}:\d{2})$"
)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _format_time(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    text = (
        f"{value.year:04d}-{value.month:02d}-{value.day:02d}"
        f"T{value.hour:02d}:{value.minute:02d}:{value.second:02d}"
    )
    if value.microsecond:
        text += "." + f"{value.microsecond:06d}".rstrip("0")
    offset = value.utcoffset()
    if not offset:
        return text + "Z"
    total = int(offset.total_seconds())
    sign = "+" if total >= 0 else "-"
    total = abs(total)
    return f"{text}{sign}{total // 3600:02d}:{total % 3600 // 60:02d}"


def _parse_time(text: str) -> datetime:
    match = _TIME_RE.match(text)
    if match is None:
        raise ValueError(f"invalid timestamp: {text!r}")
    year, month, day, hour, minute, second, fraction, zone = match.groups()
    micro = int((fraction or "0")[:6].ljust(6, "0"))
    if zone in ("Z", "z"):
        tz = timezone.utc
    else:
        sign = 1 if zone[0] == "+" else -1
        hours, minutes = int(zone[1:3]), int(zone[4:6])
        tz = timezone(sign * timedelta(hours=hours, minutes=minutes))
    return datetime(
        int(year), int(month), int(day), int(hour), int(minute), int(second), micro, tzinfo=tz
    )


@dataclass
class UIState:
    """UI state persisted between sessions."""

    current_screen: Screen = Screen.MENU
    selection: int = 0
    last_error: str = ""
    updated: datetime = field(default_factory=_utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "menu": self.current_screen.value,
            "selection": self.selection,
            "last_error": self.last_error,
            "updated": _format_time(self.updated),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "UIState":
        if not isinstance(data, Mapping):
            raise ValueError("UI state must be a JSON object")

        screen_value = data.get("menu") or ""
        if not isinstance(screen_value, str):
            raise ValueError("field 'menu' must be a string")
        screen = Screen(screen_value) if screen_value else Screen.MENU

        selection = data.get("selection", 0)
        if selection is None:
            selection = 0
        if isinstance(selection, bool) or not isinstance(selection, int):
            raise ValueError("field 'selection' must be an integer")

        last_error = data.get("last_error", "")
        if last_error is None:
            last_error = ""
        if not isinstance(last_error, str):
            raise ValueError("field 'last_error' must be a string")

        updated_value = data.get("updated")
        if updated_value is None:
            updated = _ZERO_TIME
        elif isinstance(updated_value, str):
            updated = _parse_time(updated_value)
        else:
            raise ValueError("field 'updated' must be a timestamp string")

        return cls(
            current_screen=screen,
            selection=selection,
            last_error=last_error,
            updated=updated,
        )


def default_menu_items() -> list[MenuItem]:
    """The entries of the main menu, in display order."""
    return [
        MenuItem("1", "Status", "View service status", Screen.STATUS),
        MenuItem("2", "Install/Uninstall", "Manage service installation", Screen.INSTALL),
        MenuItem("3", "Models", "Model management", Screen.MODELS),
        MenuItem("4", "Logs", "View service logs", Screen.LOGS),
        MenuItem("5", "Diagnostics", "Run diagnostics", Screen.DIAGNOSTICS),
        MenuItem("6", "Settings", "Configure aistack", Screen.SETTINGS),
        MenuItem("?", "Help", "Show help", Screen.HELP),
    ]