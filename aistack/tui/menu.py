"""Rendering of the TUI screens as styled text."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from typing import Any, Optional

from aistack.tui.types import default_menu_items

SERVICE_NAMES = ("ollama", "openwebui", "localai")
PROVIDER_NAMES = ("ollama", "localai")
DEFAULT_BACKEND = "ollama"


def _color_enabled() -> bool:
    if os.environ.get("NO_COLOR"):
        return False
    if os.environ.get("FORCE_COLOR"):
        return True
    stream = sys.stdout
    isatty = getattr(stream, "isatty", None)
    try:
        return bool(isatty and isatty())
    except ValueError:
        return False


def _rgb(hex_color: str) -> str:
    value = hex_color.lstrip("#")
    return ";".join(str(int(value[pos:pos + 2], 16)) for pos in (0, 2, 4))


@dataclass(frozen=True)
class _Style:
    fg: Optional[str] = None
    bg: Optional[str] = None
    bold: bool = False
    margin_top: int = 0
    margin_bottom: int = 0
    padding_left: int = 0

    def _sgr(self) -> str:
        codes = []
        if self.bold:
            codes.append("1")
        if self.fg:
            codes.append("38;2;" + _rgb(self.fg))
        if self.bg:
            codes.append("48;2;" + _rgb(self.bg))
        return ";".join(codes)

    def render(self, text: str) -> str:
        color = _color_enabled()
        sgr = self._sgr() if color else ""
        lines = []
        for line in text.split("\n"):
            line = " " * self.padding_left + line
            if sgr:
                line = f"\x1b[{sgr}m{line}\x1b[0m"
            lines.append(line)
        body = "\n".join(lines)
        return "\n" * self.margin_top + body + "\n" * self.margin_bottom


_CYAN = "#00d7ff"
_WHITE = "#ffffff"
_BLACK = "#000000"
_GREY = "#808080"
_BLUE = "#5fafff"
_RED = "#ff5f5f"
_GOLD = "#ffd700"
_GREEN = "#87d7af"

_TITLE = _Style(fg=_CYAN, bold=True, margin_bottom=1)
_ITEM = _Style(fg=_WHITE)
_SELECTED = _Style(fg=_BLACK, bg=_CYAN, bold=True)
_HINT = _Style(fg=_BLUE, margin_top=1)
_HINT_WIDE = _Style(fg=_BLUE, margin_top=2)
_SECTION = _Style(fg=_GOLD, bold=True, margin_top=1)
_LABEL = _Style(fg=_GREEN)
_VALUE = _Style(fg=_WHITE)
_ERROR = _Style(fg=_RED)


def _selectable(names: tuple[str, ...], selected: int) -> str:
    parts = []
    for index, name in enumerate(names):
        if index == selected:
            parts.append(_SELECTED.render(f"> {name}"))
        else:
            parts.append(_ITEM.render(f"  {name}"))
        parts.append("\n")
    return "".join(parts)


def render_menu(model: Any) -> str:
    """The main menu with the current selection highlighted."""
    desc_style = _Style(fg=_GREY, padding_left=2)
    error_style = _Style(fg=_RED, bold=True, margin_top=1)

    parts = [_TITLE.render("aistack — Main Menu"), "\n\n"]
    for index, item in enumerate(default_menu_items()):
        text = f"[{item.key}] {item.label}"
        style = _SELECTED if index == model.selection else _ITEM
        parts += [style.render(text), "\n", desc_style.render(item.description), "\n"]

    parts += [
        "\n",
        _HINT.render("Navigate: ↑/↓ or numbers | Select: Enter/Space | Back: Esc | Quit: q"),
        "\n",
    ]
    if model.last_error:
        parts += ["\n", error_style.render("⚠ " + model.last_error), "\n"]
    return "".join(parts)


def render_gpu_section(model: Any) -> str:
    """GPU readiness: driver, CUDA version and the detected devices."""
    if model.gpu_error:
        return _ERROR.render(model.gpu_error) + "\n"

    report = model.gpu_report
    gpus = list(getattr(report, "gpus", None) or []) if model.has_gpu_report else []
    if not gpus:
        return _VALUE.render("No GPUs detected") + "\n"

    parts = [
        _LABEL.render("Driver: "),
        _VALUE.render(str(report.driver_version)),
        "  ",
        _LABEL.render("CUDA: "),
        _VALUE.render(str(report.cuda_version)),
        "\n",
    ]
    for info in gpus:
        parts.append(f"  • {_VALUE.render(info.name)} ({info.memory_mb} MB)\n")
    return "".join(parts)


def render_backend_section(model: Any) -> str:
    """The active backend and its URL."""
    if model.backend_error:
        return _ERROR.render(model.backend_error) + "\n"

    backend = str(model.backend or DEFAULT_BACKEND)
    return "".join(
        [
            _LABEL.render("Active backend: "),
            _VALUE.render(backend),
            "  ",
            _LABEL.render("URL: "),
            _VALUE.render(model.backend_url or ""),
            "\n",
        ]
    )


def render_status_screen(model: Any) -> str:
    """The service status screen."""
    return "".join(
        [
            _TITLE.render("Service Status"),
            "\n\n",
            _SECTION.render("GPU Readiness"),
            "\n",
            render_gpu_section(model),
            _SECTION.render("Backend Binding"),
            "\n",
            render_backend_section(model),
            "\n",
            _HINT.render(
                "Press 'b' to toggle backend, 'r' to refresh, Esc to return to menu, 'q' to quit"
            ),
            "\n",
        ]
    )


def render_placeholder_screen(title: str, description: str) -> str:
    """A screen for a feature that is not available yet."""
    text_style = _Style(fg=_WHITE, margin_top=1)
    return "".join(
        [
            _TITLE.render(title),
            "\n\n",
            text_style.render(description),
            "\n",
            text_style.render("This feature will be implemented in a future update."),
            "\n",
            _HINT_WIDE.render("Press Esc to return to menu, 'q' to quit"),
            "\n",
        ]
    )


_HELP_SECTIONS = (
    (
        "Navigation",
        (
            ("1-8, ?      ", "Quick menu selection by number/key"),
            ("↑ / ↓       ", "Navigate menu items"),
            ("Enter/Space ", "Select highlighted item"),
            ("Esc         ", "Return to main menu"),
            ("q / Ctrl+C  ", "Quit aistack"),
        ),
    ),
    (
        "Status Screen",
        (
            ("b           ", "Toggle backend (Ollama ↔ LocalAI)"),
            ("r           ", "Refresh system state"),
        ),
    ),
    (
        "Power Management",
        (
            ("t           ", "Toggle auto-suspend"),
            ("r           ", "Refresh configuration"),
        ),
    ),
)


def render_help_screen() -> str:
    """The keyboard shortcut reference."""
    key_style = _Style(fg=_GREEN, bold=True)
    desc_style = _Style(fg=_WHITE)

    parts = [_TITLE.render("Help — Keyboard Shortcuts"), "\n\n"]
    for section, entries in _HELP_SECTIONS:
        parts += [_SECTION.render(section), "\n"]
        for key, description in entries:
            parts += [key_style.render(key), desc_style.render(description), "\n"]
    parts += ["\n", _HINT_WIDE.render("Press Esc to return to menu"), "\n"]
    return "".join(parts)


def render_install_screen(model: Any) -> str:
    """The install/uninstall screen."""
    result_style = _Style(fg=_GREEN, margin_top=1)
    progress_style = _Style(fg=_GOLD, margin_top=1)

    parts = [
        _TITLE.render("Install/Uninstall Services"),
        "\n\n",
        _selectable(SERVICE_NAMES, model.install_selection),
        "\n",
        _HINT.render(
            "Navigate: ↑/↓ | Install: i | Uninstall: u | Refresh: r | Back: Esc | Quit: q"
        ),
        "\n",
    ]
    if model.install_in_progress:
        parts += ["\n", progress_style.render("Operation in progress..."), "\n"]
    if model.install_result:
        parts += ["\n", result_style.render(model.install_result), "\n"]
    return "".join(parts)


def render_logs_screen(model: Any) -> str:
    """The log viewer screen."""
    log_style = _Style(fg=_WHITE, margin_top=1)

    parts = [
        _TITLE.render("Service Logs"),
        "\n\n",
        _SECTION.render("Select Service:"),
        "\n",
        _selectable(SERVICE_NAMES, model.logs_selection),
    ]
    if model.logs_content:
        parts += [
            "\n",
            _SECTION.render(f"Logs for {model.logs_service} (last 50 lines):"),
            "\n",
            log_style.render(model.logs_content),
            "\n",
        ]
    parts += [
        "\n",
        _HINT.render("Navigate: ↑/↓ | View Logs: Enter/Space | Refresh: r | Back: Esc | Quit: q"),
        "\n",
    ]
    return "".join(parts)


def render_models_screen(model: Any) -> str:
    """The model management screen."""
    content_style = _Style(fg=_WHITE, margin_top=1)
    message_style = _Style(fg=_GREEN, margin_top=1)

    parts = [
        _TITLE.render("Model Management"),
        "\n\n",
        _SECTION.render("Select Provider:"),
        "\n",
        _selectable(PROVIDER_NAMES, model.models_selection),
    ]
    if model.models_list:
        parts += [
            "\n",
            _SECTION.render("Cached Models:"),
            "\n",
            content_style.render(model.models_list),
        ]
    if model.models_stats:
        parts += [
            "\n",
            _SECTION.render("Cache Statistics:"),
            "\n",
            content_style.render(model.models_stats),
        ]
    if model.models_message:
        parts += ["\n", message_style.render(model.models_message)]
    parts += [
        "\n",
        _HINT.render("Navigate: ↑/↓ | List: l | Stats: s | Refresh: r | Back: Esc | Quit: q"),
        "\n",
    ]
    return "".join(parts)