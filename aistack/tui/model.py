"""State and key handling of the interactive TUI."""

from __future__ import annotations

import logging
import os
import time
from datetime import timedelta
from pathlib import Path
from typing import Any, Callable, Optional, Protocol

from aistack.tui import menu
from aistack.tui.cache import ModelsStateManager
from aistack.tui.state import UIStateError, UIStateManager
from aistack.tui.types import Screen, UIState, default_menu_items

logger = logging.getLogger(__name__)

DEFAULT_STATE_DIR = "/var/lib/aistack"
STATE_DIR_ENV = "AISTACK_STATE_DIR"
DISABLE_GPU_SCAN_ENV = "AISTACK_DISABLE_GPU_SCAN"

BACKEND_OLLAMA = "ollama"
BACKEND_LOCALAI = "localai"

DIR_NOT_RESOLVED = "Error: Compose directory not resolved"
LOG_LINES = 50

_UP_KEYS = ("up", "k")
_DOWN_KEYS = ("down", "j")
_SELECT_KEYS = ("enter", " ")
_QUIT_KEYS = ("ctrl+c", "q")
_SHORTCUT_KEYS = ("1", "2", "3", "4", "5", "6", "7", "?")


class Service(Protocol):
    """A managed service as used by the TUI."""

    def install(self) -> Any: ...

    def remove(self, keep_data: bool) -> Any: ...

    def logs(self, lines: int) -> str: ...


class ServiceManager(Protocol):
    """Looks up managed services by name."""

    def get_service(self, name: str) -> Service: ...


GpuProbe = Callable[[], Any]
BackendProbe = Callable[[], "tuple[str, str]"]


def capitalize(text: str) -> str:
    """Upper-case the first character of a string."""
    if not text:
        return ""
    return text[0].upper() + text[1:]


def pretty_duration(seconds: float | timedelta) -> str:
    """Format a duration truncated to whole seconds, e.g. "2m30s"."""
    if isinstance(seconds, timedelta):
        seconds = seconds.total_seconds()
    if seconds < 1:
        return "<1s"
    whole = int(seconds)
    hours, rest = divmod(whole, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}h{minutes}m{secs}s"
    if minutes:
        return f"{minutes}m{secs}s"
    return f"{secs}s"


def service_names() -> list[str]:
    """Names of the services the TUI manages."""
    return list(menu.SERVICE_NAMES)


def provider_names() -> list[str]:
    """Names of the model providers."""
    return list(menu.PROVIDER_NAMES)


def _default_state_dir() -> str:
    return os.environ.get(STATE_DIR_ENV, "") or DEFAULT_STATE_DIR


class Model:
    """The TUI application state; keys go in through update(), text comes out of view()."""

    def __init__(
        self,
        compose_dir: str = "",
        state_dir: str | os.PathLike[str] | None = None,
        service_manager: Optional[ServiceManager] = None,
        gpu_probe: Optional[GpuProbe] = None,
        backend_probe: Optional[BackendProbe] = None,
    ) -> None:
        self.start_time = time.time()
        self.quitting = False
        self.compose_dir = compose_dir
        self.state_dir = Path(_default_state_dir() if state_dir is None else state_dir)
        self.service_manager = service_manager
        self.gpu_probe = gpu_probe
        self.backend_probe = backend_probe

        self.current_screen = Screen.MENU
        self.selection = 0
        self.last_error = ""
        self.state_manager = UIStateManager(self.state_dir)

        self.gpu_report: Any = None
        self.has_gpu_report = False
        self.gpu_error = ""

        self.backend = ""
        self.backend_url = ""
        self.backend_error = ""

        self.status_message = ""

        self.install_selection = 0
        self.install_in_progress = False
        self.install_result = ""

        self.logs_service = ""
        self.logs_selection = 0
        self.logs_content = ""

        self.models_provider = ""
        self.models_selection = 0
        self.models_list = ""
        self.models_stats = ""
        self.models_message = ""

        try:
            persisted = self.state_manager.load()
        except UIStateError:
            pass
        else:
            self.current_screen = persisted.current_screen
            self.selection = persisted.selection
            self.last_error = persisted.last_error

        self.load_backend()
        self.load_gpu()

    # Key handling

    def update(self, key: str) -> bool:
        """Handle one key press; returns True when the application should quit."""
        if key in _QUIT_KEYS:
            self.quitting = True
            self.save_state()
            return True

        if key == "esc" and self.current_screen != Screen.MENU:
            self.return_to_menu()
            self.save_state()
            return False

        if self.current_screen == Screen.MENU:
            if key in _UP_KEYS:
                self.navigate_up()
                return False
            if key in _DOWN_KEYS:
                self.navigate_down()
                return False
            if key in _SELECT_KEYS:
                self.select_menu_item()
                self.save_state()
                return False

        if key in _SHORTCUT_KEYS:
            self.select_menu_by_key(key)
            self.save_state()
            return False

        handler = {
            Screen.STATUS: self._handle_status_key,
            Screen.INSTALL: self._handle_install_key,
            Screen.LOGS: self._handle_logs_key,
            Screen.MODELS: self._handle_models_key,
        }.get(self.current_screen)
        if handler is not None:
            handler(key)
        return False

    def _handle_status_key(self, key: str) -> None:
        if key == "b":
            self.toggle_backend()
        elif key == "r":
            self.refresh()

    def _handle_install_key(self, key: str) -> None:
        if self.install_in_progress:
            return
        last = len(menu.SERVICE_NAMES) - 1
        if key in _UP_KEYS:
            self.install_selection = self.install_selection - 1 if self.install_selection > 0 else last
        elif key in _DOWN_KEYS:
            self.install_selection = self.install_selection + 1 if self.install_selection < last else 0
        elif key == "i":
            self.install_service()
        elif key == "u":
            self.uninstall_service()
        elif key == "r":
            self.refresh_install_screen()

    def _handle_logs_key(self, key: str) -> None:
        last = len(menu.SERVICE_NAMES) - 1
        if key in _UP_KEYS:
            self.logs_selection = self.logs_selection - 1 if self.logs_selection > 0 else last
        elif key in _DOWN_KEYS:
            self.logs_selection = self.logs_selection + 1 if self.logs_selection < last else 0
        elif key in _SELECT_KEYS or key == "r":
            self.load_logs()

    def _handle_models_key(self, key: str) -> None:
        last = len(menu.PROVIDER_NAMES) - 1
        if key in _UP_KEYS:
            self.models_selection = self.models_selection - 1 if self.models_selection > 0 else last
        elif key in _DOWN_KEYS:
            self.models_selection = self.models_selection + 1 if self.models_selection < last else 0
        elif key == "l":
            self.list_models()
        elif key == "s":
            self.show_model_stats()
        elif key == "r":
            self.refresh_models_screen()

    # Rendering

    def view(self) -> str:
        """Render the current screen."""
        if self.quitting:
            return ""
        screen = self.current_screen
        if screen == Screen.STATUS:
            return menu.render_status_screen(self)
        if screen == Screen.INSTALL:
            return menu.render_install_screen(self)
        if screen == Screen.MODELS:
            return menu.render_models_screen(self)
        if screen == Screen.LOGS:
            return menu.render_logs_screen(self)
        if screen == Screen.DIAGNOSTICS:
            return menu.render_placeholder_screen(
                "Diagnostics", "Run system health checks and diagnostics."
            )
        if screen == Screen.SETTINGS:
            return menu.render_placeholder_screen("Settings", "Configure aistack settings.")
        if screen == Screen.HELP:
            return menu.render_help_screen()
        return menu.render_menu(self)

    # Menu navigation

    def navigate_up(self) -> None:
        """Move the menu selection up, wrapping to the bottom."""
        if self.selection > 0:
            self.selection -= 1
        else:
            self.selection = len(default_menu_items()) - 1

    def navigate_down(self) -> None:
        """Move the menu selection down, wrapping to the top."""
        if self.selection < len(default_menu_items()) - 1:
            self.selection += 1
        else:
            self.selection = 0

    def select_menu_item(self) -> None:
        """Open the screen of the highlighted menu item."""
        items = default_menu_items()
        if 0 <= self.selection < len(items):
            self.current_screen = items[self.selection].screen
            self.last_error = ""

    def select_menu_by_key(self, key: str) -> None:
        """Open the screen whose menu key matches; unknown keys change nothing."""
        for index, item in enumerate(default_menu_items()):
            if item.key == key:
                self.selection = index
                self.current_screen = item.screen
                self.last_error = ""
                break

    def return_to_menu(self) -> None:
        """Go back to the main menu and clear the error."""
        self.current_screen = Screen.MENU
        self.last_error = ""

    def save_state(self) -> None:
        """Persist the screen, selection and error; failures are only logged."""
        state = UIState(
            current_screen=self.current_screen,
            selection=self.selection,
            last_error=self.last_error,
        )
        try:
            self.state_manager.save(state)
        except UIStateError as exc:
            logger.warning("tui.state.save_failed: %s", exc)

    # System state

    def load_gpu(self) -> None:
        """Query the GPU probe and record the report or the reason it is missing."""
        if os.environ.get(DISABLE_GPU_SCAN_ENV) == "1":
            self.has_gpu_report = False
            self.gpu_error = "GPU scan disabled"
            return
        if self.gpu_probe is None:
            self.has_gpu_report = False
            self.gpu_error = ""
            return
        try:
            report = self.gpu_probe()
        except Exception as exc:  # a failing probe is shown as the GPU error
            self.has_gpu_report = False
            self.gpu_error = str(exc)
            return

        self.gpu_report = report
        self.has_gpu_report = True
        error_message = getattr(report, "error_message", "") or ""
        if error_message:
            self.gpu_error = error_message
            return
        if not getattr(report, "nvml_ok", True):
            self.gpu_error = "NVML unavailable or failed to initialize"
            return
        self.gpu_error = ""

    def load_backend(self) -> None:
        """Read the active backend binding."""
        if self.backend_probe is None:
            self.backend = ""
            self.backend_url = ""
            self.backend_error = ""
            return
        try:
            backend, url = self.backend_probe()
        except Exception as exc:  # shown on the status screen
            self.backend_error = str(exc)
            self.backend = ""
            self.backend_url = ""
            return
        self.backend = str(backend)
        self.backend_url = url
        self.backend_error = ""

    def _get_service(self, name: str) -> Any:
        if self.service_manager is None:
            raise RuntimeError("no service manager configured")
        return self.service_manager.get_service(name)

    def _toggle_failed(self, message: str) -> None:
        self.status_message = message
        self.last_error = message

    def toggle_backend(self) -> None:
        """Switch Open WebUI between the Ollama and LocalAI backends."""
        if not self.compose_dir:
            self._toggle_failed("Compose directory not resolved")
            return

        try:
            openwebui = self._get_service("openwebui")
        except Exception as exc:
            self._toggle_failed(f"Backend toggle failed: {exc}")
            return

        if not (hasattr(openwebui, "current_backend") and hasattr(openwebui, "switch_backend")):
            self._toggle_failed("Backend toggle failed: unexpected service type")
            return

        try:
            current = str(openwebui.current_backend())
            target = BACKEND_OLLAMA if current == BACKEND_LOCALAI else BACKEND_LOCALAI
            openwebui.switch_backend(target)
        except Exception as exc:
            self._toggle_failed(f"Backend toggle failed: {exc}")
            return

        self.backend = target
        if self.backend_probe is not None:
            try:
                _, url = self.backend_probe()
            except Exception:  # the URL is informational only
                pass
            else:
                self.backend_url = url
        self.backend_error = ""
        self.status_message = f"Switched backend to {target}"
        self.last_error = ""

    def refresh(self) -> None:
        """Reload backend and GPU information."""
        self.load_backend()
        self.load_gpu()
        self.status_message = "Refreshed system state"
        self.last_error = ""

    # Install screen

    def _run_install_action(self, uninstall: bool) -> None:
        if not self.compose_dir:
            self.install_result = DIR_NOT_RESOLVED
            return

        self.install_in_progress = True
        name = menu.SERVICE_NAMES[self.install_selection]
        try:
            try:
                service = self._get_service(name)
            except Exception as exc:
                self.install_result = f"Error: {exc}"
                return
            try:
                if uninstall:
                    service.remove(True)
                else:
                    service.install()
            except Exception as exc:
                verb = "uninstall" if uninstall else "install"
                self.install_result = f"Failed to {verb} {name}: {exc}"
            else:
                if uninstall:
                    self.install_result = f"Successfully uninstalled {name} (data preserved)"
                else:
                    self.install_result = f"Successfully installed {name}"
        finally:
            self.install_in_progress = False

    def install_service(self) -> None:
        """Install the selected service."""
        self._run_install_action(uninstall=False)

    def uninstall_service(self) -> None:
        """Uninstall the selected service, keeping its data."""
        self._run_install_action(uninstall=True)

    def refresh_install_screen(self) -> None:
        self.install_result = "Screen refreshed"

    # Logs screen

    def load_logs(self) -> None:
        """Fetch the last lines of the selected service's log."""
        if not self.compose_dir:
            self.logs_content = DIR_NOT_RESOLVED
            return

        name = menu.SERVICE_NAMES[self.logs_selection]
        self.logs_service = name
        try:
            service = self._get_service(name)
        except Exception as exc:
            self.logs_content = f"Error: {exc}"
            return
        try:
            self.logs_content = service.logs(LOG_LINES)
        except Exception as exc:
            self.logs_content = f"Error loading logs: {exc}"

    # Models screen

    def _selected_provider(self) -> str:
        provider = menu.PROVIDER_NAMES[self.models_selection]
        self.models_provider = provider
        return provider

    def list_models(self) -> None:
        """List the cached models of the selected provider."""
        provider = self._selected_provider()
        try:
            state = ModelsStateManager(provider, self.state_dir).load()
        except (OSError, ValueError) as exc:
            self.models_list = f"Error loading models: {exc}"
            self.models_message = f"Failed to load models for {provider}"
            return

        if not state.items:
            text = f"No models cached for {provider}\n"
        else:
            text = "".join(
                f"  • {item.name} ({item.size // (1024 * 1024)} MB) - Last used: "
                f"{item.last_used.strftime('%Y-%m-%d %H:%M')}\n"
                for item in state.items
            )
        self.models_list = text
        self.models_message = f"Listed {len(state.items)} models for {provider}"

    def show_model_stats(self) -> None:
        """Show cache statistics for the selected provider."""
        provider = self._selected_provider()
        try:
            stats = ModelsStateManager(provider, self.state_dir).stats()
        except (OSError, ValueError) as exc:
            self.models_stats = f"Error loading stats: {exc}"
            self.models_message = f"Failed to load stats for {provider}"
            return

        total_gb = stats.total_size / (1024 * 1024 * 1024)
        lines = [
            f"Provider: {stats.provider}\n",
            f"Total Size: {total_gb:.2f} GB\n",
            f"Model Count: {stats.model_count}\n",
        ]
        if stats.oldest_model is not None:
            lines.append(
                f"Oldest Model: {stats.oldest_model.name} (last used: "
                f"{stats.oldest_model.last_used.strftime('%Y-%m-%d %H:%M')})\n"
            )
        self.models_stats = "".join(lines)
        self.models_message = f"Stats loaded for {provider}"

    def refresh_models_screen(self) -> None:
        self.models_list = ""
        self.models_stats = ""
        self.models_message = "Screen refreshed"