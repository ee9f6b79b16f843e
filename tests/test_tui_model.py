from dataclasses import dataclass, field
from datetime import timedelta

import pytest

from aistack.tui.model import (
    DIR_NOT_RESOLVED,
    Model,
    capitalize,
    pretty_duration,
    provider_names,
    service_names,
)
from aistack.tui.state import UIStateManager
from aistack.tui.types import Screen, UIState, default_menu_items


@dataclass
class FakeGpu:
    name: str
    memory_mb: int


@dataclass
class FakeReport:
    gpus: list = field(default_factory=list)
    driver_version: str = "550.1"
    cuda_version: int = 12040
    nvml_ok: bool = True
    error_message: str = ""


class FakeService:
    def __init__(self, name, fail=False):
        self.name = name
        self.fail = fail
        self.calls = []

    def install(self):
        self.calls.append("install")
        if self.fail:
            raise RuntimeError("boom")

    def remove(self, keep_data):
        self.calls.append(("remove", keep_data))
        if self.fail:
            raise RuntimeError("boom")

    def logs(self, lines):
        self.calls.append(("logs", lines))
        if self.fail:
            raise RuntimeError("boom")
        return f"log lines of {self.name}"


class FakeOpenWebUI(FakeService):
    def __init__(self, backend="ollama"):
        super().__init__("openwebui")
        self.backend = backend

    def current_backend(self):
        return self.backend

    def switch_backend(self, target):
        self.backend = target


class FakeManager:
    def __init__(self, services):
        self.services = services

    def get_service(self, name):
        if name not in self.services:
            raise LookupError(f"unknown service {name}")
        return self.services[name]


@pytest.fixture(autouse=True)
def _plain_env(monkeypatch):
    monkeypatch.setenv("NO_COLOR", "1")
    monkeypatch.delenv("FORCE_COLOR", raising=False)
    monkeypatch.delenv("AISTACK_DISABLE_GPU_SCAN", raising=False)


@pytest.fixture
def model(tmp_path):
    return Model("/tmp/compose", tmp_path)


def test_navigate_up(model):
    model.selection = 3
    model.navigate_up()
    assert model.selection == 2


def test_navigate_up_wraps(model):
    model.selection = 0
    model.navigate_up()
    assert model.selection == len(default_menu_items()) - 1


def test_navigate_down(model):
    model.selection = 2
    model.navigate_down()
    assert model.selection == 3


def test_navigate_down_wraps(model):
    model.selection = len(default_menu_items()) - 1
    model.navigate_down()
    assert model.selection == 0


def test_select_menu_item(model):
    model.current_screen = Screen.MENU
    model.selection = 0
    model.last_error = "old"
    model.select_menu_item()
    assert model.current_screen == Screen.STATUS
    assert model.last_error == ""


@pytest.mark.parametrize(
    "key, screen",
    [
        ("1", Screen.STATUS),
        ("2", Screen.INSTALL),
        ("3", Screen.MODELS),
        ("4", Screen.LOGS),
        ("5", Screen.DIAGNOSTICS),
        ("6", Screen.SETTINGS),
        ("?", Screen.HELP),
    ],
)
def test_select_menu_by_key(model, key, screen):
    model.current_screen = Screen.MENU
    model.last_error = "old"
    model.select_menu_by_key(key)
    assert model.current_screen == screen
    assert model.last_error == ""


def test_select_menu_by_unknown_key_changes_nothing(model):
    model.select_menu_by_key("7")
    assert model.current_screen == Screen.MENU
    assert model.selection == 0


def test_return_to_menu(model):
    model.current_screen = Screen.STATUS
    model.last_error = "some error"
    model.return_to_menu()
    assert model.current_screen == Screen.MENU
    assert model.last_error == ""


@pytest.mark.parametrize(
    "text, expected",
    [("hello", "Hello"), ("world", "World"), ("", ""), ("a", "A"), ("ABC", "ABC")],
)
def test_capitalize(text, expected):
    assert capitalize(text) == expected


@pytest.mark.parametrize(
    "value, expected",
    [
        (0, "<1s"),
        (0.5, "<1s"),
        (45, "45s"),
        (150.7, "2m30s"),
        (timedelta(hours=1, seconds=5), "1h0m5s"),
    ],
)
def test_pretty_duration(value, expected):
    assert pretty_duration(value) == expected


def test_name_lists():
    assert service_names() == ["ollama", "openwebui", "localai"]
    assert provider_names() == ["ollama", "localai"]


def test_persisted_state_is_restored(tmp_path):
    UIStateManager(tmp_path).save(
        UIState(current_screen=Screen.LOGS, selection=3, last_error="earlier")
    )
    restored = Model("/tmp/compose", tmp_path)
    assert restored.current_screen == Screen.LOGS
    assert restored.selection == 3
    assert restored.last_error == "earlier"


def test_quit_saves_state_and_empties_view(model, tmp_path):
    model.update("2")
    assert model.update("q") is True
    assert model.view() == ""
    assert UIStateManager(tmp_path).load().current_screen == Screen.INSTALL


def test_update_menu_navigation_and_enter(model):
    model.update("down")
    model.update("j")
    assert model.selection == 2
    model.update("enter")
    assert model.current_screen == Screen.MODELS


def test_escape_returns_to_menu(model):
    model.update("?")
    assert model.current_screen == Screen.HELP
    model.update("esc")
    assert model.current_screen == Screen.MENU


def test_shortcuts_work_from_other_screens(model):
    model.update("2")
    model.update("1")
    assert model.current_screen == Screen.STATUS


def test_view_routes_to_screens(model):
    assert "Main Menu" in model.view()
    model.update("5")
    assert "Diagnostics" in model.view()
    assert "future update" in model.view()
    model.update("?")
    assert "Keyboard Shortcuts" in model.view()


def test_render_menu_with_error(model):
    model.last_error = "Test error message"
    assert "Test error message" in model.view()


def test_gpu_report_loaded(tmp_path):
    report = FakeReport(gpus=[FakeGpu("RTX Test", 8192)])
    m = Model("/tmp/compose", tmp_path, gpu_probe=lambda: report)
    assert m.has_gpu_report is True
    assert m.gpu_error == ""
    m.update("1")
    output = m.view()
    assert "RTX Test (8192 MB)" in output
    assert "550.1" in output


def test_gpu_nvml_failure(tmp_path):
    m = Model("/tmp/compose", tmp_path, gpu_probe=lambda: FakeReport(nvml_ok=False))
    assert m.gpu_error == "NVML unavailable or failed to initialize"


def test_gpu_scan_disabled(tmp_path, monkeypatch):
    monkeypatch.setenv("AISTACK_DISABLE_GPU_SCAN", "1")
    m = Model("/tmp/compose", tmp_path, gpu_probe=lambda: FakeReport())
    assert m.has_gpu_report is False
    assert m.gpu_error == "GPU scan disabled"


def test_backend_probe_error(tmp_path):
    def failing():
        raise RuntimeError("binding missing")

    m = Model("/tmp/compose", tmp_path, backend_probe=failing)
    assert m.backend_error == "binding missing"
    assert m.backend == ""


def test_toggle_backend(tmp_path):
    openwebui = FakeOpenWebUI("ollama")
    m = Model(
        "/tmp/compose",
        tmp_path,
        service_manager=FakeManager({"openwebui": openwebui}),
        backend_probe=lambda: (openwebui.backend, f"http://localhost/{openwebui.backend}"),
    )
    m.update("1")
    m.update("b")
    assert openwebui.backend == "localai"
    assert m.backend == "localai"
    assert m.backend_url == "http://localhost/localai"
    assert m.status_message == "Switched backend to localai"
    m.toggle_backend()
    assert m.backend == "ollama"


def test_toggle_backend_without_compose_dir(tmp_path):
    m = Model("", tmp_path)
    m.toggle_backend()
    assert m.last_error == "Compose directory not resolved"


def test_toggle_backend_unexpected_type(tmp_path):
    m = Model(
        "/tmp/compose",
        tmp_path,
        service_manager=FakeManager({"openwebui": FakeService("openwebui")}),
    )
    m.toggle_backend()
    assert m.last_error == "Backend toggle failed: unexpected service type"


def test_install_and_uninstall(tmp_path):
    localai = FakeService("localai")
    m = Model("/tmp/compose", tmp_path, service_manager=FakeManager({"localai": localai}))
    m.update("2")
    m.update("up")
    assert m.install_selection == 2
    m.update("i")
    assert m.install_result == "Successfully installed localai"
    m.update("u")
    assert m.install_result == "Successfully uninstalled localai (data preserved)"
    assert localai.calls == ["install", ("remove", True)]
    assert m.install_in_progress is False


def test_install_failure_and_missing_service(tmp_path):
    m = Model(
        "/tmp/compose",
        tmp_path,
        service_manager=FakeManager({"ollama": FakeService("ollama", fail=True)}),
    )
    m.install_service()
    assert m.install_result == "Failed to install ollama: boom"
    m.install_selection = 1
    m.install_service()
    assert m.install_result == "Error: unknown service openwebui"


def test_install_without_compose_dir(tmp_path):
    m = Model("", tmp_path)
    m.install_service()
    assert m.install_result == DIR_NOT_RESOLVED


def test_load_logs(tmp_path):
    svc = FakeService("openwebui")
    m = Model("/tmp/compose", tmp_path, service_manager=FakeManager({"openwebui": svc}))
    m.update("4")
    m.update("down")
    m.update("enter")
    assert m.logs_service == "openwebui"
    assert m.logs_content == "log lines of openwebui"
    assert svc.calls == [("logs", 50)]
    assert "Logs for openwebui (last 50 lines):" in m.view()


def test_load_logs_failure(tmp_path):
    m = Model(
        "/tmp/compose",
        tmp_path,
        service_manager=FakeManager({"ollama": FakeService("ollama", fail=True)}),
    )
    m.load_logs()
    assert m.logs_content == "Error loading logs: boom"


def test_models_screen(model):
    model.update("3")
    model.update("l")
    assert model.models_list == "No models cached for ollama\n"
    assert model.models_message == "Listed 0 models for ollama"
    model.update("down")
    model.update("s")
    assert model.models_stats == "Provider: localai\nTotal Size: 0.00 GB\nModel Count: 0\n"
    assert model.models_message == "Stats loaded for localai"
    model.update("r")
    assert model.models_list == ""
    assert model.models_stats == ""
    assert model.models_message == "Screen refreshed"


def test_refresh_clears_error(model):
    model.last_error = "x"
    model.refresh()
    assert model.last_error == ""
    assert model.status_message == "Refreshed system state"