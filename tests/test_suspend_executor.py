import sys
import time
from datetime import datetime, timezone

import pytest

from aistack.suspend.detector import ActivityStatus
from aistack.suspend.executor import SuspendExecutor, SuspendOutcome
from aistack.suspend.state import (
    IDLE_TIMEOUT_SECONDS,
    State,
    SuspendError,
    SuspendStateManager,
)


class FakeDetector:
    def __init__(self, is_idle=True, error=None):
        self.is_idle = is_idle
        self.error = error
        self.calls = 0

    def detect_activity(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return ActivityStatus(
            is_idle=self.is_idle,
            cpu_percent=1.0 if self.is_idle else 90.0,
            gpu_percent=-1.0,
            timestamp=datetime.now(timezone.utc),
        )


NOOP = (sys.executable, "-c", "pass")


@pytest.fixture
def manager(tmp_path):
    return SuspendStateManager(tmp_path / "suspend_state.json")


def _store(manager, enabled, idle_seconds):
    state = State(enabled=enabled, last_active_timestamp=int(time.time()) - idle_seconds)
    manager.save_state(state)
    return state


def test_disabled_skips_detection(manager):
    _store(manager, False, IDLE_TIMEOUT_SECONDS + 100)
    detector = FakeDetector()
    executor = SuspendExecutor(detector, manager, command=NOOP)
    assert executor.check_and_suspend() is SuspendOutcome.DISABLED
    assert detector.calls == 0


def test_activity_resets_timestamp(manager):
    old = _store(manager, True, IDLE_TIMEOUT_SECONDS + 100)
    before = int(time.time())
    executor = SuspendExecutor(FakeDetector(is_idle=False), manager, command=NOOP)
    assert executor.check_and_suspend() is SuspendOutcome.ACTIVE
    stored = manager.load_state()
    assert stored.last_active_timestamp >= before
    assert stored.last_active_timestamp > old.last_active_timestamp
    assert stored.enabled is True


def test_idle_before_timeout(manager):
    stored = _store(manager, True, 10)
    executor = SuspendExecutor(FakeDetector(), manager, command=NOOP)
    assert executor.check_and_suspend() is SuspendOutcome.IDLE
    assert manager.load_state() == stored


def test_dry_run_does_not_run_command(manager, tmp_path):
    _store(manager, True, IDLE_TIMEOUT_SECONDS + 100)
    marker = tmp_path / "ran"
    command = (sys.executable, "-c", "import pathlib,sys; pathlib.Path(sys.argv[1]).touch()", str(marker))
    executor = SuspendExecutor(FakeDetector(), manager, dry_run=True, command=command)
    assert executor.check_and_suspend() is SuspendOutcome.DRY_RUN
    assert not marker.exists()


def test_timeout_runs_suspend_command(manager, tmp_path):
    _store(manager, True, IDLE_TIMEOUT_SECONDS)
    marker = tmp_path / "ran"
    command = (sys.executable, "-c", "import pathlib,sys; pathlib.Path(sys.argv[1]).touch()", str(marker))
    executor = SuspendExecutor(FakeDetector(), manager, command=command)
    assert executor.check_and_suspend() is SuspendOutcome.SUSPENDED
    assert marker.exists()


def test_failing_command_raises(manager):
    _store(manager, True, IDLE_TIMEOUT_SECONDS + 100)
    command = (sys.executable, "-c", "raise SystemExit(1)")
    executor = SuspendExecutor(FakeDetector(), manager, command=command)
    with pytest.raises(SuspendError, match="execute suspend"):
        executor.check_and_suspend()


def test_missing_command_raises(manager, tmp_path):
    _store(manager, True, IDLE_TIMEOUT_SECONDS + 100)
    executor = SuspendExecutor(FakeDetector(), manager, command=(str(tmp_path / "nope"),))
    with pytest.raises(SuspendError, match="execute suspend"):
        executor.check_and_suspend()


def test_detector_error_is_wrapped(manager):
    _store(manager, True, 0)
    detector = FakeDetector(error=SuspendError("boom"))
    executor = SuspendExecutor(detector, manager, command=NOOP)
    with pytest.raises(SuspendError, match="detect activity: boom"):
        executor.check_and_suspend()


def test_corrupt_state_is_wrapped(manager):
    manager.state_file.write_text("{not json")
    executor = SuspendExecutor(FakeDetector(), manager, command=NOOP)
    with pytest.raises(SuspendError, match="load state"):
        executor.check_and_suspend()


def test_missing_state_creates_enabled_default(manager):
    executor = SuspendExecutor(FakeDetector(), manager, command=NOOP)
    assert executor.check_and_suspend() is SuspendOutcome.IDLE
    assert manager.load_state().enabled is True