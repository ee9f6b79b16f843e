"""The periodic suspend check: track activity and suspend after the idle timeout."""

from __future__ import annotations

import enum
import logging
import subprocess
import time
from typing import Sequence

from aistack.suspend.detector import ActivityDetector
from aistack.suspend.state import IDLE_TIMEOUT_SECONDS, SuspendError, SuspendStateManager

logger = logging.getLogger(__name__)

DEFAULT_SUSPEND_COMMAND = ("systemctl", "suspend")


class SuspendOutcome(enum.Enum):
    """What a suspend check ended with."""

    DISABLED = "disabled"
    ACTIVE = "active"
    IDLE = "idle"
    DRY_RUN = "dry_run"
    SUSPENDED = "suspended"


class SuspendExecutor:
    """Runs one suspend check; meant to be called periodically, e.g. every minute."""

    def __init__(
        self,
        detector: ActivityDetector | None = None,
        manager: SuspendStateManager | None = None,
        dry_run: bool = False,
        command: Sequence[str] = DEFAULT_SUSPEND_COMMAND,
    ) -> None:
        self.detector = ActivityDetector() if detector is None else detector
        self.manager = SuspendStateManager() if manager is None else manager
        self.dry_run = dry_run
        self.command = tuple(command)

    def check_and_suspend(self) -> SuspendOutcome:
        """Update the idle timer and suspend the system once the timeout is reached."""
        logger.debug("suspend.check.start: starting suspend check")

        try:
            state = self.manager.load_state()
        except SuspendError as exc:
            raise SuspendError(f"load state: {exc}") from exc

        if not state.enabled:
            logger.debug("suspend.disabled: auto-suspend is disabled, skipping check")
            return SuspendOutcome.DISABLED

        try:
            status = self.detector.detect_activity()
        except SuspendError as exc:
            raise SuspendError(f"detect activity: {exc}") from exc

        if not status.is_idle:
            logger.info(
                "suspend.activity_detected: resetting idle timer (cpu=%.1f gpu=%.1f)",
                status.cpu_percent,
                status.gpu_percent,
            )
            state.last_active_timestamp = int(time.time())
            try:
                self.manager.save_state(state)
            except SuspendError as exc:
                raise SuspendError(f"save state: {exc}") from exc
            return SuspendOutcome.ACTIVE

        idle_seconds = int(self.manager.idle_duration(state).total_seconds())

        if not self.manager.should_suspend(state):
            logger.info(
                "suspend.idle_detected: idle_seconds=%d remaining_seconds=%d cpu=%.1f gpu=%.1f",
                idle_seconds,
                IDLE_TIMEOUT_SECONDS - idle_seconds,
                status.cpu_percent,
                status.gpu_percent,
            )
            return SuspendOutcome.IDLE

        logger.info(
            "suspend.executing: idle timeout reached (idle_seconds=%d cpu=%.1f gpu=%.1f)",
            idle_seconds,
            status.cpu_percent,
            status.gpu_percent,
        )

        if self.dry_run:
            logger.info("suspend.dry_run: would suspend now")
            return SuspendOutcome.DRY_RUN

        try:
            subprocess.run(self.command, check=True)
        except (OSError, subprocess.SubprocessError) as exc:
            raise SuspendError(f"execute suspend: {exc}") from exc

        logger.info("suspend.done: system suspend command executed")
        return SuspendOutcome.SUSPENDED