"""System activity detection from CPU counters and an optional GPU probe."""

from __future__ import annotations

import logging
import sys
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from aistack.suspend.state import SuspendError

logger = logging.getLogger(__name__)

CPU_IDLE_THRESHOLD = 10.0
GPU_IDLE_THRESHOLD = 5.0
NO_GPU = -1.0
DEFAULT_STAT_PATH = "/proc/stat"

_UINT64_MAX = 2**64 - 1

GpuProbe = Callable[[], Optional[float]]


@dataclass(frozen=True)
class CpuSample:
    """Aggregate CPU time counters taken from the first line of /proc/stat."""

    user: int = 0
    nice: int = 0
    system: int = 0
    idle: int = 0
    iowait: int = 0
    irq: int = 0
    softirq: int = 0
    steal: int = 0

    def total(self) -> int:
        """All CPU time, busy and idle."""
        return self.active() + self.idle + self.iowait

    def active(self) -> int:
        """CPU time spent doing work (total minus idle and iowait)."""
        return self.user + self.nice + self.system + self.irq + self.softirq + self.steal


def _parse_counter(text: str) -> int:
    if not (text.isascii() and text.isdigit()):
        return 0
    return min(int(text), _UINT64_MAX)


def read_cpu_sample(path: str | Path = DEFAULT_STAT_PATH) -> CpuSample:
    """Read the aggregate CPU counters from a /proc/stat style file."""
    try:
        text = Path(path).read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        raise SuspendError(f"read {path}: {exc}") from exc

    fields = text.split("\n", 1)[0].split()
    if len(fields) < 8 or fields[0] != "cpu":
        raise SuspendError(f"invalid {path} format")

    return CpuSample(*(_parse_counter(value) for value in fields[1:9]))


def cpu_percent(before: CpuSample, after: CpuSample) -> float:
    """CPU utilisation in percent between two samples."""
    total_delta = after.total() - before.total()
    if total_delta == 0:
        return 0.0
    active_delta = after.active() - before.active()
    return active_delta / total_delta * 100.0


@dataclass(frozen=True)
class ActivityStatus:
    """System activity at one point in time."""

    is_idle: bool
    cpu_percent: float
    gpu_percent: float
    timestamp: datetime


class ActivityDetector:
    """Decides whether the machine is idle, for suspend decisions.

    ``gpu_probe`` returns the utilisation of the first GPU in percent, or
    None when no GPU is available; without a probe the machine is treated
    as having no GPU.
    """

    def __init__(
        self,
        gpu_probe: GpuProbe | None = None,
        stat_path: str | Path | None = None,
        interval: float = 1.0,
    ) -> None:
        self.gpu_probe = gpu_probe
        self._uses_system_stat = stat_path is None
        self.stat_path = Path(DEFAULT_STAT_PATH if stat_path is None else stat_path)
        self.interval = interval

    def measure_cpu(self) -> float:
        """Measure CPU utilisation over the configured interval."""
        try:
            first = read_cpu_sample(self.stat_path)
        except SuspendError as exc:
            raise SuspendError(f"read first CPU sample: {exc}") from exc

        time.sleep(self.interval)

        try:
            second = read_cpu_sample(self.stat_path)
        except SuspendError as exc:
            raise SuspendError(f"read second CPU sample: {exc}") from exc

        return cpu_percent(first, second)

    def measure_gpu(self) -> float:
        """GPU utilisation in percent, or -1.0 when no GPU can be read."""
        if self.gpu_probe is None:
            logger.debug("suspend.gpu.unavailable: no GPU probe configured")
            return NO_GPU
        try:
            value = self.gpu_probe()
        except Exception as exc:  # a failing probe means the GPU is unreadable
            logger.warning("suspend.gpu.utilization.failed: %s", exc)
            return NO_GPU
        if value is None:
            logger.debug("suspend.gpu.unavailable: no GPU devices found")
            return NO_GPU
        return float(value)

    def detect_activity(self) -> ActivityStatus:
        """Measure CPU and GPU use and decide whether the system is idle."""
        if self._uses_system_stat and not sys.platform.startswith("linux"):
            raise SuspendError("suspend feature only supported on Linux")

        logger.debug("suspend.detect.start: starting activity detection")
        try:
            cpu = self.measure_cpu()
        except SuspendError as exc:
            raise SuspendError(f"measure CPU: {exc}") from exc

        gpu = self.measure_gpu()

        cpu_idle = cpu < CPU_IDLE_THRESHOLD
        gpu_idle = gpu < 0 or gpu < GPU_IDLE_THRESHOLD
        is_idle = cpu_idle and gpu_idle

        logger.debug(
            "suspend.detect.done: cpu_percent=%.1f gpu_percent=%.1f is_idle=%s",
            cpu,
            gpu,
            is_idle,
        )
        return ActivityStatus(
            is_idle=is_idle,
            cpu_percent=cpu,
            gpu_percent=gpu,
            timestamp=datetime.now().astimezone(),
        )