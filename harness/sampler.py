"""
Continuous host and process resource sampling.

A :class:`ResourceSampler` owns one
:class:`~harness.models.MonitoringSession`. ``start`` moves it to running
and spawns a background thread that captures one
:class:`~harness.models.ResourceSample` per interval until ``stop``.
Each tick gathers three snapshots:

- host: aggregate CPU busy percent from the per-core tick counters,
  memory totals and the 1-minute load average (psutil);
- process: RSS, traced Python heap and CPU time of this process;
- dependent system: optional callable, e.g. table row counts.

A snapshot that fails is logged and its fields are marked unavailable;
the tick still records a sample and the session keeps running.
"""

from __future__ import annotations

import logging
import math
import threading
import time
import tracemalloc
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import psutil

from harness.exceptions import SamplingError
from harness.models import MonitoringSession, ResourceSample, SessionState
from harness.reporting import (
    ResourceReport,
    session_artifact,
    summarize_session,
    write_json_report,
)
from harness.thresholds import ReportThresholds

logger = logging.getLogger(__name__)

REPORT_PREFIX = "resource-monitor-report"

HOST_FIELDS = (
    "cpu_usage_percent",
    "cpu_core_count",
    "mem_total_bytes",
    "mem_used_percent",
    "load_average_1m",
)
PROCESS_FIELDS = (
    "process_rss_bytes",
    "process_heap_bytes",
    "process_cpu_user_sec",
    "process_cpu_system_sec",
)


@dataclass(frozen=True)
class HostSnapshot:
    cpu_usage_percent: float
    cpu_core_count: int
    mem_total_bytes: int
    mem_used_percent: float
    load_average_1m: float
    cpu_times: tuple[Any, ...]


@dataclass(frozen=True)
class ProcessSnapshot:
    process_rss_bytes: int
    process_heap_bytes: int | None
    process_cpu_user_sec: float
    process_cpu_system_sec: float


def cpu_busy_percent(current: Sequence[Any], previous: Sequence[Any] | None = None) -> float:
    """
    Aggregate busy percentage across all cores.

    Args:
        current: Per-core cumulative tick counters (``psutil.cpu_times(percpu=True)``).
        previous: Counters from the previous tick. When given, the result
            covers only the interval between the two readings; otherwise
            it covers the time since boot.

    Returns:
        ``100 - 100 * idle / total``, rounded to two decimals; ``0.0`` when
        no ticks elapsed.
    """
    total = sum(sum(core) for core in current)
    idle = sum(core.idle for core in current)
    if previous is not None and len(previous) == len(current):
        total -= sum(sum(core) for core in previous)
        idle -= sum(core.idle for core in previous)
    if total <= 0:
        return 0.0
    busy = 100 - (100 * idle / total)
    return round(min(max(busy, 0.0), 100.0), 2)


def capture_host_snapshot(previous_cpu_times: Sequence[Any] | None = None) -> HostSnapshot:
    """
    Read host CPU, memory and load figures.

    Raises:
        SamplingError: If the operating system refuses any of the reads.
    """
    try:
        cpu_times = tuple(psutil.cpu_times(percpu=True))
        memory = psutil.virtual_memory()
        load_1m = psutil.getloadavg()[0]
        cores = psutil.cpu_count() or len(cpu_times)
    except (psutil.Error, OSError) as exc:
        raise SamplingError(f"Host snapshot failed: {exc}") from exc

    return HostSnapshot(
        cpu_usage_percent=cpu_busy_percent(cpu_times, previous_cpu_times),
        cpu_core_count=cores,
        mem_total_bytes=memory.total,
        mem_used_percent=round((memory.total - memory.available) / memory.total * 100, 2),
        load_average_1m=round(load_1m, 2),
        cpu_times=cpu_times,
    )


def capture_process_snapshot(process: psutil.Process | None = None) -> ProcessSnapshot:
    """
    Read memory and CPU time of the current process.

    The heap figure is the memory currently traced by :mod:`tracemalloc`;
    it is ``None`` when tracing is off.

    Raises:
        SamplingError: If the process information cannot be read.
    """
    process = process or psutil.Process()
    try:
        memory = process.memory_info()
        cpu = process.cpu_times()
    except (psutil.Error, OSError) as exc:
        raise SamplingError(f"Process snapshot failed: {exc}") from exc

    heap = tracemalloc.get_traced_memory()[0] if tracemalloc.is_tracing() else None
    return ProcessSnapshot(
        process_rss_bytes=memory.rss,
        process_heap_bytes=heap,
        process_cpu_user_sec=cpu.user,
        process_cpu_system_sec=cpu.system,
    )


class ResourceSampler:
    """
    Periodic sampler bound to a single monitoring session.

    Args:
        dependent_probe: Optional zero-argument callable returning a
            mapping of counts from a dependent system (for example the
            record store's table sizes). Best effort only.
        clock: Wall-clock source for sample timestamps.
        trace_heap: Start :mod:`tracemalloc` while running so that the
            heap figure is available. Tracing is stopped again on
            ``stop`` only if this sampler started it.
    """

    def __init__(
        self,
        dependent_probe: Callable[[], Mapping[str, Any]] | None = None,
        clock: Callable[[], float] = time.time,
        trace_heap: bool = True,
    ):
        self.dependent_probe = dependent_probe
        self.session = MonitoringSession()
        self.interval_ms: float | None = None
        self._clock = clock
        self._trace_heap = trace_heap
        self._started_tracing = False
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._previous_cpu_times: tuple[Any, ...] | None = None
        self._process = psutil.Process()

    @property
    def state(self) -> SessionState:
        with self._lock:
            return self.session.state

    def start(self, interval_ms: float = 1000) -> bool:
        """
        Begin sampling every ``interval_ms`` milliseconds.

        Returns:
            ``True`` if the session moved to running; ``False`` (with a
            warning) if it was already running or has been stopped.
        """
        if interval_ms <= 0:
            raise ValueError("interval_ms must be > 0")

        with self._lock:
            if self.session.state is SessionState.RUNNING:
                logger.warning("Monitoring is already running")
                return False
            if self.session.state is SessionState.STOPPED:
                logger.warning("Monitoring session is stopped; create a new sampler to monitor again")
                return False
            self.session.begin(self._clock())
            self.interval_ms = interval_ms

        if self._trace_heap and not tracemalloc.is_tracing():
            tracemalloc.start()
            self._started_tracing = True

        logger.info("Resource monitoring started (interval: %sms)", interval_ms)
        self._thread = threading.Thread(
            target=self._loop,
            args=(interval_ms / 1000,),
            name="resource-sampler",
            daemon=True,
        )
        self._thread.start()
        return True

    def _loop(self, interval_sec: float) -> None:
        next_tick = time.monotonic()
        while not self._stop_event.is_set():
            self.tick()
            next_tick += interval_sec
            self._stop_event.wait(max(next_tick - time.monotonic(), 0.0))

    def _next_timestamp(self) -> float:
        now = self._clock()
        if self.session.samples and now <= self.session.samples[-1].timestamp:
            now = math.nextafter(self.session.samples[-1].timestamp, math.inf)
        return now

    def tick(self) -> ResourceSample | None:
        """
        Capture and append one sample.

        Returns:
            The recorded sample, or ``None`` if the session is not running.
        """
        if self.state is not SessionState.RUNNING:
            return None

        values: dict[str, Any] = {}
        unavailable: list[str] = []

        try:
            host = capture_host_snapshot(self._previous_cpu_times)
        except SamplingError as exc:
            logger.warning("%s", exc)
            unavailable.extend(HOST_FIELDS)
        else:
            self._previous_cpu_times = host.cpu_times
            values.update({name: getattr(host, name) for name in HOST_FIELDS})

        try:
            process = capture_process_snapshot(self._process)
        except SamplingError as exc:
            logger.warning("%s", exc)
            unavailable.extend(PROCESS_FIELDS)
        else:
            values.update({name: getattr(process, name) for name in PROCESS_FIELDS})
            if process.process_heap_bytes is None:
                unavailable.append("process_heap_bytes")

        if self.dependent_probe is not None:
            values["dependent_counts"] = self._capture_dependent()

        with self._lock:
            if self.session.state is not SessionState.RUNNING:
                return None
            sample = ResourceSample(
                timestamp=self._next_timestamp(),
                unavailable=tuple(unavailable),
                **values,
            )
            self.session.append(sample)

        heap = sample.process_heap_bytes
        logger.info(
            "CPU: %s%% | RAM: %s%% | Heap: %s | Load: %s",
            sample.cpu_usage_percent if sample.cpu_usage_percent is not None else "n/a",
            sample.mem_used_percent if sample.mem_used_percent is not None else "n/a",
            f"{round(heap / 1024 / 1024)}MB" if heap is not None else "n/a",
            sample.load_average_1m if sample.load_average_1m is not None else "n/a",
        )
        return sample

    def _capture_dependent(self) -> dict[str, Any]:
        try:
            counts = self.dependent_probe()
        except Exception as exc:
            error = SamplingError(f"Dependent system metrics unavailable: {exc}")
            logger.warning("%s", error)
            return {"error": str(error)}
        return dict(counts)

    def stop(self) -> bool:
        """
        Move the session to stopped and wait for the sampling thread.

        Returns:
            ``False`` (with a warning) if the session was not running.
        """
        with self._lock:
            if not self.session.end(self._clock()):
                logger.warning("Monitoring is not running")
                return False

        self._stop_event.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=max((self.interval_ms or 1000) / 1000, 1.0) + 5)
        if self._started_tracing:
            tracemalloc.stop()
            self._started_tracing = False
        logger.info("Resource monitoring stopped")
        return True

    def snapshot(self) -> MonitoringSession:
        """Return a consistent copy of the session for read-only use."""
        with self._lock:
            return MonitoringSession(
                start_time=self.session.start_time,
                stopped_at=self.session.stopped_at,
                samples=list(self.session.samples),
                state=self.session.state,
            )

    def generate_report(self, thresholds: ReportThresholds | None = None) -> ResourceReport:
        """Summarise the samples collected so far; valid in any state."""
        return summarize_session(self.snapshot(), thresholds)

    def persist(self, results_dir: Path | str) -> Path | None:
        """
        Write the session as a timestamped JSON artifact.

        Returns:
            Path of the written file, or ``None`` if writing failed (the
            failure is logged; in-memory samples are untouched).
        """
        return write_json_report(
            results_dir,
            REPORT_PREFIX,
            session_artifact(self.snapshot()),
        )
