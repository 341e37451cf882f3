"""
Measurement data model shared by the three harness pipelines.

Every record here is created once and never mutated afterwards, with the
exception of :class:`MonitoringSession`, which owns the append-only sample
list and the idle → running → stopped state machine.
"""

from __future__ import annotations

import string
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any


class HttpMethod(str, Enum):
    """HTTP verbs a scenario may use."""

    GET = "GET"
    POST = "POST"


class ProbeCategory(str, Enum):
    """Grouping of query probes inside one catalog."""

    CORE = "core"
    INDEX = "index"
    AGGREGATE = "aggregate"
    INSERT = "insert"


class SessionState(str, Enum):
    """Lifecycle of a monitoring session. ``STOPPED`` is terminal."""

    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


# -----------------------------------------------------------------------------
# Load testing
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class Scenario:
    """
    Named HTTP request template picked at random by virtual users.

    Attributes:
        name: Human-readable label used in outcomes and reports.
        method: HTTP verb.
        path: Path template relative to the base URL. ``{placeholder}``
            segments are filled from ``params``.
        params: Path and query parameters. Frozen after construction.
        body: JSON body for ``POST`` scenarios.
    """

    name: str
    method: HttpMethod
    path: str
    params: Mapping[str, Any] = field(default_factory=dict)
    body: Mapping[str, Any] | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "method", HttpMethod(self.method))
        object.__setattr__(self, "params", MappingProxyType(dict(self.params)))
        if self.body is not None:
            object.__setattr__(self, "body", MappingProxyType(dict(self.body)))

    def _placeholders(self) -> set[str]:
        return {
            name for _, name, _, _ in string.Formatter().parse(self.path) if name
        }

    def render_path(self) -> str:
        """Return the path with every placeholder substituted."""
        placeholders = self._placeholders()
        missing = placeholders - set(self.params)
        if missing:
            raise ValueError(f"Scenario '{self.name}' is missing path params: {sorted(missing)}")
        return self.path.format(**{key: self.params[key] for key in placeholders})

    def query_params(self) -> dict[str, Any]:
        """Return the params not consumed by the path template."""
        placeholders = self._placeholders()
        return {key: value for key, value in self.params.items() if key not in placeholders}


@dataclass(frozen=True)
class RequestOutcome:
    """Result of one executed scenario request, successful or not."""

    scenario_name: str
    success: bool
    status_code: int
    latency_ms: float
    timestamp: float
    error: str | None = None

    def __post_init__(self) -> None:
        if self.latency_ms < 0:
            raise ValueError("latency_ms must be >= 0")


def _distinct(values: Iterable[str | None]) -> tuple[str, ...]:
    """Unique non-empty values in first-seen order."""
    seen: dict[str, None] = {}
    for value in values:
        if value:
            seen.setdefault(value, None)
    return tuple(seen)


@dataclass(frozen=True)
class RunResult:
    """
    Aggregate of one load tier.

    ``fail_count`` and ``success_rate`` are always derived from the stored
    counts so they can never drift from them.
    """

    concurrency: int
    duration_sec: float
    total_requests: int
    success_count: int
    avg_latency_ms: float
    min_latency_ms: float
    max_latency_ms: float
    requests_per_sec: float
    distinct_errors: tuple[str, ...] = ()

    @property
    def fail_count(self) -> int:
        return self.total_requests - self.success_count

    @property
    def success_rate(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return self.success_count / self.total_requests * 100

    @classmethod
    def from_outcomes(
        cls,
        concurrency: int,
        duration_sec: float,
        outcomes: Iterable[RequestOutcome],
        elapsed_sec: float,
    ) -> RunResult:
        """
        Derive the tier aggregate from its outcome set.

        Args:
            concurrency: Number of virtual users in the tier.
            duration_sec: Configured tier duration.
            outcomes: Every outcome recorded during the tier.
            elapsed_sec: Measured wall time between fan-out and fan-in,
                used as the throughput denominator.

        Returns:
            The tier's ``RunResult``. An empty outcome set yields zeros
            everywhere rather than NaN.
        """
        outcomes = list(outcomes)
        total = len(outcomes)
        success_count = sum(1 for outcome in outcomes if outcome.success)
        latencies = [outcome.latency_ms for outcome in outcomes]

        if total:
            avg_latency = round(sum(latencies) / total, 2)
            min_latency = round(min(latencies), 2)
            max_latency = round(max(latencies), 2)
        else:
            avg_latency = min_latency = max_latency = 0.0

        requests_per_sec = round(total / elapsed_sec, 2) if elapsed_sec > 0 else 0.0

        return cls(
            concurrency=concurrency,
            duration_sec=duration_sec,
            total_requests=total,
            success_count=success_count,
            avg_latency_ms=avg_latency,
            min_latency_ms=min_latency,
            max_latency_ms=max_latency,
            requests_per_sec=requests_per_sec,
            distinct_errors=_distinct(outcome.error for outcome in outcomes if not outcome.success),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "concurrency": self.concurrency,
            "durationSec": self.duration_sec,
            "totalRequests": self.total_requests,
            "successCount": self.success_count,
            "failCount": self.fail_count,
            "successRate": round(self.success_rate, 2),
            "avgLatencyMs": self.avg_latency_ms,
            "minLatencyMs": self.min_latency_ms,
            "maxLatencyMs": self.max_latency_ms,
            "requestsPerSec": self.requests_per_sec,
            "distinctErrors": list(self.distinct_errors),
        }


# -----------------------------------------------------------------------------
# Query benchmarking
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class QueryProbe:
    """
    One named, repeatable record-store operation.

    Attributes:
        name: Label shown in reports.
        executor: Zero-argument callable that performs the query.
        iterations: How many times the benchmark runs it (at least 1).
        category: Catalog group the probe belongs to.
    """

    name: str
    executor: Callable[[], Any]
    iterations: int = 3
    category: ProbeCategory = ProbeCategory.CORE

    def __post_init__(self) -> None:
        if self.iterations < 1:
            raise ValueError(f"Probe '{self.name}' needs at least one iteration")
        object.__setattr__(self, "category", ProbeCategory(self.category))


@dataclass(frozen=True)
class QueryMeasurement:
    """Latency statistics for one probe; a failed probe reports zeros."""

    name: str
    success: bool
    avg_latency_ms: float
    min_latency_ms: float
    max_latency_ms: float
    iterations: int
    category: ProbeCategory = ProbeCategory.CORE
    error: str | None = None

    @classmethod
    def from_timings(cls, probe: QueryProbe, timings_ms: list[float]) -> QueryMeasurement:
        return cls(
            name=probe.name,
            success=True,
            avg_latency_ms=round(sum(timings_ms) / len(timings_ms), 2),
            min_latency_ms=round(min(timings_ms), 2),
            max_latency_ms=round(max(timings_ms), 2),
            iterations=len(timings_ms),
            category=probe.category,
        )

    @classmethod
    def failed(cls, probe: QueryProbe, error: str) -> QueryMeasurement:
        return cls(
            name=probe.name,
            success=False,
            avg_latency_ms=0.0,
            min_latency_ms=0.0,
            max_latency_ms=0.0,
            iterations=probe.iterations,
            category=probe.category,
            error=error,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "category": self.category.value,
            "success": self.success,
            "avgLatencyMs": self.avg_latency_ms,
            "minLatencyMs": self.min_latency_ms,
            "maxLatencyMs": self.max_latency_ms,
            "iterations": self.iterations,
            "error": self.error,
        }


# -----------------------------------------------------------------------------
# Resource monitoring
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class ResourceSample:
    """
    One sampling tick. Fields that could not be captured are ``None`` and
    listed in ``unavailable``; a failed dependent snapshot is recorded as
    ``{"error": ...}`` in ``dependent_counts``.
    """

    timestamp: float
    cpu_usage_percent: float | None = None
    cpu_core_count: int | None = None
    mem_total_bytes: int | None = None
    mem_used_percent: float | None = None
    load_average_1m: float | None = None
    process_rss_bytes: int | None = None
    process_heap_bytes: int | None = None
    process_cpu_user_sec: float | None = None
    process_cpu_system_sec: float | None = None
    dependent_counts: Mapping[str, Any] | None = None
    unavailable: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "cpuUsagePercent": self.cpu_usage_percent,
            "cpuCoreCount": self.cpu_core_count,
            "memTotal": self.mem_total_bytes,
            "memUsedPercent": self.mem_used_percent,
            "loadAverage1m": self.load_average_1m,
            "processRss": self.process_rss_bytes,
            "processHeap": self.process_heap_bytes,
            "processCpuUser": self.process_cpu_user_sec,
            "processCpuSystem": self.process_cpu_system_sec,
            "dependentCounts": (
                dict(self.dependent_counts) if self.dependent_counts is not None else None
            ),
            "unavailable": list(self.unavailable),
        }


@dataclass
class MonitoringSession:
    """
    Bounded lifetime of continuous resource sampling.

    Transitions: idle → running (``begin``) → stopped (``end``). A stopped
    session never runs again; construct a new one instead.
    """

    start_time: float | None = None
    stopped_at: float | None = None
    samples: list[ResourceSample] = field(default_factory=list)
    state: SessionState = SessionState.IDLE

    def begin(self, now: float) -> bool:
        """Move idle → running. Returns ``False`` for any other state."""
        if self.state is not SessionState.IDLE:
            return False
        self.state = SessionState.RUNNING
        self.start_time = now
        return True

    def end(self, now: float) -> bool:
        """Move running → stopped. Returns ``False`` for any other state."""
        if self.state is not SessionState.RUNNING:
            return False
        self.state = SessionState.STOPPED
        self.stopped_at = now
        return True

    def append(self, sample: ResourceSample) -> None:
        """Append a sample; timestamps must strictly increase."""
        if self.samples and sample.timestamp <= self.samples[-1].timestamp:
            raise ValueError("ResourceSample timestamps must be strictly increasing")
        self.samples.append(sample)

    @property
    def duration_sec(self) -> float:
        if self.start_time is None:
            return 0.0
        if self.stopped_at is not None:
            return max(self.stopped_at - self.start_time, 0.0)
        if self.samples:
            return max(self.samples[-1].timestamp - self.start_time, 0.0)
        return 0.0
