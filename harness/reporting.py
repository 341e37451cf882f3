"""
Report generation for load runs, query benchmarks and monitoring sessions.

The ``summarize_*`` functions are pure: they never mutate their inputs
and return equal values for equal inputs, however often they are called.
The ``render_*`` functions turn a summary into console text. Empty inputs
produce a "no data" report (``None`` aggregates), never an exception or
NaN.

Latency statistics are mean/min/max only.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from harness.exceptions import PersistenceError
from harness.models import MonitoringSession, QueryMeasurement, RunResult
from harness.thresholds import ReportThresholds

logger = logging.getLogger(__name__)

NO_DATA = "no data"
RULE = "=" * 60
MB = 1024 * 1024
GB = 1024 * MB


@dataclass(frozen=True)
class Recommendation:
    """A threshold breach, identified by a stable ``code``."""

    code: str
    message: str


@dataclass(frozen=True)
class Aggregate:
    """Average/min/max of a series; all ``None`` when the series is empty."""

    average: float | None = None
    minimum: float | None = None
    maximum: float | None = None

    @classmethod
    def of(cls, values: Iterable[float | None]) -> Aggregate:
        present = [value for value in values if value is not None]
        if not present:
            return cls()
        return cls(
            average=round(sum(present) / len(present), 2),
            minimum=min(present),
            maximum=max(present),
        )

    def to_dict(self) -> dict[str, float | None]:
        return {"average": self.average, "max": self.maximum, "min": self.minimum}


def _mean(values: Sequence[float]) -> float | None:
    if not values:
        return None
    return round(sum(values) / len(values), 2)


def _fmt(value: float | None, unit: str = "", scale: float = 1.0, digits: int = 2) -> str:
    if value is None:
        return NO_DATA
    scaled = round(value / scale, digits)
    if digits == 0:
        scaled = int(scaled)
    return f"{scaled}{unit}"


def _render_recommendations(recommendations: Sequence[Recommendation]) -> list[str]:
    lines = ["", "Recommendations:"]
    if not recommendations:
        lines.append("   No issues detected")
    lines.extend(f"   ! {item.message}" for item in recommendations)
    return lines


# -----------------------------------------------------------------------------
# Load runs
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class LoadReport:
    """
    Summary across load tiers.

    ``avg_latency_ms`` is the mean of the per-tier averages and
    ``avg_requests_per_sec`` the mean of the per-tier throughputs; neither
    is weighted by request count.
    """

    tiers: tuple[RunResult, ...]
    total_requests: int
    success_count: int
    fail_count: int
    avg_latency_ms: float | None
    min_latency_ms: float | None
    max_latency_ms: float | None
    avg_requests_per_sec: float | None
    recommendations: tuple[Recommendation, ...]

    @property
    def has_data(self) -> bool:
        return self.total_requests > 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": {
                "totalRequests": self.total_requests,
                "successCount": self.success_count,
                "failCount": self.fail_count,
                "avgLatencyMs": self.avg_latency_ms,
                "minLatencyMs": self.min_latency_ms,
                "maxLatencyMs": self.max_latency_ms,
                "avgRequestsPerSec": self.avg_requests_per_sec,
            },
            "tiers": [tier.to_dict() for tier in self.tiers],
            "recommendations": [item.message for item in self.recommendations],
        }


def load_recommendations(
    tiers: Sequence[RunResult], thresholds: ReportThresholds
) -> tuple[Recommendation, ...]:
    """Evaluate thresholds against the highest-concurrency tier."""
    if not tiers:
        return ()
    peak = max(tiers, key=lambda tier: tier.concurrency)
    found = []
    if peak.success_rate < thresholds.min_success_rate_percent:
        found.append(Recommendation(
            "low_success_rate",
            f"Low success rate ({peak.success_rate:.1f}%) at {peak.concurrency} users; "
            "optimise the server or reduce the load",
        ))
    if peak.avg_latency_ms > thresholds.max_avg_response_ms:
        found.append(Recommendation(
            "high_response_time",
            f"High response time ({peak.avg_latency_ms}ms) at {peak.concurrency} users; "
            "optimise the database queries",
        ))
    if peak.requests_per_sec < thresholds.min_requests_per_sec:
        found.append(Recommendation(
            "low_throughput",
            f"Low throughput ({peak.requests_per_sec} RPS) at {peak.concurrency} users; "
            "consider scaling the server",
        ))
    return tuple(found)


def summarize_load(
    results: Iterable[RunResult], thresholds: ReportThresholds | None = None
) -> LoadReport:
    """Aggregate every tier of a load run."""
    thresholds = thresholds or ReportThresholds()
    tiers = tuple(results)
    with_traffic = [tier for tier in tiers if tier.total_requests > 0]
    return LoadReport(
        tiers=tiers,
        total_requests=sum(tier.total_requests for tier in tiers),
        success_count=sum(tier.success_count for tier in tiers),
        fail_count=sum(tier.fail_count for tier in tiers),
        avg_latency_ms=_mean([tier.avg_latency_ms for tier in with_traffic]),
        min_latency_ms=min((tier.min_latency_ms for tier in with_traffic), default=None),
        max_latency_ms=max((tier.max_latency_ms for tier in with_traffic), default=None),
        avg_requests_per_sec=_mean([tier.requests_per_sec for tier in tiers]),
        recommendations=load_recommendations(tiers, thresholds),
    )


def render_load_report(report: LoadReport) -> str:
    lines = [
        "",
        "LOAD TEST REPORT",
        RULE,
        "",
        "Overall:",
        f"   Total requests: {report.total_requests}",
        f"   Successful: {report.success_count}",
        f"   Failed: {report.fail_count}",
        f"   Average response time: {_fmt(report.avg_latency_ms, 'ms')}",
        f"   Min/Max response time: {_fmt(report.min_latency_ms, 'ms')} / "
        f"{_fmt(report.max_latency_ms, 'ms')}",
        f"   Average RPS: {_fmt(report.avg_requests_per_sec)}",
        "",
        "Per tier:",
        f"{'Users':>10} | {'Requests':>8} | {'Success%':>8} | {'Avg ms':>10} | RPS",
        "-" * 56,
    ]
    for tier in report.tiers:
        lines.append(
            f"{tier.concurrency:>10} | {tier.total_requests:>8} | "
            f"{tier.success_rate:>7.1f}% | {tier.avg_latency_ms:>10.2f} | {tier.requests_per_sec}"
        )
    for tier in report.tiers:
        if tier.distinct_errors:
            lines.append(f"   Errors at {tier.concurrency} users: {', '.join(tier.distinct_errors)}")
    lines.extend(_render_recommendations(report.recommendations))
    return "\n".join(lines)


# -----------------------------------------------------------------------------
# Query benchmark
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class QueryReport:
    """Summary of a benchmark run; statistics cover successful probes only."""

    measurements: tuple[QueryMeasurement, ...]
    success_count: int
    fail_count: int
    avg_latency_ms: float | None
    slowest: QueryMeasurement | None
    fastest: QueryMeasurement | None
    top_slowest: tuple[QueryMeasurement, ...]
    failed: tuple[QueryMeasurement, ...]
    slow_count: int
    recommendations: tuple[Recommendation, ...]

    @property
    def total(self) -> int:
        return len(self.measurements)

    @property
    def has_data(self) -> bool:
        return self.success_count > 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": {
                "totalQueries": self.total,
                "successCount": self.success_count,
                "failCount": self.fail_count,
                "avgLatencyMs": self.avg_latency_ms,
                "slowestQuery": self.slowest.name if self.slowest else None,
                "fastestQuery": self.fastest.name if self.fastest else None,
            },
            "queries": [measurement.to_dict() for measurement in self.measurements],
            "recommendations": [item.message for item in self.recommendations],
        }


def summarize_queries(
    measurements: Iterable[QueryMeasurement],
    thresholds: ReportThresholds | None = None,
    top_n: int = 5,
) -> QueryReport:
    """Aggregate query measurements and rank the slowest probes."""
    thresholds = thresholds or ReportThresholds()
    measurements = tuple(measurements)
    successful = [item for item in measurements if item.success]
    failed = tuple(item for item in measurements if not item.success)
    ranked = sorted(successful, key=lambda item: item.avg_latency_ms, reverse=True)

    avg_latency = _mean([item.avg_latency_ms for item in successful])
    slowest = max(successful, key=lambda item: item.avg_latency_ms, default=None)
    fastest = min(successful, key=lambda item: item.avg_latency_ms, default=None)
    slow_count = sum(1 for item in successful if item.avg_latency_ms > thresholds.slow_query_ms)

    found = []
    if avg_latency is not None and avg_latency > thresholds.max_query_avg_ms:
        found.append(Recommendation(
            "high_average_query_time",
            f"High average query time ({avg_latency}ms); check indexes and query plans",
        ))
    if slowest is not None and slowest.avg_latency_ms > thresholds.max_slowest_query_ms:
        found.append(Recommendation(
            "very_slow_query",
            f"Very slow query: {slowest.name} ({slowest.avg_latency_ms}ms) needs urgent optimisation",
        ))
    if slow_count:
        found.append(Recommendation(
            "slow_queries",
            f"{slow_count} queries take longer than {thresholds.slow_query_ms:g}ms; "
            "add indexes or rewrite them",
        ))
    if failed:
        found.append(Recommendation(
            "failed_queries",
            f"{len(failed)} queries failed: {', '.join(item.name for item in failed)}",
        ))

    return QueryReport(
        measurements=measurements,
        success_count=len(successful),
        fail_count=len(failed),
        avg_latency_ms=avg_latency,
        slowest=slowest,
        fastest=fastest,
        top_slowest=tuple(ranked[:max(top_n, 0)]),
        failed=failed,
        slow_count=slow_count,
        recommendations=tuple(found),
    )


def render_query_report(report: QueryReport) -> str:
    lines = ["", "DATABASE PERFORMANCE REPORT", RULE, "", "Queries:"]
    for item in report.measurements:
        if item.success:
            lines.append(
                f"   ok   [{item.category.value}] {item.name}: {item.avg_latency_ms}ms "
                f"(min {item.min_latency_ms}ms, max {item.max_latency_ms}ms)"
            )
        else:
            lines.append(
                f"   FAIL [{item.category.value}] {item.name}: 0ms/0ms/0ms - {item.error}"
            )

    lines.extend([
        "",
        "Overall:",
        f"   Total queries: {report.total}",
        f"   Successful: {report.success_count}",
        f"   Failed: {report.fail_count}",
    ])
    if not report.has_data:
        lines.append(f"   Average execution time: {NO_DATA}")
    else:
        lines.extend([
            f"   Average execution time: {_fmt(report.avg_latency_ms, 'ms')}",
            f"   Slowest query: {report.slowest.name} ({report.slowest.avg_latency_ms}ms)",
            f"   Fastest query: {report.fastest.name} ({report.fastest.avg_latency_ms}ms)",
            "",
            f"Top {len(report.top_slowest)} slowest queries:",
        ])
        lines.extend(
            f"   {index}. {item.name}: {item.avg_latency_ms}ms"
            for index, item in enumerate(report.top_slowest, start=1)
        )
    lines.extend(_render_recommendations(report.recommendations))
    return "\n".join(lines)


# -----------------------------------------------------------------------------
# Monitoring sessions
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class ResourceReport:
    """Summary of a monitoring session. Heap figures are in bytes."""

    duration_sec: float
    sample_count: int
    cpu: Aggregate
    memory: Aggregate
    heap: Aggregate
    load_average: Aggregate
    cpu_core_count: int | None
    mem_total_bytes: int | None
    recommendations: tuple[Recommendation, ...]

    @property
    def has_data(self) -> bool:
        return self.sample_count > 0

    def summary_dict(self) -> dict[str, dict[str, float | None]]:
        return {
            "cpu": self.cpu.to_dict(),
            "memory": self.memory.to_dict(),
            "heap": self.heap.to_dict(),
        }


def _first_present(values: Iterable[Any]) -> Any:
    return next((value for value in values if value is not None), None)


def summarize_session(
    session: MonitoringSession, thresholds: ReportThresholds | None = None
) -> ResourceReport:
    """Aggregate the samples of a monitoring session."""
    thresholds = thresholds or ReportThresholds()
    samples = tuple(session.samples)

    cpu = Aggregate.of(sample.cpu_usage_percent for sample in samples)
    memory = Aggregate.of(sample.mem_used_percent for sample in samples)
    heap = Aggregate.of(sample.process_heap_bytes for sample in samples)
    load = Aggregate.of(sample.load_average_1m for sample in samples)
    cores = _first_present(sample.cpu_core_count for sample in samples)

    found = []
    if cpu.average is not None and cpu.average > thresholds.max_cpu_percent:
        found.append(Recommendation(
            "high_cpu",
            f"High CPU usage ({cpu.average}%); optimise the code or add cores",
        ))
    if memory.average is not None and memory.average > thresholds.max_memory_percent:
        found.append(Recommendation(
            "high_memory",
            f"High memory usage ({memory.average}%); add RAM or reduce memory use",
        ))
    if heap.average is not None and heap.average > thresholds.max_heap_mb * MB:
        found.append(Recommendation(
            "high_heap",
            f"High heap usage ({round(heap.average / MB)}MB); check for memory leaks",
        ))
    if (
        load.average is not None
        and cores
        and load.average > cores * thresholds.max_load_per_core
    ):
        found.append(Recommendation(
            "high_load",
            f"High system load ({load.average}) for {cores} cores; the host is overloaded",
        ))

    return ResourceReport(
        duration_sec=round(session.duration_sec, 3),
        sample_count=len(samples),
        cpu=cpu,
        memory=memory,
        heap=heap,
        load_average=load,
        cpu_core_count=cores,
        mem_total_bytes=_first_present(sample.mem_total_bytes for sample in samples),
        recommendations=tuple(found),
    )


def render_resource_report(report: ResourceReport) -> str:
    lines = [
        "",
        "RESOURCE MONITOR REPORT",
        RULE,
        "",
        f"Monitoring period: {round(report.duration_sec)} seconds",
        f"Samples: {report.sample_count}",
    ]
    if not report.has_data:
        lines.append(f"   {NO_DATA}: no samples were recorded")
        return "\n".join(lines)

    lines.extend([
        "",
        "CPU:",
        f"   Average: {_fmt(report.cpu.average, '%')}",
        f"   Max: {_fmt(report.cpu.maximum, '%')}",
        f"   Min: {_fmt(report.cpu.minimum, '%')}",
        f"   Cores: {report.cpu_core_count if report.cpu_core_count is not None else NO_DATA}",
        "",
        "Memory:",
        f"   Total: {_fmt(report.mem_total_bytes, 'GB', GB)}",
        f"   Average: {_fmt(report.memory.average, '%')}",
        f"   Max: {_fmt(report.memory.maximum, '%')}",
        f"   Min: {_fmt(report.memory.minimum, '%')}",
        "",
        "Traced Python heap:",
        f"   Average: {_fmt(report.heap.average, 'MB', MB, 0)}",
        f"   Max: {_fmt(report.heap.maximum, 'MB', MB, 0)}",
        f"   Min: {_fmt(report.heap.minimum, 'MB', MB, 0)}",
        "",
        "System load (1 min):",
        f"   Average: {_fmt(report.load_average.average)}",
        f"   Max: {_fmt(report.load_average.maximum)}",
    ])
    lines.extend(_render_recommendations(report.recommendations))
    return "\n".join(lines)


def session_artifact(
    session: MonitoringSession, generated_at: datetime | None = None
) -> dict[str, Any]:
    """Build the JSON artifact for a monitoring session."""
    report = summarize_session(session)
    generated_at = generated_at or datetime.now(timezone.utc)
    return {
        "timestamp": generated_at.isoformat(),
        "duration": report.duration_sec,
        "metricsCount": report.sample_count,
        "summary": report.summary_dict(),
        "rawMetrics": [sample.to_dict() for sample in session.samples],
    }


def load_artifact(report: LoadReport, generated_at: datetime | None = None) -> dict[str, Any]:
    """Build the JSON artifact for a load run."""
    generated_at = generated_at or datetime.now(timezone.utc)
    return {"timestamp": generated_at.isoformat(), **report.to_dict()}


def query_artifact(report: QueryReport, generated_at: datetime | None = None) -> dict[str, Any]:
    """Build the JSON artifact for a query benchmark."""
    generated_at = generated_at or datetime.now(timezone.utc)
    return {"timestamp": generated_at.isoformat(), **report.to_dict()}


def write_json_report(
    directory: Path | str, prefix: str, payload: dict[str, Any]
) -> Path | None:
    """
    Write ``payload`` to ``<directory>/<prefix>-<epoch ms>.json``.

    The directory is created when missing. Failures are logged and
    reported as ``None`` so callers never lose their in-memory data.
    """
    directory = Path(directory)
    path = directory / f"{prefix}-{int(time.time() * 1000)}.json"
    try:
        try:
            directory.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(payload, indent=2, default=str), encoding="utf-8")
        except OSError as exc:
            raise PersistenceError(f"Could not write report to {path}: {exc}") from exc
    except PersistenceError as exc:
        logger.error("%s", exc)
        return None

    logger.info("Report saved to %s", path)
    return path
