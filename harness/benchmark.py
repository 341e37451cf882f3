"""
Sequential query benchmark.

Probes run one after another, never concurrently, so the measured time is
the query's cost rather than scheduling noise. A probe that raises on any
iteration stops immediately and is reported as failed with zero
latencies; its siblings still run.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence

from harness.exceptions import QueryError
from harness.models import QueryMeasurement, QueryProbe

logger = logging.getLogger(__name__)


def _run_iterations(probe: QueryProbe) -> list[float]:
    """Time every iteration of ``probe`` in milliseconds."""
    timings: list[float] = []
    for iteration in range(1, probe.iterations + 1):
        started = time.perf_counter()
        try:
            probe.executor()
        except Exception as exc:
            raise QueryError(str(exc) or exc.__class__.__name__) from exc
        timings.append((time.perf_counter() - started) * 1000)
        logger.debug("%s iteration %s: %.2fms", probe.name, iteration, timings[-1])
    return timings


def measure_probe(probe: QueryProbe) -> QueryMeasurement:
    """
    Execute one probe ``iterations`` times and summarise the timings.

    Returns:
        A successful measurement, or a failed one carrying the error
        string of the first failing iteration.
    """
    try:
        timings = _run_iterations(probe)
    except QueryError as exc:
        logger.error('Query "%s" failed: %s', probe.name, exc)
        return QueryMeasurement.failed(probe, str(exc))

    measurement = QueryMeasurement.from_timings(probe, timings)
    logger.info(
        "%s: %.2fms (min %.2fms, max %.2fms)",
        measurement.name,
        measurement.avg_latency_ms,
        measurement.min_latency_ms,
        measurement.max_latency_ms,
    )
    return measurement


class QueryBenchmark:
    """
    Runs a probe catalog in order.

    Args:
        catalog: Probes to execute, typically from
            :func:`~harness.queries.build_query_catalog`.
    """

    def __init__(self, catalog: Sequence[QueryProbe]):
        self.catalog = tuple(catalog)

    def run(self) -> list[QueryMeasurement]:
        """Measure every probe; the result has one entry per probe, in order."""
        logger.info("Benchmarking %s queries", len(self.catalog))
        measurements = [measure_probe(probe) for probe in self.catalog]
        failed = sum(1 for measurement in measurements if not measurement.success)
        logger.info("Query benchmark finished: %s ok, %s failed", len(measurements) - failed, failed)
        return measurements
