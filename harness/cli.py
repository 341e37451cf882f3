"""
Command line entry points.

``perf-harness`` exposes one subcommand per pipeline plus a helper that
serves the stand-in target:

- ``monitor [interval_ms]`` samples resources until SIGINT/SIGTERM (or
  ``--duration`` seconds), then prints and persists the report;
- ``load`` runs every configured concurrency tier against the API;
- ``db-bench`` runs the query catalog against the configured database;
- ``serve-target`` starts the stand-in Flask API.

``resource-monitor`` is a shortcut for ``perf-harness monitor``.

Exit codes:

- ``0`` - the run completed (recommendations do not change the code)
- ``1`` - authentication against the target failed
- ``2`` - invalid configuration or thresholds file
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from collections.abc import Sequence
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from config import get_config
from harness.benchmark import QueryBenchmark
from harness.exceptions import AuthenticationError
from harness.orchestrator import LoadOrchestrator, LoadTestConfig
from harness.queries import build_query_catalog
from harness.record_store import SqlAlchemyRecordStore
from harness.reporting import (
    load_artifact,
    query_artifact,
    render_load_report,
    render_query_report,
    render_resource_report,
    summarize_load,
    summarize_queries,
    write_json_report,
)
from harness.sampler import ResourceSampler
from harness.thresholds import load_thresholds

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_AUTH_FAILED = 1
EXIT_CONFIG_ERROR = 2

LOAD_REPORT_PREFIX = "load-test-report"
QUERY_REPORT_PREFIX = "database-performance-report"


def _positive_number(raw: str) -> float:
    try:
        value = float(raw)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected a number, got {raw!r}") from exc
    if value <= 0:
        raise argparse.ArgumentTypeError(f"expected a value > 0, got {raw!r}")
    return value


def build_parser() -> argparse.ArgumentParser:
    """Build the ``perf-harness`` argument parser."""
    parser = argparse.ArgumentParser(
        prog="perf-harness",
        description="Load testing, query benchmarking and resource monitoring.",
    )
    parser.add_argument(
        "--env",
        default=None,
        help="Configuration environment (defaults to HARNESS_ENV)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    monitor = subparsers.add_parser("monitor", help="Sample host and process resources")
    _add_monitor_arguments(monitor)

    subparsers.add_parser("load", help="Run the concurrency tiers against the API")

    bench = subparsers.add_parser("db-bench", help="Benchmark the query catalog")
    bench.add_argument(
        "--no-inserts",
        action="store_true",
        help="Skip the insert probes",
    )

    serve = subparsers.add_parser("serve-target", help="Serve the stand-in API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=5000)
    serve.add_argument(
        "--seed",
        type=int,
        default=0,
        metavar="CALLS",
        help="Insert this many demo calls before serving",
    )
    return parser


def _add_monitor_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "interval_ms",
        nargs="?",
        type=_positive_number,
        default=None,
        help="Sampling interval in milliseconds (default 1000)",
    )
    parser.add_argument(
        "--duration",
        type=_positive_number,
        default=None,
        help="Stop automatically after this many seconds",
    )
    parser.add_argument(
        "--no-db",
        action="store_true",
        help="Do not sample record-store table sizes",
    )


def _table_counts_probe(config_class: Any):
    """
    Return a callable reading row counts from the stand-in database.

    The engine is created on first use and only ever reads, so a missing
    or broken database shows up as an error marker in the samples instead
    of stopping the monitor.
    """
    from target_app.models import Call, Operator, Order

    models = {"calls": Call, "orders": Order, "operators": Operator}
    engine = None

    def probe() -> dict[str, int]:
        nonlocal engine
        if engine is None:
            engine = create_engine(config_class.SQLALCHEMY_DATABASE_URI)
        with Session(engine) as session:
            return SqlAlchemyRecordStore(session, models).table_counts()

    return probe


def run_monitor(config_class: Any, args: argparse.Namespace) -> int:
    """Sample until interrupted, then report and persist."""
    thresholds = load_thresholds(config_class.HARNESS_THRESHOLDS_PATH)
    interval_ms = args.interval_ms or config_class.HARNESS_SAMPLE_INTERVAL_MS
    probe = None if args.no_db else _table_counts_probe(config_class)

    sampler = ResourceSampler(dependent_probe=probe)
    stop_requested = threading.Event()

    def _request_stop(signum, _frame):
        logger.info("Received signal %s, stopping", signum)
        stop_requested.set()

    previous_handlers = {
        signum: signal.signal(signum, _request_stop)
        for signum in (signal.SIGINT, signal.SIGTERM)
    }
    try:
        sampler.start(interval_ms)
        print(f"Monitoring every {interval_ms:g}ms. Press Ctrl+C to stop.")
        if args.duration is not None:
            stop_requested.wait(args.duration)
        else:
            while not stop_requested.wait(0.5):
                pass
    finally:
        sampler.stop()
        for signum, handler in previous_handlers.items():
            signal.signal(signum, handler)

    print(render_resource_report(sampler.generate_report(thresholds)))
    path = sampler.persist(config_class.HARNESS_RESULTS_DIR)
    if path is not None:
        print(f"\nReport saved to {path}")
    return EXIT_OK


def run_load(config_class: Any) -> int:
    """Run every tier and print the load report."""
    thresholds = load_thresholds(config_class.HARNESS_THRESHOLDS_PATH)
    orchestrator = LoadOrchestrator(LoadTestConfig.from_config(config_class))
    try:
        results = orchestrator.run_all()
    except AuthenticationError as exc:
        logger.error("Load test aborted: %s", exc)
        print(f"Authentication failed: {exc}", file=sys.stderr)
        return EXIT_AUTH_FAILED

    report = summarize_load(results, thresholds)
    print(render_load_report(report))
    path = write_json_report(
        config_class.HARNESS_RESULTS_DIR, LOAD_REPORT_PREFIX, load_artifact(report)
    )
    if path is not None:
        print(f"\nReport saved to {path}")
    return EXIT_OK


def run_db_bench(config_class: Any, args: argparse.Namespace) -> int:
    """Benchmark the query catalog against the configured database."""
    from target_app import create_app, db
    from target_app.models import Call, Operator, Order

    thresholds = load_thresholds(config_class.HARNESS_THRESHOLDS_PATH)
    app = create_app(args.env)
    with app.app_context():
        store = SqlAlchemyRecordStore(
            db.session, {"calls": Call, "orders": Order, "operators": Operator}
        )
        catalog = build_query_catalog(
            store,
            iterations=config_class.HARNESS_QUERY_ITERATIONS,
            include_inserts=not args.no_inserts,
        )
        measurements = QueryBenchmark(catalog).run()

    report = summarize_queries(measurements, thresholds)
    print(render_query_report(report))
    path = write_json_report(
        config_class.HARNESS_RESULTS_DIR, QUERY_REPORT_PREFIX, query_artifact(report)
    )
    if path is not None:
        print(f"\nReport saved to {path}")
    return EXIT_OK


def run_serve_target(args: argparse.Namespace) -> int:
    """Serve the stand-in API, optionally seeding demo data first."""
    from target_app import create_app
    from target_app.seed import seed_demo_data

    app = create_app(args.env)
    if args.seed:
        with app.app_context():
            seed_demo_data(calls=args.seed, orders=max(args.seed // 2, 1))
    app.run(host=args.host, port=args.port, debug=False, use_reloader=False, threaded=True)
    return EXIT_OK


def main(argv: Sequence[str] | None = None) -> int:
    """
    Entry point for ``perf-harness``.

    Returns:
        Process exit code, see the module docstring.
    """
    args = build_parser().parse_args(argv)

    try:
        config_class = get_config(args.env)
        if args.command == "monitor":
            return run_monitor(config_class, args)
        if args.command == "load":
            return run_load(config_class)
        if args.command == "db-bench":
            return run_db_bench(config_class, args)
        return run_serve_target(args)
    except ValueError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return EXIT_CONFIG_ERROR


def monitor_main(argv: Sequence[str] | None = None) -> int:
    """Entry point for ``resource-monitor [interval_ms]``."""
    parser = argparse.ArgumentParser(
        prog="resource-monitor",
        description="Sample host and process resources until interrupted.",
    )
    _add_monitor_arguments(parser)
    args = parser.parse_args(argv)
    args.env = None

    try:
        return run_monitor(get_config(), args)
    except ValueError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return EXIT_CONFIG_ERROR


if __name__ == "__main__":
    raise SystemExit(main())
