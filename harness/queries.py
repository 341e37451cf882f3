"""
Query catalog for the database benchmark.

Probes are grouped by :class:`~harness.models.ProbeCategory` but live in a
single flat catalog:

- ``core``: counts, paginated and sorted finds, substring searches and
  status breakdowns that back the dashboard pages;
- ``index``: lookups on the indexed operator, creation-date, city and
  status columns;
- ``aggregate``: heavier group-by reports (per operator, per city, per day);
- ``insert``: single-row writes, timed once each.

Field names probed: ``operator_id`` (foreign key), ``date_create`` /
``create_date`` (creation dates), ``status`` / ``status_order``, ``city``
and ``phone``.
"""

from __future__ import annotations

from datetime import datetime, timezone

from harness.models import ProbeCategory, QueryProbe
from harness.record_store import Between, Contains, RecordStore

DEFAULT_PERIOD = (
    datetime(2025, 1, 1, tzinfo=timezone.utc),
    datetime(2025, 12, 31, 23, 59, 59, tzinfo=timezone.utc),
)


def core_probes(
    store: RecordStore,
    iterations: int = 3,
    operator_id: int = 1,
    period: tuple[datetime, datetime] = DEFAULT_PERIOD,
) -> list[QueryProbe]:
    """Everyday dashboard queries."""
    in_period = Between(*period)
    return [
        QueryProbe("Count all calls", lambda: store.count("calls"), iterations),
        QueryProbe(
            "Count calls by operator",
            lambda: store.count("calls", {"operator_id": operator_id}),
            iterations,
        ),
        QueryProbe(
            "Calls page sorted by date",
            lambda: store.find("calls", order_by="date_create", descending=True, limit=20),
            iterations,
        ),
        QueryProbe(
            "Search calls by city",
            lambda: store.find("calls", {"city": Contains("Moscow")}, limit=10),
            iterations,
        ),
        QueryProbe(
            "Group calls by status",
            lambda: store.group_by("calls", ["status"]),
            iterations,
        ),
        QueryProbe(
            "Operator statistics for period",
            lambda: store.group_by(
                "calls", ["operator_id", "status"], {"date_create": in_period}
            ),
            iterations,
        ),
        QueryProbe("Count all orders", lambda: store.count("orders"), iterations),
        QueryProbe(
            "Orders page",
            lambda: store.find("orders", order_by="create_date", descending=True, limit=20),
            iterations,
        ),
        QueryProbe(
            "Search orders by phone",
            lambda: store.find("orders", {"phone": Contains("8", case_sensitive=True)}, limit=10),
            iterations,
        ),
        QueryProbe(
            "Group orders by status",
            lambda: store.group_by("orders", ["status_order"]),
            iterations,
        ),
    ]


def index_probes(
    store: RecordStore,
    iterations: int = 3,
    operator_id: int = 1,
    period: tuple[datetime, datetime] = DEFAULT_PERIOD,
) -> list[QueryProbe]:
    """Lookups that should be served by an index."""
    in_period = Between(*period)
    return [
        QueryProbe(
            "Find calls by operator_id (indexed)",
            lambda: store.find("calls", {"operator_id": operator_id}, limit=100),
            iterations,
            ProbeCategory.INDEX,
        ),
        QueryProbe(
            "Find calls by date_create (indexed)",
            lambda: store.find("calls", {"date_create": in_period}, limit=100),
            iterations,
            ProbeCategory.INDEX,
        ),
        QueryProbe(
            "Find calls by city (indexed)",
            lambda: store.find("calls", {"city": Contains("Moscow")}, limit=100),
            iterations,
            ProbeCategory.INDEX,
        ),
        QueryProbe(
            "Find calls by status (indexed)",
            lambda: store.find("calls", {"status": "answered"}, limit=100),
            iterations,
            ProbeCategory.INDEX,
        ),
    ]


def aggregate_probes(
    store: RecordStore,
    iterations: int = 3,
    period: tuple[datetime, datetime] = DEFAULT_PERIOD,
) -> list[QueryProbe]:
    """Report-style group-by queries."""
    in_period = Between(*period)
    return [
        QueryProbe(
            "Calls per operator for period",
            lambda: store.group_by("calls", ["operator_id"], {"date_create": in_period}),
            iterations,
            ProbeCategory.AGGREGATE,
        ),
        QueryProbe(
            "Top 5 operators by calls",
            lambda: store.group_by("calls", ["operator_id"], order_by_count=True, limit=5),
            iterations,
            ProbeCategory.AGGREGATE,
        ),
        QueryProbe(
            "Calls per city",
            lambda: store.group_by("calls", ["city"], order_by_count=True),
            iterations,
            ProbeCategory.AGGREGATE,
        ),
        QueryProbe(
            "Calls per day (last 30 buckets)",
            lambda: store.group_by("calls", ["date_create"], limit=30),
            iterations,
            ProbeCategory.AGGREGATE,
        ),
    ]


def insert_probes(store: RecordStore, operator_id: int = 1) -> list[QueryProbe]:
    """Single-row writes; each is timed exactly once."""

    def insert_call():
        return store.insert("calls", {
            "rk": "TEST_RK",
            "city": "Test city",
            "phone_client": "+79999999999",
            "phone_ats": "+79999999998",
            "date_create": datetime.now(timezone.utc),
            "operator_id": operator_id,
            "status": "test",
        })

    def insert_order():
        now = datetime.now(timezone.utc)
        return store.insert("orders", {
            "rk": "TEST_RK",
            "city": "Test city",
            "phone": "+79999999999",
            "type_order": "first_time",
            "client_name": "Test client",
            "address": "Test address",
            "date_meeting": now,
            "type_equipment": "kp",
            "problem": "Test problem",
            "status_order": "new",
            "operator_id": operator_id,
            "create_date": now,
        })

    return [
        QueryProbe("Insert one call", insert_call, 1, ProbeCategory.INSERT),
        QueryProbe("Insert one order", insert_order, 1, ProbeCategory.INSERT),
    ]


def build_query_catalog(
    store: RecordStore,
    iterations: int = 3,
    operator_id: int = 1,
    period: tuple[datetime, datetime] = DEFAULT_PERIOD,
    include_inserts: bool = True,
) -> tuple[QueryProbe, ...]:
    """
    Assemble the full, immutable catalog in execution order.

    Args:
        store: Query executor every probe closes over.
        iterations: Repetitions for every read probe.
        operator_id: Operator the per-operator probes and inserts target.
        period: Date range for the period-filtered probes.
        include_inserts: Set to ``False`` against databases that must not
            be written to.
    """
    catalog = [
        *core_probes(store, iterations, operator_id, period),
        *index_probes(store, iterations, operator_id, period),
        *aggregate_probes(store, iterations, period),
    ]
    if include_inserts:
        catalog.extend(insert_probes(store, operator_id))
    return tuple(catalog)
