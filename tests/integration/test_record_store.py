"""
Integration tests for the SQLAlchemy record store and the query catalog.

Run against the SQLite test database with a small, known data set (see
the ``populated_store`` fixture).
"""

from datetime import datetime, timezone

import pytest

from harness.benchmark import QueryBenchmark
from harness.models import ProbeCategory
from harness.queries import build_query_catalog
from harness.record_store import Between, Contains
from harness.reporting import summarize_queries


pytestmark = pytest.mark.integration

YEAR_2025 = Between(
    datetime(2025, 1, 1, tzinfo=timezone.utc),
    datetime(2025, 12, 31, 23, 59, 59, tzinfo=timezone.utc),
)


class TestRecordStore:
    """Tests for the named store operations."""

    def test_count_with_equality_filter(self, populated_store):
        assert populated_store.count("calls") == 4
        assert populated_store.count("calls", {"operator_id": 1}) == 3

    def test_between_filter(self, populated_store):
        assert populated_store.count("calls", {"date_create": YEAR_2025}) == 3

    def test_contains_is_case_insensitive_by_default(self, populated_store):
        rows = populated_store.find("calls", {"city": Contains("moscow")})

        assert len(rows) == 3

    def test_case_sensitive_contains(self, populated_store):
        rows = populated_store.find("orders", {"phone": Contains("8", case_sensitive=True)})

        assert [row.phone for row in rows] == ["89990001122"]

    def test_find_sorts_limits_and_offsets(self, populated_store):
        # Act
        newest_first = populated_store.find("calls", order_by="date_create", descending=True)
        page = populated_store.find(
            "calls", order_by="date_create", descending=True, limit=2, offset=2
        )

        # Assert
        assert newest_first[-1].city == "Kazan"
        assert len(page) == 2
        assert page[-1].city == "Kazan"

    def test_group_by_returns_counts(self, populated_store):
        groups = populated_store.group_by("calls", ["status"], order_by_count=True)

        assert groups[0] == {"status": "answered", "count": 2}
        assert sum(group["count"] for group in groups) == 4

    def test_group_by_multiple_fields_with_filter(self, populated_store):
        groups = populated_store.group_by(
            "calls", ["operator_id", "status"], {"date_create": YEAR_2025}
        )

        assert {(g["operator_id"], g["status"], g["count"]) for g in groups} == {
            (1, "answered", 2),
            (1, "missed", 1),
        }

    def test_insert_returns_new_id(self, record_store):
        new_id = record_store.insert("calls", {
            "rk": "RK-1",
            "city": "Kazan",
            "phone_client": "+70000000000",
            "phone_ats": "+70000000001",
            "date_create": datetime(2025, 2, 2, tzinfo=timezone.utc),
            "operator_id": 1,
            "status": "answered",
        })

        assert new_id is not None
        assert record_store.count("calls") == 1

    def test_failed_insert_rolls_back(self, record_store):
        with pytest.raises(Exception):
            record_store.insert("calls", {"city": "Kazan"})

        assert record_store.count("calls") == 0

    @pytest.mark.parametrize(
        "operation",
        [
            lambda store: store.count("invoices"),
            lambda store: store.find("calls", {"colour": "red"}),
            lambda store: store.group_by("calls", []),
        ],
    )
    def test_invalid_arguments_raise_value_error(self, record_store, operation):
        with pytest.raises(ValueError):
            operation(record_store)

    def test_table_counts(self, populated_store):
        assert populated_store.table_counts() == {"calls": 4, "orders": 2, "operators": 2}


class TestQueryCatalog:
    """Tests for the full benchmark catalog against real tables."""

    def test_catalog_layout(self, record_store):
        catalog = build_query_catalog(record_store, iterations=2)

        categories = [probe.category for probe in catalog]
        assert categories.count(ProbeCategory.CORE) == 10
        assert categories.count(ProbeCategory.INDEX) == 4
        assert categories.count(ProbeCategory.AGGREGATE) == 4
        assert categories.count(ProbeCategory.INSERT) == 2
        assert all(
            probe.iterations == (1 if probe.category is ProbeCategory.INSERT else 2)
            for probe in catalog
        )
        assert isinstance(catalog, tuple)

    def test_read_only_catalog_skips_inserts(self, record_store):
        catalog = build_query_catalog(record_store, include_inserts=False)

        assert len(catalog) == 18

    def test_every_probe_succeeds_on_populated_store(self, populated_store):
        # Arrange
        catalog = build_query_catalog(populated_store, iterations=2)

        # Act
        measurements = QueryBenchmark(catalog).run()

        # Assert
        failures = {m.name: m.error for m in measurements if not m.success}
        assert failures == {}
        assert len(measurements) == 20
        assert populated_store.count("calls", {"status": "test"}) == 1

    def test_benchmark_report_over_real_measurements(self, populated_store):
        measurements = QueryBenchmark(
            build_query_catalog(populated_store, include_inserts=False)
        ).run()

        report = summarize_queries(measurements)

        assert report.success_count == 18
        assert report.fail_count == 0
        assert report.slowest.avg_latency_ms >= report.fastest.avg_latency_ms
        assert len(report.top_slowest) == 5
