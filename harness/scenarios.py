"""
Scenario catalog for the load tester.

The default catalog covers the list-style read endpoints an operator
dashboard hits most: paginated calls, orders and employees, the personal
statistics page and the own-profile lookup. Paths are relative to the
configured base URL (which already contains ``/api``).
"""

from __future__ import annotations

import random
from collections.abc import Sequence

from harness.models import HttpMethod, Scenario

DEFAULT_PAGE = {"page": 1, "limit": 20}


def default_scenarios() -> tuple[Scenario, ...]:
    """Return the built-in, immutable scenario catalog."""
    return (
        Scenario(
            name="List calls",
            method=HttpMethod.GET,
            path="/calls",
            params=DEFAULT_PAGE,
        ),
        Scenario(
            name="List orders",
            method=HttpMethod.GET,
            path="/orders",
            params=DEFAULT_PAGE,
        ),
        Scenario(
            name="List employees",
            method=HttpMethod.GET,
            path="/employees",
            params=DEFAULT_PAGE,
        ),
        Scenario(
            name="Personal statistics",
            method=HttpMethod.GET,
            path="/stats/my",
            params={"startDate": "2025-01-01", "endDate": "2025-12-31"},
        ),
        Scenario(
            name="Own profile",
            method=HttpMethod.GET,
            path="/auth/profile",
        ),
    )


def pick_scenario(scenarios: Sequence[Scenario], rng: random.Random | None = None) -> Scenario:
    """
    Choose one scenario uniformly at random.

    Args:
        scenarios: Non-empty catalog to pick from.
        rng: Optional random source; each virtual user owns its own so
            that seeded runs are reproducible per user.

    Raises:
        ValueError: If the catalog is empty.
    """
    if not scenarios:
        raise ValueError("Scenario catalog is empty")
    return (rng or random).choice(scenarios)
