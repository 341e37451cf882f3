"""
Virtual-user simulation.

A :class:`VirtualUserSimulator` is one simulated client: it loops over
random scenarios until its tier's wall clock runs out, strictly one
request at a time. Every request becomes a
:class:`~harness.models.RequestOutcome` pushed into a shared
:class:`OutcomeCollector`; failures are recorded, never raised.
"""

from __future__ import annotations

import logging
import random
import threading
import time
from collections.abc import Callable, Sequence
from typing import Any

from harness.exceptions import RequestError
from harness.http_client import send
from harness.models import RequestOutcome, Scenario
from harness.scenarios import pick_scenario

logger = logging.getLogger(__name__)


class OutcomeCollector:
    """
    Mutex-guarded, append-only outcome store for one tier.

    Virtual users run on worker threads, so appends are serialised with a
    lock; readers get an immutable snapshot.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._outcomes: list[RequestOutcome] = []

    def record(self, outcome: RequestOutcome) -> None:
        with self._lock:
            self._outcomes.append(outcome)

    def snapshot(self) -> tuple[RequestOutcome, ...]:
        with self._lock:
            return tuple(self._outcomes)

    def __len__(self) -> int:
        with self._lock:
            return len(self._outcomes)


class VirtualUserSimulator:
    """
    Request loop of a single simulated client.

    Attributes:
        user_id: 1-based index within the tier, used for log lines.
        session: HTTP session owned by this user only.
        base_url: API root scenario paths are relative to.
        scenarios: Catalog to pick from.
        collector: Shared tier collector.
        request_delay_ms: Sleep after every request; ``0`` is valid.
        timeout: Per-request timeout in seconds.
    """

    def __init__(
        self,
        user_id: int,
        session: Any,
        base_url: str,
        scenarios: Sequence[Scenario],
        collector: OutcomeCollector,
        request_delay_ms: float = 100.0,
        timeout: float = 10.0,
        rng: random.Random | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.user_id = user_id
        self.session = session
        self.base_url = base_url
        self.scenarios = scenarios
        self.collector = collector
        self.request_delay_ms = request_delay_ms
        self.timeout = timeout
        self._rng = rng or random.Random()
        self._sleep = sleep

    def execute(self, scenario: Scenario) -> RequestOutcome:
        """
        Issue one request and convert the result into an outcome.

        Nothing raised while building or sending the request escapes;
        unexpected errors are recorded with status ``0``.
        """
        timestamp = time.time()
        started = time.perf_counter()
        try:
            status_code = send(self.session, self.base_url, scenario, self.timeout)
        except RequestError as exc:
            return self._failed(scenario, timestamp, started, exc.status_code, str(exc))
        except Exception as exc:
            logger.debug(
                "Virtual user %s: unexpected error in %r: %r", self.user_id, scenario.name, exc
            )
            return self._failed(
                scenario, timestamp, started, 0, str(exc) or exc.__class__.__name__
            )
        return RequestOutcome(
            scenario_name=scenario.name,
            success=True,
            status_code=status_code,
            latency_ms=(time.perf_counter() - started) * 1000,
            timestamp=timestamp,
        )

    @staticmethod
    def _failed(
        scenario: Scenario, timestamp: float, started: float, status_code: int, error: str
    ) -> RequestOutcome:
        return RequestOutcome(
            scenario_name=scenario.name,
            success=False,
            status_code=status_code,
            latency_ms=(time.perf_counter() - started) * 1000,
            timestamp=timestamp,
            error=error,
        )

    def run(self, duration_sec: float) -> int:
        """
        Loop until ``duration_sec`` of wall-clock time has elapsed.

        Returns:
            Number of requests this user issued.
        """
        logger.info("Virtual user %s started", self.user_id)
        deadline = time.monotonic() + duration_sec
        issued = 0

        while time.monotonic() < deadline:
            scenario = pick_scenario(self.scenarios, self._rng)
            self.collector.record(self.execute(scenario))
            issued += 1
            self._sleep(self.request_delay_ms / 1000)

        logger.info("Virtual user %s finished (%s requests)", self.user_id, issued)
        return issued
