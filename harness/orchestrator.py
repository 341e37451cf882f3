"""
Load orchestration across concurrency tiers.

The orchestrator authenticates exactly once, then for every configured
tier fans out ``concurrency`` virtual users on a thread pool, waits for
all of them (the tier barrier), derives the tier's
:class:`~harness.models.RunResult`, and settles before the next tier.
Tiers never overlap and never share an outcome collector.
"""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any

from harness.http_client import authenticate, build_session
from harness.models import RunResult, Scenario
from harness.scenarios import default_scenarios
from harness.simulator import OutcomeCollector, VirtualUserSimulator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoadTestConfig:
    """
    Parameters of one multi-tier load run.

    Attributes:
        base_url: API root, including the ``/api`` prefix.
        login: Account used for the single authentication call.
        password: Password for ``login``.
        concurrency_tiers: Virtual-user counts, executed in order.
        duration_sec: Wall-clock length of each tier.
        request_delay_ms: Pause after each request of a virtual user.
        settle_pause_sec: Pause between tiers.
        request_timeout_sec: Per-request HTTP timeout.
    """

    base_url: str
    login: str
    password: str
    concurrency_tiers: tuple[int, ...] = (1, 5, 10, 20, 50)
    duration_sec: float = 30.0
    request_delay_ms: float = 100.0
    settle_pause_sec: float = 5.0
    request_timeout_sec: float = 10.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "concurrency_tiers", tuple(self.concurrency_tiers))
        if not self.concurrency_tiers:
            raise ValueError("At least one concurrency tier is required")
        if any(tier < 1 for tier in self.concurrency_tiers):
            raise ValueError("Concurrency tiers must be >= 1")
        if self.duration_sec < 0:
            raise ValueError("duration_sec must be >= 0")
        if self.request_delay_ms < 0:
            raise ValueError("request_delay_ms must be >= 0")
        if self.settle_pause_sec < 0:
            raise ValueError("settle_pause_sec must be >= 0")

    @classmethod
    def from_config(cls, config_class: Any) -> LoadTestConfig:
        """Build from one of the classes in :mod:`config`."""
        return cls(
            base_url=config_class.HARNESS_BASE_URL,
            login=config_class.HARNESS_LOGIN,
            password=config_class.HARNESS_PASSWORD,
            concurrency_tiers=tuple(config_class.HARNESS_CONCURRENCY_TIERS),
            duration_sec=config_class.HARNESS_DURATION_SEC,
            request_delay_ms=config_class.HARNESS_REQUEST_DELAY_MS,
            settle_pause_sec=config_class.HARNESS_SETTLE_PAUSE_SEC,
            request_timeout_sec=config_class.HARNESS_REQUEST_TIMEOUT_SEC,
        )


class LoadOrchestrator:
    """
    Runs every concurrency tier of a :class:`LoadTestConfig`.

    Collaborators are injectable so tests can swap the network out:

    Args:
        config: Run parameters.
        scenarios: Scenario catalog; defaults to
            :func:`~harness.scenarios.default_scenarios`.
        session_factory: ``token -> session``; one session per virtual user.
        authenticator: ``(base_url, login, password, timeout) -> token``;
            raises :class:`~harness.exceptions.AuthenticationError`.
        sleep: Used for the inter-tier pause and the inter-request delay.
        seed: Optional seed; virtual user *n* gets ``Random(seed + n)``.
    """

    def __init__(
        self,
        config: LoadTestConfig,
        scenarios: Sequence[Scenario] | None = None,
        session_factory: Callable[[str], Any] = build_session,
        authenticator: Callable[..., str] = authenticate,
        sleep: Callable[[float], None] = time.sleep,
        seed: int | None = None,
    ):
        self.config = config
        self.scenarios = tuple(scenarios) if scenarios is not None else default_scenarios()
        self.session_factory = session_factory
        self.authenticator = authenticator
        self._sleep = sleep
        self._seed = seed

    def _rng_for(self, user_id: int) -> random.Random:
        if self._seed is None:
            return random.Random()
        return random.Random(self._seed + user_id)

    def run_tier(self, concurrency: int, token: str) -> RunResult:
        """
        Run one tier and block until every virtual user has finished.

        Args:
            concurrency: Number of virtual users.
            token: Bearer token shared read-only by every user.

        Returns:
            The tier's aggregate, computed from this tier's outcomes only.
        """
        logger.info("Starting tier with %s virtual users", concurrency)
        collector = OutcomeCollector()
        sessions = [self.session_factory(token) for _ in range(concurrency)]
        simulators = [
            VirtualUserSimulator(
                user_id=user_id,
                session=session,
                base_url=self.config.base_url,
                scenarios=self.scenarios,
                collector=collector,
                request_delay_ms=self.config.request_delay_ms,
                timeout=self.config.request_timeout_sec,
                rng=self._rng_for(user_id),
                sleep=self._sleep,
            )
            for user_id, session in enumerate(sessions, start=1)
        ]

        started = time.perf_counter()
        try:
            with ThreadPoolExecutor(
                max_workers=concurrency, thread_name_prefix=f"vu-{concurrency}"
            ) as executor:
                futures = [
                    executor.submit(simulator.run, self.config.duration_sec)
                    for simulator in simulators
                ]
                for future in futures:
                    future.result()
        finally:
            for session in sessions:
                close = getattr(session, "close", None)
                if close is not None:
                    close()
        elapsed = time.perf_counter() - started

        result = RunResult.from_outcomes(
            concurrency=concurrency,
            duration_sec=self.config.duration_sec,
            outcomes=collector.snapshot(),
            elapsed_sec=elapsed,
        )
        logger.info(
            "Tier %s finished: %s requests, %.1f%% success, avg %.2fms "
            "(min %.2fms / max %.2fms), %.2f req/s",
            concurrency,
            result.total_requests,
            result.success_rate,
            result.avg_latency_ms,
            result.min_latency_ms,
            result.max_latency_ms,
            result.requests_per_sec,
        )
        if result.distinct_errors:
            logger.warning("Tier %s errors: %s", concurrency, ", ".join(result.distinct_errors))
        return result

    def run_all(self) -> list[RunResult]:
        """
        Authenticate, then run every tier sequentially.

        Raises:
            AuthenticationError: If the login fails; no tier runs.
        """
        logger.info("Load test starting against %s", self.config.base_url)
        token = self.authenticator(
            self.config.base_url,
            self.config.login,
            self.config.password,
            self.config.request_timeout_sec,
        )

        results: list[RunResult] = []
        tiers = self.config.concurrency_tiers
        for index, concurrency in enumerate(tiers):
            results.append(self.run_tier(concurrency, token))
            if index < len(tiers) - 1 and self.config.settle_pause_sec > 0:
                logger.info("Settling %.1fs before the next tier", self.config.settle_pause_sec)
                self._sleep(self.config.settle_pause_sec)
        return results
