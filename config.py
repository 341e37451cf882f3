"""
Configuration classes for the performance harness and its stand-in target.

Centralises every environment-dependent setting (target URL, credentials,
load tiers, sampling interval, result locations, database URI) into a
hierarchy of configuration classes. The base ``Config`` class defines
development defaults, while subclasses override only what differs per
environment.

The same classes feed both the harness (via
:meth:`harness.orchestrator.LoadTestConfig.from_config`) and the Flask
stand-in target (via ``app.config.from_object``), so they keep Flask's
upper-case attribute convention.
"""

from __future__ import annotations

import os
from collections.abc import Callable
from pathlib import Path
from typing import Any

# Base directory of the project
BASE_DIR = Path(__file__).resolve().parent


def _int_list(raw: str) -> list[int]:
    """Parse a comma separated list of integers such as ``"1,5,10"``."""
    values = [chunk.strip() for chunk in raw.split(",") if chunk.strip()]
    try:
        return [int(value) for value in values]
    except ValueError as exc:
        raise ValueError(f"Expected a comma separated list of integers, got {raw!r}") from exc


class _FromEnv:
    """
    Class attribute parsed from an environment variable on every access.

    A malformed value raises ``ValueError`` naming the variable when the
    setting is read, not when this module is imported.
    """

    def __init__(self, env_var: str, default: str, parse: Callable[[str], Any] = str):
        self.env_var = env_var
        self.default = default
        self.parse = parse

    def __get__(self, instance: Any, owner: type | None = None) -> Any:
        raw = os.environ.get(self.env_var, self.default)
        try:
            return self.parse(raw)
        except ValueError as exc:
            raise ValueError(f"{self.env_var}: {exc}") from exc


class Config:
    """
    Base configuration with development-safe defaults.

    Attributes:
        HARNESS_BASE_URL: Root URL of the API under test (includes ``/api``).
        HARNESS_LOGIN: Login used for the single authentication call.
        HARNESS_PASSWORD: Password used for the single authentication call.
        HARNESS_CONCURRENCY_TIERS: Virtual-user counts, one load tier each.
        HARNESS_DURATION_SEC: Wall-clock length of every load tier.
        HARNESS_REQUEST_DELAY_MS: Pause between two requests of one virtual user.
        HARNESS_SETTLE_PAUSE_SEC: Pause between two consecutive tiers.
        HARNESS_REQUEST_TIMEOUT_SEC: Per-request HTTP timeout.
        HARNESS_QUERY_ITERATIONS: Repetitions of every read probe.
        HARNESS_SAMPLE_INTERVAL_MS: Default resource sampling interval.
        HARNESS_RESULTS_DIR: Directory receiving JSON report artifacts.
        HARNESS_THRESHOLDS_PATH: YAML file with recommendation thresholds.
        SQLALCHEMY_DATABASE_URI: Record store used by the target and the
            query benchmark.
    """

    HARNESS_BASE_URL: str = os.environ.get("HARNESS_BASE_URL", "http://localhost:5000/api")
    HARNESS_LOGIN: str = os.environ.get("HARNESS_LOGIN", "admin")
    HARNESS_PASSWORD: str = os.environ.get("HARNESS_PASSWORD", "admin123")
    HARNESS_CONCURRENCY_TIERS = _FromEnv("HARNESS_CONCURRENCY_TIERS", "1,5,10,20,50", _int_list)
    HARNESS_DURATION_SEC = _FromEnv("HARNESS_DURATION_SEC", "30", float)
    HARNESS_REQUEST_DELAY_MS = _FromEnv("HARNESS_REQUEST_DELAY_MS", "100", float)
    HARNESS_SETTLE_PAUSE_SEC = _FromEnv("HARNESS_SETTLE_PAUSE_SEC", "5", float)
    HARNESS_REQUEST_TIMEOUT_SEC = _FromEnv("HARNESS_REQUEST_TIMEOUT_SEC", "10", float)
    HARNESS_QUERY_ITERATIONS = _FromEnv("HARNESS_QUERY_ITERATIONS", "3", int)
    HARNESS_SAMPLE_INTERVAL_MS = _FromEnv("HARNESS_SAMPLE_INTERVAL_MS", "1000", int)
    HARNESS_RESULTS_DIR: Path = Path(
        os.environ.get("HARNESS_RESULTS_DIR", str(BASE_DIR / "reports"))
    )
    HARNESS_THRESHOLDS_PATH: Path = Path(
        os.environ.get("HARNESS_THRESHOLDS_PATH", str(BASE_DIR / "thresholds.yml"))
    )

    # Stand-in target (Flask) settings
    SECRET_KEY: str = os.environ.get("SECRET_KEY", "dev-secret-key-change-in-production")
    SQLALCHEMY_TRACK_MODIFICATIONS: bool = False
    SQLALCHEMY_DATABASE_URI: str = os.environ.get(
        "DATABASE_URL",
        f"sqlite:///{BASE_DIR / 'instance' / 'callcentre.db'}"
    )
    TARGET_ADMIN_LOGIN: str = os.environ.get("TARGET_ADMIN_LOGIN", "admin")
    TARGET_ADMIN_PASSWORD: str = os.environ.get("TARGET_ADMIN_PASSWORD", "admin123")
    TARGET_LATENCY_MS = _FromEnv("TARGET_LATENCY_MS", "0", float)
    TARGET_TOKEN_EXPIRY_HOURS = _FromEnv("TARGET_TOKEN_EXPIRY_HOURS", "24", int)


class DevelopmentConfig(Config):
    """Development environment configuration."""

    DEBUG: bool = True
    TESTING: bool = False


class TestingConfig(Config):
    """
    Testing environment configuration.

    Shrinks every timing knob so that end-to-end runs finish in seconds,
    and points the target at a dedicated SQLite file. ``check_same_thread``
    is disabled because the live-server fixture serves from a separate
    thread.
    """

    DEBUG: bool = True
    TESTING: bool = True

    HARNESS_CONCURRENCY_TIERS: list[int] = [1, 5]
    HARNESS_DURATION_SEC: float = 2.0
    HARNESS_REQUEST_DELAY_MS: float = 100.0
    HARNESS_SETTLE_PAUSE_SEC: float = 0.0
    HARNESS_REQUEST_TIMEOUT_SEC: float = 5.0

    SQLALCHEMY_DATABASE_URI: str = os.environ.get(
        "TEST_DATABASE_URL",
        f"sqlite:///{BASE_DIR / 'instance' / 'test_callcentre.db'}?check_same_thread=False"
    )
    SQLALCHEMY_ENGINE_OPTIONS: dict = {
        "pool_pre_ping": True,
    }


class ProductionConfig(Config):
    """Production environment configuration."""

    DEBUG: bool = False
    TESTING: bool = False


# Configuration mapping for easy access
config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}


def get_config(env: str | None = None) -> type[Config]:
    """
    Get the configuration class for the specified environment.

    Args:
        env: Environment name (development, testing, production).
             If None, uses the HARNESS_ENV environment variable.

    Returns:
        Configuration class for the specified environment.
    """
    if env is None:
        env = os.environ.get("HARNESS_ENV", "development")
    return config.get(env, config["default"])
