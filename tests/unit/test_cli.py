"""
Unit tests for the command line entry points.

Collaborators that would touch the network are replaced through
``monkeypatch`` on the ``harness.cli`` module.
"""

import json

import pytest

from config import TestingConfig
from harness import cli
from harness.exceptions import AuthenticationError
from harness.models import RunResult


pytestmark = pytest.mark.unit


@pytest.fixture
def results_dir(tmp_path, monkeypatch):
    """Point report artifacts at a temporary directory."""
    directory = tmp_path / "reports"
    monkeypatch.setattr(TestingConfig, "HARNESS_RESULTS_DIR", directory)
    return directory


def _orchestrator_returning(results=None, error=None):
    class FakeOrchestrator:
        def __init__(self, config):
            self.config = config

        def run_all(self):
            if error is not None:
                raise error
            return results

    return FakeOrchestrator


def test_load_authentication_failure_exits_with_one(monkeypatch, results_dir, capsys):
    # Arrange
    monkeypatch.setattr(
        cli,
        "LoadOrchestrator",
        _orchestrator_returning(error=AuthenticationError("Login rejected with status 401")),
    )

    # Act
    exit_code = cli.main(["--env", "testing", "load"])

    # Assert
    assert exit_code == cli.EXIT_AUTH_FAILED
    assert "Authentication failed" in capsys.readouterr().err
    assert not results_dir.exists()


def test_load_prints_and_persists_report(monkeypatch, results_dir, capsys):
    result = RunResult(1, 2.0, 10, 10, 5.0, 1.0, 9.0, 5.0)
    monkeypatch.setattr(cli, "LoadOrchestrator", _orchestrator_returning(results=[result]))

    exit_code = cli.main(["--env", "testing", "load"])

    assert exit_code == cli.EXIT_OK
    assert "LOAD TEST REPORT" in capsys.readouterr().out
    [artifact] = results_dir.glob(f"{cli.LOAD_REPORT_PREFIX}-*.json")
    assert json.loads(artifact.read_text(encoding="utf-8"))["summary"]["totalRequests"] == 10


def test_monitor_runs_for_duration_and_persists(results_dir, capsys):
    exit_code = cli.main(["--env", "testing", "monitor", "20", "--duration", "0.2", "--no-db"])

    assert exit_code == cli.EXIT_OK
    output = capsys.readouterr().out
    assert "RESOURCE MONITOR REPORT" in output
    [artifact] = results_dir.glob("resource-monitor-report-*.json")
    assert json.loads(artifact.read_text(encoding="utf-8"))["metricsCount"] >= 1


def test_monitor_survives_corrupt_database(tmp_path, monkeypatch, results_dir, capsys):
    # Arrange
    corrupt = tmp_path / "corrupt.db"
    corrupt.write_bytes(b"this is not a sqlite database" * 100)
    monkeypatch.setattr(TestingConfig, "SQLALCHEMY_DATABASE_URI", f"sqlite:///{corrupt}")

    # Act
    exit_code = cli.main(["--env", "testing", "monitor", "20", "--duration", "0.5"])

    # Assert
    assert exit_code == cli.EXIT_OK
    assert "RESOURCE MONITOR REPORT" in capsys.readouterr().out
    [artifact] = results_dir.glob("resource-monitor-report-*.json")
    samples = json.loads(artifact.read_text(encoding="utf-8"))["rawMetrics"]
    assert samples
    assert all("error" in sample["dependentCounts"] for sample in samples)
    assert corrupt.read_bytes().startswith(b"this is not a sqlite database")


def test_monitor_counts_rows_without_creating_tables(tmp_path, monkeypatch, results_dir):
    empty = tmp_path / "empty.db"
    monkeypatch.setattr(TestingConfig, "SQLALCHEMY_DATABASE_URI", f"sqlite:///{empty}")

    exit_code = cli.main(["--env", "testing", "monitor", "20", "--duration", "0.5"])

    assert exit_code == cli.EXIT_OK
    [artifact] = results_dir.glob("resource-monitor-report-*.json")
    samples = json.loads(artifact.read_text(encoding="utf-8"))["rawMetrics"]
    assert "no such table" in samples[0]["dependentCounts"]["error"]


def test_malformed_environment_setting_exits_with_two(monkeypatch, results_dir, capsys):
    monkeypatch.setenv("HARNESS_CONCURRENCY_TIERS", "1,five")
    monkeypatch.setattr(cli, "LoadOrchestrator", _orchestrator_returning(results=[]))

    exit_code = cli.main(["--env", "development", "load"])

    assert exit_code == cli.EXIT_CONFIG_ERROR
    err = capsys.readouterr().err
    assert "Invalid configuration" in err
    assert "HARNESS_CONCURRENCY_TIERS" in err


def test_invalid_thresholds_exit_with_two(tmp_path, monkeypatch, results_dir, capsys):
    bad = tmp_path / "thresholds.yml"
    bad.write_text("max_cpu_percent: lots\n", encoding="utf-8")
    monkeypatch.setattr(TestingConfig, "HARNESS_THRESHOLDS_PATH", bad)

    exit_code = cli.main(["--env", "testing", "monitor", "--duration", "0.05", "--no-db"])

    assert exit_code == cli.EXIT_CONFIG_ERROR
    assert "Invalid configuration" in capsys.readouterr().err


@pytest.mark.parametrize("interval", ["0", "-5", "fast"])
def test_monitor_rejects_bad_interval(interval):
    with pytest.raises(SystemExit):
        cli.monitor_main([interval])


def test_subcommand_is_required():
    with pytest.raises(SystemExit):
        cli.main([])
