"""
Unit tests for configuration loading and recommendation thresholds.
"""

import pytest

import config as config_module
from harness.thresholds import ReportThresholds, load_thresholds


pytestmark = pytest.mark.unit


class TestConfig:
    """Tests for the environment-keyed configuration classes."""

    def test_get_config_uses_harness_env(self, monkeypatch):
        monkeypatch.setenv("HARNESS_ENV", "production")

        assert config_module.get_config() is config_module.ProductionConfig

    def test_unknown_environment_falls_back_to_development(self):
        assert config_module.get_config("staging") is config_module.DevelopmentConfig

    def test_tier_list_parsing_tolerates_spaces(self):
        assert config_module._int_list("2, 4,8") == [2, 4, 8]

    def test_numeric_settings_are_read_when_accessed(self, monkeypatch):
        monkeypatch.setenv("HARNESS_CONCURRENCY_TIERS", "3, 6")
        monkeypatch.setenv("HARNESS_DURATION_SEC", "12.5")

        assert config_module.DevelopmentConfig.HARNESS_CONCURRENCY_TIERS == [3, 6]
        assert config_module.DevelopmentConfig.HARNESS_DURATION_SEC == 12.5

    def test_malformed_setting_names_its_variable(self, monkeypatch):
        monkeypatch.setenv("HARNESS_QUERY_ITERATIONS", "many")

        with pytest.raises(ValueError, match="HARNESS_QUERY_ITERATIONS"):
            config_module.ProductionConfig.HARNESS_QUERY_ITERATIONS

    def test_testing_overrides_ignore_environment(self, monkeypatch):
        monkeypatch.setenv("HARNESS_CONCURRENCY_TIERS", "1,five")

        assert config_module.TestingConfig.HARNESS_CONCURRENCY_TIERS == [1, 5]

    def test_invalid_tier_list_raises(self):
        with pytest.raises(ValueError, match="comma separated"):
            config_module._int_list("1,five")


class TestThresholds:
    """Tests for YAML-backed thresholds."""

    def test_missing_file_gives_defaults(self, tmp_path):
        assert load_thresholds(tmp_path / "absent.yml") == ReportThresholds()
        assert load_thresholds(None) == ReportThresholds()

    def test_partial_file_keeps_other_defaults(self, tmp_path):
        path = tmp_path / "thresholds.yml"
        path.write_text("max_cpu_percent: 60\nslow_query_ms: 250.5\n", encoding="utf-8")

        thresholds = load_thresholds(path)

        assert thresholds.max_cpu_percent == 60.0
        assert thresholds.slow_query_ms == 250.5
        assert thresholds.min_success_rate_percent == 95.0

    def test_project_file_matches_defaults(self):
        assert load_thresholds(config_module.Config.HARNESS_THRESHOLDS_PATH) == ReportThresholds()

    @pytest.mark.parametrize(
        "content",
        [
            "unknown_key: 1\n",
            "max_cpu_percent: high\n",
            "max_cpu_percent: true\n",
            "- 1\n- 2\n",
        ],
    )
    def test_invalid_content_raises(self, tmp_path, content):
        path = tmp_path / "thresholds.yml"
        path.write_text(content, encoding="utf-8")

        with pytest.raises(ValueError):
            load_thresholds(path)
