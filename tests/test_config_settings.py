"""
Tests for config.settings / config.schemas / config.environment
Focus on YAML loading, pydantic validation fallback and env overrides
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from unittest.mock import patch

import pytest

from config.environment import EnvironmentConfig, get_env_config, reset_env_config_cache
from config.schemas import DEFAULT_PILLAR_BUDGETS, validate_config_dict
from config.settings import (
    PROJECT_ROOT,
    _as_path,
    _coerce_int,
    _env_float,
    _load_config_generic,
    get_facet_defaults,
    get_settings,
)


def _write_yaml(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return path


class TestEnvironmentUtilities:
    """Test environment variable utility functions"""

    def test_env_float_with_valid_env(self):
        with patch.dict(os.environ, {"TEST_FLOAT": "3.14"}):
            assert abs(_env_float("TEST_FLOAT", 1.0) - 3.14) < 0.001

    def test_env_float_with_invalid_env(self):
        with patch.dict(os.environ, {"TEST_FLOAT": "not_a_float"}):
            assert _env_float("TEST_FLOAT", 2.5) == 2.5

    @pytest.mark.parametrize("value,expected", [(3, 3), (2.9, 2), ("7", 7), (" 4 ", 4), ("x", 9), (None, 9), (True, 1)])
    def test_coerce_int(self, value, expected):
        assert _coerce_int(value, 9) == expected

    def test_as_path(self, tmp_path):
        assert _as_path(tmp_path, "a/b.csv") == tmp_path / "a" / "b.csv"
        assert _as_path(Path("/ignored"), tmp_path) == tmp_path

    def test_load_config_generic_missing_file(self, tmp_path):
        with patch.dict(os.environ, {"APP_CONFIG": ""}):
            assert _load_config_generic("APP_CONFIG", tmp_path / "none.yaml", lambda f: {"x": 1}) == {}

    def test_load_config_generic_broken_yaml(self, tmp_path):
        import yaml

        path = _write_yaml(tmp_path, "budget: [unclosed")
        assert _load_config_generic("NO_SUCH_VAR", path, yaml.safe_load) == {}


class TestGetSettings:
    def test_defaults_from_bundled_yaml(self):
        with patch.dict(os.environ, {}, clear=True):
            s = get_settings()
        assert s.PROJECT_ROOT == PROJECT_ROOT
        assert s.TEMPLATE_CSV == PROJECT_ROOT / "data" / "template.csv"
        assert s.budget.pillars == DEFAULT_PILLAR_BUDGETS
        assert s.budget.total == 100.0
        assert s.export.default_filename == "new.csv"
        assert s.export.weight_decimals == 2
        assert s.logging.level == "INFO"
        assert s.facets == {}

    def test_env_overrides(self, tmp_path):
        env = {
            "PILLAR_BUDGET": "10",
            "EXPORT_DIR": str(tmp_path / "out"),
            "LOGS_DIR": str(tmp_path / "logs"),
            "LOG_LEVEL": "debug",
            "DEFAULT_EXPORT_FILENAME": "plan.csv",
            "TEMPLATE_CSV": "other/template.csv",
        }
        with patch.dict(os.environ, env):
            s = get_settings(create_dirs=True)
        assert set(s.budget.pillars.values()) == {10.0}
        assert s.EXPORT_DIR == tmp_path / "out"
        assert s.EXPORT_DIR.is_dir()
        assert s.LOGS_DIR.is_dir()
        assert s.logging.level == "DEBUG"
        assert s.export.default_filename == "plan.csv"
        assert s.TEMPLATE_CSV == PROJECT_ROOT / "other" / "template.csv"

    def test_custom_yaml_and_facet_defaults(self, tmp_path):
        path = _write_yaml(
            tmp_path,
            "budget:\n  pillars:\n    Ads: 30\n"
            "facets:\n  Included in UCM DMS:\n    default: 'Yes'\n",
        )
        with patch.dict(os.environ, {"APP_CONFIG": str(path)}):
            s = get_settings()
            defaults = get_facet_defaults()
        assert s.budget.pillars == {"Ads": 30.0}
        assert defaults == {"Included in UCM DMS": "Yes"}
        assert get_facet_defaults(s) == defaults

    def test_invalid_yaml_values_fall_back(self, tmp_path):
        path = _write_yaml(
            tmp_path,
            "budget:\n  pillars:\n    Ads: -5\nexport:\n  weight_decimals: 9\n",
        )
        with patch.dict(os.environ, {"APP_CONFIG": str(path)}):
            s = get_settings()
        assert s.budget.pillars == DEFAULT_PILLAR_BUDGETS
        assert s.export.weight_decimals == 4

    def test_invalid_yaml_logs_config_code(self, tmp_path, caplog):
        path = _write_yaml(tmp_path, "budget:\n  pillars:\n    Ads: -5\n")
        with patch.dict(os.environ, {"APP_CONFIG": str(path)}):
            with caplog.at_level(logging.WARNING, logger="config.settings"):
                get_settings()
        assert "[SYS001] invalid configuration" in caplog.text

    def test_settings_are_cached(self):
        assert get_settings() is get_settings()


class TestSchemas:
    def test_logging_level_is_upper_cased(self):
        model = validate_config_dict({"logging": {"level": "warning"}})
        assert model.logging.level == "WARNING"

    def test_negative_budget_is_rejected(self):
        with pytest.raises(ValueError):
            validate_config_dict({"budget": {"pillars": {"Ads": -1}}})

    def test_defaults(self):
        model = validate_config_dict({})
        assert model.budget.pillars == DEFAULT_PILLAR_BUDGETS
        assert model.export.default_filename == "new.csv"


class TestEnvironmentConfig:
    def test_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            env = EnvironmentConfig()
        assert not env.compact_logs
        assert not env.filter_debug
        assert env.notice_history == 20
        assert env.validate() == []

    def test_flags(self):
        with patch.dict(os.environ, {"FILTER_DEBUG": "true", "COMPACT_LOGS": "1", "DISABLE_EMOJI": "yes"}):
            reset_env_config_cache()
            env = get_env_config()
        assert env.filter_debug and env.compact_logs and env.no_emoji

    def test_validate_reports_problems(self):
        with patch.dict(os.environ, {"NOTICE_HISTORY": "0", "RUN_NAMESPACE": "a/b"}):
            env = EnvironmentConfig()
        assert len(env.validate()) == 2
