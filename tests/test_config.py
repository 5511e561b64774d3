"""Tests for configuration management."""

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from duecycle.config import DuecycleConfig


class TestConfig:
    def test_default_config(self) -> None:
        config = DuecycleConfig()
        assert config.engine.default_horizon_days == 90
        assert config.budgets.warning_threshold == 0.8
        assert config.budgets.include_subcategories is True
        assert config.store.type == "memory"
        assert config.store.url is None

    def test_load_from_yaml(self, tmp_path: Path) -> None:
        yaml_content = {
            "engine": {"default_horizon_days": 365},
            "budgets": {"warning_threshold": 0.9},
            "store": {"type": "sql", "url": "sqlite:///duecycle.db"},
        }
        config_file = tmp_path / "duecycle.yaml"
        config_file.write_text(yaml.dump(yaml_content))

        config = DuecycleConfig.load(str(config_file))
        assert config.engine.default_horizon_days == 365
        assert config.budgets.warning_threshold == 0.9
        assert config.store.type == "sql"
        assert config.store.url == "sqlite:///duecycle.db"

    def test_load_with_overrides(self) -> None:
        config = DuecycleConfig.load(
            None,
            engine={"default_horizon_days": 30},
            log_level="DEBUG",
        )
        assert config.engine.default_horizon_days == 30
        assert config.log_level == "DEBUG"

    def test_env_var_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DUECYCLE_STORE_URL", "sqlite://")
        monkeypatch.setenv("DUECYCLE_HORIZON_DAYS", "14")
        monkeypatch.setenv("DUECYCLE_LOG_LEVEL", "debug")

        config = DuecycleConfig.load()
        assert config.store.type == "sql"
        assert config.store.url == "sqlite://"
        assert config.engine.default_horizon_days == 14
        assert config.log_level == "DEBUG"

    def test_env_beats_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        config_file = tmp_path / "duecycle.yaml"
        config_file.write_text(yaml.dump({"engine": {"default_horizon_days": 365}}))
        monkeypatch.setenv("DUECYCLE_HORIZON_DAYS", "7")

        config = DuecycleConfig.load(str(config_file))
        assert config.engine.default_horizon_days == 7

    def test_invalid_horizon_rejected(self) -> None:
        with pytest.raises(ValidationError):
            DuecycleConfig.load(None, engine={"default_horizon_days": 0})

    def test_missing_config_file(self) -> None:
        config = DuecycleConfig.load("/nonexistent/config.yaml")
        # Should use defaults without error
        assert config.engine.default_horizon_days == 90
