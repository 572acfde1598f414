"""Unit tests for configuration loading and logging setup."""

import json
import logging
from unittest.mock import patch

import pytest
import yaml

from journeyforge.core.config import settings
from journeyforge.core.config_loader import HealingConfigLoader, get_healing_config
from journeyforge.core.exceptions import ConfigurationError
from journeyforge.core.logging_config import (
    StructuredFormatter,
    get_component_logger,
    setup_logging,
)
from journeyforge.core.models import CircuitBreakerConfig, FixType, HealingConfiguration


class TestHealingConfigLoader:
    """Test cases for HealingConfigLoader."""

    @pytest.fixture
    def config_path(self, tmp_path):
        return tmp_path / "config" / "healing.yaml"

    def write(self, path, data):
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(yaml.dump(data) if not isinstance(data, str) else data)

    def test_defaults_without_file(self, config_path):
        """Test a missing file yields the default policy."""
        loader = HealingConfigLoader(str(config_path))
        config = loader.load_config()
        breaker = loader.load_breaker_config()

        assert config.enabled
        assert config.allowed_fixes == HealingConfiguration().allowed_fixes
        assert FixType.TIMEOUT_INCREASE not in config.allowed_fixes
        assert breaker.max_attempts == 3
        assert breaker.same_error_threshold == 2

    def test_file_merged_with_defaults(self, config_path):
        """Test partial files keep default values for missing keys."""
        self.write(config_path, {"healing": {
            "max_attempts": 5,
            "allowed_fixes": ["add-exact", "timeout-increase"],
            "rules": {"timeout-increase": {"enabled": True}, "add-exact": False},
            "circuit_breaker": {"max_attempts": 5},
        }})
        loader = HealingConfigLoader(str(config_path))

        config = loader.load_config()
        assert config.max_attempts == 5
        assert config.allowed_fixes == [FixType.ADD_EXACT, FixType.TIMEOUT_INCREASE]
        assert config.rule_overrides == {"timeout-increase": True, "add-exact": False}
        assert config.max_timeout_increase == 30000

        breaker = loader.load_breaker_config()
        assert breaker.max_attempts == 5
        assert breaker.total_timeout_ms == 300000

    def test_config_is_cached(self, config_path):
        """Test repeated loads reuse the parsed file until forced."""
        self.write(config_path, {"healing": {"max_attempts": 2}})
        loader = HealingConfigLoader(str(config_path))
        first = loader.load_config()
        assert loader.load_config() is first
        assert loader.load_config(force_reload=True) is not first

    @pytest.mark.parametrize("content, message", [
        ("healing: [unclosed", "Invalid YAML"),
        ("- just\n- a list\n", "mapping at the top level"),
        (yaml.dump({"healing": {"allowed_fixes": ["teleport"]}}), "Invalid fix type"),
        (yaml.dump({"healing": {"allowed_fixes": ["force-click"]}}), "forbidden fixes: force-click"),
        (yaml.dump({"healing": {"max_attempts": 20}}), "max_attempts must be between 1 and 10"),
        (yaml.dump({"healing": {"circuit_breaker": {"oscillation_window": 1}}}), "oscillation_window"),
    ])
    def test_invalid_config(self, config_path, content, message):
        """Test invalid files raise ConfigurationError."""
        self.write(config_path, content)
        with pytest.raises(ConfigurationError, match=message):
            HealingConfigLoader(str(config_path)).load_config()

    def test_save_and_reload(self, config_path):
        """Test a saved configuration loads back unchanged."""
        loader = HealingConfigLoader(str(config_path))
        config = HealingConfiguration(max_attempts=4, rule_overrides={"add-exact": False})
        loader.save_config(config, CircuitBreakerConfig(max_token_budget=1000))

        reloaded = HealingConfigLoader(str(config_path))
        assert reloaded.load_config().max_attempts == 4
        assert reloaded.load_config().rule_overrides == {"add-exact": False}
        assert reloaded.load_breaker_config().max_token_budget == 1000

    def test_save_rejects_invalid(self, config_path):
        """Test invalid configurations are never written."""
        loader = HealingConfigLoader(str(config_path))
        with pytest.raises(ConfigurationError):
            loader.save_config(HealingConfiguration(max_timeout_increase=10))
        assert not config_path.exists()

    def test_global_switch_wins(self, config_path):
        """Test HEALING_ENABLED=false disables healing whatever the file says."""
        with patch("journeyforge.core.config_loader.config_loader", HealingConfigLoader(str(config_path))), \
                patch.object(settings, "HEALING_ENABLED", False):
            assert not get_healing_config().enabled


class TestLoggingConfig:
    """Test cases for structured logging."""

    def make_record(self, **extra):
        record = logging.LogRecord(name="journeyforge.healing", level=logging.INFO, pathname="heal.py",
                                   lineno=7, msg="Starting %s", args=("heal",), exc_info=None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_structured_formatter(self):
        """Test records become JSON with context fields."""
        data = json.loads(StructuredFormatter().format(
            self.make_record(journey_id="JRN-1", metadata={"fix": FixType.ADD_EXACT})))
        assert data["message"] == "Starting heal"
        assert data["logger"] == "journeyforge.healing"
        assert data["line"] == 7
        assert data["journey_id"] == "JRN-1"
        assert data["metadata"] == {"fix": "add-exact"}
        assert "session_id" not in data

    def test_component_logger_context(self, caplog):
        """Test adapters attach journey and operation context."""
        adapter = get_component_logger("healing", journey_id="JRN-1", session_id="s-1")
        with caplog.at_level(logging.INFO, logger="journeyforge.healing"):
            adapter.log_operation_failure("heal", 1.5, "boom", error_code="EXHAUSTED", attempt=3)

        record = caplog.records[-1]
        assert record.getMessage() == "Failed heal: boom"
        assert record.journey_id == "JRN-1"
        assert record.session_id == "s-1"
        assert record.error_code == "EXHAUSTED"
        assert record.metadata == {"attempt": 3}

    def test_setup_logging(self, tmp_path):
        """Test log files are created per component."""
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            loggers = setup_logging("debug", str(tmp_path))
            assert set(loggers) == {"resolver", "llkb", "healing", "runner"}
            assert (tmp_path / "journeyforge_all.log").exists()
            assert (tmp_path / "healing.log").exists()
            assert root.level == logging.DEBUG
        finally:
            for handler in root.handlers[:]:
                root.removeHandler(handler)
                handler.close()
            for handler in saved_handlers:
                root.addHandler(handler)
            root.setLevel(saved_level)
            for component in ("resolver", "llkb", "healing", "runner"):
                component_logger = logging.getLogger(f"journeyforge.{component}")
                for handler in component_logger.handlers[:]:
                    component_logger.removeHandler(handler)
                    handler.close()
