"""Configuration loading and validation utilities for self-healing."""

import copy
from dataclasses import replace
import yaml
from pathlib import Path
from typing import Dict, Any, Optional, Tuple
import logging

from .exceptions import ConfigurationError
from .models.healing_models import (
    FORBIDDEN_FIXES,
    CircuitBreakerConfig,
    FixType,
    HealingConfiguration,
)
from .config import settings

logger = logging.getLogger(__name__)


class HealingConfigLoader:
    """Loads and validates healing policy and circuit breaker limits."""

    DEFAULT_CONFIG = {
        "healing": {
            "enabled": True,
            "max_attempts": 3,
            "allowed_fixes": [
                "missing-await",
                "selector-refine",
                "add-exact",
                "navigation-wait",
                "web-first-assertion",
            ],
            "max_timeout_increase": 30000,
            "rules": {},
            "circuit_breaker": {
                "max_attempts": 3,
                "same_error_threshold": 2,
                "detect_oscillation": True,
                "oscillation_window": 4,
                "total_timeout_ms": 300000,
                "cooldown_ms": 1000,
                "max_token_budget": 50000
            }
        }
    }

    def __init__(self, config_path: Optional[str] = None):
        """Initialize config loader with optional custom path."""
        self.config_path = Path(
            config_path or settings.HEALING_CONFIG_PATH)
        self._config_cache: Optional[Tuple[HealingConfiguration, CircuitBreakerConfig]] = None
        self._config_file_mtime: Optional[float] = None

    def load_config(self, force_reload: bool = False) -> HealingConfiguration:
        """Load and validate the healing policy.

        Args:
            force_reload: Force reload even if cached config exists

        Returns:
            HealingConfiguration: Validated configuration object

        Raises:
            ConfigurationError: If configuration is invalid
        """
        return self._load(force_reload)[0]

    def load_breaker_config(self, force_reload: bool = False) -> CircuitBreakerConfig:
        """Load circuit breaker limits from the same file.

        Raises:
            ConfigurationError: If configuration is invalid
        """
        return self._load(force_reload)[1]

    def _load(self, force_reload: bool) -> Tuple[HealingConfiguration, CircuitBreakerConfig]:
        # Check if we need to reload
        if not force_reload and self._config_cache and self._is_config_current():
            return self._config_cache

        try:
            config_data = self._load_config_file()
            healing_config = self._parse_healing_config(config_data)
            breaker_config = self._parse_breaker_config(config_data)
            self._validate_config(healing_config, breaker_config)

            # Cache the config and file modification time
            self._config_cache = (healing_config, breaker_config)
            if self.config_path.exists():
                self._config_file_mtime = self.config_path.stat().st_mtime
            else:
                self._config_file_mtime = None

            logger.info(
                f"Loaded healing configuration from {self.config_path}")
            return self._config_cache

        except ConfigurationError:
            raise
        except Exception as e:
            logger.error(f"Failed to load healing configuration: {e}")
            raise ConfigurationError(
                f"Configuration loading failed: {e}") from e

    def save_config(self, config: HealingConfiguration,
                    breaker: Optional[CircuitBreakerConfig] = None) -> None:
        """Save configuration to file.

        Args:
            config: Healing policy to save
            breaker: Circuit breaker limits; defaults are written when omitted

        Raises:
            ConfigurationError: If saving fails
        """
        breaker = breaker or CircuitBreakerConfig()
        self._validate_config(config, breaker)

        try:
            # Ensure directory exists
            self.config_path.parent.mkdir(parents=True, exist_ok=True)

            config_data = {
                "healing": self._config_to_dict(config, breaker)
            }

            with open(self.config_path, 'w', encoding='utf-8') as f:
                yaml.dump(config_data, f, default_flow_style=False, indent=2)

            # Update cache
            self._config_cache = (config, breaker)
            self._config_file_mtime = self.config_path.stat().st_mtime

            logger.info(
                f"Saved healing configuration to {self.config_path}")

        except Exception as e:
            logger.error(f"Failed to save healing configuration: {e}")
            raise ConfigurationError(
                f"Configuration saving failed: {e}") from e

    def _load_config_file(self) -> Dict[str, Any]:
        """Load configuration from file or return defaults."""
        if not self.config_path.exists():
            logger.info(
                f"Config file {self.config_path} not found, using defaults")
            return self._deep_merge(self.DEFAULT_CONFIG, {})

        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                config_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in config file: {e}")
        except OSError as e:
            raise ConfigurationError(f"Failed to read config file: {e}")

        if not isinstance(config_data, dict):
            raise ConfigurationError("Config file must contain a mapping at the top level")

        # Merge with defaults to ensure all keys exist
        return self._deep_merge(self.DEFAULT_CONFIG, config_data)

    def _parse_healing_config(self, config_data: Dict[str, Any]) -> HealingConfiguration:
        """Parse configuration data into HealingConfiguration object."""
        healing_section = config_data.get("healing", {})

        try:
            allowed = [FixType(f) for f in healing_section.get("allowed_fixes", [])]
        except ValueError as e:
            raise ConfigurationError(f"Invalid fix type: {e}")

        rules = healing_section.get("rules") or {}
        rule_overrides = {}
        for rule_id, rule_conf in rules.items():
            if isinstance(rule_conf, dict):
                rule_overrides[rule_id] = bool(rule_conf.get("enabled", True))
            else:
                rule_overrides[rule_id] = bool(rule_conf)

        return HealingConfiguration(
            enabled=healing_section.get("enabled", True),
            max_attempts=healing_section.get("max_attempts", 3),
            allowed_fixes=allowed,
            forbidden_fixes=list(FORBIDDEN_FIXES),
            max_timeout_increase=healing_section.get("max_timeout_increase", 30000),
            rule_overrides=rule_overrides,
        )

    def _parse_breaker_config(self, config_data: Dict[str, Any]) -> CircuitBreakerConfig:
        """Parse the circuit_breaker section."""
        section = config_data.get("healing", {}).get("circuit_breaker", {})
        return CircuitBreakerConfig(
            max_attempts=section.get("max_attempts", 3),
            same_error_threshold=section.get("same_error_threshold", 2),
            detect_oscillation=section.get("detect_oscillation", True),
            oscillation_window=section.get("oscillation_window", 4),
            total_timeout_ms=section.get("total_timeout_ms", 300000),
            cooldown_ms=section.get("cooldown_ms", 1000),
            max_token_budget=section.get("max_token_budget", 50000),
        )

    def _config_to_dict(self, config: HealingConfiguration,
                        breaker: CircuitBreakerConfig) -> Dict[str, Any]:
        """Convert configuration objects to nested dictionary structure."""
        return {
            "enabled": config.enabled,
            "max_attempts": config.max_attempts,
            "allowed_fixes": [f.value for f in config.allowed_fixes],
            "max_timeout_increase": config.max_timeout_increase,
            "rules": {rule_id: {"enabled": enabled}
                      for rule_id, enabled in config.rule_overrides.items()},
            "circuit_breaker": {
                "max_attempts": breaker.max_attempts,
                "same_error_threshold": breaker.same_error_threshold,
                "detect_oscillation": breaker.detect_oscillation,
                "oscillation_window": breaker.oscillation_window,
                "total_timeout_ms": breaker.total_timeout_ms,
                "cooldown_ms": breaker.cooldown_ms,
                "max_token_budget": breaker.max_token_budget
            }
        }

    def _validate_config(self, config: HealingConfiguration,
                         breaker: CircuitBreakerConfig) -> None:
        """Validate configuration values.

        Args:
            config: Healing policy to validate
            breaker: Circuit breaker limits to validate

        Raises:
            ConfigurationError: If validation fails
        """
        errors = []

        if config.max_attempts < 1 or config.max_attempts > 10:
            errors.append("max_attempts must be between 1 and 10")

        if config.max_timeout_increase < 1000 or config.max_timeout_increase > 120000:
            errors.append(
                "max_timeout_increase must be between 1000 and 120000 ms")

        forbidden_allowed = [f.value for f in config.allowed_fixes if f in FORBIDDEN_FIXES]
        if forbidden_allowed:
            errors.append(
                "allowed_fixes may not contain forbidden fixes: " + ", ".join(forbidden_allowed))

        if len(config.allowed_fixes) != len(set(config.allowed_fixes)):
            errors.append("Duplicate fix types are not allowed")

        if breaker.max_attempts < 1:
            errors.append("circuit_breaker.max_attempts must be at least 1")

        if breaker.same_error_threshold < 1:
            errors.append("circuit_breaker.same_error_threshold must be at least 1")

        if breaker.oscillation_window < 2:
            errors.append("circuit_breaker.oscillation_window must be at least 2")

        if breaker.total_timeout_ms <= 0:
            errors.append("circuit_breaker.total_timeout_ms must be positive")

        if breaker.max_token_budget < 0:
            errors.append("circuit_breaker.max_token_budget must not be negative")

        if errors:
            raise ConfigurationError(
                "Configuration validation failed: " + "; ".join(errors))

    def _is_config_current(self) -> bool:
        """Check if cached config is still current."""
        if not self.config_path.exists():
            return self._config_file_mtime is None

        current_mtime = self.config_path.stat().st_mtime
        return self._config_file_mtime == current_mtime

    def _deep_merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two dictionaries."""
        result = copy.deepcopy(base)

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result


# Global config loader instance
config_loader = HealingConfigLoader()


def get_healing_config(force_reload: bool = False) -> HealingConfiguration:
    """Get the current healing configuration.

    Args:
        force_reload: Force reload from file

    Returns:
        HealingConfiguration: Current configuration
    """
    config = config_loader.load_config(force_reload)
    # Global enable/disable setting wins over the file
    if not settings.HEALING_ENABLED:
        config = replace(config, enabled=False)
    return config


def get_breaker_config(force_reload: bool = False) -> CircuitBreakerConfig:
    """Get the current circuit breaker limits."""
    return config_loader.load_breaker_config(force_reload)


def save_healing_config(config: HealingConfiguration,
                        breaker: Optional[CircuitBreakerConfig] = None) -> None:
    """Save healing configuration.

    Args:
        config: Configuration to save
        breaker: Optional circuit breaker limits
    """
    config_loader.save_config(config, breaker)


def create_default_config_file() -> None:
    """Create a default configuration file if it doesn't exist."""
    if not config_loader.config_path.exists():
        config_loader.save_config(HealingConfiguration(), CircuitBreakerConfig())
        logger.info(
            f"Created default healing config at {config_loader.config_path}")
