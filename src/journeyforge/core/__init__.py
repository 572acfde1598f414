"""
Core module for journeyforge.

This module contains:
- config.py: Environment settings
- config_loader.py: Healing policy YAML loader
- logging_config.py: Logging configuration
- exceptions.py: Exception hierarchy
- models/: Data models
"""

__all__ = ["config", "config_loader", "logging_config", "exceptions", "models"]
