"""
Logging configuration for journeyforge.

Structured JSON file logging with one logger per component (resolver, llkb,
healing) plus a human-readable console handler.
"""

import logging
import logging.handlers
import json
import sys
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, Any, Optional
from dataclasses import asdict, is_dataclass


COMPONENTS = ("resolver", "llkb", "healing", "runner")

_EXTRA_FIELDS = (
    "session_id",
    "journey_id",
    "operation",
    "duration",
    "success",
    "error_code",
    "metadata",
)


class StructuredFormatter(logging.Formatter):
    """Custom formatter for structured JSON logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as structured JSON."""
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno
        }

        for name in _EXTRA_FIELDS:
            if hasattr(record, name):
                log_data[name] = getattr(record, name)

        if record.exc_info:
            log_data['exception'] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info)
            }

        return json.dumps(log_data, default=self._json_serializer)

    def _json_serializer(self, obj):
        """Custom JSON serializer for complex objects."""
        if is_dataclass(obj) and not isinstance(obj, type):
            return asdict(obj)
        elif isinstance(obj, Enum):
            return obj.value
        elif isinstance(obj, (set, frozenset)):
            return sorted(obj)
        elif hasattr(obj, 'isoformat'):  # datetime objects
            return obj.isoformat()
        elif hasattr(obj, 'to_dict'):
            return obj.to_dict()
        else:
            return str(obj)


class HealingLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter carrying journey/session context."""

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        """Process log message and add contextual information."""
        extra = dict(self.extra)
        extra.update(kwargs.get('extra') or {})
        kwargs['extra'] = extra
        return msg, kwargs

    def log_operation_start(self, operation: str, **metadata):
        """Log the start of an operation."""
        self.info(f"Starting {operation}", extra={
            'operation': operation,
            'metadata': metadata
        })

    def log_operation_success(self, operation: str, duration: float, **metadata):
        """Log successful completion of an operation."""
        self.info(f"Completed {operation} successfully", extra={
            'operation': operation,
            'success': True,
            'duration': duration,
            'metadata': metadata
        })

    def log_operation_failure(self, operation: str, duration: float, error: str,
                              error_code: Optional[str] = None, **metadata):
        """Log failure of an operation."""
        self.error(f"Failed {operation}: {error}", extra={
            'operation': operation,
            'success': False,
            'duration': duration,
            'error_code': error_code,
            'metadata': metadata
        })

    def log_progress(self, operation: str, progress: float, message: str, **metadata):
        """Log progress of a long-running operation."""
        metadata['progress'] = progress
        self.info(f"{operation} progress: {message}", extra={
            'operation': operation,
            'metadata': metadata
        })


def setup_logging(log_level: str = "INFO", log_dir: str = "logs") -> Dict[str, logging.Logger]:
    """
    Set up structured logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_dir: Directory to store log files

    Returns:
        Dictionary of configured component loggers
    """
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    level = getattr(logging, log_level.upper())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    structured_formatter = StructuredFormatter()
    console_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(console_formatter)
    console_handler.setLevel(level)

    all_logs_handler = logging.handlers.RotatingFileHandler(
        log_path / "journeyforge_all.log",
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=5
    )
    all_logs_handler.setFormatter(structured_formatter)
    all_logs_handler.setLevel(logging.DEBUG)

    error_handler = logging.handlers.RotatingFileHandler(
        log_path / "journeyforge_errors.log",
        maxBytes=5 * 1024 * 1024,  # 5MB
        backupCount=10
    )
    error_handler.setFormatter(structured_formatter)
    error_handler.setLevel(logging.ERROR)

    root_logger.addHandler(console_handler)
    root_logger.addHandler(all_logs_handler)
    root_logger.addHandler(error_handler)

    loggers = {}
    for component in COMPONENTS:
        component_logger = logging.getLogger(f"journeyforge.{component}")
        for handler in component_logger.handlers[:]:
            component_logger.removeHandler(handler)
        handler = logging.handlers.RotatingFileHandler(
            log_path / f"{component}.log",
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5
        )
        handler.setFormatter(structured_formatter)
        handler.setLevel(logging.INFO)
        component_logger.addHandler(handler)
        loggers[component] = component_logger

    return loggers


def get_component_logger(component: str, journey_id: Optional[str] = None,
                         session_id: Optional[str] = None) -> HealingLoggerAdapter:
    """
    Get a logger adapter with contextual information.

    Args:
        component: Component name (resolver, llkb, healing, runner)
        journey_id: Optional journey the log lines belong to
        session_id: Optional healing session ID

    Returns:
        HealingLoggerAdapter instance
    """
    logger = logging.getLogger(f"journeyforge.{component}")

    extra = {}
    if journey_id:
        extra['journey_id'] = journey_id
    if session_id:
        extra['session_id'] = session_id

    return HealingLoggerAdapter(logger, extra)
