"""
Structured logging for plan generation.

Log entries are emitted as JSON through the standard logging module, tagged
with a correlation ID so every line of one generation can be grouped.
"""

import json
import logging
import sys
import time
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from functools import wraps
from typing import Dict, Any, Optional


# ============================================================================
# Correlation ID Management
# ============================================================================

class CorrelationIDManager:
    """Manages the correlation ID of the current generation."""

    _current_correlation_id: Optional[str] = None

    @classmethod
    def get_correlation_id(cls) -> str:
        """
        Get current correlation ID or generate a new one.

        Returns:
            Correlation ID string
        """
        if cls._current_correlation_id is None:
            cls._current_correlation_id = str(uuid.uuid4())
        return cls._current_correlation_id

    @classmethod
    def set_correlation_id(cls, correlation_id: str):
        """Set correlation ID for current context."""
        cls._current_correlation_id = correlation_id

    @classmethod
    def clear_correlation_id(cls):
        """Clear current correlation ID."""
        cls._current_correlation_id = None


# ============================================================================
# Structured Logger
# ============================================================================

class StructuredLogger:
    """
    Structured logger with JSON formatting.

    Keyword arguments passed to the log methods end up under ``extra``.
    """

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)

    def _build_log_entry(
        self,
        level: str,
        message: str,
        extra: Optional[Dict[str, Any]] = None,
        exc_info: Optional[Exception] = None
    ) -> Dict[str, Any]:
        entry = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': level,
            'message': message,
            'correlation_id': CorrelationIDManager.get_correlation_id(),
            'logger': self.logger.name,
        }

        if extra:
            entry['extra'] = extra

        if exc_info:
            entry['exception'] = {
                'type': type(exc_info).__name__,
                'message': str(exc_info),
            }

        return entry

    def _log(
        self,
        level: int,
        level_name: str,
        message: str,
        extra: Optional[Dict[str, Any]] = None,
        exc_info: Optional[Exception] = None
    ):
        if self.logger.isEnabledFor(level):
            log_entry = self._build_log_entry(level_name, message, extra, exc_info)
            self.logger.log(level, json.dumps(log_entry, default=str))

    def debug(self, message: str, **kwargs):
        """Log debug message."""
        self._log(logging.DEBUG, 'DEBUG', message, kwargs)

    def info(self, message: str, **kwargs):
        """Log info message."""
        self._log(logging.INFO, 'INFO', message, kwargs)

    def warning(self, message: str, **kwargs):
        """Log warning message."""
        self._log(logging.WARNING, 'WARNING', message, kwargs)

    def error(self, message: str, exc_info: Optional[Exception] = None, **kwargs):
        """Log error message."""
        self._log(logging.ERROR, 'ERROR', message, kwargs, exc_info)


# ============================================================================
# Logging Decorators
# ============================================================================

def log_operation(operation_name: str):
    """
    Decorator to log operation start/end/duration.

    Example:
        @log_operation('resolve')
        def _resolve(self, phases):
            ...
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            logger = StructuredLogger(func.__module__)
            context = {'operation': operation_name}

            logger.debug(f'Starting {operation_name}', **context)

            start_time = time.time()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                logger.error(
                    f'Failed {operation_name}',
                    exc_info=e,
                    duration_seconds=time.time() - start_time,
                    status='failure',
                    **context
                )
                raise

            logger.debug(
                f'Completed {operation_name}',
                duration_seconds=time.time() - start_time,
                status='success',
                **context
            )
            return result

        return wrapper
    return decorator


@contextmanager
def correlation_scope(correlation_id: Optional[str] = None):
    """
    Context manager binding one correlation ID to a block of code.

    Example:
        with correlation_scope():
            generator.generate_plan(app, env)
    """
    CorrelationIDManager.set_correlation_id(correlation_id or str(uuid.uuid4()))
    try:
        yield CorrelationIDManager.get_correlation_id()
    finally:
        CorrelationIDManager.clear_correlation_id()


# ============================================================================
# Helper Functions
# ============================================================================

def get_logger(name: str) -> StructuredLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        StructuredLogger instance
    """
    return StructuredLogger(name)


def configure_logging(verbose: bool = False) -> None:
    """Route package logs to stderr; DEBUG when verbose, WARNING otherwise."""
    package_logger = logging.getLogger('webops_buildplan')
    package_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)

    # Rebind on every call; sys.stderr may have been swapped since the last one
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter('%(message)s'))
    package_logger.addHandler(handler)
