"""Structured logging for SchemaDesk.

Thread-local context lets a request thread tag every pool and connector log
line with the identity or table it is working on.

Classes:
    StructuredLogger: Main structured logging interface
    LogContext: Thread-local context store

Example:
    >>> logger = StructuredLogger("database.pool")
    >>> with logger.context(engine="mysql", database="test"):
    ...     logger.info("Connection acquired", slot=0)
"""

import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, Generator, Optional

import structlog

from ..core.exceptions import SchemaDeskException
from ..core.utils import ValidationUtils


class LogContext:
    """Thread-local context for log correlation and metadata.

    Example:
        >>> context = LogContext()
        >>> context.set("table", "users")
        >>> context.get_all()
        {'table': 'users'}
    """

    def __init__(self) -> None:
        self._local = threading.local()

    def _data(self) -> Dict[str, Any]:
        if not hasattr(self._local, "context"):
            self._local.context = {}
        return self._local.context

    def set(self, key: str, value: Any) -> None:
        """Set context value."""
        self._data()[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        """Get context value."""
        return self._data().get(key, default)

    def get_all(self) -> Dict[str, Any]:
        """Get a copy of all context values."""
        return self._data().copy()

    def clear(self) -> None:
        """Clear all context values."""
        self._data().clear()

    def update(self, context: Dict[str, Any]) -> None:
        """Update context with multiple values."""
        self._data().update(context)


class StructuredLogger:
    """Structured logger with thread-local context.

    Attributes:
        name: Logger name

    Example:
        >>> logger = StructuredLogger("database.connector.mysql")
        >>> logger.set_level("DEBUG")
        >>> logger.info("Statement executed", statement="DROP TABLE t")
    """

    def __init__(self, name: str, *, level: str = "INFO") -> None:
        """Initialize structured logger.

        Args:
            name: Logger name (typically module name)
            level: Initial log level
        """
        self.name = name
        self._logger = structlog.get_logger(name)
        self._context = LogContext()
        self._bound: Dict[str, Any] = {}

        self._stdlib_logger = logging.getLogger(name)
        self._stdlib_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    def _prepare_event_dict(self, **kwargs: Any) -> Dict[str, Any]:
        event_dict: Dict[str, Any] = {"logger": self.name}
        event_dict.update(self._bound)
        event_dict.update(self._context.get_all())
        event_dict.update(kwargs)
        return event_dict

    @contextmanager
    def context(self, **context_data: Any) -> Generator[None, None, None]:
        """Context manager for adding temporary context data.

        Args:
            **context_data: Context data to add temporarily

        Yields:
            None
        """
        old_context = self._context.get_all()
        try:
            self._context.update(context_data)
            yield
        finally:
            self._context.clear()
            self._context.update(old_context)

    def bind(self, **context_data: Any) -> "StructuredLogger":
        """Create new logger instance with bound context.

        Args:
            **context_data: Context data to bind

        Returns:
            New logger instance with bound context

        Example:
            >>> pool_logger = logger.bind(engine="postgresql", database="app")
            >>> pool_logger.info("Pool created")
        """
        bound_logger = StructuredLogger(self.name, level=self.get_level())
        bound_logger._bound = {**self._bound, **context_data}
        return bound_logger

    def set_level(self, level: str) -> None:
        """Set logging level.

        Args:
            level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)

        Raises:
            SchemaDeskException: If the level is unknown
        """
        if not ValidationUtils.validate_identifier(level):
            raise SchemaDeskException(
                f"Invalid log level: {level}",
                code="INVALID_LOG_LEVEL",
            )

        log_level = getattr(logging, level.upper(), None)
        if not isinstance(log_level, int):
            raise SchemaDeskException(
                f"Unknown log level: {level}",
                code="UNKNOWN_LOG_LEVEL",
            )

        self._stdlib_logger.setLevel(log_level)

    def get_level(self) -> str:
        """Get current logging level name."""
        return logging.getLevelName(self._stdlib_logger.getEffectiveLevel())

    def debug(self, message: str, **kwargs: Any) -> None:
        """Log debug message."""
        self._logger.debug(message, **self._prepare_event_dict(**kwargs))

    def info(self, message: str, **kwargs: Any) -> None:
        """Log info message."""
        self._logger.info(message, **self._prepare_event_dict(**kwargs))

    def warning(self, message: str, **kwargs: Any) -> None:
        """Log warning message."""
        self._logger.warning(message, **self._prepare_event_dict(**kwargs))

    def error(self, message: str, **kwargs: Any) -> None:
        """Log error message."""
        self._logger.error(message, **self._prepare_event_dict(**kwargs))

    def exception(self, message: str, **kwargs: Any) -> None:
        """Log error message with the active exception's traceback."""
        self._logger.error(message, exc_info=True, **self._prepare_event_dict(**kwargs))

    def get_context(self) -> Dict[str, Any]:
        """Get bound and thread-local context data."""
        return {**self._bound, **self._context.get_all()}

    def __repr__(self) -> str:
        return f"StructuredLogger(name={self.name!r}, level={self.get_level()!r})"
