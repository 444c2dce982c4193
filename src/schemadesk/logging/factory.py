"""Logger factory and configuration for SchemaDesk.

Classes:
    LoggerFactory: Logger creation and configuration manager
    LoggerConfig: Configuration for logger instances

Functions:
    get_logger: Convenience function for getting loggers
    get_performance_logger: Convenience function for performance loggers
    configure_logging: Configure logging system globally

Example:
    >>> from schemadesk.logging import get_logger, configure_logging
    >>> configure_logging(level="INFO", format="json")
    >>> logger = get_logger(__name__)
    >>> logger.info("Context started", engines=3)
"""

import logging
import logging.handlers
import sys
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog

from ..config.models import LoggingConfig
from ..core.exceptions import ValidationError
from .performance import PerformanceLogger
from .structured import StructuredLogger


@dataclass
class LoggerConfig:
    """Configuration for logger instances.

    Attributes:
        level: Log level
        format: Log format (json, text)
        console_output: Enable console output
        file_path: Log file path, None disables file output
        max_file_size: Maximum file size before rotation
        backup_count: Number of backup files to keep
    """
    level: str = "INFO"
    format: str = "json"
    console_output: bool = True
    file_path: Optional[str] = None
    max_file_size: int = 10485760  # 10MB
    backup_count: int = 5


class LoggerFactory:
    """Factory for creating and configuring SchemaDesk loggers.

    Example:
        >>> factory = LoggerFactory()
        >>> factory.configure_from_config(logging_config)
        >>> logger = factory.get_logger("database.pool")
    """

    def __init__(self, config: Optional[LoggerConfig] = None) -> None:
        self.config = config or LoggerConfig()
        self.initialized = False
        self._loggers: Dict[str, StructuredLogger] = {}
        self._performance_loggers: Dict[str, PerformanceLogger] = {}
        self._handlers: List[logging.Handler] = []
        self._lock = threading.RLock()

    def configure_from_config(self, logging_config: LoggingConfig) -> None:
        """Configure factory from a LoggingConfig instance.

        Args:
            logging_config: SchemaDesk logging configuration
        """
        self.configure_from_dict({
            "level": logging_config.level,
            "format": logging_config.format,
            "console_output": logging_config.console_output,
            "file_path": str(logging_config.file_path) if logging_config.file_path else None,
            "max_file_size": logging_config.max_file_size,
            "backup_count": logging_config.backup_count,
        })

    def configure_from_dict(self, config_dict: Dict[str, Any]) -> None:
        """Configure factory from a dictionary, ignoring unknown keys.

        Args:
            config_dict: Dictionary containing logging configuration

        Raises:
            ValidationError: If the level name is unknown
        """
        level = str(config_dict.get("level", self.config.level)).upper()
        if not isinstance(getattr(logging, level, None), int):
            raise ValidationError(f"Invalid log level: {level}", code="INVALID_LOG_LEVEL")

        with self._lock:
            for key, value in config_dict.items():
                if hasattr(self.config, key):
                    setattr(self.config, key, value)
            self.config.level = level
            self.initialized = False
            self._configure_logging_system()

    def _configure_logging_system(self) -> None:
        if self.initialized:
            return

        self._configure_stdlib_logging()
        self._configure_structlog()
        self.initialized = True

    def _configure_stdlib_logging(self) -> None:
        root_logger = logging.getLogger()
        level = getattr(logging, self.config.level.upper(), logging.INFO)
        root_logger.setLevel(level)

        # Only remove handlers this factory installed
        for handler in self._handlers:
            root_logger.removeHandler(handler)
            handler.close()
        self._handlers = []

        if self.config.console_output:
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setLevel(level)
            self._handlers.append(console_handler)

        if self.config.file_path:
            file_path = Path(self.config.file_path)
            file_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.handlers.RotatingFileHandler(
                filename=str(file_path),
                maxBytes=self.config.max_file_size,
                backupCount=self.config.backup_count,
                encoding="utf-8",
            )
            file_handler.setLevel(level)
            self._handlers.append(file_handler)

        for handler in self._handlers:
            handler.setFormatter(logging.Formatter("%(message)s"))
            root_logger.addHandler(handler)

    def _configure_structlog(self) -> None:
        processors: List[Any] = [
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
        ]

        if self.config.format.lower() == "json":
            processors.append(structlog.processors.JSONRenderer(default=str))
        else:
            processors.append(structlog.dev.ConsoleRenderer(colors=False))

        structlog.configure(
            processors=processors,
            wrapper_class=structlog.stdlib.BoundLogger,
            logger_factory=structlog.stdlib.LoggerFactory(),
            context_class=dict,
            cache_logger_on_first_use=True,
        )

    def get_logger(self, name: str, *, level: Optional[str] = None) -> StructuredLogger:
        """Get or create a structured logger.

        Args:
            name: Logger name (typically module name)
            level: Override default log level

        Returns:
            StructuredLogger instance
        """
        cache_key = f"{name}_{level}"
        with self._lock:
            if cache_key not in self._loggers:
                self._loggers[cache_key] = StructuredLogger(
                    name=name,
                    level=level or self.config.level,
                )
            return self._loggers[cache_key]

    def get_performance_logger(
        self,
        name: str,
        *,
        auto_log: bool = True,
        track_metrics: bool = True,
    ) -> PerformanceLogger:
        """Get or create a performance logger.

        Args:
            name: Logger name
            auto_log: Whether to log each timing result
            track_metrics: Whether to track aggregated metrics

        Returns:
            PerformanceLogger instance
        """
        cache_key = f"{name}_{auto_log}_{track_metrics}"
        with self._lock:
            if cache_key not in self._performance_loggers:
                self._performance_loggers[cache_key] = PerformanceLogger(
                    name=name,
                    auto_log=auto_log,
                    track_metrics=track_metrics,
                    logger=self.get_logger(f"perf.{name}"),
                )
            return self._performance_loggers[cache_key]

    def shutdown(self) -> None:
        """Remove installed handlers and clear logger caches."""
        with self._lock:
            root_logger = logging.getLogger()
            for handler in self._handlers:
                root_logger.removeHandler(handler)
                handler.close()
            self._handlers = []
            self._loggers.clear()
            self._performance_loggers.clear()
            self.initialized = False

    def __repr__(self) -> str:
        return (
            f"LoggerFactory("
            f"level={self.config.level!r}, "
            f"format={self.config.format!r}, "
            f"initialized={self.initialized})"
        )


# Global logger factory instance
_global_factory = LoggerFactory()


def configure_logging(
    *,
    level: str = "INFO",
    format: str = "json",
    console_output: bool = True,
    file_path: Optional[str] = None,
    **kwargs: Any
) -> None:
    """Configure SchemaDesk logging globally.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format: Log format (json, text)
        console_output: Enable console output
        file_path: Log file path
        **kwargs: Additional LoggerConfig options
    """
    _global_factory.configure_from_dict({
        "level": level,
        "format": format,
        "console_output": console_output,
        "file_path": file_path,
        **kwargs
    })


def get_logger(name: str, *, level: Optional[str] = None) -> StructuredLogger:
    """Get or create a structured logger using the global factory.

    Args:
        name: Logger name (typically __name__)
        level: Override default log level

    Returns:
        StructuredLogger instance
    """
    return _global_factory.get_logger(name, level=level)


def get_performance_logger(name: str, *, auto_log: bool = True) -> PerformanceLogger:
    """Get or create a performance logger using the global factory.

    Args:
        name: Logger name
        auto_log: Whether to log each timing result

    Returns:
        PerformanceLogger instance
    """
    return _global_factory.get_performance_logger(name, auto_log=auto_log)


def get_factory() -> LoggerFactory:
    """Get the global logger factory instance."""
    return _global_factory
