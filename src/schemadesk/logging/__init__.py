"""SchemaDesk structured logging framework.

Classes:
    StructuredLogger: Main structured logging interface
    PerformanceLogger: Performance monitoring and timing
    LoggerFactory: Logger creation and configuration

Example:
    >>> from schemadesk.logging import get_logger
    >>> logger = get_logger(__name__)
    >>> logger.info("Pool created", engine="mysql", connections=2)
"""

from .factory import (
    LoggerConfig,
    LoggerFactory,
    configure_logging,
    get_factory,
    get_logger,
    get_performance_logger,
)
from .performance import PerformanceLogger, PerformanceMetrics, TimingContext
from .structured import LogContext, StructuredLogger

__all__ = [
    "LoggerConfig",
    "LoggerFactory",
    "configure_logging",
    "get_factory",
    "get_logger",
    "get_performance_logger",
    "PerformanceLogger",
    "PerformanceMetrics",
    "TimingContext",
    "LogContext",
    "StructuredLogger",
]
