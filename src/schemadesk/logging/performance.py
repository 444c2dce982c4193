"""Performance logging for SchemaDesk operations.

Times catalog queries and DDL statements so slow introspection on large
catalogs shows up in the logs.

Classes:
    PerformanceLogger: Main performance logging interface
    TimingContext: Context manager for operation timing
    PerformanceMetrics: Aggregated metrics for one operation

Example:
    >>> perf_logger = PerformanceLogger("connector.postgresql")
    >>> with perf_logger.measure("get_columns", table="users") as timer:
    ...     columns = connector.get_columns("users")
    >>> timer.duration_ms
    12.5
"""

import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Generator, List, Optional

from .structured import StructuredLogger


@dataclass
class TimingMetrics:
    """Metrics for a single timing measurement."""
    operation: str
    start_time: float
    end_time: Optional[float] = None
    duration: Optional[float] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    success: bool = True
    error: Optional[str] = None

    def complete(self, success: bool = True, error: Optional[str] = None) -> None:
        """Mark timing as complete."""
        self.end_time = time.perf_counter()
        self.duration = self.end_time - self.start_time
        self.success = success
        self.error = error

    @property
    def duration_ms(self) -> Optional[float]:
        return self.duration * 1000 if self.duration is not None else None


@dataclass
class PerformanceMetrics:
    """Aggregated performance metrics for an operation.

    Attributes:
        operation: Operation name
        total_calls: Total number of calls
        failed_calls: Number of failed calls
        total_duration: Total duration in seconds
        min_duration: Minimum duration
        max_duration: Maximum duration
    """
    operation: str
    total_calls: int = 0
    failed_calls: int = 0
    total_duration: float = 0.0
    min_duration: Optional[float] = None
    max_duration: Optional[float] = None
    errors: List[str] = field(default_factory=list)

    def add_timing(self, timing: TimingMetrics) -> None:
        """Add a completed timing measurement."""
        if timing.duration is None:
            return

        self.total_calls += 1
        self.total_duration += timing.duration
        if not timing.success:
            self.failed_calls += 1
            if timing.error and len(self.errors) < 10:
                self.errors.append(timing.error)

        if self.min_duration is None or timing.duration < self.min_duration:
            self.min_duration = timing.duration
        if self.max_duration is None or timing.duration > self.max_duration:
            self.max_duration = timing.duration

    @property
    def avg_duration(self) -> Optional[float]:
        return self.total_duration / self.total_calls if self.total_calls else None

    @property
    def success_rate(self) -> float:
        if not self.total_calls:
            return 0.0
        return (self.total_calls - self.failed_calls) / self.total_calls * 100

    def to_dict(self) -> Dict[str, Any]:
        """Convert metrics to dictionary."""
        return {
            "operation": self.operation,
            "total_calls": self.total_calls,
            "failed_calls": self.failed_calls,
            "success_rate": self.success_rate,
            "total_duration": self.total_duration,
            "min_duration": self.min_duration,
            "max_duration": self.max_duration,
            "avg_duration": self.avg_duration,
            "errors": list(self.errors),
        }


class TimingContext:
    """Context manager for measuring operation timing.

    Example:
        >>> with TimingContext("dump_table_contents") as timer:
        ...     connector.dump_table_contents("users", out)
        >>> print(f"Dump took {timer.duration_ms:.2f}ms")
    """

    def __init__(
        self,
        operation: str,
        logger: Optional[StructuredLogger] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.operation = operation
        self.logger = logger
        self.metadata = metadata or {}
        self._timing: Optional[TimingMetrics] = None

    @property
    def timing(self) -> Optional[TimingMetrics]:
        return self._timing

    @property
    def duration(self) -> Optional[float]:
        return self._timing.duration if self._timing else None

    @property
    def duration_ms(self) -> Optional[float]:
        return self._timing.duration_ms if self._timing else None

    def __enter__(self) -> "TimingContext":
        self._timing = TimingMetrics(
            operation=self.operation,
            start_time=time.perf_counter(),
            metadata=self.metadata,
        )
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self._timing is None:
            return

        success = exc_type is None
        error = str(exc_val) if exc_val else None
        self._timing.complete(success=success, error=error)

        if self.logger is None:
            return
        if success:
            self.logger.debug(
                "Operation completed",
                operation=self.operation,
                duration_ms=self._timing.duration_ms,
                **self.metadata,
            )
        else:
            self.logger.warning(
                "Operation failed",
                operation=self.operation,
                duration_ms=self._timing.duration_ms,
                error=error,
                **self.metadata,
            )


class PerformanceLogger:
    """Performance logger aggregating per-operation timings.

    Attributes:
        name: Logger name
        logger: Underlying structured logger

    Example:
        >>> perf_logger = PerformanceLogger("connector.mysql")
        >>> with perf_logger.measure("get_indexes"):
        ...     connector.get_indexes("users")
        >>> perf_logger.get_summary()["total_calls"]
        1
    """

    def __init__(
        self,
        name: str,
        *,
        auto_log: bool = True,
        track_metrics: bool = True,
        logger: Optional[StructuredLogger] = None,
    ) -> None:
        """Initialize performance logger.

        Args:
            name: Logger name
            auto_log: Whether to log each timing result
            track_metrics: Whether to track aggregated metrics
            logger: Custom structured logger instance
        """
        self.name = name
        self.auto_log = auto_log
        self.track_metrics = track_metrics
        self.logger = logger or StructuredLogger(f"perf.{name}")
        self._metrics: Dict[str, PerformanceMetrics] = {}
        self._lock = threading.Lock()

    @contextmanager
    def measure(self, operation: str, **metadata: Any) -> Generator[TimingContext, None, None]:
        """Context manager for measuring operation performance.

        Args:
            operation: Operation name
            **metadata: Additional metadata

        Yields:
            TimingContext for the operation
        """
        timing_context = TimingContext(
            operation=operation,
            logger=self.logger if self.auto_log else None,
            metadata=metadata,
        )

        try:
            with timing_context as ctx:
                yield ctx
        finally:
            if self.track_metrics and timing_context.timing:
                self._add_timing_to_metrics(timing_context.timing)

    def _add_timing_to_metrics(self, timing: TimingMetrics) -> None:
        with self._lock:
            if timing.operation not in self._metrics:
                self._metrics[timing.operation] = PerformanceMetrics(operation=timing.operation)
            self._metrics[timing.operation].add_timing(timing)

    def get_metrics(self, operation: str) -> Optional[PerformanceMetrics]:
        """Get aggregated metrics for one operation, None if never measured."""
        with self._lock:
            return self._metrics.get(operation)

    def reset_metrics(self) -> None:
        """Drop all aggregated metrics."""
        with self._lock:
            self._metrics.clear()

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary across all measured operations.

        Returns:
            Dictionary with totals and per-operation metrics
        """
        with self._lock:
            metrics = [m.to_dict() for m in self._metrics.values()]

        return {
            "logger_name": self.name,
            "operations": len(metrics),
            "total_calls": sum(m["total_calls"] for m in metrics),
            "failed_calls": sum(m["failed_calls"] for m in metrics),
            "total_duration": sum(m["total_duration"] for m in metrics),
            "metrics": {m["operation"]: m for m in metrics},
        }

    def __repr__(self) -> str:
        return f"PerformanceLogger(name={self.name!r}, operations={len(self._metrics)})"
