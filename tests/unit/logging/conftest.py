"""Logging-specific test configuration and fixtures."""

import logging
import tempfile
from pathlib import Path

import pytest
import structlog

from schemadesk.config.models import LoggingConfig
from schemadesk.logging.factory import LoggerFactory


@pytest.fixture
def temp_log_file():
    """Create temporary log file for testing."""
    with tempfile.NamedTemporaryFile(suffix=".log", delete=False) as temp_file:
        temp_path = Path(temp_file.name)

    yield temp_path

    temp_path.unlink(missing_ok=True)


@pytest.fixture
def sample_logging_config(temp_log_file):
    """Create sample logging configuration."""
    return LoggingConfig(
        level="INFO",
        format="json",
        file_path=temp_log_file,
        console_output=True,
        max_file_size=1048576,  # 1MB
        backup_count=3,
    )


@pytest.fixture
def logger_factory():
    """Create clean logger factory for testing."""
    factory = LoggerFactory()
    yield factory
    factory.shutdown()


@pytest.fixture(autouse=True)
def cleanup_global_logging():
    """Clean up global logging state after each test."""
    yield

    from schemadesk.logging.factory import LoggerConfig, _global_factory
    _global_factory.shutdown()
    _global_factory.config = LoggerConfig()

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(logging.WARNING)

    # Factories reconfigure structlog; restore the quiet test setup
    structlog.configure(
        processors=[structlog.testing.LogCapture()],
        wrapper_class=structlog.BoundLogger,
        logger_factory=structlog.testing.ReturnLoggerFactory(),
        cache_logger_on_first_use=True,
    )
