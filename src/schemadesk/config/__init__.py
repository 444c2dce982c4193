"""SchemaDesk configuration management.

Classes:
    BaseConfig: Base configuration class
    ConnectionIdentity: Pool partition key
    EngineConfig: Per-engine driver and pool sizing
    PoolConfig: Pool timing
    LoggingConfig: Logging configuration
    SystemConfig: Top-level configuration

Example:
    >>> from schemadesk.config import SystemConfig
    >>> config = SystemConfig.from_file("schemadesk.yaml")
    >>> config.get_engine_config("postgresql").driver
    'asyncpg'
"""

from .models import (
    BaseConfig,
    ConnectionIdentity,
    EngineConfig,
    LoggingConfig,
    PoolConfig,
    SystemConfig,
    default_engines,
)

__all__ = [
    "BaseConfig",
    "ConnectionIdentity",
    "EngineConfig",
    "LoggingConfig",
    "PoolConfig",
    "SystemConfig",
    "default_engines",
]
