"""Configuration models for SchemaDesk.

Pydantic models for the connection identity, per-engine pool sizing, pool
timing and logging. All models resolve ``${VAR}`` and ``${VAR:default}``
environment references before validation.

Classes:
    BaseConfig: Base configuration class
    ConnectionIdentity: The six-field key partitioning the connection pool
    EngineConfig: Per-engine driver and pool sizing
    PoolConfig: Idle reclamation and quiescence timing
    LoggingConfig: Logging configuration
    SystemConfig: Top-level configuration

Example:
    >>> identity = ConnectionIdentity(
    ...     engine="mysql",
    ...     host="localhost",
    ...     port=3306,
    ...     username="root",
    ...     password="",
    ...     database="test",
    ... )
    >>> config = SystemConfig.from_file("schemadesk.yaml")
    >>> config.get_engine_config("mysql").connections
    2
"""

import os
import re
from pathlib import Path
from typing import Any, Dict, Literal, Optional, Union

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PositiveFloat,
    PositiveInt,
    SecretStr,
    conint,
    field_validator,
    model_validator,
)

from ..core.exceptions import ConfigurationError, ErrorCodes, ValidationError
from ..core.utils import ValidationUtils

_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}")


class BaseConfig(BaseModel):
    """Base configuration class with common functionality.

    Example:
        >>> class MyConfig(BaseConfig):
        ...     name: str
        ...     value: int = 42
    """

    model_config = ConfigDict(
        validate_assignment=True,
        extra="forbid",
        populate_by_name=True,
        validate_default=True,
    )

    @model_validator(mode="before")
    @classmethod
    def resolve_environment_variables(cls, values: Any) -> Any:
        """Resolve environment variables in configuration values.

        Supports ${VAR_NAME} and ${VAR_NAME:default_value} syntax.

        Args:
            values: Raw configuration values

        Returns:
            Values with environment variables resolved
        """
        if not isinstance(values, dict):
            return values

        def replace_env_var(match: "re.Match[str]") -> str:
            var_spec = match.group(1)
            if ":" in var_spec:
                var_name, default = var_spec.split(":", 1)
            else:
                var_name, default = var_spec, ""
            return os.getenv(var_name, default)

        def resolve_value(value: Any) -> Any:
            if isinstance(value, str):
                return _ENV_PATTERN.sub(replace_env_var, value)
            elif isinstance(value, dict):
                return {k: resolve_value(v) for k, v in value.items()}
            elif isinstance(value, list):
                return [resolve_value(item) for item in value]
            return value

        return {key: resolve_value(value) for key, value in values.items()}

    def to_dict(self, *, mask_secrets: bool = True) -> Dict[str, Any]:
        """Convert configuration to dictionary.

        Args:
            mask_secrets: Whether to mask secret values

        Returns:
            Dictionary representation of configuration
        """
        data = self.model_dump()

        def mask_value(value: Any) -> Any:
            if isinstance(value, dict):
                return {k: mask_value(v) for k, v in value.items()}
            elif isinstance(value, list):
                return [mask_value(item) for item in value]
            elif isinstance(value, SecretStr):
                return "***MASKED***" if mask_secrets else value.get_secret_value()
            return value

        return mask_value(data)


class ConnectionIdentity(BaseConfig):
    """Connection identity partitioning the connection pool.

    Two identities are equal iff all six fields compare equal. Identities are
    immutable and hashable. Field presence is checked by :meth:`require_complete`
    rather than at construction so a half-filled login form can still be
    represented and reported on.

    Attributes:
        engine: Engine name, a key of ``SystemConfig.engines``
        host: Database server host
        port: Database server port
        username: Login name
        password: Login password (empty when not supplied)
        database: Database name, or file path for Interbase
    """

    model_config = ConfigDict(frozen=True)

    engine: str = Field(..., description="Engine name")
    host: str = Field("", description="Database host")
    port: int = Field(0, description="Database port")
    username: str = Field("", description="Login name")
    password: SecretStr = Field(SecretStr(""), description="Login password")
    database: str = Field("", description="Database name")

    @field_validator("password", mode="before")
    @classmethod
    def default_password(cls, v: Any) -> Any:
        """Treat a missing password as the empty string."""
        return "" if v is None else v

    def require_complete(self) -> "ConnectionIdentity":
        """Check every field needed to connect.

        Returns:
            The identity itself

        Raises:
            ConfigurationError: If a field is blank or the port is out of range
        """
        for field in ("engine", "host", "username", "database"):
            if ValidationUtils.is_blank(getattr(self, field)):
                raise ConfigurationError(
                    f"Connection identity missing required field: {field}",
                    code=ErrorCodes.CONFIG_VALIDATION_FAILED,
                    context={"field": field, "engine": self.engine},
                )

        if not ValidationUtils.validate_port(self.port):
            raise ConfigurationError(
                f"Invalid port number: {self.port}",
                code=ErrorCodes.CONFIG_INVALID,
                context={"port": self.port, "valid_range": "1-65535"},
            )
        return self

    def with_database(self, database: str) -> "ConnectionIdentity":
        """Return a copy of this identity pointing at another database."""
        return self.model_copy(update={"database": database})

    @property
    def display_name(self) -> str:
        """Identity rendered without the password."""
        return f"{self.engine}://{self.username}@{self.host}:{self.port}/{self.database}"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConnectionIdentity":
        """Build an identity from a plain mapping such as a login form.

        Args:
            data: Mapping with identity fields

        Returns:
            New identity instance
        """
        return cls(**data)


class EngineConfig(BaseConfig):
    """Per-engine driver and pool sizing.

    Attributes:
        connector: Dialect registry key used to build connectors
        driver: Import name of the driver module
        connections: Fixed slot count of every pool for this engine
        default_port: Port offered when an identity leaves it unset
        connect_timeout: Seconds to wait for a physical connection
        options: Extra keyword arguments handed to the driver's connect call
    """

    connector: str = Field(..., min_length=1, description="Dialect registry key")
    driver: str = Field(..., min_length=1, description="Driver module import name")
    connections: PositiveInt = Field(2, description="Connections per identity")
    default_port: conint(ge=1, le=65535) = Field(..., description="Default server port")
    connect_timeout: PositiveFloat = Field(30.0, description="Connect timeout in seconds")
    options: Dict[str, Any] = Field(default_factory=dict, description="Driver options")


class PoolConfig(BaseConfig):
    """Connection pool timing.

    Attributes:
        idle_timeout: Seconds a free connection may stay open
        cleanup_interval: Seconds between reaper passes
        quiesce_interval: Seconds slept between quiesce passes
        acquire_timeout: Default acquire deadline, None to wait forever
    """

    idle_timeout: PositiveFloat = Field(300.0, description="Idle threshold in seconds")
    cleanup_interval: PositiveFloat = Field(180.0, description="Reaper interval in seconds")
    quiesce_interval: PositiveFloat = Field(0.5, description="Quiesce retry sleep in seconds")
    acquire_timeout: Optional[PositiveFloat] = Field(
        None, description="Default acquire timeout in seconds"
    )


class LoggingConfig(BaseConfig):
    """Logging configuration.

    Attributes:
        level: Log level
        format: Log format (json, text)
        file_path: Log file path
        max_file_size: Maximum log file size in bytes
        backup_count: Number of backup files to keep
        console_output: Enable console output
    """

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        "INFO", description="Logging level"
    )
    format: Literal["json", "text"] = Field("json", description="Log format")
    file_path: Optional[Path] = Field(None, description="Log file path")
    max_file_size: PositiveInt = Field(10485760, description="Max file size in bytes (10MB)")
    backup_count: conint(ge=0) = Field(5, description="Number of backup files")
    console_output: bool = Field(True, description="Enable console output")

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v: Any) -> Any:
        """Accept lower-case level names."""
        return v.upper() if isinstance(v, str) else v


def default_engines() -> Dict[str, EngineConfig]:
    """Engine table used when a configuration file names none."""
    return {
        "mysql": EngineConfig(
            connector="mysql",
            driver="aiomysql",
            default_port=3306,
            options={"charset": "utf8mb4"},
        ),
        "postgresql": EngineConfig(
            connector="postgresql",
            driver="asyncpg",
            default_port=5432,
        ),
        "interbase": EngineConfig(
            connector="interbase",
            driver="firebird.driver",
            default_port=3050,
            options={"charset": "UTF8"},
        ),
    }


class SystemConfig(BaseConfig):
    """Top-level SchemaDesk configuration.

    Attributes:
        app_name: Application name
        engines: Engine configurations keyed by engine name
        pool: Pool timing
        logging: Logging configuration
        foreign_key_rows: Largest referenced table whose key values are
            offered as possible values of a foreign key column (0 disables)

    Example:
        >>> config = SystemConfig(engines={"mysql": {...}})
        >>> config.get_engine_config("mysql").driver
        'aiomysql'
    """

    app_name: str = Field("SchemaDesk", description="Application name")
    engines: Dict[str, EngineConfig] = Field(
        default_factory=default_engines, description="Engine configurations"
    )
    pool: PoolConfig = Field(default_factory=PoolConfig, description="Pool timing")
    logging: LoggingConfig = Field(default_factory=LoggingConfig, description="Logging config")
    foreign_key_rows: conint(ge=0) = Field(0, description="Foreign key value list limit")

    @field_validator("engines")
    @classmethod
    def validate_engines(cls, v: Dict[str, EngineConfig]) -> Dict[str, EngineConfig]:
        """Ensure engine names are plain identifiers.

        Args:
            v: Engine configurations

        Returns:
            Validated engine configurations

        Raises:
            ValidationError: If an engine name is not an identifier
        """
        for name in v:
            if not ValidationUtils.validate_identifier(name):
                raise ValidationError(
                    f"Invalid engine name: {name!r}",
                    code=ErrorCodes.CONFIG_VALIDATION_FAILED,
                    context={"engine": name},
                )
        return v

    def get_engine_config(self, engine: str) -> EngineConfig:
        """Get the configuration of one engine.

        Args:
            engine: Engine name

        Returns:
            Engine configuration

        Raises:
            ConfigurationError: If the engine is not configured
        """
        try:
            return self.engines[engine]
        except KeyError:
            raise ConfigurationError(
                f"No configuration for engine: {engine}",
                code=ErrorCodes.CONFIG_NOT_FOUND,
                context={"engine": engine, "available_engines": sorted(self.engines)},
            ) from None

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "SystemConfig":
        """Load configuration from a YAML file.

        Args:
            path: YAML file path

        Returns:
            Validated configuration

        Raises:
            ConfigurationError: If the file is missing or not a mapping
        """
        config_path = Path(path)
        if not config_path.is_file():
            raise ConfigurationError(
                f"Configuration file not found: {config_path}",
                code=ErrorCodes.CONFIG_NOT_FOUND,
                context={"path": str(config_path)},
            )

        with open(config_path, "r", encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigurationError(
                    f"Cannot parse configuration file: {e}",
                    code=ErrorCodes.CONFIG_INVALID,
                    context={"path": str(config_path)},
                    cause=e,
                ) from e

        if not isinstance(data, dict):
            raise ConfigurationError(
                "Configuration file must contain a mapping",
                code=ErrorCodes.CONFIG_INVALID,
                context={"path": str(config_path)},
            )
        return cls(**data)
