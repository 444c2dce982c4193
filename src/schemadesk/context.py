"""Application context owning the shared database infrastructure.

One context holds the driver event loop, the connection pools of every
identity, the idle-connection reaper and the dialect registry. Everything
that needs a connector asks the context rather than a module global.

Example:
    >>> with ApplicationContext(SystemConfig.from_file("schemadesk.yaml")) as app:
    ...     connector = app.for_identity(identity)
    ...     connector.get_tables()
"""

from pathlib import Path
from typing import Any, Dict, Optional, Type, Union

from .config.models import ConnectionIdentity, SystemConfig
from .core.exceptions import ConnectionPoolError, ErrorCodes
from .database.base import BaseDialectConnector
from .database.drivers import Driver, DriverRuntime
from .database.factory import ConnectorFactory
from .database.pool import PoolReaper, PoolRegistry
from .database.registry import DialectRegistry, register_builtin_dialects
from .logging import get_factory, get_logger


class ApplicationContext:
    """Lifecycle owner of pools, driver runtime, reaper and dialects.

    Attributes:
        config: System configuration
        runtime: Event loop hosting async drivers
        pools: Connection pools keyed by identity
        registry: Dialect registry with the built-in dialects
        reaper: Background idle-connection reclamation
        factory: Connector factory over ``registry`` and ``pools``
    """

    def __init__(
        self,
        config: Optional[SystemConfig] = None,
        *,
        drivers: Optional[Dict[str, Driver]] = None,
        registry: Optional[DialectRegistry] = None,
        configure_logging: bool = False,
    ):
        """Initialize the context without starting any thread.

        Args:
            config: System configuration, defaults to built-in settings
            drivers: Pre-built driver adapters keyed by driver name
            registry: Dialect registry, defaults to the built-in dialects
            configure_logging: Apply ``config.logging`` on :meth:`start`
        """
        self.config = config if config is not None else SystemConfig()
        self.runtime = DriverRuntime()
        self.pools = PoolRegistry(self.config, self.runtime, drivers)
        self.registry = registry if registry is not None else register_builtin_dialects(DialectRegistry())
        self.reaper = PoolReaper(self.pools, self.config.pool.cleanup_interval)
        self.factory = ConnectorFactory(self.config, self.registry, self.pools)

        self._configure_logging = configure_logging
        self._started = False
        self._stopped = False
        self.logger = get_logger("context")

    @classmethod
    def from_file(cls, path: Union[str, Path], **kwargs: Any) -> "ApplicationContext":
        """Build a context from a YAML configuration file."""
        return cls(SystemConfig.from_file(path), **kwargs)

    @property
    def is_running(self) -> bool:
        return self._started and not self._stopped

    def start(self) -> "ApplicationContext":
        """Start the driver runtime and the reaper.

        Raises:
            ConnectionPoolError: If the context has already been stopped
        """
        if self._stopped:
            raise ConnectionPoolError(
                "Application context has been stopped",
                code=ErrorCodes.POOL_CLOSED,
                context={"app_name": self.config.app_name},
            )
        if self._started:
            return self

        if self._configure_logging:
            get_factory().configure_from_config(self.config.logging)
        self.runtime.start()
        self.reaper.start()
        self._started = True
        self.logger.info(
            "Application context started",
            app_name=self.config.app_name,
            engines=sorted(self.config.engines),
            dialects=self.registry.list_dialects(),
        )
        return self

    def stop(self) -> None:
        """Stop the reaper, close every pool and stop the driver runtime."""
        if self._stopped:
            return
        self._stopped = True
        self.reaper.stop()
        self.pools.close_all()
        self.runtime.stop()
        self.logger.info("Application context stopped", app_name=self.config.app_name)

    def for_identity(self, identity: ConnectionIdentity) -> BaseDialectConnector:
        """Create the dialect connector for ``identity``."""
        return self.factory.for_identity(identity)

    def get_stats(self) -> Dict[str, Any]:
        return {
            "running": self.is_running,
            "reaper_running": self.reaper.is_running,
            "dialects": self.registry.list_dialects(),
            "pools": self.pools.get_stats(),
        }

    def __enter__(self) -> "ApplicationContext":
        return self.start()

    def __exit__(self, exc_type: Optional[Type[BaseException]], exc_val: Any, exc_tb: Any) -> None:
        self.stop()

    def __repr__(self) -> str:
        return f"ApplicationContext(app_name={self.config.app_name!r}, running={self.is_running})"
