"""Dialect registry mapping engine names to connector constructors."""

from typing import Callable, Dict, List, Optional

from ..config.models import ConnectionIdentity, SystemConfig
from ..core.exceptions import ConfigurationError, ErrorCodes
from ..logging import get_logger
from .base import BaseDialectConnector
from .connectors import InterbaseConnector, MySQLConnector, PostgreSQLConnector
from .pool import PoolRegistry

ConnectorConstructor = Callable[
    [ConnectionIdentity, PoolRegistry, Optional[SystemConfig]], BaseDialectConnector
]


class DialectRegistry:
    """Explicit mapping from dialect name to connector constructor.

    A constructor is any callable taking ``(identity, pools, config)``,
    usually a :class:`BaseDialectConnector` subclass.

    Example:
        >>> registry = DialectRegistry()
        >>> registry.register("mysql", MySQLConnector)
        >>> registry.get("mysql")
        <class 'schemadesk.database.connectors.mysql.MySQLConnector'>
    """

    def __init__(self):
        self.logger = get_logger("database.registry")
        self._constructors: Dict[str, ConnectorConstructor] = {}

    def register(self, name: str, constructor: ConnectorConstructor) -> None:
        """Register a dialect constructor.

        Args:
            name: Dialect name referenced by ``EngineConfig.connector``
            constructor: Callable building a connector

        Raises:
            ConfigurationError: If the name is empty or the constructor is
                not callable
        """
        if not name:
            raise ConfigurationError(
                "Dialect name must not be empty",
                code=ErrorCodes.CONFIG_INVALID,
                context={"constructor": repr(constructor)},
            )
        if not callable(constructor):
            raise ConfigurationError(
                f"Dialect constructor for {name} is not callable",
                code=ErrorCodes.CONFIG_INVALID,
                context={"dialect": name, "constructor": repr(constructor)},
            )

        if name in self._constructors:
            self.logger.warning(
                "Overriding existing dialect registration",
                dialect=name,
                existing=getattr(self._constructors[name], "__name__", repr(self._constructors[name])),
            )
        self._constructors[name] = constructor
        self.logger.info(
            "Dialect registered",
            dialect=name,
            constructor=getattr(constructor, "__name__", repr(constructor)),
        )

    def unregister(self, name: str) -> None:
        """Remove a dialect.

        Raises:
            ConfigurationError: If the dialect is not registered
        """
        self.get(name)
        del self._constructors[name]
        self.logger.info("Dialect unregistered", dialect=name)

    def get(self, name: str) -> ConnectorConstructor:
        """Get the constructor of a dialect.

        Raises:
            ConfigurationError: If the dialect is not registered
        """
        try:
            return self._constructors[name]
        except KeyError:
            raise ConfigurationError(
                f"No dialect registered for: {name}",
                code=ErrorCodes.ENGINE_NOT_REGISTERED,
                context={"dialect": name, "available_dialects": self.list_dialects()},
            ) from None

    def is_registered(self, name: str) -> bool:
        return name in self._constructors

    def list_dialects(self) -> List[str]:
        return sorted(self._constructors)

    def __contains__(self, name: object) -> bool:
        return name in self._constructors

    def __len__(self) -> int:
        return len(self._constructors)


def register_builtin_dialects(registry: DialectRegistry) -> DialectRegistry:
    """Register the MySQL, PostgreSQL and Interbase dialects.

    Returns:
        The registry, for chaining
    """
    registry.register("mysql", MySQLConnector)
    registry.register("postgresql", PostgreSQLConnector)
    registry.register("interbase", InterbaseConnector)
    return registry
