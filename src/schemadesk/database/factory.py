"""Connector factory selecting the dialect of a connection identity."""

from ..config.models import ConnectionIdentity, SystemConfig
from ..logging import get_logger
from .base import BaseDialectConnector
from .pool import PoolRegistry
from .registry import DialectRegistry


class ConnectorFactory:
    """Builds dialect connectors for connection identities.

    The identity's engine selects an ``EngineConfig`` whose ``connector``
    names the dialect in the registry.
    """

    def __init__(self, config: SystemConfig, registry: DialectRegistry, pools: PoolRegistry):
        self.config = config
        self.registry = registry
        self.pools = pools
        self.logger = get_logger("database.factory")

    def for_identity(self, identity: ConnectionIdentity) -> BaseDialectConnector:
        """Create the connector serving ``identity``.

        Args:
            identity: Complete connection identity

        Returns:
            Dialect connector bound to the shared pool registry

        Raises:
            ConfigurationError: If the identity is incomplete, its engine is
                not configured, or the engine's dialect is not registered
        """
        identity.require_complete()
        engine_config = self.config.get_engine_config(identity.engine)
        constructor = self.registry.get(engine_config.connector)
        connector = constructor(identity, self.pools, self.config)

        self.logger.debug(
            "Connector created",
            engine=identity.engine,
            dialect=engine_config.connector,
            connector_class=type(connector).__name__,
        )
        return connector
