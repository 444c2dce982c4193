"""Unit tests for the dialect registry and the connector factory."""

import pytest

from schemadesk.config.models import EngineConfig, SystemConfig
from schemadesk.core.exceptions import ConfigurationError, ErrorCodes
from schemadesk.database.base import BaseDialectConnector
from schemadesk.database.connectors import InterbaseConnector, MySQLConnector, PostgreSQLConnector
from schemadesk.database.factory import ConnectorFactory
from schemadesk.database.pool import PoolRegistry
from schemadesk.database.registry import DialectRegistry, register_builtin_dialects


@pytest.fixture
def registry():
    """Registry holding the built-in dialects."""
    return register_builtin_dialects(DialectRegistry())


@pytest.fixture
def connector_factory(system_config, registry, pools):
    return ConnectorFactory(system_config, registry, pools)


class TestDialectRegistry:
    """Test cases for DialectRegistry."""

    def test_builtin_dialects(self, registry):
        assert registry.list_dialects() == ["interbase", "mysql", "postgresql"]
        assert registry.get("mysql") is MySQLConnector
        assert registry.get("postgresql") is PostgreSQLConnector
        assert registry.get("interbase") is InterbaseConnector
        assert len(registry) == 3
        assert "mysql" in registry

    def test_unknown_dialect(self, registry):
        with pytest.raises(ConfigurationError) as exc_info:
            registry.get("oracle")

        assert exc_info.value.code == ErrorCodes.ENGINE_NOT_REGISTERED
        assert exc_info.value.context["available_dialects"] == ["interbase", "mysql", "postgresql"]

    def test_register_rejects_empty_name(self):
        with pytest.raises(ConfigurationError) as exc_info:
            DialectRegistry().register("", MySQLConnector)

        assert exc_info.value.code == ErrorCodes.CONFIG_INVALID

    def test_register_rejects_non_callable(self):
        with pytest.raises(ConfigurationError) as exc_info:
            DialectRegistry().register("mysql", "MySQLConnector")

        assert exc_info.value.code == ErrorCodes.CONFIG_INVALID
        assert exc_info.value.context["dialect"] == "mysql"

    def test_register_overrides(self, registry):
        """Test a later registration replaces the earlier one."""

        class CustomConnector(MySQLConnector):
            pass

        registry.register("mysql", CustomConnector)

        assert registry.get("mysql") is CustomConnector
        assert len(registry) == 3

    def test_unregister(self, registry):
        registry.unregister("interbase")

        assert not registry.is_registered("interbase")
        with pytest.raises(ConfigurationError):
            registry.unregister("interbase")


class TestConnectorFactory:
    """Test cases for ConnectorFactory.for_identity."""

    @pytest.mark.parametrize(
        "engine, expected",
        [
            ("mysql", MySQLConnector),
            ("postgresql", PostgreSQLConnector),
            ("interbase", InterbaseConnector),
        ],
    )
    def test_dialect_follows_engine(self, connector_factory, identity_factory, pools, engine, expected):
        identity = identity_factory(engine)

        connector = connector_factory.for_identity(identity)

        assert type(connector) is expected
        assert connector.identity == identity
        assert connector.pools is pools

    def test_engine_alias(self, registry, fake_driver, identity_factory):
        """Test an engine may reuse another engine's dialect."""
        config = SystemConfig(engines={
            "mariadb": EngineConfig(connector="mysql", driver="fake", default_port=3306),
        })
        pools = PoolRegistry(config, drivers={"fake": fake_driver})

        connector = ConnectorFactory(config, registry, pools).for_identity(identity_factory("mariadb"))

        assert isinstance(connector, MySQLConnector)

    def test_incomplete_identity(self, connector_factory, identity_factory):
        with pytest.raises(ConfigurationError) as exc_info:
            connector_factory.for_identity(identity_factory("mysql", host=""))

        assert exc_info.value.code == ErrorCodes.CONFIG_VALIDATION_FAILED
        assert exc_info.value.context["field"] == "host"

    def test_unconfigured_engine(self, connector_factory, identity_factory):
        with pytest.raises(ConfigurationError) as exc_info:
            connector_factory.for_identity(identity_factory("oracle", port=1521))

        assert exc_info.value.code == ErrorCodes.CONFIG_NOT_FOUND

    def test_unregistered_dialect(self, system_config, pools, identity_factory):
        with pytest.raises(ConfigurationError) as exc_info:
            ConnectorFactory(system_config, DialectRegistry(), pools).for_identity(identity_factory("mysql"))

        assert exc_info.value.code == ErrorCodes.ENGINE_NOT_REGISTERED

    def test_custom_constructor(self, system_config, pools, identity_factory):
        """Test any callable taking (identity, pools, config) can be registered."""
        registry = DialectRegistry()
        built = []

        def constructor(identity, pools, config):
            connector = BaseDialectConnector(identity, pools, config)
            built.append(connector)
            return connector

        registry.register("mysql", constructor)

        connector = ConnectorFactory(system_config, registry, pools).for_identity(identity_factory("mysql"))

        assert built == [connector]
        assert connector.config is system_config
