"""Unit tests for configuration models."""

import pytest
from pydantic import ValidationError as PydanticValidationError

from schemadesk.config.models import (
    ConnectionIdentity,
    EngineConfig,
    LoggingConfig,
    PoolConfig,
    SystemConfig,
)
from schemadesk.core.exceptions import ConfigurationError, ErrorCodes, ValidationError


def _identity(**overrides):
    fields = {
        "engine": "mysql",
        "host": "localhost",
        "port": 3306,
        "username": "root",
        "password": "",
        "database": "test",
    }
    fields.update(overrides)
    return ConnectionIdentity(**fields)


class TestConnectionIdentity:
    """Test cases for the pool key."""

    def test_equal_identities_hash_equal(self):
        """Test identities with equal fields are interchangeable as dict keys."""
        a = _identity(password="secret")
        b = _identity(password="secret")

        assert a == b
        assert hash(a) == hash(b)
        assert {a: 1}[b] == 1

    @pytest.mark.parametrize(
        "field, value",
        [
            ("engine", "postgresql"),
            ("host", "db.example.com"),
            ("port", 3307),
            ("username", "admin"),
            ("password", "other"),
            ("database", "prod"),
        ],
    )
    def test_any_field_difference_is_a_different_identity(self, field, value):
        assert _identity(**{field: value}) != _identity()

    def test_identity_is_frozen(self):
        identity = _identity()

        with pytest.raises(PydanticValidationError):
            identity.database = "other"

    def test_missing_password_is_empty(self):
        identity = _identity(password=None)

        assert identity.password.get_secret_value() == ""

    def test_password_not_exposed(self):
        identity = _identity(password="hunter2")

        assert "hunter2" not in repr(identity)
        assert "hunter2" not in identity.display_name
        assert identity.to_dict()["password"] == "***MASKED***"
        assert identity.to_dict(mask_secrets=False)["password"] == "hunter2"

    def test_display_name(self):
        assert _identity().display_name == "mysql://root@localhost:3306/test"

    def test_require_complete_returns_identity(self):
        identity = _identity()

        assert identity.require_complete() is identity

    @pytest.mark.parametrize("field", ["host", "username", "database"])
    def test_require_complete_blank_field(self, field):
        """Test a blank required field fails before any connection attempt."""
        with pytest.raises(ConfigurationError) as exc_info:
            _identity(**{field: "  "}).require_complete()

        assert exc_info.value.code == ErrorCodes.CONFIG_VALIDATION_FAILED
        assert exc_info.value.context["field"] == field

    @pytest.mark.parametrize("port", [0, 70000])
    def test_require_complete_bad_port(self, port):
        with pytest.raises(ConfigurationError) as exc_info:
            _identity(port=port).require_complete()

        assert exc_info.value.code == ErrorCodes.CONFIG_INVALID

    def test_empty_password_is_complete(self):
        _identity(password="").require_complete()

    def test_with_database(self):
        identity = _identity(engine="postgresql", port=5432, database="app")

        template = identity.with_database("template1")

        assert template.database == "template1"
        assert template.host == identity.host
        assert identity.database == "app"
        assert template != identity

    def test_from_dict(self):
        identity = ConnectionIdentity.from_dict({
            "engine": "interbase",
            "host": "localhost",
            "port": "3050",
            "username": "SYSDBA",
            "password": "masterkey",
            "database": "/data/test.fdb",
        })

        assert identity.port == 3050
        assert identity.password.get_secret_value() == "masterkey"

    def test_environment_variables_resolved(self, monkeypatch):
        """Test ${VAR} and ${VAR:default} references are resolved."""
        monkeypatch.setenv("SCHEMADESK_DB_HOST", "db.internal")
        monkeypatch.delenv("SCHEMADESK_DB_USER", raising=False)

        identity = _identity(host="${SCHEMADESK_DB_HOST}", username="${SCHEMADESK_DB_USER:admin}")

        assert identity.host == "db.internal"
        assert identity.username == "admin"

    def test_unknown_field_rejected(self):
        with pytest.raises(PydanticValidationError):
            _identity(schema="public")


class TestEngineAndPoolConfig:
    """Test cases for engine and pool settings."""

    def test_engine_defaults(self):
        config = EngineConfig(connector="mysql", driver="aiomysql", default_port=3306)

        assert config.connections == 2
        assert config.connect_timeout == 30.0
        assert config.options == {}

    @pytest.mark.parametrize("connections", [0, -1])
    def test_connections_must_be_positive(self, connections):
        with pytest.raises(PydanticValidationError):
            EngineConfig(connector="mysql", driver="aiomysql", default_port=3306, connections=connections)

    def test_pool_defaults(self):
        config = PoolConfig()

        assert config.idle_timeout == 300.0
        assert config.cleanup_interval == 180.0
        assert config.quiesce_interval == 0.5
        assert config.acquire_timeout is None

    def test_pool_rejects_non_positive_timeout(self):
        with pytest.raises(PydanticValidationError):
            PoolConfig(idle_timeout=0)


class TestLoggingConfig:
    def test_level_normalized(self):
        assert LoggingConfig(level="debug").level == "DEBUG"

    def test_unknown_format_rejected(self):
        with pytest.raises(PydanticValidationError):
            LoggingConfig(format="xml")


class TestSystemConfig:
    """Test cases for the top-level configuration."""

    def test_default_engines(self):
        config = SystemConfig()

        assert sorted(config.engines) == ["interbase", "mysql", "postgresql"]
        assert config.get_engine_config("postgresql").driver == "asyncpg"
        assert config.get_engine_config("mysql").driver == "aiomysql"
        assert config.get_engine_config("interbase").driver == "firebird.driver"
        assert config.foreign_key_rows == 0

    def test_unknown_engine(self):
        with pytest.raises(ConfigurationError) as exc_info:
            SystemConfig().get_engine_config("oracle")

        assert exc_info.value.code == ErrorCodes.CONFIG_NOT_FOUND
        assert exc_info.value.context["available_engines"] == ["interbase", "mysql", "postgresql"]

    def test_invalid_engine_name(self):
        with pytest.raises(ValidationError) as exc_info:
            SystemConfig(engines={
                "my-sql": {"connector": "mysql", "driver": "aiomysql", "default_port": 3306},
            })

        assert exc_info.value.code == ErrorCodes.CONFIG_VALIDATION_FAILED

    def test_from_file(self, config_file):
        """Test loading configuration from YAML."""
        config = SystemConfig.from_file(config_file)

        assert list(config.engines) == ["mysql"]
        assert config.get_engine_config("mysql").connections == 4
        assert config.get_engine_config("mysql").options == {"charset": "utf8mb4"}
        assert config.pool.idle_timeout == 60
        assert config.logging.level == "DEBUG"
        assert config.foreign_key_rows == 100

    def test_from_missing_file(self, temp_dir):
        with pytest.raises(ConfigurationError) as exc_info:
            SystemConfig.from_file(temp_dir / "missing.yaml")

        assert exc_info.value.code == ErrorCodes.CONFIG_NOT_FOUND

    def test_from_file_not_a_mapping(self, temp_dir):
        path = temp_dir / "list.yaml"
        path.write_text("- mysql\n- postgresql\n")

        with pytest.raises(ConfigurationError) as exc_info:
            SystemConfig.from_file(path)

        assert exc_info.value.code == ErrorCodes.CONFIG_INVALID

    def test_from_file_unparsable(self, temp_dir):
        path = temp_dir / "broken.yaml"
        path.write_text("engines: [mysql\n")

        with pytest.raises(ConfigurationError) as exc_info:
            SystemConfig.from_file(path)

        assert exc_info.value.code == ErrorCodes.CONFIG_INVALID
        assert exc_info.value.cause is not None

    def test_empty_file_uses_defaults(self, temp_dir):
        path = temp_dir / "empty.yaml"
        path.write_text("")

        config = SystemConfig.from_file(path)

        assert config.app_name == "SchemaDesk"
        assert "mysql" in config.engines
