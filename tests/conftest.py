"""Pytest configuration and shared fixtures.

This module provides pytest configuration and shared fixtures for all tests
in the SchemaDesk test suite. No test talks to a real database: pools run on
:class:`FakeDriver`, which records every statement and answers queries from
scripted results.
"""

import tempfile
from pathlib import Path
from typing import Any, Callable, Generator, List, Optional, Sequence, Tuple
from unittest.mock import MagicMock

import pytest
import structlog

from schemadesk.config.models import ConnectionIdentity, EngineConfig, PoolConfig, SystemConfig
from schemadesk.database.drivers import Driver
from schemadesk.database.models import QueryResult
from schemadesk.database.pool import PoolRegistry

# Configure test logging to suppress noise during tests
structlog.configure(
    processors=[structlog.testing.LogCapture()],
    wrapper_class=structlog.BoundLogger,
    logger_factory=structlog.testing.ReturnLoggerFactory(),
    cache_logger_on_first_use=True,
)


class FakeConnection:
    """Stand-in for a physical driver connection."""

    def __init__(self, number: int):
        self.number = number
        self.closed = False

    def __repr__(self) -> str:
        return f"FakeConnection({self.number}, closed={self.closed})"


class FakeDriver(Driver):
    """Driver adapter recording statements instead of reaching a server.

    ``respond(fragment, rows)`` scripts the result of every query whose SQL
    contains ``fragment``; the first matching fragment wins. ``rows`` may be
    a callable taking the bound parameters. Unscripted queries return no
    rows.
    """

    name = "fake"
    module_name = "fake"

    def __init__(self) -> None:
        super().__init__(None)
        self.connections: List[FakeConnection] = []
        self.statements: List[Tuple[str, Tuple[Any, ...]]] = []
        self.responses: List[Tuple[str, Any, List[str]]] = []
        self.connect_error: Optional[BaseException] = None
        self.close_error: Optional[BaseException] = None
        self.execute_result = 1
        self.dropped: List[FakeConnection] = []

    def load(self) -> Any:
        return None

    def respond(self, fragment: str, rows: Any, columns: Sequence[str] = ()) -> None:
        self.responses.append((fragment, rows, list(columns)))

    def connect(self, identity: ConnectionIdentity, config: EngineConfig) -> FakeConnection:
        if self.connect_error is not None:
            raise self.connect_error
        conn = FakeConnection(len(self.connections) + 1)
        self.connections.append(conn)
        return conn

    def fetch(self, connection: Any, sql: str, params: Sequence[Any] = ()) -> QueryResult:
        self.statements.append((sql, tuple(params)))
        for fragment, rows, columns in self.responses:
            if fragment in sql:
                if callable(rows):
                    rows = rows(tuple(params))
                rows = [tuple(r) for r in rows]
                return QueryResult(columns=columns, rows=rows, row_count=len(rows))
        return QueryResult()

    def execute(self, connection: Any, sql: str, params: Sequence[Any] = ()) -> int:
        self.statements.append((sql, tuple(params)))
        return self.execute_result

    def close(self, connection: Any) -> None:
        if self.close_error is not None:
            raise self.close_error
        connection.closed = True

    def is_closed(self, connection: Any) -> bool:
        return connection.closed

    def drop_database(self, connection: Any) -> None:
        self.dropped.append(connection)
        connection.closed = True

    @property
    def sql(self) -> List[str]:
        """Statement texts in execution order."""
        return [sql for sql, _ in self.statements]

    @property
    def last(self) -> Tuple[str, Tuple[Any, ...]]:
        return self.statements[-1]


def make_identity(engine: str = "mysql", **overrides: Any) -> ConnectionIdentity:
    """Identity with sensible defaults per engine."""
    ports = {"mysql": 3306, "postgresql": 5432, "interbase": 3050}
    fields = {
        "engine": engine,
        "host": "localhost",
        "port": ports.get(engine, 3306),
        "username": "root",
        "password": "",
        "database": "test",
    }
    fields.update(overrides)
    return ConnectionIdentity(**fields)


def make_config(connections: int = 2, foreign_key_rows: int = 0, **pool_overrides: Any) -> SystemConfig:
    """System configuration routing every engine to the fake driver."""
    engines = {
        name: EngineConfig(connector=name, driver="fake", default_port=port, connections=connections)
        for name, port in (("mysql", 3306), ("postgresql", 5432), ("interbase", 3050))
    }
    pool = {"idle_timeout": 300.0, "cleanup_interval": 180.0, "quiesce_interval": 0.01}
    pool.update(pool_overrides)
    return SystemConfig(engines=engines, pool=PoolConfig(**pool), foreign_key_rows=foreign_key_rows)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide temporary directory for test files."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def mock_logger():
    """Mock structured logger for testing."""
    logger = MagicMock()
    logger.bind.return_value = logger
    logger.info = MagicMock()
    logger.error = MagicMock()
    logger.warning = MagicMock()
    logger.debug = MagicMock()
    return logger


@pytest.fixture
def fake_driver() -> FakeDriver:
    """Scriptable driver adapter."""
    return FakeDriver()


@pytest.fixture
def system_config() -> SystemConfig:
    """Configuration with two connections per identity on the fake driver."""
    return make_config()


@pytest.fixture
def pools(system_config: SystemConfig, fake_driver: FakeDriver) -> Generator[PoolRegistry, None, None]:
    """Pool registry backed by the fake driver."""
    registry = PoolRegistry(system_config, drivers={"fake": fake_driver})
    yield registry
    registry.close_all()


@pytest.fixture
def pool_factory(fake_driver: FakeDriver) -> Generator[Callable[..., PoolRegistry], None, None]:
    """Build extra pool registries on the shared fake driver."""
    created: List[PoolRegistry] = []

    def factory(connections: int = 2, foreign_key_rows: int = 0, **pool_overrides: Any) -> PoolRegistry:
        config = make_config(connections, foreign_key_rows, **pool_overrides)
        registry = PoolRegistry(config, drivers={"fake": fake_driver})
        created.append(registry)
        return registry

    yield factory
    for registry in created:
        registry.close_all()


@pytest.fixture
def identity_factory() -> Callable[..., ConnectionIdentity]:
    """Build identities with per-engine defaults."""
    return make_identity


@pytest.fixture
def mysql_identity() -> ConnectionIdentity:
    return make_identity("mysql")


@pytest.fixture
def postgresql_identity() -> ConnectionIdentity:
    return make_identity("postgresql", username="postgres")


@pytest.fixture
def interbase_identity() -> ConnectionIdentity:
    return make_identity("interbase", username="SYSDBA", database="/data/test.fdb")


@pytest.fixture
def sample_config_data() -> dict:
    """Sample configuration data for testing."""
    return {
        "app_name": "SchemaDesk",
        "engines": {
            "mysql": {
                "connector": "mysql",
                "driver": "aiomysql",
                "connections": 4,
                "default_port": 3306,
                "options": {"charset": "utf8mb4"},
            },
        },
        "pool": {
            "idle_timeout": 60,
            "cleanup_interval": 30,
        },
        "logging": {
            "level": "DEBUG",
            "format": "json",
            "console_output": True,
        },
        "foreign_key_rows": 100,
    }


@pytest.fixture
def config_file(temp_dir: Path, sample_config_data: dict) -> Path:
    """Create temporary configuration file."""
    import yaml

    config_path = temp_dir / "test_config.yaml"
    with open(config_path, 'w') as f:
        yaml.dump(sample_config_data, f)
    return config_path


# Pytest markers for different test categories
def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests (fast, isolated)"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests (slower, real dependencies)"
    )
    config.addinivalue_line(
        "markers", "slow: marks tests that take > 1 second"
    )
    config.addinivalue_line(
        "markers", "database: marks tests of the database layer"
    )


# Auto-mark tests based on their location
def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        test_path = Path(item.fspath).relative_to(Path(config.rootdir) / "tests")

        if test_path.parts[0] == "unit":
            item.add_marker(pytest.mark.unit)
        elif test_path.parts[0] == "integration":
            item.add_marker(pytest.mark.integration)

        if "database" in test_path.parts or "connectors" in test_path.parts:
            item.add_marker(pytest.mark.database)

        if not any(mark.name == "slow" for mark in item.iter_markers()):
            if any(mark.name == "integration" for mark in item.iter_markers()):
                item.add_marker(pytest.mark.slow)
