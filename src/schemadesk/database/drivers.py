"""Driver adapters.

Every engine is reached through the same small synchronous surface so the
pool and the dialects never see driver specifics:

- ``load()`` imports the driver module, once;
- ``connect(identity, engine_config)`` opens a physical connection;
- ``fetch`` / ``execute`` run one auto-committed statement;
- ``close`` / ``is_closed`` manage the physical connection;
- ``drop_database`` drops the attached database where the engine does
  that through the connection rather than a statement.

asyncpg and aiomysql are asyncio drivers. Their coroutines run on the single
event loop owned by :class:`DriverRuntime`, which lives on a daemon thread;
request threads block on the returned future. firebird-driver is synchronous
and is called directly.
"""

import asyncio
import concurrent.futures
import importlib
import threading
from abc import ABC, abstractmethod
from typing import Any, Coroutine, Dict, Optional, Sequence, Type

from ..config.models import ConnectionIdentity, EngineConfig
from ..core.exceptions import (
    ConfigurationError,
    DatabaseConnectionError,
    ErrorCodes,
    QueryError,
    unsupported,
)
from ..logging import get_logger
from .models import QueryResult


class DriverRuntime:
    """Background asyncio loop shared by all async driver connections.

    Connections created by asyncpg and aiomysql are bound to the loop that
    created them, so every coroutine touching them is submitted here.

    Example:
        >>> runtime = DriverRuntime()
        >>> runtime.start()
        >>> runtime.run(asyncio.sleep(0, result=42))
        42
        >>> runtime.stop()
    """

    def __init__(self, name: str = "schemadesk-driver-loop") -> None:
        self.name = name
        self.logger = get_logger("database.drivers.runtime")
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the loop thread if it is not already running."""
        with self._lock:
            if self.is_running:
                return
            self._loop = asyncio.new_event_loop()
            self._thread = threading.Thread(
                target=self._loop.run_forever,
                name=self.name,
                daemon=True,
            )
            self._thread.start()
            self.logger.debug("Driver event loop started", thread=self.name)

    def run(self, coro: Coroutine[Any, Any, Any], timeout: Optional[float] = None) -> Any:
        """Run a coroutine on the loop and wait for its result.

        Args:
            coro: Coroutine to run
            timeout: Seconds to wait, None to wait forever

        Returns:
            The coroutine's result

        Raises:
            RuntimeError: If called from the loop thread itself
        """
        self.start()
        if threading.current_thread() is self._thread:
            coro.close()
            raise RuntimeError("DriverRuntime.run() called from the driver loop thread")

        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        try:
            return future.result(timeout)
        except concurrent.futures.TimeoutError:
            future.cancel()
            raise

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the loop and join its thread."""
        with self._lock:
            if self._loop is None:
                return
            loop, thread = self._loop, self._thread
            self._loop = None
            self._thread = None

        loop.call_soon_threadsafe(loop.stop)
        if thread is not None:
            thread.join(timeout)
        if not loop.is_running():
            loop.close()
        self.logger.debug("Driver event loop stopped", thread=self.name)


class Driver(ABC):
    """Uniform synchronous surface over one database driver.

    Attributes:
        name: Driver key used in ``EngineConfig.driver``
        module_name: Module imported by :meth:`load`
    """

    name: str = "unknown"
    module_name: str = ""

    def __init__(self, runtime: Optional[DriverRuntime] = None) -> None:
        self.runtime = runtime
        self.logger = get_logger(f"database.drivers.{self.name}")
        self._module: Any = None
        self._load_lock = threading.Lock()

    @property
    def is_loaded(self) -> bool:
        return self._module is not None

    def load(self) -> Any:
        """Import the driver module once.

        Returns:
            The imported module

        Raises:
            DatabaseConnectionError: If the module cannot be imported
        """
        if self._module is not None:
            return self._module

        with self._load_lock:
            if self._module is None:
                try:
                    self._module = importlib.import_module(self.module_name)
                except ImportError as e:
                    raise DatabaseConnectionError(
                        f"Cannot load database driver {self.module_name}: {e}",
                        code=ErrorCodes.DRIVER_LOAD_FAILED,
                        context={"driver": self.name, "module": self.module_name},
                        cause=e,
                    ) from e
                self.logger.info("Database driver loaded", driver=self.name)
        return self._module

    def _run(self, coro: Coroutine[Any, Any, Any], timeout: Optional[float] = None) -> Any:
        if self.runtime is None:
            coro.close()
            raise DatabaseConnectionError(
                f"Driver {self.name} requires a running driver runtime",
                code=ErrorCodes.DRIVER_LOAD_FAILED,
                context={"driver": self.name},
            )
        return self.runtime.run(coro, timeout)

    @staticmethod
    def _connection_context(identity: ConnectionIdentity) -> Dict[str, Any]:
        return {
            "engine": identity.engine,
            "host": identity.host,
            "port": identity.port,
            "database": identity.database,
        }

    def _query_error(self, error: Exception, sql: str, **context: Any) -> QueryError:
        return QueryError(
            f"Statement failed: {error}",
            code=ErrorCodes.QUERY_EXECUTION_FAILED,
            context={"driver": self.name, "statement": sql, **context},
            cause=error,
        )

    @abstractmethod
    def connect(self, identity: ConnectionIdentity, config: EngineConfig) -> Any:
        """Open a physical connection."""

    @abstractmethod
    def fetch(self, connection: Any, sql: str, params: Sequence[Any] = ()) -> QueryResult:
        """Run a query and return all rows."""

    @abstractmethod
    def execute(self, connection: Any, sql: str, params: Sequence[Any] = ()) -> int:
        """Run a statement and return the affected row count."""

    @abstractmethod
    def close(self, connection: Any) -> None:
        """Close a physical connection."""

    @abstractmethod
    def is_closed(self, connection: Any) -> bool:
        """Return True if the connection can no longer be used."""

    def drop_database(self, connection: Any) -> None:
        """Drop the database the connection is attached to.

        Only drivers whose engine drops databases through the attachment
        itself implement this.
        """
        raise unsupported(self.name, "drop_database", "use a DROP DATABASE statement")


class AsyncpgDriver(Driver):
    """PostgreSQL through asyncpg; parameters are written ``$1``, ``$2``..."""

    name = "asyncpg"
    module_name = "asyncpg"

    def connect(self, identity: ConnectionIdentity, config: EngineConfig) -> Any:
        asyncpg = self.load()
        try:
            return self._run(asyncpg.connect(
                host=identity.host,
                port=identity.port,
                user=identity.username,
                password=identity.password.get_secret_value() or None,
                database=identity.database,
                timeout=config.connect_timeout,
                **config.options,
            ))
        except (asyncpg.InvalidAuthorizationSpecificationError, asyncpg.InvalidPasswordError) as e:
            raise DatabaseConnectionError(
                f"PostgreSQL authentication failed: {e}",
                code=ErrorCodes.AUTH_FAILED,
                context=self._connection_context(identity),
                cause=e,
            ) from e
        except (asyncio.TimeoutError, concurrent.futures.TimeoutError) as e:
            raise DatabaseConnectionError(
                f"PostgreSQL connection timeout: {e}",
                code=ErrorCodes.CONNECTION_TIMEOUT,
                context=self._connection_context(identity),
                cause=e,
            ) from e
        except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            raise DatabaseConnectionError(
                f"PostgreSQL connection failed: {e}",
                code=ErrorCodes.CONNECTION_REFUSED,
                context=self._connection_context(identity),
                cause=e,
            ) from e

    def fetch(self, connection: Any, sql: str, params: Sequence[Any] = ()) -> QueryResult:
        asyncpg = self.load()
        try:
            records = self._run(connection.fetch(sql, *params))
        except (asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            raise self._query_error(e, sql, sqlstate=getattr(e, "sqlstate", None)) from e

        columns = list(records[0].keys()) if records else []
        rows = [tuple(record.values()) for record in records]
        return QueryResult(columns=columns, rows=rows, row_count=len(rows))

    def execute(self, connection: Any, sql: str, params: Sequence[Any] = ()) -> int:
        asyncpg = self.load()
        try:
            status = self._run(connection.execute(sql, *params))
        except (asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            raise self._query_error(e, sql, sqlstate=getattr(e, "sqlstate", None)) from e

        # Command tags look like "DELETE 3" or "INSERT 0 1"
        last = str(status or "").rsplit(" ", 1)[-1]
        return int(last) if last.isdigit() else 0

    def close(self, connection: Any) -> None:
        self._run(connection.close())

    def is_closed(self, connection: Any) -> bool:
        return connection.is_closed()


class AiomysqlDriver(Driver):
    """MySQL through aiomysql; parameters are written ``%s``."""

    name = "aiomysql"
    module_name = "aiomysql"

    def connect(self, identity: ConnectionIdentity, config: EngineConfig) -> Any:
        aiomysql = self.load()
        try:
            return self._run(aiomysql.connect(
                host=identity.host,
                port=identity.port,
                user=identity.username,
                password=identity.password.get_secret_value(),
                db=identity.database,
                autocommit=True,
                connect_timeout=config.connect_timeout,
                **config.options,
            ))
        except aiomysql.OperationalError as e:
            error_code = e.args[0] if e.args else 0
            if error_code == 1045:  # Access denied
                code = ErrorCodes.AUTH_FAILED
            elif error_code == 2013:  # Lost connection during handshake
                code = ErrorCodes.CONNECTION_TIMEOUT
            else:
                code = ErrorCodes.CONNECTION_REFUSED
            raise DatabaseConnectionError(
                f"MySQL connection failed: {e}",
                code=code,
                context={**self._connection_context(identity), "mysql_error_code": error_code},
                cause=e,
            ) from e
        except (OSError, asyncio.TimeoutError, aiomysql.Error) as e:
            raise DatabaseConnectionError(
                f"MySQL connection failed: {e}",
                code=ErrorCodes.CONNECTION_REFUSED,
                context=self._connection_context(identity),
                cause=e,
            ) from e

    async def _cursor_run(self, connection: Any, sql: str, params: Sequence[Any], fetch: bool) -> Any:
        async with connection.cursor() as cursor:
            # aiomysql only %-formats the statement when args is not None
            await cursor.execute(sql, tuple(params) if params else None)
            if not fetch:
                return cursor.rowcount
            rows = await cursor.fetchall()
            columns = [d[0] for d in cursor.description] if cursor.description else []
            return columns, rows

    def fetch(self, connection: Any, sql: str, params: Sequence[Any] = ()) -> QueryResult:
        aiomysql = self.load()
        try:
            columns, rows = self._run(self._cursor_run(connection, sql, params, True))
        except aiomysql.Error as e:
            raise self._query_error(e, sql, mysql_error_code=e.args[0] if e.args else None) from e

        rows = [tuple(row) for row in rows or ()]
        return QueryResult(columns=columns, rows=rows, row_count=len(rows))

    def execute(self, connection: Any, sql: str, params: Sequence[Any] = ()) -> int:
        aiomysql = self.load()
        try:
            return self._run(self._cursor_run(connection, sql, params, False))
        except aiomysql.Error as e:
            raise self._query_error(e, sql, mysql_error_code=e.args[0] if e.args else None) from e

    def close(self, connection: Any) -> None:
        async def _close() -> None:
            connection.close()
        self._run(_close())

    def is_closed(self, connection: Any) -> bool:
        return connection.closed


class FirebirdDriver(Driver):
    """Interbase and Firebird through firebird-driver; parameters are ``?``.

    firebird-driver has no autocommit mode, so every statement is committed
    right after it runs.
    """

    name = "firebird.driver"
    module_name = "firebird.driver"

    def connect(self, identity: ConnectionIdentity, config: EngineConfig) -> Any:
        fdb = self.load()
        dsn = f"{identity.host}/{identity.port}:{identity.database}"
        try:
            return fdb.connect(
                dsn,
                user=identity.username,
                password=identity.password.get_secret_value(),
                **config.options,
            )
        except fdb.DatabaseError as e:
            raise DatabaseConnectionError(
                f"Interbase connection failed: {e}",
                code=ErrorCodes.CONNECTION_REFUSED,
                context=self._connection_context(identity),
                cause=e,
            ) from e

    def _rollback(self, connection: Any, fdb: Any) -> None:
        try:
            connection.rollback()
        except fdb.DatabaseError as e:
            self.logger.warning("Rollback failed", error=str(e))

    def fetch(self, connection: Any, sql: str, params: Sequence[Any] = ()) -> QueryResult:
        fdb = self.load()
        try:
            with connection.cursor() as cursor:
                cursor.execute(sql, list(params))
                columns = [d[0] for d in cursor.description] if cursor.description else []
                rows = [tuple(row) for row in cursor.fetchall()]
            connection.commit()
        except fdb.DatabaseError as e:
            self._rollback(connection, fdb)
            raise self._query_error(e, sql) from e
        return QueryResult(columns=columns, rows=rows, row_count=len(rows))

    def execute(self, connection: Any, sql: str, params: Sequence[Any] = ()) -> int:
        fdb = self.load()
        try:
            with connection.cursor() as cursor:
                cursor.execute(sql, list(params))
                count = cursor.affected_rows
            connection.commit()
        except fdb.DatabaseError as e:
            self._rollback(connection, fdb)
            raise self._query_error(e, sql) from e
        return max(count, 0)

    def drop_database(self, connection: Any) -> None:
        """Drop the attached database file; the connection is closed by it."""
        fdb = self.load()
        try:
            connection.drop_database()
        except fdb.DatabaseError as e:
            raise self._query_error(e, "DROP DATABASE") from e

    def close(self, connection: Any) -> None:
        connection.close()

    def is_closed(self, connection: Any) -> bool:
        return connection.is_closed()


DRIVERS: Dict[str, Type[Driver]] = {
    AsyncpgDriver.name: AsyncpgDriver,
    AiomysqlDriver.name: AiomysqlDriver,
    FirebirdDriver.name: FirebirdDriver,
}


def create_driver(
    name: str,
    runtime: Optional[DriverRuntime] = None,
    drivers: Optional[Dict[str, Type[Driver]]] = None,
) -> Driver:
    """Instantiate the adapter registered under ``name``.

    Args:
        name: Driver key from ``EngineConfig.driver``
        runtime: Event loop runtime for async drivers
        drivers: Adapter table, defaults to :data:`DRIVERS`

    Returns:
        Driver adapter

    Raises:
        ConfigurationError: If no adapter is registered under ``name``
    """
    table = DRIVERS if drivers is None else drivers
    try:
        driver_class = table[name]
    except KeyError:
        raise ConfigurationError(
            f"Unknown database driver: {name}",
            code=ErrorCodes.CONFIG_INVALID,
            context={"driver": name, "available_drivers": sorted(table)},
        ) from None
    return driver_class(runtime)
