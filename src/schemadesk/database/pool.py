"""
Connection pool implementation for SchemaDesk.

One :class:`ConnectionPool` exists per connection identity, holding a fixed
number of slots. A counting semaphore bounds concurrent holders; the per-pool
lock guards slot state. :class:`PoolRegistry` finds or creates pools and is
owned by the application context. :class:`PoolReaper` closes idle
connections in the background.
"""

import threading
import time
from contextlib import contextmanager
from typing import Any, Dict, Generator, List, Optional, Sequence, Tuple, Union

from ..config.models import ConnectionIdentity, EngineConfig, PoolConfig, SystemConfig
from ..core.exceptions import (
    ConnectionPoolError,
    ErrorCodes,
)
from ..logging import get_logger
from .drivers import Driver, DriverRuntime, create_driver
from .models import QueryResult


class PoolSlot:
    """One pool-managed physical connection placeholder."""

    def __init__(self, index: int):
        self.index = index
        self.connection: Any = None
        self.busy = False
        self.acquired_at = 0.0
        self.released_at: Optional[float] = None
        self.use_count = 0
        self.connect_count = 0
        self.total_time = 0.0
        self.holder: Optional["PooledConnection"] = None

    def is_idle(self, now: float, idle_timeout: float) -> bool:
        """Free, open and unused for at least ``idle_timeout`` seconds."""
        return (
            not self.busy
            and self.connection is not None
            and self.released_at is not None
            and now - self.released_at >= idle_timeout
        )

    def mark_released(self, now: float) -> None:
        self.busy = False
        self.released_at = now
        self.total_time += now - self.acquired_at
        self.detach_holder()

    def detach_holder(self) -> None:
        """Invalidate the handle of the current holder, if any."""
        if self.holder is not None:
            self.holder._released = True
            self.holder = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "busy": self.busy,
            "open": self.connection is not None,
            "use_count": self.use_count,
            "connect_count": self.connect_count,
            "total_time": self.total_time,
        }


class PooledConnection:
    """Handle on one acquired slot.

    Statements run through the handle are auto-committed by the driver. The
    handle releases its slot once; further releases are ignored, as are
    releases after the slot was freed by raw connection or forced closed.

    Example:
        >>> with pools.acquire(identity) as conn:
        ...     conn.fetch_value("SELECT count(*) FROM users")
        12
    """

    def __init__(self, pool: "ConnectionPool", raw: Any, slot: PoolSlot):
        self.pool = pool
        self.raw = raw
        self.slot = slot
        self._released = False

    @property
    def identity(self) -> ConnectionIdentity:
        return self.pool.identity

    @property
    def released(self) -> bool:
        return self._released

    def _check_open(self) -> None:
        if self._released:
            raise ConnectionPoolError(
                "Connection has already been released",
                code=ErrorCodes.POOL_CLOSED,
                context={"identity": self.identity.display_name},
            )

    def fetch(self, sql: str, params: Sequence[Any] = ()) -> QueryResult:
        """Run a query and return every row."""
        self._check_open()
        self.pool.logger.debug("Query", statement=sql)
        return self.pool.driver.fetch(self.raw, sql, params)

    def fetch_one(self, sql: str, params: Sequence[Any] = ()) -> Optional[Tuple[Any, ...]]:
        """Run a query and return its first row, None when empty."""
        return self.fetch(sql, params).first()

    def fetch_value(self, sql: str, params: Sequence[Any] = ()) -> Any:
        """Run a query and return the first column of its first row."""
        return self.fetch(sql, params).scalar()

    def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        """Run a DDL/DML statement and return the affected row count."""
        self._check_open()
        self.pool.logger.info("Statement executed", statement=sql)
        return self.pool.driver.execute(self.raw, sql, params)

    def drop_database(self) -> None:
        """Drop the database this connection is attached to."""
        self._check_open()
        self.pool.driver.drop_database(self.raw)
        self.pool.logger.info("Database dropped")

    def release(self) -> None:
        """Give the slot back to the pool."""
        if not self._released:
            self.pool.release_handle(self)

    close = release

    def __enter__(self) -> "PooledConnection":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.release()

    def __repr__(self) -> str:
        return f"PooledConnection({self.identity.display_name!r}, released={self._released})"


class ConnectionPool:
    """Fixed-size connection pool for one identity.

    Attributes:
        identity: Identity every connection of this pool is opened with
        driver: Driver adapter for the identity's engine
        size: Fixed slot count
    """

    def __init__(
        self,
        identity: ConnectionIdentity,
        engine_config: EngineConfig,
        driver: Driver,
        pool_config: PoolConfig,
    ):
        self.identity = identity
        self.engine_config = engine_config
        self.driver = driver
        self.pool_config = pool_config
        self.size = engine_config.connections

        self._slots: List[PoolSlot] = [PoolSlot(i) for i in range(self.size)]
        self._lock = threading.Lock()
        self._permits = threading.Semaphore(self.size)
        self._closed = False

        self._stats = {
            "total_acquired": 0,
            "total_released": 0,
            "total_reclaimed": 0,
            "total_forced_closes": 0,
            "acquire_timeouts": 0,
            "connect_failures": 0,
        }

        self.logger = get_logger("database.pool").bind(
            engine=identity.engine,
            host=identity.host,
            database=identity.database,
        )
        self.logger.info("Connection pool created", connections=self.size)

    def acquire(self, timeout: Optional[float] = None) -> PooledConnection:
        """Acquire a free slot, connecting it if necessary.

        Args:
            timeout: Seconds to wait for a free slot, None to wait forever

        Returns:
            Handle on the acquired slot

        Raises:
            ConnectionPoolError: If the deadline passes or the pool is closed
            DatabaseConnectionError: If a physical connection cannot be opened
        """
        self._check_open()

        if not self._permits.acquire(blocking=True, timeout=timeout):
            with self._lock:
                self._stats["acquire_timeouts"] += 1
            self.logger.warning("Timed out waiting for a connection", timeout=timeout)
            raise ConnectionPoolError(
                f"No connection available for {self.identity.display_name} within {timeout}s",
                code=ErrorCodes.POOL_EXHAUSTED,
                context={"identity": self.identity.display_name, "connections": self.size},
            )

        with self._lock:
            if self._closed:
                self._permits.release()
                self._check_open()
            # A permit guarantees at least one free slot
            slot = next(s for s in self._slots if not s.busy)
            slot.busy = True
            slot.acquired_at = time.monotonic()
            slot.released_at = None

        try:
            if slot.connection is None or self.driver.is_closed(slot.connection):
                slot.connection = None
                slot.connection = self._connect(slot)
        except BaseException:
            with self._lock:
                slot.busy = False
                self._stats["connect_failures"] += 1
            self._permits.release()
            raise

        with self._lock:
            slot.use_count += 1
            self._stats["total_acquired"] += 1
            raw = slot.connection
            handle = PooledConnection(self, raw, slot)
            if slot.busy:
                slot.holder = handle
            else:
                # Force closed by quiesce while connecting
                handle._released = True

        self.logger.debug(
            "Connection acquired",
            slot=slot.index,
            connection_id=id(raw),
            use_count=slot.use_count,
        )
        return handle

    def _connect(self, slot: PoolSlot) -> Any:
        raw = self.driver.connect(self.identity, self.engine_config)
        slot.connect_count += 1
        self.logger.debug(
            "Connection opened",
            slot=slot.index,
            connection_id=id(raw),
            connect_count=slot.connect_count,
        )
        return raw

    def owns(self, raw: Any) -> bool:
        """True if ``raw`` is the connection of a busy slot of this pool."""
        with self._lock:
            return any(s.busy and s.connection is raw for s in self._slots)

    def release(self, raw: Any) -> bool:
        """Mark the slot holding ``raw`` free and return its permit.

        Args:
            raw: Physical connection handed out by :meth:`acquire`

        Returns:
            True if a busy slot held ``raw``, False otherwise
        """
        with self._lock:
            for slot in self._slots:
                if slot.busy and slot.connection is raw:
                    self._free(slot)
                    break
            else:
                return False
        return self._return_permit(slot)

    def release_handle(self, handle: PooledConnection) -> bool:
        """Free the slot of ``handle`` if the handle still holds it.

        Returns:
            True if the slot was freed, False for a stale handle
        """
        slot = handle.slot
        with self._lock:
            if slot.holder is not handle:
                handle._released = True
                return False
            self._free(slot)
        return self._return_permit(slot)

    def _free(self, slot: PoolSlot) -> None:
        # Caller holds self._lock
        slot.mark_released(time.monotonic())
        self._stats["total_released"] += 1

    def _return_permit(self, slot: PoolSlot) -> bool:
        self._permits.release()
        self.logger.debug("Connection released", slot=slot.index, connection_id=id(slot.connection))
        return True

    def reclaim_idle(self) -> int:
        """Close connections that have been free longer than the idle timeout.

        Busy slots are never touched.

        Returns:
            Number of connections closed
        """
        idle_timeout = self.pool_config.idle_timeout
        to_close = []
        with self._lock:
            now = time.monotonic()
            for slot in self._slots:
                if slot.is_idle(now, idle_timeout):
                    to_close.append(slot.connection)
                    slot.connection = None
            self._stats["total_reclaimed"] += len(to_close)

        for raw in to_close:
            self._close_raw(raw)

        if to_close:
            self.logger.info("Idle connections reclaimed", count=len(to_close))
        return len(to_close)

    def quiesce(self) -> None:
        """Close every connection of this pool.

        Free slots are closed at once. A busy slot is closed only after it has
        been held longer than the idle timeout; its permit is returned and the
        late release by the old holder is ignored. Loops, sleeping
        ``quiesce_interval`` between passes, until every slot is closed or
        empty.
        """
        idle_timeout = self.pool_config.idle_timeout
        passes = 0
        while True:
            passes += 1
            to_close = []
            forced = 0
            remaining = 0
            with self._lock:
                now = time.monotonic()
                for slot in self._slots:
                    if slot.connection is None:
                        continue
                    if not slot.busy:
                        to_close.append(slot.connection)
                        slot.connection = None
                    elif now - slot.acquired_at >= idle_timeout:
                        to_close.append(slot.connection)
                        slot.connection = None
                        slot.mark_released(now)
                        forced += 1
                    else:
                        remaining += 1
                self._stats["total_forced_closes"] += forced

            for _ in range(forced):
                self._permits.release()
            for raw in to_close:
                self._close_raw(raw)

            if remaining == 0:
                break

            self.logger.info("Waiting for busy connections", busy=remaining, passes=passes)
            time.sleep(self.pool_config.quiesce_interval)

        self.logger.info("Connection pool quiesced", passes=passes, forced=self._stats["total_forced_closes"])

    def close(self) -> None:
        """Close every connection immediately and refuse further acquisitions."""
        with self._lock:
            self._closed = True
            to_close = [s.connection for s in self._slots if s.connection is not None]
            busy = sum(1 for s in self._slots if s.busy)
            for slot in self._slots:
                slot.connection = None
                slot.busy = False
                slot.detach_holder()

        # Wake waiters so they observe the closed pool
        for _ in range(busy):
            self._permits.release()
        for raw in to_close:
            self._close_raw(raw)
        self.logger.info("Connection pool closed", closed=len(to_close))

    def _close_raw(self, raw: Any) -> None:
        try:
            self.driver.close(raw)
        except Exception as e:
            self.logger.warning("Error closing connection", connection_id=id(raw), error=str(e))

    def _check_open(self) -> None:
        if self._closed:
            raise ConnectionPoolError(
                "Connection pool is closed",
                code=ErrorCodes.POOL_CLOSED,
                context={"identity": self.identity.display_name},
            )

    def get_stats(self) -> Dict[str, Any]:
        """Get pool statistics.

        Returns:
            Slot counts, per-slot counters and cumulative totals
        """
        with self._lock:
            slots = [s.to_dict() for s in self._slots]
            stats = dict(self._stats)

        return {
            **stats,
            "identity": self.identity.display_name,
            "connections": self.size,
            "busy": sum(1 for s in slots if s["busy"]),
            "open": sum(1 for s in slots if s["open"]),
            "total_connects": sum(s["connect_count"] for s in slots),
            "total_uses": sum(s["use_count"] for s in slots),
            "total_time": sum(s["total_time"] for s in slots),
            "slots": slots,
        }


class PoolRegistry:
    """All connection pools of one application context, keyed by identity.

    The registry lock is held only to find or create a pool. Pools are
    never removed so their statistics accumulate for the life of the
    registry.

    Example:
        >>> pools = PoolRegistry(SystemConfig(), DriverRuntime())
        >>> with pools.connection(identity) as conn:
        ...     conn.execute("DELETE FROM sessions")
    """

    def __init__(
        self,
        config: SystemConfig,
        runtime: Optional[DriverRuntime] = None,
        drivers: Optional[Dict[str, Driver]] = None,
    ):
        """Initialize the registry.

        Args:
            config: System configuration with engine and pool settings
            runtime: Event loop runtime handed to async drivers
            drivers: Pre-built driver adapters keyed by driver name
        """
        self.config = config
        self.runtime = runtime
        self._drivers: Dict[str, Driver] = dict(drivers or {})
        self._pools: Dict[ConnectionIdentity, ConnectionPool] = {}
        self._lock = threading.Lock()
        self._closed = False
        self.logger = get_logger("database.pool.registry")

    def _driver_for(self, engine_config: EngineConfig) -> Driver:
        driver = self._drivers.get(engine_config.driver)
        if driver is None:
            driver = create_driver(engine_config.driver, self.runtime)
            self._drivers[engine_config.driver] = driver
        return driver

    def get_pool(self, identity: ConnectionIdentity) -> ConnectionPool:
        """Find or create the pool of ``identity``.

        Raises:
            ConfigurationError: If the identity is incomplete or its engine
                is not configured
            ConnectionPoolError: If the registry has been closed
        """
        identity.require_complete()
        engine_config = self.config.get_engine_config(identity.engine)

        with self._lock:
            if self._closed:
                raise ConnectionPoolError(
                    "Pool registry is closed",
                    code=ErrorCodes.POOL_CLOSED,
                    context={"identity": identity.display_name},
                )
            pool = self._pools.get(identity)
            if pool is None:
                pool = ConnectionPool(
                    identity,
                    engine_config,
                    self._driver_for(engine_config),
                    self.config.pool,
                )
                self._pools[identity] = pool
            return pool

    def acquire(self, identity: ConnectionIdentity, timeout: Optional[float] = None) -> PooledConnection:
        """Acquire a connection for ``identity``.

        Args:
            identity: Connection identity
            timeout: Seconds to wait, defaults to ``PoolConfig.acquire_timeout``

        Returns:
            Handle on the acquired connection
        """
        pool = self.get_pool(identity)
        if timeout is None:
            timeout = self.config.pool.acquire_timeout
        return pool.acquire(timeout)

    @contextmanager
    def connection(
        self, identity: ConnectionIdentity, timeout: Optional[float] = None
    ) -> Generator[PooledConnection, None, None]:
        """Acquire a connection for the duration of a ``with`` block."""
        conn = self.acquire(identity, timeout)
        try:
            yield conn
        finally:
            conn.release()

    def _snapshot(self) -> List[ConnectionPool]:
        with self._lock:
            return list(self._pools.values())

    def release(self, connection: Union[PooledConnection, Any]) -> None:
        """Return a connection to whichever pool handed it out.

        Unknown connections are ignored.

        Args:
            connection: Handle from :meth:`acquire` or its raw connection
        """
        if isinstance(connection, PooledConnection):
            if connection.released:
                return
            connection.release()
            return

        for pool in self._snapshot():
            if pool.release(connection):
                return
        self.logger.debug("Release of unknown connection ignored", connection_id=id(connection))

    def reclaim_idle(self) -> int:
        """Close idle connections across every pool.

        Returns:
            Number of connections closed
        """
        return sum(pool.reclaim_idle() for pool in self._snapshot())

    def quiesce(self, identity: ConnectionIdentity) -> None:
        """Close every connection of ``identity``'s pool, waiting for busy ones."""
        with self._lock:
            pool = self._pools.get(identity)
        if pool is None:
            self.logger.debug("No pool to quiesce", identity=identity.display_name)
            return
        pool.quiesce()

    def close_all(self) -> None:
        """Close every pool; later acquisitions fail with POOL_CLOSED."""
        with self._lock:
            self._closed = True
            pools = list(self._pools.values())
        for pool in pools:
            pool.close()

    def get_stats(self) -> Dict[str, Any]:
        """Get statistics of every pool plus totals."""
        pools = [pool.get_stats() for pool in self._snapshot()]
        return {
            "pools": len(pools),
            "connections": sum(p["connections"] for p in pools),
            "busy": sum(p["busy"] for p in pools),
            "open": sum(p["open"] for p in pools),
            "total_connects": sum(p["total_connects"] for p in pools),
            "total_uses": sum(p["total_uses"] for p in pools),
            "total_time": sum(p["total_time"] for p in pools),
            "by_identity": {p["identity"]: p for p in pools},
        }

    def __len__(self) -> int:
        with self._lock:
            return len(self._pools)


class PoolReaper:
    """Daemon thread running idle reclamation every ``interval`` seconds."""

    def __init__(self, pools: PoolRegistry, interval: float):
        self.pools = pools
        self.interval = interval
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.logger = get_logger("database.pool.reaper")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="schemadesk-pool-reaper", daemon=True)
        self._thread.start()
        self.logger.debug("Pool reaper started", interval=self.interval)

    def _run(self) -> None:
        while not self._stop_event.wait(self.interval):
            self.run_once()

    def run_once(self) -> int:
        """One reclamation pass; failures are logged, never raised."""
        try:
            reclaimed = self.pools.reclaim_idle()
        except Exception as e:
            self.logger.exception("Idle connection reclamation failed", error=str(e))
            return 0
        if reclaimed:
            self.logger.info("Reaper pass closed idle connections", reclaimed=reclaimed)
        return reclaimed

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        self.logger.debug("Pool reaper stopped")
