"""SchemaDesk - multi-database schema administration core.

SchemaDesk pools database connections per login identity and translates
engine-neutral schema verbs (list tables, add a column, grant privileges...)
into the SQL of MySQL, PostgreSQL and Interbase.

Modules:
    core: Exceptions and validation helpers
    config: Configuration management
    logging: Structured logging framework
    database: Pools, drivers, models and dialect connectors
    context: Application context owning the shared infrastructure

Example:
    >>> from schemadesk import ApplicationContext, ConnectionIdentity
    >>> identity = ConnectionIdentity(
    ...     engine="mysql", host="localhost", port=3306,
    ...     username="root", password="", database="test",
    ... )
    >>> with ApplicationContext() as app:
    ...     app.for_identity(identity).get_tables()
"""

from . import config, core, database, logging
from .config import ConnectionIdentity, SystemConfig
from .context import ApplicationContext

__version__ = "0.1.0"
__title__ = "SchemaDesk"
__description__ = "Multi-database schema administration core"
__license__ = "MIT"

__all__ = [
    "config",
    "core",
    "database",
    "logging",
    "ApplicationContext",
    "ConnectionIdentity",
    "SystemConfig",
    "__version__",
    "__title__",
    "__description__",
    "__license__",
]
