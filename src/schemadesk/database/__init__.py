"""
SchemaDesk database layer.

Connection pooling per identity, driver adapters, schema snapshot models and
the dialect connectors translating engine-neutral verbs into SQL.

Supported engines:
- MySQL/MariaDB (aiomysql)
- PostgreSQL (asyncpg)
- Interbase/Firebird (firebird-driver)
"""

from .base import BaseDialectConnector
from .connectors import InterbaseConnector, MySQLConnector, PostgreSQLConnector
from .defaults import (
    encode_expression,
    encode_literal,
    escape_backslash_sql_value,
    escape_sql_value,
    parse_default,
    render_default,
)
from .drivers import DRIVERS, Driver, DriverRuntime, create_driver
from .factory import ConnectorFactory
from .models import (
    CheckConstraints,
    ColumnDefinition,
    Columns,
    ForeignKeys,
    Indexes,
    PrimaryKeys,
    QueryResult,
    TablePrivileges,
    TableSchema,
    Tristate,
)
from .pool import ConnectionPool, PooledConnection, PoolReaper, PoolRegistry
from .registry import DialectRegistry, register_builtin_dialects

__all__ = [
    # Connectors
    "BaseDialectConnector",
    "InterbaseConnector",
    "MySQLConnector",
    "PostgreSQLConnector",

    # Dialect selection
    "ConnectorFactory",
    "DialectRegistry",
    "register_builtin_dialects",

    # Pooling and drivers
    "ConnectionPool",
    "PooledConnection",
    "PoolReaper",
    "PoolRegistry",
    "DRIVERS",
    "Driver",
    "DriverRuntime",
    "create_driver",

    # Models
    "CheckConstraints",
    "ColumnDefinition",
    "Columns",
    "ForeignKeys",
    "Indexes",
    "PrimaryKeys",
    "QueryResult",
    "TablePrivileges",
    "TableSchema",
    "Tristate",

    # Defaults
    "encode_expression",
    "encode_literal",
    "escape_backslash_sql_value",
    "escape_sql_value",
    "parse_default",
    "render_default",
]
