"""Dialect connectors for the supported database engines."""

from .interbase import InterbaseConnector
from .mysql import MySQLConnector
from .postgresql import PostgreSQLConnector

__all__ = [
    "InterbaseConnector",
    "MySQLConnector",
    "PostgreSQLConnector",
]
