"""SchemaDesk core infrastructure.

Modules:
    exceptions: Exception hierarchy and error codes
    utils: Validation helpers

Example:
    >>> from schemadesk.core import ErrorCodes, UnsupportedOperationError
    >>> from schemadesk.core.utils import ValidationUtils
"""

from .exceptions import (
    CatalogParseError,
    ConfigurationError,
    ConnectionError,
    ConnectionPoolError,
    DatabaseConnectionError,
    ErrorCodes,
    MetadataError,
    QueryError,
    SchemaDeskException,
    UnsupportedOperationError,
    ValidationError,
    unsupported,
)
from .utils import ValidationUtils

__all__ = [
    "CatalogParseError",
    "ConfigurationError",
    "ConnectionError",
    "ConnectionPoolError",
    "DatabaseConnectionError",
    "ErrorCodes",
    "MetadataError",
    "QueryError",
    "SchemaDeskException",
    "UnsupportedOperationError",
    "ValidationError",
    "unsupported",
    "ValidationUtils",
]
