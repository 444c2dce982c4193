"""SchemaDesk exception hierarchy.

Every error raised by the pool, the dialect connectors and the configuration
layer derives from :class:`SchemaDeskException`, carrying an error code and a
context dictionary so the presentation layer can render or log it without
parsing message text.

Classes:
    SchemaDeskException: Base exception for all SchemaDesk operations
    ConfigurationError: Invalid or missing configuration and identity fields
    ConnectionError: Driver loading, connection and pool failures
    UnsupportedOperationError: Verb not supported by the selected dialect
    MetadataError: Catalog introspection failures
    CatalogParseError: Catalog data in an unexpected shape
    QueryError: SQL statement execution failures

Example:
    >>> try:
    ...     connector.add_primary_key("users", "id")
    ... except UnsupportedOperationError as e:
    ...     logger.warning("Verb skipped", error_code=e.code, context=e.context)
"""

from typing import Any, Dict, Optional


class SchemaDeskException(Exception):
    """Base exception for all SchemaDesk operations.

    Attributes:
        code: Unique error code for categorization
        context: Additional context information about the error
        cause: Original exception that caused this error (if any)

    Example:
        >>> raise SchemaDeskException(
        ...     "Operation failed",
        ...     code="OPERATION_FAILED",
        ...     context={"engine": "mysql", "table": "users"}
        ... )
    """

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        """Initialize SchemaDesk exception.

        Args:
            message: Human-readable error description
            code: Unique error code for categorization (defaults to class name)
            context: Additional context information
            cause: Original exception that caused this error
        """
        super().__init__(message)
        self.code: str = code or self.__class__.__name__
        self.context: Dict[str, Any] = context or {}
        self.cause: Optional[Exception] = cause

    @property
    def message(self) -> str:
        """Return the message without the error code prefix."""
        return super().__str__()

    def __str__(self) -> str:
        """Return formatted error message with code."""
        return f"{self.code}: {super().__str__()}"

    def __repr__(self) -> str:
        """Return detailed representation of the exception."""
        return (
            f"{self.__class__.__name__}("
            f"message={super().__str__()!r}, "
            f"code={self.code!r}, "
            f"context={self.context!r}, "
            f"cause={self.cause!r})"
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for serialization.

        Returns:
            Dictionary representation of the exception
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "context": self.context,
            "cause": str(self.cause) if self.cause else None,
        }


class ConfigurationError(SchemaDeskException):
    """Configuration related errors.

    Raised when configuration or a connection identity is invalid or
    incomplete. Always detected before any connection attempt.
    """
    pass


class ValidationError(ConfigurationError):
    """Data validation errors.

    Raised by configuration model validators and by argument checks on
    connector verbs (for example an empty privilege list).
    """
    pass


class ConnectionError(SchemaDeskException):
    """Database connection related errors.

    Base class for driver loading, connection establishment and pool
    failures.
    """
    pass


class DatabaseConnectionError(ConnectionError):
    """Driver load or connection establishment errors.

    The pool slot involved is left free so a later acquisition can retry.
    """
    pass


class ConnectionPoolError(ConnectionError):
    """Connection pool management errors.

    Raised when an acquisition deadline passes or the pool registry has
    been shut down.
    """
    pass


class UnsupportedOperationError(SchemaDeskException):
    """The selected dialect does not support the requested verb.

    Raised before any SQL is issued.
    """
    pass


class MetadataError(SchemaDeskException):
    """Catalog introspection errors."""
    pass


class CatalogParseError(MetadataError):
    """Catalog data has an unexpected shape.

    Examples are an unrecognized server version string or a malformed
    default value encoding.
    """
    pass


class QueryError(SchemaDeskException):
    """SQL statement execution errors.

    Wraps the driver exception; the context carries the statement text and
    the driver's own error code where one exists.
    """
    pass


class ErrorCodes:
    """Standard error codes for SchemaDesk operations."""

    # Configuration errors
    CONFIG_NOT_FOUND = "CONFIG_NOT_FOUND"
    CONFIG_INVALID = "CONFIG_INVALID"
    CONFIG_VALIDATION_FAILED = "CONFIG_VALIDATION_FAILED"
    ENGINE_NOT_REGISTERED = "ENGINE_NOT_REGISTERED"

    # Connection errors
    DRIVER_LOAD_FAILED = "DRIVER_LOAD_FAILED"
    CONNECTION_TIMEOUT = "CONNECTION_TIMEOUT"
    CONNECTION_REFUSED = "CONNECTION_REFUSED"
    AUTH_FAILED = "AUTH_FAILED"
    POOL_EXHAUSTED = "POOL_EXHAUSTED"
    POOL_CLOSED = "POOL_CLOSED"

    # Dialect errors
    OPERATION_NOT_SUPPORTED = "OPERATION_NOT_SUPPORTED"
    CATALOG_PARSE_FAILED = "CATALOG_PARSE_FAILED"
    METADATA_EXTRACTION_FAILED = "METADATA_EXTRACTION_FAILED"

    # Statement errors
    QUERY_EXECUTION_FAILED = "QUERY_EXECUTION_FAILED"


def unsupported(engine: str, operation: str, reason: Optional[str] = None) -> UnsupportedOperationError:
    """Build the error raised for a verb a dialect cannot perform.

    Args:
        engine: Engine name of the dialect
        operation: Name of the rejected verb
        reason: Optional explanation shown to the user

    Returns:
        UnsupportedOperationError ready to raise
    """
    message = f"{operation} is not supported by {engine}"
    if reason:
        message = f"{message}: {reason}"
    return UnsupportedOperationError(
        message,
        code=ErrorCodes.OPERATION_NOT_SUPPORTED,
        context={"engine": engine, "operation": operation},
    )
