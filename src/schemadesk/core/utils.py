"""Utility functions for SchemaDesk operations.

Validation helpers shared by the configuration models and the pool.

Example:
    >>> ValidationUtils.validate_port(5432)
    True
"""

import re
from typing import Optional, Union


class ValidationUtils:
    """Utility class for validation operations."""

    IDENTIFIER_PATTERN = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")

    @classmethod
    def validate_identifier(cls, identifier: str, *, allow_empty: bool = False) -> bool:
        """Validate identifier string.

        Args:
            identifier: String to validate as identifier
            allow_empty: Whether to allow empty strings

        Returns:
            True if identifier is valid

        Example:
            >>> ValidationUtils.validate_identifier("mysql")
            True
            >>> ValidationUtils.validate_identifier("123_invalid")
            False
        """
        if not identifier:
            return allow_empty

        return bool(cls.IDENTIFIER_PATTERN.match(identifier))

    @classmethod
    def validate_port(cls, port: Union[int, str]) -> bool:
        """Validate network port number.

        Args:
            port: Port number to validate

        Returns:
            True if port is valid
        """
        try:
            port_int = int(port)
            return 1 <= port_int <= 65535
        except (ValueError, TypeError):
            return False

    @classmethod
    def is_blank(cls, value: Optional[str]) -> bool:
        """Return True for None or whitespace-only strings."""
        return value is None or not str(value).strip()
