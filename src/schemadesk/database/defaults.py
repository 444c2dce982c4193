"""Tagged default values and SQL literal escaping.

A tagged default is a string whose first character says how the remainder is
written back into DDL:

- ``V``: the remainder is a literal value, quoted and escaped as data;
- ``F``: the remainder is an SQL expression such as ``now()``, emitted as is.

``None`` means the column has no default.

Example:
    >>> encode_literal("abc")
    'Vabc'
    >>> render_default("Vabc")
    "'abc'"
    >>> render_default(encode_expression("now()"))
    'now()'
"""

from typing import Callable, Optional, Tuple

from ..core.exceptions import CatalogParseError, ErrorCodes

LITERAL = "V"
EXPRESSION = "F"

_NUMBER_CHARS = frozenset("0123456789-.eE+")


def escape_sql_value(value: Optional[str]) -> str:
    """Render a value as a standard SQL string literal.

    Embedded single quotes are doubled; None becomes ``NULL``.
    """
    if value is None:
        return "NULL"
    return "'" + str(value).replace("'", "''") + "'"


def escape_backslash_sql_value(value: Optional[str], *, newlines: bool = False) -> str:
    """Render a value as a backslash-escaped string literal.

    Backslash, single quote and double quote are each preceded by a
    backslash. With ``newlines`` a line feed is written as ``\\n`` so the
    literal fits on one line of a dump.
    """
    if value is None:
        return "null"
    out = ["'"]
    for ch in str(value):
        if ch in "\\'\"":
            out.append("\\")
            out.append(ch)
        elif newlines and ch == "\n":
            out.append("\\n")
        else:
            out.append(ch)
    out.append("'")
    return "".join(out)


def encode_literal(value: str) -> str:
    """Tag a literal default value."""
    return LITERAL + value


def encode_expression(expression: str) -> str:
    """Tag a default expression or function call."""
    return EXPRESSION + expression


def parse_default(tagged: Optional[str]) -> Optional[Tuple[str, str]]:
    """Split a tagged default into its tag and payload.

    Args:
        tagged: Tagged default or None

    Returns:
        ``(tag, payload)`` or None when there is no default

    Raises:
        CatalogParseError: If the string is empty or carries an unknown tag
    """
    if tagged is None:
        return None
    if not tagged or tagged[0] not in (LITERAL, EXPRESSION):
        raise CatalogParseError(
            f"Malformed tagged default: {tagged!r}",
            code=ErrorCodes.CATALOG_PARSE_FAILED,
            context={"default": tagged},
        )
    return tagged[0], tagged[1:]


def render_default(
    tagged: Optional[str],
    escape: Callable[[Optional[str]], str] = escape_sql_value,
) -> Optional[str]:
    """Turn a tagged default back into SQL text.

    Args:
        tagged: Tagged default or None
        escape: Literal renderer of the target dialect

    Returns:
        SQL text for a DEFAULT clause, None when there is no default
    """
    parsed = parse_default(tagged)
    if parsed is None:
        return None
    tag, payload = parsed
    return escape(payload) if tag == LITERAL else payload


def _looks_numeric(text: str) -> bool:
    return all(ch in _NUMBER_CHARS for ch in text)


def classify_default(raw: Optional[str]) -> Optional[str]:
    """Tag a default as reported by the catalog.

    Boolean casts ``'t'::bool`` and ``'f'::bool`` become ``Vtrue`` and
    ``Vfalse``. A single-quoted constant keeps its inner text as a literal,
    as does text made only of digits, signs, dots and exponent markers.
    Everything else is taken to be an expression. A quoted constant cast to
    text (``'abc'::text``) is read as the literal ``abc``.

    Args:
        raw: Default text from the catalog

    Returns:
        Tagged default, None for no default

    Raises:
        CatalogParseError: If a boolean cast holds something other than t or f
    """
    if raw is None or raw == "":
        return None

    if len(raw) == 9 and raw[0] == "'" and raw.endswith("'::bool"):
        if raw[1] == "t":
            return encode_literal("true")
        if raw[1] == "f":
            return encode_literal("false")
        raise CatalogParseError(
            f"Unknown default value for bool type: {raw}",
            code=ErrorCodes.CATALOG_PARSE_FAILED,
            context={"default": raw},
        )

    if len(raw) >= 2 and raw[0] == "'" and raw[-1] == "'":
        return encode_literal(raw[1:-1])

    if _looks_numeric(raw):
        return encode_literal(raw)

    tagged = encode_expression(raw)
    if tagged.startswith("F'") and tagged.endswith("'::text"):
        return encode_literal(tagged[2:-7])
    return tagged


def unquote_default(raw: Optional[str]) -> Optional[str]:
    """Tag a default reported as plain text, stripping one pair of quotes.

    Used for catalogs that report literal defaults only, where an empty
    string means no default.
    """
    if raw is None:
        return None
    if len(raw) >= 2 and raw[0] == "'" and raw[-1] == "'":
        return encode_literal(raw[1:-1])
    if raw:
        return encode_literal(raw)
    return None
