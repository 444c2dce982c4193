"""MySQL/MariaDB dialect connector."""

from typing import Any, List, Optional, Sequence, Tuple

from ...core.exceptions import CatalogParseError, ErrorCodes
from ..base import BaseDialectConnector, yes_no
from ..defaults import encode_expression, escape_backslash_sql_value, unquote_default
from ..keywords import MYSQL_KEYWORDS
from ..models import Columns, Indexes, QueryResult, TablePrivilege, TablePrivileges, Tristate

MYSQL_TYPES: Tuple[str, ...] = (
    "TINYINT", "SMALLINT", "MEDIUMINT", "INT", "BIGINT",
    "FLOAT", "DOUBLE", "DECIMAL",
    "DATE", "DATETIME", "TIMESTAMP", "TIME", "YEAR",
    "CHAR", "VARCHAR",
    "TINYTEXT", "MEDIUMTEXT", "TEXT", "LONGTEXT",
    "TINYBLOB", "MEDIUMBLOB", "BLOB", "LONGBLOB",
    "SET", "ENUM",
)

NUMERIC_FUNCTIONS: Tuple[str, ...] = (
    "ABS", "ACOS", "ASIN", "ATAN", "ATAN2", "BIT_COUNT", "CEILING", "COS",
    "COT", "DEGREES", "EXP", "FLOOR", "LOG", "LOG10", "MOD", "PI", "POW",
    "POWER", "RADIANS", "RAND", "ROUND", "SIN", "SQRT", "TAN", "TRUNCATE",
)
STRING_FUNCTIONS: Tuple[str, ...] = (
    "ASCII", "BIN", "CHAR", "CHAR_LENGTH", "CONCAT", "CONCAT_WS", "ELT",
    "FIELD", "HEX", "INSERT", "INSTR", "LCASE", "LEFT", "LENGTH", "LOCATE",
    "LOWER", "LPAD", "LTRIM", "MD5", "OCT", "REPEAT", "REPLACE", "REVERSE",
    "RIGHT", "RPAD", "RTRIM", "SHA1", "SOUNDEX", "SPACE", "SUBSTRING",
    "TRIM", "UCASE", "UPPER", "UUID",
)
DATE_FUNCTIONS: Tuple[str, ...] = (
    "CURDATE", "CURRENT_DATE", "CURRENT_TIME", "CURRENT_TIMESTAMP",
    "CURTIME", "DATE_ADD", "DATE_FORMAT", "DATE_SUB", "DAYNAME",
    "DAYOFMONTH", "DAYOFWEEK", "DAYOFYEAR", "FROM_DAYS", "FROM_UNIXTIME",
    "HOUR", "MINUTE", "MONTH", "MONTHNAME", "NOW", "QUARTER", "SECOND",
    "SEC_TO_TIME", "SYSDATE", "TIME_TO_SEC", "TO_DAYS", "UNIX_TIMESTAMP",
    "UTC_TIMESTAMP", "WEEK", "WEEKDAY", "YEAR",
)
SYSTEM_FUNCTIONS: Tuple[str, ...] = (
    "CONNECTION_ID", "DATABASE", "LAST_INSERT_ID", "PASSWORD", "USER", "VERSION",
)

_TYPE_FUNCTIONS = {
    "numeric": NUMERIC_FUNCTIONS,
    "string": STRING_FUNCTIONS,
    "date": DATE_FUNCTIONS,
}
_NUMERIC_TYPES = frozenset(
    "tinyint smallint mediumint int integer bigint float double decimal numeric bit".split()
)
_DATE_TYPES = frozenset("date datetime timestamp time year".split())

# Placeholder marker, rewritten to %s once the statement is complete
_PLACEHOLDER = "\x00param\x00"


def parse_enum_values(definition: str) -> List[str]:
    """Parse the value list of an ENUM or SET column type.

    Args:
        definition: Column type as reported by MySQL, e.g. ``enum('a','it''s')``

    Returns:
        Values in declaration order with doubled quotes undone

    Raises:
        CatalogParseError: If the definition is not an ENUM or SET list
    """
    lowered = definition.lower()
    if lowered.startswith("enum("):
        body = definition[5:]
    elif lowered.startswith("set("):
        body = definition[4:]
    else:
        body = None
    if body is None or not body.endswith(")"):
        raise CatalogParseError(
            f"Not an ENUM or SET definition: {definition}",
            code=ErrorCodes.CATALOG_PARSE_FAILED,
            context={"definition": definition},
        )
    body = body[:-1]

    values: List[str] = []
    current: List[str] = []
    in_quotes = False
    i = 0
    while i < len(body):
        ch = body[i]
        if in_quotes:
            if ch == "'" and body[i + 1:i + 2] == "'":
                current.append("'")
                i += 1
            elif ch == "'":
                in_quotes = False
                values.append("".join(current))
                current = []
            else:
                current.append(ch)
        elif ch == "'":
            in_quotes = True
        i += 1
    if in_quotes:
        raise CatalogParseError(
            f"Unterminated value in definition: {definition}",
            code=ErrorCodes.CATALOG_PARSE_FAILED,
            context={"definition": definition},
        )
    return values


def _text(value: Any) -> str:
    """Decode catalog text that some server versions return as bytes."""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8")
    return value


class MySQLConnector(BaseDialectConnector):
    """MySQL/MariaDB dialect.

    Uses backtick quoting, backslash-escaped literals and ``%s``
    placeholders. Foreign keys are not managed and check constraints are
    not introspected.
    """

    engine = "mysql"
    product_name = "MySQL"
    quote_char = "`"
    keywords = MYSQL_KEYWORDS

    def _param(self, position: int, type_name: Optional[str] = None) -> str:
        return _PLACEHOLDER

    @staticmethod
    def _format_sql(sql: str, params: Sequence[Any]) -> str:
        """Turn placeholders into ``%s`` for aiomysql.

        aiomysql %-formats the whole statement when parameters are bound, so
        every other ``%`` (function text, identifiers) is doubled first.
        """
        if params:
            sql = sql.replace("%", "%%")
        return sql.replace(_PLACEHOLDER, "%s")

    def _fetch(self, sql: str, params: Sequence[Any] = ()) -> QueryResult:
        return super()._fetch(self._format_sql(sql, params), params)

    def _execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        return super()._execute(self._format_sql(sql, params), params)

    def _schema_filter(self, alias: str = "") -> str:
        return f" AND {alias}table_schema = DATABASE()"

    def escape_literal(self, value: Optional[str]) -> str:
        return escape_backslash_sql_value(value)

    def _dump_value(self, value: Any) -> str:
        return escape_backslash_sql_value(None if value is None else str(value), newlines=True)

    def supports_foreign_keys(self) -> bool:
        return False

    def get_limit_clause(self, start: int, count: int) -> Optional[str]:
        return f"limit {start},{count}"

    def get_columns(self, table: str) -> Columns:
        """Columns of ``table``; ENUM and SET lengths hold their quoted values."""
        result = self._fetch(
            "SELECT COLUMN_NAME, DATA_TYPE,"
            " COALESCE(CHARACTER_MAXIMUM_LENGTH, NUMERIC_PRECISION),"
            " IS_NULLABLE, COLUMN_DEFAULT, EXTRA, COLUMN_TYPE"
            " FROM information_schema.COLUMNS"
            f" WHERE TABLE_NAME = {self._param(1)} AND TABLE_SCHEMA = DATABASE()"
            " ORDER BY ORDINAL_POSITION",
            [table],
        )
        names, types, lengths, nullable, defaults, remarks = [], [], [], [], [], []
        for name, data_type, length, is_nullable, default, extra, column_type in result.rows:
            extra = extra or ""
            names.append(name)
            types.append(data_type)
            if data_type.lower() in ("enum", "set"):
                values = parse_enum_values(_text(column_type))
                lengths.append(",".join("'" + v.replace("'", "''") + "'" for v in values))
            else:
                lengths.append(None if length is None else str(length))
            nullable.append(yes_no(is_nullable))

            if default is not None and (
                "DEFAULT_GENERATED" in extra.upper()
                or default.upper().startswith("CURRENT_TIMESTAMP")
            ):
                defaults.append(encode_expression(default))
            else:
                defaults.append(unquote_default(default))
            remarks.append(extra.replace("DEFAULT_GENERATED", "").strip())
        return Columns(names, types, lengths, nullable, defaults, remarks)

    def get_indexes(self, table: str) -> Indexes:
        result = self._fetch(
            "SELECT INDEX_NAME, NON_UNIQUE, COLUMN_NAME"
            " FROM information_schema.STATISTICS"
            f" WHERE TABLE_NAME = {self._param(1)} AND TABLE_SCHEMA = DATABASE()"
            " ORDER BY INDEX_NAME, SEQ_IN_INDEX",
            [table],
        )
        return Indexes(
            [r[0] for r in result.rows],
            [Tristate.of(int(r[1]) == 0) for r in result.rows],
            [r[2] for r in result.rows],
        )

    def get_tables(self) -> List[str]:
        return self._fetch_list("SHOW TABLES")

    def get_databases(self) -> List[str]:
        return self._fetch_list("SHOW DATABASES")

    def get_types(self) -> List[str]:
        return list(MYSQL_TYPES)

    def get_function_list(self, return_type: Optional[str] = None) -> List[str]:
        """Built-in functions, narrowed to the family returning ``return_type``."""
        if return_type is None:
            names = set(SYSTEM_FUNCTIONS)
            for functions in _TYPE_FUNCTIONS.values():
                names.update(functions)
            return sorted(names)

        type_name = return_type.lower()
        if type_name in _NUMERIC_TYPES:
            family = "numeric"
        elif type_name in _DATE_TYPES:
            family = "date"
        else:
            family = "string"
        return sorted(set(_TYPE_FUNCTIONS[family]) | set(SYSTEM_FUNCTIONS))

    def get_possible_values(
        self,
        table: str,
        column: str,
        type_name: str,
        foreign_key_rows: Optional[int] = None,
    ) -> Optional[List[str]]:
        """Values of an ENUM or SET column, None for any other type."""
        if type_name.lower() not in ("enum", "set"):
            return None
        row = self._fetch(
            f"SHOW COLUMNS FROM {self.quote_table(table)} LIKE {self._param(1)}", [column]
        ).first()
        if row is None:
            return None
        return parse_enum_values(_text(row[1]))

    def get_table_privileges(self, table: str) -> TablePrivileges:
        """Privileges granted on ``table``; MySQL does not record the grantor."""
        result = self._fetch(
            "SELECT GRANTEE, PRIVILEGE_TYPE, IS_GRANTABLE"
            " FROM information_schema.TABLE_PRIVILEGES"
            f" WHERE TABLE_NAME = {self._param(1)} AND TABLE_SCHEMA = DATABASE()"
            " ORDER BY GRANTEE, PRIVILEGE_TYPE",
            [table],
        )
        return TablePrivileges.from_rows([
            TablePrivilege("", grantee, privilege, yes_no(grantable))
            for grantee, privilege, grantable in result.rows
        ])

    def rename_table(self, table: str, new_name: str) -> None:
        self._execute(f"ALTER TABLE {self.quote_table(table)} RENAME {self.quote_table(new_name)}")

    def grant_privileges(self, table: str, user: str, privileges: List[str]) -> None:
        super().grant_privileges(table, user, privileges)
        self._execute("FLUSH PRIVILEGES")

    def revoke_privileges(self, table: str, user: str, privileges: List[str]) -> None:
        super().revoke_privileges(table, user, privileges)
        self._execute("FLUSH PRIVILEGES")
