"""Interbase/Firebird dialect connector.

Identifiers are passed through unquoted, so the server folds them to upper
case. Introspection reads the ``RDB$`` system tables; their CHAR columns
are blank padded and trimmed in the queries.
"""

from typing import Any, Dict, List, Optional, Tuple

from ...core.exceptions import ErrorCodes, MetadataError, unsupported
from ..base import BaseDialectConnector, yes_no
from ..defaults import classify_default
from ..models import (
    CheckConstraints,
    Columns,
    ForeignKey,
    ForeignKeys,
    Indexes,
    PrimaryKeys,
    TablePrivilege,
    TablePrivileges,
    Tristate,
)

# RDB$FIELDS.RDB$FIELD_TYPE codes
FIELD_TYPES: Dict[int, str] = {
    7: "SMALLINT",
    8: "INTEGER",
    10: "FLOAT",
    12: "DATE",
    13: "TIME",
    14: "CHAR",
    16: "BIGINT",
    23: "BOOLEAN",
    27: "DOUBLE PRECISION",
    35: "TIMESTAMP",
    37: "VARCHAR",
    261: "BLOB",
}
# Exact numerics are integer storage with a sub type
_EXACT_SUBTYPES = {1: "NUMERIC", 2: "DECIMAL"}

PRIVILEGE_CODES: Dict[str, str] = {
    "S": "SELECT",
    "I": "INSERT",
    "U": "UPDATE",
    "D": "DELETE",
    "R": "REFERENCES",
    "X": "EXECUTE",
}

INTERBASE_TYPES: Tuple[str, ...] = (
    "SMALLINT", "INTEGER", "BIGINT", "NUMERIC", "DECIMAL", "FLOAT",
    "DOUBLE PRECISION", "DATE", "TIME", "TIMESTAMP", "CHAR", "VARCHAR",
    "BLOB", "BOOLEAN",
)


def field_type_name(field_type: int, sub_type: Optional[int]) -> str:
    """Name of an ``RDB$FIELD_TYPE`` code, falling back to the raw number."""
    if field_type in (7, 8, 16) and sub_type in _EXACT_SUBTYPES:
        return _EXACT_SUBTYPES[sub_type]
    return FIELD_TYPES.get(field_type, str(field_type))


def strip_keyword(source: Optional[str], keyword: str) -> Optional[str]:
    """Remove a leading keyword such as DEFAULT or CHECK from catalog source text."""
    if source is None:
        return None
    text = str(source).strip()
    if text[:len(keyword)].upper() == keyword:
        text = text[len(keyword):].strip()
    return text


class InterbaseConnector(BaseDialectConnector):
    """Interbase/Firebird dialect."""

    engine = "interbase"
    product_name = "Interbase"
    quote_char = ""

    def is_keyword(self, identifier: str) -> bool:
        return False

    def _is_null(self, column: str) -> str:
        return f"{self.quote_column(column)} IS NULL"

    def supports_check_constraints(self) -> bool:
        return True

    def get_server_version(self) -> str:
        return str(self._fetch_value(
            "SELECT rdb$get_context('SYSTEM', 'ENGINE_VERSION') FROM rdb$database"
        ))

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def get_tables(self) -> List[str]:
        return self._fetch_list(
            "SELECT TRIM(RDB$RELATION_NAME) FROM RDB$RELATIONS"
            " WHERE COALESCE(RDB$SYSTEM_FLAG, 0) = 0 AND RDB$VIEW_BLR IS NULL"
            " ORDER BY RDB$RELATION_NAME"
        )

    def get_databases(self) -> List[str]:
        """An Interbase connection sees exactly one database, its own file."""
        return [self.identity.database]

    def get_types(self) -> List[str]:
        return list(INTERBASE_TYPES)

    def get_function_list(self, return_type: Optional[str] = None) -> List[str]:
        return []

    def get_columns(self, table: str) -> Columns:
        result = self._fetch(
            "SELECT TRIM(rf.RDB$FIELD_NAME), f.RDB$FIELD_TYPE, f.RDB$FIELD_SUB_TYPE,"
            " COALESCE(f.RDB$CHARACTER_LENGTH, f.RDB$FIELD_PRECISION),"
            " rf.RDB$NULL_FLAG, rf.RDB$DEFAULT_SOURCE, rf.RDB$DESCRIPTION"
            " FROM RDB$RELATION_FIELDS rf"
            " JOIN RDB$FIELDS f ON f.RDB$FIELD_NAME = rf.RDB$FIELD_SOURCE"
            " WHERE rf.RDB$RELATION_NAME = ?"
            " ORDER BY rf.RDB$FIELD_POSITION",
            [table],
        )
        names, types, lengths, nullable, defaults, remarks = [], [], [], [], [], []
        for name, field_type, sub_type, length, null_flag, default_source, description in result.rows:
            type_name = field_type_name(field_type, sub_type)
            names.append(name)
            types.append(type_name)
            if type_name in ("CHAR", "VARCHAR", "NUMERIC", "DECIMAL") and length:
                lengths.append(str(length))
            else:
                lengths.append(None)
            nullable.append(Tristate.FALSE if null_flag else Tristate.TRUE)
            defaults.append(classify_default(strip_keyword(default_source, "DEFAULT")))
            remarks.append("" if description is None else str(description))
        return Columns(names, types, lengths, nullable, defaults, remarks)

    def get_indexes(self, table: str) -> Indexes:
        result = self._fetch(
            "SELECT TRIM(i.RDB$INDEX_NAME), i.RDB$UNIQUE_FLAG, TRIM(s.RDB$FIELD_NAME)"
            " FROM RDB$INDICES i"
            " JOIN RDB$INDEX_SEGMENTS s ON s.RDB$INDEX_NAME = i.RDB$INDEX_NAME"
            " WHERE i.RDB$RELATION_NAME = ?"
            " ORDER BY i.RDB$INDEX_NAME, s.RDB$FIELD_POSITION",
            [table],
        )
        return Indexes(
            [r[0] for r in result.rows],
            [Tristate.of(r[1] == 1) for r in result.rows],
            [r[2] for r in result.rows],
        )

    def get_primary_keys(self, table: str) -> PrimaryKeys:
        result = self._fetch(
            "SELECT TRIM(s.RDB$FIELD_NAME), TRIM(rc.RDB$CONSTRAINT_NAME)"
            " FROM RDB$RELATION_CONSTRAINTS rc"
            " JOIN RDB$INDEX_SEGMENTS s ON s.RDB$INDEX_NAME = rc.RDB$INDEX_NAME"
            " WHERE rc.RDB$RELATION_NAME = ?"
            " AND rc.RDB$CONSTRAINT_TYPE = 'PRIMARY KEY'"
            " ORDER BY s.RDB$FIELD_POSITION",
            [table],
        )
        return PrimaryKeys([r[0] for r in result.rows], [r[1] for r in result.rows])

    def _foreign_keys(self, table: str, imported: bool) -> ForeignKeys:
        side = "rc" if imported else "pc"
        result = self._fetch(
            "SELECT TRIM(rc.RDB$CONSTRAINT_NAME), TRIM(fs.RDB$FIELD_NAME),"
            " TRIM(rc.RDB$RELATION_NAME), TRIM(ps.RDB$FIELD_NAME),"
            " TRIM(pc.RDB$RELATION_NAME), TRIM(ref.RDB$MATCH_OPTION),"
            " TRIM(ref.RDB$UPDATE_RULE), TRIM(ref.RDB$DELETE_RULE),"
            " TRIM(rc.RDB$DEFERRABLE), TRIM(rc.RDB$INITIALLY_DEFERRED)"
            " FROM RDB$RELATION_CONSTRAINTS rc"
            " JOIN RDB$REF_CONSTRAINTS ref ON ref.RDB$CONSTRAINT_NAME = rc.RDB$CONSTRAINT_NAME"
            " JOIN RDB$RELATION_CONSTRAINTS pc ON pc.RDB$CONSTRAINT_NAME = ref.RDB$CONST_NAME_UQ"
            " JOIN RDB$INDEX_SEGMENTS fs ON fs.RDB$INDEX_NAME = rc.RDB$INDEX_NAME"
            " JOIN RDB$INDEX_SEGMENTS ps ON ps.RDB$INDEX_NAME = pc.RDB$INDEX_NAME"
            " AND ps.RDB$FIELD_POSITION = fs.RDB$FIELD_POSITION"
            " WHERE rc.RDB$CONSTRAINT_TYPE = 'FOREIGN KEY'"
            f" AND {side}.RDB$RELATION_NAME = ?"
            " ORDER BY rc.RDB$RELATION_NAME, rc.RDB$CONSTRAINT_NAME",
            [table],
        )
        return ForeignKeys.from_rows([
            ForeignKey(
                constraint=name,
                foreign_column=fk_column,
                foreign_table=fk_table,
                primary_column=pk_column,
                primary_table=pk_table,
                insert_rule=match_option or "UNKNOWN",
                update_rule=update_rule,
                delete_rule=delete_rule,
                deferrable=yes_no(deferrable),
                initially_deferred=yes_no(deferred),
            )
            for (name, fk_column, fk_table, pk_column, pk_table, match_option,
                 update_rule, delete_rule, deferrable, deferred) in result.rows
        ])

    def get_check_constraints(self, table: str) -> CheckConstraints:
        # Each check owns an insert and an update trigger; type 1 is the insert one
        result = self._fetch(
            "SELECT TRIM(cc.RDB$CONSTRAINT_NAME), t.RDB$TRIGGER_SOURCE"
            " FROM RDB$RELATION_CONSTRAINTS rc"
            " JOIN RDB$CHECK_CONSTRAINTS cc ON cc.RDB$CONSTRAINT_NAME = rc.RDB$CONSTRAINT_NAME"
            " JOIN RDB$TRIGGERS t ON t.RDB$TRIGGER_NAME = cc.RDB$TRIGGER_NAME"
            " WHERE rc.RDB$RELATION_NAME = ?"
            " AND rc.RDB$CONSTRAINT_TYPE = 'CHECK'"
            " AND t.RDB$TRIGGER_TYPE = 1"
            " ORDER BY cc.RDB$CONSTRAINT_NAME",
            [table],
        )
        return CheckConstraints(
            [r[0] for r in result.rows],
            [strip_keyword(r[1], "CHECK") for r in result.rows],
        )

    def get_table_privileges(self, table: str) -> TablePrivileges:
        result = self._fetch(
            "SELECT TRIM(RDB$GRANTOR), TRIM(RDB$USER), TRIM(RDB$PRIVILEGE), RDB$GRANT_OPTION"
            " FROM RDB$USER_PRIVILEGES"
            " WHERE RDB$RELATION_NAME = ? AND RDB$FIELD_NAME IS NULL"
            " ORDER BY RDB$USER, RDB$PRIVILEGE",
            [table],
        )
        return TablePrivileges.from_rows([
            TablePrivilege(
                grantor,
                grantee,
                PRIVILEGE_CODES.get(code, code),
                Tristate.UNKNOWN if grant_option is None else Tristate.of(bool(grant_option)),
            )
            for grantor, grantee, code, grant_option in result.rows
        ])

    # ------------------------------------------------------------------
    # DDL
    # ------------------------------------------------------------------

    def create_database(self, name: str) -> None:
        raise unsupported(
            self.engine, "create_database", "databases are created through the server API"
        )

    def drop_database(self) -> None:
        """Drop the attached database file; other sessions are closed first."""
        self.pools.quiesce(self.identity)
        self.logger.info("Dropping database", database=self.identity.database)
        with self.pools.connection(self.identity) as conn:
            conn.drop_database()
        self.pools.quiesce(self.identity)

    def rename_table(self, table: str, new_name: str) -> None:
        raise unsupported(self.engine, "rename_table")

    def edit_column(
        self,
        table: str,
        column: str,
        new_name: str,
        type_name: str,
        length: Optional[str] = None,
        default: Optional[str] = None,
        null_clause: str = "",
        remarks: str = "",
    ) -> None:
        """Rename a column and change its type.

        Only the name and the type can be altered; the other attributes are
        ignored.
        """
        actions = []
        if column != new_name:
            actions.append(f"ALTER COLUMN {column} TO {new_name}")
        actions.append(f"ALTER COLUMN {new_name} TYPE {self._with_length(type_name, length)}")
        self._execute(f"ALTER TABLE {table} {', '.join(actions)}")

    def add_index(self, table: str, index_name: str, column: str) -> None:
        self._execute(f"CREATE INDEX {index_name} ON {table} ({column})")

    def add_unique_index(self, table: str, index_name: str, column: str) -> None:
        self._execute(f"CREATE UNIQUE INDEX {index_name} ON {table} ({column})")

    def drop_index(self, table: str, index_name: str) -> None:
        self._execute(f"DROP INDEX {index_name}")

    def add_primary_key(self, table: str, column: str) -> None:
        """Recreate the primary key constraint with ``column`` added first."""
        primary_keys = self.get_primary_keys(table)
        columns = [column] + list(primary_keys.columns)
        sql = f"ALTER TABLE {table}"
        if len(primary_keys):
            sql += f" DROP CONSTRAINT {primary_keys.constraints[0]},"
        self._execute(f"{sql} ADD PRIMARY KEY({','.join(columns)})")

    def drop_primary_key(self, table: str, column: str) -> None:
        """Remove ``column`` from the primary key.

        Raises:
            MetadataError: If ``column`` is not part of the primary key
        """
        primary_keys = self.get_primary_keys(table)
        constraint = primary_keys.constraint_for(column)
        if constraint is None:
            raise MetadataError(
                f"The column {column} does not appear to be a primary key",
                code=ErrorCodes.METADATA_EXTRACTION_FAILED,
                context={"table": table, "column": column, "engine": self.engine},
            )

        sql = f"ALTER TABLE {table} DROP CONSTRAINT {constraint}"
        remaining = [c for c in primary_keys.columns if c != column]
        if remaining:
            sql += f", ADD PRIMARY KEY({','.join(remaining)})"
        self._execute(sql)

    def _dump_value(self, value: Any) -> str:
        if isinstance(value, (bytes, bytearray)):
            return self.escape_literal(bytes(value).decode("utf-8", errors="replace"))
        return super()._dump_value(value)
