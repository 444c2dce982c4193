"""PostgreSQL dialect connector.

Introspection reads the ``pg_catalog`` tables directly. Servers older than
8.0 keep foreign keys as ``RI_FKey_*`` triggers and check constraints in
``pg_relcheck``; both layouts are understood.
"""

import re
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ...core.exceptions import CatalogParseError, ErrorCodes, unsupported
from ..base import BaseDialectConnector
from ..defaults import classify_default, render_default
from ..keywords import POSTGRESQL_KEYWORDS
from ..models import CheckConstraints, Columns, ForeignKey, ForeignKeys, Indexes, PrimaryKeys, Tristate

# timestamp/time with or without time zone must not be quoted as one identifier
_ZONED_TIME = re.compile(r"^time(stamp)? *(\( *[0-6] *\))? +with(out)? +time +zone$", re.IGNORECASE)

_CAST_ALIASES = {"serial": "integer", "bigserial": "bigint", "serial4": "integer", "serial8": "bigint"}
_BOOLEAN_TYPES = frozenset(("bool", "boolean"))

ACTION_RULES: Dict[str, str] = {
    "a": "no action",
    "r": "restrict",
    "c": "cascade",
    "n": "set null",
    "d": "set default",
}
MATCH_RULES: Dict[str, str] = {
    "f": "full",
    "p": "partial",
    "u": "unspecified",
    "s": "simple",
}
# Trigger function name fragments of pre-8.0 referential actions
LEGACY_ACTIONS: Dict[str, str] = {
    "cascade": "cascade",
    "restrict": "restrict",
    "setnull": "set null",
    "setdefault": "set default",
    "noaction": "no action",
}

SYSTEM_TABLES = (
    "sql_features",
    "sql_implementation_info",
    "sql_languages",
    "sql_packages",
    "sql_parts",
    "sql_sizing",
    "sql_sizing_profiles",
)


def _char(value: Any) -> str:
    """Decode a ``"char"`` catalog column, which drivers may return as bytes."""
    if isinstance(value, (bytes, bytearray)):
        return value.decode("ascii")
    return str(value)


def _catalog_code(codes: Dict[str, str], value: Any, kind: str) -> str:
    code = _char(value)
    try:
        return codes[code]
    except KeyError:
        raise CatalogParseError(
            f"Unknown {kind} code: {code!r}",
            code=ErrorCodes.CATALOG_PARSE_FAILED,
            context={"kind": kind, "value": code},
        ) from None


def split_trigger_args(tgargs: Any) -> List[str]:
    """Split the NUL separated ``pg_trigger.tgargs`` of a referential trigger.

    The catalog returns ``bytea``; text renderings escape NUL as ``\\000``.
    """
    if isinstance(tgargs, (bytes, bytearray)):
        parts = bytes(tgargs).decode("utf-8").split("\x00")
    else:
        parts = str(tgargs).replace("\\000", "\x00").split("\x00")
    if parts and parts[-1] == "":
        parts.pop()
    return parts


class PostgreSQLConnector(BaseDialectConnector):
    """PostgreSQL dialect.

    Parameters are sent as text and cast to the column type on the server,
    so string values from edit forms bind to any column type.
    """

    engine = "postgresql"
    product_name = "PostgreSQL"
    keywords = POSTGRESQL_KEYWORDS
    possible_privileges = ("SELECT", "DELETE", "INSERT", "UPDATE")

    def quote_type(self, type_name: str) -> str:
        if _ZONED_TIME.match(type_name):
            return type_name
        return self._quote(type_name)

    def _param(self, position: int, type_name: Optional[str] = None) -> str:
        if type_name is None or type_name.lower() in _BOOLEAN_TYPES:
            return f"${position}"
        cast = _CAST_ALIASES.get(type_name.lower(), type_name)
        return f"${position}::text::{self.quote_type(cast)}"

    def _bind(self, value: Any, type_name: Optional[str] = None) -> Any:
        if value is None:
            return None
        if type_name is not None and type_name.lower() in _BOOLEAN_TYPES:
            if isinstance(value, bool):
                return value
            return str(value).lower() in ("true", "t", "1", "yes", "y", "on")
        if type_name is None:
            return value
        return str(value)

    def _column_types(self, table: str, columns: Sequence[str]) -> List[Optional[str]]:
        declared = self.get_columns(table)
        return [declared.get_type(c) for c in columns]

    def _schema_filter(self, alias: str = "") -> str:
        return f" AND {alias}table_schema = current_schema()"

    def _is_null(self, column: str) -> str:
        return f"{self.quote_column(column)} IS NULL"

    def supports_check_constraints(self) -> bool:
        return True

    def get_limit_clause(self, start: int, count: int) -> Optional[str]:
        return f"limit {count} offset {start}"

    # ------------------------------------------------------------------
    # Server version
    # ------------------------------------------------------------------

    def get_server_version(self) -> str:
        return str(self._fetch_value("SHOW server_version"))

    def _major_version(self) -> int:
        version = self.get_server_version()
        match = re.match(r"\s*(\d+)", version)
        if match is None:
            raise CatalogParseError(
                f"Cannot parse server version: {version}",
                code=ErrorCodes.CATALOG_PARSE_FAILED,
                context={"version": version, "engine": self.engine},
            )
        return int(match.group(1))

    def _is_legacy(self) -> bool:
        """True for 7.x servers, which lack pg_constraint foreign keys."""
        return self._major_version() < 8

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def get_columns(self, table: str) -> Columns:
        """Columns of ``table`` from ``pg_attribute``, defaults from ``pg_attrdef``."""
        result = self._fetch(
            "SELECT a.attname, t.typname,"
            " CASE WHEN t.typname IN ('bpchar', 'varchar') AND a.atttypmod > 4"
            " THEN a.atttypmod - 4"
            " WHEN t.typname = 'numeric' AND a.atttypmod > 4"
            " THEN ((a.atttypmod - 4) >> 16) & 65535"
            " END,"
            " a.attnotnull, col_description(a.attrelid, a.attnum)"
            " FROM pg_attribute a, pg_class c, pg_type t"
            " WHERE c.relname = $1"
            " AND a.attrelid = c.oid"
            " AND a.atttypid = t.oid"
            " AND a.attnum > 0"
            " AND NOT a.attisdropped"
            " ORDER BY a.attnum",
            [table],
        )
        defaults = self._column_defaults(table)

        names, types, lengths, nullable, tagged, remarks = [], [], [], [], [], []
        for name, type_name, length, not_null, remark in result.rows:
            names.append(name)
            types.append(type_name)
            lengths.append(None if length is None else str(length))
            nullable.append(Tristate.of(not not_null))
            tagged.append(defaults.get(name))
            remarks.append(remark or "")
        return Columns(names, types, lengths, nullable, tagged, remarks)

    def _column_defaults(self, table: str) -> Dict[str, Optional[str]]:
        source = "d.adsrc" if self._is_legacy() else "pg_get_expr(d.adbin, d.adrelid)"
        result = self._fetch(
            f"SELECT {source}, a.attname"
            " FROM pg_attrdef d, pg_class c, pg_attribute a"
            " WHERE c.relname = $1"
            " AND c.oid = d.adrelid"
            " AND a.attrelid = c.oid"
            " AND a.attnum > 0"
            " AND d.adnum = a.attnum"
            " ORDER BY a.attnum",
            [table],
        )
        return {name: classify_default(raw) for raw, name in result.rows}

    def get_indexes(self, table: str) -> Indexes:
        result = self._fetch(
            "SELECT ic.relname, ta.attname, i.indisunique"
            " FROM pg_class bc, pg_class ic, pg_index i, pg_attribute a, pg_attribute ta"
            " WHERE bc.relkind = 'r'"
            " AND bc.relname = $1"
            " AND i.indrelid = bc.oid"
            " AND i.indexrelid = ic.oid"
            " AND a.attrelid = i.indexrelid"
            " AND ta.attrelid = i.indrelid"
            " AND ta.attnum = i.indkey[a.attnum - 1]"
            " ORDER BY ic.relname, a.attnum",
            [table],
        )
        return Indexes(
            [r[0] for r in result.rows],
            [Tristate.of(r[2]) for r in result.rows],
            [r[1] for r in result.rows],
        )

    def get_primary_keys(self, table: str) -> PrimaryKeys:
        result = self._fetch(
            "SELECT ta.attname, ic.relname"
            " FROM pg_class bc, pg_class ic, pg_index i, pg_attribute a, pg_attribute ta"
            " WHERE bc.relkind = 'r'"
            " AND bc.relname = $1"
            " AND i.indisprimary"
            " AND i.indrelid = bc.oid"
            " AND i.indexrelid = ic.oid"
            " AND a.attrelid = i.indexrelid"
            " AND ta.attrelid = i.indrelid"
            " AND ta.attnum = i.indkey[a.attnum - 1]"
            " ORDER BY a.attnum",
            [table],
        )
        return PrimaryKeys([r[0] for r in result.rows], [r[1] for r in result.rows])

    def _foreign_keys(self, table: str, imported: bool) -> ForeignKeys:
        if self._is_legacy():
            return self._legacy_foreign_keys(table, imported)

        side = "cl" if imported else "ft"
        result = self._fetch(
            "SELECT co.conname, ft.oid, ft.relname, co.confkey,"
            " cl.oid, cl.relname, co.conkey,"
            " co.confmatchtype, co.confdeltype, co.confupdtype,"
            " co.condeferrable, co.condeferred"
            " FROM pg_catalog.pg_class cl"
            " INNER JOIN pg_catalog.pg_constraint co ON cl.oid = co.conrelid"
            " INNER JOIN pg_catalog.pg_class ft ON co.confrelid = ft.oid"
            f" WHERE {side}.relname = $1"
            " AND co.contype = 'f'"
            " ORDER BY cl.relname, co.conname",
            [table],
        )

        keys = []
        for (name, primary_oid, primary_table, primary_attnums, foreign_oid, foreign_table,
             foreign_attnums, match_type, delete_type, update_type, deferrable, deferred) in result.rows:
            keys.append(ForeignKey(
                constraint=name,
                foreign_column=self._single_column(foreign_oid, foreign_attnums, name),
                foreign_table=foreign_table,
                primary_column=self._single_column(primary_oid, primary_attnums, name),
                primary_table=primary_table,
                insert_rule=_catalog_code(MATCH_RULES, match_type, "match type"),
                update_rule=_catalog_code(ACTION_RULES, update_type, "update action"),
                delete_rule=_catalog_code(ACTION_RULES, delete_type, "delete action"),
                deferrable=Tristate.of(deferrable),
                initially_deferred=Tristate.of(deferred),
            ))
        return ForeignKeys.from_rows(keys)

    def _single_column(self, table_oid: int, attnums: Sequence[int], constraint: str) -> str:
        if len(attnums) != 1:
            raise CatalogParseError(
                f"Only single-column foreign keys are supported: {constraint}",
                code=ErrorCodes.CATALOG_PARSE_FAILED,
                context={"constraint": constraint, "columns": len(attnums)},
            )
        name = self._fetch_value(
            "SELECT attname FROM pg_catalog.pg_attribute WHERE attrelid = $1 AND attnum = $2",
            [table_oid, attnums[0]],
        )
        if name is None:
            raise CatalogParseError(
                f"No column {attnums[0]} in relation {table_oid}",
                code=ErrorCodes.CATALOG_PARSE_FAILED,
                context={"constraint": constraint, "attnum": attnums[0]},
            )
        return name

    def _legacy_foreign_keys(self, table: str, imported: bool) -> ForeignKeys:
        """Rebuild foreign keys from the ``RI_FKey_*`` triggers of a 7.x server.

        Every key owns three triggers: the check on the referencing table and
        the delete and update actions on the referenced table.
        """
        result = self._fetch(
            "SELECT t.tgargs, p.proname, t.tgdeferrable, t.tginitdeferred"
            " FROM pg_trigger t, pg_proc p"
            " WHERE t.tgfoid = p.oid AND p.proname LIKE 'RI_FKey_%'"
            " ORDER BY t.tgname"
        )

        found: Dict[Tuple[str, str], Dict[str, Any]] = {}
        for tgargs, proname, deferrable, deferred in result.rows:
            args = split_trigger_args(tgargs)
            if len(args) < 6:
                continue
            name, foreign_table, primary_table, match_type, foreign_column, primary_column = args[:6]
            if (foreign_table if imported else primary_table) != table:
                continue

            entry = found.setdefault((name, foreign_table), {
                "key": (name, foreign_column, foreign_table, primary_column, primary_table),
                "match": match_type.lower(),
                "deferrable": Tristate.of(deferrable),
                "deferred": Tristate.of(deferred),
                "delete": "no action",
                "update": "no action",
            })
            action = proname[len("RI_FKey_"):]
            if action.endswith("_del"):
                entry["delete"] = LEGACY_ACTIONS.get(action[:-4], action[:-4])
            elif action.endswith("_upd"):
                entry["update"] = LEGACY_ACTIONS.get(action[:-4], action[:-4])

        return ForeignKeys.from_rows([
            ForeignKey(
                *entry["key"],
                insert_rule=entry["match"],
                update_rule=entry["update"],
                delete_rule=entry["delete"],
                deferrable=entry["deferrable"],
                initially_deferred=entry["deferred"],
            )
            for entry in found.values()
        ])

    def get_check_constraints(self, table: str) -> CheckConstraints:
        if self._is_legacy():
            sql = (
                "SELECT r.rcname, r.rcsrc FROM pg_relcheck r, pg_class c"
                " WHERE c.relname = $1 AND c.oid = r.rcrelid"
                " ORDER BY r.rcname"
            )
        else:
            sql = (
                "SELECT co.conname, pg_get_constraintdef(co.oid)"
                " FROM pg_catalog.pg_class cl"
                " INNER JOIN pg_catalog.pg_constraint co ON cl.oid = co.conrelid"
                " WHERE cl.relname = $1 AND co.contype = 'c'"
                " ORDER BY co.conname"
            )
        result = self._fetch(sql, [table])
        return CheckConstraints([r[0] for r in result.rows], [r[1] for r in result.rows])

    def get_databases(self) -> List[str]:
        return self._fetch_list("SELECT datname FROM pg_database ORDER BY datname")

    def get_tables(self) -> List[str]:
        excluded = ", ".join(f"'{name}'" for name in SYSTEM_TABLES)
        return self._fetch_list(
            "SELECT c.relname FROM pg_class c"
            " WHERE c.relkind = 'r'"
            " AND NOT EXISTS (SELECT 1 FROM pg_views WHERE viewname = c.relname)"
            " AND c.relname !~ '^pg_'"
            f" AND c.relname NOT IN ({excluded})"
            " ORDER BY c.relname"
        )

    def get_types(self) -> List[str]:
        return self._fetch_list(
            "(SELECT typname FROM pg_type WHERE typname !~ '^_')"
            " EXCEPT (SELECT relname FROM pg_class)"
            " ORDER BY 1"
        )

    def get_function_list(self, return_type: Optional[str] = None) -> List[str]:
        if return_type is None:
            return self._fetch_list(
                "SELECT p.proname FROM pg_proc p, pg_type t"
                " WHERE p.prorettype = t.oid"
                " AND (p.pronargs = 0 OR oidvectortypes(p.proargtypes) != '')"
                " GROUP BY p.proname ORDER BY p.proname"
            )
        return self._fetch_list(
            "SELECT p.proname FROM pg_proc p, pg_type t"
            " WHERE p.prorettype = t.oid"
            " AND t.typname = lower($1)"
            " AND (p.pronargs = 0 OR oidvectortypes(p.proargtypes) != '')"
            " GROUP BY p.proname ORDER BY p.proname",
            [return_type],
        )

    def get_possible_values(
        self,
        table: str,
        column: str,
        type_name: str,
        foreign_key_rows: Optional[int] = None,
    ) -> Optional[List[str]]:
        """Referenced key values of a foreign key column, or true/false for bool.

        Key values are listed only when the referenced table holds at most
        ``foreign_key_rows`` rows. For a single-column unique referencing
        column, keys already in use are left out.
        """
        if foreign_key_rows is None:
            foreign_key_rows = self.config.foreign_key_rows

        if foreign_key_rows > 0:
            key = self.get_imported_keys(table).for_column(column)
            if key is not None and self.count_records(key.primary_table) <= foreign_key_rows:
                values = self._fetch_list(self._key_values_sql(table, column, key))
                if values:
                    return [str(v) for v in values]

        if type_name.lower() in _BOOLEAN_TYPES:
            return ["true", "false"]
        return None

    def _key_values_sql(self, table: str, column: str, key: ForeignKey) -> str:
        primary_table = self.quote_table(key.primary_table)
        primary_column = self.quote_column(key.primary_column)
        sql = f"SELECT {primary_column} FROM {primary_table}"

        indexes = self.get_indexes(table)
        for index in indexes:
            if index.column == column:
                if index.unique is Tristate.TRUE and not indexes.is_multi_column(index.name):
                    quoted = self.quote_table(table)
                    sql += (
                        f" WHERE (SELECT COUNT(*) FROM {quoted}"
                        f" WHERE {primary_table}.{primary_column} = {quoted}.{self.quote_column(column)}) = 0"
                    )
                break
        return sql + f" ORDER BY {primary_column}"

    # ------------------------------------------------------------------
    # DDL
    # ------------------------------------------------------------------

    def drop_database(self) -> None:
        """Drop the current database from ``template1``.

        PostgreSQL refuses to drop a database with open sessions, so the
        identity's pool is quiesced first.
        """
        database = self.identity.database
        self.pools.quiesce(self.identity)
        self.logger.info("Dropping database", database=database)
        with self.pools.connection(self.identity.with_database("template1")) as conn:
            conn.execute(f"DROP DATABASE {self.quote_table(database)}")

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
        """Rename a column and reset its default and nullability.

        The column type is left unchanged.
        """
        quoted = self.quote_table(table)
        if column != new_name:
            self._execute(
                f"ALTER TABLE {quoted} RENAME COLUMN {self.quote_column(column)}"
                f" TO {self.quote_column(new_name)}"
            )

        target = f"ALTER TABLE {quoted} ALTER COLUMN {self.quote_column(new_name)}"
        rendered = render_default(default, self.escape_literal)
        if rendered is None:
            self._execute(f"{target} DROP DEFAULT")
        else:
            self._execute(f"{target} SET DEFAULT {rendered}")

        null_clause = null_clause.strip().upper()
        if null_clause == "NOT NULL":
            self._execute(f"{target} SET NOT NULL")
        elif null_clause == "NULL":
            self._execute(f"{target} DROP NOT NULL")

    def delete_column(self, table: str, column: str) -> None:
        raise unsupported(
            self.engine,
            "delete_column",
            "the table must be rebuilt without the column and its triggers are lost",
        )

    def add_index(self, table: str, index_name: str, column: str) -> None:
        self._execute(
            f"CREATE INDEX {self.quote_column(index_name)}"
            f" ON {self.quote_table(table)} ({self.quote_column(column)})"
        )

    def add_unique_index(self, table: str, index_name: str, column: str) -> None:
        self._execute(
            f"CREATE UNIQUE INDEX {self.quote_column(index_name)}"
            f" ON {self.quote_table(table)} ({self.quote_column(column)})"
        )

    def drop_index(self, table: str, index_name: str) -> None:
        self._execute(f"DROP INDEX {self.quote_column(index_name)}")

    def add_primary_key(self, table: str, column: str) -> None:
        raise unsupported(self.engine, "add_primary_key")

    def drop_primary_key(self, table: str, column: str) -> None:
        raise unsupported(self.engine, "drop_primary_key")
