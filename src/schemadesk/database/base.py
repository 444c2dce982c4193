"""
Base dialect connector.

Defines the engine-neutral schema introspection and DDL/DML verbs. The base
class answers from ANSI ``information_schema`` where a view exists and
builds ANSI-flavoured statements; each dialect overrides the pieces its
engine does differently. Every table-scoped verb takes the table name as
its first argument, and every statement runs on a connection borrowed from
the pool registry for the duration of that one statement.
"""

from typing import Any, Dict, List, Optional, Sequence, TextIO, Tuple

from ..config.models import ConnectionIdentity, SystemConfig
from ..core.exceptions import (
    CatalogParseError,
    ErrorCodes,
    MetadataError,
    ValidationError,
    unsupported,
)
from ..logging import get_logger, get_performance_logger
from .defaults import encode_literal, escape_sql_value, render_default
from .keywords import SQL_KEYWORDS
from .models import (
    CheckConstraints,
    ColumnDefinition,
    Columns,
    ForeignKey,
    ForeignKeys,
    Indexes,
    PrimaryKeys,
    QueryResult,
    TablePrivilege,
    TablePrivileges,
    TableSchema,
    Tristate,
)
from .pool import PoolRegistry

# Referential action and deferrability codes as reported by SQL catalogs.
RULE_DESCRIPTIONS: Dict[int, str] = {
    0: "CASCADE",
    1: "RESTRICT",
    2: "SET NULL",
    3: "NO ACTION",
    4: "SET DEFAULT",
    5: "INITIALLY DEFERRED",
    6: "INITIALLY IMMEDIATE",
    7: "NOT DEFERRABLE",
}


def yes_no(value: Any) -> Tristate:
    """Map an information_schema YES/NO column to a Tristate."""
    if value == "YES":
        return Tristate.TRUE
    if value == "NO":
        return Tristate.FALSE
    return Tristate.UNKNOWN


class BaseDialectConnector:
    """Capability-polymorphic schema and DDL interface over one identity.

    Connectors hold no state across calls beyond the identity, the shared
    pool registry and the configuration, so one instance may serve several
    threads.

    Attributes:
        engine: Engine name reported in errors and logs
        product_name: Human readable product name
        quote_char: Identifier quote character, empty for pass-through
        keywords: Reserved words forcing quotation

    Example:
        >>> connector = BaseDialectConnector(identity, pools)
        >>> connector.quote_column("user")
        '"user"'
        >>> connector.get_limit_clause(10, 20) is None
        True
    """

    engine: str = "sql"
    product_name: str = "SQL"
    quote_char: str = '"'
    keywords = SQL_KEYWORDS
    possible_privileges: Tuple[str, ...] = (
        "SELECT", "DELETE", "INSERT", "UPDATE", "REFERENCES", "EXECUTE",
    )

    def __init__(
        self,
        identity: ConnectionIdentity,
        pools: PoolRegistry,
        config: Optional[SystemConfig] = None,
    ):
        """Initialize the connector.

        Args:
            identity: Identity every statement runs under
            pools: Pool registry lending connections
            config: System configuration, defaults to built-in settings
        """
        self.identity = identity
        self.pools = pools
        self.config = config if config is not None else SystemConfig()

        self.logger = get_logger(f"database.connector.{self.engine}").bind(
            identity=identity.display_name
        )
        self.perf_logger = get_performance_logger(f"connector.{self.engine}", auto_log=False)

    # ------------------------------------------------------------------
    # Statement plumbing
    # ------------------------------------------------------------------

    def _fetch(self, sql: str, params: Sequence[Any] = ()) -> QueryResult:
        with self.perf_logger.measure("fetch", engine=self.engine):
            with self.pools.connection(self.identity) as conn:
                return conn.fetch(sql, params)

    def _fetch_list(self, sql: str, params: Sequence[Any] = ()) -> List[Any]:
        return self._fetch(sql, params).column(0)

    def _fetch_value(self, sql: str, params: Sequence[Any] = ()) -> Any:
        return self._fetch(sql, params).scalar()

    def _execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        with self.perf_logger.measure("execute", engine=self.engine):
            with self.pools.connection(self.identity) as conn:
                return conn.execute(sql, params)

    def _param(self, position: int, type_name: Optional[str] = None) -> str:
        """Placeholder for the ``position``-th (1-based) bound parameter."""
        return "?"

    def _bind(self, value: Any, type_name: Optional[str] = None) -> Any:
        """Value actually bound for a parameter of column type ``type_name``."""
        return value

    def _column_types(self, table: str, columns: Sequence[str]) -> List[Optional[str]]:
        """Declared types of ``columns``, used to type bound parameters."""
        return [None] * len(columns)

    def _schema_filter(self, alias: str = "") -> str:
        """Extra predicate restricting information_schema rows to this database."""
        return ""

    # ------------------------------------------------------------------
    # Identifiers and literals
    # ------------------------------------------------------------------

    def is_keyword(self, identifier: str) -> bool:
        """True if ``identifier`` is a reserved word of this engine."""
        return identifier.lower() in self.keywords

    def _quote(self, identifier: str) -> str:
        if identifier is None:
            raise TypeError("identifier must not be None")
        quote = self.quote_char
        if not quote:
            return identifier
        if identifier == "":
            return quote + quote

        needs_quotes = self.is_keyword(identifier)
        out = []
        for i, ch in enumerate(identifier):
            if "a" <= ch <= "z" or ch == "_" or (i > 0 and "0" <= ch <= "9"):
                out.append(ch)
            else:
                needs_quotes = True
                out.append(ch * 2 if ch == quote else ch)
        if not needs_quotes:
            return identifier
        return quote + "".join(out) + quote

    def quote_table(self, table: str) -> str:
        return self._quote(table)

    def quote_column(self, column: str) -> str:
        return self._quote(column)

    def quote_type(self, type_name: str) -> str:
        return self._quote(type_name)

    def escape_literal(self, value: Optional[str]) -> str:
        """Render a value as an SQL literal of this dialect."""
        return escape_sql_value(None if value is None else str(value))

    def _dump_value(self, value: Any) -> str:
        return self.escape_literal(None if value is None else str(value))

    def _render_default(self, tagged: Optional[str]) -> Optional[str]:
        return render_default(tagged, self.escape_literal)

    def _is_null(self, column: str) -> str:
        return f"ISNULL({self.quote_column(column)})"

    @staticmethod
    def _with_length(type_name: str, length: Optional[str]) -> str:
        if length and not type_name.upper().endswith("TEXT"):
            return f"{type_name}({length})"
        return type_name

    def _column_spec(
        self,
        type_name: str,
        length: Optional[str],
        default: Optional[str],
        null_clause: str,
        remarks: str,
    ) -> str:
        parts = [self._with_length(type_name, length)]
        rendered = self._render_default(default)
        if rendered is not None:
            parts.append(f"DEFAULT {rendered}")
        parts.extend(p for p in (null_clause, remarks) if p)
        return " ".join(parts)

    # ------------------------------------------------------------------
    # Capabilities
    # ------------------------------------------------------------------

    def supports_foreign_keys(self) -> bool:
        return True

    def supports_check_constraints(self) -> bool:
        return False

    def get_limit_clause(self, start: int, count: int) -> Optional[str]:
        """Paging suffix selecting ``count`` rows from ``start``, None if the
        engine has no such syntax."""
        return None

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def get_columns(self, table: str) -> Columns:
        """Get the columns of ``table``.

        Args:
            table: Table name

        Returns:
            Column snapshot in ordinal order
        """
        result = self._fetch(
            "SELECT column_name, data_type,"
            " COALESCE(character_maximum_length, numeric_precision),"
            " is_nullable, column_default"
            " FROM information_schema.columns"
            f" WHERE table_name = {self._param(1)}{self._schema_filter()}"
            " ORDER BY ordinal_position",
            [table],
        )
        names, types, lengths, nullable, defaults, remarks = [], [], [], [], [], []
        for name, data_type, length, is_nullable, default in result.rows:
            names.append(name)
            types.append(data_type)
            lengths.append(None if length is None else str(length))
            nullable.append(yes_no(is_nullable))
            defaults.append(None if default is None else encode_literal(str(default)))
            remarks.append("")
        return Columns(names, types, lengths, nullable, defaults, remarks)

    def _require_column(self, table: str, column: str) -> Columns:
        columns = self.get_columns(table)
        if columns.index_of(column) < 0:
            raise MetadataError(
                f"Column not found: {table}.{column}",
                code=ErrorCodes.METADATA_EXTRACTION_FAILED,
                context={"table": table, "column": column, "engine": self.engine},
            )
        return columns

    def get_default(self, table: str, column: str) -> Optional[str]:
        """Tagged default of one column, None when it has none.

        Raises:
            MetadataError: If the column does not exist
        """
        return self._require_column(table, column).get_default(column)

    def get_remark(self, table: str, column: str) -> Optional[str]:
        """Remark of one column.

        Raises:
            MetadataError: If the column does not exist
        """
        return self._require_column(table, column).get_remark(column)

    def get_indexes(self, table: str) -> Indexes:
        """Get index membership of ``table``.

        The ANSI catalog only describes constraint-backed indexes, so the
        base reports primary key and unique constraints.
        """
        result = self._fetch(
            "SELECT tc.constraint_name, tc.constraint_type, kcu.column_name"
            " FROM information_schema.table_constraints tc"
            " JOIN information_schema.key_column_usage kcu"
            " ON kcu.constraint_name = tc.constraint_name"
            " AND kcu.constraint_schema = tc.constraint_schema"
            " AND kcu.table_schema = tc.table_schema"
            " AND kcu.table_name = tc.table_name"
            f" WHERE tc.table_name = {self._param(1)}"
            " AND tc.constraint_type IN ('PRIMARY KEY', 'UNIQUE')"
            f"{self._schema_filter('tc.')}"
            " ORDER BY tc.constraint_name, kcu.ordinal_position",
            [table],
        )
        return Indexes(
            [r[0] for r in result.rows],
            [Tristate.TRUE for _ in result.rows],
            [r[2] for r in result.rows],
        )

    def get_primary_keys(self, table: str) -> PrimaryKeys:
        result = self._fetch(
            "SELECT kcu.column_name, tc.constraint_name"
            " FROM information_schema.table_constraints tc"
            " JOIN information_schema.key_column_usage kcu"
            " ON kcu.constraint_name = tc.constraint_name"
            " AND kcu.constraint_schema = tc.constraint_schema"
            " AND kcu.table_schema = tc.table_schema"
            " AND kcu.table_name = tc.table_name"
            f" WHERE tc.table_name = {self._param(1)}"
            " AND tc.constraint_type = 'PRIMARY KEY'"
            f"{self._schema_filter('tc.')}"
            " ORDER BY kcu.ordinal_position",
            [table],
        )
        return PrimaryKeys([r[0] for r in result.rows], [r[1] for r in result.rows])

    def _foreign_keys(self, table: str, imported: bool) -> ForeignKeys:
        side = "fk" if imported else "pk"
        result = self._fetch(
            "SELECT rc.constraint_name, fk.column_name, fk.table_name,"
            " pk.column_name, pk.table_name, rc.update_rule, rc.delete_rule"
            " FROM information_schema.referential_constraints rc"
            " JOIN information_schema.key_column_usage fk"
            " ON fk.constraint_name = rc.constraint_name"
            " AND fk.constraint_schema = rc.constraint_schema"
            " JOIN information_schema.key_column_usage pk"
            " ON pk.constraint_name = rc.unique_constraint_name"
            " AND pk.constraint_schema = rc.unique_constraint_schema"
            " AND pk.ordinal_position = fk.position_in_unique_constraint"
            f" WHERE {side}.table_name = {self._param(1)}{self._schema_filter(side + '.')}"
            " ORDER BY fk.table_name, rc.constraint_name",
            [table],
        )
        return ForeignKeys.from_rows([
            ForeignKey(
                constraint=name,
                foreign_column=fk_column,
                foreign_table=fk_table,
                primary_column=pk_column,
                primary_table=pk_table,
                insert_rule="UNKNOWN",
                update_rule=update_rule,
                delete_rule=delete_rule,
                deferrable=Tristate.UNKNOWN,
                initially_deferred=Tristate.UNKNOWN,
            )
            for name, fk_column, fk_table, pk_column, pk_table, update_rule, delete_rule in result.rows
        ])

    def get_imported_keys(self, table: str) -> ForeignKeys:
        """Foreign keys declared on ``table`` (``table`` references others)."""
        if not self.supports_foreign_keys():
            return ForeignKeys()
        return self._foreign_keys(table, imported=True)

    def get_exported_keys(self, table: str) -> ForeignKeys:
        """Foreign keys of other tables referencing ``table``."""
        if not self.supports_foreign_keys():
            return ForeignKeys()
        return self._foreign_keys(table, imported=False)

    def get_check_constraints(self, table: str) -> CheckConstraints:
        if not self.supports_check_constraints():
            return CheckConstraints()
        result = self._fetch(
            "SELECT cc.constraint_name, cc.check_clause"
            " FROM information_schema.check_constraints cc"
            " JOIN information_schema.table_constraints tc"
            " ON tc.constraint_name = cc.constraint_name"
            " AND tc.constraint_schema = cc.constraint_schema"
            f" WHERE tc.table_name = {self._param(1)}"
            " AND tc.constraint_type = 'CHECK'"
            " ORDER BY cc.constraint_name",
            [table],
        )
        return CheckConstraints([r[0] for r in result.rows], [r[1] for r in result.rows])

    def get_table_privileges(self, table: str) -> TablePrivileges:
        result = self._fetch(
            "SELECT grantor, grantee, privilege_type, is_grantable"
            " FROM information_schema.table_privileges"
            f" WHERE table_name = {self._param(1)}{self._schema_filter()}"
            " ORDER BY grantee, privilege_type",
            [table],
        )
        return TablePrivileges.from_rows([
            TablePrivilege(grantor, grantee, privilege, yes_no(grantable))
            for grantor, grantee, privilege, grantable in result.rows
        ])

    def get_tables(self) -> List[str]:
        return self._fetch_list(
            "SELECT table_name FROM information_schema.tables"
            f" WHERE table_type = 'BASE TABLE'{self._schema_filter()}"
            " ORDER BY table_name"
        )

    def get_databases(self) -> List[str]:
        return self._fetch_list(
            "SELECT schema_name FROM information_schema.schemata ORDER BY schema_name"
        )

    def get_types(self) -> List[str]:
        return self._fetch_list(
            "SELECT DISTINCT data_type FROM information_schema.columns ORDER BY data_type"
        )

    def get_function_list(self, return_type: Optional[str] = None) -> List[str]:
        """Names of functions offered in row edit forms.

        Args:
            return_type: Only functions returning this type, all when None
        """
        if return_type is None:
            return self._fetch_list(
                "SELECT DISTINCT routine_name FROM information_schema.routines"
                " ORDER BY routine_name"
            )
        return self._fetch_list(
            "SELECT DISTINCT routine_name FROM information_schema.routines"
            f" WHERE lower(data_type) = lower({self._param(1)})"
            " ORDER BY routine_name",
            [return_type],
        )

    def get_possible_values(
        self,
        table: str,
        column: str,
        type_name: str,
        foreign_key_rows: Optional[int] = None,
    ) -> Optional[List[str]]:
        """Closed set of values a column may take, None when unknown.

        Args:
            table: Table name
            column: Column name
            type_name: Declared type of the column
            foreign_key_rows: Largest referenced table whose keys are listed,
                defaults to ``SystemConfig.foreign_key_rows``
        """
        return None

    def count_records(self, table: str) -> int:
        return int(self._fetch_value(f"SELECT count(*) FROM {self.quote_table(table)}") or 0)

    def get_server_version(self) -> str:
        return str(self._fetch_value("SELECT version()"))

    def get_database_product_name(self) -> str:
        return f"{self.product_name} {self.get_server_version()}"

    def get_possible_privileges(self) -> List[str]:
        return list(self.possible_privileges)

    def get_effective_type(self, type_name: str) -> str:
        """Type used to pick functions for a column; ENUM and SET act as text."""
        if type_name.lower() in ("enum", "set"):
            return "text"
        return type_name

    def get_rule_description(self, code: int) -> str:
        """Describe a referential action or deferrability code.

        Raises:
            CatalogParseError: If the code is unknown
        """
        try:
            return RULE_DESCRIPTIONS[code]
        except KeyError:
            raise CatalogParseError(
                f"Unknown rule code: {code}",
                code=ErrorCodes.CATALOG_PARSE_FAILED,
                context={"rule_code": code, "engine": self.engine},
            ) from None

    def get_select_where_clause(
        self, columns: Sequence[str], values: Sequence[Optional[str]]
    ) -> str:
        """Build a search filter, without the WHERE keyword.

        None matches NULL, an empty string is ignored and anything else is a
        LIKE pattern.
        """
        conditions = []
        for column, value in zip(columns, values):
            if not column:
                continue
            if value is None:
                conditions.append(self._is_null(column))
            elif value != "":
                conditions.append(f"{self.quote_column(column)} LIKE {self.escape_literal(value)}")
        return " AND ".join(conditions)

    def get_database_schema(self) -> List[TableSchema]:
        """Every table with its columns and imported keys."""
        return [
            TableSchema(
                name=table,
                columns=self.get_columns(table),
                imported_keys=self.get_imported_keys(table),
            )
            for table in self.get_tables()
        ]

    # ------------------------------------------------------------------
    # Database and table DDL
    # ------------------------------------------------------------------

    def create_database(self, name: str) -> None:
        self._execute(f"CREATE DATABASE {self.quote_table(name)}")

    def drop_database(self) -> None:
        """Drop the database this connector is connected to."""
        self._execute(f"DROP DATABASE {self.quote_table(self.identity.database)}")

    def _create_table_sql(self, table: str, columns: Sequence[ColumnDefinition]) -> str:
        specs = []
        for column in columns:
            spec = self._column_spec(
                column.type, column.length, column.default, column.null_clause, column.remarks
            )
            if column.unique:
                spec += " UNIQUE"
            specs.append(f"{self.quote_column(column.name)} {spec}")

        keys = [self.quote_column(c.name) for c in columns if c.primary_key]
        if keys:
            specs.append(f"PRIMARY KEY ({', '.join(keys)})")
        return f"CREATE TABLE {self.quote_table(table)} ({', '.join(specs)})"

    def create_table(self, table: str, columns: Sequence[ColumnDefinition]) -> None:
        """Create ``table``, then index the columns flagged for indexing.

        Raises:
            ValidationError: If no columns are given
        """
        if not columns:
            raise ValidationError(
                f"Cannot create table {table} without columns",
                code=ErrorCodes.CONFIG_VALIDATION_FAILED,
                context={"table": table},
            )
        self._execute(self._create_table_sql(table, columns))
        for column in columns:
            if column.index:
                self.add_index(table, f"{table}_{column.name}_idx", column.name)

    def drop_table(self, table: str) -> None:
        self._execute(f"DROP TABLE {self.quote_table(table)}")

    def rename_table(self, table: str, new_name: str) -> None:
        self._execute(f"ALTER TABLE {self.quote_table(table)} RENAME TO {self.quote_table(new_name)}")

    def empty_table(self, table: str) -> None:
        self._execute(f"DELETE FROM {self.quote_table(table)}")

    # ------------------------------------------------------------------
    # Column DDL
    # ------------------------------------------------------------------

    def add_column(
        self,
        table: str,
        name: str,
        type_name: str,
        length: Optional[str] = None,
        default: Optional[str] = None,
        null_clause: str = "",
        remarks: str = "",
    ) -> None:
        """Add a column.

        Args:
            table: Table name
            name: New column name
            type_name: Column type
            length: Length or value list, ignored for TEXT types
            default: Tagged default, None for no default
            null_clause: ``NULL``, ``NOT NULL`` or empty
            remarks: Extra attributes appended verbatim (e.g. auto_increment)
        """
        spec = self._column_spec(type_name, length, default, null_clause, remarks)
        self._execute(f"ALTER TABLE {self.quote_table(table)} ADD {self.quote_column(name)} {spec}")

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
        """Rename and redefine a column; arguments as for :meth:`add_column`."""
        spec = self._column_spec(type_name, length, default, null_clause, remarks)
        self._execute(
            f"ALTER TABLE {self.quote_table(table)} CHANGE"
            f" {self.quote_column(column)} {self.quote_column(new_name)} {spec}"
        )

    def delete_column(self, table: str, column: str) -> None:
        self._execute(f"ALTER TABLE {self.quote_table(table)} DROP {self.quote_column(column)}")

    # ------------------------------------------------------------------
    # Keys, indexes and constraints
    # ------------------------------------------------------------------

    def add_index(self, table: str, index_name: str, column: str) -> None:
        self._execute(
            f"ALTER TABLE {self.quote_table(table)} ADD INDEX"
            f" {self.quote_column(index_name)} ({self.quote_column(column)})"
        )

    def add_unique_index(self, table: str, index_name: str, column: str) -> None:
        self._execute(
            f"ALTER TABLE {self.quote_table(table)} ADD UNIQUE"
            f" {self.quote_column(index_name)} ({self.quote_column(column)})"
        )

    def drop_index(self, table: str, index_name: str) -> None:
        self._execute(
            f"ALTER TABLE {self.quote_table(table)} DROP INDEX {self.quote_column(index_name)}"
        )

    def add_primary_key(self, table: str, column: str) -> None:
        """Extend the primary key of ``table`` with ``column``."""
        columns = [self.quote_column(c) for c in self.get_primary_keys(table).columns]
        columns.append(self.quote_column(column))
        self._execute(
            f"ALTER TABLE {self.quote_table(table)} DROP PRIMARY KEY,"
            f" ADD PRIMARY KEY({', '.join(columns)})"
        )

    def drop_primary_key(self, table: str, column: str) -> None:
        """Remove ``column`` from the primary key of ``table``."""
        remaining = [
            self.quote_column(c) for c in self.get_primary_keys(table).columns if c != column
        ]
        sql = f"ALTER TABLE {self.quote_table(table)} DROP PRIMARY KEY"
        if remaining:
            sql += f", ADD PRIMARY KEY({', '.join(remaining)})"
        self._execute(sql)

    def add_foreign_key(
        self,
        table: str,
        constraint: str,
        column: str,
        foreign_table: str,
        foreign_column: str,
        match_type: Optional[str] = None,
        on_delete: str = "NO ACTION",
        on_update: str = "NO ACTION",
        deferrable: bool = False,
        initially: str = "IMMEDIATE",
    ) -> None:
        """Add a single-column foreign key.

        Args:
            table: Referencing table
            constraint: Constraint name
            column: Referencing column
            foreign_table: Referenced table
            foreign_column: Referenced column
            match_type: FULL, PARTIAL or None to omit the clause
            on_delete: Referential action on delete
            on_update: Referential action on update
            deferrable: Whether the constraint is deferrable
            initially: IMMEDIATE or DEFERRED

        Raises:
            UnsupportedOperationError: If the engine has no foreign keys
        """
        if not self.supports_foreign_keys():
            raise unsupported(self.engine, "add_foreign_key")

        sql = (
            f"ALTER TABLE {self.quote_table(table)} ADD CONSTRAINT {self.quote_column(constraint)}"
            f" FOREIGN KEY({self.quote_column(column)})"
            f" REFERENCES {self.quote_table(foreign_table)} ({self.quote_column(foreign_column)})"
        )
        if match_type:
            sql += f" MATCH {match_type}"
        sql += f" ON DELETE {on_delete} ON UPDATE {on_update}"
        sql += " DEFERRABLE" if deferrable else " NOT DEFERRABLE"
        sql += f" INITIALLY {initially}"
        self._execute(sql)

    def add_check_constraint(self, table: str, constraint: str, check_clause: str) -> None:
        """Add a CHECK constraint.

        Raises:
            UnsupportedOperationError: If the engine has no check constraints
        """
        if not self.supports_check_constraints():
            raise unsupported(self.engine, "add_check_constraint")
        self._execute(
            f"ALTER TABLE {self.quote_table(table)} ADD CONSTRAINT"
            f" {self.quote_column(constraint)} CHECK({check_clause})"
        )

    def drop_constraint(self, table: str, constraint: str, behaviour: str = "") -> None:
        """Drop a named constraint; ``behaviour`` is CASCADE, RESTRICT or empty."""
        sql = f"ALTER TABLE {self.quote_table(table)} DROP CONSTRAINT {self.quote_column(constraint)}"
        if behaviour:
            sql += f" {behaviour}"
        self._execute(sql)

    # ------------------------------------------------------------------
    # Privileges
    # ------------------------------------------------------------------

    def _privilege_list(self, table: str, privileges: Sequence[str]) -> str:
        if not privileges:
            raise ValidationError(
                "No privileges specified",
                code=ErrorCodes.CONFIG_VALIDATION_FAILED,
                context={"table": table, "engine": self.engine},
            )
        return ",".join(privileges)

    def grant_privileges(self, table: str, user: str, privileges: Sequence[str]) -> None:
        """Grant ``privileges`` on ``table`` to ``user``.

        Raises:
            ValidationError: If ``privileges`` is empty
        """
        granted = self._privilege_list(table, privileges)
        self._execute(f"GRANT {granted} ON {self.quote_table(table)} TO {user}")

    def revoke_privileges(self, table: str, user: str, privileges: Sequence[str]) -> None:
        """Revoke ``privileges`` on ``table`` from ``user``.

        Raises:
            ValidationError: If ``privileges`` is empty
        """
        revoked = self._privilege_list(table, privileges)
        self._execute(f"REVOKE {revoked} ON {self.quote_table(table)} FROM {user}")

    # ------------------------------------------------------------------
    # Rows
    # ------------------------------------------------------------------

    def _key_condition(
        self,
        keys: Sequence[str],
        values: Sequence[Optional[Any]],
        types: Sequence[Optional[str]],
        params: List[Any],
    ) -> str:
        conditions = []
        for key, value, type_name in zip(keys, values, types):
            if value is None:
                conditions.append(self._is_null(key))
            else:
                params.append(self._bind(value, type_name))
                conditions.append(f"{self.quote_column(key)}={self._param(len(params), type_name)}")
        return " WHERE " + " AND ".join(conditions) if conditions else ""

    @staticmethod
    def _functions_for(
        columns: Sequence[str], functions: Optional[Sequence[Optional[str]]]
    ) -> Sequence[Optional[str]]:
        return functions if functions is not None else [None] * len(columns)

    def insert_row(
        self,
        table: str,
        columns: Sequence[str],
        values: Sequence[Optional[Any]],
        functions: Optional[Sequence[Optional[str]]] = None,
    ) -> int:
        """Insert one row.

        Args:
            table: Table name
            columns: Column names
            values: Values bound for columns without a function
            functions: Per-column SQL expressions used instead of the value

        Returns:
            Affected row count
        """
        functions = self._functions_for(columns, functions)
        types = self._column_types(table, columns)
        params: List[Any] = []
        placeholders = []
        for value, function, type_name in zip(values, functions, types):
            if function:
                placeholders.append(function)
            else:
                params.append(self._bind(value, type_name))
                placeholders.append(self._param(len(params), type_name))

        column_list = ", ".join(self.quote_column(c) for c in columns)
        return self._execute(
            f"INSERT INTO {self.quote_table(table)} ({column_list}) VALUES ({', '.join(placeholders)})",
            params,
        )

    def edit_row(
        self,
        table: str,
        columns: Sequence[str],
        values: Sequence[Optional[Any]],
        primary_keys: Sequence[str],
        primary_values: Sequence[Optional[Any]],
        functions: Optional[Sequence[Optional[str]]] = None,
    ) -> int:
        """Update the row identified by its primary key values.

        Returns:
            Affected row count
        """
        functions = self._functions_for(columns, functions)
        types = self._column_types(table, list(columns) + list(primary_keys))
        params: List[Any] = []
        assignments = []
        for column, value, function, type_name in zip(columns, values, functions, types):
            if function:
                assignments.append(f"{self.quote_column(column)}={function}")
            else:
                params.append(self._bind(value, type_name))
                assignments.append(f"{self.quote_column(column)}={self._param(len(params), type_name)}")

        where = self._key_condition(primary_keys, primary_values, types[len(columns):], params)
        return self._execute(
            f"UPDATE {self.quote_table(table)} SET {', '.join(assignments)}{where}",
            params,
        )

    def delete_row(
        self,
        table: str,
        primary_keys: Sequence[str],
        primary_values: Sequence[Optional[Any]],
    ) -> int:
        """Delete the row identified by its primary key values."""
        params: List[Any] = []
        where = self._key_condition(
            primary_keys, primary_values, self._column_types(table, primary_keys), params
        )
        return self._execute(f"DELETE FROM {self.quote_table(table)}{where}", params)

    def get_row(
        self,
        table: str,
        primary_keys: Sequence[str],
        primary_values: Sequence[Optional[Any]],
    ) -> Optional[Dict[str, Any]]:
        """Fetch the row identified by its primary key values.

        Returns:
            Column name to value mapping, None if no row matches
        """
        params: List[Any] = []
        where = self._key_condition(
            primary_keys, primary_values, self._column_types(table, primary_keys), params
        )
        rows = self._fetch(f"SELECT * FROM {self.quote_table(table)}{where}", params).as_dicts()
        return rows[0] if rows else None

    # ------------------------------------------------------------------
    # Dumps
    # ------------------------------------------------------------------

    def dump_table_structure(self, table: str, out: TextIO) -> None:
        """Write DDL recreating ``table``, its primary key and its indexes."""
        columns = self.get_columns(table)
        primary_keys = self.get_primary_keys(table)
        indexes = self.get_indexes(table)

        specs = []
        for column in columns:
            spec = f"{self.quote_column(column.name)} {self._with_length(column.type, column.length)}"
            if column.nullable is Tristate.FALSE:
                spec += " NOT NULL"
            elif column.nullable is Tristate.TRUE:
                spec += " NULL"
            rendered = self._render_default(column.default)
            if rendered is not None:
                spec += f" DEFAULT {rendered}"
            if column.remark.lower() == "auto_increment":
                spec += " AUTO_INCREMENT"
            specs.append(spec)
        if len(primary_keys):
            keys = ", ".join(self.quote_column(c) for c in primary_keys.columns)
            specs.append(f"PRIMARY KEY ({keys})")

        out.write(f"CREATE TABLE {self.quote_table(table)} (\n  ")
        out.write(",\n  ".join(specs))
        out.write("\n);\n")

        skipped = set(primary_keys.constraints) | {"PRIMARY"}
        for name in indexes.index_names():
            if name in skipped:
                continue
            unique = all(u is Tristate.TRUE for n, u in zip(indexes.names, indexes.unique) if n == name)
            index_columns = ", ".join(self.quote_column(c) for c in indexes.columns_of(name))
            out.write(
                f"CREATE {'UNIQUE ' if unique else ''}INDEX {self.quote_column(name)}"
                f" ON {self.quote_table(table)} ({index_columns});\n"
            )

    def dump_table_contents(self, table: str, out: TextIO) -> None:
        """Write one INSERT statement per row of ``table``."""
        quoted = self.quote_table(table)
        result = self._fetch(f"SELECT * FROM {quoted}")
        for row in result.rows:
            out.write(f"INSERT INTO {quoted} VALUES (")
            out.write(",".join(self._dump_value(value) for value in row))
            out.write(");\n")

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.identity.display_name!r})"
