"""Schema snapshot value objects.

Each snapshot holds equal-length parallel tuples, one entry per catalog row,
and is immutable once built. Snapshots never reference the connection that
produced them and are rebuilt on every introspection call.
"""

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Dict, Iterator, List, NamedTuple, Optional, Sequence, Tuple


class Tristate(Enum):
    """Boolean with explicit unknown and not-applicable states."""

    FALSE = "false"
    TRUE = "true"
    UNKNOWN = "unknown"
    NA = "n/a"

    @property
    def label(self) -> str:
        return self.value

    @classmethod
    def of(cls, value: Optional[bool]) -> "Tristate":
        """Map a driver boolean, None meaning the driver could not tell."""
        if value is None:
            return cls.UNKNOWN
        return cls.TRUE if value else cls.FALSE

    def __bool__(self) -> bool:
        return self is Tristate.TRUE


class _Snapshot:
    """Shared behaviour of the parallel-tuple snapshots."""

    def __post_init__(self) -> None:
        lengths = set()
        for f in fields(self):
            value = tuple(getattr(self, f.name))
            object.__setattr__(self, f.name, value)
            lengths.add(len(value))
        if len(lengths) > 1:
            raise ValueError(
                f"{type(self).__name__} columns differ in length: "
                + ", ".join(f"{f.name}={len(getattr(self, f.name))}" for f in fields(self))
            )

    def __len__(self) -> int:
        first = fields(self)[0]
        return len(getattr(self, first.name))

    def _row(self, index: int) -> Tuple[Any, ...]:
        return tuple(getattr(self, f.name)[index] for f in fields(self))


class Column(NamedTuple):
    name: str
    type: str
    length: Optional[str]
    nullable: Tristate
    default: Optional[str]
    remark: str


@dataclass(frozen=True)
class Columns(_Snapshot):
    """Columns of one table.

    Attributes:
        names: Column names
        types: Declared types
        lengths: Length or precision, for MySQL ENUM/SET the quoted value list
        nullable: Whether NULL is allowed
        defaults: Tagged defaults, None when the column has no default
        remarks: Column comments or extra attributes such as auto_increment
    """

    names: Sequence[str] = ()
    types: Sequence[str] = ()
    lengths: Sequence[Optional[str]] = ()
    nullable: Sequence[Tristate] = ()
    defaults: Sequence[Optional[str]] = ()
    remarks: Sequence[str] = ()

    def __iter__(self) -> Iterator[Column]:
        for i in range(len(self)):
            yield Column(*self._row(i))

    def index_of(self, name: str) -> int:
        """Position of a column, -1 when absent."""
        try:
            return list(self.names).index(name)
        except ValueError:
            return -1

    def get(self, name: str) -> Optional[Column]:
        position = self.index_of(name)
        return Column(*self._row(position)) if position >= 0 else None

    def get_default(self, name: str) -> Optional[str]:
        column = self.get(name)
        return column.default if column else None

    def get_remark(self, name: str) -> Optional[str]:
        column = self.get(name)
        return column.remark if column else None

    def get_type(self, name: str) -> Optional[str]:
        column = self.get(name)
        return column.type if column else None


class Index(NamedTuple):
    name: str
    unique: Tristate
    column: str


@dataclass(frozen=True)
class Indexes(_Snapshot):
    """Index membership, one row per (index, column) pair."""

    names: Sequence[str] = ()
    unique: Sequence[Tristate] = ()
    columns: Sequence[str] = ()

    def __iter__(self) -> Iterator[Index]:
        for i in range(len(self)):
            yield Index(*self._row(i))

    def columns_of(self, name: str) -> List[str]:
        """Columns of one index in catalog order."""
        return [c for n, c in zip(self.names, self.columns) if n == name]

    def index_names(self) -> List[str]:
        """Distinct index names in first-seen order."""
        return list(dict.fromkeys(self.names))

    def is_multi_column(self, name: str) -> bool:
        return len(self.columns_of(name)) > 1


class PrimaryKey(NamedTuple):
    column: str
    constraint: str


@dataclass(frozen=True)
class PrimaryKeys(_Snapshot):
    """Primary key columns and the constraint each belongs to."""

    columns: Sequence[str] = ()
    constraints: Sequence[str] = ()

    def __iter__(self) -> Iterator[PrimaryKey]:
        for i in range(len(self)):
            yield PrimaryKey(*self._row(i))

    def contains(self, column: str) -> bool:
        return column in self.columns

    def constraint_for(self, column: str) -> Optional[str]:
        for c, name in zip(self.columns, self.constraints):
            if c == column:
                return name
        return None


class ForeignKey(NamedTuple):
    constraint: str
    foreign_column: str
    foreign_table: str
    primary_column: str
    primary_table: str
    insert_rule: str
    update_rule: str
    delete_rule: str
    deferrable: Tristate
    initially_deferred: Tristate


@dataclass(frozen=True)
class ForeignKeys(_Snapshot):
    """Foreign keys; foreign is the referencing side, primary the referenced side."""

    constraints: Sequence[str] = ()
    foreign_columns: Sequence[str] = ()
    foreign_tables: Sequence[str] = ()
    primary_columns: Sequence[str] = ()
    primary_tables: Sequence[str] = ()
    insert_rules: Sequence[str] = ()
    update_rules: Sequence[str] = ()
    delete_rules: Sequence[str] = ()
    deferrable: Sequence[Tristate] = ()
    initially_deferred: Sequence[Tristate] = ()

    def __iter__(self) -> Iterator[ForeignKey]:
        for i in range(len(self)):
            yield ForeignKey(*self._row(i))

    def for_column(self, column: str) -> Optional[ForeignKey]:
        """The key whose referencing column is ``column``."""
        for key in self:
            if key.foreign_column == column:
                return key
        return None

    @classmethod
    def from_rows(cls, rows: Sequence[ForeignKey]) -> "ForeignKeys":
        if not rows:
            return cls()
        return cls(*[list(values) for values in zip(*rows)])


class CheckConstraint(NamedTuple):
    name: str
    check_clause: str


@dataclass(frozen=True)
class CheckConstraints(_Snapshot):
    names: Sequence[str] = ()
    check_clauses: Sequence[str] = ()

    def __iter__(self) -> Iterator[CheckConstraint]:
        for i in range(len(self)):
            yield CheckConstraint(*self._row(i))


class TablePrivilege(NamedTuple):
    grantor: str
    grantee: str
    privilege: str
    grantable: Tristate


@dataclass(frozen=True)
class TablePrivileges(_Snapshot):
    grantors: Sequence[str] = ()
    grantees: Sequence[str] = ()
    privileges: Sequence[str] = ()
    grantable: Sequence[Tristate] = ()

    def __iter__(self) -> Iterator[TablePrivilege]:
        for i in range(len(self)):
            yield TablePrivilege(*self._row(i))

    @classmethod
    def from_rows(cls, rows: Sequence[TablePrivilege]) -> "TablePrivileges":
        if not rows:
            return cls()
        return cls(*[list(values) for values in zip(*rows)])


@dataclass(frozen=True)
class ColumnDefinition:
    """One column of a CREATE TABLE request.

    ``default`` is a tagged default; ``null_clause`` is emitted verbatim
    (``NULL``, ``NOT NULL`` or empty).
    """

    name: str
    type: str
    length: Optional[str] = None
    default: Optional[str] = None
    null_clause: str = ""
    remarks: str = ""
    primary_key: bool = False
    index: bool = False
    unique: bool = False


@dataclass
class QueryResult:
    """Rows returned by a driver, normalized to tuples."""

    columns: List[str] = field(default_factory=list)
    rows: List[Tuple[Any, ...]] = field(default_factory=list)
    row_count: int = 0

    def first(self) -> Optional[Tuple[Any, ...]]:
        return self.rows[0] if self.rows else None

    def scalar(self) -> Any:
        row = self.first()
        return row[0] if row else None

    def column(self, index: int = 0) -> List[Any]:
        return [row[index] for row in self.rows]

    def as_dicts(self) -> List[Dict[str, Any]]:
        return [dict(zip(self.columns, row)) for row in self.rows]


@dataclass(frozen=True)
class TableSchema:
    """One table of the database schema overview."""

    name: str
    columns: Columns
    imported_keys: ForeignKeys
