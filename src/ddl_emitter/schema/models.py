"""Entity model consumed by the schema core.

This module contains the typed entities a collaborator builds before DDL
generation starts:
- Containers: Namespace
- Root-level entities: Table, SqlEnum, UnionEnum
- Column model: Column, PrimitiveColumnType, EnumColumnType
- Constraints: column-level and table-level constraint variants
- Synthesized statements: AlterTableForeignKey, AlterTableAddColumns

Every entity and namespace carries an integer ``handle`` assigned at
construction.  Handles are the identity used by the naming resolver and the
schema root; names are never used for identity.
"""

import copy
import itertools
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Union

_handle_counter = itertools.count(1)


def _next_handle() -> int:
    return next(_handle_counter)


# ============================================================================
# Shared value types
# ============================================================================


class ConstraintType(str, Enum):
    """Tag of every constraint variant."""

    PRIMARY_KEY = "PRIMARY KEY"
    UNIQUE = "UNIQUE"
    CHECK = "CHECK"
    INLINED_FOREIGN_KEY = "INLINED FOREIGN KEY"
    DEFAULT = "DEFAULT"
    NOT_NULL = "NOT NULL"
    COMPOSITE_PRIMARY_KEY = "COMPOSITE PRIMARY KEY"
    COMPOSITE_FOREIGN_KEY = "COMPOSITE FOREIGN KEY"


@dataclass(frozen=True)
class ExternalDocs:
    """Link to documentation outside the schema.

    Example:
        docs = ExternalDocs(url="https://example.com/books", description="Books")
    """

    url: str
    description: str | None = None


# ============================================================================
# Namespaces and entities
# ============================================================================


@dataclass(eq=False)
class Namespace:
    """A schema container.  ``None`` stands for the global namespace.

    Example:
        >>> three = Namespace("three", Namespace("two", Namespace("one")))
        >>> three.chain
        ['one', 'two', 'three']
    """

    name: str
    parent: "Namespace | None" = None
    handle: int = field(default_factory=_next_handle, init=False, repr=False)

    @property
    def chain(self) -> list[str]:
        """Names from the outermost namespace down to this one."""
        names: list[str] = []
        current: Namespace | None = self
        while current is not None and current.name:
            names.append(current.name)
            current = current.parent
        return list(reversed(names))

    @property
    def full_name(self) -> str:
        return ".".join(self.chain)


@dataclass(eq=False, kw_only=True)
class Entity:
    """A nameable root-level schema object.

    Attributes:
        name: Structural name taken from the source model.  Empty for
            anonymous models.
        entity_name: Explicit name given by annotation.  Takes precedence
            over every derived name.
        namespace: Owning namespace, ``None`` for the global namespace.
        docs: Documentation emitted as a comment before the statement.
        external_docs: Link emitted as a comment before ``docs``.
    """

    name: str
    entity_name: str | None = None
    namespace: Namespace | None = None
    docs: str | None = None
    external_docs: ExternalDocs | None = None
    handle: int = field(default_factory=_next_handle, init=False, repr=False)

    @property
    def naming_namespace(self) -> Namespace | None:
        """Namespace that contributes the schema prefix of the identifier."""
        if self.namespace is not None and not self.namespace.name:
            return None
        return self.namespace


@dataclass(eq=False, kw_only=True)
class EnumMember:
    """One value of an enum type."""

    value: str
    docs: str | None = None
    external_docs: ExternalDocs | None = None


@dataclass(eq=False, kw_only=True)
class SqlEnum(Entity):
    """An enum declared in the source schema."""

    members: list[EnumMember] = field(default_factory=list)


@dataclass(eq=False, kw_only=True)
class UnionEnum(Entity):
    """An enum synthesized from an inline string-literal union.

    A union declared on a column has an empty ``name``; its identifier is
    then derived from ``property_name`` and the owning table.
    """

    members: list[EnumMember] = field(default_factory=list)
    owner: "Table | None" = None
    property_name: str | None = None

    @property
    def naming_namespace(self) -> Namespace | None:
        if self.owner is not None and self.property_name is not None:
            return self.owner.naming_namespace
        return super().naming_namespace


# ============================================================================
# Column types
# ============================================================================


@dataclass(frozen=True)
class PrimitiveColumnType:
    """A built-in SQL data type such as ``TEXT`` or ``VARCHAR(50)``."""

    data_type: str
    is_array: bool = False
    is_primitive: ClassVar[bool] = True


@dataclass(frozen=True, eq=False)
class EnumColumnType:
    """A column typed by an enum entity of the same schema."""

    entity: SqlEnum | UnionEnum
    is_array: bool = False
    is_primitive: ClassVar[bool] = False


ColumnType = Union[PrimitiveColumnType, EnumColumnType]


# ============================================================================
# Constraints
# ============================================================================


@dataclass(frozen=True)
class NotNullConstraint:
    constraint_type: ClassVar[ConstraintType] = ConstraintType.NOT_NULL


@dataclass(frozen=True)
class PrimaryKeyConstraint:
    constraint_type: ClassVar[ConstraintType] = ConstraintType.PRIMARY_KEY


@dataclass(frozen=True)
class DefaultConstraint:
    """``DEFAULT <value>``; *value* is already a SQL literal."""

    value: str
    constraint_type: ClassVar[ConstraintType] = ConstraintType.DEFAULT

    def __post_init__(self) -> None:
        if not self.value:
            raise ValueError("DefaultConstraint requires a value")


@dataclass(frozen=True)
class CheckConstraint:
    """``CHECK (<expression>)`` on a column or a table."""

    expression: str
    constraint_type: ClassVar[ConstraintType] = ConstraintType.CHECK

    def __post_init__(self) -> None:
        if not self.expression:
            raise ValueError("CheckConstraint requires an expression")


@dataclass(frozen=True)
class UniqueConstraint:
    """``UNIQUE``, optionally named (``CONSTRAINT <name> UNIQUE``)."""

    name: str | None = None
    constraint_type: ClassVar[ConstraintType] = ConstraintType.UNIQUE


@dataclass(frozen=True, eq=False)
class InlinedForeignKeyConstraint:
    """Single-column reference to the primary key of another table."""

    referenced_table: "Table"
    constraint_type: ClassVar[ConstraintType] = ConstraintType.INLINED_FOREIGN_KEY


@dataclass(frozen=True)
class CompositePrimaryKeyConstraint:
    """Primary key over several columns of the same table."""

    columns: tuple[str, ...]
    constraint_type: ClassVar[ConstraintType] = ConstraintType.COMPOSITE_PRIMARY_KEY


@dataclass(frozen=True, eq=False)
class CompositeForeignKeyConstraint:
    """Multi-column reference to the composite key of another table."""

    columns: tuple[str, ...]
    referenced_table: "Table"
    constraint_type: ClassVar[ConstraintType] = ConstraintType.COMPOSITE_FOREIGN_KEY


ColumnConstraint = Union[
    NotNullConstraint,
    PrimaryKeyConstraint,
    DefaultConstraint,
    CheckConstraint,
    UniqueConstraint,
    InlinedForeignKeyConstraint,
]

TableConstraint = Union[
    CheckConstraint,
    CompositePrimaryKeyConstraint,
    CompositeForeignKeyConstraint,
]


# ============================================================================
# Columns and tables
# ============================================================================


@dataclass(eq=False, kw_only=True)
class Column:
    """A column of exactly one table."""

    name: str
    column_type: ColumnType
    constraints: list[ColumnConstraint] = field(default_factory=list)
    docs: str | None = None
    external_docs: ExternalDocs | None = None

    @property
    def foreign_keys(self) -> list[InlinedForeignKeyConstraint]:
        return [
            c for c in self.constraints
            if c.constraint_type is ConstraintType.INLINED_FOREIGN_KEY
        ]

    def has_foreign_key(self) -> bool:
        return bool(self.foreign_keys)

    def without_foreign_keys(self) -> "Column":
        """Copy of this column with its inlined foreign keys removed."""
        stripped = copy.copy(self)
        stripped.constraints = [
            c for c in self.constraints
            if c.constraint_type is not ConstraintType.INLINED_FOREIGN_KEY
        ]
        return stripped


@dataclass(eq=False, kw_only=True)
class Table(Entity):
    """A table with ordered columns and table-level constraints.

    ``primary_key`` lists column names.  A single-column key is rendered as
    a ``PRIMARY KEY`` marker on that column, a multi-column key as a
    table-level constraint; neither is stored in ``constraints``.
    """

    columns: list[Column] = field(default_factory=list)
    constraints: list[TableConstraint] = field(default_factory=list)
    primary_key: list[str] = field(default_factory=list)

    def column(self, name: str) -> Column | None:
        for column in self.columns:
            if column.name == name:
                return column
        return None

    def columns_with_foreign_keys(self) -> list[Column]:
        return [column for column in self.columns if column.has_foreign_key()]

    def composite_foreign_keys(self) -> list[CompositeForeignKeyConstraint]:
        return [
            c for c in self.constraints
            if c.constraint_type is ConstraintType.COMPOSITE_FOREIGN_KEY
        ]

    def referenced_tables(self) -> list["Table"]:
        """Referenced tables, inlined references first, in declaration order."""
        referenced: list[Table] = []
        for column in self.columns_with_foreign_keys():
            referenced.extend(fk.referenced_table for fk in column.foreign_keys)
        referenced.extend(fk.referenced_table for fk in self.composite_foreign_keys())
        return referenced

    def has_foreign_keys(self) -> bool:
        return bool(self.columns_with_foreign_keys() or self.composite_foreign_keys())

    def has_body(self) -> bool:
        """True if a CREATE TABLE for this table lists anything between the parentheses."""
        return bool(self.columns or self.constraints or len(self.primary_key) > 1)

    def without_foreign_keys(self) -> "Table":
        """Copy of this table with every foreign key removed.

        The copy keeps the handle, so it resolves to the same identifier.
        """
        stripped = copy.copy(self)
        stripped.columns = [column.without_foreign_keys() for column in self.columns]
        stripped.constraints = [
            c for c in self.constraints
            if c.constraint_type is not ConstraintType.COMPOSITE_FOREIGN_KEY
        ]
        return stripped


# ============================================================================
# Synthesized statements
# ============================================================================


@dataclass(frozen=True)
class AlterTableForeignKey:
    """A foreign key deferred until every table exists.

    Names are resolved identifiers captured when the statement was created.
    """

    table_name: str
    columns: tuple[str, ...]
    referenced_table_name: str


@dataclass(frozen=True, eq=False)
class AlterTableAddColumns:
    """Save-mode statement carrying every column and table constraint of *table*."""

    table: Table


RootLevelElement = Union[Namespace, Table, SqlEnum, UnionEnum]
