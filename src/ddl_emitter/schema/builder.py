"""Build schema entities from a service document.

Maps every table, column and enum of a ``ServiceDocument`` to the entity
model consumed by ``SchemaRoot``: scalar types become SQL types, references
become inlined or composite foreign keys, string-literal unions become
enums.  Recoverable mistakes are reported to a ``DiagnosticCollector`` and
the offending column (or table) is skipped.

Usage:
    from ddl_emitter.diagnostics import DiagnosticCollector
    from ddl_emitter.schema.builder import SchemaBuilder

    diagnostics = DiagnosticCollector()
    entities = SchemaBuilder(service, diagnostics).build()
"""

import logging
import re
from dataclasses import dataclass, field

from ddl_emitter.diagnostics import DiagnosticCollector
from ddl_emitter.schema.document import (
    ColumnDocument,
    EnumDocument,
    ExternalDocsDocument,
    NamespaceDocument,
    ServiceDocument,
    TableDocument,
)
from ddl_emitter.schema.keywords import is_reserved_keyword
from ddl_emitter.schema.models import (
    CheckConstraint,
    Column,
    ColumnConstraint,
    ColumnType,
    CompositeForeignKeyConstraint,
    DefaultConstraint,
    EnumColumnType,
    EnumMember,
    ExternalDocs,
    InlinedForeignKeyConstraint,
    Namespace,
    NotNullConstraint,
    PrimitiveColumnType,
    SqlEnum,
    Table,
    UnionEnum,
    UniqueConstraint,
)

logger = logging.getLogger(__name__)

# scalar -> (SQL type, inclusive value range enforced by a CHECK)
SCALAR_TYPES: dict[str, tuple[str, tuple[str, str] | None]] = {
    "bytes": ("BYTEA", None),
    "int8": ("SMALLINT", ("-128", "127")),
    "int16": ("SMALLINT", None),
    "int32": ("INTEGER", None),
    "int64": ("BIGINT", None),
    "safeint": ("NUMERIC", None),
    "uint8": ("SMALLINT", ("0", "255")),
    "uint16": ("INTEGER", ("0", "65535")),
    "uint32": ("BIGINT", ("0", "4294967295")),
    "uint64": ("NUMERIC", ("0", "18446744073709551615")),
    "float32": ("REAL", None),
    "float64": ("DOUBLE PRECISION", None),
    "string": ("TEXT", None),
    "boolean": ("BOOLEAN", None),
    "plainDate": ("DATE", None),
    "utcDateTime": ("TIMESTAMP WITH TIME ZONE", None),
    "offsetDateTime": ("TIMESTAMP WITH TIME ZONE", None),
    "plainTime": ("TIME WITHOUT TIME ZONE", None),
    "duration": ("INTERVAL", None),
    "url": ("TEXT", None),
    "numeric": ("NUMERIC", None),
    "integer": ("NUMERIC", None),
    "float": ("DOUBLE PRECISION", None),
}

# Upper-case SQL types such as UUID, VARCHAR(50) or NUMERIC(10, 2) pass through
SQL_TYPE_PATTERN = re.compile(r"[A-Z][A-Z0-9_ ]*(\(\d+(\s*,\s*\d+)?\))?")

# Longest length PostgreSQL accepts for VARCHAR(n)
MAX_VARCHAR_LENGTH = 10485760


def resolve_scalar(type_name: str, column_name: str) -> tuple[str, list[CheckConstraint]] | None:
    """SQL type and range checks for a scalar name, or None if unknown.

    Example:
        >>> data_type, checks = resolve_scalar("uint8", "age")
        >>> data_type, checks[0].expression
        ('SMALLINT', 'age >= 0 AND age <= 255')
    """
    if type_name in SCALAR_TYPES:
        data_type, limits = SCALAR_TYPES[type_name]
        checks = []
        if limits is not None:
            low, high = limits
            checks.append(CheckConstraint(f"{column_name} >= {low} AND {column_name} <= {high}"))
        return data_type, checks
    if SQL_TYPE_PATTERN.fullmatch(type_name):
        return type_name, []
    return None


def _external_docs(docs: ExternalDocsDocument | None) -> ExternalDocs | None:
    if docs is None:
        return None
    return ExternalDocs(url=docs.url, description=docs.description)


@dataclass
class _TableEntry:
    document: TableDocument
    table: Table
    scope: list[str]
    union_enums: list[UnionEnum] = field(default_factory=list)

    @property
    def label(self) -> str:
        return ".".join([*self.scope, self.document.name or "Anonymous_Model"])


class SchemaBuilder:
    """Turns one ``ServiceDocument`` into root-level entities.

    Names in ``references`` and ``enum`` are resolved from the innermost
    enclosing namespace outwards, so ``Author`` inside ``library.books``
    finds ``library.books.Author`` before ``library.Author`` and ``Author``.
    A fully qualified name (``library.Author``) always works.
    """

    def __init__(
        self,
        service: ServiceDocument,
        diagnostics: DiagnosticCollector,
        emit_non_entity_types: bool = False,
    ) -> None:
        self.service = service
        self.diagnostics = diagnostics
        self.emit_non_entity_types = emit_non_entity_types
        self._tables: list[_TableEntry] = []
        self._tables_by_name: dict[str, _TableEntry] = {}
        self._enums: list[SqlEnum] = []
        self._enums_by_name: dict[str, SqlEnum] = {}
        self._union_enums: dict[tuple[int, str], UnionEnum] = {}

    def build(self) -> list[Table | SqlEnum | UnionEnum]:
        """Entities in registration order.

        Enums come first, then every emitted table preceded by the enums
        synthesized from its unions.  Tables declared with ``entity = false``
        are emitted only if an emitted table references them (or if
        ``emit_non_entity_types`` is set).
        """
        self._collect(self.service.tables, self.service.enums, self.service.namespaces, None, [])
        for entry in self._tables:
            self._build_table(entry)

        included = self._included_tables()
        entities: list[Table | SqlEnum | UnionEnum] = list(self._enums)
        for entry in self._tables:
            if entry.table.handle in included:
                entities.extend(entry.union_enums)
                entities.append(entry.table)

        logger.debug(
            f"Built service {self.service.name!r}: {len(included)} table(s), "
            f"{len(self._enums)} enum(s)"
        )
        return entities

    # ------------------------------------------------------------------
    # Collection
    # ------------------------------------------------------------------

    def _collect(
        self,
        tables: list[TableDocument],
        enums: list[EnumDocument],
        namespaces: list[NamespaceDocument],
        namespace: Namespace | None,
        scope: list[str],
    ) -> None:
        for enum_document in enums:
            enum = self._build_enum(enum_document, namespace, scope)
            if enum is not None:
                self._enums.append(enum)
                self._enums_by_name[".".join([*scope, enum_document.name])] = enum

        for table_document in tables:
            table = Table(
                name=table_document.name,
                entity_name=table_document.entity_name,
                namespace=namespace,
                docs=table_document.doc,
                external_docs=_external_docs(table_document.external_docs),
            )
            entry = _TableEntry(document=table_document, table=table, scope=scope)
            self._tables.append(entry)
            if table_document.name:
                self._tables_by_name[".".join([*scope, table_document.name])] = entry

        for namespace_document in namespaces:
            child = Namespace(namespace_document.name, parent=namespace)
            self._collect(
                namespace_document.tables,
                namespace_document.enums,
                namespace_document.namespaces,
                child,
                [*scope, namespace_document.name],
            )

    def _build_enum(
        self, document: EnumDocument, namespace: Namespace | None, scope: list[str]
    ) -> SqlEnum | None:
        members = []
        for member in document.members:
            if not isinstance(member.value, str):
                self.diagnostics.report(
                    "unimplemented-enum-type",
                    type(member.value).__name__,
                    target=".".join([*scope, document.name]),
                )
                return None
            members.append(
                EnumMember(
                    value=member.value,
                    docs=member.doc,
                    external_docs=_external_docs(member.external_docs),
                )
            )
        return SqlEnum(
            name=document.name,
            entity_name=document.entity_name,
            namespace=namespace,
            docs=document.doc,
            external_docs=_external_docs(document.external_docs),
            members=members,
        )

    def _lookup(self, registry: dict, name: str, scope: list[str]):
        for depth in range(len(scope), -1, -1):
            candidate = ".".join([*scope[:depth], name])
            if candidate in registry:
                return registry[candidate]
        return None

    # ------------------------------------------------------------------
    # Tables
    # ------------------------------------------------------------------

    def _build_table(self, entry: _TableEntry) -> None:
        table = entry.table
        for column_document in entry.document.columns:
            target = f"{entry.label}.{column_document.name}"
            if is_reserved_keyword(column_document.name):
                self.diagnostics.report("reserved-column-name", column_document.name, target=target)
                continue

            for column in self._build_columns(entry, column_document, target):
                if table.column(column.name) is not None:
                    self.diagnostics.report("duplicate-column", column.name, target=target)
                    continue
                table.columns.append(column)
                if column_document.key and not column_document.optional:
                    table.primary_key.append(column.name)

        for expression in entry.document.checks:
            table.constraints.append(CheckConstraint(expression))

        for foreign_key in entry.document.foreign_keys:
            self._add_explicit_foreign_key(entry, foreign_key.columns, foreign_key.references)

    def _add_explicit_foreign_key(self, entry: _TableEntry, columns: list[str], references: str) -> None:
        target_entry = self._lookup(self._tables_by_name, references, entry.scope)
        if target_entry is None:
            self.diagnostics.report("references-without-target", references, target=entry.label)
            return
        if not target_entry.document.key_columns():
            self.diagnostics.report("references-has-no-key", target_entry.label, target=entry.label)
            return

        missing = [name for name in columns if entry.table.column(name) is None]
        if missing:
            for name in missing:
                self.diagnostics.report("foreign-key-column-missing", name, target=entry.label)
            return

        if len(columns) == 1:
            entry.table.column(columns[0]).constraints.append(
                InlinedForeignKeyConstraint(target_entry.table)
            )
        else:
            entry.table.constraints.append(
                CompositeForeignKeyConstraint(tuple(columns), target_entry.table)
            )

    def _included_tables(self) -> set[int]:
        included: set[int] = set()
        pending = [
            entry.table for entry in self._tables
            if entry.document.entity or self.emit_non_entity_types
        ]
        while pending:
            table = pending.pop()
            if table.handle in included:
                continue
            included.add(table.handle)
            pending.extend(table.referenced_tables())
        return included

    # ------------------------------------------------------------------
    # Columns
    # ------------------------------------------------------------------

    def _build_columns(self, entry: _TableEntry, document: ColumnDocument, target: str) -> list[Column]:
        if document.references is not None:
            return self._reference_columns(entry, document, target)

        resolved = self._column_type(entry, document, target)
        if resolved is None:
            return []
        column_type, checks = resolved

        constraints: list[ColumnConstraint] = list(checks)
        if not document.optional and not document.key:
            constraints.append(NotNullConstraint())
        if document.unique:
            name = document.unique if isinstance(document.unique, str) else None
            constraints.append(UniqueConstraint(name))
        if document.default is not None:
            default = self._default_literal(document, column_type, target)
            if default is None:
                return []
            constraints.append(DefaultConstraint(default))
        if document.check:
            constraints.append(CheckConstraint(document.check))

        return [
            Column(
                name=document.name,
                column_type=column_type,
                constraints=constraints,
                docs=document.doc,
                external_docs=_external_docs(document.external_docs),
            )
        ]

    def _column_type(
        self,
        entry: _TableEntry,
        document: ColumnDocument,
        target: str,
        diagnostics: DiagnosticCollector | None = None,
    ) -> tuple[ColumnType, list[CheckConstraint]] | None:
        """Column type plus the checks implied by the type, or None.

        Problems go to *diagnostics*, or to the pass collector if omitted.
        """
        if diagnostics is None:
            diagnostics = self.diagnostics

        if document.union is not None:
            union = self._union_enum(entry, document, target, diagnostics)
            if union is None:
                return None
            return EnumColumnType(union, is_array=document.array), []

        if document.enum is not None:
            enum = self._lookup(self._enums_by_name, document.enum, entry.scope)
            if enum is None:
                diagnostics.report("datatype-not-resolvable", document.enum, target=target)
                return None
            return EnumColumnType(enum, is_array=document.array), []

        if document.type is None:
            diagnostics.report("datatype-not-resolvable", document.name, target=target)
            return None

        resolved = resolve_scalar(document.type, document.name)
        if resolved is None:
            diagnostics.report("unknown-scalar", document.type, target=target)
            return None
        data_type, checks = resolved

        if document.format is not None:
            if document.format.lower() == "uuid" and data_type == "TEXT":
                data_type = "UUID"
            else:
                diagnostics.report("unsupported-format", document.format, target=target)

        if document.max_length is not None:
            if data_type == "TEXT" and document.max_length < MAX_VARCHAR_LENGTH:
                data_type = f"VARCHAR({document.max_length})"
            else:
                checks.append(CheckConstraint(f"LENGTH({document.name}) <= {document.max_length}"))
        if document.min_length is not None:
            checks.append(CheckConstraint(f"LENGTH({document.name}) >= {document.min_length}"))
        if document.min_value is not None:
            checks.append(CheckConstraint(f"{document.name} >= {document.min_value}"))
        if document.max_value is not None:
            checks.append(CheckConstraint(f"{document.name} <= {document.max_value}"))

        if document.array and checks:
            diagnostics.report("array-constraints", document.name, target=target)
            checks = []

        return PrimitiveColumnType(data_type, is_array=document.array), checks

    def _union_enum(
        self,
        entry: _TableEntry,
        document: ColumnDocument,
        target: str,
        diagnostics: DiagnosticCollector,
    ) -> UnionEnum | None:
        key = (entry.table.handle, document.name)
        if key in self._union_enums:
            return self._union_enums[key]

        values = [value for value in document.union if value is not None]
        if not values or not all(isinstance(value, str) for value in values):
            diagnostics.report("union-unsupported", document.name, target=target)
            return None

        union = UnionEnum(
            name="",
            namespace=entry.table.namespace,
            members=[EnumMember(value=value) for value in values],
            owner=entry.table,
            property_name=document.name,
        )
        self._union_enums[key] = union
        entry.union_enums.append(union)
        return union

    def _default_literal(self, document: ColumnDocument, column_type: ColumnType, target: str) -> str | None:
        value = document.default
        if isinstance(value, bool):
            return "TRUE" if value else "FALSE"
        if isinstance(value, (int, float)):
            return str(value)
        if not column_type.is_primitive:
            allowed = [member.value for member in column_type.entity.members]
            if value not in allowed:
                self.diagnostics.report("invalid-default", value, target=target)
                return None
        return "'" + value.replace("'", "''") + "'"

    # ------------------------------------------------------------------
    # References
    # ------------------------------------------------------------------

    def _reference_columns(self, entry: _TableEntry, document: ColumnDocument, target: str) -> list[Column]:
        """Foreign key column(s) for a ``references`` column.

        A single-column key gives one column with an inlined foreign key.
        A composite key gives one column per key column, named
        ``<column>_<key column>``, tied together by a composite foreign key.
        """
        automatic = document.type is None
        target_entry = self._lookup(self._tables_by_name, document.references, entry.scope)
        if target_entry is None:
            self.diagnostics.report("references-without-target", document.references, target=target)
            return []
        if document.array:
            self.diagnostics.report("reference-array", document.name, target=target)
            return []

        keys = target_entry.document.key_columns()
        if not keys:
            code = "reference-without-key" if automatic else "references-has-no-key"
            self.diagnostics.report(code, target_entry.label, target=target)
            return []

        key_types = self._key_types(target_entry)
        if key_types is None:
            self.diagnostics.report("datatype-not-resolvable", target_entry.label, target=target)
            return []

        if len(key_types) == 1:
            key_type = key_types[0][1]
            if not automatic:
                own = self._column_type(entry, document, target)
                if own is None:
                    return []
                if not _same_type(own[0], key_type):
                    self.diagnostics.report("references-has-different-type", keys[0].name, target=target)
                    return []
            return [
                self._foreign_key_column(
                    document, document.name, key_type,
                    InlinedForeignKeyConstraint(target_entry.table),
                )
            ]

        columns = [
            self._foreign_key_column(document, f"{document.name}_{key_name}", key_type, None)
            for key_name, key_type in key_types
        ]
        entry.table.constraints.append(
            CompositeForeignKeyConstraint(
                tuple(column.name for column in columns), target_entry.table
            )
        )
        return columns

    def _key_types(
        self, entry: _TableEntry, visited: frozenset[int] = frozenset()
    ) -> list[tuple[str, ColumnType]] | None:
        """Name and type of every column the primary key of *entry* spans.

        A key column that is itself a reference takes the key of the table
        it references: one column of the same type for a single-column key,
        or one ``<key>_<nested key>`` column per column of a composite key.
        Returns None if a key type cannot be resolved, including keys that
        reference each other in a loop.
        """
        if entry.table.handle in visited:
            return None
        visited = visited | {entry.table.handle}

        key_types: list[tuple[str, ColumnType]] = []
        for key in entry.document.key_columns():
            if key.references is not None:
                nested_entry = self._lookup(self._tables_by_name, key.references, entry.scope)
                if nested_entry is None or key.array:
                    return None
                nested = self._key_types(nested_entry, visited)
                if not nested:
                    return None
                if len(nested) == 1:
                    key_types.append((key.name, nested[0][1]))
                else:
                    key_types.extend((f"{key.name}_{name}", key_type) for name, key_type in nested)
                continue

            # details about a broken key column are reported with its own table
            resolved = self._column_type(entry, key, f"{entry.label}.{key.name}", DiagnosticCollector())
            if resolved is None:
                return None
            key_types.append((key.name, resolved[0]))
        return key_types

    def _foreign_key_column(
        self,
        document: ColumnDocument,
        name: str,
        key_type: ColumnType,
        foreign_key: InlinedForeignKeyConstraint | None,
    ) -> Column:
        constraints: list[ColumnConstraint] = []
        if not document.optional and not document.key:
            constraints.append(NotNullConstraint())
        if document.unique:
            constraints.append(UniqueConstraint(document.unique if isinstance(document.unique, str) else None))
        if foreign_key is not None:
            constraints.append(foreign_key)
        return Column(
            name=name,
            column_type=key_type,
            constraints=constraints,
            docs=document.doc,
            external_docs=_external_docs(document.external_docs),
        )


def _same_type(left: ColumnType, right: ColumnType) -> bool:
    if left.is_primitive != right.is_primitive or left.is_array != right.is_array:
        return False
    if left.is_primitive:
        return left.data_type == right.data_type
    return left.entity is right.entity
