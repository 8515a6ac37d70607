"""Render schema entities as PostgreSQL DDL statements.

Every statement is built in its multi-line, indented form first and then
collapsed onto a single line when the collapsed text fits within
``INLINE_MAX_LENGTH`` characters.

Usage:
    from ddl_emitter.schema.serializer import DdlSerializer, NewLineType

    serializer = DdlSerializer(resolver, new_line=NewLineType.LF, save_mode=False)
    print(serializer.render(table))
    # CREATE TABLE Book (id INTEGER PRIMARY KEY, title TEXT NOT NULL);
"""

import re
from enum import Enum

from ddl_emitter.schema.models import (
    AlterTableAddColumns,
    AlterTableForeignKey,
    Column,
    ColumnConstraint,
    ConstraintType,
    EnumMember,
    ExternalDocs,
    Namespace,
    SqlEnum,
    Table,
    TableConstraint,
    UnionEnum,
)
from ddl_emitter.schema.naming import NamingConflictResolver

INLINE_MAX_LENGTH = 70
INDENTATION = "  "


class NewLineType(str, Enum):
    """Line ending of the emitted text."""

    LF = "lf"
    CRLF = "crlf"


def get_new_line(line_type: NewLineType | str, count: int = 1) -> str:
    """Line break for *line_type*, repeated *count* times."""
    return ("\r\n" if NewLineType(line_type) is NewLineType.CRLF else "\n") * count


def inline_if_short_enough(text: str, max_length: int = INLINE_MAX_LENGTH) -> str:
    """Collapse *text* onto one line if the result is short enough.

    Example:
        >>> inline_if_short_enough("CREATE TABLE a (\\n  id INTEGER\\n);")
        'CREATE TABLE a (id INTEGER);'
    """
    inlined = re.sub(r"\s+", " ", text)
    inlined = inlined.replace("( ", "(").replace(" )", ")").replace(" ;", ";").strip()
    return inlined if len(inlined) <= max_length else text


def indent(text: str, line_type: NewLineType | str) -> str:
    """Prefix every line of *text* with one indentation level."""
    new_line = get_new_line(line_type)
    return new_line.join(INDENTATION + line for line in text.split(new_line))


def _quote_literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


class DdlSerializer:
    """Renders entities and synthesized statements to DDL text.

    Identifiers are looked up in *resolver*; every entity passed in must
    already be registered there.  The serializer never mutates the entities
    it renders, so rendering the same entity twice gives the same text.
    """

    def __init__(
        self,
        resolver: NamingConflictResolver,
        new_line: NewLineType | str = NewLineType.LF,
        save_mode: bool = False,
    ) -> None:
        self.resolver = resolver
        self.new_line = NewLineType(new_line)
        self.save_mode = save_mode

    @property
    def _nl(self) -> str:
        return get_new_line(self.new_line)

    def render(self, element: object) -> str:
        """Render any root-level element or synthesized statement."""
        if isinstance(element, Namespace):
            return self.render_schema(element)
        if isinstance(element, (SqlEnum, UnionEnum)):
            return self.render_enum(element)
        if isinstance(element, Table):
            return self.render_table(element)
        if isinstance(element, AlterTableAddColumns):
            return self.render_add_columns(element)
        if isinstance(element, AlterTableForeignKey):
            return self.render_alter_foreign_key(element)
        raise TypeError(f"Cannot render {type(element).__name__}")

    # ------------------------------------------------------------------
    # Documentation
    # ------------------------------------------------------------------

    def render_docs(self, docs: str | None, external_docs: ExternalDocs | None) -> str:
        """Comment lines placed before a statement, column or enum member."""
        result = ""
        if external_docs is not None:
            description = f", {external_docs.description}" if external_docs.description else ""
            result += f"/* {external_docs.url}{description} */{self._nl}"
        if docs:
            result += f"/* {docs} */{self._nl}"
        return result

    # ------------------------------------------------------------------
    # Statements
    # ------------------------------------------------------------------

    def render_schema(self, namespace: Namespace) -> str:
        if_not_exists = "IF NOT EXISTS " if self.save_mode else ""
        return f"CREATE SCHEMA {if_not_exists}{self.resolver.lookup(namespace)};"

    def render_enum(self, enum: SqlEnum | UnionEnum) -> str:
        """``CREATE TYPE <name> AS ENUM (...)``.

        PostgreSQL has no ``IF NOT EXISTS`` for types, so save mode renders
        the same statement.
        """
        members = [self._render_member(member) for member in enum.members]
        statement = (
            f"CREATE TYPE {self.resolver.lookup(enum)} AS ENUM ({self._nl}"
            + f",{self._nl}".join(members)
            + f"{self._nl});"
        )
        return self.render_docs(enum.docs, enum.external_docs) + inline_if_short_enough(statement)

    def _render_member(self, member: EnumMember) -> str:
        docs = self.render_docs(member.docs, member.external_docs)
        return indent(docs + _quote_literal(member.value), self.new_line)

    def render_table(self, table: Table) -> str:
        """``CREATE TABLE <name> (<columns>, <table constraints>)``.

        In save mode the body is always empty; columns and table
        constraints are emitted by ``render_add_columns`` instead.
        """
        if self.save_mode:
            body: list[str] = []
            if_not_exists = " IF NOT EXISTS"
        else:
            body = self._table_body(table)
            if_not_exists = ""

        statement = f"CREATE TABLE{if_not_exists} {self.resolver.lookup(table)} ({self._nl}"
        if body:
            statement += f",{self._nl}".join(body) + self._nl
        statement += ");"
        return self.render_docs(table.docs, table.external_docs) + inline_if_short_enough(statement)

    def render_add_columns(self, statement: AlterTableAddColumns) -> str:
        """Save-mode ``ALTER TABLE IF EXISTS <name> ADD COLUMN IF NOT EXISTS ...``."""
        table = statement.table
        text = (
            f"ALTER TABLE IF EXISTS {self.resolver.lookup(table)}{self._nl}"
            + f",{self._nl}".join(self._table_body(table))
            + ";"
        )
        return inline_if_short_enough(text)

    def render_alter_foreign_key(self, statement: AlterTableForeignKey) -> str:
        """Deferred foreign key created by cycle breaking."""
        columns = ", ".join(statement.columns)
        return (
            f"ALTER TABLE{self._nl}"
            + indent(statement.table_name, self.new_line)
            + f"{self._nl}ADD{self._nl}"
            + indent(
                f"FOREIGN KEY ({columns}) REFERENCES {statement.referenced_table_name};",
                self.new_line,
            )
        )

    def _table_body(self, table: Table) -> list[str]:
        single_key = table.primary_key[0] if len(table.primary_key) == 1 else None
        lines = [
            self.render_column(column, primary_key=column.name == single_key)
            for column in table.columns
        ]
        constraints = [self.render_table_constraint(constraint) for constraint in table.constraints]
        if len(table.primary_key) > 1:
            constraints.append(self._prefix("PRIMARY KEY (" + ", ".join(table.primary_key) + ")"))
        lines.extend(indent(constraint, self.new_line) for constraint in constraints)
        return lines

    # ------------------------------------------------------------------
    # Columns and constraints
    # ------------------------------------------------------------------

    def render_column(self, column: Column, primary_key: bool = False) -> str:
        """One indented column definition.

        Inlined foreign keys always come last.  *primary_key* adds a
        ``PRIMARY KEY`` marker right before them.
        """
        ordered = sorted(
            column.constraints,
            key=lambda c: c.constraint_type is ConstraintType.INLINED_FOREIGN_KEY,
        )
        parts = [c for c in ordered if c.constraint_type is not ConstraintType.INLINED_FOREIGN_KEY]
        rendered = [self.render_column_constraint(c) for c in parts]
        if primary_key:
            rendered.append("PRIMARY KEY")
        rendered.extend(self.render_column_constraint(c) for c in ordered[len(parts):])

        column_type = column.column_type
        if column_type.is_primitive:
            data_type = column_type.data_type
        else:
            data_type = self.resolver.lookup(column_type.entity)
        if column_type.is_array:
            data_type += "[]"

        prefix = "ADD COLUMN IF NOT EXISTS " if self.save_mode else ""
        definition = " ".join([f"{prefix}{column.name}", data_type, *rendered])
        docs = self.render_docs(column.docs, column.external_docs)
        return indent(docs + inline_if_short_enough(definition), self.new_line)

    def render_column_constraint(self, constraint: ColumnConstraint) -> str:
        kind = constraint.constraint_type
        if kind is ConstraintType.DEFAULT:
            return f"DEFAULT {constraint.value}"
        if kind is ConstraintType.CHECK:
            return f"CHECK ({constraint.expression})"
        if kind is ConstraintType.UNIQUE:
            return f"CONSTRAINT {constraint.name} UNIQUE" if constraint.name else "UNIQUE"
        if kind is ConstraintType.INLINED_FOREIGN_KEY:
            return f"REFERENCES {self.resolver.lookup(constraint.referenced_table)}"
        # NOT NULL and PRIMARY KEY
        return kind.value

    def render_table_constraint(self, constraint: TableConstraint) -> str:
        kind = constraint.constraint_type
        if kind is ConstraintType.CHECK:
            return self._prefix(f"CHECK ({constraint.expression})")
        columns = ", ".join(constraint.columns)
        if kind is ConstraintType.COMPOSITE_PRIMARY_KEY:
            return self._prefix(f"PRIMARY KEY ({columns})")
        referenced = self.resolver.lookup(constraint.referenced_table)
        return self._prefix(f"FOREIGN KEY ({columns}) REFERENCES {referenced}")

    def _prefix(self, text: str) -> str:
        return f"ADD {text}" if self.save_mode else text
