"""Tests for SchemaRoot: registration, table ordering, cycle breaking and
serialization of a whole pass."""

import pytest

from ddl_emitter.schema.errors import InternalInvariantError
from ddl_emitter.schema.models import (
    AlterTableForeignKey,
    CheckConstraint,
    Column,
    CompositeForeignKeyConstraint,
    EnumMember,
    InlinedForeignKeyConstraint,
    Namespace,
    NotNullConstraint,
    PrimitiveColumnType,
    SqlEnum,
    Table,
    UnionEnum,
)
from ddl_emitter.schema.naming import NamingErrorKind
from ddl_emitter.schema.root import RootState, SchemaRoot


def key_column(name: str = "id") -> Column:
    return Column(name=name, column_type=PrimitiveColumnType("INTEGER"))


def ref_column(name: str, target: Table) -> Column:
    return Column(
        name=name,
        column_type=PrimitiveColumnType("INTEGER"),
        constraints=[NotNullConstraint(), InlinedForeignKeyConstraint(target)],
    )


def keyed_table(name: str, *columns: Column, **kwargs) -> Table:
    return Table(name=name, columns=[key_column(), *columns], primary_key=["id"], **kwargs)


def make_root(*entities) -> SchemaRoot:
    root = SchemaRoot()
    for entity in entities:
        assert root.add_element(entity).registered
    return root


def mutual_tables() -> tuple[Table, Table]:
    a = keyed_table("A")
    b = keyed_table("B", ref_column("a_id", a))
    a.columns.append(ref_column("b_id", b))
    return a, b


# ------------------------------------------------------------------
# Registration
# ------------------------------------------------------------------


class TestAddElement:
    """Verify adding entities to the root."""

    def test_lifecycle_states(self) -> None:
        """The root moves from EMPTY to SERIALIZED."""
        root = SchemaRoot()
        assert root.state is RootState.EMPTY
        root.add_element(keyed_table("Book"))
        assert root.state is RootState.POPULATED
        root.order_tables()
        assert root.state is RootState.ORDERED
        root.to_sql()
        assert root.state is RootState.SERIALIZED

    def test_result_carries_name(self) -> None:
        """A successful add reports the resolved identifier."""
        result = SchemaRoot().add_element(keyed_table("Book"))
        assert result.registered is True
        assert result.name == "Book"
        assert result.error is None

    def test_adding_twice_is_ignored(self) -> None:
        """The same entity is added only once."""
        root = SchemaRoot()
        book = keyed_table("Book")
        root.add_element(book)
        result = root.add_element(book)
        assert result.registered is False
        assert result.error is None
        assert root.tables() == [book]

    def test_duplicate_explicit_name(self) -> None:
        """A second explicit "Foo" is rejected; the first keeps its name."""
        root = SchemaRoot()
        first = keyed_table("A", entity_name="Foo")
        root.add_element(first)
        result = root.add_element(keyed_table("B", entity_name="Foo"))
        assert result.registered is False
        assert result.error.kind is NamingErrorKind.DUPLICATE_ENTITY
        assert root.tables() == [first]
        assert root.identifier_of(first) == "Foo"

    def test_anonymous_collision_warns(self) -> None:
        """A second anonymous model is renamed with a warning."""
        root = SchemaRoot()
        root.add_element(keyed_table(""))
        result = root.add_element(keyed_table(""))
        assert result.registered is True
        assert result.warning is True
        assert result.name == "Anonymous_Model_1"

    def test_namespace_is_added_before_entity(self) -> None:
        """The owning namespace becomes an element of the root."""
        library = Namespace("library")
        book = keyed_table("Book", namespace=library)
        root = make_root(book)
        assert root.elements() == [library, book]
        assert root.identifier_of(book) == "library.Book"

    def test_namespace_stays_when_entity_fails(self) -> None:
        """A rejected entity leaves its namespace registered."""
        library = Namespace("library")
        root = SchemaRoot()
        result = root.add_element(keyed_table("Book", entity_name="select", namespace=library))
        assert result.registered is False
        assert result.error.kind is NamingErrorKind.RESERVED_KEYWORD
        assert root.elements() == [library]
        assert root.to_sql() == "CREATE SCHEMA library;"

    def test_prefixed_keyword_is_allowed(self) -> None:
        """Keywords are checked on the prefixed identifier."""
        root = make_root(keyed_table("order", namespace=Namespace("shop")))
        assert root.to_sql().endswith("CREATE TABLE shop.order (id INTEGER PRIMARY KEY);")

    def test_namespace_collision_warns(self) -> None:
        """A renamed namespace is reported on the entity result."""
        root = make_root(keyed_table("one_two"))
        result = root.add_element(keyed_table("Book", namespace=Namespace("two", Namespace("one"))))
        assert result.namespace_warning is True
        assert result.name == "one_two_1.Book"

    def test_add_after_serialization_raises(self) -> None:
        """The root is closed once serialized."""
        root = make_root(keyed_table("Book"))
        root.to_sql()
        with pytest.raises(InternalInvariantError):
            root.add_element(keyed_table("Author"))

    def test_roots_do_not_share_names(self) -> None:
        """Each root owns its own resolver."""
        first, second = make_root(keyed_table("Book")), make_root(keyed_table("Book"))
        assert first.identifier_of(first.tables()[0]) == "Book"
        assert second.identifier_of(second.tables()[0]) == "Book"


# ------------------------------------------------------------------
# Ordering
# ------------------------------------------------------------------


class TestOrderTables:
    """Verify creation order and cycle breaking."""

    def test_no_references_keeps_registration_order(self) -> None:
        """Without edges tables stay in registration order."""
        b, a = keyed_table("B"), keyed_table("A")
        ordering = make_root(b, a).order_tables()
        assert ordering.tables == [b, a]
        assert ordering.alter_statements == []

    def test_referenced_table_first(self) -> None:
        """A{key}, B{key, ref->A} is ordered [A, B] with no ALTER."""
        a = keyed_table("A")
        b = keyed_table("B", ref_column("a_id", a))
        ordering = make_root(b, a).order_tables()
        assert ordering.tables == [a, b]
        assert ordering.alter_statements == []

    def test_self_reference_is_not_a_cycle(self) -> None:
        """A table referencing itself is created in one statement."""
        employee = keyed_table("Employee")
        employee.columns.append(ref_column("manager_id", employee))
        root = make_root(employee)
        ordering = root.order_tables()
        assert ordering.tables == [employee]
        assert ordering.alter_statements == []
        assert "REFERENCES Employee" in root.to_sql()

    def test_mutual_references_are_deferred(self) -> None:
        """Both tables are stripped and one ALTER per reference is added."""
        a, b = mutual_tables()
        ordering = make_root(a, b).order_tables()
        assert [table.name for table in ordering.tables] == ["B", "A"]
        assert all(not table.has_foreign_keys() for table in ordering.tables)
        assert ordering.alter_statements == [
            AlterTableForeignKey(table_name="B", columns=("a_id",), referenced_table_name="A"),
            AlterTableForeignKey(table_name="A", columns=("b_id",), referenced_table_name="B"),
        ]

    def test_cycle_breaking_does_not_mutate_entities(self) -> None:
        """The caller's tables keep their foreign keys."""
        a, b = mutual_tables()
        root = make_root(a, b)
        root.order_tables()
        assert a.has_foreign_keys() and b.has_foreign_keys()
        assert root.tables() == [a, b]

    def test_stripped_copy_keeps_identifier(self) -> None:
        """A stripped copy resolves to the same identifier."""
        a, b = mutual_tables()
        root = make_root(a, b)
        stripped = root.order_tables().tables
        assert [root.identifier_of(table) for table in stripped] == ["B", "A"]

    def test_composite_foreign_key_in_cycle(self) -> None:
        """A composite key becomes one ALTER listing all its columns."""
        a = keyed_table("A", key_column("b_x"), key_column("b_y"))
        b = Table(name="B", columns=[key_column("x"), key_column("y"), ref_column("a_id", a)], primary_key=["x", "y"])
        a.constraints.append(CompositeForeignKeyConstraint(("b_x", "b_y"), b))

        ordering = make_root(a, b).order_tables()
        assert ordering.alter_statements == [
            AlterTableForeignKey(table_name="B", columns=("a_id",), referenced_table_name="A"),
            AlterTableForeignKey(table_name="A", columns=("b_x", "b_y"), referenced_table_name="B"),
        ]
        assert ordering.tables[1].constraints == []
        assert len(a.constraints) == 1

    def test_table_pointing_into_cycle_is_deferred_too(self) -> None:
        """A table that only references a cycle member is stripped as well."""
        a = keyed_table("A")
        b = keyed_table("B", ref_column("a_id", a))
        c = keyed_table("C", ref_column("b_id", b))
        a.columns.append(ref_column("c_id", c))
        d = keyed_table("D", ref_column("a_id", a))

        ordering = make_root(a, b, c, d).order_tables()
        assert [table.name for table in ordering.tables] == ["B", "C", "A", "D"]
        assert len(ordering.alter_statements) == 4

    def test_acyclic_remainder_follows_cycle_nodes(self) -> None:
        """Tables outside the cycle are sorted after the stripped ones."""
        a, b = mutual_tables()
        lonely = keyed_table("Lonely")
        ordering = make_root(lonely, a, b).order_tables()
        assert [table.name for table in ordering.tables] == ["B", "A", "Lonely"]

    def test_order_is_topologically_sound(self) -> None:
        """Every referenced table is created before its referrer."""
        authors = keyed_table("Author")
        books = keyed_table("Book", ref_column("author_id", authors))
        chapters = keyed_table("Chapter", ref_column("book_id", books))
        reviews = keyed_table("Review", ref_column("book_id", books), ref_column("author_id", authors))
        ordering = make_root(reviews, chapters, books, authors).order_tables()

        position = {table.handle: index for index, table in enumerate(ordering.tables)}
        for table in ordering.tables:
            for referenced in table.referenced_tables():
                assert position[referenced.handle] < position[table.handle]

    def test_missing_referenced_table_raises(self) -> None:
        """A reference to a table outside the root is a programming error."""
        a = keyed_table("A")
        root = make_root(keyed_table("B", ref_column("a_id", a)))
        with pytest.raises(InternalInvariantError):
            root.order_tables()


# ------------------------------------------------------------------
# Serialization
# ------------------------------------------------------------------


class TestToSql:
    """Verify the text of a whole pass."""

    def test_referenced_table_first(self) -> None:
        """Statements are separated by one blank line."""
        a = keyed_table("A")
        b = keyed_table("B", ref_column("a_id", a))
        assert make_root(b, a).to_sql() == (
            "CREATE TABLE A (id INTEGER PRIMARY KEY);\n"
            "\n"
            "CREATE TABLE B (\n"
            "  id INTEGER PRIMARY KEY,\n"
            "  a_id INTEGER NOT NULL REFERENCES A\n"
            ");"
        )

    def test_mutual_references(self) -> None:
        """Stripped tables come first, deferred keys last."""
        a, b = mutual_tables()
        assert make_root(a, b).to_sql() == (
            "CREATE TABLE B (id INTEGER PRIMARY KEY, a_id INTEGER NOT NULL);\n"
            "\n"
            "CREATE TABLE A (id INTEGER PRIMARY KEY, b_id INTEGER NOT NULL);\n"
            "\n"
            "ALTER TABLE\n  B\nADD\n  FOREIGN KEY (a_id) REFERENCES A;\n"
            "\n"
            "ALTER TABLE\n  A\nADD\n  FOREIGN KEY (b_id) REFERENCES B;"
        )

    def test_element_order(self) -> None:
        """Namespaces, enums and union enums precede the tables."""
        lib = Namespace("lib")
        book = keyed_table("Book", namespace=lib)
        genre = UnionEnum(
            name="",
            namespace=lib,
            owner=book,
            property_name="genre",
            members=[EnumMember(value="fiction")],
        )
        color = SqlEnum(name="Color", members=[EnumMember(value="red")])
        assert make_root(genre, book, color).to_sql() == (
            "CREATE SCHEMA lib;\n"
            "\n"
            "CREATE TYPE Color AS ENUM ('red');\n"
            "\n"
            "CREATE TYPE lib.BookGenreEnum AS ENUM ('fiction');\n"
            "\n"
            "CREATE TABLE lib.Book (id INTEGER PRIMARY KEY);"
        )

    def test_save_mode(self) -> None:
        """Tables are created empty and their columns added afterwards."""
        a = keyed_table("A")
        b = keyed_table(
            "B",
            Column(name="title", column_type=PrimitiveColumnType("TEXT"), constraints=[NotNullConstraint()]),
            ref_column("a_id", a),
        )
        assert make_root(a, b).to_sql(save_mode=True) == (
            "CREATE TABLE IF NOT EXISTS A ();\n"
            "\n"
            "CREATE TABLE IF NOT EXISTS B ();\n"
            "\n"
            "ALTER TABLE IF EXISTS A\n"
            "  ADD COLUMN IF NOT EXISTS id INTEGER PRIMARY KEY;\n"
            "\n"
            "ALTER TABLE IF EXISTS B\n"
            "  ADD COLUMN IF NOT EXISTS id INTEGER PRIMARY KEY,\n"
            "  ADD COLUMN IF NOT EXISTS title TEXT NOT NULL,\n"
            "  ADD COLUMN IF NOT EXISTS a_id INTEGER NOT NULL REFERENCES A;"
        )

    def test_save_mode_with_cycle(self) -> None:
        """Deferred keys follow the added columns in save mode."""
        a, b = mutual_tables()
        sql = make_root(a, b).to_sql(save_mode=True)
        assert "ADD COLUMN IF NOT EXISTS a_id INTEGER NOT NULL;" in sql
        assert "REFERENCES A;\n\nALTER TABLE\n  A" in sql
        assert sql.endswith("FOREIGN KEY (b_id) REFERENCES B;")

    def test_table_without_columns_gets_no_alter(self) -> None:
        """Save mode skips ADD COLUMN for an empty table."""
        sql = make_root(Table(name="Marker")).to_sql(save_mode=True)
        assert sql == "CREATE TABLE IF NOT EXISTS Marker ();"

    def test_table_constraints_without_columns_are_added(self) -> None:
        """Save mode keeps table-level constraints of a table without columns."""
        flag = Table(name="Flag", constraints=[CheckConstraint("1 = 1")])
        assert make_root(flag).to_sql(save_mode=True) == (
            "CREATE TABLE IF NOT EXISTS Flag ();\n"
            "\n"
            "ALTER TABLE IF EXISTS Flag ADD CHECK (1 = 1);"
        )

    def test_crlf_separator(self) -> None:
        """The blank line between statements uses the configured ending."""
        sql = make_root(keyed_table("A"), keyed_table("B")).to_sql(new_line="crlf")
        assert sql == "CREATE TABLE A (id INTEGER PRIMARY KEY);\r\n\r\nCREATE TABLE B (id INTEGER PRIMARY KEY);"

    def test_serialization_is_idempotent(self) -> None:
        """Serializing twice gives identical text."""
        a, b = mutual_tables()
        root = make_root(a, b)
        assert root.to_sql() == root.to_sql()
        assert root.to_sql(save_mode=True) == root.to_sql(save_mode=True)

    def test_empty_root(self) -> None:
        """An empty root renders nothing."""
        assert SchemaRoot().to_sql() == ""
