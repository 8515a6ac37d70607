"""Tests for emission passes and output file naming."""

from pathlib import Path

import pytest

from ddl_emitter.config.models import EmitterOptions
from ddl_emitter.emitter import emit_document, emit_service, resolve_output_file
from ddl_emitter.schema.document import SchemaDocument, ServiceDocument

ID = {"name": "id", "type": "int32", "key": True}
BOOK = {"name": "Book", "columns": [ID, {"name": "title", "type": "string"}]}


def service(**data) -> ServiceDocument:
    return ServiceDocument.model_validate({"name": "Library", **data})


# ------------------------------------------------------------------
# Output file names
# ------------------------------------------------------------------


class TestResolveOutputFile:
    """Test placeholder interpolation in output file templates."""

    @pytest.mark.parametrize(
        ("template", "version", "expected"),
        [
            ("schema.{service-name}.{version}.sql", "v1", "schema.Library.v1.sql"),
            ("schema.{service-name}.{version}.sql", None, "schema.Library.sql"),
            ("{service-name}/{version}/tables.sql", "v2", "Library/v2/tables.sql"),
            ("{service-name}/{version}/tables.sql", None, "Library/tables.sql"),
            ("fixed.sql", "v1", "fixed.sql"),
        ],
    )
    def test_interpolation(self, template: str, version: str | None, expected: str) -> None:
        """Missing values are removed with the separator that follows."""
        assert resolve_output_file(template, "Library", version) == expected

    def test_without_service_name(self) -> None:
        """A single service leaves its name out of the file name."""
        assert resolve_output_file("schema.{service-name}.{version}.sql", None) == "schema.sql"
        assert resolve_output_file("{service-name}/{version}.sql", None, "v1") == "v1.sql"


# ------------------------------------------------------------------
# Single pass
# ------------------------------------------------------------------


class TestEmitService:
    """Test one emission pass."""

    def test_writes_file(self, tmp_path: Path) -> None:
        """A clean pass writes the SQL to the resolved file name."""
        result = emit_service(service(tables=[BOOK]), output_dir=tmp_path)

        expected_sql = "CREATE TABLE Book (id INTEGER PRIMARY KEY, title TEXT NOT NULL);"
        assert result.success is True
        assert result.sql == expected_sql
        assert result.output_file == str(tmp_path / "schema.sql")
        assert (tmp_path / "schema.sql").read_text() == expected_sql
        assert result.table_order == ["Book"]
        assert result.diagnostics == []

    def test_versioned_file_in_subdirectory(self, tmp_path: Path) -> None:
        """Directories in the template are created."""
        options = EmitterOptions(output_file="{service-name}/{version}.sql")
        result = emit_service(
            service(version="v1", tables=[BOOK]), options, output_dir=tmp_path, multiple_services=True
        )
        assert (tmp_path / "Library" / "v1.sql").exists()
        assert result.output_file == str(tmp_path / "Library" / "v1.sql")

    def test_without_output_dir_nothing_is_written(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Without an output directory the SQL is only returned."""
        monkeypatch.chdir(tmp_path)
        result = emit_service(service(tables=[BOOK]))
        assert result.success is True
        assert result.output_file == "schema.sql"
        assert list(tmp_path.iterdir()) == []

    def test_crlf_is_written_verbatim(self, tmp_path: Path) -> None:
        """crlf line endings reach the file unchanged."""
        options = EmitterOptions(new_line="crlf")
        emit_service(service(tables=[BOOK, {"name": "Author", "columns": [ID]}]), options, output_dir=tmp_path)
        content = (tmp_path / "schema.sql").read_bytes()
        assert b";\r\n\r\nCREATE TABLE Author" in content

    def test_save_mode(self) -> None:
        """Save mode is passed to the serializer."""
        result = emit_service(service(tables=[BOOK]), EmitterOptions(save_mode=True))
        assert result.sql.startswith("CREATE TABLE IF NOT EXISTS Book ();")

    def test_error_blocks_output(self, tmp_path: Path) -> None:
        """An error diagnostic means no file."""
        broken = {"name": "Book", "columns": [ID, {"name": "select", "type": "string"}]}
        result = emit_service(service(tables=[broken]), output_dir=tmp_path)

        assert result.success is False
        assert result.sql is None
        assert result.output_file is None
        assert [d.code for d in result.diagnostics] == ["reserved-column-name"]
        assert list(tmp_path.iterdir()) == []

    def test_duplicate_explicit_names(self) -> None:
        """Two tables with the same explicit name fail the pass."""
        first = {"name": "A", "entity_name": "Foo", "columns": [ID]}
        second = {"name": "B", "entity_name": "Foo", "columns": [ID]}
        result = emit_service(service(tables=[first, second]))
        assert result.success is False
        assert [d.code for d in result.diagnostics] == ["duplicate-entity-identifier"]

    def test_reserved_entity_name(self) -> None:
        """A table named after a keyword fails the pass."""
        result = emit_service(service(tables=[{"name": "User", "columns": [ID]}]))
        assert [d.code for d in result.diagnostics] == ["reserved-entity-name"]

    def test_too_long_entity_name(self) -> None:
        """A table name over 63 characters fails the pass."""
        result = emit_service(service(tables=[{"name": "T" * 64, "columns": [ID]}]))
        assert [d.code for d in result.diagnostics] == ["entity-name-too-long"]

    def test_warnings_do_not_block_output(self) -> None:
        """Renamed anonymous models are reported but emitted."""
        result = emit_service(service(tables=[{"columns": [ID]}, {"columns": [ID]}]))
        assert result.success is True
        assert [d.code for d in result.diagnostics] == ["duplicate-anonymous-name"]
        assert result.table_order == ["Anonymous_Model", "Anonymous_Model_1"]

    def test_namespace_collision_is_reported(self) -> None:
        """A renamed namespace is a warning."""
        result = emit_service(service(
            tables=[{"name": "one_two", "columns": [ID]}],
            namespaces=[{"name": "one", "namespaces": [{"name": "two", "tables": [BOOK]}]}],
        ))
        assert result.success is True
        assert [d.code for d in result.diagnostics] == ["namespace-name-collision"]
        assert "CREATE TABLE one_two_1.Book" in result.sql

    def test_deferred_foreign_keys_are_listed(self) -> None:
        """Broken cycles appear in the result."""
        a = {"name": "A", "columns": [ID, {"name": "b", "references": "B"}]}
        b = {"name": "B", "columns": [ID, {"name": "a", "references": "A"}]}
        result = emit_service(service(tables=[a, b]))

        assert result.table_order == ["B", "A"]
        assert result.deferred_foreign_keys == ["B (a) -> A", "A (b) -> B"]
        assert result.sql.endswith("ALTER TABLE\n  A\nADD\n  FOREIGN KEY (b) REFERENCES B;")

    def test_reference_through_referencing_key(self) -> None:
        """A table keyed by a reference can itself be referenced."""
        person = {"name": "Person", "columns": [ID]}
        employee = {"name": "Employee", "columns": [{"name": "person", "references": "Person", "key": True}]}
        badge = {"name": "Badge", "columns": [ID, {"name": "employee", "references": "Employee"}]}
        result = emit_service(service(tables=[person, employee, badge]))

        assert result.success is True
        assert result.diagnostics == []
        assert result.table_order == ["Person", "Employee", "Badge"]
        assert "CREATE TABLE Employee (person INTEGER PRIMARY KEY REFERENCES Person);" in result.sql
        assert "  employee INTEGER NOT NULL REFERENCES Employee\n" in result.sql

    def test_format_report(self) -> None:
        """Reports summarize success and failure."""
        ok = emit_service(service(version="v1", tables=[BOOK]))
        assert ok.format_report().startswith("Library v1: 1 table(s)")

        failed = emit_service(service(tables=[{"name": "User", "columns": [ID]}]))
        report = failed.format_report()
        assert report.startswith("Library: failed with 1 error(s)")
        assert "error [reserved-entity-name]" in report


# ------------------------------------------------------------------
# Documents
# ------------------------------------------------------------------


class TestEmitDocument:
    """Test emitting every service of a document."""

    def test_one_pass_per_service(self, tmp_path: Path) -> None:
        """Each service gets its own file and its own names."""
        document = SchemaDocument.model_validate({
            "services": [
                {"name": "Library", "tables": [BOOK]},
                {"name": "Shop", "tables": [BOOK]},
            ],
        })
        results = emit_document(document, output_dir=tmp_path)

        assert [result.service for result in results] == ["Library", "Shop"]
        assert [result.table_order for result in results] == [["Book"], ["Book"]]
        assert (tmp_path / "schema.Library.sql").exists()
        assert (tmp_path / "schema.Shop.sql").exists()

    def test_single_service_file_name(self, tmp_path: Path) -> None:
        """The only service of a document is written without its name."""
        document = SchemaDocument.model_validate({"services": [{"name": "Library", "version": "v1", "tables": [BOOK]}]})
        (result,) = emit_document(document, output_dir=tmp_path)
        assert result.output_file == str(tmp_path / "schema.v1.sql")
        assert [path.name for path in tmp_path.iterdir()] == ["schema.v1.sql"]

    def test_failed_service_does_not_stop_others(self, tmp_path: Path) -> None:
        """A failing pass leaves other passes alone."""
        document = SchemaDocument.model_validate({
            "services": [
                {"name": "Broken", "tables": [{"name": "User", "columns": [ID]}]},
                {"name": "Library", "tables": [BOOK]},
            ],
        })
        results = emit_document(document, output_dir=tmp_path)
        assert [result.success for result in results] == [False, True]
        assert [path.name for path in tmp_path.iterdir()] == ["schema.Library.sql"]
