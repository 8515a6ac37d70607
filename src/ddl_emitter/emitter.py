"""Emission passes: schema document in, DDL files out.

Every service of a document is emitted in its own pass with a fresh
``SchemaRoot`` (and therefore a fresh naming resolver), so identifiers of
one service never leak into another.  A pass that reports an error
diagnostic produces no output file.

Usage:
    from ddl_emitter.config import EmitterOptions
    from ddl_emitter.emitter import emit_document
    from ddl_emitter.schema.document import load_schema_document

    document = load_schema_document(Path("schema.toml"))
    for result in emit_document(document, EmitterOptions(), output_dir=Path("build")):
        print(result.format_report())
"""

import logging
import re
from pathlib import Path

from pydantic import BaseModel, Field

from ddl_emitter.config.models import EmitterOptions
from ddl_emitter.diagnostics import Diagnostic, DiagnosticCollector, DiagnosticSeverity
from ddl_emitter.schema.builder import SchemaBuilder
from ddl_emitter.schema.document import SchemaDocument, ServiceDocument
from ddl_emitter.schema.models import SqlEnum, Table, UnionEnum
from ddl_emitter.schema.naming import NamingErrorKind
from ddl_emitter.schema.root import SchemaRoot

logger = logging.getLogger(__name__)

_NAMING_ERROR_CODES = {
    NamingErrorKind.RESERVED_KEYWORD: "reserved-entity-name",
    NamingErrorKind.DUPLICATE_ENTITY: "duplicate-entity-identifier",
    NamingErrorKind.NAME_TOO_LONG: "entity-name-too-long",
}

_PLACEHOLDER = re.compile(r"\{(service-name|version)\}([./]?)")


# ============================================================================
# Result Models
# ============================================================================


class EmitResult(BaseModel):
    """Result of one emission pass."""

    service: str
    version: str | None = None
    success: bool
    output_file: str | None = None
    sql: str | None = None
    table_order: list[str] = Field(default_factory=list)
    deferred_foreign_keys: list[str] = Field(default_factory=list)
    diagnostics: list[Diagnostic] = Field(default_factory=list)

    @property
    def error_count(self) -> int:
        return sum(1 for d in self.diagnostics if d.severity is DiagnosticSeverity.ERROR)

    def format_report(self) -> str:
        """Format the pass result as a human-readable report."""
        label = self.service + (f" {self.version}" if self.version else "")
        if self.success:
            lines = [f"{label}: {len(self.table_order)} table(s)"]
            if self.output_file:
                lines[0] += f" -> {self.output_file}"
            if self.deferred_foreign_keys:
                lines.append(f"  Deferred foreign keys ({len(self.deferred_foreign_keys)}):")
                lines.extend(f"    - {fk}" for fk in self.deferred_foreign_keys)
        else:
            lines = [f"{label}: failed with {self.error_count} error(s)"]

        for d in self.diagnostics:
            lines.append(f"  {d.severity.value} [{d.code}]: {d.message}")
        return "\n".join(lines)


# ============================================================================
# Output file names
# ============================================================================


def resolve_output_file(template: str, service_name: str | None, version: str | None = None) -> str:
    """Interpolate ``{service-name}`` and ``{version}`` into *template*.

    A placeholder without a value is removed together with one "." or "/"
    directly following it.

    Example:
        >>> resolve_output_file("schema.{service-name}.{version}.sql", None)
        'schema.sql'
        >>> resolve_output_file("schema.{service-name}.{version}.sql", "Library")
        'schema.Library.sql'
        >>> resolve_output_file("{service-name}/{version}.sql", "Library", "v2")
        'Library/v2.sql'
    """
    values = {"service-name": service_name, "version": version}

    def substitute(match: re.Match) -> str:
        value = values[match.group(1)]
        return value + match.group(2) if value else ""

    return _PLACEHOLDER.sub(substitute, template)


# ============================================================================
# Passes
# ============================================================================


def register_entities(
    root: SchemaRoot,
    entities: list[Table | SqlEnum | UnionEnum],
    diagnostics: DiagnosticCollector,
) -> None:
    """Add *entities* to *root*, reporting naming problems as diagnostics."""
    for entity in entities:
        result = root.add_element(entity)
        target = entity.name or "Anonymous_Model"

        if result.namespace_warning and entity.naming_namespace is not None:
            diagnostics.report(
                "namespace-name-collision", entity.naming_namespace.full_name, target=target
            )
        if result.error is not None:
            diagnostics.report(_NAMING_ERROR_CODES[result.error.kind], result.error.name, target=target)
        elif result.warning:
            diagnostics.report("duplicate-anonymous-name", result.name, target=target)


def build_root(
    service: ServiceDocument, options: EmitterOptions, diagnostics: DiagnosticCollector
) -> SchemaRoot:
    """Build and register every entity of *service* in a fresh root."""
    entities = SchemaBuilder(service, diagnostics, options.emit_non_entity_types).build()
    root = SchemaRoot()
    register_entities(root, entities, diagnostics)
    return root


def emit_service(
    service: ServiceDocument,
    options: EmitterOptions | None = None,
    output_dir: Path | None = None,
    multiple_services: bool = False,
) -> EmitResult:
    """Run one emission pass.

    Args:
        service: Service to emit.
        options: Emitter options (defaults if omitted).
        output_dir: Directory for the output file.  Nothing is written if
            None.
        multiple_services: The service is one of several in its document.
            Only then is ``{service-name}`` filled in; a single service
            leaves it out of the file name.

    Returns:
        EmitResult with the SQL text on success.  On any error diagnostic
        ``success`` is False and no file is written.

    Raises:
        InternalInvariantError: If the schema core detects a programming
            error.  Never raised for mistakes in the document.
    """
    options = options or EmitterOptions()
    diagnostics = DiagnosticCollector()
    root = build_root(service, options, diagnostics)

    result = EmitResult(
        service=service.name,
        version=service.version,
        success=False,
        output_file=resolve_output_file(
            options.output_file, service.name if multiple_services else None, service.version
        ),
    )

    if diagnostics.has_errors():
        logger.warning(f"Service {service.name!r} not emitted: {len(diagnostics.errors)} error(s)")
        result.output_file = None
        result.diagnostics = diagnostics.diagnostics
        return result

    ordering = root.order_tables()
    sql = root.to_sql(new_line=options.new_line, save_mode=options.save_mode)

    result.success = True
    result.sql = sql
    result.table_order = [root.identifier_of(table) for table in ordering.tables]
    result.deferred_foreign_keys = [
        f"{fk.table_name} ({', '.join(fk.columns)}) -> {fk.referenced_table_name}"
        for fk in ordering.alter_statements
    ]
    result.diagnostics = diagnostics.diagnostics

    if output_dir is not None:
        path = Path(output_dir) / result.output_file
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(sql, newline="")
        result.output_file = str(path)
        logger.info(f"Wrote {path}")

    return result


def emit_document(
    document: SchemaDocument,
    options: EmitterOptions | None = None,
    output_dir: Path | None = None,
) -> list[EmitResult]:
    """Emit every service of *document*, one pass each."""
    multiple_services = len(document.services) > 1
    return [
        emit_service(service, options, output_dir, multiple_services)
        for service in document.services
    ]
