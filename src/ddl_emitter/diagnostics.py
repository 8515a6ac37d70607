"""User-facing diagnostics collected during an emission pass.

Recoverable schema mistakes (a reserved column name, an unresolvable type,
two entities with the same explicit name) never abort a pass.  They are
reported here with a stable code and the offending name; the entity or
column is skipped and the pass continues.

Usage:
    from ddl_emitter.diagnostics import DiagnosticCollector

    diagnostics = DiagnosticCollector()
    diagnostics.report("reserved-column-name", "select", target="Book.select")
    if diagnostics.has_errors():
        print(diagnostics.format_report())
"""

from enum import Enum

from pydantic import BaseModel, Field


class DiagnosticSeverity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


# code -> (severity, message template); "{name}" is the offending name
DIAGNOSTIC_MESSAGES: dict[str, tuple[DiagnosticSeverity, str]] = {
    "reserved-column-name": (
        DiagnosticSeverity.ERROR,
        "Can not create the column '{name}' as its name is a reserved keyword in PostgreSQL",
    ),
    "reserved-entity-name": (
        DiagnosticSeverity.ERROR,
        "Can not create the entity '{name}' as its name is a reserved keyword in PostgreSQL",
    ),
    "duplicate-entity-identifier": (
        DiagnosticSeverity.ERROR,
        "The entity '{name}' is defined twice",
    ),
    "entity-name-too-long": (
        DiagnosticSeverity.ERROR,
        "The name '{name}' is too long for a PostgreSQL entity",
    ),
    "duplicate-anonymous-name": (
        DiagnosticSeverity.WARNING,
        "The type '{name}' has a collision with another entity. "
        "The name may be generated from an anonymous model name",
    ),
    "namespace-name-collision": (
        DiagnosticSeverity.WARNING,
        "The name of the namespace '{name}' is colliding with another entity and therefore renamed.",
    ),
    "datatype-not-resolvable": (
        DiagnosticSeverity.ERROR,
        "The datatype of the model property of type '{name}' can not be resolved",
    ),
    "references-without-target": (
        DiagnosticSeverity.ERROR,
        "The @references decorator must point to a model but it points to nothing",
    ),
    "reference-without-key": (
        DiagnosticSeverity.ERROR,
        "Can not reference '{name}' automatically because it does not have a @key",
    ),
    "references-has-no-key": (
        DiagnosticSeverity.ERROR,
        "Can not use references to '{name}' because it does not have a @key",
    ),
    "references-has-different-type": (
        DiagnosticSeverity.ERROR,
        "Cannot reference the key-type '{name}'. "
        "The key of a referenced model must have the same type as the referencing property",
    ),
    "union-unsupported": (
        DiagnosticSeverity.ERROR,
        "Unions are not supported unless all options are string literals. "
        "The Union '{name}' can therefore not be emitted",
    ),
    "unimplemented-enum-type": (
        DiagnosticSeverity.ERROR,
        "Enum Members of the type '{name}' are not implemented "
        "because they can not be mapped to PostgreSQL enums",
    ),
    "unknown-scalar": (
        DiagnosticSeverity.ERROR,
        "Scalar '{name}' is not known.",
    ),
    "invalid-default": (
        DiagnosticSeverity.ERROR,
        "Invalid type '{name}' for a default value",
    ),
    "duplicate-column": (
        DiagnosticSeverity.ERROR,
        "The column '{name}' is defined twice",
    ),
    "foreign-key-column-missing": (
        DiagnosticSeverity.ERROR,
        "The foreign key column '{name}' is not a column of the table",
    ),
    "reference-array": (
        DiagnosticSeverity.ERROR,
        "Can not manually create array references in the property '{name}'",
    ),
    "unsupported-format": (
        DiagnosticSeverity.WARNING,
        "The format '{name}' is not recognized. "
        "Only 'UUID' is recognized as a format in the current version",
    ),
    "array-constraints": (
        DiagnosticSeverity.WARNING,
        "Can not add all decorator-constraints to '{name}' "
        "because array constraints are not implemented yet",
    ),
}


class Diagnostic(BaseModel):
    """A single reported problem."""

    code: str
    severity: DiagnosticSeverity
    message: str
    target: str | None = None  # dotted path of the offending element


class DiagnosticCollector(BaseModel):
    """Diagnostics of one emission pass, in report order.

    Example:
        >>> collector = DiagnosticCollector()
        >>> _ = collector.report("unknown-scalar", "int128")
        >>> collector.has_errors()
        True
    """

    diagnostics: list[Diagnostic] = Field(default_factory=list)

    def report(self, code: str, name: str, target: str | None = None) -> Diagnostic:
        """Record diagnostic *code* about *name*.

        Raises:
            KeyError: If *code* is not a known diagnostic code.
        """
        severity, template = DIAGNOSTIC_MESSAGES[code]
        diagnostic = Diagnostic(
            code=code,
            severity=severity,
            message=template.format(name=name),
            target=target,
        )
        self.diagnostics.append(diagnostic)
        return diagnostic

    @property
    def errors(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity is DiagnosticSeverity.ERROR]

    @property
    def warnings(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity is DiagnosticSeverity.WARNING]

    def has_errors(self) -> bool:
        return bool(self.errors)

    def codes(self) -> list[str]:
        return [d.code for d in self.diagnostics]

    def format_report(self) -> str:
        """Format diagnostics as a human-readable report."""
        if not self.diagnostics:
            return "No diagnostics"

        lines = [f"{len(self.errors)} error(s), {len(self.warnings)} warning(s):"]
        for d in self.diagnostics:
            location = f" ({d.target})" if d.target else ""
            lines.append(f"  - {d.severity.value} [{d.code}]{location}: {d.message}")
        return "\n".join(lines)
