"""Pydantic models for the declarative schema document.

A schema document describes one or more services.  Each service holds
tables and enums, either globally or inside (nested) namespaces.  The
document can be written as JSON or TOML.

Example (TOML):
    [[services]]
    name = "Library"
    version = "v1"

    [[services.tables]]
    name = "Author"
    columns = [
        { name = "id", type = "int32", key = true },
        { name = "name", type = "string", max_length = 120 },
    ]

    [[services.tables]]
    name = "Book"
    columns = [
        { name = "id", type = "int32", key = true },
        { name = "author", references = "Author" },
        { name = "genre", union = ["fiction", "poetry"] },
    ]

Usage:
    from ddl_emitter.schema.document import load_schema_document

    document = load_schema_document(Path("schema.toml"))
"""

import json
import tomllib
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

ScalarValue = str | bool | int | float


# ============================================================================
# Document Models
# ============================================================================


class ExternalDocsDocument(BaseModel):
    url: str
    description: str | None = None


class EnumMemberDocument(BaseModel):
    """An enum value; numeric values are accepted but cannot be emitted."""

    model_config = ConfigDict(extra="forbid")

    value: str | int | float
    doc: str | None = None
    external_docs: ExternalDocsDocument | None = None


class EnumDocument(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str
    entity_name: str | None = None
    doc: str | None = None
    external_docs: ExternalDocsDocument | None = None
    members: list[EnumMemberDocument] = Field(default_factory=list)

    @field_validator("members", mode="before")
    @classmethod
    def _wrap_plain_members(cls, value: object) -> object:
        if isinstance(value, list):
            return [
                {"value": member} if not isinstance(member, dict) else member
                for member in value
            ]
        return value


class ColumnDocument(BaseModel):
    """One column (model property).

    Exactly one of ``type``, ``enum``, ``union`` or ``references`` decides
    the data type; ``references`` may be combined with ``type`` to declare
    the expected key type explicitly.
    """

    model_config = ConfigDict(extra="forbid")

    name: str
    type: str | None = None
    enum: str | None = None
    union: list[ScalarValue | None] | None = None
    references: str | None = None
    key: bool = False
    optional: bool = False
    array: bool = False
    default: ScalarValue | None = None
    check: str | None = None
    unique: bool | str = False
    format: str | None = None
    min_value: int | float | None = None
    max_value: int | float | None = None
    min_length: int | None = None
    max_length: int | None = None
    doc: str | None = None
    external_docs: ExternalDocsDocument | None = None


class ForeignKeyDocument(BaseModel):
    """Explicit foreign key over existing columns of the same table."""

    model_config = ConfigDict(extra="forbid")

    columns: list[str]
    references: str


class TableDocument(BaseModel):
    """A model.  An empty ``name`` declares an anonymous model."""

    model_config = ConfigDict(extra="forbid")

    name: str = ""
    entity_name: str | None = None
    entity: bool = True
    doc: str | None = None
    external_docs: ExternalDocsDocument | None = None
    columns: list[ColumnDocument] = Field(default_factory=list)
    checks: list[str] = Field(default_factory=list)
    foreign_keys: list[ForeignKeyDocument] = Field(default_factory=list)

    def key_columns(self) -> list[ColumnDocument]:
        return [column for column in self.columns if column.key and not column.optional]


class NamespaceDocument(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str
    tables: list[TableDocument] = Field(default_factory=list)
    enums: list[EnumDocument] = Field(default_factory=list)
    namespaces: list["NamespaceDocument"] = Field(default_factory=list)


class ServiceDocument(BaseModel):
    """One emission unit: produces one output file."""

    model_config = ConfigDict(extra="forbid")

    name: str
    version: str | None = None
    tables: list[TableDocument] = Field(default_factory=list)
    enums: list[EnumDocument] = Field(default_factory=list)
    namespaces: list[NamespaceDocument] = Field(default_factory=list)


class SchemaDocument(BaseModel):
    model_config = ConfigDict(extra="forbid")

    services: list[ServiceDocument] = Field(default_factory=list)


# ============================================================================
# Loading
# ============================================================================


def load_schema_document(path: Path) -> SchemaDocument:
    """Load a schema document from a ``.json`` or ``.toml`` file.

    Args:
        path: Path to the schema document.

    Returns:
        Validated SchemaDocument.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ValueError: If the file is not valid JSON/TOML or does not match
            the document format.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Schema document not found: {path}")

    if path.suffix.lower() == ".json":
        data = json.loads(path.read_text())
    else:
        with open(path, "rb") as f:
            data = tomllib.load(f)

    return SchemaDocument.model_validate(data)
