"""ddl-emitter: PostgreSQL DDL generation from a typed schema model.

Assigns unique, keyword-safe identifiers to tables, enums and namespaces,
orders CREATE TABLE statements so every foreign key can be satisfied
(deferring foreign keys to break reference cycles), and renders plain or
idempotent ("save mode") DDL.

Usage:
    from ddl_emitter import SchemaRoot, Table, Column, PrimitiveColumnType
    from ddl_emitter import emit_document, load_schema_document, EmitterOptions
"""

__version__ = "0.1.0"

# Graph
from ddl_emitter.graph import DirectedGraph

# Config
from ddl_emitter.config.loader import load_emitter_config
from ddl_emitter.config.models import EmitterConfig, EmitterOptions

# Diagnostics
from ddl_emitter.diagnostics import Diagnostic, DiagnosticCollector, DiagnosticSeverity

# Emitter
from ddl_emitter.emitter import EmitResult, emit_document, emit_service, resolve_output_file

# Schema core
from ddl_emitter.schema.document import SchemaDocument, load_schema_document
from ddl_emitter.schema.errors import InternalInvariantError
from ddl_emitter.schema.models import (
    Column,
    EnumColumnType,
    EnumMember,
    Namespace,
    PrimitiveColumnType,
    SqlEnum,
    Table,
    UnionEnum,
)
from ddl_emitter.schema.naming import NamingConflictResolver, RegistrationResult
from ddl_emitter.schema.root import SchemaRoot
from ddl_emitter.schema.serializer import DdlSerializer, NewLineType

__all__ = [
    # Graph
    "DirectedGraph",
    # Config
    "load_emitter_config",
    "EmitterConfig",
    "EmitterOptions",
    # Diagnostics
    "Diagnostic",
    "DiagnosticCollector",
    "DiagnosticSeverity",
    # Emitter
    "EmitResult",
    "emit_document",
    "emit_service",
    "resolve_output_file",
    # Schema core
    "SchemaDocument",
    "load_schema_document",
    "InternalInvariantError",
    "Column",
    "EnumColumnType",
    "EnumMember",
    "Namespace",
    "PrimitiveColumnType",
    "SqlEnum",
    "Table",
    "UnionEnum",
    "NamingConflictResolver",
    "RegistrationResult",
    "SchemaRoot",
    "DdlSerializer",
    "NewLineType",
]
