"""Schema core: entity model, naming, assembly and DDL rendering.

Provides the entity model (``Table``, ``SqlEnum``, ``UnionEnum``,
``Namespace``), identifier assignment (``NamingConflictResolver``), table
ordering with cycle breaking (``SchemaRoot``), DDL rendering
(``DdlSerializer``) and the document builder (``SchemaBuilder``).

Usage:
    from ddl_emitter.schema import SchemaRoot, NamingConflictResolver
    from ddl_emitter.schema import SchemaBuilder, load_schema_document
"""

from ddl_emitter.schema.builder import SchemaBuilder
from ddl_emitter.schema.document import SchemaDocument, ServiceDocument, load_schema_document
from ddl_emitter.schema.errors import (
    DuplicateEntityCollisionError,
    InternalInvariantError,
    NameTooLongError,
    NamingConflictError,
    ReservedKeywordError,
)
from ddl_emitter.schema.naming import NamingConflictResolver, NamingError, NamingErrorKind, RegistrationResult
from ddl_emitter.schema.root import AddEntityResult, RootState, SchemaRoot, TableOrdering
from ddl_emitter.schema.serializer import DdlSerializer, NewLineType

__all__ = [
    # Builder
    "SchemaBuilder",
    "SchemaDocument",
    "ServiceDocument",
    "load_schema_document",
    # Errors
    "InternalInvariantError",
    "NamingConflictError",
    "ReservedKeywordError",
    "DuplicateEntityCollisionError",
    "NameTooLongError",
    # Naming
    "NamingConflictResolver",
    "NamingError",
    "NamingErrorKind",
    "RegistrationResult",
    # Root
    "SchemaRoot",
    "RootState",
    "AddEntityResult",
    "TableOrdering",
    # Serializer
    "DdlSerializer",
    "NewLineType",
]
