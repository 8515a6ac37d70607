"""Schema assembly root.

Collects the entities of one emission pass, registers them with a naming
resolver, orders the tables so every foreign key can be satisfied at
creation time and drives serialization.

Lifecycle:
    EMPTY -> POPULATED -> ORDERED -> SERIALIZED

Reference cycles are broken by stripping every foreign key of every table
flagged by ``DirectedGraph.get_nodes_in_cycles()`` and re-adding those keys
as ``ALTER TABLE ... ADD FOREIGN KEY`` statements after all tables exist.

Usage:
    from ddl_emitter.schema.root import SchemaRoot

    root = SchemaRoot()
    for entity in entities:
        result = root.add_element(entity)
        if result.error:
            print(result.error.kind, result.error.name)

    sql = root.to_sql(new_line="lf", save_mode=False)
"""

import logging
from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel

from ddl_emitter.graph import DirectedGraph
from ddl_emitter.schema.errors import InternalInvariantError
from ddl_emitter.schema.models import (
    AlterTableAddColumns,
    AlterTableForeignKey,
    Entity,
    Namespace,
    RootLevelElement,
    SqlEnum,
    Table,
    UnionEnum,
)
from ddl_emitter.schema.naming import NamingConflictResolver, NamingError
from ddl_emitter.schema.serializer import DdlSerializer, NewLineType, get_new_line

logger = logging.getLogger(__name__)


class RootState(str, Enum):
    EMPTY = "empty"
    POPULATED = "populated"
    ORDERED = "ordered"
    SERIALIZED = "serialized"


class AddEntityResult(BaseModel):
    """Outcome of ``SchemaRoot.add_element()``.

    Attributes:
        registered: True if the entity was added.  False for an entity that
            was already added or whose name could not be resolved.
        warning: The entity identifier was suffixed to stay unique.
        namespace_warning: The namespace identifier was suffixed.
        name: Resolved identifier of the entity.
        error: Why the entity could not be registered.
    """

    registered: bool
    warning: bool = False
    namespace_warning: bool = False
    name: str | None = None
    error: NamingError | None = None


@dataclass
class TableOrdering:
    """Tables in creation order plus the foreign keys deferred after them."""

    tables: list[Table] = field(default_factory=list)
    alter_statements: list[AlterTableForeignKey] = field(default_factory=list)


# Non-table elements are emitted namespaces first, then enums, then the
# enums synthesized from unions.
_ELEMENT_RANK: dict[type, int] = {Namespace: 0, SqlEnum: 1, UnionEnum: 2}


class SchemaRoot:
    """Arena of the root-level elements of one emission pass.

    Elements are keyed by handle in registration order.  Each root owns its
    own ``NamingConflictResolver`` unless one is passed in.
    """

    def __init__(self, resolver: NamingConflictResolver | None = None) -> None:
        self.resolver = resolver if resolver is not None else NamingConflictResolver()
        self._elements: dict[int, RootLevelElement] = {}
        self.state = RootState.EMPTY

    # ------------------------------------------------------------------
    # Population
    # ------------------------------------------------------------------

    def add_element(self, entity: Table | SqlEnum | UnionEnum) -> AddEntityResult:
        """Register *entity* and its namespace, then add both to the arena.

        The namespace is registered first so the entity identifier can be
        prefixed with it.  A namespace stays registered even if the entity
        itself is rejected afterwards.

        Raises:
            InternalInvariantError: If the root was already serialized.
        """
        if self.state is RootState.SERIALIZED:
            raise InternalInvariantError("Cannot add elements after serialization")

        if entity.handle in self._elements:
            return AddEntityResult(registered=False)

        namespace_warning = False
        namespace = entity.naming_namespace
        if namespace is not None and namespace.handle not in self._elements:
            namespace_result = self.resolver.register_namespace(namespace)
            if not namespace_result.success:
                logger.info(f"Namespace {namespace.full_name!r} rejected: {namespace_result.error.kind.value}")
                return AddEntityResult(registered=False, error=namespace_result.error)
            self._elements[namespace.handle] = namespace
            namespace_warning = namespace_result.warning
            logger.debug(f"Registered namespace {namespace.full_name!r} as {namespace_result.name!r}")

        result = self.resolver.register(entity)
        if not result.success:
            logger.info(f"Entity {entity.name!r} rejected: {result.error.kind.value}")
            return AddEntityResult(
                registered=False, namespace_warning=namespace_warning, error=result.error
            )

        self._elements[entity.handle] = entity
        self.state = RootState.POPULATED
        logger.debug(f"Registered {type(entity).__name__} {entity.name!r} as {result.name!r}")
        return AddEntityResult(
            registered=True,
            warning=result.warning,
            namespace_warning=namespace_warning,
            name=result.name,
        )

    def elements(self) -> list[RootLevelElement]:
        """All root-level elements in registration order."""
        return list(self._elements.values())

    def tables(self) -> list[Table]:
        return [element for element in self._elements.values() if isinstance(element, Table)]

    def get_element(self, handle: int) -> RootLevelElement | None:
        return self._elements.get(handle)

    def identifier_of(self, entity: Entity | Namespace) -> str:
        return self.resolver.lookup(entity)

    # ------------------------------------------------------------------
    # Ordering
    # ------------------------------------------------------------------

    def build_graph(self) -> DirectedGraph[int]:
        """Graph of table handles with an edge per foreign key.

        Raises:
            InternalInvariantError: If a foreign key references a table that
                is not part of this root.
        """
        graph: DirectedGraph[int] = DirectedGraph()
        tables = self.tables()
        for table in tables:
            graph.add_node(table.handle)

        for table in tables:
            for referenced in table.referenced_tables():
                if not isinstance(self._elements.get(referenced.handle), Table):
                    raise InternalInvariantError(
                        f"Did not find the referenced table '{referenced.name}' of '{table.name}'"
                    )
                graph.add_edge(table.handle, referenced.handle)
        return graph

    def order_tables(self) -> TableOrdering:
        """Creation order of the tables, breaking reference cycles.

        The entities in the arena are never modified; tables whose foreign
        keys were deferred are returned as stripped copies.

        Raises:
            InternalInvariantError: If a foreign key target is missing or a
                cycle survives cycle breaking.
        """
        graph = self.build_graph()
        tables = self.tables()

        if not graph.get_edges():
            ordering = TableOrdering(tables=tables)
        else:
            cycle_nodes = graph.get_nodes_in_cycles()
            if cycle_nodes:
                ordering = self._break_cycles(graph, cycle_nodes)
            else:
                ordering = TableOrdering(tables=[self._elements[h] for h in graph.reference_hierarchy_sort()])

        if self.state is not RootState.SERIALIZED:
            self.state = RootState.ORDERED
        return ordering

    def _break_cycles(self, graph: DirectedGraph[int], cycle_nodes: list[int]) -> TableOrdering:
        ordering = TableOrdering()
        for handle in cycle_nodes:
            table: Table = self._elements[handle]
            table_name = self.resolver.lookup(table)

            for column in table.columns_with_foreign_keys():
                for foreign_key in column.foreign_keys:
                    ordering.alter_statements.append(
                        AlterTableForeignKey(
                            table_name=table_name,
                            columns=(column.name,),
                            referenced_table_name=self.resolver.lookup(foreign_key.referenced_table),
                        )
                    )
            for foreign_key in table.composite_foreign_keys():
                ordering.alter_statements.append(
                    AlterTableForeignKey(
                        table_name=table_name,
                        columns=tuple(foreign_key.columns),
                        referenced_table_name=self.resolver.lookup(foreign_key.referenced_table),
                    )
                )

            ordering.tables.append(table.without_foreign_keys())
            graph.remove_node(handle)

        if graph.get_nodes_in_cycles():
            raise InternalInvariantError("Could not remove all cycles from the reference graph")

        logger.info(
            f"Broke reference cycles: deferred {len(ordering.alter_statements)} foreign key(s) "
            f"of {len(cycle_nodes)} table(s)"
        )
        ordering.tables.extend(self._elements[h] for h in graph.reference_hierarchy_sort())
        return ordering

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def statements(self, save_mode: bool = False) -> list[object]:
        """Every element and synthesized statement in emission order."""
        others = sorted(
            (e for e in self._elements.values() if not isinstance(e, Table)),
            key=lambda e: _ELEMENT_RANK[type(e)],
        )
        ordering = self.order_tables()

        add_columns = []
        if save_mode:
            add_columns = [AlterTableAddColumns(table) for table in ordering.tables if table.has_body()]

        return [*others, *ordering.tables, *add_columns, *ordering.alter_statements]

    def to_sql(self, new_line: NewLineType | str = NewLineType.LF, save_mode: bool = False) -> str:
        """Render the whole pass, statements separated by one blank line.

        May be called repeatedly; the output is identical every time.
        """
        serializer = DdlSerializer(self.resolver, new_line=new_line, save_mode=save_mode)
        rendered = [serializer.render(statement) for statement in self.statements(save_mode)]
        self.state = RootState.SERIALIZED
        return get_new_line(new_line, 2).join(rendered)
