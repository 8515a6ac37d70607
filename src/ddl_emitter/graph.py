"""Directed graph used to order tables by their foreign-key references.

Nodes are kept in insertion order and every adjacency set preserves the
order in which its edges were added, so both traversals below are
deterministic for a given construction sequence.

Usage:
    from ddl_emitter.graph import DirectedGraph

    graph: DirectedGraph[str] = DirectedGraph()
    graph.add_edge("chapters", "books")
    graph.add_edge("reviews", "chapters")

    graph.reference_hierarchy_sort()
    # ['books', 'chapters', 'reviews']
"""

from collections.abc import Hashable
from typing import Generic, TypeVar

T = TypeVar("T", bound=Hashable)


class DirectedGraph(Generic[T]):
    """Adjacency-set graph with no knowledge of the node type.

    Example:
        >>> graph = DirectedGraph()
        >>> graph.add_edge("a", "b")
        >>> graph.get_edges()
        [('a', 'b')]
    """

    def __init__(self) -> None:
        # dict-of-dicts as ordered sets
        self._adjacency: dict[T, dict[T, None]] = {}

    def add_node(self, node: T) -> None:
        """Add *node* if it is not part of the graph yet."""
        if node not in self._adjacency:
            self._adjacency[node] = {}

    def add_edge(self, source: T, target: T) -> None:
        """Add an edge from *source* to *target*.

        Self-edges are ignored: a table referencing itself can always be
        created in one statement, so it never constrains the ordering.
        """
        if source == target:
            return
        self.add_node(source)
        self.add_node(target)
        self._adjacency[source][target] = None

    def nodes(self) -> list[T]:
        """All nodes in insertion order."""
        return list(self._adjacency)

    def out_neighbors(self, node: T) -> list[T]:
        """Targets of the edges leaving *node*.

        Raises:
            KeyError: If *node* is not part of the graph.
        """
        return list(self._adjacency[node])

    def get_edges(self) -> list[tuple[T, T]]:
        """All edges as ``(source, target)`` tuples."""
        return [
            (source, target)
            for source, targets in self._adjacency.items()
            for target in targets
        ]

    def remove_node(self, node: T) -> None:
        """Remove *node* and every edge touching it.

        Removing an unknown node is a no-op.
        """
        if node not in self._adjacency:
            return
        del self._adjacency[node]
        for targets in self._adjacency.values():
            targets.pop(node, None)

    def reference_hierarchy_sort(self) -> list[T]:
        """Order nodes so that every node comes after the nodes it points to.

        Post-order depth-first traversal: a node is appended only once all
        of its out-neighbors have been visited.  On an acyclic graph this
        places referenced tables before referencing tables.

        Returns:
            Nodes with dependencies first.
        """
        visited: set[T] = set()
        result: list[T] = []

        for start in self.nodes():
            if start in visited:
                continue
            visited.add(start)
            # explicit (node, remaining neighbors) frames; reference chains
            # can be longer than the interpreter's recursion limit
            frames = [(start, iter(self.out_neighbors(start)))]
            while frames:
                node, neighbors = frames[-1]
                for neighbor in neighbors:
                    if neighbor not in visited:
                        visited.add(neighbor)
                        frames.append((neighbor, iter(self.out_neighbors(neighbor))))
                        break
                else:
                    frames.pop()
                    result.append(node)

        return result

    def get_nodes_in_cycles(self) -> list[T]:
        """Nodes from which a back-edge was reached during a DFS walk.

        When a neighbor that is still on the DFS stack is reached, every
        node on the current path is reported, innermost first, and the walk
        from the current start node ends.  Nodes on a path that reported a
        cycle are never popped from the stack, so later paths that run into
        them are reported too.  The result is therefore a superset of the
        minimal set of nodes needed to break all cycles; callers rely on
        exactly this shape.

        Returns:
            Cycle nodes in detection order (innermost first).
        """
        visited: set[T] = set()
        stack: set[T] = set()
        cycle_nodes: dict[T, None] = {}

        for start in self.nodes():
            if start in visited:
                continue
            visited.add(start)
            stack.add(start)
            frames = [(start, iter(self.out_neighbors(start)))]
            while frames:
                node, neighbors = frames[-1]
                for neighbor in neighbors:
                    if neighbor in stack:
                        for path_node, _ in reversed(frames):
                            cycle_nodes[path_node] = None
                        frames.clear()
                        break
                    if neighbor not in visited:
                        visited.add(neighbor)
                        stack.add(neighbor)
                        frames.append((neighbor, iter(self.out_neighbors(neighbor))))
                        break
                else:
                    frames.pop()
                    stack.discard(node)

        return list(cycle_nodes)

    def __len__(self) -> int:
        return len(self._adjacency)

    def __contains__(self, node: object) -> bool:
        return node in self._adjacency
