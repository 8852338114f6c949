"""Read-only graph algorithms.

Pure functions over a FlowGraph snapshot. ``is_fully_connected`` gates the
save action; ``validate_invariants`` audits a graph that did not come
through GraphStore (e.g. one loaded from storage).
"""

from __future__ import annotations

from collections import Counter
from typing import TYPE_CHECKING

from flowbuilder.graph.errors import GraphCorruptionError
from flowbuilder.observability.logging import get_logger

if TYPE_CHECKING:
    from flowbuilder.graph.models import FlowGraph

log = get_logger(__name__)


def _endpoint_ids(graph: FlowGraph) -> set[str]:
    connected: set[str] = set()
    for edge in graph.edges:
        connected.add(edge.source_node_id)
        connected.add(edge.target_node_id)
    return connected


def is_fully_connected(graph: FlowGraph) -> bool:
    """Check whether every node takes part in the flow.

    A graph with zero or one node is connected by definition. Otherwise
    every node id must appear as the source or target of at least one edge.
    This is a save gate, not an acyclicity check.
    """
    if len(graph.nodes) <= 1:
        return True
    connected = _endpoint_ids(graph)
    return all(node.id in connected for node in graph.nodes)


def disconnected_nodes(graph: FlowGraph) -> list[str]:
    """Return ids of nodes without any incident edge, in node order.

    Always empty for graphs with at most one node, consistent with
    :func:`is_fully_connected`.
    """
    if len(graph.nodes) <= 1:
        return []
    connected = _endpoint_ids(graph)
    return [node.id for node in graph.nodes if node.id not in connected]


def start_and_end_nodes(graph: FlowGraph) -> tuple[list[str], list[str]]:
    """Find where the flow starts and where it ends.

    Start nodes have outgoing edges but no incoming edges; end nodes have
    incoming edges but no outgoing edges. Isolated nodes are neither.

    Returns:
        ``(start_ids, end_ids)``, each in node order.
    """
    sources = {edge.source_node_id for edge in graph.edges}
    targets = {edge.target_node_id for edge in graph.edges}
    starts = [n.id for n in graph.nodes if n.id in sources and n.id not in targets]
    ends = [n.id for n in graph.nodes if n.id in targets and n.id not in sources]
    return starts, ends


def find_cycle(graph: FlowGraph) -> list[str] | None:
    """Find one directed cycle, if any.

    Iterative three-colour depth-first search over all nodes.

    Returns:
        Node ids along the cycle with the first id repeated at the end
        (e.g. ``["a", "b", "a"]``), or None if the graph is acyclic.
    """
    adjacency = graph.adjacency()
    on_path, done = 1, 2
    state: dict[str, int] = {}

    for root in adjacency:
        if root in state:
            continue
        state[root] = on_path
        path = [root]
        pending = [iter(adjacency[root])]
        while pending:
            nxt = next(pending[-1], None)
            if nxt is None:
                state[path.pop()] = done
                pending.pop()
                continue
            seen = state.get(nxt)
            if seen == on_path:
                return [*path[path.index(nxt) :], nxt]
            if seen is None:
                state[nxt] = on_path
                path.append(nxt)
                pending.append(iter(adjacency.get(nxt, [])))
    return None


def validate_invariants(graph: FlowGraph) -> list[str]:
    """Check graph invariants and return any violations.

    Invariants checked:
    1. Node ids and edge ids are unique
    2. All edge endpoints exist (no dangling edges)
    3. No self-loops
    4. At most one outgoing edge per (source node, source handle)
    5. The edge set is acyclic
    6. The id allocator is ahead of every numeric node id

    Returns:
        List of violation messages (empty if valid).
    """
    violations: list[str] = []

    for node_id, count in Counter(graph.node_ids()).items():
        if count > 1:
            violations.append(f"Node id '{node_id}' used {count} times")
    for edge_id, count in Counter(e.id for e in graph.edges).items():
        if count > 1:
            violations.append(f"Edge id '{edge_id}' used {count} times")

    node_ids = set(graph.node_ids())
    for edge in graph.edges:
        if edge.source_node_id not in node_ids:
            violations.append(f"Edge {edge.id}: source '{edge.source_node_id}' does not exist")
        if edge.target_node_id not in node_ids:
            violations.append(f"Edge {edge.id}: target '{edge.target_node_id}' does not exist")
        if edge.source_node_id == edge.target_node_id:
            violations.append(f"Edge {edge.id}: self-loop on '{edge.source_node_id}'")

    for (source, handle), count in Counter(e.source_key for e in graph.edges).items():
        if count > 1:
            violations.append(
                f"Source '{source}' handle {handle!r} has {count} outgoing edges (max 1)"
            )

    cycle = find_cycle(graph)
    if cycle:
        violations.append("Cycle: " + " -> ".join(cycle))

    numeric_ids = [int(n) for n in node_ids if n.isdigit()]
    if numeric_ids and graph.next_node_id <= max(numeric_ids):
        violations.append(
            f"Allocator next value {graph.next_node_id} would reuse node id {max(numeric_ids)}"
        )

    return violations


def assert_invariants(graph: FlowGraph, context: str = "") -> None:
    """Raise GraphCorruptionError if *graph* breaks any invariant."""
    violations = validate_invariants(graph)
    if violations:
        log.warning("graph_invariants_violated", context=context, count=len(violations))
        raise GraphCorruptionError(violations, context=context)
