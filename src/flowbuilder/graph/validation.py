"""Connection acceptance rules.

``validate_connection`` is a pure decision function: it never mutates the
graph. GraphStore calls it before committing a new edge.

Checks run in a fixed order and stop at the first failure:

1. Both endpoints exist.
2. The edge is not a self-loop.
3. The source handle has no outgoing edge yet (fan-out of one per handle,
   fan-in is unbounded).
4. The edge would not close a directed cycle.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from flowbuilder.graph.errors import Rejection, RejectionReason

if TYPE_CHECKING:
    from flowbuilder.graph.models import ConnectionCandidate, FlowGraph


@dataclass(frozen=True)
class Accept:
    """The candidate may be committed as-is."""

    candidate: ConnectionCandidate


def would_create_cycle(graph: FlowGraph, candidate: ConnectionCandidate) -> bool:
    """Check whether adding *candidate* would close a directed cycle.

    Searches the existing edges (the candidate is not inserted) depth-first
    from the candidate's target, following outgoing edges. Reaching the
    candidate's source means the new edge would complete a loop.

    The traversal uses an explicit stack and visited set, so it terminates
    on diamond-shaped subgraphs and does not grow the call stack.

    Args:
        graph: Current graph snapshot.
        candidate: Proposed connection.

    Returns:
        True if the connection would create a cycle.
    """
    source = candidate.source_node_id
    adjacency = graph.adjacency()

    visited: set[str] = set()
    stack = [candidate.target_node_id]
    while stack:
        current = stack.pop()
        if current == source:
            return True
        if current in visited:
            continue
        visited.add(current)
        stack.extend(t for t in adjacency.get(current, []) if t not in visited)
    return False


def validate_connection(graph: FlowGraph, candidate: ConnectionCandidate) -> Accept | Rejection:
    """Decide whether *candidate* may be added to *graph*.

    Args:
        graph: Current graph snapshot.
        candidate: Proposed connection.

    Returns:
        ``Accept`` or a ``Rejection`` carrying the first failed rule.
    """
    missing = tuple(
        node_id
        for node_id in dict.fromkeys((candidate.source_node_id, candidate.target_node_id))
        if not graph.has_node(node_id)
    )
    if missing:
        return Rejection(RejectionReason.UNKNOWN_ENDPOINT, candidate=candidate, missing=missing)

    if candidate.source_node_id == candidate.target_node_id:
        return Rejection(
            RejectionReason.SELF_LOOP, node_id=candidate.source_node_id, candidate=candidate
        )

    if any(edge.source_key == candidate.source_key for edge in graph.edges):
        return Rejection(
            RejectionReason.HANDLE_ALREADY_CONNECTED,
            node_id=candidate.source_node_id,
            candidate=candidate,
        )

    if would_create_cycle(graph, candidate):
        return Rejection(RejectionReason.WOULD_CREATE_CYCLE, candidate=candidate)

    return Accept(candidate)
