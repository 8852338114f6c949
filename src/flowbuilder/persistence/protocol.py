"""Persistence adapter protocol and the persisted record layout.

The durable state is three independent keyed records:

- ``nodes``: ordered list of node records
- ``edges``: ordered list of edge records
- ``nextNodeId``: the id allocator's next value

Adapters only move JSON-compatible values in and out of storage. Converting
between records and a FlowGraph happens here, in PersistedState, so every
backend shares one layout.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from flowbuilder.graph.models import Edge, FlowGraph, Node

NODES_KEY = "nodes"
EDGES_KEY = "edges"
NEXT_NODE_ID_KEY = "nextNodeId"

# Write order. Edges go first: when a commit removes nodes, the edges that
# pointed at them are already gone if a later write fails.
RECORD_KEYS = (EDGES_KEY, NODES_KEY, NEXT_NODE_ID_KEY)


@runtime_checkable
class PersistenceAdapter(Protocol):
    """Durable key/value storage for the flow graph.

    Implementations store JSON-compatible values under string keys.
    Retry and backoff on storage failures are the adapter's business;
    callers simply attempt a write after every commit.
    """

    def read(self, key: str) -> Any:
        """Return the stored value for *key*, or None if absent."""
        ...

    def write(self, key: str, value: Any) -> None:
        """Store *value* under *key*, replacing any previous value."""
        ...

    def close(self) -> None:
        """Release any underlying resources."""
        ...


@dataclass(frozen=True)
class PersistedState:
    """The three keyed records, each None when storage has no value yet."""

    nodes: list[dict[str, Any]] | None = None
    edges: list[dict[str, Any]] | None = None
    next_node_id: int | None = None

    @property
    def is_empty(self) -> bool:
        return self.nodes is None and self.edges is None and self.next_node_id is None

    @classmethod
    def from_graph(cls, graph: FlowGraph) -> PersistedState:
        return cls(
            nodes=[node.to_record() for node in graph.nodes],
            edges=[edge.to_record() for edge in graph.edges],
            next_node_id=graph.next_node_id,
        )

    @classmethod
    def read_from(cls, adapter: PersistenceAdapter) -> PersistedState:
        """Read all three records from *adapter*."""
        next_node_id = adapter.read(NEXT_NODE_ID_KEY)
        return cls(
            nodes=adapter.read(NODES_KEY),
            edges=adapter.read(EDGES_KEY),
            next_node_id=int(next_node_id) if next_node_id is not None else None,
        )

    def write_to(self, adapter: PersistenceAdapter) -> None:
        """Write every record to *adapter* in ``RECORD_KEYS`` order."""
        for key, value in self.records():
            adapter.write(key, value)

    def records(self) -> list[tuple[str, Any]]:
        values = {NODES_KEY: self.nodes, EDGES_KEY: self.edges, NEXT_NODE_ID_KEY: self.next_node_id}
        return [(key, values[key]) for key in RECORD_KEYS]

    def to_graph(self, default: FlowGraph | None = None) -> FlowGraph:
        """Build a FlowGraph, taking missing records from *default*.

        Raises:
            pydantic.ValidationError: If a stored record is malformed.
            KeyError: If a node record lacks an ``id``.
        """
        base = default or FlowGraph.default()
        nodes = (
            tuple(Node.from_record(r) for r in self.nodes) if self.nodes is not None else base.nodes
        )
        edges = (
            tuple(Edge.from_record(r) for r in self.edges) if self.edges is not None else base.edges
        )
        next_node_id = self.next_node_id if self.next_node_id is not None else base.next_node_id
        return FlowGraph(nodes=nodes, edges=edges, next_node_id=next_node_id)
