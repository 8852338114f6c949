"""GraphStore: the single owner and mutator of the flow graph.

Every mutation goes through a GraphStore method. A successful mutation is a
commit: the store swaps in a new immutable FlowGraph, hands it to the
OrderedWriter for persistence, then notifies listeners. Failed intents
return a Rejection and leave the current snapshot untouched.

No method raises for well-formed input. Unknown ids are reported as
``NOT_FOUND`` rejections or ``None`` results rather than exceptions,
since they only arise from stale references in the edit surface.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import TYPE_CHECKING

from flowbuilder.graph.algorithms import assert_invariants
from flowbuilder.graph.errors import GraphCorruptionError, Rejection, RejectionReason
from flowbuilder.graph.models import (
    DEFAULT_NEXT_NODE_ID,
    Edge,
    FlowGraph,
    MessagePayload,
    Node,
    Position,
    edge_id_for,
)
from flowbuilder.graph.validation import validate_connection
from flowbuilder.observability.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable

    from flowbuilder.graph.models import ConnectionCandidate
    from flowbuilder.persistence.writer import OrderedWriter

log = get_logger(__name__)


@dataclass(frozen=True)
class PlacementBounds:
    """Rectangle new nodes are placed in: ``origin + random * size``."""

    origin_x: float = 100.0
    origin_y: float = 100.0
    width: float = 400.0
    height: float = 400.0


class GraphStore:
    """Owns the canonical node and edge collections and the id allocator.

    Attributes:
        writer: Persistence sink notified after every commit, if any.
    """

    def __init__(
        self,
        graph: FlowGraph | None = None,
        *,
        writer: OrderedWriter | None = None,
        rng: random.Random | None = None,
        placement: PlacementBounds | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            graph: Starting snapshot. Defaults to the single welcome node.
            writer: Where committed snapshots are persisted.
            rng: Random source for node placement.
            placement: Area new nodes are scattered over.
        """
        self._graph = graph if graph is not None else FlowGraph.default()
        self.writer = writer
        self._rng = rng or random.Random()
        self._placement = placement or PlacementBounds()
        self._listeners: list[Callable[[FlowGraph], None]] = []
        self._commit_count = 0

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    @classmethod
    def load(
        cls,
        writer: OrderedWriter,
        *,
        rng: random.Random | None = None,
        placement: PlacementBounds | None = None,
    ) -> GraphStore:
        """Create a store from the records held by *writer*'s adapter.

        Missing records fall back to the default graph. Edges whose endpoints
        are gone (a commit interrupted between its writes) are dropped. A
        stored graph that cannot be parsed or still breaks an invariant is
        discarded in favour of the default graph; the allocator still never
        moves backwards.

        Args:
            writer: Writer whose adapter holds the persisted records.
            rng: Random source for node placement.
            placement: Area new nodes are scattered over.

        Returns:
            A store positioned on the loaded snapshot.
        """
        from flowbuilder.persistence.protocol import NEXT_NODE_ID_KEY, PersistedState

        default = FlowGraph.default()
        graph: FlowGraph | None = None
        try:
            state = PersistedState.read_from(writer.adapter)
            if state.is_empty:
                log.info("graph_loaded", source="default")
                return cls(default, writer=writer, rng=rng, placement=placement)
            graph = _bump_allocator(_drop_dangling_edges(state.to_graph(default)))
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            # pydantic.ValidationError and json.JSONDecodeError are ValueErrors
            log.warning("stored_graph_unreadable", error=str(e), error_type=type(e).__name__)

        if graph is not None:
            try:
                assert_invariants(graph, context="load")
            except GraphCorruptionError as e:
                log.warning(
                    "stored_graph_invalid", count=len(e.violations), first=e.violations[0]
                )
                graph = None

        if graph is None:
            graph = default.model_copy(
                update={"next_node_id": _stored_allocator_floor(writer, NEXT_NODE_ID_KEY)}
            )
            return cls(graph, writer=writer, rng=rng, placement=placement)

        log.info(
            "graph_loaded",
            source="storage",
            nodes=len(graph.nodes),
            edges=len(graph.edges),
            next_node_id=graph.next_node_id,
        )
        return cls(graph, writer=writer, rng=rng, placement=placement)

    # -------------------------------------------------------------------------
    # Snapshot access
    # -------------------------------------------------------------------------

    @property
    def graph(self) -> FlowGraph:
        """The current immutable snapshot."""
        return self._graph

    @property
    def commit_count(self) -> int:
        """Number of commits made through this store."""
        return self._commit_count

    def subscribe(self, listener: Callable[[FlowGraph], None]) -> Callable[[], None]:
        """Call *listener* with each new snapshot after it is committed.

        Returns:
            A function that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # -------------------------------------------------------------------------
    # Node operations
    # -------------------------------------------------------------------------

    def add_node(self, message: str) -> Node | Rejection:
        """Create a message node at a random position.

        Args:
            message: Message text. Rejected if blank after trimming.

        Returns:
            The new node, or an ``EMPTY_MESSAGE`` rejection.
        """
        if not message.strip():
            return Rejection(RejectionReason.EMPTY_MESSAGE)

        node_id, next_value = self._allocate_node_id()
        node = Node(
            id=node_id,
            position=self._random_position(),
            payload=MessagePayload(message=message),
        )
        self._commit(
            self._graph.model_copy(
                update={"nodes": (*self._graph.nodes, node), "next_node_id": next_value}
            ),
            "node_created",
            node_id=node_id,
        )
        return node

    def update_node(self, node_id: str, message: str) -> Node | Rejection:
        """Replace a node's message, keeping its id and position.

        Returns:
            The updated node, or an ``EMPTY_MESSAGE`` / ``NOT_FOUND`` rejection.
        """
        if not message.strip():
            return Rejection(RejectionReason.EMPTY_MESSAGE, node_id=node_id)

        current = self._graph.get_node(node_id)
        if current is None:
            return Rejection(RejectionReason.NOT_FOUND, node_id=node_id)

        updated = current.with_message(message)
        nodes = tuple(updated if n.id == node_id else n for n in self._graph.nodes)
        self._commit(
            self._graph.model_copy(update={"nodes": nodes}), "node_updated", node_id=node_id
        )
        return updated

    def delete_node(self, node_id: str) -> list[Edge] | None:
        """Delete a node together with every edge touching it.

        Node and incident edges disappear in a single commit.

        Returns:
            The removed edges, or None if the node does not exist.
        """
        if not self._graph.has_node(node_id):
            log.debug("delete_node_ignored", node_id=node_id, reason="not_found")
            return None

        removed = self._graph.edges_referencing(node_id)
        nodes = tuple(n for n in self._graph.nodes if n.id != node_id)
        edges = tuple(e for e in self._graph.edges if not e.touches(node_id))
        self._commit(
            self._graph.model_copy(update={"nodes": nodes, "edges": edges}),
            "node_deleted",
            node_id=node_id,
            cascaded_edges=len(removed),
        )
        return removed

    # -------------------------------------------------------------------------
    # Edge operations
    # -------------------------------------------------------------------------

    def add_edge(self, candidate: ConnectionCandidate) -> Edge | Rejection:
        """Validate *candidate* and commit it as a new edge if accepted.

        Returns:
            The committed edge, or the validator's rejection.
        """
        decision = validate_connection(self._graph, candidate)
        if isinstance(decision, Rejection):
            log.info(
                "connection_rejected",
                reason=decision.reason.value,
                source=candidate.source_node_id,
                target=candidate.target_node_id,
            )
            return decision

        edge = Edge.from_candidate(candidate, self._unique_edge_id(candidate))
        self._commit(
            self._graph.model_copy(update={"edges": (*self._graph.edges, edge)}),
            "edge_created",
            edge_id=edge.id,
            source=edge.source_node_id,
            target=edge.target_node_id,
        )
        return edge

    def delete_edge(self, edge_id: str) -> Edge | None:
        """Delete an edge.

        Returns:
            The removed edge, or None if it does not exist.
        """
        edge = self._graph.get_edge(edge_id)
        if edge is None:
            log.debug("delete_edge_ignored", edge_id=edge_id, reason="not_found")
            return None

        edges = tuple(e for e in self._graph.edges if e.id != edge_id)
        self._commit(
            self._graph.model_copy(update={"edges": edges}), "edge_deleted", edge_id=edge_id
        )
        return edge

    # -------------------------------------------------------------------------
    # Reset
    # -------------------------------------------------------------------------

    def reset(self) -> FlowGraph:
        """Replace everything with the default graph and reset the allocator."""
        graph = FlowGraph.default()
        self._commit(graph, "graph_reset")
        return graph

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _commit(self, graph: FlowGraph, event: str, **context: object) -> None:
        self._graph = graph
        self._commit_count += 1
        seq = self.writer.submit(graph) if self.writer is not None else None
        log.info(event, commit=self._commit_count, persisted_as=seq, **context)
        for listener in list(self._listeners):
            listener(graph)

    def _allocate_node_id(self) -> tuple[str, int]:
        """Return ``(new_id, next_allocator_value)``."""
        value = self._graph.next_node_id
        while self._graph.has_node(str(value)):
            value += 1
        return str(value), value + 1

    def _random_position(self) -> Position:
        bounds = self._placement
        return Position(
            x=self._rng.random() * bounds.width + bounds.origin_x,
            y=self._rng.random() * bounds.height + bounds.origin_y,
        )

    def _unique_edge_id(self, candidate: ConnectionCandidate) -> str:
        base = edge_id_for(candidate)
        edge_id, suffix = base, 1
        while self._graph.has_edge(edge_id):
            suffix += 1
            edge_id = f"{base}-{suffix}"
        return edge_id

    def __repr__(self) -> str:
        return f"GraphStore({self._graph!r}, commits={self._commit_count})"


def _stored_allocator_floor(writer: OrderedWriter, key: str) -> int:
    """Best-effort read of the stored allocator so a fallback never reuses ids."""
    try:
        stored = int(writer.adapter.read(key) or 0)
    except (TypeError, ValueError):
        stored = 0
    return max(stored, DEFAULT_NEXT_NODE_ID)


def _bump_allocator(graph: FlowGraph) -> FlowGraph:
    """Move the allocator past every numeric node id already in use."""
    numeric = [int(node_id) for node_id in graph.node_ids() if node_id.isdigit()]
    floor = max(numeric, default=0) + 1
    if graph.next_node_id >= floor:
        return graph
    log.warning("allocator_behind_node_ids", stored=graph.next_node_id, bumped_to=floor)
    return graph.model_copy(update={"next_node_id": floor})


def _drop_dangling_edges(graph: FlowGraph) -> FlowGraph:
    """Remove edges that reference a node missing from *graph*."""
    node_ids = set(graph.node_ids())
    kept = tuple(
        e for e in graph.edges if e.source_node_id in node_ids and e.target_node_id in node_ids
    )
    if len(kept) == len(graph.edges):
        return graph
    dropped = [e.id for e in graph.edges if e not in kept]
    log.warning("dangling_edges_dropped", edges=dropped)
    return graph.model_copy(update={"edges": kept})
