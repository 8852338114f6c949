"""Pydantic models for the flow graph.

Nodes, edges and whole-graph snapshots are frozen models: every commit in
GraphStore produces a new FlowGraph rather than mutating the old one, so a
snapshot handed to a renderer can never change underneath it.

Persisted records use the camelCase keys of the stored layout
(``sourceNodeId``, ``nextNodeId``, ...); Python code uses snake_case
attribute names.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_NODE_ID = "1"
DEFAULT_NEXT_NODE_ID = 2
DEFAULT_MESSAGE = "Hello! Welcome to our Bitespeed."
DEFAULT_POSITION = (250.0, 50.0)


class Position(BaseModel):
    """Free-form canvas coordinates of a node."""

    model_config = ConfigDict(frozen=True)

    x: float = 0.0
    y: float = 0.0


class MessagePayload(BaseModel):
    """Payload of a "send message" step."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["message"] = "message"
    message: str


# Step payloads are tagged on ``kind``. Additional step kinds join this alias
# as an ``Annotated[A | B, Field(discriminator="kind")]`` union.
StepPayload = MessagePayload


class Node(BaseModel):
    """A single flow step.

    Attributes:
        id: Unique, never reused node identifier.
        position: Where the node sits on the canvas.
        payload: Step content, tagged by ``kind``.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    position: Position = Field(default_factory=Position)
    payload: StepPayload

    @property
    def kind(self) -> str:
        return self.payload.kind

    @property
    def message(self) -> str:
        return self.payload.message

    def with_message(self, message: str) -> Node:
        """Return a copy with only the message replaced."""
        payload = self.payload.model_copy(update={"message": message})
        return self.model_copy(update={"payload": payload})

    def to_record(self) -> dict[str, Any]:
        """Flatten to the persisted node record."""
        return {
            "id": self.id,
            "kind": self.kind,
            "position": {"x": self.position.x, "y": self.position.y},
            "message": self.message,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Node:
        """Build a node from a persisted record.

        Accepts the flat layout written by :meth:`to_record` as well as the
        nested ``data.message`` layout older stores used.
        """
        message = record.get("message")
        if message is None:
            message = (record.get("data") or {}).get("message", "")
        return cls(
            id=str(record["id"]),
            position=Position.model_validate(record.get("position") or {}),
            payload=MessagePayload(message=str(message)),
        )


class ConnectionCandidate(BaseModel):
    """A proposed edge that has not been validated yet."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    source_node_id: str = Field(alias="sourceNodeId")
    source_handle_id: str | None = Field(default=None, alias="sourceHandleId")
    target_node_id: str = Field(alias="targetNodeId")
    target_handle_id: str | None = Field(default=None, alias="targetHandleId")

    @property
    def source_key(self) -> tuple[str, str | None]:
        """The ``(node, handle)`` pair that may carry at most one outgoing edge."""
        return (self.source_node_id, self.source_handle_id)


class Edge(ConnectionCandidate):
    """A committed, directed connection between two nodes."""

    id: str = Field(min_length=1)

    @classmethod
    def from_candidate(cls, candidate: ConnectionCandidate, edge_id: str) -> Edge:
        return cls(
            id=edge_id,
            source_node_id=candidate.source_node_id,
            source_handle_id=candidate.source_handle_id,
            target_node_id=candidate.target_node_id,
            target_handle_id=candidate.target_handle_id,
        )

    def touches(self, node_id: str) -> bool:
        """True if *node_id* is either endpoint."""
        return node_id in (self.source_node_id, self.target_node_id)

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Edge:
        # Older stores used the renderer's short keys.
        normalized = {
            "id": record.get("id"),
            "sourceNodeId": record.get("sourceNodeId", record.get("source")),
            "sourceHandleId": record.get("sourceHandleId", record.get("sourceHandle")),
            "targetNodeId": record.get("targetNodeId", record.get("target")),
            "targetHandleId": record.get("targetHandleId", record.get("targetHandle")),
        }
        return cls.model_validate(normalized)


def edge_id_for(candidate: ConnectionCandidate) -> str:
    """Derive the conventional edge id for a connection."""
    return (
        f"xy-edge__{candidate.source_node_id}{candidate.source_handle_id or ''}"
        f"-{candidate.target_node_id}{candidate.target_handle_id or ''}"
    )


class FlowGraph(BaseModel):
    """Immutable snapshot of the flow: nodes, edges and the id allocator.

    Attributes:
        nodes: Nodes in creation order.
        edges: Edges in creation order.
        next_node_id: Next value the id allocator will hand out.
    """

    model_config = ConfigDict(frozen=True)

    nodes: tuple[Node, ...] = ()
    edges: tuple[Edge, ...] = ()
    next_node_id: int = Field(default=DEFAULT_NEXT_NODE_ID, ge=1)

    @classmethod
    def default(cls) -> FlowGraph:
        """The single-node graph a fresh or reset editor starts with."""
        x, y = DEFAULT_POSITION
        welcome = Node(
            id=DEFAULT_NODE_ID,
            position=Position(x=x, y=y),
            payload=MessagePayload(message=DEFAULT_MESSAGE),
        )
        return cls(nodes=(welcome,), edges=(), next_node_id=DEFAULT_NEXT_NODE_ID)

    # -- Lookups ---------------------------------------------------------------

    def node_ids(self) -> list[str]:
        return [node.id for node in self.nodes]

    def has_node(self, node_id: str) -> bool:
        return any(node.id == node_id for node in self.nodes)

    def get_node(self, node_id: str) -> Node | None:
        return next((node for node in self.nodes if node.id == node_id), None)

    def has_edge(self, edge_id: str) -> bool:
        return any(edge.id == edge_id for edge in self.edges)

    def get_edge(self, edge_id: str) -> Edge | None:
        return next((edge for edge in self.edges if edge.id == edge_id), None)

    def edges_from(self, node_id: str) -> list[Edge]:
        return [edge for edge in self.edges if edge.source_node_id == node_id]

    def edges_referencing(self, node_id: str) -> list[Edge]:
        return [edge for edge in self.edges if edge.touches(node_id)]

    def adjacency(self) -> dict[str, list[str]]:
        """Map every node id to the targets of its outgoing edges."""
        adjacency: dict[str, list[str]] = {node.id: [] for node in self.nodes}
        for edge in self.edges:
            adjacency.setdefault(edge.source_node_id, []).append(edge.target_node_id)
        return adjacency

    def __repr__(self) -> str:
        return (
            f"FlowGraph(nodes={len(self.nodes)}, edges={len(self.edges)}, "
            f"next_node_id={self.next_node_id})"
        )
