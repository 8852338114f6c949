"""Graph package - the flow graph model and validation engine.

GraphStore owns the graph and is the only mutator. Connection requests go
through validate_connection, saves are gated on is_fully_connected, and
SelectionController tracks what the edit surface has selected.
"""

from flowbuilder.graph.models import (
    DEFAULT_MESSAGE,
    DEFAULT_NEXT_NODE_ID,
    DEFAULT_NODE_ID,
    ConnectionCandidate,
    Edge,
    FlowGraph,
    MessagePayload,
    Node,
    Position,
    edge_id_for,
)
from flowbuilder.graph.errors import (
    GraphCorruptionError,
    Rejection,
    RejectionReason,
    SaveBlocked,
)
from flowbuilder.graph.algorithms import (
    assert_invariants,
    disconnected_nodes,
    find_cycle,
    is_fully_connected,
    start_and_end_nodes,
    validate_invariants,
)
from flowbuilder.graph.validation import Accept, validate_connection, would_create_cycle
from flowbuilder.graph.store import GraphStore, PlacementBounds
from flowbuilder.graph.selection import SelectionController, SelectionState

__all__ = [
    "DEFAULT_MESSAGE",
    "DEFAULT_NEXT_NODE_ID",
    "DEFAULT_NODE_ID",
    "Accept",
    "ConnectionCandidate",
    "Edge",
    "FlowGraph",
    "GraphCorruptionError",
    "GraphStore",
    "MessagePayload",
    "Node",
    "PlacementBounds",
    "Position",
    "Rejection",
    "RejectionReason",
    "SaveBlocked",
    "SelectionController",
    "SelectionState",
    "assert_invariants",
    "disconnected_nodes",
    "edge_id_for",
    "find_cycle",
    "is_fully_connected",
    "start_and_end_nodes",
    "validate_connection",
    "validate_invariants",
    "would_create_cycle",
]
