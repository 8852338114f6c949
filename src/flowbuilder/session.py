"""Editor session: the intent surface an edit surface talks to.

An EditorSession wires one GraphStore, one SelectionController and the save
gate together. The edit surface (renderer, CLI, ...) forwards user intents
to the session methods and reads back three things: the current graph
snapshot, the current selection and a stream of user-facing outcomes.

Save gate::

    EDITING --request_save--> SAVED | BLOCKED
    SAVED / BLOCKED --any commit--> EDITING
"""

from __future__ import annotations

import random
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from flowbuilder.graph.algorithms import disconnected_nodes, is_fully_connected
from flowbuilder.graph.errors import Rejection, SaveBlocked
from flowbuilder.graph.selection import SelectionController, SelectionState
from flowbuilder.graph.store import GraphStore, PlacementBounds
from flowbuilder.observability.logging import get_logger

if TYPE_CHECKING:
    from flowbuilder.config import EditorConfig
    from flowbuilder.graph.models import ConnectionCandidate, Edge, FlowGraph, Node
    from flowbuilder.persistence.writer import OrderedWriter

log = get_logger(__name__)

SAVE_SUCCESS_MESSAGE = "Flow saved successfully! All nodes are properly connected."


class SaveState(str, Enum):
    EDITING = "editing"
    BLOCKED = "blocked"
    SAVED = "saved"


class OutcomeKind(str, Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    SAVED = "saved"
    SAVE_BLOCKED = "save_blocked"


@dataclass(frozen=True)
class Outcome:
    """A user-facing result of an intent.

    Attributes:
        kind: Category of the outcome.
        message: Text to show the user.
        reason: The rejection or save block behind a negative outcome.
    """

    kind: OutcomeKind
    message: str
    reason: Rejection | SaveBlocked | None = None


@dataclass(frozen=True)
class SaveResult:
    """Result of a save request."""

    state: SaveState
    blocked: SaveBlocked | None = None

    @property
    def ok(self) -> bool:
        return self.state is SaveState.SAVED


class EditorSession:
    """Processes editing intents one at a time against a single GraphStore."""

    def __init__(self, store: GraphStore) -> None:
        self.store = store
        self.selection = SelectionController(store)
        self._save_state = SaveState.EDITING
        self._save_blocked: SaveBlocked | None = None
        self._outcomes: list[Outcome] = []
        self._outcome_listeners: list[Callable[[Outcome], None]] = []
        store.subscribe(self._on_commit)

    @classmethod
    def open(cls, config: EditorConfig, writer: OrderedWriter) -> EditorSession:
        """Load the persisted graph and start a session on it.

        Args:
            config: Editor configuration (placement area, random seed).
            writer: Writer holding the configured persistence adapter.
        """
        placement = PlacementBounds(
            origin_x=config.placement.origin_x,
            origin_y=config.placement.origin_y,
            width=config.placement.width,
            height=config.placement.height,
        )
        store = GraphStore.load(writer, rng=random.Random(config.seed), placement=placement)
        return cls(store)

    # -------------------------------------------------------------------------
    # Read side
    # -------------------------------------------------------------------------

    @property
    def graph(self) -> FlowGraph:
        return self.store.graph

    @property
    def selection_state(self) -> SelectionState:
        return self.selection.state

    @property
    def save_state(self) -> SaveState:
        return self._save_state

    @property
    def save_blocked(self) -> SaveBlocked | None:
        """Why the last save was refused, while the gate is BLOCKED."""
        return self._save_blocked

    @property
    def can_save(self) -> bool:
        """Whether a save request would currently succeed."""
        return is_fully_connected(self.store.graph)

    @property
    def outcomes(self) -> list[Outcome]:
        """Every outcome emitted so far, oldest first."""
        return list(self._outcomes)

    def on_outcome(self, listener: Callable[[Outcome], None]) -> Callable[[], None]:
        """Subscribe to outcomes. Returns a function that unsubscribes."""
        self._outcome_listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._outcome_listeners:
                self._outcome_listeners.remove(listener)

        return unsubscribe

    # -------------------------------------------------------------------------
    # Node intents
    # -------------------------------------------------------------------------

    def create_node(self, text: str) -> Node | Rejection:
        result = self.store.add_node(text)
        if isinstance(result, Rejection):
            self._reject(result)
        else:
            self._emit(OutcomeKind.ACCEPTED, f"Created node '{result.id}'.")
        return result

    def update_node(self, node_id: str, text: str) -> Node | Rejection:
        result = self.store.update_node(node_id, text)
        if isinstance(result, Rejection):
            self._reject(result)
        else:
            self._emit(OutcomeKind.ACCEPTED, f"Updated node '{node_id}'.")
            self.selection.clear_selection()
        return result

    def delete_node(self, node_id: str) -> list[Edge] | None:
        """Delete a node and its edges. Callers confirm with the user first."""
        removed = self.store.delete_node(node_id)
        if removed is not None:
            self._emit(
                OutcomeKind.ACCEPTED,
                f"Deleted node '{node_id}' and {len(removed)} connection(s).",
            )
            self.selection.clear_selection()
        return removed

    # -------------------------------------------------------------------------
    # Edge intents
    # -------------------------------------------------------------------------

    def connect(self, candidate: ConnectionCandidate) -> Edge | Rejection:
        result = self.store.add_edge(candidate)
        if isinstance(result, Rejection):
            self._reject(result)
        else:
            self._emit(
                OutcomeKind.ACCEPTED,
                f"Connected '{result.source_node_id}' to '{result.target_node_id}'.",
            )
        return result

    def disconnect_edge(self, edge_id: str) -> Edge | None:
        removed = self.store.delete_edge(edge_id)
        if removed is not None:
            self._emit(OutcomeKind.ACCEPTED, f"Removed connection '{edge_id}'.")
        return removed

    # -------------------------------------------------------------------------
    # Selection intents
    # -------------------------------------------------------------------------

    def select_node(self, node_id: str) -> bool:
        return self.selection.select_node(node_id)

    def select_edge(self, edge_id: str) -> bool:
        return self.selection.select_edge(edge_id)

    def clear_selection(self) -> None:
        self.selection.clear_selection()

    def press_delete_key(self) -> bool:
        """Delete-key intent: removes the selected edge, never a node."""
        return self.selection.handle_delete_key()

    # -------------------------------------------------------------------------
    # Save & reset
    # -------------------------------------------------------------------------

    def request_save(self) -> SaveResult:
        """Run the save gate.

        The graph is never modified. On success any pending background
        writes are flushed so the saved flow is durable.
        """
        graph = self.store.graph
        if not is_fully_connected(graph):
            blocked = SaveBlocked(tuple(disconnected_nodes(graph)))
            self._save_state = SaveState.BLOCKED
            self._save_blocked = blocked
            log.info("save_blocked", disconnected=list(blocked.disconnected))
            self._emit(OutcomeKind.SAVE_BLOCKED, blocked.to_user_message(), blocked)
            return SaveResult(SaveState.BLOCKED, blocked)

        if self.store.writer is not None:
            self.store.writer.flush()
        self._save_state = SaveState.SAVED
        self._save_blocked = None
        log.info("flow_saved", nodes=len(graph.nodes), edges=len(graph.edges))
        self._emit(OutcomeKind.SAVED, SAVE_SUCCESS_MESSAGE)
        return SaveResult(SaveState.SAVED)

    def reset_all(self) -> FlowGraph:
        """Start over from the default graph. Callers confirm with the user first."""
        graph = self.store.reset()
        self.selection.clear_selection()
        self._emit(OutcomeKind.ACCEPTED, "Cleared all nodes and connections.")
        return graph

    def close(self) -> None:
        """Flush and close persistence."""
        self.selection.detach()
        if self.store.writer is not None:
            self.store.writer.close()

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _on_commit(self, graph: FlowGraph) -> None:
        self._save_state = SaveState.EDITING
        self._save_blocked = None

    def _reject(self, rejection: Rejection) -> None:
        if not rejection.is_user_visible:
            log.debug("intent_ignored", reason=rejection.reason.value, node_id=rejection.node_id)
            return
        self._emit(OutcomeKind.REJECTED, rejection.to_user_message(), rejection)

    def _emit(
        self,
        kind: OutcomeKind,
        message: str,
        reason: Rejection | SaveBlocked | None = None,
    ) -> None:
        outcome = Outcome(kind, message, reason)
        self._outcomes.append(outcome)
        for listener in list(self._outcome_listeners):
            listener(outcome)
