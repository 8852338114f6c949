"""Selection tracking for the edit surface.

At most one node or one edge is selected, never both. Selection is
ephemeral UI state and is not persisted.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from flowbuilder.observability.logging import get_logger

if TYPE_CHECKING:
    from flowbuilder.graph.models import Edge, FlowGraph
    from flowbuilder.graph.store import GraphStore

log = get_logger(__name__)


@dataclass(frozen=True)
class SelectionState:
    """Which node or edge is selected, if any."""

    selected_node_id: str | None = None
    selected_edge_id: str | None = None

    def __post_init__(self) -> None:
        if self.selected_node_id is not None and self.selected_edge_id is not None:
            raise ValueError("A node and an edge cannot be selected at the same time")

    @property
    def is_empty(self) -> bool:
        return self.selected_node_id is None and self.selected_edge_id is None


class SelectionController:
    """Tracks the selection and routes delete intents to the GraphStore.

    The controller listens to store commits so a selection pointing at a
    node or edge that no longer exists is cleared.
    """

    def __init__(self, store: GraphStore) -> None:
        self._store = store
        self._state = SelectionState()
        self._unsubscribe = store.subscribe(self._on_commit)

    @property
    def state(self) -> SelectionState:
        return self._state

    def select_node(self, node_id: str) -> bool:
        """Select a node, clearing any edge selection.

        Returns:
            False (and no change) if the node does not exist.
        """
        if not self._store.graph.has_node(node_id):
            log.debug("select_ignored", node_id=node_id, reason="not_found")
            return False
        self._state = SelectionState(selected_node_id=node_id)
        return True

    def select_edge(self, edge_id: str) -> bool:
        """Select an edge, clearing any node selection.

        Returns:
            False (and no change) if the edge does not exist.
        """
        if not self._store.graph.has_edge(edge_id):
            log.debug("select_ignored", edge_id=edge_id, reason="not_found")
            return False
        self._state = SelectionState(selected_edge_id=edge_id)
        return True

    def clear_selection(self) -> None:
        self._state = SelectionState()

    def delete_selected(self) -> list[Edge] | Edge | None:
        """Delete whatever is selected, then clear the selection.

        Returns:
            For a node, the edges removed along with it; for an edge, the
            removed edge; None when nothing was deleted.
        """
        state = self._state
        result: list[Edge] | Edge | None = None
        if state.selected_node_id is not None:
            result = self._store.delete_node(state.selected_node_id)
        elif state.selected_edge_id is not None:
            result = self._store.delete_edge(state.selected_edge_id)
        self.clear_selection()
        return result

    def handle_delete_key(self) -> bool:
        """Handle the delete key.

        Only a selected edge is deleted from the keyboard; node deletion
        needs the explicit, confirmed delete action.

        Returns:
            True if an edge was deleted.
        """
        if self._state.selected_edge_id is None:
            return False
        return self.delete_selected() is not None

    def detach(self) -> None:
        """Stop listening to store commits."""
        self._unsubscribe()

    def _on_commit(self, graph: FlowGraph) -> None:
        node_id = self._state.selected_node_id
        edge_id = self._state.selected_edge_id
        if (node_id is not None and not graph.has_node(node_id)) or (
            edge_id is not None and not graph.has_edge(edge_id)
        ):
            self._state = SelectionState()
