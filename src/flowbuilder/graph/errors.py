"""Rejection and error types for flow graph operations.

Editing mistakes are never raised. Operations return a ``Rejection`` value
that the edit surface can show to the user, and the graph stays unchanged.
Only ``GraphCorruptionError`` is an exception: it signals a graph that
breaks the invariants, which can only come from damaged storage or a bug.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from flowbuilder.graph.models import ConnectionCandidate


class RejectionReason(str, Enum):
    """Why an intent was refused."""

    UNKNOWN_ENDPOINT = "unknown_endpoint"
    SELF_LOOP = "self_loop"
    HANDLE_ALREADY_CONNECTED = "handle_already_connected"
    WOULD_CREATE_CYCLE = "would_create_cycle"
    EMPTY_MESSAGE = "empty_message"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class Rejection:
    """A refused intent.

    Attributes:
        reason: Machine-readable rejection category.
        node_id: Node the intent referred to, when there is one.
        candidate: Connection that was refused, for connection rejections.
        missing: Endpoint ids absent from the graph (UNKNOWN_ENDPOINT only).
    """

    reason: RejectionReason
    node_id: str | None = None
    candidate: ConnectionCandidate | None = None
    missing: tuple[str, ...] = ()

    @property
    def is_user_visible(self) -> bool:
        """NOT_FOUND only comes from stale references and stays silent."""
        return self.reason is not RejectionReason.NOT_FOUND

    def to_user_message(self) -> str:
        """Format the rejection for display."""
        source = self.candidate.source_node_id if self.candidate else "?"
        target = self.candidate.target_node_id if self.candidate else "?"

        if self.reason is RejectionReason.SELF_LOOP:
            return "Cannot connect a node to itself!"
        if self.reason is RejectionReason.HANDLE_ALREADY_CONNECTED:
            return "Source handle can only have one outgoing connection!"
        if self.reason is RejectionReason.WOULD_CREATE_CYCLE:
            return f"Cannot connect '{source}' to '{target}': the flow would loop back on itself."
        if self.reason is RejectionReason.UNKNOWN_ENDPOINT:
            names = ", ".join(f"'{m}'" for m in self.missing) or f"'{source}' or '{target}'"
            return f"Cannot connect: node {names} does not exist."
        if self.reason is RejectionReason.EMPTY_MESSAGE:
            return "Message text cannot be empty."
        return f"Node '{self.node_id}' not found."

    def __str__(self) -> str:
        return self.to_user_message()


@dataclass(frozen=True)
class SaveBlocked:
    """Save refused because some nodes are not part of the flow.

    Attributes:
        disconnected: Ids of nodes with no incident edge.
    """

    disconnected: tuple[str, ...] = ()

    def to_user_message(self) -> str:
        msg = "Cannot save! All nodes must be connected to the flow."
        if self.disconnected:
            shown = ", ".join(f"'{n}'" for n in self.disconnected[:10])
            if len(self.disconnected) > 10:
                shown += f" and {len(self.disconnected) - 10} more"
            msg += f" Unconnected: {shown}."
        return msg

    def __str__(self) -> str:
        return self.to_user_message()


@dataclass
class GraphCorruptionError(Exception):
    """Raised when invariant checks find a graph that should not exist.

    Unlike a Rejection, this indicates damaged storage or a code bug
    rather than a user mistake.

    Attributes:
        violations: List of invariant violations found.
        context: Where the graph came from (e.g. "load").
    """

    violations: list[str] = field(default_factory=list)
    context: str = ""

    def __post_init__(self) -> None:
        msg = f"Graph corruption detected ({self.context or 'unknown'})"
        if self.violations:
            msg += f": {len(self.violations)} violation(s)"
        super().__init__(msg)

    def __str__(self) -> str:
        lines = [f"Graph corruption detected ({self.context or 'unknown'}):"]
        for v in self.violations[:5]:
            lines.append(f"  - {v}")
        if len(self.violations) > 5:
            lines.append(f"  - ... and {len(self.violations) - 5} more")
        return "\n".join(lines)
