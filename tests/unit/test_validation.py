"""Tests for connection validation rules."""

from __future__ import annotations

from flowbuilder.graph.errors import Rejection, RejectionReason
from flowbuilder.graph.models import (
    ConnectionCandidate,
    Edge,
    FlowGraph,
    MessagePayload,
    Node,
)
from flowbuilder.graph.validation import Accept, validate_connection, would_create_cycle


def _graph(node_ids: list[str], edges: list[tuple[str, str] | tuple[str, str, str]]) -> FlowGraph:
    """Build a graph; edges are ``(source, target)`` or ``(source, target, source_handle)``."""
    nodes = tuple(Node(id=n, payload=MessagePayload(message=f"step {n}")) for n in node_ids)
    built = []
    for i, spec in enumerate(edges):
        handle = spec[2] if len(spec) == 3 else None
        built.append(
            Edge(
                id=f"e{i}",
                source_node_id=spec[0],
                source_handle_id=handle,
                target_node_id=spec[1],
            )
        )
    return FlowGraph(nodes=nodes, edges=tuple(built), next_node_id=100)


def _candidate(source: str, target: str, handle: str | None = None) -> ConnectionCandidate:
    return ConnectionCandidate(
        source_node_id=source, source_handle_id=handle, target_node_id=target
    )


def _reason(result: Accept | Rejection) -> RejectionReason | None:
    return result.reason if isinstance(result, Rejection) else None


class TestAccept:
    def test_simple_connection_accepted(self) -> None:
        graph = _graph(["1", "2"], [])
        result = validate_connection(graph, _candidate("1", "2"))
        assert isinstance(result, Accept)
        assert result.candidate == _candidate("1", "2")

    def test_fan_in_is_unbounded(self) -> None:
        graph = _graph(["a", "b", "c"], [("a", "c")])
        assert isinstance(validate_connection(graph, _candidate("b", "c")), Accept)

    def test_distinct_handles_each_get_one_edge(self) -> None:
        graph = _graph(["a", "b", "c"], [("a", "b", "yes")])
        assert isinstance(validate_connection(graph, _candidate("a", "c", "no")), Accept)

    def test_validation_does_not_mutate_graph(self) -> None:
        graph = _graph(["1", "2"], [])
        validate_connection(graph, _candidate("1", "2"))
        assert graph.edges == ()


class TestUnknownEndpoint:
    def test_missing_target(self) -> None:
        result = validate_connection(_graph(["1"], []), _candidate("1", "9"))
        assert isinstance(result, Rejection)
        assert result.reason is RejectionReason.UNKNOWN_ENDPOINT
        assert result.missing == ("9",)

    def test_same_missing_id_reported_once(self) -> None:
        result = validate_connection(_graph(["1"], []), _candidate("9", "9"))
        assert isinstance(result, Rejection)
        assert result.reason is RejectionReason.UNKNOWN_ENDPOINT
        assert result.missing == ("9",)
        assert "'9'" in result.to_user_message()


class TestSelfLoop:
    def test_self_loop_rejected(self) -> None:
        result = validate_connection(_graph(["1"], []), _candidate("1", "1"))
        assert _reason(result) is RejectionReason.SELF_LOOP
        assert isinstance(result, Rejection)
        assert result.to_user_message() == "Cannot connect a node to itself!"

    def test_self_loop_checked_before_fan_out(self) -> None:
        graph = _graph(["1", "2"], [("1", "2")])
        result = validate_connection(graph, _candidate("1", "1"))
        assert _reason(result) is RejectionReason.SELF_LOOP


class TestFanOut:
    def test_second_edge_from_same_handle_rejected(self) -> None:
        graph = _graph(["A", "B", "C"], [("A", "B")])
        result = validate_connection(graph, _candidate("A", "C"))
        assert isinstance(result, Rejection)
        assert result.reason is RejectionReason.HANDLE_ALREADY_CONNECTED
        assert result.node_id == "A"
        assert result.to_user_message() == "Source handle can only have one outgoing connection!"

    def test_fan_out_checked_before_cycle(self) -> None:
        graph = _graph(["a", "b", "c"], [("a", "b"), ("b", "c")])
        # b already has an outgoing edge on the default handle and b -> a would also loop
        result = validate_connection(graph, _candidate("b", "a"))
        assert _reason(result) is RejectionReason.HANDLE_ALREADY_CONNECTED


class TestCycles:
    def test_two_node_cycle_rejected(self) -> None:
        graph = _graph(["A", "B"], [("A", "B")])
        result = validate_connection(graph, _candidate("B", "A"))
        assert _reason(result) is RejectionReason.WOULD_CREATE_CYCLE

    def test_long_cycle_rejected(self) -> None:
        graph = _graph(["A", "B", "C"], [("A", "B"), ("B", "C")])
        result = validate_connection(graph, _candidate("C", "A"))
        assert isinstance(result, Rejection)
        assert result.reason is RejectionReason.WOULD_CREATE_CYCLE
        assert "'C'" in result.to_user_message()
        assert "'A'" in result.to_user_message()

    def test_diamond_terminates_and_detects_cycle(self) -> None:
        graph = _graph(
            ["a", "b", "c", "d"],
            [("a", "b", "left"), ("a", "c", "right"), ("b", "d"), ("c", "d")],
        )
        assert would_create_cycle(graph, _candidate("d", "a"))
        assert _reason(validate_connection(graph, _candidate("d", "a"))) is (
            RejectionReason.WOULD_CREATE_CYCLE
        )

    def test_diamond_extension_accepted(self) -> None:
        graph = _graph(
            ["a", "b", "c", "d", "e"],
            [("a", "b", "left"), ("a", "c", "right"), ("b", "d"), ("c", "d")],
        )
        assert not would_create_cycle(graph, _candidate("d", "e"))
        assert isinstance(validate_connection(graph, _candidate("d", "e")), Accept)

    def test_connecting_separate_chains_is_not_a_cycle(self) -> None:
        graph = _graph(["1", "2", "3", "4"], [("1", "2"), ("3", "4")])
        assert not would_create_cycle(graph, _candidate("2", "3"))

    def test_long_chain_does_not_recurse(self) -> None:
        ids = [str(i) for i in range(5000)]
        graph = _graph(ids, [(ids[i], ids[i + 1]) for i in range(len(ids) - 1)])
        assert would_create_cycle(graph, _candidate(ids[-1], ids[0]))
