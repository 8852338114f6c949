"""Tests for OrderedWriter commit ordering and coalescing."""

from __future__ import annotations

import threading
from typing import Any

from flowbuilder.graph.models import FlowGraph
from flowbuilder.persistence.memory import MemoryPersistence
from flowbuilder.persistence.protocol import PersistedState
from flowbuilder.persistence.writer import OrderedWriter


def _graph(next_node_id: int) -> FlowGraph:
    return FlowGraph.default().model_copy(update={"next_node_id": next_node_id})


class GatedPersistence(MemoryPersistence):
    """Blocks the first write until released."""

    def __init__(self) -> None:
        super().__init__()
        self.entered = threading.Event()
        self.release = threading.Event()

    def write(self, key: str, value: Any) -> None:
        if not self.entered.is_set():
            self.entered.set()
            self.release.wait(timeout=5)
        super().write(key, value)


class FailingPersistence(MemoryPersistence):
    def write(self, key: str, value: Any) -> None:
        raise OSError("disk full")


class TestSynchronousWriter:
    def test_writes_inline_in_order(self) -> None:
        adapter = MemoryPersistence()
        writer = OrderedWriter(adapter)

        assert writer.submit(_graph(2)) == 1
        assert writer.submit(_graph(3)) == 2

        assert writer.last_written == 2
        assert [v for k, v in adapter.writes if k == "nextNodeId"] == [2, 3]

    def test_stale_snapshot_never_overwrites_newer(
        self, captured_logs: list[dict[str, Any]]
    ) -> None:
        adapter = MemoryPersistence()
        writer = OrderedWriter(adapter)
        writer.submit(_graph(5))

        writer._write(0, PersistedState.from_graph(_graph(2)))

        assert adapter.read("nextNodeId") == 5
        assert any(e["event"] == "stale_commit_skipped" for e in captured_logs)

    def test_failure_is_logged_not_raised(self, captured_logs: list[dict[str, Any]]) -> None:
        writer = OrderedWriter(FailingPersistence())

        seq = writer.submit(_graph(2))

        assert writer.failures == 1
        assert writer.last_written == 0
        failure = next(e for e in captured_logs if e["event"] == "persist_failed")
        assert failure["commit"] == seq
        assert failure["error_type"] == "OSError"

    def test_close_closes_adapter(self) -> None:
        adapter = MemoryPersistence()
        writer = OrderedWriter(adapter)
        writer.close()
        writer.close()
        assert adapter.closed

    def test_close_can_keep_adapter_open(self) -> None:
        adapter = MemoryPersistence()
        OrderedWriter(adapter).close(close_adapter=False)
        assert not adapter.closed


class TestBackgroundWriter:
    def test_converges_on_newest_snapshot(self) -> None:
        adapter = MemoryPersistence()
        writer = OrderedWriter(adapter, background=True)
        for value in range(2, 30):
            writer.submit(_graph(value))
        writer.flush()

        assert adapter.read("nextNodeId") == 29
        assert writer.last_written == writer.last_submitted == 28
        writer.close()

    def test_pending_snapshots_are_coalesced(self) -> None:
        adapter = GatedPersistence()
        writer = OrderedWriter(adapter, background=True)

        writer.submit(_graph(2))
        assert adapter.entered.wait(timeout=5)
        for value in (3, 4, 5):
            writer.submit(_graph(value))
        adapter.release.set()
        writer.flush()

        written = [v for k, v in adapter.writes if k == "nextNodeId"]
        assert written == [2, 5]
        assert writer.last_written == 4
        writer.close()

    def test_close_flushes_pending_writes(self) -> None:
        adapter = MemoryPersistence()
        writer = OrderedWriter(adapter, background=True)
        writer.submit(_graph(7))
        writer.close()
        assert adapter.read("nextNodeId") == 7
        assert adapter.closed
