"""Tests for persistence adapters and the persisted record layout.

The same keyed-record behaviour is checked against every backend.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from flowbuilder.config import EditorConfig, StorageConfig
from flowbuilder.graph.models import ConnectionCandidate, Edge, FlowGraph
from flowbuilder.persistence import (
    JsonFilePersistence,
    MemoryPersistence,
    PersistedState,
    PersistenceAdapter,
    SqlitePersistence,
    create_persistence,
)


@pytest.fixture(params=["memory", "json", "sqlite"])
def any_adapter(request: pytest.FixtureRequest, tmp_path: Path) -> PersistenceAdapter:
    if request.param == "memory":
        return MemoryPersistence()
    if request.param == "json":
        return JsonFilePersistence(tmp_path / "store")
    return SqlitePersistence()


class TestAdapterContract:
    def test_satisfies_protocol(self, any_adapter: PersistenceAdapter) -> None:
        assert isinstance(any_adapter, PersistenceAdapter)

    def test_missing_key_reads_none(self, any_adapter: PersistenceAdapter) -> None:
        assert any_adapter.read("nodes") is None

    def test_write_replaces_value(self, any_adapter: PersistenceAdapter) -> None:
        any_adapter.write("nextNodeId", 2)
        any_adapter.write("nextNodeId", 3)
        assert any_adapter.read("nextNodeId") == 3

    def test_stores_nested_records(self, any_adapter: PersistenceAdapter) -> None:
        records = [{"id": "1", "position": {"x": 1.5, "y": 2.0}, "message": "hi"}]
        any_adapter.write("nodes", records)
        assert any_adapter.read("nodes") == records


class TestMemoryPersistence:
    def test_values_are_copied(self) -> None:
        adapter = MemoryPersistence()
        value = [{"id": "1"}]
        adapter.write("nodes", value)
        value[0]["id"] = "changed"
        adapter.read("nodes")[0]["id"] = "changed again"
        assert adapter.read("nodes") == [{"id": "1"}]

    def test_write_log_and_close(self) -> None:
        adapter = MemoryPersistence()
        adapter.write("edges", [])
        adapter.close()
        assert adapter.writes == [("edges", [])]
        assert adapter.closed


class TestJsonFilePersistence:
    def test_one_file_per_key(self, tmp_path: Path) -> None:
        adapter = JsonFilePersistence(tmp_path)
        adapter.write("nextNodeId", 4)
        assert json.loads((tmp_path / "nextNodeId.json").read_text()) == 4
        assert not list(tmp_path.glob("*.tmp"))

    def test_rejects_path_like_keys(self, tmp_path: Path) -> None:
        adapter = JsonFilePersistence(tmp_path)
        with pytest.raises(ValueError, match="Invalid record key"):
            adapter.write("../escape", 1)

    def test_invalid_json_raises(self, tmp_path: Path) -> None:
        (tmp_path / "nodes.json").write_text("{not json")
        with pytest.raises(json.JSONDecodeError):
            JsonFilePersistence(tmp_path).read("nodes")


class TestSqlitePersistence:
    def test_survives_reopen(self, tmp_path: Path) -> None:
        db_path = tmp_path / "flow.db"
        first = SqlitePersistence(db_path)
        first.write("edges", [{"id": "e1"}])
        first.close()

        second = SqlitePersistence(db_path)
        assert second.read("edges") == [{"id": "e1"}]
        second.close()

    def test_keys(self) -> None:
        adapter = SqlitePersistence()
        adapter.write("nodes", [])
        adapter.write("edges", [])
        assert adapter.keys() == ["edges", "nodes"]


class TestPersistedState:
    def test_layout(self) -> None:
        graph = FlowGraph.default()
        state = PersistedState.from_graph(graph)
        assert [key for key, _ in state.records()] == ["edges", "nodes", "nextNodeId"]
        assert state.nodes is not None
        assert state.nodes[0]["message"] == graph.nodes[0].message
        assert state.next_node_id == 2

    def test_graph_round_trip(self) -> None:
        edge = Edge.from_candidate(
            ConnectionCandidate(source_node_id="1", target_node_id="2"), "xy-edge__1-2"
        )
        default = FlowGraph.default()
        second = default.nodes[0].model_copy(update={"id": "2"})
        graph = FlowGraph(nodes=(*default.nodes, second), edges=(edge,), next_node_id=3)

        adapter = MemoryPersistence()
        PersistedState.from_graph(graph).write_to(adapter)

        assert PersistedState.read_from(adapter).to_graph() == graph

    def test_empty_storage(self) -> None:
        state = PersistedState.read_from(MemoryPersistence())
        assert state.is_empty
        assert state.to_graph() == FlowGraph.default()


class TestFactory:
    def _config(self, backend: str, path: Path) -> EditorConfig:
        storage = StorageConfig(backend=backend, path=str(path))  # type: ignore[arg-type]
        return EditorConfig(storage=storage)

    def test_memory(self, tmp_path: Path) -> None:
        assert isinstance(create_persistence(self._config("memory", tmp_path)), MemoryPersistence)

    def test_json(self, tmp_path: Path) -> None:
        adapter = create_persistence(self._config("json", tmp_path / "data"))
        assert isinstance(adapter, JsonFilePersistence)
        assert adapter.directory == tmp_path / "data"

    def test_sqlite_directory_gets_default_filename(self, tmp_path: Path) -> None:
        adapter = create_persistence(self._config("sqlite", tmp_path / "data"))
        adapter.write("nextNodeId", 2)
        adapter.close()
        assert (tmp_path / "data" / "flow.db").exists()

    def test_sqlite_explicit_file(self, tmp_path: Path) -> None:
        adapter = create_persistence(self._config("sqlite", tmp_path / "custom.db"))
        adapter.close()
        assert (tmp_path / "custom.db").exists()

    def test_unknown_backend(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError, match="Unknown storage backend"):
            create_persistence(self._config("redis", tmp_path))
