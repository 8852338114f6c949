"""Tests for editor configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest
from ruamel.yaml import YAML

from flowbuilder.config import (
    ConfigError,
    EditorConfig,
    load_config,
    write_default_config,
)


def _write_yaml(path: Path, data: object) -> None:
    yaml = YAML()
    with path.open("w") as f:
        yaml.dump(data, f)


class TestLoadConfig:
    def test_missing_file_gives_defaults(self, tmp_path: Path) -> None:
        config = load_config(tmp_path / "flowbuilder.yaml")
        assert config.storage.backend == "json"
        assert config.storage.background_writes is False
        assert config.storage_path == tmp_path / ".flowbuilder"
        assert config.seed is None

    def test_empty_file_gives_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "flowbuilder.yaml"
        path.write_text("")
        assert load_config(path).storage.backend == "json"

    def test_reads_values(self, tmp_path: Path) -> None:
        path = tmp_path / "flowbuilder.yaml"
        _write_yaml(
            path,
            {
                "storage": {"backend": "sqlite", "path": "data/flow.db", "background_writes": True},
                "placement": {"origin_x": 0, "width": 50},
                "seed": 42,
            },
        )

        config = load_config(path)

        assert config.storage.backend == "sqlite"
        assert config.storage.background_writes is True
        assert config.storage_path == tmp_path / "data" / "flow.db"
        assert config.placement.origin_x == 0.0
        assert config.placement.width == 50.0
        assert config.placement.height == 400.0
        assert config.seed == 42

    def test_absolute_storage_path_kept(self, tmp_path: Path) -> None:
        path = tmp_path / "flowbuilder.yaml"
        target = tmp_path / "elsewhere"
        _write_yaml(path, {"storage": {"path": str(target)}})
        assert load_config(path).storage_path == target

    def test_unknown_backend(self, tmp_path: Path) -> None:
        path = tmp_path / "flowbuilder.yaml"
        _write_yaml(path, {"storage": {"backend": "redis"}})
        with pytest.raises(ConfigError, match="Unknown storage backend"):
            load_config(path)

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "flowbuilder.yaml"
        path.write_text("storage: [unclosed")
        with pytest.raises(ConfigError) as exc_info:
            load_config(path)
        assert exc_info.value.path == path

    def test_top_level_must_be_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "flowbuilder.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_config(path)


class TestEnvironmentOverrides:
    def test_env_overrides_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = tmp_path / "flowbuilder.yaml"
        _write_yaml(path, {"storage": {"backend": "json", "path": "a"}})
        monkeypatch.setenv("FLOWBUILDER_STORAGE_BACKEND", "memory")
        monkeypatch.setenv("FLOWBUILDER_STORAGE_PATH", "b")

        config = load_config(path)

        assert config.storage.backend == "memory"
        assert config.storage.path == "b"


class TestWriteDefaultConfig:
    def test_written_config_loads_back(self, tmp_path: Path) -> None:
        path = tmp_path / "nested" / "flowbuilder.yaml"
        written = write_default_config(path, backend="sqlite")

        loaded = load_config(path)

        assert loaded.to_dict() == written.to_dict()
        assert loaded.storage.backend == "sqlite"

    def test_env_does_not_leak_into_file(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("FLOWBUILDER_STORAGE_BACKEND", "memory")
        path = tmp_path / "flowbuilder.yaml"
        write_default_config(path)
        monkeypatch.delenv("FLOWBUILDER_STORAGE_BACKEND")
        assert load_config(path).storage.backend == "json"

    def test_unknown_backend(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError, match="Unknown storage backend"):
            write_default_config(tmp_path / "flowbuilder.yaml", backend="redis")

    def test_to_dict_omits_unset_seed(self) -> None:
        assert "seed" not in EditorConfig().to_dict()
        assert EditorConfig(seed=1).to_dict()["seed"] == 1
