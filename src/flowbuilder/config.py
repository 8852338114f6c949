"""Editor configuration loading.

Configuration lives in ``flowbuilder.yaml``. Every field has a default, so a
missing file is not an error. Storage settings can be overridden from the
environment (``FLOWBUILDER_STORAGE_BACKEND``, ``FLOWBUILDER_STORAGE_PATH``).
"""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Literal, cast

from ruamel.yaml import YAML

CONFIG_FILENAME = "flowbuilder.yaml"

DEFAULT_BACKEND = "json"
DEFAULT_STORAGE_PATH = ".flowbuilder"

StorageBackend = Literal["json", "sqlite", "memory"]
STORAGE_BACKENDS: tuple[str, ...] = ("json", "sqlite", "memory")


class ConfigError(Exception):
    """Raised when the configuration file cannot be loaded."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to load config at {path}: {reason}")


@dataclass
class StorageConfig:
    """Where and how committed graphs are persisted.

    Attributes:
        backend: "json" (one file per record), "sqlite" or "memory".
        path: Directory for the json backend, database file for sqlite.
            Relative paths are resolved against the config file's directory.
        background_writes: Persist on a worker thread instead of inline.
    """

    backend: StorageBackend = DEFAULT_BACKEND
    path: str = DEFAULT_STORAGE_PATH
    background_writes: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StorageConfig:
        backend = os.getenv("FLOWBUILDER_STORAGE_BACKEND") or data.get("backend", DEFAULT_BACKEND)
        if backend not in STORAGE_BACKENDS:
            expected = ", ".join(STORAGE_BACKENDS)
            raise ValueError(f"Unknown storage backend {backend!r}, expected one of {expected}")
        return cls(
            backend=cast("StorageBackend", backend),
            path=os.getenv("FLOWBUILDER_STORAGE_PATH")
            or str(data.get("path", DEFAULT_STORAGE_PATH)),
            background_writes=bool(data.get("background_writes", False)),
        )


@dataclass
class PlacementConfig:
    """Area new nodes are scattered over: ``origin + random * size``."""

    origin_x: float = 100.0
    origin_y: float = 100.0
    width: float = 400.0
    height: float = 400.0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PlacementConfig:
        return cls(
            origin_x=float(data.get("origin_x", 100.0)),
            origin_y=float(data.get("origin_y", 100.0)),
            width=float(data.get("width", 400.0)),
            height=float(data.get("height", 400.0)),
        )


@dataclass
class EditorConfig:
    """Configuration for a flow editor workspace."""

    storage: StorageConfig = field(default_factory=StorageConfig)
    placement: PlacementConfig = field(default_factory=PlacementConfig)
    seed: int | None = None
    base_dir: Path = field(default_factory=Path)

    @classmethod
    def from_dict(cls, data: dict[str, Any], base_dir: Path | None = None) -> EditorConfig:
        seed = data.get("seed")
        return cls(
            storage=StorageConfig.from_dict(dict(data.get("storage") or {})),
            placement=PlacementConfig.from_dict(dict(data.get("placement") or {})),
            seed=int(seed) if seed is not None else None,
            base_dir=base_dir or Path(),
        )

    @property
    def storage_path(self) -> Path:
        """Storage location resolved against the config directory."""
        path = Path(self.storage.path)
        return path if path.is_absolute() else self.base_dir / path

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "storage": asdict(self.storage),
            "placement": asdict(self.placement),
        }
        if self.seed is not None:
            data["seed"] = self.seed
        return data


def load_config(config_path: Path) -> EditorConfig:
    """Load editor configuration from a YAML file.

    Args:
        config_path: Path to ``flowbuilder.yaml``.

    Returns:
        EditorConfig instance; defaults if the file does not exist.

    Raises:
        ConfigError: If the file exists but cannot be parsed.
    """
    base_dir = config_path.parent
    if not config_path.exists():
        return EditorConfig.from_dict({}, base_dir=base_dir)

    yaml = YAML(typ="safe")
    try:
        with config_path.open("r", encoding="utf-8") as f:
            data = yaml.load(f)
        if data is None:
            return EditorConfig.from_dict({}, base_dir=base_dir)
        if not isinstance(data, dict):
            raise ConfigError(config_path, "Top level must be a mapping")
        return EditorConfig.from_dict(dict(data), base_dir=base_dir)
    except Exception as e:
        if isinstance(e, ConfigError):
            raise
        raise ConfigError(config_path, str(e)) from e


def write_default_config(config_path: Path, backend: str = DEFAULT_BACKEND) -> EditorConfig:
    """Write a default configuration file.

    Args:
        config_path: Where to write ``flowbuilder.yaml``.
        backend: Storage backend to record.

    Returns:
        The configuration that was written.
    """
    if backend not in STORAGE_BACKENDS:
        raise ValueError(f"Unknown storage backend {backend!r}")
    config = EditorConfig(
        storage=StorageConfig(backend=cast("StorageBackend", backend)),
        base_dir=config_path.parent,
    )
    config_path.parent.mkdir(parents=True, exist_ok=True)
    yaml = YAML()
    yaml.default_flow_style = False
    with config_path.open("w", encoding="utf-8") as f:
        yaml.dump(config.to_dict(), f)
    return config
