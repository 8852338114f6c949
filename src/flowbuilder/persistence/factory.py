"""Build a persistence adapter and writer from configuration."""

from __future__ import annotations

from typing import TYPE_CHECKING

from flowbuilder.observability.logging import get_logger
from flowbuilder.persistence.json_store import JsonFilePersistence
from flowbuilder.persistence.memory import MemoryPersistence
from flowbuilder.persistence.sqlite_store import SqlitePersistence
from flowbuilder.persistence.writer import OrderedWriter

if TYPE_CHECKING:
    from flowbuilder.config import EditorConfig
    from flowbuilder.persistence.protocol import PersistenceAdapter

log = get_logger(__name__)

SQLITE_FILENAME = "flow.db"


def create_persistence(config: EditorConfig) -> PersistenceAdapter:
    """Create the adapter named by ``config.storage.backend``.

    For sqlite, a storage path without a ``.db`` suffix is treated as a
    directory holding ``flow.db``.

    Raises:
        ValueError: If the backend is unknown.
    """
    backend = config.storage.backend
    path = config.storage_path

    if backend == "memory":
        adapter: PersistenceAdapter = MemoryPersistence()
    elif backend == "json":
        adapter = JsonFilePersistence(path)
    elif backend == "sqlite":
        db_path = path if path.suffix == ".db" else path / SQLITE_FILENAME
        adapter = SqlitePersistence(db_path)
    else:
        raise ValueError(f"Unknown storage backend: {backend!r}")

    log.debug("persistence_created", backend=backend, path=str(path))
    return adapter


def create_writer(config: EditorConfig) -> OrderedWriter:
    """Create an OrderedWriter around the configured adapter."""
    return OrderedWriter(create_persistence(config), background=config.storage.background_writes)
