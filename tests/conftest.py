"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import random
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pytest
from structlog.testing import capture_logs

from flowbuilder.graph.store import GraphStore
from flowbuilder.observability import configure_logging
from flowbuilder.persistence.memory import MemoryPersistence
from flowbuilder.persistence.writer import OrderedWriter


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep developer environment overrides out of test runs."""
    for name in ("FLOWBUILDER_STORAGE_BACKEND", "FLOWBUILDER_STORAGE_PATH", "FLOWBUILDER_CONFIG"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def adapter() -> MemoryPersistence:
    return MemoryPersistence()


@pytest.fixture
def writer(adapter: MemoryPersistence) -> OrderedWriter:
    return OrderedWriter(adapter)


@pytest.fixture
def store(writer: OrderedWriter) -> GraphStore:
    """A store on the default graph, persisting synchronously to memory."""
    return GraphStore(writer=writer, rng=random.Random(7))


@pytest.fixture
def captured_logs() -> Iterator[list[dict[str, Any]]]:
    """Capture structlog events at every level."""
    configure_logging(verbosity=2)
    with capture_logs() as logs:
        yield logs
