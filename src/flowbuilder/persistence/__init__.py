"""Durable storage for the flow graph.

Adapters store the three keyed records (nodes, edges, nextNodeId);
OrderedWriter serializes commit writes so storage never regresses to an
older snapshot.
"""

from flowbuilder.persistence.factory import create_persistence, create_writer
from flowbuilder.persistence.json_store import JsonFilePersistence
from flowbuilder.persistence.memory import MemoryPersistence
from flowbuilder.persistence.protocol import (
    EDGES_KEY,
    NEXT_NODE_ID_KEY,
    NODES_KEY,
    RECORD_KEYS,
    PersistedState,
    PersistenceAdapter,
)
from flowbuilder.persistence.sqlite_store import SqlitePersistence
from flowbuilder.persistence.writer import OrderedWriter

__all__ = [
    "EDGES_KEY",
    "NEXT_NODE_ID_KEY",
    "NODES_KEY",
    "RECORD_KEYS",
    "JsonFilePersistence",
    "MemoryPersistence",
    "OrderedWriter",
    "PersistedState",
    "PersistenceAdapter",
    "SqlitePersistence",
    "create_persistence",
    "create_writer",
]
