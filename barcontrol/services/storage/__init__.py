"""
Storage Services Package

Provides the key-value store interface, local implementations of it, and
the persistence service that maps application state onto store keys.
The store is swappable: anything implementing KeyValueStore works.
"""

from barcontrol.services.storage.interface import KeyValueStore, entry_size
from barcontrol.services.storage.local_store import (
    FileKeyValueStore,
    MemoryKeyValueStore,
)
from barcontrol.services.storage.persistence import (
    BUDGET_LIMIT_KEY,
    BUDGET_LOCATION_KEY,
    HISTORY_KEY,
    ITEMS_KEY,
    SCHEMA_VERSION,
    SCHEMA_VERSION_KEY,
    PersistenceService,
    SaveOutcome,
    serialize_history,
    serialize_items,
)

__all__ = [
    # Interface
    "KeyValueStore",
    "entry_size",
    # Local implementations
    "FileKeyValueStore",
    "MemoryKeyValueStore",
    # Persistence
    "BUDGET_LIMIT_KEY",
    "BUDGET_LOCATION_KEY",
    "HISTORY_KEY",
    "ITEMS_KEY",
    "SCHEMA_VERSION",
    "SCHEMA_VERSION_KEY",
    "PersistenceService",
    "SaveOutcome",
    "serialize_history",
    "serialize_items",
]
