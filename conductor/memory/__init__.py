"""Long-term memory: store interface, retrieval and persistence."""

from conductor.memory.persistence import MemoryPersistenceAdapter
from conductor.memory.retrieval import MemoryRetriever, merge_records
from conductor.memory.scope import memory_scope_for
from conductor.memory.store import MemoryStore, MemoryStoreError

__all__ = [
    "MemoryPersistenceAdapter",
    "MemoryRetriever",
    "MemoryStore",
    "MemoryStoreError",
    "memory_scope_for",
    "merge_records",
]
