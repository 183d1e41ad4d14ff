"""MemoryStore implementations."""

from conductor.memory.stores.http import HttpMemoryStore
from conductor.memory.stores.inmemory import InMemoryMemoryStore

__all__ = ["HttpMemoryStore", "InMemoryMemoryStore"]
