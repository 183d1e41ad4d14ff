"""Stores read by the agent block handler."""

from conductor.agent.stores.inmemory import InMemoryCredentialStore, InMemoryExecutionLog
from conductor.agent.stores.interface import CredentialStore, ExecutionLogStore

__all__ = [
    "CredentialStore",
    "ExecutionLogStore",
    "InMemoryCredentialStore",
    "InMemoryExecutionLog",
]
