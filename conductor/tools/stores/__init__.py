"""Tool backend implementations."""

from conductor.tools.stores.http import (
    HttpCustomToolCatalog,
    HttpFunctionExecutor,
    HttpRemoteToolBackend,
    ToolApiClient,
)
from conductor.tools.stores.inmemory import (
    InMemoryCustomToolCatalog,
    InMemoryFunctionExecutor,
    InMemoryPermissionService,
    InMemoryRemoteToolBackend,
    InMemoryServerRegistry,
)

__all__ = [
    "HttpCustomToolCatalog",
    "HttpFunctionExecutor",
    "HttpRemoteToolBackend",
    "ToolApiClient",
    "InMemoryCustomToolCatalog",
    "InMemoryFunctionExecutor",
    "InMemoryPermissionService",
    "InMemoryRemoteToolBackend",
    "InMemoryServerRegistry",
]
