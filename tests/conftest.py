"""Shared test fixtures for the conductor test suite."""

import os
from collections.abc import AsyncIterator, Callable, Generator
from pathlib import Path
from typing import Any

import pytest

from conductor.agent.dispatch import ProviderDispatcher
from conductor.agent.dispatch.models import ProviderRequest
from conductor.agent.handler import AgentBlockHandler
from conductor.agent.intent import IntentGate
from conductor.agent.stores import InMemoryCredentialStore, InMemoryExecutionLog
from conductor.config.settings import Settings, set_toml_config
from conductor.domain.execution import (
    BufferedResult,
    ExecutionContext,
    ExecutionMetadata,
    ExecutionResult,
    StreamingResult,
    TokenCounts,
)
from conductor.memory.retrieval import MemoryRetriever
from conductor.memory.stores import InMemoryMemoryStore
from conductor.providers.catalog import ModelCatalog
from conductor.providers.llm import MockLLMExecutor
from conductor.tools.resolver import CapabilityResolver
from conductor.tools.stores import (
    InMemoryCustomToolCatalog,
    InMemoryFunctionExecutor,
    InMemoryPermissionService,
    InMemoryRemoteToolBackend,
    InMemoryServerRegistry,
)


@pytest.fixture
def test_config_dir(tmp_path: Path) -> Path:
    """Create a temporary config directory for testing."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def mock_toml_files(test_config_dir: Path) -> Callable[[dict[str, str]], None]:
    """Factory fixture to create TOML files in the test config directory.

    Usage:
        def test_something(mock_toml_files):
            mock_toml_files({
                "default.toml": "app_name = 'test'",
                "development.toml": "[agent]\\ndefault_model = 'gpt-4o-mini'",
            })
    """

    def _create_toml_files(files: dict[str, str]) -> None:
        for filename, content in files.items():
            (test_config_dir / filename).write_text(content)

    return _create_toml_files


class EnvOverrideContext:
    """Context manager for temporarily setting environment variables."""

    def __init__(self, overrides: dict[str, str]) -> None:
        self.overrides = overrides
        self.original_env: dict[str, str | None] = {}

    def __enter__(self) -> None:
        for key, value in self.overrides.items():
            self.original_env[key] = os.environ.get(key)
            os.environ[key] = value

    def __exit__(self, *args: Any) -> None:
        for key in self.overrides:
            if self.original_env[key] is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = self.original_env[key]


@pytest.fixture
def env_override() -> Callable[[dict[str, str]], EnvOverrideContext]:
    """Temporarily set environment variables.

    Usage:
        def test_something(env_override):
            with env_override({"CONDUCTOR_AGENT__DEFAULT_MODEL": "gpt-4o-mini"}):
                ...
    """
    return EnvOverrideContext


@pytest.fixture(autouse=True)
def clear_settings_cache() -> Generator[None, None, None]:
    """Clear the settings cache and TOML overlay around each test."""
    from conductor.config import get_settings

    get_settings.cache_clear()
    set_toml_config({})
    yield
    get_settings.cache_clear()
    set_toml_config({})


# =============================================================================
# Execution fixtures
# =============================================================================


@pytest.fixture
def settings() -> Settings:
    """Settings built from code defaults only."""
    return Settings()


@pytest.fixture
def make_ctx() -> Callable[..., ExecutionContext]:
    """Factory for execution contexts of a chat-triggered agent block."""

    def _make(**overrides: Any) -> ExecutionContext:
        values: dict[str, Any] = {
            "block_id": "agent-1",
            "workflow_id": "wf-1",
            "user_id": "user-1",
            "workspace_id": "ws-1",
            "execution_id": "exec-1",
            "trigger_type": "chat",
        }
        values.update(overrides)
        return ExecutionContext(**values)

    return _make


class RecordingBackend:
    """ProviderBackend that records requests and answers from a script."""

    def __init__(
        self,
        content: str = "Backend reply",
        chunks: list[str | bytes] | None = None,
        error: Exception | None = None,
    ) -> None:
        self.content = content
        self.chunks = chunks
        self.error = error
        self.requests: list[ProviderRequest] = []
        self.chunks_sent = 0

    @property
    def last_request(self) -> ProviderRequest:
        return self.requests[-1]

    async def execute(self, request: ProviderRequest) -> ExecutionResult:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        if request.stream:
            return StreamingResult(
                stream=self._stream(),
                execution=ExecutionMetadata(model=request.model),
            )
        return BufferedResult(
            content=self.content,
            model=request.model,
            tokens=TokenCounts(input=12, output=4, total=16),
        )

    async def _stream(self) -> AsyncIterator[str | bytes]:
        for chunk in self.chunks if self.chunks is not None else [self.content]:
            self.chunks_sent += 1
            yield chunk


@pytest.fixture
def backend() -> RecordingBackend:
    return RecordingBackend()


@pytest.fixture
def memory_store() -> InMemoryMemoryStore:
    return InMemoryMemoryStore()


@pytest.fixture
def execution_log() -> InMemoryExecutionLog:
    return InMemoryExecutionLog()


@pytest.fixture
def classifier() -> MockLLMExecutor:
    return MockLLMExecutor(default_response="RUN", step_name="intent_classifier")


@pytest.fixture
def responder() -> MockLLMExecutor:
    return MockLLMExecutor(default_response="Synthesized reply", step_name="intent_reply")


@pytest.fixture
def server_registry() -> InMemoryServerRegistry:
    return InMemoryServerRegistry()


@pytest.fixture
def remote_tools() -> InMemoryRemoteToolBackend:
    return InMemoryRemoteToolBackend()


@pytest.fixture
def function_executor() -> InMemoryFunctionExecutor:
    return InMemoryFunctionExecutor()


@pytest.fixture
def custom_tools() -> InMemoryCustomToolCatalog:
    return InMemoryCustomToolCatalog()


@pytest.fixture
def permissions() -> InMemoryPermissionService:
    return InMemoryPermissionService()


@pytest.fixture
def resolver(
    settings: Settings,
    server_registry: InMemoryServerRegistry,
    remote_tools: InMemoryRemoteToolBackend,
    function_executor: InMemoryFunctionExecutor,
    custom_tools: InMemoryCustomToolCatalog,
    permissions: InMemoryPermissionService,
) -> CapabilityResolver:
    return CapabilityResolver(
        remote_tools=remote_tools,
        server_registry=server_registry,
        function_executor=function_executor,
        custom_tools=custom_tools,
        permissions=permissions,
        config=settings.tools,
    )


@pytest.fixture
def catalog(settings: Settings) -> ModelCatalog:
    return ModelCatalog(settings.providers, settings.memory)


@pytest.fixture
def make_handler(
    settings: Settings,
    resolver: CapabilityResolver,
    catalog: ModelCatalog,
    backend: RecordingBackend,
    memory_store: InMemoryMemoryStore,
    execution_log: InMemoryExecutionLog,
    classifier: MockLLMExecutor,
    responder: MockLLMExecutor,
) -> Callable[..., AgentBlockHandler]:
    """Factory for a handler wired to in-memory collaborators.

    ``with_memory=False`` leaves the memory store out; ``with_gate=False``
    leaves the intent gate out.
    """

    def _make(
        *,
        with_memory: bool = True,
        with_gate: bool = True,
        credential_store: InMemoryCredentialStore | None = None,
    ) -> AgentBlockHandler:
        gate = None
        if with_memory and with_gate:
            gate = IntentGate(
                classifier=classifier,
                responder=responder,
                execution_log=execution_log,
                retriever=MemoryRetriever(memory_store, settings.memory.search_limit),
                config=settings.intent_gate,
            )
        return AgentBlockHandler(
            resolver=resolver,
            dispatcher=ProviderDispatcher(backend, catalog, credential_store),
            catalog=catalog,
            memory_store=memory_store if with_memory else None,
            intent_gate=gate,
            settings=settings,
        )

    return _make
