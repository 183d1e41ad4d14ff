"""Bootstrap module for wiring an AgentBlockHandler from configuration.

Handles:
- Configuring structured logging
- Creating the memory and tool API clients from settings
- Falling back to in-memory collaborators where no production backend is
  given (server registry, permissions, execution log, credentials)
- Creating the intent gate executors and the provider dispatcher

Example usage:

    from conductor.bootstrap import build_handler

    handler = build_handler()
    result = await handler.execute_agent_block(inputs, ctx)
"""

from conductor.agent.dispatch import ExecutorProviderBackend, ProviderBackend, ProviderDispatcher
from conductor.agent.handler import AgentBlockHandler
from conductor.agent.intent import IntentGate
from conductor.agent.stores import (
    CredentialStore,
    ExecutionLogStore,
    InMemoryCredentialStore,
    InMemoryExecutionLog,
)
from conductor.config import get_settings
from conductor.config.settings import Settings
from conductor.memory.retrieval import MemoryRetriever
from conductor.memory.store import MemoryStore
from conductor.memory.stores import HttpMemoryStore
from conductor.observability.logging import get_logger, setup_logging
from conductor.providers.catalog import ModelCatalog
from conductor.providers.llm import create_executor
from conductor.tools.backends import PermissionService, ServerRegistry
from conductor.tools.resolver import CapabilityResolver
from conductor.tools.stores import (
    HttpCustomToolCatalog,
    HttpFunctionExecutor,
    HttpRemoteToolBackend,
    InMemoryPermissionService,
    InMemoryServerRegistry,
    ToolApiClient,
)

logger = get_logger(__name__)


def build_handler(
    settings: Settings | None = None,
    *,
    memory_store: MemoryStore | None = None,
    server_registry: ServerRegistry | None = None,
    permissions: PermissionService | None = None,
    execution_log: ExecutionLogStore | None = None,
    credential_store: CredentialStore | None = None,
    backend: ProviderBackend | None = None,
) -> AgentBlockHandler:
    """Build a fully wired AgentBlockHandler.

    Any collaborator passed in replaces the one built from settings.

    Args:
        settings: Settings to use (default: get_settings())
        memory_store: Memory backend (default: HttpMemoryStore)
        server_registry: Tool server status source (default: in-memory)
        permissions: Capability permission checks (default: allow all)
        execution_log: Prior turn lookup for the intent gate (default: in-memory)
        credential_store: Vertex credential exchange (default: in-memory)
        backend: Provider backend (default: ExecutorProviderBackend)

    Returns:
        AgentBlockHandler ready to execute blocks
    """
    settings = settings or get_settings()
    log_config = settings.observability.logging
    setup_logging(level=log_config.level, format=log_config.format, redact_pii=log_config.redact_pii)

    if memory_store is None:
        memory_store = HttpMemoryStore(
            base_url=settings.memory.api_base_url,
            timeout=settings.memory.timeout,
            search_limit=settings.memory.search_limit,
        )

    if server_registry is None:
        logger.warning("bootstrap_fallback", component="server_registry", using="in_memory")
        server_registry = InMemoryServerRegistry()
    if permissions is None:
        logger.warning("bootstrap_fallback", component="permissions", using="allow_all")
        permissions = InMemoryPermissionService()
    if execution_log is None:
        logger.warning("bootstrap_fallback", component="execution_log", using="in_memory")
        execution_log = InMemoryExecutionLog()
    if credential_store is None:
        credential_store = InMemoryCredentialStore()

    tool_api = ToolApiClient(
        base_url=settings.tools.api_base_url,
        token=settings.tools.api_token,
        timeout=settings.tools.timeout,
    )
    resolver = CapabilityResolver(
        remote_tools=HttpRemoteToolBackend(tool_api),
        server_registry=server_registry,
        function_executor=HttpFunctionExecutor(tool_api),
        custom_tools=HttpCustomToolCatalog(tool_api),
        permissions=permissions,
        config=settings.tools,
    )

    catalog = ModelCatalog(settings.providers, settings.memory)
    dispatcher = ProviderDispatcher(
        backend=backend or ExecutorProviderBackend(timeout=settings.providers.request_timeout),
        catalog=catalog,
        credential_store=credential_store,
    )

    intent_gate = None
    if settings.intent_gate.enabled:
        gate_config = settings.intent_gate
        intent_gate = IntentGate(
            classifier=create_executor(
                catalog.qualified_model(gate_config.classifier_model),
                step_name="intent_classifier",
                timeout=gate_config.classifier_timeout,
            ),
            responder=create_executor(
                catalog.qualified_model(gate_config.reply_model),
                step_name="intent_reply",
                timeout=settings.providers.request_timeout,
            ),
            execution_log=execution_log,
            retriever=MemoryRetriever(memory_store, settings.memory.search_limit),
            config=gate_config,
        )

    handler = AgentBlockHandler(
        resolver=resolver,
        dispatcher=dispatcher,
        catalog=catalog,
        memory_store=memory_store,
        intent_gate=intent_gate,
        settings=settings,
    )
    logger.info(
        "handler_bootstrapped",
        default_model=settings.agent.default_model,
        intent_gate=intent_gate is not None,
        memory_api=settings.memory.api_base_url,
    )
    return handler
