"""Provider dispatcher: request construction, credentials and error taxonomy.

Every failure leaving dispatch() is either a ProviderTransportError
(timeout, DNS, connection) with a user-readable cause or a
ProviderModelError carrying the vendor's message verbatim. Errors raised
while a stream is being consumed are translated the same way.
"""

import time
from collections.abc import AsyncIterator
from dataclasses import replace

import httpx

from conductor.agent.dispatch.backend import ProviderBackend
from conductor.agent.dispatch.models import Credentials, ProviderRequest, SamplingParams
from conductor.agent.stores.interface import CredentialStore
from conductor.agent.structured.response_format import ResponseFormat
from conductor.domain.errors import (
    AgentExecutionError,
    ConfigurationError,
    ProviderModelError,
    ProviderTransportError,
)
from conductor.domain.execution import (
    AgentInputs,
    BufferedResult,
    ExecutionContext,
    ExecutionResult,
    StreamingResult,
)
from conductor.domain.messages import Message
from conductor.observability.logging import get_logger
from conductor.observability.metrics import LLM_TOKENS, PROVIDER_ERRORS, PROVIDER_LATENCY
from conductor.providers.catalog import ModelCatalog
from conductor.providers.llm.base import ProviderConnectionError, ProviderTimeoutError
from conductor.tools.descriptor import ToolDescriptor

logger = get_logger(__name__)

TIMEOUT_MESSAGE = "Provider request timed out - the API took too long to respond"
NETWORK_MESSAGE = (
    "Network error - unable to connect to provider API. Please check your internet connection."
)
DNS_MESSAGE = "Unable to connect to server - DNS or connection issue"

DNS_MARKERS = ("enotfound", "econnrefused", "getaddrinfo", "name or service not known")


def classify_provider_error(error: Exception) -> AgentExecutionError:
    """Map any provider failure onto the transport/model taxonomy."""
    if isinstance(error, AgentExecutionError):
        return error

    message = str(error)
    lowered = message.lower()
    if isinstance(error, ProviderTimeoutError | TimeoutError | httpx.TimeoutException):
        return ProviderTransportError(TIMEOUT_MESSAGE, cause=message)
    if any(marker in lowered for marker in DNS_MARKERS):
        return ProviderTransportError(DNS_MESSAGE, cause=message)
    if isinstance(error, ProviderConnectionError | ConnectionError | httpx.TransportError):
        return ProviderTransportError(NETWORK_MESSAGE, cause=message)
    return ProviderModelError(message or type(error).__name__, error_type=type(error).__name__)


class ProviderDispatcher:
    """Builds the provider request for a block and hands it to the backend."""

    def __init__(
        self,
        backend: ProviderBackend,
        catalog: ModelCatalog,
        credential_store: CredentialStore | None = None,
    ) -> None:
        self._backend = backend
        self._catalog = catalog
        self._credential_store = credential_store

    def build_request(
        self,
        inputs: AgentInputs,
        ctx: ExecutionContext,
        *,
        model: str,
        messages: list[Message],
        tools: list[ToolDescriptor],
        response_format: ResponseFormat | None,
        stream: bool,
    ) -> ProviderRequest:
        """Normalize the block's settings into one immutable request.

        Raises:
            ConfigurationError: If a sampling control is not a number
        """
        return ProviderRequest(
            provider=self._catalog.provider_for(model),
            model=model,
            route=self._catalog.qualified_model(model),
            messages=tuple(messages),
            tools=tuple(tools),
            sampling=SamplingParams.from_inputs(inputs),
            response_format=response_format,
            stream=stream,
            credentials=Credentials.from_inputs(inputs),
            block_id=ctx.block_id,
            workflow_id=ctx.workflow_id,
            workspace_id=ctx.workspace_id,
            user_id=ctx.user_id,
        )

    async def _with_fresh_credentials(self, request: ProviderRequest) -> ProviderRequest:
        """Exchange a stored Vertex credential for an access token.

        Tokens are short-lived, so this runs right before every call.
        """
        credential_id = request.credentials.vertex_credential
        if request.provider != "vertex" or not credential_id:
            return request
        if self._credential_store is None:
            raise ConfigurationError("No credential store configured for Vertex AI credentials")

        token = await self._credential_store.access_token(credential_id)
        if not token:
            raise ConfigurationError(
                f"Vertex AI credential not found: {credential_id}",
                credential_id=credential_id,
            )
        logger.info("vertex_credential_resolved", credential_id=credential_id)
        credentials = request.credentials.model_copy(update={"vertex_access_token": token})
        return replace(request, credentials=credentials)

    async def dispatch(self, request: ProviderRequest, ctx: ExecutionContext) -> ExecutionResult:
        """Execute the request and tag the result with the producing block.

        Raises:
            ConfigurationError: If required credentials cannot be resolved
            ProviderTransportError: On timeout or connection failure
            ProviderModelError: On a vendor-reported failure
        """
        request = await self._with_fresh_credentials(request)
        mode = "stream" if request.stream else "buffered"
        start = time.perf_counter()

        try:
            result = await self._backend.execute(request)
        except Exception as e:
            translated = self._failed(e, request, ctx)
            if translated is e:
                raise
            raise translated from e

        if isinstance(result, StreamingResult):
            execution = result.execution.model_copy(
                update={
                    "block_id": ctx.block_id,
                    "block_name": ctx.block_name,
                    "block_type": ctx.block_type,
                    "model": result.execution.model or request.model,
                    "is_streaming": True,
                }
            )
            return StreamingResult(
                stream=self._translated(result.stream, request, ctx, start),
                execution=execution,
            )

        PROVIDER_LATENCY.labels(provider=request.provider, mode=mode).observe(
            time.perf_counter() - start
        )
        self._count_tokens(request, result)
        return result.model_copy(update={"block_id": ctx.block_id})

    async def _translated(
        self,
        stream: AsyncIterator[str | bytes],
        request: ProviderRequest,
        ctx: ExecutionContext,
        start: float,
    ) -> AsyncIterator[str | bytes]:
        try:
            async for chunk in stream:
                yield chunk
        except Exception as e:
            translated = self._failed(e, request, ctx)
            if translated is e:
                raise
            raise translated from e
        PROVIDER_LATENCY.labels(provider=request.provider, mode="stream").observe(
            time.perf_counter() - start
        )

    def _failed(
        self,
        error: Exception,
        request: ProviderRequest,
        ctx: ExecutionContext,
    ) -> AgentExecutionError:
        translated = classify_provider_error(error)
        PROVIDER_ERRORS.labels(provider=request.provider, error_type=translated.code).inc()
        logger.error(
            "provider_request_failed",
            provider=request.provider,
            model=request.model,
            workflow_id=ctx.workflow_id,
            block_id=ctx.block_id,
            error_type=type(error).__name__,
            error=str(error),
            code=translated.code,
        )
        return translated

    def _count_tokens(self, request: ProviderRequest, result: BufferedResult) -> None:
        if result.tokens.input:
            LLM_TOKENS.labels(
                provider=request.provider, model=request.model, direction="input"
            ).inc(result.tokens.input)
        if result.tokens.output:
            LLM_TOKENS.labels(
                provider=request.provider, model=request.model, direction="output"
            ).inc(result.tokens.output)
