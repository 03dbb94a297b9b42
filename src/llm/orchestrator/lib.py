"""Provider orchestrator.

Single entry point for AI calls. Every call passes through the provider's
circuit breaker, is bounded by the request timeout and has its failures
classified into ProviderError; raw SDK exceptions never leave this module.
Nothing is retried automatically: the last failure is kept in a recovery
slot and re-run only through `retry_last_operation()`.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field
from typing import Any

from ...config import EnvVar, get_api_key, get_available_llm_providers, get_environment
from ..backend import (
    AIMessage,
    GeminiAuthMode,
    LLMProviderType,
    ProviderClient,
    ProviderConfig,
    RequestOptions,
    create_from_config,
    create_provider_client,
)
from ..resilience import (
    CircuitBreakerConfig,
    CircuitBreakerOpenError,
    CircuitBreakerRegistry,
    ErrorDetails,
    ErrorPresets,
    HealthMonitor,
    HealthStatus,
    PerformanceMonitor,
    Permit,
    ProviderError,
    ResponseCache,
    classify,
    make_cache_key,
)
from .recovery import FailedOperation, RecoverySlot, RetryCallable

logger = logging.getLogger(__name__)


# =============================================================================
# Configuration and Context
# =============================================================================


@dataclass
class OrchestratorConfig:
    """Resilience settings.

    Attributes:
        request_timeout: Bound on every provider call, in seconds.
        breaker: Circuit breaker thresholds.
        health_check_timeout: Probe timeout, in seconds.
        health_check_interval: Background probe interval, in seconds.
        cache_max_size: Response cache capacity.
        cache_ttl_seconds: Response cache entry lifetime.
        metrics_max_data_points: Performance metrics window.
    """

    request_timeout: float = 30.0
    breaker: CircuitBreakerConfig = field(default_factory=CircuitBreakerConfig)
    health_check_timeout: float = 10.0
    health_check_interval: float = 300.0
    cache_max_size: int = 100
    cache_ttl_seconds: float = 300.0
    metrics_max_data_points: int = 1000

    @classmethod
    def from_environment(cls) -> OrchestratorConfig:
        """Build from environment variables (see src.config)."""
        return cls(
            request_timeout=get_environment(EnvVar.REQUEST_TIMEOUT_SECONDS),
            breaker=CircuitBreakerConfig.from_environment(),
            health_check_timeout=get_environment(EnvVar.HEALTH_CHECK_TIMEOUT),
            health_check_interval=get_environment(EnvVar.HEALTH_CHECK_INTERVAL),
            cache_max_size=get_environment(EnvVar.CACHE_MAX_SIZE),
            cache_ttl_seconds=get_environment(EnvVar.CACHE_TTL_SECONDS),
            metrics_max_data_points=get_environment(EnvVar.METRICS_MAX_DATA_POINTS),
        )


@dataclass
class OrchestratorContext:
    """Everything the orchestrator shares, passed explicitly.

    The client table is shared by reference with the health monitor, so
    registering a client makes it visible to probes immediately.
    """

    config: OrchestratorConfig
    clients: dict[LLMProviderType, ProviderClient]
    breakers: CircuitBreakerRegistry
    health: HealthMonitor
    cache: ResponseCache[str]
    metrics: PerformanceMonitor
    recovery: RecoverySlot
    active_provider: LLMProviderType | None = None

    @classmethod
    def create(
        cls,
        config: OrchestratorConfig | None = None,
        clock: Callable[[], float] = time.time,
    ) -> OrchestratorContext:
        """Build a fresh context.

        Args:
            config: Settings; read from the environment when None.
            clock: Wall-clock source for the circuit breakers.
        """
        config = config or OrchestratorConfig.from_environment()
        clients: dict[LLMProviderType, ProviderClient] = {}
        breakers = CircuitBreakerRegistry(config.breaker, clock=clock)
        return cls(
            config=config,
            clients=clients,
            breakers=breakers,
            health=HealthMonitor(
                clients,
                breakers,
                timeout=config.health_check_timeout,
                interval=config.health_check_interval,
            ),
            cache=ResponseCache(config.cache_max_size, config.cache_ttl_seconds),
            metrics=PerformanceMonitor(config.metrics_max_data_points),
            recovery=RecoverySlot(),
        )


@dataclass
class KeyValidation:
    """Result of an API key check."""

    valid: bool
    error: ErrorDetails | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"valid": self.valid, "error": self.error.to_dict() if self.error else None}


@dataclass
class StreamCallbacks:
    """Callback adapter for streamed replies.

    `on_token` runs per chunk, then exactly one of `on_complete` (full text)
    or `on_error` (classified details). Callbacks may be sync or async.
    """

    on_token: Callable[[str], Any] | None = None
    on_complete: Callable[[str], Any] | None = None
    on_error: Callable[[ErrorDetails], Any] | None = None


async def _invoke(callback: Callable[..., Any] | None, *args: Any) -> None:
    if callback is None:
        return
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


# =============================================================================
# Streaming
# =============================================================================


class MessageStream:
    """Async iterator of reply chunks.

    Stop consuming by leaving an `async with` block or calling `aclose()`;
    no further chunks are produced and an in-flight breaker trial is
    released without recording an outcome.

    Example:
        >>> async with orchestrator.stream_message(messages) as stream:
        ...     async for chunk in stream:
        ...         print(chunk, end="")
        >>> stream.text
    """

    def __init__(self, chunks: AsyncIterator[str]):
        self._chunks = chunks
        self._parts: list[str] = []
        self.finished = False

    @property
    def text(self) -> str:
        """Text received so far."""
        return "".join(self._parts)

    def __aiter__(self) -> MessageStream:
        return self

    async def __anext__(self) -> str:
        try:
            chunk = await anext(self._chunks)
        except StopAsyncIteration:
            self.finished = True
            raise
        self._parts.append(chunk)
        return chunk

    async def aclose(self) -> None:
        """Abandon the stream."""
        await self._chunks.aclose()

    async def __aenter__(self) -> MessageStream:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


# =============================================================================
# Orchestrator
# =============================================================================


class ProviderOrchestrator:
    """Routes AI calls through breaker, timeout, cache and classification.

    Example:
        >>> orchestrator = ProviderOrchestrator()
        >>> orchestrator.configure(ProviderConfig(LLMProviderType.CLAUDE, api_key="sk-ant-..."))
        >>> reply = await orchestrator.send_message([AIMessage("user", "Hello")])
    """

    def __init__(self, context: OrchestratorContext | None = None):
        self.context = context or OrchestratorContext.create()

    # -------------------------------------------------------------------------
    # Provider table
    # -------------------------------------------------------------------------

    def configure(self, config: ProviderConfig, activate: bool = True) -> ProviderClient:
        """Create and register a client from a ProviderConfig."""
        client = create_from_config(config, timeout=self.context.config.request_timeout)
        self.register_client(client, activate=activate)
        return client

    def configure_from_environment(self) -> list[LLMProviderType]:
        """Register a client for every provider with an API key in the environment.

        AI_PROVIDER selects the active provider when its client was registered.
        Gemini is skipped in OAuth mode since its tokens come from the sign-in
        flow rather than the environment.

        Returns:
            Providers that were registered, in configuration order.
        """
        oauth = get_environment(EnvVar.GEMINI_AUTH_MODE) == GeminiAuthMode.OAUTH.value
        registered: list[LLMProviderType] = []
        for name in get_available_llm_providers():
            provider = LLMProviderType(name)
            if provider == LLMProviderType.GEMINI and oauth:
                logger.info("Skipping Gemini API key: GEMINI_AUTH_MODE is oauth")
                continue
            self.configure(ProviderConfig(provider, api_key=get_api_key(name)), activate=False)
            registered.append(provider)

        preferred = get_environment(EnvVar.AI_PROVIDER)
        if preferred in {p.value for p in registered}:
            self.set_active_provider(preferred)
        elif registered:
            logger.warning(
                f"AI_PROVIDER={preferred!r} has no configured key, using {self.context.active_provider.value}"
            )
        return registered

    def register_client(self, client: ProviderClient, activate: bool = False) -> None:
        """Register (or replace) the client for its provider."""
        self.context.clients[client.provider] = client
        self.context.breakers.get_or_create(client.provider.value)
        if activate or self.context.active_provider is None:
            self.context.active_provider = client.provider
        logger.info(f"Registered provider client {client.name}")

    def set_active_provider(self, provider: LLMProviderType | str) -> None:
        self.context.active_provider = LLMProviderType(provider)

    @property
    def active_provider(self) -> LLMProviderType | None:
        return self.context.active_provider

    def get_client(self, provider: LLMProviderType | str | None = None) -> ProviderClient | None:
        resolved = self.context.active_provider if provider is None else LLMProviderType(provider)
        return self.context.clients.get(resolved) if resolved else None

    def _resolve(self, provider: LLMProviderType | str | None) -> tuple[LLMProviderType | None, ProviderClient]:
        resolved = self.context.active_provider if provider is None else LLMProviderType(provider)
        client = self.context.clients.get(resolved) if resolved else None
        if client is None:
            label = resolved.value if resolved else "AI provider"
            raise ProviderError(ErrorPresets.missing_api_key(label))
        return resolved, client

    # -------------------------------------------------------------------------
    # Failure bookkeeping
    # -------------------------------------------------------------------------

    def record_failure(
        self,
        name: str,
        error: BaseException | ErrorDetails,
        provider: LLMProviderType | str | None = None,
        retry: RetryCallable | None = None,
    ) -> FailedOperation:
        """Classify and store a failure in the last-error slot."""
        provider_name = LLMProviderType(provider).value if provider else None
        details = error if isinstance(error, ErrorDetails) else classify(error, provider_name)
        return self.context.recovery.record(name, details, provider_name, retry)

    def _metric_category(self, error: BaseException, details: ErrorDetails) -> str:
        if isinstance(error, CircuitBreakerOpenError):
            return "circuit_open"
        return details.category.value

    async def _fail(
        self,
        name: str,
        error: BaseException,
        provider: LLMProviderType | None,
        started: float,
        retry: RetryCallable,
        permit: Permit | None = None,
    ) -> ProviderError:
        """Classify, count, record and return the ProviderError to raise."""
        provider_name = provider.value if provider else None
        details = classify(error, provider_name)
        if permit is not None and provider is not None:
            breaker = self.context.breakers.get_or_create(provider.value)
            await breaker.record_failure(details.category, permit)
        self.context.metrics.record(
            name,
            (time.perf_counter() - started) * 1000,
            success=False,
            provider=provider_name,
            error_category=self._metric_category(error, details),
        )
        self.context.recovery.record(name, details, provider_name, retry)
        return ProviderError(details)

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def send_message(
        self,
        messages: list[AIMessage],
        system_prompt: str | None = None,
        options: RequestOptions | None = None,
        provider: LLMProviderType | str | None = None,
        use_cache: bool = False,
    ) -> str:
        """Send messages and return the full reply.

        Args:
            messages: Conversation so far.
            system_prompt: Optional system instruction.
            options: Generation options.
            provider: Provider override; active provider when None.
            use_cache: Serve identical requests from the response cache.

        Returns:
            Reply text.

        Raises:
            ProviderError: On any failure, including an open circuit.
        """
        options = options or RequestOptions()
        started = time.perf_counter()

        async def retry() -> str:
            return await self.send_message(messages, system_prompt, options, provider, use_cache)

        resolved: LLMProviderType | None = None
        permit: Permit | None = None
        try:
            resolved, client = self._resolve(provider)

            cache_key = None
            if use_cache:
                cache_key = make_cache_key(resolved.value, messages, system_prompt, options)
                cached = self.context.cache.get(cache_key)
                if cached is not None:
                    self.context.metrics.record(
                        "send_message",
                        (time.perf_counter() - started) * 1000,
                        success=True,
                        provider=resolved.value,
                        cache_hit=True,
                    )
                    return cached

            breaker = self.context.breakers.get_or_create(resolved.value)
            permit = await breaker.acquire()
            try:
                reply = await asyncio.wait_for(
                    client.send_message(messages, system_prompt, options),
                    timeout=self.context.config.request_timeout,
                )
            except asyncio.CancelledError:
                await breaker.release(permit)
                raise
            await breaker.record_success(permit)
        except Exception as e:
            raise await self._fail("send_message", e, resolved, started, retry, permit) from e

        if cache_key is not None:
            self.context.cache.set(cache_key, reply)
        self.context.metrics.record(
            "send_message",
            (time.perf_counter() - started) * 1000,
            success=True,
            provider=resolved.value,
            cache_hit=False if use_cache else None,
        )
        return reply

    def stream_message(
        self,
        messages: list[AIMessage],
        system_prompt: str | None = None,
        options: RequestOptions | None = None,
        provider: LLMProviderType | str | None = None,
    ) -> MessageStream:
        """Stream a reply.

        Each chunk wait, including the wait for the first chunk, is bounded
        by the request timeout. Failures raise ProviderError from the
        iterator.
        """
        options = options or RequestOptions()
        return MessageStream(self._stream(messages, system_prompt, options, provider))

    async def _stream(
        self,
        messages: list[AIMessage],
        system_prompt: str | None,
        options: RequestOptions,
        provider: LLMProviderType | str | None,
    ) -> AsyncIterator[str]:
        started = time.perf_counter()

        async def retry() -> str:
            stream = self.stream_message(messages, system_prompt, options, provider)
            async with stream:
                async for _ in stream:
                    pass
            return stream.text

        resolved: LLMProviderType | None = None
        try:
            resolved, client = self._resolve(provider)
            breaker = self.context.breakers.get_or_create(resolved.value)
            permit = await breaker.acquire()
        except Exception as e:
            raise await self._fail("stream_message", e, resolved, started, retry) from e

        chunks = client.stream_message(messages, system_prompt, options)
        settled = False
        try:
            while True:
                try:
                    async with asyncio.timeout(self.context.config.request_timeout):
                        chunk = await anext(chunks)
                except StopAsyncIteration:
                    break
                yield chunk

            settled = True
            await breaker.record_success(permit)
            self.context.metrics.record(
                "stream_message",
                (time.perf_counter() - started) * 1000,
                success=True,
                provider=resolved.value,
            )
        except Exception as e:
            settled = True
            raise await self._fail("stream_message", e, resolved, started, retry, permit) from e
        finally:
            if not settled:
                await breaker.release(permit)
                logger.debug(f"Stream from {resolved.value} abandoned by consumer")
            await chunks.aclose()

    async def stream_with_callbacks(
        self,
        messages: list[AIMessage],
        callbacks: StreamCallbacks,
        system_prompt: str | None = None,
        options: RequestOptions | None = None,
        provider: LLMProviderType | str | None = None,
    ) -> str | None:
        """Stream a reply into callbacks.

        Returns:
            Full text on success, None after `on_error` was called.
        """
        stream = self.stream_message(messages, system_prompt, options, provider)
        try:
            async with stream:
                async for chunk in stream:
                    await _invoke(callbacks.on_token, chunk)
        except ProviderError as e:
            await _invoke(callbacks.on_error, e.details)
            return None

        await _invoke(callbacks.on_complete, stream.text)
        return stream.text

    async def validate_api_key(
        self,
        provider: LLMProviderType | str,
        api_key: str | None = None,
        **client_kwargs: Any,
    ) -> KeyValidation:
        """Check credentials with one minimal request.

        Bypasses the circuit breaker in both directions. With `api_key` a
        temporary client is built; otherwise the registered client is used.
        """
        provider = LLMProviderType(provider)

        async def retry() -> KeyValidation:
            return await self.validate_api_key(provider, api_key, **client_kwargs)

        temporary = api_key is not None
        client: ProviderClient | None = None
        started = time.perf_counter()
        try:
            if temporary:
                client = create_provider_client(provider, api_key=api_key, **client_kwargs)
            else:
                client = self.context.clients.get(provider)
                if client is None:
                    raise ProviderError(ErrorPresets.missing_api_key(provider.value))

            await asyncio.wait_for(
                client.validate_api_key(), timeout=self.context.config.request_timeout
            )
        except Exception as e:
            details = classify(e, provider.value)
            self.context.recovery.record("validate_api_key", details, provider.value, retry)
            self.context.metrics.record(
                "validate_api_key",
                (time.perf_counter() - started) * 1000,
                success=False,
                provider=provider.value,
                error_category=details.category.value,
            )
            return KeyValidation(valid=False, error=details)
        finally:
            if temporary and client is not None:
                await client.aclose()

        self.context.metrics.record(
            "validate_api_key",
            (time.perf_counter() - started) * 1000,
            success=True,
            provider=provider.value,
        )
        return KeyValidation(valid=True)

    # -------------------------------------------------------------------------
    # Recovery
    # -------------------------------------------------------------------------

    def get_last_error(self) -> FailedOperation | None:
        return self.context.recovery.last

    def clear_error_state(self) -> None:
        self.context.recovery.clear()

    async def retry_last_operation(self) -> Any:
        """Explicitly re-run the last failed operation.

        Raises:
            ValueError: If there is nothing to retry.
            ProviderError: If the retry fails again.
        """
        return await self.context.recovery.retry_last()

    # -------------------------------------------------------------------------
    # Health, breakers, cache and metrics
    # -------------------------------------------------------------------------

    async def reset_circuit_breakers(self) -> None:
        await self.context.breakers.reset_all()

    def get_circuit_breaker_status(self) -> dict[str, dict[str, Any]]:
        """Breaker stats for every provider."""
        for provider in LLMProviderType:
            self.context.breakers.get_or_create(provider.value)
        return {name: stats.to_dict() for name, stats in self.context.breakers.all_stats().items()}

    def get_health_snapshot(self) -> dict[str, Any]:
        """Latest health per provider plus the combined status."""
        snapshot = self.context.health.snapshot()
        return {
            "overall": self.context.health.overall_status().value,
            "providers": {p.value: h.to_dict() for p, h in snapshot.items()},
        }

    async def check_health(self, provider: LLMProviderType | str | None = None) -> dict[str, Any]:
        """Probe one provider, or all of them concurrently."""
        if provider is not None:
            health = await self.context.health.check_one(provider)
            return health.to_dict()
        results = await self.context.health.check_all()
        return {p.value: h.to_dict() for p, h in results.items()}

    def overall_health(self) -> HealthStatus:
        return self.context.health.overall_status()

    def start_health_monitoring(self) -> None:
        self.context.health.start()

    async def stop_health_monitoring(self) -> None:
        await self.context.health.stop()

    def clear_caches(self) -> None:
        self.context.cache.clear()

    def get_cache_stats(self) -> dict[str, Any]:
        return self.context.cache.stats().to_dict()

    def get_performance_metrics(
        self, operation: str | None = None, provider: LLMProviderType | str | None = None
    ) -> dict[str, Any]:
        """Aggregated metrics, optionally filtered."""
        provider_name = LLMProviderType(provider).value if provider else None
        return self.context.metrics.get_metrics(operation, provider_name).to_dict()

    async def aclose(self) -> None:
        """Stop background probing and close all clients."""
        await self.context.health.stop()
        for client in self.context.clients.values():
            await client.aclose()


__all__ = [
    "OrchestratorConfig",
    "OrchestratorContext",
    "KeyValidation",
    "StreamCallbacks",
    "MessageStream",
    "ProviderOrchestrator",
]
