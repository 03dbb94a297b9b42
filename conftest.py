"""Root pytest configuration and fixtures.

This module provides:
- Environment setup (loads .env)
- A scripted provider client for tests without network access
- Orchestrator fixtures wired to scripted clients
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
from typing import Any

import pytest
from dotenv import load_dotenv

from src.llm.backend import (
    AIMessage,
    LLMProviderType,
    ProviderClient,
    RequestOptions,
)
from src.llm.orchestrator import (
    OrchestratorConfig,
    OrchestratorContext,
    ProviderOrchestrator,
)
from src.llm.resilience import CircuitBreakerConfig

# Load environment variables from .env file
load_dotenv()


# =============================================================================
# Scripted Provider Client
# =============================================================================

Script = str | list[str | BaseException] | BaseException


class ScriptedProviderClient(ProviderClient):
    """Provider client that replays scripted replies.

    Each call consumes the next script entry:
    - str: the reply (streamed as a single chunk)
    - list: stream chunks; an exception in the list is raised mid-stream
    - exception: raised before any output

    When the script runs out, `default_reply` is returned.
    """

    def __init__(
        self,
        provider: LLMProviderType | str = LLMProviderType.CLAUDE,
        replies: list[Script] | None = None,
        probe_result: float | BaseException = 12.0,
        delay: float = 0.0,
        default_reply: str = "ok",
    ):
        self._provider = LLMProviderType(provider)
        self.replies: list[Script] = list(replies or [])
        self.probe_result = probe_result
        self.delay = delay
        self.default_reply = default_reply
        self.calls: list[dict[str, Any]] = []
        self.probe_calls = 0
        self.validate_calls = 0
        self.closed = False
        self.expires_at = None

    def _next(self) -> Script:
        return self.replies.pop(0) if self.replies else self.default_reply

    async def send_message(
        self,
        messages: list[AIMessage],
        system_prompt: str | None = None,
        options: RequestOptions | None = None,
    ) -> str:
        self.calls.append(
            {"messages": list(messages), "system_prompt": system_prompt, "options": options}
        )
        if self.delay:
            await asyncio.sleep(self.delay)
        script = self._next()
        if isinstance(script, BaseException):
            raise script
        if isinstance(script, list):
            return "".join(part for part in script if isinstance(part, str))
        return script

    async def stream_message(
        self,
        messages: list[AIMessage],
        system_prompt: str | None = None,
        options: RequestOptions | None = None,
    ) -> AsyncIterator[str]:
        self.calls.append(
            {"messages": list(messages), "system_prompt": system_prompt, "options": options}
        )
        script = self._next()
        if isinstance(script, BaseException):
            raise script
        for part in script if isinstance(script, list) else [script]:
            if self.delay:
                await asyncio.sleep(self.delay)
            if isinstance(part, BaseException):
                raise part
            yield part

    async def validate_api_key(self) -> bool:
        self.validate_calls += 1
        await self.send_message([AIMessage("user", "Hello")], options=RequestOptions(max_tokens=10))
        return True

    async def probe(self) -> float:
        self.probe_calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if isinstance(self.probe_result, BaseException):
            raise self.probe_result
        return self.probe_result

    async def aclose(self) -> None:
        self.closed = True

    @property
    def model_name(self) -> str:
        return "scripted-model"

    @property
    def provider(self) -> LLMProviderType:
        return self._provider

    @property
    def credential_expires_at(self):
        return self.expires_at


class FakeClock:
    """Manually advanced clock for breaker tests."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def fake_clock() -> FakeClock:
    """Provide a manually advanced clock."""
    return FakeClock()


@pytest.fixture
def scripted_client() -> Callable[..., ScriptedProviderClient]:
    """Factory for scripted provider clients.

    Returns:
        Callable accepting ScriptedProviderClient arguments.
    """
    return ScriptedProviderClient


@pytest.fixture
def orchestrator_config() -> OrchestratorConfig:
    """Small, fast resilience settings for tests."""
    return OrchestratorConfig(
        request_timeout=0.5,
        breaker=CircuitBreakerConfig(failure_threshold=3, cooldown_seconds=30.0),
        health_check_timeout=0.2,
        health_check_interval=0.05,
        cache_max_size=10,
        cache_ttl_seconds=60.0,
        metrics_max_data_points=100,
    )


@pytest.fixture
def make_orchestrator(
    orchestrator_config: OrchestratorConfig, fake_clock: FakeClock
) -> Callable[..., ProviderOrchestrator]:
    """Factory for orchestrators with scripted clients registered.

    The first client becomes the active provider.
    """

    def make(*clients: ProviderClient) -> ProviderOrchestrator:
        context = OrchestratorContext.create(orchestrator_config, clock=fake_clock)
        orchestrator = ProviderOrchestrator(context)
        for client in clients:
            orchestrator.register_client(client)
        return orchestrator

    return make

