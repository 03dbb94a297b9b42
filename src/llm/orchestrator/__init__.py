"""Provider orchestrator.

Example:
    >>> from src.llm.orchestrator import ProviderOrchestrator
    >>> orchestrator = ProviderOrchestrator()
    >>> orchestrator.configure(ProviderConfig(LLMProviderType.OPENAI, api_key="sk-..."))
    >>> reply = await orchestrator.send_message([AIMessage("user", "Hi")], use_cache=True)
"""

from .lib import (
    KeyValidation,
    MessageStream,
    OrchestratorConfig,
    OrchestratorContext,
    ProviderOrchestrator,
    StreamCallbacks,
)
from .recovery import FailedOperation, RecoverySlot

__all__ = [
    "ProviderOrchestrator",
    "OrchestratorConfig",
    "OrchestratorContext",
    "KeyValidation",
    "MessageStream",
    "StreamCallbacks",
    "FailedOperation",
    "RecoverySlot",
]
