"""Multi-turn site discovery conversation.

The engine keeps one ConversationState per session, sends each turn
through the orchestrator with the guarded site-discovery prompt and watches
replies for the completion marker. A completion is accepted only when the
JSON after the marker parses; otherwise the conversation stays open and the
parse error is recorded for an explicit retry.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import ValidationError

from src.config import EnvVar, get_environment
from src.llm import AIMessage, ProviderError, ProviderOrchestrator, RequestOptions
from src.llm.resilience import ErrorDetails
from src.prompt import (
    COMPLETION_MARKER,
    SITE_DISCOVERY_PROMPT,
    create_safe_system_prompt,
    sanitize_user_input,
)
from src.schema import SiteStructure
from src.synthesis import structure_from_understanding

from .parsing import Completion, CompletionParseError, parse_completion

logger = logging.getLogger(__name__)

START_MAX_TOKENS = 1024
TURN_MAX_TOKENS = 2048
MAX_OPEN_CONFIDENCE = 85
CONFIDENCE_PER_QUESTION = 15

FIRST_QUESTION = (
    "Hi! I'd love to help you build your WordPress site. "
    "What kind of website are you thinking about creating?"
)
COMPLETION_REPLY = (
    "Great! I have everything I need. Let me show you what I've designed for your site."
)

STARTER_SUGGESTIONS = [
    "A portfolio to showcase my work",
    "A blog for sharing articles",
    "A business website",
    "An online store",
]
BROAD_SUGGESTIONS = [
    "A professional portfolio",
    "A blog or magazine",
    "A business website",
    "An online store",
]
CONTENT_SUGGESTIONS = [
    "Photos and videos",
    "Articles and blog posts",
    "Products for sale",
    "Team member bios",
]
FEATURE_SUGGESTIONS = [
    "Contact form",
    "Email newsletter",
    "Social media integration",
    "Customer testimonials",
]


def suggestions_for(questions_asked: int) -> list[str]:
    """Quick replies by conversation stage."""
    if questions_asked < 3:
        return list(BROAD_SUGGESTIONS)
    if questions_asked < 6:
        return list(CONTENT_SUGGESTIONS)
    return list(FEATURE_SUGGESTIONS)


# =============================================================================
# State
# =============================================================================


class ConversationStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


@dataclass
class ConversationMessage:
    """One message in the conversation history."""

    role: str
    content: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_ai_message(self) -> AIMessage:
        return AIMessage(self.role, self.content)

    def to_dict(self) -> dict[str, Any]:
        return {"role": self.role, "content": self.content, "timestamp": self.timestamp.isoformat()}


@dataclass
class Understanding:
    """What the assistant has established about the site so far.

    Attributes:
        confidence: 0-100; 100 only once completed.
        purpose: Site purpose from the completion payload.
        audience: Target audience from the completion payload.
        content_types: Content type names.
        features: Requested features.
    """

    confidence: int = 0
    purpose: str | None = None
    audience: str | None = None
    content_types: list[str] = field(default_factory=list)
    features: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "confidence": self.confidence,
            "purpose": self.purpose,
            "audience": self.audience,
            "contentTypes": list(self.content_types),
            "features": list(self.features),
        }


@dataclass
class ConversationState:
    """The single live conversation of a session."""

    id: str = field(default_factory=lambda: f"conv_{uuid4().hex[:12]}")
    messages: list[ConversationMessage] = field(default_factory=list)
    understanding: Understanding = field(default_factory=Understanding)
    questions_asked: int = 0
    status: ConversationStatus = ConversationStatus.NOT_STARTED
    structure: SiteStructure | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def completed(self) -> bool:
        return self.status == ConversationStatus.COMPLETED

    @property
    def awaiting_reply(self) -> bool:
        """True if the last message is a user message with no reply yet."""
        return bool(self.messages) and self.messages[-1].role == "user"

    def append(self, role: str, content: str) -> None:
        self.messages.append(ConversationMessage(role, content))
        self.updated_at = datetime.now(UTC)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "messages": [m.to_dict() for m in self.messages],
            "understanding": self.understanding.to_dict(),
            "questionsAsked": self.questions_asked,
            "status": self.status.value,
            "completed": self.completed,
            "structure": self.structure.to_wire() if self.structure else None,
        }


@dataclass
class ConversationStart:
    conversation_id: str
    first_question: str
    suggestions: list[str]


@dataclass
class TurnResult:
    """Outcome of one user turn.

    Attributes:
        reply: Assistant text shown to the user (marker and JSON removed).
        understanding: Snapshot after the turn.
        completed: Whether the conversation finished on this turn.
        suggestions: Quick replies while the conversation is open.
        structure: Site structure, set on completion.
        error: Recoverable parse error when a completion could not be read.
    """

    reply: str
    understanding: Understanding
    completed: bool = False
    suggestions: list[str] | None = None
    structure: SiteStructure | None = None
    error: ErrorDetails | None = None


# =============================================================================
# Engine
# =============================================================================


class ConversationEngine:
    """Drives the discovery dialogue against the orchestrator.

    Turns are serialised; a second `send` waits for the first to finish.

    Example:
        >>> engine = ConversationEngine(orchestrator)
        >>> start = await engine.start()
        >>> turn = await engine.send("A portfolio for my photography")
        >>> turn.suggestions
        ['A professional portfolio', ...]
    """

    def __init__(self, orchestrator: ProviderOrchestrator, max_message_length: int | None = None):
        """Initialize the engine.

        Args:
            orchestrator: Routes every provider call.
            max_message_length: User input cap; MAX_MESSAGE_LENGTH when None.
        """
        self._orchestrator = orchestrator
        self.max_message_length = max_message_length or get_environment(EnvVar.MAX_MESSAGE_LENGTH)
        self._lock = asyncio.Lock()
        self._system_prompt = create_safe_system_prompt(SITE_DISCOVERY_PROMPT)
        self.state = ConversationState()
        self.last_turn: TurnResult | None = None

    @property
    def status(self) -> ConversationStatus:
        return self.state.status

    async def start(self, initial_context: str | None = None) -> ConversationStart:
        """Begin a new conversation, replacing any previous one.

        Args:
            initial_context: Optional description the user typed up front.
                When given, it is sent and the reply becomes the first
                question.

        Raises:
            ProviderError: If the initial context could not be sent.
        """
        async with self._lock:
            state = ConversationState(status=ConversationStatus.IN_PROGRESS)
            first_question = FIRST_QUESTION

            if initial_context:
                context = sanitize_user_input(initial_context, max_length=self.max_message_length)
                state.append("user", context.sanitized)
                reply = await self._orchestrator.send_message(
                    [AIMessage("user", context.sanitized)],
                    self._system_prompt,
                    RequestOptions(max_tokens=START_MAX_TOKENS),
                )
                first_question = reply or FIRST_QUESTION
                state.append("assistant", first_question)

            self.state = state
            self.last_turn = None
            logger.info(f"Started conversation {state.id}")
            return ConversationStart(state.id, first_question, list(STARTER_SUGGESTIONS))

    def _accept_user_message(self, user_message: str) -> None:
        if self.state.status == ConversationStatus.NOT_STARTED:
            raise RuntimeError("Conversation not started. Call start() first.")
        if self.state.completed:
            raise RuntimeError(f"Conversation {self.state.id} is already completed")

        result = sanitize_user_input(user_message, max_length=self.max_message_length)
        self.state.append("user", result.sanitized)

    def _history(self) -> list[AIMessage]:
        return [m.to_ai_message() for m in self.state.messages]

    async def send(self, user_message: str) -> TurnResult:
        """Send one user message and process the reply.

        Raises:
            RuntimeError: If the conversation is not started or completed.
            ProviderError: If the provider call failed; the message stays in
                the history and `retry_turn()` re-requests the reply.
        """
        async with self._lock:
            self._accept_user_message(user_message)
            return await self._request_turn()

    async def stream_send(self, user_message: str) -> AsyncIterator[str]:
        """Streaming variant of `send`.

        Yields reply chunks as they arrive; the processed TurnResult is
        available as `last_turn` once iteration ends.
        """
        async with self._lock:
            self._accept_user_message(user_message)
            stream = self._orchestrator.stream_message(
                self._history(), self._system_prompt, RequestOptions(max_tokens=TURN_MAX_TOKENS)
            )
            try:
                async with stream:
                    async for chunk in stream:
                        yield chunk
            except ProviderError as e:
                self._record("conversation_turn", e)
                raise
            self._finish_turn(stream.text)

    async def retry_turn(self) -> TurnResult:
        """Re-request the reply to the last unanswered user message.

        Raises:
            ValueError: If no user message is awaiting a reply.
        """
        async with self._lock:
            if not self.state.awaiting_reply or self.state.completed:
                raise ValueError("No unanswered message to retry")
            return await self._request_turn()

    async def _request_turn(self) -> TurnResult:
        try:
            reply = await self._orchestrator.send_message(
                self._history(),
                self._system_prompt,
                RequestOptions(max_tokens=TURN_MAX_TOKENS),
            )
        except ProviderError as e:
            self._record("conversation_turn", e)
            raise
        return self._finish_turn(reply)

    def _record(self, name: str, error: BaseException) -> ErrorDetails:
        provider = self._orchestrator.active_provider
        failed = self._orchestrator.record_failure(name, error, provider, retry=self.retry_turn)
        return failed.error

    def _finish_turn(self, reply: str) -> TurnResult:
        reply = reply or ""
        try:
            completion = parse_completion(reply)
            structure = structure_from_understanding(completion.payload) if completion else None
        except (KeyError, TypeError, ValidationError) as e:
            return self._parse_failed(reply, CompletionParseError(f"Unusable completion payload: {e}"))
        except CompletionParseError as e:
            return self._parse_failed(reply, e)

        if completion is None:
            return self._continue(reply)
        return self._complete(completion, structure)

    def _continue(self, reply: str) -> TurnResult:
        state = self.state
        state.append("assistant", reply)
        state.questions_asked += 1
        state.understanding.confidence = min(
            CONFIDENCE_PER_QUESTION * state.questions_asked, MAX_OPEN_CONFIDENCE
        )
        self.last_turn = TurnResult(
            reply=reply,
            understanding=state.understanding,
            suggestions=suggestions_for(state.questions_asked),
        )
        return self.last_turn

    def _complete(self, completion: Completion, structure: SiteStructure) -> TurnResult:
        state = self.state
        payload = completion.payload
        reply = completion.reply or COMPLETION_REPLY

        state.append("assistant", reply)
        state.questions_asked += 1
        state.status = ConversationStatus.COMPLETED
        state.structure = structure
        state.understanding = Understanding(
            confidence=100,
            purpose=payload.get("purpose"),
            audience=payload.get("audience"),
            content_types=[
                ct["name"] for ct in payload.get("contentTypes") or [] if isinstance(ct, dict)
            ],
            features=[f for f in payload.get("features") or [] if isinstance(f, str)],
        )
        logger.info(f"Conversation {state.id} completed after {state.questions_asked} turns")

        self.last_turn = TurnResult(
            reply=reply,
            understanding=state.understanding,
            completed=True,
            structure=structure,
        )
        return self.last_turn

    def _parse_failed(self, reply: str, error: CompletionParseError) -> TurnResult:
        """Keep the conversation open; the unanswered message can be retried."""
        logger.warning(f"Conversation {self.state.id}: completion not accepted: {error}")
        details = self._record("conversation_completion", error)
        self.last_turn = TurnResult(
            reply=reply.split(COMPLETION_MARKER)[0].strip(),
            understanding=self.state.understanding,
            error=details,
        )
        return self.last_turn


__all__ = [
    "ConversationEngine",
    "ConversationMessage",
    "ConversationStart",
    "ConversationState",
    "ConversationStatus",
    "TurnResult",
    "Understanding",
    "suggestions_for",
]
