"""Tests for the discovery conversation engine."""

import json

import pytest

from src.llm import ProviderError
from src.llm.backend import ProviderConnectionError
from src.llm.resilience import ErrorCategory
from src.prompt import COMPLETION_MARKER
from src.wizard import ConversationEngine, ConversationStatus
from src.wizard.conversation import (
    BROAD_SUGGESTIONS,
    COMPLETION_REPLY,
    CONTENT_SUGGESTIONS,
    FEATURE_SUGGESTIONS,
    FIRST_QUESTION,
    STARTER_SUGGESTIONS,
)

PAYLOAD = {
    "purpose": "Showcase photography and attract clients",
    "audience": "Couples planning weddings",
    "contentTypes": [
        {
            "name": "Gallery",
            "slug": "gallery",
            "fields": [{"name": "images", "type": "gallery", "label": "Images"}],
        }
    ],
    "taxonomies": [{"name": "Style", "slug": "style", "postTypes": ["gallery"]}],
    "features": ["contact form"],
}


def completion_reply(preamble: str = "Perfect, I have a plan.") -> str:
    return f"{preamble}\n\n{COMPLETION_MARKER}\n```json\n{json.dumps(PAYLOAD)}\n```"


@pytest.fixture
def engine_with(make_orchestrator, scripted_client):
    """Build an engine whose provider replays `replies`."""

    def make(*replies):
        client = scripted_client(replies=list(replies))
        orchestrator = make_orchestrator(client)
        return ConversationEngine(orchestrator), client, orchestrator

    return make


class TestStart:
    """Tests for starting a conversation."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_start_without_context(self, engine_with):
        engine, client, _ = engine_with()

        start = await engine.start()

        assert start.first_question == FIRST_QUESTION
        assert start.suggestions == STARTER_SUGGESTIONS
        assert start.conversation_id == engine.state.id
        assert engine.status == ConversationStatus.IN_PROGRESS
        assert engine.state.messages == []
        assert client.calls == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_start_with_context(self, engine_with):
        """Context is sanitised and sent; the reply becomes the first question."""
        engine, client, _ = engine_with("Lovely! Who is the site for?")

        start = await engine.start("A wedding\x00 photography site")

        assert start.first_question == "Lovely! Who is the site for?"
        call = client.calls[0]
        assert call["messages"][0].content == "A wedding photography site"
        assert call["options"].max_tokens == 1024
        assert "SECURITY INSTRUCTIONS" in call["system_prompt"]
        assert [m.role for m in engine.state.messages] == ["user", "assistant"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_send_before_start(self, engine_with):
        engine, _, _ = engine_with()
        with pytest.raises(RuntimeError, match="not started"):
            await engine.send("hello")


class TestTurns:
    """Tests for open conversation turns."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_turn_updates_understanding(self, engine_with):
        engine, client, _ = engine_with("Nice. What will you publish?")
        await engine.start()

        turn = await engine.send("A photography portfolio")

        assert turn.reply == "Nice. What will you publish?"
        assert not turn.completed
        assert turn.understanding.confidence == 15
        assert turn.suggestions == BROAD_SUGGESTIONS
        assert client.calls[0]["options"].max_tokens == 2048
        assert [m.role for m in engine.state.messages] == ["user", "assistant"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_confidence_and_suggestions_by_stage(self, engine_with):
        """Confidence grows by 15 per turn and caps at 85 while open."""
        engine, client, _ = engine_with(*[f"Question {i}?" for i in range(6)])
        await engine.start()

        turns = [await engine.send(f"answer {i}") for i in range(6)]

        assert [t.understanding.confidence for t in turns] == [15, 30, 45, 60, 75, 85]
        assert turns[2].suggestions == CONTENT_SUGGESTIONS
        assert turns[5].suggestions == FEATURE_SUGGESTIONS
        assert len(client.calls[-1]["messages"]) == 11

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_user_message_is_sanitised(self, engine_with):
        engine, _, _ = engine_with("ok")
        await engine.start()

        await engine.send("  hello\x07   there  ")

        assert engine.state.messages[0].content == "hello there"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_message_length_from_environment(
        self, monkeypatch, make_orchestrator, scripted_client
    ):
        monkeypatch.setenv("MAX_MESSAGE_LENGTH", "5")
        engine = ConversationEngine(make_orchestrator(scripted_client(replies=["ok"])))
        await engine.start()

        await engine.send("abcdefghij")

        assert engine.max_message_length == 5
        assert engine.state.messages[0].content == "abcde... [truncated]"


class TestCompletion:
    """Tests for completion detection."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_completion(self, engine_with):
        engine, _, _ = engine_with(completion_reply())
        await engine.start()

        turn = await engine.send("That's everything")

        assert turn.completed
        assert turn.reply == "Perfect, I have a plan."
        assert turn.suggestions is None
        assert turn.understanding.confidence == 100
        assert turn.understanding.purpose == PAYLOAD["purpose"]
        assert turn.understanding.content_types == ["Gallery"]
        assert turn.understanding.features == ["contact form"]
        assert [pt.slug for pt in turn.structure.content.post_types] == ["gallery"]
        assert engine.state.structure is turn.structure
        assert engine.status == ConversationStatus.COMPLETED

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_completion_without_preamble(self, engine_with):
        engine, _, _ = engine_with(completion_reply(preamble=""))
        await engine.start()

        turn = await engine.send("Done")

        assert turn.reply == COMPLETION_REPLY
        assert engine.state.messages[-1].content == COMPLETION_REPLY

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_send_after_completion(self, engine_with):
        engine, _, _ = engine_with(completion_reply())
        await engine.start()
        await engine.send("Done")

        with pytest.raises(RuntimeError, match="already completed"):
            await engine.send("One more thing")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_malformed_completion_stays_open(self, engine_with):
        """A marker without valid JSON is not guessed at."""
        engine, _, orchestrator = engine_with(
            f"Here it is.\n{COMPLETION_MARKER}\n```json\n{{\"purpose\": \n```"
        )
        await engine.start()

        turn = await engine.send("Build it")

        assert not turn.completed
        assert turn.reply == "Here it is."
        assert turn.error.category == ErrorCategory.API_ERROR
        assert turn.error.retryable
        assert engine.status == ConversationStatus.IN_PROGRESS
        assert engine.state.structure is None
        assert engine.state.questions_asked == 0
        assert engine.state.awaiting_reply
        assert orchestrator.get_last_error().name == "conversation_completion"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unusable_payload_stays_open(self, engine_with):
        """Payload JSON that parses but lacks required keys is rejected."""
        bad = f'{COMPLETION_MARKER}\n```json\n{{"contentTypes": [{{"slug": "x"}}]}}\n```'
        engine, _, _ = engine_with(bad)
        await engine.start()

        turn = await engine.send("Build it")

        assert not turn.completed
        assert turn.error is not None

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_empty_completion_stays_open(self, engine_with):
        engine, _, _ = engine_with(f"All set!\n{COMPLETION_MARKER}\n```json\n{{}}\n```")
        await engine.start()

        turn = await engine.send("Build it")

        assert not turn.completed
        assert turn.error.retryable
        assert engine.status == ConversationStatus.IN_PROGRESS

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_completion_with_null_and_fractional_values(self, engine_with):
        """Nulls take defaults and fractional confidences are scaled."""
        payload = {
            "purpose": "Wedding photography",
            "contentTypes": [{"name": "Gallery", "slug": "gallery"}],
            "taxonomies": [
                {"name": "Style", "slug": "style", "postTypes": ["gallery"], "hierarchical": None}
            ],
            "recommendedPlugins": [
                {
                    "slug": "envira-gallery",
                    "reason": "Galleries",
                    "confidence": None,
                    "required": None,
                },
                {"slug": "smush", "reason": "Image sizes", "confidence": 0.9, "required": False},
            ],
        }
        reply = f"Great.\n{COMPLETION_MARKER}\n```json\n{json.dumps(payload)}\n```"
        engine, _, _ = engine_with(reply)
        await engine.start()

        turn = await engine.send("That's it")

        assert turn.completed
        assert turn.error is None
        envira = turn.structure.get_plugin("envira-gallery")
        assert (envira.confidence, envira.required) == (85, True)
        smush = turn.structure.get_plugin("smush")
        assert (smush.confidence, smush.required) == (90, False)
        assert turn.structure.content.post_types[0].taxonomies[0].hierarchical is True

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_explicit_retry_after_parse_failure(self, engine_with):
        engine, client, orchestrator = engine_with(
            f"{COMPLETION_MARKER} nothing here", completion_reply()
        )
        await engine.start()
        await engine.send("Build it")

        turn = await orchestrator.retry_last_operation()

        assert turn.completed
        assert orchestrator.get_last_error() is None
        assert len(client.calls) == 2
        assert [m.role for m in engine.state.messages] == ["user", "assistant"]


class TestFailures:
    """Tests for provider failures during a turn."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_provider_failure_keeps_message(self, engine_with):
        engine, _, orchestrator = engine_with(ProviderConnectionError("down"), "Back again!")
        await engine.start()

        with pytest.raises(ProviderError) as exc_info:
            await engine.send("Hello?")

        assert exc_info.value.category == ErrorCategory.NETWORK
        assert engine.state.awaiting_reply
        failed = orchestrator.get_last_error()
        assert failed.name == "conversation_turn"
        assert failed.can_retry

        turn = await engine.retry_turn()

        assert turn.reply == "Back again!"
        assert engine.state.questions_asked == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_retry_turn_needs_pending_message(self, engine_with):
        engine, _, _ = engine_with()
        await engine.start()

        with pytest.raises(ValueError):
            await engine.retry_turn()


class TestStreaming:
    """Tests for stream_send."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_stream_send(self, engine_with):
        engine, _, _ = engine_with(["What ", "kind of ", "site?"])
        await engine.start()

        chunks = [chunk async for chunk in engine.stream_send("Hi")]

        assert chunks == ["What ", "kind of ", "site?"]
        assert engine.last_turn.reply == "What kind of site?"
        assert engine.last_turn.understanding.confidence == 15

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_stream_send_completion(self, engine_with):
        reply = completion_reply()
        engine, _, _ = engine_with([reply[:20], reply[20:]])
        await engine.start()

        async for _ in engine.stream_send("Done"):
            pass

        assert engine.last_turn.completed
        assert engine.status == ConversationStatus.COMPLETED

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_stream_failure(self, engine_with):
        engine, _, orchestrator = engine_with(["Partial ", ProviderConnectionError("reset")])
        await engine.start()

        with pytest.raises(ProviderError):
            async for _ in engine.stream_send("Hi"):
                pass

        assert orchestrator.get_last_error().name == "conversation_turn"
        assert engine.last_turn is None


class TestState:
    """Tests for state serialisation."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_to_dict(self, engine_with):
        engine, _, _ = engine_with("Next?")
        await engine.start()
        await engine.send("Hi")

        data = engine.state.to_dict()

        assert data["status"] == "in_progress"
        assert data["questionsAsked"] == 1
        assert data["understanding"]["confidence"] == 15
        assert set(data["messages"][0]) == {"role", "content", "timestamp"}
        assert data["structure"] is None
