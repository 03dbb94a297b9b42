"""Tests for the dynamic options engine."""

import json

import pytest

from src.llm import InvalidResponseError, ProviderError
from src.llm.backend import ProviderConnectionError
from src.llm.resilience import ErrorCategory
from src.schema import DynamicOptionsResponse, EnhancedChipOption, OptionSource, WizardAnswers
from src.wizard import (
    DynamicOptionsEngine,
    QuestionContext,
    get_question,
    merge_options,
    validate_response,
)

CREATORS = 1  # contentCreators question index


def fenced(data) -> str:
    return f"Here are my suggestions:\n```json\n{json.dumps(data)}\n```"


ENHANCEMENT = {
    "suggestedOptions": [
        {
            "id": "ai-cc-editors",
            "label": "Editorial team",
            "value": "editors",
            "contextHint": "Useful for a magazine",
            "confidence": 1.7,
            "structureMapping": {"plugins": ["edit-flow"], "postTypes": ["article"]},
        },
        {"id": "ai-cc-dup", "label": "Just me again", "value": "just-me"},
        {"label": "Missing id"},
        {"id": "ai-cc-guests", "label": "Guest writers"},
        {"id": "ai-cc-fourth", "label": "Fourth option"},
    ],
    "removedOptionIds": ["cc-community", "bogus"],
    "defaultSelections": ["cc-small-team", "ai-cc-editors", "unknown"],
    "hints": {"cc-just-me": "x" * 150, "bogus": "ignored", "cc-small-team": 42},
    "recommendedPlugins": [
        {"slug": "Co-Authors-Plus!", "name": "Co-Authors Plus", "reason": "Multiple bylines"},
        {"slug": "missing-name", "reason": "No name"},
    ],
}


@pytest.fixture
def engine_with(make_orchestrator, scripted_client):
    """Build an engine whose provider replays `replies`."""

    def make(*replies):
        client = scripted_client(replies=list(replies))
        orchestrator = make_orchestrator(client)
        return DynamicOptionsEngine(orchestrator), client, orchestrator

    return make


@pytest.fixture
def context():
    return QuestionContext(
        entry_description="An online magazine about cycling",
        answers=WizardAnswers(site_name="Spokes"),
    )


class TestValidateResponse:
    """Tests for validate_response."""

    @pytest.mark.unit
    def test_full_enhancement(self):
        base = get_question(CREATORS).options
        response = validate_response(ENHANCEMENT, base)

        assert [o.id for o in response.suggested_options] == [
            "ai-cc-editors",
            "ai-cc-dup",
            "ai-cc-guests",
        ]
        editors, _, guests = response.suggested_options
        assert editors.source == OptionSource.AI
        assert editors.confidence == 1.0
        assert editors.structure_mapping.plugins == ["edit-flow"]
        assert guests.value == "ai-cc-guests"
        assert guests.confidence == 0.8
        assert response.removed_option_ids == ["cc-community"]
        assert response.default_selections == ["small-team", "editors"]
        assert response.hints == {"cc-just-me": "x" * 100}
        assert [p.slug for p in response.recommended_plugins] == ["co-authors-plus"]

    @pytest.mark.unit
    def test_truncation(self):
        base = get_question(CREATORS).options
        response = validate_response(
            {
                "suggestedOptions": [{"id": "ai-long", "label": "L" * 80, "contextHint": "h" * 120}],
                "recommendedPlugins": [{"slug": "seo", "name": "N" * 70, "reason": "R" * 200}],
            },
            base,
        )

        assert len(response.suggested_options[0].label) == 50
        assert len(response.suggested_options[0].context_hint) == 100
        assert len(response.recommended_plugins[0].name) == 50
        assert len(response.recommended_plugins[0].reason) == 150

    @pytest.mark.unit
    def test_removals_keep_three_options(self):
        """Removals that would leave fewer than three base options are ignored."""
        base = get_question(3).options  # six required-page options
        too_many = ["rp-about", "rp-contact", "rp-faq", "rp-blog"]

        assert validate_response({"removedOptionIds": too_many}, base).removed_option_ids == []
        assert validate_response({"removedOptionIds": too_many[:3]}, base).removed_option_ids == too_many[:3]

    @pytest.mark.unit
    def test_plugin_limit(self):
        plugins = [{"slug": f"p{i}", "name": f"P{i}", "reason": "r"} for i in range(5)]
        response = validate_response({"recommendedPlugins": plugins}, [])
        assert [p.slug for p in response.recommended_plugins] == ["p0", "p1", "p2"]

    @pytest.mark.unit
    def test_non_object_rejected(self):
        with pytest.raises(InvalidResponseError):
            validate_response([1, 2], [])


class TestMergeOptions:
    """Tests for merge_options."""

    @pytest.mark.unit
    def test_merge(self):
        base = get_question(CREATORS).options
        merged = merge_options(base, validate_response(ENHANCEMENT, base), response_time=12.5)

        assert [o.value for o in merged.options] == [
            "just-me",
            "small-team",
            "multiple-authors",
            "user-submitted",
            "editors",
            "ai-cc-guests",
        ]
        assert merged.options[0].context_hint == "x" * 100
        assert merged.options[0].source == OptionSource.BASE
        assert merged.defaults == ["small-team", "editors"]
        assert merged.ai_metadata.was_enhanced
        assert merged.ai_metadata.response_time == 12.5
        assert merged.ai_metadata.error is None

    @pytest.mark.unit
    def test_base_options_not_mutated(self):
        base = get_question(CREATORS).options
        merge_options(base, DynamicOptionsResponse(hints={"cc-just-me": "hint"}))
        assert base[0].context_hint is None

    @pytest.mark.unit
    def test_defaults_limited_to_visible_values(self):
        base = [
            EnhancedChipOption(id="a", label="A", value="a"),
            EnhancedChipOption(id="b", label="B", value="b"),
        ]
        response = DynamicOptionsResponse(removed_option_ids=["b"], default_selections=["a", "b"])

        merged = merge_options(base, response)

        assert merged.defaults == ["a"]
        assert not merged.ai_metadata.was_enhanced


class TestDynamicOptionsEngine:
    """Tests for DynamicOptionsEngine."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_text_question_skips_provider(self, engine_with):
        engine, client, _ = engine_with()

        merged = await engine.get_options(0)

        assert merged.options == []
        assert client.calls == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_enhanced_options(self, engine_with, context):
        engine, client, _ = engine_with(fenced(ENHANCEMENT))

        merged = await engine.get_options(CREATORS, context)

        assert len(merged.options) == 6
        assert merged.ai_metadata.was_enhanced
        assert merged.ai_metadata.response_time is not None
        call = client.calls[0]
        assert call["options"].max_tokens == 4096
        assert call["system_prompt"] is None
        prompt = call["messages"][0].content
        assert 'Question 2 of 5: "Who will create content for this site?"' in prompt
        assert 'Site Description: "An online magazine about cycling"' in prompt
        assert [p.slug for p in engine.accumulated_plugins] == ["co-authors-plus"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_cached_per_question(self, engine_with, context):
        engine, client, _ = engine_with(fenced(ENHANCEMENT))

        first = await engine.get_options(CREATORS, context)
        second = await engine.get_options(CREATORS, context)

        assert second is first
        assert len(client.calls) == 1
        assert engine.cached(CREATORS) is first

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_plugins_accumulate_by_slug(self, engine_with, context):
        seo = {"slug": "wordpress-seo", "name": "Yoast SEO", "reason": "Search"}
        forms = {"slug": "wpforms-lite", "name": "WPForms", "reason": "Forms"}
        engine, _, _ = engine_with(
            fenced({"recommendedPlugins": [seo]}),
            fenced({"recommendedPlugins": [dict(seo, name="Yoast"), forms]}),
        )

        await engine.get_options(1, context)
        await engine.get_options(2, context)

        plugins = engine.accumulated_plugins
        assert [p.slug for p in plugins] == ["wordpress-seo", "wpforms-lite"]
        assert plugins[0].name == "Yoast SEO"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_provider_failure_falls_back(self, engine_with, context):
        """Failures return base options and are recorded, never raised."""
        engine, _, orchestrator = engine_with(ProviderConnectionError("offline"))

        merged = await engine.get_options(CREATORS, context)

        assert merged.options == get_question(CREATORS).options
        assert merged.ai_metadata.error
        assert not merged.ai_metadata.was_enhanced
        failed = orchestrator.get_last_error()
        assert failed.name == "get_dynamic_options"
        assert failed.error.category == ErrorCategory.NETWORK

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize("reply", ["I would suggest a blog.", fenced([1, 2, 3])])
    async def test_unreadable_reply_falls_back(self, engine_with, context, reply):
        engine, _, orchestrator = engine_with(reply)

        merged = await engine.get_options(CREATORS, context)

        assert len(merged.options) == len(get_question(CREATORS).options)
        assert merged.ai_metadata.error == "The AI response could not be understood."
        assert orchestrator.get_last_error().error.category == ErrorCategory.API_ERROR

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_explicit_retry_replaces_fallback(self, engine_with, context):
        engine, client, orchestrator = engine_with(
            ProviderConnectionError("offline"), fenced(ENHANCEMENT)
        )
        fallback = await engine.get_options(CREATORS, context)

        merged = await orchestrator.retry_last_operation()

        assert merged.ai_metadata.was_enhanced
        assert engine.cached(CREATORS) is merged
        assert engine.cached(CREATORS) is not fallback
        assert orchestrator.get_last_error() is None
        assert len(client.calls) == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_failed_retry_raises(self, engine_with, context):
        engine, client, orchestrator = engine_with("not json", "still not json")
        await engine.get_options(CREATORS, context)

        with pytest.raises(ProviderError):
            await orchestrator.retry_last_operation()

        assert orchestrator.get_last_error().attempt_count == 2
        assert len(client.calls) == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_reset(self, engine_with, context):
        engine, client, _ = engine_with(fenced(ENHANCEMENT), fenced({}))
        await engine.get_options(CREATORS, context)

        engine.reset()

        assert engine.accumulated_plugins == []
        assert engine.cached(CREATORS) is None

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_out_of_range(self, engine_with):
        engine, _, _ = engine_with()
        with pytest.raises(IndexError):
            await engine.get_options(9)
