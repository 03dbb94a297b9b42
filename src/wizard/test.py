"""Tests for the wizard question catalogue and reply parsing."""

import pytest

from src.llm.resilience import ErrorCategory, classify
from src.prompt import COMPLETION_MARKER
from src.schema import QuestionType
from src.wizard import (
    WIZARD_QUESTIONS,
    CompletionParseError,
    extract_json,
    get_question,
    parse_completion,
)
from src.wizard.parsing import extract_balanced_object


class TestQuestions:
    """Tests for the fixed question catalogue."""

    @pytest.mark.unit
    def test_catalogue(self):
        assert [q.key for q in WIZARD_QUESTIONS] == [
            "siteName",
            "contentCreators",
            "visitorActions",
            "requiredPages",
            "homepageContent",
        ]
        assert WIZARD_QUESTIONS[0].type == QuestionType.TEXT
        assert WIZARD_QUESTIONS[0].options == []

    @pytest.mark.unit
    def test_option_ids_and_values_unique(self):
        for question in WIZARD_QUESTIONS[1:]:
            ids = [o.id for o in question.options]
            values = [o.value for o in question.options]
            assert len(set(ids)) == len(ids)
            assert len(set(values)) == len(values)
            assert question.multi_select

    @pytest.mark.unit
    def test_recommended_flags(self):
        creators = get_question(1)
        assert [o.id for o in creators.options if o.recommended] == ["cc-small-team"]
        assert get_question(3).options[0].id == "rp-about"

    @pytest.mark.unit
    def test_get_question_out_of_range(self):
        with pytest.raises(IndexError):
            get_question(5)


class TestExtractJson:
    """Tests for lenient JSON extraction."""

    @pytest.mark.unit
    def test_fenced_block(self):
        text = 'Here you go:\n```json\n{"suggestedOptions": []}\n```\nEnjoy!'
        assert extract_json(text) == {"suggestedOptions": []}

    @pytest.mark.unit
    def test_object_after_marker(self):
        """Braces inside strings do not confuse the balance count."""
        text = f'{COMPLETION_MARKER} {{"a": "}}{{", "b": {{"c": 2}}}} trailing {{oops'
        assert extract_json(text) == {"a": "}{", "b": {"c": 2}}

    @pytest.mark.unit
    def test_embedded_object(self):
        assert extract_json('Sure. {"x": [1, 2]} Hope that helps.') == {"x": [1, 2]}

    @pytest.mark.unit
    def test_invalid_fence_falls_through(self):
        text = '```\nnot json\n```\n{"ok": true}'
        assert extract_json(text) == {"ok": True}

    @pytest.mark.unit
    @pytest.mark.parametrize("text", [None, "", "no json here", "{broken"])
    def test_nothing_found(self, text):
        assert extract_json(text) is None

    @pytest.mark.unit
    def test_balanced_object_with_escapes(self):
        text = '{"a": "say \\"}\\" loud"} rest'
        assert extract_balanced_object(text) == '{"a": "say \\"}\\" loud"}'
        assert extract_balanced_object('{"open": 1') is None
        assert extract_balanced_object('x {"a": 1}') is None


class TestParseCompletion:
    """Tests for the strict two-phase completion parse."""

    @pytest.mark.unit
    def test_no_marker(self):
        assert parse_completion("What pages do you need?") is None

    @pytest.mark.unit
    def test_fenced_completion(self):
        text = f'Great, here is the plan.\n\n{COMPLETION_MARKER}\n```json\n{{"purpose": "Blog"}}\n```'
        completion = parse_completion(text)

        assert completion.reply == "Great, here is the plan."
        assert completion.payload == {"purpose": "Blog"}

    @pytest.mark.unit
    def test_bare_object_completion(self):
        completion = parse_completion(f'{COMPLETION_MARKER}\n{{"features": ["seo"]}} Thanks!')

        assert completion.reply == ""
        assert completion.payload == {"features": ["seo"]}

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "text",
        [
            f"{COMPLETION_MARKER} but no json",
            f"{COMPLETION_MARKER}\n```json\n{{not json}}\n```",
            f"{COMPLETION_MARKER}\n```json\n[1, 2]\n```",
            f'{{"purpose": "before"}} {COMPLETION_MARKER}',
            f'{COMPLETION_MARKER} {{"unclosed": true',
            f"{COMPLETION_MARKER} {{}}",
            f'{COMPLETION_MARKER}\n```json\n{{"purpose": "", "notes": "site"}}\n```',
        ],
    )
    def test_fails_closed(self, text):
        with pytest.raises(CompletionParseError):
            parse_completion(text)

    @pytest.mark.unit
    def test_parse_error_classification(self):
        """Parse failures are recoverable, retryable API errors."""
        details = classify(CompletionParseError("Malformed completion JSON"))

        assert details.category == ErrorCategory.API_ERROR
        assert details.retryable
        assert details.recoverable
