"""AI-enhanced options for wizard questions.

For each chip question the engine asks the active provider to tailor the
static base options to the user's context, validates the reply hard, and
merges it into the base list. Enhancement is non-blocking: any failure
falls back to the base options with the error attached to the metadata.
"""

import logging
import re
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from src.llm import (
    AIMessage,
    InvalidResponseError,
    LLMError,
    ProviderError,
    ProviderOrchestrator,
    RequestOptions,
)
from src.llm.resilience import ErrorDetails
from src.prompt import DynamicOptionsPromptBuilder
from src.schema import (
    AIMetadata,
    DynamicOptionsResponse,
    EnhancedChipOption,
    FigmaAnalysis,
    MergedQuestionOptions,
    OptionSource,
    PluginSuggestion,
    StructureMapping,
    WizardAnswers,
    WizardQuestion,
)

from .parsing import extract_json
from .questions import WIZARD_QUESTIONS

logger = logging.getLogger(__name__)

OPTIONS_MAX_TOKENS = 4096

MAX_SUGGESTED_OPTIONS = 3
MAX_LABEL_LENGTH = 50
MAX_HINT_LENGTH = 100
DEFAULT_AI_CONFIDENCE = 0.8
MIN_REMAINING_BASE_OPTIONS = 3

MAX_PLUGINS = 3
MAX_PLUGIN_NAME_LENGTH = 50
MAX_PLUGIN_REASON_LENGTH = 150

_SLUG_INVALID = re.compile(r"[^a-z0-9-]")


@dataclass
class QuestionContext:
    """What the provider is told about the site.

    Attributes:
        entry_description: Free-text description from the entry screen.
        answers: Answers given so far.
        figma: Connected design file analysis, if any.
    """

    entry_description: str | None = None
    answers: WizardAnswers = field(default_factory=WizardAnswers)
    figma: FigmaAnalysis | None = None

    def __post_init__(self) -> None:
        if isinstance(self.answers, Mapping):
            self.answers = WizardAnswers.model_validate(self.answers)


# =============================================================================
# Validation
# =============================================================================


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _suggested_option(raw: Mapping[str, Any]) -> EnhancedChipOption:
    confidence = raw.get("confidence")
    if _is_number(confidence):
        confidence = min(max(float(confidence), 0.0), 1.0)
    else:
        confidence = DEFAULT_AI_CONFIDENCE

    mapping = None
    if isinstance(raw.get("structureMapping"), Mapping):
        try:
            mapping = StructureMapping.model_validate(raw["structureMapping"])
        except ValidationError as e:
            logger.debug(f"Dropping invalid structure mapping on '{raw['id']}': {e}")

    hint = raw.get("contextHint")
    return EnhancedChipOption(
        id=raw["id"],
        label=raw["label"][:MAX_LABEL_LENGTH],
        value=str(raw.get("value") or raw["id"]),
        source=OptionSource.AI,
        context_hint=str(hint)[:MAX_HINT_LENGTH] if hint else None,
        confidence=confidence,
        structure_mapping=mapping,
    )


def _plugin(raw: Mapping[str, Any]) -> PluginSuggestion | None:
    slug = _SLUG_INVALID.sub("", raw["slug"].lower())
    if not slug:
        return None
    return PluginSuggestion(
        slug=slug,
        name=raw["name"][:MAX_PLUGIN_NAME_LENGTH],
        reason=raw["reason"][:MAX_PLUGIN_REASON_LENGTH],
    )


def validate_response(parsed: Any, base_options: list[EnhancedChipOption]) -> DynamicOptionsResponse:
    """Validate a provider's dynamic-options JSON against the base options.

    Anything malformed is dropped rather than repaired.

    Args:
        parsed: Parsed JSON from the provider.
        base_options: The question's static options.

    Returns:
        DynamicOptionsResponse containing only valid entries.

    Raises:
        InvalidResponseError: If `parsed` is not a JSON object.
    """
    if not isinstance(parsed, Mapping):
        raise InvalidResponseError(
            f"Dynamic options reply must be a JSON object, got {type(parsed).__name__}"
        )

    base_ids = [o.id for o in base_options]
    response = DynamicOptionsResponse()

    suggested = parsed.get("suggestedOptions")
    if isinstance(suggested, list):
        candidates = [
            raw
            for raw in suggested
            if isinstance(raw, Mapping)
            and isinstance(raw.get("id"), str)
            and isinstance(raw.get("label"), str)
        ]
        response.suggested_options = [
            _suggested_option(raw) for raw in candidates[:MAX_SUGGESTED_OPTIONS]
        ]

    removed = parsed.get("removedOptionIds")
    if isinstance(removed, list):
        valid = list(dict.fromkeys(i for i in removed if isinstance(i, str) and i in base_ids))
        if len(base_ids) - len(valid) >= MIN_REMAINING_BASE_OPTIONS:
            response.removed_option_ids = valid
        else:
            logger.debug(
                f"Ignoring removals {valid}: fewer than "
                f"{MIN_REMAINING_BASE_OPTIONS} options would remain"
            )

    defaults = parsed.get("defaultSelections")
    if isinstance(defaults, list):
        id_to_value = {o.id: o.value for o in base_options}
        for option in response.suggested_options:
            id_to_value.setdefault(option.id, option.value)
        response.default_selections = [
            id_to_value[i] for i in defaults if isinstance(i, str) and i in id_to_value
        ]

    hints = parsed.get("hints")
    if isinstance(hints, Mapping):
        response.hints = {
            option_id: hint[:MAX_HINT_LENGTH]
            for option_id, hint in hints.items()
            if option_id in base_ids and isinstance(hint, str)
        }

    plugins = parsed.get("recommendedPlugins")
    if isinstance(plugins, list):
        candidates = [
            raw
            for raw in plugins
            if isinstance(raw, Mapping)
            and all(isinstance(raw.get(k), str) for k in ("slug", "name", "reason"))
        ]
        response.recommended_plugins = [
            plugin for plugin in map(_plugin, candidates[:MAX_PLUGINS]) if plugin is not None
        ]
        if response.recommended_plugins:
            logger.info(
                f"AI recommended plugins: {[p.slug for p in response.recommended_plugins]}"
            )

    return response


def merge_options(
    base_options: list[EnhancedChipOption],
    response: DynamicOptionsResponse,
    response_time: float | None = None,
) -> MergedQuestionOptions:
    """Merge a validated enhancement into the base options.

    Removed base options are dropped, hints are attached to the rest and AI
    options are appended unless their value collides with a kept option.
    Defaults are limited to values that remain selectable.
    """
    removed = set(response.removed_option_ids)
    options = [
        option.model_copy(
            update={"context_hint": response.hints.get(option.id) or option.context_hint}
        )
        for option in base_options
        if option.id not in removed
    ]

    values = {o.value for o in options}
    added = 0
    for option in response.suggested_options:
        if option.value in values:
            logger.debug(f"Skipping AI option '{option.id}': value '{option.value}' already offered")
            continue
        options.append(option)
        values.add(option.value)
        added += 1

    return MergedQuestionOptions(
        options=options,
        defaults=[v for v in response.default_selections if v in values],
        ai_metadata=AIMetadata(
            was_enhanced=added > 0 or bool(response.hints),
            response_time=response_time,
        ),
        recommended_plugins=list(response.recommended_plugins),
    )


# =============================================================================
# Engine
# =============================================================================


class DynamicOptionsEngine:
    """Fetches, validates, merges and caches enhanced options per question.

    Results (including degraded ones) are cached for the session and never
    re-fetched; only an explicit `orchestrator.retry_last_operation()` after
    a failure replaces a cached fallback.

    Example:
        >>> engine = DynamicOptionsEngine(orchestrator)
        >>> merged = await engine.get_options(2, QuestionContext("A bakery"))
        >>> [o.label for o in merged.options]
    """

    def __init__(
        self,
        orchestrator: ProviderOrchestrator,
        questions: list[WizardQuestion] | None = None,
        prompt_builder: DynamicOptionsPromptBuilder | None = None,
    ):
        self._orchestrator = orchestrator
        self._questions = questions or WIZARD_QUESTIONS
        self._builder = prompt_builder or DynamicOptionsPromptBuilder()
        self._cache: dict[int, MergedQuestionOptions] = {}
        self._plugins: list[PluginSuggestion] = []
        self._plugin_slugs: set[str] = set()

    @property
    def accumulated_plugins(self) -> list[PluginSuggestion]:
        """Plugin recommendations across all questions, first slug wins."""
        return list(self._plugins)

    def cached(self, question_index: int) -> MergedQuestionOptions | None:
        return self._cache.get(question_index)

    def reset(self) -> None:
        """Forget cached results and accumulated plugins."""
        self._cache.clear()
        self._plugins.clear()
        self._plugin_slugs.clear()

    def _question(self, question_index: int) -> WizardQuestion:
        if not 0 <= question_index < len(self._questions):
            raise IndexError(f"No wizard question at index {question_index}")
        return self._questions[question_index]

    async def get_options(
        self, question_index: int, context: QuestionContext | None = None
    ) -> MergedQuestionOptions:
        """Enhanced options for the question at zero-based `question_index`.

        Text questions (no base options) return an empty merge without a
        provider call. Failures never raise: the base options come back
        with `ai_metadata.error` set and the failure is recorded on the
        orchestrator.

        Raises:
            IndexError: If no question exists at that index.
        """
        question = self._question(question_index)
        cached = self._cache.get(question_index)
        if cached is not None:
            logger.debug(f"Using cached options for question {question_index}")
            return cached

        context = context or QuestionContext()
        if not question.options:
            merged = MergedQuestionOptions()
        else:
            started = time.perf_counter()
            try:
                merged = await self._fetch(question, question_index, context, started)
            except LLMError as e:
                details = self._record(question_index, context, e)
                merged = MergedQuestionOptions(
                    options=[o.model_copy() for o in question.options],
                    ai_metadata=AIMetadata(
                        response_time=(time.perf_counter() - started) * 1000,
                        error=details.message,
                    ),
                )

        self._store(question_index, merged)
        return merged

    async def _fetch(
        self,
        question: WizardQuestion,
        question_index: int,
        context: QuestionContext,
        started: float,
        use_cache: bool = True,
    ) -> MergedQuestionOptions:
        prompt, prompt_context = self._builder.build_with_context(
            question, question_index, context.entry_description, context.answers, context.figma
        )
        logger.debug(
            f"Dynamic options prompt for question {question_index + 1}: "
            f"~{prompt_context.total_tokens_estimate} tokens"
        )

        reply = await self._orchestrator.send_message(
            [AIMessage("user", prompt)],
            options=RequestOptions(max_tokens=OPTIONS_MAX_TOKENS),
            use_cache=use_cache,
        )
        parsed = extract_json(reply)
        if parsed is None:
            logger.error(f"Failed to parse JSON from dynamic options reply: {reply[:1000]!r}")
            raise InvalidResponseError("Failed to parse AI response as JSON")

        response = validate_response(parsed, question.options)
        return merge_options(
            question.options, response, response_time=(time.perf_counter() - started) * 1000
        )

    def _record(self, question_index: int, context: QuestionContext, error: LLMError) -> ErrorDetails:
        async def retry() -> MergedQuestionOptions:
            return await self._retry(question_index, context)

        failed = self._orchestrator.record_failure(
            "get_dynamic_options", error, self._orchestrator.active_provider, retry=retry
        )
        return failed.error

    async def _retry(self, question_index: int, context: QuestionContext) -> MergedQuestionOptions:
        """Explicit retry: replaces the cached fallback on success, raises on failure."""
        question = self._question(question_index)
        try:
            merged = await self._fetch(
                question, question_index, context, time.perf_counter(), use_cache=False
            )
        except LLMError as e:
            details = self._record(question_index, context, e)
            if isinstance(e, ProviderError):
                raise
            raise ProviderError(details) from e

        self._store(question_index, merged)
        return merged

    def _store(self, question_index: int, merged: MergedQuestionOptions) -> None:
        self._cache[question_index] = merged
        for plugin in merged.recommended_plugins:
            if plugin.slug not in self._plugin_slugs:
                self._plugin_slugs.add(plugin.slug)
                self._plugins.append(plugin)


__all__ = [
    "DynamicOptionsEngine",
    "QuestionContext",
    "merge_options",
    "validate_response",
]
