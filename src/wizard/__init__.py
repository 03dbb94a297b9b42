"""Wizard module - conversation and question-driven site discovery.

This module provides:
- ConversationEngine: free-form discovery dialogue ending in a SiteStructure
- DynamicOptionsEngine: AI-tailored options for the fixed wizard questions
- WIZARD_QUESTIONS: the five fixed questions and their base options

Example usage:
    >>> from src.wizard import ConversationEngine, DynamicOptionsEngine, QuestionContext
    >>> engine = DynamicOptionsEngine(orchestrator)
    >>> merged = await engine.get_options(1, QuestionContext("A photography portfolio"))
"""

from .conversation import (
    ConversationEngine,
    ConversationMessage,
    ConversationStart,
    ConversationState,
    ConversationStatus,
    TurnResult,
    Understanding,
)
from .options import DynamicOptionsEngine, QuestionContext, merge_options, validate_response
from .parsing import Completion, CompletionParseError, extract_json, parse_completion
from .questions import WIZARD_QUESTIONS, get_question

__all__ = [
    # Conversation
    "ConversationEngine",
    "ConversationMessage",
    "ConversationStart",
    "ConversationState",
    "ConversationStatus",
    "TurnResult",
    "Understanding",
    # Dynamic options
    "DynamicOptionsEngine",
    "QuestionContext",
    "merge_options",
    "validate_response",
    # Parsing
    "Completion",
    "CompletionParseError",
    "extract_json",
    "parse_completion",
    # Questions
    "WIZARD_QUESTIONS",
    "get_question",
]
