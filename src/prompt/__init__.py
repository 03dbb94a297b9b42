"""Prompt building module for provider interactions.

Provides the site-discovery system prompt, the dynamic-options prompt
builder and user-input sanitisation.
"""

from src.prompt.lib import (
    COMPLETION_MARKER,
    SITE_DISCOVERY_PROMPT,
    DynamicOptionsPromptBuilder,
    PromptConfig,
    PromptContext,
    build_context_summary,
    format_base_options,
)
from src.prompt.sanitizer import (
    SanitizationResult,
    create_safe_system_prompt,
    detect_injection_patterns,
    sanitize_user_input,
)

__all__ = [
    "COMPLETION_MARKER",
    "SITE_DISCOVERY_PROMPT",
    "DynamicOptionsPromptBuilder",
    "PromptConfig",
    "PromptContext",
    "build_context_summary",
    "format_base_options",
    "SanitizationResult",
    "create_safe_system_prompt",
    "detect_injection_patterns",
    "sanitize_user_input",
]
