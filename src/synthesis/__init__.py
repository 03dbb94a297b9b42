"""Synthesis module - deterministic SiteStructure construction.

This module provides:
- synthesize_structure: wizard answers + selected options -> SiteStructure
- structure_from_understanding: conversation completion -> SiteStructure

Example usage:
    >>> from src.synthesis import synthesize_structure
    >>> structure = synthesize_structure({"siteName": "Acme", "requiredPages": ["about"]})
    >>> [item.title for item in structure.get_menu("primary").items]
    ['Home', 'About']
"""

from .lib import (
    ACF_SLUG,
    DEFAULT_SITE_NAME,
    PluginList,
    default_design_tokens,
    slugify,
    synthesize_structure,
    title_from_slug,
)
from .understanding import UNDERSTANDING_THEME_NAME, structure_from_understanding

__all__ = [
    "ACF_SLUG",
    "DEFAULT_SITE_NAME",
    "UNDERSTANDING_THEME_NAME",
    "PluginList",
    "default_design_tokens",
    "slugify",
    "structure_from_understanding",
    "synthesize_structure",
    "title_from_slug",
]
