"""Schema module - authoritative data model for the site wizard.

This module provides:
- Wizard answers and enhanced chip options
- The SiteStructure produced by synthesis
- Design-tool (Figma) payloads

Example usage:
    >>> from src.schema import SiteStructure, WizardAnswers
    >>> answers = WizardAnswers.model_validate({"siteName": "My Site"})
    >>> answers.site_name
    'My Site'
"""

from .lib import (
    AIMetadata,
    ContentSection,
    CustomField,
    DesignSection,
    DesignTokens,
    DynamicOptionsResponse,
    EnhancedChipOption,
    FeaturesSection,
    FigmaAnalysis,
    FigmaPage,
    FigmaRateLimitInfo,
    Menu,
    MenuItem,
    MergedQuestionOptions,
    OptionSource,
    Page,
    PluginRecommendation,
    PluginSuggestion,
    PostType,
    QuestionType,
    SectionStatus,
    SiteStructure,
    StructureMapping,
    TaxonomyRef,
    ThemeConfig,
    Typography,
    WireModel,
    WizardAnswers,
    WizardQuestion,
)

__all__ = [
    "OptionSource",
    "SectionStatus",
    "WireModel",
    # Wizard inputs
    "WizardAnswers",
    "StructureMapping",
    "EnhancedChipOption",
    "PluginSuggestion",
    "QuestionType",
    "WizardQuestion",
    # Dynamic options
    "DynamicOptionsResponse",
    "AIMetadata",
    "MergedQuestionOptions",
    # Site structure
    "PluginRecommendation",
    "CustomField",
    "TaxonomyRef",
    "PostType",
    "Page",
    "MenuItem",
    "Menu",
    "Typography",
    "DesignTokens",
    "ThemeConfig",
    "ContentSection",
    "DesignSection",
    "FeaturesSection",
    "SiteStructure",
    # Design tool
    "FigmaPage",
    "FigmaAnalysis",
    "FigmaRateLimitInfo",
]
