"""Authoritative data model for the site wizard.

This module is the single source of truth for the shapes exchanged between
the wizard engines, the structure synthesizer and downstream provisioning:
- Wizard answers and enhanced chip options (with structure mappings)
- The synthesized SiteStructure and its three sections
- Design-tool (Figma) analysis payloads

All models accept either snake_case or camelCase keys on input and serialise
to the camelCase wire shape via `to_wire()`.
"""

from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


class OptionSource(str, Enum):
    """Origin of a chip option."""

    BASE = "base"  # Static option from the question catalogue
    AI = "ai"  # Suggested by a provider for this session


class SectionStatus(str, Enum):
    """Lifecycle status of a SiteStructure section."""

    PENDING = "pending"
    READY = "ready"
    ERROR = "error"


class WireModel(BaseModel):
    """Base model with camelCase aliases and enum values stored as strings."""

    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "use_enum_values": True,
    }

    def to_wire(self) -> dict[str, Any]:
        """Dump to the camelCase, None-free wire representation."""
        return self.model_dump(by_alias=True, exclude_none=True)


# =============================================================================
# Wizard Inputs
# =============================================================================


class WizardAnswers(WireModel):
    """Answers to the five fixed wizard questions.

    Attributes:
        site_name: Free-text site name.
        content_creators: Selected values for who creates content.
        visitor_actions: Selected values for what visitors do.
        required_pages: Selected page slugs in selection order.
        homepage_content: Selected homepage sections.
    """

    site_name: str | None = None
    content_creators: list[str] = Field(default_factory=list)
    visitor_actions: list[str] = Field(default_factory=list)
    required_pages: list[str] = Field(default_factory=list)
    homepage_content: list[str] = Field(default_factory=list)


class StructureMapping(WireModel):
    """Concrete structure elements an option maps to."""

    plugins: list[str] | None = None
    pages: list[str] | None = None
    post_types: list[str] | None = None
    taxonomies: list[str] | None = None


class EnhancedChipOption(WireModel):
    """Selectable wizard choice tagged with its origin.

    `value` is the unique key within a question's merged option list.
    """

    id: str
    label: str
    value: str
    source: OptionSource = OptionSource.BASE
    context_hint: str | None = None
    recommended: bool | None = None
    confidence: Annotated[float, Field(ge=0.0, le=1.0)] | None = None
    structure_mapping: StructureMapping | None = None


class PluginSuggestion(WireModel):
    """Plugin nominated by a provider during dynamic options."""

    slug: str
    name: str
    reason: str


class QuestionType(str, Enum):
    """Input style of a wizard question."""

    TEXT = "text"
    CHIPS = "chips"


class WizardQuestion(WireModel):
    """One fixed wizard question with its static base options."""

    id: int
    key: str
    question: str
    subtitle: str = ""
    type: QuestionType = QuestionType.CHIPS
    multi_select: bool = False
    placeholder: str | None = None
    required: bool = False
    options: list[EnhancedChipOption] = Field(default_factory=list)


# =============================================================================
# Dynamic Options
# =============================================================================


class DynamicOptionsResponse(WireModel):
    """Validated provider enhancement for one question."""

    suggested_options: list[EnhancedChipOption] = Field(default_factory=list)
    removed_option_ids: list[str] = Field(default_factory=list)
    default_selections: list[str] = Field(default_factory=list)
    hints: dict[str, str] = Field(default_factory=dict)
    recommended_plugins: list[PluginSuggestion] = Field(default_factory=list)


class AIMetadata(WireModel):
    """How a merged option list came about.

    Attributes:
        was_enhanced: True if AI options or hints were applied.
        response_time: Provider round trip in milliseconds.
        error: User-facing failure message when enhancement failed.
    """

    was_enhanced: bool = False
    response_time: float | None = None
    error: str | None = None


class MergedQuestionOptions(WireModel):
    """Base options merged with the provider enhancement."""

    options: list[EnhancedChipOption] = Field(default_factory=list)
    defaults: list[str] = Field(default_factory=list)
    ai_metadata: AIMetadata = Field(default_factory=AIMetadata)
    recommended_plugins: list[PluginSuggestion] = Field(default_factory=list)


# =============================================================================
# Site Structure
# =============================================================================


class PluginRecommendation(WireModel):
    """Plugin entry in the final structure. `slug` is the dedup key."""

    slug: str
    name: str
    reason: str
    required: bool = False
    confidence: Annotated[int, Field(ge=0, le=100)] = 80


class CustomField(WireModel):
    """Custom field attached to a post type (ACF field types)."""

    name: str
    type: str
    label: str
    required: bool = False
    instructions: str | None = None
    choices: list[str] | None = None


class TaxonomyRef(WireModel):
    """Taxonomy registered for a post type."""

    name: str
    slug: str
    hierarchical: bool = True


class PostType(WireModel):
    """Custom post type definition."""

    name: str
    slug: str
    description: str = ""
    fields: list[CustomField] = Field(default_factory=list)
    taxonomies: list[TaxonomyRef] = Field(default_factory=list)
    supports: list[str] = Field(
        default_factory=lambda: ["title", "editor", "thumbnail"]
    )
    icon: str = "dashicons-admin-post"


class Page(WireModel):
    """Static page to create."""

    title: str
    slug: str
    template: str | None = None
    content: str | None = None


class MenuItem(WireModel):
    """Navigation item. `url` is the dedup key within a menu."""

    title: str
    url: str
    order: int | None = None


class Menu(WireModel):
    """Navigation menu bound to a theme location."""

    name: str
    location: str
    items: list[MenuItem] = Field(default_factory=list)


class Typography(WireModel):
    """Typography tokens."""

    font_families: list[str] = Field(default_factory=list)
    font_sizes: dict[str, str] = Field(default_factory=dict)
    line_heights: dict[str, str] = Field(default_factory=dict)


class DesignTokens(WireModel):
    """Theme design tokens."""

    colors: dict[str, str] = Field(default_factory=dict)
    typography: Typography = Field(default_factory=Typography)
    spacing: dict[str, str] = Field(default_factory=dict)
    border_radius: dict[str, str] = Field(default_factory=dict)


class ThemeConfig(WireModel):
    """Child theme built on a block base theme."""

    base: str = "twentytwentyfive"
    child_theme_name: str
    design_tokens: DesignTokens = Field(default_factory=DesignTokens)


class ContentSection(WireModel):
    """Content section: post types, pages, menus."""

    status: SectionStatus = SectionStatus.PENDING
    post_types: list[PostType] = Field(default_factory=list)
    pages: list[Page] = Field(default_factory=list)
    menus: list[Menu] = Field(default_factory=list)


class DesignSection(WireModel):
    """Design section: theme and tokens."""

    status: SectionStatus = SectionStatus.PENDING
    theme: ThemeConfig


class FeaturesSection(WireModel):
    """Features section: plugin list."""

    status: SectionStatus = SectionStatus.PENDING
    plugins: list[PluginRecommendation] = Field(default_factory=list)


class SiteStructure(WireModel):
    """Fully resolved site definition handed to provisioning."""

    content: ContentSection
    design: DesignSection
    features: FeaturesSection

    def get_menu(self, location: str) -> Menu | None:
        """Return the menu bound to `location`, if any."""
        for menu in self.content.menus:
            if menu.location == location:
                return menu
        return None

    def get_plugin(self, slug: str) -> PluginRecommendation | None:
        """Return the plugin entry with `slug`, if any."""
        for plugin in self.features.plugins:
            if plugin.slug == slug:
                return plugin
        return None


# =============================================================================
# Design Tool Payloads
# =============================================================================


class FigmaPage(WireModel):
    """Page (canvas) inside a design file."""

    id: str
    name: str


class FigmaAnalysis(WireModel):
    """Design-tool analysis consumed as optional wizard context."""

    file_key: str | None = None
    file_name: str
    pages: list[FigmaPage] = Field(default_factory=list)
    design_tokens: dict[str, Any] = Field(default_factory=dict)


class FigmaRateLimitInfo(WireModel):
    """Rate-limit response from the design tool, passed through unchanged."""

    retry_after: float
    plan_tier: str | None = None
    upgrade_link: str | None = None


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
