"""Deterministic site structure synthesis.

Turns wizard answers, selected AI-enhanced options and accumulated plugin
recommendations into a SiteStructure. No provider calls are made here: the
same inputs always produce the same structure, so a structure can be
re-synthesised whenever the user revisits an answer.

Rules are applied in a fixed order:
1. Content types inferred from content creators and visitor actions.
2. Pages and the primary menu from required pages.
3. Plugins and menu pages from AI-origin option mappings.
4. Accumulated plugin recommendations.
5. Advanced Custom Fields prepended when any post type has fields.
"""

import logging
import math
import re
from collections.abc import Iterable, Iterator, Mapping
from typing import Any

from src.schema import (
    ContentSection,
    CustomField,
    DesignSection,
    DesignTokens,
    EnhancedChipOption,
    FeaturesSection,
    Menu,
    MenuItem,
    OptionSource,
    Page,
    PluginRecommendation,
    PluginSuggestion,
    PostType,
    SectionStatus,
    SiteStructure,
    TaxonomyRef,
    ThemeConfig,
    Typography,
    WizardAnswers,
)

logger = logging.getLogger(__name__)

ACF_SLUG = "advanced-custom-fields"
DEFAULT_SITE_NAME = "my-site"
PRIMARY_MENU_NAME = "Primary Navigation"
PRIMARY_MENU_LOCATION = "primary"

AI_OPTION_CONFIDENCE = 80  # Plugin confidence when the AI option has none
RECOMMENDED_PLUGIN_CONFIDENCE = 85


# =============================================================================
# Helpers
# =============================================================================


def title_from_slug(slug: str) -> str:
    """'privacy-policy' -> 'Privacy Policy'."""
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), slug.replace("-", " "))


def slugify(text: str) -> str:
    """Lowercase with whitespace runs replaced by '-'."""
    return re.sub(r"\s+", "-", text.lower())


def confidence_percent(confidence: float | None, default: int = AI_OPTION_CONFIDENCE) -> int:
    """Fractional confidence to a 0-100 score, rounding half up."""
    if not confidence:
        return default
    return int(math.floor(confidence * 100 + 0.5))


class PluginList:
    """Ordered plugin list keyed by slug; the first entry for a slug wins."""

    def __init__(self) -> None:
        self._plugins: list[PluginRecommendation] = []
        self._slugs: set[str] = set()

    def add(self, plugin: PluginRecommendation) -> bool:
        """Append unless the slug is present. Returns True if added."""
        if plugin.slug in self._slugs:
            return False
        self._plugins.append(plugin)
        self._slugs.add(plugin.slug)
        return True

    def prepend(self, plugin: PluginRecommendation) -> bool:
        """Insert at the front unless the slug is present."""
        if plugin.slug in self._slugs:
            return False
        self._plugins.insert(0, plugin)
        self._slugs.add(plugin.slug)
        return True

    def require(self, slug: str) -> None:
        """Mark the entry for `slug` as required, keeping its position."""
        for i, plugin in enumerate(self._plugins):
            if plugin.slug == slug:
                self._plugins[i] = plugin.model_copy(update={"required": True})
                return
        raise KeyError(slug)

    def __contains__(self, slug: str) -> bool:
        return slug in self._slugs

    def __iter__(self) -> Iterator[PluginRecommendation]:
        return iter(self._plugins)

    def __len__(self) -> int:
        return len(self._plugins)

    def to_list(self) -> list[PluginRecommendation]:
        return list(self._plugins)


def ensure_acf(post_types: list[PostType], plugins: PluginList) -> None:
    """Prepend Advanced Custom Fields if any post type carries a field.

    An existing ACF entry keeps its place and is marked required.
    """
    if not any(pt.fields for pt in post_types):
        return
    if ACF_SLUG in plugins:
        plugins.require(ACF_SLUG)
    else:
        plugins.prepend(
            PluginRecommendation(
                slug=ACF_SLUG,
                name="Advanced Custom Fields",
                reason="Required for custom content fields on your post types",
                required=True,
                confidence=100,
            )
        )


def _field(name: str, type_: str, label: str, required: bool = False) -> CustomField:
    return CustomField(name=name, type=type_, label=label, required=required)


# =============================================================================
# Content Type Templates
# =============================================================================


def _team_member() -> PostType:
    return PostType(
        name="Team Member",
        slug="team-member",
        description="Staff and team member profiles",
        fields=[
            _field("role", "text", "Job Title", required=True),
            _field("bio", "wysiwyg", "Biography"),
            _field("photo", "image", "Profile Photo", required=True),
            _field("email", "email", "Email"),
            _field("social_links", "repeater", "Social Links"),
        ],
        supports=["title", "thumbnail"],
        icon="dashicons-groups",
    )


def _service() -> PostType:
    return PostType(
        name="Service",
        slug="service",
        description="Services offered",
        fields=[
            _field("price", "number", "Price"),
            _field("duration", "text", "Duration"),
            _field("description", "wysiwyg", "Description", required=True),
            _field("featured_image", "image", "Featured Image"),
        ],
        icon="dashicons-hammer",
    )


def _project() -> PostType:
    return PostType(
        name="Project",
        slug="project",
        description="Portfolio projects and work samples",
        fields=[
            _field("client", "text", "Client"),
            _field("project_url", "url", "Project URL"),
            _field("gallery", "gallery", "Project Gallery"),
            _field("description", "wysiwyg", "Description", required=True),
        ],
        taxonomies=[
            TaxonomyRef(name="Project Category", slug="project-category", hierarchical=True),
            TaxonomyRef(name="Project Tag", slug="project-tag", hierarchical=False),
        ],
        icon="dashicons-portfolio",
    )


def _article() -> PostType:
    return PostType(
        name="Article",
        slug="article",
        description="Blog posts and articles",
        fields=[
            _field("author_bio", "textarea", "Author Bio"),
            _field("featured_image", "image", "Featured Image"),
        ],
        taxonomies=[
            TaxonomyRef(name="Category", slug="category", hierarchical=True),
            TaxonomyRef(name="Tag", slug="post_tag", hierarchical=False),
        ],
        supports=["title", "editor", "author", "thumbnail", "excerpt", "comments"],
        icon="dashicons-admin-post",
    )


def _event() -> PostType:
    return PostType(
        name="Event",
        slug="event",
        description="Events and happenings",
        fields=[
            _field("event_date", "date_picker", "Event Date", required=True),
            _field("event_time", "time_picker", "Event Time"),
            _field("location", "text", "Location"),
            _field("registration_url", "url", "Registration URL"),
            _field("description", "wysiwyg", "Description", required=True),
        ],
        icon="dashicons-calendar-alt",
    )


def _portfolio_item() -> PostType:
    return PostType(
        name="Portfolio Item",
        slug="portfolio",
        description="Showcase your work",
        fields=[
            _field("description", "wysiwyg", "Description"),
            _field("gallery", "gallery", "Gallery"),
        ],
        icon="dashicons-portfolio",
    )


def default_design_tokens() -> DesignTokens:
    """Design tokens for synthesised child themes."""
    return DesignTokens(
        colors={
            "primary": "#51a351",
            "secondary": "#2C3E50",
            "text": "#333333",
            "background": "#FFFFFF",
        },
        typography=Typography(
            font_families=["Inter", "system-ui", "sans-serif"],
            font_sizes={"base": "16px", "large": "24px"},
            line_heights={"base": "1.6", "heading": "1.2"},
        ),
        spacing={"sm": "16px", "md": "32px", "lg": "64px"},
        border_radius={"sm": "4px", "md": "8px"},
    )


# =============================================================================
# Synthesis Steps
# =============================================================================


def infer_content(creators: list[str], actions: list[str], plugins: PluginList) -> list[PostType]:
    """Apply the content-type rules in order.

    Args:
        creators: Content creator values.
        actions: Visitor action values.
        plugins: Plugin list receiving rule-driven plugins.

    Returns:
        Post types; a single fallback type when no rule matched.
    """
    post_types: list[PostType] = []

    if {"team-members", "multiple-authors"} & set(creators):
        post_types.append(_team_member())

    if "purchase-products" in actions:
        plugins.add(
            PluginRecommendation(
                slug="woocommerce",
                name="WooCommerce",
                reason="E-commerce functionality for selling products",
                required=True,
                confidence=95,
            )
        )
    if "book-services" in actions:
        post_types.append(_service())

    if "single-owner" in creators or "view-portfolio" in actions:
        post_types.append(_project())

    if "guest-contributors" in creators or "read-articles" in actions:
        post_types.append(_article())

    if "register-events" in actions:
        post_types.append(_event())

    if {"contact-us", "submit-forms"} & set(actions):
        plugins.add(
            PluginRecommendation(
                slug="contact-form-7",
                name="Contact Form 7",
                reason="Contact form for visitor inquiries",
                required=True,
                confidence=95,
            )
        )

    if not post_types:
        post_types.append(_portfolio_item())

    return post_types


def build_navigation(required_pages: list[str]) -> tuple[list[Page], list[Menu]]:
    """Pages plus the primary menu (Home first, then pages in selection order).

    No menu is created when there are no required pages. Repeated pages
    are kept once.
    """
    pages: list[Page] = []
    seen: set[str] = set()
    for page in required_pages:
        slug = slugify(page)
        if slug in seen:
            continue
        seen.add(slug)
        pages.append(Page(title=title_from_slug(page), slug=slug))

    if not pages:
        return [], []

    items = [MenuItem(title="Home", url="/", order=0)]
    items.extend(
        MenuItem(title=page.title, url=f"/{page.slug}", order=index + 1)
        for index, page in enumerate(pages)
    )
    menu = Menu(name=PRIMARY_MENU_NAME, location=PRIMARY_MENU_LOCATION, items=items)
    return pages, [menu]


def apply_ai_options(
    options: Iterable[EnhancedChipOption], plugins: PluginList, menus: list[Menu]
) -> None:
    """Fold AI-origin option mappings into the plugin list and primary menu.

    Only options with source `ai` contribute. Mapped pages are appended to
    the primary menu (without an order) and only when that menu exists.
    """
    primary = next((m for m in menus if m.location == PRIMARY_MENU_LOCATION), None)
    menu_urls = {item.url for menu in menus for item in menu.items}

    for option in options:
        if option.source != OptionSource.AI or option.structure_mapping is None:
            continue
        mapping = option.structure_mapping

        for slug in mapping.plugins or []:
            plugins.add(
                PluginRecommendation(
                    slug=slug,
                    name=title_from_slug(slug),
                    reason=f"AI suggestion based on: {option.label}",
                    required=False,
                    confidence=confidence_percent(option.confidence),
                )
            )

        for slug in mapping.pages or []:
            url = f"/{slug}"
            if primary is None or url in menu_urls:
                continue
            primary.items.append(MenuItem(title=title_from_slug(slug), url=url))
            menu_urls.add(url)

        if mapping.post_types or mapping.taxonomies:
            logger.debug(
                f"AI option '{option.label}' suggests post types {mapping.post_types} "
                f"and taxonomies {mapping.taxonomies}"
            )


def _as_answers(answers: WizardAnswers | Mapping[str, Any]) -> WizardAnswers:
    if isinstance(answers, WizardAnswers):
        return answers
    return WizardAnswers.model_validate(answers)


def synthesize_structure(
    answers: WizardAnswers | Mapping[str, Any],
    selected_options: Iterable[EnhancedChipOption] | None = None,
    recommended_plugins: Iterable[PluginSuggestion] | None = None,
) -> SiteStructure:
    """Build the final SiteStructure from wizard state.

    Args:
        answers: Wizard answers (model or wire-shaped mapping).
        selected_options: Selected enhanced options; only `ai` ones count.
        recommended_plugins: Plugins accumulated across dynamic-options calls.

    Returns:
        SiteStructure with every section ready.

    Example:
        >>> structure = synthesize_structure({"siteName": "My Test Site"})
        >>> structure.design.theme.child_theme_name
        'my-test-site-theme'
    """
    answers = _as_answers(answers)
    plugins = PluginList()

    post_types = infer_content(answers.content_creators, answers.visitor_actions, plugins)
    pages, menus = build_navigation(answers.required_pages)
    apply_ai_options(selected_options or [], plugins, menus)

    for suggestion in recommended_plugins or []:
        plugins.add(
            PluginRecommendation(
                slug=suggestion.slug,
                name=suggestion.name,
                reason=suggestion.reason,
                required=False,
                confidence=RECOMMENDED_PLUGIN_CONFIDENCE,
            )
        )

    ensure_acf(post_types, plugins)

    site_name = answers.site_name or DEFAULT_SITE_NAME
    structure = SiteStructure(
        content=ContentSection(
            status=SectionStatus.READY, post_types=post_types, pages=pages, menus=menus
        ),
        design=DesignSection(
            status=SectionStatus.READY,
            theme=ThemeConfig(
                child_theme_name=f"{slugify(site_name)}-theme",
                design_tokens=default_design_tokens(),
            ),
        ),
        features=FeaturesSection(status=SectionStatus.READY, plugins=plugins.to_list()),
    )
    logger.info(
        f"Synthesized structure: {len(post_types)} post types, {len(pages)} pages, "
        f"{len(plugins)} plugins"
    )
    return structure


__all__ = [
    "ACF_SLUG",
    "DEFAULT_SITE_NAME",
    "PluginList",
    "apply_ai_options",
    "build_navigation",
    "confidence_percent",
    "default_design_tokens",
    "ensure_acf",
    "infer_content",
    "slugify",
    "synthesize_structure",
    "title_from_slug",
]
