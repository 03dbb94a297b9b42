"""Structure translation for conversation completions.

The discovery conversation ends with a JSON payload describing the site
(purpose, content types, taxonomies, features, plugin picks). This module
turns that payload into a SiteStructure using the same plugin rules as
answer-based synthesis.
"""

import logging
from collections.abc import Mapping
from typing import Any

from src.schema import (
    ContentSection,
    CustomField,
    DesignSection,
    DesignTokens,
    FeaturesSection,
    PluginRecommendation,
    PostType,
    SectionStatus,
    SiteStructure,
    TaxonomyRef,
    ThemeConfig,
    Typography,
)
from src.synthesis.lib import (
    RECOMMENDED_PLUGIN_CONFIDENCE,
    PluginList,
    confidence_percent,
    ensure_acf,
)

logger = logging.getLogger(__name__)

UNDERSTANDING_THEME_NAME = "ai-generated-theme"
DEFAULT_SUPPORTS = ("title", "editor", "thumbnail")
DEFAULT_ICON = "admin-post"

# Feature keyword (case-insensitive substring) -> plugin
FEATURE_PLUGINS: list[tuple[str, PluginRecommendation]] = [
    (
        "contact form",
        PluginRecommendation(
            slug="contact-form-7",
            name="Contact Form 7",
            reason="Handle contact form submissions",
            required=True,
            confidence=95,
        ),
    ),
    (
        "seo",
        PluginRecommendation(
            slug="wordpress-seo",
            name="Yoast SEO",
            reason="SEO optimization",
            required=True,
            confidence=90,
        ),
    ),
    (
        "social media",
        PluginRecommendation(
            slug="social-warfare",
            name="Social Warfare",
            reason="Social media sharing",
            required=False,
            confidence=70,
        ),
    ),
]


def _understanding_tokens() -> DesignTokens:
    return DesignTokens(
        colors={
            "primary": "#2196F3",
            "secondary": "#FFC107",
            "text": "#333333",
            "background": "#FFFFFF",
        },
        typography=Typography(
            font_families=["Inter", "system-ui"],
            font_sizes={"base": "16px", "large": "24px"},
            line_heights={"base": "1.5", "heading": "1.2"},
        ),
        spacing={"sm": "8px", "md": "16px", "lg": "32px"},
        border_radius={"sm": "4px", "md": "8px"},
    )


def _flag(value: Any, default: bool) -> bool:
    return default if value is None else bool(value)


def _plugin_confidence(value: Any) -> int:
    """0-100 score; fractions up to 1 are scaled and null gets the default."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return RECOMMENDED_PLUGIN_CONFIDENCE
    if 0 < value <= 1:
        return confidence_percent(value)
    return min(max(int(round(value)), 0), 100)


def _post_type(content_type: Mapping[str, Any], taxonomies: list[Mapping[str, Any]]) -> PostType:
    slug = content_type["slug"]
    return PostType(
        name=content_type["name"],
        slug=slug,
        description=content_type.get("description") or "",
        fields=[CustomField.model_validate(f) for f in content_type.get("fields") or []],
        taxonomies=[
            TaxonomyRef(
                name=tax["name"],
                slug=tax["slug"],
                hierarchical=_flag(tax.get("hierarchical"), default=True),
            )
            for tax in taxonomies
            if slug in (tax.get("postTypes") or [])
        ],
        supports=list(content_type.get("supports") or DEFAULT_SUPPORTS),
        icon=content_type.get("icon") or DEFAULT_ICON,
    )


def _ai_plugins(payload: Mapping[str, Any], plugins: PluginList) -> None:
    for rec in payload.get("recommendedPlugins") or []:
        if not isinstance(rec, Mapping) or not rec.get("slug") or not rec.get("reason"):
            logger.debug(f"Skipping incomplete plugin recommendation: {rec!r}")
            continue
        plugins.add(
            PluginRecommendation(
                slug=rec["slug"],
                name=rec.get("name") or rec["slug"],
                reason=rec["reason"],
                required=_flag(rec.get("required"), default=True),
                confidence=_plugin_confidence(rec.get("confidence")),
            )
        )


def _feature_plugins(payload: Mapping[str, Any], plugins: PluginList) -> None:
    features = [f.lower() for f in payload.get("features") or [] if isinstance(f, str)]
    for keyword, plugin in FEATURE_PLUGINS:
        if any(keyword in feature for feature in features):
            plugins.add(plugin.model_copy())


def structure_from_understanding(payload: Mapping[str, Any]) -> SiteStructure:
    """Translate a conversation completion payload into a SiteStructure.

    Args:
        payload: Parsed completion JSON (camelCase keys: contentTypes,
            taxonomies, features, recommendedPlugins).

    Returns:
        SiteStructure with every section ready.

    Raises:
        KeyError: If a content type or taxonomy lacks its name or slug.
    """
    taxonomies = [t for t in payload.get("taxonomies") or [] if isinstance(t, Mapping)]
    post_types = [
        _post_type(ct, taxonomies)
        for ct in payload.get("contentTypes") or []
        if isinstance(ct, Mapping)
    ]

    plugins = PluginList()
    _ai_plugins(payload, plugins)
    _feature_plugins(payload, plugins)
    ensure_acf(post_types, plugins)

    logger.info(
        f"Structure from understanding: {len(post_types)} post types, {len(plugins)} plugins"
    )
    return SiteStructure(
        content=ContentSection(status=SectionStatus.READY, post_types=post_types),
        design=DesignSection(
            status=SectionStatus.READY,
            theme=ThemeConfig(
                child_theme_name=UNDERSTANDING_THEME_NAME,
                design_tokens=_understanding_tokens(),
            ),
        ),
        features=FeaturesSection(status=SectionStatus.READY, plugins=plugins.to_list()),
    )


__all__ = [
    "FEATURE_PLUGINS",
    "UNDERSTANDING_THEME_NAME",
    "structure_from_understanding",
]
