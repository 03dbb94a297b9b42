"""Tests for structure synthesis."""

import pytest

from src.schema import (
    EnhancedChipOption,
    OptionSource,
    PluginSuggestion,
    SectionStatus,
    StructureMapping,
    WizardAnswers,
)
from src.synthesis import (
    ACF_SLUG,
    UNDERSTANDING_THEME_NAME,
    structure_from_understanding,
    synthesize_structure,
    title_from_slug,
)
from src.synthesis.lib import confidence_percent


def _ai_option(label, plugins=None, pages=None, confidence=None, source=OptionSource.AI):
    return EnhancedChipOption(
        id=f"ai-{label.lower()}",
        label=label,
        value=label.lower(),
        source=source,
        confidence=confidence,
        structure_mapping=StructureMapping(plugins=plugins, pages=pages),
    )


def _slugs(structure):
    return [p.slug for p in structure.features.plugins]


class TestHelpers:
    """Tests for slug and confidence helpers."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "slug,title",
        [
            ("privacy-policy", "Privacy Policy"),
            ("faq", "Faq"),
            ("terms-of-service", "Terms Of Service"),
        ],
    )
    def test_title_from_slug(self, slug, title):
        assert title_from_slug(slug) == title

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "confidence,expected", [(0.75, 75), (0.5, 50), (None, 80), (0.0, 80), (1.0, 100)]
    )
    def test_confidence_percent(self, confidence, expected):
        assert confidence_percent(confidence) == expected


class TestContentRules:
    """Tests for post-type and plugin rules driven by answers."""

    @pytest.mark.unit
    def test_fallback_type_and_theme_name(self):
        """No matching rule yields the portfolio fallback."""
        structure = synthesize_structure(WizardAnswers(site_name="My Test Site"))

        assert [pt.slug for pt in structure.content.post_types] == ["portfolio"]
        assert structure.design.theme.child_theme_name == "my-test-site-theme"
        assert structure.content.status == SectionStatus.READY
        assert structure.design.status == SectionStatus.READY
        assert structure.features.status == SectionStatus.READY
        assert structure.content.menus == []

    @pytest.mark.unit
    def test_default_site_name(self):
        structure = synthesize_structure(WizardAnswers())
        assert structure.design.theme.child_theme_name == "my-site-theme"

    @pytest.mark.unit
    def test_rule_order(self):
        """Types appear in rule order regardless of answer order."""
        answers = WizardAnswers(
            content_creators=["guest-contributors", "multiple-authors"],
            visitor_actions=["register-events", "book-services", "view-portfolio"],
        )
        structure = synthesize_structure(answers)

        assert [pt.slug for pt in structure.content.post_types] == [
            "team-member",
            "service",
            "project",
            "article",
            "event",
        ]

    @pytest.mark.unit
    def test_commerce_and_forms(self):
        answers = WizardAnswers(visitor_actions=["purchase-products", "contact-us", "submit-forms"])
        structure = synthesize_structure(answers)

        assert _slugs(structure) == [ACF_SLUG, "woocommerce", "contact-form-7"]
        woo = structure.get_plugin("woocommerce")
        assert woo.required is True
        assert woo.confidence == 95

    @pytest.mark.unit
    def test_project_taxonomies(self):
        structure = synthesize_structure(WizardAnswers(content_creators=["single-owner"]))
        project = structure.content.post_types[0]

        assert [(t.slug, t.hierarchical) for t in project.taxonomies] == [
            ("project-category", True),
            ("project-tag", False),
        ]

    @pytest.mark.unit
    def test_acf_prepended_once(self):
        """An accumulated ACF entry is kept once and made required."""
        structure = synthesize_structure(
            WizardAnswers(),
            recommended_plugins=[PluginSuggestion(slug=ACF_SLUG, name="ACF", reason="Fields")],
        )

        assert _slugs(structure).count(ACF_SLUG) == 1
        acf = structure.get_plugin(ACF_SLUG)
        assert acf.name == "ACF"
        assert acf.required is True

    @pytest.mark.unit
    def test_acf_from_ai_option_made_required(self):
        structure = synthesize_structure(
            WizardAnswers(content_creators=["single-owner"]),
            selected_options=[_ai_option("Custom fields", plugins=[ACF_SLUG, "seo-pack"])],
        )

        assert _slugs(structure)[:2] == [ACF_SLUG, "seo-pack"]
        acf = structure.get_plugin(ACF_SLUG)
        assert acf.required is True
        assert acf.reason == "AI suggestion based on: Custom fields"


class TestNavigation:
    """Tests for pages and the primary menu."""

    @pytest.mark.unit
    def test_pages_and_menu(self):
        structure = synthesize_structure(
            WizardAnswers(required_pages=["about", "contact", "privacy-policy"])
        )

        assert [p.title for p in structure.content.pages] == ["About", "Contact", "Privacy Policy"]
        menu = structure.get_menu("primary")
        assert menu.name == "Primary Navigation"
        assert [(i.title, i.url, i.order) for i in menu.items] == [
            ("Home", "/", 0),
            ("About", "/about", 1),
            ("Contact", "/contact", 2),
            ("Privacy Policy", "/privacy-policy", 3),
        ]

    @pytest.mark.unit
    def test_repeated_page_kept_once(self):
        structure = synthesize_structure(WizardAnswers(required_pages=["faq", "faq"]))
        assert [i.url for i in structure.get_menu("primary").items] == ["/", "/faq"]

    @pytest.mark.unit
    def test_ai_pages_deduplicated(self):
        """AI pages already in the menu are skipped; new ones have no order."""
        options = [_ai_option("Social proof", pages=["testimonials", "reviews"])]
        structure = synthesize_structure(
            WizardAnswers(required_pages=["testimonials"]), selected_options=options
        )

        items = structure.get_menu("primary").items
        assert [i.url for i in items] == ["/", "/testimonials", "/reviews"]
        assert items[-1].order is None
        assert items[-1].title == "Reviews"

    @pytest.mark.unit
    def test_ai_pages_need_primary_menu(self):
        options = [_ai_option("Pricing", pages=["pricing"])]
        structure = synthesize_structure(WizardAnswers(), selected_options=options)
        assert structure.content.menus == []


class TestOptionPlugins:
    """Tests for plugins from options and accumulated recommendations."""

    @pytest.mark.unit
    def test_ai_option_plugins(self):
        options = [
            _ai_option("Booking", plugins=["bookly-responsive-appointment-booking"], confidence=0.75),
            _ai_option("Gallery", plugins=["envira-gallery-lite"]),
        ]
        structure = synthesize_structure(WizardAnswers(), selected_options=options)

        booking = structure.get_plugin("bookly-responsive-appointment-booking")
        assert booking.confidence == 75
        assert booking.required is False
        assert booking.reason == "AI suggestion based on: Booking"
        assert booking.name == "Bookly Responsive Appointment Booking"
        assert structure.get_plugin("envira-gallery-lite").confidence == 80

    @pytest.mark.unit
    def test_base_option_mappings_ignored(self):
        options = [_ai_option("Shop", plugins=["woocommerce"], source=OptionSource.BASE)]
        structure = synthesize_structure(WizardAnswers(), selected_options=options)
        assert structure.get_plugin("woocommerce") is None

    @pytest.mark.unit
    def test_plugin_dedup_first_wins(self):
        """Rule plugins win over option plugins and recommendations."""
        answers = WizardAnswers(visitor_actions=["contact-us"])
        options = [_ai_option("Forms", plugins=["contact-form-7", "wpforms-lite"])]
        recommended = [
            PluginSuggestion(slug="wpforms-lite", name="WPForms", reason="Forms"),
            PluginSuggestion(slug="wordpress-seo", name="Yoast SEO", reason="Search"),
        ]

        structure = synthesize_structure(answers, options, recommended)

        assert _slugs(structure) == [ACF_SLUG, "contact-form-7", "wpforms-lite", "wordpress-seo"]
        assert structure.get_plugin("contact-form-7").reason == "Contact form for visitor inquiries"
        assert structure.get_plugin("wpforms-lite").name == "Wpforms Lite"
        assert structure.get_plugin("wordpress-seo").confidence == 85

    @pytest.mark.unit
    def test_idempotent(self):
        answers = {
            "siteName": "Bakery",
            "visitorActions": ["purchase-products", "read-articles"],
            "requiredPages": ["about"],
        }
        options = [_ai_option("Menu", pages=["menu"], plugins=["flavor"])]

        first = synthesize_structure(answers, options)
        second = synthesize_structure(answers, options)

        assert first.to_wire() == second.to_wire()
        assert len(first.get_menu("primary").items) == 3


class TestStructureFromUnderstanding:
    """Tests for conversation completion translation."""

    @pytest.fixture
    def payload(self):
        return {
            "purpose": "Portfolio",
            "contentTypes": [
                {
                    "name": "Project",
                    "slug": "project",
                    "description": "Client work",
                    "fields": [{"name": "client", "type": "text", "label": "Client"}],
                },
                {"name": "Note", "slug": "note", "supports": ["title"], "icon": "dashicons-edit"},
            ],
            "taxonomies": [
                {"name": "Project Type", "slug": "project-type", "postTypes": ["project"]},
                {"name": "Mood", "slug": "mood", "postTypes": ["note"], "hierarchical": False},
            ],
            "features": ["Contact Form", "Better SEO", "social media links"],
            "recommendedPlugins": [
                {"slug": "contact-form-7", "reason": "Client inquiries"},
                {"slug": "no-reason"},
            ],
        }

    @pytest.mark.unit
    def test_post_types(self, payload):
        structure = structure_from_understanding(payload)
        project, note = structure.content.post_types

        assert [t.slug for t in project.taxonomies] == ["project-type"]
        assert project.taxonomies[0].hierarchical is True
        assert project.supports == ["title", "editor", "thumbnail"]
        assert project.icon == "admin-post"
        assert [(t.slug, t.hierarchical) for t in note.taxonomies] == [("mood", False)]
        assert note.icon == "dashicons-edit"
        assert structure.design.theme.child_theme_name == UNDERSTANDING_THEME_NAME

    @pytest.mark.unit
    def test_plugins(self, payload):
        """AI picks first, then feature keywords, ACF prepended."""
        structure = structure_from_understanding(payload)

        assert _slugs(structure) == [ACF_SLUG, "contact-form-7", "wordpress-seo", "social-warfare"]
        cf7 = structure.get_plugin("contact-form-7")
        assert cf7.name == "contact-form-7"
        assert cf7.reason == "Client inquiries"
        assert cf7.required is True
        assert cf7.confidence == 85
        assert structure.get_plugin("social-warfare").required is False

    @pytest.mark.unit
    def test_no_fields_no_acf(self):
        structure = structure_from_understanding(
            {"contentTypes": [{"name": "Page", "slug": "page"}], "features": []}
        )
        assert structure.get_plugin(ACF_SLUG) is None
        assert structure.features.status == SectionStatus.READY

    @pytest.mark.unit
    def test_recommended_acf_made_required(self, payload):
        payload["recommendedPlugins"] = [
            {"slug": "contact-form-7", "reason": "Inquiries"},
            {"slug": ACF_SLUG, "reason": "Fields", "required": False, "confidence": 60},
        ]

        structure = structure_from_understanding(payload)

        assert _slugs(structure)[:2] == ["contact-form-7", ACF_SLUG]
        acf = structure.get_plugin(ACF_SLUG)
        assert (acf.required, acf.confidence) == (True, 60)

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "confidence, expected",
        [(None, 85), (0.9, 90), (1, 100), (72, 72), (140, 100), ("high", 85)],
    )
    def test_recommendation_confidence(self, confidence, expected):
        structure = structure_from_understanding(
            {"recommendedPlugins": [{"slug": "seo", "reason": "r", "confidence": confidence}]}
        )
        assert structure.get_plugin("seo").confidence == expected
