"""Tests for the wizard data model."""

import pytest
from pydantic import ValidationError

from src.schema import (
    AIMetadata,
    ContentSection,
    DesignSection,
    EnhancedChipOption,
    FeaturesSection,
    MergedQuestionOptions,
    Menu,
    MenuItem,
    OptionSource,
    PluginRecommendation,
    QuestionType,
    SectionStatus,
    SiteStructure,
    ThemeConfig,
    WizardAnswers,
    WizardQuestion,
)


class TestWizardAnswers:
    """Tests for WizardAnswers."""

    @pytest.mark.unit
    def test_accepts_camel_case(self):
        """Wire keys populate snake_case fields."""
        answers = WizardAnswers.model_validate(
            {"siteName": "Bakery", "requiredPages": ["about", "menu"]}
        )
        assert answers.site_name == "Bakery"
        assert answers.required_pages == ["about", "menu"]
        assert answers.content_creators == []

    @pytest.mark.unit
    def test_accepts_field_names(self):
        """Python field names are accepted too."""
        answers = WizardAnswers(site_name="Bakery", visitor_actions=["contact-us"])
        assert answers.visitor_actions == ["contact-us"]


class TestEnhancedChipOption:
    """Tests for EnhancedChipOption."""

    @pytest.mark.unit
    def test_defaults_to_base_source(self):
        """Options are base unless tagged otherwise."""
        option = EnhancedChipOption(id="rp-about", label="About", value="about")
        assert option.source == "base"
        assert option.structure_mapping is None

    @pytest.mark.unit
    def test_nested_mapping_from_wire(self):
        """structureMapping parses from camelCase."""
        option = EnhancedChipOption.model_validate(
            {
                "id": "ai-pages-menu",
                "label": "Menu",
                "value": "menu",
                "source": "ai",
                "confidence": 0.75,
                "structureMapping": {"pages": ["menu"], "postTypes": ["dish"]},
            }
        )
        assert option.source == OptionSource.AI
        assert option.structure_mapping.pages == ["menu"]
        assert option.structure_mapping.post_types == ["dish"]

    @pytest.mark.unit
    def test_confidence_is_fraction(self):
        """Confidence outside 0-1 is rejected."""
        with pytest.raises(ValidationError):
            EnhancedChipOption(id="a", label="A", value="a", confidence=75)


class TestSiteStructure:
    """Tests for SiteStructure helpers and serialisation."""

    @pytest.fixture
    def structure(self) -> SiteStructure:
        return SiteStructure(
            content=ContentSection(
                status=SectionStatus.READY,
                menus=[
                    Menu(
                        name="Primary Navigation",
                        location="primary",
                        items=[MenuItem(title="Home", url="/", order=0)],
                    )
                ],
            ),
            design=DesignSection(
                status=SectionStatus.READY,
                theme=ThemeConfig(child_theme_name="demo-theme"),
            ),
            features=FeaturesSection(
                status=SectionStatus.READY,
                plugins=[
                    PluginRecommendation(
                        slug="contact-form-7",
                        name="Contact Form 7",
                        reason="Forms",
                        required=True,
                        confidence=95,
                    )
                ],
            ),
        )

    @pytest.mark.unit
    def test_lookup_helpers(self, structure):
        """Menus and plugins are found by key."""
        assert structure.get_menu("primary").items[0].title == "Home"
        assert structure.get_menu("footer") is None
        assert structure.get_plugin("contact-form-7").confidence == 95
        assert structure.get_plugin("woocommerce") is None

    @pytest.mark.unit
    def test_wire_shape(self, structure):
        """to_wire emits camelCase keys and drops None."""
        wire = structure.to_wire()
        assert wire["design"]["theme"]["childThemeName"] == "demo-theme"
        assert wire["design"]["theme"]["base"] == "twentytwentyfive"
        assert wire["content"]["status"] == "ready"
        assert "postTypes" in wire["content"]
        assert "template" not in str(wire["content"]["menus"])

    @pytest.mark.unit
    def test_round_trip_equality(self, structure):
        """Wire output validates back into an equal model."""
        assert SiteStructure.model_validate(structure.to_wire()) == structure

    @pytest.mark.unit
    def test_plugin_confidence_bounds(self):
        """Plugin confidence is a 0-100 integer."""
        with pytest.raises(ValidationError):
            PluginRecommendation(slug="x", name="X", reason="r", confidence=101)


class TestQuestionModels:
    """Tests for wizard questions and merged option payloads."""

    @pytest.mark.unit
    def test_question_defaults(self):
        question = WizardQuestion(id=2, key="visitorActions", question="What should visitors do?")

        assert question.type == QuestionType.CHIPS
        assert not question.multi_select
        assert question.options == []

    @pytest.mark.unit
    def test_merged_options_wire_shape(self):
        merged = MergedQuestionOptions(
            options=[EnhancedChipOption(id="a", label="A", value="a")],
            defaults=["a"],
            ai_metadata=AIMetadata(was_enhanced=True, response_time=41.0),
        )

        wire = merged.to_wire()

        assert wire["aiMetadata"] == {"wasEnhanced": True, "responseTime": 41.0}
        assert wire["options"][0]["source"] == "base"
        assert wire["recommendedPlugins"] == []
