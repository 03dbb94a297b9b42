"""The five fixed wizard questions and their base options."""

from src.schema import EnhancedChipOption, QuestionType, WizardQuestion


def _chips(prefix: str, *entries: tuple[str, str] | tuple[str, str, bool]) -> list[EnhancedChipOption]:
    options = []
    for entry in entries:
        label, value = entry[0], entry[1]
        recommended = entry[2] if len(entry) > 2 else None
        options.append(
            EnhancedChipOption(
                id=f"{prefix}-{value}", label=label, value=value, recommended=recommended
            )
        )
    return options


WIZARD_QUESTIONS: list[WizardQuestion] = [
    WizardQuestion(
        id=1,
        key="siteName",
        question="Give your site a name",
        subtitle="This will be the name of your WordPress site.",
        type=QuestionType.TEXT,
        placeholder="My awesome site",
        required=True,
    ),
    WizardQuestion(
        id=2,
        key="contentCreators",
        question="Who will create content for this site?",
        subtitle="This helps us determine if you need user registration and content moderation.",
        multi_select=True,
        options=_chips(
            "cc",
            ("Just me", "just-me"),
            ("Small team (2-5 people)", "small-team", True),
            ("Multiple authors", "multiple-authors"),
            ("User-submitted content", "user-submitted"),
            ("Community contributions", "community"),
        ),
    ),
    WizardQuestion(
        id=3,
        key="visitorActions",
        question="What will visitors be able to do on your site?",
        subtitle=(
            "Describe the key actions and interactions visitors will have. "
            "We'll figure out the structure needed to support this."
        ),
        multi_select=True,
        options=_chips(
            "va",
            ("Read content", "read-content"),
            ("Search", "search"),
            ("Browse by category", "browse-category"),
            ("Leave comments", "leave-comments"),
            ("Share on social media", "share-social"),
            ("Subscribe to newsletter", "newsletter"),
            ("Create user account", "user-account"),
            ("Save favorites", "save-favorites"),
        ),
    ),
    WizardQuestion(
        id=4,
        key="requiredPages",
        question="What pages do you know you need?",
        subtitle=(
            "List any static pages beyond the homepage. "
            "We'll suggest additional pages in the next step."
        ),
        multi_select=True,
        options=_chips(
            "rp",
            ("About", "about"),
            ("Contact", "contact"),
            ("Privacy Policy", "privacy-policy"),
            ("FAQ", "faq"),
            ("Terms of Service", "terms-of-service"),
            ("Blog", "blog"),
        ),
    ),
    WizardQuestion(
        id=5,
        key="homepageContent",
        question="What content do you want on your homepage?",
        subtitle=(
            "Select what you want to feature. "
            "We'll create custom fields so you can update this content easily."
        ),
        multi_select=True,
        options=_chips(
            "hc",
            ("Hero section", "hero-section"),
            ("Featured content", "featured-content"),
            ("Category showcase", "category-showcase", True),
            ("Latest additions", "latest-additions"),
            ("About section", "about-section"),
            ("Testimonials or reviews", "testimonials"),
            ("Call-to-action", "call-to-action"),
            ("Search feature", "search-feature"),
        ),
    ),
]


def get_question(index: int) -> WizardQuestion:
    """Return the question at zero-based `index`.

    Raises:
        IndexError: If no question exists at that index.
    """
    if not 0 <= index < len(WIZARD_QUESTIONS):
        raise IndexError(f"No wizard question at index {index}")
    return WIZARD_QUESTIONS[index]


__all__ = ["WIZARD_QUESTIONS", "get_question"]
