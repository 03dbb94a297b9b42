"""Prompts for the site wizard.

Holds the site-discovery system prompt used by the conversation engine and
the builder for per-question dynamic-options prompts.
"""

from dataclasses import dataclass, field

from src.schema import EnhancedChipOption, FigmaAnalysis, WizardAnswers, WizardQuestion

COMPLETION_MARKER = "READY_TO_BUILD"

SITE_DISCOVERY_PROMPT = f"""You are an expert WordPress developer helping users build custom WordPress sites with Advanced Custom Fields (ACF). Your goal is to understand what they want to build through a natural conversation.

## CONVERSATION RULES
1. Ask ONE question at a time
2. Keep questions conversational and friendly
3. Build on previous answers to show you're listening
4. After 6-8 questions, you should have enough information to recommend a structure
5. Focus on understanding:
   - Site purpose and target audience
   - Content types they need (custom post types like "Projects", "Team Members", "Events", "Products")
   - How content should be organized (taxonomies, categories, tags)
   - Key features and functionality required
   - Design preferences if mentioned

## WORDPRESS KNOWLEDGE
When recommending content structures, use these ACF field types appropriately:
- **text**: Short text (names, titles)
- **textarea**: Multi-line text without formatting
- **wysiwyg**: Rich text editor for formatted content
- **image**: Single image upload
- **gallery**: Multiple images
- **file**: Document uploads (PDF, etc.)
- **date_picker**: Date selection
- **url**: Website links
- **email**: Email addresses
- **number**: Numeric values
- **true_false**: Yes/no toggles
- **select**: Dropdown choices
- **relationship**: Link to other posts
- **repeater**: Repeating groups of fields (for lists)

For organizing content, consider:
- **Hierarchical taxonomies**: Like categories (parent/child structure)
- **Flat taxonomies**: Like tags (no hierarchy)

## COMPLETION
When you have enough information, respond with "{COMPLETION_MARKER}" followed by your recommendations in a JSON code block.

IMPORTANT: Always wrap the JSON in a markdown code block for reliable parsing:

{COMPLETION_MARKER}
```json
{{
  "purpose": "Brief description of site purpose",
  "audience": "Who the site is for",
  "contentTypes": [...],
  "taxonomies": [...],
  "features": [...],
  "recommendedPlugins": [...]
}}
```

## EXAMPLE: Portfolio Site

{COMPLETION_MARKER}
```json
{{
  "purpose": "Portfolio site to showcase photography work and attract clients",
  "audience": "Potential clients and art enthusiasts",
  "contentTypes": [
    {{
      "name": "Project",
      "slug": "project",
      "description": "Photography projects and client work",
      "fields": [
        {{"name": "client_name", "type": "text", "label": "Client Name"}},
        {{"name": "project_date", "type": "date_picker", "label": "Project Date"}},
        {{"name": "location", "type": "text", "label": "Location"}},
        {{"name": "description", "type": "wysiwyg", "label": "Project Description"}},
        {{"name": "images", "type": "gallery", "label": "Project Images"}},
        {{"name": "featured_image", "type": "image", "label": "Cover Image"}}
      ],
      "supports": ["title", "thumbnail"]
    }}
  ],
  "taxonomies": [
    {{
      "name": "Project Type",
      "slug": "project-type",
      "postTypes": ["project"],
      "hierarchical": true,
      "terms": ["Wedding", "Portrait", "Commercial", "Event"]
    }}
  ],
  "features": ["contact form", "image galleries", "social media integration"],
  "recommendedPlugins": [
    {{"slug": "contact-form-7", "reason": "Simple contact form for client inquiries"}},
    {{"slug": "wordpress-seo", "reason": "SEO optimization for portfolio visibility"}}
  ]
}}
```

## EXAMPLE: Restaurant Site

{COMPLETION_MARKER}
```json
{{
  "purpose": "Restaurant website with menu, reservations, and location info",
  "audience": "Local diners looking for dining options",
  "contentTypes": [
    {{
      "name": "Menu Item",
      "slug": "menu-item",
      "description": "Food and drink menu items",
      "fields": [
        {{"name": "price", "type": "number", "label": "Price"}},
        {{"name": "description", "type": "textarea", "label": "Description"}},
        {{"name": "dietary_info", "type": "select", "label": "Dietary", "choices": ["Vegetarian", "Vegan", "Gluten-Free", "None"]}},
        {{"name": "photo", "type": "image", "label": "Item Photo"}}
      ],
      "supports": ["title", "thumbnail"]
    }}
  ],
  "taxonomies": [
    {{
      "name": "Menu Category",
      "slug": "menu-category",
      "postTypes": ["menu-item"],
      "hierarchical": true,
      "terms": ["Appetizers", "Entrees", "Desserts", "Drinks"]
    }}
  ],
  "features": ["online reservations", "menu display", "location map", "hours display"],
  "recommendedPlugins": [
    {{"slug": "flavor", "reason": "Restaurant reservations and table booking"}},
    {{"slug": "wp-google-maps", "reason": "Google Maps integration for location"}}
  ]
}}
```

Now, start the conversation by asking about what kind of site they want to build."""


_DYNAMIC_OPTIONS_KNOWLEDGE = """## WORDPRESS KNOWLEDGE
Consider these common patterns when suggesting options:

**For Content Creators questions:**
- Business sites: Marketing team, executives, support staff
- Blogs: Writers, editors, guest contributors
- E-commerce: Product managers, inventory staff
- Portfolios: Artists, designers, photographers

**For Homepage Content questions:**
- Hero section with CTA is nearly universal
- Testimonials work well for services/products
- Portfolio grids for creative sites
- Feature lists for SaaS/products
- Team sections for agencies/firms

**For Required Pages questions:**
- About page is almost always needed
- Contact page with form for businesses
- FAQ for products/services
- Portfolio/Gallery for creative sites
- Pricing for services/SaaS

**Common WordPress Plugins by Site Type:**
- Contact forms: contact-form-7, wpforms-lite, ninja-forms
- E-commerce: woocommerce, easy-digital-downloads
- SEO: wordpress-seo (Yoast), rank-math
- Security: wordfence, sucuri-scanner
- Performance: wp-super-cache, autoptimize
- Galleries: envira-gallery-lite, modula-best-grid-gallery
- Social: social-warfare, shared-counts
- Booking: bookly-responsive-appointment-booking
- Membership: paid-memberships-pro, memberpress"""

_DYNAMIC_OPTIONS_TASK = """## YOUR TASK
1. **suggestedOptions**: Add 0-3 NEW options specific to their site type (not duplicates)
2. **removedOptionIds**: Hide options clearly irrelevant to their context (be conservative)
3. **defaultSelections**: Pre-select options that make sense for their site
4. **hints**: Add contextual tooltips to existing options
5. **recommendedPlugins**: Suggest 1-3 plugins that would help this specific site (use slugs from list above)

## RESPONSE FORMAT
Always respond with a JSON code block:

```json
{
  "suggestedOptions": [
    {
      "id": "ai-{question}-{name}",
      "label": "Option Label",
      "value": "option-value",
      "contextHint": "Brief explanation (under 80 chars)"
    }
  ],
  "removedOptionIds": [],
  "defaultSelections": ["option-value-to-preselect"],
  "hints": {
    "existing-option-id": "Why this matters for their site"
  },
  "recommendedPlugins": [
    {
      "slug": "plugin-slug",
      "name": "Plugin Display Name",
      "reason": "Why this plugin helps their specific site"
    }
  ]
}
```

## RULES
- Generate unique IDs like "ai-homepage-testimonials" or "ai-pages-portfolio"
- Only suggest options that genuinely add value for this specific site
- Be conservative with removals - only hide truly irrelevant options
- Keep hints concise and actionable (under 80 characters)
- defaultSelections should contain option VALUES, not IDs
- recommendedPlugins should use exact WordPress.org plugin slugs
- Only recommend plugins that directly support features the user needs"""


def build_context_summary(
    entry_description: str | None,
    answers: WizardAnswers | None = None,
    figma: FigmaAnalysis | None = None,
) -> str:
    """Summarise what is known about the site, one fact per line.

    Args:
        entry_description: Free-text description from the entry screen.
        answers: Answers given so far.
        figma: Connected design file analysis, if any.

    Returns:
        Newline-joined summary.
    """
    if entry_description:
        parts = [f'Site Description: "{entry_description}"']
    else:
        parts = ["Site Description: Not provided"]

    answers = answers or WizardAnswers()
    if answers.site_name:
        parts.append(f'Site Name: "{answers.site_name}"')
    for label, values in (
        ("Content Creators", answers.content_creators),
        ("Visitor Actions", answers.visitor_actions),
        ("Required Pages", answers.required_pages),
        ("Homepage Content", answers.homepage_content),
    ):
        if values:
            parts.append(f"{label}: {', '.join(values)}")

    if figma is not None:
        parts.append(f"Figma Design: Connected ({figma.file_name})")
        if figma.pages:
            parts.append(f"Figma Pages: {', '.join(p.name for p in figma.pages)}")

    return "\n".join(parts)


def format_base_options(options: list[EnhancedChipOption]) -> str:
    """List base options as `- id: "label" (value: v)` lines."""
    return "\n".join(f'- {o.id}: "{o.label}" (value: {o.value})' for o in options)


@dataclass
class PromptConfig:
    """Configuration for dynamic-options prompts.

    Attributes:
        total_questions: Number of wizard questions, shown as "Question i of n".
        include_knowledge: Whether to include the WordPress knowledge section.
    """

    total_questions: int = 5
    include_knowledge: bool = True


@dataclass
class PromptContext:
    """What went into a generated prompt.

    Attributes:
        question_index: Zero-based index of the question.
        context_summary: Summary block included in the prompt.
        base_option_ids: IDs of the base options listed.
        total_tokens_estimate: Rough token count estimate.
    """

    question_index: int
    context_summary: str = ""
    base_option_ids: list[str] = field(default_factory=list)
    total_tokens_estimate: int = 0


class DynamicOptionsPromptBuilder:
    """Builds the prompt asking a provider to enhance one question's options.

    Example:
        >>> builder = DynamicOptionsPromptBuilder()
        >>> prompt = builder.build(question, 1, "A photography portfolio", answers)
    """

    def __init__(self, config: PromptConfig | None = None):
        self._config = config or PromptConfig()

    def build(
        self,
        question: WizardQuestion,
        question_index: int,
        entry_description: str | None = None,
        answers: WizardAnswers | None = None,
        figma: FigmaAnalysis | None = None,
    ) -> str:
        """Build the prompt for one question."""
        prompt, _ = self.build_with_context(
            question, question_index, entry_description, answers, figma
        )
        return prompt

    def build_with_context(
        self,
        question: WizardQuestion,
        question_index: int,
        entry_description: str | None = None,
        answers: WizardAnswers | None = None,
        figma: FigmaAnalysis | None = None,
    ) -> tuple[str, PromptContext]:
        """Build the prompt and return context metadata.

        Returns:
            Tuple of (prompt_string, PromptContext).
        """
        summary = build_context_summary(entry_description, answers, figma)
        context = PromptContext(
            question_index=question_index,
            context_summary=summary,
            base_option_ids=[o.id for o in question.options],
        )

        parts = [
            "You are a WordPress expert helping configure a site builder wizard. "
            "Based on the user's context, enhance the options for the current question.",
            f"## USER CONTEXT\n{summary}",
            self._format_question(question, question_index),
            f"## BASE OPTIONS\n{format_base_options(question.options)}",
        ]
        if self._config.include_knowledge:
            parts.append(_DYNAMIC_OPTIONS_KNOWLEDGE)
        parts.append(_DYNAMIC_OPTIONS_TASK)

        prompt = "\n\n".join(parts)
        context.total_tokens_estimate = len(prompt) // 4  # Rough estimate
        return prompt, context

    def _format_question(self, question: WizardQuestion, question_index: int) -> str:
        return (
            "## CURRENT QUESTION\n"
            f'Question {question_index + 1} of {self._config.total_questions}: "{question.question}"\n'
            f'Subtitle: "{question.subtitle}"'
        )


__all__ = [
    "COMPLETION_MARKER",
    "SITE_DISCOVERY_PROMPT",
    "PromptConfig",
    "PromptContext",
    "DynamicOptionsPromptBuilder",
    "build_context_summary",
    "format_base_options",
]
