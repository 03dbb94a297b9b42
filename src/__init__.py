"""sitewizard-core: resilient AI core for the WordPress site wizard."""

from src.core.log import setup_logging
from src.llm import ProviderError, ProviderOrchestrator
from src.schema import SiteStructure, WizardAnswers
from src.synthesis import structure_from_understanding, synthesize_structure
from src.wizard import ConversationEngine, DynamicOptionsEngine, QuestionContext

__all__ = [
    # Logging
    "setup_logging",
    # Provider layer
    "ProviderOrchestrator",
    "ProviderError",
    # Data model
    "SiteStructure",
    "WizardAnswers",
    # Synthesis
    "synthesize_structure",
    "structure_from_understanding",
    # Wizard
    "ConversationEngine",
    "DynamicOptionsEngine",
    "QuestionContext",
]
