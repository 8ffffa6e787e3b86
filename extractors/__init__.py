# extractors/__init__.py
from core.config import Settings

from .ai_assisted import AIAssistedExtractor
from .fallback import FallbackExtractor
from .rendering import BrowserRenderer
from .structural import StructuralExtractor
from .vision import OpenAIDescriber


def build_extractors(settings: Settings, renderer=None, describer=None) -> list:
    """Default strategy chain: structural, AI-assisted, fallback."""
    renderer = renderer or BrowserRenderer(settings.render, settings.security)
    describer = describer or OpenAIDescriber(settings.openai)
    return [
        StructuralExtractor(settings.extraction, settings.security),
        AIAssistedExtractor(renderer, describer),
        FallbackExtractor(),
    ]
