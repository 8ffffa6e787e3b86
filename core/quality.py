# core/quality.py
from .models import ExtractionRecord, StrategyTag

MIN_TITLE_LENGTH = 20

# Landing-page titles that say nothing about the product itself
GENERIC_TITLE_PHRASES = ("online shopping", "welcome to", "home page")

BASE_CONFIDENCE = {
    StrategyTag.AI_ASSISTED: 0.9,
    StrategyTag.STRUCTURAL: 0.8,
    StrategyTag.FALLBACK: 0.5,
}
FIELD_BONUS = 0.05
MAX_FIELD_BONUS = 0.1


def is_acceptable(record: ExtractionRecord) -> bool:
    """
    True when the record carries a product-specific title: longer than
    MIN_TITLE_LENGTH characters and free of generic landing-page phrases.
    """
    title = record.title
    if not title or len(title) <= MIN_TITLE_LENGTH:
        return False
    lower = title.lower()
    return not any(phrase in lower for phrase in GENERIC_TITLE_PHRASES)


def score(record: ExtractionRecord, strategy: StrategyTag) -> float:
    base = BASE_CONFIDENCE[strategy]
    # Fallback fields are derived from the URL, not extracted from the page.
    if strategy is StrategyTag.FALLBACK:
        return base
    bonus = min(MAX_FIELD_BONUS, FIELD_BONUS * record.field_count())
    return round(min(1.0, base + bonus), 4)
