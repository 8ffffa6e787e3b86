# extractors/ai_assisted.py
import json
import re
from typing import Any, Dict, List, Optional

from core.errors import ParseError
from core.logger import get_logger
from core.models import LIST_FIELDS, WIRE_KEYS, ExtractionRecord, StrategyTag

from .base import Extractor
from .prompts import PRODUCT_EXTRACTION, PromptTemplate

logger = get_logger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*", re.IGNORECASE)


def _clean_string(key: str, value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise ParseError(f"Field '{key}' must be a string, got {type(value).__name__}")
    text = str(value).strip()
    return text or None


def _clean_list(key: str, value: Any) -> Optional[List[str]]:
    if value is None:
        return None
    if not isinstance(value, list):
        raise ParseError(f"Field '{key}' must be a list, got {type(value).__name__}")
    items = []
    for item in value:
        if item is None:
            continue
        if not isinstance(item, (str, int, float)) or isinstance(item, bool):
            raise ParseError(f"Field '{key}' must contain strings")
        text = str(item).strip()
        if text:
            items.append(text)
    return items or None


def parse_ai_response(text: str) -> ExtractionRecord:
    """
    Parse the model's JSON answer into a record. Markdown code fences are
    stripped first; anything that is not a JSON object of string/list
    fields raises ParseError.
    """
    cleaned = _FENCE_RE.sub("", text).strip()
    try:
        data = json.loads(cleaned)
    except ValueError as exc:
        raise ParseError(f"Invalid JSON response from AI model: {exc}") from exc

    if not isinstance(data, dict):
        raise ParseError(f"Expected a JSON object from AI model, got {type(data).__name__}")

    fields: Dict[str, Any] = {}
    for attr, key in WIRE_KEYS.items():
        value = data.get(key, data.get(attr))
        if attr in LIST_FIELDS:
            fields[attr] = _clean_list(key, value)
        else:
            fields[attr] = _clean_string(key, value)

    if fields["currency"]:
        fields["currency"] = fields["currency"].upper()
    return ExtractionRecord(**fields)


class AIAssistedExtractor(Extractor):
    """Screenshot the rendered page and ask a vision model to read it."""

    tag = StrategyTag.AI_ASSISTED

    def __init__(self, renderer, describer, prompt: PromptTemplate = PRODUCT_EXTRACTION):
        self.renderer = renderer
        self.describer = describer
        self.prompt = prompt

    def priority(self) -> int:
        return 2

    def can_extract(self, url: str) -> bool:
        return self.describer.is_configured()

    def extract(self, url: str, raw_html: Optional[str] = None) -> ExtractionRecord:
        logger.debug("Starting AI extraction for %s", url)

        screenshot = self.renderer.render(url)
        prompt = self.prompt.render(url=url)
        answer = self.describer.describe(screenshot, prompt, self.prompt)
        record = parse_ai_response(answer)

        logger.debug("AI extraction for %s returned %d fields.", url, record.field_count())
        return record
