# extractors/fallback.py
from typing import Optional
from urllib.parse import urlsplit

from core.models import ExtractionRecord, StrategyTag
from core.urls import extract_domain

from .base import Extractor


class FallbackExtractor(Extractor):
    """Last resort: a stub record derived from the URL alone. Never fails."""

    tag = StrategyTag.FALLBACK
    # "Page from a.co" is shorter than the gate's minimum title length.
    gated = False

    def priority(self) -> int:
        return 3

    def can_extract(self, url: str) -> bool:
        return True

    def extract(self, url: str, raw_html: Optional[str] = None) -> ExtractionRecord:
        host = extract_domain(url) or urlsplit(url).hostname or url
        return ExtractionRecord(
            title=f"Page from {host}",
            site_name=host,
            content_type="webpage",
        )
