# extractors/base.py
from abc import ABC, abstractmethod
from typing import Optional

from core.models import ExtractionRecord, StrategyTag


class Extractor(ABC):
    """
    One pluggable way of turning a URL into an ExtractionRecord.
    Lower priority() runs first. Ungated extractors bypass the quality gate.
    """

    tag: StrategyTag
    gated = True

    @abstractmethod
    def priority(self) -> int:
        ...

    @abstractmethod
    def can_extract(self, url: str) -> bool:
        ...

    @abstractmethod
    def extract(self, url: str, raw_html: Optional[str] = None) -> ExtractionRecord:
        ...
