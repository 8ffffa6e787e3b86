"""
Shared fixtures: stub strategies for the orchestrator and a throwaway
SQLite database for the wishlist store.
"""
import time
from typing import Optional

import pytest

from core import storage
from core.models import ExtractionRecord, StrategyTag
from extractors.base import Extractor


class StubExtractor(Extractor):
    """Strategy double that returns a fixed record or raises a fixed error."""

    def __init__(
        self,
        tag: StrategyTag,
        priority: int,
        record: Optional[ExtractionRecord] = None,
        error: Optional[Exception] = None,
        available: bool = True,
        gated: bool = True,
        delay: float = 0.0,
    ):
        self.tag = tag
        self._priority = priority
        self.record = record
        self.error = error
        self.available = available
        self.gated = gated
        self.delay = delay
        self.calls = []

    def priority(self) -> int:
        return self._priority

    def can_extract(self, url: str) -> bool:
        return self.available

    def extract(self, url: str, raw_html: Optional[str] = None) -> ExtractionRecord:
        self.calls.append((url, raw_html))
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.record


@pytest.fixture
def product_record():
    return ExtractionRecord(
        title="Apple AirPods Pro (2nd Generation) Wireless Earbuds",
        image="https://cdn.example.com/airpods.jpg",
        price="249.00",
        currency="USD",
        site_name="Example Store",
    )


@pytest.fixture
def db(tmp_path, monkeypatch):
    monkeypatch.setattr(storage, "DB_PATH", str(tmp_path / "wishlist.sqlite3"))
    storage.ensure_db()
    return storage
