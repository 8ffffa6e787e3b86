# core/models.py
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Dict, List, Optional


# snake_case attribute -> camelCase wire key
WIRE_KEYS = {
    "title": "title",
    "image": "image",
    "images": "images",
    "price": "price",
    "currency": "currency",
    "original_price": "originalPrice",
    "discount": "discount",
    "site_name": "siteName",
    "description": "description",
    "category": "category",
    "brand": "brand",
    "rating": "rating",
    "review_count": "reviewCount",
    "availability": "availability",
    "features": "features",
    "offers": "offers",
    "content_type": "contentType",
}

LIST_FIELDS = ("images", "features", "offers")


@dataclass(frozen=True)
class ExtractionRecord:
    """
    Structured result of one strategy attempt. Every field is optional;
    a missing value means the page did not expose it. Prices are kept as
    numeric strings exactly as extracted ("3999", "19.99").
    """
    title: Optional[str] = None
    image: Optional[str] = None
    images: Optional[List[str]] = None
    price: Optional[str] = None
    currency: Optional[str] = None
    original_price: Optional[str] = None
    discount: Optional[str] = None
    site_name: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    brand: Optional[str] = None
    rating: Optional[str] = None
    review_count: Optional[str] = None
    availability: Optional[str] = None
    features: Optional[List[str]] = None
    offers: Optional[List[str]] = None
    content_type: Optional[str] = None

    def field_count(self) -> int:
        return sum(1 for f in fields(self) if getattr(self, f.name) is not None)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for attr, key in WIRE_KEYS.items():
            value = getattr(self, attr)
            if isinstance(value, list):
                value = list(value)
            out[key] = value
        if out["images"] is None:
            out["images"] = []
        return out

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExtractionRecord":
        """Build a record from either wire (camelCase) or attribute keys."""
        kwargs: Dict[str, Any] = {}
        for attr, key in WIRE_KEYS.items():
            value = data.get(key, data.get(attr))
            if attr in LIST_FIELDS and not value:
                value = None
            kwargs[attr] = value
        return cls(**kwargs)


class StrategyTag(str, Enum):
    STRUCTURAL = "structural"
    AI_ASSISTED = "ai-assisted"
    FALLBACK = "fallback"

    @property
    def extraction_method(self) -> str:
        return _EXTRACTION_METHODS[self]


_EXTRACTION_METHODS = {
    StrategyTag.STRUCTURAL: "http_extraction",
    StrategyTag.AI_ASSISTED: "fast_ai",
    StrategyTag.FALLBACK: "fallback",
}


@dataclass(frozen=True)
class ExtractionOutcome:
    record: ExtractionRecord
    strategy: StrategyTag
    confidence: float
    canonical_url: str


@dataclass
class WishlistEntry:
    """A persisted wishlist item. canonical_url is unique across the store."""
    id: str
    original_url: str
    canonical_url: str
    created_at: str
    updated_at: str
    record: ExtractionRecord = field(default_factory=ExtractionRecord)

    def to_dict(self) -> Dict[str, Any]:
        out = self.record.to_dict()
        out.update(
            {
                "id": self.id,
                "originalUrl": self.original_url,
                "canonicalUrl": self.canonical_url,
                "createdAt": self.created_at,
                "updatedAt": self.updated_at,
            }
        )
        return out
