# core/wishlist.py
import sqlite3
from typing import Any, Dict

from . import storage
from .client import PreviewClient
from .errors import AppError, DuplicateEntryError, ErrorType, InvalidURL
from .logger import get_logger
from .models import WishlistEntry
from .urls import canonicalize, sanitize

logger = get_logger(__name__)

DUPLICATE_MESSAGE = "This item is already in your wishlist"


class WishlistService:
    """Adds previewed URLs to the local store and maps failures for the UI."""

    def __init__(self, client: PreviewClient):
        self.client = client
        storage.ensure_db()

    def add_item(self, url: str) -> WishlistEntry:
        try:
            original_url = sanitize(url)
            canonical_url = canonicalize(original_url)
        except (InvalidURL, AttributeError) as exc:
            raise AppError(ErrorType.VALIDATION, "Invalid URL format", retryable=False) from exc

        # Skip the (expensive) extraction when we already have this item.
        if storage.find_by_canonical_url(canonical_url) is not None:
            logger.info("Rejecting duplicate wishlist URL %s", canonical_url)
            raise AppError(ErrorType.DUPLICATE, DUPLICATE_MESSAGE, retryable=False)

        record = self.client.fetch_preview(original_url)

        try:
            return storage.add_entry(record, original_url, canonical_url)
        except DuplicateEntryError as exc:
            raise AppError(ErrorType.DUPLICATE, DUPLICATE_MESSAGE, retryable=False) from exc
        except sqlite3.Error as exc:
            logger.exception("Failed to save wishlist item %s: %s", canonical_url, exc)
            raise AppError(ErrorType.UNKNOWN, "Failed to save wishlist item", retryable=True) from exc

    def list_items(self, page: int = 1, limit: int = 20) -> Dict[str, Any]:
        try:
            entries, total, has_more = storage.list_entries(page, limit)
        except sqlite3.Error as exc:
            logger.exception("Failed to load wishlist: %s", exc)
            raise AppError(ErrorType.UNKNOWN, "Failed to load wishlist", retryable=True) from exc
        return {
            "items": entries,
            "total": total,
            "page": page,
            "limit": limit,
            "hasMore": has_more,
        }

    def update_item(self, entry_id: str, **updates: Any) -> WishlistEntry:
        try:
            entry = storage.update_entry(entry_id, **updates)
        except ValueError as exc:
            raise AppError(ErrorType.VALIDATION, str(exc), retryable=False) from exc
        if entry is None:
            raise AppError(ErrorType.NOT_FOUND, f"No wishlist item {entry_id}", retryable=False)
        return entry

    def remove_item(self, entry_id: str) -> None:
        if not storage.delete_entry(entry_id):
            raise AppError(ErrorType.NOT_FOUND, f"No wishlist item {entry_id}", retryable=False)
