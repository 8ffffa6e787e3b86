# core/storage.py
import datetime
import json
import os
import sqlite3
import uuid
from dataclasses import fields, replace
from typing import Any, List, Optional, Tuple

import pytz

from .errors import DuplicateEntryError
from .logger import get_logger
from .models import LIST_FIELDS, ExtractionRecord, WishlistEntry

logger = get_logger(__name__)

DB_PATH = os.getenv("DB_PATH", "data/wishlist.sqlite3")

RECORD_COLUMNS = [f.name for f in fields(ExtractionRecord)]
ENTRY_COLUMNS = ["id", "original_url", "canonical_url", "created_at", "updated_at"] + RECORD_COLUMNS


def _connect():
    db_dir = os.path.dirname(DB_PATH)
    if db_dir:
        os.makedirs(db_dir, exist_ok=True)
    return sqlite3.connect(DB_PATH)


def now_utc_iso() -> str:
    return datetime.datetime.now(tz=pytz.UTC).isoformat()


def ensure_db():
    with _connect() as con:
        cur = con.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS wishlist_items (
                id TEXT PRIMARY KEY,
                original_url TEXT NOT NULL,
                canonical_url TEXT NOT NULL UNIQUE,
                created_at TEXT,
                updated_at TEXT,
                title TEXT,
                image TEXT,
                images TEXT,          -- JSON array
                price TEXT,
                currency TEXT,
                original_price TEXT,
                discount TEXT,
                site_name TEXT,
                description TEXT,
                category TEXT,
                brand TEXT,
                rating TEXT,
                review_count TEXT,
                availability TEXT,
                features TEXT,        -- JSON array
                offers TEXT,          -- JSON array
                content_type TEXT
            )
        """
        )
        cur.execute(
            "CREATE INDEX IF NOT EXISTS idx_wishlist_created ON wishlist_items (created_at)"
        )
        con.commit()


def _encode(column: str, value: Any) -> Any:
    if column in LIST_FIELDS and value is not None:
        return json.dumps(list(value))
    return value


def _row_to_entry(row: tuple) -> WishlistEntry:
    data = dict(zip(ENTRY_COLUMNS, row))
    record_kwargs = {}
    for column in RECORD_COLUMNS:
        value = data[column]
        if column in LIST_FIELDS and value is not None:
            value = json.loads(value)
        record_kwargs[column] = value
    return WishlistEntry(
        id=data["id"],
        original_url=data["original_url"],
        canonical_url=data["canonical_url"],
        created_at=data["created_at"],
        updated_at=data["updated_at"],
        record=ExtractionRecord(**record_kwargs),
    )


def _select(where: str, params: tuple) -> Optional[WishlistEntry]:
    with _connect() as con:
        cur = con.cursor()
        cur.execute(
            f"SELECT {', '.join(ENTRY_COLUMNS)} FROM wishlist_items WHERE {where}",
            params,
        )
        row = cur.fetchone()
    return _row_to_entry(row) if row else None


def get_entry(entry_id: str) -> Optional[WishlistEntry]:
    return _select("id=?", (entry_id,))


def find_by_canonical_url(canonical_url: str) -> Optional[WishlistEntry]:
    return _select("canonical_url=?", (canonical_url,))


def count_entries() -> int:
    with _connect() as con:
        cur = con.cursor()
        cur.execute("SELECT COUNT(*) FROM wishlist_items")
        row = cur.fetchone()
    return row[0] if row and row[0] is not None else 0


def add_entry(record: ExtractionRecord, original_url: str, canonical_url: str) -> WishlistEntry:
    """
    Insert a new entry. Raises DuplicateEntryError when the canonical URL
    is already stored; the UNIQUE constraint backs up the explicit check.
    """
    if find_by_canonical_url(canonical_url) is not None:
        raise DuplicateEntryError(canonical_url)

    ts = now_utc_iso()
    entry = WishlistEntry(
        id=uuid.uuid4().hex,
        original_url=original_url,
        canonical_url=canonical_url,
        created_at=ts,
        updated_at=ts,
        record=record,
    )
    values = [entry.id, original_url, canonical_url, ts, ts] + [
        _encode(c, getattr(record, c)) for c in RECORD_COLUMNS
    ]

    try:
        with _connect() as con:
            con.execute(
                f"INSERT INTO wishlist_items ({', '.join(ENTRY_COLUMNS)}) "
                f"VALUES ({', '.join('?' for _ in ENTRY_COLUMNS)})",
                values,
            )
            con.commit()
    except sqlite3.IntegrityError as exc:
        raise DuplicateEntryError(canonical_url) from exc

    logger.info("Added wishlist entry %s for %s", entry.id, canonical_url)
    return entry


def list_entries(page: int = 1, limit: int = 20) -> Tuple[List[WishlistEntry], int, bool]:
    """Return (entries, total, has_more), newest first."""
    page = max(1, page)
    limit = max(1, limit)
    offset = (page - 1) * limit

    with _connect() as con:
        cur = con.cursor()
        cur.execute(
            f"""
            SELECT {', '.join(ENTRY_COLUMNS)} FROM wishlist_items
            ORDER BY created_at DESC, rowid DESC
            LIMIT ? OFFSET ?
        """,
            (limit, offset),
        )
        rows = cur.fetchall()

    total = count_entries()
    return [_row_to_entry(r) for r in rows], total, offset + limit < total


def update_entry(entry_id: str, **updates: Any) -> Optional[WishlistEntry]:
    """
    Apply record-field edits to an entry and bump updated_at. URLs cannot be
    edited; that would bypass canonical deduplication.
    """
    unknown = set(updates) - set(RECORD_COLUMNS)
    if unknown:
        raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")

    existing = get_entry(entry_id)
    if existing is None:
        return None

    ts = now_utc_iso()
    if updates:
        assignments = ", ".join(f"{c}=?" for c in updates)
        params = [_encode(c, v) for c, v in updates.items()] + [ts, entry_id]
        with _connect() as con:
            con.execute(
                f"UPDATE wishlist_items SET {assignments}, updated_at=? WHERE id=?",
                params,
            )
            con.commit()

    return replace(
        existing,
        updated_at=ts if updates else existing.updated_at,
        record=replace(existing.record, **updates),
    )


def delete_entry(entry_id: str) -> bool:
    with _connect() as con:
        cur = con.cursor()
        cur.execute("DELETE FROM wishlist_items WHERE id=?", (entry_id,))
        con.commit()
        deleted = cur.rowcount > 0
    if deleted:
        logger.info("Deleted wishlist entry %s", entry_id)
    return deleted
