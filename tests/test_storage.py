import pytest

from core.errors import DuplicateEntryError
from core.models import ExtractionRecord


def test_add_and_get_roundtrip(db, product_record):
    record = ExtractionRecord(
        title=product_record.title,
        price="249.00",
        images=["https://cdn.example.com/a.jpg", "https://cdn.example.com/b.jpg"],
        features=["ANC"],
    )
    entry = db.add_entry(record, "https://www.example.com/p?utm_source=x", "https://example.com/p")

    stored = db.get_entry(entry.id)
    assert stored == entry
    assert stored.record.images == ["https://cdn.example.com/a.jpg", "https://cdn.example.com/b.jpg"]
    assert stored.record.offers is None
    assert db.find_by_canonical_url("https://example.com/p").id == entry.id


def test_duplicate_canonical_url_rejected(db, product_record):
    db.add_entry(product_record, "https://example.com/p", "https://example.com/p")

    with pytest.raises(DuplicateEntryError):
        db.add_entry(product_record, "http://www.example.com/p/", "https://example.com/p")

    assert db.count_entries() == 1


def test_list_entries_newest_first_with_paging(db):
    ids = []
    for n in range(5):
        entry = db.add_entry(
            ExtractionRecord(title=f"Item {n}"), f"https://example.com/{n}", f"https://example.com/{n}"
        )
        ids.append(entry.id)

    first, total, has_more = db.list_entries(page=1, limit=2)
    assert total == 5
    assert has_more
    assert [e.id for e in first] == [ids[4], ids[3]]

    last, _, has_more = db.list_entries(page=3, limit=2)
    assert [e.id for e in last] == [ids[0]]
    assert not has_more


def test_update_entry(db, product_record):
    entry = db.add_entry(product_record, "https://example.com/p", "https://example.com/p")

    updated = db.update_entry(entry.id, price="199.00", features=["Refurbished"])

    assert updated.record.price == "199.00"
    assert updated.record.title == product_record.title
    assert updated.updated_at >= entry.updated_at
    stored = db.get_entry(entry.id)
    assert stored.record.price == "199.00"
    assert stored.record.features == ["Refurbished"]


def test_update_rejects_url_fields(db, product_record):
    entry = db.add_entry(product_record, "https://example.com/p", "https://example.com/p")
    with pytest.raises(ValueError):
        db.update_entry(entry.id, canonical_url="https://example.com/other")


def test_update_missing_entry(db):
    assert db.update_entry("missing", price="1") is None


def test_delete_entry(db, product_record):
    entry = db.add_entry(product_record, "https://example.com/p", "https://example.com/p")

    assert db.delete_entry(entry.id)
    assert not db.delete_entry(entry.id)
    assert db.count_entries() == 0
