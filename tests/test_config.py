import ipaddress

from core.config import Settings, load_settings
from core.models import ExtractionRecord, StrategyTag, WishlistEntry


def test_defaults(monkeypatch, tmp_path):
    for name in ("PORT", "OPENAI_API_KEY", "REQUEST_TIMEOUT", "PREVIEW_API_URL", "MAX_HTML_SIZE"):
        monkeypatch.delenv(name, raising=False)

    settings = load_settings(str(tmp_path / "missing.env"))

    assert settings.server.port == 3000
    assert settings.server.request_timeout == 20.0
    assert not settings.openai.configured
    assert settings.client.api_base_url == "http://localhost:3000"
    assert settings.security.max_html_bytes == 512 * 1024


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.setenv("OPENAI_API_KEY", " sk-test ")
    monkeypatch.setenv("BROWSER_HEADLESS", "False")
    monkeypatch.setenv("PREVIEW_API_URL", "https://preview.example.com/")
    monkeypatch.setenv("CLIENT_MAX_ATTEMPTS", "5")

    settings = load_settings()

    assert settings.server.port == 8080
    assert settings.openai.api_key == "sk-test"
    assert settings.openai.configured
    assert settings.render.headless is False
    assert settings.client.api_base_url == "https://preview.example.com"
    assert settings.client.max_attempts == 5


def test_blocked_networks_parse():
    nets = Settings().security.networks()
    assert ipaddress.ip_network("10.0.0.0/8") in nets


def test_record_wire_format():
    record = ExtractionRecord(title="Mug", site_name="Shop", review_count="3", features=["Ceramic"])

    wire = record.to_dict()

    assert wire["siteName"] == "Shop"
    assert wire["reviewCount"] == "3"
    assert wire["images"] == []
    assert wire["offers"] is None
    assert ExtractionRecord.from_dict(wire) == record
    assert record.field_count() == 4


def test_strategy_extraction_methods():
    assert [t.extraction_method for t in StrategyTag] == ["http_extraction", "fast_ai", "fallback"]
    assert StrategyTag("ai-assisted") is StrategyTag.AI_ASSISTED


def test_entry_to_dict():
    entry = WishlistEntry(
        id="abc",
        original_url="https://www.example.com/p",
        canonical_url="https://example.com/p",
        created_at="2024-01-01T00:00:00+00:00",
        updated_at="2024-01-01T00:00:00+00:00",
        record=ExtractionRecord(title="Mug"),
    )
    out = entry.to_dict()
    assert out["canonicalUrl"] == "https://example.com/p"
    assert out["title"] == "Mug"
    assert out["id"] == "abc"
