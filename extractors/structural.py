import datetime
import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Iterable, Optional
from urllib.parse import urljoin, urlsplit

import requests
from bs4 import BeautifulSoup
from bs4.element import Tag

from core.config import ExtractionSettings, SecuritySettings
from core.errors import InvalidURL, NetworkError
from core.logger import get_logger
from core.models import ExtractionRecord, StrategyTag
from core.validators import is_blocked_host

from .base import Extractor

logger = get_logger(__name__)

DEBUG_DIR = Path(os.getenv("DEBUG_DIR", "debug_dumps"))

_NUMBER = r"(\d+(?:,\d{3})*(?:\.\d{1,2})?)"

# Checked in order against title + description; first match wins.
PRICE_PATTERNS = (
    (re.compile(r"\bRs\.?\s*" + _NUMBER, re.IGNORECASE), "INR"),
    (re.compile(r"₹\s*" + _NUMBER), "INR"),
    (re.compile(r"\$\s*" + _NUMBER), "USD"),
    (re.compile(r"€\s*" + _NUMBER), "EUR"),
    (re.compile(r"£\s*" + _NUMBER), "GBP"),
    (re.compile(_NUMBER + r"\s*(?:rupees?|rs\b\.?)", re.IGNORECASE), "INR"),
)


def _sanitize(name: str) -> str:
    """Make an arbitrary URL filesystem-safe."""
    return "".join(ch if ch.isalnum() or ch in "._-" else "_" for ch in name)[:120]


def _dump_html(url: str, html: str) -> None:
    """Write fetched HTML to a timestamped file when DEBUG logging is enabled."""
    if not logger.isEnabledFor(logging.DEBUG):
        return

    timestamp = datetime.datetime.now(datetime.timezone.utc).strftime("%Y%m%d_%H%M%S")
    path = DEBUG_DIR / f"structural_{_sanitize(url)}_{timestamp}.html"
    try:
        DEBUG_DIR.mkdir(parents=True, exist_ok=True)
        path.write_text(html, encoding="utf-8")
        logger.debug("Dumped page HTML to %s", path)
    except OSError as exc:  # pragma: no cover - debugging aid only
        logger.debug("Failed to dump page HTML to %s: %s", path, exc)


def _meta_content(soup: BeautifulSoup, keys: Iterable[str]) -> Optional[str]:
    """First non-empty content of <meta property=key> or <meta name=key>."""
    for key in keys:
        for attr in ("property", "name"):
            tag = soup.find("meta", attrs={attr: key})
            if isinstance(tag, Tag):
                content = tag.get("content")
                if isinstance(content, str) and content.strip():
                    return content.strip()
    return None


def _text_or_none(tag: Any) -> Optional[str]:
    if not isinstance(tag, Tag):
        return None
    text = tag.get_text(strip=True)
    return text or None


def _to_str(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


def find_price(text: str) -> tuple[Optional[str], Optional[str]]:
    """Return (price, currency) from the first matching currency pattern."""
    for pattern, currency in PRICE_PATTERNS:
        m = pattern.search(text)
        if m:
            return m.group(1).replace(",", ""), currency
    return None, None


def _iter_jsonld(soup: BeautifulSoup):
    for script in soup.find_all("script", type="application/ld+json"):
        try:
            data = json.loads(script.string or "")
        except ValueError:
            continue
        stack = data if isinstance(data, list) else [data]
        while stack:
            node = stack.pop(0)
            if not isinstance(node, dict):
                continue
            if isinstance(node.get("@graph"), list):
                stack.extend(node["@graph"])
            yield node


def _is_product(node: dict) -> bool:
    kind = node.get("@type")
    kinds = kind if isinstance(kind, list) else [kind]
    return "Product" in kinds


def extract_jsonld_product(soup: BeautifulSoup) -> dict[str, Any]:
    """Pull product fields from schema.org JSON-LD, if the page carries any."""
    for node in _iter_jsonld(soup):
        if not _is_product(node):
            continue

        out: dict[str, Any] = {}
        offers = node.get("offers")
        if isinstance(offers, list) and offers:
            offers = offers[0]
        if isinstance(offers, dict):
            out["price"] = _to_str(offers.get("price") or offers.get("lowPrice"))
            out["currency"] = _to_str(offers.get("priceCurrency"))
            availability = _to_str(offers.get("availability"))
            if availability:
                # "https://schema.org/InStock" -> "InStock"
                out["availability"] = availability.rstrip("/").rsplit("/", 1)[-1]

        brand = node.get("brand")
        if isinstance(brand, dict):
            brand = brand.get("name")
        out["brand"] = _to_str(brand)

        images = node.get("image")
        if isinstance(images, str):
            images = [images]
        if isinstance(images, list):
            urls = [i if isinstance(i, str) else (i or {}).get("url") for i in images]
            out["images"] = [u for u in urls if isinstance(u, str) and u] or None

        rating = node.get("aggregateRating")
        if isinstance(rating, dict):
            out["rating"] = _to_str(rating.get("ratingValue"))
            out["review_count"] = _to_str(rating.get("reviewCount") or rating.get("ratingCount"))

        out["category"] = _to_str(node.get("category"))
        return {k: v for k, v in out.items() if v is not None}
    return {}


def parse_html(html: str, url: str) -> ExtractionRecord:
    """Build a record from Open Graph / meta tags, the title tag and JSON-LD."""
    soup = BeautifulSoup(html, "html.parser")
    host = urlsplit(url).hostname or ""

    title = _meta_content(soup, ["og:title"]) or _text_or_none(soup.find("title"))
    description = _meta_content(soup, ["og:description", "description"])
    image = _meta_content(soup, ["og:image", "og:image:url", "twitter:image"])
    if image:
        image = urljoin(url, image)

    fields: dict[str, Any] = {
        "title": title,
        "description": description,
        "image": image,
        "site_name": _meta_content(soup, ["og:site_name"]) or host or None,
        "content_type": _meta_content(soup, ["og:type"]),
    }

    price, currency = find_price(f"{title or ''} {description or ''}")

    product = extract_jsonld_product(soup)
    if price is None:
        price = product.get("price") or _meta_content(
            soup, ["product:price:amount", "og:price:amount"]
        )
        currency = product.get("currency") or _meta_content(
            soup, ["product:price:currency", "og:price:currency"]
        )
        if price is not None:
            price = price.replace(",", "")
    fields["price"] = price
    fields["currency"] = currency.upper() if currency else None

    for key in ("brand", "availability", "rating", "review_count", "category"):
        fields[key] = product.get(key)

    images = product.get("images")
    if images:
        images = [urljoin(url, i) for i in images]
        fields["images"] = images
        if not fields["image"]:
            fields["image"] = images[0]

    logger.debug(
        "Parsed page %s: title=%r price=%r currency=%r image=%r",
        url, title, price, currency, fields["image"],
    )
    return ExtractionRecord(**fields)


class StructuralExtractor(Extractor):
    """
    Fetches the page over plain HTTP and parses static markup.
    Cheapest strategy; blind to content rendered by JavaScript.
    """

    tag = StrategyTag.STRUCTURAL

    def __init__(
        self,
        settings: ExtractionSettings,
        security: SecuritySettings,
        session: requests.Session | None = None,
    ):
        self.settings = settings
        self.security = security
        self.session = session or requests.Session()
        self.session.max_redirects = settings.max_redirects
        self.session.headers.update(
            {
                "User-Agent": settings.user_agents[0],
                "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
                "Accept-Language": "en-US,en;q=0.9",
                "Cache-Control": "no-cache",
                "Pragma": "no-cache",
            }
        )

    def priority(self) -> int:
        return 1

    def can_extract(self, url: str) -> bool:
        return urlsplit(url).scheme in ("http", "https")

    def _check_host(self, url: str, redirected: bool) -> None:
        parts = urlsplit(url)
        if parts.scheme not in ("http", "https"):
            raise InvalidURL(f"Unsupported URL {url}")
        if is_blocked_host(parts.hostname, self.security):
            if redirected:
                raise InvalidURL(f"Redirected to disallowed host {parts.hostname}")
            raise InvalidURL(f"Access to disallowed host {parts.hostname}")

    def fetch(self, url: str) -> str:
        """
        GET the page, following redirects by hand so every hop's host is
        checked before it is requested.
        """
        logger.debug("Fetching %s (timeout=%.1fs)", url, self.settings.http_timeout)
        current = url
        for hop in range(self.settings.max_redirects + 1):
            self._check_host(current, redirected=hop > 0)
            try:
                resp = self.session.get(
                    current, timeout=self.settings.http_timeout, allow_redirects=False
                )
            except requests.RequestException as exc:
                raise NetworkError(f"HTTP request failed: {exc}") from exc

            if not resp.is_redirect:
                break
            current = urljoin(current, resp.headers["Location"])
            logger.debug("Redirect %d from %s to %s", hop + 1, url, current)
        else:
            raise NetworkError(
                f"Exceeded {self.settings.max_redirects} redirects fetching {url}"
            )

        if resp.status_code >= 500:
            raise NetworkError(f"Bad status code {resp.status_code} from {current}")
        if resp.status_code >= 400:
            # Still parsed; the quality gate rejects error pages.
            logger.warning("Got status %s at %s.", resp.status_code, current)

        return resp.text

    def extract(self, url: str, raw_html: Optional[str] = None) -> ExtractionRecord:
        if raw_html:
            logger.debug("Parsing caller-supplied HTML for %s (%d chars).", url, len(raw_html))
            html = raw_html
        else:
            html = self.fetch(url)
            _dump_html(url, html)
        return parse_html(html, url)
