# core/urls.py
import ipaddress
import re
from urllib.parse import unquote_plus, urlsplit

from .errors import InvalidURL

TRACKING_PARAMS = frozenset(
    {
        "utm_source",
        "utm_medium",
        "utm_campaign",
        "utm_term",
        "utm_content",
        "utm_id",
        "utm_source_platform",
        "utm_creative_format",
        "utm_marketing_tactic",
    }
)

_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.\-]*://")
_LABEL_RE = re.compile(r"^(?!-)[\w\-]{1,63}(?<!-)$")


def sanitize(raw: str) -> str:
    """Trim whitespace and assume https when no scheme is given."""
    cleaned = raw.strip()
    if not _SCHEME_RE.match(cleaned):
        cleaned = f"https://{cleaned}"
    return cleaned


def _is_ip_literal(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
    except ValueError:
        return False
    return True


def is_valid_host(host: str | None) -> bool:
    if not host:
        return False
    if host == "localhost" or _is_ip_literal(host):
        return True
    labels = host.rstrip(".").split(".")
    if len(labels) < 2:
        return False
    return all(_LABEL_RE.match(label) for label in labels)


def _split(raw: str):
    if not isinstance(raw, str) or not raw.strip():
        raise InvalidURL("Invalid URL format")
    try:
        parts = urlsplit(sanitize(raw))
        host = parts.hostname
        port = parts.port
    except ValueError as exc:
        raise InvalidURL("Invalid URL format") from exc
    if parts.scheme.lower() not in ("http", "https"):
        raise InvalidURL("URL must use HTTP or HTTPS protocol")
    if not is_valid_host(host):
        raise InvalidURL("Invalid URL format")
    return parts, host, port


def _strip_www(host: str) -> str:
    while host.startswith("www.") and is_valid_host(host[4:]):
        host = host[4:]
    return host


def is_valid_url(url: str) -> bool:
    try:
        _split(url)
    except InvalidURL:
        return False
    return True


def _strip_tracking(query: str) -> str:
    kept = []
    for pair in query.split("&"):
        if not pair:
            continue
        key = unquote_plus(pair.split("=", 1)[0]).lower()
        if key in TRACKING_PARAMS:
            continue
        kept.append(pair)
    return "&".join(kept)


def canonicalize(raw: str) -> str:
    """
    Normalize a URL into the key used for deduplication and extraction.

    - scheme forced to https, schemeless input accepted
    - host lowercased, leading "www." removed, default ports dropped
    - fragment and tracking (utm_*) query params removed
    - trailing slashes stripped from the path
    Path and query values keep their original case and order.
    """
    parts, host, port = _split(raw)

    host = _strip_www(host)
    netloc = f"[{host}]" if ":" in host else host
    if port is not None and port not in (80, 443):
        netloc = f"{netloc}:{port}"

    path = parts.path.rstrip("/")
    query = _strip_tracking(parts.query)

    url = f"https://{netloc}{path}"
    if query:
        url = f"{url}?{query}"
    return url


def extract_domain(url: str) -> str:
    try:
        _, host, _ = _split(url)
    except InvalidURL:
        return ""
    return _strip_www(host)

