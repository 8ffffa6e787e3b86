# core/validators.py
import ipaddress
import re
import socket
from typing import Any, List
from urllib.parse import urlsplit

from .config import SecuritySettings
from .urls import is_valid_url, sanitize

# Every label decimal, octal or hex: a legacy IPv4 form such as 127.1 or 0x7f.0.0.1
_NUMERIC_HOST_RE = re.compile(r"^(?:0x[0-9a-f]*|\d+)(?:\.(?:0x[0-9a-f]*|\d+))*$")


def _parse_ip(host: str):
    try:
        return ipaddress.ip_address(host)
    except ValueError:
        pass
    if not _NUMERIC_HOST_RE.match(host):
        return None
    # inet_aton takes the same shorthand forms getaddrinfo and browsers do
    try:
        return ipaddress.IPv4Address(socket.inet_aton(host))
    except OSError:
        return None


def is_blocked_host(host: str | None, security: SecuritySettings) -> bool:
    """
    True when host names a loopback/private/link-local target. Only literal
    hosts are checked; names are not resolved. Numeric hosts that do not
    parse as an address are blocked.
    """
    if not host:
        return True
    host = host.strip("[]").rstrip(".").lower()
    if host in security.blocked_hostnames or host.endswith(".localhost"):
        return True
    addr = _parse_ip(host)
    if addr is None:
        return _NUMERIC_HOST_RE.match(host) is not None
    if isinstance(addr, ipaddress.IPv6Address) and addr.ipv4_mapped is not None:
        addr = addr.ipv4_mapped
    return any(addr in net for net in security.networks() if net.version == addr.version)


def validate_url(url: Any, security: SecuritySettings) -> List[str]:
    if url is None or not isinstance(url, str):
        return ["URL is required and must be a string"]
    if not url.strip():
        return ["URL cannot be empty"]

    candidate = sanitize(url)
    if not is_valid_url(candidate):
        return ["Invalid URL format"]

    if is_blocked_host(urlsplit(candidate).hostname, security):
        return ["Access to private/loopback IP addresses is not allowed"]
    return []


def validate_preview_request(payload: Any, security: SecuritySettings) -> List[str]:
    """Return a list of validation errors for a preview request body."""
    if not isinstance(payload, dict):
        return ["Request body is required"]

    errors = validate_url(payload.get("url"), security)

    if "raw_html" in payload and payload["raw_html"] is not None:
        raw_html = payload["raw_html"]
        if not isinstance(raw_html, str):
            errors.append("raw_html must be a string")
        elif len(raw_html.encode("utf-8")) > security.max_html_bytes:
            errors.append(
                f"raw_html exceeds maximum size of {security.max_html_bytes} bytes"
            )
    return errors
