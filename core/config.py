# core/config.py
import ipaddress
import os
from dataclasses import dataclass, field
from typing import Tuple

from dotenv import load_dotenv

DEFAULT_USER_AGENTS = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
)

DEFAULT_BROWSER_ARGS = (
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
)

BLOCKED_HOSTNAMES = ("localhost", "0.0.0.0")

BLOCKED_NETWORKS = (
    "127.0.0.0/8",
    "10.0.0.0/8",
    "172.16.0.0/12",
    "192.168.0.0/16",
    "169.254.0.0/16",
    "0.0.0.0/32",
    "::1/128",
    "fc00::/7",
    "fe80::/10",
)


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


def _env_bool(name: str, default: bool) -> bool:
    return os.getenv(name, "true" if default else "false").strip().lower() == "true"


@dataclass(frozen=True)
class ServerSettings:
    port: int = 3000
    request_timeout: float = 20.0
    max_request_bytes: int = 1024 * 1024


@dataclass(frozen=True)
class OpenAISettings:
    api_key: str | None = None
    model: str = "gpt-4o"
    max_retries: int = 3
    timeout: float = 10.0

    @property
    def configured(self) -> bool:
        return bool(self.api_key)


@dataclass(frozen=True)
class RenderSettings:
    headless: bool = True
    timeout: float = 10.0
    settle_ms: int = 1500
    viewport_width: int = 1200
    viewport_height: int = 800
    args: Tuple[str, ...] = DEFAULT_BROWSER_ARGS


@dataclass(frozen=True)
class ExtractionSettings:
    http_timeout: float = 5.0
    max_redirects: int = 3
    user_agents: Tuple[str, ...] = DEFAULT_USER_AGENTS


@dataclass(frozen=True)
class SecuritySettings:
    blocked_hostnames: Tuple[str, ...] = BLOCKED_HOSTNAMES
    blocked_networks: Tuple[str, ...] = BLOCKED_NETWORKS
    max_html_bytes: int = 512 * 1024

    def networks(self):
        return [ipaddress.ip_network(n) for n in self.blocked_networks]


@dataclass(frozen=True)
class ClientSettings:
    api_base_url: str = "http://localhost:3000"
    timeout: float = 20.0
    max_attempts: int = 3
    base_delay: float = 1.0


@dataclass(frozen=True)
class Settings:
    """
    Process-wide configuration. Built once at startup by load_settings()
    and handed to every component; never mutated afterwards.
    """
    server: ServerSettings = field(default_factory=ServerSettings)
    openai: OpenAISettings = field(default_factory=OpenAISettings)
    render: RenderSettings = field(default_factory=RenderSettings)
    extraction: ExtractionSettings = field(default_factory=ExtractionSettings)
    security: SecuritySettings = field(default_factory=SecuritySettings)
    client: ClientSettings = field(default_factory=ClientSettings)


def load_settings(env_file: str | None = None) -> Settings:
    load_dotenv(env_file)

    return Settings(
        server=ServerSettings(
            port=_env_int("PORT", 3000),
            request_timeout=_env_float("REQUEST_TIMEOUT", 20.0),
            max_request_bytes=_env_int("MAX_REQUEST_BYTES", 1024 * 1024),
        ),
        openai=OpenAISettings(
            api_key=os.getenv("OPENAI_API_KEY", "").strip() or None,
            model=os.getenv("OPENAI_MODEL", "gpt-4o"),
            max_retries=_env_int("OPENAI_MAX_RETRIES", 3),
            timeout=_env_float("AI_TIMEOUT", 10.0),
        ),
        render=RenderSettings(
            headless=_env_bool("BROWSER_HEADLESS", True),
            timeout=_env_float("RENDER_TIMEOUT", 10.0),
            settle_ms=_env_int("RENDER_SETTLE_MS", 1500),
            viewport_width=_env_int("BROWSER_WIDTH", 1200),
            viewport_height=_env_int("BROWSER_HEIGHT", 800),
        ),
        extraction=ExtractionSettings(
            http_timeout=_env_float("HTTP_TIMEOUT", 5.0),
            max_redirects=_env_int("MAX_REDIRECTS", 3),
        ),
        security=SecuritySettings(
            max_html_bytes=_env_int("MAX_HTML_SIZE", 512 * 1024),
        ),
        client=ClientSettings(
            api_base_url=os.getenv("PREVIEW_API_URL", "http://localhost:3000").rstrip("/"),
            timeout=_env_float("CLIENT_TIMEOUT", 20.0),
            max_attempts=_env_int("CLIENT_MAX_ATTEMPTS", 3),
            base_delay=_env_float("CLIENT_RETRY_DELAY", 1.0),
        ),
    )
