# extractors/rendering.py
import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from urllib.parse import urljoin, urlsplit

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import sync_playwright

from core.config import RenderSettings, SecuritySettings
from core.errors import InvalidURL, NetworkError
from core.logger import get_logger
from core.validators import is_blocked_host

logger = get_logger(__name__)


class BrowserRenderer:
    """
    Renders a URL to a full-page PNG with a shared headless Chromium.

    Playwright's sync API is bound to the thread that started it, so the
    browser lives on a single dedicated worker thread and every render is
    queued onto it. That also caps concurrent renders at one.
    """

    def __init__(self, settings: RenderSettings, security: SecuritySettings | None = None):
        self.settings = settings
        self.security = security or SecuritySettings()
        self._lock = threading.Lock()
        self._executor: ThreadPoolExecutor | None = None
        self._playwright = None
        self._browser = None

    def _worker(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="renderer")
            return self._executor

    def _ensure_browser(self):
        # Runs on the worker thread only.
        if self._browser is None:
            logger.debug("Launching Chromium (headless=%s).", self.settings.headless)
            self._playwright = sync_playwright().start()
            self._browser = self._playwright.chromium.launch(
                headless=self.settings.headless,
                args=list(self.settings.args),
            )
            logger.info("Browser initialized.")
        return self._browser

    def _guard_route(self, blocked: list):
        """
        Route handler that refuses requests to disallowed hosts. Requests are
        fetched without following redirects so each Location is checked
        before the browser follows it.
        """

        def handle(route):
            request = route.request
            if urlsplit(request.url).scheme not in ("http", "https"):
                route.continue_()
                return
            if self._is_blocked(request.url):
                logger.warning("Blocked browser request to %s", request.url)
                if request.is_navigation_request():
                    blocked.append(request.url)
                route.abort("blockedbyclient")
                return
            try:
                response = route.fetch(max_redirects=0)
            except PlaywrightError as exc:
                logger.debug("Browser request to %s failed: %s", request.url, exc)
                route.abort()
                return
            location = response.headers.get("location")
            if location and self._is_blocked(urljoin(request.url, location)):
                logger.warning("Blocked browser redirect from %s to %s", request.url, location)
                if request.is_navigation_request():
                    blocked.append(location)
                route.abort("blockedbyclient")
                return
            route.fulfill(response=response)

        return handle

    def _is_blocked(self, url: str) -> bool:
        parts = urlsplit(url)
        if parts.scheme not in ("http", "https"):
            return True
        return is_blocked_host(parts.hostname, self.security)

    def _render_on_worker(self, url: str) -> bytes:
        browser = self._ensure_browser()
        page = browser.new_page(
            viewport={
                "width": self.settings.viewport_width,
                "height": self.settings.viewport_height,
            }
        )
        blocked: list = []
        page.route("**/*", self._guard_route(blocked))
        try:
            try:
                page.goto(
                    url,
                    wait_until="domcontentloaded",
                    timeout=self.settings.timeout * 1000,
                )
            except PlaywrightError as exc:
                if blocked:
                    raise InvalidURL(f"Navigation to disallowed target {blocked[0]}") from exc
                raise
            # Give client-side rendering a moment, then nudge lazy loaders.
            page.wait_for_timeout(self.settings.settle_ms)
            page.evaluate("window.scrollTo(0, document.body.scrollHeight)")
            page.wait_for_timeout(self.settings.settle_ms // 2)
            return page.screenshot(full_page=True, type="png")
        finally:
            page.close()

    def render(self, url: str) -> bytes:
        logger.debug("Taking screenshot of %s", url)
        limit = self.settings.timeout + 2 * self.settings.settle_ms / 1000 + 5
        future = self._worker().submit(self._render_on_worker, url)
        try:
            image = future.result(timeout=limit)
        except FutureTimeout as exc:
            future.cancel()
            raise NetworkError(f"Screenshot of {url} timed out after {limit:.0f}s") from exc
        except PlaywrightError as exc:
            raise NetworkError(f"Screenshot failed: {exc}") from exc
        logger.debug("Screenshot captured for %s (%d bytes).", url, len(image))
        return image

    def _close_on_worker(self) -> None:
        if self._browser is not None:
            self._browser.close()
            self._browser = None
        if self._playwright is not None:
            self._playwright.stop()
            self._playwright = None

    def close(self) -> None:
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is None:
            return
        try:
            executor.submit(self._close_on_worker).result(timeout=10)
            logger.debug("Browser closed.")
        except (PlaywrightError, FutureTimeout) as exc:
            logger.warning("Browser shutdown did not complete cleanly: %s", exc)
        finally:
            executor.shutdown(wait=False)
