from unittest.mock import MagicMock

import pytest
from playwright.sync_api import Error as PlaywrightError

from core.config import RenderSettings
from core.errors import InvalidURL, NetworkError
from extractors import rendering
from extractors.rendering import BrowserRenderer


@pytest.fixture
def playwright(monkeypatch):
    fake = MagicMock()
    monkeypatch.setattr(rendering, "sync_playwright", fake)
    return fake.return_value.start.return_value


def test_render_takes_full_page_screenshot(playwright):
    page = playwright.chromium.launch.return_value.new_page.return_value
    page.screenshot.return_value = b"\x89PNG"
    renderer = BrowserRenderer(RenderSettings(timeout=3.0, settle_ms=100))

    try:
        assert renderer.render("https://example.com/a") == b"\x89PNG"
        assert renderer.render("https://example.com/b") == b"\x89PNG"
    finally:
        renderer.close()

    playwright.chromium.launch.assert_called_once()
    page.goto.assert_called_with(
        "https://example.com/b", wait_until="domcontentloaded", timeout=3000.0
    )
    page.screenshot.assert_called_with(full_page=True, type="png")
    assert page.close.call_count == 2
    playwright.chromium.launch.return_value.close.assert_called_once()
    playwright.stop.assert_called_once()


def test_navigation_failure_is_network_error(playwright):
    page = playwright.chromium.launch.return_value.new_page.return_value
    page.goto.side_effect = PlaywrightError("net::ERR_NAME_NOT_RESOLVED")
    renderer = BrowserRenderer(RenderSettings())

    try:
        with pytest.raises(NetworkError, match="ERR_NAME_NOT_RESOLVED"):
            renderer.render("https://nowhere.example.com")
    finally:
        renderer.close()

    page.close.assert_called_once()


def test_close_without_render_is_noop(playwright):
    BrowserRenderer(RenderSettings()).close()
    playwright.stop.assert_not_called()


def _route(url, location=None, navigation=True):
    route = MagicMock()
    route.request.url = url
    route.request.is_navigation_request.return_value = navigation
    route.fetch.return_value.headers = {"location": location} if location else {}
    return route


def _route_handler(playwright):
    page = playwright.chromium.launch.return_value.new_page.return_value
    renderer = BrowserRenderer(RenderSettings())
    try:
        renderer.render("https://example.com/a")
    finally:
        renderer.close()
    pattern, handler = page.route.call_args.args
    assert pattern == "**/*"
    return handler


def test_public_requests_pass_through(playwright):
    handler = _route_handler(playwright)
    route = _route("https://cdn.example.com/app.js", navigation=False)

    handler(route)

    route.fetch.assert_called_once_with(max_redirects=0)
    route.fulfill.assert_called_once_with(response=route.fetch.return_value)
    route.abort.assert_not_called()


@pytest.mark.parametrize(
    "url", ["http://127.0.0.1/admin", "http://10.1/", "http://169.254.169.254/latest/meta-data"]
)
def test_requests_to_private_hosts_are_aborted(playwright, url):
    handler = _route_handler(playwright)
    route = _route(url, navigation=False)

    handler(route)

    route.abort.assert_called_once_with("blockedbyclient")
    route.fetch.assert_not_called()


def test_redirect_to_private_host_is_not_followed(playwright):
    handler = _route_handler(playwright)
    route = _route("https://example.com/r", location="http://0x7f.0.0.1/admin", navigation=False)

    handler(route)

    route.abort.assert_called_once_with("blockedbyclient")
    route.fulfill.assert_not_called()


def test_non_http_requests_continue(playwright):
    handler = _route_handler(playwright)
    route = _route("data:image/png;base64,AAAA", navigation=False)

    handler(route)

    route.continue_.assert_called_once_with()
    route.fetch.assert_not_called()


def test_blocked_navigation_is_invalid_url(playwright):
    page = playwright.chromium.launch.return_value.new_page.return_value
    routes = []

    def goto(url, **kwargs):
        route = _route(url, location="http://169.254.169.254/latest/meta-data")
        routes.append(route)
        page.route.call_args.args[1](route)
        raise PlaywrightError("net::ERR_BLOCKED_BY_CLIENT")

    page.goto.side_effect = goto
    renderer = BrowserRenderer(RenderSettings())

    try:
        with pytest.raises(InvalidURL, match="169.254.169.254"):
            renderer.render("https://example.com/x")
    finally:
        renderer.close()

    routes[0].abort.assert_called_once_with("blockedbyclient")
    routes[0].fulfill.assert_not_called()
    page.close.assert_called_once()
