import time

import pytest
import requests

from core.client import PreviewClient
from core.config import ClientSettings
from core.errors import AppError, ErrorType

PREVIEW_BODY = {
    "success": True,
    "data": {
        "title": "Apple AirPods Pro (2nd Generation)",
        "price": "249.00",
        "currency": "USD",
        "siteName": "Example Store",
        "images": [],
        "sourceUrl": "https://example.com/airpods",
    },
    "metadata": {"extractionMethod": "http_extraction", "confidence": 0.9},
}


class FakeResponse:
    def __init__(self, status_code=200, body=None, reason="OK"):
        self.status_code = status_code
        self._body = body
        self.reason = reason

    def json(self):
        if self._body is None:
            raise ValueError("no json")
        return self._body


class FakeSession:
    """Replays a script of responses/exceptions, one per POST."""

    def __init__(self, *script, delay=0.0):
        self.script = list(script)
        self.delay = delay
        self.calls = []

    def post(self, url, json=None, timeout=None):
        self.calls.append((url, json, timeout))
        if self.delay:
            time.sleep(self.delay)
        item = self.script[min(len(self.calls), len(self.script)) - 1]
        if isinstance(item, Exception):
            raise item
        return item


def _client(session, **settings):
    sleeps = []
    client = PreviewClient(ClientSettings(**settings), session=session, sleep=sleeps.append)
    return client, sleeps


def test_success_returns_record():
    session = FakeSession(FakeResponse(body=PREVIEW_BODY))
    client, sleeps = _client(session)

    record = client.fetch_preview("example.com/airpods")

    assert record.title == "Apple AirPods Pro (2nd Generation)"
    assert record.site_name == "Example Store"
    assert record.images is None
    assert session.calls == [
        ("http://localhost:3000/api/preview", {"url": "https://example.com/airpods"}, 20.0)
    ]
    assert sleeps == []


def test_three_transport_failures_give_retryable_network_error():
    session = FakeSession(
        requests.ConnectionError("boom 1"),
        requests.ConnectionError("boom 2"),
        requests.ConnectionError("boom 3"),
    )
    client, sleeps = _client(session)

    with pytest.raises(AppError) as exc_info:
        client.fetch_preview("https://example.com/airpods")

    err = exc_info.value
    assert err.type is ErrorType.NETWORK
    assert err.retryable
    assert "after 3 attempts" in err.message
    assert "boom 3" in err.message
    assert len(session.calls) == 3
    assert sleeps == [1.0, 2.0]


def test_recovers_after_server_error():
    session = FakeSession(
        FakeResponse(500, {"error": True, "message": "Internal server error", "statusCode": 500}),
        FakeResponse(body=PREVIEW_BODY),
    )
    client, sleeps = _client(session)

    record = client.fetch_preview("https://example.com/airpods")

    assert record.price == "249.00"
    assert len(session.calls) == 2
    assert sleeps == [1.0]


def test_bad_request_is_not_retried():
    session = FakeSession(
        FakeResponse(400, {"error": True, "message": "Invalid URL format", "statusCode": 400})
    )
    client, sleeps = _client(session)

    with pytest.raises(AppError) as exc_info:
        client.fetch_preview("https://example.com/airpods")

    assert exc_info.value.type is ErrorType.VALIDATION
    assert exc_info.value.message == "Invalid URL format"
    assert not exc_info.value.retryable
    assert len(session.calls) == 1
    assert sleeps == []


def test_unsuccessful_body_is_retried():
    session = FakeSession(
        FakeResponse(body={"success": False}),
        FakeResponse(body=None),
        FakeResponse(body=PREVIEW_BODY),
    )
    client, sleeps = _client(session)

    assert client.fetch_preview("https://example.com/airpods").currency == "USD"
    assert sleeps == [1.0, 2.0]


def test_client_timer_counts_as_failed_attempt():
    session = FakeSession(FakeResponse(body=PREVIEW_BODY), delay=0.3)
    client, sleeps = _client(session, timeout=0.05, max_attempts=2)

    with pytest.raises(AppError) as exc_info:
        client.fetch_preview("https://example.com/airpods")

    assert exc_info.value.type is ErrorType.TIMEOUT
    assert "Client timeout" in exc_info.value.message
    assert len(session.calls) == 2
    assert sleeps == [1.0]


def test_server_timeouts_are_retried_then_reported_as_timeout():
    busy = {"error": True, "message": "Request timeout - processing took too long", "statusCode": 408}
    session = FakeSession(FakeResponse(408, busy), FakeResponse(408, busy), FakeResponse(408, busy))
    client, sleeps = _client(session)

    with pytest.raises(AppError) as exc_info:
        client.fetch_preview("https://example.com/airpods")

    assert exc_info.value.type is ErrorType.TIMEOUT
    assert exc_info.value.retryable
    assert "processing took too long" in exc_info.value.message
    assert len(session.calls) == 3
    assert sleeps == [1.0, 2.0]


def test_transport_timeout_reported_as_timeout():
    session = FakeSession(requests.ReadTimeout("read timed out"))
    client, _ = _client(session, max_attempts=2)

    with pytest.raises(AppError) as exc_info:
        client.fetch_preview("https://example.com/airpods")

    assert exc_info.value.type is ErrorType.TIMEOUT
    assert len(session.calls) == 2


@pytest.mark.parametrize("url", ["", "   ", "not-a-url", "ftp://example.com/x", None])
def test_invalid_url_never_hits_the_network(url):
    session = FakeSession(FakeResponse(body=PREVIEW_BODY))
    client, _ = _client(session)

    with pytest.raises(AppError) as exc_info:
        client.fetch_preview(url)

    assert exc_info.value.type is ErrorType.VALIDATION
    assert exc_info.value.message == "Invalid URL provided"
    assert session.calls == []


def test_endpoint_uses_base_url():
    client = PreviewClient(ClientSettings(api_base_url="https://preview.example.com/"))
    assert client.endpoint == "https://preview.example.com/api/preview"
