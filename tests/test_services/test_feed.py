"""Tests for feed service — inline feed detection and remote fetch failures."""
import pytest
import requests

from app.core.exceptions import FeedAcquisitionError
from app.services.feed_service import FeedClient, extract_inline_feed


class _FakeResponse:
    def __init__(self, status_code: int, content: bytes = b""):
        self.status_code = status_code
        self.content = content


class TestExtractInlineFeed:
    def test_post_with_feed(self):
        body = b"<?xml version='1.0'?><list><property/></list>"
        assert extract_inline_feed("POST", body) == body.decode()

    def test_get_ignores_body(self):
        assert extract_inline_feed("GET", b"<list></list>") is None

    def test_post_without_marker(self):
        assert extract_inline_feed("POST", b'{"sync": true}') is None

    def test_post_empty(self):
        assert extract_inline_feed("POST", b"") is None
        assert extract_inline_feed("POST", None) is None

    def test_post_binary_body(self):
        assert extract_inline_feed("POST", b"\xff\xfe<list>") is None


class TestFeedClient:
    def test_no_session_until_first_use(self):
        client = FeedClient(url="https://feed.example.com/pf.xml")
        assert client._session is None
        client.close()
        assert client._session is None

    def test_session_reused_and_released(self):
        client = FeedClient(url="https://feed.example.com/pf.xml")
        session = client.session
        assert client.session is session
        client.close()
        assert client._session is None

    def test_sends_feed_headers(self):
        client = FeedClient(url="https://feed.example.com/pf.xml", timeout=3, user_agent="Importer/1.0")
        headers = client.session.headers
        assert headers["Accept"] == "application/xml, text/xml"
        assert headers["User-Agent"] == "Importer/1.0"
        client.close()

    def test_fetch_success(self, monkeypatch):
        client = FeedClient(url="https://feed.example.com/pf.xml", timeout=3)
        seen = {}

        def fake_get(url, timeout):
            seen["url"] = url
            seen["timeout"] = timeout
            return _FakeResponse(200, b"<list/>")

        monkeypatch.setattr(client.session, "get", fake_get)
        assert client.fetch() == b"<list/>"
        assert seen == {"url": "https://feed.example.com/pf.xml", "timeout": 3}

    def test_timeout(self, monkeypatch):
        client = FeedClient(url="https://feed.example.com/pf.xml", timeout=10)

        def fake_get(url, timeout):
            raise requests.exceptions.Timeout("read timed out")

        monkeypatch.setattr(client.session, "get", fake_get)
        with pytest.raises(FeedAcquisitionError, match="Timed out") as exc_info:
            client.fetch()
        assert exc_info.value.timestamp
        assert exc_info.value.detail["reason"] == "read timed out"

    def test_connection_error(self, monkeypatch):
        client = FeedClient(url="https://feed.example.com/pf.xml")

        def fake_get(url, timeout):
            raise requests.exceptions.ConnectionError("name resolution failed")

        monkeypatch.setattr(client.session, "get", fake_get)
        with pytest.raises(FeedAcquisitionError, match="name resolution failed"):
            client.fetch()

    @pytest.mark.parametrize("status", [404, 500, 503])
    def test_non_2xx(self, monkeypatch, status):
        client = FeedClient(url="https://feed.example.com/pf.xml")
        monkeypatch.setattr(client.session, "get", lambda url, timeout: _FakeResponse(status))
        with pytest.raises(FeedAcquisitionError, match=f"HTTP {status}") as exc_info:
            client.fetch()
        assert exc_info.value.detail["status"] == status
