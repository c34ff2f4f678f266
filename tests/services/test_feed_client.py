from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest
import requests

from conftest import FakeSession, make_response
from feedsync.services.errors import FetchError
from feedsync.services.feed import FeedClient, FeedItem
from feedsync.services.feed.jsonfeed import parse_feed

FEED_URL = "https://blog.example.com/feed.json"


def _client_for(body, status_code: int = 200) -> tuple[FeedClient, FakeSession]:
    raw = body if isinstance(body, bytes) else json.dumps(body).encode("utf-8")
    session = FakeSession(make_response(status_code, raw))
    return FeedClient(session=session, timeout=5), session


def test_fetch_returns_items_in_feed_order():
    client, session = _client_for(
        {
            "version": "https://jsonfeed.org/version/1.1",
            "items": [
                {"id": "b", "title": "Post B"},
                {"id": "a", "title": "Post A"},
                {"id": "c", "title": "Post C"},
            ],
        }
    )

    items = client.fetch(FEED_URL)

    assert [item.id for item in items] == ["b", "a", "c"]
    assert session.calls[0]["url"] == FEED_URL
    assert session.calls[0]["timeout"] == 5
    assert "User-Agent" in session.calls[0]["headers"]


def test_fetch_preserves_unknown_fields():
    raw_item = {
        "id": "post-1",
        "title": "Hello",
        "content_html": "<p>Hi</p>",
        "url": "https://blog.example.com/hello",
        "date_published": "2024-05-01T10:00:00+00:00",
        "tags": ["python", "feeds"],
        "_social": {"mastodon": True},
    }
    client, _ = _client_for({"items": [raw_item]})

    (item,) = client.fetch(FEED_URL)

    assert item.to_document() == raw_item
    assert item.title == "Hello"
    assert item.content_html == "<p>Hi</p>"
    assert item.url == "https://blog.example.com/hello"
    assert item.date_published == datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)
    assert item.date_modified is None


def test_numeric_ids_are_normalized_to_strings():
    item = FeedItem.from_json({"id": 42, "title": "Numbered"})
    assert item.id == "42"
    assert item.to_document()["id"] == "42"


def test_items_without_id_are_passed_through():
    items = parse_feed({"items": [{"title": "No id"}]})
    assert len(items) == 1
    assert items[0].id is None


@pytest.mark.parametrize("status_code", [301, 404, 500, 503])
def test_non_success_status_raises_fetch_error(status_code):
    client, _ = _client_for({"items": []}, status_code=status_code)

    with pytest.raises(FetchError) as excinfo:
        client.fetch(FEED_URL)

    assert excinfo.value.status_code == status_code
    assert excinfo.value.url == FEED_URL


def test_network_failure_raises_fetch_error():
    session = FakeSession(exc=requests.ConnectionError("connection refused"))
    client = FeedClient(session=session)

    with pytest.raises(FetchError, match="connection refused"):
        client.fetch(FEED_URL)


def test_malformed_body_raises_fetch_error():
    client, _ = _client_for(b"<html>not a feed</html>")

    with pytest.raises(FetchError, match="not valid JSON"):
        client.fetch(FEED_URL)


@pytest.mark.parametrize(
    "payload, message",
    [
        ([{"id": "a"}], "not a JSON object"),
        ({"title": "Feed without items"}, "no 'items' field"),
        ({"items": {"id": "a"}}, "not a list"),
        ({"items": [{"id": "a"}, "b"]}, "position 1"),
    ],
)
def test_unexpected_shape_raises_fetch_error(payload, message):
    client, _ = _client_for(payload)

    with pytest.raises(FetchError, match=message):
        client.fetch(FEED_URL)


def test_empty_item_list_is_valid():
    client, _ = _client_for({"items": []})
    assert client.fetch(FEED_URL) == []


def test_shorter_timeout_overrides_configured_one():
    client, session = _client_for({"items": []})

    client.fetch(FEED_URL, timeout=1.5)
    client.fetch(FEED_URL, timeout=60)

    assert [call["timeout"] for call in session.calls] == [1.5, 5]


def test_without_session_uses_module_level_get(monkeypatch):
    calls = []

    def fake_get(url, headers=None, timeout=None):
        calls.append((url, timeout))
        return make_response(200, b'{"items": [{"id": "a"}]}')

    monkeypatch.setattr(requests, "get", fake_get)

    items = FeedClient(timeout=7).fetch(FEED_URL)

    assert [item.id for item in items] == ["a"]
    assert calls == [(FEED_URL, 7)]
