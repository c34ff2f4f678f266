"""JSON Feed retrieval and decoding."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

import requests
from dateutil import parser as date_parser

from feedsync.services.errors import FetchError

LOGGER = logging.getLogger(__name__)

_USER_AGENT = "feedsync/1.0 (+https://jsonfeed.org/version/1.1)"
_ACCEPT = "application/feed+json, application/json;q=0.9, */*;q=0.1"
DEFAULT_TIMEOUT = 10


def _parse_datetime(value: Any) -> Optional[datetime]:
    if not value or not isinstance(value, str):
        return None
    try:
        return date_parser.isoparse(value)
    except (ValueError, TypeError):
        LOGGER.debug("Ignoring unparsable feed date %r", value)
        return None


@dataclass
class FeedItem:
    """One entry of a JSON Feed.

    The complete item object is kept in ``data`` so that fields the feed
    defines beyond the well-known ones survive the round trip to the store.
    """

    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_json(cls, raw: Dict[str, Any]) -> "FeedItem":
        data = dict(raw)
        # JSON Feed requires string ids but some generators emit numbers.
        if isinstance(data.get("id"), (int, float)) and not isinstance(data.get("id"), bool):
            data["id"] = str(data["id"])
        return cls(data=data)

    @property
    def id(self) -> Optional[str]:
        value = self.data.get("id")
        return value if isinstance(value, str) and value else None

    @property
    def title(self) -> Optional[str]:
        return self.data.get("title")

    @property
    def content_html(self) -> Optional[str]:
        return self.data.get("content_html")

    @property
    def content_text(self) -> Optional[str]:
        return self.data.get("content_text")

    @property
    def url(self) -> Optional[str]:
        return self.data.get("url")

    @property
    def date_published(self) -> Optional[datetime]:
        return _parse_datetime(self.data.get("date_published"))

    @property
    def date_modified(self) -> Optional[datetime]:
        return _parse_datetime(self.data.get("date_modified"))

    def to_document(self) -> Dict[str, Any]:
        return dict(self.data)


def parse_feed(payload: Any, *, url: str | None = None) -> List[FeedItem]:
    """Turn a decoded JSON Feed document into an ordered list of items."""

    if not isinstance(payload, dict):
        raise FetchError("Feed document is not a JSON object", url=url)
    if "items" not in payload:
        raise FetchError("Feed document has no 'items' field", url=url)
    raw_items = payload["items"]
    if not isinstance(raw_items, list):
        raise FetchError("Feed 'items' field is not a list", url=url)

    items: List[FeedItem] = []
    for position, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            raise FetchError(f"Feed item at position {position} is not an object", url=url)
        items.append(FeedItem.from_json(raw))
    return items


class FeedClient:
    """Fetch a JSON Feed over HTTP.

    The client performs exactly one ``GET`` per :meth:`fetch` call and never
    retries; callers decide whether a failed run is attempted again. Without
    an injected ``session`` every call goes through :func:`requests.get`,
    which opens and closes its own connection pool.
    """

    def __init__(
        self,
        *,
        session: requests.Session | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        user_agent: str = _USER_AGENT,
    ) -> None:
        self._session = session
        self._timeout = timeout
        self._headers = {"User-Agent": user_agent, "Accept": _ACCEPT}

    def fetch(self, url: str, *, timeout: Optional[float] = None) -> List[FeedItem]:
        """Fetch ``url`` and return its items in feed order.

        ``timeout`` can only shorten the client's configured timeout.

        Raises
        ------
        FetchError
            When the request fails, the server answers with a non-success
            status, or the body is not a JSON Feed document.
        """
        effective_timeout = self._timeout if timeout is None else min(self._timeout, timeout)
        get = self._session.get if self._session is not None else requests.get
        try:
            with get(url, headers=self._headers, timeout=effective_timeout) as response:
                status = response.status_code
                if not 200 <= status < 300:
                    raise FetchError(
                        f"Feed {url} returned HTTP {status}", url=url, status_code=status
                    )
                try:
                    payload = response.json()
                except ValueError as exc:
                    raise FetchError(f"Feed {url} is not valid JSON: {exc}", url=url) from exc
        except requests.RequestException as exc:
            raise FetchError(f"HTTP fetch for {url} failed: {exc}", url=url) from exc

        items = parse_feed(payload, url=url)
        LOGGER.info("Fetched %s items from %s", len(items), url)
        return items


__all__ = ["FeedClient", "FeedItem", "parse_feed"]
