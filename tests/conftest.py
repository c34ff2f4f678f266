import sys
from pathlib import Path

# Ensure the root of the repository is on PYTHONPATH
sys.path.append(str(Path(__file__).resolve().parents[1]))

from typing import Any, Dict, List, Mapping, Optional

import pytest
import requests
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from feedsync.models import Base
from feedsync.services.errors import FetchError, StoreError
from feedsync.services.feed import FeedItem
from feedsync.services.store import StoreAck


def make_response(status_code: int = 200, body: bytes = b"{}") -> requests.Response:
    response = requests.Response()
    response.status_code = status_code
    response._content = body
    response._content_consumed = True
    response.encoding = "utf-8"
    return response


class FakeSession:
    """Stand-in for ``requests.Session`` that records every GET."""

    def __init__(self, response: requests.Response | None = None, exc: Exception | None = None) -> None:
        self.response = response
        self.exc = exc
        self.calls: List[Dict[str, Any]] = []

    def get(self, url, headers=None, timeout=None):
        self.calls.append({"url": url, "headers": headers, "timeout": timeout})
        if self.exc is not None:
            raise self.exc
        return self.response


class FakeFeedClient:
    def __init__(self, items: Optional[List[Dict[str, Any]]] = None, error: Exception | None = None) -> None:
        self.items = [FeedItem.from_json(item) for item in items or []]
        self.error = error
        self.urls: List[str] = []
        self.timeouts: List[Optional[float]] = []

    def fetch(self, url: str, *, timeout: Optional[float] = None) -> List[FeedItem]:
        self.urls.append(url)
        self.timeouts.append(timeout)
        if self.error is not None:
            raise self.error
        return list(self.items)


class RecordingStore:
    """In-memory store that can be told to reject specific ids."""

    def __init__(self, reject: Optional[Mapping[str, str]] = None) -> None:
        self.reject = dict(reject or {})
        self.calls: List[Dict[str, Any]] = []
        self.documents: Dict[str, Dict[str, Any]] = {}

    def upsert(self, document: Mapping[str, Any]) -> StoreAck:
        self.calls.append(dict(document))
        document_id = document.get("id")
        if not document_id:
            raise StoreError("Document is missing a string 'id'")
        if document_id in self.reject:
            raise StoreError(self.reject[document_id], document_id=document_id)
        created = document_id not in self.documents
        changed = created or self.documents[document_id] != dict(document)
        self.documents[document_id] = dict(document)
        return StoreAck(id=document_id, created=created, changed=changed)


@pytest.fixture()
def session_factory(tmp_path: Path):
    engine = create_engine(f"sqlite:///{tmp_path}/documents.db")
    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine, expire_on_commit=False)
    engine.dispose()


@pytest.fixture()
def fetch_error() -> FetchError:
    return FetchError("Feed https://blog.example.com/feed.json returned HTTP 503", status_code=503)
