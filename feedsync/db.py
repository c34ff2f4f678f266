from __future__ import annotations

import logging
import os
import threading
from typing import Dict

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

LOGGER = logging.getLogger(__name__)

_ENGINE_CACHE: Dict[str, Engine] = {}
_SESSION_CACHE: Dict[str, sessionmaker] = {}
_SCHEMA_READY: set[str] = set()
_LOCK = threading.Lock()


def _resolve_url(url: str | None) -> str:
    if url:
        return url
    return os.getenv("DATABASE_URL", "sqlite:///feedsync.db")


def _ensure_schema(engine: Engine, url: str) -> None:
    """Create the document tables once per URL.

    A failed attempt is not remembered, so the next caller tries again.
    """

    if url in _SCHEMA_READY:
        return

    # Import lazily to avoid circular import issues during application start-up.
    from feedsync.models import Base

    Base.metadata.create_all(engine)
    _SCHEMA_READY.add(url)
    LOGGER.info("Document schema ready for %s", engine.url.render_as_string(hide_password=True))


def get_engine(url: str | None = None) -> Engine:
    resolved = _resolve_url(url)
    with _LOCK:
        engine = _ENGINE_CACHE.get(resolved)
        if engine is None:
            engine = create_engine(resolved)
            _ENGINE_CACHE[resolved] = engine
        _ensure_schema(engine, resolved)
    return engine


def get_session_factory(url: str | None = None) -> sessionmaker:
    resolved = _resolve_url(url)
    engine = get_engine(resolved)
    with _LOCK:
        factory = _SESSION_CACHE.get(resolved)
        if factory is None:
            factory = sessionmaker(bind=engine, expire_on_commit=False)
            _SESSION_CACHE[resolved] = factory
    return factory
