"""Wiring of the synchronization core from application configuration."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from feedsync.db import get_session_factory
from feedsync.services.feed import FeedClient
from feedsync.services.store import DEFAULT_COLLECTION, SqlItemStore
from feedsync.services.sync import RunResult, SyncOrchestrator

LOGGER = logging.getLogger(__name__)


def load_settings() -> dict[str, Any]:
    import config

    return {key: getattr(config.Config, key) for key in dir(config.Config) if key.isupper()}


def build_orchestrator(settings: Optional[Mapping[str, Any]] = None) -> SyncOrchestrator:
    """Create an orchestrator with a feed client and store from ``settings``.

    ``settings`` is any mapping with the keys of :class:`config.Config`, such
    as ``flask.Flask.config``. The module defaults are used when omitted.
    """

    settings = settings if settings is not None else load_settings()
    feed_url = settings.get("FEED_URL")
    if not feed_url:
        raise ValueError("FEED_URL is not configured")

    store = SqlItemStore(
        get_session_factory(settings.get("DATABASE_URL")),
        collection=settings.get("STORE_COLLECTION") or DEFAULT_COLLECTION,
    )
    client = FeedClient(timeout=settings.get("FEED_TIMEOUT_SECONDS") or 10)
    return SyncOrchestrator(
        client,
        store,
        feed_url,
        default_deadline=settings.get("SYNC_DEADLINE_SECONDS"),
    )


def run_sync(*, deadline: Optional[float] = None, settings: Optional[Mapping[str, Any]] = None) -> RunResult:
    """Run one synchronization using configuration from the environment."""

    result = build_orchestrator(settings).run(deadline=deadline)
    LOGGER.debug("Sync result: %s", result.to_dict())
    return result


__all__ = ["build_orchestrator", "load_settings", "run_sync"]
