"""Synchronize a remote JSON Feed into the item store."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence

from prometheus_client import Counter, Histogram

from feedsync.services.errors import FetchError, StoreError
from feedsync.services.feed import FeedItem
from feedsync.services.store import ItemStore

LOGGER = logging.getLogger(__name__)

RUNS_TOTAL = Counter("feedsync_runs_total", "Completed synchronization runs", ["outcome"])
ITEMS_TOTAL = Counter("feedsync_items_total", "Feed items processed", ["outcome"])
RUN_DURATION = Histogram("feedsync_run_duration_seconds", "Duration of synchronization runs")

SETUP_ERROR = "SetupError"


class FeedSource(Protocol):
    def fetch(self, url: str, *, timeout: Optional[float] = None) -> Sequence[FeedItem]:
        ...


@dataclass
class ItemFailure:
    id: Optional[str]
    error: str


@dataclass
class RunResult:
    """Outcome of a single synchronization run.

    A result is always returned, also when the feed could not be fetched
    (``error`` is set and ``total`` is zero) or when the deadline expired
    (``truncated`` is set and the counters cover the items attempted so far).
    """

    total: int = 0
    succeeded: int = 0
    failed: int = 0
    failures: List[ItemFailure] = field(default_factory=list)
    error: Optional[str] = None
    error_type: Optional[str] = None
    truncated: bool = False
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None
    duration_ms: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.failed == 0 and not self.truncated

    @classmethod
    def not_started(cls, exc: BaseException) -> "RunResult":
        """Result for a run whose collaborators could not be set up."""

        result = cls(error=f"{type(exc).__name__}: {exc}", error_type=SETUP_ERROR)
        result.finished_at = result.started_at
        result.duration_ms = 0
        return result

    @property
    def outcome(self) -> str:
        if self.error_type == SETUP_ERROR:
            return "setup_error"
        if self.error_type == FetchError.__name__:
            return "fetch_error"
        if self.truncated:
            return "truncated"
        if self.failed:
            return "partial"
        return "ok"

    def record_success(self) -> None:
        self.succeeded += 1

    def record_failure(self, item_id: Optional[str], error: str) -> None:
        self.failed += 1
        self.failures.append(ItemFailure(id=item_id, error=error))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "failures": [{"id": f.id, "error": f.error} for f in self.failures],
            "error": self.error,
            "error_type": self.error_type,
            "truncated": self.truncated,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "duration_ms": self.duration_ms,
        }


class SyncOrchestrator:
    """Fetch the configured feed and upsert every item into ``store``.

    Items are written one at a time in feed order. A failing item is recorded
    and skipped; it never prevents the remaining items from being attempted.
    """

    def __init__(
        self,
        feed_client: FeedSource,
        store: ItemStore,
        feed_url: str,
        *,
        default_deadline: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.feed_client = feed_client
        self.store = store
        self.feed_url = feed_url
        self.default_deadline = default_deadline
        self._clock = clock

    def run(self, deadline: float | None = None) -> RunResult:
        """Execute one run; ``deadline`` is a budget in seconds from now.

        The remaining budget is handed to the feed client as its timeout. HTTP
        timeouts apply per socket operation, so a slow but steady response can
        still overrun the budget by a little; the check before every upsert
        bounds the rest of the run.
        """

        budget = deadline if deadline is not None else self.default_deadline
        start = self._clock()
        expires_at = start + budget if budget is not None else None
        result = RunResult()
        LOGGER.info(
            "Starting feed sync for %s",
            self.feed_url,
            extra={"feed_url": self.feed_url, "deadline": budget},
        )

        fetch_timeout = None
        if expires_at is not None:
            fetch_timeout = expires_at - self._clock()
            if fetch_timeout <= 0:
                self._truncate(result, budget, "before the feed was fetched")
                return self._finish(result, start)

        try:
            items = list(self.feed_client.fetch(self.feed_url, timeout=fetch_timeout))
        except FetchError as exc:
            LOGGER.warning(
                "Feed fetch failed for %s: %s", self.feed_url, exc, extra={"feed_url": self.feed_url}
            )
            result.error = str(exc)
            result.error_type = type(exc).__name__
            return self._finish(result, start)
        except Exception as exc:
            LOGGER.exception(
                "Unexpected error fetching %s", self.feed_url, extra={"feed_url": self.feed_url}
            )
            result.error = f"{type(exc).__name__}: {exc}"
            result.error_type = FetchError.__name__
            return self._finish(result, start)

        result.total = len(items)
        for position, item in enumerate(items):
            if expires_at is not None and self._clock() >= expires_at:
                remaining = result.total - position
                self._truncate(result, budget, f"{remaining} of {result.total} items not attempted")
                break
            self._sync_item(item, result)

        return self._finish(result, start)

    def _truncate(self, result: RunResult, budget: float | None, detail: str) -> None:
        result.truncated = True
        result.error_type = TimeoutError.__name__
        result.error = f"Deadline of {budget}s exceeded; {detail}"
        LOGGER.warning(
            "Feed sync truncated: %s", result.error, extra={"feed_url": self.feed_url}
        )

    def _sync_item(self, item: FeedItem, result: RunResult) -> None:
        try:
            self.store.upsert(item.to_document())
        except StoreError as exc:
            LOGGER.warning(
                "Failed to store item %s: %s", item.id, exc, extra={"item_id": item.id}
            )
            result.record_failure(item.id, str(exc))
            ITEMS_TOTAL.labels("failed").inc()
        except Exception as exc:
            LOGGER.exception("Unexpected error storing item %s", item.id, extra={"item_id": item.id})
            result.record_failure(item.id, f"{type(exc).__name__}: {exc}")
            ITEMS_TOTAL.labels("failed").inc()
        else:
            result.record_success()
            ITEMS_TOTAL.labels("succeeded").inc()

    def _finish(self, result: RunResult, start: float) -> RunResult:
        elapsed = max(self._clock() - start, 0.0)
        result.finished_at = datetime.now(timezone.utc)
        result.duration_ms = int(elapsed * 1000)
        RUN_DURATION.observe(elapsed)
        RUNS_TOTAL.labels(result.outcome).inc()
        LOGGER.info(
            "Feed sync finished: total=%s succeeded=%s failed=%s truncated=%s",
            result.total,
            result.succeeded,
            result.failed,
            result.truncated,
            extra={"feed_url": self.feed_url, "outcome": result.outcome},
        )
        return result


__all__ = ["SETUP_ERROR", "FeedSource", "ItemFailure", "RunResult", "SyncOrchestrator"]
