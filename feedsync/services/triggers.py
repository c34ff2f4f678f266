"""Adapters that turn an inbound request or a scheduler tick into a sync run."""

from __future__ import annotations

import logging
from typing import Callable, Optional, Protocol

from feedsync.services.sync import RunResult, SyncOrchestrator

LOGGER = logging.getLogger(__name__)

OrchestratorFactory = Callable[[], SyncOrchestrator]

HTTP_TRIGGER = "http"
TIMER_TRIGGER = "timer"


class Trigger(Protocol):
    name: str

    def invoke(self, deadline: Optional[float] = None) -> RunResult:
        ...


class _OrchestratorTrigger:
    name = "trigger"

    def __init__(self, factory: OrchestratorFactory) -> None:
        self._factory = factory

    def invoke(self, deadline: Optional[float] = None) -> RunResult:
        try:
            orchestrator = self._factory()
        except Exception as exc:
            LOGGER.exception(
                "%s trigger could not set up a feed sync", self.name, extra={"trigger": self.name}
            )
            return RunResult.not_started(exc)
        LOGGER.info(
            "%s trigger invoked for %s",
            self.name,
            orchestrator.feed_url,
            extra={"trigger": self.name, "feed_url": orchestrator.feed_url},
        )
        return orchestrator.run(deadline=deadline)


class HttpTrigger(_OrchestratorTrigger):
    """Manual invocation through ``GET /api/sync``."""

    name = HTTP_TRIGGER

    @staticmethod
    def status_code(result: RunResult) -> int:
        # Item failures and truncation still produce a usable result.
        if result.outcome == "setup_error":
            return 500
        if result.outcome == "fetch_error":
            return 502
        return 200


class ScheduledTrigger(_OrchestratorTrigger):
    """Invocation from the interval scheduler.

    Scheduler jobs have no caller to answer, so the result is logged and then
    handed back for the scheduler's bookkeeping.
    """

    name = TIMER_TRIGGER

    def invoke(self, deadline: Optional[float] = None) -> RunResult:
        result = super().invoke(deadline=deadline)
        if not result.ok:
            LOGGER.warning(
                "Scheduled feed sync finished with outcome %s",
                result.outcome,
                extra={"trigger": self.name, "outcome": result.outcome},
            )
        return result

    def __call__(self) -> RunResult:
        return self.invoke()


__all__ = [
    "HTTP_TRIGGER",
    "TIMER_TRIGGER",
    "HttpTrigger",
    "OrchestratorFactory",
    "ScheduledTrigger",
    "Trigger",
]
