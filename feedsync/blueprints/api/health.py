from __future__ import annotations

import logging
from typing import List

from flask import current_app
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from feedsync.db import get_engine

LOGGER = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    """Enabled triggers and whether the item store answers queries."""

    status: str = "ok"
    store: str = "ok"
    triggers: List[str] = []


def _store_reachable(url: str | None) -> bool:
    try:
        with get_engine(url).connect() as connection:
            connection.execute(text("SELECT 1"))
    except SQLAlchemyError:
        LOGGER.warning("Item store health check failed", exc_info=True)
        return False
    return True


def health() -> tuple[dict, int]:
    triggers = list(current_app.config.get("SYNC_TRIGGERS", ()))
    if _store_reachable(current_app.config.get("DATABASE_URL")):
        return HealthResponse(triggers=triggers).model_dump(), 200
    response = HealthResponse(status="degraded", store="unavailable", triggers=triggers)
    return response.model_dump(), 503


__all__ = ["HealthResponse", "health"]
