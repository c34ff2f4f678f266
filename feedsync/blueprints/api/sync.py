from __future__ import annotations

import math
from typing import List, Optional

from flask import Blueprint, current_app, jsonify, request
from pydantic import BaseModel

from feedsync.services.triggers import HttpTrigger


sync_api_bp = Blueprint("api_sync", __name__)

EXTENSION_KEY = "feedsync.http_trigger"


class FailureResponse(BaseModel):
    id: Optional[str] = None
    error: str


class SyncResponse(BaseModel):
    """Serialized run result returned by the manual sync trigger."""

    total: int
    succeeded: int
    failed: int
    failures: List[FailureResponse] = []
    error: Optional[str] = None
    error_type: Optional[str] = None
    truncated: bool = False
    started_at: str
    finished_at: Optional[str] = None
    duration_ms: Optional[int] = None


def _parse_deadline(value: str | None) -> float | None:
    if value in (None, ""):
        return None
    parsed = float(value)
    if not math.isfinite(parsed) or parsed <= 0:
        raise ValueError("deadline must be positive")
    return parsed


@sync_api_bp.get("")
def trigger_sync():
    try:
        deadline = _parse_deadline(request.args.get("deadline"))
    except ValueError:
        return jsonify({"error": "deadline must be a positive number of seconds"}), 400

    trigger: HttpTrigger = current_app.extensions[EXTENSION_KEY]
    result = trigger.invoke(deadline=deadline)
    payload = SyncResponse.model_validate(result.to_dict()).model_dump()
    return jsonify(payload), trigger.status_code(result)


__all__ = ["EXTENSION_KEY", "SyncResponse", "sync_api_bp", "trigger_sync"]
