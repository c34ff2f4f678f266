import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, Optional, Union

# Attributes that sync code attaches through ``extra=`` and that are worth
# keeping as separate fields in the JSON output.
CONTEXT_FIELDS = ("feed_url", "item_id", "trigger", "outcome", "deadline")


class JsonFormatter(logging.Formatter):
    """Render log records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log_record: dict[str, Any] = {
            "time": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                log_record[key] = value
        if record.exc_info:
            log_record["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(log_record, default=str)


def configure_logging(level: Optional[Union[int, str]] = None) -> None:
    """Send root logging to stderr as JSON.

    ``level`` defaults to the ``LOG_LEVEL`` environment variable, then INFO.
    """
    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO").upper()
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)
