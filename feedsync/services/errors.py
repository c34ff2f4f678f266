"""Exception types raised by the synchronization services."""

from __future__ import annotations


class SyncError(RuntimeError):
    """Base class for failures reported by the feed synchronization core."""


class FetchError(SyncError):
    """Raised when the feed cannot be retrieved or decoded."""

    def __init__(self, message: str, *, url: str | None = None, status_code: int | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class StoreError(SyncError):
    """Raised when a single document cannot be persisted."""

    def __init__(self, message: str, *, document_id: str | None = None) -> None:
        super().__init__(message)
        self.document_id = document_id


__all__ = ["SyncError", "FetchError", "StoreError"]
