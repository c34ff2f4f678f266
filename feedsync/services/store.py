"""Document persistence for synchronized feed items."""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Protocol

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from feedsync.models import Document
from feedsync.services.errors import StoreError

LOGGER = logging.getLogger(__name__)

DEFAULT_COLLECTION = "feed_items"


@dataclass(frozen=True)
class StoreAck:
    """Acknowledgement returned by a successful upsert."""

    id: str
    created: bool
    changed: bool


class ItemStore(Protocol):
    """Anything that can durably insert-or-replace a document by its id."""

    def upsert(self, document: Mapping[str, Any]) -> StoreAck:
        ...


def _serialize(document: Mapping[str, Any], document_id: str) -> str:
    try:
        return json.dumps(document, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    except (TypeError, ValueError) as exc:
        raise StoreError(
            f"Document {document_id} is not JSON serializable: {exc}", document_id=document_id
        ) from exc


class SqlItemStore:
    """Store documents in a SQL table routed by collection name.

    A document is replaced wholesale on every upsert. Writing a body that is
    identical to the stored one leaves the row untouched.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        collection: str = DEFAULT_COLLECTION,
    ) -> None:
        self._session_factory = session_factory
        self.collection = collection

    def upsert(self, document: Mapping[str, Any]) -> StoreAck:
        if not isinstance(document, Mapping):
            raise StoreError(f"Document must be a mapping, got {type(document).__name__}")
        document_id = document.get("id")
        if not isinstance(document_id, str) or not document_id:
            raise StoreError("Document is missing a string 'id'")

        serialized = _serialize(document, document_id)
        content_hash = hashlib.sha256(serialized.encode("utf-8")).hexdigest()
        ack = self._commit(document_id, serialized, content_hash, retry_on_conflict=True)
        if ack.changed:
            LOGGER.debug(
                "%s document %s in %s",
                "Created" if ack.created else "Replaced",
                document_id,
                self.collection,
            )
        return ack

    def _commit(
        self, document_id: str, serialized: str, content_hash: str, *, retry_on_conflict: bool
    ) -> StoreAck:
        session = self._session_factory()
        try:
            return self._write(session, document_id, serialized, content_hash)
        except IntegrityError as exc:
            session.rollback()
            if not retry_on_conflict:
                raise StoreError(
                    f"Failed to upsert document {document_id}: {exc}", document_id=document_id
                ) from exc
            # Another writer inserted the id between our read and our commit.
            LOGGER.info(
                "Document %s was inserted concurrently in %s; retrying as update",
                document_id,
                self.collection,
            )
        except SQLAlchemyError as exc:
            session.rollback()
            raise StoreError(
                f"Failed to upsert document {document_id}: {exc}", document_id=document_id
            ) from exc
        finally:
            session.close()
        return self._commit(document_id, serialized, content_hash, retry_on_conflict=False)

    def _write(
        self, session: Session, document_id: str, serialized: str, content_hash: str
    ) -> StoreAck:
        existing = session.get(Document, (self.collection, document_id))
        if existing is not None and existing.content_hash == content_hash:
            return StoreAck(id=document_id, created=False, changed=False)

        now = datetime.utcnow()
        body = json.loads(serialized)
        if existing is None:
            session.add(
                Document(
                    collection=self.collection,
                    id=document_id,
                    body=body,
                    content_hash=content_hash,
                    created_at=now,
                    updated_at=now,
                )
            )
        else:
            existing.body = body
            existing.content_hash = content_hash
            existing.updated_at = now
        session.commit()
        return StoreAck(id=document_id, created=existing is None, changed=True)

    def get(self, document_id: str) -> Optional[Dict[str, Any]]:
        session = self._session_factory()
        try:
            row = session.get(Document, (self.collection, document_id))
            return dict(row.body) if row is not None else None
        finally:
            session.close()

    def count(self) -> int:
        session = self._session_factory()
        try:
            stmt = select(func.count()).select_from(Document).where(
                Document.collection == self.collection
            )
            return session.execute(stmt).scalar_one()
        finally:
            session.close()


__all__ = ["DEFAULT_COLLECTION", "ItemStore", "SqlItemStore", "StoreAck"]
