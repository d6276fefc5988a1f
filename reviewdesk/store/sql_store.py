"""SQLAlchemy-backed local store.

Stands in for the platform backend during local development, the demo
seed script, and tests.  It keeps each item's wire payload verbatim and
enforces the same guards the backend does:

- closed support tickets accept neither status changes nor answers
- a deletion request can be reviewed once, from ``pending`` only

Every operation runs in its own transaction.  The methods are ``async``
only to satisfy ``QueueStore``: the SQLAlchemy calls are synchronous and
run on the event loop, which suits SQLite in development and tests but not
a shared database server.  Production deployments use ``HttpQueueStore``.
"""
from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from sqlalchemy import delete, select
from sqlalchemy.orm import Session, sessionmaker

from reviewdesk.core.errors import ConflictError, TerminalNetworkError, ValidationError
from reviewdesk.db.models import Account, QueueItem
from reviewdesk.normalization.canonicalizer import canonicalize
from reviewdesk.review.kinds import DeletionStatus, QueueKind, SupportStatus
from reviewdesk.store.base import CancellationToken, RawItem

logger = logging.getLogger(__name__)

_REVIEW_OUTCOMES = frozenset({DeletionStatus.APPROVED, DeletionStatus.REJECTED})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_raw(item: QueueItem) -> RawItem:
    return {**item.payload, "id": item.id}


class SqlQueueStore:
    """``QueueStore`` over the ``accounts`` / ``queue_items`` tables."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock

    # -- seeding ------------------------------------------------------------

    def add_account(self, account_id: str, **fields: Any) -> str:
        with self._session_factory.begin() as session:
            session.add(Account(id=account_id, **fields))
        return account_id

    def add_item(self, kind: QueueKind, payload: Mapping[str, Any], item_id: str | None = None) -> str:
        """Insert *payload* as-is and return its id."""
        item_id = item_id or str(payload.get("id") or uuid4().hex)
        body = {key: value for key, value in payload.items() if key != "id"}
        with self._session_factory.begin() as session:
            session.add(
                QueueItem(
                    id=item_id,
                    queue_kind=kind.value,
                    subject_id=canonicalize(kind, payload).subject_id or None,
                    payload=body,
                )
            )
        return item_id

    def _load(self, session: Session, kind: QueueKind, item_id: str) -> QueueItem:
        item = session.get(QueueItem, item_id)
        if item is None or item.queue_kind != kind.value:
            raise TerminalNetworkError(f"{kind.value} item {item_id} not found", status_code=404)
        return item

    # -- QueueStore ---------------------------------------------------------

    async def list(
        self,
        kind: QueueKind,
        filters: Mapping[str, str] | None = None,
        token: CancellationToken | None = None,
    ) -> list[RawItem]:
        if token is not None and token.cancelled:
            return []
        status = (filters or {}).get("status")
        with self._session_factory() as session:
            stmt = (
                select(QueueItem)
                .where(QueueItem.queue_kind == kind.value)
                .order_by(QueueItem.created_at.asc(), QueueItem.id.asc())
            )
            items = [_as_raw(item) for item in session.execute(stmt).scalars().all()]
        if status:
            items = [item for item in items if canonicalize(kind, item).status == status]
        return items

    async def get(self, kind: QueueKind, item_id: str) -> RawItem:
        with self._session_factory() as session:
            return _as_raw(self._load(session, kind, item_id))

    async def transition(self, kind: QueueKind, item_id: str, action: Mapping[str, Any]) -> RawItem:
        now = self._clock().isoformat()
        target = action.get("status")
        if not isinstance(target, str):
            target = None
        with self._session_factory.begin() as session:
            item = self._load(session, kind, item_id)
            current = canonicalize(kind, _as_raw(item)).status
            payload = dict(item.payload)

            if kind == QueueKind.SUPPORT:
                if target not in set(SupportStatus):
                    raise ValidationError(f"Unknown status {target!r}", status_code=400)
                if current == SupportStatus.CLOSED:
                    raise ConflictError(f"Ticket {item_id} is closed", status_code=409)
                payload["status"] = target
            else:
                if target not in _REVIEW_OUTCOMES:
                    raise ValidationError(f"Invalid review outcome {target!r}", status_code=400)
                if current != DeletionStatus.PENDING:
                    raise ConflictError(f"Request {item_id} was already reviewed", status_code=409)
                payload.update(
                    status=target,
                    adminNotes=action.get("adminNotes") or None,
                    reviewedBy=action.get("reviewedBy"),
                    reviewedAt=now,
                )

            payload["updatedAt"] = now
            item.payload = payload
            session.flush()
            result = _as_raw(item)

        logger.info("Stored transition: kind=%s id=%s status=%s", kind, item_id, target)
        return result

    async def append_note(self, kind: QueueKind, item_id: str, note: Mapping[str, Any]) -> RawItem:
        if kind != QueueKind.SUPPORT:
            raise ValidationError(f"Queue {kind.value!r} does not accept answers", status_code=400)
        text = str(note.get("answer") or "").strip()
        if not text:
            raise ValidationError("answer must be non-empty", status_code=400)

        now = self._clock().isoformat()
        with self._session_factory.begin() as session:
            item = self._load(session, kind, item_id)
            if canonicalize(kind, _as_raw(item)).status == SupportStatus.CLOSED:
                raise ConflictError(f"Ticket {item_id} is closed", status_code=409)
            payload = dict(item.payload)
            answers = list(payload.get("answers") or [])
            answers.append(
                {
                    "id": uuid4().hex,
                    "answer": text,
                    "answeredBy": note.get("answeredBy"),
                    "answeredByType": note.get("answeredByType", "ADMIN"),
                    "answeredAt": now,
                }
            )
            payload["answers"] = answers
            payload["updatedAt"] = now
            item.payload = payload
            session.flush()
            result = _as_raw(item)
        return result

    async def remove(self, subject_id: str) -> None:
        """Delete the account and every queue item filed about it."""
        with self._session_factory.begin() as session:
            account = session.get(Account, subject_id)
            if account is None:
                raise TerminalNetworkError(f"Account {subject_id} not found", status_code=404)
            session.delete(account)
            result = session.execute(delete(QueueItem).where(QueueItem.subject_id == subject_id))
        logger.info("Account removed with %d queue items", result.rowcount)
