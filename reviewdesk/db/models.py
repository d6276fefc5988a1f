from __future__ import annotations

from datetime import datetime
from uuid import uuid4

from sqlalchemy import JSON, DateTime, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from reviewdesk.db.base import Base


def _new_id() -> str:
    return uuid4().hex


class Account(Base):
    """Platform user account (client or lawyer) that a queue item concerns.

    Rows are hard-deleted when an account-deletion request is approved.
    """

    __tablename__ = "accounts"

    id: Mapped[str] = mapped_column(String(128), primary_key=True, default=_new_id)
    name: Mapped[str | None] = mapped_column(String(256), nullable=True)
    email: Mapped[str | None] = mapped_column(String(256), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_type: Mapped[str] = mapped_column(String(32), nullable=False, default="CLIENT")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class QueueItem(Base):
    """One support ticket or deletion request, stored as its wire payload.

    ``payload`` keeps whatever shape the item was created with (legacy
    contact-form tickets included); ``subject_id`` is denormalized from the
    canonical record so subject deletion can find the rows.
    """

    __tablename__ = "queue_items"
    __table_args__ = (Index("ix_queue_items_kind_subject", "queue_kind", "subject_id"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    queue_kind: Mapped[str] = mapped_column(String(32), nullable=False)
    subject_id: Mapped[str | None] = mapped_column(String(256), nullable=True)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )
