"""Queue item canonicalizer.

Maps every wire shape the platform API has ever returned for a queue item
onto one ``CanonicalRecord``.  Shapes are told apart by their
discriminating fields, never by a version tag:

support
    current  -- has a non-empty ``userId`` (structured ticket with
                ``title`` / ``description`` / ``answers``)
    legacy   -- flat contact-form payload (``name`` / ``email`` /
                ``phone`` / ``message``) with an implicit status
    current, anonymous -- no ``userId`` and no contact-form field, but a
                ``title`` or ``description`` (a legacy ticket without an
                e-mail, re-rendered by ``to_raw``)
accountDeletion
    current  -- has a non-empty ``userId``
    legacy   -- has ``userEmail`` but no ``userId``

Anything else decodes to an empty-default record.

Contract: ``canonicalize`` never raises, never logs, and never reads the
clock, so two canonicalizations of the same payload compare equal.
"""
from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from reviewdesk.normalization.timestamps import format_timestamp, normalize_timestamp
from reviewdesk.review.kinds import (
    INITIAL_STATUS,
    STATUS_ENUMS,
    DeletionStatus,
    QueueKind,
    SupportStatus,
)
from reviewdesk.review.records import AuditNote, CanonicalRecord

_LEGACY_SUPPORT_FIELDS = ("name", "email", "phone", "message")

_SUPPORT_TAG_FIELDS = ("category", "userType", "purpose")
_DELETION_TAG_FIELDS = ("userName", "userEmail", "userPhone")

# Tags the contact form never sent; the console always filed these as
# general client support.
_LEGACY_SUPPORT_TAGS = {"category": "GENERAL", "userType": "CLIENT", "purpose": "SUPPORT"}

_STATUS_ALIASES: dict[QueueKind, dict[str, str]] = {
    QueueKind.SUPPORT: {
        "new": SupportStatus.PENDING,
        "open": SupportStatus.PENDING,
        "unread": SupportStatus.PENDING,
        "answered": SupportStatus.RESOLVED,
    },
    QueueKind.ACCOUNT_DELETION: {
        "new": DeletionStatus.PENDING,
        "open": DeletionStatus.PENDING,
    },
}

_SCOPED_AUTHOR_TYPES = frozenset({"subadmin", "sub_admin", "scoped"})


# ---------------------------------------------------------------------------
# Field helpers -- each one total
# ---------------------------------------------------------------------------

def _text(value: object) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return ""


def _optional_text(value: object) -> str | None:
    return _text(value) or None


def _normalize_status(kind: QueueKind, value: object) -> str:
    initial = INITIAL_STATUS[kind]
    if not isinstance(value, str):
        return initial
    key = value.strip().casefold().replace("-", "_").replace(" ", "_")
    for member in STATUS_ENUMS[kind]:
        if member.value.casefold() == key:
            return member
    return _STATUS_ALIASES[kind].get(key, initial)


def _author_role(value: object) -> str:
    if _text(value).casefold() in _SCOPED_AUTHOR_TYPES:
        return "scoped"
    return "admin"


def _tags(raw: Mapping[str, Any], names: tuple[str, ...]) -> dict[str, str]:
    return {name: _text(raw.get(name)) for name in names if _text(raw.get(name))}


def _answers(value: object) -> tuple[AuditNote, ...]:
    if not isinstance(value, (list, tuple)):
        return ()
    notes = []
    for item in value:
        if not isinstance(item, Mapping):
            continue
        notes.append(
            AuditNote(
                text=_text(item.get("answer")),
                author_id=_text(item.get("answeredBy")),
                author_role=_author_role(item.get("answeredByType")),
                at=normalize_timestamp(item.get("answeredAt")),
            )
        )
    return tuple(notes)


def _has_value(raw: Mapping[str, Any], name: str) -> bool:
    return raw.get(name) not in (None, "")


# ---------------------------------------------------------------------------
# Shape decoders
# ---------------------------------------------------------------------------

def _empty(kind: QueueKind, raw: Mapping[str, Any]) -> CanonicalRecord:
    return CanonicalRecord(
        id=_text(raw.get("id")),
        kind=kind,
        status=INITIAL_STATUS[kind],
        raw=dict(raw),
    )


def _support_current(raw: Mapping[str, Any]) -> CanonicalRecord:
    return CanonicalRecord(
        id=_text(raw.get("id")),
        kind=QueueKind.SUPPORT,
        subject_id=_text(raw.get("userId")),
        title=_text(raw.get("title")),
        body=_text(raw.get("description")),
        status=_normalize_status(QueueKind.SUPPORT, raw.get("status")),
        created_at=normalize_timestamp(raw.get("createdAt")),
        updated_at=normalize_timestamp(raw.get("updatedAt")),
        notes=_answers(raw.get("answers")),
        reviewed_by=_optional_text(raw.get("reviewedBy")),
        reviewed_at=normalize_timestamp(raw.get("reviewedAt")),
        tags=_tags(raw, _SUPPORT_TAG_FIELDS),
        raw=dict(raw),
    )


def _support_legacy(raw: Mapping[str, Any]) -> CanonicalRecord:
    name = _text(raw.get("name"))
    phone = _text(raw.get("phone"))
    return CanonicalRecord(
        id=_text(raw.get("id")),
        kind=QueueKind.SUPPORT,
        subject_id=_text(raw.get("email")),
        title=f"Contact from {name or 'Unknown'}",
        body=f"Phone: {phone or 'N/A'}\n\n{_text(raw.get('message'))}",
        status=_normalize_status(QueueKind.SUPPORT, raw.get("status")),
        created_at=normalize_timestamp(raw.get("createdAt")),
        updated_at=normalize_timestamp(raw.get("updatedAt")),
        tags=dict(_LEGACY_SUPPORT_TAGS),
        raw=dict(raw),
    )


def _deletion(raw: Mapping[str, Any], subject_field: str) -> CanonicalRecord:
    reviewed_by = _optional_text(raw.get("reviewedBy"))
    reviewed_at = normalize_timestamp(raw.get("reviewedAt"))
    admin_notes = _text(raw.get("adminNotes"))
    notes: tuple[AuditNote, ...] = ()
    if admin_notes:
        notes = (AuditNote(admin_notes, reviewed_by or "", "admin", reviewed_at),)

    requested_at = raw.get("requestedAt")
    if requested_at is None:
        requested_at = raw.get("createdAt")

    return CanonicalRecord(
        id=_text(raw.get("id")),
        kind=QueueKind.ACCOUNT_DELETION,
        subject_id=_text(raw.get(subject_field)),
        title=_text(raw.get("userName")) or "Unknown User",
        body=_text(raw.get("reason")),
        status=_normalize_status(QueueKind.ACCOUNT_DELETION, raw.get("status")),
        created_at=normalize_timestamp(requested_at),
        updated_at=normalize_timestamp(raw.get("updatedAt")),
        notes=notes,
        reviewed_by=reviewed_by,
        reviewed_at=reviewed_at,
        tags=_tags(raw, _DELETION_TAG_FIELDS),
        raw=dict(raw),
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def canonicalize(kind: QueueKind, raw: object) -> CanonicalRecord:
    """Return the ``CanonicalRecord`` for *raw* in queue *kind*.

    Parameters
    ----------
    kind:
        Queue the item was fetched from.
    raw:
        Decoded JSON object as returned by the store.  Non-mapping values
        are tolerated and yield an empty-default record.

    Returns
    -------
    CanonicalRecord
        Always well-formed; unparseable fields fall back to their empty
        defaults and unknown statuses to the queue's initial status.
    """
    if not isinstance(raw, Mapping):
        return CanonicalRecord(id="", kind=kind, status=INITIAL_STATUS[kind])

    if kind == QueueKind.SUPPORT:
        if _text(raw.get("userId")):
            return _support_current(raw)
        if any(_has_value(raw, name) for name in _LEGACY_SUPPORT_FIELDS):
            return _support_legacy(raw)
        if _text(raw.get("title")) or _text(raw.get("description")):
            return _support_current(raw)
        return _empty(kind, raw)

    if _text(raw.get("userId")):
        return _deletion(raw, "userId")
    if _text(raw.get("userEmail")):
        return _deletion(raw, "userEmail")
    return _empty(kind, raw)


def canonicalize_all(kind: QueueKind, items: object) -> tuple[CanonicalRecord, ...]:
    """Canonicalize a list payload; a non-list payload yields ``()``."""
    if not isinstance(items, (list, tuple)):
        return ()
    return tuple(canonicalize(kind, item) for item in items)


def to_raw(record: CanonicalRecord) -> dict[str, Any]:
    """Render *record* in the current wire shape of its queue."""
    if record.kind == QueueKind.SUPPORT:
        return {
            "id": record.id,
            "userId": record.subject_id,
            "title": record.title,
            "description": record.body,
            "status": str(record.status),
            "answers": [
                {
                    "answer": note.text,
                    "answeredBy": note.author_id,
                    "answeredByType": "SUBADMIN" if note.author_role == "scoped" else "ADMIN",
                    "answeredAt": format_timestamp(note.at),
                }
                for note in record.notes
            ],
            "createdAt": format_timestamp(record.created_at),
            "updatedAt": format_timestamp(record.updated_at),
            "reviewedBy": record.reviewed_by,
            "reviewedAt": format_timestamp(record.reviewed_at),
            **record.tags,
        }

    return {
        "id": record.id,
        "userId": record.subject_id,
        **record.tags,
        "reason": record.body,
        "status": str(record.status),
        "adminNotes": record.notes[-1].text if record.notes else None,
        "requestedAt": format_timestamp(record.created_at),
        "updatedAt": format_timestamp(record.updated_at),
        "reviewedAt": format_timestamp(record.reviewed_at),
        "reviewedBy": record.reviewed_by,
    }
