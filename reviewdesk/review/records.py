"""Canonical queue records, audit notes, and reviewer identities."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Literal

from reviewdesk.review.kinds import QueueKind

ReviewerRole = Literal["admin", "scoped"]

VALID_REVIEWER_ROLES: frozenset[str] = frozenset({"admin", "scoped"})


@dataclass(frozen=True, slots=True)
class AuditNote:
    """One immutable entry of a record's audit trail."""

    text: str
    author_id: str
    author_role: str
    at: datetime | None = None


@dataclass(frozen=True, slots=True)
class ReviewerIdentity:
    id: str
    role: ReviewerRole
    scopes: frozenset[str] = frozenset()

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


@dataclass(frozen=True, slots=True)
class CanonicalRecord:
    """Normalized queue item.

    ``notes`` keeps append order, not timestamp order.  ``raw`` holds the
    payload the record was built from and takes no part in equality, so
    records decoded from different wire shapes compare on content only.
    """

    id: str
    kind: QueueKind
    subject_id: str = ""
    title: str = ""
    body: str = ""
    status: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None
    notes: tuple[AuditNote, ...] = ()
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None
    tags: dict[str, str] = field(default_factory=dict)
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    def with_changes(self, **changes: Any) -> CanonicalRecord:
        """Return a copy with *changes* applied; the original is untouched."""
        return replace(self, **changes)

    def tag(self, name: str) -> str:
        return self.tags.get(name, "")
