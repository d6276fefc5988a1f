"""Queue kinds, console tab keys, and per-queue status vocabularies.

Two queues share the engine:

- support: the support-ticket inbox
- accountDeletion: the account-deletion request inbox

Scoped reviewers are granted console tabs by key (``Support``,
``DeleteRequests``); either the queue kind or its tab key may appear in a
reviewer's scope set.
"""
from __future__ import annotations

from enum import StrEnum


class QueueKind(StrEnum):
    SUPPORT = "support"
    ACCOUNT_DELETION = "accountDeletion"


class SupportStatus(StrEnum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"


class DeletionStatus(StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


TAB_KEYS: dict[QueueKind, str] = {
    QueueKind.SUPPORT: "Support",
    QueueKind.ACCOUNT_DELETION: "DeleteRequests",
}

STATUS_ENUMS: dict[QueueKind, type[StrEnum]] = {
    QueueKind.SUPPORT: SupportStatus,
    QueueKind.ACCOUNT_DELETION: DeletionStatus,
}

INITIAL_STATUS: dict[QueueKind, str] = {
    QueueKind.SUPPORT: SupportStatus.PENDING,
    QueueKind.ACCOUNT_DELETION: DeletionStatus.PENDING,
}


def resolve_kind(key: str) -> QueueKind | None:
    """Return the ``QueueKind`` named by *key* (kind value or tab key), else ``None``."""
    for kind in QueueKind:
        if key == kind.value or key == TAB_KEYS[kind]:
            return kind
    return None


def parse_kind(key: str) -> QueueKind:
    """Like :func:`resolve_kind` but raises ``ValueError`` for unknown keys."""
    kind = resolve_kind(key)
    if kind is None:
        raise ValueError(
            f"Unknown queue {key!r}; must be one of "
            f"{sorted(k.value for k in QueueKind)}"
        )
    return kind
