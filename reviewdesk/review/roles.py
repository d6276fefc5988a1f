"""Reviewer access policy.

Roles:
- admin: full access to every queue (override)
- scoped: access only to the queues / console tabs listed in its scopes

A scope entry may name the queue kind (``support``) or its console tab key
(``Support``); both grant the same queue.  The policy looks only at the
reviewer and the key, never at record contents.
"""
from __future__ import annotations

from collections.abc import Iterable

from reviewdesk.review.kinds import TAB_KEYS, QueueKind, resolve_kind
from reviewdesk.review.records import (
    VALID_REVIEWER_ROLES,
    CanonicalRecord,
    ReviewerIdentity,
)


def can_access(reviewer: ReviewerIdentity, key: str) -> bool:
    """Return whether *reviewer* may view and act on the queue named by *key*.

    *key* is a ``QueueKind`` value or a console tab key.  Unknown roles are
    denied rather than raising, so a malformed session never widens access.
    """
    if reviewer.role not in VALID_REVIEWER_ROLES:
        return False
    if reviewer.is_admin:
        return True

    kind = resolve_kind(key)
    if kind is None:
        return key in reviewer.scopes
    return kind.value in reviewer.scopes or TAB_KEYS[kind] in reviewer.scopes


def accessible_kinds(reviewer: ReviewerIdentity) -> list[QueueKind]:
    """Return the queues *reviewer* can open, in declaration order."""
    return [kind for kind in QueueKind if can_access(reviewer, kind)]


def filter_visible(
    reviewer: ReviewerIdentity,
    kind: QueueKind,
    records: Iterable[CanonicalRecord],
) -> tuple[CanonicalRecord, ...]:
    """Return *records* if *reviewer* may see queue *kind*, else ``()``.

    The check is queue-wide: a denied reviewer gets an empty result, never
    a partially redacted one.
    """
    if not can_access(reviewer, kind):
        return ()
    return tuple(records)


def parse_scopes(value: str | Iterable[str] | None) -> frozenset[str]:
    """Build a scope set from a comma-separated string or an iterable."""
    if value is None:
        return frozenset()
    if isinstance(value, str):
        value = value.split(",")
    return frozenset(item.strip() for item in value if item and item.strip())
