"""Queue view model: (snapshot, filters) → ordered visible subset.

Pure derivation with no state of its own; recompute whenever the snapshot
or the filters change.
"""
from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone

from reviewdesk.review.kinds import QueueKind
from reviewdesk.review.records import CanonicalRecord

SORT_NEWEST = "newest"
SORT_OLDEST = "oldest"

_MIN_INSTANT = datetime.min.replace(tzinfo=timezone.utc)


def _search_fields_support(record: CanonicalRecord) -> list[str]:
    return [record.title, record.body, record.subject_id]


def _search_fields_deletion(record: CanonicalRecord) -> list[str]:
    return [
        record.title,
        record.body,
        record.subject_id,
        record.tag("userEmail"),
        record.tag("userPhone"),
    ]


SEARCHABLE_FIELDS: dict[QueueKind, Callable[[CanonicalRecord], list[str]]] = {
    QueueKind.SUPPORT: _search_fields_support,
    QueueKind.ACCOUNT_DELETION: _search_fields_deletion,
}

# Kind-specific sort keys on top of newest / oldest.
EXTRA_SORT_KEYS: dict[QueueKind, dict[str, Callable[[CanonicalRecord], str]]] = {
    QueueKind.SUPPORT: {"title": lambda r: r.title.casefold()},
    QueueKind.ACCOUNT_DELETION: {"name": lambda r: r.title.casefold()},
}


def sort_keys_for(kind: QueueKind) -> list[str]:
    return [SORT_NEWEST, SORT_OLDEST, *EXTRA_SORT_KEYS[kind]]


@dataclass(frozen=True, slots=True)
class QueueFilters:
    """Local filter parameters supplied by the presentation layer.

    ``tags`` filters on descriptive tags by equality, e.g.
    ``{"category": "BILLING", "userType": "LAWYER"}``.
    """

    search: str = ""
    status: str | None = None
    sort: str = SORT_NEWEST
    tags: Mapping[str, str] = field(default_factory=dict)


def searchable_text(record: CanonicalRecord) -> str:
    """Return the lowercased haystack searched for *record*."""
    parts = SEARCHABLE_FIELDS[record.kind](record)
    return " ".join(part for part in parts if part).casefold()


def matches(record: CanonicalRecord, filters: QueueFilters) -> bool:
    if filters.status and record.status != filters.status:
        return False
    for name, expected in filters.tags.items():
        if expected and record.tag(name) != expected:
            return False
    needle = filters.search.strip().casefold()
    if needle and needle not in searchable_text(record):
        return False
    return True


def _sorted(
    kind: QueueKind,
    records: list[CanonicalRecord],
    sort: str,
) -> list[CanonicalRecord]:
    # Undated records go last in both directions.
    if sort == SORT_NEWEST:
        return sorted(
            records,
            key=lambda r: (r.created_at is not None, r.created_at or _MIN_INSTANT),
            reverse=True,
        )
    if sort == SORT_OLDEST:
        return sorted(
            records,
            key=lambda r: (r.created_at is None, r.created_at or _MIN_INSTANT),
        )
    extra = EXTRA_SORT_KEYS[kind]
    if sort in extra:
        return sorted(records, key=extra[sort])
    raise ValueError(
        f"Unknown sort key {sort!r}; must be one of {sort_keys_for(kind)}"
    )


def derive_view(
    records: Iterable[CanonicalRecord],
    filters: QueueFilters | None = None,
    *,
    kind: QueueKind | None = None,
) -> tuple[CanonicalRecord, ...]:
    """Return the filtered, stably sorted subset of *records*.

    *kind* selects the kind-specific sort keys; it defaults to the kind of
    the first record and only matters for non-chronological sorts.
    """
    filters = filters or QueueFilters()
    selected = [record for record in records if matches(record, filters)]
    if kind is None:
        kind = selected[0].kind if selected else QueueKind.SUPPORT
    return tuple(_sorted(kind, selected, filters.sort))
