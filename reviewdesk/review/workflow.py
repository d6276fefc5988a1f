"""Review state machine.

Each queue has its own transition table.

support (non-monotonic -- reviewers may reopen work)::

    PENDING ⇄ IN_PROGRESS ⇄ RESOLVED        (any pair, either direction)
    PENDING | IN_PROGRESS | RESOLVED → CLOSED (terminal)

accountDeletion (monotonic)::

    pending → approved (terminal, emits DeleteSubject)
            ↘ rejected (terminal)

``apply`` is pure: it never performs I/O and takes the clock as an
argument.  Side effects such as deleting the subject account are returned
as tokens for the caller to execute.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

from reviewdesk.core.errors import AuthorizationError, ConflictError, ValidationError
from reviewdesk.review.kinds import DeletionStatus, QueueKind, SupportStatus
from reviewdesk.review.records import AuditNote, CanonicalRecord, ReviewerIdentity
from reviewdesk.review.roles import can_access


@dataclass(frozen=True, slots=True)
class TransitionTable:
    """Allowed transitions for one queue: current status → valid targets."""

    initial: str
    transitions: dict[str, frozenset[str]]
    monotonic: bool

    @property
    def statuses(self) -> frozenset[str]:
        targets = set(self.transitions)
        for allowed in self.transitions.values():
            targets |= allowed
        return frozenset(targets)

    def is_terminal(self, status: str) -> bool:
        return not self.transitions.get(status)

    def can_transition(self, current: str, target: str) -> bool:
        return target in self.transitions.get(current, frozenset())


_SUPPORT_OPEN = (SupportStatus.PENDING, SupportStatus.IN_PROGRESS, SupportStatus.RESOLVED)

SUPPORT_TABLE = TransitionTable(
    initial=SupportStatus.PENDING,
    transitions={
        **{
            status: frozenset(
                {other for other in _SUPPORT_OPEN if other != status} | {SupportStatus.CLOSED}
            )
            for status in _SUPPORT_OPEN
        },
        SupportStatus.CLOSED: frozenset(),
    },
    monotonic=False,
)

DELETION_TABLE = TransitionTable(
    initial=DeletionStatus.PENDING,
    transitions={
        DeletionStatus.PENDING: frozenset({DeletionStatus.APPROVED, DeletionStatus.REJECTED}),
        DeletionStatus.APPROVED: frozenset(),
        DeletionStatus.REJECTED: frozenset(),
    },
    monotonic=True,
)

TRANSITION_TABLES: dict[QueueKind, TransitionTable] = {
    QueueKind.SUPPORT: SUPPORT_TABLE,
    QueueKind.ACCOUNT_DELETION: DELETION_TABLE,
}


# ---------------------------------------------------------------------------
# Actions and side effects
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class ChangeStatus:
    """Move a support ticket to *status*."""

    status: str


@dataclass(frozen=True, slots=True)
class AppendAnswer:
    """Append a reviewer answer to a support ticket; status is unchanged."""

    text: str


@dataclass(frozen=True, slots=True)
class Review:
    """Approve or reject a pending account-deletion request."""

    outcome: str
    notes: str | None = None


ReviewAction = ChangeStatus | AppendAnswer | Review

_ACTION_KINDS: dict[type, QueueKind] = {
    ChangeStatus: QueueKind.SUPPORT,
    AppendAnswer: QueueKind.SUPPORT,
    Review: QueueKind.ACCOUNT_DELETION,
}


@dataclass(frozen=True, slots=True)
class DeleteSubject:
    """Instructs the store to hard-delete the account *subject_id*."""

    subject_id: str


SideEffect = DeleteSubject


@dataclass(frozen=True, slots=True)
class TransitionResult:
    record: CanonicalRecord
    side_effects: tuple[SideEffect, ...] = field(default_factory=tuple)


# ---------------------------------------------------------------------------
# Transition function
# ---------------------------------------------------------------------------

def _mark_reviewed(
    record: CanonicalRecord,
    table: TransitionTable,
    reviewer: ReviewerIdentity,
    now: datetime,
) -> dict[str, object]:
    """First-write-wins reviewer stamp for a record leaving its initial status."""
    if record.status != table.initial or record.reviewed_by is not None:
        return {}
    return {"reviewed_by": reviewer.id, "reviewed_at": now}


def _change_status(
    record: CanonicalRecord,
    action: ChangeStatus,
    reviewer: ReviewerIdentity,
    now: datetime,
) -> TransitionResult:
    table = TRANSITION_TABLES[record.kind]
    target = action.status
    if target not in table.statuses:
        raise ValidationError(
            f"Unknown status {target!r}; must be one of {sorted(table.statuses)}"
        )
    if table.is_terminal(record.status):
        raise ConflictError(
            f"Record {record.id} is in terminal status {record.status!r}"
        )
    if target == record.status:
        raise ValidationError(f"Record {record.id} is already {target!r}")
    if not table.can_transition(record.status, target):
        raise ValidationError(f"Invalid transition {record.status!r} → {target!r}")

    stamp = _mark_reviewed(record, table, reviewer, now)
    return TransitionResult(record.with_changes(status=target, updated_at=now, **stamp))


def _append_answer(
    record: CanonicalRecord,
    action: AppendAnswer,
    reviewer: ReviewerIdentity,
    now: datetime,
) -> TransitionResult:
    text = action.text.strip() if isinstance(action.text, str) else ""
    if not text:
        raise ValidationError("answer text must be non-empty")
    if TRANSITION_TABLES[record.kind].is_terminal(record.status):
        raise ConflictError(f"Record {record.id} is closed; answers are not accepted")

    note = AuditNote(text=text, author_id=reviewer.id, author_role=reviewer.role, at=now)
    return TransitionResult(record.with_changes(notes=(*record.notes, note), updated_at=now))


def _review(
    record: CanonicalRecord,
    action: Review,
    reviewer: ReviewerIdentity,
    now: datetime,
) -> TransitionResult:
    table = TRANSITION_TABLES[record.kind]
    allowed = table.transitions[table.initial]
    if action.outcome not in allowed:
        raise ValidationError(
            f"Invalid review outcome {action.outcome!r}; must be one of {sorted(allowed)}"
        )
    if record.status != table.initial:
        raise ConflictError(
            f"Record {record.id} was already reviewed ({record.status!r})"
        )

    changes: dict[str, object] = {"status": DeletionStatus(action.outcome), "updated_at": now}
    changes.update(_mark_reviewed(record, table, reviewer, now))
    notes = (action.notes or "").strip()
    if notes:
        changes["notes"] = (
            *record.notes,
            AuditNote(text=notes, author_id=reviewer.id, author_role=reviewer.role, at=now),
        )

    side_effects: tuple[SideEffect, ...] = ()
    if action.outcome == DeletionStatus.APPROVED:
        side_effects = (DeleteSubject(record.subject_id),)
    return TransitionResult(record.with_changes(**changes), side_effects)


def apply(
    record: CanonicalRecord,
    action: ReviewAction,
    reviewer: ReviewerIdentity,
    now: datetime | None = None,
) -> TransitionResult:
    """Validate *action* against *record* and return the next record.

    Raises
    ------
    AuthorizationError
        *reviewer* may not act on the record's queue.  Checked first.
    ValidationError
        Bad input, or an action that does not belong to the record's queue.
    ConflictError
        The record is terminal (or, for reviews, no longer pending).
    """
    if not can_access(reviewer, record.kind):
        raise AuthorizationError(
            f"Reviewer {reviewer.id!r} cannot act on queue {record.kind.value!r}"
        )

    expected = _ACTION_KINDS.get(type(action))
    if expected is None:
        raise ValidationError(f"Unsupported action {type(action).__name__}")
    if expected != record.kind:
        raise ValidationError(
            f"{type(action).__name__} is not valid for queue {record.kind.value!r}"
        )

    current = now or datetime.now(timezone.utc)
    if isinstance(action, ChangeStatus):
        return _change_status(record, action, reviewer, current)
    if isinstance(action, AppendAnswer):
        return _append_answer(record, action, reviewer, current)
    return _review(record, action, reviewer, current)
