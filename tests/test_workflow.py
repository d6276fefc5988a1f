"""Tests for reviewdesk/review/workflow.py."""
from __future__ import annotations

import pytest

from reviewdesk.core.errors import AuthorizationError, ConflictError, ValidationError
from reviewdesk.normalization.canonicalizer import canonicalize
from reviewdesk.review.kinds import DeletionStatus, QueueKind, SupportStatus
from reviewdesk.review.workflow import (
    DELETION_TABLE,
    SUPPORT_TABLE,
    AppendAnswer,
    ChangeStatus,
    DeleteSubject,
    Review,
    apply,
)
from tests.factories import (
    ADMIN,
    DELETION_AGENT,
    FIXED_NOW,
    SUPPORT_AGENT,
    deletion_payload,
    support_payload,
)


def _ticket(status="PENDING", **overrides):
    return canonicalize(QueueKind.SUPPORT, support_payload(status=status, **overrides))


def _request(status="pending", **overrides):
    return canonicalize(QueueKind.ACCOUNT_DELETION, deletion_payload(status=status, **overrides))


# ===========================================================================
# Transition tables
# ===========================================================================

class TestTransitionTables:
    # -- valid transitions --
    @pytest.mark.parametrize(
        "current,target",
        [
            ("PENDING", "IN_PROGRESS"),
            ("IN_PROGRESS", "RESOLVED"),
            ("RESOLVED", "IN_PROGRESS"),
            ("RESOLVED", "PENDING"),
            ("PENDING", "CLOSED"),
            ("RESOLVED", "CLOSED"),
        ],
    )
    def test_support_allowed(self, current, target):
        assert SUPPORT_TABLE.can_transition(current, target) is True

    # -- invalid transitions --
    @pytest.mark.parametrize("target", ["PENDING", "IN_PROGRESS", "RESOLVED"])
    def test_closed_is_terminal(self, target):
        assert SUPPORT_TABLE.can_transition("CLOSED", target) is False
        assert SUPPORT_TABLE.is_terminal("CLOSED") is True

    def test_deletion_is_monotonic(self):
        assert DELETION_TABLE.monotonic is True
        assert DELETION_TABLE.can_transition("approved", "pending") is False
        assert DELETION_TABLE.can_transition("rejected", "approved") is False
        assert DELETION_TABLE.is_terminal("approved") is True

    def test_support_is_not_monotonic(self):
        assert SUPPORT_TABLE.monotonic is False


# ===========================================================================
# ChangeStatus
# ===========================================================================

class TestChangeStatus:
    def test_start_work_stamps_reviewer(self):
        result = apply(_ticket(), ChangeStatus("IN_PROGRESS"), SUPPORT_AGENT, FIXED_NOW)
        assert result.record.status == SupportStatus.IN_PROGRESS
        assert result.record.reviewed_by == "sub-1"
        assert result.record.reviewed_at == FIXED_NOW
        assert result.record.updated_at == FIXED_NOW
        assert result.side_effects == ()

    def test_reopen_resolved_ticket(self):
        # Resolved tickets can go back to in-progress when the client follows up.
        result = apply(_ticket("RESOLVED"), ChangeStatus("IN_PROGRESS"), ADMIN, FIXED_NOW)
        assert result.record.status == SupportStatus.IN_PROGRESS

    def test_first_reviewer_stamp_wins(self):
        first = apply(_ticket(), ChangeStatus("IN_PROGRESS"), SUPPORT_AGENT, FIXED_NOW).record
        second = apply(first, ChangeStatus("RESOLVED"), ADMIN, FIXED_NOW).record
        back = apply(second, ChangeStatus("PENDING"), ADMIN, FIXED_NOW).record
        again = apply(back, ChangeStatus("IN_PROGRESS"), ADMIN, FIXED_NOW).record
        assert again.reviewed_by == "sub-1"

    def test_closed_rejects_everything(self):
        with pytest.raises(ConflictError):
            apply(_ticket("CLOSED"), ChangeStatus("PENDING"), ADMIN, FIXED_NOW)

    def test_unknown_status(self):
        with pytest.raises(ValidationError):
            apply(_ticket(), ChangeStatus("ARCHIVED"), ADMIN, FIXED_NOW)

    def test_same_status(self):
        with pytest.raises(ValidationError):
            apply(_ticket("IN_PROGRESS"), ChangeStatus("IN_PROGRESS"), ADMIN, FIXED_NOW)

    def test_input_record_untouched(self):
        record = _ticket()
        apply(record, ChangeStatus("CLOSED"), ADMIN, FIXED_NOW)
        assert record.status == SupportStatus.PENDING

    def test_wrong_queue(self):
        with pytest.raises(ValidationError):
            apply(_request(), ChangeStatus("approved"), ADMIN, FIXED_NOW)


# ===========================================================================
# AppendAnswer
# ===========================================================================

class TestAppendAnswer:
    def test_appends_note_and_keeps_status(self):
        result = apply(_ticket("IN_PROGRESS"), AppendAnswer("  We are on it  "), SUPPORT_AGENT, FIXED_NOW)
        assert result.record.status == SupportStatus.IN_PROGRESS
        assert len(result.record.notes) == 1
        note = result.record.notes[0]
        assert note.text == "We are on it"
        assert note.author_id == "sub-1"
        assert note.author_role == "scoped"
        assert note.at == FIXED_NOW

    def test_notes_only_grow(self):
        first = apply(_ticket(), AppendAnswer("one"), ADMIN, FIXED_NOW).record
        second = apply(first, AppendAnswer("two"), ADMIN, FIXED_NOW).record
        assert [n.text for n in second.notes] == ["one", "two"]
        assert second.notes[: len(first.notes)] == first.notes

    @pytest.mark.parametrize("text", ["", "   \n"])
    def test_empty_text(self, text):
        with pytest.raises(ValidationError):
            apply(_ticket(), AppendAnswer(text), ADMIN, FIXED_NOW)

    def test_closed_ticket(self):
        with pytest.raises(ConflictError):
            apply(_ticket("CLOSED"), AppendAnswer("late"), ADMIN, FIXED_NOW)


# ===========================================================================
# Review
# ===========================================================================

class TestReview:
    def test_approve_emits_delete_subject(self):
        result = apply(_request(), Review("approved", "verified identity"), DELETION_AGENT, FIXED_NOW)
        assert result.record.status == DeletionStatus.APPROVED
        assert result.record.reviewed_by == "sub-2"
        assert result.record.reviewed_at == FIXED_NOW
        assert result.record.notes[-1].text == "verified identity"
        assert result.side_effects == (DeleteSubject("u-2"),)

    def test_approval_then_second_review_conflicts(self):
        record = _request()
        approved = apply(record, Review("approved"), ADMIN, FIXED_NOW)
        assert approved.record.status == DeletionStatus.APPROVED
        assert approved.record.reviewed_by == "admin-1"
        assert approved.record.reviewed_at is not None
        assert approved.side_effects == (DeleteSubject(record.subject_id),)

        with pytest.raises(ConflictError):
            apply(approved.record, Review("rejected"), ADMIN, FIXED_NOW)
        assert approved.record.status == DeletionStatus.APPROVED

    def test_reject_has_no_side_effect(self):
        result = apply(_request(), Review("rejected"), ADMIN, FIXED_NOW)
        assert result.record.status == DeletionStatus.REJECTED
        assert result.record.notes == ()
        assert result.side_effects == ()

    @pytest.mark.parametrize("status", ["approved", "rejected"])
    def test_already_reviewed(self, status):
        with pytest.raises(ConflictError):
            apply(_request(status), Review("approved"), ADMIN, FIXED_NOW)

    @pytest.mark.parametrize("outcome", ["pending", "maybe", ""])
    def test_invalid_outcome(self, outcome):
        with pytest.raises(ValidationError):
            apply(_request(), Review(outcome), ADMIN, FIXED_NOW)


# ===========================================================================
# Authorization
# ===========================================================================

class TestAuthorization:
    def test_scoped_reviewer_cannot_act_outside_scope(self):
        with pytest.raises(AuthorizationError):
            apply(_request(), Review("approved"), SUPPORT_AGENT, FIXED_NOW)

    def test_authorization_checked_before_validation(self):
        with pytest.raises(AuthorizationError):
            apply(_ticket(), AppendAnswer(""), DELETION_AGENT, FIXED_NOW)
