"""Tests for reviewdesk/review/roles.py."""
from __future__ import annotations

import pytest

from reviewdesk.normalization.canonicalizer import canonicalize
from reviewdesk.review.kinds import QueueKind
from reviewdesk.review.records import ReviewerIdentity
from reviewdesk.review.roles import accessible_kinds, can_access, filter_visible, parse_scopes
from tests.factories import ADMIN, DELETION_AGENT, NO_SCOPES, SUPPORT_AGENT, support_payload


# ===========================================================================
# can_access
# ===========================================================================

class TestCanAccess:
    @pytest.mark.parametrize("key", ["support", "Support", "accountDeletion", "DeleteRequests", "Anything"])
    def test_admin_override(self, key):
        assert can_access(ADMIN, key) is True

    def test_admin_ignores_scopes(self):
        admin = ReviewerIdentity(id="a", role="admin", scopes=frozenset({"Support"}))
        assert can_access(admin, QueueKind.ACCOUNT_DELETION) is True

    def test_scope_by_tab_key(self):
        assert can_access(SUPPORT_AGENT, QueueKind.SUPPORT) is True
        assert can_access(SUPPORT_AGENT, "support") is True

    def test_scope_by_kind_value(self):
        assert can_access(DELETION_AGENT, "DeleteRequests") is True

    def test_scoped_denied_outside_scopes(self):
        assert can_access(SUPPORT_AGENT, QueueKind.ACCOUNT_DELETION) is False
        assert can_access(NO_SCOPES, QueueKind.SUPPORT) is False

    def test_unknown_role_denied(self):
        ghost = ReviewerIdentity(id="g", role="superuser", scopes=frozenset({"Support"}))  # type: ignore[arg-type]
        assert can_access(ghost, QueueKind.SUPPORT) is False

    def test_unknown_key_matched_literally(self):
        reviewer = ReviewerIdentity(id="s", role="scoped", scopes=frozenset({"Reports"}))
        assert can_access(reviewer, "Reports") is True
        assert can_access(reviewer, "Lawyers") is False


class TestAccessibleKinds:
    def test_admin(self):
        assert accessible_kinds(ADMIN) == [QueueKind.SUPPORT, QueueKind.ACCOUNT_DELETION]

    def test_scoped(self):
        assert accessible_kinds(DELETION_AGENT) == [QueueKind.ACCOUNT_DELETION]

    def test_none(self):
        assert accessible_kinds(NO_SCOPES) == []


# ===========================================================================
# filter_visible
# ===========================================================================

class TestFilterVisible:
    def setup_method(self):
        self.records = [
            canonicalize(QueueKind.SUPPORT, support_payload(id="t-1")),
            canonicalize(QueueKind.SUPPORT, support_payload(id="t-2")),
        ]

    def test_allowed_sees_everything(self):
        assert filter_visible(SUPPORT_AGENT, QueueKind.SUPPORT, self.records) == tuple(self.records)

    def test_denied_sees_nothing(self):
        assert filter_visible(DELETION_AGENT, QueueKind.SUPPORT, self.records) == ()

    def test_result_independent_of_contents(self):
        assert filter_visible(NO_SCOPES, QueueKind.SUPPORT, []) == ()
        assert filter_visible(NO_SCOPES, QueueKind.SUPPORT, self.records) == ()


class TestParseScopes:
    def test_comma_string(self):
        assert parse_scopes(" Support, DeleteRequests ,,") == frozenset({"Support", "DeleteRequests"})

    def test_iterable(self):
        assert parse_scopes(["support", ""]) == frozenset({"support"})

    def test_none(self):
        assert parse_scopes(None) == frozenset()
