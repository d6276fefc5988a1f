"""Tests for reviewdesk/review/view_model.py."""
from __future__ import annotations

import pytest

from reviewdesk.normalization.canonicalizer import canonicalize
from reviewdesk.review.kinds import QueueKind
from reviewdesk.review.view_model import QueueFilters, derive_view, searchable_text, sort_keys_for
from tests.factories import deletion_payload, support_payload


def _tickets():
    return [
        canonicalize(QueueKind.SUPPORT, support_payload(id="a", title="Billing issue", createdAt="2024-01-02T00:00:00Z",
                                                        category="PAYMENT")),
        canonicalize(QueueKind.SUPPORT, support_payload(id="b", title="app crash", createdAt="2024-01-03T00:00:00Z",
                                                        status="IN_PROGRESS")),
        canonicalize(QueueKind.SUPPORT, support_payload(id="c", title="Login", createdAt=None)),
        canonicalize(QueueKind.SUPPORT, support_payload(id="d", title="Another", createdAt="2024-01-01T00:00:00Z")),
    ]


def _ids(records):
    return [r.id for r in records]


class TestSorting:
    def test_newest_first_undated_last(self):
        assert _ids(derive_view(_tickets())) == ["b", "a", "d", "c"]

    def test_oldest_first_undated_last(self):
        assert _ids(derive_view(_tickets(), QueueFilters(sort="oldest"))) == ["d", "a", "b", "c"]

    def test_title_sort_case_insensitive(self):
        view = derive_view(_tickets(), QueueFilters(sort="title"), kind=QueueKind.SUPPORT)
        assert _ids(view) == ["d", "b", "a", "c"]

    def test_stable_for_equal_keys(self):
        records = [
            canonicalize(QueueKind.SUPPORT, support_payload(id=str(i), createdAt="2024-01-01T00:00:00Z"))
            for i in range(5)
        ]
        assert _ids(derive_view(records, QueueFilters(sort="oldest"))) == ["0", "1", "2", "3", "4"]

    def test_unknown_sort_key(self):
        with pytest.raises(ValueError):
            derive_view(_tickets(), QueueFilters(sort="priority"), kind=QueueKind.SUPPORT)

    def test_kind_specific_keys(self):
        assert sort_keys_for(QueueKind.ACCOUNT_DELETION) == ["newest", "oldest", "name"]


class TestFiltering:
    def test_status(self):
        assert _ids(derive_view(_tickets(), QueueFilters(status="IN_PROGRESS"))) == ["b"]

    def test_search_is_case_insensitive_substring(self):
        assert _ids(derive_view(_tickets(), QueueFilters(search="  BILL "))) == ["a"]

    def test_search_covers_body(self):
        assert len(derive_view(_tickets(), QueueFilters(search="never loads"))) == 4

    def test_tag_filter(self):
        assert _ids(derive_view(_tickets(), QueueFilters(tags={"category": "PAYMENT"}))) == ["a"]

    def test_empty_tag_value_ignored(self):
        assert len(derive_view(_tickets(), QueueFilters(tags={"category": ""}))) == 4

    def test_result_is_subset_and_idempotent(self):
        records = _tickets()
        filters = QueueFilters(search="i", sort="oldest")
        once = derive_view(records, filters)
        assert set(_ids(once)) <= set(_ids(records))
        assert derive_view(once, filters) == once

    def test_empty_snapshot(self):
        assert derive_view([], QueueFilters(search="x")) == ()


class TestDeletionSearch:
    def test_search_by_email_and_phone(self):
        record = canonicalize(QueueKind.ACCOUNT_DELETION, deletion_payload())
        assert "carlos@example.com" in searchable_text(record)
        assert derive_view([record], QueueFilters(search="2025551003")) == (record,)

    def test_name_sort(self):
        records = [
            canonicalize(QueueKind.ACCOUNT_DELETION, deletion_payload(id="1", userName="zed")),
            canonicalize(QueueKind.ACCOUNT_DELETION, deletion_payload(id="2", userName="Amy")),
        ]
        view = derive_view(records, QueueFilters(sort="name"), kind=QueueKind.ACCOUNT_DELETION)
        assert _ids(view) == ["2", "1"]
