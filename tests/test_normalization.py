"""Tests for reviewdesk/normalization/timestamps.py."""
from __future__ import annotations

import json
from datetime import date, datetime, timedelta, timezone

import pytest

from reviewdesk.normalization.timestamps import format_timestamp, normalize_timestamp

UTC = timezone.utc


class TestNormalizeTimestamp:
    def test_none(self):
        assert normalize_timestamp(None) is None

    def test_firestore_object(self):
        assert normalize_timestamp({"_seconds": 1700000000, "_nanoseconds": 500000000}) == datetime(
            2023, 11, 14, 22, 13, 20, 500000, tzinfo=UTC
        )

    def test_firestore_object_without_underscore(self):
        assert normalize_timestamp({"seconds": 0}) == datetime(1970, 1, 1, tzinfo=UTC)

    def test_firestore_object_bad_seconds(self):
        assert normalize_timestamp({"_seconds": "soon"}) is None

    @pytest.mark.parametrize("nanos", [float("nan"), float("inf"), float("-inf")])
    def test_firestore_object_non_finite_nanos_ignored(self, nanos):
        assert normalize_timestamp({"_seconds": 60, "_nanoseconds": nanos}) == datetime(
            1970, 1, 1, 0, 1, tzinfo=UTC
        )

    @pytest.mark.parametrize("seconds", [float("nan"), float("inf"), 10**400])
    def test_firestore_object_non_finite_seconds(self, seconds):
        assert normalize_timestamp({"_seconds": seconds, "_nanoseconds": 0}) is None

    def test_decoded_json_nan_literal(self):
        assert normalize_timestamp(json.loads('{"_seconds": 1, "_nanoseconds": NaN}')) == datetime(
            1970, 1, 1, 0, 0, 1, tzinfo=UTC
        )

    def test_firestore_object_bad_nanos_ignored(self):
        assert normalize_timestamp({"_seconds": 60, "_nanoseconds": "x"}) == datetime(
            1970, 1, 1, 0, 1, tzinfo=UTC
        )

    def test_iso_string_with_z(self):
        assert normalize_timestamp("2024-02-01T09:00:00Z") == datetime(2024, 2, 1, 9, tzinfo=UTC)

    def test_iso_string_with_offset_converted_to_utc(self):
        result = normalize_timestamp("2024-02-01T14:30:00+05:30")
        assert result == datetime(2024, 2, 1, 9, tzinfo=UTC)
        assert result.utcoffset() == timedelta(0)

    def test_naive_iso_string_taken_as_utc(self):
        assert normalize_timestamp("2024-02-01T09:00:00") == datetime(2024, 2, 1, 9, tzinfo=UTC)

    def test_epoch_number(self):
        assert normalize_timestamp(86400) == datetime(1970, 1, 2, tzinfo=UTC)

    def test_bool_rejected(self):
        assert normalize_timestamp(True) is None

    def test_date(self):
        assert normalize_timestamp(date(2024, 2, 1)) == datetime(2024, 2, 1, tzinfo=UTC)

    def test_aware_datetime_passthrough(self):
        value = datetime(2024, 2, 1, 9, tzinfo=UTC)
        assert normalize_timestamp(value) == value

    @pytest.mark.parametrize("value", ["", "   ", "yesterday", [], object(), float("nan"), float("inf"), 10**20])
    def test_unparseable_yields_none(self, value):
        assert normalize_timestamp(value) is None


class TestFormatTimestamp:
    def test_none(self):
        assert format_timestamp(None) is None

    def test_round_trips_through_normalize(self):
        value = datetime(2024, 2, 1, 9, tzinfo=UTC)
        assert normalize_timestamp(format_timestamp(value)) == value
