"""Normalization package.

Turns the platform's raw queue payloads into ``CanonicalRecord`` values.
Both entry points are total: malformed input yields a degraded record,
never an exception::

    canonicalize(kind, raw) -> CanonicalRecord
    normalize_timestamp(value) -> datetime | None
"""
