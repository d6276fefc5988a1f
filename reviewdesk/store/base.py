"""Collaborator store contract.

The engine never persists queue items itself; it reads and writes them
through a ``QueueStore``.  The store is the source of truth for whether a
transition is valid -- the local state machine is only a pre-check.

Every method returns raw wire payloads (decoded JSON objects); the engine
canonicalizes them.  Failures are reported with the exception types of
:mod:`reviewdesk.core.errors`.
"""
from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any, Protocol

from reviewdesk.review.kinds import QueueKind

RawItem = dict[str, Any]


class CancellationToken:
    """Cooperative cancellation handle passed to ``QueueStore.list``.

    Cancelling never interrupts I/O by itself; stores may poll
    :attr:`cancelled` to abandon work early, and the caller discards a
    cancelled fetch's result regardless.
    """

    def __init__(self, generation: int = 0, is_current: Callable[[int], bool] | None = None) -> None:
        self.generation = generation
        self._is_current = is_current
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        if self._cancelled:
            return True
        return self._is_current is not None and not self._is_current(self.generation)


class QueueStore(Protocol):
    async def list(
        self,
        kind: QueueKind,
        filters: Mapping[str, str] | None = None,
        token: CancellationToken | None = None,
    ) -> list[RawItem]:
        """Return the queue's raw items, in any order."""
        ...

    async def get(self, kind: QueueKind, item_id: str) -> RawItem:
        ...

    async def transition(self, kind: QueueKind, item_id: str, action: Mapping[str, Any]) -> RawItem:
        """Apply a status change / review and return the updated item."""
        ...

    async def append_note(self, kind: QueueKind, item_id: str, note: Mapping[str, Any]) -> RawItem:
        """Append an answer to a ticket and return the updated item."""
        ...

    async def remove(self, subject_id: str) -> None:
        """Hard-delete the subject account (deletion-request approval only)."""
        ...
