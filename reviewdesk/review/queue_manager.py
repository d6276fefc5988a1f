"""Queue manager -- the presentation layer's entry point for one queue.

Wires the pieces together::

    RefreshController → canonical snapshot
                      → filter_visible (access policy, queue-wide)
                      → derive_view (search / status / sort)
    dispatch(action)  → workflow.apply (pure pre-check)
                      → optimistic overlay
                      → store write (never retried)
                      → side effects (DeleteSubject → store.remove)
                      → manual refresh

The overlay holds provisional records keyed by id.  It is tied to the
snapshot version it was written against and is dropped wholesale when the
next snapshot is published; the server's answer always wins.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from reviewdesk.core.errors import AuthorizationError
from reviewdesk.core.settings import Settings
from reviewdesk.normalization.canonicalizer import canonicalize
from reviewdesk.review.kinds import DeletionStatus, QueueKind
from reviewdesk.review.records import CanonicalRecord, ReviewerIdentity
from reviewdesk.review.refresh import RefreshController, RefreshOutput
from reviewdesk.review.roles import can_access, filter_visible
from reviewdesk.review.view_model import QueueFilters, derive_view
from reviewdesk.review.workflow import (
    AppendAnswer,
    ChangeStatus,
    DeleteSubject,
    Review,
    ReviewAction,
    SideEffect,
    apply,
)
from reviewdesk.store.base import QueueStore, RawItem

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DispatchResult:
    record: CanonicalRecord
    side_effects: tuple[SideEffect, ...] = field(default_factory=tuple)


class QueueManager:
    """Serve snapshots and reviewer actions for one queue."""

    def __init__(
        self,
        kind: QueueKind,
        store: QueueStore,
        controller: RefreshController | None = None,
    ) -> None:
        self.kind = kind
        self.store = store
        self.controller = controller or RefreshController(kind, store)
        self._overlay: dict[str, CanonicalRecord] = {}
        self._overlay_version = self.controller.output.version
        self.controller.add_listener(self._on_refresh)

    @classmethod
    def from_settings(
        cls,
        kind: QueueKind,
        store: QueueStore,
        settings: Settings | None = None,
    ) -> QueueManager:
        return cls(kind, store, RefreshController.from_settings(kind, store, settings))

    # -- refresh ------------------------------------------------------------

    async def start(self, *, refresh_now: bool = True) -> None:
        await self.controller.start(refresh_now=refresh_now)

    async def stop(self) -> None:
        await self.controller.stop()

    def refresh(self, filters: Mapping[str, str] | None = None) -> asyncio.Task:
        return self.controller.refresh(filters)

    @property
    def output(self) -> RefreshOutput:
        return self.controller.output

    def _on_refresh(self, output: RefreshOutput) -> None:
        if output.version != self._overlay_version:
            if self._overlay:
                logger.debug("Dropping %d provisional %s records", len(self._overlay), self.kind)
            self._overlay = {}
            self._overlay_version = output.version

    # -- reads --------------------------------------------------------------

    def snapshot(self) -> tuple[CanonicalRecord, ...]:
        """Latest snapshot with provisional records merged in by id."""
        records = self.controller.output.snapshot
        if not self._overlay:
            return records
        return tuple(self._overlay.get(record.id, record) for record in records)

    def visible(
        self,
        reviewer: ReviewerIdentity,
        filters: QueueFilters | None = None,
    ) -> tuple[CanonicalRecord, ...]:
        """Ordered records *reviewer* may see under *filters*."""
        records = filter_visible(reviewer, self.kind, self.snapshot())
        return derive_view(records, filters, kind=self.kind)

    def get(self, reviewer: ReviewerIdentity, item_id: str) -> CanonicalRecord:
        self._require_access(reviewer)
        return self._find(item_id)

    def _require_access(self, reviewer: ReviewerIdentity) -> None:
        if not can_access(reviewer, self.kind):
            raise AuthorizationError(
                f"Reviewer {reviewer.id!r} cannot access queue {self.kind.value!r}"
            )

    def _find(self, item_id: str) -> CanonicalRecord:
        for record in self.snapshot():
            if record.id == item_id:
                return record
        raise KeyError(f"{self.kind.value} item {item_id} not found")

    # -- writes -------------------------------------------------------------

    async def dispatch(
        self,
        reviewer: ReviewerIdentity,
        item_id: str,
        action: ReviewAction,
        now: datetime | None = None,
    ) -> DispatchResult:
        """Run *action* through the state machine, then persist it.

        The provisional record is visible immediately and rolled back if
        the store rejects the write.  Errors are never retried.
        """
        self._require_access(reviewer)
        record = self._find(item_id)
        result = apply(record, action, reviewer, now)

        version = self.controller.output.version
        previous = self._overlay.get(record.id)
        self._overlay[record.id] = result.record

        try:
            raw = await self._send(record, action, reviewer)
        except Exception:
            self._rollback(record.id, previous, version)
            logger.warning(
                "Review action failed: kind=%s id=%s action=%s actor=%s",
                self.kind, record.id, type(action).__name__, reviewer.id,
            )
            raise

        confirmed = canonicalize(self.kind, raw) if raw else result.record
        if not confirmed.id:
            confirmed = result.record
        if self.controller.output.version == version:
            self._overlay[record.id] = confirmed

        logger.info(
            "Review action applied: kind=%s id=%s action=%s actor=%s status=%s",
            self.kind, record.id, type(action).__name__, reviewer.id, confirmed.status,
        )

        try:
            for effect in result.side_effects:
                await self._perform(effect, confirmed)
        finally:
            self.controller.refresh()
        return DispatchResult(confirmed, result.side_effects)

    def _rollback(self, item_id: str, previous: CanonicalRecord | None, version: int) -> None:
        if self.controller.output.version != version:
            return
        if previous is None:
            self._overlay.pop(item_id, None)
        else:
            self._overlay[item_id] = previous

    async def _send(
        self,
        record: CanonicalRecord,
        action: ReviewAction,
        reviewer: ReviewerIdentity,
    ) -> RawItem:
        if isinstance(action, ChangeStatus):
            return await self.store.transition(self.kind, record.id, {"status": str(action.status)})
        if isinstance(action, Review):
            body: dict[str, Any] = {
                "status": action.outcome,
                "adminNotes": (action.notes or "").strip(),
                "reviewedBy": reviewer.id,
            }
            return await self.store.transition(self.kind, record.id, body)
        if isinstance(action, AppendAnswer):
            note = {
                "answer": action.text.strip(),
                "answeredBy": reviewer.id,
                "answeredByType": "SUBADMIN" if reviewer.role == "scoped" else "ADMIN",
            }
            return await self.store.append_note(self.kind, record.id, note)
        raise TypeError(f"Unsupported action {type(action).__name__}")

    async def _perform(self, effect: SideEffect, confirmed: CanonicalRecord) -> None:
        if isinstance(effect, DeleteSubject):
            if confirmed.status != DeletionStatus.APPROVED:
                logger.warning(
                    "Skipping account deletion for %s: store reports status %s",
                    confirmed.id, confirmed.status,
                )
                return
            await self.store.remove(effect.subject_id)
            logger.info("Subject account deleted for deletion request %s", confirmed.id)
