"""Refresh controller -- keeps one queue's snapshot fresh by polling.

Per queue instance::

    Idle → Fetching → Success → Idle
                    ↘ Failure (transient) → Backoff → Fetching
                    ↘ Failure (other / retries exhausted) → Idle + error
                    ↘ Superseded → result discarded

Triggers are a periodic timer and manual ``refresh()`` calls.  A manual
trigger always supersedes the fetch in flight; a periodic trigger is
skipped while a fetch is running.  Supersession is cooperative: every
fetch carries the generation it was started under and its outcome is
applied only if that generation is still current.

Only ``TransientNetworkError`` is retried, up to ``max_retries`` times with
a linear ``attempt * retry_base_delay_s`` delay.  An error never clears the
snapshot; the last good one stays published alongside the error kind.
"""
from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import StrEnum

from reviewdesk.core.errors import ErrorKind, QueueError, TransientNetworkError
from reviewdesk.core.settings import Settings, get_settings
from reviewdesk.normalization.canonicalizer import canonicalize_all
from reviewdesk.review.kinds import QueueKind
from reviewdesk.review.records import CanonicalRecord
from reviewdesk.store.base import CancellationToken, QueueStore

logger = logging.getLogger(__name__)


class RefreshPhase(StrEnum):
    IDLE = "idle"
    FETCHING = "fetching"
    BACKOFF = "backoff"


@dataclass(slots=True)
class RefreshState:
    """Mutable bookkeeping owned by one controller instance."""

    generation: int = 0
    is_refreshing: bool = False
    phase: RefreshPhase = RefreshPhase.IDLE
    timer_task: asyncio.Task | None = None
    token: CancellationToken | None = None
    tasks: set[asyncio.Task] = field(default_factory=set)


@dataclass(frozen=True, slots=True)
class RefreshOutput:
    """What the presentation layer observes.  Replaced, never mutated."""

    snapshot: tuple[CanonicalRecord, ...] = ()
    last_refreshed_at: datetime | None = None
    error: ErrorKind | None = None
    error_message: str | None = None
    is_refreshing: bool = False
    retry_attempts: int = 0
    version: int = 0


RefreshListener = Callable[[RefreshOutput], None]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RefreshController:
    """Poll one queue through a ``QueueStore`` and publish snapshots.

    Parameters
    ----------
    kind:
        Queue to poll.
    store:
        Collaborator store.
    interval_s:
        Periodic refresh interval.
    max_retries:
        Retries allowed per refresh cycle for transient failures.
    retry_base_delay_s:
        Backoff unit; retry *n* waits ``n * retry_base_delay_s``.
    filters:
        Server-side list filters (e.g. ``{"status": "pending"}``).
    clock:
        Source of ``last_refreshed_at``; defaults to UTC now.
    """

    def __init__(
        self,
        kind: QueueKind,
        store: QueueStore,
        *,
        interval_s: float = 30.0,
        max_retries: int = 3,
        retry_base_delay_s: float = 1.0,
        filters: Mapping[str, str] | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if interval_s <= 0:
            raise ValueError(f"interval_s must be > 0; got {interval_s}")
        if max_retries < 0:
            raise ValueError(f"max_retries must be >= 0; got {max_retries}")
        self.kind = kind
        self._store = store
        self._interval_s = interval_s
        self._max_retries = max_retries
        self._retry_base_delay_s = retry_base_delay_s
        self._filters: dict[str, str] = dict(filters or {})
        self._clock = clock
        self._state = RefreshState()
        self._output = RefreshOutput()
        self._listeners: list[RefreshListener] = []

    @classmethod
    def from_settings(
        cls,
        kind: QueueKind,
        store: QueueStore,
        settings: Settings | None = None,
    ) -> RefreshController:
        settings = settings or get_settings()
        return cls(
            kind,
            store,
            interval_s=settings.refresh_interval_s,
            max_retries=settings.refresh_max_retries,
            retry_base_delay_s=settings.refresh_retry_base_delay_s,
        )

    # -- observation --------------------------------------------------------

    @property
    def output(self) -> RefreshOutput:
        return self._output

    @property
    def state(self) -> RefreshState:
        return self._state

    @property
    def filters(self) -> dict[str, str]:
        return dict(self._filters)

    @property
    def is_running(self) -> bool:
        return self._state.timer_task is not None

    def add_listener(self, listener: RefreshListener) -> None:
        """Call *listener* with every new ``RefreshOutput``."""
        self._listeners.append(listener)

    def _publish(self, **changes) -> None:
        # Controller state is already settled here; listener errors are only logged.
        self._output = replace(self._output, **changes)
        for listener in list(self._listeners):
            try:
                listener(self._output)
            except Exception:
                logger.exception("Refresh listener for %s failed", self.kind)

    # -- lifecycle ----------------------------------------------------------

    async def start(self, *, refresh_now: bool = True) -> None:
        """Start the periodic timer (and, by default, an immediate refresh)."""
        if self._state.timer_task is not None:
            logger.warning("Refresh timer for %s already running", self.kind)
            return
        self._state.timer_task = asyncio.create_task(self._timer_loop())
        logger.info("Refresh timer started: kind=%s interval=%.1fs", self.kind, self._interval_s)
        if refresh_now:
            self.refresh()

    async def stop(self) -> None:
        """Stop the timer and abandon every fetch still in flight."""
        state = self._state
        state.generation += 1
        if state.token is not None:
            state.token.cancel()

        pending = list(state.tasks)
        if state.timer_task is not None:
            pending.append(state.timer_task)
            state.timer_task = None
        for task in pending:
            task.cancel()
        for task in pending:
            with contextlib.suppress(asyncio.CancelledError):
                await task

        state.is_refreshing = False
        state.phase = RefreshPhase.IDLE
        if self._output.is_refreshing:
            self._publish(is_refreshing=False)
        logger.info("Refresh timer stopped: kind=%s", self.kind)

    async def _timer_loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval_s)
            self.trigger_periodic()

    # -- triggers -----------------------------------------------------------

    def refresh(self, filters: Mapping[str, str] | None = None) -> asyncio.Task:
        """Start a fetch now, superseding any fetch in flight.

        Must be called from a running event loop.  The returned task
        completes when this fetch's outcome has been applied (or discarded).
        """
        if filters is not None:
            self._filters = dict(filters)

        state = self._state
        if state.token is not None:
            state.token.cancel()
            if state.is_refreshing:
                logger.debug("Superseding refresh generation %d for %s", state.generation, self.kind)

        state.generation += 1
        generation = state.generation
        token = CancellationToken(generation, self._is_current)
        state.token = token
        state.is_refreshing = True
        state.phase = RefreshPhase.FETCHING
        self._publish(is_refreshing=True)

        task = asyncio.create_task(self._fetch(generation, token, dict(self._filters)))
        state.tasks.add(task)
        task.add_done_callback(state.tasks.discard)
        return task

    def trigger_periodic(self) -> asyncio.Task | None:
        """Timer entry point: skipped (not queued) while a fetch is running."""
        if self._state.is_refreshing:
            logger.debug("Periodic refresh of %s skipped; fetch in flight", self.kind)
            return None
        return self.refresh()

    # -- fetch --------------------------------------------------------------

    def _is_current(self, generation: int) -> bool:
        return generation == self._state.generation

    async def _fetch(
        self,
        generation: int,
        token: CancellationToken,
        filters: dict[str, str],
    ) -> None:
        attempt = 0
        while True:
            try:
                items = await self._store.list(self.kind, filters or None, token)
            except TransientNetworkError as exc:
                if not self._is_current(generation):
                    return
                if attempt >= self._max_retries:
                    logger.warning(
                        "Refresh of %s failed after %d retries: %s",
                        self.kind, attempt, exc.message,
                    )
                    self._fail(exc, attempt)
                    return
                attempt += 1
                delay = attempt * self._retry_base_delay_s
                logger.info(
                    "Refresh of %s failed (retry %d/%d in %.1fs): %s",
                    self.kind, attempt, self._max_retries, delay, exc.message,
                )
                self._state.phase = RefreshPhase.BACKOFF
                self._publish(retry_attempts=attempt)
                await asyncio.sleep(delay)
                if not self._is_current(generation):
                    return
                self._state.phase = RefreshPhase.FETCHING
                continue
            except QueueError as exc:
                if self._is_current(generation):
                    logger.warning("Refresh of %s rejected: %s", self.kind, exc.message)
                    self._fail(exc, attempt)
                return
            except Exception as exc:
                if self._is_current(generation):
                    logger.exception("Refresh of %s failed unexpectedly", self.kind)
                    self._fail(exc, attempt)
                return

            if not self._is_current(generation):
                logger.debug("Discarding superseded refresh generation %d for %s", generation, self.kind)
                return

            try:
                snapshot = canonicalize_all(self.kind, items)
                refreshed_at = self._clock()
            except Exception as exc:
                logger.exception("Refresh of %s returned an unusable payload", self.kind)
                self._fail(exc, attempt)
                return

            self._state.is_refreshing = False
            self._state.phase = RefreshPhase.IDLE
            self._publish(
                snapshot=snapshot,
                last_refreshed_at=refreshed_at,
                error=None,
                error_message=None,
                is_refreshing=False,
                retry_attempts=attempt,
                version=self._output.version + 1,
            )
            logger.info("Refreshed %s: %d items", self.kind, len(snapshot))
            return

    def _fail(self, exc: Exception, attempt: int) -> None:
        self._state.is_refreshing = False
        self._state.phase = RefreshPhase.IDLE
        if isinstance(exc, QueueError):
            kind, message = exc.kind, exc.message
        else:
            kind, message = ErrorKind.TERMINAL_NETWORK, str(exc)
        self._publish(
            error=kind,
            error_message=message,
            is_refreshing=False,
            retry_attempts=attempt,
        )
