"""FastAPI application factory.

Builds one ``QueueManager`` per queue kind over the configured store and
runs their refresh timers for the lifetime of the app.  This module is the
authoritative app object; reviewdesk/main.py re-exports it.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from reviewdesk.api.routes.health import router as health_router
from reviewdesk.api.routes.queues import router as queues_router
from reviewdesk.core.logging import setup_logging
from reviewdesk.core.settings import get_settings
from reviewdesk.review.kinds import QueueKind
from reviewdesk.review.queue_manager import QueueManager
from reviewdesk.store.base import QueueStore

logger = logging.getLogger(__name__)


def build_store() -> QueueStore:
    """Instantiate the store selected by ``STORE_BACKEND``."""
    settings = get_settings()
    backend = settings.store_backend.strip().lower()
    if backend == "http":
        from reviewdesk.store.http_store import HttpQueueStore

        return HttpQueueStore()
    if backend == "sql":
        from reviewdesk.db.session import get_session_factory, init_db
        from reviewdesk.store.sql_store import SqlQueueStore

        init_db()
        return SqlQueueStore(get_session_factory())
    raise ValueError(f"Unknown STORE_BACKEND {settings.store_backend!r}; expected 'http' or 'sql'")


def create_app(store: QueueStore | None = None) -> FastAPI:
    """Build the app.  Tests pass a prepared *store*; otherwise one is built at startup."""
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging()
        active = store if store is not None else build_store()
        app.state.store = active
        app.state.queues = {kind: QueueManager.from_settings(kind, active, settings) for kind in QueueKind}
        for qm in app.state.queues.values():
            if settings.auto_refresh_enabled:
                await qm.start()
            else:
                await qm.refresh()
        logger.info(
            "Review queues ready: backend=%s auto_refresh=%s",
            settings.store_backend, settings.auto_refresh_enabled,
        )
        yield
        for qm in app.state.queues.values():
            await qm.stop()
        aclose = getattr(active, "aclose", None)
        if store is None and aclose is not None:
            await aclose()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )

    # CORS: the admin console is served from a separate origin
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health_router)
    app.include_router(queues_router)
    return app


app = create_app()
