"""GET /health -- liveness check plus per-queue refresh status."""
from __future__ import annotations

from fastapi import APIRouter, Request

from reviewdesk.core.settings import get_settings

router = APIRouter(tags=["health"])


@router.get("/health", summary="Basic health check")
def health_check(request: Request) -> dict:
    settings = get_settings()
    queues = getattr(request.app.state, "queues", {})
    return {
        "status": "ok",
        "service": settings.app_name,
        "version": settings.app_version,
        "environment": settings.app_env,
        "store": settings.store_backend,
        "queues": {
            kind.value: {
                "refreshing": qm.output.is_refreshing,
                "error": qm.output.error.value if qm.output.error else None,
            }
            for kind, qm in queues.items()
        },
    }
