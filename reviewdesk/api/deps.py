"""FastAPI dependency injection -- reviewer identity and queue managers."""
from __future__ import annotations

from fastapi import Header, HTTPException, Request

from reviewdesk.review.kinds import resolve_kind
from reviewdesk.review.queue_manager import QueueManager
from reviewdesk.review.records import VALID_REVIEWER_ROLES, ReviewerIdentity
from reviewdesk.review.roles import parse_scopes


def get_reviewer(
    x_reviewer_id: str = Header(...),
    x_reviewer_role: str = Header(...),
    x_reviewer_scopes: str | None = Header(default=None),
) -> ReviewerIdentity:
    """Build the acting reviewer from the session headers set by the console."""
    role = x_reviewer_role.strip().lower()
    if role == "subadmin":
        role = "scoped"
    if role not in VALID_REVIEWER_ROLES:
        raise HTTPException(status_code=400, detail=f"Invalid reviewer role: {x_reviewer_role!r}")
    if not x_reviewer_id.strip():
        raise HTTPException(status_code=400, detail="Reviewer id must be non-empty")
    return ReviewerIdentity(
        id=x_reviewer_id.strip(),
        role=role,
        scopes=parse_scopes(x_reviewer_scopes),
    )


def get_queue_manager(kind: str, request: Request) -> QueueManager:
    """Return the running ``QueueManager`` for the *kind* path parameter."""
    queue_kind = resolve_kind(kind)
    if queue_kind is None:
        raise HTTPException(status_code=404, detail=f"Unknown queue: {kind!r}")
    return request.app.state.queues[queue_kind]


def get_queue_managers(request: Request) -> dict:
    return request.app.state.queues
