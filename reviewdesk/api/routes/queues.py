"""Review queue routes -- snapshots, filters, and reviewer actions."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from reviewdesk.api.deps import get_queue_manager, get_queue_managers, get_reviewer
from reviewdesk.core.errors import (
    AuthorizationError,
    ConflictError,
    QueueError,
    TransientNetworkError,
    ValidationError,
)
from reviewdesk.normalization.timestamps import format_timestamp
from reviewdesk.review.queue_manager import DispatchResult, QueueManager
from reviewdesk.review.records import CanonicalRecord, ReviewerIdentity
from reviewdesk.review.refresh import RefreshOutput
from reviewdesk.review.roles import can_access
from reviewdesk.review.view_model import QueueFilters
from reviewdesk.review.workflow import AppendAnswer, ChangeStatus, DeleteSubject, Review, ReviewAction

router = APIRouter(prefix="/queues", tags=["queues"])


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------

class StatusBody(BaseModel):
    status: str


class AnswerBody(BaseModel):
    text: str


class ReviewBody(BaseModel):
    outcome: str
    notes: str | None = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _serialize_record(record: CanonicalRecord) -> dict:
    return {
        "id": record.id,
        "kind": record.kind.value,
        "subject_id": record.subject_id,
        "title": record.title,
        "body": record.body,
        "status": str(record.status),
        "created_at": format_timestamp(record.created_at),
        "updated_at": format_timestamp(record.updated_at),
        "reviewed_by": record.reviewed_by,
        "reviewed_at": format_timestamp(record.reviewed_at),
        "tags": dict(record.tags),
        "notes": [
            {
                "text": note.text,
                "author_id": note.author_id,
                "author_role": note.author_role,
                "at": format_timestamp(note.at),
            }
            for note in record.notes
        ],
    }


def _serialize_status(output: RefreshOutput) -> dict:
    return {
        "last_refreshed_at": format_timestamp(output.last_refreshed_at),
        "error": output.error.value if output.error else None,
        "error_message": output.error_message,
        "is_refreshing": output.is_refreshing,
        "retry_attempts": output.retry_attempts,
    }


def _http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, KeyError):
        return HTTPException(status_code=404, detail=str(exc.args[0]) if exc.args else "Not found")
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=400, detail=exc.message)
    if isinstance(exc, AuthorizationError):
        return HTTPException(status_code=403, detail=exc.message)
    if isinstance(exc, ConflictError):
        return HTTPException(status_code=409, detail=exc.message)
    if isinstance(exc, TransientNetworkError):
        return HTTPException(status_code=503, detail=exc.message)
    if isinstance(exc, QueueError):
        return HTTPException(status_code=502, detail=exc.message)
    return HTTPException(status_code=400, detail=str(exc))


async def _dispatch(
    qm: QueueManager,
    reviewer: ReviewerIdentity,
    item_id: str,
    action: ReviewAction,
) -> dict:
    try:
        result: DispatchResult = await qm.dispatch(reviewer, item_id, action)
    except (KeyError, QueueError) as exc:
        raise _http_error(exc)
    return {
        "record": _serialize_record(result.record),
        "side_effects": [
            {"type": "delete_subject", "subject_id": effect.subject_id}
            for effect in result.side_effects
            if isinstance(effect, DeleteSubject)
        ],
    }


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@router.get("", summary="Visible item counts per queue")
def get_queue_counts(
    reviewer: ReviewerIdentity = Depends(get_reviewer),
    queues: dict = Depends(get_queue_managers),
):
    return {
        kind.value: len(qm.visible(reviewer))
        for kind, qm in queues.items()
        if can_access(reviewer, kind)
    }


@router.get("/{kind}", summary="Filtered, sorted view of a queue")
def get_queue(
    search: str = "",
    status: str | None = None,
    sort: str = "newest",
    category: str | None = None,
    user_type: str | None = None,
    reviewer: ReviewerIdentity = Depends(get_reviewer),
    qm: QueueManager = Depends(get_queue_manager),
):
    tags = {name: value for name, value in (("category", category), ("userType", user_type)) if value}
    filters = QueueFilters(search=search, status=status, sort=sort, tags=tags)
    try:
        records = qm.visible(reviewer, filters)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return {
        "kind": qm.kind.value,
        "count": len(records),
        "items": [_serialize_record(r) for r in records],
        **_serialize_status(qm.output),
    }


@router.post("/{kind}/refresh", summary="Refresh a queue now")
async def refresh_queue(
    reviewer: ReviewerIdentity = Depends(get_reviewer),
    qm: QueueManager = Depends(get_queue_manager),
):
    if not can_access(reviewer, qm.kind):
        raise HTTPException(status_code=403, detail=f"No access to queue {qm.kind.value!r}")
    await qm.refresh()
    return {"kind": qm.kind.value, "count": len(qm.snapshot()), **_serialize_status(qm.output)}


@router.get("/{kind}/items/{item_id}", summary="Single queue item")
def get_item(
    item_id: str,
    reviewer: ReviewerIdentity = Depends(get_reviewer),
    qm: QueueManager = Depends(get_queue_manager),
):
    try:
        record = qm.get(reviewer, item_id)
    except (KeyError, QueueError) as exc:
        raise _http_error(exc)
    return _serialize_record(record)


@router.post("/{kind}/items/{item_id}/status", summary="Change a ticket's status")
async def change_status(
    item_id: str,
    body: StatusBody,
    reviewer: ReviewerIdentity = Depends(get_reviewer),
    qm: QueueManager = Depends(get_queue_manager),
):
    return await _dispatch(qm, reviewer, item_id, ChangeStatus(body.status))


@router.post("/{kind}/items/{item_id}/answers", summary="Answer a ticket")
async def add_answer(
    item_id: str,
    body: AnswerBody,
    reviewer: ReviewerIdentity = Depends(get_reviewer),
    qm: QueueManager = Depends(get_queue_manager),
):
    return await _dispatch(qm, reviewer, item_id, AppendAnswer(body.text))


@router.post("/{kind}/items/{item_id}/review", summary="Approve or reject a deletion request")
async def review_request(
    item_id: str,
    body: ReviewBody,
    reviewer: ReviewerIdentity = Depends(get_reviewer),
    qm: QueueManager = Depends(get_queue_manager),
):
    return await _dispatch(qm, reviewer, item_id, Review(body.outcome, body.notes))
