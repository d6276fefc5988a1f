"""Platform REST API store -- async ``httpx`` client.

Talks to the platform backend that owns support tickets, deletion
requests, and user accounts.  Responses use the ``{"success": bool,
"data": ...}`` envelope; error bodies carry ``error`` or ``message``.

Failure classification
----------------------
timeouts / transport errors, 408, 429, 502-504 : TransientNetworkError
400, 422                                       : ValidationError
401, 403                                       : AuthorizationError
409                                            : ConflictError
anything else non-2xx, or ``success: false``   : TerminalNetworkError

Safety rule: request and response bodies are never logged.
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any
from urllib.parse import quote

import httpx

from reviewdesk.core.errors import (
    AuthorizationError,
    ConflictError,
    QueueError,
    TerminalNetworkError,
    TransientNetworkError,
    ValidationError,
)
from reviewdesk.core.settings import get_settings
from reviewdesk.review.kinds import QueueKind
from reviewdesk.store.base import CancellationToken, RawItem

logger = logging.getLogger(__name__)

QUEUE_PATHS: dict[QueueKind, str] = {
    QueueKind.SUPPORT: "/api/support",
    QueueKind.ACCOUNT_DELETION: "/api/delete-requests",
}

USERS_PATH = "/api/users"

_TRANSIENT_STATUSES = frozenset({408, 429, 502, 503, 504})


def _enc(value: str) -> str:
    return quote(value, safe="")


def _error_message(response: httpx.Response) -> str:
    message = f"HTTP {response.status_code}"
    try:
        body = response.json()
    except ValueError:
        return response.text or message
    if isinstance(body, str):
        return body or message
    if isinstance(body, Mapping):
        return str(body.get("error") or body.get("message") or message)
    return message


def classify_response(response: httpx.Response) -> QueueError:
    """Map a non-2xx response onto the engine's error kinds."""
    status = response.status_code
    message = _error_message(response)
    if status in _TRANSIENT_STATUSES:
        return TransientNetworkError(message, status_code=status)
    if status in (400, 422):
        return ValidationError(message, status_code=status)
    if status in (401, 403):
        return AuthorizationError(message, status_code=status)
    if status == 409:
        return ConflictError(message, status_code=status)
    return TerminalNetworkError(message, status_code=status)


class HttpQueueStore:
    """``QueueStore`` backed by the platform REST API.

    Parameters
    ----------
    base_url:
        API base URL.  Defaults to ``settings.platform_api_url``.
    api_token:
        Bearer token.  Defaults to ``settings.platform_api_token``.
    timeout_s:
        Per-request timeout.  Defaults to ``settings.request_timeout_s``.
    client:
        Pre-built ``httpx.AsyncClient`` (tests inject one with a
        ``MockTransport``).  When given, the other parameters are ignored.
    """

    def __init__(
        self,
        *,
        base_url: str | None = None,
        api_token: str | None = None,
        timeout_s: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if client is None:
            settings = get_settings()
            token = api_token if api_token is not None else settings.platform_api_token
            headers = {"Authorization": f"Bearer {token}"} if token else {}
            client = httpx.AsyncClient(
                base_url=(base_url or settings.platform_api_url).rstrip("/"),
                timeout=timeout_s if timeout_s is not None else settings.request_timeout_s,
                headers=headers,
            )
        self._client = client

    async def aclose(self) -> None:
        await self._client.aclose()

    # -- transport ----------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, str] | None = None,
        json: Mapping[str, Any] | None = None,
    ) -> Any:
        try:
            response = await self._client.request(
                method,
                path,
                params=dict(params) if params else None,
                json=dict(json) if json is not None else None,
            )
        except httpx.TimeoutException as exc:
            raise TransientNetworkError(f"{method} {path} timed out") from exc
        except httpx.TransportError as exc:
            raise TransientNetworkError(f"{method} {path} failed: {type(exc).__name__}") from exc

        if response.is_error:
            error = classify_response(response)
            logger.debug("%s %s -> %d (%s)", method, path, response.status_code, error.kind)
            raise error

        if response.status_code == 204 or not response.content:
            return None

        try:
            payload = response.json()
        except ValueError as exc:
            raise TerminalNetworkError(f"{method} {path} returned non-JSON body") from exc

        if isinstance(payload, Mapping):
            if payload.get("success") is False:
                raise TerminalNetworkError(
                    str(payload.get("error") or payload.get("message") or "request unsuccessful")
                )
            if "data" in payload:
                return payload["data"]
        return payload

    @staticmethod
    def _item(payload: Any) -> RawItem:
        return dict(payload) if isinstance(payload, Mapping) else {}

    # -- QueueStore ---------------------------------------------------------

    async def list(
        self,
        kind: QueueKind,
        filters: Mapping[str, str] | None = None,
        token: CancellationToken | None = None,
    ) -> list[RawItem]:
        if token is not None and token.cancelled:
            return []
        params = {key: value for key, value in (filters or {}).items() if value}
        payload = await self._request("GET", QUEUE_PATHS[kind], params=params)
        if payload is None:
            return []
        if not isinstance(payload, list):
            raise TerminalNetworkError(f"GET {QUEUE_PATHS[kind]} did not return a list")
        return payload

    async def get(self, kind: QueueKind, item_id: str) -> RawItem:
        payload = await self._request("GET", f"{QUEUE_PATHS[kind]}/{_enc(item_id)}")
        return self._item(payload)

    async def transition(self, kind: QueueKind, item_id: str, action: Mapping[str, Any]) -> RawItem:
        base = f"{QUEUE_PATHS[kind]}/{_enc(item_id)}"
        if kind == QueueKind.SUPPORT:
            payload = await self._request("PATCH", f"{base}/status", json={"status": action.get("status")})
        else:
            payload = await self._request("PATCH", f"{base}/review", json=action)
        return self._item(payload)

    async def append_note(self, kind: QueueKind, item_id: str, note: Mapping[str, Any]) -> RawItem:
        if kind != QueueKind.SUPPORT:
            raise ValidationError(f"Queue {kind.value!r} does not accept answers")
        payload = await self._request("POST", f"{QUEUE_PATHS[kind]}/{_enc(item_id)}/answer", json=note)
        return self._item(payload)

    async def remove(self, subject_id: str) -> None:
        if not subject_id:
            raise ValidationError("subject_id must be non-empty")
        await self._request("DELETE", f"{USERS_PATH}/{_enc(subject_id)}")
