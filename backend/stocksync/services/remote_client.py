# Overview: Remote sync backend adapters consumed by the Reconciler.
"""
Remote Sync Backend

The Reconciler only depends on the RemoteBackend protocol:

    push_action(action) -> PushResult(ack | reject | unreachable)
    pull_snapshot(entity_type, cursor) -> (rows, new_cursor)

HttpSyncBackend speaks JSON over HTTP with httpx. Every push carries an
Idempotency-Key of "<device_id>:<action id>" so that a redelivered action
(at-least-once) can be dropped by the remote.

Status mapping for pushes:
- 2xx                      -> ack
- 400/404/409/410/422      -> reject (business rule violation, never retried)
- anything else, timeouts,
  connection errors        -> TransientIO(source="remote")
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol, runtime_checkable

import httpx

from ..errors import TransientIO
from ..models import QueuedAction

REJECT_STATUSES = frozenset({400, 404, 409, 410, 422})


class PushOutcome(str, Enum):
    ACK = "ack"
    REJECT = "reject"
    UNREACHABLE = "unreachable"


@dataclass(frozen=True)
class PushResult:
    outcome: PushOutcome
    reason: str | None = None

    @classmethod
    def ack(cls) -> "PushResult":
        return cls(PushOutcome.ACK)

    @classmethod
    def reject(cls, reason: str | None = None) -> "PushResult":
        return cls(PushOutcome.REJECT, reason)

    @classmethod
    def unreachable(cls, reason: str | None = None) -> "PushResult":
        return cls(PushOutcome.UNREACHABLE, reason)


@runtime_checkable
class RemoteBackend(Protocol):
    def push_action(self, action: QueuedAction) -> PushResult:
        ...

    def pull_snapshot(self, entity_type: str, cursor: str | None) -> tuple[list[dict], str | None]:
        ...


def _error_reason(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(body, dict):
        for key in ("error", "message", "detail"):
            if body.get(key):
                return f"HTTP {response.status_code}: {body[key]}"
    return f"HTTP {response.status_code}"


class HttpSyncBackend:
    def __init__(
        self,
        base_url: str,
        *,
        device_id: str,
        token: str | None = None,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ):
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._device_id = device_id
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            return self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            raise TransientIO(f"remote timed out: {method} {url}", source="remote") from exc
        except httpx.TransportError as exc:
            raise TransientIO(f"remote unreachable: {exc}", source="remote") from exc

    def push_action(self, action: QueuedAction) -> PushResult:
        try:
            data: Any = json.loads(action.payload)
        except ValueError:
            # payload format belongs to the business layer; ship it untouched
            data = action.payload

        response = self._request(
            "POST",
            "/actions",
            json={
                "id": action.id,
                "type": action.action_type.value,
                "entity_id": action.entity_id,
                "data": data,
                "timestamp": action.timestamp,
            },
            headers={"Idempotency-Key": f"{self._device_id}:{action.id}"},
        )
        if response.is_success:
            return PushResult.ack()
        if response.status_code in REJECT_STATUSES:
            return PushResult.reject(_error_reason(response))
        raise TransientIO(f"push of action {action.id} failed: {_error_reason(response)}", source="remote")

    def pull_snapshot(self, entity_type: str, cursor: str | None) -> tuple[list[dict], str | None]:
        params = {"cursor": cursor} if cursor else None
        response = self._request("GET", f"/snapshot/{entity_type}", params=params)
        if not response.is_success:
            raise TransientIO(f"pull of {entity_type} failed: {_error_reason(response)}", source="remote")
        try:
            body = response.json()
        except ValueError as exc:
            raise TransientIO(f"pull of {entity_type} returned invalid JSON", source="remote") from exc
        if not isinstance(body, dict):
            raise TransientIO(f"pull of {entity_type} returned an unexpected body", source="remote")
        rows = body.get("rows") or []
        return list(rows), body.get("cursor", cursor)


class OfflineBackend:
    """Used when no remote is configured; every call is a transient failure."""

    def push_action(self, action: QueuedAction) -> PushResult:
        raise TransientIO("no remote configured", source="remote")

    def pull_snapshot(self, entity_type: str, cursor: str | None) -> tuple[list[dict], str | None]:
        raise TransientIO("no remote configured", source="remote")


def build_remote_backend(config) -> RemoteBackend:
    url = config.get("SYNC_REMOTE_URL")
    if not url:
        return OfflineBackend()
    return HttpSyncBackend(
        url,
        device_id=config.get("SYNC_DEVICE_ID", "local-device"),
        token=config.get("SYNC_REMOTE_TOKEN"),
        timeout=float(config.get("SYNC_REMOTE_TIMEOUT", 10.0)),
    )
