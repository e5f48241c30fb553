"""
HTTP client for the session server.

Maps the server's status codes onto the error taxonomy: 400 becomes
InvalidInputError, 404 SessionNotFoundError, 413 PayloadTooLargeError, and
transport failures or 5xx answers TransientIOError.
"""

from __future__ import annotations

from typing import Any

import httpx

from ..errors import (
    InvalidInputError,
    PayloadTooLargeError,
    SessionNotFoundError,
    TransientIOError,
)

DEFAULT_URL = "http://127.0.0.1:3000"


class RemoteSessionClient:
    def __init__(
        self,
        base_url: str = DEFAULT_URL,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self._url, timeout=timeout, transport=transport
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def _request(
        self, method: str, path: str, session_id: str | None = None, **kwargs: Any
    ) -> dict[str, Any]:
        try:
            r = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise TransientIOError(f"{method} {path} failed: {e}") from e

        try:
            payload = r.json()
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {}
        message = payload.get("message") or r.reason_phrase

        if r.status_code == 413:
            raise PayloadTooLargeError(message)
        if r.status_code == 404:
            raise SessionNotFoundError(session_id or path)
        if 400 <= r.status_code < 500:
            raise InvalidInputError(message)
        if r.status_code >= 500:
            raise TransientIOError(f"{method} {path} -> {r.status_code}: {message}")
        if not payload.get("success"):
            raise TransientIOError(f"{method} {path} returned no success flag")
        return payload

    async def create(self) -> dict[str, Any]:
        payload = await self._request("POST", "/api/session/init")
        return payload["session"]

    async def get(self, session_id: str) -> dict[str, Any]:
        payload = await self._request(
            "GET", f"/api/session/{session_id}", session_id=session_id
        )
        return payload["session"]

    async def update_state(
        self,
        session_id: str,
        ui_state: dict[str, Any] | None = None,
        workspace_data: dict[str, list[Any]] | None = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {}
        if ui_state is not None:
            body["uiState"] = ui_state
        if workspace_data is not None:
            body["workspaceData"] = workspace_data
        payload = await self._request(
            "PUT", f"/api/session/{session_id}/state", session_id=session_id, json=body
        )
        return payload["session"]

    async def reset(self, session_id: str) -> dict[str, Any]:
        payload = await self._request(
            "DELETE", f"/api/session/{session_id}/reset", session_id=session_id
        )
        return payload["session"]

    async def upload(
        self, session_id: str, filename: str, content: bytes, mimetype: str
    ) -> dict[str, Any]:
        payload = await self._request(
            "POST",
            f"/api/session/{session_id}/upload",
            session_id=session_id,
            files={"file": (filename, content, mimetype)},
        )
        return payload["uploadInfo"]

    async def health(self) -> dict[str, Any]:
        return await self._request("GET", "/api/health")
