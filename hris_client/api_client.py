"""
HTTP API client for talking to the HRIS backend.

Usage pattern:

    from hris_client.api_client import get_api_client

    client = get_api_client()
    user = await client.login(username="jdoe", password="secret")
    leave_requests = await client.list_leave_requests()
"""

from __future__ import annotations

import asyncio
import os
from typing import Any, BinaryIO, Dict, List, Optional, Tuple

import httpx


# -----------------------------
# Configuration helpers
# -----------------------------


def _load_base_url() -> str:
    """
    Determine the backend base URL.

    Priority:
    1. Environment variable HRIS_API_BASE_URL
    2. Default: http://127.0.0.1:3000
    """
    env_url = os.getenv("HRIS_API_BASE_URL")
    if env_url:
        return env_url.rstrip("/")
    return "http://127.0.0.1:3000"


def websocket_url(base_url: str) -> str:
    """Map an http(s) base URL onto the backend's ``/ws`` endpoint."""

    if base_url.startswith("https://"):
        return "wss://" + base_url[len("https://"):] + "/ws"
    if base_url.startswith("http://"):
        return "ws://" + base_url[len("http://"):] + "/ws"
    return base_url.rstrip("/") + "/ws"


# -----------------------------
# Error types
# -----------------------------


class APIError(Exception):
    """Generic API error."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthError(APIError):
    """Credentials were rejected."""


class ConflictError(APIError):
    """The backend reported a duplicate."""


class NotFoundError(APIError):
    """The requested row does not exist."""


def _detail(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text
    if isinstance(body, dict) and "detail" in body:
        return str(body["detail"])
    return resp.text


# -----------------------------
# Main API client
# -----------------------------


class APIClient:
    """
    Reusable HTTP client for the HRIS backend.

    Use APIClient.get() to obtain a process-wide instance, or construct one
    directly (for instance with a custom transport in tests).
    """

    _instance: Optional["APIClient"] = None

    def __init__(
        self,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url: str = (base_url or _load_base_url()).rstrip("/")
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    # ---------- Singleton helper ----------

    @classmethod
    def get(cls) -> "APIClient":
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    # ---------- Internal helpers ----------

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=10.0,  # seconds
                transport=self._transport,
            )
        return self._client

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        client = await self._ensure_client()
        resp = await client.request(method, path, **kwargs)

        if resp.status_code == 401:
            raise AuthError(_detail(resp), resp.status_code)
        if resp.status_code == 404:
            raise NotFoundError(_detail(resp), resp.status_code)
        if resp.status_code == 409:
            raise ConflictError(_detail(resp), resp.status_code)
        try:
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise APIError(f"{method} {path} failed: {_detail(resp)}", resp.status_code) from exc
        try:
            return resp.json()
        except ValueError as exc:
            raise APIError(f"{method} {path} returned a non-JSON body", resp.status_code) from exc

    async def _list(self, path: str) -> List[Dict[str, Any]]:
        data = await self._request("GET", path)
        if not isinstance(data, list):
            raise APIError(f"Expected a list from {path}")
        return data

    @property
    def websocket_url(self) -> str:
        return websocket_url(self.base_url)

    # ---------- Public methods ----------

    async def close(self) -> None:
        """Close underlying HTTP connection pool."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def health(self) -> Dict[str, Any]:
        return await self._request("GET", "/health")

    # ---- Records ----

    async def list_records(self) -> List[Dict[str, Any]]:
        return await self._list("/records")

    async def create_record(self, name: str) -> Dict[str, Any]:
        return await self._request("POST", "/records", json={"name": name})

    async def update_record(self, record_id: int, name: str) -> Dict[str, Any]:
        return await self._request("PUT", f"/records/{record_id}", json={"name": name})

    async def delete_record(self, record_id: int) -> Dict[str, Any]:
        return await self._request("DELETE", f"/records/{record_id}")

    # ---- Users ----

    async def list_users(self) -> List[Dict[str, Any]]:
        return await self._list("/api/users")

    async def get_user(self, user_id: int) -> Dict[str, Any]:
        return await self._request("GET", f"/api/users/{user_id}")

    async def create_user(
        self,
        fields: Dict[str, Any],
        picture: Optional[Tuple[str, BinaryIO | bytes, str]] = None,
    ) -> Dict[str, Any]:
        """
        POST /api/users as a multipart form.

        ``picture`` is an httpx file tuple: (filename, content, content_type).
        """
        files = {"p_pic": picture} if picture else None
        return await self._request("POST", "/api/users", data=fields, files=files)

    async def update_profile(
        self,
        user_id: int,
        f_name: str,
        l_name: str,
        picture: Optional[Tuple[str, BinaryIO | bytes, str]] = None,
    ) -> Dict[str, Any]:
        files = {"p_pic": picture} if picture else None
        return await self._request(
            "PUT",
            f"/api/users/{user_id}",
            data={"f_name": f_name, "l_name": l_name},
            files=files,
        )

    async def update_picture(
        self, user_id: int, picture: Tuple[str, BinaryIO | bytes, str]
    ) -> Dict[str, Any]:
        return await self._request("PUT", f"/api/users/{user_id}/pic", files={"p_pic": picture})

    # ---- Authentication ----

    async def login(self, username: str, password: str) -> Dict[str, Any]:
        """
        Call /login and return the public user fields on success.

        Raises AuthError when the backend answers 401.
        """
        data = await self._request("POST", "/login", json={"username": username, "password": password})
        return data.get("user", {})

    # ---- Leave requests & notifications ----

    async def list_leave_requests(self) -> List[Dict[str, Any]]:
        return await self._list("/leave_requests")

    async def create_leave_request(
        self, employee_id: int, leave_type: str, start_date: str, end_date: str
    ) -> int:
        data = await self._request(
            "POST",
            "/api/leave-request",
            json={
                "employee_id": employee_id,
                "leave_type": leave_type,
                "start_date": start_date,
                "end_date": end_date,
            },
        )
        return int(data["id"])

    async def set_leave_status(self, leave_id: int, status: str) -> Dict[str, Any]:
        return await self._request("PUT", f"/leave_requests/{leave_id}", json={"status": status})

    async def list_notifications(self) -> List[Dict[str, Any]]:
        return await self._list("/notifications")


def get_api_client() -> APIClient:
    """Return the process-wide singleton APIClient."""
    return APIClient.get()


async def _demo() -> None:
    """
    Quick manual check against a running backend:

        python -m hris_client.api_client
    """
    client = APIClient.get()
    print(f"Base URL: {client.base_url}")
    print(await client.health())
    print("Records:", await client.list_records())
    await client.close()


if __name__ == "__main__":
    asyncio.run(_demo())
