"""HTTP client for the auth API."""

from typing import Any, Optional

import httpx


class ApiError(Exception):
    """The API answered with an error status."""

    def __init__(self, status_code: int, reason: str, detail: str):
        self.status_code = status_code
        self.reason = reason
        self.detail = detail
        super().__init__(f"{detail} ({status_code} {reason})")


class ApiUnreachable(Exception):
    """The API could not be reached."""


class TowerClient:
    """Thin synchronous wrapper over the /auth endpoints.

    Args:
        base_url: API root, e.g. http://localhost:3000
        timeout: Per-request timeout in seconds
        transport: Optional httpx transport (tests pass a MockTransport)
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self._http = httpx.Client(base_url=base_url, timeout=timeout, transport=transport)

    def close(self) -> None:
        self._http.close()

    def _request(
        self,
        method: str,
        path: str,
        json: Optional[dict] = None,
        access_token: Optional[str] = None,
    ) -> dict[str, Any]:
        headers = {"Authorization": f"Bearer {access_token}"} if access_token else None
        try:
            response = self._http.request(method, path, json=json, headers=headers)
        except httpx.TransportError as e:
            raise ApiUnreachable(
                f"Network error - is the API server running at {self._http.base_url}?"
            ) from e

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if response.is_error:
            raise ApiError(
                response.status_code,
                body.get("error", "unknown_error"),
                body.get("detail", f"Request failed with status {response.status_code}"),
            )
        return body

    def register(self, username: str, password: str) -> dict[str, Any]:
        return self._request(
            "POST", "/auth/register", json={"username": username, "password": password}
        )

    def login(self, username: str, password: str) -> dict[str, Any]:
        return self._request(
            "POST", "/auth/login", json={"username": username, "password": password}
        )

    def refresh(self, refresh_token: str) -> dict[str, Any]:
        return self._request(
            "POST", "/auth/refresh", json={"refreshToken": refresh_token}
        )

    def logout(self, refresh_token: str) -> dict[str, Any]:
        return self._request("POST", "/auth/logout", json={"refreshToken": refresh_token})

    def me(self, access_token: str) -> dict[str, Any]:
        return self._request("GET", "/auth/me", access_token=access_token)
