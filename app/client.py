"""Async HTTP client for the ReservApp API.

Injects the bearer token on every request and unwraps the
``{success, message, data}`` envelope.

Usage:
    async with ReservAppClient("https://api.reservapp.com", token_provider=lambda: token) as api:
        venues = await api.get("/api/venues", params={"city": "Cancun"})
"""

import inspect
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

TokenProvider = Callable[[], str | None | Awaitable[str | None]]


def build_auth_headers(token: str | None) -> dict[str, str]:
    """Authorization header for ``token``; empty without one."""
    if not token:
        return {}
    return {"Authorization": f"Bearer {token}"}


class ReservAppAPIError(Exception):
    """Error envelope returned by the API (or a non-JSON failure)."""

    def __init__(
        self, status_code: int, message: str, error: str | None = None, details: Any = None
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.error = error
        self.details = details


class ReservAppClient:
    """Thin wrapper over ``httpx.AsyncClient``.

    Args:
        base_url: API root, e.g. ``http://localhost:8000``
        token_provider: Returns the current access token (sync or async),
            consulted before every request
        timeout: Request timeout in seconds
        transport: Optional httpx transport (tests pass an ASGITransport)
    """

    def __init__(
        self,
        base_url: str,
        token_provider: TokenProvider | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._token_provider = token_provider
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    async def __aenter__(self) -> "ReservAppClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _token(self) -> str | None:
        if self._token_provider is None:
            return None
        token = self._token_provider()
        if inspect.isawaitable(token):
            token = await token
        return token

    async def request(self, method: str, path: str, **kwargs: Any) -> Any:
        """Send a request and return the envelope's ``data``.

        Raises:
            ReservAppAPIError: Non-2xx status or ``success: false`` body
        """
        headers: dict[str, str] = {**build_auth_headers(await self._token()), **kwargs.pop("headers", {})}
        response: httpx.Response = await self._client.request(method, path, headers=headers, **kwargs)

        try:
            body: Any = response.json()
        except ValueError:
            if response.is_success:
                return response.content
            raise ReservAppAPIError(response.status_code, response.text or response.reason_phrase)

        if not response.is_success or (isinstance(body, dict) and body.get("success") is False):
            if isinstance(body, dict):
                raise ReservAppAPIError(
                    response.status_code,
                    str(body.get("message") or body.get("detail") or response.reason_phrase),
                    body.get("error"),
                    body.get("details"),
                )
            raise ReservAppAPIError(response.status_code, response.reason_phrase)

        if isinstance(body, dict) and "success" in body:
            return body.get("data")
        return body

    async def get(self, path: str, **kwargs: Any) -> Any:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs: Any) -> Any:
        return await self.request("POST", path, **kwargs)

    async def put(self, path: str, **kwargs: Any) -> Any:
        return await self.request("PUT", path, **kwargs)

    async def patch(self, path: str, **kwargs: Any) -> Any:
        return await self.request("PATCH", path, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> Any:
        return await self.request("DELETE", path, **kwargs)
