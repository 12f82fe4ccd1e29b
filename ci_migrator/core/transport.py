from __future__ import annotations
import asyncio
import logging
import time
from typing import Any, Optional
import httpx
from ci_migrator.core.errors import AuthenticationError, RemoteStatusError, TransportError

log = logging.getLogger(__name__)

LOGIN_PATH = "/api/auth/client/login"


def successful(response: httpx.Response, operation: str | None = None) -> bytes:
    """Return the body of a 2xx response, raise RemoteStatusError otherwise.

    The body is read in both cases so failures carry the server's diagnostics.
    """
    body = response.content
    if response.status_code < 200 or response.status_code >= 300:
        raise RemoteStatusError(
            response.status_code,
            response.reason_phrase,
            body.decode("utf-8", errors="replace"),
            operation=operation,
        )
    return body


class BearerAuthTransport:
    """httpx client wrapper that keeps a bearer token for the migration API.

    The token is fetched with the client credentials on first use and again
    once ``token_ttl`` has elapsed. A single instance may be shared between
    concurrently running pipelines; token refresh is serialized by a lock so
    only one exchange happens per expiry.
    """

    def __init__(
        self,
        server_url: str,
        client_id: str,
        client_secret: str,
        token_ttl: float = 175 * 60,
        timeout: float = 60.0,
        http: Optional[httpx.AsyncClient] = None,
    ):
        self.server_url = server_url.rstrip("/")
        self.client_id = client_id
        self.client_secret = client_secret
        self.token_ttl = token_ttl
        self._http = http or httpx.AsyncClient(timeout=timeout)
        self._token: str | None = None
        self._expires_at: float = 0.0
        self._lock = asyncio.Lock()

    def url(self, path: str) -> str:
        return f"{self.server_url}/{path.lstrip('/')}"

    @property
    def token_expired(self) -> bool:
        return time.monotonic() >= self._expires_at

    async def _ensure_token(self) -> str:
        async with self._lock:
            if self._token is None or self.token_expired:
                await self.authenticate()
            return self._token

    async def authenticate(self) -> None:
        """Exchange the client credentials for a bearer token and cache it."""
        log.debug("authenticating with migration api using clientID %s", self.client_id)
        try:
            res = await self._http.post(
                self.url(LOGIN_PATH),
                json={"clientID": self.client_id, "clientSecret": self.client_secret},
            )
        except httpx.HTTPError as e:
            raise TransportError(f"error while authenticating: {e}") from e
        try:
            body = successful(res)
        except RemoteStatusError as e:
            raise AuthenticationError(f"authentication failed: {e}") from e
        try:
            token = res.json()["token"]
        except (ValueError, KeyError, TypeError) as e:
            raise AuthenticationError(f"authentication failed: error while reading auth response: {body!r}") from e
        self._token = token
        self._expires_at = time.monotonic() + self.token_ttl

    def _headers(self, token: str) -> dict:
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }

    async def request(self, method: str, path: str, body: Any = None) -> httpx.Response:
        """Send an authenticated request. The response is returned whatever its status."""
        token = await self._ensure_token()
        url = self.url(path)
        try:
            return await self._http.request(method, url, headers=self._headers(token), json=body)
        except httpx.HTTPError as e:
            raise TransportError(f"error while executing http request [{method}]{url}: {e}") from e

    async def get(self, path: str) -> httpx.Response:
        return await self.request("GET", path)

    async def post(self, path: str, body: Any = None) -> httpx.Response:
        return await self.request("POST", path, body)

    async def put(self, path: str, body: Any = None) -> httpx.Response:
        return await self.request("PUT", path, body)

    async def delete(self, path: str) -> httpx.Response:
        return await self.request("DELETE", path)

    async def aclose(self) -> None:
        await self._http.aclose()
