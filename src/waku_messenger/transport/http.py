"""
Async HTTP client for a Waku node's REST API.
"""

from typing import Any, Optional

import httpx

from waku_messenger.errors import TransportError

DEFAULT_TIMEOUT_S = 30.0
USER_AGENT = "waku-messenger/0.1.0"


class HttpClient:
    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT_S,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    @staticmethod
    def _error_message(resp: httpx.Response) -> str:
        """nwaku reports filter errors as {"statusDesc": ...}; everything else is plain text."""
        try:
            data = resp.json()
        except ValueError:
            data = None
        if isinstance(data, dict) and data.get("statusDesc"):
            return str(data["statusDesc"])
        return resp.text[:200]

    @staticmethod
    def _decode(resp: httpx.Response) -> Any:
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError:
            return resp.text

    @property
    def closed(self) -> bool:
        return self._client.is_closed

    async def request(self, method: str, path: str, body: Any = None) -> Any:
        if self.closed:
            raise TransportError(f"{method} {path} failed: client is closed")
        try:
            resp = await self._client.request(method, path, json=body)
        except httpx.HTTPError as e:
            raise TransportError(f"{method} {path} failed: {e}") from e
        if resp.status_code >= 400:
            raise TransportError(
                f"HTTP {resp.status_code}: {self._error_message(resp)}",
                status_code=resp.status_code,
            )
        return self._decode(resp)

    async def get(self, path: str) -> Any:
        return await self.request("GET", path)

    async def post(self, path: str, body: Any = None) -> Any:
        return await self.request("POST", path, body)

    async def delete(self, path: str, body: Any = None) -> Any:
        return await self.request("DELETE", path, body)

    async def close(self) -> None:
        await self._client.aclose()
