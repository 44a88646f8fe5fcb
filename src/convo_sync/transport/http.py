"""
HTTP client shared by the auth service, GraphQL store and reply webhook.
"""

from typing import Any, Optional

import httpx

from convo_sync.errors import ConnectionError

USER_AGENT = "convo-sync/0.1.0"
DEFAULT_TIMEOUT_S = 30.0


class HttpClient:
    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT_S,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._client = httpx.AsyncClient(
            headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    @staticmethod
    def _headers(token: Optional[str]) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def post(self, url: str, body: Optional[dict[str, Any]] = None, token: Optional[str] = None) -> httpx.Response:
        """POST a JSON body. Status handling is left to the caller; transport failures raise ConnectionError."""
        try:
            return await self._client.post(url, json=body, headers=self._headers(token))
        except httpx.TimeoutException as e:
            raise ConnectionError(f"Request to {url} timed out: {e}", code="timeout")
        except httpx.HTTPError as e:
            raise ConnectionError(f"Request to {url} failed: {e}")

    @staticmethod
    def json_or_none(resp: httpx.Response) -> Any:
        try:
            return resp.json()
        except ValueError:
            return None

    async def close(self) -> None:
        await self._client.aclose()
