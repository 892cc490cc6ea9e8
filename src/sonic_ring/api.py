from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from .errors import RemoteError
from .project_constants import HEADERS, HTTP_TIMEOUT_S, SONIC_API_URL


class SonicApi:
    """Thin async client for the Odyssey lottery endpoints.

    Returns decoded JSON bodies and raises ``RemoteError`` for anything else;
    callers translate that into the error of the step they are running.
    """

    def __init__(
        self,
        base_url: str = SONIC_API_URL,
        timeout_s: float = HTTP_TIMEOUT_S,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url
        self.client = httpx.AsyncClient(
            base_url=base_url,
            headers=HEADERS,
            timeout=timeout_s,
            transport=transport,
        )

    async def close(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> "SonicApi":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def challenge(self, wallet: str) -> Dict[str, Any]:
        return await self._request(
            "GET", "/auth/sonic/challenge", params={"wallet": wallet}
        )

    async def authorize(
        self, address: str, address_encoded: str, signature: str
    ) -> Dict[str, Any]:
        payload = {
            "address": address,
            "address_encoded": address_encoded,
            "signature": signature,
        }
        return await self._request("POST", "/auth/sonic/authorize", json=payload)

    async def build_tx(self, token: str) -> Dict[str, Any]:
        return await self._request("GET", "/user/lottery/build-tx", token=token)

    async def draw(self, token: str, signature: str) -> Dict[str, Any]:
        return await self._request(
            "POST", "/user/lottery/draw", token=token, json={"hash": signature}
        )

    async def draw_winner(self, token: str, block_number: Any) -> Dict[str, Any]:
        return await self._request(
            "GET",
            "/user/lottery/draw/winner",
            token=token,
            params={"block_number": block_number},
        )

    async def _request(
        self,
        method: str,
        path: str,
        token: Optional[str] = None,
        **kwargs: Any,
    ) -> Dict[str, Any]:
        headers = {"Authorization": token} if token is not None else None
        try:
            resp = await self.client.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            raise RemoteError(f"{method} {path} failed: {e}") from e

        if resp.is_error:
            raise RemoteError(
                f"{method} {path} returned HTTP {resp.status_code}",
                status=resp.status_code,
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise RemoteError(f"{method} {path} returned invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise RemoteError(f"{method} {path} returned unexpected body: {data!r}")
        return data
