from __future__ import annotations

import asyncio
import logging
from typing import Optional

from solders.keypair import Keypair

from .api import SonicApi
from .errors import AuthenticationError, RemoteError
from .wallet import address_of, encoded_address_of, shorten, sign_detached

log = logging.getLogger("auth")


async def authenticate(api: SonicApi, keypair: Keypair) -> str:
    """Challenge/response login; returns the session token."""
    address = address_of(keypair)
    try:
        challenge = await api.challenge(address)
        message = challenge.get("data")
        if not isinstance(message, str):
            raise AuthenticationError("Challenge response has no data to sign.")

        signature = sign_detached(keypair, message.encode("utf-8"))
        resp = await api.authorize(address, encoded_address_of(keypair), signature)
    except RemoteError as e:
        raise AuthenticationError(f"Error fetching token: {e}") from e

    data = resp.get("data")
    token = data.get("token") if isinstance(data, dict) else None
    if not token:
        raise AuthenticationError("Authorize response has no data.token.")

    log.info("Token obtained: %s", shorten(token))
    return token


class TokenHolder:
    """The session token shared by every draw of a run.

    Draws read ``token`` once when they are dispatched and keep that value;
    ``refresh`` swaps in a new one for whoever reads it next.
    """

    def __init__(
        self, api: SonicApi, keypair: Optional[Keypair], token: Optional[str] = None
    ) -> None:
        self.api = api
        self.keypair = keypair
        self.token = token
        self.refreshes = 0
        self._lock = asyncio.Lock()

    @property
    def can_refresh(self) -> bool:
        return self.keypair is not None

    async def login(self) -> str:
        if self.keypair is None:
            raise AuthenticationError("No credential available to authenticate.")
        self.token = await authenticate(self.api, self.keypair)
        return self.token

    async def refresh(self, stale: Optional[str]) -> str:
        """Replace ``stale`` with a fresh token.

        Concurrent callers holding the same stale token share a single
        re-authentication.
        """
        async with self._lock:
            if self.token is not None and self.token != stale:
                return self.token
            log.warning("Token expired or invalid. Refreshing token...")
            await self.login()
            self.refreshes += 1
            log.info("Token refreshed.")
            return self.token
