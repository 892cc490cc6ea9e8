from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict

from .api import SonicApi
from .auth import TokenHolder
from .errors import BuildError, ParticipationError, PollError, RemoteError
from .project_constants import POLL_RETRIES, POLL_RETRY_DELAY_S

log = logging.getLogger("lottery")


def _data(body: Dict[str, Any], what: str) -> Dict[str, Any]:
    data = body.get("data")
    if not isinstance(data, dict):
        raise RemoteError(f"{what} response has no data object: {body!r}")
    return data


async def build_transaction(api: SonicApi, token: str) -> Dict[str, Any]:
    """Unsigned lottery transaction; ``hash`` holds it base64 encoded."""
    try:
        data = _data(await api.build_tx(token), "build-tx")
    except RemoteError as e:
        raise BuildError(f"Error building lottery transaction: {e}", e.status) from e
    if not isinstance(data.get("hash"), str):
        raise BuildError(f"build-tx response has no transaction hash: {data!r}")
    return data


def _draw_data(body: Dict[str, Any]) -> Dict[str, Any]:
    data = _data(body, "draw")
    if data.get("block_number") is None:
        raise RemoteError(f"draw response has no block_number: {data!r}")
    return data


async def participate(
    api: SonicApi, holder: TokenHolder, token: str, signature: str
) -> Dict[str, Any]:
    try:
        return _draw_data(await api.draw(token, signature))
    except RemoteError as e:
        if not e.unauthorized:
            raise ParticipationError(
                f"Error participating in lottery draw: {e}", e.status
            ) from e
        if not holder.can_refresh:
            raise ParticipationError(
                "Token rejected and no private key to refresh it", e.status
            ) from e

    log.warning("Token might be invalid. Refreshing token...")
    token = await holder.refresh(token)
    log.info("Retrying draw with new token...")
    try:
        return _draw_data(await api.draw(token, signature))
    except RemoteError as e:
        raise ParticipationError(
            f"Draw retry with refreshed token failed: {e}", e.status
        ) from e


def is_pending(result: Dict[str, Any]) -> bool:
    return result.get("winner") is None


async def check_result(api: SonicApi, token: str, block_number: Any) -> Dict[str, Any]:
    try:
        return _data(await api.draw_winner(token, block_number), "draw-result")
    except RemoteError as e:
        raise PollError(f"Error checking lottery result: {e}", e.status) from e


async def poll_result(
    api: SonicApi,
    token: str,
    block_number: Any,
    retry_delay: float = POLL_RETRY_DELAY_S,
    retries: int = POLL_RETRIES,
) -> Dict[str, Any]:
    """Draw outcome for ``block_number``.

    A pending answer (no winner yet) is asked again after ``retry_delay``,
    at most ``retries`` times. Whatever the last query returns is the result.
    Transport errors are raised, not retried.
    """
    result = await check_result(api, token, block_number)
    for _ in range(retries):
        if not is_pending(result):
            break
        log.info("No winner yet, retrying after %s seconds...", retry_delay)
        await asyncio.sleep(retry_delay)
        result = await check_result(api, token, block_number)
    return result
