from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from .errors import ConfigurationError
from .project_constants import (
    BATCH_DELAY_S,
    DEVNET_URL,
    DRAWS_PER_BATCH,
    POLL_RETRIES,
    POLL_RETRY_DELAY_S,
    SETTLE_DELAY_S,
    SONIC_API_URL,
)

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


@dataclass(frozen=True)
class Settings:
    private_key: str
    rpc_url: str = DEVNET_URL
    api_url: str = SONIC_API_URL
    batch_size: int = DRAWS_PER_BATCH
    batch_delay: float = BATCH_DELAY_S
    poll_retry_delay: float = POLL_RETRY_DELAY_S
    poll_retries: int = POLL_RETRIES
    settle_delay: float = SETTLE_DELAY_S

    @staticmethod
    def from_env(
        rpc_url_override: str | None = None,
        api_url_override: str | None = None,
        batch_size_override: int | None = None,
        batch_delay_override: float | None = None,
    ) -> "Settings":
        load_dotenv()

        private_key = os.getenv("PRIVATE_KEY", "").strip()
        if not private_key:
            raise ConfigurationError(
                "Missing PRIVATE_KEY. Put it in .env or export it."
            )

        # CLI flags win over env, env wins over the built-in defaults.
        rpc_url = rpc_url_override or os.getenv("RPC_URL", "").strip() or DEVNET_URL
        api_url = (
            api_url_override or os.getenv("SONIC_API_URL", "").strip() or SONIC_API_URL
        )

        if batch_size_override is not None:
            batch_size = batch_size_override
        else:
            batch_size = _env_number("BATCH_SIZE", int, DRAWS_PER_BATCH)
        if batch_delay_override is not None:
            batch_delay = batch_delay_override
        else:
            batch_delay = _env_number("BATCH_DELAY", float, BATCH_DELAY_S)

        settings = Settings(
            private_key=private_key,
            rpc_url=rpc_url,
            api_url=api_url.rstrip("/"),
            batch_size=batch_size,
            batch_delay=batch_delay,
            poll_retry_delay=_env_number("POLL_RETRY_DELAY", float, POLL_RETRY_DELAY_S),
            poll_retries=_env_number("POLL_RETRIES", int, POLL_RETRIES),
            settle_delay=_env_number("SETTLE_DELAY", float, SETTLE_DELAY_S),
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        if self.batch_size < 1:
            raise ConfigurationError(f"Batch size must be >= 1, got {self.batch_size}")
        if self.poll_retries < 0:
            raise ConfigurationError(
                f"Poll retries must be >= 0, got {self.poll_retries}"
            )
        for name in ("batch_delay", "poll_retry_delay", "settle_delay"):
            if getattr(self, name) < 0:
                raise ConfigurationError(f"{name} must be >= 0")


def _env_number(name: str, kind: type, default):
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return kind(raw)
    except ValueError:
        raise ConfigurationError(f"{name} is not a valid {kind.__name__}: {raw!r}")


def parse_draw_count(raw: Optional[str]) -> int:
    """Leading integer of the operator's answer; anything unusable means 1."""
    if raw is None:
        return 1
    m = _LEADING_INT.match(raw)
    if not m:
        return 1
    count = int(m.group(1))
    return count if count >= 1 else 1
