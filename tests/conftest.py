from __future__ import annotations

import asyncio
import base64
import json
from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Tuple

import httpx
import pytest
from solders.hash import Hash
from solders.keypair import Keypair
from solders.system_program import TransferParams, transfer
from solders.transaction import Transaction

from sonic_ring.api import SonicApi
from sonic_ring.auth import TokenHolder
from sonic_ring.config import Settings
from sonic_ring.runner import DrawContext
from sonic_ring.submit import TransactionSubmitter

CHALLENGE = "/auth/sonic/challenge"
AUTHORIZE = "/auth/sonic/authorize"
BUILD_TX = "/user/lottery/build-tx"
DRAW = "/user/lottery/draw"
WINNER = "/user/lottery/draw/winner"


def make_payload(user: Keypair, fee_payer: Keypair) -> str:
    """A lottery-like transaction already signed by the service's fee payer."""
    ix = transfer(
        TransferParams(
            from_pubkey=user.pubkey(), to_pubkey=fee_payer.pubkey(), lamports=1
        )
    )
    tx = Transaction.new_with_payer([ix], fee_payer.pubkey())
    tx.partial_sign([fee_payer], Hash.default())
    return base64.b64encode(bytes(tx)).decode("ascii")


class FakeService:
    """Scripted stand-in for the lottery API behind ``httpx.MockTransport``.

    Each route holds a queue of replies; the last one repeats forever.
    A reply is ``(status, body)`` or a callable taking the request.
    """

    def __init__(self) -> None:
        self.routes: Dict[Tuple[str, str], List[Any]] = {}
        self.calls: List[httpx.Request] = []

    def on(self, method: str, path: str, *replies: Any) -> "FakeService":
        self.routes[(method, path)] = list(replies)
        return self

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        queue = self.routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, json={"message": "not found"})
        reply = queue.pop(0) if len(queue) > 1 else queue[0]
        if callable(reply):
            reply = reply(request)
        if isinstance(reply, httpx.Response):
            return reply
        status, body = reply
        return httpx.Response(status, json=body)

    def requests(self, method: str, path: str) -> List[httpx.Request]:
        return [
            r for r in self.calls if r.method == method and r.url.path == path
        ]

    def count(self, method: str, path: str) -> int:
        return len(self.requests(method, path))


def body_of(request: httpx.Request) -> Dict[str, Any]:
    return json.loads(request.content)


class FakeRpc:
    """Just enough of ``solana.rpc.async_api.AsyncClient`` for the submitter.

    ``outcomes`` are consumed one per confirmation: ``None`` confirms,
    an exception instance is raised, anything else is used as the status.
    """

    def __init__(self, outcomes: List[Any] | None = None, no_signature: bool = False):
        self.outcomes = list(outcomes or [])
        self.no_signature = no_signature
        self.sent: List[bytes] = []

    async def get_latest_blockhash(self, commitment=None):
        return SimpleNamespace(
            value=SimpleNamespace(blockhash=Hash.default(), last_valid_block_height=100)
        )

    async def send_raw_transaction(self, txn: bytes, opts=None):
        self.sent.append(txn)
        if self.no_signature:
            return SimpleNamespace(value=None)
        return SimpleNamespace(value=Transaction.from_bytes(txn).signatures[0])

    async def confirm_transaction(
        self, tx_sig, commitment=None, sleep_seconds=0.5, last_valid_block_height=None
    ):
        outcome = self.outcomes.pop(0) if self.outcomes else None
        if isinstance(outcome, Exception):
            raise outcome
        if outcome is None:
            outcome = SimpleNamespace(err=None)
        return SimpleNamespace(value=[outcome])


@pytest.fixture
def user() -> Keypair:
    return Keypair()


@pytest.fixture
def fee_payer() -> Keypair:
    return Keypair()


@pytest.fixture
def payload(user: Keypair, fee_payer: Keypair) -> str:
    return make_payload(user, fee_payer)


@pytest.fixture
def service(payload: str) -> FakeService:
    """Happy-path service: every call succeeds and the draw is settled."""
    return (
        FakeService()
        .on("GET", CHALLENGE, (200, {"data": "sign this challenge"}))
        .on("POST", AUTHORIZE, (200, {"data": {"token": "token-1"}}))
        .on("GET", BUILD_TX, (200, {"data": {"hash": payload}}))
        .on("POST", DRAW, (200, {"data": {"block_number": 42}}))
        .on("GET", WINNER, (200, {"data": {"winner": "addr123", "block_number": 42}}))
    )


@pytest.fixture
async def api(service: FakeService):
    client = SonicApi("https://api.test", transport=httpx.MockTransport(service.handler))
    yield client
    await client.close()


@pytest.fixture
def sleeps(monkeypatch) -> List[float]:
    """Records every asyncio.sleep delay and skips the actual wait."""
    recorded: List[float] = []
    real_sleep = asyncio.sleep

    async def fake_sleep(delay, *args, **kwargs):
        recorded.append(delay)
        await real_sleep(0)

    monkeypatch.setattr(asyncio, "sleep", fake_sleep)
    return recorded


@pytest.fixture
def rpc() -> FakeRpc:
    return FakeRpc()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        private_key="unused-in-tests",
        batch_size=50,
        batch_delay=59.0,
        poll_retry_delay=5.0,
        poll_retries=1,
        settle_delay=1.0,
    )


@pytest.fixture
def make_ctx(api: SonicApi, rpc: FakeRpc, user: Keypair) -> Callable[..., DrawContext]:
    def _make(settings: Settings, keypair: Keypair | None = user) -> DrawContext:
        return DrawContext(
            api=api,
            submitter=TransactionSubmitter(rpc),
            holder=TokenHolder(api, keypair),
            keypair=user,
            settings=settings,
        )

    return _make
