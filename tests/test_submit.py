import base64
from types import SimpleNamespace

import pytest
from solana.rpc.core import RPCException, TransactionExpiredBlockheightExceededError
from solders.signature import Signature
from solders.transaction import Transaction

from sonic_ring.errors import SubmissionError
from sonic_ring.submit import TransactionSubmitter

from conftest import FakeRpc


def expired():
    return TransactionExpiredBlockheightExceededError(
        "has expired: block height exceeded"
    )


async def test_submit_keeps_the_fee_payer_signature(payload, user):
    rpc = FakeRpc()
    original = Transaction.from_bytes(base64.b64decode(payload))

    signature = await TransactionSubmitter(rpc).submit(payload, user)

    (raw,) = rpc.sent
    sent = Transaction.from_bytes(raw)
    assert sent.signatures[0] == original.signatures[0]
    assert sent.signatures[1] != Signature.default()
    assert signature == str(sent.signatures[0])


async def test_expired_transaction_is_retried_once(payload, user):
    rpc = FakeRpc(outcomes=[expired(), None])
    signature = await TransactionSubmitter(rpc).submit(payload, user)
    assert signature
    assert len(rpc.sent) == 2
    assert rpc.sent[0] == rpc.sent[1]


async def test_expired_twice_fails(payload, user):
    rpc = FakeRpc(outcomes=[expired(), expired(), None])
    with pytest.raises(SubmissionError, match="Retry failed"):
        await TransactionSubmitter(rpc).submit(payload, user)
    assert len(rpc.sent) == 2


async def test_other_failures_are_not_retried(payload, user):
    rpc = FakeRpc(outcomes=[RPCException("node is behind"), None])
    with pytest.raises(SubmissionError, match="node is behind"):
        await TransactionSubmitter(rpc).submit(payload, user)
    assert len(rpc.sent) == 1


async def test_failed_on_chain(payload, user):
    rpc = FakeRpc(outcomes=[SimpleNamespace(err="InstructionError")])
    with pytest.raises(SubmissionError, match="InstructionError"):
        await TransactionSubmitter(rpc).submit(payload, user)
    assert len(rpc.sent) == 1


async def test_no_signature_returned(payload, user):
    rpc = FakeRpc(no_signature=True)
    with pytest.raises(SubmissionError, match="No signature"):
        await TransactionSubmitter(rpc).submit(payload, user)
    assert len(rpc.sent) == 1


async def test_garbage_payload(user):
    rpc = FakeRpc()
    with pytest.raises(SubmissionError, match="payload"):
        await TransactionSubmitter(rpc).submit("bm90IGEgdHJhbnNhY3Rpb24=", user)
    assert rpc.sent == []
