from __future__ import annotations

import base64
import binascii
import logging

from solana.exceptions import SolanaRpcException
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment, Confirmed
from solana.rpc.core import (
    RPCException,
    TransactionExpiredBlockheightExceededError,
    UnconfirmedTxError,
)
from solana.rpc.types import TxOpts
from solders.keypair import Keypair
from solders.transaction import Transaction

from .errors import SubmissionError

log = logging.getLogger("submit")


def decode_transaction(payload: str) -> Transaction:
    """Legacy transaction from the base64 ``hash`` the service builds."""
    try:
        return Transaction.from_bytes(base64.b64decode(payload))
    except (binascii.Error, ValueError) as e:
        raise SubmissionError(f"Unusable transaction payload: {e}") from e


class TransactionSubmitter:
    def __init__(self, client: AsyncClient, commitment: Commitment = Confirmed) -> None:
        self.client = client
        self.commitment = commitment

    async def submit(self, payload: str, keypair: Keypair) -> str:
        tx = decode_transaction(payload)
        # Same blockhash keeps the fee payer's co-signature in place.
        tx.partial_sign([keypair], tx.message.recent_blockhash)

        try:
            return await self._send_and_confirm(tx)
        except TransactionExpiredBlockheightExceededError:
            log.warning("Transaction expired: block height exceeded. Retrying...")

        # Resends the same bytes: the co-signed blockhash can't be replaced
        # here, so once it has really expired the node rejects this at
        # preflight and it surfaces as SubmissionError.
        try:
            return await self._send_and_confirm(tx)
        except TransactionExpiredBlockheightExceededError as e:
            raise SubmissionError(f"Retry failed: {e}") from e

    async def _send_and_confirm(self, tx: Transaction) -> str:
        try:
            latest = await self.client.get_latest_blockhash(self.commitment)
            resp = await self.client.send_raw_transaction(
                bytes(tx),
                opts=TxOpts(
                    skip_confirmation=True, preflight_commitment=self.commitment
                ),
            )
            if not resp.value:
                raise SubmissionError("No signature returned from transaction")

            signature = resp.value
            log.debug("Transaction sent: %s", signature)
            status = await self.client.confirm_transaction(
                signature,
                self.commitment,
                last_valid_block_height=latest.value.last_valid_block_height,
            )
        except (RPCException, SolanaRpcException, UnconfirmedTxError) as e:
            raise SubmissionError(f"Transaction failed: {e}") from e

        statuses = status.value
        if not statuses or statuses[0] is None:
            raise SubmissionError(f"Transaction {signature} was never confirmed")
        if statuses[0].err is not None:
            raise SubmissionError(f"Transaction {signature} failed: {statuses[0].err}")
        return str(signature)
