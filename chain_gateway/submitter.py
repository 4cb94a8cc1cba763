"""
TransactionSubmitter — sign, send and confirm a Solana transaction.

The blockhash is read immediately before signing because blockhashes expire;
the only wait allowed in front of it is the bounded settle delay. Once a
transaction has been sent it is never resent: a rejection or timeout is
surfaced to the caller, since resubmitting risks a duplicate proof.
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Callable, Sequence

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey
from solana.rpc.core import RPCException, TransactionExpiredBlockheightExceededError, UnconfirmedTxError
from solana.rpc.types import TxOpts
from solders.hash import Hash
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.message import Message
from solders.signature import Signature
from solders.transaction import Transaction

from chain_gateway.config import MAX_SETTLE_DELAY
from chain_gateway.errors import (
    ConfirmationTimeoutError,
    ConnectionError,
    EncodingError,
    SubmissionError,
)
from chain_gateway.records import TransactionResult
from chain_gateway.transaction import TRANSPORT_ERRORS

logger = logging.getLogger(__name__)

# Largest serialized transaction a Solana node accepts (IPv6 MTU minus headers)
PACKET_DATA_SIZE = 1232


class StoreState(Enum):
    """Lifecycle of one store request. Nothing carries over between requests."""
    BUILDING = "building"
    SIGNING = "signing"
    SUBMITTING = "submitting"
    CONFIRMED = "confirmed"
    FAILED = "failed"


def verify_signatures(tx: Transaction) -> None:
    """
    Check every required signature on `tx` against its message.

    Raises:
        SubmissionError: If a signature is missing or does not verify.
    """
    message = tx.message
    required = message.account_keys[:message.header.num_required_signatures]
    if len(tx.signatures) != len(required):
        raise SubmissionError(
            f"Transaction has {len(tx.signatures)} signatures, {len(required)} required"
        )

    message_bytes = tx.message_data()
    for pubkey, signature in zip(required, tx.signatures):
        try:
            Ed25519PublicKey.from_public_bytes(bytes(pubkey)).verify(bytes(signature), message_bytes)
        except InvalidSignature:
            raise SubmissionError(f"Signature for {pubkey} does not verify") from None


class TransactionSubmitter:
    """
    Args:
        client: solana-py AsyncClient.
        commitment: Level at which a transaction counts as confirmed.
        confirm_timeout: Seconds to wait for confirmation before giving up.
        settle_delay: Seconds to wait before reading the blockhash, clamped
            to MAX_SETTLE_DELAY.
        sleep: Injected for tests.
        clock: Source of unix time for confirmation_time.
    """

    def __init__(
        self,
        client,
        commitment: str = "confirmed",
        confirm_timeout: float = 60.0,
        settle_delay: float = 0.0,
        sleep=asyncio.sleep,
        clock: Callable[[], float] = time.time,
    ):
        self.client = client
        self.commitment = commitment
        self.confirm_timeout = confirm_timeout
        self.settle_delay = min(max(settle_delay, 0.0), MAX_SETTLE_DELAY)
        self._sleep = sleep
        self._clock = clock

    async def submit(
        self,
        instructions: Sequence[Instruction],
        signers: Sequence[Keypair],
        on_state: Callable[[StoreState], None] = None,
    ) -> TransactionResult:
        """
        Sign with every signer, send, and wait for confirmation.

        The first signer pays the fee.

        Raises:
            SubmissionError: No signers, a signer mismatch, or the ledger
                rejected the transaction.
            EncodingError: The signed transaction exceeds the packet size.
            ConnectionError: The blockhash could not be fetched.
            ConfirmationTimeoutError: Sent but not confirmed in time.
        """
        if not signers:
            raise SubmissionError("No signers provided")
        notify = on_state or (lambda state: None)

        if self.settle_delay:
            await self._sleep(self.settle_delay)

        notify(StoreState.SIGNING)
        blockhash, last_valid_block_height = await self.latest_blockhash()
        tx = self.sign(instructions, signers, blockhash)

        raw = bytes(tx)
        if len(raw) > PACKET_DATA_SIZE:
            raise EncodingError(
                f"Transaction is {len(raw)} bytes, limit is {PACKET_DATA_SIZE}"
            )

        notify(StoreState.SUBMITTING)
        signature = await self._send(raw, last_valid_block_height)
        status = await self._confirm(signature, last_valid_block_height)
        notify(StoreState.CONFIRMED)

        return TransactionResult(
            transaction_id=str(signature),
            block_height=status.slot,
            confirmation_time=int(self._clock()),
        )

    async def latest_blockhash(self) -> tuple[Hash, int]:
        try:
            resp = await self.client.get_latest_blockhash(self.commitment)
        except TRANSPORT_ERRORS as e:
            raise ConnectionError(f"Failed to fetch latest blockhash: {e}") from e
        except RPCException as e:
            raise SubmissionError(f"Blockhash request rejected: {e}") from e
        return resp.value.blockhash, resp.value.last_valid_block_height

    def sign(
        self,
        instructions: Sequence[Instruction],
        signers: Sequence[Keypair],
        blockhash: Hash,
    ) -> Transaction:
        """Build a legacy transaction paid by signers[0] and sign it with all signers."""
        message = Message.new_with_blockhash(list(instructions), signers[0].pubkey(), blockhash)

        required = set(message.account_keys[:message.header.num_required_signatures])
        provided = {kp.pubkey() for kp in signers}
        missing = required - provided
        if missing:
            raise SubmissionError(f"Missing signers: {', '.join(sorted(map(str, missing)))}")
        extra = provided - required
        if extra:
            raise SubmissionError(
                f"Signers not required by the transaction: {', '.join(sorted(map(str, extra)))}"
            )

        tx = Transaction(list(signers), message, blockhash)
        verify_signatures(tx)
        return tx

    async def _send(self, raw: bytes, last_valid_block_height: int) -> Signature:
        opts = TxOpts(
            skip_confirmation=True,
            preflight_commitment=self.commitment,
            last_valid_block_height=last_valid_block_height,
        )
        try:
            resp = await self.client.send_raw_transaction(raw, opts=opts)
        except RPCException as e:
            raise SubmissionError(f"Transaction rejected: {e}") from e
        except TRANSPORT_ERRORS as e:
            raise SubmissionError(f"Transaction could not be sent: {e}") from e
        logger.debug("Sent transaction %s", resp.value)
        return resp.value

    async def _confirm(self, signature: Signature, last_valid_block_height: int):
        try:
            resp = await asyncio.wait_for(
                self.client.confirm_transaction(
                    signature,
                    self.commitment,
                    last_valid_block_height=last_valid_block_height,
                ),
                timeout=self.confirm_timeout,
            )
        except (asyncio.TimeoutError, UnconfirmedTxError, TransactionExpiredBlockheightExceededError) as e:
            raise ConfirmationTimeoutError(
                f"Transaction {signature} not confirmed at '{self.commitment}' commitment"
            ) from e
        except RPCException as e:
            raise SubmissionError(f"Transaction {signature} failed: {e}") from e
        except TRANSPORT_ERRORS as e:
            raise ConfirmationTimeoutError(
                f"Lost contact while confirming transaction {signature}: {e}"
            ) from e

        status = resp.value[0] if resp.value else None
        if status is None:
            raise ConfirmationTimeoutError(f"No status for transaction {signature}")
        if status.err is not None:
            raise SubmissionError(f"Transaction {signature} failed on chain: {status.err}")
        return status
