"""
TransactionBuilder — turns a ContentRecord into Solana instructions.

Each record gets its own freshly generated storage account. With the
create-account policy the transaction both creates that account (funded to
be rent exempt, sized to the payload, owned by the program) and calls the
program to populate it, so the storage account must sign alongside the
payer. With the implicit policy the program allocates storage itself and
only the payer signs.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable

import httpx
from solana.exceptions import SolanaRpcException
from solana.rpc.core import RPCException
from solders.instruction import AccountMeta, Instruction
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.system_program import ID as SYSTEM_PROGRAM_ID
from solders.system_program import CreateAccountParams, create_account

from chain_gateway.codec import InstructionCodec
from chain_gateway.config import ProvisioningPolicy
from chain_gateway.errors import CollisionError, ConnectionError, SubmissionError
from chain_gateway.records import ContentRecord

logger = logging.getLogger(__name__)

# Failures that mean the RPC endpoint never answered
TRANSPORT_ERRORS = (SolanaRpcException, httpx.HTTPError, OSError)


@dataclass
class BuiltTransaction:
    """Ordered instructions plus every keypair that must sign them."""
    instructions: list[Instruction]
    signers: list[Keypair]
    storage_account: Keypair
    payload: bytes = field(repr=False, default=b"")


def check_collision(candidate: Pubkey, payer: Pubkey, program_id: Pubkey) -> None:
    """Reject a generated key that equals the payer or the program id."""
    if candidate == payer:
        raise CollisionError(f"Generated account {candidate} collides with the payer")
    if candidate == program_id:
        raise CollisionError(f"Generated account {candidate} collides with the program id")


class TransactionBuilder:
    """
    Args:
        client: solana-py AsyncClient, used for the rent-exemption query.
        program_id: The proof program that owns storage accounts.
        codec: Encoder for the program's instruction data.
        policy: Whether to create the storage account in the same transaction.
        commitment: Commitment for the rent query.
        new_keypair: Source of storage-account keypairs.
    """

    def __init__(
        self,
        client,
        program_id: Pubkey,
        codec: InstructionCodec = None,
        policy: ProvisioningPolicy = ProvisioningPolicy.CREATE_ACCOUNT,
        commitment: str = "confirmed",
        new_keypair: Callable[[], Keypair] = Keypair,
    ):
        self.client = client
        self.program_id = program_id
        self.codec = codec or InstructionCodec()
        self.policy = policy
        self.commitment = commitment
        self._new_keypair = new_keypair

    async def build(self, record: ContentRecord, payer: Keypair) -> BuiltTransaction:
        """
        Build the instructions that anchor `record`.

        Raises:
            CollisionError: The generated storage key equals a known key.
            EncodingError: The record cannot be encoded.
            ConnectionError: The rent query could not reach the ledger.
        """
        storage_account = self._new_keypair()
        check_collision(storage_account.pubkey(), payer.pubkey(), self.program_id)

        payload = self.codec.encode(record)

        if self.policy is ProvisioningPolicy.IMPLICIT:
            store = Instruction(
                self.program_id,
                payload,
                [
                    AccountMeta(payer.pubkey(), is_signer=True, is_writable=True),
                    AccountMeta(storage_account.pubkey(), is_signer=False, is_writable=True),
                ],
            )
            return BuiltTransaction([store], [payer], storage_account, payload)

        space = len(payload)
        lamports = await self.rent_exempt_balance(space)
        logger.debug("Storage account %s: %d bytes, %d lamports", storage_account.pubkey(), space, lamports)

        create = create_account(
            CreateAccountParams(
                from_pubkey=payer.pubkey(),
                to_pubkey=storage_account.pubkey(),
                lamports=lamports,
                space=space,
                owner=self.program_id,
            )
        )
        store = Instruction(
            self.program_id,
            payload,
            [
                AccountMeta(payer.pubkey(), is_signer=True, is_writable=True),
                AccountMeta(storage_account.pubkey(), is_signer=True, is_writable=True),
                AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
            ],
        )
        return BuiltTransaction([create, store], [payer, storage_account], storage_account, payload)

    async def rent_exempt_balance(self, space: int) -> int:
        """Minimum lamports for an account of `space` bytes to be rent exempt."""
        try:
            resp = await self.client.get_minimum_balance_for_rent_exemption(space, self.commitment)
        except TRANSPORT_ERRORS as e:
            raise ConnectionError(f"Rent-exemption query failed: {e}") from e
        except RPCException as e:
            raise SubmissionError(f"Rent-exemption query rejected: {e}") from e
        return resp.value
