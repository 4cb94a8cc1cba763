"""
Solana provider.

Each record is written to its own storage account owned by the proof
program. The payer funds account creation and fees; a fresh keypair per
request signs for the storage account and is discarded after submission.

Flow for storing a record:
  1. Build: generate the storage keypair, encode the record, size and fund
     the account, assemble create-account + store-proof instructions
  2. Sign: fetch a fresh blockhash, sign with payer + storage keypair
  3. Submit: send with preflight, wait for the configured commitment

Startup (initialize) probes the validator with bounded retries and, on
development clusters, can top up the payer with an airdrop.
"""

import logging
from dataclasses import replace

from solana.rpc.async_api import AsyncClient
from solana.rpc.core import RPCException
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature

from chain_gateway.codec import InstructionCodec
from chain_gateway.config import ChainConfig
from chain_gateway.errors import (
    ChainGatewayError,
    CollisionError,
    ConfigurationError,
    ConnectionError,
    NotFoundError,
    RetrievalUnsupportedError,
    SubmissionError,
)
from chain_gateway.health import ConnectionHealth
from chain_gateway.keypair import KeypairStore
from chain_gateway.providers.base import ChainProvider
from chain_gateway.records import ContentRecord, NetworkInfo, TransactionResult
from chain_gateway.submitter import StoreState, TransactionSubmitter
from chain_gateway.transaction import TRANSPORT_ERRORS, TransactionBuilder

logger = logging.getLogger(__name__)

# Genesis hash -> (chain id, network name)
KNOWN_CLUSTERS = {
    "5eykt4UsFv8P8NJdTREpY1vzqKqZKvdpKuc147dw2N9d": ("solana-mainnet-beta", "Solana Mainnet Beta"),
    "EtWTRABZaYq6iMfeYKouRu166VU2xqa1wcaWoxPkrZBG": ("solana-devnet", "Solana Devnet"),
    "4uhcVJyU9pJkvQyS88uRDiswHXSCkY3zQawwpjk2NsNY": ("solana-testnet", "Solana Testnet"),
}
LOCALNET = ("solana-localnet", "Solana Local Validator")


def parse_program_id(program_id: str | None) -> Pubkey:
    if not program_id:
        raise ConfigurationError("PROGRAM_ID is required for the Solana provider")
    try:
        return Pubkey.from_string(program_id)
    except ValueError as e:
        raise ConfigurationError(f"Invalid PROGRAM_ID {program_id!r}: {e}") from e


class SolanaProvider(ChainProvider):
    """
    Anchors records in accounts owned by a Solana proof program.

    Args:
        config: Chain settings.
        client: solana-py AsyncClient shared by all requests.
        payer: Long-lived fee payer.
        program_id: The proof program.
    """

    chain = "solana"

    def __init__(self, config: ChainConfig, client, payer: Keypair, program_id: Pubkey):
        if payer.pubkey() == program_id:
            raise CollisionError("Payer public key equals the program id")

        self.config = config
        self.client = client
        self.payer = payer
        self.program_id = program_id

        self.builder = TransactionBuilder(
            client,
            program_id,
            codec=InstructionCodec(config.instruction_layout),
            policy=config.provisioning_policy,
            commitment=config.commitment,
        )
        self.submitter = TransactionSubmitter(
            client,
            commitment=config.commitment,
            confirm_timeout=config.confirm_timeout,
            settle_delay=config.settle_delay,
        )
        self.health = ConnectionHealth(
            client.is_connected,
            max_attempts=config.connect_attempts,
            interval=config.connect_interval,
            name=f"Solana validator at {config.network_url}",
        )

    @classmethod
    def from_config(cls, config: ChainConfig, client=None) -> "SolanaProvider":
        """
        Construct from configuration without touching the network.

        Raises:
            ConfigurationError: Missing/invalid program id, or a keypair that
                cannot be loaded under the strict policy.
        """
        program_id = parse_program_id(config.program_id)
        payer = KeypairStore(config.keypair_policy).load(config.private_key_path)
        if client is None:
            client = AsyncClient(config.network_url, commitment=config.commitment)
        return cls(config, client, payer, program_id)

    async def initialize(self) -> None:
        await self.health.await_ready()
        if self.config.airdrop_lamports:
            await self._fund_payer(self.config.airdrop_lamports)
        logger.info("Connected to Solana program: %s (payer %s)", self.program_id, self.payer.pubkey())

    async def close(self) -> None:
        await self.client.close()

    async def _fund_payer(self, lamports: int) -> None:
        """Airdrop to the payer when its balance is below `lamports`. Dev clusters only."""
        pubkey = self.payer.pubkey()
        try:
            balance = (await self.client.get_balance(pubkey, self.config.commitment)).value
            if balance >= lamports:
                return
            logger.info("Requesting airdrop of %d lamports for %s", lamports, pubkey)
            resp = await self.client.request_airdrop(pubkey, lamports, self.config.commitment)
            await self.client.confirm_transaction(resp.value, self.config.commitment)
        except TRANSPORT_ERRORS as e:
            raise ConnectionError(f"Airdrop to {pubkey} failed: {e}") from e
        except RPCException as e:
            raise SubmissionError(f"Airdrop to {pubkey} rejected: {e}") from e

    async def store_record(self, record: ContentRecord) -> TransactionResult:
        state = StoreState.BUILDING

        def advance(new_state: StoreState) -> None:
            nonlocal state
            logger.debug("Store %s: %s -> %s", record.uid, state.value, new_state.value)
            state = new_state

        try:
            built = await self.builder.build(record, self.payer)
            result = await self.submitter.submit(built.instructions, built.signers, on_state=advance)
        except ChainGatewayError as e:
            logger.error("Store %s failed while %s: %s", record.uid, state.value, e)
            advance(StoreState.FAILED)
            raise

        account = str(built.storage_account.pubkey())
        logger.info("Solana transaction successful! Signature: %s", result.transaction_id)
        logger.info("Proof account: %s", account)
        return replace(result, account_address=account)

    async def retrieve_record(self, transaction_id: str) -> ContentRecord:
        """
        Resolve a transaction id against the ledger.

        Only existence is checked: rebuilding the record from account state
        is not supported, so a known transaction raises
        RetrievalUnsupportedError.
        """
        try:
            signature = Signature.from_string(transaction_id)
        except ValueError:
            raise NotFoundError(f"No transaction {transaction_id!r}") from None

        try:
            resp = await self.client.get_signature_statuses([signature], search_transaction_history=True)
        except TRANSPORT_ERRORS as e:
            raise ConnectionError(f"Status lookup for {transaction_id} failed: {e}") from e
        except RPCException as e:
            raise SubmissionError(f"Status lookup for {transaction_id} rejected: {e}") from e

        if not resp.value or resp.value[0] is None:
            raise NotFoundError(f"No transaction {transaction_id!r}")
        raise RetrievalUnsupportedError(
            f"Transaction {transaction_id} exists but records cannot be rebuilt from ledger state"
        )

    async def health_check(self) -> bool:
        return await self.health.probe()

    async def get_network_info(self) -> NetworkInfo:
        try:
            genesis = (await self.client.get_genesis_hash()).value
            height = (await self.client.get_block_height(self.config.commitment)).value
        except TRANSPORT_ERRORS as e:
            raise ConnectionError(f"Network info request failed: {e}") from e
        except RPCException as e:
            raise SubmissionError(f"Network info request rejected: {e}") from e

        chain_id, network_name = KNOWN_CLUSTERS.get(str(genesis), LOCALNET)
        return NetworkInfo(chain_id=chain_id, block_height=height, network_name=network_name)

    def get_info(self) -> dict:
        return {
            "chain": self.chain,
            "rpc_url": self.config.network_url,
            "program_id": str(self.program_id),
            "payer": str(self.payer.pubkey()),
            "provisioning": self.config.provisioning_policy.value,
            "instruction_layout": self.config.instruction_layout.value,
            "commitment": self.config.commitment,
        }
