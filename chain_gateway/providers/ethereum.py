"""
Ethereum / EVM chain provider.
Works for Ethereum mainnet, Sepolia testnet, Base L2, or any EVM-compatible chain.

A record is anchored as the calldata of a zero-value transaction sent to the
anchor address (PROGRAM_ID when set, otherwise the payer's own address).
The calldata uses the same proof encoding as the Solana program, so one
decoder reads proofs from either chain.

web3's HTTP provider is synchronous; every call runs in a worker thread so
a slow node never stalls other requests.
"""

import asyncio
import logging
import re
import threading
import time

from eth_account import Account
from web3 import Web3
from web3.exceptions import TimeExhausted, TransactionNotFound, Web3Exception

from chain_gateway.codec import InstructionCodec
from chain_gateway.config import ChainConfig, ChainType
from chain_gateway.errors import (
    CollisionError,
    ConfigurationError,
    ConfirmationTimeoutError,
    ConnectionError,
    NotFoundError,
    RetrievalUnsupportedError,
    SubmissionError,
)
from chain_gateway.health import ConnectionHealth
from chain_gateway.keypair import KeypairStore
from chain_gateway.providers.base import ChainProvider
from chain_gateway.records import ContentRecord, NetworkInfo, TransactionResult

logger = logging.getLogger(__name__)

KNOWN_CHAINS = {
    1: "Ethereum Mainnet",
    11155111: "Sepolia",
    17000: "Holesky",
    8453: "Base",
    84532: "Base Sepolia",
}

GAS_MARGIN = 1.2
_TX_HASH = re.compile(r"^0x[0-9a-fA-F]{64}$")


def eth_account_from_bytes(raw: bytes):
    """EVM secret keys are 32 raw bytes."""
    if len(raw) != 32:
        raise ValueError(f"expected 32 secret-key bytes, got {len(raw)}")
    try:
        return Account.from_key(raw)
    except Exception as e:  # eth_keys rejects keys outside the curve order
        raise ValueError(str(e)) from e


class EthereumProvider(ChainProvider):
    """
    Anchors records as transaction calldata on an EVM chain.

    Args:
        config: Chain settings.
        account: Local signing account that pays for gas.
        w3: Pre-built Web3 instance. Created lazily from config when omitted.
        chain_name: Label reported by get_info.
    """

    def __init__(self, config: ChainConfig, account, w3: Web3 = None, chain_name: str = "ethereum"):
        self.config = config
        self.rpc_url = config.network_url
        self.chain = chain_name
        self._account = account
        self._w3 = w3
        # Held from nonce read to send so concurrent stores never share a nonce
        self._nonce_lock = threading.Lock()

        if config.program_id:
            if not Web3.is_address(config.program_id):
                raise ConfigurationError(f"Invalid anchor address {config.program_id!r}")
            self.anchor_address = Web3.to_checksum_address(config.program_id)
            if self.anchor_address == account.address:
                raise CollisionError("Payer address equals the anchor address")
        else:
            self.anchor_address = account.address

        self.codec = InstructionCodec(config.instruction_layout)
        self.health = ConnectionHealth(
            self._probe,
            max_attempts=config.connect_attempts,
            interval=config.connect_interval,
            name=f"{chain_name} node at {config.network_url}",
        )

    @classmethod
    def from_config(cls, config: ChainConfig, w3: Web3 = None) -> "EthereumProvider":
        store = KeypairStore(
            config.keypair_policy,
            from_bytes=eth_account_from_bytes,
            generate=Account.create,
            describe=lambda account: account.address,
        )
        account = store.load(config.private_key_path)
        chain_name = "base" if config.chain_type is ChainType.BASE else "ethereum"
        return cls(config, account, w3=w3, chain_name=chain_name)

    def _connect(self):
        """Lazy connection to the chain."""
        if self._w3 is not None:
            return

        from web3.middleware import ExtraDataToPOAMiddleware

        self._w3 = Web3(Web3.HTTPProvider(self.rpc_url))
        self._w3.middleware_onion.inject(ExtraDataToPOAMiddleware, name="extradata_to_poa", layer=0)

    async def _probe(self) -> bool:
        def check():
            self._connect()
            return self._w3.is_connected()
        return await asyncio.to_thread(check)

    async def initialize(self) -> None:
        await self.health.await_ready()
        logger.info("Connected to %s as %s", self.chain, self._account.address)

    def _send_proof(self, payload: bytes) -> TransactionResult:
        self._connect()
        eth = self._w3.eth
        sender = self._account.address

        with self._nonce_lock:
            tx = {
                "from": sender,
                "to": self.anchor_address,
                "value": 0,
                "data": payload,
                "nonce": eth.get_transaction_count(sender, "pending"),
                "gasPrice": eth.gas_price,
                "chainId": eth.chain_id,
            }
            gas_estimate = eth.estimate_gas(tx)
            tx["gas"] = int(gas_estimate * GAS_MARGIN)

            signed = self._account.sign_transaction(tx)
            tx_hash = eth.send_raw_transaction(signed.raw_transaction)

        receipt = eth.wait_for_transaction_receipt(tx_hash, timeout=self.config.confirm_timeout)

        tx_id = Web3.to_hex(tx_hash)
        if receipt.status != 1:
            raise SubmissionError(f"Transaction {tx_id} reverted in block {receipt.blockNumber}")

        return TransactionResult(
            transaction_id=tx_id,
            block_height=receipt.blockNumber,
            confirmation_time=int(time.time()),
        )

    async def store_record(self, record: ContentRecord) -> TransactionResult:
        payload = self.codec.encode(record)
        try:
            result = await asyncio.to_thread(self._send_proof, payload)
        except TimeExhausted as e:
            raise ConfirmationTimeoutError(f"No receipt within {self.config.confirm_timeout}s: {e}") from e
        except (Web3Exception, ValueError) as e:
            raise SubmissionError(f"Transaction rejected: {e}") from e
        except OSError as e:
            raise ConnectionError(f"{self.chain} node unreachable: {e}") from e

        logger.info("%s transaction successful! Hash: %s", self.chain, result.transaction_id)
        return result

    async def retrieve_record(self, transaction_id: str) -> ContentRecord:
        """Existence check only, like the Solana provider."""
        if not _TX_HASH.match(transaction_id or ""):
            raise NotFoundError(f"No transaction {transaction_id!r}")

        def lookup():
            self._connect()
            return self._w3.eth.get_transaction(transaction_id)

        try:
            await asyncio.to_thread(lookup)
        except TransactionNotFound:
            raise NotFoundError(f"No transaction {transaction_id!r}") from None
        except OSError as e:
            raise ConnectionError(f"Lookup of {transaction_id} failed: {e}") from e

        raise RetrievalUnsupportedError(
            f"Transaction {transaction_id} exists but records cannot be rebuilt from ledger state"
        )

    async def health_check(self) -> bool:
        return await self.health.probe()

    async def get_network_info(self) -> NetworkInfo:
        def snapshot():
            self._connect()
            return self._w3.eth.chain_id, self._w3.eth.block_number

        try:
            chain_id, block_number = await asyncio.to_thread(snapshot)
        except OSError as e:
            raise ConnectionError(f"{self.chain} node unreachable: {e}") from e

        return NetworkInfo(
            chain_id=str(chain_id),
            block_height=block_number,
            network_name=KNOWN_CHAINS.get(chain_id, f"EVM chain {chain_id}"),
        )

    def get_info(self) -> dict:
        return {
            "chain": self.chain,
            "rpc_url": self.rpc_url,
            "anchor_address": self.anchor_address,
            "payer": self._account.address,
            "instruction_layout": self.config.instruction_layout.value,
        }
