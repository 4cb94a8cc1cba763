"""In-memory stand-ins for the ledger RPC and for providers."""

import asyncio
import itertools
import os
from types import SimpleNamespace

from solders.hash import Hash
from solders.transaction import Transaction

from chain_gateway.config import ChainConfig
from chain_gateway.errors import NotFoundError, SubmissionError
from chain_gateway.providers.base import ChainProvider
from chain_gateway.records import ContentRecord, NetworkInfo, TransactionResult

PROGRAM_ID = "6F8VF9413BrwBYLPndCbKTB74bbzDCdv335jToYzCA3D"
DEVNET_GENESIS = "EtWTRABZaYq6iMfeYKouRu166VU2xqa1wcaWoxPkrZBG"

SAMPLE_RECORD = ContentRecord(
    uid="abc",
    url="https://x.test",
    content_hash="deadbeef",
    content_length=42,
    created_at="2025-01-01T00:00:00Z",
)


def solana_config(**overrides) -> ChainConfig:
    settings = {
        "network_url": "http://solana.test:8899",
        "program_id": PROGRAM_ID,
        "connect_attempts": 3,
        "connect_interval": 0,
    }
    settings.update(overrides)
    return ChainConfig(**settings)


class FakeSolanaClient:
    """
    Mimics the parts of solana-py's AsyncClient the gateway uses.

    Sent transactions are deserialized and kept in `sent`; every method call
    is appended to `calls`.
    """

    def __init__(
        self,
        healthy=True,
        rent_per_byte=6960,
        slot=4242,
        block_height=4000,
        genesis=DEVNET_GENESIS,
        balance=0,
    ):
        self.healthy = healthy
        self.rent_per_byte = rent_per_byte
        self.slot = slot
        self.block_height = block_height
        self.genesis = genesis
        self.balance = balance
        self.calls = []
        self.sent = []
        self.rent_queries = []
        self.airdrops = []
        self.known = set()
        self.closed = False
        # Failure injection
        self.rent_error = None
        self.send_error = None
        self.confirm_error = None
        self.confirm_status_err = None
        self.confirm_hangs = False

    async def is_connected(self):
        self.calls.append("is_connected")
        if isinstance(self.healthy, Exception):
            raise self.healthy
        return self.healthy

    async def get_minimum_balance_for_rent_exemption(self, usize, commitment=None):
        self.calls.append("get_minimum_balance_for_rent_exemption")
        if self.rent_error:
            raise self.rent_error
        self.rent_queries.append(usize)
        return SimpleNamespace(value=890_880 + usize * self.rent_per_byte)

    async def get_latest_blockhash(self, commitment=None):
        self.calls.append("get_latest_blockhash")
        return SimpleNamespace(
            value=SimpleNamespace(blockhash=Hash(os.urandom(32)), last_valid_block_height=self.block_height + 150)
        )

    async def send_raw_transaction(self, txn, opts=None):
        self.calls.append("send_raw_transaction")
        tx = Transaction.from_bytes(txn)
        self.sent.append(tx)
        if self.send_error:
            raise self.send_error
        signature = tx.signatures[0]
        self.known.add(str(signature))
        return SimpleNamespace(value=signature)

    async def confirm_transaction(self, tx_sig, commitment=None, sleep_seconds=0.5, last_valid_block_height=None):
        self.calls.append("confirm_transaction")
        if self.confirm_hangs:
            await asyncio.sleep(60)
        if self.confirm_error:
            raise self.confirm_error
        return SimpleNamespace(value=[SimpleNamespace(err=self.confirm_status_err, slot=self.slot)])

    async def get_signature_statuses(self, signatures, search_transaction_history=False):
        self.calls.append("get_signature_statuses")
        return SimpleNamespace(value=[
            SimpleNamespace(err=None, slot=self.slot) if str(sig) in self.known else None
            for sig in signatures
        ])

    async def get_genesis_hash(self):
        self.calls.append("get_genesis_hash")
        return SimpleNamespace(value=Hash.from_string(self.genesis))

    async def get_block_height(self, commitment=None):
        self.calls.append("get_block_height")
        return SimpleNamespace(value=self.block_height)

    async def get_balance(self, pubkey, commitment=None):
        self.calls.append("get_balance")
        return SimpleNamespace(value=self.balance)

    async def request_airdrop(self, pubkey, lamports, commitment=None):
        self.calls.append("request_airdrop")
        self.airdrops.append((pubkey, lamports))
        self.balance += lamports
        return SimpleNamespace(value="airdrop-signature")

    async def close(self):
        self.closed = True


class MemoryProvider(ChainProvider):
    """A provider that keeps anchored records in a dict."""

    chain = "memory"

    def __init__(self, fail_with: Exception = None):
        self.records = {}
        self.calls = []
        self.fail_with = fail_with
        self.closed = False
        self._ids = itertools.count(1)

    async def store_record(self, record: ContentRecord) -> TransactionResult:
        self.calls.append(("store_record", record))
        if self.fail_with:
            raise self.fail_with
        tx_id = f"tx-{next(self._ids)}"
        self.records[tx_id] = record
        return TransactionResult(transaction_id=tx_id, block_height=1, account_address=f"acct-{tx_id}")

    async def retrieve_record(self, transaction_id: str) -> ContentRecord:
        self.calls.append(("retrieve_record", transaction_id))
        if self.fail_with:
            raise self.fail_with
        if transaction_id not in self.records:
            raise NotFoundError(f"No transaction {transaction_id!r}")
        return self.records[transaction_id]

    async def health_check(self) -> bool:
        return self.fail_with is None

    async def get_network_info(self) -> NetworkInfo:
        return NetworkInfo(chain_id="memory", block_height=len(self.records), network_name="In-memory ledger")

    async def close(self) -> None:
        self.closed = True


class FailingInitProvider(MemoryProvider):
    async def initialize(self) -> None:
        raise SubmissionError("startup funding failed")
