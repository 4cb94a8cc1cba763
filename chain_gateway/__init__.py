"""
Chain Gateway — anchor content records on a distributed ledger.

Applications hand the gateway a ContentRecord (url, content hash, length,
creation time). The gateway encodes it into the target program's instruction
format, signs a transaction with its payer key, submits it, waits for
confirmation, and returns the ledger's transaction id. The result is a
tamper-evident, timestamped proof that the content existed.

Layers:
1. Codec — hand-specified binary encoding of proof instructions
2. Builder/Submitter — account derivation, signing, submission, confirmation
3. Providers — one ChainProvider per ledger family, picked by ProviderFactory
4. Service — gRPC Store/Retrieve surface over a provider

Usage:
    from chain_gateway import ChainConfig, ContentRecord, ProviderFactory
    provider = await ProviderFactory.initialize(ChainConfig.from_env())
    result = await provider.store_record(record)
"""

from chain_gateway.codec import InstructionCodec, StoreProof, GetProof
from chain_gateway.config import ChainConfig, ChainType, GatewayConfig
from chain_gateway.errors import ChainGatewayError
from chain_gateway.factory import ProviderFactory
from chain_gateway.health import ConnectionHealth
from chain_gateway.keypair import KeypairStore
from chain_gateway.providers import ChainProvider, EthereumProvider, SolanaProvider
from chain_gateway.records import ContentRecord, NetworkInfo, TransactionResult

__version__ = "0.1.0"
__all__ = [
    "ChainConfig",
    "ChainGatewayError",
    "ChainProvider",
    "ChainType",
    "ConnectionHealth",
    "ContentRecord",
    "EthereumProvider",
    "GatewayConfig",
    "GetProof",
    "InstructionCodec",
    "KeypairStore",
    "NetworkInfo",
    "ProviderFactory",
    "SolanaProvider",
    "StoreProof",
    "TransactionResult",
]
