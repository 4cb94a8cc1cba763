"""
Chain providers for the gateway.
Each provider anchors records on one ledger family.
"""

from chain_gateway.providers.base import ChainProvider
from chain_gateway.providers.ethereum import EthereumProvider
from chain_gateway.providers.solana import SolanaProvider

__all__ = [
    "ChainProvider",
    "EthereumProvider",
    "SolanaProvider",
]
