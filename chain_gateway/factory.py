"""
ProviderFactory — picks the ChainProvider for the configured chain type.

create() never touches the network, so an unsupported chain or a bad
setting fails before any connection attempt. initialize() adds the
I/O-bearing startup step and returns a ready provider.
"""

import logging
from typing import Callable

from chain_gateway.config import ChainConfig, ChainType
from chain_gateway.errors import ConfigurationError
from chain_gateway.providers.base import ChainProvider
from chain_gateway.providers.ethereum import EthereumProvider
from chain_gateway.providers.solana import SolanaProvider

logger = logging.getLogger(__name__)

ProviderBuilder = Callable[[ChainConfig], ChainProvider]

DEFAULT_BUILDERS: dict[ChainType, ProviderBuilder] = {
    ChainType.SOLANA: SolanaProvider.from_config,
    ChainType.ETHEREUM: EthereumProvider.from_config,
    ChainType.BASE: EthereumProvider.from_config,
}


class ProviderFactory:
    """
    Registry of provider builders keyed by chain type.

    The registry is process-wide: register() affects every later create()
    until reset() restores the built-in builders.
    """

    _builders: dict[ChainType, ProviderBuilder] = dict(DEFAULT_BUILDERS)

    @classmethod
    def register(cls, chain_type: ChainType, builder: ProviderBuilder) -> None:
        """Add or replace the builder for a chain type."""
        cls._builders[chain_type] = builder

    @classmethod
    def reset(cls) -> None:
        """Drop custom registrations and restore the built-in builders."""
        cls._builders = dict(DEFAULT_BUILDERS)

    @classmethod
    def supported(cls) -> list[ChainType]:
        return list(cls._builders)

    @classmethod
    def create(cls, config: ChainConfig) -> ChainProvider:
        """
        Construct the provider for `config.chain_type`.

        Raises:
            ConfigurationError: Unsupported chain type or invalid settings.
        """
        builder = cls._builders.get(config.chain_type)
        if builder is None:
            supported = ", ".join(t.value for t in cls._builders)
            raise ConfigurationError(
                f"Unsupported chain type {config.chain_type.value!r} (supported: {supported})"
            )
        provider = builder(config)
        logger.info("Created %s provider for %s", config.chain_type.value, config.network_url)
        return provider

    @classmethod
    async def initialize(cls, config: ChainConfig) -> ChainProvider:
        """
        Create the provider and run its network startup.

        Raises:
            ConfigurationError: As create().
            ConnectionError: The ledger stayed unreachable through every attempt.
        """
        provider = cls.create(config)
        try:
            await provider.initialize()
        except Exception:
            await provider.close()
            raise
        return provider
