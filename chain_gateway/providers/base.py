"""
Base class for all chain providers.
Every ledger back-end the gateway can anchor records on implements this interface.
"""

from abc import ABC, abstractmethod

from chain_gateway.records import ContentRecord, NetworkInfo, TransactionResult


class ChainProvider(ABC):
    """
    Abstract base class for ledger providers.

    Construction must be free of network I/O; anything that talks to the
    ledger at startup belongs in initialize().
    """

    chain = "unknown"

    async def initialize(self) -> None:
        """Startup work that needs the network (readiness, funding)."""

    async def close(self) -> None:
        """Release network clients."""

    @abstractmethod
    async def store_record(self, record: ContentRecord) -> TransactionResult:
        """
        Anchor a content record on this chain.

        Args:
            record: The record to store. Never modified.

        Returns:
            The confirmed transaction's result.
        """

    @abstractmethod
    async def retrieve_record(self, transaction_id: str) -> ContentRecord:
        """
        Look up the record anchored by a transaction.

        Raises:
            NotFoundError: If no such transaction exists.
        """

    @abstractmethod
    async def health_check(self) -> bool:
        """Single, unretried reachability probe."""

    @abstractmethod
    async def get_network_info(self) -> NetworkInfo:
        """Fresh snapshot of the network; never cached."""

    def get_info(self) -> dict:
        """Static metadata about this provider (chain, endpoint, signer)."""
        return {"chain": self.chain}
