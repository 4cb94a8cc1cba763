"""
Records exchanged between the RPC surface and the chain providers.
"""

from dataclasses import dataclass, asdict


def _text(value) -> str:
    return "" if value is None else str(value)


@dataclass(frozen=True)
class ContentRecord:
    """Metadata describing one piece of content to anchor on a ledger."""
    uid: str
    url: str
    content_hash: str
    content_length: int
    created_at: str

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "ContentRecord":
        """
        Build a record from its wire form.

        Missing or null fields take empty defaults, matching how the RPC surface
        treats unset message fields.

        Raises:
            ValueError: If content_length is not an integer.
        """
        length = data.get("content_length")
        if length is None:
            length = 0
        if isinstance(length, bool) or not isinstance(length, (int, str)):
            raise ValueError(f"content_length must be an integer, got {length!r}")
        return cls(
            uid=_text(data.get("uid")),
            url=_text(data.get("url")),
            content_hash=_text(data.get("content_hash")),
            content_length=int(length),
            created_at=_text(data.get("created_at")),
        )


@dataclass(frozen=True)
class TransactionResult:
    """Outcome of a confirmed submission."""
    transaction_id: str
    block_height: int | None = None
    confirmation_time: int | None = None  # unix seconds
    account_address: str | None = None    # storage account, when one was created

    def __post_init__(self):
        if not self.transaction_id:
            raise ValueError("transaction_id must be non-empty")


@dataclass(frozen=True)
class NetworkInfo:
    """Point-in-time snapshot of the ledger network."""
    chain_id: str
    block_height: int
    network_name: str

    def to_dict(self) -> dict:
        return asdict(self)
