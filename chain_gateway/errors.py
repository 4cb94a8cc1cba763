"""
Error taxonomy for the chain gateway.

Every failure the gateway can raise derives from ChainGatewayError.
Only connection failures are retryable, and only inside ConnectionHealth;
everything else is surfaced to the RPC boundary, which maps it to a generic
status (invalid-argument, not-found, internal) and logs the detail.
"""


class ChainGatewayError(Exception):
    """Base class for all gateway errors."""

    retryable = False


class ConfigurationError(ChainGatewayError):
    """Unsupported chain type, missing or invalid setting. Startup only."""


class ConnectionError(ChainGatewayError):
    """The ledger RPC endpoint could not be reached."""

    retryable = True


class EncodingError(ChainGatewayError):
    """A record cannot be serialized into the program's instruction format."""


class CollisionError(ChainGatewayError):
    """A generated identity collides with the payer or the program id."""


class SubmissionError(ChainGatewayError):
    """The ledger rejected the transaction, or it could not be signed."""


class ConfirmationTimeoutError(ChainGatewayError):
    """The transaction was accepted but not confirmed in time."""


class NotFoundError(ChainGatewayError):
    """No transaction matches the requested identifier."""


class RetrievalUnsupportedError(ChainGatewayError):
    """The transaction exists but the record cannot be rebuilt from it."""
