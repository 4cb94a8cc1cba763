"""
KeypairStore — loads the long-lived payer identity.

Credential files hold a JSON array of raw secret-key bytes, the format the
Solana CLI writes to ~/.config/solana/id.json.

Two policies, chosen once per deployment:
  - lenient: any loading failure logs a warning and a fresh ephemeral
    identity is generated instead.
  - strict: the same failures raise ConfigurationError.
"""

import json
import logging
from pathlib import Path
from typing import Any, Callable

from solders.keypair import Keypair

from chain_gateway.config import KeypairPolicy
from chain_gateway.errors import ConfigurationError

logger = logging.getLogger(__name__)


def solana_keypair_from_bytes(raw: bytes) -> Keypair:
    """Solana secret keys are 64 bytes: the ed25519 seed followed by the public key."""
    if len(raw) != 64:
        raise ValueError(f"expected 64 secret-key bytes, got {len(raw)}")
    return Keypair.from_bytes(raw)


class KeypairStore:
    """
    Loads a signing identity from a credential file.

    Args:
        policy: What to do when the file cannot be used.
        from_bytes: Builds an identity from raw secret-key bytes. Must raise
            ValueError on bytes it rejects.
        generate: Creates a fresh random identity.
        describe: Renders an identity's public half for log lines.
    """

    def __init__(
        self,
        policy: KeypairPolicy = KeypairPolicy.LENIENT,
        from_bytes: Callable[[bytes], Any] = solana_keypair_from_bytes,
        generate: Callable[[], Any] = Keypair,
        describe: Callable[[Any], str] = lambda kp: str(kp.pubkey()),
    ):
        self.policy = policy
        self._from_bytes = from_bytes
        self._generate = generate
        self._describe = describe

    def load(self, path: str | Path | None):
        """
        Load the identity at `path`.

        Returns:
            The loaded identity, or under the lenient policy a generated one
            when loading fails.

        Raises:
            ConfigurationError: Under the strict policy, on any failure.
        """
        try:
            identity = self._read(path)
        except ConfigurationError as e:
            if self.policy is KeypairPolicy.STRICT:
                raise
            logger.warning("%s; generating an ephemeral keypair", e)
            identity = self._generate()
            logger.info("Generated new keypair: %s", self._describe(identity))
            return identity

        logger.info("Loaded existing keypair: %s", self._describe(identity))
        return identity

    def _read(self, path):
        if not path:
            raise ConfigurationError("No keypair path configured")

        path = Path(path)
        if not path.exists():
            raise ConfigurationError(f"Keypair file not found: {path}")

        try:
            data = json.loads(path.read_text())
        except OSError as e:
            raise ConfigurationError(f"Failed to read keypair file {path}: {e}") from e
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Failed to parse keypair JSON in {path}: {e}") from e

        if not isinstance(data, list) or not all(
            isinstance(b, int) and not isinstance(b, bool) and 0 <= b <= 255 for b in data
        ):
            raise ConfigurationError(f"Keypair file {path} must hold a JSON array of bytes")

        try:
            return self._from_bytes(bytes(data))
        except ValueError as e:
            raise ConfigurationError(f"Failed to parse keypair bytes in {path}: {e}") from e
