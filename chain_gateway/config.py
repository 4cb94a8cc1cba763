"""
Gateway configuration.

All settings come from the environment and are read once at startup.
Invalid or missing required values raise ConfigurationError immediately,
never later at request time.

Deployment policies:
  - KEYPAIR_POLICY        lenient (generate a key when loading fails) | strict
  - ACCOUNT_PROVISIONING  create (create-then-populate) | implicit (program allocates)
  - INSTRUCTION_LAYOUT    content-length | created-at (must match the program)
"""

import os
from dataclasses import dataclass
from enum import Enum

from chain_gateway.errors import ConfigurationError


class ChainType(Enum):
    """Ledger families the gateway knows about."""
    SOLANA = "solana"
    ETHEREUM = "ethereum"
    BASE = "base"
    BITCOIN = "bitcoin"


class KeypairPolicy(Enum):
    LENIENT = "lenient"
    STRICT = "strict"


class ProvisioningPolicy(Enum):
    CREATE_ACCOUNT = "create"
    IMPLICIT = "implicit"


class InstructionLayout(Enum):
    CONTENT_LENGTH = "content-length"  # StoreProof{url, content_hash, content_length}
    CREATED_AT = "created-at"          # StoreProof{url, hash, created_at}


COMMITMENT_LEVELS = ("processed", "confirmed", "finalized")

# Upper bound on the deliberate wait before reading a blockhash
MAX_SETTLE_DELAY = 5.0

DEFAULT_SOLANA_URL = "http://localhost:8899"
DEFAULT_GRPC_PORT = 50051


def _enum(enum_cls, raw: str, name: str):
    try:
        return enum_cls(raw.strip().lower())
    except ValueError:
        choices = ", ".join(m.value for m in enum_cls)
        raise ConfigurationError(f"{name}={raw!r} is not one of: {choices}") from None


def _number(cast, raw: str, name: str, minimum=0):
    try:
        value = cast(raw)
    except ValueError:
        raise ConfigurationError(f"{name}={raw!r} is not a valid number") from None
    if value < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}, got {value}")
    return value


@dataclass(frozen=True)
class ChainConfig:
    """Ledger connection and signing settings for one provider."""
    network_url: str
    chain_type: ChainType = ChainType.SOLANA
    program_id: str | None = None
    private_key_path: str | None = None
    keypair_policy: KeypairPolicy = KeypairPolicy.LENIENT
    provisioning_policy: ProvisioningPolicy = ProvisioningPolicy.CREATE_ACCOUNT
    instruction_layout: InstructionLayout = InstructionLayout.CONTENT_LENGTH
    commitment: str = "confirmed"
    confirm_timeout: float = 60.0
    settle_delay: float = 0.0
    airdrop_lamports: int = 0
    connect_attempts: int = 10
    connect_interval: float = 3.0

    def __post_init__(self):
        if not self.network_url:
            raise ConfigurationError("A network URL is required (BLOCKCHAIN_URL or RPC_URL)")
        if self.commitment not in COMMITMENT_LEVELS:
            raise ConfigurationError(
                f"COMMITMENT={self.commitment!r} is not one of: {', '.join(COMMITMENT_LEVELS)}"
            )
        if not 0 <= self.settle_delay <= MAX_SETTLE_DELAY:
            raise ConfigurationError(
                f"SETTLE_DELAY must be between 0 and {MAX_SETTLE_DELAY} seconds"
            )
        if self.connect_attempts < 1:
            raise ConfigurationError("CONNECT_ATTEMPTS must be at least 1")

    @classmethod
    def from_env(cls, environ: dict = None) -> "ChainConfig":
        """
        Load chain settings from environment variables.

        Args:
            environ: Mapping to read from. Defaults to os.environ.

        Raises:
            ConfigurationError: On any unparseable or missing required value.
        """
        env = os.environ if environ is None else environ
        chain_type = _enum(ChainType, env.get("CHAIN_TYPE", "solana"), "CHAIN_TYPE")

        network_url = env.get("BLOCKCHAIN_URL") or env.get("RPC_URL")
        if not network_url and chain_type is ChainType.SOLANA:
            network_url = DEFAULT_SOLANA_URL

        return cls(
            network_url=network_url or "",
            chain_type=chain_type,
            program_id=env.get("PROGRAM_ID") or None,
            private_key_path=env.get("PRIVATE_KEY_PATH") or None,
            keypair_policy=_enum(KeypairPolicy, env.get("KEYPAIR_POLICY", "lenient"), "KEYPAIR_POLICY"),
            provisioning_policy=_enum(
                ProvisioningPolicy, env.get("ACCOUNT_PROVISIONING", "create"), "ACCOUNT_PROVISIONING"
            ),
            instruction_layout=_enum(
                InstructionLayout, env.get("INSTRUCTION_LAYOUT", "content-length"), "INSTRUCTION_LAYOUT"
            ),
            commitment=env.get("COMMITMENT", "confirmed").lower(),
            confirm_timeout=_number(float, env.get("CONFIRM_TIMEOUT", "60"), "CONFIRM_TIMEOUT", 1),
            settle_delay=_number(float, env.get("SETTLE_DELAY", "0"), "SETTLE_DELAY"),
            airdrop_lamports=_number(int, env.get("AIRDROP_LAMPORTS", "0"), "AIRDROP_LAMPORTS"),
            connect_attempts=_number(int, env.get("CONNECT_ATTEMPTS", "10"), "CONNECT_ATTEMPTS", 1),
            connect_interval=_number(float, env.get("CONNECT_INTERVAL", "3"), "CONNECT_INTERVAL"),
        )


@dataclass(frozen=True)
class GatewayConfig:
    """Process-level settings: where to listen and how to log."""
    chain: ChainConfig
    host: str = "0.0.0.0"
    port: int = DEFAULT_GRPC_PORT
    log_level: str = "INFO"
    log_format: str | None = None
    shutdown_grace: float = 10.0

    @classmethod
    def from_env(cls, environ: dict = None) -> "GatewayConfig":
        env = os.environ if environ is None else environ
        return cls(
            chain=ChainConfig.from_env(env),
            host=env.get("GRPC_HOST", "0.0.0.0"),
            port=_number(int, env.get("GRPC_PORT", str(DEFAULT_GRPC_PORT)), "GRPC_PORT", 1),
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
            log_format=env.get("LOG_FORMAT") or None,
            shutdown_grace=_number(float, env.get("GRPC_SHUTDOWN_GRACE_SEC", "10"), "GRPC_SHUTDOWN_GRACE_SEC"),
        )
