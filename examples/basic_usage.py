"""
Chain Gateway — Basic Usage Example

Anchors one content record on a local Solana validator and prints the
proof's transaction id. Start a validator with the proof program deployed
first (solana-test-validator), then:

    PROGRAM_ID=<deployed program id> python examples/basic_usage.py

The payer key comes from PRIVATE_KEY_PATH; when it is unset a throwaway key
is generated and funded by airdrop.
"""

import asyncio
import hashlib
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from chain_gateway import ChainConfig, ContentRecord, ProviderFactory
from chain_gateway.errors import ChainGatewayError
from chain_gateway.log import setup_logging


async def main():
    print("=" * 50)
    print("  Chain Gateway — Proof of Existence")
    print("=" * 50)

    env = dict(os.environ)
    env.setdefault("AIRDROP_LAMPORTS", "1000000000")  # 1 SOL, local validator only
    config = ChainConfig.from_env(env)

    provider = await ProviderFactory.initialize(config)
    try:
        info = await provider.get_network_info()
        print(f"\nConnected to {info.network_name} at block {info.block_height}")
        print(f"Provider: {provider.get_info()}")

        content = b"Had a breakthrough idea today."
        record = ContentRecord(
            uid="journal-2026-02-10",
            url="https://example.com/journal/2026-02-10",
            content_hash=hashlib.sha256(content).hexdigest(),
            content_length=len(content),
            created_at=datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        )

        # build → sign → submit → confirm
        result = await provider.store_record(record)
        print(f"\nAnchored {record.uid}")
        print(f"  Transaction: {result.transaction_id}")
        print(f"  Account:     {result.account_address}")
        print(f"  Slot:        {result.block_height}")

        # Retrieval only confirms the transaction exists
        print("\nLooking up an unknown transaction id...")
        try:
            await provider.retrieve_record("nonexistent-id")
            print("  ERROR: Should have failed!")
        except ChainGatewayError as e:
            print(f"  Correctly rejected: {type(e).__name__}")
    finally:
        await provider.close()


if __name__ == "__main__":
    setup_logging("INFO")
    asyncio.run(main())
