"""
Command-line entrypoint.

    python -m chain_gateway serve          run the gRPC gateway
    python -m chain_gateway check          probe the ledger and print network info
    python -m chain_gateway store FILE     anchor one JSON record and print the result

All settings come from the environment (see chain_gateway.config).
"""

import argparse
import asyncio
import json
import logging
import sys

from chain_gateway.config import GatewayConfig
from chain_gateway.errors import ChainGatewayError
from chain_gateway.factory import ProviderFactory
from chain_gateway.log import setup_logging
from chain_gateway.records import ContentRecord
from chain_gateway.service import serve

logger = logging.getLogger("chain_gateway")


async def _check(config: GatewayConfig) -> int:
    provider = ProviderFactory.create(config.chain)
    try:
        await provider.initialize()
        info = await provider.get_network_info()
        print(json.dumps({**provider.get_info(), **info.to_dict()}, indent=2))
    finally:
        await provider.close()
    return 0


async def _store(config: GatewayConfig, path: str) -> int:
    with open(path) as f:
        record = ContentRecord.from_dict(json.load(f))
    provider = await ProviderFactory.initialize(config.chain)
    try:
        result = await provider.store_record(record)
    finally:
        await provider.close()
    print(json.dumps({
        "transaction_id": result.transaction_id,
        "account_address": result.account_address,
        "block_height": result.block_height,
    }, indent=2))
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="chain-gateway", description="Anchor content records on a ledger")
    sub = parser.add_subparsers(dest="command")
    sub.add_parser("serve", help="run the gRPC gateway (default)")
    sub.add_parser("check", help="probe the ledger and print network info")
    store = sub.add_parser("store", help="anchor one JSON record")
    store.add_argument("path", help="file holding a ContentRecord as JSON")
    args = parser.parse_args(argv)

    try:
        config = GatewayConfig.from_env()
    except ChainGatewayError as e:
        print(f"configuration error: {e}", file=sys.stderr)
        return 2
    setup_logging(config.log_level, config.log_format)

    try:
        if args.command == "check":
            return asyncio.run(_check(config))
        if args.command == "store":
            return asyncio.run(_store(config, args.path))
        asyncio.run(serve(config))
        return 0
    except ChainGatewayError as e:
        logger.error("%s: %s", type(e).__name__, e)
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
