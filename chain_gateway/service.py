"""
GatewayService — the gRPC surface of the gateway.

Service chain_gateway.ChainGateway exposes two unary methods with JSON
message bodies:

    Store     {"record": {...}}          -> {"success", "transaction_id", "account_address"}
    Retrieve  {"transaction_id": "..."}  -> {"record": {...}}

Failures reach the caller only as a status code and a fixed message:

    INVALID_ARGUMENT  unparseable body, missing record or id
    NOT_FOUND         unknown transaction id
    INTERNAL          anything else; detail is logged, never returned

The standard grpc.health.v1 service reports SERVING once the provider is ready.
"""

import asyncio
import json
import logging
import signal

import grpc
from grpc_health.v1 import health, health_pb2, health_pb2_grpc

from chain_gateway.config import GatewayConfig
from chain_gateway.errors import NotFoundError
from chain_gateway.factory import ProviderFactory
from chain_gateway.providers.base import ChainProvider
from chain_gateway.records import ContentRecord

logger = logging.getLogger(__name__)

SERVICE_NAME = "chain_gateway.ChainGateway"


def _encode(message: dict) -> bytes:
    return json.dumps(message, separators=(",", ":")).encode("utf-8")


class GatewayService:
    """Maps RPC requests onto a ChainProvider."""

    def __init__(self, provider: ChainProvider):
        self.provider = provider

    async def _parse(self, request: bytes, context) -> dict:
        try:
            body = json.loads(request or b"{}")
        except (UnicodeDecodeError, json.JSONDecodeError):
            await context.abort(grpc.StatusCode.INVALID_ARGUMENT, "Request body is not valid JSON")
        if not isinstance(body, dict):
            await context.abort(grpc.StatusCode.INVALID_ARGUMENT, "Request body must be an object")
        return body

    async def Store(self, request: bytes, context) -> dict:
        body = await self._parse(request, context)
        logger.info("Received StoreRequest: %s", body)

        record_data = body.get("record")
        if record_data is None:
            await context.abort(grpc.StatusCode.INVALID_ARGUMENT, "Record is missing")
        if not isinstance(record_data, dict):
            await context.abort(grpc.StatusCode.INVALID_ARGUMENT, "Record must be an object")
        try:
            record = ContentRecord.from_dict(record_data)
        except ValueError as e:
            logger.warning("Rejected malformed record: %s", e)
            await context.abort(grpc.StatusCode.INVALID_ARGUMENT, "Record is malformed")

        try:
            result = await self.provider.store_record(record)
        except Exception:
            logger.exception("Store failed for record %s", record.uid)
            await context.abort(grpc.StatusCode.INTERNAL, "Failed to store on blockchain")

        return {
            "success": True,
            "transaction_id": result.transaction_id,
            "account_address": result.account_address or "",
        }

    async def Retrieve(self, request: bytes, context) -> dict:
        body = await self._parse(request, context)
        transaction_id = body.get("transaction_id")
        if not transaction_id or not isinstance(transaction_id, str):
            await context.abort(grpc.StatusCode.INVALID_ARGUMENT, "transaction_id is missing")

        try:
            record = await self.provider.retrieve_record(transaction_id)
        except NotFoundError as e:
            logger.info("Retrieve: %s", e)
            await context.abort(grpc.StatusCode.NOT_FOUND, "Record not found")
        except Exception:
            logger.exception("Retrieve failed for %s", transaction_id)
            await context.abort(grpc.StatusCode.INTERNAL, "Failed to retrieve record")

        return {"record": record.to_dict()}

    def handler(self) -> grpc.GenericRpcHandler:
        return grpc.method_handlers_generic_handler(
            SERVICE_NAME,
            {
                "Store": grpc.unary_unary_rpc_method_handler(self.Store, response_serializer=_encode),
                "Retrieve": grpc.unary_unary_rpc_method_handler(self.Retrieve, response_serializer=_encode),
            },
        )


async def build_server(config: GatewayConfig, provider: ChainProvider):
    """
    Create and start the gRPC server with the gateway and health services.

    Returns:
        (server, health servicer, bound port)
    """
    server = grpc.aio.server()
    server.add_generic_rpc_handlers((GatewayService(provider).handler(),))

    health_servicer = health.aio.HealthServicer()
    health_pb2_grpc.add_HealthServicer_to_server(health_servicer, server)

    port = server.add_insecure_port(f"{config.host}:{config.port}")
    await server.start()
    for name in ("", SERVICE_NAME):
        await health_servicer.set(name, health_pb2.HealthCheckResponse.SERVING)
    return server, health_servicer, port


async def serve(config: GatewayConfig, provider: ChainProvider = None) -> None:
    """Run the gateway until SIGINT/SIGTERM."""
    if provider is None:
        provider = await ProviderFactory.initialize(config.chain)

    server, health_servicer, port = await build_server(config, provider)
    logger.info("ChainGateway gRPC server listening on %s:%d", config.host, port)
    logger.info("Provider: %s", provider.get_info())

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:  # Windows
            pass

    try:
        await stop.wait()
    finally:
        logger.info("Shutting down")
        await health_servicer.enter_graceful_shutdown()
        await server.stop(config.shutdown_grace)
        await provider.close()
