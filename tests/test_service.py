"""Tests for the gRPC Store/Retrieve surface."""

import asyncio
import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import grpc
from grpc_health.v1 import health_pb2, health_pb2_grpc

from chain_gateway.config import GatewayConfig
from chain_gateway.errors import RetrievalUnsupportedError, SubmissionError
from chain_gateway.providers.solana import SolanaProvider
from chain_gateway.records import ContentRecord
from chain_gateway.service import SERVICE_NAME, GatewayService, build_server
from fakes import SAMPLE_RECORD, FakeSolanaClient, MemoryProvider, solana_config

STORE_BODY = json.dumps({"record": SAMPLE_RECORD.to_dict()}).encode()


class Aborted(Exception):
    pass


class FakeContext:
    """Records the status an aborted call would carry."""

    def __init__(self):
        self.code = None
        self.details = None

    async def abort(self, code, details=""):
        self.code = code
        self.details = details
        raise Aborted(details)


def _call(method, body):
    """Run one handler call. Returns (response, context)."""
    context = FakeContext()
    try:
        response = asyncio.run(method(body, context))
    except Aborted:
        response = None
    return response, context


def test_store_success():
    provider = MemoryProvider()
    service = GatewayService(provider)
    response, context = _call(service.Store, STORE_BODY)

    assert context.code is None
    assert response == {"success": True, "transaction_id": "tx-1", "account_address": "acct-tx-1"}
    assert provider.records["tx-1"] == SAMPLE_RECORD
    print("  [PASS] Store returns the transaction id")


def test_store_invalid_requests():
    """Bad bodies fail with INVALID_ARGUMENT before reaching the provider."""
    provider = MemoryProvider()
    service = GatewayService(provider)
    bad_bodies = [
        b"{}",
        b'{"record": null}',
        b'{"record": "abc"}',
        b'{"record": {"uid": "a", "content_length": "many"}}',
        b"not json",
        b"[1, 2]",
    ]
    for body in bad_bodies:
        response, context = _call(service.Store, body)
        assert response is None
        assert context.code == grpc.StatusCode.INVALID_ARGUMENT, body
    assert provider.calls == []
    print("  [PASS] Missing or malformed records are INVALID_ARGUMENT")


def test_store_partial_record_uses_defaults():
    provider = MemoryProvider()
    service = GatewayService(provider)
    response, context = _call(service.Store, b'{"record": {"uid": "only-uid"}}')
    assert context.code is None
    stored = provider.records[response["transaction_id"]]
    assert stored.uid == "only-uid"
    assert stored.url == "" and stored.content_length == 0

    body = b'{"record": {"uid": null, "url": null, "content_hash": null, "content_length": null, "created_at": null}}'
    response, context = _call(service.Store, body)
    assert context.code is None
    stored = provider.records[response["transaction_id"]]
    assert stored == ContentRecord(uid="", url="", content_hash="", content_length=0, created_at="")
    print("  [PASS] Unset or null record fields take empty defaults")


def test_store_provider_failure_is_internal():
    provider = MemoryProvider(fail_with=SubmissionError("Transaction rejected: secret detail"))
    service = GatewayService(provider)
    response, context = _call(service.Store, STORE_BODY)

    assert response is None
    assert context.code == grpc.StatusCode.INTERNAL
    assert context.details == "Failed to store on blockchain"
    assert "secret" not in context.details
    print("  [PASS] Provider failure maps to INTERNAL without detail")


def test_retrieve():
    provider = MemoryProvider()
    service = GatewayService(provider)

    response, context = _call(service.Retrieve, b'{"transaction_id": "nonexistent-id"}')
    assert context.code == grpc.StatusCode.NOT_FOUND

    for body in (b"{}", b'{"transaction_id": ""}', b'{"transaction_id": 7}'):
        response, context = _call(service.Retrieve, body)
        assert context.code == grpc.StatusCode.INVALID_ARGUMENT

    stored, _ = _call(service.Store, STORE_BODY)
    body = json.dumps({"transaction_id": stored["transaction_id"]}).encode()
    response, context = _call(service.Retrieve, body)
    assert context.code is None
    assert response == {"record": SAMPLE_RECORD.to_dict()}

    unsupported = GatewayService(MemoryProvider(fail_with=RetrievalUnsupportedError("no decoder")))
    response, context = _call(unsupported.Retrieve, body)
    assert context.code == grpc.StatusCode.INTERNAL
    print("  [PASS] Retrieve: NOT_FOUND, INVALID_ARGUMENT, success, INTERNAL")


def test_store_through_solana_provider():
    """The full path: RPC body to signed transaction on the fake ledger."""
    client = FakeSolanaClient()
    provider = SolanaProvider.from_config(solana_config(), client=client)
    response, context = _call(GatewayService(provider).Store, STORE_BODY)

    assert context.code is None
    assert response["success"] is True
    assert response["transaction_id"] == str(client.sent[0].signatures[0])
    assert response["account_address"]

    _, context = _call(GatewayService(provider).Retrieve, b'{"transaction_id": "nonexistent-id"}')
    assert context.code == grpc.StatusCode.NOT_FOUND
    print("  [PASS] Store through the Solana provider")


def test_grpc_server_roundtrip():
    """A real server on a loopback port answers Store, Retrieve and Health."""

    async def scenario():
        config = GatewayConfig(chain=solana_config(), host="127.0.0.1", port=0)
        server, _, port = await build_server(config, MemoryProvider())
        try:
            async with grpc.aio.insecure_channel(f"127.0.0.1:{port}") as channel:
                store = channel.unary_unary(f"/{SERVICE_NAME}/Store")
                retrieve = channel.unary_unary(f"/{SERVICE_NAME}/Retrieve")

                stored = json.loads(await store(STORE_BODY))
                fetched = json.loads(await retrieve(
                    json.dumps({"transaction_id": stored["transaction_id"]}).encode()
                ))
                try:
                    await retrieve(b'{"transaction_id": "nonexistent-id"}')
                    missing = None
                except grpc.aio.AioRpcError as e:
                    missing = e.code()

                health_stub = health_pb2_grpc.HealthStub(channel)
                status = await health_stub.Check(health_pb2.HealthCheckRequest(service=SERVICE_NAME))
        finally:
            await server.stop(None)
        return stored, fetched, missing, status.status

    stored, fetched, missing, status = asyncio.run(scenario())
    assert stored["transaction_id"] == "tx-1"
    assert fetched["record"] == SAMPLE_RECORD.to_dict()
    assert missing == grpc.StatusCode.NOT_FOUND
    assert status == health_pb2.HealthCheckResponse.SERVING
    print("  [PASS] gRPC server round-trip with health SERVING")


if __name__ == "__main__":
    print("Testing gateway service...\n")
    test_store_success()
    test_store_invalid_requests()
    test_store_partial_record_uses_defaults()
    test_store_provider_failure_is_internal()
    test_retrieve()
    test_store_through_solana_provider()
    test_grpc_server_roundtrip()
    print(f"\n{'='*50}")
    print("All 7 service tests passed!")
