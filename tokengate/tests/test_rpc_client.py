"""
Tests for the JSON-RPC balance client.

A local aiohttp server stands in for the chain endpoint.
"""

import asyncio

import pytest
from aiohttp import test_utils, web

from conftest import ALICE, CONTRACT
from tokengate.core.errors import OracleUnavailable
from tokengate.service.oracle.rpc_client import (
    BALANCE_OF_SELECTOR,
    ChainRpcClient,
    decode_balance,
    encode_balance_of,
)


def word(value: int) -> str:
    return "0x" + value.to_bytes(32, "big").hex()


class TestAbiEncoding:
    """balanceOf call data and result decoding."""

    def test_selector(self):
        assert BALANCE_OF_SELECTOR.hex() == "00fdd58e"

    def test_encode_balance_of(self):
        data = encode_balance_of(ALICE, 7)

        assert data.startswith("0x00fdd58e")
        assert len(data) == 2 + 8 + 64 * 2
        assert data[10:74] == "0" * 24 + ALICE[2:]
        assert int(data[74:], 16) == 7

    def test_decode_balance(self):
        assert decode_balance(word(0)) == 0
        assert decode_balance(word(5)) == 5
        assert decode_balance(word(2**255)) == 2**255

    @pytest.mark.parametrize(
        "result",
        ["0x", "0x00", word(1) + "00", "deadbeef", "0xzz", None, 5],
    )
    def test_decode_rejects_malformed(self, result):
        with pytest.raises(OracleUnavailable):
            decode_balance(result)


async def serve(handler):
    app = web.Application()
    app.router.add_post("/", handler)
    server = test_utils.TestServer(app)
    await server.start_server()
    return server


def run_against(handler, timeout_seconds=2.0):
    """Run one get_balance call against a local endpoint."""
    requests = []

    async def recording(request):
        requests.append(await request.json())
        return await handler(request)

    async def run():
        server = await serve(recording)
        try:
            client = ChainRpcClient(
                str(server.make_url("/")), timeout_seconds=timeout_seconds
            )
            return await client.get_balance(CONTRACT, ALICE, 1)
        finally:
            await server.close()

    return asyncio.run(run()), requests


class TestChainRpcClient:
    """eth_call round trips and failure mapping."""

    def test_successful_call(self):
        async def handler(request):
            body = await request.json()
            return web.json_response({"jsonrpc": "2.0", "id": body["id"], "result": word(3)})

        quantity, requests = run_against(handler)

        assert quantity == 3
        (request,) = requests
        assert request["method"] == "eth_call"
        call, block = request["params"]
        assert call["to"].lower() == CONTRACT
        assert call["data"] == encode_balance_of(ALICE, 1)
        assert block == "latest"

    def test_jsonrpc_error(self):
        async def handler(request):
            return web.json_response(
                {"jsonrpc": "2.0", "id": 1, "error": {"code": -32000, "message": "execution reverted"}}
            )

        with pytest.raises(OracleUnavailable) as exc:
            run_against(handler)

        assert "execution reverted" in exc.value.message

    def test_http_error(self):
        async def handler(request):
            return web.Response(status=502, text="bad gateway")

        with pytest.raises(OracleUnavailable) as exc:
            run_against(handler)

        assert "502" in exc.value.message

    def test_timeout(self):
        async def handler(request):
            await asyncio.sleep(0.5)
            return web.json_response({"jsonrpc": "2.0", "id": 1, "result": word(1)})

        with pytest.raises(OracleUnavailable) as exc:
            run_against(handler, timeout_seconds=0.1)

        assert "timed out" in exc.value.message

    def test_invalid_json(self):
        async def handler(request):
            return web.Response(text="<html>oops</html>")

        with pytest.raises(OracleUnavailable):
            run_against(handler)

    def test_missing_result(self):
        async def handler(request):
            return web.json_response({"jsonrpc": "2.0", "id": 1})

        with pytest.raises(OracleUnavailable):
            run_against(handler)

    def test_empty_result_from_undeployed_contract(self):
        async def handler(request):
            return web.json_response({"jsonrpc": "2.0", "id": 1, "result": "0x"})

        with pytest.raises(OracleUnavailable) as exc:
            run_against(handler)

        assert "expected 32" in exc.value.message

    def test_unreachable_endpoint(self):
        client = ChainRpcClient("http://127.0.0.1:9/", timeout_seconds=1.0)

        with pytest.raises(OracleUnavailable):
            asyncio.run(client.get_balance(CONTRACT, ALICE, 1))
