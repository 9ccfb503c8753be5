"""
Chain RPC Client for the token gate.

Reads ERC-1155 access-token balances from a chain JSON-RPC endpoint:

    eth_call(to=contract, data=balanceOf(owner, tokenId), "latest") -> uint256

One attempt per call with a bounded timeout. Retries are the caller's
business; every failure surfaces as OracleUnavailable.
"""

import asyncio
import itertools
import logging
from typing import Any, Dict

import aiohttp
from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_utils import function_signature_to_4byte_selector, to_checksum_address

from ...core.errors import OracleUnavailable

logger = logging.getLogger(__name__)

BALANCE_OF_SIGNATURE = "balanceOf(address,uint256)"
BALANCE_OF_SELECTOR = function_signature_to_4byte_selector(BALANCE_OF_SIGNATURE)

DEFAULT_RPC_TIMEOUT_SECONDS = 5.0


def encode_balance_of(owner: str, token_id: int) -> str:
    """ABI-encode a balanceOf(owner, tokenId) call as 0x-hex call data."""
    args = encode(["address", "uint256"], [to_checksum_address(owner), int(token_id)])
    return "0x" + (BALANCE_OF_SELECTOR + args).hex()


def decode_balance(result: Any) -> int:
    """
    Decode an eth_call result into a quantity.

    Raises:
        OracleUnavailable: result is not a single 32-byte ABI word
    """
    if not isinstance(result, str) or not result.startswith("0x"):
        raise OracleUnavailable(f"Malformed eth_call result: {result!r}")

    try:
        data = bytes.fromhex(result[2:])
    except ValueError:
        raise OracleUnavailable("eth_call result is not valid hex")

    if len(data) != 32:
        raise OracleUnavailable(
            f"eth_call returned {len(data)} bytes, expected 32 "
            "(is the contract deployed on this chain?)"
        )

    try:
        (quantity,) = decode(["uint256"], data)
    except DecodingError as e:
        raise OracleUnavailable(f"Could not decode balance: {e}")

    return int(quantity)


class ChainRpcClient:
    """
    Async JSON-RPC client for read-only balance queries.

    Satisfies the balance reader interface expected by BalanceOracle:
        async get_balance(contract, owner, token_id) -> int
    """

    def __init__(
        self,
        rpc_url: str,
        timeout_seconds: float = DEFAULT_RPC_TIMEOUT_SECONDS,
        block_tag: str = "latest",
    ):
        self.rpc_url = rpc_url
        self.timeout_seconds = timeout_seconds
        self.block_tag = block_tag
        self._ids = itertools.count(1)

    def _build_request(self, contract: str, owner: str, token_id: int) -> Dict[str, Any]:
        return {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": "eth_call",
            "params": [
                {
                    "to": to_checksum_address(contract),
                    "data": encode_balance_of(owner, token_id),
                },
                self.block_tag,
            ],
        }

    async def get_balance(self, contract: str, owner: str, token_id: int) -> int:
        """
        Read the balance of token_id held by owner on contract.

        Raises:
            OracleUnavailable: timeout, network error, HTTP error,
                JSON-RPC error or malformed response
        """
        request = self._build_request(contract, owner, token_id)

        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    self.rpc_url,
                    json=request,
                    headers={"Content-Type": "application/json"},
                    timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
                ) as response:
                    if response.status != 200:
                        text = await response.text()
                        raise OracleUnavailable(
                            f"RPC endpoint returned HTTP {response.status}: {text[:200]}"
                        )
                    payload = await response.json(content_type=None)

        except asyncio.TimeoutError:
            raise OracleUnavailable(
                f"RPC call timed out after {self.timeout_seconds}s"
            )
        except aiohttp.ClientError as e:
            raise OracleUnavailable(f"Failed to reach RPC endpoint: {e}")
        except ValueError as e:
            raise OracleUnavailable(f"RPC endpoint returned invalid JSON: {e}")

        if not isinstance(payload, dict):
            raise OracleUnavailable("RPC response is not a JSON object")

        if payload.get("error"):
            error = payload["error"]
            message = error.get("message") if isinstance(error, dict) else error
            raise OracleUnavailable(f"RPC error: {message}")

        if "result" not in payload:
            raise OracleUnavailable("RPC response has no result")

        quantity = decode_balance(payload["result"])
        logger.debug(
            f"eth_call balanceOf({owner[:10]}..., {token_id}) on {contract[:10]}... = {quantity}"
        )
        return quantity
