"""
Shared fixtures for token gate tests.

Proofs are signed with fixed secp256k1 keys; time and chain balances are
faked so every scenario is deterministic.
"""

import asyncio
from typing import Dict, List, Optional, Tuple

import pytest
from eth_keys import keys

from tokengate.config.gate_config import GateConfig
from tokengate.core.digest import build_proof_message, compute_proof_digest
from tokengate.core.errors import OracleUnavailable
from tokengate.gate_system import TokenGate
from tokengate.service.policy.tier_policy import TierPolicy

CHAIN_ID = 1223953
CONTRACT = "0x" + "ab" * 20
NOW = 1_700_000_000

ALICE_KEY = keys.PrivateKey(bytes.fromhex("11" * 32))
BOB_KEY = keys.PrivateKey(bytes.fromhex("22" * 32))
ALICE = ALICE_KEY.public_key.to_checksum_address().lower()
BOB = BOB_KEY.public_key.to_checksum_address().lower()


class FakeClock:
    """Controllable unix-seconds clock."""

    def __init__(self, now: float = NOW):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeBalanceReader:
    """
    In-memory balance source with call accounting.

    Set `failing = True` to simulate an unreachable endpoint, or set
    `gate` to an asyncio.Event to hold lookups until released.
    """

    def __init__(self, balances: Optional[Dict[Tuple[str, int], int]] = None):
        self.balances = dict(balances or {})
        self.calls: List[Tuple[str, str, int]] = []
        self.failing = False
        self.failing_tokens: set = set()
        self.gate: Optional[asyncio.Event] = None

    async def get_balance(self, contract: str, owner: str, token_id: int) -> int:
        self.calls.append((contract, owner, token_id))
        if self.gate is not None:
            await self.gate.wait()
        if self.failing or token_id in self.failing_tokens:
            raise OracleUnavailable("RPC call timed out after 5.0s")
        return self.balances.get((owner.lower(), token_id), 0)


def sign_proof(
    key=ALICE_KEY,
    chain_id: int = CHAIN_ID,
    contract: str = CONTRACT,
    token_id: int = 1,
    nonce: str = "nonce-0001",
    timestamp: int = NOW,
    recovery_offset: int = 27,
    **extra,
) -> dict:
    """Build a wire-format proof signed by key."""
    digest = compute_proof_digest(contract, chain_id, token_id, nonce, timestamp)
    signature = bytearray(key.sign_msg_hash(digest).to_bytes())
    signature[64] += recovery_offset

    proof = {
        "signature": "0x" + bytes(signature).hex(),
        "nonce": nonce,
        "timestamp": timestamp,
        "chainId": chain_id,
        "contractAddress": contract,
        "tokenId": token_id,
    }
    proof.update(extra)
    return proof


def proof_message(**kwargs) -> str:
    return build_proof_message(
        kwargs.get("contract", CONTRACT),
        kwargs.get("chain_id", CHAIN_ID),
        kwargs.get("token_id", 1),
        kwargs.get("nonce", "nonce-0001"),
        kwargs.get("timestamp", NOW),
    )


def make_policy(operations: Optional[dict] = None) -> TierPolicy:
    if operations is None:
        operations = {
            "generate_report": [{"tier": "basic", "token_id": 1, "min_quantity": 1}],
        }
    return TierPolicy.from_dict({"version": "1", "operations": operations})


def make_config(**overrides) -> GateConfig:
    values = dict(
        rpc_url="http://127.0.0.1:8545",
        chain_id=CHAIN_ID,
        contract_address=CONTRACT,
        max_proof_age_seconds=30,
        clock_skew_seconds=5,
        cache_ttl_seconds=300,
    )
    values.update(overrides)
    return GateConfig(**values)


def make_gate(
    reader: FakeBalanceReader,
    clock: FakeClock,
    operations: Optional[dict] = None,
    **config_overrides,
) -> TokenGate:
    return TokenGate.from_config(
        make_config(**config_overrides),
        policy=make_policy(operations),
        reader=reader,
        clock=clock,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def reader():
    return FakeBalanceReader()


@pytest.fixture
def gate(reader, clock):
    return make_gate(reader, clock)
