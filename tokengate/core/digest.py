"""
Proof Message Canonicalization and Hashing.

Implements deterministic proof identity:
1. Canonical field normalization (lowercase addresses, decimal integers)
2. Fixed, versioned line encoding
3. EIP-191 personal_sign digest (keccak256)

The verifier rebuilds the message from the declared proof fields; the
digest is never accepted from the wire. Any change to field order or
encoding is protocol-breaking and MUST bump PROOF_MESSAGE_VERSION.
"""

from typing import Tuple

from eth_utils import keccak

PROOF_MESSAGE_VERSION = "tokengate-proof:v1"

# Field order is part of the protocol.
MESSAGE_FIELDS: Tuple[str, ...] = (
    "contract",
    "chain",
    "token",
    "nonce",
    "timestamp",
)

_PERSONAL_SIGN_PREFIX = b"\x19Ethereum Signed Message:\n"


def canonicalize_address(address: str) -> str:
    """
    Normalize an EVM address to canonical form.

    Rules:
    1. Strip surrounding whitespace
    2. Lowercase (drops any EIP-55 checksum casing)
    """
    return address.strip().lower()


def build_proof_message(
    contract_address: str,
    chain_id: int,
    token_id: int,
    nonce: str,
    timestamp: int,
) -> str:
    """
    Build the canonical message a wallet signs for a proof.

    Example:
        tokengate-proof:v1
        contract:0xabc...
        chain:1223953
        token:1
        nonce:8f3a...
        timestamp:1700000000
    """
    values = (
        canonicalize_address(contract_address),
        str(int(chain_id)),
        str(int(token_id)),
        nonce,
        str(int(timestamp)),
    )

    lines = [PROOF_MESSAGE_VERSION]
    lines.extend(f"{name}:{value}" for name, value in zip(MESSAGE_FIELDS, values))
    return "\n".join(lines)


def personal_sign_digest(message: str) -> bytes:
    """
    Compute the EIP-191 (version 0x45) digest of a text message.

    This is what `personal_sign` / `eth_sign` wallets sign, so any
    standard wallet can produce a proof.
    """
    payload = message.encode("utf-8")
    prefix = _PERSONAL_SIGN_PREFIX + str(len(payload)).encode("ascii")
    return keccak(prefix + payload)


def compute_proof_digest(
    contract_address: str,
    chain_id: int,
    token_id: int,
    nonce: str,
    timestamp: int,
) -> bytes:
    """
    Compute the 32-byte digest a proof signature must cover.

    Args:
        contract_address: Token contract the proof is bound to
        chain_id: Chain the proof is bound to
        token_id: Access token id being claimed
        nonce: Opaque replay token chosen by the client
        timestamp: Unix seconds when the proof was made

    Returns:
        keccak256 digest (32 bytes)
    """
    message = build_proof_message(contract_address, chain_id, token_id, nonce, timestamp)
    return personal_sign_digest(message)
