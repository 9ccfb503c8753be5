"""
Proof - submitted evidence of token ownership.

ProofCodec turns the untyped proof structure that accompanies a tool call
into a validated, immutable Proof. It checks structure and encoding only;
freshness, chain identity and signature validity are later stages.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .digest import build_proof_message, canonicalize_address, personal_sign_digest
from .errors import MalformedProof

logger = logging.getLogger(__name__)

SIGNATURE_LENGTH = 65
MAX_NONCE_LENGTH = 256

_SIGNATURE_RE = re.compile(r"0x[0-9a-fA-F]{%d}" % (SIGNATURE_LENGTH * 2))
_ADDRESS_RE = re.compile(r"0x[0-9a-fA-F]{40}")
_INTEGER_RE = re.compile(r"-?[0-9]+")


@dataclass(frozen=True)
class Proof:
    """Canonical, validated proof. Lives for one verification only."""

    signature_bytes: bytes
    nonce: str
    timestamp_seconds: int
    chain_id: int
    contract_address: str  # lowercase
    token_id: int
    claimed_address: Optional[str] = None  # lowercase, untrusted
    presented_message: Optional[str] = None  # untrusted

    @property
    def message(self) -> str:
        """Message rebuilt from the declared fields."""
        return build_proof_message(
            self.contract_address,
            self.chain_id,
            self.token_id,
            self.nonce,
            self.timestamp_seconds,
        )

    @property
    def message_digest(self) -> bytes:
        return personal_sign_digest(self.message)

    def short(self) -> str:
        """Compact form for logs."""
        return (
            f"chain={self.chain_id} token={self.token_id} "
            f"ts={self.timestamp_seconds} nonce={self.nonce[:8]}..."
        )


def _parse_integer(value: Any) -> int:
    # bool is an int subclass; a proof field is never a flag
    if isinstance(value, bool):
        raise ValueError("must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and _INTEGER_RE.fullmatch(value.strip()):
        return int(value.strip())
    raise ValueError("must be an integer")


class ProofPayload(BaseModel):
    """Wire structure of a proof (camelCase, snake_case accepted)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    signature: str
    nonce: str = Field(min_length=1, max_length=MAX_NONCE_LENGTH)
    timestamp: int
    chain_id: int = Field(alias="chainId", gt=0)
    contract_address: str = Field(alias="contractAddress")
    token_id: int = Field(alias="tokenId", ge=0)
    address: Optional[str] = None
    message: Optional[str] = None

    @field_validator("signature", mode="before")
    @classmethod
    def _check_signature(cls, value: Any) -> str:
        if not isinstance(value, str) or not _SIGNATURE_RE.fullmatch(value):
            raise ValueError(
                f"must be 0x-prefixed hex of exactly {SIGNATURE_LENGTH} bytes"
            )
        return value

    @field_validator("nonce", mode="before")
    @classmethod
    def _check_nonce(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("must be a string")
        if not value.strip():
            raise ValueError("must not be empty")
        if not value.isprintable():
            raise ValueError("must not contain control characters")
        return value

    @field_validator("timestamp", "chain_id", "token_id", mode="before")
    @classmethod
    def _check_integer(cls, value: Any) -> int:
        return _parse_integer(value)

    @field_validator("contract_address", "address", mode="before")
    @classmethod
    def _check_address(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        if not isinstance(value, str) or not _ADDRESS_RE.fullmatch(value.strip()):
            raise ValueError("must be a 0x-prefixed 20-byte hex address")
        return canonicalize_address(value)


def _describe(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item.get("loc", ())) or "proof"
        parts.append(f"{location}: {item.get('msg', 'invalid')}")
    return "; ".join(parts)


class ProofCodec:
    """
    Parses raw proofs into Proof objects.

    Accepts a mapping, or a JSON object encoded as a string (tool
    arguments often carry nested objects that way). Never raises anything
    but MalformedProof.
    """

    def parse(self, raw: Any) -> Proof:
        if isinstance(raw, (str, bytes)):
            try:
                raw = json.loads(raw)
            except (ValueError, UnicodeDecodeError) as e:
                raise MalformedProof(f"Proof is not valid JSON: {e}")

        if not isinstance(raw, Mapping):
            raise MalformedProof(
                f"Proof must be an object, got {type(raw).__name__}"
            )

        try:
            payload = ProofPayload.model_validate(dict(raw))
        except ValidationError as e:
            detail = _describe(e)
            logger.debug(f"Rejected malformed proof: {detail}")
            raise MalformedProof(f"Invalid proof fields: {detail}")

        signature_bytes = bytes.fromhex(payload.signature[2:])

        return Proof(
            signature_bytes=signature_bytes,
            nonce=payload.nonce,
            timestamp_seconds=payload.timestamp,
            chain_id=payload.chain_id,
            contract_address=payload.contract_address,
            token_id=payload.token_id,
            claimed_address=payload.address,
            presented_message=payload.message,
        )
