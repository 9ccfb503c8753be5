"""
Cheap proof guards that run before any cryptographic or network work.

- FreshnessGuard: replay protection via a bounded timestamp window
- ChainIdentityGuard: binds proofs to this deployment's chain and contract
"""

import logging

from .digest import canonicalize_address
from .errors import ChainMismatch, ProofExpired
from .proof import Proof

logger = logging.getLogger(__name__)

DEFAULT_MAX_AGE_SECONDS = 30
DEFAULT_CLOCK_SKEW_SECONDS = 5


class FreshnessGuard:
    """
    Rejects proofs outside the freshness window.

    A proof is fresh when -clock_skew <= now - timestamp <= max_age.
    Future timestamps beyond the skew tolerance are rejected the same way
    as stale ones.
    """

    def __init__(
        self,
        max_age_seconds: int = DEFAULT_MAX_AGE_SECONDS,
        clock_skew_seconds: int = DEFAULT_CLOCK_SKEW_SECONDS,
    ):
        self.max_age_seconds = max_age_seconds
        self.clock_skew_seconds = clock_skew_seconds

    def check(self, proof: Proof, now: float) -> None:
        timestamp = proof.timestamp_seconds

        # int/float comparisons are exact; the timestamp is never converted
        if timestamp < now - self.max_age_seconds:
            raise ProofExpired(
                f"Proof is older than the {self.max_age_seconds}s freshness window",
                data={"now": now, "max_age_seconds": self.max_age_seconds},
            )

        if timestamp > now + self.clock_skew_seconds:
            raise ProofExpired(
                f"Proof timestamp is more than {self.clock_skew_seconds}s in the future",
                data={"now": now, "clock_skew_seconds": self.clock_skew_seconds},
            )


class ChainIdentityGuard:
    """Rejects proofs issued for another network or contract."""

    def check(self, proof: Proof, expected_chain_id: int, expected_contract: str) -> None:
        if proof.chain_id != expected_chain_id:
            raise ChainMismatch(
                f"Proof is for chain {proof.chain_id}, expected {expected_chain_id}",
                data={"chain_id": proof.chain_id, "expected_chain_id": expected_chain_id},
            )

        expected = canonicalize_address(expected_contract)
        if canonicalize_address(proof.contract_address) != expected:
            raise ChainMismatch(
                f"Proof is for contract {proof.contract_address}, expected {expected}",
                data={
                    "contract_address": proof.contract_address,
                    "expected_contract_address": expected,
                },
            )
