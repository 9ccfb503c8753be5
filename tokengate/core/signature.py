"""
Signature Verifier - recovers the signer of a proof.

Implements the signature stage of the access pipeline:
1. Rebuild the versioned proof message from the declared fields
2. Reject any presented message that differs from the rebuilt one
3. Validate the 65-byte r||s||v signature shape and recovery id
4. Recover the signing address over the EIP-191 digest

No address comparison happens here; the recovered address is returned
as-is and the pipeline decides what to do with it.
"""

import logging

from eth_keys import keys
from eth_keys.constants import SECPK1_N

from .digest import canonicalize_address
from .errors import InvalidSignature
from .proof import SIGNATURE_LENGTH, Proof

logger = logging.getLogger(__name__)

# Wallets emit 27/28; raw secp256k1 recovery ids are 0/1.
_RECOVERY_IDS = {0: 0, 1: 1, 27: 0, 28: 1}


class SignatureVerifier:
    """Recovers signer addresses from proofs. Stateless and deterministic."""

    def verify(self, proof: Proof) -> str:
        """
        Recover the address that signed this proof.

        Returns:
            Lowercase 0x-prefixed signer address

        Raises:
            InvalidSignature: malformed signature or failed recovery
        """
        message = proof.message

        if proof.presented_message is not None and proof.presented_message != message:
            raise InvalidSignature(
                "Presented message does not match the message rebuilt from proof fields"
            )

        signature = proof.signature_bytes
        if len(signature) != SIGNATURE_LENGTH:
            raise InvalidSignature(
                f"Signature must be {SIGNATURE_LENGTH} bytes, got {len(signature)}"
            )

        r = int.from_bytes(signature[0:32], "big")
        s = int.from_bytes(signature[32:64], "big")
        v = signature[64]

        if v not in _RECOVERY_IDS:
            raise InvalidSignature(f"Invalid recovery id {v}")

        if not (0 < r < SECPK1_N) or not (0 < s < SECPK1_N):
            raise InvalidSignature("Signature r/s out of range")

        # Only the low-s form is canonical (EIP-2)
        if s * 2 > SECPK1_N:
            raise InvalidSignature("Signature s value is not canonical (high-s)")

        try:
            sig = keys.Signature(vrs=(_RECOVERY_IDS[v], r, s))
            public_key = sig.recover_public_key_from_msg_hash(proof.message_digest)
            address = public_key.to_checksum_address()
        except Exception as e:
            logger.debug(f"Signature recovery failed: {e}")
            raise InvalidSignature(f"Signature recovery failed: {e}")

        return canonicalize_address(address)
