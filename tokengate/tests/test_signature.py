"""
Tests for signer recovery.
"""

import dataclasses

import pytest
from eth_keys.constants import SECPK1_N

from conftest import ALICE, ALICE_KEY, BOB, BOB_KEY, proof_message, sign_proof
from tokengate.core.digest import (
    PROOF_MESSAGE_VERSION,
    build_proof_message,
    compute_proof_digest,
    personal_sign_digest,
)
from tokengate.core.errors import InvalidSignature
from tokengate.core.proof import ProofCodec
from tokengate.core.signature import SignatureVerifier

codec = ProofCodec()


def with_signature(proof, signature: bytes):
    return dataclasses.replace(proof, signature_bytes=signature)


class TestProofDigest:
    """Versioned, deterministic message encoding."""

    def test_message_layout(self):
        message = build_proof_message("0x" + "AB" * 20, 5, 7, "n-1", 1700000000)

        assert message.split("\n") == [
            PROOF_MESSAGE_VERSION,
            "contract:0x" + "ab" * 20,
            "chain:5",
            "token:7",
            "nonce:n-1",
            "timestamp:1700000000",
        ]

    def test_digest_depends_on_every_field(self):
        base = dict(contract_address="0x" + "ab" * 20, chain_id=1, token_id=1, nonce="n", timestamp=10)
        digest = compute_proof_digest(**base)

        for field, value in [
            ("contract_address", "0x" + "cd" * 20),
            ("chain_id", 2),
            ("token_id", 2),
            ("nonce", "m"),
            ("timestamp", 11),
        ]:
            changed = dict(base, **{field: value})
            assert compute_proof_digest(**changed) != digest, field

    def test_personal_sign_prefix(self):
        # keccak256("\x19Ethereum Signed Message:\n5hello")
        assert personal_sign_digest("hello").hex() == (
            "50b2c43fd39106bafbba0da34fc430e1f91e3c96ea2acee2bc34119f92b37750"
        )


class TestSignatureVerifier:
    """Recovery of the signing address."""

    @pytest.fixture
    def verifier(self):
        return SignatureVerifier()

    def test_recovers_signer(self, verifier):
        assert verifier.verify(codec.parse(sign_proof(key=ALICE_KEY))) == ALICE
        assert verifier.verify(codec.parse(sign_proof(key=BOB_KEY))) == BOB

    def test_raw_recovery_ids_accepted(self, verifier):
        proof = codec.parse(sign_proof(recovery_offset=0))
        assert verifier.verify(proof) == ALICE

    def test_deterministic(self, verifier):
        proof = codec.parse(sign_proof())
        assert {verifier.verify(proof) for _ in range(5)} == {ALICE}

    def test_tampered_field_changes_signer(self, verifier):
        raw = sign_proof()
        raw["tokenId"] = 2

        # Still a well-formed signature, just over a different message
        assert verifier.verify(codec.parse(raw)) != ALICE

    def test_matching_presented_message(self, verifier):
        proof = codec.parse(sign_proof(message=proof_message()))
        assert verifier.verify(proof) == ALICE

    def test_mismatched_presented_message(self, verifier):
        proof = codec.parse(sign_proof(message="please let me in"))

        with pytest.raises(InvalidSignature):
            verifier.verify(proof)

    @pytest.mark.parametrize("v", [2, 26, 29, 255])
    def test_invalid_recovery_id(self, verifier, v):
        proof = codec.parse(sign_proof())
        signature = bytearray(proof.signature_bytes)
        signature[64] = v

        with pytest.raises(InvalidSignature):
            verifier.verify(with_signature(proof, bytes(signature)))

    def test_wrong_length(self, verifier):
        proof = codec.parse(sign_proof())

        with pytest.raises(InvalidSignature):
            verifier.verify(with_signature(proof, proof.signature_bytes[:64]))

    @pytest.mark.parametrize(
        "r,s",
        [
            (0, 1),
            (1, 0),
            (SECPK1_N, 1),
            (1, SECPK1_N),
            (2**256 - 1, 1),
        ],
    )
    def test_out_of_range_scalars(self, verifier, r, s):
        proof = codec.parse(sign_proof())
        signature = r.to_bytes(32, "big") + s.to_bytes(32, "big") + bytes([27])

        with pytest.raises(InvalidSignature):
            verifier.verify(with_signature(proof, signature))

    def test_high_s_rejected(self, verifier):
        proof = codec.parse(sign_proof())
        sig = proof.signature_bytes
        s = int.from_bytes(sig[32:64], "big")
        flipped_v = 27 + (1 - (sig[64] - 27))
        malleated = sig[:32] + (SECPK1_N - s).to_bytes(32, "big") + bytes([flipped_v])

        with pytest.raises(InvalidSignature):
            verifier.verify(with_signature(proof, malleated))

    def test_garbage_signature_never_crashes(self, verifier):
        proof = codec.parse(sign_proof())
        garbage = bytes([0x7F] * 64) + bytes([28])

        try:
            signer = verifier.verify(with_signature(proof, garbage))
        except InvalidSignature:
            return
        assert signer != ALICE
