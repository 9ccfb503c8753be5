"""
Gate core - proof handling, guards, signature recovery and error taxonomy.
"""

from .decision import DecisionStage, Denied, Granted, VerificationResult
from .errors import (
    ChainMismatch,
    ErrorClassifier,
    ErrorCode,
    GateConfigError,
    GateError,
    InvalidSignature,
    MalformedProof,
    OracleUnavailable,
    PaymentRequired,
    ProofExpired,
    ProofMissing,
    Remediation,
)
from .guards import ChainIdentityGuard, FreshnessGuard
from .proof import Proof, ProofCodec
from .signature import SignatureVerifier

__all__ = [
    "DecisionStage",
    "Denied",
    "Granted",
    "VerificationResult",
    "ChainMismatch",
    "ErrorClassifier",
    "ErrorCode",
    "GateConfigError",
    "GateError",
    "InvalidSignature",
    "MalformedProof",
    "OracleUnavailable",
    "PaymentRequired",
    "ProofExpired",
    "ProofMissing",
    "Remediation",
    "ChainIdentityGuard",
    "FreshnessGuard",
    "Proof",
    "ProofCodec",
    "SignatureVerifier",
]
