"""
Error taxonomy and classification for the token gate.

Every stage of the access pipeline fails fast with exactly one of the
codes below. Codes are stable wire values: automated clients switch on
them to decide whether to re-sign, refresh, switch network, buy tokens,
or simply retry.

Key Properties:
- One code per failure, no escalation across stages
- OracleUnavailable ("try again") is never confused with
  PaymentRequired ("you must pay")
- Each code carries a machine-actionable remediation hint
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional

if TYPE_CHECKING:
    from .decision import DecisionStage, Denied

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    """Stable denial codes."""

    PROOF_MISSING = "ProofMissing"
    MALFORMED_PROOF = "MalformedProof"
    PROOF_EXPIRED = "ProofExpired"
    CHAIN_MISMATCH = "ChainMismatch"
    INVALID_SIGNATURE = "InvalidSignature"
    PAYMENT_REQUIRED = "PaymentRequired"
    ORACLE_UNAVAILABLE = "OracleUnavailable"


class RemediationAction(str, Enum):
    """What the caller has to do before trying again."""

    OBTAIN_PROOF = "obtain_proof"
    REGENERATE_PROOF = "regenerate_proof"
    REFRESH_PROOF = "refresh_proof"
    SWITCH_NETWORK = "switch_network"
    RESIGN = "resign"
    ACQUIRE_TOKENS = "acquire_tokens"
    RETRY = "retry"


class GateError(Exception):
    """Base class for all per-call gate failures."""

    code: ErrorCode = ErrorCode.MALFORMED_PROOF

    def __init__(self, message: str, data: Any = None):
        self.message = message
        self.data = data
        super().__init__(f"{self.code.value}: {message}")


class ProofMissing(GateError):
    code = ErrorCode.PROOF_MISSING


class MalformedProof(GateError):
    code = ErrorCode.MALFORMED_PROOF


class ProofExpired(GateError):
    code = ErrorCode.PROOF_EXPIRED


class ChainMismatch(GateError):
    code = ErrorCode.CHAIN_MISMATCH


class InvalidSignature(GateError):
    code = ErrorCode.INVALID_SIGNATURE


class PaymentRequired(GateError):
    """Signer verified, but no requirement tier is satisfied."""

    code = ErrorCode.PAYMENT_REQUIRED

    def __init__(self, message: str, requirements: Optional[List[Any]] = None):
        super().__init__(message, data=list(requirements or []))

    @property
    def requirements(self) -> List[Any]:
        return self.data


class OracleUnavailable(GateError):
    """Balance lookup failed for infrastructure reasons."""

    code = ErrorCode.ORACLE_UNAVAILABLE


class GateConfigError(Exception):
    """Deployment configuration is invalid (raised at startup only)."""

    pass


@dataclass(frozen=True)
class Remediation:
    """Machine-actionable recovery hint attached to a denial."""

    action: RemediationAction
    retryable: bool
    message: str
    http_status: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action.value,
            "retryable": self.retryable,
            "message": self.message,
            "http_status": self.http_status,
        }


# Code -> (action, retryable, message, http status hint)
_REMEDIATIONS: Dict[ErrorCode, Remediation] = {
    ErrorCode.PROOF_MISSING: Remediation(
        RemediationAction.OBTAIN_PROOF,
        False,
        "This operation is token-gated. Sign an ownership proof and resubmit.",
        401,
    ),
    ErrorCode.MALFORMED_PROOF: Remediation(
        RemediationAction.REGENERATE_PROOF,
        False,
        "The proof is structurally invalid. Regenerate it with all required fields.",
        400,
    ),
    ErrorCode.PROOF_EXPIRED: Remediation(
        RemediationAction.REFRESH_PROOF,
        False,
        "The proof timestamp is outside the freshness window. Sign a new proof.",
        401,
    ),
    ErrorCode.CHAIN_MISMATCH: Remediation(
        RemediationAction.SWITCH_NETWORK,
        False,
        "The proof targets a different chain or contract than this deployment.",
        409,
    ),
    ErrorCode.INVALID_SIGNATURE: Remediation(
        RemediationAction.RESIGN,
        False,
        "The signature could not be verified. Re-sign the proof message.",
        401,
    ),
    ErrorCode.PAYMENT_REQUIRED: Remediation(
        RemediationAction.ACQUIRE_TOKENS,
        False,
        "The signer does not hold enough access tokens. Acquire one of the "
        "listed tokens, then retry.",
        402,
    ),
    ErrorCode.ORACLE_UNAVAILABLE: Remediation(
        RemediationAction.RETRY,
        True,
        "Token balance lookup is temporarily unavailable. Retry the authorization.",
        503,
    ),
}


def remediation_for(code: ErrorCode) -> Remediation:
    """Get the remediation hint for a code."""
    return _REMEDIATIONS[code]


class ErrorClassifier:
    """
    Maps gate failures onto terminal Denied results.

    The classifier is the single place where an exception becomes a
    decision, so every denial leaving the pipeline has a stable code and
    a remediation hint.
    """

    def classify(self, error: GateError, stage: "DecisionStage") -> "Denied":
        from .decision import Denied

        code = error.code
        requirements = ()
        if isinstance(error, PaymentRequired):
            requirements = tuple(error.requirements)

        denied = Denied(
            error_code=code,
            detail=error.message,
            stage=stage,
            remediation=remediation_for(code),
            requirements=requirements,
        )

        logger.debug(f"Classified {type(error).__name__} at {stage.value} -> {code.value}")
        return denied

    def classify_unexpected(
        self, error: Exception, stage: "DecisionStage"
    ) -> "Denied":
        """
        Classify an exception that escaped a stage's own error handling.

        Hostile input must never crash the caller: anything unexpected
        during signature work is an invalid signature, during the tier
        check an unavailable oracle, and anything else a malformed proof.
        """
        from .decision import DecisionStage

        logger.error(
            f"Unexpected error at stage {stage.value}: {error}", exc_info=True
        )

        if stage == DecisionStage.SIGNATURE_CHECK:
            wrapped: GateError = InvalidSignature("Signature verification failed")
        elif stage == DecisionStage.TIER_CHECK:
            wrapped = OracleUnavailable("Token balance lookup failed")
        else:
            wrapped = MalformedProof("Proof could not be processed")

        return self.classify(wrapped, stage)
