"""
Verification results - the terminal output of the access pipeline.

A result is either Granted or Denied. Both are immutable and are only
built at the pipeline's single exit point, never partially filled.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Optional, Tuple, Union

from .errors import ErrorCode, Remediation

if TYPE_CHECKING:
    from ..service.policy.tier_policy import TokenRequirement


class DecisionStage(str, Enum):
    """Pipeline states, in evaluation order."""

    PARSING = "parsing"
    FRESHNESS_CHECK = "freshness_check"
    CHAIN_CHECK = "chain_check"
    SIGNATURE_CHECK = "signature_check"
    TIER_CHECK = "tier_check"
    GRANTED = "granted"
    DENIED = "denied"


TERMINAL_STAGES = frozenset({DecisionStage.GRANTED, DecisionStage.DENIED})


@dataclass(frozen=True)
class Granted:
    """Access granted."""

    signer_address: Optional[str]
    satisfied_requirement: Optional["TokenRequirement"] = None

    granted = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "decision": "granted",
            "signer_address": self.signer_address,
            "satisfied_requirement": (
                self.satisfied_requirement.to_dict()
                if self.satisfied_requirement
                else None
            ),
        }


@dataclass(frozen=True)
class Denied:
    """Access denied, with a stable code and remediation hint."""

    error_code: ErrorCode
    detail: str
    stage: DecisionStage
    remediation: Remediation
    requirements: Tuple["TokenRequirement", ...] = field(default_factory=tuple)

    granted = False

    @property
    def retryable(self) -> bool:
        return self.remediation.retryable

    def to_dict(self) -> Dict[str, Any]:
        return {
            "decision": "denied",
            "error_code": self.error_code.value,
            "detail": self.detail,
            "stage": self.stage.value,
            "remediation": self.remediation.to_dict(),
            "requirements": [r.to_dict() for r in self.requirements],
        }


VerificationResult = Union[Granted, Denied]
