"""
Access Decision Pipeline - orchestrates proof verification.

    PARSING -> FRESHNESS_CHECK -> CHAIN_CHECK -> SIGNATURE_CHECK -> TIER_CHECK
                                                                   -> GRANTED
    (any stage fails) ------------------------------------------------> DENIED

Stages run strictly in order and short-circuit: a stale proof never costs
a signature recovery, and a bad signature never costs an RPC call. Each
authorize() call gets its own PipelineRun; runs are never reused.
"""

import logging
import time
from typing import Any, Callable, Dict, List, Optional

from ..core.decision import (
    TERMINAL_STAGES,
    DecisionStage,
    Denied,
    Granted,
    VerificationResult,
)
from ..core.errors import ErrorClassifier, GateError, InvalidSignature, ProofMissing
from ..core.guards import ChainIdentityGuard, FreshnessGuard
from ..core.proof import Proof, ProofCodec
from ..core.signature import SignatureVerifier
from .policy.tier_engine import TierPolicyEngine

logger = logging.getLogger(__name__)


class PipelineRun:
    """
    State for one authorization.

    Tracks the current stage and the stages visited; becomes inert once
    a terminal stage is reached.
    """

    def __init__(self, operation_name: str, request_context: Optional[Dict[str, Any]]):
        self.operation_name = operation_name
        self.request_context = request_context or {}
        self.stage = DecisionStage.PARSING
        self.trace: List[DecisionStage] = [DecisionStage.PARSING]
        self.result: Optional[VerificationResult] = None

    def advance(self, stage: DecisionStage) -> None:
        if self.stage in TERMINAL_STAGES:
            raise RuntimeError(f"Run already finished in {self.stage.value}")
        self.stage = stage
        self.trace.append(stage)

    def finish(self, result: VerificationResult) -> VerificationResult:
        if self.stage in TERMINAL_STAGES:
            raise RuntimeError(f"Run already finished in {self.stage.value}")
        terminal = DecisionStage.GRANTED if result.granted else DecisionStage.DENIED
        self.stage = terminal
        self.trace.append(terminal)
        self.result = result
        return result


class AccessDecisionPipeline:
    """
    Pure decision function over (proof, operation, time, chain state).

    The only shared state is the oracle cache behind the tier engine.
    """

    def __init__(
        self,
        tier_engine: TierPolicyEngine,
        expected_chain_id: int,
        expected_contract: str,
        freshness_guard: Optional[FreshnessGuard] = None,
        chain_guard: Optional[ChainIdentityGuard] = None,
        signature_verifier: Optional[SignatureVerifier] = None,
        codec: Optional[ProofCodec] = None,
        classifier: Optional[ErrorClassifier] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.tier_engine = tier_engine
        self.expected_chain_id = expected_chain_id
        self.expected_contract = expected_contract
        self.freshness_guard = freshness_guard or FreshnessGuard()
        self.chain_guard = chain_guard or ChainIdentityGuard()
        self.signature_verifier = signature_verifier or SignatureVerifier()
        self.codec = codec or ProofCodec()
        self.classifier = classifier or ErrorClassifier()
        self._clock = clock

    async def authorize(
        self,
        operation_name: str,
        raw_proof: Any,
        request_context: Optional[Dict[str, Any]] = None,
    ) -> VerificationResult:
        """
        Run the pipeline for one call.

        Never raises for bad input: every failure comes back as Denied.
        """
        run = PipelineRun(operation_name, request_context)

        try:
            result = await self._evaluate(run, raw_proof)
        except GateError as e:
            result = self.classifier.classify(e, run.stage)
        except Exception as e:
            result = self.classifier.classify_unexpected(e, run.stage)

        run.finish(result)
        self._log_outcome(run)
        return result

    async def _evaluate(self, run: PipelineRun, raw_proof: Any) -> Granted:
        policy = self.tier_engine.policy

        if raw_proof is None:
            if not policy.is_protected(run.operation_name):
                return Granted(signer_address=None, satisfied_requirement=None)
            raise ProofMissing(
                f"Operation {run.operation_name} requires a token ownership proof"
            )

        proof: Proof = self.codec.parse(raw_proof)

        run.advance(DecisionStage.FRESHNESS_CHECK)
        self.freshness_guard.check(proof, self._clock())

        run.advance(DecisionStage.CHAIN_CHECK)
        self.chain_guard.check(proof, self.expected_chain_id, self.expected_contract)

        run.advance(DecisionStage.SIGNATURE_CHECK)
        signer = self.signature_verifier.verify(proof)
        if proof.claimed_address is not None and proof.claimed_address != signer:
            raise InvalidSignature(
                "Recovered signer does not match the claimed address",
                data={"claimed_address": proof.claimed_address},
            )

        run.advance(DecisionStage.TIER_CHECK)
        return await self.tier_engine.authorize(
            run.operation_name, signer, proof.chain_id, proof.contract_address
        )

    def _log_outcome(self, run: PipelineRun) -> None:
        result = run.result
        caller = run.request_context.get("caller") or run.request_context.get("agent_id")
        suffix = f" caller={caller}" if caller else ""

        if isinstance(result, Denied):
            logger.info(
                f"DENY {run.operation_name}: {result.error_code.value} at "
                f"{result.stage.value} ({result.detail}){suffix}"
            )
        else:
            logger.debug(
                f"GRANT {run.operation_name} via "
                f"{' -> '.join(s.value for s in run.trace)}{suffix}"
            )
