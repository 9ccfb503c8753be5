"""
Token Gate - Unified Gate System Integration

Wires the gate components into one object the tool-dispatch layer calls
before running a protected operation:
- Tier policy (operation -> token requirements)
- Balance oracle (cached, de-duplicated chain lookups)
- Access decision pipeline (parse, freshness, chain, signature, tier)

    gate = TokenGate.from_config(get_config())
    result = await gate.authorize_operation("generate_report", raw_proof)
    if not result.granted:
        return result.to_dict()
"""

import logging
import time
from typing import Any, Callable, Dict, Optional

from .config.gate_config import GateConfig
from .core.decision import VerificationResult
from .core.guards import FreshnessGuard
from .service.oracle.balance_oracle import BalanceOracle, BalanceReader
from .service.oracle.rpc_client import ChainRpcClient
from .service.pipeline import AccessDecisionPipeline
from .service.policy.tier_engine import TierPolicyEngine
from .service.policy.tier_policy import TierPolicy, load_tier_policy

logger = logging.getLogger(__name__)


class TokenGate:
    """
    Token-gated authorization for protected operations.

    All collaborators are injectable so tests can substitute a fake
    balance source and control time.
    """

    def __init__(
        self,
        config: GateConfig,
        policy: TierPolicy,
        oracle: BalanceOracle,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config
        self.policy = policy
        self.oracle = oracle
        self.tier_engine = TierPolicyEngine(policy, oracle)
        self.pipeline = AccessDecisionPipeline(
            tier_engine=self.tier_engine,
            expected_chain_id=config.chain_id,
            expected_contract=config.contract_address,
            freshness_guard=FreshnessGuard(
                max_age_seconds=config.max_proof_age_seconds,
                clock_skew_seconds=config.clock_skew_seconds,
            ),
            clock=clock,
        )

        logger.info(
            f"Token gate initialized (chain={config.chain_id}, "
            f"contract={config.contract_address}, "
            f"{len(policy)} protected operations)"
        )

    @classmethod
    def from_config(
        cls,
        config: GateConfig,
        policy: Optional[TierPolicy] = None,
        reader: Optional[BalanceReader] = None,
        clock: Callable[[], float] = time.time,
    ) -> "TokenGate":
        """
        Build a gate from deployment configuration.

        Args:
            config: Deployment configuration
            policy: Requirement table (default: config.policy_inline, else
                load config.policy_path)
            reader: Balance source (default: ChainRpcClient on config.rpc_url)
            clock: Time source in unix seconds
        """
        if policy is None:
            if config.policy_inline is not None:
                policy = load_tier_policy(config.policy_inline)
            else:
                policy = load_tier_policy(config.policy_path)

        if reader is None:
            reader = ChainRpcClient(
                config.rpc_url, timeout_seconds=config.rpc_timeout_seconds
            )

        oracle = BalanceOracle(
            reader,
            ttl_seconds=config.cache_ttl_seconds,
            max_entries=config.cache_max_entries,
            clock=clock,
        )
        return cls(config, policy, oracle, clock=clock)

    async def authorize_operation(
        self,
        operation_name: str,
        raw_proof: Any,
        request_context: Optional[Dict[str, Any]] = None,
    ) -> VerificationResult:
        """
        Decide whether the caller may run operation_name.

        Args:
            operation_name: Protected operation (tool) being invoked
            raw_proof: Proof structure from the reserved tool argument,
                or None when the caller supplied none
            request_context: Caller metadata used for logging only

        Returns:
            Granted or Denied - never raises for bad input
        """
        return await self.pipeline.authorize(operation_name, raw_proof, request_context)

    def get_stats(self) -> Dict[str, Any]:
        return {
            "chain_id": self.config.chain_id,
            "contract_address": self.config.contract_address,
            "protected_operations": self.policy.operations,
            "oracle": self.oracle.get_stats(),
        }
