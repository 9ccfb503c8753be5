"""
Tier Policy Engine - decides whether a verified signer may run an operation.

Evaluation:
1. No requirements -> operation is unprotected, grant
2. Walk requirements in declaration order, asking the oracle for each
3. First requirement with quantity >= minimum grants
4. Nothing satisfied:
   - every lookup answered   -> PaymentRequired (with all requirements)
   - any lookup failed       -> OracleUnavailable

PaymentRequired is only ever returned on definitive balance answers, so
an automated client never gets "you must pay" when it should retry.
"""

import logging
from typing import List

from ...core.decision import Granted
from ...core.errors import OracleUnavailable, PaymentRequired
from ..oracle.balance_oracle import BalanceOracle
from .tier_policy import TierPolicy

logger = logging.getLogger(__name__)


class TierPolicyEngine:
    """Maps operations to token requirements and checks them."""

    def __init__(self, policy: TierPolicy, oracle: BalanceOracle):
        self.policy = policy
        self.oracle = oracle

    async def authorize(
        self,
        operation_name: str,
        signer_address: str,
        chain_id: int,
        contract: str,
    ) -> Granted:
        """
        Authorize a verified signer for an operation.

        Returns:
            Granted with the satisfied requirement (None if unprotected)

        Raises:
            PaymentRequired: all balances known, none sufficient
            OracleUnavailable: a needed balance could not be read
        """
        requirements = self.policy.requirements_for(operation_name)
        if not requirements:
            logger.debug(f"Operation {operation_name} is unprotected")
            return Granted(signer_address=signer_address, satisfied_requirement=None)

        failures: List[OracleUnavailable] = []
        answered = 0

        for requirement in requirements:
            try:
                quantity = await self.oracle.get_balance(
                    chain_id, contract, signer_address, requirement.required_token_id
                )
            except OracleUnavailable as e:
                failures.append(e)
                continue

            answered += 1
            if requirement.is_satisfied_by(quantity):
                logger.info(
                    f"Granted {operation_name} to {signer_address[:10]}... via "
                    f"token {requirement.required_token_id} "
                    f"(holds {quantity}, needs {requirement.minimum_quantity})"
                )
                return Granted(
                    signer_address=signer_address, satisfied_requirement=requirement
                )

        if failures:
            logger.warning(
                f"Cannot decide {operation_name} for {signer_address[:10]}...: "
                f"{len(failures)}/{len(requirements)} balance lookups failed"
            )
            raise OracleUnavailable(
                f"Token balance lookup failed for {len(failures)} of "
                f"{len(requirements)} requirement(s): {failures[0].message}",
                data={"answered": answered, "failed": len(failures)},
            )

        raise PaymentRequired(
            f"Signer holds insufficient tokens for {operation_name}",
            requirements=list(requirements),
        )
