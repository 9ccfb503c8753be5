"""
Policy service for the token gate - requirement table and tier evaluation.
"""

from .tier_engine import TierPolicyEngine
from .tier_policy import (
    PolicyConfigError,
    TierPolicy,
    TokenRequirement,
    load_tier_policy,
)

__all__ = [
    "TierPolicyEngine",
    "PolicyConfigError",
    "TierPolicy",
    "TokenRequirement",
    "load_tier_policy",
]
