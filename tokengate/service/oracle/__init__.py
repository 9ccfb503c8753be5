"""
Balance Oracle module for the token gate.

Cached, de-duplicated token balance lookups against a chain RPC endpoint.
"""

from .balance_oracle import (
    BalanceKey,
    BalanceOracle,
    CacheEntry,
    OracleStats,
    create_oracle_routes,
)
from .rpc_client import ChainRpcClient

__all__ = [
    "BalanceKey",
    "BalanceOracle",
    "CacheEntry",
    "OracleStats",
    "create_oracle_routes",
    "ChainRpcClient",
]
