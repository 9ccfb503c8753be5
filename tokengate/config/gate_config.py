"""
Token Gate - Deployment Configuration

Deployment settings are loaded once at startup and are immutable
afterwards.

Environment Variables:
  TOKENGATE_RPC_URL            - Chain JSON-RPC endpoint for balance lookups (required)
  TOKENGATE_CHAIN_ID           - Chain id proofs must be bound to
  TOKENGATE_CONTRACT_ADDRESS   - Access token contract (ERC-1155) (required)
  TOKENGATE_POLICY_PATH        - YAML file with the operation -> requirement table
  TOKENGATE_POLICY             - Inline YAML/JSON policy document (instead of a file)
  TOKENGATE_MAX_PROOF_AGE      - Freshness window in seconds
  TOKENGATE_CLOCK_SKEW         - Tolerance for future timestamps in seconds
  TOKENGATE_CACHE_TTL          - Balance cache TTL in seconds
  TOKENGATE_CACHE_MAX_ENTRIES  - Balance cache size bound
  TOKENGATE_RPC_TIMEOUT        - Outbound RPC timeout in seconds
  TOKENGATE_PROOF_PARAM        - Reserved tool argument that carries the proof
  TOKENGATE_HOST / TOKENGATE_PORT - Decision API bind address
"""

import logging
import os
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

import yaml

from ..core.errors import GateConfigError

logger = logging.getLogger("tokengate.config")

DEFAULT_CHAIN_ID = 1223953
DEFAULT_PROOF_PARAM = "_proof"

_ADDRESS_RE = re.compile(r"0x[0-9a-fA-F]{40}")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise GateConfigError(f"{name} must be an integer, got {raw!r}")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise GateConfigError(f"{name} must be a number, got {raw!r}")


def _env_policy(name: str) -> Optional[Dict[str, Any]]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        document = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise GateConfigError(f"{name} is not valid YAML/JSON: {e}")
    if not isinstance(document, dict):
        raise GateConfigError(f"{name} must be a mapping with an 'operations' key")
    return document


@dataclass(frozen=True)
class GateConfig:
    """Token gate deployment configuration."""

    # Chain identity
    rpc_url: str = ""
    chain_id: int = DEFAULT_CHAIN_ID
    contract_address: str = ""

    # Policy
    policy_path: Optional[str] = None
    policy_inline: Optional[Dict[str, Any]] = None

    # Proof windows
    max_proof_age_seconds: int = 30
    clock_skew_seconds: int = 5

    # Balance oracle
    cache_ttl_seconds: int = 300
    cache_max_entries: int = 10000
    rpc_timeout_seconds: float = 5.0

    # Tool dispatch
    proof_param_name: str = DEFAULT_PROOF_PARAM

    # Decision API
    host: str = "127.0.0.1"
    port: int = 8765

    @classmethod
    def from_env(cls) -> "GateConfig":
        """Load configuration from environment variables."""
        return cls(
            rpc_url=os.getenv("TOKENGATE_RPC_URL", ""),
            chain_id=_env_int("TOKENGATE_CHAIN_ID", DEFAULT_CHAIN_ID),
            contract_address=os.getenv("TOKENGATE_CONTRACT_ADDRESS", "").strip().lower(),
            policy_path=os.getenv("TOKENGATE_POLICY_PATH") or None,
            policy_inline=_env_policy("TOKENGATE_POLICY"),
            max_proof_age_seconds=_env_int("TOKENGATE_MAX_PROOF_AGE", 30),
            clock_skew_seconds=_env_int("TOKENGATE_CLOCK_SKEW", 5),
            cache_ttl_seconds=_env_int("TOKENGATE_CACHE_TTL", 300),
            cache_max_entries=_env_int("TOKENGATE_CACHE_MAX_ENTRIES", 10000),
            rpc_timeout_seconds=_env_float("TOKENGATE_RPC_TIMEOUT", 5.0),
            proof_param_name=os.getenv("TOKENGATE_PROOF_PARAM", DEFAULT_PROOF_PARAM),
            host=os.getenv("TOKENGATE_HOST", "127.0.0.1"),
            port=_env_int("TOKENGATE_PORT", 8765),
        )

    def validate(self) -> "GateConfig":
        """
        Check the configuration is usable.

        Raises GateConfigError on the first problem found.
        """
        if not self.rpc_url:
            raise GateConfigError("TOKENGATE_RPC_URL is not set")
        if not self.rpc_url.startswith(("http://", "https://")):
            raise GateConfigError(f"RPC URL must be http(s): {self.rpc_url}")
        if not _ADDRESS_RE.fullmatch(self.contract_address or ""):
            raise GateConfigError(
                f"Contract address must be a 0x-prefixed 20-byte hex address, "
                f"got {self.contract_address!r}"
            )
        if self.policy_path and self.policy_inline is not None:
            raise GateConfigError(
                "Set either TOKENGATE_POLICY_PATH or TOKENGATE_POLICY, not both"
            )
        if self.chain_id <= 0:
            raise GateConfigError(f"Chain id must be positive, got {self.chain_id}")
        if self.max_proof_age_seconds <= 0:
            raise GateConfigError("Max proof age must be positive")
        if self.clock_skew_seconds < 0:
            raise GateConfigError("Clock skew tolerance must not be negative")
        if self.cache_ttl_seconds < 0:
            raise GateConfigError("Cache TTL must not be negative")
        if self.cache_max_entries <= 0:
            raise GateConfigError("Cache size must be positive")
        if self.rpc_timeout_seconds <= 0:
            raise GateConfigError("RPC timeout must be positive")
        if not self.proof_param_name:
            raise GateConfigError("Proof parameter name must not be empty")
        return self

    def describe(self) -> dict:
        """Loggable view of the configuration (no secrets in RPC URLs)."""
        return {
            "rpc_host": self.rpc_url.split("://", 1)[-1].split("/", 1)[0],
            "chain_id": self.chain_id,
            "contract_address": self.contract_address,
            "policy_path": self.policy_path,
            "policy_inline": self.policy_inline is not None,
            "max_proof_age_seconds": self.max_proof_age_seconds,
            "clock_skew_seconds": self.clock_skew_seconds,
            "cache_ttl_seconds": self.cache_ttl_seconds,
            "rpc_timeout_seconds": self.rpc_timeout_seconds,
        }


def get_config() -> GateConfig:
    """Load and validate configuration from the environment."""
    config = GateConfig.from_env().validate()
    logger.info(f"Loaded gate configuration: {config.describe()}")
    return config
