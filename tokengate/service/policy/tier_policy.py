"""
Tier Policy - Operation to Token Requirement Table

Loads the static policy that binds protected operations to the access
tokens that unlock them. Several requirements on one operation are
alternative tiers (OR semantics), evaluated in declaration order.

Policy file format (YAML):

    version: "1"
    operations:
      generate_report:
        - tier: basic
          token_id: 1
          min_quantity: 1
        - tier: pro
          token_id: 2
          min_quantity: 1

The table is loaded once at process start and is read-only afterwards.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

import yaml

logger = logging.getLogger(__name__)


class PolicyConfigError(Exception):
    """The requirement table could not be loaded (startup only)."""

    pass


@dataclass(frozen=True)
class TokenRequirement:
    """One way of unlocking an operation."""

    operation_name: str
    required_token_id: int
    minimum_quantity: int = 1
    tier: Optional[str] = None

    def is_satisfied_by(self, quantity: int) -> bool:
        return quantity >= self.minimum_quantity

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operation": self.operation_name,
            "tier": self.tier,
            "token_id": self.required_token_id,
            "min_quantity": self.minimum_quantity,
        }


def _as_int(value: Any, what: str, minimum: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise PolicyConfigError(f"{what} must be an integer, got {value!r}")
    if value < minimum:
        raise PolicyConfigError(f"{what} must be >= {minimum}, got {value}")
    return value


class TierPolicy:
    """
    Immutable operation -> requirements table.

    Operations without an entry are unprotected.
    """

    def __init__(
        self,
        requirements: Mapping[str, Tuple[TokenRequirement, ...]],
        version: str = "1",
        source: str = "inline",
    ):
        self._requirements = MappingProxyType(
            {name: tuple(reqs) for name, reqs in requirements.items()}
        )
        self.version = version
        self.source = source

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], source: str = "inline") -> "TierPolicy":
        """Build a policy from its parsed YAML/JSON form."""
        if not isinstance(data, Mapping):
            raise PolicyConfigError("Policy document must be a mapping")

        operations = data.get("operations", {})
        if operations is None:
            operations = {}
        if not isinstance(operations, Mapping):
            raise PolicyConfigError("'operations' must map operation names to tiers")

        table: Dict[str, Tuple[TokenRequirement, ...]] = {}
        for operation_name, entries in operations.items():
            if not isinstance(operation_name, str) or not operation_name:
                raise PolicyConfigError(f"Invalid operation name: {operation_name!r}")
            if isinstance(entries, Mapping):
                entries = [entries]
            if not isinstance(entries, list) or not entries:
                raise PolicyConfigError(
                    f"Operation {operation_name!r} must list at least one requirement"
                )

            requirements: List[TokenRequirement] = []
            for index, entry in enumerate(entries):
                where = f"{operation_name}[{index}]"
                if not isinstance(entry, Mapping):
                    raise PolicyConfigError(f"{where} must be a mapping")
                if "token_id" not in entry:
                    raise PolicyConfigError(f"{where} is missing token_id")

                tier = entry.get("tier")
                requirements.append(
                    TokenRequirement(
                        operation_name=operation_name,
                        required_token_id=_as_int(
                            entry["token_id"], f"{where}.token_id", 0
                        ),
                        minimum_quantity=_as_int(
                            entry.get("min_quantity", 1), f"{where}.min_quantity", 1
                        ),
                        tier=str(tier) if tier is not None else None,
                    )
                )

            table[operation_name] = tuple(requirements)

        return cls(table, version=str(data.get("version", "1")), source=source)

    def requirements_for(self, operation_name: str) -> Tuple[TokenRequirement, ...]:
        return self._requirements.get(operation_name, ())

    def is_protected(self, operation_name: str) -> bool:
        return bool(self._requirements.get(operation_name))

    @property
    def operations(self) -> List[str]:
        return sorted(self._requirements)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "source": self.source,
            "operations": {
                name: [r.to_dict() for r in reqs]
                for name, reqs in self._requirements.items()
            },
        }

    def __len__(self) -> int:
        return len(self._requirements)


def load_tier_policy(source: Union[str, Path, Mapping[str, Any], None]) -> TierPolicy:
    """
    Load the requirement table.

    Args:
        source: Path to a YAML policy file, an already-parsed mapping,
            or None for an empty (everything unprotected) policy

    Raises:
        PolicyConfigError: file missing, unparsable or invalid
    """
    if source is None:
        logger.warning("No tier policy configured - all operations are unprotected")
        return TierPolicy({}, source="empty")

    if isinstance(source, Mapping):
        policy = TierPolicy.from_dict(source)
    else:
        policy_file = Path(source)
        if not policy_file.exists():
            raise PolicyConfigError(f"Tier policy not found: {policy_file}")

        try:
            with open(policy_file) as f:
                document = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise PolicyConfigError(f"Failed to parse tier policy {policy_file}: {e}")

        policy = TierPolicy.from_dict(document or {}, source=str(policy_file))

    total = sum(len(policy.requirements_for(op)) for op in policy.operations)
    logger.info(
        f"Loaded tier policy v{policy.version} from {policy.source} "
        f"({len(policy)} protected operations, {total} requirements)"
    )
    return policy
