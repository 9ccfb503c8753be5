"""Deployment configuration."""

from .gate_config import GateConfig, get_config

__all__ = ["GateConfig", "get_config"]
