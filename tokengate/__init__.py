"""
Token Gate - Token-Gated Authorization for AI Assistant Tools

Decides whether a caller may invoke a protected operation, based on a
signed proof of ownership of a blockchain-issued access token.

Architecture:
- Core: proof parsing, freshness/chain guards, signature recovery, errors
- Service: balance oracle (cached chain lookups), tier policy, pipeline
- API: decision endpoint for the tool-dispatch layer

Key Properties:
- Fail fast: first failing stage decides, later stages never run
- Stable error codes with remediation hints for automated clients
- "Retry" (OracleUnavailable) is never confused with "pay" (PaymentRequired)
- Adversarial input is denied, never crashes the process
"""

__version__ = "0.1.0"
