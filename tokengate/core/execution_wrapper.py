"""
Execution Wrapper - token-gated tool execution boundary

Wraps a tool executor so its business logic only runs after the gate
has granted access.

Enforcement Invariants:
1. The proof travels in a reserved argument (default "_proof") that is
   stripped before the tool sees its arguments
2. A protected tool never runs without a Granted decision
3. A denial is returned with its stable code and remediation, so the
   calling agent can fix the problem itself (re-sign, buy, retry)
4. Errors raised by the tool itself are not gate denials
"""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, Optional, Tuple

from .decision import Denied
from .errors import ErrorCode

if TYPE_CHECKING:
    from ..gate_system import TokenGate

logger = logging.getLogger(__name__)

DEFAULT_PROOF_PARAM = "_proof"

ToolExecutor = Callable[[Dict[str, Any]], Awaitable[Any]]


@dataclass
class ExecutionContext:
    """Context passed to tool execution"""

    tool_name: str
    parameters: Dict[str, Any]
    agent_id: Optional[str] = None
    session_key: Optional[str] = None

    def to_request_context(self) -> Dict[str, Any]:
        return {
            "agent_id": self.agent_id,
            "session_key": self.session_key,
            "tool": self.tool_name,
        }


@dataclass
class ExecutionResult:
    """Result of attempted tool execution"""

    allowed: bool
    result: Optional[Any] = None
    error: Optional[str] = None
    error_code: Optional[ErrorCode] = None
    remediation: Dict[str, Any] = field(default_factory=dict)
    signer_address: Optional[str] = None
    decision: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "allowed": self.allowed,
            "result": self.result,
            "error": self.error,
            "error_code": self.error_code.value if self.error_code else None,
            "remediation": self.remediation,
            "signer_address": self.signer_address,
            "decision": self.decision,
        }


def split_proof(
    parameters: Dict[str, Any], proof_param: str = DEFAULT_PROOF_PARAM
) -> Tuple[Any, Dict[str, Any]]:
    """
    Separate the reserved proof argument from ordinary tool arguments.

    Returns:
        (raw_proof or None, remaining arguments)
    """
    arguments = dict(parameters or {})
    raw_proof = arguments.pop(proof_param, None)
    return raw_proof, arguments


async def execute_with_gate(
    gate: "TokenGate",
    context: ExecutionContext,
    tool_executor: ToolExecutor,
    proof_param: str = DEFAULT_PROOF_PARAM,
) -> ExecutionResult:
    """
    Execute a tool behind the token gate.

    ENFORCEMENT FLOW:
    1. Strip the reserved proof argument
    2. Ask the gate for a decision
    3. Denied -> return code + remediation, tool never runs
    4. Granted -> run the tool with the remaining arguments
    """
    raw_proof, arguments = split_proof(context.parameters, proof_param)

    decision = await gate.authorize_operation(
        context.tool_name, raw_proof, context.to_request_context()
    )

    if isinstance(decision, Denied):
        return ExecutionResult(
            allowed=False,
            error=f"Token gate denied {context.tool_name}: {decision.detail}",
            error_code=decision.error_code,
            remediation=decision.remediation.to_dict(),
            decision=decision.to_dict(),
        )

    try:
        result = await tool_executor(arguments)
    except Exception as e:
        logger.error(f"Tool {context.tool_name} failed after grant: {e}", exc_info=True)
        return ExecutionResult(
            allowed=True,
            error=f"Tool execution failed: {e}",
            signer_address=decision.signer_address,
            decision=decision.to_dict(),
        )

    return ExecutionResult(
        allowed=True,
        result=result,
        signer_address=decision.signer_address,
        decision=decision.to_dict(),
    )


class GatedToolWrapper:
    """
    Wrapper that enforces the token gate on tool execution.

    Usage:
        async def generate_report(params):
            # Tool logic here
            return result

        gated = GatedToolWrapper("generate_report", generate_report, gate)
        result = await gated.execute({"topic": "x", "_proof": {...}})
    """

    def __init__(
        self,
        tool_name: str,
        tool_executor: ToolExecutor,
        gate: "TokenGate",
        proof_param: Optional[str] = None,
    ):
        self.tool_name = tool_name
        self.tool_executor = tool_executor
        self.gate = gate
        self.proof_param = proof_param or gate.config.proof_param_name

    async def execute(
        self,
        parameters: Dict[str, Any],
        agent_id: Optional[str] = None,
        session_key: Optional[str] = None,
    ) -> ExecutionResult:
        context = ExecutionContext(
            tool_name=self.tool_name,
            parameters=parameters,
            agent_id=agent_id,
            session_key=session_key,
        )

        return await execute_with_gate(
            self.gate, context, self.tool_executor, self.proof_param
        )
