"""
/v1/authorize - token gate decision endpoint

Called by the tool-dispatch layer before a protected operation runs.
Always answers 200 with a decision body; the denial code and its
remediation (including an HTTP status hint) are in the payload.
"""

import logging
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel

from ..core.decision import Denied

logger = logging.getLogger(__name__)
router = APIRouter()


class AuthorizeRequest(BaseModel):
    """Authorization request from the tool-dispatch layer."""

    operation: str
    proof: Optional[Any] = None
    context: Optional[Dict[str, Any]] = None


class RemediationModel(BaseModel):
    action: str
    retryable: bool
    message: str
    http_status: int


class RequirementModel(BaseModel):
    operation: str
    tier: Optional[str] = None
    token_id: int
    min_quantity: int


class AuthorizeResponse(BaseModel):
    """Gate decision."""

    decision: Literal["granted", "denied"]
    operation: str
    signer_address: Optional[str] = None
    satisfied_requirement: Optional[RequirementModel] = None
    error_code: Optional[str] = None
    detail: Optional[str] = None
    stage: Optional[str] = None
    remediation: Optional[RemediationModel] = None
    requirements: List[RequirementModel] = []


@router.post("/v1/authorize", response_model=AuthorizeResponse)
async def authorize(body: AuthorizeRequest, request: Request):
    """
    Evaluate a proof for an operation.

    A missing or null "proof" is reported as ProofMissing for protected
    operations.
    """
    gate = request.app.state.gate

    result = await gate.authorize_operation(body.operation, body.proof, body.context)
    payload = result.to_dict()
    logger.debug(f"/v1/authorize {body.operation} -> {payload['decision']}")

    if isinstance(result, Denied):
        return AuthorizeResponse(
            decision="denied",
            operation=body.operation,
            error_code=payload["error_code"],
            detail=payload["detail"],
            stage=payload["stage"],
            remediation=payload["remediation"],
            requirements=payload["requirements"],
        )

    return AuthorizeResponse(
        decision="granted",
        operation=body.operation,
        signer_address=payload["signer_address"],
        satisfied_requirement=payload["satisfied_requirement"],
    )


@router.get("/v1/operations")
async def list_operations(request: Request):
    """List protected operations and the token tiers that unlock them."""
    gate = request.app.state.gate
    return gate.policy.to_dict()
