"""API endpoints for payment lifecycle queries."""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from ..auth import RATE_LIMIT, limiter, verify_api_key
from .engine import (
    STATUS_METADATA,
    available_actions,
    can_cancel,
    can_capture,
    can_refund,
    get_metadata,
    is_actionable,
    is_final,
    possible_transitions,
    validate_transition,
)
from .models import PaymentAction, PaymentStatus, TransitionContext

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/lifecycle", tags=["lifecycle"])


class TransitionRequestBody(BaseModel):
    """Request body for validating a lifecycle action."""
    status: str = Field(..., description="Current payment status")
    action: PaymentAction = Field(..., description="Requested action")
    context: Optional[TransitionContext] = Field(None, description="Capture/refund amounts")


def _parse_status(value: str) -> PaymentStatus:
    try:
        return PaymentStatus.parse(value)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


def describe_status(status: PaymentStatus) -> Dict[str, Any]:
    metadata = get_metadata(status)
    return {
        "status": status.value,
        **metadata.model_dump(mode="json"),
        "capabilities": {
            "is_final": is_final(status),
            "is_actionable": is_actionable(status),
            "can_capture": can_capture(status),
            "can_refund": can_refund(status),
            "can_cancel": can_cancel(status),
        },
        "available_actions": [a.value for a in available_actions(status)],
        "possible_transitions": [s.value for s in possible_transitions(status)],
    }


@router.post("/transitions")
@limiter.limit(RATE_LIMIT)
async def create_transition(
    request: Request,
    body: TransitionRequestBody,
    api_key: str = Depends(verify_api_key),
):
    """
    Validate an action against a payment status.

    Returns the proposed new status. Illegal actions and excessive amounts
    are reported with status 409 and never change anything.
    """
    status = _parse_status(body.status)
    result = validate_transition(status, body.action, body.context)
    if not result.ok:
        raise HTTPException(status_code=409, detail=result.error.to_dict())
    return result.to_dict()


@router.get("/statuses")
@limiter.limit(RATE_LIMIT)
async def list_statuses(request: Request, api_key: str = Depends(verify_api_key)):
    """List every status with its metadata and capabilities."""
    return [describe_status(status) for status in STATUS_METADATA]


@router.get("/statuses/{status}")
@limiter.limit(RATE_LIMIT)
async def get_status(request: Request, status: str, api_key: str = Depends(verify_api_key)):
    """Describe one status."""
    return describe_status(_parse_status(status))
