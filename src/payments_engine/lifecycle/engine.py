"""Payment lifecycle engine.

Holds the canonical status metadata table and the transition table, and
answers capability questions for a payment status. Every function here is
pure: it validates and returns the proposed status but never touches a
record.
"""

import logging
from typing import Dict, List, Optional, Tuple

from ..exceptions import (
    AmountExceedsCapturable,
    InvalidTransition,
    LifecycleError,
    MissingAmount,
    NothingToRefund,
)
from .models import (
    PaymentAction,
    PaymentStatus,
    StatusCategory,
    StatusMetadata,
    TransitionContext,
    TransitionResult,
    Urgency,
)

logger = logging.getLogger(__name__)


STATUS_METADATA: Dict[PaymentStatus, StatusMetadata] = {
    PaymentStatus.REQUIRES_PAYMENT_METHOD: StatusMetadata(
        label="Requires payment method",
        description="The payment needs a payment method before it can proceed",
        category=StatusCategory.PENDING,
        color="#f59e0b",
        icon="credit-card",
        priority=4,
        urgency=Urgency.MEDIUM,
        action_message="Customer must provide a valid payment method",
        actionable=True,
    ),
    PaymentStatus.REQUIRES_CONFIRMATION: StatusMetadata(
        label="Requires confirmation",
        description="The payment must be confirmed",
        category=StatusCategory.PENDING,
        color="#f59e0b",
        icon="check-circle",
        priority=3,
        urgency=Urgency.MEDIUM,
        action_message="Confirm the payment to proceed with authorization",
        actionable=True,
    ),
    PaymentStatus.REQUIRES_ACTION: StatusMetadata(
        label="Requires action",
        description="The customer must complete an additional step such as 3DS",
        category=StatusCategory.PENDING,
        color="#f59e0b",
        icon="alert-circle",
        priority=2,
        urgency=Urgency.HIGH,
        action_message="Customer must complete additional authentication such as 3D Secure",
        actionable=True,
    ),
    PaymentStatus.PROCESSING: StatusMetadata(
        label="Processing",
        description="The payment is being processed",
        category=StatusCategory.PENDING,
        color="#3b82f6",
        icon="loader",
        priority=5,
        urgency=Urgency.LOW,
        action_message="Payment is being processed, monitor its status",
    ),
    PaymentStatus.REQUIRES_CAPTURE: StatusMetadata(
        label="Requires capture",
        description="The payment was authorized and awaits capture",
        category=StatusCategory.AUTHORIZED,
        color="#8b5cf6",
        icon="dollar-sign",
        priority=6,
        urgency=Urgency.MEDIUM,
        action_message="Authorized, capture the funds to complete the payment",
        actionable=True,
    ),
    PaymentStatus.PARTIALLY_CAPTURED: StatusMetadata(
        label="Partially captured",
        description="Only part of the authorized amount was captured",
        category=StatusCategory.SUCCESSFUL,
        color="#059669",
        icon="check-circle-2",
        priority=8,
        urgency=Urgency.LOW,
        action_message="Only part was captured, check whether another capture is required",
    ),
    PaymentStatus.PARTIALLY_CAPTURED_AND_CAPTURABLE: StatusMetadata(
        label="Partially captured and capturable",
        description="Part of the amount was captured and the rest can still be captured",
        category=StatusCategory.SUCCESSFUL,
        color="#059669",
        icon="check-circle-2",
        priority=7,
        urgency=Urgency.MEDIUM,
        action_message="Capture the remaining amount or cancel the authorization",
        actionable=True,
    ),
    PaymentStatus.SUCCEEDED: StatusMetadata(
        label="Succeeded",
        description="The payment completed successfully",
        category=StatusCategory.SUCCESSFUL,
        color="#10b981",
        icon="check-circle",
        priority=10,
        urgency=Urgency.LOW,
        action_message="Completed, proceed with fulfillment",
        final=True,
    ),
    PaymentStatus.FAILED: StatusMetadata(
        label="Failed",
        description="The payment failed",
        category=StatusCategory.FAILED,
        color="#ef4444",
        icon="x-circle",
        priority=1,
        urgency=Urgency.HIGH,
        action_message="Review the failure cause and consider retrying",
        final=True,
    ),
    PaymentStatus.CANCELLED: StatusMetadata(
        label="Cancelled",
        description="The payment was cancelled",
        category=StatusCategory.FAILED,
        color="#6b7280",
        icon="x",
        priority=9,
        urgency=Urgency.LOW,
        action_message="No further action required",
        final=True,
    ),
}

CAPTURABLE_STATUSES = frozenset([
    PaymentStatus.REQUIRES_CAPTURE,
    PaymentStatus.PARTIALLY_CAPTURED_AND_CAPTURABLE,
])

REFUNDABLE_STATUSES = frozenset([
    PaymentStatus.SUCCEEDED,
    PaymentStatus.PARTIALLY_CAPTURED,
    PaymentStatus.PARTIALLY_CAPTURED_AND_CAPTURABLE,
])

CANCELLABLE_STATUSES = frozenset([
    PaymentStatus.PROCESSING,
    PaymentStatus.REQUIRES_PAYMENT_METHOD,
    PaymentStatus.REQUIRES_CONFIRMATION,
])

_S = PaymentStatus
_A = PaymentAction

# (current status, action) -> new status.
# Capture targets are placeholders; the real outcome depends on the amount.
# Refunds keep the status: they move money without changing the lifecycle.
TRANSITIONS: Dict[Tuple[PaymentStatus, PaymentAction], PaymentStatus] = {
    (_S.REQUIRES_PAYMENT_METHOD, _A.ATTACH_PAYMENT_METHOD): _S.REQUIRES_CONFIRMATION,
    (_S.REQUIRES_PAYMENT_METHOD, _A.FAIL): _S.FAILED,
    (_S.REQUIRES_PAYMENT_METHOD, _A.CANCEL): _S.CANCELLED,
    (_S.REQUIRES_CONFIRMATION, _A.CONFIRM): _S.PROCESSING,
    (_S.REQUIRES_CONFIRMATION, _A.REQUIRE_ACTION): _S.REQUIRES_ACTION,
    (_S.REQUIRES_CONFIRMATION, _A.FAIL): _S.FAILED,
    (_S.REQUIRES_CONFIRMATION, _A.CANCEL): _S.CANCELLED,
    (_S.REQUIRES_ACTION, _A.COMPLETE_ACTION): _S.PROCESSING,
    (_S.REQUIRES_ACTION, _A.FAIL): _S.FAILED,
    (_S.PROCESSING, _A.REQUIRE_ACTION): _S.REQUIRES_ACTION,
    (_S.PROCESSING, _A.AUTHORIZE): _S.REQUIRES_CAPTURE,
    (_S.PROCESSING, _A.SUCCEED): _S.SUCCEEDED,
    (_S.PROCESSING, _A.FAIL): _S.FAILED,
    (_S.PROCESSING, _A.CANCEL): _S.CANCELLED,
    (_S.REQUIRES_CAPTURE, _A.CAPTURE): _S.SUCCEEDED,
    (_S.PARTIALLY_CAPTURED_AND_CAPTURABLE, _A.CAPTURE): _S.SUCCEEDED,
    (_S.PARTIALLY_CAPTURED, _A.REFUND): _S.PARTIALLY_CAPTURED,
    (_S.PARTIALLY_CAPTURED_AND_CAPTURABLE, _A.REFUND): _S.PARTIALLY_CAPTURED_AND_CAPTURABLE,
    (_S.SUCCEEDED, _A.REFUND): _S.SUCCEEDED,
}


def get_metadata(status: PaymentStatus) -> StatusMetadata:
    return STATUS_METADATA[PaymentStatus.parse(status)]


def is_final(status: PaymentStatus) -> bool:
    """Final statuses admit no further lifecycle transitions."""
    return get_metadata(status).final


def is_actionable(status: PaymentStatus) -> bool:
    """Statuses where a caller-visible next step exists."""
    return get_metadata(status).actionable


def can_capture(status: PaymentStatus) -> bool:
    return PaymentStatus.parse(status) in CAPTURABLE_STATUSES


def can_refund(status: PaymentStatus) -> bool:
    return PaymentStatus.parse(status) in REFUNDABLE_STATUSES


def can_cancel(status: PaymentStatus) -> bool:
    return PaymentStatus.parse(status) in CANCELLABLE_STATUSES


def available_actions(status: PaymentStatus) -> List[PaymentAction]:
    """List the actions the transition table allows from a status."""
    status = PaymentStatus.parse(status)
    return [action for (current, action) in TRANSITIONS if current == status]


def possible_transitions(status: PaymentStatus) -> List[PaymentStatus]:
    """List every status reachable in one action, in table order."""
    status = PaymentStatus.parse(status)
    targets: List[PaymentStatus] = []
    for (current, action), target in TRANSITIONS.items():
        if current != status:
            continue
        if action == PaymentAction.CAPTURE:
            candidates = [
                PaymentStatus.PARTIALLY_CAPTURED,
                PaymentStatus.PARTIALLY_CAPTURED_AND_CAPTURABLE,
                PaymentStatus.SUCCEEDED,
            ]
        else:
            candidates = [target]
        for candidate in candidates:
            if candidate != status and candidate not in targets:
                targets.append(candidate)
    return targets


def can_transition_to(current: PaymentStatus, target: PaymentStatus) -> bool:
    return PaymentStatus.parse(target) in possible_transitions(current)


def _capture_outcome(context: TransitionContext) -> PaymentStatus:
    if context.amount is None:
        if context.amount_to_capture is not None:
            raise MissingAmount("amount", PaymentAction.CAPTURE)
        # Without an authorized total the capture is taken as the full remainder
        return PaymentStatus.SUCCEEDED

    capturable = max(context.amount - context.amount_captured, 0)
    requested = context.amount_to_capture
    if requested is None:
        requested = capturable

    if requested > capturable:
        raise AmountExceedsCapturable(requested=requested, available=capturable)
    if requested == capturable:
        return PaymentStatus.SUCCEEDED
    if context.multiple_captures_allowed:
        return PaymentStatus.PARTIALLY_CAPTURED_AND_CAPTURABLE
    return PaymentStatus.PARTIALLY_CAPTURED


def _check_refund(status: PaymentStatus, context: TransitionContext) -> None:
    captured = context.amount_captured
    if not captured:
        if context.amount is None:
            # Captured total unknown: only a full refund can be accepted
            if context.amount_to_refund is not None:
                raise MissingAmount("amount_captured", PaymentAction.REFUND)
            return
        if status == PaymentStatus.SUCCEEDED:
            # A succeeded payment without capture bookkeeping was captured in full
            captured = context.amount
    available = max(captured - context.amount_refunded, 0)
    if available == 0:
        raise NothingToRefund(captured=captured, refunded=context.amount_refunded)
    requested = context.amount_to_refund
    if requested is not None and requested > available:
        raise AmountExceedsCapturable(requested=requested, available=available)


def transition(
    status: PaymentStatus,
    action: PaymentAction,
    context: Optional[TransitionContext] = None,
) -> PaymentStatus:
    """Validate an action and return the proposed new status.

    Args:
        status: Current payment status.
        action: Requested action.
        context: Amounts for capture and refund validation.

    Returns:
        The status the payment would move to.

    Raises:
        InvalidTransition: If the action is not allowed from the status.
        AmountExceedsCapturable: If a capture or refund asks for too much.
        MissingAmount: If a partial amount is requested without a known total.
        NothingToRefund: If everything captured was already refunded.
    """
    status = PaymentStatus.parse(status)
    action = PaymentAction(action)
    context = context or TransitionContext()

    target = TRANSITIONS.get((status, action))
    if target is None:
        raise InvalidTransition(status=status, action=action)

    if action == PaymentAction.CAPTURE:
        return _capture_outcome(context)
    if action == PaymentAction.REFUND:
        _check_refund(status, context)
    return target


def validate_transition(
    status: PaymentStatus,
    action: PaymentAction,
    context: Optional[TransitionContext] = None,
) -> TransitionResult:
    """Validate an action, returning errors as values instead of raising.

    Args:
        status: Current payment status.
        action: Requested action.
        context: Amounts for capture and refund validation.

    Returns:
        TransitionResult holding either the new status or the error.
    """
    try:
        status = PaymentStatus.parse(status)
        action = PaymentAction(action)
    except ValueError:
        # Unknown statuses and actions have no row in the transition table
        error = InvalidTransition(status=status, action=action)
        logger.warning(f"Rejected {error.action} from {error.status}: unknown value")
        return TransitionResult(status=status, action=action, error=error)

    try:
        new_status = transition(status, action, context)
    except LifecycleError as e:
        logger.warning(f"Rejected {action.value} from {status.value}: {e}")
        return TransitionResult(status=status, action=action, error=e)
    return TransitionResult(status=status, action=action, new_status=new_status)
