"""Payment lifecycle rules.

Defines the canonical payment statuses, the table of legal actions between
them, and the capability predicates used by reconciliation and any
presentation layer.
"""

from .models import (
    PaymentStatus,
    PaymentAction,
    StatusCategory,
    StatusMetadata,
    TransitionContext,
    TransitionResult,
    Urgency,
)
from .engine import (
    STATUS_METADATA,
    TRANSITIONS,
    get_metadata,
    is_final,
    is_actionable,
    can_capture,
    can_refund,
    can_cancel,
    available_actions,
    possible_transitions,
    can_transition_to,
    transition,
    validate_transition,
)

__all__ = [
    # Models
    "PaymentStatus",
    "PaymentAction",
    "StatusCategory",
    "StatusMetadata",
    "TransitionContext",
    "TransitionResult",
    "Urgency",
    # Tables
    "STATUS_METADATA",
    "TRANSITIONS",
    # Engine
    "get_metadata",
    "is_final",
    "is_actionable",
    "can_capture",
    "can_refund",
    "can_cancel",
    "available_actions",
    "possible_transitions",
    "can_transition_to",
    "transition",
    "validate_transition",
]
