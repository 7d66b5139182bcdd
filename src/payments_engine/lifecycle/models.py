"""Models for the payment lifecycle."""

import enum
from typing import Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from ..exceptions import LifecycleError


class PaymentStatus(str, enum.Enum):
    """Canonical payment statuses."""
    REQUIRES_PAYMENT_METHOD = "requires_payment_method"
    REQUIRES_CONFIRMATION = "requires_confirmation"
    REQUIRES_ACTION = "requires_action"
    PROCESSING = "processing"
    REQUIRES_CAPTURE = "requires_capture"
    PARTIALLY_CAPTURED = "partially_captured"
    PARTIALLY_CAPTURED_AND_CAPTURABLE = "partially_captured_and_capturable"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @classmethod
    def parse(cls, value) -> "PaymentStatus":
        """Parse a status string, accepting common upstream aliases.

        Args:
            value: Status string or PaymentStatus.

        Returns:
            The canonical PaymentStatus.

        Raises:
            ValueError: If the value is not a known status or alias.
        """
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        normalized = STATUS_ALIASES.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError:
            raise ValueError(f"Unknown payment status: {value}") from None


# Upstream processor spellings -> canonical status
STATUS_ALIASES: Dict[str, str] = {
    "canceled": "cancelled",
    "voided": "cancelled",
    "captured": "succeeded",
    "authorized": "requires_capture",
    "pending": "processing",
    "pending_mfa": "requires_action",
}


class StatusCategory(str, enum.Enum):
    """Coarse grouping of statuses used for comparison and display."""
    PENDING = "pending"
    AUTHORIZED = "authorized"
    SUCCESSFUL = "successful"
    FAILED = "failed"


class Urgency(str, enum.Enum):
    """How soon a payment in a given status needs operator attention."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class PaymentAction(str, enum.Enum):
    """Actions that may be requested against a payment."""
    ATTACH_PAYMENT_METHOD = "attach_payment_method"
    CONFIRM = "confirm"
    REQUIRE_ACTION = "require_action"
    COMPLETE_ACTION = "complete_action"
    AUTHORIZE = "authorize"
    SUCCEED = "succeed"
    FAIL = "fail"
    CAPTURE = "capture"
    CANCEL = "cancel"
    REFUND = "refund"


class StatusMetadata(BaseModel):
    """Display and eligibility attributes of a single status."""
    model_config = ConfigDict(frozen=True)

    label: str
    description: str
    category: StatusCategory
    color: str
    icon: str
    priority: int = Field(..., description="Lower values need attention first")
    urgency: Urgency = Urgency.LOW
    action_message: str = Field("", description="Suggested next step for an operator")
    final: bool = False
    actionable: bool = False


class TransitionContext(BaseModel):
    """Amounts needed to validate capture and refund actions.

    All amounts are integers in minor currency units.
    """
    amount: Optional[int] = Field(None, ge=0, description="Authorized amount")
    amount_captured: int = Field(default=0, ge=0)
    amount_refunded: int = Field(default=0, ge=0)
    amount_to_capture: Optional[int] = Field(None, gt=0)
    amount_to_refund: Optional[int] = Field(None, gt=0)
    multiple_captures_allowed: bool = Field(
        default=False,
        description="Whether the remainder stays capturable after a partial capture",
    )


class TransitionResult(BaseModel):
    """Outcome of validating a lifecycle action."""
    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    # Raw strings are kept when the caller passed an unknown status or action
    status: Union[PaymentStatus, str]
    action: Union[PaymentAction, str]
    new_status: Optional[PaymentStatus] = None
    error: Optional[LifecycleError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> PaymentStatus:
        """Return the new status or raise the carried error."""
        if self.error is not None:
            raise self.error
        return self.new_status

    def to_dict(self) -> dict:
        return {
            "status": getattr(self.status, "value", self.status),
            "action": getattr(self.action, "value", self.action),
            "ok": self.ok,
            "new_status": self.new_status.value if self.new_status else None,
            "error": self.error.to_dict() if self.error else None,
        }
