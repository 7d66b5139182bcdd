"""Domain exceptions for the lifecycle and reconciliation engines."""

from typing import Any


class PaymentsEngineError(Exception):
    """Base exception for the payments engine."""

    def to_dict(self) -> dict:
        return {"error": type(self).__name__, "message": str(self)}


class LifecycleError(PaymentsEngineError):
    """A requested lifecycle action was rejected."""


class InvalidTransition(LifecycleError):
    """Action is not legal from the current payment status."""

    def __init__(self, status: Any, action: Any):
        self.status = getattr(status, "value", status)
        self.action = getattr(action, "value", action)
        super().__init__(
            f"Action '{self.action}' is not allowed from status '{self.status}'"
        )

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update({"status": self.status, "action": self.action})
        return data


class AmountExceedsCapturable(LifecycleError):
    """Capture or refund amount is larger than what is available."""

    def __init__(self, requested: int, available: int):
        self.requested = requested
        self.available = available
        super().__init__(
            f"Requested amount {requested} exceeds available amount {available}"
        )

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update({"requested": self.requested, "available": self.available})
        return data


class MissingAmount(LifecycleError):
    """An amount check needs a total the caller did not provide."""

    def __init__(self, field: str, action: Any):
        self.field = field
        self.action = getattr(action, "value", action)
        super().__init__(
            f"Cannot validate '{self.action}' of a specific amount without '{field}'"
        )

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update({"field": self.field, "action": self.action})
        return data


class NothingToRefund(LifecycleError):
    """Everything captured has already been refunded."""

    def __init__(self, captured: int, refunded: int):
        self.captured = captured
        self.refunded = refunded
        super().__init__(
            f"Nothing left to refund: captured {captured}, already refunded {refunded}"
        )

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update({"captured": self.captured, "refunded": self.refunded})
        return data


class AmbiguousCurrencyComparison(PaymentsEngineError):
    """Amounts in different currencies were compared without a conversion policy.

    The reconciler reports this situation as an amount discrepancy instead of
    raising; the exception exists for callers that want to fail fast.
    """

    def __init__(self, expected_currency: str, actual_currency: str):
        self.expected_currency = expected_currency
        self.actual_currency = actual_currency
        super().__init__(
            f"Cannot compare amounts in {expected_currency} and {actual_currency}"
        )
