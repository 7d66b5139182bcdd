# payments_engine package
__version__ = "0.1.0"

from .exceptions import (
    PaymentsEngineError,
    LifecycleError,
    InvalidTransition,
    AmountExceedsCapturable,
    MissingAmount,
    NothingToRefund,
    AmbiguousCurrencyComparison,
)
from .lifecycle import (
    PaymentStatus,
    PaymentAction,
    TransitionContext,
    TransitionResult,
    validate_transition,
    is_final,
    is_actionable,
    can_capture,
    can_refund,
    can_cancel,
)

# Reconciliation exports
from .reconciliation import (
    TransactionRecord,
    ReconciliationItem,
    ReconciliationPolicy,
    ReconciliationStatistics,
    ReconciliationService,
    Reconciler,
    reconcile,
    aggregate,
    filter_and_sort,
    FilterSpec,
    SortSpec,
    PageRequest,
)
