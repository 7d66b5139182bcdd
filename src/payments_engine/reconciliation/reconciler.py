"""Reconciliation logic for comparing merchant and connector records."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence, Set

from ..exceptions import AmbiguousCurrencyComparison
from ..lifecycle import StatusCategory, get_metadata
from .models import (
    AmountDiscrepancy,
    DateDiscrepancy,
    DiscrepancySeverity,
    MissingDiscrepancy,
    ReconciliationItem,
    ReconciliationPolicy,
    ReconciliationStatus,
    StatusDiscrepancy,
    TransactionRecord,
    ensure_utc,
)

logger = logging.getLogger(__name__)

# Categories meaning money moved (or was reserved) on one side
_FUNDED_CATEGORIES = frozenset([StatusCategory.AUTHORIZED, StatusCategory.SUCCESSFUL])

# Match score weights, out of 100
AMOUNT_WEIGHT = 40
CURRENCY_WEIGHT = 20
REFERENCE_WEIGHT = 30
DATE_WEIGHT = 10


class Reconciler:
    """Reconciliation engine for merchant-side and connector-side records."""

    def __init__(self, policy: Optional[ReconciliationPolicy] = None):
        """Initialize the reconciler.

        Args:
            policy: Matching policy. Defaults to same-day date matching in UTC
                    with the pending window disabled.
        """
        self.policy = policy or ReconciliationPolicy()

    def _amount_difference(
        self,
        merchant: TransactionRecord,
        connector: TransactionRecord,
    ) -> int:
        """Return connector amount minus merchant amount.

        Raises:
            AmbiguousCurrencyComparison: If the currencies differ.
        """
        if merchant.currency != connector.currency:
            raise AmbiguousCurrencyComparison(merchant.currency, connector.currency)
        return connector.amount - merchant.amount

    def _statuses_compatible(
        self,
        merchant: TransactionRecord,
        connector: TransactionRecord,
    ) -> bool:
        """Check whether two statuses can describe the same transaction.

        In-flight statuses are compatible with anything. A failed or
        cancelled status on one side is incompatible with authorized or
        captured funds on the other.
        """
        categories = {
            get_metadata(merchant.status).category,
            get_metadata(connector.status).category,
        }
        if StatusCategory.FAILED not in categories:
            return True
        return not (categories & _FUNDED_CATEGORIES)

    def _dates_match(
        self,
        merchant: TransactionRecord,
        connector: TransactionRecord,
    ) -> bool:
        expected = merchant.effective_date
        actual = connector.effective_date
        if self.policy.date_tolerance is not None:
            return abs(actual - expected) <= self.policy.date_tolerance
        zone = self.policy.zone
        return expected.astimezone(zone).date() == actual.astimezone(zone).date()

    def match_score(
        self,
        merchant: TransactionRecord,
        connector: TransactionRecord,
    ) -> int:
        """Score how closely two paired records agree, from 0 to 100.

        Informational only: the classification rules decide the status.
        """
        score = 0
        if merchant.currency == connector.currency:
            score += CURRENCY_WEIGHT
            if merchant.amount == connector.amount:
                score += AMOUNT_WEIGHT
        if (
            merchant.connector_reference
            and merchant.connector_reference == connector.connector_reference
        ) or merchant.merchant_reference == connector.merchant_reference:
            score += REFERENCE_WEIGHT
        gap = abs(connector.effective_date - merchant.effective_date)
        if gap <= timedelta(days=1):
            score += DATE_WEIGHT
        elif gap <= timedelta(days=3):
            score += DATE_WEIGHT // 2
        return score

    def _is_pending(self, merchant: TransactionRecord, as_of: Optional[datetime]) -> bool:
        window = self.policy.pending_window
        if window is None:
            return False
        now = ensure_utc(as_of) if as_of else datetime.now(timezone.utc)
        return now - merchant.created_at < window

    def reconcile(
        self,
        merchant: TransactionRecord,
        connector: Optional[TransactionRecord] = None,
        as_of: Optional[datetime] = None,
    ) -> ReconciliationItem:
        """Classify one merchant record against its connector counterpart.

        Rules are applied in order and the first one that fires wins:
        missing counterpart, amount or currency mismatch, incompatible
        statuses, dates outside tolerance, dispute marker, otherwise matched.
        A missing counterpart still inside the pending window is reported as
        pending before any rule is evaluated.

        Args:
            merchant: Merchant-side record.
            connector: Connector-side record, or None when absent.
            as_of: Evaluation time for the pending window. Defaults to now.

        Returns:
            ReconciliationItem describing the outcome.
        """
        reconciled_at = ensure_utc(as_of) if as_of else None
        score = self.match_score(merchant, connector) if connector is not None else None

        def item(status: ReconciliationStatus, discrepancy=None) -> ReconciliationItem:
            return ReconciliationItem(
                transaction=merchant,
                connector_record=connector,
                status=status,
                discrepancy=discrepancy,
                reconciled_at=reconciled_at,
                match_score=score,
            )

        if connector is None:
            if self._is_pending(merchant, as_of):
                return item(ReconciliationStatus.PENDING)
            return item(
                ReconciliationStatus.UNMATCHED,
                MissingDiscrepancy(
                    missing_side="connector",
                    description=f"No connector record for {merchant.merchant_reference}",
                    severity=DiscrepancySeverity.HIGH,
                ),
            )

        try:
            difference = self._amount_difference(merchant, connector)
        except AmbiguousCurrencyComparison as e:
            return item(
                ReconciliationStatus.UNMATCHED,
                AmountDiscrepancy(
                    expected_amount=merchant.amount,
                    actual_amount=connector.amount,
                    expected_currency=merchant.currency,
                    actual_currency=connector.currency,
                    description=str(e),
                    severity=DiscrepancySeverity.CRITICAL,
                ),
            )
        if difference != 0:
            return item(
                ReconciliationStatus.UNMATCHED,
                AmountDiscrepancy(
                    expected_amount=merchant.amount,
                    actual_amount=connector.amount,
                    expected_currency=merchant.currency,
                    actual_currency=connector.currency,
                    difference=difference,
                    severity=DiscrepancySeverity.HIGH,
                    description=(
                        f"Connector reports {connector.amount}, "
                        f"merchant expects {merchant.amount} {merchant.currency}"
                    ),
                ),
            )

        if not self._statuses_compatible(merchant, connector):
            return item(
                ReconciliationStatus.DISPUTED,
                StatusDiscrepancy(
                    expected_status=merchant.status.value,
                    actual_status=connector.status.value,
                    description=(
                        f"Merchant reports {merchant.status.value}, "
                        f"connector reports {connector.status.value}"
                    ),
                    severity=DiscrepancySeverity.HIGH,
                ),
            )

        if not self._dates_match(merchant, connector):
            return item(
                ReconciliationStatus.UNMATCHED,
                DateDiscrepancy(
                    expected_date=merchant.effective_date,
                    actual_date=connector.effective_date,
                    description="Transaction dates fall outside the tolerance window",
                    severity=DiscrepancySeverity.LOW,
                ),
            )

        if merchant.disputed or connector.disputed:
            return item(
                ReconciliationStatus.DISPUTED,
                StatusDiscrepancy(
                    expected_status=merchant.status.value,
                    actual_status=ReconciliationStatus.DISPUTED.value,
                    description="Transaction carries a chargeback or dispute marker",
                    severity=DiscrepancySeverity.MEDIUM,
                ),
            )

        return item(ReconciliationStatus.MATCHED)

    def reconcile_batch(
        self,
        merchant_records: Sequence[TransactionRecord],
        connector_records: Sequence[TransactionRecord],
        as_of: Optional[datetime] = None,
    ) -> List[ReconciliationItem]:
        """Pair and reconcile two collections of records.

        The reconciliation process:
        1. Index connector records by connector reference and merchant reference
        2. Pair each merchant record, preferring the connector reference
        3. Reconcile each pair (or absence)
        4. Report connector records nobody claimed as missing on the merchant side

        Args:
            merchant_records: Records from the merchant side.
            connector_records: Records from the connector side.
            as_of: Evaluation time for the pending window.

        Returns:
            One ReconciliationItem per merchant record, followed by one per
            orphaned connector record.
        """
        by_reference: Dict[str, TransactionRecord] = {}
        by_merchant_reference: Dict[str, TransactionRecord] = {}
        for record in connector_records:
            by_reference.setdefault(record.connector_reference or record.id, record)
            by_merchant_reference.setdefault(record.merchant_reference, record)

        claimed: Set[str] = set()
        items: List[ReconciliationItem] = []

        logger.info(
            f"Starting reconciliation: {len(merchant_records)} merchant, "
            f"{len(connector_records)} connector records"
        )

        for merchant in merchant_records:
            counterpart = None
            if merchant.connector_reference:
                counterpart = by_reference.get(merchant.connector_reference)
            if counterpart is None:
                counterpart = by_merchant_reference.get(merchant.merchant_reference)
            if counterpart is not None and counterpart.id in claimed:
                counterpart = None
            if counterpart is not None:
                claimed.add(counterpart.id)
            items.append(self.reconcile(merchant, counterpart, as_of=as_of))

        for record in connector_records:
            if record.id in claimed:
                continue
            logger.warning(f"Connector record {record.id} has no merchant counterpart")
            items.append(ReconciliationItem(
                transaction=record,
                status=ReconciliationStatus.UNMATCHED,
                discrepancy=MissingDiscrepancy(
                    missing_side="merchant",
                    description=f"No merchant record for connector record {record.id}",
                    severity=DiscrepancySeverity.HIGH,
                ),
                reconciled_at=ensure_utc(as_of) if as_of else None,
            ))

        matched = sum(1 for i in items if i.status == ReconciliationStatus.MATCHED)
        logger.info(
            f"Reconciliation complete: {matched} matched, "
            f"{len(items) - matched} not matched"
        )
        return items


def reconcile(
    merchant: TransactionRecord,
    connector: Optional[TransactionRecord] = None,
    policy: Optional[ReconciliationPolicy] = None,
    as_of: Optional[datetime] = None,
) -> ReconciliationItem:
    """Reconcile a single pair of records with the given policy."""
    return Reconciler(policy).reconcile(merchant, connector, as_of=as_of)
