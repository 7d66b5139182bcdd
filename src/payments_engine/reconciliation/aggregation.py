"""Aggregation of reconciliation items into dashboard statistics.

Everything here is a pure function of its inputs: no I/O, no clock, and the
same input always yields the same ReconciliationStatistics.
"""

import math
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence

from .models import (
    ConnectorStatistics,
    CurrencyVolume,
    DateRange,
    DiscrepancyStatistics,
    DiscrepancySeverity,
    DiscrepancyType,
    JobStatus,
    OverviewStatistics,
    PerformanceStatistics,
    ReconciliationItem,
    ReconciliationRun,
    ReconciliationStatistics,
    ReconciliationStatus,
    TrendStatistics,
    ensure_utc,
)

DEFAULT_SLA_SECONDS = 300.0


def _rate(part: int, total: int) -> float:
    if total == 0:
        return 0.0
    return part / total * 100


def _percent_change(current: int, previous: int) -> Optional[float]:
    if previous == 0:
        return None
    return (current - previous) / previous * 100


def _volumes_by_currency(items: Iterable[ReconciliationItem]) -> Dict[str, CurrencyVolume]:
    volumes: Dict[str, CurrencyVolume] = {}
    for item in items:
        volume = volumes.setdefault(item.currency, CurrencyVolume())
        volume.total += item.amount
        if item.status == ReconciliationStatus.MATCHED:
            volume.matched += item.amount
        elif item.status == ReconciliationStatus.UNMATCHED:
            volume.unmatched += item.amount
    return dict(sorted(volumes.items()))


def _scalar_volumes(volumes: Dict[str, CurrencyVolume]) -> Dict[str, Optional[int]]:
    """Flat volume fields; amounts in several currencies have no single sum."""
    if len(volumes) > 1:
        return {"total_volume": None, "matched_volume": None, "unmatched_volume": None}
    return {
        "total_volume": sum(v.total for v in volumes.values()),
        "matched_volume": sum(v.matched for v in volumes.values()),
        "unmatched_volume": sum(v.unmatched for v in volumes.values()),
    }


def _count(items: Sequence[ReconciliationItem], status: ReconciliationStatus) -> int:
    return sum(1 for i in items if i.status == status)


def _discrepancy_amount(item: ReconciliationItem) -> int:
    discrepancy = item.discrepancy
    if discrepancy is None or discrepancy.type != DiscrepancyType.AMOUNT.value:
        return 0
    if discrepancy.difference is None:
        return 0
    return abs(discrepancy.difference)


def compute_overview(items: Sequence[ReconciliationItem]) -> OverviewStatistics:
    total = len(items)
    matched = _count(items, ReconciliationStatus.MATCHED)
    volumes = _volumes_by_currency(items)
    return OverviewStatistics(
        total_transactions=total,
        matched_transactions=matched,
        unmatched_transactions=_count(items, ReconciliationStatus.UNMATCHED),
        pending_transactions=_count(items, ReconciliationStatus.PENDING),
        disputed_transactions=_count(items, ReconciliationStatus.DISPUTED),
        reconciliation_rate=_rate(matched, total),
        **_scalar_volumes(volumes),
        currency=next(iter(volumes)) if len(volumes) == 1 else None,
        volume_by_currency=volumes,
    )


def compute_discrepancies(items: Sequence[ReconciliationItem]) -> DiscrepancyStatistics:
    by_type: Dict[DiscrepancyType, int] = {t: 0 for t in DiscrepancyType}
    by_severity: Dict[DiscrepancySeverity, int] = {s: 0 for s in DiscrepancySeverity}
    amounts: Dict[str, int] = {}
    for item in items:
        if item.discrepancy is None:
            continue
        by_type[item.discrepancy_type] += 1
        by_severity[item.severity] += 1
        amount = _discrepancy_amount(item)
        if amount:
            amounts[item.currency] = amounts.get(item.currency, 0) + amount

    total = sum(by_type.values())
    total_amount = sum(amounts.values()) if len(amounts) <= 1 else None
    if total_amount is None:
        avg_amount = None
    else:
        avg_amount = total_amount / total if total else 0.0
    return DiscrepancyStatistics(
        total_discrepancies=total,
        amount_discrepancies=by_type[DiscrepancyType.AMOUNT],
        status_discrepancies=by_type[DiscrepancyType.STATUS],
        date_discrepancies=by_type[DiscrepancyType.DATE],
        missing_transactions=by_type[DiscrepancyType.MISSING],
        total_discrepancy_amount=total_amount,
        avg_discrepancy_amount=avg_amount,
        discrepancy_amount_by_currency=dict(sorted(amounts.items())),
        discrepancy_rate=_rate(total, len(items)),
        by_severity=by_severity,
        critical_discrepancies=by_severity[DiscrepancySeverity.CRITICAL],
    )


def compute_connectors(items: Sequence[ReconciliationItem]) -> List[ConnectorStatistics]:
    """Per-connector breakdown, ordered by connector name."""
    groups: Dict[str, List[ReconciliationItem]] = {}
    for item in items:
        groups.setdefault(item.connector, []).append(item)

    breakdown = []
    for name in sorted(groups):
        group = groups[name]
        total = len(group)
        matched = _count(group, ReconciliationStatus.MATCHED)
        discrepancies = sum(1 for i in group if i.discrepancy is not None)
        reconciled = [ensure_utc(i.reconciled_at) for i in group if i.reconciled_at]
        volumes = _volumes_by_currency(group)
        breakdown.append(ConnectorStatistics(
            connector_name=name,
            total_transactions=total,
            matched_transactions=matched,
            unmatched_transactions=_count(group, ReconciliationStatus.UNMATCHED),
            reconciliation_rate=_rate(matched, total),
            **_scalar_volumes(volumes),
            volume_by_currency=volumes,
            total_discrepancies=discrepancies,
            discrepancy_rate=_rate(discrepancies, total),
            last_reconciliation=max(reconciled) if reconciled else None,
        ))
    return breakdown


def best_connector(connectors: Sequence[ConnectorStatistics]) -> Optional[str]:
    """Highest reconciliation rate; ties go to the busier connector."""
    if not connectors:
        return None
    ranked = sorted(
        connectors,
        key=lambda c: (-c.reconciliation_rate, -c.total_transactions, c.connector_name),
    )
    return ranked[0].connector_name


def worst_connector(connectors: Sequence[ConnectorStatistics]) -> Optional[str]:
    """Lowest reconciliation rate; ties go to the busier connector."""
    if not connectors:
        return None
    ranked = sorted(
        connectors,
        key=lambda c: (c.reconciliation_rate, -c.total_transactions, c.connector_name),
    )
    return ranked[0].connector_name


def compute_trends(
    current: OverviewStatistics,
    previous: OverviewStatistics,
) -> TrendStatistics:
    """Compare a period with the one before it.

    Volumes are compared only when both periods share a currency.
    """
    volume_change = None
    if current.total_volume is not None and previous.total_volume is not None:
        if None in (current.currency, previous.currency) or current.currency == previous.currency:
            volume_change = _percent_change(current.total_volume, previous.total_volume)
    return TrendStatistics(
        previous_reconciliation_rate=previous.reconciliation_rate,
        reconciliation_rate_change=current.reconciliation_rate - previous.reconciliation_rate,
        previous_total_volume=previous.total_volume,
        volume_change=volume_change,
        previous_transaction_count=previous.total_transactions,
        transaction_count_change=_percent_change(
            current.total_transactions, previous.total_transactions
        ),
    )


def _p95(values: List[float]) -> float:
    if not values:
        return 0.0
    ordered = sorted(values)
    rank = max(math.ceil(0.95 * len(ordered)), 1)
    return ordered[rank - 1]


def compute_performance(
    runs: Sequence[ReconciliationRun],
    sla_target_seconds: float = DEFAULT_SLA_SECONDS,
) -> PerformanceStatistics:
    """SLA and automation metrics over a set of reconciliation runs.

    Runs that never completed count as errors and as SLA misses.
    """
    if not runs:
        return PerformanceStatistics()

    durations = [r.processing_seconds for r in runs if r.processing_seconds is not None]
    processed = sum(r.items_processed for r in runs)
    failed = sum(1 for r in runs if r.status == JobStatus.FAILED)
    within_sla = sum(
        1 for r in runs
        if r.status == JobStatus.COMPLETED
        and r.processing_seconds is not None
        and r.processing_seconds <= sla_target_seconds
    )
    return PerformanceStatistics(
        total_runs=len(runs),
        processing_time_avg=sum(durations) / len(durations) if durations else 0.0,
        processing_time_p95=_p95(durations),
        auto_match_rate=_rate(sum(r.auto_matched for r in runs), processed),
        manual_review_rate=_rate(sum(r.manual_review for r in runs), processed),
        error_rate=_rate(failed, len(runs)),
        sla_compliance=_rate(within_sla, len(runs)),
    )


def aggregate(
    items: Sequence[ReconciliationItem],
    comparison_items: Sequence[ReconciliationItem] = (),
    runs: Sequence[ReconciliationRun] = (),
    sla_target_seconds: float = DEFAULT_SLA_SECONDS,
) -> ReconciliationStatistics:
    """Reduce reconciliation items into ReconciliationStatistics.

    Args:
        items: Items of the current period.
        comparison_items: Items of the preceding period of equal length.
        runs: Reconciliation runs for SLA and automation metrics.
        sla_target_seconds: Processing-time bound a run must meet.

    Returns:
        ReconciliationStatistics. An empty input yields all zeros.
    """
    items = list(items)
    overview = compute_overview(items)
    connectors = compute_connectors(items)
    return ReconciliationStatistics(
        overview=overview,
        discrepancies=compute_discrepancies(items),
        connectors=connectors,
        best_connector=best_connector(connectors),
        worst_connector=worst_connector(connectors),
        trends=compute_trends(overview, compute_overview(list(comparison_items))),
        performance=compute_performance(runs, sla_target_seconds),
    )


def scope_items(
    items: Iterable[ReconciliationItem],
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    connector: Optional[str] = None,
    currency: Optional[str] = None,
) -> List[ReconciliationItem]:
    """Restrict items to a period (inclusive), connector and currency."""
    period = DateRange(start=start, end=end)
    return [
        i for i in items
        if period.contains(i.transaction.created_at)
        and (connector is None or i.connector == connector)
        and (currency is None or i.currency == currency.upper())
    ]


def aggregate_period(
    items: Sequence[ReconciliationItem],
    start: datetime,
    end: datetime,
    runs: Sequence[ReconciliationRun] = (),
    connector: Optional[str] = None,
    currency: Optional[str] = None,
    sla_target_seconds: float = DEFAULT_SLA_SECONDS,
) -> ReconciliationStatistics:
    """Aggregate one period and compare it with the period just before it.

    The comparison period has the same length and ends right before
    ``start``, so no item is counted in both.
    """
    start, end = ensure_utc(start), ensure_utc(end)
    length = end - start
    current = scope_items(items, start, end, connector, currency)
    previous = [
        i for i in scope_items(items, start - length, start, connector, currency)
        if i.transaction.created_at < start
    ]
    return aggregate(current, previous, runs, sla_target_seconds)
