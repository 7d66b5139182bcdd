"""Reconciliation module for payment records.

This module reconciles merchant-side transaction records against the
records reported by payment connectors.

Features:
- Classify each record as matched, unmatched, pending or disputed
- Typed discrepancies for amount, status, date and missing records
- Aggregate statistics with per-connector breakdown, trends and SLA metrics
- Declarative filtering, stable sorting and pagination of results
"""

from .models import (
    TransactionType,
    TransactionRecord,
    ReconciliationStatus,
    JobStatus,
    DiscrepancyType,
    DiscrepancySeverity,
    AmountDiscrepancy,
    StatusDiscrepancy,
    DateDiscrepancy,
    MissingDiscrepancy,
    Discrepancy,
    ReconciliationItem,
    ReconciliationPolicy,
    ReconciliationRun,
    ReconciliationRequest,
    ReconciliationReport,
    ReconciliationStatistics,
    CurrencyVolume,
    DateRange,
)
from .reconciler import Reconciler, reconcile
from .aggregation import aggregate, aggregate_period, scope_items
from .filters import (
    AmountRange,
    FilterSpec,
    SortSpec,
    SortDirection,
    PageRequest,
    Page,
    filter_and_sort,
)
from .sources import (
    RecordSource,
    InMemoryRecordSource,
    JsonFileRecordSource,
    get_record_source,
)
from .service import ReconciliationService
from .report import ReportGenerator

__all__ = [
    # Models
    "TransactionType",
    "TransactionRecord",
    "ReconciliationStatus",
    "JobStatus",
    "DiscrepancyType",
    "DiscrepancySeverity",
    "AmountDiscrepancy",
    "StatusDiscrepancy",
    "DateDiscrepancy",
    "MissingDiscrepancy",
    "Discrepancy",
    "ReconciliationItem",
    "ReconciliationPolicy",
    "ReconciliationRun",
    "ReconciliationRequest",
    "ReconciliationReport",
    "ReconciliationStatistics",
    "CurrencyVolume",
    "DateRange",
    # Core Components
    "Reconciler",
    "reconcile",
    "aggregate",
    "aggregate_period",
    "scope_items",
    # Queries
    "AmountRange",
    "FilterSpec",
    "SortSpec",
    "SortDirection",
    "PageRequest",
    "Page",
    "filter_and_sort",
    # Sources
    "RecordSource",
    "InMemoryRecordSource",
    "JsonFileRecordSource",
    "get_record_source",
    # Service
    "ReconciliationService",
    "ReportGenerator",
]
