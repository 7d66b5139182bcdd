"""Filtering, sorting and pagination of reconciliation items."""

import enum
import math
from typing import Any, Callable, Iterable, List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

from .models import (
    DateRange,
    DiscrepancySeverity,
    DiscrepancyType,
    ReconciliationItem,
    ReconciliationStatus,
    TransactionType,
)


class AmountRange(BaseModel):
    """Inclusive amount range in minor units, optionally tied to a currency."""
    min: Optional[int] = Field(None, ge=0)
    max: Optional[int] = Field(None, ge=0)
    currency: Optional[str] = None

    @model_validator(mode="after")
    def _check_bounds(self) -> "AmountRange":
        if self.min is not None and self.max is not None and self.min > self.max:
            raise ValueError(f"Amount range min {self.min} is greater than max {self.max}")
        return self


class FilterSpec(BaseModel):
    """Declarative selection over reconciliation items.

    Unset or empty dimensions impose no constraint. Dimensions combine with
    AND; values inside a multi-value dimension combine with OR.
    """
    statuses: List[ReconciliationStatus] = Field(default_factory=list)
    transaction_types: List[TransactionType] = Field(default_factory=list)
    date_range: Optional[DateRange] = None
    amount_range: Optional[AmountRange] = None
    connectors: List[str] = Field(default_factory=list)
    currencies: List[str] = Field(default_factory=list)
    search: Optional[str] = None
    discrepancy_types: List[DiscrepancyType] = Field(default_factory=list)
    severities: List[DiscrepancySeverity] = Field(default_factory=list)
    has_discrepancies: Optional[bool] = None

    def active_count(self) -> int:
        """Number of dimensions that constrain the selection."""
        values = [
            self.statuses, self.transaction_types, self.date_range,
            self.amount_range, self.connectors, self.currencies,
            self.search, self.discrepancy_types, self.severities,
        ]
        count = sum(1 for v in values if v)
        if self.has_discrepancies is not None:
            count += 1
        return count


class SortDirection(str, enum.Enum):
    ASC = "asc"
    DESC = "desc"


SortField = Literal[
    "created_at", "processed_at", "amount", "currency", "status",
    "connector", "id", "type",
]


class SortSpec(BaseModel):
    field: SortField = "created_at"
    direction: SortDirection = SortDirection.DESC


class PageRequest(BaseModel):
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=500)


class Page(BaseModel):
    items: List[ReconciliationItem] = Field(default_factory=list)
    total_count: int = 0
    page: int = 1
    page_size: int = 20
    total_pages: int = 0


def _search_fields(item: ReconciliationItem) -> List[str]:
    txn = item.transaction
    return [
        value for value in (
            txn.id,
            txn.merchant_reference,
            txn.connector_reference,
            txn.connector,
            txn.customer_id,
        )
        if value
    ]


def matches(item: ReconciliationItem, spec: FilterSpec) -> bool:
    """Check one item against every set dimension of the filter."""
    txn = item.transaction

    if spec.statuses and item.status not in spec.statuses:
        return False
    if spec.transaction_types and txn.type not in spec.transaction_types:
        return False
    if spec.date_range and not spec.date_range.contains(txn.created_at):
        return False
    if spec.amount_range:
        amount_range = spec.amount_range
        if amount_range.currency and txn.currency != amount_range.currency.upper():
            return False
        if amount_range.min is not None and txn.amount < amount_range.min:
            return False
        if amount_range.max is not None and txn.amount > amount_range.max:
            return False
    if spec.connectors:
        wanted = {c.lower() for c in spec.connectors}
        if txn.connector.lower() not in wanted:
            return False
    if spec.currencies:
        if txn.currency not in {c.upper() for c in spec.currencies}:
            return False
    if spec.search:
        needle = spec.search.strip().lower()
        if needle and not any(needle in value.lower() for value in _search_fields(item)):
            return False
    if spec.discrepancy_types and item.discrepancy_type not in spec.discrepancy_types:
        return False
    if spec.severities and item.severity not in spec.severities:
        return False
    if spec.has_discrepancies is not None:
        if (item.discrepancy is not None) != spec.has_discrepancies:
            return False
    return True


def _sort_key(field: str) -> Callable[[ReconciliationItem], Any]:
    def key(item: ReconciliationItem):
        if field == "status":
            value = item.status.value
        elif field == "type":
            value = item.transaction.type.value
        else:
            value = getattr(item.transaction, field)
        # Missing values sort after present ones in ascending order
        return (value is None, value)
    return key


def filter_items(
    items: Iterable[ReconciliationItem],
    spec: Optional[FilterSpec] = None,
) -> List[ReconciliationItem]:
    spec = spec or FilterSpec()
    return [item for item in items if matches(item, spec)]


def sort_items(
    items: Iterable[ReconciliationItem],
    sort: Optional[SortSpec] = None,
) -> List[ReconciliationItem]:
    """Stable sort: items with equal keys keep their input order."""
    sort = sort or SortSpec()
    return sorted(
        items,
        key=_sort_key(sort.field),
        reverse=sort.direction == SortDirection.DESC,
    )


def filter_and_sort(
    items: Iterable[ReconciliationItem],
    filter_spec: Optional[FilterSpec] = None,
    sort_spec: Optional[SortSpec] = None,
    page: Optional[PageRequest] = None,
) -> Page:
    """Filter, then sort, then cut out one page.

    Args:
        items: Items to select from. Not modified.
        filter_spec: Selection; None selects everything.
        sort_spec: Ordering; defaults to newest first.
        page: Page to return; defaults to the first 20 items.

    Returns:
        Page with the selected items and pagination counters.
    """
    page = page or PageRequest()
    selected = sort_items(filter_items(items, filter_spec), sort_spec)
    offset = (page.page - 1) * page.page_size
    return Page(
        items=selected[offset:offset + page.page_size],
        total_count=len(selected),
        page=page.page,
        page_size=page.page_size,
        total_pages=math.ceil(len(selected) / page.page_size),
    )
