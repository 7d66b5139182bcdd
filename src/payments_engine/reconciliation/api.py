"""API endpoints for reconciliation operations."""

import logging
from collections import deque
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, Field

from ..auth import RATE_LIMIT, limiter, verify_api_key
from ..config import get_policy, get_sla_seconds
from .aggregation import aggregate
from .filters import FilterSpec, PageRequest, SortSpec, filter_and_sort
from .models import (
    ReconciliationItem,
    ReconciliationPolicy,
    ReconciliationRequest,
    ReconciliationRun,
    TransactionRecord,
    ensure_utc,
)
from .reconciler import Reconciler
from .service import DEFAULT_RUN_HISTORY, ReconciliationService
from .sources import InMemoryRecordSource

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reconciliation", tags=["reconciliation"])

RUN_HISTORY_SIZE = DEFAULT_RUN_HISTORY

# Performance statistics of a job cover the recent jobs of this process
_run_history = deque(maxlen=RUN_HISTORY_SIZE)


class ReconcileBody(BaseModel):
    """Request body for reconciling a single pair of records."""
    merchant_record: TransactionRecord
    connector_record: Optional[TransactionRecord] = None
    policy: Optional[ReconciliationPolicy] = None
    as_of: Optional[datetime] = None


class ReconciliationJobBody(BaseModel):
    """Request body for a reconciliation job over two record sets."""
    merchant_records: List[TransactionRecord] = Field(default_factory=list)
    connector_records: List[TransactionRecord] = Field(default_factory=list)
    start_time: Optional[datetime] = Field(None, description="Start of time range to reconcile")
    end_time: Optional[datetime] = Field(None, description="End of time range to reconcile")
    connector: Optional[str] = None
    currency: Optional[str] = None
    as_of: Optional[datetime] = None
    policy: Optional[ReconciliationPolicy] = None


class StatisticsBody(BaseModel):
    """Request body for aggregating already classified items."""
    items: List[ReconciliationItem] = Field(default_factory=list)
    comparison_items: List[ReconciliationItem] = Field(default_factory=list)
    runs: List[ReconciliationRun] = Field(default_factory=list)


class SearchBody(BaseModel):
    """Request body for filtering and paging items."""
    items: List[ReconciliationItem] = Field(default_factory=list)
    filters: FilterSpec = Field(default_factory=FilterSpec)
    sort: SortSpec = Field(default_factory=SortSpec)
    page: PageRequest = Field(default_factory=PageRequest)


@router.post("/reconcile")
@limiter.limit(RATE_LIMIT)
async def reconcile_pair(
    request: Request,
    body: ReconcileBody,
    api_key: str = Depends(verify_api_key),
):
    """Classify one merchant record against its connector record (or absence)."""
    reconciler = Reconciler(body.policy or get_policy())
    item = reconciler.reconcile(body.merchant_record, body.connector_record, as_of=body.as_of)
    return item.model_dump(mode="json")


@router.post("/jobs")
@limiter.limit(RATE_LIMIT)
async def create_reconciliation_job(
    request: Request,
    body: ReconciliationJobBody,
    include_details: bool = Query(default=True, description="Include individual items"),
    api_key: str = Depends(verify_api_key),
):
    """
    Run a reconciliation job.

    Pairs the merchant records with the connector records, classifies every
    pair and returns the report with aggregate statistics.
    """
    if (
        body.start_time and body.end_time
        and ensure_utc(body.start_time) >= ensure_utc(body.end_time)
    ):
        raise HTTPException(
            status_code=400,
            detail="start_time must be before end_time"
        )

    service = ReconciliationService(
        merchant_source=InMemoryRecordSource(body.merchant_records),
        connector_source=InMemoryRecordSource(body.connector_records),
        policy=body.policy or get_policy(),
        sla_target_seconds=get_sla_seconds(),
        runs=_run_history,
    )
    report = service.run_reconciliation(ReconciliationRequest(
        start_time=body.start_time,
        end_time=body.end_time,
        connector=body.connector,
        currency=body.currency,
        include_details=include_details,
        as_of=body.as_of,
    ))

    return report.to_full_dict() if include_details else report.to_summary_dict()


@router.post("/statistics")
@limiter.limit(RATE_LIMIT)
async def compute_statistics(
    request: Request,
    body: StatisticsBody,
    api_key: str = Depends(verify_api_key),
):
    """Aggregate classified items, comparing against the previous period."""
    stats = aggregate(
        body.items,
        body.comparison_items,
        runs=body.runs,
        sla_target_seconds=get_sla_seconds(),
    )
    return stats.model_dump(mode="json")


@router.post("/items/search")
@limiter.limit(RATE_LIMIT)
async def search_items(
    request: Request,
    body: SearchBody,
    api_key: str = Depends(verify_api_key),
):
    """Filter, sort and page reconciliation items."""
    page = filter_and_sort(body.items, body.filters, body.sort, body.page)
    return page.model_dump(mode="json")


@router.get("/health")
async def reconciliation_health():
    """Health check endpoint for reconciliation service."""
    return {"status": "healthy", "service": "reconciliation"}
