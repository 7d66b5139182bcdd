"""Service layer for reconciliation operations."""

import uuid
import logging
from collections import deque
from datetime import datetime, timezone
from typing import Deque, Optional, Sequence

from .aggregation import DEFAULT_SLA_SECONDS, aggregate, scope_items
from .models import (
    JobStatus,
    ReconciliationItem,
    ReconciliationPolicy,
    ReconciliationReport,
    ReconciliationRequest,
    ReconciliationRun,
    ReconciliationStatus,
)
from .reconciler import Reconciler
from .report import ReportGenerator
from .sources import RecordSource

logger = logging.getLogger(__name__)

# Runs kept for performance statistics; older runs are dropped first
DEFAULT_RUN_HISTORY = 100


class ReconciliationService:
    """Service for executing reconciliation jobs."""

    def __init__(
        self,
        merchant_source: RecordSource,
        connector_source: RecordSource,
        policy: Optional[ReconciliationPolicy] = None,
        sla_target_seconds: float = DEFAULT_SLA_SECONDS,
        runs: Optional[Deque[ReconciliationRun]] = None,
        max_history: int = DEFAULT_RUN_HISTORY,
    ):
        """Initialize the reconciliation service.

        Args:
            merchant_source: Source of merchant-side records.
            connector_source: Source of connector-side records.
            policy: Matching policy passed to the Reconciler.
            sla_target_seconds: Processing-time bound for SLA compliance.
            runs: Run history to append to, shared between services.
            max_history: Size of a newly created run history.
        """
        self.merchant_source = merchant_source
        self.connector_source = connector_source
        self.reconciler = Reconciler(policy)
        self.sla_target_seconds = sla_target_seconds
        if runs is None:
            runs = deque(maxlen=max_history)
        self.runs = runs

    def run_reconciliation(
        self,
        request: ReconciliationRequest,
        comparison_items: Sequence[ReconciliationItem] = (),
    ) -> ReconciliationReport:
        """Execute a reconciliation job.

        Args:
            request: Reconciliation request parameters.
            comparison_items: Items of the preceding period for trend figures.

        Returns:
            ReconciliationReport with the run, items and statistics.
        """
        run = ReconciliationRun(
            id=str(uuid.uuid4()),
            status=JobStatus.IN_PROGRESS,
            started_at=datetime.now(timezone.utc),
        )
        report = ReconciliationReport(run=run, request=request)

        logger.info(
            f"Starting reconciliation job {run.id} "
            f"from {request.start_time} to {request.end_time}"
        )

        try:
            merchant_records = self.merchant_source.fetch_records(
                request.start_time, request.end_time
            )
            connector_records = self.connector_source.fetch_records(
                request.start_time, request.end_time
            )

            items = self.reconciler.reconcile_batch(
                merchant_records,
                connector_records,
                as_of=request.as_of,
            )
            items = scope_items(items, connector=request.connector, currency=request.currency)

            run.items_processed = len(items)
            run.auto_matched = sum(
                1 for i in items if i.status == ReconciliationStatus.MATCHED
            )
            run.manual_review = sum(
                1 for i in items
                if i.status in (ReconciliationStatus.UNMATCHED, ReconciliationStatus.DISPUTED)
            )
            run.status = JobStatus.COMPLETED
            run.completed_at = datetime.now(timezone.utc)

            report.items = items

            logger.info(
                f"Reconciliation job {run.id} completed: "
                f"{run.auto_matched} matched, {run.manual_review} need review"
            )

        except Exception as e:
            logger.error(f"Reconciliation job {run.id} failed: {e}")
            run.status = JobStatus.FAILED
            run.error_message = str(e)
            run.completed_at = datetime.now(timezone.utc)

        self.runs.append(run)
        report.statistics = aggregate(
            report.items,
            comparison_items,
            runs=self.runs,
            sla_target_seconds=self.sla_target_seconds,
        )
        return report

    def generate_report(
        self,
        report: ReconciliationReport,
        format: str = "json",
        include_details: bool = True,
    ) -> str:
        """Generate a formatted report from reconciliation results.

        Args:
            report: ReconciliationReport to format.
            format: Output format ('json', 'text' or 'detailed_text').
            include_details: Include individual items (for JSON format).

        Returns:
            Formatted report string.
        """
        generator = ReportGenerator(report)

        if format == "json":
            return generator.to_json(include_details=include_details)
        elif format == "text":
            return generator.to_summary_text()
        elif format == "detailed_text":
            return generator.to_detailed_text()
        else:
            raise ValueError(f"Unsupported report format: {format}")
