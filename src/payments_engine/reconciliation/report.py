"""Report generation for reconciliation results."""

import json
from typing import List

from .models import (
    DiscrepancyType,
    OverviewStatistics,
    ReconciliationReport,
    ReconciliationStatistics,
)


def _format_rate(value: float) -> str:
    return f"{value:.2f}%"


def _format_change(value) -> str:
    if value is None:
        return "N/A"
    return f"{value:+.2f}%"


def _volume_lines(overview: OverviewStatistics) -> List[str]:
    # One pair of lines per currency; amounts in different currencies never add up
    if not overview.volume_by_currency:
        return ["  Matched Volume: 0", "  Unmatched Volume: 0"]
    lines = []
    for currency, volume in overview.volume_by_currency.items():
        lines.append(f"  Matched Volume: {volume.matched} {currency}")
        lines.append(f"  Unmatched Volume: {volume.unmatched} {currency}")
    return lines


class ReportGenerator:
    """Generator for reconciliation reports in JSON and text."""

    def __init__(self, report: ReconciliationReport):
        """Initialize the report generator.

        Args:
            report: The reconciliation report to generate output from.
        """
        self.report = report

    @property
    def statistics(self) -> ReconciliationStatistics:
        return self.report.statistics or ReconciliationStatistics()

    def to_json(self, include_details: bool = True, indent: int = 2) -> str:
        """Generate JSON representation of the report.

        Args:
            include_details: If True, include all items. If False, only summary.
            indent: JSON indentation level.

        Returns:
            JSON string representation of the report.
        """
        if include_details:
            data = self.report.to_full_dict()
        else:
            data = self.report.to_summary_dict()
        return json.dumps(data, indent=indent)

    def to_summary_text(self) -> str:
        """Generate a human-readable text summary of the report."""
        run = self.report.run
        stats = self.statistics
        overview = stats.overview
        discrepancies = stats.discrepancies
        trends = stats.trends

        lines = [
            "=" * 60,
            "RECONCILIATION REPORT SUMMARY",
            "=" * 60,
            f"Report ID: {run.id}",
            f"Status: {run.status.value}",
            "",
            "Overview:",
            f"  Total Transactions: {overview.total_transactions}",
            f"  Matched: {overview.matched_transactions}",
            f"  Unmatched: {overview.unmatched_transactions}",
            f"  Pending: {overview.pending_transactions}",
            f"  Disputed: {overview.disputed_transactions}",
            f"  Reconciliation Rate: {_format_rate(overview.reconciliation_rate)}",
            *_volume_lines(overview),
            "",
            "Discrepancies:",
            f"  Total: {discrepancies.total_discrepancies}",
            f"  Amount: {discrepancies.amount_discrepancies}",
            f"  Status: {discrepancies.status_discrepancies}",
            f"  Date: {discrepancies.date_discrepancies}",
            f"  Missing: {discrepancies.missing_transactions}",
            f"  Critical: {discrepancies.critical_discrepancies}",
            f"  Discrepancy Rate: {_format_rate(discrepancies.discrepancy_rate)}",
            "",
            "Trends:",
            f"  Rate Change: {trends.reconciliation_rate_change:+.2f} pts",
            f"  Volume Change: {_format_change(trends.volume_change)}",
            f"  Count Change: {_format_change(trends.transaction_count_change)}",
        ]

        if stats.connectors:
            lines.extend(["", "Connectors:"])
            for c in stats.connectors:
                lines.append(
                    f"  {c.connector_name}: {c.matched_transactions}/{c.total_transactions} "
                    f"matched ({_format_rate(c.reconciliation_rate)})"
                )
            lines.append(f"  Best: {stats.best_connector}  Worst: {stats.worst_connector}")

        if run.error_message:
            lines.extend([
                "",
                "Error:",
                f"  {run.error_message}",
            ])

        lines.append("=" * 60)

        return "\n".join(lines)

    def to_detailed_text(self) -> str:
        """Generate the summary followed by every item that needs review."""
        lines: List[str] = [self.to_summary_text(), ""]

        flagged = [i for i in self.report.items if i.discrepancy is not None]
        if not flagged:
            return "\n".join(lines)

        lines.extend([
            "ITEMS NEEDING REVIEW",
            "-" * 40,
        ])
        for discrepancy_type in DiscrepancyType:
            group = [i for i in flagged if i.discrepancy_type == discrepancy_type]
            if not group:
                continue
            lines.append(f"\n{discrepancy_type.value.title()} ({len(group)}):")
            for i in group:
                lines.append(
                    f"  {i.id} [{i.status.value}, {i.severity.value}] {i.amount} {i.currency} "
                    f"via {i.connector}: {i.discrepancy.description}"
                )
        lines.append("")
        return "\n".join(lines)
