#!/usr/bin/env python3
"""Command-line interface for reconciliation tools.

This CLI reconciles merchant records against connector records stored as
JSON files, and validates lifecycle actions for a payment status.

Usage:
    python -m payments_engine.reconciliation.cli reconcile --merchant merchant.json --connector stripe.json
    python -m payments_engine.reconciliation.cli reconcile -m merchant.json -c stripe.json --start 2024-01-01 --end 2024-01-31 --format text
    python -m payments_engine.reconciliation.cli transition --status requires_capture --action capture --amount 1000 --capture-amount 400
"""

import argparse
import json
import logging
import sys
from datetime import datetime, timedelta
from typing import Optional

from ..config import get_policy, get_sla_seconds
from ..lifecycle import PaymentAction, TransitionContext, validate_transition
from .models import JobStatus, ReconciliationRequest
from .service import ReconciliationService
from .sources import get_record_source

logger = logging.getLogger(__name__)


def parse_datetime(dt_string: str) -> datetime:
    """Parse datetime string in various formats.

    Args:
        dt_string: Datetime string in ISO format or date format.

    Returns:
        Parsed datetime object.

    Raises:
        ValueError: If the string cannot be parsed.
    """
    formats = [
        "%Y-%m-%dT%H:%M:%S",
        "%Y-%m-%dT%H:%M:%S.%f",
        "%Y-%m-%d %H:%M:%S",
        "%Y-%m-%d",
    ]

    for fmt in formats:
        try:
            return datetime.strptime(dt_string, fmt)
        except ValueError:
            continue

    raise ValueError(
        f"Unable to parse datetime: {dt_string}. "
        f"Expected formats: YYYY-MM-DD or YYYY-MM-DDTHH:MM:SS"
    )


def run_reconciliation(
    merchant_file: str,
    connector_file: str,
    start_time: Optional[datetime] = None,
    end_time: Optional[datetime] = None,
    connector: Optional[str] = None,
    currency: Optional[str] = None,
    output_file: Optional[str] = None,
    output_format: str = "json",
    include_details: bool = True,
) -> int:
    """Run a reconciliation job over two JSON files.

    Returns:
        Exit code: 0 when everything matched, 1 when items need review,
        2 when the run failed.
    """
    service = ReconciliationService(
        merchant_source=get_record_source("json", path=merchant_file),
        connector_source=get_record_source("json", path=connector_file),
        policy=get_policy(),
        sla_target_seconds=get_sla_seconds(),
    )

    request = ReconciliationRequest(
        start_time=start_time,
        end_time=end_time,
        connector=connector,
        currency=currency,
        include_details=include_details,
    )

    logger.info(f"Reconciling {merchant_file} against {connector_file}")
    report = service.run_reconciliation(request)

    output = service.generate_report(
        report=report,
        format=output_format,
        include_details=include_details,
    )

    if output_file:
        with open(output_file, 'w') as f:
            f.write(output)
        logger.info(f"Report written to {output_file}")
    else:
        print(output)

    if report.run.status != JobStatus.COMPLETED:
        logger.error(f"Reconciliation failed: {report.run.error_message}")
        return 2

    overview = report.statistics.overview
    issues = overview.unmatched_transactions + overview.disputed_transactions
    if issues:
        logger.warning(f"Reconciliation completed with {issues} items needing review")
        return 1
    return 0


def run_transition(
    status: str,
    action: str,
    amount: Optional[int] = None,
    amount_captured: int = 0,
    amount_refunded: int = 0,
    capture_amount: Optional[int] = None,
    refund_amount: Optional[int] = None,
    multiple_captures: bool = False,
) -> int:
    """Validate one lifecycle action and print the outcome as JSON.

    Returns:
        Exit code: 0 when the action is legal, 1 otherwise.
    """
    context = TransitionContext(
        amount=amount,
        amount_captured=amount_captured,
        amount_refunded=amount_refunded,
        amount_to_capture=capture_amount,
        amount_to_refund=refund_amount,
        multiple_captures_allowed=multiple_captures,
    )
    result = validate_transition(status, PaymentAction(action), context)
    print(json.dumps(result.to_dict(), indent=2))
    return 0 if result.ok else 1


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI.

    Returns:
        Configured ArgumentParser.
    """
    parser = argparse.ArgumentParser(
        prog="reconciliation",
        description="Payment reconciliation and lifecycle tools.",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Reconcile command
    reconcile_parser = subparsers.add_parser(
        "reconcile",
        help="Run a reconciliation job",
    )
    reconcile_parser.add_argument(
        "--merchant", "-m",
        required=True,
        help="JSON file with merchant-side records",
    )
    reconcile_parser.add_argument(
        "--connector", "-c",
        required=True,
        help="JSON file with connector-side records",
    )
    reconcile_parser.add_argument(
        "--start", "-s",
        help="Start date/time (YYYY-MM-DD or YYYY-MM-DDTHH:MM:SS)",
    )
    reconcile_parser.add_argument(
        "--end", "-e",
        help="End date/time (YYYY-MM-DD or YYYY-MM-DDTHH:MM:SS)",
    )
    reconcile_parser.add_argument(
        "--only-connector",
        help="Restrict results to one connector",
    )
    reconcile_parser.add_argument(
        "--currency",
        help="Restrict results to one currency",
    )
    reconcile_parser.add_argument(
        "--output", "-o",
        help="Output file path (default: stdout)",
    )
    reconcile_parser.add_argument(
        "--format", "-f",
        choices=["json", "text", "detailed_text"],
        default="json",
        help="Output format (default: json)",
    )
    reconcile_parser.add_argument(
        "--summary-only",
        action="store_true",
        help="Only include summary statistics, not individual items",
    )

    # Transition command
    transition_parser = subparsers.add_parser(
        "transition",
        help="Check whether an action is legal for a payment status",
    )
    transition_parser.add_argument("--status", required=True, help="Current payment status")
    transition_parser.add_argument(
        "--action",
        required=True,
        choices=[a.value for a in PaymentAction],
        help="Requested action",
    )
    transition_parser.add_argument("--amount", type=int, help="Authorized amount (minor units)")
    transition_parser.add_argument("--captured", type=int, default=0, help="Amount already captured")
    transition_parser.add_argument("--refunded", type=int, default=0, help="Amount already refunded")
    transition_parser.add_argument("--capture-amount", type=int, help="Amount to capture")
    transition_parser.add_argument("--refund-amount", type=int, help="Amount to refund")
    transition_parser.add_argument(
        "--multiple-captures",
        action="store_true",
        help="Keep the remainder capturable after a partial capture",
    )

    return parser


def main(args: Optional[list] = None) -> int:
    """Main entry point for the CLI.

    Args:
        args: Optional list of command-line arguments (for testing).

    Returns:
        Exit code.
    """
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    parser = create_parser()
    parsed_args = parser.parse_args(args)

    if not parsed_args.command:
        parser.print_help()
        return 1

    if parsed_args.command == "reconcile":
        try:
            start_time = parse_datetime(parsed_args.start) if parsed_args.start else None
            end_time = parse_datetime(parsed_args.end) if parsed_args.end else None

            # A bare end date covers the whole day
            if end_time and "T" not in parsed_args.end and " " not in parsed_args.end:
                end_time = end_time + timedelta(days=1) - timedelta(microseconds=1)

        except ValueError as e:
            logger.error(str(e))
            return 1

        return run_reconciliation(
            merchant_file=parsed_args.merchant,
            connector_file=parsed_args.connector,
            start_time=start_time,
            end_time=end_time,
            connector=parsed_args.only_connector,
            currency=parsed_args.currency,
            output_file=parsed_args.output,
            output_format=parsed_args.format,
            include_details=not parsed_args.summary_only,
        )

    if parsed_args.command == "transition":
        try:
            return run_transition(
                status=parsed_args.status,
                action=parsed_args.action,
                amount=parsed_args.amount,
                amount_captured=parsed_args.captured,
                amount_refunded=parsed_args.refunded,
                capture_amount=parsed_args.capture_amount,
                refund_amount=parsed_args.refund_amount,
                multiple_captures=parsed_args.multiple_captures,
            )
        except ValueError as e:
            logger.error(str(e))
            return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
