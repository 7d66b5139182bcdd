"""Shared test fixtures and configuration."""

import os
import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import patch
from typing import Any, Dict

# Set up test environment variables before importing modules
os.environ.setdefault("API_KEY", "test_api_key_12345")
os.environ.setdefault("RATE_LIMIT", "1000/minute")

from payments_engine.reconciliation.models import (
    AmountDiscrepancy,
    DateDiscrepancy,
    MissingDiscrepancy,
    ReconciliationItem,
    ReconciliationPolicy,
    ReconciliationStatus,
    StatusDiscrepancy,
    TransactionRecord,
)

BASE_TIME = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def base_time() -> datetime:
    """Fixed reference time so tests never depend on the clock."""
    return BASE_TIME


@pytest.fixture
def mock_api_key():
    """Set up mock API key for authentication."""
    with patch.dict(os.environ, {"API_KEY": "test_api_key_12345"}):
        yield "test_api_key_12345"


@pytest.fixture
def auth_headers(mock_api_key):
    """Return headers with authentication."""
    return {"Authorization": f"Bearer {mock_api_key}"}


def build_record(**overrides: Any) -> TransactionRecord:
    """Build a TransactionRecord with sensible defaults."""
    data: Dict[str, Any] = {
        "id": "txn_001",
        "amount": 10000,
        "currency": "USD",
        "status": "succeeded",
        "connector": "stripe",
        "merchant_reference": "order_001",
        "connector_reference": "pi_001",
        "created_at": BASE_TIME,
    }
    data.update(overrides)
    return TransactionRecord(**data)


@pytest.fixture
def make_record():
    """Factory fixture for TransactionRecord objects."""
    return build_record


def build_item(
    status: ReconciliationStatus = ReconciliationStatus.MATCHED,
    discrepancy=None,
    **record_overrides: Any,
) -> ReconciliationItem:
    """Build a ReconciliationItem around a default merchant record."""
    if discrepancy is None and status == ReconciliationStatus.UNMATCHED:
        discrepancy = MissingDiscrepancy()
    if discrepancy is None and status == ReconciliationStatus.DISPUTED:
        discrepancy = StatusDiscrepancy(expected_status="succeeded", actual_status="disputed")
    return ReconciliationItem(
        transaction=build_record(**record_overrides),
        status=status,
        discrepancy=discrepancy,
    )


@pytest.fixture
def make_item():
    """Factory fixture for ReconciliationItem objects."""
    return build_item


@pytest.fixture
def sample_items():
    """Mixed items across two connectors and every discrepancy variant."""
    return [
        build_item(id="txn_1", connector="stripe", amount=1000,
                   created_at=BASE_TIME - timedelta(hours=1)),
        build_item(id="txn_2", connector="stripe", amount=2000,
                   created_at=BASE_TIME - timedelta(hours=2)),
        build_item(
            ReconciliationStatus.UNMATCHED,
            AmountDiscrepancy(
                expected_amount=3000, actual_amount=2500,
                expected_currency="USD", actual_currency="USD", difference=-500,
            ),
            id="txn_3", connector="stripe", amount=3000,
            created_at=BASE_TIME - timedelta(hours=3),
        ),
        build_item(id="txn_4", connector="adyen", amount=4000,
                   created_at=BASE_TIME - timedelta(hours=4)),
        build_item(
            ReconciliationStatus.UNMATCHED,
            DateDiscrepancy(
                expected_date=BASE_TIME - timedelta(days=2),
                actual_date=BASE_TIME - timedelta(hours=5),
            ),
            id="txn_5", connector="adyen", amount=5000,
            created_at=BASE_TIME - timedelta(hours=5),
        ),
        build_item(ReconciliationStatus.DISPUTED, id="txn_6", connector="adyen",
                   amount=6000, created_at=BASE_TIME - timedelta(hours=6)),
        build_item(ReconciliationStatus.PENDING, id="txn_7", connector="adyen",
                   amount=7000, created_at=BASE_TIME - timedelta(hours=7)),
    ]


@pytest.fixture
def same_day_policy() -> ReconciliationPolicy:
    return ReconciliationPolicy()


@pytest.fixture
def pending_policy() -> ReconciliationPolicy:
    """Policy keeping missing connector records pending for 24 hours."""
    return ReconciliationPolicy(pending_window=timedelta(hours=24))
