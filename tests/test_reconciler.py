"""Tests for the reconciliation rules."""

import logging
import pytest
from datetime import datetime, timedelta, timezone

from payments_engine.reconciliation import (
    AmountDiscrepancy,
    DateDiscrepancy,
    DiscrepancySeverity,
    MissingDiscrepancy,
    ReconciliationPolicy,
    ReconciliationStatus,
    Reconciler,
    StatusDiscrepancy,
    reconcile,
)


class TestSingleRecord:
    """Tests for classifying one merchant record."""

    def test_perfect_match(self, make_record):
        merchant = make_record()
        connector = make_record(id="ch_001")

        item = Reconciler().reconcile(merchant, connector)

        assert item.status == ReconciliationStatus.MATCHED
        assert item.discrepancy is None
        assert item.transaction == merchant
        assert item.connector_record == connector

    def test_amount_mismatch(self, make_record):
        merchant = make_record(amount=10000)
        connector = make_record(id="ch_001", amount=9500)

        item = Reconciler().reconcile(merchant, connector)

        assert item.status == ReconciliationStatus.UNMATCHED
        assert isinstance(item.discrepancy, AmountDiscrepancy)
        assert item.discrepancy.difference == -500
        assert item.discrepancy.expected_amount == 10000
        assert item.discrepancy.actual_amount == 9500

    def test_missing_connector_record(self, make_record):
        item = Reconciler().reconcile(make_record(), None)

        assert item.status == ReconciliationStatus.UNMATCHED
        assert isinstance(item.discrepancy, MissingDiscrepancy)
        assert item.discrepancy.missing_side == "connector"

    def test_currency_mismatch_has_no_numeric_difference(self, make_record):
        merchant = make_record(amount=10000, currency="USD")
        connector = make_record(id="ch_001", amount=10000, currency="EUR")

        item = Reconciler().reconcile(merchant, connector)

        assert item.status == ReconciliationStatus.UNMATCHED
        assert item.discrepancy.type == "amount"
        assert item.discrepancy.difference is None
        assert item.discrepancy.cross_currency
        assert item.discrepancy.expected_value == "10000 USD"
        assert item.discrepancy.actual_value == "10000 EUR"

    def test_amount_rule_wins_over_status_rule(self, make_record):
        merchant = make_record(amount=10000, status="succeeded")
        connector = make_record(id="ch_001", amount=9000, status="failed")

        item = Reconciler().reconcile(merchant, connector)

        assert item.discrepancy.type == "amount"

    def test_incompatible_statuses(self, make_record):
        merchant = make_record(status="succeeded")
        connector = make_record(id="ch_001", status="failed")

        item = Reconciler().reconcile(merchant, connector)

        assert item.status == ReconciliationStatus.DISPUTED
        assert isinstance(item.discrepancy, StatusDiscrepancy)
        assert item.discrepancy.expected_status == "succeeded"
        assert item.discrepancy.actual_status == "failed"

    def test_cancelled_against_authorized_is_incompatible(self, make_record):
        merchant = make_record(status="canceled")
        connector = make_record(id="ch_001", status="authorized")

        item = Reconciler().reconcile(merchant, connector)

        assert item.status == ReconciliationStatus.DISPUTED

    @pytest.mark.parametrize("merchant_status,connector_status", [
        ("processing", "succeeded"),
        ("requires_capture", "succeeded"),
        ("failed", "cancelled"),
        ("requires_action", "failed"),
    ])
    def test_compatible_statuses(self, make_record, merchant_status, connector_status):
        merchant = make_record(status=merchant_status)
        connector = make_record(id="ch_001", status=connector_status)

        item = Reconciler().reconcile(merchant, connector)

        assert item.status == ReconciliationStatus.MATCHED

    def test_date_outside_same_day(self, make_record, base_time):
        merchant = make_record()
        connector = make_record(id="ch_001", processed_at=base_time + timedelta(days=2))

        item = Reconciler().reconcile(merchant, connector)

        assert item.status == ReconciliationStatus.UNMATCHED
        assert isinstance(item.discrepancy, DateDiscrepancy)
        assert item.discrepancy.expected_date == base_time
        assert item.discrepancy.actual_date == base_time + timedelta(days=2)

    def test_date_within_tolerance(self, make_record, base_time):
        merchant = make_record()
        connector = make_record(id="ch_001", processed_at=base_time + timedelta(days=2))
        policy = ReconciliationPolicy(date_tolerance=timedelta(hours=72))

        item = Reconciler(policy).reconcile(merchant, connector)

        assert item.status == ReconciliationStatus.MATCHED

    def test_same_day_uses_policy_timezone(self, make_record):
        merchant = make_record(created_at=datetime(2024, 3, 15, 23, 30, tzinfo=timezone.utc))
        connector = make_record(
            id="ch_001", created_at=datetime(2024, 3, 16, 0, 30, tzinfo=timezone.utc)
        )

        utc_item = Reconciler(ReconciliationPolicy(timezone="UTC")).reconcile(merchant, connector)
        ny_item = Reconciler(
            ReconciliationPolicy(timezone="America/New_York")
        ).reconcile(merchant, connector)

        assert utc_item.status == ReconciliationStatus.UNMATCHED
        assert ny_item.status == ReconciliationStatus.MATCHED

    def test_dispute_marker(self, make_record):
        merchant = make_record()
        connector = make_record(id="ch_001", disputed=True)

        item = Reconciler().reconcile(merchant, connector)

        assert item.status == ReconciliationStatus.DISPUTED
        assert item.discrepancy.type == "status"
        assert item.discrepancy.actual_status == "disputed"

    def test_date_rule_wins_over_dispute_marker(self, make_record, base_time):
        merchant = make_record(disputed=True)
        connector = make_record(id="ch_001", processed_at=base_time + timedelta(days=3))

        item = Reconciler().reconcile(merchant, connector)

        assert item.status == ReconciliationStatus.UNMATCHED
        assert item.discrepancy.type == "date"

    def test_module_level_reconcile(self, make_record):
        item = reconcile(make_record(), make_record(id="ch_001", amount=9500))
        assert item.discrepancy.difference == -500

    def test_naive_datetimes_are_utc(self, make_record):
        record = make_record(created_at=datetime(2024, 3, 15, 12, 0))
        assert record.created_at.tzinfo == timezone.utc

    def test_zero_amount_records_match(self, make_record):
        merchant = make_record(amount=0)
        connector = make_record(id="ch_001", amount=0)

        item = Reconciler().reconcile(merchant, connector)

        assert item.status == ReconciliationStatus.MATCHED
        assert item.discrepancy is None

    def test_zero_against_nonzero_amount(self, make_record):
        item = Reconciler().reconcile(make_record(amount=0), make_record(id="ch_001", amount=1))

        assert item.status == ReconciliationStatus.UNMATCHED
        assert item.discrepancy.difference == 1


class TestSeverity:
    """Tests for the severity attached to each discrepancy."""

    def test_amount_mismatch_is_high(self, make_record):
        item = Reconciler().reconcile(make_record(), make_record(id="ch_001", amount=9500))
        assert item.severity == DiscrepancySeverity.HIGH
        assert not item.has_critical_discrepancy

    def test_currency_mismatch_is_critical(self, make_record):
        item = Reconciler().reconcile(make_record(), make_record(id="ch_001", currency="EUR"))
        assert item.severity == DiscrepancySeverity.CRITICAL
        assert item.has_critical_discrepancy

    def test_incompatible_statuses_are_high(self, make_record):
        item = Reconciler().reconcile(
            make_record(status="failed"), make_record(id="ch_001", status="succeeded")
        )
        assert item.status == ReconciliationStatus.DISPUTED
        assert item.severity == DiscrepancySeverity.HIGH

    def test_dispute_marker_is_medium(self, make_record):
        item = Reconciler().reconcile(make_record(), make_record(id="ch_001", disputed=True))
        assert item.severity == DiscrepancySeverity.MEDIUM

    def test_date_mismatch_is_low(self, make_record, base_time):
        item = Reconciler().reconcile(
            make_record(), make_record(id="ch_001", processed_at=base_time + timedelta(days=3))
        )
        assert item.severity == DiscrepancySeverity.LOW

    def test_missing_record_is_high(self, make_record):
        item = Reconciler().reconcile(make_record(), None)
        assert item.severity == DiscrepancySeverity.HIGH

    def test_matched_item_has_no_severity(self, make_record):
        item = Reconciler().reconcile(make_record(), make_record(id="ch_001"))
        assert item.severity is None
        assert not item.has_critical_discrepancy


class TestMatchScore:
    """Tests for the similarity score of paired records."""

    def test_identical_records_score_full(self, make_record):
        item = Reconciler().reconcile(make_record(), make_record(id="ch_001"))
        assert item.match_score == 100

    def test_amount_mismatch_loses_amount_weight(self, make_record):
        item = Reconciler().reconcile(make_record(), make_record(id="ch_001", amount=9500))
        assert item.match_score == 60

    def test_currency_mismatch_loses_amount_and_currency(self, make_record):
        item = Reconciler().reconcile(make_record(), make_record(id="ch_001", currency="EUR"))
        assert item.match_score == 40

    def test_dates_a_few_days_apart_score_half(self, make_record, base_time):
        connector = make_record(id="ch_001", processed_at=base_time + timedelta(days=2))
        assert Reconciler().match_score(make_record(), connector) == 95

    def test_unrelated_references(self, make_record, base_time):
        connector = make_record(
            id="ch_001",
            merchant_reference="order_999",
            connector_reference="pi_999",
            created_at=base_time + timedelta(days=10),
        )
        assert Reconciler().match_score(make_record(), connector) == 60

    def test_missing_counterpart_has_no_score(self, make_record):
        assert Reconciler().reconcile(make_record(), None).match_score is None


class TestPendingWindow:
    """Tests for the pending state of recent records."""

    def test_recent_missing_record_is_pending(self, make_record, pending_policy, base_time):
        item = Reconciler(pending_policy).reconcile(
            make_record(), None, as_of=base_time + timedelta(hours=1)
        )

        assert item.status == ReconciliationStatus.PENDING
        assert item.discrepancy is None
        assert item.reconciled_at == base_time + timedelta(hours=1)

    def test_old_missing_record_is_unmatched(self, make_record, pending_policy, base_time):
        item = Reconciler(pending_policy).reconcile(
            make_record(), None, as_of=base_time + timedelta(hours=25)
        )

        assert item.status == ReconciliationStatus.UNMATCHED
        assert item.discrepancy.type == "missing"

    def test_window_disabled_by_default(self, make_record, base_time):
        item = Reconciler().reconcile(make_record(), None, as_of=base_time)
        assert item.status == ReconciliationStatus.UNMATCHED

    def test_window_ignored_when_counterpart_exists(self, make_record, pending_policy, base_time):
        item = Reconciler(pending_policy).reconcile(
            make_record(), make_record(id="ch_001", amount=1), as_of=base_time
        )
        assert item.status == ReconciliationStatus.UNMATCHED
        assert item.discrepancy.type == "amount"


class TestBatch:
    """Tests for pairing two record collections."""

    @pytest.fixture
    def merchant_records(self, make_record):
        return [
            make_record(id="m_1", merchant_reference="order_001", connector_reference="pi_001"),
            make_record(id="m_2", merchant_reference="order_002", connector_reference=None,
                        amount=2500),
            make_record(id="m_3", merchant_reference="order_003", connector_reference="pi_003"),
        ]

    @pytest.fixture
    def connector_records(self, make_record):
        return [
            make_record(id="ch_1", merchant_reference="order_001", connector_reference="pi_001"),
            make_record(id="ch_2", merchant_reference="order_002", connector_reference="pi_002",
                        amount=2500),
            make_record(id="ch_9", merchant_reference="order_009", connector_reference="pi_009"),
        ]

    def test_pairs_by_connector_then_merchant_reference(self, merchant_records, connector_records):
        items = Reconciler().reconcile_batch(merchant_records, connector_records)

        by_id = {i.id: i for i in items}
        assert by_id["m_1"].status == ReconciliationStatus.MATCHED
        assert by_id["m_1"].connector_record.id == "ch_1"
        assert by_id["m_2"].status == ReconciliationStatus.MATCHED
        assert by_id["m_2"].connector_record.id == "ch_2"
        assert by_id["m_3"].discrepancy.missing_side == "connector"

    def test_orphaned_connector_records(self, merchant_records, connector_records):
        items = Reconciler().reconcile_batch(merchant_records, connector_records)

        assert len(items) == 4
        orphan = items[-1]
        assert orphan.id == "ch_9"
        assert orphan.status == ReconciliationStatus.UNMATCHED
        assert orphan.discrepancy.missing_side == "merchant"

    def test_connector_record_claimed_once(self, make_record):
        merchant_records = [
            make_record(id="m_1", connector_reference="pi_001"),
            make_record(id="m_2", connector_reference="pi_001"),
        ]
        connector_records = [make_record(id="ch_1", connector_reference="pi_001")]

        items = Reconciler().reconcile_batch(merchant_records, connector_records)

        assert [i.status for i in items] == [
            ReconciliationStatus.MATCHED,
            ReconciliationStatus.UNMATCHED,
        ]

    def test_empty_batch(self):
        assert Reconciler().reconcile_batch([], []) == []

    def test_orphans_are_logged(self, make_record, caplog):
        with caplog.at_level(logging.WARNING):
            Reconciler().reconcile_batch([], [make_record(id="ch_9")])
        assert "ch_9" in caplog.text
