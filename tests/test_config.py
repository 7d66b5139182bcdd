"""Tests for environment-driven configuration."""

import pytest
from datetime import timedelta
from pydantic import ValidationError

from payments_engine.config import get_api_key, get_policy, get_sla_seconds


class TestGetPolicy:
    """Tests for building the reconciliation policy."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("RECONCILIATION_TIMEZONE", raising=False)
        monkeypatch.delenv("RECONCILIATION_DATE_TOLERANCE_HOURS", raising=False)
        monkeypatch.delenv("RECONCILIATION_PENDING_WINDOW_HOURS", raising=False)

        policy = get_policy()

        assert policy.timezone == "UTC"
        assert policy.date_tolerance is None
        assert policy.pending_window is None

    def test_from_environment(self, monkeypatch):
        monkeypatch.setenv("RECONCILIATION_TIMEZONE", "Europe/Madrid")
        monkeypatch.setenv("RECONCILIATION_DATE_TOLERANCE_HOURS", "36")
        monkeypatch.setenv("RECONCILIATION_PENDING_WINDOW_HOURS", "0.5")

        policy = get_policy()

        assert policy.timezone == "Europe/Madrid"
        assert policy.date_tolerance == timedelta(hours=36)
        assert policy.pending_window == timedelta(minutes=30)

    def test_invalid_hours(self, monkeypatch):
        monkeypatch.setenv("RECONCILIATION_DATE_TOLERANCE_HOURS", "a day")
        with pytest.raises(ValueError, match="RECONCILIATION_DATE_TOLERANCE_HOURS"):
            get_policy()

    def test_unknown_timezone(self, monkeypatch):
        monkeypatch.setenv("RECONCILIATION_TIMEZONE", "Mars/Olympus_Mons")
        with pytest.raises(ValidationError):
            get_policy()


class TestOtherSettings:
    """Tests for SLA and API key settings."""

    def test_sla_default(self, monkeypatch):
        monkeypatch.delenv("RECONCILIATION_SLA_SECONDS", raising=False)
        assert get_sla_seconds() == 300.0

    def test_sla_from_environment(self, monkeypatch):
        monkeypatch.setenv("RECONCILIATION_SLA_SECONDS", "45")
        assert get_sla_seconds() == 45.0

    def test_sla_invalid(self, monkeypatch):
        monkeypatch.setenv("RECONCILIATION_SLA_SECONDS", "fast")
        with pytest.raises(ValueError):
            get_sla_seconds()

    def test_api_key(self, mock_api_key):
        assert get_api_key() == mock_api_key
