"""Environment-driven configuration."""

import os
import logging
from datetime import timedelta
from typing import Optional

from .reconciliation.aggregation import DEFAULT_SLA_SECONDS
from .reconciliation.models import ReconciliationPolicy

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "UTC"


def _get_hours(name: str) -> Optional[timedelta]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return None
    try:
        return timedelta(hours=float(value))
    except ValueError:
        raise ValueError(f"{name} must be a number of hours, got {value!r}") from None


def get_policy() -> ReconciliationPolicy:
    """
    Build the reconciliation policy from environment variables.

    RECONCILIATION_TIMEZONE: IANA timezone for same-day matching (default UTC).
    RECONCILIATION_DATE_TOLERANCE_HOURS: replaces same-day matching when set.
    RECONCILIATION_PENDING_WINDOW_HOURS: enables the pending state when set.
    """
    policy = ReconciliationPolicy(
        timezone=os.getenv("RECONCILIATION_TIMEZONE", DEFAULT_TIMEZONE),
        date_tolerance=_get_hours("RECONCILIATION_DATE_TOLERANCE_HOURS"),
        pending_window=_get_hours("RECONCILIATION_PENDING_WINDOW_HOURS"),
    )
    logger.debug(f"Loaded reconciliation policy: {policy}")
    return policy


def get_sla_seconds() -> float:
    value = os.getenv("RECONCILIATION_SLA_SECONDS")
    if not value:
        return DEFAULT_SLA_SECONDS
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"RECONCILIATION_SLA_SECONDS must be a number, got {value!r}") from None


def get_api_key() -> Optional[str]:
    return os.getenv("API_KEY")
