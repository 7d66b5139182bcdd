"""Models for payment reconciliation."""

import enum
from datetime import datetime, timedelta, timezone
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..lifecycle import PaymentStatus


# ISO 4217 active codes
ISO_CURRENCIES = frozenset("""
AED AFN ALL AMD ANG AOA ARS AUD AWG AZN BAM BBD BDT BGN BHD BIF BMD BND BOB
BRL BSD BTN BWP BYN BZD CAD CDF CHF CLP CNY COP CRC CUP CVE CZK DJF DKK DOP
DZD EGP ERN ETB EUR FJD FKP GBP GEL GHS GIP GMD GNF GTQ GYD HKD HNL HTG HUF
IDR ILS INR IQD IRR ISK JMD JOD JPY KES KGS KHR KMF KPW KRW KWD KYD KZT LAK
LBP LKR LRD LSL LYD MAD MDL MGA MKD MMK MNT MOP MRU MUR MVR MWK MXN MYR MZN
NAD NGN NIO NOK NPR NZD OMR PAB PEN PGK PHP PKR PLN PYG QAR RON RSD RUB RWF
SAR SBD SCR SDG SEK SGD SHP SLE SOS SRD SSP STN SVC SYP SZL THB TJS TMT TND
TOP TRY TTD TWD TZS UAH UGX USD UYU UZS VES VND VUV WST XAF XCD XOF XPF YER
ZAR ZMW ZWL
""".split())


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class TransactionType(str, enum.Enum):
    """Kinds of money movement that can be reconciled."""
    PAYMENT = "payment"
    REFUND = "refund"
    PAYOUT = "payout"
    FEE = "fee"


class ReconciliationStatus(str, enum.Enum):
    """Outcome of reconciling one transaction."""
    MATCHED = "matched"
    UNMATCHED = "unmatched"
    PENDING = "pending"
    DISPUTED = "disputed"


class JobStatus(str, enum.Enum):
    """Status of a reconciliation job."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class DiscrepancyType(str, enum.Enum):
    """Variants of a discrepancy."""
    AMOUNT = "amount"
    STATUS = "status"
    DATE = "date"
    MISSING = "missing"


class TransactionRecord(BaseModel):
    """One payment, refund, payout or fee as reported by one side."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Transaction ID")
    type: TransactionType = Field(default=TransactionType.PAYMENT)
    amount: int = Field(..., ge=0, description="Amount in minor units")
    currency: str = Field(..., description="Three-letter ISO 4217 currency code")
    status: PaymentStatus = Field(..., description="Lifecycle status")
    connector: str = Field(..., min_length=1, description="Connector identifier")
    merchant_reference: str = Field(..., description="Merchant-side reference")
    connector_reference: Optional[str] = Field(None, description="Connector-side reference")
    customer_id: Optional[str] = Field(None)
    created_at: datetime = Field(..., description="Transaction creation time")
    processed_at: Optional[datetime] = Field(None, description="Time the connector processed it")
    disputed: bool = Field(default=False, description="Chargeback or dispute marker")
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("currency")
    @classmethod
    def _check_currency(cls, value: str) -> str:
        code = value.strip().upper()
        if code not in ISO_CURRENCIES:
            raise ValueError(f"Unrecognized currency code: {value}")
        return code

    @field_validator("status", mode="before")
    @classmethod
    def _parse_status(cls, value: Any) -> PaymentStatus:
        return PaymentStatus.parse(value)

    @field_validator("created_at", "processed_at")
    @classmethod
    def _to_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value) if value is not None else None

    @property
    def effective_date(self) -> datetime:
        """Date used for date matching: processing time when known."""
        return self.processed_at or self.created_at


class DiscrepancySeverity(str, enum.Enum):
    """How urgently a discrepancy needs review."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AmountDiscrepancy(BaseModel):
    """Amounts disagree, or cannot be compared because currencies differ."""
    model_config = ConfigDict(frozen=True)

    type: Literal["amount"] = "amount"
    expected_amount: int
    actual_amount: int
    expected_currency: str
    actual_currency: str
    difference: Optional[int] = Field(
        None, description="actual - expected; None when currencies differ"
    )
    description: str = ""
    severity: DiscrepancySeverity = DiscrepancySeverity.HIGH

    @model_validator(mode="after")
    def _check_difference(self) -> "AmountDiscrepancy":
        if self.difference == 0:
            raise ValueError("An amount discrepancy cannot have a zero difference")
        if self.difference is not None and self.expected_currency != self.actual_currency:
            raise ValueError("Cross-currency discrepancies carry no numeric difference")
        return self

    @property
    def cross_currency(self) -> bool:
        return self.expected_currency != self.actual_currency

    @property
    def expected_value(self) -> str:
        return f"{self.expected_amount} {self.expected_currency}"

    @property
    def actual_value(self) -> str:
        return f"{self.actual_amount} {self.actual_currency}"


class StatusDiscrepancy(BaseModel):
    """Statuses on the two sides are incompatible."""
    model_config = ConfigDict(frozen=True)

    type: Literal["status"] = "status"
    expected_status: str
    actual_status: str
    description: str = ""
    severity: DiscrepancySeverity = DiscrepancySeverity.MEDIUM


class DateDiscrepancy(BaseModel):
    """Transaction dates differ beyond the tolerance window."""
    model_config = ConfigDict(frozen=True)

    type: Literal["date"] = "date"
    expected_date: datetime
    actual_date: datetime
    description: str = ""
    severity: DiscrepancySeverity = DiscrepancySeverity.LOW


class MissingDiscrepancy(BaseModel):
    """The record exists on one side only."""
    model_config = ConfigDict(frozen=True)

    type: Literal["missing"] = "missing"
    missing_side: Literal["connector", "merchant"] = "connector"
    description: str = ""
    severity: DiscrepancySeverity = DiscrepancySeverity.HIGH


Discrepancy = Annotated[
    Union[AmountDiscrepancy, StatusDiscrepancy, DateDiscrepancy, MissingDiscrepancy],
    Field(discriminator="type"),
]


class ReconciliationItem(BaseModel):
    """Result of matching one merchant record against its connector record."""
    model_config = ConfigDict(frozen=True)

    transaction: TransactionRecord
    connector_record: Optional[TransactionRecord] = None
    status: ReconciliationStatus
    discrepancy: Optional[Discrepancy] = None
    reconciled_at: Optional[datetime] = None
    match_score: Optional[int] = Field(
        None, ge=0, le=100, description="Similarity of the paired records; None when unpaired"
    )

    @model_validator(mode="after")
    def _check_discrepancy(self) -> "ReconciliationItem":
        needs_discrepancy = self.status in (
            ReconciliationStatus.UNMATCHED,
            ReconciliationStatus.DISPUTED,
        )
        if needs_discrepancy and self.discrepancy is None:
            raise ValueError(f"A {self.status.value} item must carry a discrepancy")
        if not needs_discrepancy and self.discrepancy is not None:
            raise ValueError(f"A {self.status.value} item cannot carry a discrepancy")
        return self

    @property
    def id(self) -> str:
        return self.transaction.id

    @property
    def connector(self) -> str:
        return self.transaction.connector

    @property
    def amount(self) -> int:
        return self.transaction.amount

    @property
    def currency(self) -> str:
        return self.transaction.currency

    @property
    def discrepancy_type(self) -> Optional[DiscrepancyType]:
        if self.discrepancy is None:
            return None
        return DiscrepancyType(self.discrepancy.type)

    @property
    def severity(self) -> Optional[DiscrepancySeverity]:
        if self.discrepancy is None:
            return None
        return self.discrepancy.severity

    @property
    def has_critical_discrepancy(self) -> bool:
        return self.severity == DiscrepancySeverity.CRITICAL


class ReconciliationPolicy(BaseModel):
    """Tunable parameters of the matching rules."""
    model_config = ConfigDict(frozen=True)

    timezone: str = Field(default="UTC", description="IANA timezone for calendar-day matching")
    date_tolerance: Optional[timedelta] = Field(
        None, description="Allowed date difference; None means same calendar day"
    )
    pending_window: Optional[timedelta] = Field(
        None, description="How long a missing connector record stays pending"
    )

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {value}") from None
        return value

    @property
    def zone(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


class ReconciliationRun(BaseModel):
    """One execution of a reconciliation batch."""
    id: str = Field(..., description="Run ID")
    status: JobStatus = Field(default=JobStatus.PENDING)
    started_at: datetime = Field(...)
    completed_at: Optional[datetime] = Field(None)
    items_processed: int = Field(default=0, ge=0)
    auto_matched: int = Field(default=0, ge=0)
    manual_review: int = Field(default=0, ge=0)
    error_message: Optional[str] = Field(None)

    @property
    def processing_seconds(self) -> Optional[float]:
        if self.completed_at is None:
            return None
        return (ensure_utc(self.completed_at) - ensure_utc(self.started_at)).total_seconds()


class DateRange(BaseModel):
    """Inclusive datetime range."""
    start: Optional[datetime] = None
    end: Optional[datetime] = None

    def contains(self, value: datetime) -> bool:
        value = ensure_utc(value)
        if self.start is not None and value < ensure_utc(self.start):
            return False
        if self.end is not None and value > ensure_utc(self.end):
            return False
        return True


class ReconciliationRequest(BaseModel):
    """Request model for starting a reconciliation job."""
    start_time: Optional[datetime] = Field(None, description="Start of time range to reconcile")
    end_time: Optional[datetime] = Field(None, description="End of time range to reconcile")
    connector: Optional[str] = Field(None, description="Restrict to one connector")
    currency: Optional[str] = Field(None, description="Restrict to one currency")
    include_details: bool = Field(default=True, description="Include items in report")
    as_of: Optional[datetime] = Field(None, description="Evaluation time for the pending window")


class CurrencyVolume(BaseModel):
    """Volumes of a single currency, in its minor units."""
    total: int = 0
    matched: int = 0
    unmatched: int = 0


class OverviewStatistics(BaseModel):
    """Counts, rate and volumes across all items."""
    total_transactions: int = 0
    matched_transactions: int = 0
    unmatched_transactions: int = 0
    pending_transactions: int = 0
    disputed_transactions: int = 0
    reconciliation_rate: float = 0.0
    # Scalar volumes are None when the items span several currencies
    total_volume: Optional[int] = 0
    matched_volume: Optional[int] = 0
    unmatched_volume: Optional[int] = 0
    currency: Optional[str] = None
    volume_by_currency: Dict[str, CurrencyVolume] = Field(default_factory=dict)


class DiscrepancyStatistics(BaseModel):
    """Discrepancy counts per variant and the amounts involved."""
    total_discrepancies: int = 0
    amount_discrepancies: int = 0
    status_discrepancies: int = 0
    date_discrepancies: int = 0
    missing_transactions: int = 0
    total_discrepancy_amount: Optional[int] = Field(
        0, description="None when amount discrepancies span several currencies"
    )
    avg_discrepancy_amount: Optional[float] = 0.0
    discrepancy_amount_by_currency: Dict[str, int] = Field(default_factory=dict)
    discrepancy_rate: float = 0.0
    by_severity: Dict[DiscrepancySeverity, int] = Field(
        default_factory=lambda: {s: 0 for s in DiscrepancySeverity}
    )
    critical_discrepancies: int = 0


class ConnectorStatistics(BaseModel):
    """Per-connector breakdown."""
    connector_name: str
    total_transactions: int = 0
    matched_transactions: int = 0
    unmatched_transactions: int = 0
    reconciliation_rate: float = 0.0
    total_volume: Optional[int] = 0
    matched_volume: Optional[int] = 0
    unmatched_volume: Optional[int] = 0
    volume_by_currency: Dict[str, CurrencyVolume] = Field(default_factory=dict)
    total_discrepancies: int = 0
    discrepancy_rate: float = 0.0
    last_reconciliation: Optional[datetime] = None


class TrendStatistics(BaseModel):
    """Comparison against the preceding period of equal length."""
    previous_reconciliation_rate: float = 0.0
    reconciliation_rate_change: float = Field(0.0, description="Absolute change in points")
    previous_total_volume: Optional[int] = 0
    volume_change: Optional[float] = Field(
        None, description="Signed percent change; None when currencies differ"
    )
    previous_transaction_count: int = 0
    transaction_count_change: Optional[float] = Field(None, description="Signed percent change")


class PerformanceStatistics(BaseModel):
    """SLA and automation metrics derived from reconciliation runs."""
    total_runs: int = 0
    processing_time_avg: float = 0.0
    processing_time_p95: float = 0.0
    auto_match_rate: float = 0.0
    manual_review_rate: float = 0.0
    error_rate: float = 0.0
    sla_compliance: float = 0.0


class ReconciliationStatistics(BaseModel):
    """Aggregate view of a collection of reconciliation items."""
    overview: OverviewStatistics = Field(default_factory=OverviewStatistics)
    discrepancies: DiscrepancyStatistics = Field(default_factory=DiscrepancyStatistics)
    connectors: List[ConnectorStatistics] = Field(default_factory=list)
    best_connector: Optional[str] = None
    worst_connector: Optional[str] = None
    trends: TrendStatistics = Field(default_factory=TrendStatistics)
    performance: PerformanceStatistics = Field(default_factory=PerformanceStatistics)


class ReconciliationReport(BaseModel):
    """Complete reconciliation report: run, items and statistics."""
    run: ReconciliationRun
    request: ReconciliationRequest
    items: List[ReconciliationItem] = Field(default_factory=list)
    statistics: Optional[ReconciliationStatistics] = None

    def to_summary_dict(self) -> Dict[str, Any]:
        """Return the run and statistics without the item list."""
        return {
            "id": self.run.id,
            "status": self.run.status.value,
            "start_time": self.request.start_time.isoformat() if self.request.start_time else None,
            "end_time": self.request.end_time.isoformat() if self.request.end_time else None,
            "started_at": self.run.started_at.isoformat(),
            "completed_at": self.run.completed_at.isoformat() if self.run.completed_at else None,
            "statistics": self.statistics.model_dump(mode="json") if self.statistics else None,
            "error_message": self.run.error_message,
        }

    def to_full_dict(self) -> Dict[str, Any]:
        """Return the complete report including all items."""
        result = self.to_summary_dict()
        result["items"] = [item.model_dump(mode="json") for item in self.items]
        return result
