"""
Domain Models - Internal business logic models using dataclasses.

All accounting inputs and outputs are immutable dataclasses; the ORM rows are
converted at the service boundary.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID

from purifier_billing.models.api import RechargeMode, RefundMethod, ServiceJobStatus, UsageSource


@dataclass(frozen=True)
class PlanTerms:
    """Plan terms with every derived allowance resolved."""

    plan_id: str
    plan_name: str
    duration_days: int
    daily_liter_allowance: float
    cycle_hour_allowance: float
    cycle_liter_allowance: float
    price: float
    is_active: bool = True

    def __post_init__(self) -> None:
        """Validate plan terms."""
        if not self.plan_id:
            raise ValueError("plan_id cannot be empty")
        if self.duration_days < 0:
            raise ValueError(f"duration_days cannot be negative: {self.duration_days}")
        if self.daily_liter_allowance < 0:
            raise ValueError(
                f"daily_liter_allowance cannot be negative: {self.daily_liter_allowance}"
            )
        if self.price < 0:
            raise ValueError(f"price cannot be negative: {self.price}")


@dataclass(frozen=True)
class CycleState:
    """Snapshot of a customer's current cycle, as read from the store."""

    customer_id: str
    current_plan_id: str | None
    current_plan_name: str | None
    cycle_start_date: datetime | None
    # Rows migrated from the legacy document store may hold ISO strings here.
    cycle_end_date: datetime | str | None
    cycle_total_hours_used: float
    cycle_total_liters_used: float
    recharge_count: int
    last_contact_at: datetime | None = None


@dataclass(frozen=True)
class NewCycle:
    """Result of establishing a cycle - everything the store must overwrite."""

    plan_id: str
    plan_name: str
    price_paid: float
    mode: RechargeMode
    cycle_start_date: datetime
    cycle_end_date: datetime
    daily_liter_allowance: float
    cycle_hour_allowance: float
    cycle_duration_days: int
    recharge_count: int
    last_recharge_at: datetime
    cycle_total_hours_used: float = 0.0
    cycle_total_liters_used: float = 0.0
    previous_plan_id: str | None = None
    extended_previous_cycle: bool = False
    previous_end_unparsable: bool = False


@dataclass(frozen=True)
class UsageReading:
    """One device report. Liter and hour pairs are each optional."""

    reported_at: datetime
    daily_liters: float | None = None
    cycle_liters: float | None = None
    daily_hours: float | None = None
    cycle_hours: float | None = None

    @property
    def has_liters(self) -> bool:
        """True when the device reported its cumulative liter counter."""
        return self.cycle_liters is not None

    @property
    def has_hours(self) -> bool:
        """True when the device reported its cumulative runtime hours."""
        return self.cycle_hours is not None


@dataclass(frozen=True)
class UsageEntry:
    """History entry stored in the customer's bounded usage log."""

    reported_at: datetime
    source: UsageSource
    daily_liters: float | None
    cycle_liters: float
    daily_hours: float | None
    cycle_hours: float | None

    def to_document(self) -> dict[str, Any]:
        """Serialize for the JSONB history column."""
        return {
            "reported_at": self.reported_at.isoformat(),
            "source": self.source.value,
            "daily_liters": self.daily_liters,
            "cycle_liters": self.cycle_liters,
            "daily_hours": self.daily_hours,
            "cycle_hours": self.cycle_hours,
        }

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "UsageEntry":
        """Rebuild an entry from the JSONB history column."""
        return cls(
            reported_at=datetime.fromisoformat(document["reported_at"]),
            source=UsageSource(document["source"]),
            daily_liters=document.get("daily_liters"),
            cycle_liters=document["cycle_liters"],
            daily_hours=document.get("daily_hours"),
            cycle_hours=document.get("cycle_hours"),
        )


@dataclass(frozen=True)
class UsageUpdate:
    """Result of merging one reading into a customer's running totals."""

    entry: UsageEntry
    cycle_total_liters_used: float
    cycle_total_hours_used: float
    last_usage: tuple[UsageEntry, ...]
    last_contact_at: datetime


@dataclass(frozen=True)
class CycleStatus:
    """Read-side view of the active cycle against its allowances."""

    is_active: bool
    days_remaining: int
    liters_remaining: float | None
    hours_remaining: float | None


@dataclass(frozen=True)
class CustomerProfile:
    """Registration details captured by the installation team."""

    generated_customer_id: str
    customer_name: str
    customer_phone: str
    alt_mobile_no: str | None = None
    email: str | None = None
    customer_address: str | None = None
    landmark: str | None = None
    pincode: str | None = None
    city: str | None = None
    state_name: str | None = None
    confirmed_map_link: str | None = None
    model_installed: str | None = None
    serial_number: str | None = None

    def __post_init__(self) -> None:
        """Validate the fields every customer must have."""
        if not self.generated_customer_id:
            raise ValueError("generated_customer_id cannot be empty")
        if not self.customer_name:
            raise ValueError("customer_name cannot be empty")
        if not self.customer_phone:
            raise ValueError("customer_phone cannot be empty")


@dataclass(frozen=True)
class CustomerData:
    """Immutable customer snapshot."""

    id: UUID
    profile: CustomerProfile
    installation_date: datetime | None
    registered_at: datetime
    current_plan_id: str | None
    current_plan_name: str | None
    price_paid: float | None
    cycle_start_date: datetime | None
    cycle_end_date: datetime | None
    daily_liter_allowance: float
    cycle_hour_allowance: float
    cycle_duration_days: int
    cycle_total_hours_used: float
    cycle_total_liters_used: float
    recharge_count: int
    last_recharge_at: datetime | None
    last_contact_at: datetime | None
    last_usage: tuple[UsageEntry, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class RechargeData:
    """Immutable recharge audit record."""

    recharge_id: UUID
    customer_id: UUID
    generated_customer_id: str
    previous_plan_id: str | None
    plan_id: str
    plan_name: str
    plan_price: float
    plan_duration_days: int
    mode: RechargeMode
    payment_method: str
    cycle_start_date: datetime
    cycle_end_date: datetime
    recharged_at: datetime


@dataclass(frozen=True)
class ServiceJobData:
    """Immutable service ticket snapshot."""

    job_id: UUID
    customer_id: UUID
    generated_customer_id: str
    customer_name: str
    customer_phone: str
    customer_address: str | None
    confirmed_map_link: str | None
    problem_description: str
    status: ServiceJobStatus
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class DeviceReadingData:
    """Raw device report kept alongside the bounded usage history."""

    reading_id: UUID
    generated_customer_id: str
    source: UsageSource
    payload: dict[str, Any]
    device_timestamp: datetime | None
    received_at: datetime


@dataclass(frozen=True)
class BankAccount:
    bank_name: str
    account_number: str
    ifsc_code: str


@dataclass(frozen=True)
class UninstallationRequest:
    """Details captured when a device is taken back from a customer."""

    scheduled_date: datetime
    reason: str
    equipment_condition: str
    refund_method: RefundMethod
    equipment_photos: tuple[str, ...] = ()
    deduction_details: str | None = None
    deductions: float = 0.0
    refund_amount: float = 0.0
    bank_account: BankAccount | None = None
    internal_notes: str | None = None

    def __post_init__(self) -> None:
        """Validate the refund figures."""
        if not self.reason or not self.reason.strip():
            raise ValueError("reason cannot be empty")
        if self.deductions < 0:
            raise ValueError(f"deductions cannot be negative: {self.deductions}")
        if self.refund_amount < 0:
            raise ValueError(f"refund_amount cannot be negative: {self.refund_amount}")
        if self.refund_method == RefundMethod.BANK_TRANSFER and self.bank_account is None:
            raise ValueError("bank transfer refunds need a bank account")


@dataclass(frozen=True)
class UninstallationData:
    """Immutable uninstallation record."""

    uninstallation_id: UUID
    customer_id: UUID
    generated_customer_id: str
    details: UninstallationRequest
    created_at: datetime
