"""
API Models - Pydantic models for request/response validation.

All request bodies are validated here before anything reaches the services.
"""

from datetime import date, datetime, time
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator


class RechargeMode(str, Enum):
    """How a recharge treats the time left on the current cycle."""

    REPLACE = "replace"
    ADD = "add"


class UsageSource(str, Enum):
    """Provenance of the liters recorded for a usage reading."""

    DIRECT = "direct"
    CALCULATED = "calculated"


class ServiceJobStatus(str, Enum):
    """Service ticket status enumeration."""

    OPEN = "Open"
    RESOLVED = "Resolved"


class RefundMethod(str, Enum):
    """How a deposit refund is paid out."""

    BANK_TRANSFER = "Bank Transfer"
    CASH = "Cash"
    OTHER = "Other"


# ============================================================================
# Plan Models
# ============================================================================


class PlanResponse(BaseModel):
    """Single plan with resolved allowances."""

    plan_id: str
    plan_name: str
    duration_days: int
    price: float
    daily_liter_allowance: float
    cycle_hour_allowance: float
    cycle_liter_allowance: float
    is_active: bool


class PlanListResponse(BaseModel):
    """GET /v1/plans response."""

    plans: list[PlanResponse]


# ============================================================================
# Customer Models
# ============================================================================


class RegisterCustomerRequest(BaseModel):
    """POST /v1/customers request body."""

    generated_customer_id: str = Field(..., min_length=1, max_length=32)
    customer_name: str = Field(..., min_length=1, max_length=255)
    customer_phone: str = Field(..., min_length=10, max_length=10)
    alt_mobile_no: str | None = Field(None, max_length=10)
    email: str | None = Field(None, max_length=255)
    customer_address: str | None = Field(None, max_length=1000)
    landmark: str | None = Field(None, max_length=255)
    pincode: str | None = Field(None, max_length=6)
    city: str | None = Field(None, max_length=100)
    state_name: str | None = Field(None, max_length=100)
    confirmed_map_link: str | None = Field(None, max_length=1000)
    model_installed: str | None = Field(None, max_length=100)
    serial_number: str | None = Field(None, max_length=100)
    installation_date: date
    installation_time: time | None = None
    plan_id: str = Field(..., min_length=1, max_length=64)
    payment_method: str = Field("cash", min_length=1, max_length=50)

    @field_validator("customer_phone", "alt_mobile_no")
    @classmethod
    def validate_phone(cls, v: str | None) -> str | None:
        """Mobile numbers are exactly ten digits."""
        if v is None:
            return v
        if not v.isdigit() or len(v) != 10:
            raise ValueError("phone numbers must be 10 digits")
        return v

    @field_validator("pincode")
    @classmethod
    def validate_pincode(cls, v: str | None) -> str | None:
        """Postal codes are six digits."""
        if v is not None and (not v.isdigit() or len(v) != 6):
            raise ValueError("pincode must be 6 digits")
        return v


class UsageEntryResponse(BaseModel):
    """One entry of the bounded usage history."""

    reported_at: str  # ISO 8601 timestamp
    source: UsageSource
    daily_liters: float | None = None
    cycle_liters: float
    daily_hours: float | None = None
    cycle_hours: float | None = None


class CycleStatusResponse(BaseModel):
    """Remaining allowance on the active cycle."""

    is_active: bool
    days_remaining: int
    liters_remaining: float | None = None
    hours_remaining: float | None = None


class CustomerSummary(BaseModel):
    """Customer row in list/search responses."""

    id: UUID
    generated_customer_id: str
    customer_name: str
    customer_phone: str
    city: str | None = None
    state_name: str | None = None
    current_plan_name: str | None = None
    cycle_end_date: str | None = None
    registered_at: str


class CustomerListResponse(BaseModel):
    """GET /v1/customers response."""

    customers: list[CustomerSummary]


class CustomerResponse(BaseModel):
    """GET /v1/customers/{generated_customer_id} response."""

    id: UUID
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
    installation_date: str | None = None
    registered_at: str
    current_plan_id: str | None = None
    current_plan_name: str | None = None
    price_paid: float | None = None
    cycle_start_date: str | None = None
    cycle_end_date: str | None = None
    daily_liter_allowance: float = 0
    cycle_hour_allowance: float = 0
    cycle_duration_days: int = 0
    cycle_total_hours_used: float = 0
    cycle_total_liters_used: float = 0
    recharge_count: int = 0
    last_recharge_at: str | None = None
    last_contact_at: str | None = None
    cycle_status: CycleStatusResponse
    last_usage: list[UsageEntryResponse] = Field(default_factory=list)


class NextCustomerIdResponse(BaseModel):
    """GET /v1/customers/next-id response."""

    prefix: str
    sequential_number: str
    generated_customer_id: str


# ============================================================================
# Recharge Models
# ============================================================================


class RechargeRequest(BaseModel):
    """POST /v1/customers/{generated_customer_id}/recharge request body."""

    plan_id: str = Field(..., min_length=1, max_length=64)
    payment_method: str = Field(..., min_length=1, max_length=50)
    mode: RechargeMode = RechargeMode.REPLACE


class RechargeResponse(BaseModel):
    """Recharge (or registration) outcome."""

    recharge_id: UUID
    customer_id: UUID
    generated_customer_id: str
    plan_id: str
    plan_name: str
    plan_price: float
    mode: RechargeMode
    payment_method: str
    cycle_start_date: str  # ISO 8601 timestamp
    cycle_end_date: str  # ISO 8601 timestamp
    recharged_at: str  # ISO 8601 timestamp


class RechargeHistoryResponse(BaseModel):
    """GET /v1/customers/{generated_customer_id}/recharges response."""

    recharges: list[RechargeResponse]


# ============================================================================
# Device Models
# ============================================================================


class DeviceUsageRequest(BaseModel):
    """POST /v1/devices/usage request body."""

    customer_id: str = Field(..., min_length=1, max_length=32)
    daily_liters: float | None = Field(None, ge=0, allow_inf_nan=False)
    cycle_liters: float | None = Field(
        None,
        ge=0,
        allow_inf_nan=False,
        validation_alias=AliasChoices("cycle_liters", "total_liters"),
    )
    daily_hours: float | None = Field(None, ge=0, allow_inf_nan=False)
    cycle_hours: float | None = Field(
        None,
        ge=0,
        allow_inf_nan=False,
        validation_alias=AliasChoices("cycle_hours", "total_hours"),
    )
    device_timestamp: str | None = Field(None, description="ISO 8601 time from the device")

    @model_validator(mode="after")
    def validate_reading_pairs(self) -> "DeviceUsageRequest":
        """At least one complete daily/cycle pair must be present."""
        has_liters = self.daily_liters is not None and self.cycle_liters is not None
        has_hours = self.daily_hours is not None and self.cycle_hours is not None
        if not has_liters and not has_hours:
            raise ValueError(
                "reading must include daily_liters and cycle_liters, "
                "or daily_hours and cycle_hours"
            )
        return self


class UsageRecordedResponse(BaseModel):
    """POST /v1/devices/usage response."""

    customer_id: str
    source: UsageSource
    cycle_total_liters_used: float
    cycle_total_hours_used: float
    history_length: int
    last_contact_at: str  # ISO 8601 timestamp


class DeviceConfigResponse(BaseModel):
    """GET /v1/devices/{customer_id}/config response."""

    customer_id: str
    max_hours: float
    max_days: int


class DeviceReadingResponse(BaseModel):
    """One raw device report as received."""

    reading_id: UUID
    generated_customer_id: str
    source: UsageSource
    payload: dict[str, Any]
    device_timestamp: str | None = None
    received_at: str  # ISO 8601 timestamp


class DeviceReadingListResponse(BaseModel):
    """GET /v1/devices/{customer_id}/readings response."""

    readings: list[DeviceReadingResponse]


# ============================================================================
# Service Job Models
# ============================================================================


class CreateServiceJobRequest(BaseModel):
    """POST /v1/service-jobs request body."""

    generated_customer_id: str = Field(..., min_length=1, max_length=32)
    problem_description: str = Field(..., min_length=1, max_length=2000)
    customer_address: str | None = Field(None, max_length=1000)
    confirmed_map_link: str | None = Field(None, max_length=1000)


class UpdateServiceJobRequest(BaseModel):
    """PUT /v1/service-jobs/{job_id} request body."""

    status: ServiceJobStatus

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: ServiceJobStatus) -> ServiceJobStatus:
        """Only resolving a job is supported."""
        if v != ServiceJobStatus.RESOLVED:
            raise ValueError(f"Invalid status update: '{v.value}'. Only 'Resolved' is supported.")
        return v


class ServiceJobResponse(BaseModel):
    """Single service job."""

    job_id: UUID
    customer_id: UUID
    generated_customer_id: str
    customer_name: str
    customer_phone: str
    customer_address: str | None = None
    confirmed_map_link: str | None = None
    problem_description: str
    status: ServiceJobStatus
    created_at: str  # ISO 8601 timestamp
    updated_at: str  # ISO 8601 timestamp


class ServiceJobListResponse(BaseModel):
    """GET /v1/service-jobs response."""

    jobs: list[ServiceJobResponse]


class ServiceJobUpdateResponse(BaseModel):
    """PUT /v1/service-jobs/{job_id} response."""

    message: str
    job: ServiceJobResponse


# ============================================================================
# Uninstallation Models
# ============================================================================


class BankDetails(BaseModel):
    """Refund destination for bank transfers."""

    bank_name: str = Field(..., min_length=1, max_length=255)
    account_number: str = Field(..., min_length=1, max_length=34)
    ifsc_code: str = Field(..., min_length=11, max_length=11)


class CreateUninstallationRequest(BaseModel):
    """POST /v1/uninstallations request body."""

    generated_customer_id: str = Field(..., min_length=1, max_length=32)
    scheduled_date: datetime
    reason: str = Field(..., min_length=1, max_length=2000)
    equipment_condition: str = Field(..., min_length=1, max_length=2000)
    equipment_photos: list[str] = Field(default_factory=list, max_length=20)
    deduction_details: str | None = Field(None, max_length=2000)
    deductions: float = Field(0, ge=0, allow_inf_nan=False)
    refund_amount: float = Field(0, ge=0, allow_inf_nan=False)
    refund_method: RefundMethod
    bank_details: BankDetails | None = None
    internal_notes: str | None = Field(None, max_length=2000)

    @model_validator(mode="after")
    def validate_bank_details(self) -> "CreateUninstallationRequest":
        """Bank transfers need somewhere to send the money."""
        if self.refund_method == RefundMethod.BANK_TRANSFER and self.bank_details is None:
            raise ValueError("bank_details are required for bank transfer refunds")
        return self


class UninstallationResponse(BaseModel):
    """Recorded uninstallation and refund."""

    uninstallation_id: UUID
    customer_id: UUID
    generated_customer_id: str
    scheduled_date: str  # ISO 8601 timestamp
    reason: str
    equipment_condition: str
    equipment_photos: list[str] = Field(default_factory=list)
    deduction_details: str | None = None
    deductions: float
    refund_amount: float
    refund_method: RefundMethod
    bank_details: BankDetails | None = None
    internal_notes: str | None = None
    created_at: str  # ISO 8601 timestamp


class UninstallationListResponse(BaseModel):
    """GET /v1/uninstallations response."""

    uninstallations: list[UninstallationResponse]


# ============================================================================
# Health
# ============================================================================


class HealthResponse(BaseModel):
    """GET /health response."""

    status: str
    database: str
    timestamp: str
