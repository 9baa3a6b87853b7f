"""
Database Models - SQLAlchemy ORM models with strict typing.

All columns use Mapped[] type annotations.
"""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from purifier_billing.models.api import RechargeMode, RefundMethod, ServiceJobStatus, UsageSource


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(UTC)


class Plan(Base):
    """
    ORM model for plans table.

    Reference data maintained by administrators; read-only to the accounting services.
    """

    __tablename__ = "plans"

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)
    plan_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    plan_name: Mapped[str] = mapped_column(String(255), nullable=False)
    duration_days: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=False)
    daily_liter_allowance: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    # NULL or 0 means "derive from duration and daily allowance"
    cycle_hour_allowance: Mapped[float | None] = mapped_column(Float, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        CheckConstraint("duration_days >= 0", name="ck_plan_duration_non_negative"),
        CheckConstraint("price >= 0", name="ck_plan_price_non_negative"),
        CheckConstraint("daily_liter_allowance >= 0", name="ck_plan_daily_liters_non_negative"),
        Index("idx_plans_active", "is_active"),
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"<Plan(plan_id={self.plan_id}, duration_days={self.duration_days}, "
            f"daily_liter_allowance={self.daily_liter_allowance}, active={self.is_active})>"
        )


class Customer(Base):
    """
    ORM model for customers table.

    Registration profile plus the state of the customer's current cycle.
    """

    __tablename__ = "customers"

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)
    generated_customer_id: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)

    # Profile
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_phone: Mapped[str] = mapped_column(String(10), nullable=False)
    alt_mobile_no: Mapped[str | None] = mapped_column(String(10), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    customer_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    landmark: Mapped[str | None] = mapped_column(String(255), nullable=True)
    pincode: Mapped[str | None] = mapped_column(String(6), nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    state_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    confirmed_map_link: Mapped[str | None] = mapped_column(Text, nullable=True)
    model_installed: Mapped[str | None] = mapped_column(String(100), nullable=True)
    serial_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    installation_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Current cycle
    current_plan_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    current_plan_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    price_paid: Mapped[float | None] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=True)
    cycle_start_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    cycle_end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Plan terms snapshot for the current cycle
    daily_liter_allowance: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    cycle_hour_allowance: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    cycle_duration_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Usage counters (reset on every cycle)
    cycle_total_hours_used: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    cycle_total_liters_used: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    last_usage: Mapped[list[dict[str, Any]]] = mapped_column(JSONB, nullable=False, default=list)

    recharge_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_recharge_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_contact_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Audit timestamps
    registered_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        CheckConstraint("cycle_total_hours_used >= 0", name="ck_customer_hours_non_negative"),
        CheckConstraint("cycle_total_liters_used >= 0", name="ck_customer_liters_non_negative"),
        CheckConstraint("recharge_count >= 0", name="ck_customer_recharge_count_non_negative"),
        Index("idx_customers_registered_at", "registered_at"),
        Index("idx_customers_phone", "customer_phone"),
        Index("idx_customers_cycle_end_date", "cycle_end_date"),
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"<Customer(generated_customer_id={self.generated_customer_id}, "
            f"plan={self.current_plan_id}, cycle_end_date={self.cycle_end_date})>"
        )


class Recharge(Base):
    """
    ORM model for recharges table.

    Immutable audit log, one row per cycle-establishing event.
    """

    __tablename__ = "recharges"

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)
    customer_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("customers.id", ondelete="RESTRICT"), nullable=False
    )
    generated_customer_id: Mapped[str] = mapped_column(String(32), nullable=False)

    previous_plan_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    plan_id: Mapped[str] = mapped_column(String(64), nullable=False)
    plan_name: Mapped[str] = mapped_column(String(255), nullable=False)
    plan_price: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=False)
    plan_duration_days: Mapped[int] = mapped_column(Integer, nullable=False)

    mode: Mapped[RechargeMode] = mapped_column(
        SQLEnum(
            RechargeMode,
            name="recharge_mode",
            native_enum=False,
            length=10,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
    )
    payment_method: Mapped[str] = mapped_column(String(50), nullable=False)

    cycle_start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    cycle_end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    recharged_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    __table_args__ = (
        CheckConstraint("cycle_end_date >= cycle_start_date", name="ck_recharge_cycle_order"),
        Index("idx_recharges_customer_recharged_at", "customer_id", "recharged_at"),
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"<Recharge(id={self.id}, customer={self.generated_customer_id}, "
            f"plan={self.plan_id}, mode={self.mode})>"
        )


class ServiceJob(Base):
    """
    ORM model for service_jobs table.

    Field service tickets raised against a customer installation.
    """

    __tablename__ = "service_jobs"

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)
    customer_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("customers.id", ondelete="RESTRICT"), nullable=False
    )
    generated_customer_id: Mapped[str] = mapped_column(String(32), nullable=False)

    # Contact snapshot at the time the ticket was raised
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_phone: Mapped[str] = mapped_column(String(10), nullable=False)
    customer_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    confirmed_map_link: Mapped[str | None] = mapped_column(Text, nullable=True)

    problem_description: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[ServiceJobStatus] = mapped_column(
        SQLEnum(
            ServiceJobStatus,
            name="service_job_status",
            native_enum=False,
            length=20,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
        default=ServiceJobStatus.OPEN,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        Index("idx_service_jobs_status_created_at", "status", "created_at"),
        Index("idx_service_jobs_customer_id", "customer_id"),
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"<ServiceJob(id={self.id}, customer={self.generated_customer_id}, "
            f"status={self.status})>"
        )


class ServiceJobLog(Base):
    """
    ORM model for service_job_logs table.

    Append-only audit trail of actions taken on service jobs.
    """

    __tablename__ = "service_job_logs"

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)
    job_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("service_jobs.id", ondelete="CASCADE"), nullable=False
    )
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    details: Mapped[dict[str, str] | None] = mapped_column(JSONB, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    __table_args__ = (Index("idx_service_job_logs_job_id", "job_id"),)


class DeviceReading(Base):
    """
    ORM model for device_readings table.

    Every accepted device report, unbounded, as sent by the device.
    """

    __tablename__ = "device_readings"

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)
    customer_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("customers.id", ondelete="RESTRICT"), nullable=False
    )
    generated_customer_id: Mapped[str] = mapped_column(String(32), nullable=False)
    source: Mapped[UsageSource] = mapped_column(
        SQLEnum(
            UsageSource,
            name="usage_source",
            native_enum=False,
            length=20,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
    )
    payload: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False)
    device_timestamp: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    received_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    __table_args__ = (
        Index("idx_device_readings_customer_received_at", "generated_customer_id", "received_at"),
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"<DeviceReading(id={self.id}, customer={self.generated_customer_id}, "
            f"received_at={self.received_at})>"
        )


class Uninstallation(Base):
    """
    ORM model for uninstallations table.

    Device pickup and deposit refund for a customer leaving the service.
    """

    __tablename__ = "uninstallations"

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)
    customer_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("customers.id", ondelete="RESTRICT"), nullable=False
    )
    generated_customer_id: Mapped[str] = mapped_column(String(32), nullable=False)

    scheduled_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    equipment_condition: Mapped[str] = mapped_column(Text, nullable=False)
    equipment_photos: Mapped[list[str]] = mapped_column(JSONB, nullable=False, default=list)

    deduction_details: Mapped[str | None] = mapped_column(Text, nullable=True)
    deductions: Mapped[float] = mapped_column(
        Numeric(10, 2, asdecimal=False), nullable=False, default=0
    )
    refund_amount: Mapped[float] = mapped_column(
        Numeric(10, 2, asdecimal=False), nullable=False, default=0
    )
    refund_method: Mapped[RefundMethod] = mapped_column(
        SQLEnum(
            RefundMethod,
            name="refund_method",
            native_enum=False,
            length=20,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
    )

    # Only set for bank transfers
    bank_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    bank_account_number: Mapped[str | None] = mapped_column(String(34), nullable=True)
    bank_ifsc_code: Mapped[str | None] = mapped_column(String(11), nullable=True)

    internal_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    __table_args__ = (
        CheckConstraint("deductions >= 0", name="ck_uninstallation_deductions_non_negative"),
        CheckConstraint("refund_amount >= 0", name="ck_uninstallation_refund_non_negative"),
        Index("idx_uninstallations_customer_id", "customer_id"),
        Index("idx_uninstallations_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"<Uninstallation(id={self.id}, customer={self.generated_customer_id}, "
            f"refund={self.refund_amount})>"
        )


class UninstallationLog(Base):
    """
    ORM model for uninstallation_logs table.

    Append-only audit trail of actions taken on uninstallations.
    """

    __tablename__ = "uninstallation_logs"

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)
    uninstallation_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("uninstallations.id", ondelete="CASCADE"),
        nullable=False,
    )
    generated_customer_id: Mapped[str] = mapped_column(String(32), nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    details: Mapped[dict[str, Any] | None] = mapped_column(JSONB, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    __table_args__ = (Index("idx_uninstallation_logs_uninstallation_id", "uninstallation_id"),)
