"""
Subscription Service - Registration, recharge and device usage bookkeeping.

Every write operation follows the pattern:
1. Lock the customer row (SELECT ... FOR UPDATE)
2. Compute the new state with the pure calculators
3. Overwrite the row and insert audit records
4. Flush and commit once
"""

import re
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from purifier_billing.db.models import Customer, DeviceReading, Recharge
from purifier_billing.exceptions import (
    CustomerNotFoundError,
    DuplicateCustomerError,
    StorageError,
    ValidationError,
)
from purifier_billing.models.api import RechargeMode, UsageSource
from purifier_billing.models.domain import (
    CustomerData,
    CustomerProfile,
    CycleState,
    DeviceReadingData,
    NewCycle,
    RechargeData,
    UsageEntry,
    UsageReading,
    UsageUpdate,
)
from purifier_billing.observability import annotate_span, get_logger, metrics
from purifier_billing.services.cycle_resolver import establish_cycle
from purifier_billing.services.plan_catalog import PlanCatalog
from purifier_billing.services.usage_accumulator import apply_reading

logger = get_logger(__name__)


def _utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(UTC)


def customer_id_prefix(zone: str, division: str) -> str:
    """Prefix shared by all customers of a zone/division, e.g. JH09d013."""
    if not zone or not division:
        raise ValidationError("zone", "zone and division are required")
    return f"{zone}d{division}"


def next_sequential_number(existing_ids: Iterable[str], prefix: str) -> str:
    """
    Next two-digit sequence for a prefix.

    Only ids of the exact form <prefix><NN> count; anything else sharing the
    prefix is ignored.
    """
    pattern = re.compile(rf"^{re.escape(prefix)}(\d{{2}})$")
    highest = 0
    for existing in existing_ids:
        match = pattern.match(existing)
        if match:
            highest = max(highest, int(match.group(1)))
    return f"{highest + 1:02d}"


def cycle_state_of(customer: Customer) -> CycleState:
    """Snapshot the cycle fields of a locked customer row."""
    return CycleState(
        customer_id=customer.generated_customer_id,
        current_plan_id=customer.current_plan_id,
        current_plan_name=customer.current_plan_name,
        cycle_start_date=customer.cycle_start_date,
        cycle_end_date=customer.cycle_end_date,
        cycle_total_hours_used=customer.cycle_total_hours_used or 0.0,
        cycle_total_liters_used=customer.cycle_total_liters_used or 0.0,
        recharge_count=customer.recharge_count or 0,
        last_contact_at=customer.last_contact_at,
    )


def to_customer_data(customer: Customer) -> CustomerData:
    """Convert ORM customer to domain model."""
    profile = CustomerProfile(
        generated_customer_id=customer.generated_customer_id,
        customer_name=customer.customer_name,
        customer_phone=customer.customer_phone,
        alt_mobile_no=customer.alt_mobile_no,
        email=customer.email,
        customer_address=customer.customer_address,
        landmark=customer.landmark,
        pincode=customer.pincode,
        city=customer.city,
        state_name=customer.state_name,
        confirmed_map_link=customer.confirmed_map_link,
        model_installed=customer.model_installed,
        serial_number=customer.serial_number,
    )
    return CustomerData(
        id=customer.id,
        profile=profile,
        installation_date=customer.installation_date,
        registered_at=customer.registered_at,
        current_plan_id=customer.current_plan_id,
        current_plan_name=customer.current_plan_name,
        price_paid=customer.price_paid,
        cycle_start_date=customer.cycle_start_date,
        cycle_end_date=customer.cycle_end_date,
        daily_liter_allowance=customer.daily_liter_allowance or 0.0,
        cycle_hour_allowance=customer.cycle_hour_allowance or 0.0,
        cycle_duration_days=customer.cycle_duration_days or 0,
        cycle_total_hours_used=customer.cycle_total_hours_used or 0.0,
        cycle_total_liters_used=customer.cycle_total_liters_used or 0.0,
        recharge_count=customer.recharge_count or 0,
        last_recharge_at=customer.last_recharge_at,
        last_contact_at=customer.last_contact_at,
        last_usage=tuple(UsageEntry.from_document(doc) for doc in customer.last_usage or []),
    )


def to_recharge_data(recharge: Recharge) -> RechargeData:
    """Convert ORM recharge to domain model."""
    return RechargeData(
        recharge_id=recharge.id,
        customer_id=recharge.customer_id,
        generated_customer_id=recharge.generated_customer_id,
        previous_plan_id=recharge.previous_plan_id,
        plan_id=recharge.plan_id,
        plan_name=recharge.plan_name,
        plan_price=recharge.plan_price,
        plan_duration_days=recharge.plan_duration_days,
        mode=RechargeMode(recharge.mode),
        payment_method=recharge.payment_method,
        cycle_start_date=recharge.cycle_start_date,
        cycle_end_date=recharge.cycle_end_date,
        recharged_at=recharge.recharged_at,
    )


def to_device_reading_data(reading: DeviceReading) -> DeviceReadingData:
    """Convert ORM device reading to domain model."""
    return DeviceReadingData(
        reading_id=reading.id,
        generated_customer_id=reading.generated_customer_id,
        source=UsageSource(reading.source),
        payload=dict(reading.payload or {}),
        device_timestamp=reading.device_timestamp,
        received_at=reading.received_at,
    )


def reading_payload(reading: UsageReading) -> dict[str, float]:
    """Counters a reading carried, for the device reading log."""
    counters = {
        "daily_liters": reading.daily_liters,
        "cycle_liters": reading.cycle_liters,
        "daily_hours": reading.daily_hours,
        "cycle_hours": reading.cycle_hours,
    }
    return {name: value for name, value in counters.items() if value is not None}


class SubscriptionService:
    """Customer cycle lifecycle on top of the pure accounting calculators."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize subscription service with database session."""
        self.session = session
        self.plans = PlanCatalog(session)

    async def register_customer(
        self,
        profile: CustomerProfile,
        plan_id: str,
        installation_instant: datetime,
        payment_method: str = "cash",
        now: datetime | None = None,
    ) -> tuple[CustomerData, RechargeData]:
        """
        Register a customer and establish their first cycle.

        The first cycle starts at the installation instant.

        Raises:
            DuplicateCustomerError: generated_customer_id already registered
            PlanNotFoundError / PlanInactiveError: plan unavailable
            StorageError: database failure
        """
        registered_at = now or _utc_now()

        try:
            if await self._find_customer(profile.generated_customer_id) is not None:
                raise DuplicateCustomerError(profile.generated_customer_id)

            terms = await self.plans.resolve_plan(plan_id)
            cycle = establish_cycle(None, terms, RechargeMode.REPLACE, installation_instant)

            customer = Customer(
                id=uuid4(),
                generated_customer_id=profile.generated_customer_id,
                customer_name=profile.customer_name,
                customer_phone=profile.customer_phone,
                alt_mobile_no=profile.alt_mobile_no,
                email=profile.email,
                customer_address=profile.customer_address,
                landmark=profile.landmark,
                pincode=profile.pincode,
                city=profile.city,
                state_name=profile.state_name,
                confirmed_map_link=profile.confirmed_map_link,
                model_installed=profile.model_installed,
                serial_number=profile.serial_number,
                installation_date=installation_instant,
                last_usage=[],
                registered_at=registered_at,
            )
            self._apply_cycle(customer, cycle)
            self.session.add(customer)

            recharge = self._build_recharge(customer, cycle, payment_method)
            self.session.add(recharge)

            await self.session.flush()
            await self.session.commit()
        except IntegrityError as e:
            # Concurrent registration of the same generated id
            await self.session.rollback()
            logger.warning(
                "customer_registration_conflict",
                customer_id=profile.generated_customer_id,
                error=str(e),
            )
            raise DuplicateCustomerError(profile.generated_customer_id) from e
        except SQLAlchemyError as e:
            raise await self._storage_failure("register_customer", e) from e

        metrics.registrations_total.inc()
        annotate_span(customer_id=customer.generated_customer_id, plan_id=cycle.plan_id)
        metrics.record_recharge(cycle.mode.value, cycle.extended_previous_cycle)
        logger.info(
            "customer_registered",
            customer_id=customer.generated_customer_id,
            plan_id=cycle.plan_id,
            cycle_end_date=cycle.cycle_end_date.isoformat(),
        )

        return to_customer_data(customer), to_recharge_data(recharge)

    async def recharge(
        self,
        customer_id: str,
        plan_id: str,
        mode: RechargeMode = RechargeMode.REPLACE,
        payment_method: str = "cash",
        now: datetime | None = None,
    ) -> RechargeData:
        """
        Start a new cycle for an existing customer.

        Raises:
            CustomerNotFoundError: unknown generated customer id
            PlanNotFoundError / PlanInactiveError: plan unavailable
            StorageError: database failure
        """
        reference_instant = now or _utc_now()

        try:
            customer = await self._lock_customer_for_update(customer_id)
            if customer is None:
                raise CustomerNotFoundError(customer_id)

            terms = await self.plans.resolve_plan(plan_id)
            cycle = establish_cycle(cycle_state_of(customer), terms, mode, reference_instant)

            if cycle.previous_end_unparsable:
                logger.warning(
                    "cycle_end_date_unparsable",
                    customer_id=customer_id,
                    stored_value=str(customer.cycle_end_date),
                )

            self._apply_cycle(customer, cycle)
            recharge = self._build_recharge(customer, cycle, payment_method)
            self.session.add(recharge)

            await self.session.flush()
            await self.session.commit()
        except SQLAlchemyError as e:
            raise await self._storage_failure("recharge", e) from e

        annotate_span(customer_id=customer_id, plan_id=cycle.plan_id, recharge_mode=cycle.mode)
        metrics.record_recharge(cycle.mode.value, cycle.extended_previous_cycle)
        logger.info(
            "recharge_applied",
            customer_id=customer_id,
            plan_id=cycle.plan_id,
            previous_plan_id=cycle.previous_plan_id,
            mode=cycle.mode.value,
            extended=cycle.extended_previous_cycle,
            cycle_end_date=cycle.cycle_end_date.isoformat(),
            recharge_count=cycle.recharge_count,
        )

        return to_recharge_data(recharge)

    async def record_usage(
        self,
        customer_id: str,
        reading: UsageReading,
        now: datetime | None = None,
        device_timestamp: datetime | None = None,
        payload: dict[str, Any] | None = None,
    ) -> UsageUpdate:
        """
        Store a device usage reading.

        The running totals and bounded history are updated on the customer,
        and the report itself is appended to the device reading log.

        Raises:
            CustomerNotFoundError: unknown generated customer id (nothing written)
            ValidationError: reading has neither liters nor hours
            StorageError: database failure
        """
        reference_instant = now or _utc_now()

        try:
            customer = await self._lock_customer_for_update(customer_id)
            if customer is None:
                raise CustomerNotFoundError(customer_id)

            history = [UsageEntry.from_document(doc) for doc in customer.last_usage or []]
            update = apply_reading(cycle_state_of(customer), history, reading, reference_instant)

            customer.cycle_total_liters_used = update.cycle_total_liters_used
            customer.cycle_total_hours_used = update.cycle_total_hours_used
            customer.last_usage = [entry.to_document() for entry in update.last_usage]
            customer.last_contact_at = update.last_contact_at

            self.session.add(
                DeviceReading(
                    id=uuid4(),
                    customer_id=customer.id,
                    generated_customer_id=customer.generated_customer_id,
                    source=update.entry.source,
                    payload=payload if payload is not None else reading_payload(reading),
                    device_timestamp=device_timestamp,
                    received_at=reference_instant,
                )
            )

            await self.session.flush()
            await self.session.commit()
        except SQLAlchemyError as e:
            raise await self._storage_failure("record_usage", e) from e

        metrics.record_usage_reading(update.entry.source.value)
        annotate_span(customer_id=customer_id, usage_source=update.entry.source)
        logger.debug(
            "usage_recorded",
            customer_id=customer_id,
            source=update.entry.source.value,
            cycle_total_liters_used=update.cycle_total_liters_used,
            cycle_total_hours_used=update.cycle_total_hours_used,
        )

        return update

    async def list_device_readings(
        self, customer_id: str, limit: int = 10
    ) -> list[DeviceReadingData]:
        """Raw device reports for a customer, newest first."""
        if limit < 1:
            raise ValidationError("limit", "must be at least 1")

        stmt = (
            select(DeviceReading)
            .where(DeviceReading.generated_customer_id == customer_id)
            .order_by(DeviceReading.received_at.desc())
            .limit(limit)
        )
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as e:
            raise await self._storage_failure("list_device_readings", e) from e
        return [to_device_reading_data(row) for row in result.scalars().all()]

    async def get_device_config(
        self, customer_id: str, now: datetime | None = None
    ) -> CustomerData:
        """
        Return the customer for a device config fetch and touch last_contact_at.

        Raises:
            CustomerNotFoundError: unknown generated customer id
            StorageError: database failure
        """
        contact_at = now or _utc_now()

        try:
            customer = await self._lock_customer_for_update(customer_id)
            if customer is None:
                raise CustomerNotFoundError(customer_id)

            customer.last_contact_at = contact_at

            await self.session.flush()
            await self.session.commit()
        except SQLAlchemyError as e:
            raise await self._storage_failure("get_device_config", e) from e

        return to_customer_data(customer)

    async def get_customer(self, customer_id: str) -> CustomerData:
        """Get customer by generated id."""
        try:
            customer = await self._find_customer(customer_id)
        except SQLAlchemyError as e:
            raise await self._storage_failure("get_customer", e) from e

        if customer is None:
            raise CustomerNotFoundError(customer_id)
        return to_customer_data(customer)

    async def search_customers(self, search: str | None = None) -> list[CustomerData]:
        """List customers, newest registration first, optionally filtered."""
        stmt = select(Customer).order_by(Customer.registered_at.desc())

        if search:
            # Operator input is matched literally, % and _ included
            stmt = stmt.where(
                or_(
                    *(
                        column.icontains(search, autoescape=True)
                        for column in (
                            Customer.customer_name,
                            Customer.generated_customer_id,
                            Customer.customer_phone,
                            Customer.city,
                            Customer.state_name,
                            Customer.pincode,
                            Customer.model_installed,
                            Customer.serial_number,
                        )
                    )
                )
            )

        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as e:
            raise await self._storage_failure("search_customers", e) from e
        return [to_customer_data(customer) for customer in result.scalars().all()]

    async def list_recharges(self, customer_id: str) -> list[RechargeData]:
        """Recharge history for a customer, newest first."""
        try:
            customer = await self._find_customer(customer_id)
            if customer is None:
                raise CustomerNotFoundError(customer_id)

            stmt = (
                select(Recharge)
                .where(Recharge.customer_id == customer.id)
                .order_by(Recharge.recharged_at.desc())
            )
            result = await self.session.execute(stmt)
        except SQLAlchemyError as e:
            raise await self._storage_failure("list_recharges", e) from e
        return [to_recharge_data(recharge) for recharge in result.scalars().all()]

    async def next_customer_id(self, zone: str, division: str) -> tuple[str, str]:
        """
        Suggest the next generated customer id for a zone/division.

        Returns:
            (prefix, sequential_number)
        """
        prefix = customer_id_prefix(zone, division)
        stmt = select(Customer.generated_customer_id).where(
            Customer.generated_customer_id.startswith(prefix, autoescape=True)
        )
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as e:
            raise await self._storage_failure("next_customer_id", e) from e
        return prefix, next_sequential_number(result.scalars().all(), prefix)

    # ========================================================================
    # Helpers
    # ========================================================================

    async def _storage_failure(self, operation: str, error: SQLAlchemyError) -> StorageError:
        """Roll back the failed unit of work and translate the error."""
        await self.session.rollback()
        metrics.record_error("storage_error", operation)
        logger.error("storage_error", operation=operation, error=str(error))
        return StorageError(str(error))

    async def _find_customer(self, customer_id: str) -> Customer | None:
        """Find customer by generated id."""
        stmt = select(Customer).where(Customer.generated_customer_id == customer_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def _lock_customer_for_update(self, customer_id: str) -> Customer | None:
        """Lock customer row to serialize concurrent writes."""
        stmt = (
            select(Customer)
            .where(Customer.generated_customer_id == customer_id)
            .with_for_update()
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    def _apply_cycle(customer: Customer, cycle: NewCycle) -> None:
        """Overwrite the customer's cycle fields with a freshly established cycle."""
        customer.current_plan_id = cycle.plan_id
        customer.current_plan_name = cycle.plan_name
        customer.price_paid = cycle.price_paid
        customer.cycle_start_date = cycle.cycle_start_date
        customer.cycle_end_date = cycle.cycle_end_date
        customer.daily_liter_allowance = cycle.daily_liter_allowance
        customer.cycle_hour_allowance = cycle.cycle_hour_allowance
        customer.cycle_duration_days = cycle.cycle_duration_days
        customer.cycle_total_hours_used = cycle.cycle_total_hours_used
        customer.cycle_total_liters_used = cycle.cycle_total_liters_used
        customer.recharge_count = cycle.recharge_count
        customer.last_recharge_at = cycle.last_recharge_at

    @staticmethod
    def _build_recharge(customer: Customer, cycle: NewCycle, payment_method: str) -> Recharge:
        """Audit record for an established cycle."""
        return Recharge(
            id=uuid4(),
            customer_id=customer.id,
            generated_customer_id=customer.generated_customer_id,
            previous_plan_id=cycle.previous_plan_id,
            plan_id=cycle.plan_id,
            plan_name=cycle.plan_name,
            plan_price=cycle.price_paid,
            plan_duration_days=cycle.cycle_duration_days,
            mode=cycle.mode,
            payment_method=payment_method,
            cycle_start_date=cycle.cycle_start_date,
            cycle_end_date=cycle.cycle_end_date,
            recharged_at=cycle.last_recharge_at,
        )
