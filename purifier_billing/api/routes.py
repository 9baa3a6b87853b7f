"""
API Routes - FastAPI endpoints for plans, customers, recharges and devices.

All requests/responses use Pydantic models.
"""

from datetime import UTC, datetime, time

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from purifier_billing.api.dependencies import require_admin_token, require_device_token
from purifier_billing.config import settings
from purifier_billing.db.session import get_db
from purifier_billing.exceptions import (
    CustomerNotFoundError,
    DuplicateCustomerError,
    PlanUnavailableError,
    StorageError,
    ValidationError,
)
from purifier_billing.models.api import (
    CustomerListResponse,
    CustomerResponse,
    CustomerSummary,
    CycleStatusResponse,
    DeviceConfigResponse,
    DeviceReadingListResponse,
    DeviceReadingResponse,
    DeviceUsageRequest,
    HealthResponse,
    NextCustomerIdResponse,
    PlanListResponse,
    PlanResponse,
    RechargeHistoryResponse,
    RechargeRequest,
    RechargeResponse,
    RegisterCustomerRequest,
    UsageEntryResponse,
    UsageRecordedResponse,
)
from purifier_billing.models.domain import (
    CustomerData,
    CustomerProfile,
    PlanTerms,
    RechargeData,
    UsageEntry,
    UsageReading,
)
from purifier_billing.services.cycle_resolver import parse_instant, summarize_cycle
from purifier_billing.services.plan_catalog import PlanCatalog
from purifier_billing.services.subscription import SubscriptionService

router = APIRouter()

PLAN_UNAVAILABLE_DETAIL = "Plan not found or is inactive"


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _plan_response(terms: PlanTerms) -> PlanResponse:
    return PlanResponse(
        plan_id=terms.plan_id,
        plan_name=terms.plan_name,
        duration_days=terms.duration_days,
        price=terms.price,
        daily_liter_allowance=terms.daily_liter_allowance,
        cycle_hour_allowance=terms.cycle_hour_allowance,
        cycle_liter_allowance=terms.cycle_liter_allowance,
        is_active=terms.is_active,
    )


def _recharge_response(recharge: RechargeData) -> RechargeResponse:
    return RechargeResponse(
        recharge_id=recharge.recharge_id,
        customer_id=recharge.customer_id,
        generated_customer_id=recharge.generated_customer_id,
        plan_id=recharge.plan_id,
        plan_name=recharge.plan_name,
        plan_price=recharge.plan_price,
        mode=recharge.mode,
        payment_method=recharge.payment_method,
        cycle_start_date=recharge.cycle_start_date.isoformat(),
        cycle_end_date=recharge.cycle_end_date.isoformat(),
        recharged_at=recharge.recharged_at.isoformat(),
    )


def _usage_entry_response(entry: UsageEntry) -> UsageEntryResponse:
    return UsageEntryResponse(
        reported_at=entry.reported_at.isoformat(),
        source=entry.source,
        daily_liters=entry.daily_liters,
        cycle_liters=entry.cycle_liters,
        daily_hours=entry.daily_hours,
        cycle_hours=entry.cycle_hours,
    )


def _customer_response(customer: CustomerData, now: datetime) -> CustomerResponse:
    """Full customer view including the read-side cycle status."""
    profile = customer.profile
    cycle_status = summarize_cycle(
        cycle_end_date=customer.cycle_end_date,
        cycle_duration_days=customer.cycle_duration_days,
        daily_liter_allowance=customer.daily_liter_allowance,
        cycle_hour_allowance=customer.cycle_hour_allowance,
        cycle_total_liters_used=customer.cycle_total_liters_used,
        cycle_total_hours_used=customer.cycle_total_hours_used,
        now=now,
    )
    return CustomerResponse(
        id=customer.id,
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
        installation_date=_iso(customer.installation_date),
        registered_at=customer.registered_at.isoformat(),
        current_plan_id=customer.current_plan_id,
        current_plan_name=customer.current_plan_name,
        price_paid=customer.price_paid,
        cycle_start_date=_iso(customer.cycle_start_date),
        cycle_end_date=_iso(customer.cycle_end_date),
        daily_liter_allowance=customer.daily_liter_allowance,
        cycle_hour_allowance=customer.cycle_hour_allowance,
        cycle_duration_days=customer.cycle_duration_days,
        cycle_total_hours_used=customer.cycle_total_hours_used,
        cycle_total_liters_used=customer.cycle_total_liters_used,
        recharge_count=customer.recharge_count,
        last_recharge_at=_iso(customer.last_recharge_at),
        last_contact_at=_iso(customer.last_contact_at),
        cycle_status=CycleStatusResponse(
            is_active=cycle_status.is_active,
            days_remaining=cycle_status.days_remaining,
            liters_remaining=cycle_status.liters_remaining,
            hours_remaining=cycle_status.hours_remaining,
        ),
        last_usage=[_usage_entry_response(entry) for entry in customer.last_usage],
    )


# ============================================================================
# Plans
# ============================================================================


@router.get("/v1/plans", response_model=PlanListResponse)
async def list_plans(
    db: AsyncSession = Depends(get_db),
    _: str = Depends(require_admin_token),
) -> PlanListResponse:
    """Active plans with resolved allowances, by daily allowance then price."""
    catalog = PlanCatalog(db)

    try:
        plans = await catalog.list_active_plans()

    except StorageError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database unavailable",
        ) from exc

    return PlanListResponse(plans=[_plan_response(terms) for terms in plans])


# ============================================================================
# Customers
# ============================================================================


@router.post(
    "/v1/customers",
    response_model=RechargeResponse,
    status_code=status.HTTP_201_CREATED,
)
async def register_customer(
    request: RegisterCustomerRequest,
    db: AsyncSession = Depends(get_db),
    _: str = Depends(require_admin_token),
) -> RechargeResponse:
    """
    Register a customer and start their first cycle.

    The cycle starts at the installation date (and time, if given), in UTC.
    """
    service = SubscriptionService(db)

    profile = CustomerProfile(
        generated_customer_id=request.generated_customer_id,
        customer_name=request.customer_name,
        customer_phone=request.customer_phone,
        alt_mobile_no=request.alt_mobile_no,
        email=request.email,
        customer_address=request.customer_address,
        landmark=request.landmark,
        pincode=request.pincode,
        city=request.city,
        state_name=request.state_name,
        confirmed_map_link=request.confirmed_map_link,
        model_installed=request.model_installed,
        serial_number=request.serial_number,
    )
    installation_instant = datetime.combine(
        request.installation_date, request.installation_time or time(0), tzinfo=UTC
    )

    try:
        _customer, recharge = await service.register_customer(
            profile=profile,
            plan_id=request.plan_id,
            installation_instant=installation_instant,
            payment_method=request.payment_method,
        )
        return _recharge_response(recharge)

    except DuplicateCustomerError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Customer already registered: {exc.customer_id}",
        ) from exc

    except PlanUnavailableError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=PLAN_UNAVAILABLE_DETAIL,
        ) from exc

    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc

    except StorageError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database unavailable",
        ) from exc


@router.get("/v1/customers", response_model=CustomerListResponse)
async def list_customers(
    search: str | None = Query(None, max_length=100),
    db: AsyncSession = Depends(get_db),
    _: str = Depends(require_admin_token),
) -> CustomerListResponse:
    """List customers newest first, optionally filtered by a search term."""
    service = SubscriptionService(db)

    try:
        customers = await service.search_customers(search.strip() if search else None)

    except StorageError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database unavailable",
        ) from exc

    return CustomerListResponse(
        customers=[
            CustomerSummary(
                id=customer.id,
                generated_customer_id=customer.profile.generated_customer_id,
                customer_name=customer.profile.customer_name,
                customer_phone=customer.profile.customer_phone,
                city=customer.profile.city,
                state_name=customer.profile.state_name,
                current_plan_name=customer.current_plan_name,
                cycle_end_date=_iso(customer.cycle_end_date),
                registered_at=customer.registered_at.isoformat(),
            )
            for customer in customers
        ]
    )


@router.get("/v1/customers/next-id", response_model=NextCustomerIdResponse)
async def next_customer_id(
    zone: str = Query(..., min_length=1, max_length=16),
    division: str = Query(..., min_length=1, max_length=16),
    db: AsyncSession = Depends(get_db),
    _: str = Depends(require_admin_token),
) -> NextCustomerIdResponse:
    """Suggest the next generated customer id for a zone/division."""
    service = SubscriptionService(db)

    try:
        prefix, sequential_number = await service.next_customer_id(zone, division)
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc

    except StorageError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database unavailable",
        ) from exc

    return NextCustomerIdResponse(
        prefix=prefix,
        sequential_number=sequential_number,
        generated_customer_id=f"{prefix}{sequential_number}",
    )


@router.get("/v1/customers/{generated_customer_id}", response_model=CustomerResponse)
async def get_customer(
    generated_customer_id: str,
    db: AsyncSession = Depends(get_db),
    _: str = Depends(require_admin_token),
) -> CustomerResponse:
    """Customer details with remaining days and allowances."""
    service = SubscriptionService(db)

    try:
        customer = await service.get_customer(generated_customer_id)
    except CustomerNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Customer not found",
        ) from exc

    except StorageError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database unavailable",
        ) from exc

    return _customer_response(customer, datetime.now(UTC))


@router.post(
    "/v1/customers/{generated_customer_id}/recharge",
    response_model=RechargeResponse,
)
async def recharge_customer(
    generated_customer_id: str,
    request: RechargeRequest,
    db: AsyncSession = Depends(get_db),
    _: str = Depends(require_admin_token),
) -> RechargeResponse:
    """
    Recharge a customer.

    mode=replace starts a fresh cycle now; mode=add queues the new cycle after
    the current one when it has not yet ended.
    """
    service = SubscriptionService(db)

    try:
        recharge = await service.recharge(
            customer_id=generated_customer_id,
            plan_id=request.plan_id,
            mode=request.mode,
            payment_method=request.payment_method,
        )
        return _recharge_response(recharge)

    except CustomerNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Customer not found",
        ) from exc

    except PlanUnavailableError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=PLAN_UNAVAILABLE_DETAIL,
        ) from exc

    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc

    except StorageError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database unavailable",
        ) from exc


@router.get(
    "/v1/customers/{generated_customer_id}/recharges",
    response_model=RechargeHistoryResponse,
)
async def list_recharges(
    generated_customer_id: str,
    db: AsyncSession = Depends(get_db),
    _: str = Depends(require_admin_token),
) -> RechargeHistoryResponse:
    """Recharge history, newest first."""
    service = SubscriptionService(db)

    try:
        recharges = await service.list_recharges(generated_customer_id)
    except CustomerNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Customer not found",
        ) from exc

    except StorageError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database unavailable",
        ) from exc

    return RechargeHistoryResponse(recharges=[_recharge_response(r) for r in recharges])


# ============================================================================
# Devices
# ============================================================================


@router.post("/v1/devices/usage", response_model=UsageRecordedResponse)
async def record_device_usage(
    request: DeviceUsageRequest,
    db: AsyncSession = Depends(get_db),
    _: str = Depends(require_device_token),
) -> UsageRecordedResponse:
    """
    Store a usage report from a purifier.

    The reading is stamped with device_timestamp when the device sends one,
    otherwise with the server clock. An unparsable device_timestamp is rejected.
    """
    service = SubscriptionService(db)
    now = datetime.now(UTC)

    device_timestamp = parse_instant(request.device_timestamp)
    if request.device_timestamp is not None and device_timestamp is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid device_timestamp format. Please use ISO 8601 format.",
        )

    reading = UsageReading(
        reported_at=device_timestamp or now,
        daily_liters=request.daily_liters,
        cycle_liters=request.cycle_liters,
        daily_hours=request.daily_hours,
        cycle_hours=request.cycle_hours,
    )

    try:
        update = await service.record_usage(
            request.customer_id,
            reading,
            now=now,
            device_timestamp=device_timestamp,
            payload=request.model_dump(mode="json", exclude={"customer_id"}, exclude_none=True),
        )

    except CustomerNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Customer not found",
        ) from exc

    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc

    except StorageError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database unavailable",
        ) from exc

    return UsageRecordedResponse(
        customer_id=request.customer_id,
        source=update.entry.source,
        cycle_total_liters_used=update.cycle_total_liters_used,
        cycle_total_hours_used=update.cycle_total_hours_used,
        history_length=len(update.last_usage),
        last_contact_at=update.last_contact_at.isoformat(),
    )


@router.get(
    "/v1/devices/{generated_customer_id}/readings",
    response_model=DeviceReadingListResponse,
)
async def list_device_readings(
    generated_customer_id: str,
    limit: int | None = Query(None, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
    _: str = Depends(require_admin_token),
) -> DeviceReadingListResponse:
    """Raw device reports for a customer, newest first."""
    service = SubscriptionService(db)

    try:
        readings = await service.list_device_readings(
            generated_customer_id,
            limit=limit or settings.device_readings_default_limit,
        )

    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc

    except StorageError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database unavailable",
        ) from exc

    return DeviceReadingListResponse(
        readings=[
            DeviceReadingResponse(
                reading_id=reading.reading_id,
                generated_customer_id=reading.generated_customer_id,
                source=reading.source,
                payload=reading.payload,
                device_timestamp=_iso(reading.device_timestamp),
                received_at=reading.received_at.isoformat(),
            )
            for reading in readings
        ]
    )


@router.get("/v1/devices/{generated_customer_id}/config", response_model=DeviceConfigResponse)
async def get_device_config(
    generated_customer_id: str,
    db: AsyncSession = Depends(get_db),
    _: str = Depends(require_device_token),
) -> DeviceConfigResponse:
    """Runtime limits a device enforces locally for the current cycle."""
    service = SubscriptionService(db)

    try:
        customer = await service.get_device_config(generated_customer_id)

    except CustomerNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Customer not found",
        ) from exc

    except StorageError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database unavailable",
        ) from exc

    return DeviceConfigResponse(
        customer_id=generated_customer_id,
        max_hours=customer.cycle_hour_allowance,
        max_days=customer.cycle_duration_days,
    )


# ============================================================================
# Health
# ============================================================================


@router.get("/health", response_model=HealthResponse)
async def health_check(db: AsyncSession = Depends(get_db)) -> HealthResponse:
    """
    Health check for load balancer.

    Verifies database connectivity.
    """
    try:
        await db.execute(text("SELECT 1"))

        return HealthResponse(
            status="healthy",
            database="connected",
            timestamp=datetime.now(UTC).isoformat(),
        )

    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={
                "status": "unhealthy",
                "database": "disconnected",
                "error": str(exc),
                "timestamp": datetime.now(UTC).isoformat(),
            },
        ) from exc
