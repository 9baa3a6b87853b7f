"""
Plan Catalog - Resolves plan identifiers to fully derived plan terms.

The term derivation is pure and shared by registration, recharge and the
read-only plan listing so every call site agrees on the allowances.
"""

from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from purifier_billing.db.models import Plan
from purifier_billing.exceptions import (
    PlanInactiveError,
    PlanNotFoundError,
    StorageError,
    ValidationError,
)
from purifier_billing.models.domain import PlanTerms

# Device runtime-to-volume conversion: one hour of pump runtime ~ 15 liters.
LITERS_PER_HOUR = 15

CENT = Decimal("0.01")


class PlanRecord(Protocol):
    """Attributes read from a stored plan."""

    plan_id: str
    plan_name: str
    duration_days: int
    price: float
    daily_liter_allowance: float | None
    cycle_hour_allowance: float | None
    is_active: bool


def round2(value: float) -> float:
    """Round half-up to 2 decimals on the value's decimal representation."""
    amount = Decimal(str(value))
    with localcontext() as ctx:
        # Every integer digit plus the two decimals must fit the precision.
        ctx.prec = max(ctx.prec, amount.adjusted() + 3)
        return float(amount.quantize(CENT, rounding=ROUND_HALF_UP))


def derive_cycle_hour_allowance(duration_days: int, daily_liter_allowance: float) -> float:
    """Runtime hours equivalent to a full cycle of daily liter allowance."""
    if not duration_days or not daily_liter_allowance:
        return 0.0
    return round2(duration_days * daily_liter_allowance / LITERS_PER_HOUR)


def resolve_plan_terms(plan: PlanRecord) -> PlanTerms:
    """
    Build PlanTerms from a stored plan.

    An explicit cycle_hour_allowance wins; when it is missing or zero it is
    derived from duration and daily allowance.
    """
    daily_liters = plan.daily_liter_allowance or 0.0
    explicit_hours = plan.cycle_hour_allowance

    if explicit_hours:
        cycle_hours = round2(explicit_hours)
    else:
        cycle_hours = derive_cycle_hour_allowance(plan.duration_days, daily_liters)

    return PlanTerms(
        plan_id=plan.plan_id,
        plan_name=plan.plan_name,
        duration_days=plan.duration_days,
        daily_liter_allowance=float(daily_liters),
        cycle_hour_allowance=cycle_hours,
        cycle_liter_allowance=round2(plan.duration_days * daily_liters),
        price=float(plan.price),
        is_active=plan.is_active,
    )


class PlanCatalog:
    """Read-only access to the plan catalog."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize plan catalog with database session."""
        self.session = session

    async def resolve_plan(self, plan_id: str) -> PlanTerms:
        """
        Resolve an active plan.

        Raises:
            ValidationError: plan_id is empty
            PlanNotFoundError: No plan with that id
            PlanInactiveError: Plan exists but is deactivated
            StorageError: database failure
        """
        if not plan_id:
            raise ValidationError("plan_id", "cannot be empty")

        try:
            plan = await self._find_plan(plan_id)
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise StorageError(str(e)) from e

        if plan is None:
            raise PlanNotFoundError(plan_id)
        if not plan.is_active:
            raise PlanInactiveError(plan_id)

        return resolve_plan_terms(plan)

    async def list_active_plans(self) -> list[PlanTerms]:
        """List active plans ordered by daily allowance, then price."""
        stmt = (
            select(Plan)
            .where(Plan.is_active.is_(True))
            .order_by(Plan.daily_liter_allowance, Plan.price)
        )
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise StorageError(str(e)) from e
        return [resolve_plan_terms(plan) for plan in result.scalars().all()]

    async def _find_plan(self, plan_id: str) -> Plan | None:
        """Find plan by its public identifier."""
        stmt = select(Plan).where(Plan.plan_id == plan_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()
