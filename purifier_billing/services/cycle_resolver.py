"""
Cycle Resolver - Computes the cycle established by a registration or recharge.

Pure functions only: the caller reads the customer, passes the event time in,
and writes the returned NewCycle back in one update.
"""

import math
from datetime import UTC, datetime, timedelta

from purifier_billing.exceptions import PlanInactiveError, ValidationError
from purifier_billing.models.api import RechargeMode
from purifier_billing.models.domain import CycleState, CycleStatus, NewCycle, PlanTerms


def parse_instant(value: datetime | str | None) -> datetime | None:
    """
    Coerce a stored instant to an aware datetime.

    Naive datetimes are taken as UTC. Returns None for anything unparsable.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)
    return None


def add_calendar_days(anchor: datetime, days: int) -> datetime:
    """Add whole calendar days, keeping the anchor's wall-clock time."""
    # Aware datetime + timedelta is wall-clock arithmetic in Python.
    return anchor + timedelta(days=days)


def establish_cycle(
    current: CycleState | None,
    terms: PlanTerms,
    mode: RechargeMode,
    reference_instant: datetime,
) -> NewCycle:
    """
    Establish a new cycle for a customer.

    REPLACE (and any recharge without a live cycle) starts the cycle at
    reference_instant. ADD on a cycle that ends strictly after
    reference_instant starts the new cycle where the current one ends.
    Usage counters always start at zero.

    Raises:
        ValidationError: reference_instant is naive
        PlanInactiveError: terms belong to a deactivated plan
    """
    if reference_instant.tzinfo is None:
        raise ValidationError("reference_instant", "must be timezone-aware")
    if not terms.is_active:
        raise PlanInactiveError(terms.plan_id)

    previous_end: datetime | None = None
    previous_end_unparsable = False
    if current is not None and current.cycle_end_date is not None:
        previous_end = parse_instant(current.cycle_end_date)
        previous_end_unparsable = previous_end is None

    extend = (
        mode == RechargeMode.ADD
        and previous_end is not None
        and previous_end > reference_instant
    )
    anchor = previous_end if extend and previous_end is not None else reference_instant

    return NewCycle(
        plan_id=terms.plan_id,
        plan_name=terms.plan_name,
        price_paid=terms.price,
        mode=mode,
        cycle_start_date=anchor,
        cycle_end_date=add_calendar_days(anchor, terms.duration_days),
        daily_liter_allowance=terms.daily_liter_allowance,
        cycle_hour_allowance=terms.cycle_hour_allowance,
        cycle_duration_days=terms.duration_days,
        recharge_count=(current.recharge_count if current is not None else 0) + 1,
        last_recharge_at=reference_instant,
        cycle_total_hours_used=0.0,
        cycle_total_liters_used=0.0,
        previous_plan_id=current.current_plan_id if current is not None else None,
        extended_previous_cycle=extend,
        previous_end_unparsable=previous_end_unparsable,
    )


def summarize_cycle(
    cycle_end_date: datetime | str | None,
    cycle_duration_days: int,
    daily_liter_allowance: float,
    cycle_hour_allowance: float,
    cycle_total_liters_used: float,
    cycle_total_hours_used: float,
    now: datetime,
) -> CycleStatus:
    """Remaining days and allowances on a cycle. Read-side only, never enforced."""
    end = parse_instant(cycle_end_date)
    if end is None or end <= now:
        days_remaining = 0
    else:
        days_remaining = math.ceil((end - now).total_seconds() / 86400)

    liters_remaining: float | None = None
    if daily_liter_allowance:
        cycle_liters = cycle_duration_days * daily_liter_allowance
        liters_remaining = max(0.0, round(cycle_liters - cycle_total_liters_used, 2))

    hours_remaining: float | None = None
    if cycle_hour_allowance:
        hours_remaining = max(0.0, round(cycle_hour_allowance - cycle_total_hours_used, 2))

    return CycleStatus(
        is_active=days_remaining > 0,
        days_remaining=days_remaining,
        liters_remaining=liters_remaining,
        hours_remaining=hours_remaining,
    )
