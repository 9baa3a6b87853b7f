"""
Usage Accumulator - Merges device readings into a customer's cycle totals.

Record-only bookkeeping: readings are never rejected for exceeding the plan
allowance.
"""

from collections.abc import Sequence
from datetime import datetime

from purifier_billing.exceptions import ValidationError
from purifier_billing.models.api import UsageSource
from purifier_billing.models.domain import CycleState, UsageEntry, UsageReading, UsageUpdate
from purifier_billing.services.plan_catalog import LITERS_PER_HOUR, round2

USAGE_HISTORY_LIMIT = 50


def hours_to_liters(hours: float) -> float:
    """Convert pump runtime to liters."""
    return round2(hours * LITERS_PER_HOUR)


def reading_to_entry(reading: UsageReading) -> UsageEntry:
    """
    Build the history entry for a reading.

    A device-reported liter counter is authoritative; liters are only derived
    from runtime hours when the device sent no liter counter.
    """
    if reading.has_liters:
        return UsageEntry(
            reported_at=reading.reported_at,
            source=UsageSource.DIRECT,
            daily_liters=round2(reading.daily_liters) if reading.daily_liters is not None else None,
            cycle_liters=round2(reading.cycle_liters),
            daily_hours=reading.daily_hours,
            cycle_hours=reading.cycle_hours,
        )

    if reading.has_hours:
        return UsageEntry(
            reported_at=reading.reported_at,
            source=UsageSource.CALCULATED,
            daily_liters=(
                hours_to_liters(reading.daily_hours) if reading.daily_hours is not None else None
            ),
            cycle_liters=hours_to_liters(reading.cycle_hours),
            daily_hours=reading.daily_hours,
            cycle_hours=reading.cycle_hours,
        )

    raise ValidationError("reading", "must carry cycle liters or cycle hours")


def append_bounded(
    history: Sequence[UsageEntry], entry: UsageEntry, limit: int = USAGE_HISTORY_LIMIT
) -> tuple[UsageEntry, ...]:
    """Append an entry, evicting the oldest beyond limit."""
    return (*history, entry)[-limit:]


def apply_reading(
    state: CycleState,
    history: Sequence[UsageEntry],
    reading: UsageReading,
    reference_instant: datetime,
) -> UsageUpdate:
    """
    Merge one reading into the customer's running totals.

    The device's cumulative counters replace the stored totals; the hour
    total is kept verbatim and left untouched when the reading has none.
    """
    entry = reading_to_entry(reading)

    hours_used = (
        reading.cycle_hours if reading.cycle_hours is not None else state.cycle_total_hours_used
    )

    return UsageUpdate(
        entry=entry,
        cycle_total_liters_used=entry.cycle_liters,
        cycle_total_hours_used=hours_used,
        last_usage=append_bounded(history, entry),
        last_contact_at=reference_instant,
    )
