"""
Tests for UsageAccumulator.
"""

from datetime import UTC, datetime, timedelta

import pytest

from purifier_billing.exceptions import ValidationError
from purifier_billing.models.api import UsageSource
from purifier_billing.models.domain import UsageEntry, UsageReading
from purifier_billing.services.usage_accumulator import (
    USAGE_HISTORY_LIMIT,
    append_bounded,
    apply_reading,
    hours_to_liters,
    reading_to_entry,
)
from conftest import create_cycle_state


def _entry(index: int) -> UsageEntry:
    return UsageEntry(
        reported_at=datetime(2024, 1, 1, tzinfo=UTC) + timedelta(minutes=index),
        source=UsageSource.DIRECT,
        daily_liters=None,
        cycle_liters=float(index),
        daily_hours=None,
        cycle_hours=None,
    )


class TestReadingToEntry:
    """Tests for direct vs calculated readings."""

    def test_direct_liters_rounded(self, fixed_datetime: datetime):
        entry = reading_to_entry(
            UsageReading(reported_at=fixed_datetime, daily_liters=12.345, cycle_liters=120.555)
        )

        assert entry.source == UsageSource.DIRECT
        assert entry.cycle_liters == 120.56
        assert entry.daily_liters == 12.35

    def test_direct_wins_over_hours(self, fixed_datetime: datetime):
        entry = reading_to_entry(
            UsageReading(
                reported_at=fixed_datetime,
                daily_liters=10.0,
                cycle_liters=100.0,
                daily_hours=1.0,
                cycle_hours=8.0,
            )
        )

        assert entry.source == UsageSource.DIRECT
        assert entry.cycle_liters == 100.0
        assert entry.cycle_hours == 8.0

    def test_hours_only_is_calculated(self, fixed_datetime: datetime):
        entry = reading_to_entry(
            UsageReading(reported_at=fixed_datetime, daily_hours=0.5, cycle_hours=3.2)
        )

        assert entry.source == UsageSource.CALCULATED
        assert entry.cycle_liters == 48.0
        assert entry.daily_liters == 7.5

    def test_neither_unit_rejected(self, fixed_datetime: datetime):
        with pytest.raises(ValidationError) as exc_info:
            reading_to_entry(UsageReading(reported_at=fixed_datetime, daily_liters=3.0))

        assert exc_info.value.field == "reading"

    def test_hours_to_liters(self):
        assert hours_to_liters(1) == 15.0
        assert hours_to_liters(2.5) == 37.5


class TestApplyReading:
    """Tests for merging a reading into running totals."""

    def test_hours_only_reading(self, fixed_datetime: datetime):
        state = create_cycle_state(cycle_total_hours_used=2.0, cycle_total_liters_used=30.0)
        reading = UsageReading(reported_at=fixed_datetime, daily_hours=1.0, cycle_hours=3.2)

        update = apply_reading(state, [], reading, fixed_datetime)

        assert update.cycle_total_liters_used == 48.0
        assert update.cycle_total_hours_used == 3.2
        assert update.entry.source == UsageSource.CALCULATED
        assert update.last_contact_at == fixed_datetime

    def test_direct_reading_without_hours_keeps_hours(self, fixed_datetime: datetime):
        state = create_cycle_state(cycle_total_hours_used=7.25, cycle_total_liters_used=90.0)
        reading = UsageReading(reported_at=fixed_datetime, daily_liters=5.0, cycle_liters=110.0)

        update = apply_reading(state, [], reading, fixed_datetime)

        assert update.cycle_total_liters_used == 110.0
        assert update.cycle_total_hours_used == 7.25

    def test_direct_reading_stores_hours_verbatim(self, fixed_datetime: datetime):
        state = create_cycle_state(cycle_total_hours_used=1.0)
        reading = UsageReading(
            reported_at=fixed_datetime,
            daily_liters=5.0,
            cycle_liters=110.0,
            daily_hours=0.3,
            cycle_hours=7.333333,
        )

        update = apply_reading(state, [], reading, fixed_datetime)

        assert update.cycle_total_hours_used == 7.333333

    def test_totals_may_exceed_allowance(self, fixed_datetime: datetime):
        """Record-only: 2000 L on a 750 L cycle is stored as reported."""
        state = create_cycle_state()
        reading = UsageReading(reported_at=fixed_datetime, daily_liters=80.0, cycle_liters=2000.0)

        update = apply_reading(state, [], reading, fixed_datetime)

        assert update.cycle_total_liters_used == 2000.0

    def test_reading_appended_to_history(self, fixed_datetime: datetime):
        history = [_entry(1), _entry(2)]
        reading = UsageReading(reported_at=fixed_datetime, daily_liters=1.0, cycle_liters=3.0)

        update = apply_reading(create_cycle_state(), history, reading, fixed_datetime)

        assert len(update.last_usage) == 3
        assert update.last_usage[:2] == tuple(history)
        assert update.last_usage[-1] == update.entry

    def test_history_capped_at_limit(self, fixed_datetime: datetime):
        history = [_entry(i) for i in range(USAGE_HISTORY_LIMIT)]
        reading = UsageReading(reported_at=fixed_datetime, daily_liters=1.0, cycle_liters=99.0)

        update = apply_reading(create_cycle_state(), history, reading, fixed_datetime)

        assert len(update.last_usage) == USAGE_HISTORY_LIMIT
        assert update.last_usage[0] == history[1]
        assert update.last_usage[-1].cycle_liters == 99.0

    def test_limit_is_fifty(self):
        assert USAGE_HISTORY_LIMIT == 50


class TestAppendBounded:
    """Tests for the bounded append."""

    def test_under_limit(self):
        assert append_bounded([], _entry(0)) == (_entry(0),)

    def test_evicts_oldest(self):
        result = append_bounded([_entry(0), _entry(1), _entry(2)], _entry(3), limit=3)

        assert [e.cycle_liters for e in result] == [1.0, 2.0, 3.0]


class TestLargeCounters:
    """Counters far beyond any real device still round and accumulate."""

    def test_huge_liter_counter(self, fixed_datetime: datetime):
        reading = UsageReading(reported_at=fixed_datetime, daily_liters=1e26, cycle_liters=1e27)

        update = apply_reading(create_cycle_state(), [], reading, fixed_datetime)

        assert update.entry.source == UsageSource.DIRECT
        assert update.cycle_total_liters_used == 1e27
        assert update.entry.daily_liters == 1e26

    def test_huge_hour_counter(self, fixed_datetime: datetime):
        reading = UsageReading(reported_at=fixed_datetime, daily_hours=1.0, cycle_hours=1e26)

        update = apply_reading(create_cycle_state(), [], reading, fixed_datetime)

        assert update.entry.source == UsageSource.CALCULATED
        assert update.cycle_total_liters_used == pytest.approx(1.5e27)
        assert update.cycle_total_hours_used == 1e26


class TestSequentialReadings:
    def test_fifty_five_readings_keep_last_fifty_in_order(self, fixed_datetime: datetime):
        state = create_cycle_state()
        history: tuple[UsageEntry, ...] = ()

        for number in range(1, 56):
            reading = UsageReading(
                reported_at=fixed_datetime + timedelta(minutes=number),
                daily_liters=1.0,
                cycle_liters=float(number),
            )
            update = apply_reading(state, history, reading, reading.reported_at)
            history = update.last_usage

        assert len(history) == USAGE_HISTORY_LIMIT
        assert [entry.cycle_liters for entry in history] == [float(n) for n in range(6, 56)]
        assert history[-1].reported_at == fixed_datetime + timedelta(minutes=55)
        assert update.cycle_total_liters_used == 55.0
