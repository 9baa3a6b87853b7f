"""
Tests for PlanCatalog and plan term derivation.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from sqlalchemy.exc import OperationalError

from purifier_billing.exceptions import (
    InactiveError,
    NotFoundError,
    PlanInactiveError,
    PlanNotFoundError,
    StorageError,
    ValidationError,
)
from purifier_billing.services.plan_catalog import (
    LITERS_PER_HOUR,
    PlanCatalog,
    derive_cycle_hour_allowance,
    resolve_plan_terms,
    round2,
)
from conftest import create_mock_plan, make_result


class TestRound2:
    """Half-up rounding on the decimal representation."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (42.345, 42.35),
            (2.675, 2.68),
            (1.005, 1.01),
            (23.3333333, 23.33),
            (50.0, 50.0),
            (0, 0.0),
        ],
    )
    def test_round2(self, value: float, expected: float):
        assert round2(value) == expected

    @pytest.mark.parametrize("value", [1e26, 1e27, 1e30, 123456789012345678901234567890.0])
    def test_beyond_default_precision(self, value: float):
        assert round2(value) == value

    def test_negative_half_rounds_away_from_zero(self):
        assert round2(-2.675) == -2.68


class TestResolvePlanTerms:
    """Tests for the pure plan term derivation."""

    def test_liters_per_hour_constant(self):
        assert LITERS_PER_HOUR == 15

    def test_hours_derived_when_absent(self):
        """30 days x 25 L/day = 750 L = 50 h."""
        terms = resolve_plan_terms(create_mock_plan(cycle_hour_allowance=None))

        assert terms.cycle_hour_allowance == 50.0
        assert terms.cycle_liter_allowance == 750.0

    def test_hours_derived_when_zero(self):
        terms = resolve_plan_terms(create_mock_plan(cycle_hour_allowance=0))

        assert terms.cycle_hour_allowance == 50.0

    def test_explicit_hours_rounded(self):
        terms = resolve_plan_terms(create_mock_plan(cycle_hour_allowance=42.345))

        assert terms.cycle_hour_allowance == 42.35

    def test_derived_hours_rounded(self):
        """7 days x 50 L/day / 15 = 23.333... h."""
        terms = resolve_plan_terms(
            create_mock_plan(plan_id="50L_7D_TRIAL", duration_days=7, daily_liter_allowance=50)
        )

        assert terms.cycle_hour_allowance == 23.33
        assert terms.cycle_liter_allowance == 350.0

    def test_unset_daily_allowance_gives_zero_hours(self):
        terms = resolve_plan_terms(create_mock_plan(daily_liter_allowance=None))

        assert terms.daily_liter_allowance == 0.0
        assert terms.cycle_hour_allowance == 0.0
        assert terms.cycle_liter_allowance == 0.0

    def test_zero_duration(self):
        assert derive_cycle_hour_allowance(0, 25) == 0.0

    def test_copies_identity_and_price(self, monthly_plan: MagicMock):
        terms = resolve_plan_terms(monthly_plan)

        assert terms.plan_id == "25L_1M"
        assert terms.plan_name == "25L/day - 1 Month"
        assert terms.duration_days == 30
        assert terms.price == 799.0
        assert terms.is_active is True


class TestPlanCatalog:
    """Tests for PlanCatalog.resolve_plan and list_active_plans."""

    async def test_resolve_active_plan(self, db_session: AsyncMock, monthly_plan: MagicMock):
        db_session.execute = AsyncMock(return_value=make_result(scalar=monthly_plan))

        terms = await PlanCatalog(db_session).resolve_plan("25L_1M")

        assert terms.plan_id == "25L_1M"
        assert terms.cycle_hour_allowance == 50.0

    async def test_resolve_empty_plan_id(self, db_session: AsyncMock):
        with pytest.raises(ValidationError) as exc_info:
            await PlanCatalog(db_session).resolve_plan("")

        assert exc_info.value.field == "plan_id"
        db_session.execute.assert_not_called()

    async def test_resolve_missing_plan(self, db_session: AsyncMock):
        with pytest.raises(PlanNotFoundError) as exc_info:
            await PlanCatalog(db_session).resolve_plan("NOPE")

        assert exc_info.value.plan_id == "NOPE"
        assert isinstance(exc_info.value, NotFoundError)

    async def test_resolve_inactive_plan(self, db_session: AsyncMock, inactive_plan: MagicMock):
        db_session.execute = AsyncMock(return_value=make_result(scalar=inactive_plan))

        with pytest.raises(PlanInactiveError) as exc_info:
            await PlanCatalog(db_session).resolve_plan("OLD_1M")

        assert exc_info.value.plan_id == "OLD_1M"
        assert isinstance(exc_info.value, InactiveError)

    async def test_list_active_plans(self, db_session: AsyncMock):
        plans = [
            create_mock_plan(plan_id="25L_7D_TRIAL", duration_days=7, price=0),
            create_mock_plan(),
        ]
        db_session.execute = AsyncMock(return_value=make_result(rows=plans))

        terms = await PlanCatalog(db_session).list_active_plans()

        assert [t.plan_id for t in terms] == ["25L_7D_TRIAL", "25L_1M"]
        assert terms[0].cycle_hour_allowance == round2(7 * 25 / 15)

    async def test_list_active_plans_empty(self, db_session: AsyncMock):
        assert await PlanCatalog(db_session).list_active_plans() == []

    async def test_resolve_store_failure(self, db_session: AsyncMock):
        db_session.execute = AsyncMock(
            side_effect=OperationalError("SELECT", {}, Exception("connection refused"))
        )

        with pytest.raises(StorageError):
            await PlanCatalog(db_session).resolve_plan("25L_1M")

        db_session.rollback.assert_awaited_once()

    async def test_list_store_failure(self, db_session: AsyncMock):
        db_session.execute = AsyncMock(
            side_effect=OperationalError("SELECT", {}, Exception("connection refused"))
        )

        with pytest.raises(StorageError):
            await PlanCatalog(db_session).list_active_plans()
