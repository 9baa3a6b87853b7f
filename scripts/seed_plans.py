#!/usr/bin/env python3
"""
Seed the standard plan catalog.

Upserts every plan by plan_id, so re-running updates names, prices and
allowances in place without touching customers.

Usage:
    # Upsert all plans
    python3 scripts/seed_plans.py

    # Show what would be written
    python3 scripts/seed_plans.py --dry-run
"""

import argparse
import asyncio
from dataclasses import dataclass

from sqlalchemy.dialects.postgresql import insert

from purifier_billing.db.models import Plan, utc_now
from purifier_billing.db.session import close_engines, get_session
from purifier_billing.observability import get_logger, setup_logging
from purifier_billing.services.plan_catalog import derive_cycle_hour_allowance

logger = get_logger(__name__)


@dataclass(frozen=True)
class PlanSeed:
    """One catalog entry."""

    plan_id: str
    plan_name: str
    price: float
    duration_days: int
    daily_liter_allowance: float


# Tier durations: 7-day trial, 1, 3, 6 and 13 months
_DURATIONS = [
    ("7D_TRIAL", "7 Days Trial", 7),
    ("1M", "1 Month", 30),
    ("3M", "3 Months", 90),
    ("6M", "6 Months", 180),
    ("13M", "13 Months", 390),
]

# Prices per daily allowance, in duration order
_PRICES = {
    25: [0, 799, 1077, 1794, 3600],
    50: [0, 899, 1197, 2394, 4800],
    100: [0, 1000, 2400, 4000, 9392],
}

STANDARD_PLANS = [
    PlanSeed(
        plan_id=f"{liters}L_{suffix}",
        plan_name=f"{liters}L/day - {label}",
        price=price,
        duration_days=days,
        daily_liter_allowance=liters,
    )
    for liters, prices in _PRICES.items()
    for (suffix, label, days), price in zip(_DURATIONS, prices, strict=True)
]


async def seed_plans(dry_run: bool = False) -> int:
    """Upsert the standard plans. Returns the number of plans processed."""
    if dry_run:
        for seed in STANDARD_PLANS:
            logger.info(
                "plan_seed_preview",
                plan_id=seed.plan_id,
                price=seed.price,
                duration_days=seed.duration_days,
                cycle_hour_allowance=derive_cycle_hour_allowance(
                    seed.duration_days, seed.daily_liter_allowance
                ),
            )
        return len(STANDARD_PLANS)

    async with get_session() as session:
        for seed in STANDARD_PLANS:
            stmt = insert(Plan).values(
                plan_id=seed.plan_id,
                plan_name=seed.plan_name,
                price=seed.price,
                duration_days=seed.duration_days,
                daily_liter_allowance=seed.daily_liter_allowance,
                is_active=True,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=[Plan.plan_id],
                set_={
                    "plan_name": stmt.excluded.plan_name,
                    "price": stmt.excluded.price,
                    "duration_days": stmt.excluded.duration_days,
                    "daily_liter_allowance": stmt.excluded.daily_liter_allowance,
                    "is_active": True,
                    "updated_at": utc_now(),
                },
            )
            await session.execute(stmt)
            logger.info("plan_seeded", plan_id=seed.plan_id)

        await session.commit()

    return len(STANDARD_PLANS)


async def main() -> None:
    parser = argparse.ArgumentParser(description="Seed the standard plan catalog")
    parser.add_argument("--dry-run", action="store_true", help="Log plans without writing")
    args = parser.parse_args()

    setup_logging()
    try:
        count = await seed_plans(dry_run=args.dry_run)
        logger.info("plan_catalog_seeded", plans=count, dry_run=args.dry_run)
    finally:
        await close_engines()


if __name__ == "__main__":
    asyncio.run(main())
