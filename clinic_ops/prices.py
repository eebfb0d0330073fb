"""Repair of price amounts stored in major units instead of cents."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import AsyncContextManager, Protocol, Sequence

from clinic_ops.models import PriceRecord

logger = logging.getLogger(__name__)

# Amounts at or above this are already in minor units. Capped at 100 so that
# any repaired amount (>= 100) can never look broken again.
DEFAULT_THRESHOLD = 100
MAX_THRESHOLD = 100


class PriceStore(Protocol):
    def transaction(self) -> AsyncContextManager[object]: ...

    async def find_below(self, threshold: int) -> Sequence[PriceRecord]: ...

    async def set_price(self, record_id: str, amount: int) -> None: ...


@dataclass(frozen=True)
class PriceFix:
    record_id: str
    old: Decimal
    new: int
    duration_minutes: int | None = None


@dataclass
class RepairResult:
    dry_run: bool
    fixes: list[PriceFix] = field(default_factory=list)
    skipped: list[PriceRecord] = field(default_factory=list)


def check_threshold(threshold: int) -> int:
    if not 1 < threshold <= MAX_THRESHOLD:
        raise ValueError(
            f"threshold must be between 2 and {MAX_THRESHOLD}, got {threshold}"
        )
    return threshold


def needs_minor_unit_repair(amount: Decimal | int, threshold: int = DEFAULT_THRESHOLD) -> bool:
    """Whether a stored amount looks like whole major units.

    Zero and sub-unit amounts are left alone: multiplying them cannot be
    told apart from a legitimate small price on the next run.
    """
    return 1 <= amount < threshold


def to_minor_units(amount: Decimal | int) -> int:
    return int((Decimal(amount) * 100).quantize(Decimal(1), rounding=ROUND_HALF_UP))


async def repair_minor_units(
    store: PriceStore,
    threshold: int = DEFAULT_THRESHOLD,
    dry_run: bool = False,
) -> RepairResult:
    """Multiply every repairable amount by 100 in one transaction.

    The predicate is evaluated on current values each run, so rows already
    repaired are never multiplied again.
    """
    check_threshold(threshold)
    result = RepairResult(dry_run=dry_run)
    async with store.transaction():
        for record in await store.find_below(threshold):
            if not needs_minor_unit_repair(record.price, threshold):
                result.skipped.append(record)
                continue
            result.fixes.append(
                PriceFix(
                    record.object_id,
                    record.price,
                    to_minor_units(record.price),
                    record.duration_minutes,
                )
            )

        logger.info(
            "%d price(s) to repair, %d below one unit left alone",
            len(result.fixes),
            len(result.skipped),
        )
        if dry_run:
            return result

        for fix in result.fixes:
            await store.set_price(fix.record_id, fix.new)
    return result


async def count_repairable(store: PriceStore, threshold: int = DEFAULT_THRESHOLD) -> int:
    records = await store.find_below(threshold)
    return sum(1 for r in records if needs_minor_unit_repair(r.price, threshold))
