"""Backfill of ``itemPriceId`` on appointments booked without one."""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Optional

from clinic_ops.models import Appointment, PriceRecord
from clinic_ops.parse_client import ParseAPIError, ParseClient, pointer

logger = logging.getLogger(__name__)


@dataclass
class BackfillResult:
    dry_run: bool
    found: int = 0
    updated: int = 0
    skipped_items: list[str] = field(default_factory=list)
    # Appointments without a service offering or item.
    unlinked: list[str] = field(default_factory=list)
    failures: dict[str, str] = field(default_factory=dict)


async def appointments_missing_price(parse: ParseClient) -> list[Appointment]:
    results = await parse.query(
        "Appointment",
        where={"itemPriceId": {"$exists": False}},
        include=("serviceOfferingId", "serviceOfferingId.itemId"),
    )
    return [Appointment.from_parse(obj) for obj in results]


async def default_price(parse: ParseClient, item_id: str) -> Optional[PriceRecord]:
    """The item's shortest-duration price."""
    obj = await parse.first(
        "Item_Price",
        where={"itemId": pointer("Items_Catalog", item_id)},
        order="durationMinutes",
    )
    if obj is None:
        return None
    obj = {**obj, "itemId": item_id}
    return PriceRecord.model_validate(obj)


async def _assign(parse: ParseClient, appointment: Appointment, price_id: str) -> None:
    await parse.update(
        "Appointment",
        appointment.object_id,
        {"itemPriceId": pointer("Item_Price", price_id)},
    )


async def backfill_item_prices(parse: ParseClient, dry_run: bool = False) -> BackfillResult:
    appointments = await appointments_missing_price(parse)
    result = BackfillResult(dry_run=dry_run, found=len(appointments))

    by_item: dict[str, list[Appointment]] = defaultdict(list)
    names: dict[str, str] = {}
    for appointment in appointments:
        if not appointment.item_id:
            logger.warning("Appointment %s has no service offering item, skipping", appointment.object_id)
            result.unlinked.append(appointment.object_id)
            continue
        by_item[appointment.item_id].append(appointment)
        names[appointment.item_id] = appointment.item_name or appointment.item_id

    for item_id, group in by_item.items():
        price = await default_price(parse, item_id)
        if price is None:
            logger.warning("No item price found for %s, skipping %d appointment(s)", names[item_id], len(group))
            result.skipped_items.append(names[item_id])
            continue

        logger.info(
            "%s: using %s ($%.2f for %s minutes) on %d appointment(s)",
            names[item_id],
            price.object_id,
            price.price / 100,
            price.duration_minutes,
            len(group),
        )
        if dry_run:
            continue

        outcomes = await asyncio.gather(
            *(_assign(parse, appointment, price.object_id) for appointment in group),
            return_exceptions=True,
        )
        for appointment, outcome in zip(group, outcomes):
            if isinstance(outcome, ParseAPIError):
                logger.error("Failed to update appointment %s: %s", appointment.object_id, outcome)
                result.failures[appointment.object_id] = str(outcome)
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                result.updated += 1

    return result
