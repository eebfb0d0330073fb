"""Seed data for an organization: default fees and a service catalog.

The catalog seed creates one item per service template with an org-level
offering, offerings for the first half of the ownership groups and for the
first 30% of the locations, each with a price per duration variant.
Prices are rounded to $5 and stored in cents.
"""

from __future__ import annotations

import contextlib
import logging
import math
import random
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional

import asyncpg

from clinic_ops.db import RecordNotFound
from clinic_ops.ids import generate_object_id, insert_with_new_id
from clinic_ops.presets import DISCIPLINE_PRESETS, FALLBACK_PRESET, ensure_presets
from clinic_ops.reconcile import normalize_name

logger = logging.getLogger(__name__)

# -- default fees --------------------------------------------------------------

# (feeType, name, feeCalculationType, sortOrder)
DEFAULT_FEES: list[tuple[str, str, str, int]] = [
    ("no_show", "No Show - Full Price", "override", 1),
    ("no_show", "No Show - 50%", "percent_discount", 2),
    ("no_show", "No Show - $20.00", "dollar_discount", 3),
    ("no_show", "No Show - $0.00", "no_charge", 4),
    ("late_cancellation", "Late Cancellation - 50%", "percent_discount", 1),
    ("late_cancellation", "Late Cancellation - $20.00", "dollar_discount", 2),
]

_INSERT_FEE = """
    INSERT INTO "Fee" (
        "objectId", "feeType", "name", "feeCalculationType", "orgId",
        "sortOrder", "isActive", "createdAt", "updatedAt", "_rperm", "_wperm"
    )
    VALUES ($1, $2, $3, $4, $5, $6, true, NOW(), NOW(), ARRAY[]::text[], ARRAY[]::text[])
"""


@dataclass
class FeeSeedResult:
    org_id: str
    existing: int = 0
    created: list[str] = field(default_factory=list)

    @property
    def skipped(self) -> bool:
        return self.existing > 0


async def seed_default_fees(conn: asyncpg.Connection, org_id: str) -> FeeSeedResult:
    """Create the default no-show and late-cancellation fees for an org.

    Nothing is written when the org already has any fee.
    """
    result = FeeSeedResult(org_id=org_id)
    result.existing = await conn.fetchval(
        'SELECT COUNT(*) FROM "Fee" WHERE "orgId" = $1', org_id
    )
    if result.existing:
        logger.warning(
            "Found %d existing fee(s) for org %s, skipping seed", result.existing, org_id
        )
        return result

    async with conn.transaction():
        for fee_type, name, calculation, sort_order in DEFAULT_FEES:
            fee_id, _ = await insert_with_new_id(
                lambda object_id: conn.execute(
                    _INSERT_FEE, object_id, fee_type, name, calculation, org_id, sort_order
                ),
                conn=conn,
            )
            logger.info("Created fee %s (%s)", name, fee_id)
            result.created.append(name)
    return result


# -- service catalog -----------------------------------------------------------

SERVICE_TEMPLATES: dict[str, list[tuple[str, int, int]]] = {
    "initial_assessment": [
        ("Initial Assessment - General", 60, 150),
        ("Initial Assessment - Complex Case", 90, 225),
        ("Initial Assessment - Pediatric", 75, 180),
        ("Initial Assessment - Geriatric", 75, 180),
        ("Initial Assessment - Sports Injury", 60, 165),
    ],
    "follow_up": [
        ("Follow-up Treatment - Standard", 45, 110),
        ("Follow-up Treatment - Extended", 60, 140),
        ("Follow-up Treatment - Short", 30, 85),
        ("Progress Re-assessment", 45, 120),
    ],
    "specialized": [
        ("Manual Therapy Session", 60, 140),
        ("Dry Needling", 30, 95),
        ("Cupping Therapy", 30, 90),
        ("Instrument Assisted Soft Tissue Mobilization", 45, 120),
        ("Therapeutic Taping", 30, 75),
        ("Joint Mobilization", 45, 125),
        ("Myofascial Release", 60, 135),
        ("Trigger Point Therapy", 45, 115),
    ],
    "exercise": [
        ("Therapeutic Exercise Session", 45, 100),
        ("Strength & Conditioning Program", 60, 130),
        ("Balance & Coordination Training", 45, 105),
        ("Gait Training", 45, 110),
        ("Functional Movement Assessment", 60, 145),
    ],
    "aquatic": [
        ("Aquatic Therapy Session", 45, 125),
        ("Pool-based Exercise Class", 60, 95),
        ("Aquatic Rehabilitation", 60, 140),
    ],
    "group": [
        ("Group Exercise Class", 60, 45),
        ("Group Education Session", 90, 55),
        ("Wellness Workshop", 120, 65),
        ("Injury Prevention Seminar", 90, 60),
    ],
    "consultation": [
        ("Telehealth Consultation", 30, 80),
        ("Home Assessment Visit", 90, 195),
        ("Workplace Ergonomic Assessment", 120, 250),
        ("Pre-surgical Consultation", 45, 135),
        ("Post-surgical Follow-up", 45, 125),
    ],
    "wcb": [
        ("WCB Initial Assessment", 60, 155),
        ("WCB Follow-up Treatment", 45, 115),
        ("WCB Functional Capacity Evaluation", 180, 450),
        ("WCB Work Conditioning Program", 120, 280),
    ],
    "mva": [
        ("MVA Initial Assessment", 60, 155),
        ("MVA Follow-up Treatment", 45, 115),
        ("MVA Documentation & Reporting", 30, 95),
    ],
}

OWNERSHIP_GROUP_SHARE = 0.5
LOCATION_SHARE = 0.3
OWNERSHIP_GROUP_MULTIPLIER = 1.05
URBAN_MULTIPLIER = 1.15
SUBURBAN_MULTIPLIER = 0.95


def service_type(category: str, name: str) -> str:
    """Standardized ``serviceType`` for a template category."""
    if category in ("specialized", "exercise", "aquatic"):
        return "follow_up"
    if category == "consultation":
        return "initial_consultation"
    if category == "group":
        return "group_session"
    if category in ("wcb", "mva"):
        stage = "initial" if "initial" in name.lower() else "follow_up"
        return f"{category}_{stage}"
    return category


def varied_durations(base: int) -> list[int]:
    """Duration variants offered for a service of ``base`` minutes."""
    durations = [base]
    if base >= 60:
        durations.append(base - 15)
    if base <= 45:
        durations.append(base + 15)
    if base == 45:
        durations.insert(0, 30)
    return durations


def varied_price(
    base: float, multiplier: float = 1.0, rng: Optional[random.Random] = None
) -> int:
    """Price in cents: base scaled by ``multiplier``, varied -5%..+10%, rounded to $5."""
    rng = rng or random.Random()
    dollars = Decimal(str(base * multiplier * (1 + rng.uniform(-0.05, 0.10))))
    fives = (dollars / 5).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    return int(fives) * 5 * 100


@dataclass
class CatalogSeedResult:
    dry_run: bool
    org_name: str = ""
    ownership_groups: int = 0
    locations: int = 0
    presets_created: list[str] = field(default_factory=list)
    disciplines: int = 0
    services: int = 0
    offerings: int = 0
    prices: int = 0

    def as_counts(self) -> dict[str, int]:
        return {
            "Presets created": len(self.presets_created),
            "Disciplines created": self.disciplines,
            "Services created": self.services,
            "Service offerings created": self.offerings,
            "Price points created": self.prices,
        }


class _CatalogWriter:
    """Inserts rows with fresh ids, or only hands out ids in a dry run."""

    def __init__(self, conn: asyncpg.Connection, dry_run: bool) -> None:
        self.conn = conn
        self.dry_run = dry_run

    async def insert(self, sql: str, *args: Any) -> str:
        if self.dry_run:
            return generate_object_id()
        object_id, _ = await insert_with_new_id(
            lambda new_id: self.conn.execute(sql, new_id, *args), conn=self.conn
        )
        return object_id


_INSERT_DISCIPLINE = """
    INSERT INTO "Discipline_Offering"
        ("objectId", "createdAt", "updatedAt", "_rperm", "_wperm", "presetId", "customName", "orgId")
    VALUES ($1, NOW(), NOW(), ARRAY['*'], ARRAY[]::text[], $2, $3, $4)
"""

_INSERT_SERVICE_DETAIL = """
    INSERT INTO "Service_Detail"
        ("objectId", "createdAt", "updatedAt", "_rperm", "serviceType", "schedulingDurationMinutes")
    VALUES ($1, NOW(), NOW(), ARRAY['*'], $2, $3)
"""

_INSERT_ITEM = """
    INSERT INTO "Items_Catalog"
        ("objectId", "createdAt", "updatedAt", "_rperm", "type", "itemName", "serviceDetailId")
    VALUES ($1, NOW(), NOW(), ARRAY['*'], 'service', $2, $3)
"""

_LINK_DETAIL_ITEM = """
    UPDATE "Service_Detail" SET "itemId" = $1 WHERE "objectId" = $2
"""

_INSERT_OFFERING = """
    INSERT INTO "Service_Offering"
        ("objectId", "createdAt", "updatedAt", "itemId", "orgId", "ownershipGroupId", "locationId")
    VALUES ($1, NOW(), NOW(), $2, $3, $4, $5)
"""

_INSERT_PRICE = """
    INSERT INTO "Item_Price"
        ("objectId", "createdAt", "updatedAt", "itemId", "price", "durationMinutes",
         "orgId", "ownershipGroupId", "locationId")
    VALUES ($1, NOW(), NOW(), $2, $3, $4, $5, $6, $7)
"""


async def _seed_scope(
    writer: _CatalogWriter,
    result: CatalogSeedResult,
    item_id: str,
    template: tuple[str, int, int],
    org_id: str,
    ownership_group_id: Optional[str],
    location_id: Optional[str],
    multiplier: float,
    rng: random.Random,
) -> None:
    _, base_duration, base_price = template
    await writer.insert(_INSERT_OFFERING, item_id, org_id, ownership_group_id, location_id)
    result.offerings += 1
    for duration in varied_durations(base_duration):
        amount = varied_price(base_price * duration / base_duration, multiplier, rng)
        await writer.insert(
            _INSERT_PRICE, item_id, amount, duration, org_id, ownership_group_id, location_id
        )
        result.prices += 1


async def seed_catalog(
    conn: asyncpg.Connection,
    org_id: str,
    dry_run: bool = False,
    rng: Optional[random.Random] = None,
) -> CatalogSeedResult:
    """Seed presets, disciplines, services, offerings and prices for an org.

    Live runs write everything in one transaction. Raises ``RecordNotFound``
    when the organization does not exist.
    """
    rng = rng or random.Random()
    result = CatalogSeedResult(dry_run=dry_run)

    org = await conn.fetchrow(
        'SELECT "objectId", "orgName" FROM "Org" WHERE "objectId" = $1', org_id
    )
    if org is None:
        raise RecordNotFound(f"Organization not found with ID: {org_id}")
    result.org_name = org["orgName"]

    groups = await conn.fetch(
        'SELECT "objectId", "ogName" FROM "Ownership_Group" WHERE "orgId" = $1 '
        'ORDER BY "objectId"',
        org_id,
    )
    locations = await conn.fetch(
        'SELECT l."objectId", l."locationName", l."ownershipGroupId" FROM "Location" l '
        'INNER JOIN "Ownership_Group" og ON l."ownershipGroupId" = og."objectId" '
        'WHERE og."orgId" = $1 ORDER BY l."objectId"',
        org_id,
    )
    result.ownership_groups = len(groups)
    result.locations = len(locations)
    logger.info(
        "Found organization %s with %d ownership group(s) and %d location(s)",
        result.org_name,
        len(groups),
        len(locations),
    )

    selected_groups = groups[: math.ceil(len(groups) * OWNERSHIP_GROUP_SHARE)]
    selected_locations = locations[: math.ceil(len(locations) * LOCATION_SHARE)]
    writer = _CatalogWriter(conn, dry_run)

    scope = contextlib.nullcontext() if dry_run else conn.transaction()
    async with scope:
        preset_ids, result.presets_created = await ensure_presets(conn, dry_run=dry_run)

        for preset in DISCIPLINE_PRESETS:
            if preset["name"] == FALLBACK_PRESET:
                continue
            await writer.insert(
                _INSERT_DISCIPLINE,
                preset_ids[normalize_name(preset["name"])],
                preset["name"],
                org_id,
            )
            result.disciplines += 1

        for category, templates in SERVICE_TEMPLATES.items():
            for template in templates:
                name, duration, _ = template
                detail_id = await writer.insert(
                    _INSERT_SERVICE_DETAIL, service_type(category, name), duration
                )
                item_id = await writer.insert(_INSERT_ITEM, name, detail_id)
                if not dry_run:
                    await conn.execute(_LINK_DETAIL_ITEM, item_id, detail_id)
                result.services += 1

                await _seed_scope(writer, result, item_id, template, org_id, None, None, 1.0, rng)
                for group in selected_groups:
                    await _seed_scope(
                        writer, result, item_id, template, org_id,
                        group["objectId"], None, OWNERSHIP_GROUP_MULTIPLIER, rng,
                    )
                for location in selected_locations:
                    multiplier = URBAN_MULTIPLIER if rng.random() > 0.5 else SUBURBAN_MULTIPLIER
                    await _seed_scope(
                        writer, result, item_id, template, org_id,
                        location["ownershipGroupId"], location["objectId"], multiplier, rng,
                    )
                logger.debug("Seeded service %s", name)

    return result
