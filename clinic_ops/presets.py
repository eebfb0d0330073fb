"""Canonical discipline presets shared by every organization."""

from __future__ import annotations

import logging

import asyncpg

from clinic_ops.ids import generate_object_id, insert_with_new_id
from clinic_ops.models import CategoryPreset
from clinic_ops.reconcile import normalize_name

logger = logging.getLogger(__name__)

FALLBACK_PRESET = "Other"

DISCIPLINE_PRESETS: list[dict[str, str]] = [
    {"name": "Physical Therapy", "icon": "AccessibilityNew"},
    {"name": "Occupational Therapy", "icon": "Work"},
    {"name": "Sports Medicine", "icon": "FitnessCenter"},
    {"name": "Orthopedics", "icon": "Healing"},
    {"name": "Neurology", "icon": "Psychology"},
    {"name": "Pediatric Therapy", "icon": "ChildCare"},
    {"name": "Geriatric Care", "icon": "Elderly"},
    {"name": "Aquatic Therapy", "icon": "Pool"},
    {"name": "Manual Therapy", "icon": "PanTool"},
    {"name": "Wellness & Prevention", "icon": "Favorite"},
    {"name": FALLBACK_PRESET, "icon": "MoreHoriz"},
]

_INSERT_PRESET = """
    INSERT INTO "Discipline_Preset"
        ("objectId", "createdAt", "updatedAt", "_rperm", "_wperm",
         "name", "icon", "isPreset", "disciplineName")
    VALUES ($1, NOW(), NOW(), ARRAY['*'], ARRAY[]::text[], $2, $3, true, $2)
"""


async def ensure_presets(
    conn: asyncpg.Connection,
    presets: list[dict[str, str]] = DISCIPLINE_PRESETS,
    dry_run: bool = False,
) -> tuple[dict[str, str], list[str]]:
    """Insert any missing preset rows.

    Returns the normalized name -> id map (ids planned in dry-run included)
    and the names that were created.
    """
    rows = await conn.fetch('SELECT "objectId", "name", "icon" FROM "Discipline_Preset"')
    existing = [CategoryPreset.from_row(row) for row in rows]
    preset_ids = {normalize_name(preset.name): preset.object_id for preset in existing}
    logger.info("Found %d existing Discipline_Preset records", len(existing))

    created: list[str] = []
    for preset in presets:
        key = normalize_name(preset["name"])
        if key in preset_ids:
            continue

        if dry_run:
            preset_id = generate_object_id()
        else:
            preset_id, _ = await insert_with_new_id(
                lambda object_id: conn.execute(
                    _INSERT_PRESET, object_id, preset["name"], preset["icon"]
                ),
                conn=conn,
            )
        preset_ids[key] = preset_id
        created.append(preset["name"])
        logger.info("Created Discipline_Preset %s (%s)", preset["name"], preset_id)

    return preset_ids, created
