"""Tests for the discipline preset bootstrap and the offering link pass built on it."""

from __future__ import annotations

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

import pytest

from clinic_ops.presets import DISCIPLINE_PRESETS, FALLBACK_PRESET, ensure_presets
from clinic_ops.reconcile import normalize_name, reconcile_links
from fakes import FakeLinkStore


def _conn(existing: list[dict]) -> MagicMock:
    conn = MagicMock()

    @asynccontextmanager
    async def transaction():
        yield

    conn.transaction = MagicMock(side_effect=transaction)
    conn.fetch = AsyncMock(return_value=existing)
    conn.execute = AsyncMock(return_value="INSERT 0 1")
    return conn


def _offerings() -> FakeLinkStore:
    return FakeLinkStore(
        {
            "d1": {"name": "physical therapy", "link": None},
            "d2": {"name": "Cupping", "link": None},
            "d3": {"name": " NEUROLOGY ", "link": None},
        },
        canonical={},
    )


@pytest.mark.asyncio
async def test_missing_presets_inserted_and_existing_matched_case_insensitively():
    conn = _conn([{"objectId": "P1", "name": "PHYSICAL THERAPY", "icon": None}])

    preset_ids, created = await ensure_presets(conn)

    assert preset_ids["physical therapy"] == "P1"
    assert "Physical Therapy" not in created
    assert len(created) == len(DISCIPLINE_PRESETS) - 1
    inserted = [call.args[2] for call in conn.execute.await_args_list]
    assert inserted == created
    assert FALLBACK_PRESET in inserted
    assert normalize_name(FALLBACK_PRESET) in preset_ids


@pytest.mark.asyncio
async def test_nothing_inserted_when_every_preset_exists():
    existing = [
        {"objectId": f"P{i}", "name": preset["name"], "icon": preset["icon"]}
        for i, preset in enumerate(DISCIPLINE_PRESETS)
    ]
    conn = _conn(existing)

    preset_ids, created = await ensure_presets(conn)

    assert created == []
    conn.execute.assert_not_awaited()
    assert preset_ids[normalize_name(FALLBACK_PRESET)] == f"P{len(DISCIPLINE_PRESETS) - 1}"


@pytest.mark.asyncio
async def test_dry_run_plans_ids_without_inserting():
    conn = _conn([])

    preset_ids, created = await ensure_presets(conn, dry_run=True)

    conn.execute.assert_not_awaited()
    assert len(created) == len(DISCIPLINE_PRESETS)
    assert preset_ids["other"]
    assert len(set(preset_ids.values())) == len(DISCIPLINE_PRESETS)


@pytest.mark.asyncio
async def test_dry_run_link_counts_equal_live_run():
    dry_ids, _ = await ensure_presets(_conn([]), dry_run=True)
    dry_store = _offerings()
    dry = await reconcile_links(dry_store, dry_ids["other"], canonical=dry_ids, dry_run=True)

    live_ids, _ = await ensure_presets(_conn([]))
    live_store = _offerings()
    live = await reconcile_links(live_store, live_ids["other"], canonical=live_ids)

    assert dry_store.writes == 0
    assert dry.changed == live.changed == 3
    assert [link.record_id for link in dry.fallback_linked] == ["d2"]
    assert [link.record_id for link in live.fallback_linked] == ["d2"]
    assert live_store.rows["d1"]["link"] == live_ids["physical therapy"]
    assert live_store.rows["d3"]["link"] == live_ids["neurology"]
    assert live_store.rows["d2"]["link"] == live_ids["other"]
