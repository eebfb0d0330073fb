"""Tests for the seed helpers."""

from __future__ import annotations

import random
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

import pytest

from clinic_ops.db import RecordNotFound
from clinic_ops.seeding import (
    DEFAULT_FEES,
    SERVICE_TEMPLATES,
    seed_catalog,
    seed_default_fees,
    service_type,
    varied_durations,
    varied_price,
)


def _conn(**returns) -> MagicMock:
    conn = MagicMock()

    @asynccontextmanager
    async def transaction():
        yield

    conn.transaction = MagicMock(side_effect=transaction)
    conn.execute = AsyncMock(return_value="INSERT 0 1")
    conn.fetchval = AsyncMock(return_value=returns.get("fetchval", 0))
    conn.fetchrow = AsyncMock(return_value=returns.get("fetchrow"))
    conn.fetch = AsyncMock(side_effect=returns.get("fetch", lambda *a: []))
    return conn


@pytest.mark.parametrize(
    ("base", "expected"),
    [(30, [30, 45]), (45, [30, 45, 60]), (60, [60, 45]), (90, [90, 75])],
)
def test_varied_durations(base, expected):
    assert varied_durations(base) == expected


def test_varied_price_rounded_to_five_dollars_in_cents():
    rng = random.Random(7)
    for _ in range(50):
        cents = varied_price(150, rng=rng)
        assert cents % 500 == 0
        assert 14000 <= cents <= 16500


def test_varied_price_applies_multiplier():
    low = varied_price(100, 0.95, rng=random.Random(1))
    high = varied_price(100, 1.15, rng=random.Random(1))

    assert high > low


def test_service_type_mapping():
    assert service_type("aquatic", "Aquatic Rehabilitation") == "follow_up"
    assert service_type("consultation", "Telehealth Consultation") == "initial_consultation"
    assert service_type("wcb", "WCB Initial Assessment") == "wcb_initial"
    assert service_type("mva", "MVA Follow-up Treatment") == "mva_follow_up"
    assert service_type("initial_assessment", "x") == "initial_assessment"


@pytest.mark.asyncio
async def test_default_fees_skipped_when_org_has_fees():
    conn = _conn(fetchval=3)

    result = await seed_default_fees(conn, "org1")

    assert result.skipped
    conn.execute.assert_not_awaited()


@pytest.mark.asyncio
async def test_default_fees_created():
    conn = _conn(fetchval=0)

    result = await seed_default_fees(conn, "org1")

    assert result.created == [name for _, name, _, _ in DEFAULT_FEES]
    fee_types = [call.args[2] for call in conn.execute.await_args_list]
    assert fee_types.count("no_show") == 4
    assert fee_types.count("late_cancellation") == 2


@pytest.mark.asyncio
async def test_catalog_seed_requires_org():
    conn = _conn(fetchrow=None)

    with pytest.raises(RecordNotFound, match="org404"):
        await seed_catalog(conn, "org404")


@pytest.mark.asyncio
async def test_catalog_dry_run_counts_without_writing():
    groups = [{"objectId": "og1", "ogName": "North"}, {"objectId": "og2", "ogName": "South"}]
    locations = [
        {"objectId": f"loc{i}", "locationName": f"L{i}", "ownershipGroupId": "og1"} for i in range(4)
    ]

    async def fetch(sql: str, *args):
        if '"Ownership_Group" WHERE' in sql:
            return groups
        if '"Location"' in sql:
            return locations
        return []

    conn = _conn(fetchrow={"objectId": "org1", "orgName": "Acme Physio"}, fetch=fetch)

    result = await seed_catalog(conn, "org1", dry_run=True, rng=random.Random(3))

    conn.execute.assert_not_awaited()
    services = sum(len(t) for t in SERVICE_TEMPLATES.values())
    # org level, one of two groups, two of four locations
    assert result.services == services
    assert result.offerings == services * 4
    assert result.org_name == "Acme Physio"
    assert result.disciplines == 10
