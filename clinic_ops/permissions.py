"""Backfill of null ``_rperm`` arrays, which hide rows from every reader."""

from __future__ import annotations

import logging

import asyncpg

from clinic_ops.db import affected_rows, quote_ident

logger = logging.getLogger(__name__)

PERMISSION_TABLES = ("Items_Catalog", "Discipline_Offering", "Service_Detail")

WORLD_READABLE = ["*"]


async def fix_null_read_permissions(
    conn: asyncpg.Connection,
    tables: tuple[str, ...] = PERMISSION_TABLES,
    dry_run: bool = False,
) -> dict[str, int]:
    """Set ``_rperm`` to world-readable where null, all tables in one transaction.

    Returns the number of rows changed (or that would change) per table.
    """
    counts: dict[str, int] = {}
    async with conn.transaction():
        for table in tables:
            if dry_run:
                counts[table] = await conn.fetchval(
                    f'SELECT COUNT(*) FROM {quote_ident(table)} WHERE "_rperm" IS NULL'
                )
            else:
                status = await conn.execute(
                    f"UPDATE {quote_ident(table)} "
                    f'SET "_rperm" = $1, "updatedAt" = NOW() '
                    f'WHERE "_rperm" IS NULL',
                    WORLD_READABLE,
                )
                counts[table] = affected_rows(status)
            logger.info("%s: %d row(s) with null _rperm", table, counts[table])
    return counts
