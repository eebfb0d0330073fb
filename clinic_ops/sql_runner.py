"""Execute a SQL file verbatim against a PostgreSQL DSN."""

from __future__ import annotations

import logging
from pathlib import Path

import asyncpg

logger = logging.getLogger(__name__)


class SqlFileNotFound(Exception):
    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(f"SQL file not found: {path}")


def read_sql(path: str | Path) -> tuple[Path, str]:
    resolved = Path(path).resolve()
    if not resolved.is_file():
        raise SqlFileNotFound(resolved)
    return resolved, resolved.read_text(encoding="utf-8")


async def run_sql_file(path: str | Path, dsn: str) -> str:
    """Run every statement in the file in one simple-query round trip.

    Returns the server's status tag for the last statement.
    """
    resolved, sql = read_sql(path)
    logger.info("Executing SQL from %s", resolved)
    conn = await asyncpg.connect(dsn=dsn, server_settings={"application_name": "clinic-ops"})
    try:
        return await conn.execute(sql)
    finally:
        await conn.close()
