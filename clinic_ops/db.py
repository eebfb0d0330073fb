"""PostgreSQL connection helpers built on asyncpg."""

from __future__ import annotations

import logging

import asyncpg

from clinic_ops.config import Settings

logger = logging.getLogger(__name__)


class RecordNotFound(Exception):
    """Raised when a record that everything else depends on is absent."""


def ssl_mode(settings: Settings) -> str | bool:
    if not settings.db_ssl:
        return False
    return "verify-full" if settings.db_ssl_reject_unauthorized else "require"


async def connect(
    settings: Settings, application_name: str = "clinic-ops"
) -> asyncpg.Connection:
    """Open a single connection from DATABASE_URL or the discrete DB_* fields."""
    server_settings = {"application_name": application_name}
    if settings.database_url:
        logger.debug("Connecting with DATABASE_URL")
        conn = await asyncpg.connect(
            dsn=settings.database_url, server_settings=server_settings
        )
    else:
        logger.debug(
            "Connecting to %s:%s/%s",
            settings.db_host,
            settings.db_port,
            settings.db_name,
        )
        conn = await asyncpg.connect(
            host=settings.db_host,
            port=settings.db_port,
            database=settings.db_name,
            user=settings.db_user,
            password=settings.db_password,
            ssl=ssl_mode(settings),
            server_settings=server_settings,
        )
    logger.info("Connected to database")
    return conn


def quote_ident(name: str) -> str:
    """Double-quote a Parse-style mixed-case identifier."""
    return '"' + name.replace('"', '""') + '"'


def affected_rows(status: str) -> int:
    """Row count from an asyncpg command tag such as ``UPDATE 3``."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (AttributeError, ValueError):
        return 0
