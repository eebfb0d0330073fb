from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Iterable

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

# Local tool config consulted only when the environment is incomplete.
FALLBACK_CONFIG_PATH = Path.home() / ".cursor" / "mcp.json"

DB_FIELDS = ("db_host", "db_name", "db_user", "db_password")
PARSE_FIELDS = ("parse_server_url", "parse_app_id", "parse_master_key")
STRIPE_FIELDS = ("stripe_secret_key",)


class ConfigError(Exception):
    """Raised when required settings are missing after every source was tried."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = missing
        super().__init__(
            "Missing required configuration: " + ", ".join(missing)
        )


class Settings(BaseSettings):
    """Operator settings loaded from environment variables."""

    db_host: str = ""
    db_port: int = 5432
    db_name: str = ""
    db_user: str = ""
    db_password: str = ""
    db_ssl: bool = False
    db_ssl_reject_unauthorized: bool = True
    database_url: str = ""

    parse_server_url: str = Field(
        default="",
        validation_alias=AliasChoices(
            "parse_server_url", "PARSE_SERVER_URL", "NEXT_PUBLIC_PARSE_SERVER_URL"
        ),
    )
    parse_app_id: str = Field(
        default="",
        validation_alias=AliasChoices(
            "parse_app_id", "PARSE_APP_ID", "NEXT_PUBLIC_PARSE_APP_ID"
        ),
    )
    parse_master_key: str = Field(
        default="",
        validation_alias=AliasChoices(
            "parse_master_key", "PARSE_MASTER_KEY", "NEXT_PUBLIC_PARSE_MASTER_KEY"
        ),
    )

    stripe_secret_key: str = ""
    stripe_api_version: str = "2024-06-20"

    seed_org_id: str = ""

    model_config = {
        "env_file": (".env", ".env.local"),
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "populate_by_name": True,
    }

    def missing(self, fields: Iterable[str]) -> list[str]:
        """Return the env names of required fields that have no value.

        A ``DATABASE_URL`` satisfies every discrete database field.
        """
        out: list[str] = []
        for name in fields:
            if name in DB_FIELDS and self.database_url:
                continue
            if not getattr(self, name):
                out.append(name.upper())
        return out


def get_settings() -> Settings:
    """Return a Settings instance. Reads .env files from the working dir."""
    return Settings()


def _dsn_from_args(args: list[Any]) -> str:
    for arg in args:
        if isinstance(arg, str) and arg.startswith("postgresql://"):
            return arg
    return ""


def load_fallback_config(path: Path | str | None = None) -> dict[str, str]:
    """Extract credential fields from the local MCP config file.

    Returns an empty dict when the file is absent or unreadable.
    """
    cfg_path = Path(path) if path is not None else FALLBACK_CONFIG_PATH
    try:
        cfg = json.loads(cfg_path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return {}
    except (OSError, ValueError) as exc:
        logger.warning("Could not read %s: %s", cfg_path, exc)
        return {}

    servers = cfg.get("mcpServers") or {}
    found: dict[str, str] = {}

    parse_env = (servers.get("parse") or {}).get("env") or {}
    for field in PARSE_FIELDS:
        value = parse_env.get(field.upper())
        if value:
            found[field] = value

    dsn = ((servers.get("postgres-dev-write") or {}).get("env") or {}).get(
        "DATABASE_URL", ""
    )
    if not dsn:
        dsn = _dsn_from_args((servers.get("postgres-dev") or {}).get("args") or [])
    if dsn:
        found["database_url"] = dsn

    return found


def resolve_settings(
    required: Iterable[str],
    settings: Settings | None = None,
    fallback_path: Path | str | None = None,
) -> Settings:
    """Return settings with every required field present.

    The environment is consulted first, then the fallback config file once.
    Raises ConfigError listing every env name that is still missing.
    """
    required = tuple(required)
    settings = settings if settings is not None else get_settings()
    if not settings.missing(required):
        return settings

    fallback = load_fallback_config(fallback_path)
    updates = {k: v for k, v in fallback.items() if not getattr(settings, k)}
    if updates:
        logger.info(
            "Filling %s from %s", ", ".join(sorted(updates)),
            fallback_path or FALLBACK_CONFIG_PATH,
        )
        settings = settings.model_copy(update=updates)

    still_missing = settings.missing(required)
    if still_missing:
        raise ConfigError(still_missing)
    return settings
