"""Tests for settings resolution and the MCP config fallback."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from clinic_ops.config import (
    DB_FIELDS,
    PARSE_FIELDS,
    ConfigError,
    Settings,
    load_fallback_config,
    resolve_settings,
)

ENV_NAMES = [
    "DB_HOST", "DB_NAME", "DB_USER", "DB_PASSWORD", "DATABASE_URL",
    "PARSE_SERVER_URL", "PARSE_APP_ID", "PARSE_MASTER_KEY",
    "NEXT_PUBLIC_PARSE_SERVER_URL", "NEXT_PUBLIC_PARSE_APP_ID",
    "NEXT_PUBLIC_PARSE_MASTER_KEY", "STRIPE_SECRET_KEY",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)


def _settings(**values) -> Settings:
    return Settings(_env_file=None, **values)


def _write_mcp(tmp_path: Path, servers: dict) -> Path:
    path = tmp_path / "mcp.json"
    path.write_text(json.dumps({"mcpServers": servers}))
    return path


def test_reads_env(monkeypatch):
    monkeypatch.setenv("DB_HOST", "db.internal")
    monkeypatch.setenv("DB_SSL", "true")

    settings = _settings()

    assert settings.db_host == "db.internal"
    assert settings.db_ssl is True
    assert settings.db_port == 5432


def test_next_public_alias(monkeypatch):
    monkeypatch.setenv("NEXT_PUBLIC_PARSE_APP_ID", "app-123")

    assert _settings().parse_app_id == "app-123"


def test_database_url_satisfies_db_fields():
    settings = _settings(database_url="postgresql://u:p@h/db")

    assert settings.missing(DB_FIELDS) == []


def test_missing_lists_env_names():
    settings = _settings(db_host="h")

    assert settings.missing(DB_FIELDS) == ["DB_NAME", "DB_USER", "DB_PASSWORD"]


def test_fallback_reads_parse_and_write_dsn(tmp_path):
    path = _write_mcp(
        tmp_path,
        {
            "parse": {"env": {"PARSE_SERVER_URL": "https://parse", "PARSE_APP_ID": "a"}},
            "postgres-dev-write": {"env": {"DATABASE_URL": "postgresql://write"}},
            "postgres-dev": {"args": ["-y", "postgresql://read"]},
        },
    )

    found = load_fallback_config(path)

    assert found == {
        "parse_server_url": "https://parse",
        "parse_app_id": "a",
        "database_url": "postgresql://write",
    }


def test_fallback_dsn_from_args(tmp_path):
    path = _write_mcp(tmp_path, {"postgres-dev": {"args": ["server", "postgresql://read"]}})

    assert load_fallback_config(path) == {"database_url": "postgresql://read"}


def test_fallback_missing_or_broken_file(tmp_path):
    broken = tmp_path / "broken.json"
    broken.write_text("{not json")

    assert load_fallback_config(tmp_path / "absent.json") == {}
    assert load_fallback_config(broken) == {}


def test_resolve_fills_only_empty_fields(tmp_path):
    path = _write_mcp(
        tmp_path,
        {"parse": {"env": {"PARSE_SERVER_URL": "https://fallback", "PARSE_APP_ID": "a", "PARSE_MASTER_KEY": "m"}}},
    )
    settings = _settings(parse_server_url="https://env")

    resolved = resolve_settings(PARSE_FIELDS, settings, fallback_path=path)

    assert resolved.parse_server_url == "https://env"
    assert resolved.parse_master_key == "m"


def test_resolve_raises_with_every_missing_name(tmp_path):
    with pytest.raises(ConfigError) as exc_info:
        resolve_settings(PARSE_FIELDS, _settings(), fallback_path=tmp_path / "absent.json")

    assert exc_info.value.missing == ["PARSE_SERVER_URL", "PARSE_APP_ID", "PARSE_MASTER_KEY"]


def test_resolve_skips_fallback_when_complete(tmp_path):
    settings = _settings(database_url="postgresql://env")

    assert resolve_settings(DB_FIELDS, settings, fallback_path=tmp_path / "x.json") is settings
