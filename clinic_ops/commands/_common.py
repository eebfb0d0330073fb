"""Argument parsing, config loading and exit handling shared by the commands."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Any, Coroutine, Iterable

import asyncpg
import pydantic

from clinic_ops import report
from clinic_ops.config import ConfigError, Settings, resolve_settings
from clinic_ops.db import RecordNotFound
from clinic_ops.ids import IdCollisionError
from clinic_ops.parse_client import ParseAPIError
from clinic_ops.reconcile import ReconciliationError, ReconciliationIncomplete
from clinic_ops.stripe_client import StripeAPIError

logger = logging.getLogger(__name__)

# Errors that end a run with a message and exit code 1 instead of a traceback.
FATAL_ERRORS = (
    asyncpg.PostgresError,
    OSError,
    ParseAPIError,
    StripeAPIError,
    ReconciliationError,
    ReconciliationIncomplete,
    RecordNotFound,
    IdCollisionError,
    pydantic.ValidationError,
)


def parser(description: str, dry_run: bool = True) -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description=description)
    if dry_run:
        p.add_argument(
            "--dry-run",
            action="store_true",
            help="Show what would change without writing anything",
        )
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return p


def parse_args(p: argparse.ArgumentParser, argv: list[str] | None) -> argparse.Namespace:
    args, unknown = p.parse_known_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    if unknown:
        logger.debug("Ignoring unknown arguments: %s", " ".join(unknown))
    return args


def load_settings(required: Iterable[str]) -> Settings | None:
    """Resolved settings, or None after reporting what is missing."""
    try:
        return resolve_settings(required)
    except ConfigError as exc:
        report.missing_config(exc.missing)
        return None


def run(main: Coroutine[Any, Any, int]) -> int:
    try:
        return asyncio.run(main)
    except FATAL_ERRORS as exc:
        print(f"\nError: {exc}", file=sys.stderr)
        return 1
