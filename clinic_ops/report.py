"""Human-readable console output shared by the commands."""

from __future__ import annotations

import sys
from typing import Iterable, Mapping

RULE = "-" * 60


def banner(title: str) -> None:
    print(f"\n{'=' * 60}\n  {title}\n{'=' * 60}\n")


def mode_line(dry_run: bool) -> None:
    if dry_run:
        print("Mode: DRY RUN (no changes will be made)\n")
    else:
        print("Mode: LIVE (changes will be written)\n")


def step(number: int, title: str) -> None:
    print(f"\n{RULE}\nSTEP {number}: {title}\n{RULE}")


def summary(counts: Mapping[str, object], dry_run: bool = False) -> None:
    print(f"\n{RULE}\nSUMMARY{' (dry run)' if dry_run else ''}\n{RULE}")
    width = max((len(label) for label in counts), default=0)
    for label, value in counts.items():
        print(f"  {label.ljust(width)}  {value}")
    if dry_run:
        print("\nDRY RUN - no changes were made")


def failures(items: Iterable[str]) -> None:
    items = list(items)
    if not items:
        return
    print(f"\n{len(items)} failure(s):", file=sys.stderr)
    for item in items:
        print(f"  - {item}", file=sys.stderr)


def missing_config(missing: Iterable[str]) -> None:
    print("Missing required configuration:", file=sys.stderr)
    for name in missing:
        print(f"  - {name}", file=sys.stderr)
    print("\nSet them in the environment, .env or .env.local.", file=sys.stderr)
