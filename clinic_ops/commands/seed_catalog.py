"""Seed disciplines, services and tiered pricing for an organization.

Usage:
    seed-catalog [--org ORG_ID] [--dry-run] [--seed N]

Without ``--org`` the organization comes from ``SEED_ORG_ID``. ``--seed``
makes the price variation reproducible.
"""

from __future__ import annotations

import random
import sys

from clinic_ops import report
from clinic_ops.commands._common import load_settings, parse_args, parser, run
from clinic_ops.config import DB_FIELDS, Settings
from clinic_ops.db import connect
from clinic_ops.seeding import seed_catalog


async def seed(settings: Settings, org_id: str, dry_run: bool, rng: random.Random) -> int:
    conn = await connect(settings, application_name="seed-catalog")
    try:
        result = await seed_catalog(conn, org_id, dry_run=dry_run, rng=rng)
    finally:
        await conn.close()

    print(f"Organization: {result.org_name}")
    print(f"Ownership groups: {result.ownership_groups}")
    print(f"Locations: {result.locations}")
    report.summary(result.as_counts(), dry_run=dry_run)
    return 0


def main(argv: list[str] | None = None) -> int:
    p = parser("Seed services and disciplines with tiered pricing")
    p.add_argument("--org", help="Organization id (defaults to SEED_ORG_ID)")
    p.add_argument("--seed", type=int, help="Random seed for price variation")
    args = parse_args(p, argv)

    settings = load_settings(DB_FIELDS)
    if settings is None:
        return 1

    org_id = args.org or settings.seed_org_id
    if not org_id:
        print("Error: pass --org or set SEED_ORG_ID", file=sys.stderr)
        return 1

    report.banner("Service & Discipline Seeding")
    report.mode_line(args.dry_run)
    return run(seed(settings, org_id, args.dry_run, random.Random(args.seed)))


if __name__ == "__main__":
    raise SystemExit(main())
