"""Seed the default no-show and late-cancellation fees for an organization.

Usage:
    seed-default-fees [--org ORG_ID]

Without ``--org`` the organization comes from ``SEED_ORG_ID``.
"""

from __future__ import annotations

import sys

from clinic_ops import report
from clinic_ops.commands._common import load_settings, parse_args, parser, run
from clinic_ops.config import DB_FIELDS, Settings
from clinic_ops.db import connect
from clinic_ops.seeding import DEFAULT_FEES, seed_default_fees


async def seed_fees(settings: Settings, org_id: str) -> int:
    conn = await connect(settings, application_name="seed-default-fees")
    try:
        result = await seed_default_fees(conn, org_id)
    finally:
        await conn.close()

    if result.skipped:
        print(f"Found {result.existing} existing fee(s) for this org. Skipping seed.")
        print("To re-seed, delete existing fees first.")
        return 0
    for name in result.created:
        print(f"  Created: {name}")
    report.summary({"Fees created": len(result.created), "Expected": len(DEFAULT_FEES)})
    return 0


def main(argv: list[str] | None = None) -> int:
    p = parser("Seed default no-show and late-cancellation fees", dry_run=False)
    p.add_argument("--org", help="Organization id (defaults to SEED_ORG_ID)")
    args = parse_args(p, argv)

    settings = load_settings(DB_FIELDS)
    if settings is None:
        return 1

    org_id = args.org or settings.seed_org_id
    if not org_id:
        print("Error: pass --org or set SEED_ORG_ID", file=sys.stderr)
        return 1

    report.banner(f"Seeding default fees for org: {org_id}")
    return run(seed_fees(settings, org_id))


if __name__ == "__main__":
    raise SystemExit(main())
