"""Create Stripe products and prices for an organization's service catalog.

Usage:
    sync-catalog-to-stripe --org ORG_ID [--dry-run] [--limit N]
"""

from __future__ import annotations

import sys

from clinic_ops import report
from clinic_ops.billing_sync import sync_catalog
from clinic_ops.commands._common import load_settings, parse_args, parser, run
from clinic_ops.config import DB_FIELDS, STRIPE_FIELDS, Settings
from clinic_ops.db import connect
from clinic_ops.stores import PgCatalogStore
from clinic_ops.stripe_client import StripeClient


async def sync_catalog_to_stripe(
    settings: Settings, org_id: str, dry_run: bool, limit: int | None
) -> int:
    conn = await connect(settings, application_name="sync-catalog-to-stripe")
    try:
        async with StripeClient(
            settings.stripe_secret_key, settings.stripe_api_version
        ) as stripe:
            summary = await sync_catalog(
                stripe, PgCatalogStore(conn), org_id, limit=limit, dry_run=dry_run
            )
    finally:
        await conn.close()

    report.summary(summary.as_counts(), dry_run=dry_run)
    report.failures(summary.errors)
    return 1 if summary.errors else 0


def main(argv: list[str] | None = None) -> int:
    p = parser("Mirror catalog items and prices into Stripe")
    p.add_argument("--org", help="Organization whose catalog is synced")
    p.add_argument("--limit", type=int, help="Only process the first N offerings")
    args = parse_args(p, argv)

    if not args.org:
        print("Error: --org is required", file=sys.stderr)
        return 1

    settings = load_settings(DB_FIELDS + STRIPE_FIELDS)
    if settings is None:
        return 1

    report.banner("Sync Catalog to Stripe")
    report.mode_line(args.dry_run)
    print(f"Organization: {args.org}")
    return run(sync_catalog_to_stripe(settings, args.org, args.dry_run, args.limit))


if __name__ == "__main__":
    raise SystemExit(main())
