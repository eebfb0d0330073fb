"""Point appointments without a price at their item's shortest-duration price.

Usage:
    fix-appointment-prices [--dry-run]
"""

from __future__ import annotations

from clinic_ops import report
from clinic_ops.appointments import backfill_item_prices
from clinic_ops.commands._common import load_settings, parse_args, parser, run
from clinic_ops.config import PARSE_FIELDS, Settings
from clinic_ops.parse_client import ParseClient


async def fix_appointment_prices(settings: Settings, dry_run: bool) -> int:
    async with ParseClient(
        settings.parse_server_url, settings.parse_app_id, settings.parse_master_key
    ) as parse:
        result = await backfill_item_prices(parse, dry_run=dry_run)

    print(f"  Found {result.found} appointment(s) without itemPriceId")
    for name in result.skipped_items:
        print(f"  No item price found for {name}, skipped")

    report.summary(
        {
            "Appointments found": result.found,
            "Appointments updated": result.updated,
            "Without service item": len(result.unlinked),
            "Items without a price": len(result.skipped_items),
            "Failed": len(result.failures),
        },
        dry_run=dry_run,
    )
    report.failures(f"{object_id}: {error}" for object_id, error in result.failures.items())
    return 1 if result.failures else 0


def main(argv: list[str] | None = None) -> int:
    args = parse_args(parser("Backfill itemPriceId on appointments"), argv)

    settings = load_settings(PARSE_FIELDS)
    if settings is None:
        return 1

    report.banner("Fix Missing Appointment Prices")
    report.mode_line(args.dry_run)
    return run(fix_appointment_prices(settings, args.dry_run))


if __name__ == "__main__":
    raise SystemExit(main())
