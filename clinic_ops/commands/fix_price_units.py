"""Convert item prices stored in dollars into cents.

Usage:
    fix-price-units [--dry-run] [--threshold N]

Any price of at least 1 and below the threshold (default and maximum 100) is
treated as whole dollars and multiplied by 100.
"""

from __future__ import annotations

import sys

from clinic_ops import report
from clinic_ops.commands._common import load_settings, parse_args, parser, run
from clinic_ops.config import DB_FIELDS, Settings
from clinic_ops.db import connect
from clinic_ops.prices import DEFAULT_THRESHOLD, check_threshold, count_repairable, repair_minor_units
from clinic_ops.stores import PgPriceStore


async def fix_price_units(settings: Settings, dry_run: bool, threshold: int) -> int:
    conn = await connect(settings, application_name="fix-price-units")
    try:
        store = PgPriceStore(conn)

        report.step(1, f"Finding prices below {threshold}")
        result = await repair_minor_units(store, threshold, dry_run=dry_run)
        for fix in result.fixes:
            print(
                f"  {fix.record_id}: {fix.old} -> {fix.new} "
                f"({fix.duration_minutes or '?'} min)"
            )
        for record in result.skipped:
            print(f"  {record.object_id}: {record.price} left alone (below one unit)")

        report.step(2, "Verifying")
        remaining = await count_repairable(store, threshold)
        print(f"  {remaining} price(s) still below {threshold}")
        print("  Lowest prices now:")
        for record in await store.lowest():
            print(f"    {record.object_id}: {record.price} ({record.duration_minutes or '?'} min)")

        report.summary(
            {"Prices converted": len(result.fixes), "Left alone": len(result.skipped)},
            dry_run=dry_run,
        )
        return 1 if remaining and not dry_run else 0
    finally:
        await conn.close()


def main(argv: list[str] | None = None) -> int:
    p = parser("Convert dollar-valued item prices to cents")
    p.add_argument("--threshold", type=int, default=DEFAULT_THRESHOLD)
    args = parse_args(p, argv)

    try:
        check_threshold(args.threshold)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    settings = load_settings(DB_FIELDS)
    if settings is None:
        return 1

    report.banner("Fix Item Price Units")
    report.mode_line(args.dry_run)
    return run(fix_price_units(settings, args.dry_run, args.threshold))


if __name__ == "__main__":
    raise SystemExit(main())
