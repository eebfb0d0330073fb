"""Make catalog rows with a null read-permission array world-readable.

Usage:
    fix-permissions [--dry-run]
"""

from __future__ import annotations

from clinic_ops import report
from clinic_ops.commands._common import load_settings, parse_args, parser, run
from clinic_ops.config import DB_FIELDS, Settings
from clinic_ops.db import connect
from clinic_ops.permissions import PERMISSION_TABLES, fix_null_read_permissions


async def fix_permissions(settings: Settings, dry_run: bool) -> int:
    conn = await connect(settings, application_name="fix-permissions")
    try:
        counts = await fix_null_read_permissions(conn, PERMISSION_TABLES, dry_run=dry_run)
        for table, count in counts.items():
            verb = "would be fixed" if dry_run else "fixed"
            print(f"  {table}: {count} row(s) {verb}")
        report.summary({f"{table} rows": count for table, count in counts.items()}, dry_run=dry_run)
        return 0
    finally:
        await conn.close()


def main(argv: list[str] | None = None) -> int:
    args = parse_args(parser("Backfill null _rperm arrays"), argv)

    settings = load_settings(DB_FIELDS)
    if settings is None:
        return 1

    report.banner("Fix Catalog Read Permissions")
    report.mode_line(args.dry_run)
    return run(fix_permissions(settings, args.dry_run))


if __name__ == "__main__":
    raise SystemExit(main())
