"""Link every discipline offering to a canonical discipline preset.

Usage:
    fix-offering-presets [--dry-run] [--org ORG_ID]

Offerings are matched to presets by case-insensitive name; offerings whose
name matches no preset are linked to the "Other" preset.
"""

from __future__ import annotations

from clinic_ops import report
from clinic_ops.commands._common import load_settings, parse_args, parser, run
from clinic_ops.config import DB_FIELDS, Settings
from clinic_ops.db import connect
from clinic_ops.presets import FALLBACK_PRESET, ensure_presets
from clinic_ops.reconcile import normalize_name, reconcile_links, verify_links
from clinic_ops.stores import PgLinkStore


async def fix_offering_presets(settings: Settings, dry_run: bool, org_id: str | None) -> int:
    conn = await connect(settings, application_name="fix-offering-presets")
    try:
        store = PgLinkStore(conn, scope=org_id)

        async with conn.transaction():
            report.step(1, "Ensuring discipline presets exist")
            preset_ids, created = await ensure_presets(conn, dry_run=dry_run)
            for name in created:
                print(f"  {'Would create' if dry_run else 'Created'} preset: {name}")
            print(f"  {len(preset_ids)} preset(s) available")

            report.step(2, "Linking offerings to presets")
            result = await reconcile_links(
                store,
                preset_ids.get(normalize_name(FALLBACK_PRESET)),
                canonical=preset_ids,
                dry_run=dry_run,
            )
            for link in result.links:
                via = f" (no match, using {FALLBACK_PRESET})" if link.fallback else ""
                print(f"  {link.name or '<unnamed>'} -> {link.canonical_id}{via}")

        report.step(3, "Verifying")
        verification = await verify_links(store, dry_run=dry_run)
        linked = await store.count_linked()
        if dry_run:
            print(f"  {verification.remaining} offering(s) still without a preset (dry run)")
        else:
            print(f"  All offerings linked ({linked} total)")

        report.summary(
            {
                "Presets created": len(created),
                "Offerings matched by name": len(result.matched),
                "Offerings linked to fallback": len(result.fallback_linked),
                "Offerings with a preset": linked,
            },
            dry_run=dry_run,
        )
        return 0
    finally:
        await conn.close()


def main(argv: list[str] | None = None) -> int:
    p = parser("Link discipline offerings to canonical presets")
    p.add_argument("--org", help="Only reconcile offerings of this organization")
    args = parse_args(p, argv)

    settings = load_settings(DB_FIELDS)
    if settings is None:
        return 1

    report.banner("Fix Discipline Offering Presets")
    report.mode_line(args.dry_run)
    return run(fix_offering_presets(settings, args.dry_run, args.org))


if __name__ == "__main__":
    raise SystemExit(main())
