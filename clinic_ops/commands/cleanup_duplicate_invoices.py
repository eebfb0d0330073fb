"""Remove duplicate invoices created for the same appointment.

Usage:
    cleanup-duplicate-invoices [--dry-run] [--appointment-id APPOINTMENT_ID]

The oldest invoice of each appointment is kept. Duplicates are deleted (draft)
or voided (open) in Stripe and then deleted from Parse.
"""

from __future__ import annotations

from clinic_ops import report
from clinic_ops.commands._common import load_settings, parse_args, parser, run
from clinic_ops.config import PARSE_FIELDS, STRIPE_FIELDS, Settings
from clinic_ops.duplicates import fetch_invoices, resolve_duplicate_invoices
from clinic_ops.parse_client import ParseClient
from clinic_ops.stripe_client import StripeClient


async def cleanup_duplicate_invoices(
    settings: Settings, dry_run: bool, appointment_id: str | None
) -> int:
    async with ParseClient(
        settings.parse_server_url, settings.parse_app_id, settings.parse_master_key
    ) as parse, StripeClient(
        settings.stripe_secret_key, settings.stripe_api_version
    ) as stripe:
        if appointment_id:
            print(f"Filtering by appointment: {appointment_id}")
        invoices = await fetch_invoices(parse, appointment_id)
        print(f"Found {len(invoices)} total invoice(s)")

        result = await resolve_duplicate_invoices(parse, stripe, invoices, dry_run=dry_run)

    if not result.kept:
        print("\nNo duplicate invoices found.")
        return 0

    for keeper in result.kept:
        print(
            f"\n  Keeping {keeper.object_id} for appointment {keeper.appointment_id} "
            f"(created {keeper.created_at.isoformat()}, {keeper.total_display}, {keeper.status})"
        )
    for invoice in result.pending:
        print(f"  [DRY RUN] Would delete {invoice.object_id} (Stripe {invoice.stripe_invoice_id})")
    for invoice in result.removed:
        print(f"  Deleted {invoice.object_id} (Stripe {invoice.stripe_invoice_id})")

    report.summary(
        {
            "Appointments with duplicates": len(result.kept),
            "Invoices kept": len(result.kept),
            "Invoices deleted": len(result.pending if dry_run else result.removed),
            "Errors": len(result.failures),
        },
        dry_run=dry_run,
    )
    report.failures(
        f"{failure.invoice_id} (Stripe {failure.stripe_invoice_id}): {failure.error}"
        for failure in result.failures
    )
    return 1 if result.failures else 0


def main(argv: list[str] | None = None) -> int:
    p = parser("Remove duplicate invoices per appointment")
    p.add_argument("--appointment-id", help="Only clean up invoices of this appointment")
    args = parse_args(p, argv)

    settings = load_settings(PARSE_FIELDS + STRIPE_FIELDS)
    if settings is None:
        return 1

    report.banner("Cleanup Duplicate Invoices")
    report.mode_line(args.dry_run)
    return run(cleanup_duplicate_invoices(settings, args.dry_run, args.appointment_id))


if __name__ == "__main__":
    raise SystemExit(main())
