"""Mirror Stripe invoices of every linked patient into the Invoice table.

Usage:
    sync-stripe-invoices [--patientId=ID] [--customerId=cus_...] [--dry-run] [--limit=N]

Passing both ``--patientId`` and ``--customerId`` first links the patient to
that Stripe customer.
"""

from __future__ import annotations

from clinic_ops import report
from clinic_ops.commands._common import load_settings, parse_args, parser, run
from clinic_ops.config import DB_FIELDS, STRIPE_FIELDS, Settings
from clinic_ops.db import connect
from clinic_ops.invoice_sync import sync_invoices
from clinic_ops.stores import PgInvoiceStore
from clinic_ops.stripe_client import StripeClient


async def sync_stripe_invoices(
    settings: Settings,
    patient_id: str | None,
    customer_id: str | None,
    dry_run: bool,
    limit: int | None,
) -> int:
    conn = await connect(settings, application_name="sync-stripe-invoices")
    try:
        async with StripeClient(
            settings.stripe_secret_key, settings.stripe_api_version
        ) as stripe:
            summary = await sync_invoices(
                stripe,
                PgInvoiceStore(conn),
                patient_id=patient_id,
                customer_id=customer_id,
                limit=limit,
                dry_run=dry_run,
            )
    finally:
        await conn.close()

    report.summary(summary.as_counts(), dry_run=dry_run)
    return 0


def main(argv: list[str] | None = None) -> int:
    p = parser("Mirror Stripe invoices into the Invoice table")
    p.add_argument("--patientId", dest="patient_id")
    p.add_argument("--customerId", dest="customer_id")
    p.add_argument("--limit", type=int)
    args = parse_args(p, argv)

    settings = load_settings(DB_FIELDS + STRIPE_FIELDS)
    if settings is None:
        return 1

    report.banner("Sync Stripe Invoices")
    report.mode_line(args.dry_run)
    return run(
        sync_stripe_invoices(
            settings, args.patient_id, args.customer_id, args.dry_run, args.limit
        )
    )


if __name__ == "__main__":
    raise SystemExit(main())
