"""Mirror Stripe invoices into the local Invoice table."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional, Protocol, Sequence

from clinic_ops.ids import insert_with_new_id
from clinic_ops.models import Patient
from clinic_ops.stripe_client import StripeClient

logger = logging.getLogger(__name__)

SYNCED_BY = "clinic_ops.invoice_sync"


class InvoiceStore(Protocol):
    async def link_patient_customer(self, patient_id: str, customer_id: str) -> bool: ...

    async def patients_with_customer(
        self, patient_id: Optional[str] = None
    ) -> Sequence[Patient]: ...

    async def find_invoice_id(self, stripe_invoice_id: str) -> Optional[str]: ...

    async def insert_invoice(self, object_id: str, record: dict[str, Any]) -> None: ...

    async def update_invoice(self, object_id: str, record: dict[str, Any]) -> None: ...


@dataclass
class InvoiceSyncSummary:
    dry_run: bool
    patients: int = 0
    fetched: int = 0
    inserted: int = 0
    updated: int = 0
    skipped_patients: int = 0

    def as_counts(self) -> dict[str, int]:
        return {
            "Patients processed": self.patients,
            "Invoices fetched": self.fetched,
            "Inserted": self.inserted,
            "Updated": self.updated,
            "Patients skipped": self.skipped_patients,
        }


def map_invoice_status(
    stripe_status: Optional[str], amount_due: int, metadata: Optional[dict[str, Any]] = None
) -> str:
    metadata = metadata or {}
    if metadata.get("noCharge") or amount_due == 0:
        return "no_charge"
    if stripe_status == "paid":
        return "paid"
    if metadata.get("insuranceRejected"):
        return "rejected"
    if metadata.get("submittedToInsurance") or stripe_status == "open":
        return "submitted"
    return "no_charge"


def _timestamp(value: Optional[int]) -> Optional[datetime]:
    return datetime.fromtimestamp(value, tz=timezone.utc) if value else None


def build_invoice_record(patient: Patient, invoice: dict[str, Any]) -> dict[str, Any]:
    metadata = invoice.get("metadata") or {}
    lines = (invoice.get("lines") or {}).get("data") or []
    created_at = _timestamp(invoice.get("created"))
    finalized_at = _timestamp((invoice.get("status_transitions") or {}).get("finalized_at"))
    payment_intent = invoice.get("payment_intent")
    if isinstance(payment_intent, dict):
        payment_intent = payment_intent.get("id")

    return {
        "patientId": patient.object_id,
        "patientNameSnapshot": patient.full_name,
        "stripeCustomerId": invoice.get("customer"),
        "stripeInvoiceId": invoice["id"],
        "stripePaymentIntentId": payment_intent,
        "status": map_invoice_status(invoice.get("status"), invoice.get("amount_due", 0), metadata),
        "stripeStatus": invoice.get("status"),
        "amountDue": invoice.get("amount_due", 0),
        "amountPaid": invoice.get("amount_paid", 0),
        "amountRemaining": invoice.get("amount_remaining", 0),
        "currency": invoice.get("currency"),
        "invoiceNumber": invoice.get("number"),
        "serviceDescription": (lines[0].get("description") if lines else None)
        or metadata.get("serviceName"),
        "invoiceDate": finalized_at or created_at,
        "dueDate": _timestamp(invoice.get("due_date")),
        "updatedBy": SYNCED_BY,
    }


async def upsert_invoice(store: InvoiceStore, record: dict[str, Any]) -> bool:
    """Write one invoice keyed by its Stripe id. Returns True for an update."""
    object_id = await store.find_invoice_id(record["stripeInvoiceId"])
    if object_id:
        await store.update_invoice(object_id, record)
        return True
    await insert_with_new_id(lambda new_id: store.insert_invoice(new_id, record))
    return False


async def sync_invoices(
    stripe: StripeClient,
    store: InvoiceStore,
    patient_id: Optional[str] = None,
    customer_id: Optional[str] = None,
    limit: Optional[int] = None,
    dry_run: bool = False,
) -> InvoiceSyncSummary:
    summary = InvoiceSyncSummary(dry_run=dry_run)

    if patient_id and customer_id:
        if dry_run:
            logger.info("Would link patient %s to customer %s", patient_id, customer_id)
        elif await store.link_patient_customer(patient_id, customer_id):
            logger.info("Linked patient %s to Stripe customer %s", patient_id, customer_id)
        else:
            logger.warning("Patient %s not found while setting stripeCustomerId", patient_id)

    patients = await store.patients_with_customer(patient_id)
    if patient_id and not patients:
        logger.warning("No patient %s with a stripeCustomerId", patient_id)
    summary.patients = len(patients)

    for patient in patients:
        if not patient.stripe_customer_id:
            summary.skipped_patients += 1
            continue

        invoices = await stripe.list_invoices(patient.stripe_customer_id, limit=limit)
        logger.info(
            "Patient %s (%s): %d invoice(s)", patient.object_id, patient.full_name, len(invoices)
        )
        summary.fetched += len(invoices)

        for invoice in invoices:
            record = build_invoice_record(patient, invoice)
            if dry_run:
                logger.info(
                    "Would upsert invoice %s [%s]", record["stripeInvoiceId"], record["status"]
                )
                continue
            if await upsert_invoice(store, record):
                summary.updated += 1
            else:
                summary.inserted += 1

    return summary
