"""Removal of duplicate invoices created for the same appointment.

Within each appointment the invoice created first is kept. Every other one is
withdrawn on the billing side according to its remote state and then deleted
locally. A failure on one duplicate is recorded and the run continues.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Callable, Hashable, Iterable, Optional, Sequence, TypeVar

from clinic_ops.models import Invoice
from clinic_ops.parse_client import ParseAPIError, ParseClient, pointer
from clinic_ops.stripe_client import StripeAPIError, StripeClient

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class DuplicateFailure:
    invoice_id: str
    stripe_invoice_id: Optional[str]
    error: str


@dataclass
class CleanupResult:
    dry_run: bool
    kept: list[Invoice] = field(default_factory=list)
    removed: list[Invoice] = field(default_factory=list)
    failures: list[DuplicateFailure] = field(default_factory=list)
    # Duplicates that would be removed in a dry run.
    pending: list[Invoice] = field(default_factory=list)


def group_duplicates(
    records: Iterable[T], key: Callable[[T], Optional[Hashable]]
) -> dict[Hashable, list[T]]:
    """Groups of two or more records sharing a non-empty key."""
    groups: dict[Hashable, list[T]] = defaultdict(list)
    for record in records:
        value = key(record)
        if value:
            groups[value].append(record)
    return {value: members for value, members in groups.items() if len(members) > 1}


def split_keeper(invoices: Sequence[Invoice]) -> tuple[Invoice, list[Invoice]]:
    """Return the invoice to keep and the ones to remove.

    The keeper is the earliest ``created_at``, ties broken by object id, so the
    choice does not depend on the order the records were fetched in.
    """
    ordered = sorted(invoices, key=lambda inv: (inv.created_at, inv.object_id))
    return ordered[0], ordered[1:]


async def fetch_invoices(
    parse: ParseClient, appointment_id: Optional[str] = None
) -> list[Invoice]:
    where = {"appointmentId": pointer("Appointment", appointment_id)} if appointment_id else None
    results = await parse.query(
        "Invoice",
        where=where,
        include=("appointmentId", "patientId"),
        order="createdAt",
    )
    return [Invoice.model_validate(obj) for obj in results]


async def withdraw_remote_invoice(stripe: StripeClient, stripe_invoice_id: str) -> str:
    """Delete a draft or void an open invoice. Returns the action taken."""
    remote = await stripe.retrieve_invoice(stripe_invoice_id)
    status = remote.get("status")
    if status == "draft":
        await stripe.delete_invoice(stripe_invoice_id)
        return "deleted"
    if status == "open":
        await stripe.void_invoice(stripe_invoice_id)
        return "voided"
    logger.warning(
        "Cannot void/delete invoice %s with status: %s", stripe_invoice_id, status
    )
    return "left"


async def resolve_duplicate_invoices(
    parse: ParseClient,
    stripe: StripeClient,
    invoices: Iterable[Invoice],
    dry_run: bool = False,
) -> CleanupResult:
    result = CleanupResult(dry_run=dry_run)
    groups = group_duplicates(invoices, key=lambda inv: inv.appointment_id)
    logger.info("Found %d appointment(s) with duplicate invoices", len(groups))

    for appointment_id, members in groups.items():
        keeper, duplicates = split_keeper(members)
        result.kept.append(keeper)
        logger.info(
            "Appointment %s: keeping %s (created %s)",
            appointment_id,
            keeper.object_id,
            keeper.created_at.isoformat(),
        )

        for duplicate in duplicates:
            if dry_run:
                result.pending.append(duplicate)
                continue
            try:
                if duplicate.stripe_invoice_id:
                    action = await withdraw_remote_invoice(stripe, duplicate.stripe_invoice_id)
                    logger.info("Stripe invoice %s %s", duplicate.stripe_invoice_id, action)
                await parse.delete("Invoice", duplicate.object_id)
            except (StripeAPIError, ParseAPIError) as exc:
                logger.error("Error deleting invoice %s: %s", duplicate.object_id, exc)
                result.failures.append(
                    DuplicateFailure(duplicate.object_id, duplicate.stripe_invoice_id, str(exc))
                )
                continue
            result.removed.append(duplicate)

    return result
