"""Tests for mirroring Stripe invoices locally."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any
from unittest.mock import AsyncMock

import pytest

from clinic_ops.invoice_sync import build_invoice_record, map_invoice_status, sync_invoices
from clinic_ops.models import Patient
from fakes import FakeInvoiceStore


def _stripe_invoice(invoice_id: str, **overrides: Any) -> dict[str, Any]:
    data = {
        "id": invoice_id,
        "customer": "cus_1",
        "status": "open",
        "amount_due": 12500,
        "amount_paid": 0,
        "amount_remaining": 12500,
        "currency": "usd",
        "created": 1735689600,
        "status_transitions": {"finalized_at": 1735776000},
        "payment_intent": {"id": "pi_1"},
        "lines": {"data": [{"description": "Dry Needling"}]},
        "metadata": {},
    }
    data.update(overrides)
    return data


def _patient(**overrides: Any) -> Patient:
    data = {"objectId": "pt1", "firstName": "Ada", "lastName": "Lovelace", "stripeCustomerId": "cus_1"}
    data.update(overrides)
    return Patient.model_validate(data)


@pytest.mark.parametrize(
    ("status", "amount", "metadata", "expected"),
    [
        ("paid", 5000, {}, "paid"),
        ("open", 5000, {}, "submitted"),
        ("draft", 5000, {"submittedToInsurance": "true"}, "submitted"),
        ("open", 5000, {"insuranceRejected": "true"}, "rejected"),
        ("paid", 0, {}, "no_charge"),
        ("paid", 5000, {"noCharge": "true"}, "no_charge"),
        ("draft", 5000, {}, "no_charge"),
    ],
)
def test_map_invoice_status(status, amount, metadata, expected):
    assert map_invoice_status(status, amount, metadata) == expected


def test_build_record():
    record = build_invoice_record(_patient(), _stripe_invoice("in_1"))

    assert record["patientId"] == "pt1"
    assert record["patientNameSnapshot"] == "Ada Lovelace"
    assert record["stripePaymentIntentId"] == "pi_1"
    assert record["serviceDescription"] == "Dry Needling"
    assert record["invoiceDate"] == datetime(2025, 1, 2, tzinfo=timezone.utc)
    assert record["status"] == "submitted"


@pytest.mark.asyncio
async def test_inserts_then_updates_by_stripe_id():
    store = FakeInvoiceStore([_patient()])
    stripe = AsyncMock()
    stripe.list_invoices.return_value = [_stripe_invoice("in_1")]

    first = await sync_invoices(stripe, store)
    stripe.list_invoices.return_value = [_stripe_invoice("in_1", status="paid", amount_paid=12500)]
    second = await sync_invoices(stripe, store)

    assert first.inserted == 1
    assert second.updated == 1
    assert len(store.invoices) == 1
    (record,) = store.invoices.values()
    assert record["status"] == "paid"


@pytest.mark.asyncio
async def test_links_patient_before_listing():
    store = FakeInvoiceStore([_patient(stripeCustomerId=None)])
    stripe = AsyncMock()
    stripe.list_invoices.return_value = []

    summary = await sync_invoices(stripe, store, patient_id="pt1", customer_id="cus_9", limit=5)

    stripe.list_invoices.assert_awaited_once_with("cus_9", limit=5)
    assert summary.patients == 1


@pytest.mark.asyncio
async def test_dry_run_writes_nothing():
    store = FakeInvoiceStore([_patient()])
    stripe = AsyncMock()
    stripe.list_invoices.return_value = [_stripe_invoice("in_1"), _stripe_invoice("in_2")]

    summary = await sync_invoices(stripe, store, dry_run=True)

    assert store.invoices == {}
    assert summary.fetched == 2
    assert summary.inserted == 0
