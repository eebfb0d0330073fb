"""Tests for the typed record views."""

from __future__ import annotations

from datetime import datetime, timezone

from clinic_ops.models import Appointment, Invoice, PriceRecord


def test_invoice_from_parse_object():
    invoice = Invoice.model_validate(
        {
            "objectId": "inv1",
            "createdAt": "2025-01-02T03:04:05.000Z",
            "appointmentId": {"__type": "Pointer", "className": "Appointment", "objectId": "ap1"},
            "patientId": {"objectId": "pt1", "firstName": "Ada"},
            "stripeInvoiceId": "in_1",
            "total": 12500,
        }
    )

    assert invoice.appointment_id == "ap1"
    assert invoice.patient_id == "pt1"
    assert invoice.created_at == datetime(2025, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    assert invoice.total_display == "$125.00"


def test_invoice_parse_date_dict():
    invoice = Invoice.model_validate(
        {"objectId": "i", "createdAt": {"__type": "Date", "iso": "2025-01-02T00:00:00Z"}}
    )

    assert invoice.created_at.year == 2025


def test_price_scope_prefers_most_specific():
    assert PriceRecord(object_id="p").scope == "org"
    assert PriceRecord(object_id="p", ownership_group_id="og").scope == "ownershipGroup"
    assert PriceRecord(object_id="p", ownership_group_id="og", location_id="l").scope == "location"
    assert PriceRecord(object_id="p", location_id="l", staff_id="s").scope == "staff"


def test_appointment_from_included_offering():
    appointment = Appointment.from_parse(
        {
            "objectId": "ap1",
            "serviceOfferingId": {
                "objectId": "so1",
                "itemId": {"objectId": "it1", "itemName": "Gait Training"},
            },
        }
    )

    assert appointment.service_offering_id == "so1"
    assert appointment.item_id == "it1"
    assert appointment.item_name == "Gait Training"
    assert appointment.item_price_id is None


def test_appointment_without_offering():
    appointment = Appointment.from_parse({"objectId": "ap2"})

    assert appointment.item_id is None
