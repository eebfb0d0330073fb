"""Tests for the Parse Server REST client."""

from __future__ import annotations

import json
import re

import pytest

from clinic_ops.parse_client import ParseAPIError, ParseClient, pointer

BASE = "http://parse.test/parse"


@pytest.fixture
def parse() -> ParseClient:
    return ParseClient(BASE, "app-id", "master-key")


@pytest.mark.asyncio
async def test_query_sends_master_key_and_encoded_where(parse: ParseClient, httpx_mock):
    httpx_mock.add_response(
        url=re.compile(rf"{re.escape(BASE)}/classes/Invoice\?.*"),
        method="GET",
        json={"results": [{"objectId": "inv1"}]},
    )

    results = await parse.query(
        "Invoice",
        where={"appointmentId": pointer("Appointment", "ap1")},
        include=("appointmentId", "patientId"),
        order="createdAt",
    )

    assert results == [{"objectId": "inv1"}]
    req = httpx_mock.get_request()
    assert req.headers["X-Parse-Application-Id"] == "app-id"
    assert req.headers["X-Parse-Master-Key"] == "master-key"
    assert json.loads(req.url.params["where"]) == {
        "appointmentId": {"__type": "Pointer", "className": "Appointment", "objectId": "ap1"}
    }
    assert req.url.params["include"] == "appointmentId,patientId"
    assert req.url.params["order"] == "createdAt"
    assert req.url.params["limit"] == "1000"


@pytest.mark.asyncio
async def test_first_limits_to_one(parse: ParseClient, httpx_mock):
    httpx_mock.add_response(
        url=re.compile(rf"{re.escape(BASE)}/classes/Item_Price\?.*"),
        json={"results": []},
    )

    assert await parse.first("Item_Price") is None
    assert httpx_mock.get_request().url.params["limit"] == "1"


@pytest.mark.asyncio
async def test_update_puts_json(parse: ParseClient, httpx_mock):
    httpx_mock.add_response(
        url=f"{BASE}/classes/Appointment/ap1",
        method="PUT",
        json={"updatedAt": "2025-01-01T00:00:00.000Z"},
    )

    await parse.update("Appointment", "ap1", {"itemPriceId": pointer("Item_Price", "ip1")})

    body = json.loads(httpx_mock.get_request().content)
    assert body["itemPriceId"]["objectId"] == "ip1"


@pytest.mark.asyncio
async def test_error_carries_parse_message(parse: ParseClient, httpx_mock):
    httpx_mock.add_response(
        url=f"{BASE}/classes/Invoice/missing",
        method="DELETE",
        status_code=404,
        json={"code": 101, "error": "Object not found."},
    )

    with pytest.raises(ParseAPIError, match="Object not found") as exc_info:
        await parse.delete("Invoice", "missing")
    assert exc_info.value.code == 101
    assert exc_info.value.status_code == 404
