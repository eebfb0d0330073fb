"""Tests for the Stripe REST client."""

from __future__ import annotations

import re
from urllib.parse import parse_qsl

import pytest

from clinic_ops.stripe_client import StripeAPIError, StripeClient, encode_form

BASE = "https://stripe.test"


@pytest.fixture
def stripe() -> StripeClient:
    return StripeClient("sk_test_123", base_url=BASE)


def _form(request) -> list[tuple[str, str]]:
    return parse_qsl(request.content.decode())


def test_encode_form_nests_and_skips_none():
    pairs = encode_form(
        {
            "name": "Dry Needling",
            "metadata": {"itemId": "it1", "locationId": None},
            "active": True,
            "expand": ["data.lines"],
        }
    )

    assert pairs == [
        ("name", "Dry Needling"),
        ("metadata[itemId]", "it1"),
        ("active", "true"),
        ("expand[0]", "data.lines"),
    ]


def test_encode_form_indexes_lists_of_mappings():
    pairs = encode_form({"lines": [{"price": "price_1", "quantity": 2}, {"price": "price_2"}]})

    assert pairs == [
        ("lines[0][price]", "price_1"),
        ("lines[0][quantity]", "2"),
        ("lines[1][price]", "price_2"),
    ]


@pytest.mark.asyncio
async def test_create_product_sends_form_and_idempotency_key(stripe: StripeClient, httpx_mock):
    httpx_mock.add_response(url=f"{BASE}/v1/products", method="POST", json={"id": "prod_1"})

    product = await stripe.create_product(
        {"name": "Gait Training", "metadata": {"itemId": "it1"}},
        idempotency_key="catalog-product-it1",
    )

    assert product["id"] == "prod_1"
    req = httpx_mock.get_request()
    assert req.headers["Authorization"] == "Bearer sk_test_123"
    assert req.headers["Idempotency-Key"] == "catalog-product-it1"
    assert req.headers["Stripe-Version"] == "2024-06-20"
    assert ("metadata[itemId]", "it1") in _form(req)


@pytest.mark.asyncio
async def test_update_price_posts_metadata(stripe: StripeClient, httpx_mock):
    httpx_mock.add_response(url=f"{BASE}/v1/prices/price_1", method="POST", json={"id": "price_1"})

    await stripe.update_price("price_1", {"metadata": {"priceType": "location"}})

    req = httpx_mock.get_request()
    assert "Idempotency-Key" not in req.headers
    assert _form(req) == [("metadata[priceType]", "location")]


@pytest.mark.asyncio
async def test_find_product_by_metadata(stripe: StripeClient, httpx_mock):
    httpx_mock.add_response(
        url=re.compile(rf"{re.escape(BASE)}/v1/products/search\?.*"),
        json={"data": [{"id": "prod_9"}]},
    )

    found = await stripe.find_product_by_metadata("itemId", "it'1")

    assert found == {"id": "prod_9"}
    query = httpx_mock.get_request().url.params["query"]
    assert query == "metadata['itemId']:'it\\'1'"


@pytest.mark.asyncio
async def test_find_price_none_when_empty(stripe: StripeClient, httpx_mock):
    httpx_mock.add_response(
        url=re.compile(rf"{re.escape(BASE)}/v1/prices/search\?.*"),
        json={"data": []},
    )

    assert await stripe.find_price_by_metadata("itemPriceId", "ip1") is None


@pytest.mark.asyncio
async def test_list_invoices_follows_pages(stripe: StripeClient, httpx_mock):
    pattern = re.compile(rf"{re.escape(BASE)}/v1/invoices\?.*")
    httpx_mock.add_response(
        url=pattern, json={"data": [{"id": "in_1"}, {"id": "in_2"}], "has_more": True}
    )
    httpx_mock.add_response(url=pattern, json={"data": [{"id": "in_3"}], "has_more": False})

    invoices = await stripe.list_invoices("cus_1")

    assert [inv["id"] for inv in invoices] == ["in_1", "in_2", "in_3"]
    first, second = httpx_mock.get_requests()
    assert first.url.params["customer"] == "cus_1"
    assert first.url.params["expand[0]"] == "data.payment_intent"
    assert first.url.params["expand[1]"] == "data.lines"
    assert "starting_after" not in first.url.params
    assert second.url.params["starting_after"] == "in_2"


@pytest.mark.asyncio
async def test_list_invoices_respects_limit(stripe: StripeClient, httpx_mock):
    httpx_mock.add_response(
        url=re.compile(rf"{re.escape(BASE)}/v1/invoices\?.*"),
        json={"data": [{"id": "in_1"}, {"id": "in_2"}], "has_more": True},
    )

    invoices = await stripe.list_invoices("cus_1", limit=2)

    assert len(invoices) == 2
    assert httpx_mock.get_request().url.params["limit"] == "2"


@pytest.mark.asyncio
async def test_void_and_delete_invoice(stripe: StripeClient, httpx_mock):
    httpx_mock.add_response(url=f"{BASE}/v1/invoices/in_1/void", method="POST", json={"id": "in_1"})
    httpx_mock.add_response(url=f"{BASE}/v1/invoices/in_2", method="DELETE", json={"deleted": True})

    await stripe.void_invoice("in_1")
    await stripe.delete_invoice("in_2")

    assert [r.method for r in httpx_mock.get_requests()] == ["POST", "DELETE"]


@pytest.mark.asyncio
async def test_error_carries_stripe_message(stripe: StripeClient, httpx_mock):
    httpx_mock.add_response(
        url=f"{BASE}/v1/prices",
        method="POST",
        status_code=400,
        json={"error": {"type": "invalid_request_error", "message": "No such product: 'prod_x'"}},
    )

    with pytest.raises(StripeAPIError, match="No such product") as exc_info:
        await stripe.create_price({"product": "prod_x"})
    assert exc_info.value.error_type == "invalid_request_error"
    assert exc_info.value.message == "No such product: 'prod_x'"
