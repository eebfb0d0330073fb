"""Async client for the subset of the Stripe REST API the sync scripts use."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional
from urllib.parse import urlencode

import httpx

logger = logging.getLogger(__name__)

STRIPE_API_BASE = "https://api.stripe.com"
DEFAULT_API_VERSION = "2024-06-20"

# Stripe's maximum page size for list endpoints.
_PAGE_SIZE = 100


class StripeAPIError(Exception):
    """Raised when Stripe rejects a request. Carries Stripe's own message."""

    def __init__(
        self,
        status_code: int,
        message: str,
        error_type: Optional[str] = None,
        code: Optional[str] = None,
    ) -> None:
        self.status_code = status_code
        self.message = message
        self.error_type = error_type
        self.code = code
        super().__init__(f"Stripe request failed ({status_code}): {message}")


def _encode_value(name: str, value: Any) -> list[tuple[str, str]]:
    if value is None:
        return []
    if isinstance(value, Mapping):
        return encode_form(value, name)
    if isinstance(value, (list, tuple)):
        pairs: list[tuple[str, str]] = []
        for index, item in enumerate(value):
            pairs.extend(_encode_value(f"{name}[{index}]", item))
        return pairs
    if isinstance(value, bool):
        return [(name, "true" if value else "false")]
    return [(name, str(value))]


def encode_form(params: Mapping[str, Any], prefix: str = "") -> list[tuple[str, str]]:
    """Flatten nested params into Stripe's bracketed form encoding.

    Lists are indexed (``expand[0]``, ``items[0][price]``) the way the
    official client libraries encode them.
    """
    pairs: list[tuple[str, str]] = []
    for key, value in params.items():
        name = f"{prefix}[{key}]" if prefix else str(key)
        pairs.extend(_encode_value(name, value))
    return pairs


def search_literal(value: str) -> str:
    return "'" + value.replace("\\", "\\\\").replace("'", "\\'") + "'"


class StripeClient:
    """Async HTTP client for Stripe.

    Usage::

        async with StripeClient(secret_key) as stripe:
            product = await stripe.create_product({"name": "Dry Needling"})
    """

    def __init__(
        self,
        secret_key: str,
        api_version: str = DEFAULT_API_VERSION,
        base_url: str = STRIPE_API_BASE,
        timeout: float = 30.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers={
                "Authorization": f"Bearer {secret_key}",
                "Stripe-Version": api_version,
            },
        )

    # -- context manager -------------------------------------------------------

    async def __aenter__(self) -> StripeClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def close(self) -> None:
        await self._http.aclose()

    # -- HTTP helpers ----------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        idempotency_key: Optional[str] = None,
    ) -> Any:
        headers = {"Idempotency-Key": idempotency_key} if idempotency_key else None
        encoded = encode_form(params or {})

        logger.debug("%s %s%s", method, self.base_url, path)
        if method == "GET":
            resp = await self._http.get(path, params=encoded, headers=headers)
        elif method == "DELETE":
            resp = await self._http.delete(path, headers=headers)
        else:
            resp = await self._http.request(
                method,
                path,
                content=urlencode(encoded),
                headers={
                    **(headers or {}),
                    "Content-Type": "application/x-www-form-urlencoded",
                },
            )

        if resp.status_code >= 400:
            try:
                error = resp.json().get("error", {})
            except ValueError:
                error = {}
            message = error.get("message") or resp.text
            logger.error("Stripe %s %s failed (%s): %s", method, path, resp.status_code, message)
            raise StripeAPIError(
                resp.status_code, message, error.get("type"), error.get("code")
            )
        return resp.json()

    # -- products --------------------------------------------------------------

    async def create_product(
        self, params: Mapping[str, Any], idempotency_key: Optional[str] = None
    ) -> dict[str, Any]:
        return await self._request("POST", "/v1/products", params, idempotency_key)

    async def update_product(
        self, product_id: str, params: Mapping[str, Any]
    ) -> dict[str, Any]:
        return await self._request("POST", f"/v1/products/{product_id}", params)

    async def find_product_by_metadata(
        self, key: str, value: str
    ) -> Optional[dict[str, Any]]:
        """Return the first product whose metadata[key] equals value, if any."""
        payload = await self._request(
            "GET",
            "/v1/products/search",
            {"query": f"metadata[{search_literal(key)}]:{search_literal(value)}"},
        )
        data = payload.get("data") or []
        return data[0] if data else None

    # -- prices ----------------------------------------------------------------

    async def create_price(
        self, params: Mapping[str, Any], idempotency_key: Optional[str] = None
    ) -> dict[str, Any]:
        return await self._request("POST", "/v1/prices", params, idempotency_key)

    async def update_price(
        self, price_id: str, params: Mapping[str, Any]
    ) -> dict[str, Any]:
        return await self._request("POST", f"/v1/prices/{price_id}", params)

    async def find_price_by_metadata(
        self, key: str, value: str
    ) -> Optional[dict[str, Any]]:
        payload = await self._request(
            "GET",
            "/v1/prices/search",
            {"query": f"metadata[{search_literal(key)}]:{search_literal(value)}"},
        )
        data = payload.get("data") or []
        return data[0] if data else None

    # -- invoices --------------------------------------------------------------

    async def retrieve_invoice(self, invoice_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/v1/invoices/{invoice_id}")

    async def delete_invoice(self, invoice_id: str) -> dict[str, Any]:
        return await self._request("DELETE", f"/v1/invoices/{invoice_id}")

    async def void_invoice(self, invoice_id: str) -> dict[str, Any]:
        return await self._request("POST", f"/v1/invoices/{invoice_id}/void")

    async def list_invoices(
        self,
        customer_id: str,
        limit: Optional[int] = None,
        expand: tuple[str, ...] = ("data.payment_intent", "data.lines"),
    ) -> list[dict[str, Any]]:
        """All invoices of a customer, following pagination up to ``limit``."""
        invoices: list[dict[str, Any]] = []
        starting_after: Optional[str] = None
        while limit is None or len(invoices) < limit:
            page_size = _PAGE_SIZE if limit is None else min(limit - len(invoices), _PAGE_SIZE)
            payload = await self._request(
                "GET",
                "/v1/invoices",
                {
                    "customer": customer_id,
                    "limit": page_size,
                    "starting_after": starting_after,
                    "expand": list(expand),
                },
            )
            data = payload.get("data") or []
            invoices.extend(data)
            if not payload.get("has_more") or not data:
                break
            starting_after = data[-1]["id"]
        return invoices
