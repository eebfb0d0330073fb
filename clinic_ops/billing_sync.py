"""Mirror catalog items and prices into Stripe products and prices.

A catalog item is offered at several scopes (organization, ownership group,
location) but owns exactly one Stripe product, so offerings are reduced to
their distinct items before anything is sent. Each remote object is tagged
with the local id in its metadata and created with an idempotency key derived
from that id. Before creating, the sync looks for an object already carrying
the tag, so a run that created the remote object but failed to record its id
locally is healed on the next run instead of producing a duplicate. The local
id is written in its own transaction right after the remote call succeeds.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import AsyncContextManager, Optional, Protocol, Sequence

from clinic_ops.ids import generate_object_id
from clinic_ops.models import PriceRecord, ServiceOffering
from clinic_ops.stripe_client import StripeAPIError, StripeClient

logger = logging.getLogger(__name__)

SYNC_SOURCE = "synced-admin-portal-migration"


class CatalogStore(Protocol):
    def transaction(self) -> AsyncContextManager[object]: ...

    async def service_offerings(
        self, org_id: str, limit: Optional[int] = None
    ) -> Sequence[ServiceOffering]: ...

    async def item_prices(self, item_id: str) -> Sequence[PriceRecord]: ...

    async def set_product_id(self, item_id: str, product_id: str) -> None: ...

    async def set_price_id(self, item_price_id: str, price_id: str) -> None: ...


@dataclass
class SyncSummary:
    dry_run: bool
    items: int = 0
    products_created: int = 0
    products_adopted: int = 0
    products_updated: int = 0
    products_failed: int = 0
    prices_created: int = 0
    prices_adopted: int = 0
    prices_updated: int = 0
    prices_failed: int = 0
    errors: list[str] = field(default_factory=list)

    def as_counts(self) -> dict[str, int]:
        return {
            "Catalog items": self.items,
            "Products created": self.products_created,
            "Products adopted": self.products_adopted,
            "Products updated": self.products_updated,
            "Products failed": self.products_failed,
            "Prices created": self.prices_created,
            "Prices adopted": self.prices_adopted,
            "Prices updated": self.prices_updated,
            "Prices failed": self.prices_failed,
        }


def distinct_items(offerings: Sequence[ServiceOffering]) -> list[ServiceOffering]:
    """First offering of each catalog item, in input order."""
    items: dict[str, ServiceOffering] = {}
    for offering in offerings:
        items.setdefault(offering.item_id, offering)
    return list(items.values())


def product_metadata(item: ServiceOffering) -> dict[str, str]:
    # Item-level fields only; every offering of the item maps to this product.
    return {
        "itemId": item.item_id,
        "orgId": item.org_id,
        "source": SYNC_SOURCE,
    }


def price_metadata(price: PriceRecord, item: ServiceOffering) -> dict[str, str]:
    metadata = {
        "itemPriceId": price.object_id,
        "itemId": price.item_id or item.item_id,
        "durationMinutes": str(price.duration_minutes),
        "orgId": price.org_id or item.org_id,
        "source": SYNC_SOURCE,
        "priceType": price.scope,
    }
    scope_ids = {
        "staff": ("staffId", price.staff_id),
        "location": ("locationId", price.location_id),
        "ownershipGroup": ("ownershipGroupId", price.ownership_group_id),
    }
    if price.scope in scope_ids:
        key, value = scope_ids[price.scope]
        metadata[key] = value
    return metadata


async def _sync_product(
    stripe: StripeClient,
    store: CatalogStore,
    item: ServiceOffering,
    summary: SyncSummary,
) -> str:
    metadata = product_metadata(item)

    if item.stripe_product_id:
        if not summary.dry_run:
            await stripe.update_product(item.stripe_product_id, {"metadata": metadata})
        summary.products_updated += 1
        logger.info("Product updated: %s", item.stripe_product_id)
        return item.stripe_product_id

    if summary.dry_run:
        summary.products_created += 1
        return f"prod_DRY_RUN_{generate_object_id()}"

    existing = await stripe.find_product_by_metadata("itemId", item.item_id)
    if existing:
        product_id = existing["id"]
        summary.products_adopted += 1
        logger.warning(
            "Product %s already exists for item %s, recording it locally",
            product_id,
            item.item_id,
        )
    else:
        product = await stripe.create_product(
            {
                "name": item.item_name,
                "description": item.description or item.item_name,
                "metadata": metadata,
                "active": True,
            },
            idempotency_key=f"catalog-product-{item.item_id}",
        )
        product_id = product["id"]
        summary.products_created += 1
        logger.info("Product created: %s", product_id)

    async with store.transaction():
        await store.set_product_id(item.item_id, product_id)
    return product_id


async def _sync_price(
    stripe: StripeClient,
    store: CatalogStore,
    price: PriceRecord,
    item: ServiceOffering,
    product_id: str,
    summary: SyncSummary,
) -> None:
    metadata = price_metadata(price, item)

    if price.stripe_price_id:
        if not summary.dry_run:
            await stripe.update_price(price.stripe_price_id, {"metadata": metadata})
        summary.prices_updated += 1
        logger.info("Price updated: %s", price.stripe_price_id)
        return

    if summary.dry_run:
        summary.prices_created += 1
        return

    existing = await stripe.find_price_by_metadata("itemPriceId", price.object_id)
    if existing:
        price_id = existing["id"]
        summary.prices_adopted += 1
    else:
        created = await stripe.create_price(
            {
                "product": product_id,
                "unit_amount": int(price.price),
                "currency": (price.currency or "usd").lower(),
                "metadata": metadata,
                "active": True,
            },
            idempotency_key=f"catalog-price-{price.object_id}",
        )
        price_id = created["id"]
        summary.prices_created += 1
        logger.info(
            "Price created: %s (%s mins, $%.2f)",
            price_id,
            price.duration_minutes,
            price.price / 100,
        )

    async with store.transaction():
        await store.set_price_id(price.object_id, price_id)


async def sync_catalog(
    stripe: StripeClient,
    store: CatalogStore,
    org_id: str,
    limit: Optional[int] = None,
    dry_run: bool = False,
) -> SyncSummary:
    """Mirror every catalog item offered by ``org_id`` and its prices.

    A provider error on one product or price is logged and counted; the run
    moves on to the next record.
    """
    summary = SyncSummary(dry_run=dry_run)
    offerings = await store.service_offerings(org_id, limit)
    items = distinct_items(offerings)
    summary.items = len(items)
    logger.info(
        "Found %d service offering(s) for %d catalog item(s)", len(offerings), len(items)
    )

    for item in items:
        try:
            product_id = await _sync_product(stripe, store, item, summary)
        except StripeAPIError as exc:
            summary.products_failed += 1
            summary.errors.append(f"{item.item_name}: {exc.message}")
            logger.error("Error processing product %s: %s", item.item_name, exc.message)
            continue

        for price in await store.item_prices(item.item_id):
            try:
                await _sync_price(stripe, store, price, item, product_id, summary)
            except StripeAPIError as exc:
                summary.prices_failed += 1
                summary.errors.append(f"{item.item_name} price {price.object_id}: {exc.message}")
                logger.error("Error syncing price %s: %s", price.object_id, exc.message)

    return summary
