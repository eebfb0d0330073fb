"""PostgreSQL-backed stores for the reconciliation and sync procedures.

Table and column names are Parse class names fixed in code, never operator
input, so they are interpolated as quoted identifiers.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

import asyncpg

from clinic_ops.db import affected_rows, quote_ident as q
from clinic_ops.models import Offering, Patient, PriceRecord, ServiceOffering
from clinic_ops.reconcile import normalize_name


@dataclass(frozen=True)
class LinkTable:
    """Where the nullable link lives and where canonical names come from."""

    table: str
    name_column: str
    link_column: str
    canonical_table: str
    canonical_name_column: str = "name"
    key_column: str = "objectId"
    scope_column: Optional[str] = None


OFFERING_PRESET_LINK = LinkTable(
    table="Discipline_Offering",
    name_column="customName",
    link_column="presetId",
    canonical_table="Discipline_Preset",
    scope_column="orgId",
)


class PgLinkStore:
    def __init__(
        self,
        conn: asyncpg.Connection,
        links: LinkTable = OFFERING_PRESET_LINK,
        scope: Optional[str] = None,
    ) -> None:
        self.conn = conn
        self.links = links
        self.scope = scope

    def transaction(self):
        return self.conn.transaction()

    def _where_unlinked(self) -> tuple[str, list[Any]]:
        clause = f"{q(self.links.link_column)} IS NULL"
        if self.scope and self.links.scope_column:
            return f"{clause} AND {q(self.links.scope_column)} = $1", [self.scope]
        return clause, []

    async def find_unlinked(self) -> list[Offering]:
        where, args = self._where_unlinked()
        rows = await self.conn.fetch(
            f"SELECT {q(self.links.key_column)} AS \"objectId\", "
            f"{q(self.links.name_column)} AS \"customName\" "
            f"FROM {q(self.links.table)} WHERE {where} "
            f"ORDER BY {q(self.links.key_column)}",
            *args,
        )
        return [Offering.from_row(row) for row in rows]

    async def canonical_ids(self) -> dict[str, str]:
        rows = await self.conn.fetch(
            f"SELECT {q(self.links.key_column)} AS id, "
            f"{q(self.links.canonical_name_column)} AS name "
            f"FROM {q(self.links.canonical_table)}"
        )
        return {normalize_name(row["name"]): row["id"] for row in rows}

    async def link(self, record_id: str, canonical_id: str) -> None:
        await self.conn.execute(
            f"UPDATE {q(self.links.table)} "
            f"SET {q(self.links.link_column)} = $1, \"updatedAt\" = NOW() "
            f"WHERE {q(self.links.key_column)} = $2",
            canonical_id,
            record_id,
        )

    async def count_linked(self) -> int:
        clause = f"{q(self.links.link_column)} IS NOT NULL"
        args: list[Any] = []
        if self.scope and self.links.scope_column:
            clause += f" AND {q(self.links.scope_column)} = $1"
            args.append(self.scope)
        return await self.conn.fetchval(
            f"SELECT COUNT(*) FROM {q(self.links.table)} WHERE {clause}", *args
        )


class PgPriceStore:
    """``Item_Price`` rows for the minor-unit repair."""

    def __init__(self, conn: asyncpg.Connection) -> None:
        self.conn = conn

    def transaction(self):
        return self.conn.transaction()

    async def find_below(self, threshold: int) -> list[PriceRecord]:
        rows = await self.conn.fetch(
            'SELECT "objectId", "price", "durationMinutes" FROM "Item_Price" '
            'WHERE "price" < $1 ORDER BY "price" ASC',
            threshold,
        )
        return [PriceRecord.from_row(row) for row in rows]

    async def set_price(self, record_id: str, amount: int) -> None:
        await self.conn.execute(
            'UPDATE "Item_Price" SET "price" = $1, "updatedAt" = NOW() '
            'WHERE "objectId" = $2',
            amount,
            record_id,
        )

    async def lowest(self, limit: int = 10) -> list[PriceRecord]:
        rows = await self.conn.fetch(
            'SELECT "objectId", "price", "durationMinutes" FROM "Item_Price" '
            'ORDER BY "price" ASC LIMIT $1',
            limit,
        )
        return [PriceRecord.from_row(row) for row in rows]


_SERVICE_OFFERINGS_SQL = """
    SELECT
        so."objectId",
        so."orgId",
        so."ownershipGroupId",
        so."locationId",
        so."disciplineOfferingId",
        so."itemId",
        ic."itemName",
        ic."description",
        ic."stripeProductId"
    FROM "Service_Offering" so
    INNER JOIN "Items_Catalog" ic ON so."itemId" = ic."objectId"
    WHERE so."orgId" = $1
      AND ic."type" = 'service'
      AND ic."itemName" NOT LIKE '%Staff Placeholder%'
    ORDER BY so."objectId"
"""


class PgCatalogStore:
    """Catalog items, offerings and prices mirrored into the billing provider."""

    def __init__(self, conn: asyncpg.Connection) -> None:
        self.conn = conn

    def transaction(self):
        return self.conn.transaction()

    async def service_offerings(
        self, org_id: str, limit: Optional[int] = None
    ) -> list[ServiceOffering]:
        sql = _SERVICE_OFFERINGS_SQL
        args: list[Any] = [org_id]
        if limit:
            sql += " LIMIT $2"
            args.append(limit)
        rows = await self.conn.fetch(sql, *args)
        return [ServiceOffering.from_row(row) for row in rows]

    async def item_prices(self, item_id: str) -> list[PriceRecord]:
        rows = await self.conn.fetch(
            'SELECT "objectId", "price", "currency", "durationMinutes", "itemId", '
            '"orgId", "ownershipGroupId", "locationId", "staffId", "stripePriceId" '
            'FROM "Item_Price" WHERE "itemId" = $1 ORDER BY "durationMinutes"',
            item_id,
        )
        return [PriceRecord.from_row(row) for row in rows]

    async def set_product_id(self, item_id: str, product_id: str) -> None:
        await self.conn.execute(
            'UPDATE "Items_Catalog" SET "stripeProductId" = $1, "updatedAt" = NOW() '
            'WHERE "objectId" = $2',
            product_id,
            item_id,
        )

    async def set_price_id(self, item_price_id: str, price_id: str) -> None:
        await self.conn.execute(
            'UPDATE "Item_Price" SET "stripePriceId" = $1, "updatedAt" = NOW() '
            'WHERE "objectId" = $2',
            price_id,
            item_price_id,
        )


INVOICE_READ_PERMISSIONS = ["role:Admin", "role:Staff"]
INVOICE_WRITE_PERMISSIONS = ["role:Admin"]


class PgInvoiceStore:
    """Local ``Invoice`` and ``Patient`` rows for the billing invoice mirror."""

    def __init__(self, conn: asyncpg.Connection) -> None:
        self.conn = conn

    async def link_patient_customer(self, patient_id: str, customer_id: str) -> bool:
        status = await self.conn.execute(
            'UPDATE "Patient" SET "stripeCustomerId" = $1 WHERE "objectId" = $2',
            customer_id,
            patient_id,
        )
        return affected_rows(status) > 0

    async def patients_with_customer(
        self, patient_id: Optional[str] = None
    ) -> list[Patient]:
        sql = (
            'SELECT "objectId", "firstName", "lastName", "email", "stripeCustomerId" '
            'FROM "Patient" WHERE "stripeCustomerId" IS NOT NULL'
        )
        args: list[Any] = []
        if patient_id:
            sql += ' AND "objectId" = $1'
            args.append(patient_id)
        rows = await self.conn.fetch(sql + ' ORDER BY "objectId"', *args)
        return [Patient.from_row(row) for row in rows]

    async def find_invoice_id(self, stripe_invoice_id: str) -> Optional[str]:
        return await self.conn.fetchval(
            'SELECT "objectId" FROM "Invoice" WHERE "stripeInvoiceId" = $1',
            stripe_invoice_id,
        )

    async def insert_invoice(self, object_id: str, record: Mapping[str, Any]) -> None:
        await self.conn.execute(
            """
            INSERT INTO "Invoice" (
                "objectId", "createdAt", "updatedAt", "_rperm", "_wperm",
                "patientId", "stripeInvoiceId", "status",
                "total", "amountPaid", "balance", "dateBilled", "updatedBy"
            )
            VALUES ($1, NOW(), NOW(), $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
            """,
            object_id,
            INVOICE_READ_PERMISSIONS,
            INVOICE_WRITE_PERMISSIONS,
            record["patientId"],
            record["stripeInvoiceId"],
            record["status"],
            record["amountDue"],
            record["amountPaid"],
            record["amountRemaining"],
            record["invoiceDate"],
            record["updatedBy"],
        )

    async def update_invoice(self, object_id: str, record: Mapping[str, Any]) -> None:
        await self.conn.execute(
            """
            UPDATE "Invoice" SET
                "updatedAt" = NOW(),
                "status" = $1,
                "total" = $2,
                "amountPaid" = $3,
                "balance" = $4,
                "dateBilled" = $5,
                "updatedBy" = $6
            WHERE "objectId" = $7
            """,
            record["status"],
            record["amountDue"],
            record["amountPaid"],
            record["amountRemaining"],
            record["invoiceDate"],
            record["updatedBy"],
            object_id,
        )

