"""
Billing tools: invoices and self-service refunds.

Every lookup tries the user's invoices in the database first and then the
shared demo invoice table, so the billing agent stays useful on an empty
database.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

import asyncpg

from pydantic import BaseModel, Field

from core.constants import REFUND_WINDOW_DAYS
from tools.fallback_data import FallbackInvoiceTable
from tools.registry import LookupTier, NoArguments, Tool, two_tier_lookup

_INVOICE_COLUMNS = "id, invoice_number, amount, status, payment_method, refund_status, created_at, due_date"

#: Process-wide demo invoice table (refunds mutate it in memory).
default_invoice_table = FallbackInvoiceTable()


class InvoiceNumberArgs(BaseModel):
    invoice_number: str = Field(description="The invoice number (e.g. INV-2024-001)")


def _as_datetime(value: datetime | str) -> datetime:
    parsed = value if isinstance(value, datetime) else datetime.fromisoformat(value)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def _invoice_to_dict(row: asyncpg.Record) -> dict[str, Any]:
    invoice = dict(row)
    invoice.pop("user_id", None)
    return invoice


def create_billing_tools(
    pool: asyncpg.Pool,
    user_id: UUID,
    *,
    fallback_table: FallbackInvoiceTable | None = None,
    now: Callable[[], datetime] = lambda: datetime.now(UTC),
) -> list[Tool]:
    """Build the billing tool set bound to ``user_id``."""
    fallback = fallback_table if fallback_table is not None else default_invoice_table

    async def fetch_invoice(invoice_number: str) -> dict[str, Any] | None:
        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {_INVOICE_COLUMNS} FROM invoices WHERE invoice_number = $1 AND user_id = $2",
                invoice_number,
                user_id,
            )
        return _invoice_to_dict(row) if row else None

    async def fetch_user_invoices() -> list[dict[str, Any]]:
        async with pool.acquire() as conn:
            rows = await conn.fetch(
                f"SELECT {_INVOICE_COLUMNS} FROM invoices WHERE user_id = $1 ORDER BY created_at DESC",
                user_id,
            )
        return [_invoice_to_dict(row) for row in rows]

    async def fetch_latest_invoice() -> dict[str, Any] | None:
        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {_INVOICE_COLUMNS} FROM invoices WHERE user_id = $1 ORDER BY created_at DESC LIMIT 1",
                user_id,
            )
        return _invoice_to_dict(row) if row else None

    async def get_invoice_status(args: InvoiceNumberArgs) -> dict[str, Any]:
        result = await two_tier_lookup(
            "invoices",
            lambda: fetch_invoice(args.invoice_number),
            lambda: fallback.get(args.invoice_number),
        )
        if result.value is None:
            return {"error": "Invoice not found"}
        return result.value

    async def list_invoices(args: NoArguments) -> list[dict[str, Any]]:
        result = await two_tier_lookup("invoices", fetch_user_invoices, fallback.all)
        return result.value or []

    async def get_last_invoice(args: NoArguments) -> dict[str, Any]:
        result = await two_tier_lookup("invoices", fetch_latest_invoice, fallback.latest)
        if result.value is None:
            return {"message": "No invoices found"}
        return result.value

    async def request_refund(args: InvoiceNumberArgs) -> dict[str, Any]:
        result = await two_tier_lookup(
            "invoices",
            lambda: fetch_invoice(args.invoice_number),
            lambda: fallback.get(args.invoice_number),
        )
        invoice = result.value
        if invoice is None:
            return {"error": "Invoice not found"}

        if invoice["status"] != "paid":
            return {"error": f"Cannot refund invoice with status: {invoice['status']}"}
        if invoice["refund_status"] != "none":
            return {"error": f"Refund status is already: {invoice['refund_status']}"}

        days_since = (now() - _as_datetime(invoice["created_at"])).total_seconds() / 86400
        if days_since > REFUND_WINDOW_DAYS:
            return {
                "error": f"Refund policy exceeded ({REFUND_WINDOW_DAYS} days). Please contact human support.",
                "needs_human_assistance": True,
            }

        if result.tier is LookupTier.PRIMARY:
            async with pool.acquire() as conn:
                await conn.execute("UPDATE invoices SET refund_status = 'requested' WHERE id = $1", invoice["id"])
        else:
            fallback.set_refund_status(invoice["invoice_number"], "requested")

        return {
            "message": "Refund request submitted successfully.",
            "invoice_number": invoice["invoice_number"],
            "amount": invoice["amount"],
            "refund_status": "requested",
        }

    return [
        Tool(
            "get_invoice_status",
            "Get the status and details of a specific invoice",
            InvoiceNumberArgs,
            get_invoice_status,
        ),
        Tool("list_invoices", "List recent invoices for the user", NoArguments, list_invoices),
        Tool("get_last_invoice", "Get the most recent invoice for the user", NoArguments, get_last_invoice),
        Tool(
            "request_refund",
            f"Request a refund for an invoice. Refund policy: requests must be made within "
            f"{REFUND_WINDOW_DAYS} days of payment.",
            InvoiceNumberArgs,
            request_refund,
        ),
    ]
