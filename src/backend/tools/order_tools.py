"""
Order tools: lookup, tracking and cancellation scoped to the calling user.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

import asyncpg

from pydantic import BaseModel, Field

from core.constants import NON_CANCELLABLE_ORDER_STATUSES
from tools.registry import NoArguments, Tool

_ORDER_COLUMNS = (
    "id, order_number, status, total_amount, items, delivery_status, tracking_number, created_at, updated_at"
)

NO_ORDERS_MESSAGE = "No orders found for your account."


class OrderNumberArgs(BaseModel):
    order_number: str = Field(description="The order number to look up (e.g. ORD-2024-8891)")


class ProductNameArgs(BaseModel):
    product_name: str = Field(description="The product name to search for")


def _order_to_dict(row: asyncpg.Record) -> dict[str, Any]:
    order = dict(row)
    order.pop("user_id", None)
    return order


def create_order_tools(pool: asyncpg.Pool, user_id: UUID) -> list[Tool]:
    """Build the order tool set bound to ``user_id``."""

    async def fetch_order(order_number: str) -> asyncpg.Record | None:
        async with pool.acquire() as conn:
            return await conn.fetchrow(
                f"SELECT {_ORDER_COLUMNS} FROM orders WHERE order_number = $1 AND user_id = $2",
                order_number,
                user_id,
            )

    async def fetch_user_orders() -> list[asyncpg.Record]:
        async with pool.acquire() as conn:
            return await conn.fetch(
                f"SELECT {_ORDER_COLUMNS} FROM orders WHERE user_id = $1 ORDER BY created_at DESC",
                user_id,
            )

    async def get_order_by_id(args: OrderNumberArgs) -> dict[str, Any]:
        row = await fetch_order(args.order_number)
        if row is None:
            return {
                "error": f"Order {args.order_number} not found. Please check the order number and try again."
            }
        return _order_to_dict(row)

    async def get_orders_by_user(args: NoArguments) -> dict[str, Any] | list[dict[str, Any]]:
        rows = await fetch_user_orders()
        if not rows:
            return {"message": NO_ORDERS_MESSAGE}
        return [_order_to_dict(row) for row in rows]

    async def get_latest_order(args: NoArguments) -> dict[str, Any]:
        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {_ORDER_COLUMNS} FROM orders WHERE user_id = $1 ORDER BY created_at DESC LIMIT 1",
                user_id,
            )
        if row is None:
            return {"message": NO_ORDERS_MESSAGE}
        return _order_to_dict(row)

    async def get_delivery_status(args: OrderNumberArgs) -> dict[str, Any]:
        row = await fetch_order(args.order_number)
        if row is None:
            return {"error": f"Order {args.order_number} not found."}
        return {
            "order_number": row["order_number"],
            "status": row["status"],
            "delivery_status": row["delivery_status"] or "Not available",
            "tracking_number": row["tracking_number"] or "Not available",
        }

    async def cancel_order(args: OrderNumberArgs) -> dict[str, Any]:
        order_number = args.order_number
        row = await fetch_order(order_number)
        if row is None:
            return {"error": f"Order {order_number} not found."}

        status = row["status"]
        if status == "cancelled":
            return {"message": f"Order {order_number} has already been cancelled."}
        if status in NON_CANCELLABLE_ORDER_STATUSES:
            return {
                "error": (
                    f'Order {order_number} has status "{status}" and cannot be cancelled. '
                    "A human agent may need to assist with this. "
                    "Please contact support for further assistance with returns/refunds."
                ),
                "needs_human_assistance": True,
            }

        async with pool.acquire() as conn:
            await conn.execute(
                "UPDATE orders SET status = 'cancelled', updated_at = NOW() WHERE id = $1",
                row["id"],
            )

        return {
            "message": f"Order {order_number} has been successfully cancelled.",
            "order_number": row["order_number"],
            "previous_status": status,
            "new_status": "cancelled",
            "items": row["items"],
            "total_amount": row["total_amount"],
        }

    async def get_order_by_product_name(args: ProductNameArgs) -> dict[str, Any] | list[dict[str, Any]]:
        needle = args.product_name.lower()
        rows = await fetch_user_orders()
        matching = [
            _order_to_dict(row)
            for row in rows
            if any(needle in str(item.get("name") or "").lower() for item in (row["items"] or []))
        ]
        if not matching:
            return {"message": f'No orders found containing "{args.product_name}".'}
        return matching

    return [
        Tool(
            "get_order_by_id",
            "Get details of a specific order by its order number (e.g. ORD-2024-8891)",
            OrderNumberArgs,
            get_order_by_id,
        ),
        Tool(
            "get_orders_by_user",
            "Get all orders for the current user. Returns a list of orders sorted by most recent first.",
            NoArguments,
            get_orders_by_user,
        ),
        Tool(
            "get_latest_order",
            "Get the most recent order for the current user. Use this when the user asks about "
            '"my order" or "latest order" without specifying an order number.',
            NoArguments,
            get_latest_order,
        ),
        Tool(
            "get_delivery_status",
            "Get the delivery/shipping status and tracking info for a specific order",
            OrderNumberArgs,
            get_delivery_status,
        ),
        Tool(
            "cancel_order",
            'Cancel an order. Only orders with status "pending" or "processing" can be cancelled. '
            "Orders that are already shipped, delivered, or cancelled cannot be cancelled.",
            OrderNumberArgs,
            cancel_order,
        ),
        Tool(
            "get_order_by_product_name",
            "Search for orders containing a specific product name. "
            "Use this when the user mentions a product name instead of an order number.",
            ProductNameArgs,
            get_order_by_product_name,
        ),
    ]
