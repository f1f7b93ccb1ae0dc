"""Tests for user-scoped order tools."""

from __future__ import annotations

import json

from decimal import Decimal
from typing import Any
from unittest.mock import AsyncMock, MagicMock
from uuid import UUID

import pytest

from tools.order_tools import NO_ORDERS_MESSAGE, create_order_tools
from tools.registry import ToolRegistry

USER_ID = UUID("00000000-0000-0000-0000-000000000001")


def order_row(order_number: str = "ORD-2024-8891", status: str = "processing", **overrides: Any) -> dict[str, Any]:
    row: dict[str, Any] = {
        "id": UUID(int=7),
        "order_number": order_number,
        "status": status,
        "total_amount": Decimal("129.99"),
        "items": [{"name": "Wireless Headphones", "quantity": 1}, {"name": "USB-C Cable", "quantity": 2}],
        "delivery_status": None,
        "tracking_number": None,
        "created_at": None,
        "updated_at": None,
    }
    row.update(overrides)
    return row


@pytest.fixture
def registry(mock_db_pool: MagicMock) -> ToolRegistry:
    return ToolRegistry(create_order_tools(mock_db_pool, USER_ID))


async def call(registry: ToolRegistry, name: str, arguments: dict[str, Any] | None = None) -> Any:
    return json.loads(await registry.execute(name, arguments or {}))


class TestLookups:
    @pytest.mark.asyncio
    async def test_get_order_by_id_is_user_scoped(self, registry: ToolRegistry, mock_conn: AsyncMock) -> None:
        mock_conn.fetchrow.return_value = order_row()

        result = await call(registry, "get_order_by_id", {"order_number": "ORD-2024-8891"})

        assert result["order_number"] == "ORD-2024-8891"
        assert result["total_amount"] == "129.99"
        query, order_number, user_id = mock_conn.fetchrow.call_args.args
        assert "user_id = $2" in query
        assert (order_number, user_id) == ("ORD-2024-8891", USER_ID)

    @pytest.mark.asyncio
    async def test_get_order_by_id_not_found(self, registry: ToolRegistry, mock_conn: AsyncMock) -> None:
        mock_conn.fetchrow.return_value = None

        result = await call(registry, "get_order_by_id", {"order_number": "ORD-0"})

        assert result["error"].startswith("Order ORD-0 not found")
        assert registry.call_log[0].status == "error"

    @pytest.mark.asyncio
    async def test_orders_by_user(self, registry: ToolRegistry, mock_conn: AsyncMock) -> None:
        mock_conn.fetch.return_value = [order_row("ORD-2"), order_row("ORD-1")]

        result = await call(registry, "get_orders_by_user")

        assert [o["order_number"] for o in result] == ["ORD-2", "ORD-1"]
        assert "ORDER BY created_at DESC" in mock_conn.fetch.call_args.args[0]

    @pytest.mark.asyncio
    async def test_no_orders(self, registry: ToolRegistry, mock_conn: AsyncMock) -> None:
        mock_conn.fetch.return_value = []
        mock_conn.fetchrow.return_value = None

        assert await call(registry, "get_orders_by_user") == {"message": NO_ORDERS_MESSAGE}
        assert await call(registry, "get_latest_order") == {"message": NO_ORDERS_MESSAGE}

    @pytest.mark.asyncio
    async def test_latest_order(self, registry: ToolRegistry, mock_conn: AsyncMock) -> None:
        mock_conn.fetchrow.return_value = order_row("ORD-9")

        result = await call(registry, "get_latest_order")

        assert result["order_number"] == "ORD-9"
        assert "LIMIT 1" in mock_conn.fetchrow.call_args.args[0]

    @pytest.mark.asyncio
    async def test_delivery_status_defaults(self, registry: ToolRegistry, mock_conn: AsyncMock) -> None:
        mock_conn.fetchrow.return_value = order_row(status="shipped", tracking_number="1Z999")

        result = await call(registry, "get_delivery_status", {"order_number": "ORD-2024-8891"})

        assert result == {
            "order_number": "ORD-2024-8891",
            "status": "shipped",
            "delivery_status": "Not available",
            "tracking_number": "1Z999",
        }

    @pytest.mark.asyncio
    async def test_search_by_product_name(self, registry: ToolRegistry, mock_conn: AsyncMock) -> None:
        mock_conn.fetch.return_value = [
            order_row("ORD-1"),
            order_row("ORD-2", items=[{"name": "Desk Lamp", "quantity": 1}]),
            order_row("ORD-3", items=None),
        ]

        result = await call(registry, "get_order_by_product_name", {"product_name": "headphones"})

        assert [o["order_number"] for o in result] == ["ORD-1"]

    @pytest.mark.asyncio
    async def test_search_by_product_name_no_match(self, registry: ToolRegistry, mock_conn: AsyncMock) -> None:
        mock_conn.fetch.return_value = [order_row()]

        result = await call(registry, "get_order_by_product_name", {"product_name": "Toaster"})

        assert result == {"message": 'No orders found containing "Toaster".'}


class TestCancelOrder:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", ["pending", "processing"])
    async def test_cancellable(self, registry: ToolRegistry, mock_conn: AsyncMock, status: str) -> None:
        mock_conn.fetchrow.return_value = order_row(status=status)

        result = await call(registry, "cancel_order", {"order_number": "ORD-2024-8891"})

        assert result["new_status"] == "cancelled"
        assert result["previous_status"] == status
        query, order_id = mock_conn.execute.call_args.args
        assert "SET status = 'cancelled'" in query
        assert order_id == UUID(int=7)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", ["shipped", "delivered"])
    async def test_not_cancellable_needs_human(
        self, registry: ToolRegistry, mock_conn: AsyncMock, status: str
    ) -> None:
        mock_conn.fetchrow.return_value = order_row(status=status)

        result = await call(registry, "cancel_order", {"order_number": "ORD-2024-8891"})

        assert result["needs_human_assistance"] is True
        assert f'status "{status}"' in result["error"]
        mock_conn.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_already_cancelled(self, registry: ToolRegistry, mock_conn: AsyncMock) -> None:
        mock_conn.fetchrow.return_value = order_row(status="cancelled")

        result = await call(registry, "cancel_order", {"order_number": "ORD-2024-8891"})

        assert result == {"message": "Order ORD-2024-8891 has already been cancelled."}
        mock_conn.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_order(self, registry: ToolRegistry, mock_conn: AsyncMock) -> None:
        mock_conn.fetchrow.return_value = None

        result = await call(registry, "cancel_order", {"order_number": "ORD-404"})

        assert result == {"error": "Order ORD-404 not found."}


@pytest.mark.asyncio
async def test_database_failure_reported_to_model(registry: ToolRegistry, mock_conn: AsyncMock) -> None:
    mock_conn.fetchrow.side_effect = OSError("connection reset")

    result = await call(registry, "get_latest_order")

    assert result == {"error": "Tool get_latest_order failed to execute. Please try again later."}
