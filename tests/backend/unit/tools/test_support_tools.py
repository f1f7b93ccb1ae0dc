"""Tests for help-center article tools."""

from __future__ import annotations

import json

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import asyncpg
import pytest

from core.constants import ARTICLE_SEARCH_LIMIT
from tools.registry import ToolRegistry
from tools.support_tools import create_support_tools


@pytest.fixture
def registry(mock_db_pool: MagicMock) -> ToolRegistry:
    return ToolRegistry(create_support_tools(mock_db_pool))


async def call(registry: ToolRegistry, name: str, arguments: dict[str, Any]) -> Any:
    return json.loads(await registry.execute(name, arguments))


class TestSearchArticles:
    @pytest.mark.asyncio
    async def test_database_results(self, registry: ToolRegistry, mock_conn: AsyncMock) -> None:
        mock_conn.fetch.return_value = [{"id": "a1", "title": "Gift cards", "category": "billing", "tags": []}]

        result = await call(registry, "search_articles", {"query": "Gift"})

        assert [a["id"] for a in result] == ["a1"]
        _, pattern, limit = mock_conn.fetch.call_args.args
        assert pattern == "%gift%"
        assert limit == ARTICLE_SEARCH_LIMIT

    @pytest.mark.asyncio
    async def test_empty_database_uses_fallback(self, registry: ToolRegistry, mock_conn: AsyncMock) -> None:
        mock_conn.fetch.return_value = []

        result = await call(registry, "search_articles", {"query": "refund"})

        assert [a["id"] for a in result] == ["fallback_001"]

    @pytest.mark.asyncio
    async def test_missing_table_uses_fallback(self, registry: ToolRegistry, mock_conn: AsyncMock) -> None:
        mock_conn.fetch.side_effect = asyncpg.UndefinedTableError("relation does not exist")

        result = await call(registry, "search_articles", {"query": "shipping"})

        assert result[0]["title"] == "Shipping Information"
        assert registry.call_log[0].status == "success"

    @pytest.mark.asyncio
    async def test_no_match_anywhere(self, registry: ToolRegistry, mock_conn: AsyncMock) -> None:
        mock_conn.fetch.return_value = []

        assert await call(registry, "search_articles", {"query": "quantum teleportation"}) == []


class TestGetArticle:
    @pytest.mark.asyncio
    async def test_fallback_article(self, registry: ToolRegistry, mock_conn: AsyncMock) -> None:
        mock_conn.fetchrow.return_value = None

        result = await call(registry, "get_article", {"article_id": "fallback_003"})

        assert result["title"] == "Payment Methods"

    @pytest.mark.asyncio
    async def test_not_found(self, registry: ToolRegistry, mock_conn: AsyncMock) -> None:
        mock_conn.fetchrow.return_value = None

        result = await call(registry, "get_article", {"article_id": "nope"})

        assert result == {"error": "Article not found."}


class TestArticlesByCategory:
    @pytest.mark.asyncio
    async def test_fallback_category(self, registry: ToolRegistry, mock_conn: AsyncMock) -> None:
        mock_conn.fetch.side_effect = OSError("connection refused")

        result = await call(registry, "get_articles_by_category", {"category": "Orders"})

        assert [a["id"] for a in result] == ["fallback_002", "fallback_004"]
        assert set(result[0]) == {"id", "title", "category"}

    @pytest.mark.asyncio
    async def test_unknown_category(self, registry: ToolRegistry, mock_conn: AsyncMock) -> None:
        mock_conn.fetch.return_value = []

        result = await call(registry, "get_articles_by_category", {"category": "warranty"})

        assert result == {"message": 'No articles found in category "warranty".'}
