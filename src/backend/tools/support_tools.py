"""
Support tools: help-center article search and retrieval.

Article lookups degrade to the built-in fallback articles when the
knowledge base is empty or the database is unreachable.
"""

from __future__ import annotations

from typing import Any

import asyncpg

from pydantic import BaseModel, Field

from core.constants import ARTICLE_SEARCH_LIMIT
from tools.fallback_data import fallback_articles_by_category, get_fallback_article, search_fallback_articles
from tools.registry import Tool, two_tier_lookup


class SearchArticlesArgs(BaseModel):
    query: str = Field(description="The search query for support articles")


class ArticleIdArgs(BaseModel):
    article_id: str = Field(description="The ID of the article to retrieve")


class CategoryArgs(BaseModel):
    category: str = Field(description='The category to filter by (e.g., "billing", "orders", "account")')


def create_support_tools(pool: asyncpg.Pool) -> list[Tool]:
    """Build the support tool set (articles are not user-scoped)."""

    async def search_articles(args: SearchArticlesArgs) -> list[dict[str, Any]]:
        pattern = f"%{args.query.lower()}%"

        async def from_db() -> list[dict[str, Any]]:
            async with pool.acquire() as conn:
                rows = await conn.fetch(
                    "SELECT id, title, category, tags, content FROM support_articles "
                    "WHERE title ILIKE $1 OR content ILIKE $1 LIMIT $2",
                    pattern,
                    ARTICLE_SEARCH_LIMIT,
                )
            return [dict(row) for row in rows]

        result = await two_tier_lookup(
            "support_articles",
            from_db,
            lambda: search_fallback_articles(args.query, ARTICLE_SEARCH_LIMIT),
            fallback_on_error=True,
        )
        return result.value or []

    async def get_article(args: ArticleIdArgs) -> dict[str, Any]:
        async def from_db() -> dict[str, Any] | None:
            async with pool.acquire() as conn:
                row = await conn.fetchrow(
                    "SELECT id, title, content, category, tags, created_at FROM support_articles "
                    "WHERE id::text = $1",
                    args.article_id,
                )
            return dict(row) if row else None

        result = await two_tier_lookup(
            "support_articles",
            from_db,
            lambda: get_fallback_article(args.article_id),
            fallback_on_error=True,
        )
        if result.value is None:
            return {"error": "Article not found."}
        return result.value

    async def get_articles_by_category(args: CategoryArgs) -> dict[str, Any] | list[dict[str, Any]]:
        async def from_db() -> list[dict[str, Any]]:
            async with pool.acquire() as conn:
                rows = await conn.fetch(
                    "SELECT id, title, category FROM support_articles WHERE category ILIKE $1",
                    args.category,
                )
            return [dict(row) for row in rows]

        result = await two_tier_lookup(
            "support_articles",
            from_db,
            lambda: fallback_articles_by_category(args.category),
            fallback_on_error=True,
        )
        if not result.found:
            return {"message": f'No articles found in category "{args.category}".'}
        return result.value or []

    return [
        Tool(
            "search_articles",
            "Search for help center articles based on a query. Use this to find relevant information "
            "for user questions about policies, returns, shipping, etc.",
            SearchArticlesArgs,
            search_articles,
        ),
        Tool(
            "get_article",
            "Get the full content of a specific help article by ID",
            ArticleIdArgs,
            get_article,
        ),
        Tool(
            "get_articles_by_category",
            "List help articles in a specific category",
            CategoryArgs,
            get_articles_by_category,
        ),
    ]
