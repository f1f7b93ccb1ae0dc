"""
Conversation tool shared by every agent: recent history of the current conversation.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

import asyncpg

from pydantic import BaseModel, Field

from core.constants import RECENT_HISTORY_DEFAULT_LIMIT, RECENT_HISTORY_MAX_LIMIT
from tools.registry import Tool
from utils.logger import logger


class RecentHistoryArgs(BaseModel):
    limit: int = Field(
        default=RECENT_HISTORY_DEFAULT_LIMIT,
        ge=1,
        le=RECENT_HISTORY_MAX_LIMIT,
        description="How many recent messages to return",
    )


def create_conversation_tools(pool: asyncpg.Pool, conversation_id: UUID) -> list[Tool]:
    """Build the history tool bound to ``conversation_id``."""

    async def get_recent_history(args: RecentHistoryArgs) -> dict[str, Any] | list[dict[str, Any]]:
        try:
            async with pool.acquire() as conn:
                rows = await conn.fetch(
                    "SELECT role, content, created_at FROM messages "
                    "WHERE conversation_id = $1 ORDER BY created_at DESC LIMIT $2",
                    conversation_id,
                    args.limit,
                )
        except (asyncpg.PostgresError, OSError) as e:
            logger.error(f"Error fetching conversation messages: {e}", exc_info=True)
            return {"error": "Failed to fetch messages"}

        return [
            {"role": row["role"], "content": row["content"], "created_at": row["created_at"]}
            for row in reversed(rows)
        ]

    return [
        Tool(
            "get_recent_history",
            "Get recent conversation history with the support assistant",
            RecentHistoryArgs,
            get_recent_history,
        )
    ]
