from __future__ import annotations

from collections.abc import Sequence
from typing import Any
from uuid import UUID

import asyncpg

from api.services.message_utils import row_to_conversation, row_to_message
from core.constants import CONVERSATION_LIST_LIMIT, CONVERSATION_TITLE_MAX_LENGTH, HISTORY_MESSAGE_LIMIT
from models.chat_models import AgentType, HistoryMessage, MessageRole, ToolCallRecord
from utils.db_utils import acquire_connection, transaction, with_retry
from utils.logger import logger


class ConversationService:
    """Conversation and message persistence backed by PostgreSQL."""

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def create_conversation(self, user_id: UUID, first_message: str) -> dict[str, Any]:
        """Create a conversation titled after the first message."""
        async with acquire_connection(self.pool) as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO conversations (user_id, title)
                VALUES ($1, $2)
                RETURNING *
                """,
                user_id,
                first_message[:CONVERSATION_TITLE_MAX_LENGTH],
            )
        logger.info(f"Created conversation {row['id']}", conversation_id=str(row["id"]))
        return row_to_conversation(row)

    @with_retry()
    async def get_conversation(self, user_id: UUID, conversation_id: UUID) -> dict[str, Any] | None:
        """Get a conversation owned by ``user_id``."""
        async with acquire_connection(self.pool) as conn:
            row = await conn.fetchrow(
                """
                SELECT * FROM conversations
                WHERE id = $1 AND user_id = $2
                """,
                conversation_id,
                user_id,
            )
        if not row:
            return None
        return row_to_conversation(row)

    @with_retry()
    async def list_conversations(self, user_id: UUID, limit: int = CONVERSATION_LIST_LIMIT) -> list[dict[str, Any]]:
        """List the user's most recently updated conversations."""
        async with acquire_connection(self.pool) as conn:
            rows = await conn.fetch(
                """
                SELECT * FROM conversations
                WHERE user_id = $1
                ORDER BY updated_at DESC
                LIMIT $2
                """,
                user_id,
                limit,
            )
        return [row_to_conversation(r) for r in rows]

    async def _fetch_latest_messages(self, conversation_id: UUID, limit: int) -> list[asyncpg.Record]:
        async with acquire_connection(self.pool) as conn:
            rows = await conn.fetch(
                """
                SELECT * FROM messages
                WHERE conversation_id = $1
                ORDER BY created_at DESC
                LIMIT $2
                """,
                conversation_id,
                limit,
            )
        # Newest-first for the cap, oldest-first for the caller
        return list(reversed(rows))

    @with_retry()
    async def get_history(self, conversation_id: UUID, limit: int = HISTORY_MESSAGE_LIMIT) -> list[HistoryMessage]:
        """Latest ``limit`` messages as model context, oldest first."""
        rows = await self._fetch_latest_messages(conversation_id, limit)
        return [HistoryMessage(role=r["role"], content=r["content"]) for r in rows]

    @with_retry()
    async def get_messages(self, conversation_id: UUID, limit: int = HISTORY_MESSAGE_LIMIT) -> list[dict[str, Any]]:
        """Latest ``limit`` messages for display, oldest first."""
        rows = await self._fetch_latest_messages(conversation_id, limit)
        return [row_to_message(r) for r in rows]

    async def add_message(
        self,
        conversation_id: UUID,
        role: MessageRole,
        content: str,
        agent_type: AgentType | None = None,
        tool_calls: Sequence[ToolCallRecord] | None = None,
    ) -> dict[str, Any]:
        """Append an immutable message."""
        async with acquire_connection(self.pool) as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO messages (conversation_id, role, content, agent_type, tool_calls)
                VALUES ($1, $2, $3, $4, $5)
                RETURNING *
                """,
                conversation_id,
                role,
                content,
                agent_type,
                [call.to_dict() for call in tool_calls] if tool_calls else None,
            )
        return row_to_message(row)

    async def touch_conversation(self, conversation_id: UUID) -> None:
        """Bump ``updated_at`` so the conversation sorts first."""
        async with acquire_connection(self.pool) as conn:
            await conn.execute(
                "UPDATE conversations SET updated_at = NOW() WHERE id = $1",
                conversation_id,
            )

    async def delete_conversation(self, user_id: UUID, conversation_id: UUID) -> bool:
        """Delete a conversation and its messages. Returns False when the user does not own it."""
        async with transaction(self.pool) as conn:
            owned = await conn.fetchval(
                "SELECT 1 FROM conversations WHERE id = $1 AND user_id = $2",
                conversation_id,
                user_id,
            )
            if not owned:
                return False

            await conn.execute("DELETE FROM messages WHERE conversation_id = $1", conversation_id)
            result: str = await conn.execute(
                "DELETE FROM conversations WHERE id = $1 AND user_id = $2",
                conversation_id,
                user_id,
            )

        deleted: bool = result == "DELETE 1"
        if deleted:
            logger.info(f"Deleted conversation {conversation_id}", conversation_id=str(conversation_id))
        return deleted
