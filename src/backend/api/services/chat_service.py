"""
Conversation orchestrator.

One user message flows through: compact history, persist the user message,
classify, pick the specialist agent, execute it, and wrap its token stream in a
proxy that persists the finished assistant reply exactly once.
"""

from __future__ import annotations

import time

from collections.abc import AsyncIterator, Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING
from uuid import UUID

from api.middleware.request_context import update_request_context
from core.agents import AgentExecutionParams, AgentExecutionResult, BaseAgent
from models.chat_models import AgentType, HistoryMessage, RoutedAgent
from utils.logger import logger
from utils.message_parser import parse_message_markers
from utils.metrics import assistant_messages_persisted_total, chat_messages_total, escalations_total

if TYPE_CHECKING:
    from api.services.context_compactor import ContextCompactor
    from api.services.conversation_service import ConversationService
    from core.router import RouterAgent


@dataclass(slots=True)
class ProcessMessageResult:
    text_stream: AsyncIterator[str]
    agent_type: AgentType
    conversation_id: UUID


def resolve_agent_type(routed: RoutedAgent) -> AgentType:
    """Support handles both its own category and low-confidence fallbacks."""
    if routed == "order":
        return "order"
    if routed == "billing":
        return "billing"
    return "support"


class ChatService:
    """Routes a user message to a specialist agent and persists the reply."""

    def __init__(
        self,
        store: ConversationService,
        router: RouterAgent,
        compactor: ContextCompactor,
        agents: Mapping[AgentType, BaseAgent],
    ):
        self.store = store
        self.router = router
        self.compactor = compactor
        self.agents = agents

    async def process_message(
        self,
        *,
        message: str,
        user_id: UUID,
        conversation_id: UUID,
        history: Sequence[HistoryMessage],
    ) -> ProcessMessageResult:
        """Run one turn. ``history`` must not yet contain ``message``.

        The returned stream is lazy; the agent's model call starts when it is
        first iterated.
        """
        chat_messages_total.inc()
        started = time.monotonic()

        compacted = await self.compactor.compact(list(history))
        await self.store.add_message(conversation_id, "user", message)

        routing = await self.router.classify(message, compacted)
        agent_type = resolve_agent_type(routing.agent)
        update_request_context(agent_type=agent_type)

        agent = self.agents[agent_type]
        result = agent.execute(
            AgentExecutionParams(
                user_message=message,
                user_id=user_id,
                conversation_id=conversation_id,
                conversation_history=[*compacted, HistoryMessage(role="user", content=message)],
            )
        )

        return ProcessMessageResult(
            text_stream=self._persist_assistant_message(
                result,
                user_message=message,
                agent_type=agent_type,
                conversation_id=conversation_id,
                started=started,
            ),
            agent_type=agent_type,
            conversation_id=conversation_id,
        )

    async def _persist_assistant_message(
        self,
        result: AgentExecutionResult,
        *,
        user_message: str,
        agent_type: AgentType,
        conversation_id: UUID,
        started: float,
    ) -> AsyncIterator[str]:
        """Re-yield every fragment, then persist the full reply once the stream is exhausted.

        Upstream errors and consumer cancellation leave the loop early, so
        nothing is written for an incomplete reply.
        """
        parts: list[str] = []
        async for chunk in result.text_stream:
            parts.append(chunk)
            yield chunk

        full_text = "".join(parts)
        if not full_text.strip():
            logger.warning("Agent produced an empty reply; nothing persisted", agent_type=agent_type)
            return

        tool_calls = list(result.tools.call_log)
        await self.store.add_message(
            conversation_id,
            "assistant",
            full_text,
            agent_type=agent_type,
            tool_calls=tool_calls,
        )
        await self.store.touch_conversation(conversation_id)
        assistant_messages_persisted_total.labels(agent_type=agent_type).inc()

        if parse_message_markers(full_text).needs_escalation:
            escalations_total.labels(agent_type=agent_type).inc()
            logger.info("Agent requested human escalation", agent_type=agent_type)

        logger.log_chat_turn(
            user_input=user_message,
            response=full_text,
            agent_type=agent_type,
            conversation_id=str(conversation_id),
            tool_calls=[call.name for call in tool_calls],
            duration_ms=(time.monotonic() - started) * 1000,
        )
