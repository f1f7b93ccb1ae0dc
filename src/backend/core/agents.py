"""
Specialist agents.

Each agent pairs a system policy with a user-scoped tool registry and hands
both to the model gateway's streaming tool loop. Agents never persist
anything; the orchestrator owns writes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, ClassVar
from uuid import UUID

import asyncpg

from core.prompts import BILLING_AGENT_INSTRUCTIONS, ORDER_AGENT_INSTRUCTIONS, SUPPORT_AGENT_INSTRUCTIONS
from models.chat_models import AgentType, HistoryMessage
from tools.billing_tools import create_billing_tools
from tools.conversation_tools import create_conversation_tools
from tools.order_tools import create_order_tools
from tools.registry import Tool, ToolRegistry
from tools.support_tools import create_support_tools

if TYPE_CHECKING:
    from integrations.model_gateway import ModelGateway


@dataclass(frozen=True, slots=True)
class AgentExecutionParams:
    """Inputs for one agent turn.

    ``conversation_history`` already ends with the new user message.
    """

    user_message: str
    user_id: UUID
    conversation_id: UUID
    conversation_history: Sequence[HistoryMessage]


@dataclass(slots=True)
class AgentExecutionResult:
    """Lazy, single-pass stream of reply fragments plus the turn's tool registry.

    The registry's call log fills in while the stream is consumed.
    """

    text_stream: AsyncIterator[str]
    tools: ToolRegistry = field(default_factory=ToolRegistry)


class BaseAgent(ABC):
    """Shared execution path for specialist agents."""

    agent_type: ClassVar[AgentType]
    instructions: ClassVar[str]

    def __init__(self, gateway: ModelGateway, pool: asyncpg.Pool, *, max_steps: int | None = None):
        self._gateway = gateway
        self._pool = pool
        self._max_steps = max_steps

    @abstractmethod
    def domain_tools(self, params: AgentExecutionParams) -> list[Tool]:
        """Tools specific to this agent's domain."""

    def build_tools(self, params: AgentExecutionParams) -> ToolRegistry:
        return ToolRegistry(
            [*self.domain_tools(params), *create_conversation_tools(self._pool, params.conversation_id)]
        )

    def build_messages(self, params: AgentExecutionParams) -> list[dict[str, str]]:
        return [
            {"role": "system", "content": self.instructions},
            *(m.to_openai() for m in params.conversation_history),
        ]

    def execute(self, params: AgentExecutionParams) -> AgentExecutionResult:
        """Start a streamed turn. Nothing is sent to the model until the stream is iterated."""
        tools = self.build_tools(params)
        stream = self._gateway.stream(self.build_messages(params), tools=tools, max_steps=self._max_steps)
        return AgentExecutionResult(text_stream=stream, tools=tools)


class OrderAgent(BaseAgent):
    agent_type = "order"
    instructions = ORDER_AGENT_INSTRUCTIONS

    def domain_tools(self, params: AgentExecutionParams) -> list[Tool]:
        return create_order_tools(self._pool, params.user_id)


class BillingAgent(BaseAgent):
    agent_type = "billing"
    instructions = BILLING_AGENT_INSTRUCTIONS

    def domain_tools(self, params: AgentExecutionParams) -> list[Tool]:
        return create_billing_tools(self._pool, params.user_id)


class SupportAgent(BaseAgent):
    agent_type = "support"
    instructions = SUPPORT_AGENT_INSTRUCTIONS

    def domain_tools(self, params: AgentExecutionParams) -> list[Tool]:
        return create_support_tools(self._pool)


def create_agents(
    gateway: ModelGateway, pool: asyncpg.Pool, *, max_steps: int | None = None
) -> dict[AgentType, BaseAgent]:
    """Instantiate one agent per type."""
    agents: list[BaseAgent] = [
        OrderAgent(gateway, pool, max_steps=max_steps),
        BillingAgent(gateway, pool, max_steps=max_steps),
        SupportAgent(gateway, pool, max_steps=max_steps),
    ]
    return {agent.agent_type: agent for agent in agents}
