"""
Domain models for routed chat turns.

These are in-process types shared by the router, compactor, agents and
orchestrator. HTTP request/response shapes live in models.schemas.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

#: Message author roles stored in the messages table.
MessageRole = Literal["user", "assistant", "system"]

#: Specialist agents that can answer a message.
AgentType = Literal["order", "billing", "support"]

#: Router outcomes; "fallback" means no confident category.
RoutedAgent = Literal["order", "billing", "support", "fallback"]

#: All specialist agent types in display order.
AGENT_TYPES: tuple[AgentType, ...] = ("support", "order", "billing")


class HistoryMessage(BaseModel):
    """A role/content pair passed to the model as context.

    Instances are immutable so the compactor can return the trailing window
    without copying.
    """

    model_config = ConfigDict(frozen=True)

    role: MessageRole
    content: str

    def to_openai(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


class RouterResult(BaseModel):
    """Classification of a user message onto a specialist agent."""

    agent: RoutedAgent
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str = ""


@dataclass(frozen=True, slots=True)
class ParsedMessage:
    """Assistant reply with OPTIONS / ESCALATE blocks split out."""

    content: str
    options: list[str] = field(default_factory=list)
    escalation_message: str | None = None

    @property
    def needs_escalation(self) -> bool:
        return self.escalation_message is not None


@dataclass(frozen=True, slots=True)
class ToolCallRecord:
    """One tool invocation made during an agent turn (persisted as tool_calls)."""

    name: str
    arguments: dict[str, Any]
    status: Literal["success", "error"]

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "arguments": self.arguments, "status": self.status}
