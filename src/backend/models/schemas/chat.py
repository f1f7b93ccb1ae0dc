"""
Chat and conversation API schemas.

Provides request/response models for sending messages and browsing
conversation history with OpenAPI documentation.
"""

from __future__ import annotations

from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from models.chat_models import AgentType, MessageRole


class SendMessageRequest(BaseModel):
    """A user message, optionally continuing an existing conversation."""

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "message": "Where is my order ORD-1001?",
                "conversationId": "0d6c8f57-3f0e-4c57-9f0b-5a7f3c2b8e11",
            }
        },
    )

    message: str = Field(
        ...,
        max_length=10000,
        description="User message text",
    )
    conversation_id: UUID | None = Field(
        default=None,
        alias="conversationId",
        description="Existing conversation to continue; omitted to start a new one",
    )


class ConversationInfo(BaseModel):
    """Conversation metadata."""

    id: UUID
    user_id: UUID
    title: str | None = None
    status: Literal["active", "archived"] = "active"
    created_at: str | None = None
    updated_at: str | None = None


class MessageInfo(BaseModel):
    """A persisted message, with assistant marker blocks split out."""

    id: UUID
    conversation_id: UUID
    role: MessageRole
    content: str
    agent_type: AgentType | None = None
    tool_calls: list[dict[str, Any]] | None = None
    options: list[str] = Field(default_factory=list, description="Choices offered to the user")
    escalation_message: str | None = Field(default=None, description="Human handoff text, if escalated")
    created_at: str | None = None


class ConversationListResponse(BaseModel):
    conversations: list[ConversationInfo]


class ConversationDetailResponse(BaseModel):
    """Conversation metadata plus its latest messages, oldest first."""

    conversation: ConversationInfo
    messages: list[MessageInfo]


class DeleteConversationResponse(BaseModel):
    success: bool = True
