"""
Agent catalogue and classification API schemas.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from models.chat_models import AgentType, HistoryMessage


class AgentInfo(BaseModel):
    type: AgentType
    name: str
    description: str


class AgentListResponse(BaseModel):
    agents: list[AgentInfo]


class AgentCapabilitiesResponse(BaseModel):
    type: AgentType
    capabilities: list[str]


class ClassifyRequest(BaseModel):
    """Message to classify, with optional preceding conversation."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "message": "I need a refund for my last invoice",
                "context": [{"role": "user", "content": "Hi"}],
            }
        }
    )

    message: str = Field(..., description="User message to classify")
    context: list[HistoryMessage] = Field(default_factory=list, description="Earlier conversation messages")
