"""
Escalation workflow API schemas.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class EscalateRequest(BaseModel):
    """Hand a support ticket to a human agent.

    Fields are optional at the schema level so that missing values produce
    the endpoint's own 400 message.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "ticketId": "TICKET-123",
                "userEmail": "customer@example.com",
                "reason": "Refund outside the self-service window",
            }
        },
    )

    ticket_id: str | None = Field(default=None, alias="ticketId", max_length=100)
    user_email: str | None = Field(default=None, alias="userEmail", max_length=255)
    reason: str | None = Field(default=None, max_length=2000)


class EscalateResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str = "Workflow started successfully"
    run_id: str = Field(..., serialization_alias="runId")


class EscalationRunResponse(BaseModel):
    """Progress of one escalation run."""

    model_config = ConfigDict(populate_by_name=True)

    run_id: str = Field(..., serialization_alias="runId")
    ticket_id: str = Field(..., serialization_alias="ticketId")
    status: Literal["running", "assigned", "failed"]
    steps: list[str]
    agent: str | None = None
    error: str | None = None
