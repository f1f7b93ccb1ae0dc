"""
Agent catalogue endpoints (v1).

Lists the specialist agents, their capabilities, and exposes the router's
classification for a single message.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Path

from api.dependencies import Router
from api.middleware.auth import get_current_user
from api.middleware.exception_handlers import ResourceNotFoundError, ValidationException
from core.constants import ERROR_MESSAGE_REQUIRED, ERROR_UNKNOWN_AGENT_TYPE
from models.chat_models import AgentType, RouterResult
from models.schemas.agents import AgentCapabilitiesResponse, AgentInfo, AgentListResponse, ClassifyRequest
from models.schemas.auth import UserInfo

router = APIRouter()

CurrentUser = Annotated[UserInfo, Depends(get_current_user)]

AGENTS: tuple[AgentInfo, ...] = (
    AgentInfo(
        type="support",
        name="Support Agent",
        description="Handles general support, FAQs, and troubleshooting.",
    ),
    AgentInfo(
        type="order",
        name="Order Agent",
        description="Handles order status, tracking, and delivery questions.",
    ),
    AgentInfo(
        type="billing",
        name="Billing Agent",
        description="Handles invoices, payments, and refunds.",
    ),
)

AGENT_CAPABILITIES: dict[AgentType, list[str]] = {
    "support": [
        "Answer FAQs",
        "Provide troubleshooting steps",
        "Guide account settings",
        "Route to human when needed",
    ],
    "order": [
        "Check order status",
        "Provide tracking information",
        "List recent orders",
        "Explain delivery timelines",
    ],
    "billing": [
        "Show invoices",
        "Explain charges",
        "Check refund status",
        "List payment methods",
    ],
}


@router.get(
    "",
    response_model=AgentListResponse,
    summary="List agents",
    description="The specialist agents a message can be routed to.",
)
async def list_agents() -> AgentListResponse:
    return AgentListResponse(agents=list(AGENTS))


@router.get(
    "/{agent_type}/capabilities",
    response_model=AgentCapabilitiesResponse,
    summary="Agent capabilities",
    description="What a specialist agent can help with.",
    responses={404: {"description": "Unknown agent type"}},
)
async def get_capabilities(
    agent_type: Annotated[str, Path(..., description="Agent type", examples=["order"])],
) -> AgentCapabilitiesResponse:
    capabilities = AGENT_CAPABILITIES.get(agent_type)  # type: ignore[call-overload]
    if not capabilities:
        raise ResourceNotFoundError(ERROR_UNKNOWN_AGENT_TYPE, details={"agent_type": agent_type})
    return AgentCapabilitiesResponse(type=agent_type, capabilities=capabilities)  # type: ignore[arg-type]


@router.post(
    "/classify",
    response_model=RouterResult,
    summary="Classify message",
    description="Run the router on a message without sending it to an agent.",
    responses={400: {"description": "Message is required"}},
)
async def classify_message(body: ClassifyRequest, user: CurrentUser, router_agent: Router) -> RouterResult:
    """Return the routing decision for a message."""
    if not body.message.strip():
        raise ValidationException(ERROR_MESSAGE_REQUIRED)
    return await router_agent.classify(body.message, body.context)
