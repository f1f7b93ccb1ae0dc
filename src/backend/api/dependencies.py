from __future__ import annotations

from typing import Annotated

import asyncpg

from fastapi import Depends, Request

from api.services.chat_service import ChatService
from api.services.context_compactor import ContextCompactor
from api.services.conversation_service import ConversationService
from api.services.escalation_service import EscalationManager
from core.agents import create_agents
from core.constants import Settings, get_settings
from core.router import RouterAgent
from integrations.model_gateway import ModelGateway


def get_app_settings() -> Settings:
    """Provide application settings via dependency injection.

    In development with CONFIG_HOT_RELOAD=true, settings are reloaded
    on each request to pick up .env file changes without restart.

    Usage in routes:
        @router.get("/example")
        async def example(settings: AppSettings):
            return {"debug": settings.debug}
    """
    return get_settings()


async def get_db(request: Request) -> asyncpg.Pool:
    """Get database connection pool from application state."""
    return request.app.state.db_pool


def get_model_gateway(request: Request) -> ModelGateway:
    """Get the model gateway from application state."""
    return request.app.state.model_gateway


def get_escalation_manager(request: Request) -> EscalationManager:
    """Get the escalation workflow manager from application state."""
    return request.app.state.escalation_manager


def get_conversation_service(db: Annotated[asyncpg.Pool, Depends(get_db)]) -> ConversationService:
    """Provide conversation store backed by PostgreSQL."""
    return ConversationService(db)


def get_router_agent(
    gateway: Annotated[ModelGateway, Depends(get_model_gateway)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> RouterAgent:
    return RouterAgent(gateway, max_tokens=settings.router_max_tokens)


def get_chat_service(
    db: Annotated[asyncpg.Pool, Depends(get_db)],
    gateway: Annotated[ModelGateway, Depends(get_model_gateway)],
    store: Annotated[ConversationService, Depends(get_conversation_service)],
    router: Annotated[RouterAgent, Depends(get_router_agent)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> ChatService:
    """Provide the orchestrator wired to per-request agents and tools."""
    compactor = ContextCompactor(
        gateway,
        recent_window=settings.context_window_size,
        threshold=settings.compaction_threshold,
    )
    agents = create_agents(gateway, db, max_steps=settings.max_tool_steps)
    return ChatService(store, router, compactor, agents)


# Type aliases for cleaner route signatures
DB = Annotated[asyncpg.Pool, Depends(get_db)]
Gateway = Annotated[ModelGateway, Depends(get_model_gateway)]
Conversations = Annotated[ConversationService, Depends(get_conversation_service)]
Router = Annotated[RouterAgent, Depends(get_router_agent)]
Chat = Annotated[ChatService, Depends(get_chat_service)]
Escalations = Annotated[EscalationManager, Depends(get_escalation_manager)]
AppSettings = Annotated[Settings, Depends(get_app_settings)]
