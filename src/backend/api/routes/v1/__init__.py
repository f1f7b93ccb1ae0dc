"""
API v1 Router - Aggregates all v1 endpoints.

Usage in main.py:
    from api.routes.v1 import router as v1_router
    app.include_router(v1_router, prefix="/api/v1")
"""

from fastapi import APIRouter

from api.routes.v1 import agents, chat, health, workflow

# Create the v1 API router
router = APIRouter()

# Health endpoints (no auth required)
router.include_router(
    health.router,
    tags=["Health"],
)

# Chat and conversation history
router.include_router(
    chat.router,
    prefix="/chat",
    tags=["Chat"],
)

# Agent catalogue and classification
router.include_router(
    agents.router,
    prefix="/agents",
    tags=["Agents"],
)

# Human-handoff escalation workflow
router.include_router(
    workflow.router,
    prefix="/workflow",
    tags=["Workflow"],
)

__all__ = ["router"]
