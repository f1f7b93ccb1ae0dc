from __future__ import annotations

import time

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.middleware.exception_handlers import register_exception_handlers
from api.middleware.rate_limiter import FixedWindowRateLimiter, RateLimitMiddleware
from api.middleware.request_context import RequestContextMiddleware
from api.routes.v1 import router as v1_router
from api.services.escalation_service import EscalationManager
from core.constants import AGENT_TYPE_HEADER, CONVERSATION_ID_HEADER, get_settings
from integrations.model_gateway import create_model_gateway
from utils.db_utils import check_pool_health, create_database_pool, graceful_pool_close
from utils.logger import configure_uvicorn_logging, logger

# Settings are loaded via Pydantic Settings with environment-specific file support
# (.env, .env.{APP_ENV}, .env.local) - no manual dotenv loading needed
settings = get_settings()

# Log loaded settings in debug mode
if settings.debug:
    from core.constants import _get_env_files

    logger.info(f"Env files: {[f.name for f in _get_env_files()]}")
    logger.info(
        f"Settings: app_env={settings.app_env}, provider={settings.ai_provider}, "
        f"db_pool=[{settings.db_pool_min_size},{settings.db_pool_max_size}]"
    )

# Configure uvicorn logging at module level to ensure workers use it
configure_uvicorn_logging()

rate_limiter = FixedWindowRateLimiter(
    window_seconds=settings.rate_limit_window_seconds,
    max_requests=settings.rate_limit_max_requests,
)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: startup and shutdown with graceful handling."""
    app.state.started_at = time.monotonic()

    # Create database pool with production configuration
    app.state.db_pool = await create_database_pool(
        dsn=settings.database_url,
        min_size=settings.db_pool_min_size,
        max_size=settings.db_pool_max_size,
        command_timeout=settings.db_command_timeout,
        connection_timeout=settings.db_connection_timeout,
        statement_cache_size=settings.db_statement_cache_size,
        max_inactive_connection_lifetime=settings.db_max_inactive_connection_lifetime,
    )

    # Verify database connectivity
    health = await check_pool_health(app.state.db_pool)
    if not health["healthy"]:
        logger.error("Database health check failed during startup")
        raise RuntimeError("Database connection failed")
    logger.info(f"Database pool healthy: {health}")

    # Model gateway shared by router, compactor and agents
    app.state.model_gateway = create_model_gateway(settings)

    # Start rate limiter cleanup task
    await rate_limiter.start()
    app.state.rate_limiter = rate_limiter

    # Background escalation workflow runs
    app.state.escalation_manager = EscalationManager()

    try:
        yield
    finally:
        logger.info("Initiating graceful shutdown sequence")

        # Phase 1: Stop rate limiter cleanup task
        await rate_limiter.stop()

        # Phase 2: Cancel in-flight escalation runs
        await app.state.escalation_manager.aclose()

        # Phase 3: Close the model client's HTTP connections
        await app.state.model_gateway.aclose()
        logger.info("Model gateway closed")

        # Phase 4: Gracefully close database pool
        await graceful_pool_close(app.state.db_pool, timeout=settings.shutdown_timeout)


app = FastAPI(
    title="Support Desk API",
    description="""
## Support Desk API

Customer-support chat backend. Each message is classified by a router and
answered by an order, billing or support specialist agent with
database-backed tools.

### Features
- **Streaming Chat**: text/plain replies framed by phase and error markers
- **Conversations**: history, listing and deletion per user
- **Agents**: catalogue, capabilities and standalone classification
- **Escalation**: background human-handoff workflow for support tickets
- **Context Compaction**: long conversations are summarized automatically

### Authentication
All endpoints except health checks require a JWT Bearer access token.

### Versioning
API uses URL path versioning: `/api/v1/...`
""",
    version=settings.app_version,
    lifespan=lifespan,
    openapi_tags=[
        {
            "name": "Health",
            "description": "Health check endpoints for monitoring and orchestration",
        },
        {
            "name": "Chat",
            "description": "Send messages and browse conversations",
        },
        {
            "name": "Agents",
            "description": "Specialist agent catalogue and routing",
        },
        {
            "name": "Workflow",
            "description": "Human-handoff escalation of support tickets",
        },
    ],
    openapi_url="/api/v1/openapi.json",
    docs_url="/api/v1/docs",
    redoc_url="/api/v1/redoc",
)

# Register global exception handlers for consistent error responses
register_exception_handlers(app)

# Middleware is executed in reverse order of registration (last added = first executed):
# 1. Request context (request ID on every response, including 429s)
# 2. CORS
# 3. Rate limiter
if settings.rate_limit_enabled:
    app.add_middleware(RateLimitMiddleware, rate_limiter=rate_limiter)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[CONVERSATION_ID_HEADER, AGENT_TYPE_HEADER, "X-Request-ID"],
)

app.add_middleware(RequestContextMiddleware)

# Routes - API v1
app.include_router(v1_router, prefix="/api/v1")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.is_development,
        reload_dirs=["src"],
        log_config=None,
    )
