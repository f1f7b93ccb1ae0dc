"""Database utilities for connection management and resilience.

Provides:
- Connection pool factory with JSON/JSONB codecs registered per connection
- Connection acquisition and transaction context managers
- Retry decorator for transient database failures
- Health check and graceful shutdown helpers
"""

from __future__ import annotations

import asyncio
import functools
import json
import random

from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, ParamSpec, TypeVar

import asyncpg

from utils.logger import logger
from utils.metrics import db_pool_connections

P = ParamSpec("P")
T = TypeVar("T")


class DatabaseError(Exception):
    """Base exception for database operations."""


class ConnectionPoolExhausted(DatabaseError):
    """Raised when connection pool is exhausted and timeout expires."""


def _json_dumps(value: Any) -> str:
    return json.dumps(value, default=str)


async def register_json_codecs(conn: asyncpg.Connection) -> None:
    """Decode json/jsonb columns (order items, tags, tool_calls) into Python objects."""
    for type_name in ("json", "jsonb"):
        await conn.set_type_codec(
            type_name,
            encoder=_json_dumps,
            decoder=json.loads,
            schema="pg_catalog",
        )


async def create_database_pool(
    dsn: str,
    *,
    min_size: int = 2,
    max_size: int = 10,
    command_timeout: float = 60.0,
    connection_timeout: float = 10.0,
    statement_cache_size: int = 100,
    max_inactive_connection_lifetime: float = 300.0,
) -> asyncpg.Pool:
    """Create a production-configured database connection pool.

    Args:
        dsn: PostgreSQL connection string
        min_size: Minimum connections to maintain
        max_size: Maximum connections allowed
        command_timeout: Default query timeout in seconds
        connection_timeout: Timeout for establishing the pool
        statement_cache_size: Prepared statement cache per connection
        max_inactive_connection_lifetime: Close idle connections after this time

    Raises:
        ConnectionPoolExhausted: If initial connections cannot be established
    """

    async def init_connection(conn: asyncpg.Connection) -> None:
        timeout_ms = int(command_timeout * 1000)
        await conn.execute(f"SET statement_timeout = '{timeout_ms}'")
        await conn.execute(f"SET lock_timeout = '{timeout_ms}'")
        await register_json_codecs(conn)

    try:
        pool = await asyncio.wait_for(
            asyncpg.create_pool(
                dsn=dsn,
                min_size=min_size,
                max_size=max_size,
                command_timeout=command_timeout,
                statement_cache_size=statement_cache_size,
                max_inactive_connection_lifetime=max_inactive_connection_lifetime,
                init=init_connection,
            ),
            timeout=connection_timeout,
        )
    except asyncio.TimeoutError as e:
        raise ConnectionPoolExhausted(f"Connection pool creation timed out after {connection_timeout}s") from e
    except Exception as e:
        raise ConnectionPoolExhausted(f"Failed to create connection pool: {e}") from e

    if pool is None:
        raise ConnectionPoolExhausted("Failed to create connection pool")
    return pool


@asynccontextmanager
async def acquire_connection(
    pool: asyncpg.Pool,
    *,
    timeout: float | None = None,
) -> AsyncGenerator[asyncpg.Connection, None]:
    """Acquire a database connection with an acquire timeout.

    Raises:
        ConnectionPoolExhausted: If a connection cannot be acquired within timeout
    """
    try:
        async with pool.acquire(timeout=timeout) as conn:
            yield conn
    except asyncio.TimeoutError as e:
        raise ConnectionPoolExhausted(
            f"Could not acquire database connection within {timeout}s - pool may be exhausted"
        ) from e


@asynccontextmanager
async def transaction(
    pool: asyncpg.Pool,
    *,
    timeout: float | None = None,
) -> AsyncGenerator[asyncpg.Connection, None]:
    """Execute operations within a database transaction.

    Example:
        async with transaction(pool) as conn:
            await conn.execute("DELETE FROM messages WHERE conversation_id = $1", cid)
            await conn.execute("DELETE FROM conversations WHERE id = $1", cid)
    """
    async with acquire_connection(pool, timeout=timeout) as conn, conn.transaction():
        yield conn


def with_retry(
    max_attempts: int = 3,
    base_delay: float = 0.5,
    max_delay: float = 5.0,
    retryable_exceptions: tuple[type[Exception], ...] = (
        asyncpg.PostgresConnectionError,
        asyncpg.InterfaceError,
        ConnectionPoolExhausted,
    ),
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Decorator for retrying read-only database operations on transient failures.

    Uses exponential backoff with jitter.
    """

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            for attempt in range(max_attempts):
                try:
                    return await func(*args, **kwargs)
                except retryable_exceptions as e:  # noqa: PERF203
                    if attempt + 1 >= max_attempts:
                        logger.error(
                            f"Database operation {func.__name__} failed after {max_attempts} attempts: {e}",
                            exc_info=True,
                        )
                        raise

                    delay = min(base_delay * (2**attempt) + random.uniform(0, 0.5), max_delay)
                    logger.warning(
                        f"Database operation {func.__name__} failed (attempt {attempt + 1}/{max_attempts}), "
                        f"retrying in {delay:.2f}s: {e}"
                    )
                    await asyncio.sleep(delay)

            raise RuntimeError("Retry loop exited unexpectedly")

        return wrapper

    return decorator


async def check_pool_health(pool: asyncpg.Pool) -> dict[str, Any]:
    """Check database pool health and return statistics."""
    try:
        async with pool.acquire(timeout=5.0) as conn:
            is_healthy = await conn.fetchval("SELECT 1") == 1
    except Exception as e:
        logger.warning(f"Database health check failed: {e}")
        is_healthy = False

    used = pool.get_size() - pool.get_idle_size()
    db_pool_connections.labels(state="free").set(pool.get_idle_size())
    db_pool_connections.labels(state="used").set(used)

    return {
        "healthy": is_healthy,
        "pool_size": pool.get_size(),
        "pool_min_size": pool.get_min_size(),
        "pool_max_size": pool.get_max_size(),
        "free_connections": pool.get_idle_size(),
        "used_connections": used,
    }


async def graceful_pool_close(pool: asyncpg.Pool, timeout: float = 10.0) -> None:
    """Wait up to ``timeout`` seconds for connections to be released, then close."""
    loop = asyncio.get_running_loop()
    start = loop.time()
    while pool.get_size() > pool.get_idle_size():
        if loop.time() - start > timeout:
            logger.warning(
                f"Timeout waiting for connections to drain, "
                f"forcing close ({pool.get_size() - pool.get_idle_size()} active)"
            )
            break
        await asyncio.sleep(0.1)

    await pool.close()
