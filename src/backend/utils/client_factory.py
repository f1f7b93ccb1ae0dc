"""
Model client factory utilities.
Centralizes AsyncOpenAI client creation for every supported provider.
All providers are reached through their OpenAI-compatible endpoints.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import httpx

from openai import AsyncOpenAI

from core.constants import OLLAMA_PLACEHOLDER_API_KEY

if TYPE_CHECKING:
    from core.constants import Settings

DEFAULT_CONNECT_TIMEOUT = 10.0  # Time to establish connection
DEFAULT_READ_TIMEOUT = 120.0  # Time between streamed chunks
DEFAULT_WRITE_TIMEOUT = 30.0  # Time to send request
DEFAULT_POOL_TIMEOUT = 30.0  # Time to acquire connection from pool

#: Transient failures are retried by the SDK before surfacing.
DEFAULT_MAX_RETRIES = 2


def create_http_client(read_timeout: float | None = None) -> httpx.AsyncClient:
    """Create HTTP client with explicit timeouts for streaming.

    Args:
        read_timeout: Read timeout in seconds (default: 120s)

    Returns:
        Configured httpx.AsyncClient
    """
    timeout = httpx.Timeout(
        connect=DEFAULT_CONNECT_TIMEOUT,
        read=read_timeout if read_timeout is not None else DEFAULT_READ_TIMEOUT,
        write=DEFAULT_WRITE_TIMEOUT,
        pool=DEFAULT_POOL_TIMEOUT,
    )
    return httpx.AsyncClient(timeout=timeout)


def create_openai_client(
    api_key: str,
    base_url: str | None = None,
    http_client: httpx.AsyncClient | None = None,
    max_retries: int = DEFAULT_MAX_RETRIES,
) -> AsyncOpenAI:
    """Create AsyncOpenAI client with consistent configuration.

    Args:
        api_key: Provider API key
        base_url: OpenAI-compatible endpoint (None = api.openai.com)
        http_client: Optional httpx client carrying timeouts
        max_retries: SDK-level retries for transient failures
    """
    kwargs: dict[str, Any] = {"api_key": api_key, "http_client": http_client, "max_retries": max_retries}
    if base_url:
        kwargs["base_url"] = base_url
    return AsyncOpenAI(**kwargs)


def create_provider_client(settings: Settings) -> AsyncOpenAI:
    """Build the client for the configured AI provider."""
    api_key = settings.provider_api_key or OLLAMA_PLACEHOLDER_API_KEY
    return create_openai_client(
        api_key=api_key,
        base_url=settings.provider_base_url,
        http_client=create_http_client(read_timeout=settings.model_request_timeout),
    )
