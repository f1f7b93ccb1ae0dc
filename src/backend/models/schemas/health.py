"""
Health check API schemas.

Provides response models for health, readiness, and liveness probes.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class DatabaseHealth(BaseModel):
    """Database connection pool health."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "healthy": True,
                "pool_size": 10,
                "pool_free": 8,
                "pool_used": 2,
            }
        }
    )

    healthy: bool = Field(..., description="Database is accessible")
    pool_size: int = Field(default=0, ge=0, description="Total pool size")
    pool_free: int = Field(default=0, ge=0, description="Available connections")
    pool_used: int = Field(default=0, ge=0, description="Active connections")
    error: str | None = Field(default=None, description="Error if unhealthy")


class AIModels(BaseModel):
    router: str = Field(..., description="Lightweight model used for routing and summaries")
    agent: str = Field(..., description="Model used by the specialist agents")


class AIHealth(BaseModel):
    """Active model provider."""

    provider: str = Field(..., description="Active provider name")
    models: AIModels


class HealthResponse(BaseModel):
    """Health check response."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "status": "ok",
                "version": "1.0.0",
                "uptime_seconds": 3600.5,
                "ai": {
                    "provider": "gemini",
                    "models": {"router": "gemini-2.5-flash-lite", "agent": "gemini-2.5-flash"},
                },
                "database": {
                    "healthy": True,
                    "pool_size": 10,
                    "pool_free": 8,
                    "pool_used": 2,
                },
            }
        }
    )

    status: Literal["ok", "degraded"] = Field(
        ...,
        description="Overall system health status",
        json_schema_extra={"example": "ok"},
    )
    version: str = Field(..., description="Application version")
    uptime_seconds: float = Field(..., description="Seconds since startup")
    ai: AIHealth = Field(..., description="Active model provider and models")
    database: DatabaseHealth = Field(..., description="Database health")


class ReadinessResponse(BaseModel):
    """Kubernetes-style readiness probe response."""

    ready: bool = Field(..., description="Service is ready to accept traffic")
    error: str | None = Field(default=None, description="Error message if not ready")


class LivenessResponse(BaseModel):
    """Kubernetes-style liveness probe response."""

    alive: bool = Field(default=True, description="Process is running")
