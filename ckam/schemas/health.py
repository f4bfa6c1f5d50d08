"""Pydantic schemas for health check responses."""

from typing import Literal

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Response body for the health check endpoint."""

    status: Literal["ok"] = Field(default="ok", description="Service status")
    service: str = Field(description="Service name")
    users: int = Field(ge=0, description="Number of registered accounts")
    environment: str = Field(description="Current app environment (e.g. dev, prod)")
    uptime: float = Field(ge=0, description="Seconds since the application started")
    timestamp: str = Field(description="Current server time (ISO-8601, UTC)")
