"""API-facing Pydantic models."""

from __future__ import annotations

from pydantic import BaseModel, Field


class StatusResponse(BaseModel):
    message: str


class HealthResponse(BaseModel):
    status: str = "ok"
    active_calls: int = Field(description="Calls currently bridged to the AI service.")
