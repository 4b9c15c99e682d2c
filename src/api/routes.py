"""FastAPI routes for service status."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from api.dependencies import get_bridge
from api.schemas import HealthResponse, StatusResponse

router = APIRouter()


@router.get("/", response_model=StatusResponse)
async def root() -> StatusResponse:
    return StatusResponse(message="Twilio Media Stream Server is running!")


@router.get("/api/health", response_model=HealthResponse)
async def health(bridge=Depends(get_bridge)) -> HealthResponse:
    return HealthResponse(active_calls=len(bridge.registry))
