"""Health check endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from warmset.api.deps import get_runtime
from warmset.models.inference import HealthSnapshot
from warmset.runtime import AgentRuntime

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(runtime: AgentRuntime = Depends(get_runtime)) -> HealthSnapshot:
    return runtime.get_health()


@router.get("/ready")
async def ready(runtime: AgentRuntime = Depends(get_runtime)) -> dict[str, Any]:
    return await runtime.health_check()
