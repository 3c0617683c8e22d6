"""Model binding and prefetch endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from warmset.api.deps import get_runtime
from warmset.models.inference import LoaderStats
from warmset.models.manifest import ModelBinding
from warmset.runtime import AgentRuntime

router = APIRouter(tags=["models"])


@router.post("/{model_id}/bind")
async def bind_model(model_id: str, runtime: AgentRuntime = Depends(get_runtime)) -> ModelBinding:
    """Bind ``model_id``, prefetching its first chunks."""
    return await runtime.bind_model(model_id)


@router.post("/prefetch")
async def prefetch_next(n: int = Query(default=1, ge=0),
                        runtime: AgentRuntime = Depends(get_runtime)) -> dict[str, int]:
    return {"loaded": await runtime.prefetch_next(n)}


@router.get("/loader-stats")
async def loader_stats(runtime: AgentRuntime = Depends(get_runtime)) -> LoaderStats:
    return runtime.get_loader_stats()
