"""Generation and quality-gate endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from warmset.api.deps import get_runtime
from warmset.models.inference import GenerationRequest, GenerationResult
from warmset.models.quality import NOVAQModelMeta, NOVAQValidationResult
from warmset.runtime import AgentRuntime

router = APIRouter(tags=["inference"])


@router.post("/generate")
async def generate(body: GenerationRequest,
                   runtime: AgentRuntime = Depends(get_runtime)) -> GenerationResult:
    return runtime.generate(body.prompt, body.decode_params)


@router.post("/quality/score")
async def score_blob(request: Request, model_id: str = "",
                     runtime: AgentRuntime = Depends(get_runtime)) -> NOVAQValidationResult:
    """Score a raw NOVAQ blob sent as the request body."""
    return runtime.score_quantized_blob(await request.body(), model_id=model_id)


@router.post("/quality/metadata")
async def blob_metadata(request: Request,
                        runtime: AgentRuntime = Depends(get_runtime)) -> NOVAQModelMeta:
    return runtime.extract_novaq_metadata(await request.body())
