"""Decode parameters, generation results and health snapshots."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from warmset.models.quality import NOVAQValidationResult


class DecodeParams(BaseModel):
    """Caller-supplied decode parameters.

    Only ``max_tokens`` shapes the deterministic stream; the sampling knobs are
    accepted for envelope compatibility.
    """

    max_tokens: Optional[int] = None
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    top_k: Optional[int] = None
    repetition_penalty: Optional[float] = None


class GenerationRequest(BaseModel):
    prompt: str
    decode_params: DecodeParams = Field(default_factory=DecodeParams)


class GenerationResult(BaseModel):
    """Deterministic token stream plus advisory counters for one call."""

    tokens: list[str]
    text: str
    inference_time_ms: float = 0.0
    cache_hits: int = 0
    cache_misses: int = 0
    quality_score: float = 1.0
    quality: Optional[NOVAQValidationResult] = None


class HealthSnapshot(BaseModel):
    model_config = {"protected_namespaces": ()}

    model_bound: bool
    cache_hit_rate: float
    warm_set_utilization: float
    last_activity: Optional[datetime] = None


class LoaderStats(BaseModel):
    model_config = {"protected_namespaces": ()}

    model_bound: bool
    chunks_loaded: int = 0
    total_chunks: int = 0
    cache_utilization: float = 0.0
    cache_entries: int = 0
