"""AgentRuntime: the caller-facing operations wired over one AgentState."""

from __future__ import annotations

from typing import Any

from warmset.cache.chunk_cache import ChunkCache
from warmset.core.config import AppSettings
from warmset.core.protocols import IChunkCache, IModelRepository
from warmset.models.inference import DecodeParams, GenerationResult, HealthSnapshot, LoaderStats
from warmset.models.manifest import ModelBinding
from warmset.models.quality import NOVAQModelMeta, NOVAQValidationResult
from warmset.repository import create_repository
from warmset.services.binding import BindingManager
from warmset.services.generation import GenerationEngine
from warmset.services.quality_gate import QualityGate
from warmset.services.state import AgentState


class AgentRuntime:
    """Owns the process state and exposes bind, prefetch, generate, health and scoring.

    Dependencies are injected at construction time; nothing is module-global.
    """

    def __init__(
        self,
        *,
        settings: AppSettings,
        repository: IModelRepository | None,
        cache: IChunkCache | None = None,
        quality_gate: QualityGate | None = None,
    ) -> None:
        self._settings = settings
        self._repo = repository
        self._gate = quality_gate or QualityGate()
        if cache is None:
            cache = ChunkCache(settings.cache.budget_bytes)
        self.state = AgentState(cache)
        self.binding = BindingManager(
            self.state,
            repository,
            prefetch_depth=settings.binding.prefetch_depth,
            verify_chunk_hashes=settings.binding.verify_chunk_hashes,
        )
        gen = settings.generation
        self.engine = GenerationEngine(
            self.state,
            self._gate,
            default_max_tokens=gen.default_max_tokens,
            max_tokens_cap=gen.max_tokens_cap,
            seed_budget_bytes=gen.seed_budget_bytes,
            chunk_slice_bytes=gen.chunk_slice_bytes,
            block_on_quality_failure=gen.block_on_quality_failure,
        )

    @property
    def settings(self) -> AppSettings:
        return self._settings

    @property
    def repository(self) -> IModelRepository | None:
        return self._repo

    async def bind_model(self, model_id: str) -> ModelBinding:
        return await self.binding.bind(model_id)

    async def prefetch_next(self, n: int) -> int:
        return await self.binding.prefetch_next(n)

    def generate(self, prompt: str, decode_params: DecodeParams | None = None) -> GenerationResult:
        return self.engine.generate(prompt, decode_params)

    def get_health(self) -> HealthSnapshot:
        return self.binding.get_health()

    def get_loader_stats(self) -> LoaderStats:
        return self.binding.get_loader_stats()

    def score_quantized_blob(self, blob: bytes, model_id: str = "") -> NOVAQValidationResult:
        return self._gate.score(blob, model_id=model_id)

    def extract_novaq_metadata(self, blob: bytes) -> NOVAQModelMeta:
        return self._gate.extract_metadata(blob)

    def is_quantized(self, blob: bytes) -> bool:
        return self._gate.is_quantized(blob)

    async def health_check(self) -> dict[str, Any]:
        """Return runtime readiness status."""
        return {
            "status": "ready" if self._repo is not None else "not_configured",
            "environment": self._settings.environment,
            "model_bound": self.state.binding is not None,
        }


def create_runtime(settings: AppSettings | None = None,
                   repository: IModelRepository | None = None) -> AgentRuntime:
    """Create a runtime wired from application settings."""
    if settings is None:
        settings = AppSettings()
    if repository is None:
        repository = create_repository(settings)
    return AgentRuntime(settings=settings, repository=repository)
