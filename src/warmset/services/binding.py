"""Binding manager: manifest retrieval, activation check and chunk prefetch."""

from __future__ import annotations

import hashlib

import structlog

from warmset.core.exceptions import (
    ChunkIntegrityError,
    InvalidReferenceError,
    NoBindingError,
    NotActiveError,
    NotConfiguredError,
    RepositoryError,
)
from warmset.core.protocols import IModelRepository
from warmset.core.types import REFERENCE_PATTERN
from warmset.models.inference import HealthSnapshot, LoaderStats
from warmset.models.manifest import ChunkDescriptor, ModelBinding, ModelManifest, ModelState
from warmset.services.state import AgentState

logger = structlog.get_logger(__name__)


def check_reference(value: str, kind: str = "model") -> str:
    if not isinstance(value, str) or not REFERENCE_PATTERN.match(value):
        raise InvalidReferenceError(f"Malformed {kind} identifier: {value!r}")
    return value


class BindingManager:
    """Owns the single current binding record in an AgentState.

    The repository calls are the only suspension points. Chunk inserts are
    idempotent puts by chunk id, and the manifest/binding pair is replaced in
    one step after the whole prefetch loop succeeds, so an aborted bind leaves
    the previous binding untouched. Chunks inserted before a failure stay
    cached (they are keyed by chunk id and reusable by a later bind).
    """

    def __init__(self, state: AgentState, repository: IModelRepository | None, *,
                 prefetch_depth: int = 2, verify_chunk_hashes: bool = False) -> None:
        if prefetch_depth < 0:
            raise ValueError(f"prefetch_depth must be >= 0, got {prefetch_depth}")
        self._state = state
        self._repo = repository
        self._prefetch_depth = prefetch_depth
        self._verify = verify_chunk_hashes

    @property
    def state(self) -> AgentState:
        return self._state

    @property
    def prefetch_depth(self) -> int:
        return self._prefetch_depth

    async def bind(self, model_id: str) -> ModelBinding:
        """Fetch, verify and prefetch ``model_id``, then commit it as the binding."""
        check_reference(model_id)
        repo = self._require_repository()
        log = logger.bind(model_id=model_id)
        log.info("bind_started", prefetch_depth=self._prefetch_depth)

        manifest = await repo.get_manifest(model_id)
        if manifest.model_id != model_id:
            log.warning("bind_rejected", manifest_model_id=manifest.model_id)
            raise RepositoryError(
                f"Manifest for {model_id!r} names model {manifest.model_id!r}"
            )
        if manifest.state is not ModelState.ACTIVE:
            log.warning("bind_rejected", state=str(manifest.state))
            raise NotActiveError(model_id, str(manifest.state))
        for chunk in manifest.chunks:
            check_reference(chunk.id, kind="chunk")

        try:
            loaded = await self._fetch_into_cache(
                repo, model_id, manifest.chunks[:self._prefetch_depth],
            )
        except Exception as exc:
            log.warning("bind_aborted", error=str(exc), error_type=type(exc).__name__)
            raise

        previous = self._state.binding
        if (previous is not None and previous.model_id == model_id
                and previous.manifest_digest == manifest.digest):
            # Re-binding the same artifact keeps chunks_loaded monotonic.
            loaded = min(manifest.total_chunks, max(loaded, previous.chunks_loaded))

        binding = ModelBinding(
            model_id=model_id,
            bound_at=self._state.now(),
            manifest_digest=manifest.digest,
            chunks_loaded=loaded,
            total_chunks=manifest.total_chunks,
            version=manifest.version,
        )
        self._state.commit_binding(manifest, binding)
        log.info("bind_committed", chunks_loaded=loaded, total_chunks=binding.total_chunks,
                 version=manifest.version)
        return binding

    async def prefetch_next(self, n: int) -> int:
        """Fetch up to ``n`` chunks past the current ``chunks_loaded`` offset."""
        if n < 0:
            raise ValueError(f"n must be >= 0, got {n}")
        repo = self._require_repository()
        binding = self._state.binding
        if binding is None:
            raise NoBindingError("No model bound")
        manifest = self._state.manifest
        if manifest is None:
            raise NoBindingError(f"Manifest not loaded for bound model {binding.model_id!r}")

        start = binding.chunks_loaded
        pending = manifest.chunks[start:start + n]
        loaded = await self._fetch_into_cache(repo, binding.model_id, pending)

        current = self._state.binding
        if (current is None or current.model_id != binding.model_id
                or current.manifest_digest != binding.manifest_digest):
            logger.warning("prefetch_binding_superseded", model_id=binding.model_id,
                           fetched=loaded)
            return loaded

        # A concurrent prefetch may have advanced the offset while we were suspended.
        chunks_loaded = min(current.total_chunks, max(current.chunks_loaded, start + loaded))
        self._state.binding = current.model_copy(update={"chunks_loaded": chunks_loaded})
        self._state.touch()
        logger.info("prefetch_completed", model_id=binding.model_id, fetched=loaded,
                    chunks_loaded=chunks_loaded, total_chunks=current.total_chunks)
        return loaded

    def get_health(self) -> HealthSnapshot:
        cache = self._state.cache
        return HealthSnapshot(
            model_bound=self._state.binding is not None,
            cache_hit_rate=cache.hit_rate(),
            warm_set_utilization=cache.utilization(),
            last_activity=self._state.metrics.last_activity,
        )

    def get_loader_stats(self) -> LoaderStats:
        binding = self._state.binding
        cache = self._state.cache
        return LoaderStats(
            model_bound=binding is not None,
            chunks_loaded=binding.chunks_loaded if binding else 0,
            total_chunks=binding.total_chunks if binding else 0,
            cache_utilization=cache.utilization(),
            cache_entries=len(cache),
        )

    def _require_repository(self) -> IModelRepository:
        if self._repo is None:
            raise NotConfiguredError("Model repository address not configured")
        return self._repo

    async def _fetch_into_cache(self, repo: IModelRepository, model_id: str,
                                chunks: tuple[ChunkDescriptor, ...]) -> int:
        loaded = 0
        for chunk in chunks:
            data = await repo.get_chunk(model_id, chunk.id)
            if self._verify:
                self._verify_chunk(chunk, data)
            self._state.cache.put(chunk.id, data)
            loaded += 1
        return loaded

    @staticmethod
    def _verify_chunk(chunk: ChunkDescriptor, data: bytes) -> None:
        if not chunk.content_hash:
            return
        actual = hashlib.sha256(data).hexdigest()
        if actual != chunk.content_hash.lower():
            raise ChunkIntegrityError(chunk.id, chunk.content_hash, actual)


def manifest_chunk_ids(manifest: ModelManifest | None) -> list[str]:
    return [c.id for c in manifest.chunks] if manifest else []
