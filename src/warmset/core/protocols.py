"""Protocol interfaces for warmset collaborators.

Structural typing, no inheritance required, easy to test with isinstance().
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from warmset.core.types import ChunkId, ModelId

if TYPE_CHECKING:
    from warmset.models.manifest import ModelManifest


# ---------------------------------------------------------------------------
# Model Repository
# ---------------------------------------------------------------------------

@runtime_checkable
class IModelRepository(Protocol):
    """Remote store of model manifests and chunk bytes.

    Each call is a suspension point: other operations on shared state may
    run between issuing it and its result arriving.
    """

    async def get_manifest(self, model_id: ModelId) -> ModelManifest: ...

    async def get_chunk(self, model_id: ModelId, chunk_id: ChunkId) -> bytes: ...


# ---------------------------------------------------------------------------
# Chunk Cache
# ---------------------------------------------------------------------------

@runtime_checkable
class IChunkCache(Protocol):
    """Byte-budgeted key -> bytes store with LRU eviction."""

    def get(self, key: ChunkId) -> bytes | None: ...

    def put(self, key: ChunkId, data: bytes) -> None: ...

    def peek(self, key: ChunkId) -> bytes | None: ...

    def keys(self) -> list[str]: ...

    def utilization(self) -> float: ...

    def hit_rate(self) -> float: ...

    @property
    def hits(self) -> int: ...

    @property
    def misses(self) -> int: ...
