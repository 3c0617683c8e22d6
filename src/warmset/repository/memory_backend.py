"""In-memory model repository for unit tests and local development."""

from __future__ import annotations

import asyncio
import hashlib
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime

from warmset.core.exceptions import ChunkNotFoundError, ManifestNotFoundError
from warmset.models.manifest import ChunkDescriptor, ModelManifest, ModelState

FetchHook = Callable[[str, str], Awaitable[None]]


class MemoryModelRepository:
    """Dict-backed IModelRepository.

    Every fetch yields to the event loop once, so callers observe the same
    suspension points they would against a remote store.
    """

    def __init__(self) -> None:
        self._manifests: dict[str, ModelManifest] = {}
        self._chunks: dict[tuple[str, str], bytes] = {}
        self._failures: dict[str, Exception] = {}
        self._hook: FetchHook | None = None
        self.manifest_calls = 0
        self.chunk_calls: list[tuple[str, str]] = []

    # ---- seeding ----

    def add_manifest(self, manifest: ModelManifest) -> None:
        self._manifests[manifest.model_id] = manifest

    def add_chunk(self, model_id: str, chunk_id: str, data: bytes) -> None:
        self._chunks[(model_id, chunk_id)] = bytes(data)

    def publish(self, model_id: str, chunks: list[tuple[str, bytes]], *,
                version: str = "1.0.0",
                state: ModelState = ModelState.ACTIVE) -> ModelManifest:
        """Register chunk bytes and a manifest describing them."""
        descriptors = []
        offset = 0
        digest = hashlib.sha256()
        for chunk_id, data in chunks:
            content_hash = hashlib.sha256(data).hexdigest()
            descriptors.append(ChunkDescriptor(
                id=chunk_id, offset=offset, size=len(data), content_hash=content_hash,
            ))
            digest.update(content_hash.encode())
            offset += len(data)
            self.add_chunk(model_id, chunk_id, data)
        now = datetime.now(UTC)
        manifest = ModelManifest(
            model_id=model_id,
            version=version,
            chunks=tuple(descriptors),
            digest=digest.hexdigest(),
            state=state,
            uploaded_at=now,
            activated_at=now if state is ModelState.ACTIVE else None,
        )
        self.add_manifest(manifest)
        return manifest

    def fail_chunk(self, chunk_id: str, exc: Exception) -> None:
        """Make every fetch of ``chunk_id`` raise ``exc``."""
        self._failures[chunk_id] = exc

    def set_fetch_hook(self, hook: FetchHook | None) -> None:
        """Install a coroutine awaited inside every chunk fetch."""
        self._hook = hook

    # ---- IModelRepository ----

    async def get_manifest(self, model_id: str) -> ModelManifest:
        self.manifest_calls += 1
        await asyncio.sleep(0)
        manifest = self._manifests.get(model_id)
        if manifest is None:
            raise ManifestNotFoundError(model_id)
        return manifest

    async def get_chunk(self, model_id: str, chunk_id: str) -> bytes:
        self.chunk_calls.append((model_id, chunk_id))
        await asyncio.sleep(0)
        if self._hook is not None:
            await self._hook(model_id, chunk_id)
        if chunk_id in self._failures:
            raise self._failures[chunk_id]
        data = self._chunks.get((model_id, chunk_id))
        if data is None:
            raise ChunkNotFoundError(model_id, chunk_id)
        return data
