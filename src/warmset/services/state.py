"""Explicit per-process agent state shared by every operation."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Optional

from pydantic import BaseModel

from warmset.core.protocols import IChunkCache
from warmset.models.manifest import ModelBinding, ModelManifest


class AgentMetrics(BaseModel):
    total_generations: int = 0
    last_activity: Optional[datetime] = None


class AgentState:
    """Current manifest, binding, chunk cache and counters.

    Passed by reference into the binding manager and generation engine. Each
    method here is a single non-suspending step; sequences spanning an awaited
    fetch must re-read state after resuming.
    """

    def __init__(self, cache: IChunkCache,
                 clock: Callable[[], datetime] | None = None) -> None:
        self.cache = cache
        self.manifest: ModelManifest | None = None
        self.binding: ModelBinding | None = None
        self.metrics = AgentMetrics()
        self._clock = clock or (lambda: datetime.now(UTC))

    def now(self) -> datetime:
        return self._clock()

    def commit_binding(self, manifest: ModelManifest, binding: ModelBinding) -> None:
        """Replace manifest and binding together."""
        self.manifest = manifest
        self.binding = binding
        self.touch()

    def touch(self) -> None:
        self.metrics.last_activity = self._clock()
