"""Tests for BindingManager bind / prefetch_next / health."""

from __future__ import annotations

import asyncio

import pytest

from tests.fakes import ManualClock, MemoryModelRepository
from warmset.cache.chunk_cache import ChunkCache
from warmset.core.exceptions import (
    ChunkIntegrityError,
    InvalidReferenceError,
    ManifestNotFoundError,
    NoBindingError,
    NotActiveError,
    NotConfiguredError,
    RepositoryError,
)
from warmset.core.protocols import IModelRepository
from warmset.models.manifest import ModelState
from warmset.services.binding import BindingManager
from warmset.services.state import AgentState


def _chunks(model_id: str, count: int, size: int = 16) -> list[tuple[str, bytes]]:
    return [(f"{model_id}.c{i}", bytes([i + 1]) * size) for i in range(count)]


@pytest.fixture
def repo():
    r = MemoryModelRepository()
    r.publish("m0", _chunks("m0", 3))
    r.publish("m1", _chunks("m1", 5))
    r.publish("m2", _chunks("m2", 6))
    r.publish("pending", _chunks("pending", 2), state=ModelState.PENDING)
    r.publish("old", _chunks("old", 2), state=ModelState.DEPRECATED)
    return r


@pytest.fixture
def state():
    return AgentState(ChunkCache(budget_bytes=1024, clock=ManualClock()), clock=ManualClock())


@pytest.fixture
def manager(state, repo):
    return BindingManager(state, repo, prefetch_depth=2)


def test_memory_repository_satisfies_protocol(repo):
    assert isinstance(repo, IModelRepository)


class TestBind:
    def test_prefetches_first_chunks_and_commits(self, manager, state):
        binding = asyncio.run(manager.bind("m1"))
        assert binding.model_id == "m1"
        assert binding.chunks_loaded == 2
        assert binding.total_chunks == 5
        assert state.binding == binding
        assert state.manifest.model_id == "m1"
        assert binding.manifest_digest == state.manifest.digest
        assert sorted(state.cache.keys()) == ["m1.c0", "m1.c1"]

    def test_chunks_loaded_limited_by_manifest(self, state, repo):
        manager = BindingManager(state, repo, prefetch_depth=10)
        binding = asyncio.run(manager.bind("m0"))
        assert binding.chunks_loaded == 3
        assert binding.total_chunks == 3

    @pytest.mark.parametrize("model_id", ["pending", "old"])
    def test_inactive_manifest_rejected_without_mutation(self, manager, state, repo, model_id):
        asyncio.run(manager.bind("m0"))
        before = state.binding
        with pytest.raises(NotActiveError):
            asyncio.run(manager.bind(model_id))
        assert state.binding == before
        assert state.manifest.model_id == "m0"
        assert not any(k.startswith(model_id) for k in state.cache.keys())
        assert all(call[0] != model_id for call in repo.chunk_calls)

    def test_missing_manifest(self, manager, state):
        with pytest.raises(ManifestNotFoundError):
            asyncio.run(manager.bind("ghost"))
        assert state.binding is None

    def test_requires_repository(self, state):
        manager = BindingManager(state, None)
        with pytest.raises(NotConfiguredError):
            asyncio.run(manager.bind("m1"))

    def test_manifest_for_other_model_rejected(self, state, repo):
        class MislabeledRepository(MemoryModelRepository):
            async def get_manifest(self, model_id):
                return await super().get_manifest("m2")

        mislabeled = MislabeledRepository()
        mislabeled.publish("m2", _chunks("m2", 3))
        asyncio.run(BindingManager(state, repo).bind("m0"))
        before = state.binding

        with pytest.raises(RepositoryError, match="m2"):
            asyncio.run(BindingManager(state, mislabeled).bind("m1"))

        assert state.binding == before
        assert state.manifest.model_id == "m0"
        assert mislabeled.chunk_calls == []

    @pytest.mark.parametrize("model_id", ["", "has/slash", "-leading", "x" * 200])
    def test_malformed_model_id(self, manager, model_id):
        with pytest.raises(InvalidReferenceError):
            asyncio.run(manager.bind(model_id))

    def test_failed_chunk_fetch_leaves_previous_binding(self, state, repo):
        manager = BindingManager(state, repo, prefetch_depth=5)
        asyncio.run(manager.bind("m0"))
        before = state.binding
        repo.fail_chunk("m1.c2", RepositoryError("network down"))

        with pytest.raises(RepositoryError):
            asyncio.run(manager.bind("m1"))

        assert state.binding == before
        assert state.manifest.model_id == "m0"
        # Chunks fetched before the failure remain cached.
        assert "m1.c0" in state.cache
        assert "m1.c1" in state.cache
        assert "m1.c2" not in state.cache

    def test_failed_first_bind_leaves_no_binding(self, state, repo):
        manager = BindingManager(state, repo, prefetch_depth=5)
        repo.fail_chunk("m1.c2", RepositoryError("network down"))
        with pytest.raises(RepositoryError):
            asyncio.run(manager.bind("m1"))
        assert state.binding is None
        assert state.manifest is None

    def test_rebind_replaces_wholesale(self, manager, state):
        asyncio.run(manager.bind("m1"))
        asyncio.run(manager.bind("m2"))
        assert state.binding.model_id == "m2"
        assert state.binding.total_chunks == 6
        # Chunk ids are globally unique, so the old model's bytes stay reusable.
        assert "m1.c0" in state.cache

    def test_rebind_same_model_keeps_chunks_loaded(self, manager, state):
        asyncio.run(manager.bind("m1"))
        asyncio.run(manager.prefetch_next(2))
        asyncio.run(manager.bind("m1"))
        assert state.binding.chunks_loaded == 4

    def test_hash_verification(self, state, repo):
        repo.add_chunk("m1", "m1.c1", b"tampered")
        manager = BindingManager(state, repo, prefetch_depth=2, verify_chunk_hashes=True)
        with pytest.raises(ChunkIntegrityError):
            asyncio.run(manager.bind("m1"))
        assert state.binding is None

    def test_rejects_negative_depth(self, state, repo):
        with pytest.raises(ValueError):
            BindingManager(state, repo, prefetch_depth=-1)


class TestPrefetchNext:
    def test_requires_binding(self, manager):
        with pytest.raises(NoBindingError):
            asyncio.run(manager.prefetch_next(1))

    def test_requires_manifest(self, manager, state):
        asyncio.run(manager.bind("m1"))
        state.manifest = None
        with pytest.raises(NoBindingError):
            asyncio.run(manager.prefetch_next(1))

    def test_fetches_from_current_offset(self, manager, state, repo):
        asyncio.run(manager.bind("m1"))
        loaded = asyncio.run(manager.prefetch_next(2))
        assert loaded == 2
        assert state.binding.chunks_loaded == 4
        assert repo.chunk_calls[-2:] == [("m1", "m1.c2"), ("m1", "m1.c3")]

    def test_stops_at_manifest_end(self, manager, state):
        asyncio.run(manager.bind("m1"))
        assert asyncio.run(manager.prefetch_next(10)) == 3
        assert asyncio.run(manager.prefetch_next(10)) == 0
        assert state.binding.chunks_loaded == 5

    def test_zero_is_noop(self, manager, state):
        asyncio.run(manager.bind("m1"))
        assert asyncio.run(manager.prefetch_next(0)) == 0
        assert state.binding.chunks_loaded == 2

    def test_failure_keeps_chunks_loaded(self, manager, state, repo):
        asyncio.run(manager.bind("m1"))
        repo.fail_chunk("m1.c3", RepositoryError("boom"))
        with pytest.raises(RepositoryError):
            asyncio.run(manager.prefetch_next(3))
        assert state.binding.chunks_loaded == 2

    def test_chunks_loaded_monotonic_and_bounded(self, manager, state):
        seen = []
        ops = [("bind", "m1"), ("pre", 1), ("pre", 0), ("pre", 7), ("bind", "m1"),
               ("pre", 2), ("bind", "m2"), ("pre", 3), ("pre", 9)]
        for op, arg in ops:
            if op == "bind":
                asyncio.run(manager.bind(arg))
            else:
                asyncio.run(manager.prefetch_next(arg))
            b = state.binding
            assert 0 <= b.chunks_loaded <= b.total_chunks
            seen.append((b.model_id, b.chunks_loaded))
        for (prev_model, prev), (model, cur) in zip(seen, seen[1:]):
            if prev_model == model:
                assert cur >= prev


class TestInterleaving:
    def test_health_mid_bind_sees_uncommitted_state(self, manager, state, repo):
        observed = []

        async def hook(model_id, chunk_id):
            observed.append(manager.get_health().model_bound)

        repo.set_fetch_hook(hook)
        asyncio.run(manager.bind("m1"))
        assert observed == [False, False]
        assert manager.get_health().model_bound is True

    def test_concurrent_prefetch_does_not_double_count(self, manager, state):
        asyncio.run(manager.bind("m2"))

        async def both():
            return await asyncio.gather(manager.prefetch_next(2), manager.prefetch_next(2))

        results = asyncio.run(both())
        assert results == [2, 2]
        assert state.binding.chunks_loaded == 4

    def test_prefetch_superseded_by_rebind(self, manager, state, repo):
        asyncio.run(manager.bind("m1"))
        triggered = False

        async def hook(model_id, chunk_id):
            nonlocal triggered
            if model_id == "m1" and not triggered:
                triggered = True
                await manager.bind("m2")

        repo.set_fetch_hook(hook)
        loaded = asyncio.run(manager.prefetch_next(2))

        assert loaded == 2
        assert state.binding.model_id == "m2"
        assert state.binding.chunks_loaded == 2
        assert "m1.c2" in state.cache

    def test_concurrent_binds_commit_whole_records(self, manager, state):
        async def both():
            await asyncio.gather(manager.bind("m1"), manager.bind("m2"))

        asyncio.run(both())
        assert state.binding.model_id == state.manifest.model_id
        assert state.binding.total_chunks == state.manifest.total_chunks


class TestHealth:
    def test_unbound_snapshot(self, manager):
        health = manager.get_health()
        assert health.model_bound is False
        assert health.cache_hit_rate == 0.0
        assert health.warm_set_utilization == 0.0
        assert health.last_activity is None

    def test_bound_snapshot(self, manager, state):
        asyncio.run(manager.bind("m1"))
        state.cache.get("m1.c0")
        state.cache.get("absent")
        health = manager.get_health()
        assert health.model_bound is True
        assert health.cache_hit_rate == pytest.approx(0.5)
        assert health.warm_set_utilization == pytest.approx(32 / 1024)
        assert health.last_activity is not None

    def test_loader_stats(self, manager):
        asyncio.run(manager.bind("m1"))
        stats = manager.get_loader_stats()
        assert stats.model_bound is True
        assert stats.chunks_loaded == 2
        assert stats.total_chunks == 5
        assert stats.cache_entries == 2
