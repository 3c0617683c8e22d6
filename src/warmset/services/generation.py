"""Deterministic generation over the resident warm set.

The output is a pure function of the prompt, the cache contents (in sorted key
order, bounded by the seed budget) and the clamped token count:

1. feed the prompt bytes into SHA-256;
2. feed at most ``chunk_slice_bytes`` from each cached chunk, keys sorted,
   until ``seed_budget_bytes`` have been consumed;
3. hash-chain the seed, emitting one ``t<hex>`` token per 8-byte group.
"""

from __future__ import annotations

import hashlib
import time

import structlog

from warmset.core.exceptions import NoBindingError, QualityGateError
from warmset.models.inference import DecodeParams, GenerationResult
from warmset.models.quality import NOVAQValidationResult
from warmset.services.binding import manifest_chunk_ids
from warmset.services.quality_gate import QualityGate
from warmset.services.state import AgentState

logger = structlog.get_logger(__name__)

TOKEN_MARKER = "t"
TOKEN_GROUP_BYTES = 8


def derive_tokens(seed: bytes, count: int) -> list[str]:
    """Hash-chain ``seed`` into ``count`` hex tokens."""
    tokens: list[str] = []
    while len(tokens) < count:
        digest = hashlib.sha256(seed).digest()
        for i in range(0, len(digest), TOKEN_GROUP_BYTES):
            if len(tokens) >= count:
                break
            tokens.append(TOKEN_MARKER + digest[i:i + TOKEN_GROUP_BYTES].hex())
        seed = digest
    return tokens


class GenerationEngine:
    def __init__(self, state: AgentState, quality_gate: QualityGate | None = None, *,
                 default_max_tokens: int = 128, max_tokens_cap: int = 256,
                 seed_budget_bytes: int = 64 * 1024, chunk_slice_bytes: int = 4096,
                 block_on_quality_failure: bool = False) -> None:
        self._state = state
        self._gate = quality_gate or QualityGate()
        self._default_max_tokens = default_max_tokens
        self._max_tokens_cap = max_tokens_cap
        self._seed_budget = seed_budget_bytes
        self._slice = chunk_slice_bytes
        self._block = block_on_quality_failure

    def clamp_max_tokens(self, requested: int | None) -> int:
        if requested is None:
            requested = self._default_max_tokens
        return max(1, min(requested, self._max_tokens_cap))

    def generate(self, prompt: str, params: DecodeParams | None = None) -> GenerationResult:
        binding = self._state.binding
        if binding is None:
            raise NoBindingError("No model bound")
        params = params or DecodeParams()
        started = time.perf_counter()

        quality = self.assess_quality()
        if quality is not None and not quality.validation_passed and self._block:
            raise QualityGateError(binding.model_id, quality.issues)

        max_tokens = self.clamp_max_tokens(params.max_tokens)
        cache = self._state.cache
        hits_before, misses_before = cache.hits, cache.misses

        seed = self.seed_digest(prompt)
        tokens = derive_tokens(seed, max_tokens)

        elapsed_ms = (time.perf_counter() - started) * 1000.0
        self._state.metrics.total_generations += 1
        self._state.touch()

        result = GenerationResult(
            tokens=tokens,
            text="".join(tokens),
            inference_time_ms=elapsed_ms,
            cache_hits=cache.hits - hits_before,
            cache_misses=cache.misses - misses_before,
            quality_score=quality.quality_score if quality is not None else 1.0,
            quality=quality,
        )
        logger.info("generation_completed", model_id=binding.model_id, tokens=len(tokens),
                    cache_hits=result.cache_hits, inference_time_ms=round(elapsed_ms, 3))
        return result

    def seed_digest(self, prompt: str) -> bytes:
        """Fold the prompt and a bounded prefix of the warm set into a seed.

        Reading a chunk goes through ``get`` and so refreshes its LRU position.
        """
        cache = self._state.cache
        hasher = hashlib.sha256()
        hasher.update(prompt.encode("utf-8"))
        consumed = 0
        for key in sorted(cache.keys()):
            if consumed >= self._seed_budget:
                break
            data = cache.get(key)
            if data is None:
                continue
            take = min(len(data), self._slice)
            hasher.update(data[:take])
            consumed += take
        return hasher.digest()

    def assess_quality(self) -> NOVAQValidationResult | None:
        """Score the first resident NOVAQ chunk of the bound model, if any.

        Advisory only; reads with ``peek`` so LRU order and counters are untouched.
        """
        binding = self._state.binding
        if binding is None:
            return None
        cache = self._state.cache
        for chunk_id in manifest_chunk_ids(self._state.manifest):
            data = cache.peek(chunk_id)
            if data is None or not self._gate.is_quantized(data):
                continue
            return self._gate.score(data, model_id=binding.model_id)
        return None
