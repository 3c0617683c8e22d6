"""Shared test doubles: in-memory repository, manual clock and blob builders."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from warmset.models.quality import NOVAQConfig, NOVAQModel
from warmset.repository.memory_backend import MemoryModelRepository
from warmset.services.quality_gate import pack_novaq_blob


class ManualClock:
    """Clock that advances one second per reading."""

    def __init__(self, start: datetime | None = None) -> None:
        self._now = start or datetime(2026, 1, 1, tzinfo=UTC)

    def __call__(self) -> datetime:
        self._now += timedelta(seconds=1)
        return self._now


def novaq_blob(target_bits: float = 1.5, compression_ratio: float = 383.3,
               bit_accuracy: float = 0.95, num_subspaces: int = 2,
               l1: int = 16, l2: int = 4, teacher_model_path: str | None = None) -> bytes:
    return pack_novaq_blob(NOVAQModel(
        config=NOVAQConfig(
            target_bits=target_bits,
            num_subspaces=num_subspaces,
            codebook_size_l1=l1,
            codebook_size_l2=l2,
            teacher_model_path=teacher_model_path,
        ),
        compression_ratio=compression_ratio,
        bit_accuracy=bit_accuracy,
    ))


__all__ = ["ManualClock", "MemoryModelRepository", "novaq_blob"]
