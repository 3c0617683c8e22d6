"""NOVAQ quantized-model configuration and validation models."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, computed_field


def compute_quality_score(compression_ratio: float, bit_accuracy: float) -> float:
    return (compression_ratio / 100.0 + bit_accuracy) / 2.0


class NOVAQConfig(BaseModel):
    """Quantization configuration section of a NOVAQ blob."""

    target_bits: float
    num_subspaces: int = Field(ge=0)
    codebook_size_l1: int = Field(ge=0)
    codebook_size_l2: int = Field(ge=0)
    # Training parameters; carried through the codec, unused by validation.
    outlier_threshold: float = 0.01
    teacher_model_path: Optional[str] = None
    refinement_iterations: int = Field(default=50, ge=0)
    kl_weight: float = 1.0
    cosine_weight: float = 0.5
    learning_rate: float = 0.001
    seed: int = Field(default=42, ge=0)


class NOVAQModel(BaseModel):
    """Decoded NOVAQ blob: configuration plus measured metrics."""

    config: NOVAQConfig
    compression_ratio: float
    bit_accuracy: float


class NOVAQModelMeta(BaseModel):
    target_bits: float
    num_subspaces: int
    l1_codebook_size: int
    l2_codebook_size: int
    compression_ratio: float
    bit_accuracy: float

    @computed_field  # type: ignore[prop-decorator]
    @property
    def quality_score(self) -> float:
        return compute_quality_score(self.compression_ratio, self.bit_accuracy)


class NOVAQValidationResult(BaseModel):
    """Outcome of the quality gate. Issues are data, never raised."""

    model_config = {"protected_namespaces": ()}

    model_id: str = ""
    target_bits: float
    compression_ratio: float
    bit_accuracy: float
    validation_passed: bool
    issues: list[str] = Field(default_factory=list)
    validation_timestamp: datetime

    @computed_field  # type: ignore[prop-decorator]
    @property
    def quality_score(self) -> float:
        return compute_quality_score(self.compression_ratio, self.bit_accuracy)
