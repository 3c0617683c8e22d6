"""Quality gate for NOVAQ quantized model blobs.

A NOVAQ blob is a fixed little-endian record::

    config:
        target_bits            f32
        num_subspaces          u64
        codebook_size_l1       u64
        codebook_size_l2       u64
        outlier_threshold      f32
        teacher_model_path     u8 tag (0 = absent, 1 = present) [+ u64 length + UTF-8]
        refinement_iterations  u64
        kl_weight              f32
        cosine_weight          f32
        learning_rate          f32
        seed                   u64
    compression_ratio          f32
    bit_accuracy               f32

Trailing bytes after the record are ignored.
"""

from __future__ import annotations

import struct
from collections.abc import Callable
from datetime import UTC, datetime

import structlog

from warmset.core.exceptions import ParseFailureError
from warmset.models.quality import (
    NOVAQConfig,
    NOVAQModel,
    NOVAQModelMeta,
    NOVAQValidationResult,
    compute_quality_score,
)

logger = structlog.get_logger(__name__)

_HEAD = struct.Struct("<fQQQf")
_TAG = struct.Struct("<B")
_LEN = struct.Struct("<Q")
_TAIL = struct.Struct("<QfffQ")
_METRICS = struct.Struct("<ff")

MIN_COMPRESSION_RATIO = 2.0

# (max target_bits, minimum bit_accuracy); anything wider needs 0.98
BIT_ACCURACY_TIERS: tuple[tuple[float, float], ...] = (
    (1.0, 0.85),
    (2.0, 0.90),
    (4.0, 0.95),
)
WIDE_BIT_ACCURACY = 0.98


def pack_novaq_blob(model: NOVAQModel) -> bytes:
    """Encode a NOVAQ model into its binary record."""
    cfg = model.config
    parts = [_HEAD.pack(cfg.target_bits, cfg.num_subspaces, cfg.codebook_size_l1,
                        cfg.codebook_size_l2, cfg.outlier_threshold)]
    if cfg.teacher_model_path is None:
        parts.append(_TAG.pack(0))
    else:
        path = cfg.teacher_model_path.encode("utf-8")
        parts.append(_TAG.pack(1) + _LEN.pack(len(path)) + path)
    parts.append(_TAIL.pack(cfg.refinement_iterations, cfg.kl_weight, cfg.cosine_weight,
                            cfg.learning_rate, cfg.seed))
    parts.append(_METRICS.pack(model.compression_ratio, model.bit_accuracy))
    return b"".join(parts)


def parse_novaq_blob(blob: bytes) -> NOVAQModel:
    """Decode a NOVAQ binary record. Raises ParseFailureError on any mismatch."""
    view = memoryview(blob)
    try:
        target_bits, subspaces, l1, l2, outlier = _HEAD.unpack_from(view, 0)
        pos = _HEAD.size
        (tag,) = _TAG.unpack_from(view, pos)
        pos += _TAG.size
        teacher_path: str | None = None
        if tag == 1:
            (length,) = _LEN.unpack_from(view, pos)
            pos += _LEN.size
            if pos + length > len(view):
                raise ParseFailureError(
                    f"Failed to parse NOVAQ model: string length {length} exceeds blob"
                )
            teacher_path = bytes(view[pos:pos + length]).decode("utf-8")
            pos += length
        elif tag != 0:
            raise ParseFailureError(f"Failed to parse NOVAQ model: invalid option tag {tag}")
        iterations, kl_weight, cosine_weight, learning_rate, seed = _TAIL.unpack_from(view, pos)
        pos += _TAIL.size
        compression_ratio, bit_accuracy = _METRICS.unpack_from(view, pos)
    except struct.error as exc:
        raise ParseFailureError(f"Failed to parse NOVAQ model: {exc}") from exc
    except UnicodeDecodeError as exc:
        raise ParseFailureError(f"Failed to parse NOVAQ model: {exc}") from exc

    config = NOVAQConfig(
        target_bits=target_bits,
        num_subspaces=subspaces,
        codebook_size_l1=l1,
        codebook_size_l2=l2,
        outlier_threshold=outlier,
        teacher_model_path=teacher_path,
        refinement_iterations=iterations,
        kl_weight=kl_weight,
        cosine_weight=cosine_weight,
        learning_rate=learning_rate,
        seed=seed,
    )
    return NOVAQModel(config=config, compression_ratio=compression_ratio,
                      bit_accuracy=bit_accuracy)


def min_bit_accuracy(target_bits: float) -> float:
    for max_bits, threshold in BIT_ACCURACY_TIERS:
        if target_bits <= max_bits:
            return threshold
    return WIDE_BIT_ACCURACY


def apply_validation_thresholds(config: NOVAQConfig, compression_ratio: float,
                                bit_accuracy: float) -> tuple[bool, list[str]]:
    """Return (passed, issues) for the tiered thresholds and hard checks."""
    issues: list[str] = []

    if compression_ratio < MIN_COMPRESSION_RATIO:
        issues.append(
            f"Compression ratio {compression_ratio:.1f}x below minimum threshold "
            f"({MIN_COMPRESSION_RATIO:.1f}x)"
        )

    threshold = min_bit_accuracy(config.target_bits)
    if bit_accuracy < threshold:
        issues.append(
            f"Bit accuracy {bit_accuracy * 100:.1f}% below threshold {threshold * 100:.1f}% "
            f"for {config.target_bits:.1f}-bit quantization"
        )

    if config.num_subspaces == 0:
        issues.append("Invalid number of subspaces (must be > 0)")

    if config.codebook_size_l1 == 0 or config.codebook_size_l2 == 0:
        issues.append("Invalid codebook sizes (must be > 0)")

    return not issues, issues


class QualityGate:
    """Scores NOVAQ blobs. Validation issues are returned, never raised."""

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or (lambda: datetime.now(UTC))

    def is_quantized(self, blob: bytes) -> bool:
        try:
            parse_novaq_blob(blob)
        except ParseFailureError:
            return False
        return True

    def score(self, blob: bytes, model_id: str = "") -> NOVAQValidationResult:
        model = parse_novaq_blob(blob)
        return self.evaluate(model, model_id=model_id)

    def evaluate(self, model: NOVAQModel, model_id: str = "") -> NOVAQValidationResult:
        passed, issues = apply_validation_thresholds(
            model.config, model.compression_ratio, model.bit_accuracy,
        )
        result = NOVAQValidationResult(
            model_id=model_id,
            target_bits=model.config.target_bits,
            compression_ratio=model.compression_ratio,
            bit_accuracy=model.bit_accuracy,
            validation_passed=passed,
            issues=issues,
            validation_timestamp=self._clock(),
        )
        logger.info(
            "quality_scored",
            model_id=model_id,
            quality_score=round(result.quality_score, 4),
            validation_passed=passed,
            issue_count=len(issues),
        )
        return result

    def extract_metadata(self, blob: bytes) -> NOVAQModelMeta:
        model = parse_novaq_blob(blob)
        return NOVAQModelMeta(
            target_bits=model.config.target_bits,
            num_subspaces=model.config.num_subspaces,
            l1_codebook_size=model.config.codebook_size_l1,
            l2_codebook_size=model.config.codebook_size_l2,
            compression_ratio=model.compression_ratio,
            bit_accuracy=model.bit_accuracy,
        )

    def quality_score(self, blob: bytes) -> float:
        model = parse_novaq_blob(blob)
        return compute_quality_score(model.compression_ratio, model.bit_accuracy)
