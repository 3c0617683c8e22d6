"""warmset exception hierarchy."""

from __future__ import annotations


class WarmsetError(Exception):
    """Base exception for all warmset errors."""


class NotConfiguredError(WarmsetError):
    """No model repository address is configured."""


class InvalidReferenceError(WarmsetError):
    """Malformed model or chunk identifier."""


class NotFoundError(WarmsetError):
    """Manifest or chunk absent upstream."""


class ManifestNotFoundError(NotFoundError):
    def __init__(self, model_id: str) -> None:
        self.model_id = model_id
        super().__init__(f"Manifest not found for model {model_id!r}")


class ChunkNotFoundError(NotFoundError):
    def __init__(self, model_id: str, chunk_id: str) -> None:
        self.model_id = model_id
        self.chunk_id = chunk_id
        super().__init__(f"Chunk {chunk_id!r} not found for model {model_id!r}")


class RepositoryError(WarmsetError):
    """Model repository call failed."""


class ChunkIntegrityError(RepositoryError):
    """Fetched chunk bytes do not match the manifest content hash."""

    def __init__(self, chunk_id: str, expected: str, actual: str) -> None:
        self.chunk_id = chunk_id
        self.expected = expected
        self.actual = actual
        super().__init__(f"Chunk {chunk_id!r} hash mismatch: expected {expected}, got {actual}")


class NotActiveError(WarmsetError):
    """Manifest exists but is not in the Active state."""

    def __init__(self, model_id: str, state: str) -> None:
        self.model_id = model_id
        self.state = state
        super().__init__(f"Model {model_id!r} is not Active (state={state})")


class NoBindingError(WarmsetError):
    """Operation requires a bound model but none exists."""


class ParseFailureError(WarmsetError):
    """Blob does not decode as a NOVAQ quantized model."""


class QualityGateError(WarmsetError):
    """Bound model failed the quality gate while blocking is enabled."""

    def __init__(self, model_id: str, issues: list[str]) -> None:
        self.model_id = model_id
        self.issues = issues
        super().__init__(f"Model {model_id!r} failed quality gate: {'; '.join(issues)}")
