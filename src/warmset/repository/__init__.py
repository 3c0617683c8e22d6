"""Pluggable model repository clients behind the IModelRepository protocol."""

from __future__ import annotations

from warmset.core.config import AppSettings
from warmset.core.protocols import IModelRepository
from warmset.repository.memory_backend import MemoryModelRepository
from warmset.repository.s3_backend import S3ModelRepository


def create_repository(settings: AppSettings | None = None) -> IModelRepository | None:
    """Create the configured repository client.

    Returns None when the S3 provider is selected without a bucket; binding
    then fails with NotConfiguredError.
    """
    if settings is None:
        settings = AppSettings()

    repo = settings.repository
    if repo.provider == "memory":
        return MemoryModelRepository()
    if not repo.bucket:
        return None
    return S3ModelRepository(
        bucket=repo.bucket,
        prefix=repo.prefix,
        region=repo.region,
        endpoint_url=repo.endpoint_url,
    )


__all__ = ["MemoryModelRepository", "S3ModelRepository", "create_repository"]
