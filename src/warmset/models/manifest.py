"""Manifest, chunk and binding models."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, Field


class ModelState(StrEnum):
    PENDING = "Pending"
    ACTIVE = "Active"
    DEPRECATED = "Deprecated"


class ChunkDescriptor(BaseModel):
    """One addressable piece of a model artifact, as listed in a manifest."""

    model_config = {"frozen": True}

    id: str
    offset: int = 0
    size: int = 0
    content_hash: str = ""  # hex sha256 of the chunk bytes


class ModelManifest(BaseModel):
    """Authoritative chunk layout and lifecycle state, owned by the repository."""

    model_config = {"frozen": True, "protected_namespaces": ()}

    model_id: str
    version: str
    chunks: tuple[ChunkDescriptor, ...] = ()
    digest: str = ""
    state: ModelState = ModelState.PENDING
    uploaded_at: datetime
    activated_at: Optional[datetime] = None

    @property
    def total_chunks(self) -> int:
        return len(self.chunks)


class ModelBinding(BaseModel):
    """Record that a model is currently staged for generation."""

    model_config = {"frozen": True, "protected_namespaces": ()}

    model_id: str
    bound_at: datetime
    manifest_digest: str
    chunks_loaded: int = Field(ge=0)
    total_chunks: int = Field(ge=0)
    version: str
