"""Application configuration using pydantic-settings with grouped env prefixes."""

from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings


class RepositoryConfig(BaseSettings):
    """Remote model repository configuration."""

    model_config = {"env_prefix": "WARMSET_REPO_"}

    provider: Literal["memory", "s3"] = "s3"
    bucket: str = ""  # repository address; empty means not configured
    prefix: str = "models/"
    region: str = "us-east-1"
    endpoint_url: str | None = None  # LocalStack override


class CacheConfig(BaseSettings):
    """Chunk cache configuration."""

    model_config = {"env_prefix": "WARMSET_CACHE_"}

    budget_bytes: int = 100 * 1024 * 1024


class BindingConfig(BaseSettings):
    """Model binding configuration."""

    model_config = {"env_prefix": "WARMSET_BINDING_"}

    prefetch_depth: int = 2
    verify_chunk_hashes: bool = False


class GenerationConfig(BaseSettings):
    """Deterministic generation configuration."""

    model_config = {"env_prefix": "WARMSET_GEN_"}

    default_max_tokens: int = 128
    max_tokens_cap: int = 256
    seed_budget_bytes: int = 64 * 1024
    chunk_slice_bytes: int = 4096
    block_on_quality_failure: bool = False


class AppSettings(BaseSettings):
    """Root application settings aggregating all sub-configs."""

    model_config = {"env_prefix": "WARMSET_"}

    environment: Literal["dev", "uat", "prod"] = "dev"
    log_level: str = "INFO"
    log_format: Literal["json", "console"] = "json"

    repository: RepositoryConfig = RepositoryConfig()
    cache: CacheConfig = CacheConfig()
    binding: BindingConfig = BindingConfig()
    generation: GenerationConfig = GenerationConfig()
