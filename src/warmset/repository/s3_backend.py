"""S3 model repository implementing IModelRepository."""

from __future__ import annotations

import asyncio

import boto3
from botocore.exceptions import ClientError
from pydantic import ValidationError

from warmset.core.exceptions import ChunkNotFoundError, ManifestNotFoundError, RepositoryError
from warmset.models.manifest import ModelManifest

_MISSING_CODES = {"NoSuchKey", "404", "NotFound"}


def _is_missing(exc: ClientError) -> bool:
    return exc.response.get("Error", {}).get("Code") in _MISSING_CODES


class S3ModelRepository:
    """Production IModelRepository backed by S3.

    Layout under ``prefix``::

        {model_id}/manifest.json
        {model_id}/chunks/{chunk_id}

    boto3 is blocking, so each fetch runs in a worker thread and the awaiting
    coroutine is the only suspension point.
    """

    def __init__(self, bucket: str, prefix: str = "models/", region: str = "us-east-1",
                 endpoint_url: str | None = None) -> None:
        self._bucket = bucket
        self._prefix = prefix
        self._region = region
        self._endpoint_url = endpoint_url
        kwargs: dict = {"region_name": region}
        if endpoint_url:
            kwargs["endpoint_url"] = endpoint_url
        self._client = boto3.client("s3", **kwargs)

    @property
    def bucket(self) -> str:
        return self._bucket

    def manifest_key(self, model_id: str) -> str:
        return f"{self._prefix}{model_id}/manifest.json"

    def chunk_key(self, model_id: str, chunk_id: str) -> str:
        return f"{self._prefix}{model_id}/chunks/{chunk_id}"

    # ---- IModelRepository ----

    async def get_manifest(self, model_id: str) -> ModelManifest:
        return await asyncio.to_thread(self.read_manifest, model_id)

    async def get_chunk(self, model_id: str, chunk_id: str) -> bytes:
        return await asyncio.to_thread(self.read_chunk, model_id, chunk_id)

    # ---- blocking operations ----

    def read_manifest(self, model_id: str) -> ModelManifest:
        key = self.manifest_key(model_id)
        try:
            resp = self._client.get_object(Bucket=self._bucket, Key=key)
            body = resp["Body"].read()
        except ClientError as exc:
            if _is_missing(exc):
                raise ManifestNotFoundError(model_id) from exc
            raise RepositoryError(f"S3 manifest read failed for {key!r}: {exc}") from exc
        try:
            return ModelManifest.model_validate_json(body)
        except ValidationError as exc:
            raise RepositoryError(f"Malformed manifest at {key!r}: {exc}") from exc

    def read_chunk(self, model_id: str, chunk_id: str) -> bytes:
        key = self.chunk_key(model_id, chunk_id)
        try:
            resp = self._client.get_object(Bucket=self._bucket, Key=key)
            return resp["Body"].read()
        except ClientError as exc:
            if _is_missing(exc):
                raise ChunkNotFoundError(model_id, chunk_id) from exc
            raise RepositoryError(f"S3 chunk read failed for {key!r}: {exc}") from exc

    def write_manifest(self, manifest: ModelManifest) -> str:
        key = self.manifest_key(manifest.model_id)
        try:
            self._client.put_object(
                Bucket=self._bucket, Key=key,
                Body=manifest.model_dump_json().encode(),
                ContentType="application/json",
            )
            return key
        except ClientError as exc:
            raise RepositoryError(f"S3 manifest write failed for {key!r}: {exc}") from exc

    def write_chunk(self, model_id: str, chunk_id: str, data: bytes) -> str:
        key = self.chunk_key(model_id, chunk_id)
        try:
            self._client.put_object(
                Bucket=self._bucket, Key=key, Body=data,
                ContentType="application/octet-stream",
            )
            return key
        except ClientError as exc:
            raise RepositoryError(f"S3 chunk write failed for {key!r}: {exc}") from exc
