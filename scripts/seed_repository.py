"""Seed an S3 model repository with a demo NOVAQ model.

Usage:
    python scripts/seed_repository.py --bucket warmset-models --endpoint-url http://localhost:4566
"""

from __future__ import annotations

import argparse
import hashlib
from datetime import UTC, datetime
from typing import Any

import boto3

from warmset.models.manifest import ChunkDescriptor, ModelManifest, ModelState
from warmset.models.quality import NOVAQConfig, NOVAQModel
from warmset.repository.s3_backend import S3ModelRepository
from warmset.services.quality_gate import pack_novaq_blob

DEMO_MODEL_ID = "novaq-demo-1b"
DEMO_CHUNK_COUNT = 6
DEMO_CHUNK_BYTES = 8192


def create_bucket(s3: Any, bucket: str, region: str = "us-east-1") -> None:
    """Create the repository bucket. Skips if it already exists."""
    existing = [b["Name"] for b in s3.list_buckets().get("Buckets", [])]
    if bucket in existing:
        print(f"  Bucket {bucket} already exists, skipping")
        return
    kwargs: dict[str, Any] = {"Bucket": bucket}
    if region != "us-east-1":
        kwargs["CreateBucketConfiguration"] = {"LocationConstraint": region}
    s3.create_bucket(**kwargs)
    print(f"  Created bucket {bucket}")


def demo_chunks(model_id: str = DEMO_MODEL_ID, count: int = DEMO_CHUNK_COUNT,
                size: int = DEMO_CHUNK_BYTES) -> list[tuple[str, bytes]]:
    """Chunk 0 is the NOVAQ header blob; the rest are seeded filler bytes."""
    header = pack_novaq_blob(NOVAQModel(
        config=NOVAQConfig(target_bits=1.5, num_subspaces=2,
                           codebook_size_l1=16, codebook_size_l2=4),
        compression_ratio=383.3,
        bit_accuracy=0.95,
    ))
    chunks = [(f"{model_id}.c000", header)]
    for i in range(1, count):
        block = hashlib.sha256(f"{model_id}:{i}".encode()).digest()
        chunks.append((f"{model_id}.c{i:03d}", (block * (size // len(block) + 1))[:size]))
    return chunks


def seed_model(repo: S3ModelRepository, model_id: str = DEMO_MODEL_ID,
               chunks: list[tuple[str, bytes]] | None = None,
               state: ModelState = ModelState.ACTIVE, version: str = "1.0.0") -> ModelManifest:
    """Upload chunk objects, then the manifest describing them."""
    if chunks is None:
        chunks = demo_chunks(model_id)
    descriptors = []
    digest = hashlib.sha256()
    offset = 0
    for chunk_id, data in chunks:
        repo.write_chunk(model_id, chunk_id, data)
        content_hash = hashlib.sha256(data).hexdigest()
        descriptors.append(ChunkDescriptor(id=chunk_id, offset=offset, size=len(data),
                                           content_hash=content_hash))
        digest.update(content_hash.encode())
        offset += len(data)
    print(f"  Uploaded {len(chunks)} chunks for {model_id}")

    now = datetime.now(UTC)
    manifest = ModelManifest(
        model_id=model_id,
        version=version,
        chunks=tuple(descriptors),
        digest=digest.hexdigest(),
        state=state,
        uploaded_at=now,
        activated_at=now if state is ModelState.ACTIVE else None,
    )
    repo.write_manifest(manifest)
    print(f"  Wrote manifest for {model_id} ({state})")
    return manifest


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed an S3 model repository for warmset")
    parser.add_argument("--bucket", default="warmset-models", help="Repository bucket")
    parser.add_argument("--prefix", default="models/", help="Key prefix")
    parser.add_argument("--endpoint-url", default=None, help="S3 endpoint (e.g. http://localhost:4566)")
    parser.add_argument("--region", default="us-east-1", help="AWS region")
    parser.add_argument("--model-id", default=DEMO_MODEL_ID, help="Model id to publish")
    args = parser.parse_args()

    kwargs: dict[str, Any] = {"region_name": args.region}
    if args.endpoint_url:
        kwargs["endpoint_url"] = args.endpoint_url

    print("Creating bucket...")
    create_bucket(boto3.client("s3", **kwargs), args.bucket, region=args.region)

    print("Seeding model...")
    repo = S3ModelRepository(bucket=args.bucket, prefix=args.prefix, region=args.region,
                             endpoint_url=args.endpoint_url)
    seed_model(repo, args.model_id)

    print("Done!")


if __name__ == "__main__":
    main()
