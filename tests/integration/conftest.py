"""Integration test fixtures: LocalStack S3 model repository."""

from __future__ import annotations

import os
import sys

import boto3
import pytest

# Default LocalStack endpoint
LOCALSTACK_URL = os.environ.get("LOCALSTACK_URL", "http://localhost:4566")
BUCKET = "warmset-inttest"


def _localstack_available() -> bool:
    """Check if LocalStack is reachable."""
    try:
        client = boto3.client("s3", region_name="us-east-1", endpoint_url=LOCALSTACK_URL)
        client.list_buckets()
        return True
    except Exception:
        return False


skip_no_localstack = pytest.mark.skipif(
    not _localstack_available(),
    reason="LocalStack not available",
)


@pytest.fixture(scope="session")
def localstack_s3():
    """S3 client pointing at LocalStack."""
    return boto3.client("s3", region_name="us-east-1", endpoint_url=LOCALSTACK_URL)


@pytest.fixture(scope="session")
def seeded_bucket(localstack_s3):
    """Create the bucket and publish the demo model via the seed script."""
    sys.path.insert(0, str(os.path.join(os.path.dirname(__file__), "..", "..", "scripts")))
    from seed_repository import create_bucket, seed_model

    from warmset.repository.s3_backend import S3ModelRepository

    create_bucket(localstack_s3, BUCKET)
    seed_model(S3ModelRepository(bucket=BUCKET, endpoint_url=LOCALSTACK_URL))
    return BUCKET
