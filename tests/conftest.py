"""Shared fixtures for flagcache tests."""

import json

import httpx
import pytest

from flagcache import FlagCacheConfig, SignatureVerifier

TEST_SECRET = "cs-shared-secret"
TEST_BASE_URL = "https://cs.example.test/"
FLAGS_URL = f"{TEST_BASE_URL}api/v1/feature-flags"
FEATURES_URL = f"{TEST_BASE_URL}api/v1/business-features"


def signed_response(payload, status_code=200, secret=TEST_SECRET, signature=None):
    """Build a response whose body is signed like the remote service does."""
    content = json.dumps(payload).encode()
    headers = {"Content-Type": "application/json"}
    verifier = SignatureVerifier(secret)
    headers[verifier.header] = signature if signature is not None else verifier.sign(content)
    return httpx.Response(status_code, content=content, headers=headers)


@pytest.fixture
def config():
    """Config pointing at the mocked remote service."""
    return FlagCacheConfig(
        signature_secret=TEST_SECRET,
        base_url=TEST_BASE_URL,
        instance_id="instance-1",
        product_version="v1.9.0",
    )
