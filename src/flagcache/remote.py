"""HTTP clients for the remote flag and feature evaluation endpoints."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from .config import FlagCacheConfig
from .exceptions import (
    FlagCacheError,
    InvalidSignatureError,
    RemoteUnavailableError,
    classify,
)
from .signature import SignatureVerifier
from .types import FeaturesRequest, FeaturesResponse, IdentityTraits, flag_mapping

logger = logging.getLogger("flagcache")

FEATURE_FLAGS_PATH = "api/v1/feature-flags"
BUSINESS_FEATURES_PATH = "api/v1/business-features"


class _SignedClient:
    """Shared transport for signed POST requests to the remote service.

    Every outcome of a request is classified here, once: transport
    failures, error statuses and malformed envelopes become
    RemoteUnavailableError, a bad signature becomes InvalidSignatureError.
    """

    def __init__(
        self,
        config: FlagCacheConfig,
        verifier: Optional[SignatureVerifier] = None,
    ) -> None:
        self._base_url = config.base_url
        if not self._base_url.endswith("/"):
            self._base_url += "/"
        self._timeout = config.timeout
        self._verifier = verifier or SignatureVerifier(config.signature_secret)

        # HTTP client (lazy initialized)
        self._client: Optional[httpx.AsyncClient] = None

    def _get_headers(self) -> dict[str, str]:
        """Return headers for API requests."""
        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": "flagcache-python/1.0.0",
        }

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the async HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers=self._get_headers(),
                timeout=self._timeout,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> _SignedClient:
        """Async context manager entry."""
        return self

    async def __aexit__(self, *args: object) -> None:
        """Async context manager exit."""
        await self.close()

    async def _post(self, path: str, body: dict) -> Any:
        """POST body to path and return the verified envelope's ``data``.

        Raises:
            RemoteUnavailableError: On transport errors, non-2xx statuses or a
                malformed envelope.
            InvalidSignatureError: If the response signature is missing or invalid.
        """
        try:
            return await self._exchange(path, body)
        except FlagCacheError:
            raise
        except Exception as e:
            raise classify(e) from e

    async def _exchange(self, path: str, body: dict) -> Any:
        client = self._get_client()

        try:
            response = await client.post(path, json=body)
        except httpx.TimeoutException as e:
            raise RemoteUnavailableError(f"Request timed out: {e}") from e
        except httpx.NetworkError as e:
            raise RemoteUnavailableError(f"Network error: {e}") from e
        except httpx.HTTPError as e:
            raise RemoteUnavailableError(f"HTTP error: {e}") from e

        logger.debug(f"POST {path} returned HTTP {response.status_code}")

        if not response.is_success:
            raise RemoteUnavailableError(
                f"Remote service returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        if not self._verifier.is_valid(response.headers, response.content):
            raise InvalidSignatureError(
                f"Invalid or missing {self._verifier.header} header",
                status_code=response.status_code,
            )

        envelope = response.json()
        if not isinstance(envelope, dict):
            raise RemoteUnavailableError("Malformed response envelope")
        return envelope.get("data")


class RemoteFlagClient(_SignedClient):
    """Evaluates per-user feature flags, batched by identity."""

    async def evaluate(self, traits: IdentityTraits) -> Dict[str, Dict[str, bool]]:
        """Evaluate flags for every subject id in traits.

        Returns:
            Mapping of subject id to its flag mapping. Missing ``data`` yields
            an empty mapping.
        """
        data = await self._post(FEATURE_FLAGS_PATH, traits.to_dict())
        if data is None:
            return {}
        try:
            return {
                identity: flag_mapping(flags or {})
                for identity, flags in data.items()
            }
        except (AttributeError, TypeError) as e:
            raise RemoteUnavailableError(f"Malformed feature flag payload: {e}") from e


class RemoteFeatureClient(_SignedClient):
    """Evaluates tenant-level business features."""

    async def evaluate(self, request: FeaturesRequest) -> FeaturesResponse:
        """Evaluate business features for the tenant in request."""
        data = await self._post(BUSINESS_FEATURES_PATH, request.to_dict())
        try:
            return FeaturesResponse.from_dict(data)
        except (AttributeError, TypeError) as e:
            raise RemoteUnavailableError(f"Malformed business feature payload: {e}") from e
