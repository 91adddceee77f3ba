"""Cache-aside service for per-tenant business features."""

from __future__ import annotations

import logging
from typing import Dict, Optional

from .cache import FeatureCacheStore
from .config import FlagCacheConfig
from .exceptions import InvalidSignatureError, classify
from .flags import Clock, utcnow
from .remote import RemoteFeatureClient
from .staleness import BACKDATE_INTERVAL, StalenessPolicy
from .types import CachedFeatureRecord, FeaturesRequest, FeaturesResponse

logger = logging.getLogger("flagcache")


class TenantFeatureCacheService:
    """Serves tenant business features from a cache in front of the remote evaluator.

    Degradation follows FeatureFlagCacheService: an unreachable remote yields
    no features and a backdated record, an invalid signature raises.
    get_remote_features() is the exception, it never raises.
    """

    def __init__(
        self,
        client: RemoteFeatureClient,
        config: FlagCacheConfig,
        store: Optional[FeatureCacheStore] = None,
        policy: Optional[StalenessPolicy] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._client = client
        self._config = config
        self._store = store if store is not None else FeatureCacheStore()
        self._policy = policy or StalenessPolicy(config.freshness_window)
        self._clock = clock or utcnow

    @property
    def store(self) -> FeatureCacheStore:
        return self._store

    async def fetch_cached(self, tenant_id: str) -> CachedFeatureRecord:
        """Return the cached features for tenant_id, populating them on a miss.

        Raises:
            InvalidSignatureError: If the remote response could not be verified.
        """
        cached = await self._store.get(tenant_id)
        if cached is not None:
            logger.debug(f"Cache hit for features of tenant '{tenant_id}'")
            return cached

        features = await self.force_refresh(tenant_id)
        record = self._wrap(tenant_id, features)
        await self._store.put(tenant_id, record)
        return record

    async def get_features(self, tenant_id: str) -> Dict[str, bool]:
        """Return features for tenant_id, refreshing the cached record when it is stale.

        A record populated by this call is never refreshed again straight away.
        """
        record = await self._store.get(tenant_id)
        if record is None:
            record = await self.fetch_cached(tenant_id)
        elif self._policy.is_stale(record, self._clock()):
            logger.debug(f"Cached features for tenant '{tenant_id}' are stale, refreshing")
            features = await self.force_refresh(tenant_id)
            record = await self.replace_cached(tenant_id, self._wrap(tenant_id, features))
        return dict(record.features)

    async def force_refresh(self, tenant_id: str) -> Dict[str, bool]:
        """Evaluate all business features for tenant_id remotely.

        Returns:
            The tenant's features, or an empty mapping if the remote service
            is unavailable.

        Raises:
            InvalidSignatureError: If the remote response could not be verified.
        """
        request = FeaturesRequest(
            tenant_id=tenant_id,
            instance_id=self._config.instance_id,
            product_version=self._config.product_version,
        )
        try:
            response = await self._client.evaluate(request)
        except Exception as e:
            error = classify(e)
            if isinstance(error, InvalidSignatureError):
                raise error
            logger.debug(f"Received error from remote service for tenant features: {error.message}")
            return {}
        return dict(response.features or {})

    async def replace_cached(
        self, tenant_id: str, record: CachedFeatureRecord
    ) -> CachedFeatureRecord:
        """Write record through to the cache and return it."""
        await self._store.put(tenant_id, record)
        return record

    async def evict(self, tenant_id: str) -> None:
        """Drop any cached features for tenant_id."""
        await self._store.evict(tenant_id)

    async def get_remote_features(self, request: FeaturesRequest) -> FeaturesResponse:
        """Query the remote service directly, bypassing the cache.

        Never raises: any failure, an invalid signature included, yields an
        empty FeaturesResponse.
        """
        try:
            return await self._client.evaluate(request)
        except Exception as e:
            error = classify(e)
            logger.error(
                f"Received error from remote service while fetching features: {error.message}",
                exc_info=error,
            )
            return FeaturesResponse()

    def _wrap(self, tenant_id: str, features: Optional[Dict[str, bool]]) -> CachedFeatureRecord:
        refreshed_at = self._clock()
        if not features:
            refreshed_at -= BACKDATE_INTERVAL
            logger.info(f"No features received for tenant '{tenant_id}', backdating cached record")
        return CachedFeatureRecord(key=tenant_id, features=features or {}, refreshed_at=refreshed_at)
