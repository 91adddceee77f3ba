"""Cache-aside service for per-user feature flags."""

from __future__ import annotations

import hashlib
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from .cache import FlagCacheStore
from .config import FlagCacheConfig
from .exceptions import InvalidSignatureError, classify
from .remote import RemoteFlagClient
from .staleness import BACKDATE_INTERVAL, StalenessPolicy
from .types import CachedFlagRecord, IdentityTraits, UserIdentity

logger = logging.getLogger("flagcache")

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def hash_identifier(value: str) -> str:
    """Return the SHA-256 hex digest used to anonymise emails and domains."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def email_domain(email: Optional[str]) -> Optional[str]:
    """Return the part of email after the last '@', or None."""
    if not email or "@" not in email:
        return None
    domain = email.rsplit("@", 1)[1]
    return domain or None


class FeatureFlagCacheService:
    """Serves per-user feature flags from a cache in front of the remote evaluator.

    The remote evaluator being unreachable never fails a caller: flags degrade
    to "all off" and the stored record is backdated so the next policy check
    retries. An invalid response signature, on the other hand, always raises.

    Example:
        ```python
        config = FlagCacheConfig.from_env()
        async with RemoteFlagClient(config) as client:
            service = FeatureFlagCacheService(client, config)
            record = await service.fetch_cached(user_key, identity)
            if record.flags.get("darkMode"):
                ...
        ```
    """

    def __init__(
        self,
        client: RemoteFlagClient,
        config: FlagCacheConfig,
        store: Optional[FlagCacheStore] = None,
        policy: Optional[StalenessPolicy] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._client = client
        self._config = config
        self._store = store if store is not None else FlagCacheStore()
        self._policy = policy or StalenessPolicy(config.freshness_window)
        self._clock = clock or utcnow

    @property
    def store(self) -> FlagCacheStore:
        return self._store

    @property
    def policy(self) -> StalenessPolicy:
        return self._policy

    async def fetch_cached(self, key: str, identity: UserIdentity) -> CachedFlagRecord:
        """Return the cached record for key, populating it on a miss.

        A hit is returned unchanged, however old it is.

        Raises:
            InvalidSignatureError: If the remote response could not be verified.
        """
        cached = await self._store.get(key)
        if cached is not None:
            logger.debug(f"Cache hit for flags of '{key}'")
            return cached

        flags = await self.force_refresh(key, identity)
        record = self._wrap(key, flags)
        await self._store.put(key, record)
        return record

    async def get_flags(self, key: str, identity: UserIdentity) -> Dict[str, bool]:
        """Return flags for key, refreshing the cached record when it is stale.

        A record populated by this call is never refreshed again straight away.
        """
        record = await self._store.get(key)
        if record is None:
            record = await self.fetch_cached(key, identity)
        elif self._policy.is_stale(record, self._clock()):
            logger.debug(f"Cached flags for '{key}' are stale, refreshing")
            flags = await self.force_refresh(key, identity)
            record = await self.replace_cached(key, self._wrap(key, flags))
        return dict(record.flags)

    async def force_refresh(self, key: str, identity: UserIdentity) -> Dict[str, bool]:
        """Evaluate all flags for key remotely, bypassing the cache.

        Returns:
            The flags addressed to key, or an empty mapping if the remote
            service is unavailable.

        Raises:
            InvalidSignatureError: If the remote response could not be verified.
        """
        traits = IdentityTraits(
            instance_id=self._config.instance_id,
            tenant_id=identity.tenant_id,
            subject_ids={key},
            default_traits=self._default_traits(identity),
            product_version=self._config.product_version,
        )
        try:
            by_identity = await self._client.evaluate(traits)
        except Exception as e:
            error = classify(e)
            if isinstance(error, InvalidSignatureError):
                raise error
            # All flags off; the caller's request must not fail.
            logger.debug(f"Received error from remote service for feature flags: {error.message}")
            return {}
        return by_identity.get(key) or {}

    async def replace_cached(self, key: str, record: CachedFlagRecord) -> CachedFlagRecord:
        """Write record through to the cache and return it."""
        await self._store.put(key, record)
        return record

    async def evict(self, key: str) -> None:
        """Drop any cached record for key."""
        await self._store.evict(key)

    def _wrap(self, key: str, flags: Dict[str, bool]) -> CachedFlagRecord:
        refreshed_at = self._clock()
        if not flags:
            refreshed_at -= BACKDATE_INTERVAL
            logger.info(f"No flags received for '{key}', backdating cached record")
        return CachedFlagRecord(key=key, flags=flags, refreshed_at=refreshed_at)

    def _default_traits(self, identity: UserIdentity) -> Dict[str, Any]:
        email = identity.email
        domain = email_domain(email)
        if not self._config.cloud_hosting:
            email = hash_identifier(email) if email else email
            if domain is not None:
                domain = hash_identifier(domain)

        traits: Dict[str, Any] = {
            "email": email,
            "instanceId": self._config.instance_id,
            "tenantId": identity.tenant_id,
            "emailDomain": domain,
            "isTelemetryOn": not self._config.telemetry_disabled,
        }
        if identity.created_at is not None:
            traits["createdAt"] = int(identity.created_at.timestamp())
        traits["defaultTraitsUpdatedAt"] = int(self._clock().timestamp())
        traits["type"] = "user"
        return traits
