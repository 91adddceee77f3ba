"""flagcache.

A resilient cache-aside layer in front of a remote feature flag and
business feature evaluation service.

Example:
    ```python
    from flagcache import (
        FeatureFlagCacheService,
        FlagCacheConfig,
        RemoteFlagClient,
        UserIdentity,
    )

    config = FlagCacheConfig.from_env()  # reads FLAGCACHE_* env vars
    async with RemoteFlagClient(config) as client:
        flags = FeatureFlagCacheService(client, config)
        identity = UserIdentity(email="ada@example.com", tenant_id="tenant-1")

        # Cached; an unreachable remote degrades to "all flags off"
        record = await flags.fetch_cached("user-123", identity)
        if record.flags.get("darkMode"):
            enable_dark_mode()
    ```
"""

from .cache import FeatureCacheStore, FlagCacheStore, RecordCache
from .config import FlagCacheConfig
from .exceptions import (
    ConfigurationError,
    FlagCacheError,
    InvalidSignatureError,
    RemoteUnavailableError,
)
from .features import TenantFeatureCacheService
from .flags import FeatureFlagCacheService
from .remote import RemoteFeatureClient, RemoteFlagClient
from .signature import SIGNATURE_HEADER, SignatureVerifier
from .staleness import BACKDATE_INTERVAL, StalenessPolicy
from .types import (
    CachedFeatureRecord,
    CachedFlagRecord,
    FeaturesRequest,
    FeaturesResponse,
    IdentityTraits,
    UserIdentity,
)

__version__ = "1.0.0"

__all__ = [
    "FeatureFlagCacheService",
    "TenantFeatureCacheService",
    "RemoteFlagClient",
    "RemoteFeatureClient",
    "FlagCacheConfig",
    "StalenessPolicy",
    "BACKDATE_INTERVAL",
    "RecordCache",
    "FlagCacheStore",
    "FeatureCacheStore",
    "SignatureVerifier",
    "SIGNATURE_HEADER",
    "FlagCacheError",
    "RemoteUnavailableError",
    "InvalidSignatureError",
    "ConfigurationError",
    "CachedFlagRecord",
    "CachedFeatureRecord",
    "FeaturesRequest",
    "FeaturesResponse",
    "IdentityTraits",
    "UserIdentity",
    "__version__",
]
