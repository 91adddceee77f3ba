"""flagcache configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from typing import Mapping, Optional

from .exceptions import ConfigurationError

DEFAULT_BASE_URL = "https://cs.appsmith.com"
DEFAULT_TIMEOUT = 5.0  # 5 seconds
DEFAULT_PRODUCT_VERSION = "UNKNOWN"

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _env_bool(value: Optional[str]) -> bool:
    return value is not None and value.strip().lower() in _TRUE_VALUES


@dataclass
class FlagCacheConfig:
    """Settings shared by the remote clients and the cache services.

    Attributes:
        signature_secret: Shared secret used to verify remote responses.
        base_url: Base URL of the remote evaluation service.
        instance_id: Identifier of this deployment, sent with every request.
        product_version: Running product version, sent with every request.
        cloud_hosting: If True, user emails are sent in clear instead of hashed.
        telemetry_disabled: Reported to the remote side as a user trait.
        timeout: HTTP request timeout in seconds.
        freshness_window: Optional maximum age before a cached record is stale.
    """

    signature_secret: str
    base_url: str = DEFAULT_BASE_URL
    instance_id: str = ""
    product_version: str = DEFAULT_PRODUCT_VERSION
    cloud_hosting: bool = False
    telemetry_disabled: bool = False
    timeout: float = DEFAULT_TIMEOUT
    freshness_window: Optional[timedelta] = None

    def __post_init__(self) -> None:
        if not self.signature_secret:
            raise ConfigurationError(
                "Signature secret required. Pass signature_secret or set FLAGCACHE_SIGNATURE_SECRET environment variable."
            )
        if not self.base_url:
            raise ConfigurationError("Base URL must not be empty.")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> FlagCacheConfig:
        """Build a config from FLAGCACHE_* environment variables.

        Args:
            environ: Mapping to read from. Defaults to os.environ.

        Raises:
            ConfigurationError: If the secret is missing or a number is malformed.
        """
        env = os.environ if environ is None else environ

        try:
            timeout = float(env.get("FLAGCACHE_TIMEOUT", DEFAULT_TIMEOUT))
            window_seconds = env.get("FLAGCACHE_FRESHNESS_WINDOW")
            freshness_window = (
                timedelta(seconds=float(window_seconds)) if window_seconds else None
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid numeric setting: {e}") from e

        return cls(
            signature_secret=env.get("FLAGCACHE_SIGNATURE_SECRET", ""),
            base_url=env.get("FLAGCACHE_BASE_URL") or DEFAULT_BASE_URL,
            instance_id=env.get("FLAGCACHE_INSTANCE_ID", ""),
            product_version=env.get("FLAGCACHE_PRODUCT_VERSION") or DEFAULT_PRODUCT_VERSION,
            cloud_hosting=_env_bool(env.get("FLAGCACHE_CLOUD_HOSTING")),
            telemetry_disabled=_env_bool(env.get("FLAGCACHE_TELEMETRY_DISABLED")),
            timeout=timeout,
            freshness_window=freshness_window,
        )
