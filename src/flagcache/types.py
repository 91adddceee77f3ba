"""flagcache type definitions."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Set


def flag_mapping(data: Any) -> Dict[str, bool]:
    """Validate a name -> boolean mapping from a remote payload.

    Raises:
        TypeError: If data is not a mapping or a value is not a real boolean.
    """
    if not isinstance(data, Mapping):
        raise TypeError(f"expected a mapping, got {type(data).__name__}")
    for name, value in data.items():
        if not isinstance(value, bool):
            raise TypeError(f"value of '{name}' is not a boolean: {value!r}")
    return dict(data)


@dataclass
class CachedFlagRecord:
    """Cached feature flags for one user identity."""
    key: str
    flags: Dict[str, bool]
    refreshed_at: datetime

    def __post_init__(self) -> None:
        if self.flags is None:
            self.flags = {}

    @property
    def values(self) -> Mapping[str, bool]:
        return self.flags


@dataclass
class CachedFeatureRecord:
    """Cached business features for one tenant."""
    key: str
    features: Dict[str, bool]
    refreshed_at: datetime

    def __post_init__(self) -> None:
        if self.features is None:
            self.features = {}

    @property
    def values(self) -> Mapping[str, bool]:
        return self.features


@dataclass
class UserIdentity:
    """The user a flag evaluation is made for.

    ``created_at`` is None for anonymous users.
    """
    email: str
    tenant_id: str
    created_at: Optional[datetime] = None


@dataclass
class IdentityTraits:
    """Request body for a batched flag evaluation."""
    instance_id: str
    tenant_id: str
    subject_ids: Set[str]
    default_traits: Dict[str, Any] = field(default_factory=dict)
    product_version: str = ""

    def to_dict(self) -> dict:
        """Serialize to the wire format."""
        return {
            "instanceId": self.instance_id,
            "tenantId": self.tenant_id,
            "userIds": sorted(self.subject_ids),
            "traits": dict(self.default_traits),
            "productVersion": self.product_version,
        }


@dataclass
class FeaturesRequest:
    """Request body for a tenant business-feature evaluation."""
    tenant_id: str
    instance_id: str
    product_version: str = ""
    license_key: Optional[str] = None

    def to_dict(self) -> dict:
        """Serialize to the wire format."""
        data = {
            "tenantId": self.tenant_id,
            "instanceId": self.instance_id,
            "productVersion": self.product_version,
        }
        if self.license_key is not None:
            data["licenseKey"] = self.license_key
        return data


@dataclass
class FeaturesResponse:
    """Tenant business features as returned by the remote service.

    ``FeaturesResponse()`` is the structurally-empty response handed out
    when the remote call fails.
    """
    features: Optional[Dict[str, bool]] = None
    license: Optional[Dict[str, Any]] = None

    @property
    def is_empty(self) -> bool:
        return not self.features

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> FeaturesResponse:
        """Create from API response dict."""
        if not data:
            return cls()
        features = data.get("features")
        return cls(
            features=flag_mapping(features) if features is not None else None,
            license=data.get("license"),
        )
