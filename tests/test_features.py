"""Tests for TenantFeatureCacheService."""

import asyncio
import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest
import respx

from flagcache import (
    CachedFeatureRecord,
    FeaturesRequest,
    FeaturesResponse,
    InvalidSignatureError,
    RemoteFeatureClient,
    TenantFeatureCacheService,
)

from .conftest import FEATURES_URL, signed_response

FIXED_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
async def client(config):
    client = RemoteFeatureClient(config)
    yield client
    await client.close()


@pytest.fixture
def service(client, config):
    return TenantFeatureCacheService(client, config, clock=lambda: FIXED_NOW)


def features_payload(features, license=None):
    data = {"features": features}
    if license is not None:
        data["license"] = license
    return {"data": data}


class TestFetchCached:
    """Test fetch_cached() for tenants."""

    @respx.mock
    async def test_miss_populates_record(self, service):
        route = respx.post(FEATURES_URL).mock(
            return_value=signed_response(features_payload({"license_sso_saml_enabled": True}))
        )

        record = await service.fetch_cached("t1")

        assert record.key == "t1"
        assert record.features == {"license_sso_saml_enabled": True}
        assert record.refreshed_at == FIXED_NOW
        assert await service.store.get("t1") is record

        body = json.loads(route.calls[0].request.content)
        assert body == {
            "tenantId": "t1",
            "instanceId": "instance-1",
            "productVersion": "v1.9.0",
        }

    @respx.mock
    async def test_empty_features_are_backdated(self, service):
        """Remote returns {} -> features {} and refreshed_at one day back."""
        respx.post(FEATURES_URL).mock(return_value=signed_response(features_payload({})))

        record = await service.fetch_cached("t1")

        assert record.features == {}
        assert record.refreshed_at == FIXED_NOW - timedelta(days=1)

    @respx.mock
    async def test_null_features_are_backdated(self, service):
        respx.post(FEATURES_URL).mock(return_value=signed_response(features_payload(None)))

        record = await service.fetch_cached("t1")

        assert record.features == {}
        assert record.refreshed_at == FIXED_NOW - timedelta(days=1)

    @respx.mock
    async def test_hit_does_not_call_remote(self, service):
        route = respx.post(FEATURES_URL).mock(
            return_value=signed_response(features_payload({"license_scim_enabled": True}))
        )

        first = await service.fetch_cached("t1")
        assert await service.fetch_cached("t1") is first
        assert len(route.calls) == 1

    @respx.mock
    async def test_outage_degrades(self, service):
        respx.post(FEATURES_URL).mock(side_effect=httpx.ConnectError("Connection refused"))

        record = await service.fetch_cached("t1")

        assert record.features == {}
        assert record.refreshed_at == FIXED_NOW - timedelta(days=1)

    @respx.mock
    async def test_invalid_signature_raises_and_stores_nothing(self, service):
        respx.post(FEATURES_URL).mock(
            return_value=signed_response(
                features_payload({"license_scim_enabled": True}), signature="tampered"
            )
        )

        with pytest.raises(InvalidSignatureError):
            await service.fetch_cached("t1")
        assert await service.store.get("t1") is None


class TestWriteThroughAndEvict:
    """Test replace_cached() and evict() for tenants."""

    @respx.mock(assert_all_called=False)
    async def test_replace_then_fetch(self, service, respx_mock):
        route = respx_mock.post(FEATURES_URL).mock(return_value=signed_response(features_payload({})))
        record = CachedFeatureRecord(
            key="t1", features={"license_audit_logs_enabled": True}, refreshed_at=FIXED_NOW
        )

        assert await service.replace_cached("t1", record) is record
        assert await service.fetch_cached("t1") is record
        assert len(route.calls) == 0

    async def test_evict_twice(self, service):
        await service.evict("t1")
        await service.evict("t1")
        assert await service.store.get("t1") is None


class TestGetFeatures:
    """Test the staleness-aware read for tenants."""

    @respx.mock
    async def test_degraded_record_is_retried(self, service):
        route = respx.post(FEATURES_URL).mock(
            side_effect=[
                httpx.Response(500, json={"error": "unavailable"}),
                signed_response(features_payload({"license_gac_enabled": True})),
            ]
        )

        await service.fetch_cached("t1")
        assert await service.get_features("t1") == {"license_gac_enabled": True}
        assert len(route.calls) == 2

    @respx.mock
    async def test_cold_read_during_outage_calls_remote_once(self, service):
        """A record populated by this read is not refreshed again straight away."""
        route = respx.post(FEATURES_URL).mock(side_effect=httpx.ConnectError("Connection refused"))

        assert await service.get_features("t1") == {}
        assert len(route.calls) == 1

        stored = await service.store.get("t1")
        assert stored.refreshed_at == FIXED_NOW - timedelta(days=1)


class TestConcurrentMisses:
    """Overlapping misses on one tenant may both refresh; the last write wins."""

    @respx.mock(assert_all_called=False)
    async def test_simultaneous_fetches_store_one_complete_record(self, service, respx_mock):
        complete = [
            {"license_scim_enabled": True, "license_pac_enabled": False},
            {"license_scim_enabled": False, "license_pac_enabled": True},
        ]
        respx_mock.post(FEATURES_URL).mock(
            side_effect=[signed_response(features_payload(features)) for features in complete]
        )

        first, second = await asyncio.gather(
            service.fetch_cached("t1"),
            service.fetch_cached("t1"),
        )

        for record in (first, second):
            assert record.key == "t1"
            assert record.features in complete

        stored = await service.store.get("t1")
        assert stored is first or stored is second
        assert len(service.store) == 1


class TestGetRemoteFeatures:
    """Test the ungated direct query."""

    @pytest.fixture
    def request_body(self):
        return FeaturesRequest(
            tenant_id="t1", instance_id="instance-1", product_version="v1.9.0", license_key="LK-1"
        )

    @respx.mock
    async def test_returns_parsed_response(self, service, request_body):
        route = respx.post(FEATURES_URL).mock(
            return_value=signed_response(
                features_payload({"license_branding_enabled": True}, license={"plan": "BUSINESS"})
            )
        )

        response = await service.get_remote_features(request_body)

        assert response.features == {"license_branding_enabled": True}
        assert response.license == {"plan": "BUSINESS"}
        assert json.loads(route.calls[0].request.content)["licenseKey"] == "LK-1"
        assert len(service.store) == 0

    @respx.mock
    async def test_always_calls_remote(self, service, request_body):
        route = respx.post(FEATURES_URL).mock(
            return_value=signed_response(features_payload({"license_branding_enabled": True}))
        )

        await service.get_remote_features(request_body)
        await service.get_remote_features(request_body)

        assert len(route.calls) == 2

    @respx.mock
    async def test_error_status_returns_empty_response(self, service, request_body):
        respx.post(FEATURES_URL).mock(return_value=httpx.Response(502))

        response = await service.get_remote_features(request_body)

        assert response == FeaturesResponse()
        assert response.is_empty

    @respx.mock
    async def test_invalid_signature_returns_empty_response(self, service, request_body):
        """The direct query never blocks the caller, even on a bad signature."""
        respx.post(FEATURES_URL).mock(
            return_value=httpx.Response(200, json=features_payload({"license_pac_enabled": True}))
        )

        response = await service.get_remote_features(request_body)

        assert response.features is None

    @respx.mock
    async def test_timeout_returns_empty_response(self, service, request_body):
        respx.post(FEATURES_URL).mock(side_effect=httpx.TimeoutException("Timeout"))

        assert (await service.get_remote_features(request_body)).is_empty
