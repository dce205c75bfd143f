"""Tests for per-parent singleton configuration objects."""

import pytest

from models import ErrorKind, Operation
from resources import container_registry, kube
from singleton import SingletonDefinition, SingletonProvisioner

KUBE_OIDC = "/cloud/project/p1/kube/k1/openIdConnect"
REGISTRY_OIDC = "/cloud/project/p1/containerRegistry/r1/openIdConnect"

OIDC_PROPS = {
    "kubeId": "k1",
    "issuerUrl": "https://issuer.example.com",
    "clientId": "kube",
}


@pytest.fixture
def kube_oidc(transport):
    return SingletonProvisioner(kube.OIDC, transport)


@pytest.fixture
def registry_oidc(transport):
    return SingletonProvisioner(container_registry.OIDC, transport)


class TestSingletonDefinition:
    """Tests for SingletonDefinition validation."""

    def test_operations_exclude_check_status(self):
        assert Operation.CHECK_STATUS not in kube.OIDC.operations
        assert Operation.UPDATE in kube.OIDC.operations

    def test_rejects_unknown_create_method(self):
        with pytest.raises(ValueError):
            SingletonDefinition("OVH::Test::One", "kube", "kubeId", "one", "PATCH")

    def test_native_id_addresses_parent(self):
        ctx = kube.OIDC.codec.decode("p1/k1")

        assert ctx.resource_type == "kube"
        assert ctx.resource_id == "k1"


class TestCreate:
    """Tests for SingletonProvisioner.create."""

    def test_kube_oidc_is_put(self, transport, kube_oidc):
        transport.reply("PUT", KUBE_OIDC, {"issuerUrl": "https://issuer.example.com"})

        progress = kube_oidc.create(OIDC_PROPS, {"serviceName": "p1"})

        assert progress.succeeded
        assert progress.native_id == "p1/k1"
        assert transport.bodies("PUT") == [
            {"issuerUrl": "https://issuer.example.com", "clientId": "kube"}
        ]

    def test_registry_oidc_is_post(self, transport, registry_oidc):
        transport.reply("POST", REGISTRY_OIDC, {"providerName": "corp"})

        progress = registry_oidc.create(
            {"serviceName": "p1", "registryId": "r1", "providerName": "corp"}
        )

        assert progress.succeeded
        assert progress.native_id == "p1/r1"
        assert transport.bodies("POST") == [{"providerName": "corp"}]

    def test_missing_parent_never_calls_provider(self, transport, kube_oidc):
        progress = kube_oidc.create({"issuerUrl": "x"}, {"serviceName": "p1"})

        assert progress.error_kind is ErrorKind.INVALID_REQUEST
        assert "kubeId" in progress.message
        assert transport.calls == []

    def test_already_configured(self, transport, registry_oidc):
        transport.fail("POST", REGISTRY_OIDC, ErrorKind.ALREADY_EXISTS)

        progress = registry_oidc.create({"serviceName": "p1", "registryId": "r1"})

        assert progress.failed
        assert progress.error_kind is ErrorKind.ALREADY_EXISTS


class TestReadUpdateDelete:
    """Tests for read, update and delete."""

    def test_read(self, transport, kube_oidc):
        transport.reply("GET", KUBE_OIDC, {"clientId": "kube"})

        result = kube_oidc.read("p1/k1")

        assert result.properties == {"clientId": "kube"}

    def test_read_not_configured(self, transport, kube_oidc):
        result = kube_oidc.read("p1/k1")

        assert result.error_kind is ErrorKind.NOT_FOUND

    def test_read_bad_native_id(self, transport, kube_oidc):
        result = kube_oidc.read("p1")

        assert result.error_kind is ErrorKind.INVALID_REQUEST
        assert transport.calls == []

    def test_update_puts_without_routing_fields(self, transport, kube_oidc):
        transport.reply("PUT", KUBE_OIDC, None)

        progress = kube_oidc.update("p1/k1", {**OIDC_PROPS, "serviceName": "p1"})

        assert progress.succeeded
        assert transport.bodies("PUT") == [
            {"issuerUrl": "https://issuer.example.com", "clientId": "kube"}
        ]

    def test_delete(self, transport, kube_oidc):
        transport.reply("DELETE", KUBE_OIDC, None)

        assert kube_oidc.delete("p1/k1").succeeded

    def test_delete_absent_is_success(self, transport, kube_oidc):
        assert kube_oidc.delete("p1/k1").succeeded


class TestList:
    """Tests for SingletonProvisioner.list."""

    def test_configured(self, transport, kube_oidc):
        transport.reply("GET", KUBE_OIDC, {"clientId": "kube"})

        result = kube_oidc.list({"serviceName": "p1"}, {"kubeId": "k1"})

        assert result.native_ids == ["p1/k1"]

    def test_not_configured(self, transport, kube_oidc):
        result = kube_oidc.list({"serviceName": "p1"}, {"kubeId": "k1"})

        assert result.ok
        assert result.native_ids == []

    def test_provider_failure(self, transport, kube_oidc):
        transport.fail("GET", KUBE_OIDC, ErrorKind.ACCESS_DENIED)

        result = kube_oidc.list({"serviceName": "p1"}, {"kubeId": "k1"})

        assert result.error_kind is ErrorKind.ACCESS_DENIED

    def test_without_parent(self, transport, kube_oidc):
        assert kube_oidc.list({"serviceName": "p1"}).native_ids == []
        assert transport.calls == []
