"""End-to-end tests for the host-facing plugin."""

import pytest

from models import ErrorKind, OperationStatus
from plugin import ResourcePlugin
from resources import build_registry


@pytest.fixture
def plugin(transport):
    return ResourcePlugin(build_registry(), transport, cloud_project_id="p1")


class TestResourcePlugin:
    """Tests for ResourcePlugin."""

    def test_supported_resources(self, plugin):
        resources = plugin.supported_resources()

        assert "OVH::Database::Service" in resources
        assert "OVH::Storage::Volume" in resources

    def test_database_service_lifecycle(self, transport, plugin):
        transport.reply(
            "POST",
            "/cloud/project/p1/database/mysql",
            {"id": "6a1f", "status": "CREATING"},
        )
        transport.reply(
            "GET",
            "/cloud/project/p1/database/mysql/6a1f",
            {"id": "6a1f", "status": "CREATING"},
            {"id": "6a1f", "status": "UPDATING"},
            {"id": "6a1f", "status": "READY"},
        )

        created = plugin.create(
            "OVH::Database::Service",
            {"engine": "mysql", "nodesPattern": {"region": "GRA7", "number": 1}},
        )
        assert created.status is OperationStatus.IN_PROGRESS
        assert created.native_id == "p1/mysql/6a1f"

        statuses = [
            plugin.check_status("OVH::Database::Service", created.native_id).status
            for _ in range(3)
        ]
        assert statuses == [
            OperationStatus.IN_PROGRESS,
            OperationStatus.IN_PROGRESS,
            OperationStatus.SUCCESS,
        ]

    def test_configured_project_is_injected(self, transport, plugin):
        transport.reply("GET", "/cloud/project/p1/kube", ["k1"])

        result = plugin.list("OVH::Kube::Cluster")

        assert result.native_ids == ["p1/k1"]

    def test_target_project_wins(self, transport, plugin):
        transport.reply("GET", "/cloud/project/p2/kube", ["k1"])

        result = plugin.list("OVH::Kube::Cluster", '{"serviceName": "p2"}')

        assert result.native_ids == ["p2/k1"]

    def test_unknown_resource_type(self, transport, plugin):
        progress = plugin.create("OVH::Nope::Nope", {})

        assert progress.failed
        assert progress.error_kind is ErrorKind.INVALID_REQUEST
        assert transport.calls == []

    def test_unknown_resource_type_read(self, plugin):
        result = plugin.read("OVH::Nope::Nope", "p1/x")

        assert result.error_kind is ErrorKind.INVALID_REQUEST

    def test_invalid_target_config(self, transport, plugin):
        progress = plugin.delete("OVH::Kube::Cluster", "p1/k1", "[1, 2]")

        assert progress.error_kind is ErrorKind.INVALID_REQUEST
        assert transport.calls == []

    def test_update_not_updatable(self, transport, plugin):
        progress = plugin.update("OVH::Registry::User", "p1/r1/u1", {"login": "x"})

        assert progress.error_kind is ErrorKind.NOT_UPDATABLE
        assert transport.calls == []

    def test_delete_twice(self, transport, plugin):
        transport.reply("DELETE", "/cloud/project/p1/volume/v1", None)

        assert plugin.delete("OVH::Storage::Volume", "p1/v1").succeeded

        transport.fail("DELETE", "/cloud/project/p1/volume/v1", ErrorKind.NOT_FOUND)
        assert plugin.delete("OVH::Storage::Volume", "p1/v1").succeeded

    def test_set_entry_round_trip(self, transport, plugin):
        path = "/cloud/project/p1/kube/k1/ipRestrictions"
        transport.reply("GET", path, [], [{"ip": "10.0.0.0/24"}])
        transport.reply("PUT", path, None)

        created = plugin.create(
            "OVH::Kube::IpRestriction", {"kubeId": "k1", "ip": "10.0.0.0/24"}
        )
        read = plugin.read("OVH::Kube::IpRestriction", created.native_id)

        assert created.native_id == "p1/k1/10.0.0.0/24"
        assert read.properties == {"ip": "10.0.0.0/24"}
