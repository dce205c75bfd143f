"""Tests for configuration loading."""

import pytest

from config import (
    OvhConfig,
    parse_target_config,
    project_from,
    region_from,
    with_default_project,
)
from models import ConfigurationError

CREDENTIALS = {
    "OVH_APPLICATION_KEY": "app-key",
    "OVH_APPLICATION_SECRET": "app-secret",
    "OVH_CONSUMER_KEY": "consumer-key",
}


class TestOvhConfig:
    """Tests for OvhConfig.from_env."""

    def test_defaults(self):
        config = OvhConfig.from_env(CREDENTIALS)

        assert config.endpoint == "ovh-eu"
        assert config.timeout == 180.0
        assert config.cloud_project_id == ""

    def test_overrides(self):
        env = {
            **CREDENTIALS,
            "OVH_ENDPOINT": "ovh-ca",
            "OVH_CLOUD_PROJECT_ID": "p1",
            "OVH_REQUEST_TIMEOUT": "30",
        }
        config = OvhConfig.from_env(env)

        assert config.endpoint == "ovh-ca"
        assert config.cloud_project_id == "p1"
        assert config.timeout == 30.0

    def test_missing_credentials_are_named(self):
        with pytest.raises(ConfigurationError, match="OVH_CONSUMER_KEY"):
            OvhConfig.from_env({"OVH_APPLICATION_KEY": "ak", "OVH_APPLICATION_SECRET": "as"})

    def test_bad_timeout(self):
        with pytest.raises(ConfigurationError, match="OVH_REQUEST_TIMEOUT"):
            OvhConfig.from_env({**CREDENTIALS, "OVH_REQUEST_TIMEOUT": "soon"})

    def test_repr_hides_secrets(self):
        config = OvhConfig.from_env(CREDENTIALS)

        assert "app-secret" not in repr(config)
        assert "consumer-key" not in repr(config)


class TestTargetConfig:
    """Tests for target config helpers."""

    def test_parse_json(self):
        assert parse_target_config('{"serviceName": "p1"}') == {"serviceName": "p1"}

    def test_parse_bytes(self):
        assert parse_target_config(b'{"region": "GRA"}') == {"region": "GRA"}

    def test_parse_empty(self):
        assert parse_target_config(None) == {}
        assert parse_target_config("  ") == {}

    def test_parse_non_object(self):
        with pytest.raises(ConfigurationError):
            parse_target_config("[1]")

    def test_parse_invalid_json(self):
        with pytest.raises(ConfigurationError):
            parse_target_config("{oops")

    def test_project_key_variants(self):
        assert project_from({"ProjectId": "p2"}) == "p2"
        assert project_from({"projectId": "p3"}) == "p3"

    def test_project_first_source_wins(self):
        assert project_from({"serviceName": "a"}, {"serviceName": "b"}) == "a"
        assert project_from({}, None, {"ServiceName": "b"}) == "b"

    def test_region(self):
        assert region_from({"Region": "GRA7"}) == "GRA7"
        assert region_from({}) == ""

    def test_default_project_injected(self):
        assert with_default_project({}, "p1") == {"serviceName": "p1"}

    def test_default_project_does_not_override(self):
        target = {"projectId": "p2"}
        assert with_default_project(target, "p1") == {"projectId": "p2"}
