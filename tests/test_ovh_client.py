"""Tests for the OVH transport client."""

import pytest
from ovh import exceptions as ovh_exceptions

from config import OvhConfig
from models import ErrorKind, OperationStatus, TransportError
from ovh_client import OvhClient, parse_response
from provisioner import RestProvisioner
from ratelimit import RateLimiter
from resources import kube


class FakeSdkClient:
    """Stands in for ovh.Client.call."""

    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []

    def call(self, method, path, data=None, need_auth=True):
        self.calls.append((method, path, data, need_auth))
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def config():
    return OvhConfig(
        endpoint="ovh-eu",
        application_key="ak",
        application_secret="as",
        consumer_key="ck",
    )


def make_client(config, sdk):
    client = OvhClient(config, RateLimiter(max_concurrent=5, requests_per_second=1000))
    client._client = sdk
    return client


class TestParseResponse:
    """Tests for parse_response function."""

    def test_none_is_empty_object(self):
        response = parse_response(None)
        assert response.body == {}
        assert not response.is_array

    def test_object(self):
        assert parse_response({"id": "x"}).body == {"id": "x"}

    def test_array(self):
        response = parse_response(["a", "b"])
        assert response.is_array
        assert response.body_array == ["a", "b"]
        assert response.body == {}

    def test_empty_array_is_still_array(self):
        assert parse_response([]).is_array

    def test_scalar_is_rejected(self):
        with pytest.raises(TransportError) as exc_info:
            parse_response(42)
        assert exc_info.value.kind is ErrorKind.SERVICE_INTERNAL_ERROR


class TestOvhClient:
    """Tests for OvhClient.do."""

    def test_post_sends_body(self, config):
        sdk = FakeSdkClient(result={"id": "k1"})
        client = make_client(config, sdk)

        response = client.do("post", "/cloud/project/p1/kube", {"name": "k"})

        assert response.body == {"id": "k1"}
        assert sdk.calls == [("POST", "/cloud/project/p1/kube", {"name": "k"}, True)]

    def test_get_sends_no_body(self, config):
        sdk = FakeSdkClient(result=[])
        client = make_client(config, sdk)

        client.do("GET", "/cloud/project/p1/kube", {"ignored": True})

        assert sdk.calls[0][2] is None

    def test_unknown_method(self, config):
        client = make_client(config, FakeSdkClient())

        with pytest.raises(ValueError):
            client.do("TRACE", "/cloud/project")

    def test_not_found_is_translated(self, config):
        sdk = FakeSdkClient(error=ovh_exceptions.ResourceNotFoundError("gone"))
        client = make_client(config, sdk)

        with pytest.raises(TransportError) as exc_info:
            client.do("GET", "/cloud/project/p1/kube/k1")
        assert exc_info.value.kind is ErrorKind.NOT_FOUND

    def test_access_denied_is_translated(self, config):
        sdk = FakeSdkClient(error=ovh_exceptions.NotGrantedCall("not granted"))
        client = make_client(config, sdk)

        with pytest.raises(TransportError) as exc_info:
            client.do("DELETE", "/cloud/project/p1/kube/k1")
        assert exc_info.value.kind is ErrorKind.ACCESS_DENIED

    def test_timeout_is_service_internal_error(self, config):
        sdk = FakeSdkClient(error=TimeoutError("timed out"))
        client = make_client(config, sdk)

        with pytest.raises(TransportError) as exc_info:
            client.do("GET", "/cloud/project/p1/kube")
        assert exc_info.value.kind is ErrorKind.SERVICE_INTERNAL_ERROR

    def test_throttling_starts_cooldown(self, config):
        limiter = RateLimiter(
            max_concurrent=5, requests_per_second=1000, throttle_cooldown=30
        )
        sdk = FakeSdkClient(error=ovh_exceptions.APIError("Too many requests"))
        client = OvhClient(config, limiter)
        client._client = sdk

        with pytest.raises(TransportError) as exc_info:
            client.do("GET", "/cloud/project/p1/kube")

        assert exc_info.value.kind is ErrorKind.THROTTLING
        assert limiter._reserve() > 20

    def test_close_drops_sdk_client(self, config):
        client = make_client(config, FakeSdkClient())

        client.close()

        assert client._client is None


class TestLowLevelFailures:
    """Failures below the API never borrow a kind from digits in the URL."""

    TIMEOUT = (
        "Max retries exceeded with url: /1.0/cloud/project/a1404b/kube/k400 "
        "(Caused by ConnectTimeoutError('timed out'))"
    )

    @pytest.mark.parametrize(
        "error",
        [
            ovh_exceptions.HTTPError("Low HTTP request failed error", TIMEOUT),
            ovh_exceptions.NetworkError(TIMEOUT),
            ovh_exceptions.InvalidResponse("Failed to decode API response", TIMEOUT),
        ],
    )
    def test_classified_as_service_internal_error(self, config, error):
        client = make_client(config, FakeSdkClient(error=error))

        with pytest.raises(TransportError) as exc_info:
            client.do("DELETE", "/cloud/project/a1404b/kube/k400")
        assert exc_info.value.kind is ErrorKind.SERVICE_INTERNAL_ERROR

    def test_timed_out_delete_is_a_failure(self, config):
        error = ovh_exceptions.HTTPError("Low HTTP request failed error", self.TIMEOUT)
        client = make_client(config, FakeSdkClient(error=error))

        progress = RestProvisioner(kube.CLUSTER, client).delete("a1404b/k1")

        assert progress.status is OperationStatus.FAILURE
        assert progress.error_kind is ErrorKind.SERVICE_INTERNAL_ERROR
