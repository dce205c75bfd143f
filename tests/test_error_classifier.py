"""Tests for error classification."""

import pytest
from ovh import exceptions as ovh_exceptions

from error_classifier import (
    classify,
    classify_http_status,
    classify_message,
    to_transport_error,
)
from models import ErrorKind, TransportError


class TestClassifyHttpStatus:
    """Tests for classify_http_status function."""

    @pytest.mark.parametrize(
        "status_code,expected",
        [
            (400, ErrorKind.INVALID_REQUEST),
            (401, ErrorKind.ACCESS_DENIED),
            (403, ErrorKind.ACCESS_DENIED),
            (404, ErrorKind.NOT_FOUND),
            (409, ErrorKind.ALREADY_EXISTS),
            (429, ErrorKind.THROTTLING),
            (500, ErrorKind.SERVICE_INTERNAL_ERROR),
            (503, ErrorKind.SERVICE_INTERNAL_ERROR),
            (418, ErrorKind.SERVICE_INTERNAL_ERROR),
        ],
    )
    def test_status_codes(self, status_code, expected):
        assert classify_http_status(status_code) is expected


class TestClassifyMessage:
    """Tests for classify_message function."""

    @pytest.mark.parametrize(
        "message,expected",
        [
            ("The requested object (kube) does not exist", ErrorKind.NOT_FOUND),
            ("HTTP 404 Not Found", ErrorKind.NOT_FOUND),
            ("User already exists", ErrorKind.ALREADY_EXISTS),
            ("Conflict on resource", ErrorKind.ALREADY_EXISTS),
            ("Access not granted for this call", ErrorKind.ACCESS_DENIED),
            ("403 Forbidden", ErrorKind.ACCESS_DENIED),
            ("Too Many Requests", ErrorKind.THROTTLING),
            ("Quota exceeded for instances", ErrorKind.THROTTLING),
            ("Invalid value for flavorName", ErrorKind.INVALID_REQUEST),
            ("something exploded", ErrorKind.SERVICE_INTERNAL_ERROR),
            ("", ErrorKind.SERVICE_INTERNAL_ERROR),
        ],
    )
    def test_messages(self, message, expected):
        assert classify_message(message) is expected

    def test_not_found_wins_over_invalid(self):
        assert classify_message("invalid id: not found") is ErrorKind.NOT_FOUND

    def test_throttling_wins_over_invalid(self):
        assert classify_message("invalid quota for region") is ErrorKind.THROTTLING

    @pytest.mark.parametrize(
        "message",
        [
            "timed out calling /cloud/project/a1404b/kube/k1",
            "timed out calling /cloud/project/p1/kube/404",
            "connection reset for cluster 1400-429b",
        ],
    )
    def test_digits_inside_ids_are_ignored(self, message):
        assert classify_message(message) is ErrorKind.SERVICE_INTERNAL_ERROR

    def test_status_code_without_known_kind_falls_back_to_tokens(self):
        assert classify_message("HTTP 418: invalid teapot") is ErrorKind.INVALID_REQUEST


class TestClassify:
    """Tests for classify and to_transport_error."""

    def test_ovh_not_found(self):
        exc = ovh_exceptions.ResourceNotFoundError("This service does not exist")
        assert classify(exc) is ErrorKind.NOT_FOUND

    def test_ovh_bad_parameters(self):
        exc = ovh_exceptions.BadParametersError("Invalid region")
        assert classify(exc) is ErrorKind.INVALID_REQUEST

    def test_ovh_conflict(self):
        exc = ovh_exceptions.ResourceConflictError("conflict")
        assert classify(exc) is ErrorKind.ALREADY_EXISTS

    def test_ovh_not_granted(self):
        exc = ovh_exceptions.NotGrantedCall("This call has not been granted")
        assert classify(exc) is ErrorKind.ACCESS_DENIED

    def test_generic_api_error_falls_back_to_message(self):
        exc = ovh_exceptions.APIError("Too many requests, slow down")
        assert classify(exc) is ErrorKind.THROTTLING

    def test_generic_api_error_ignores_status_digits(self):
        exc = ovh_exceptions.APIError("failed: GET /cloud/project/p1/kube 404 ")
        assert classify(exc) is ErrorKind.SERVICE_INTERNAL_ERROR

    @pytest.mark.parametrize(
        "exc_type",
        [
            ovh_exceptions.HTTPError,
            ovh_exceptions.NetworkError,
            ovh_exceptions.InvalidResponse,
        ],
    )
    def test_low_level_failures(self, exc_type):
        exc = exc_type("request to /cloud/project/p1/kube/404 not found in time")
        assert classify(exc) is ErrorKind.SERVICE_INTERNAL_ERROR

    def test_transport_error_keeps_kind(self):
        exc = TransportError(ErrorKind.THROTTLING, "slow down", 429)
        assert classify(exc) is ErrorKind.THROTTLING

    def test_plain_exception(self):
        assert classify(RuntimeError("boom")) is ErrorKind.SERVICE_INTERNAL_ERROR

    def test_to_transport_error(self):
        error = to_transport_error(ovh_exceptions.ResourceNotFoundError("gone"))
        assert isinstance(error, TransportError)
        assert error.kind is ErrorKind.NOT_FOUND
        assert error.message == "gone"

    def test_to_transport_error_is_identity_for_transport_errors(self):
        original = TransportError(ErrorKind.NOT_FOUND, "gone")
        assert to_transport_error(original) is original
