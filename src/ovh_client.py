"""OVH SDK wrapper with rate limiting, metrics and error translation."""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Protocol

import ovh
from ovh import exceptions as ovh_exceptions

from config import OvhConfig
from error_classifier import to_transport_error
from metrics import OVH_API_CALLS, OVH_API_DURATION
from models import ErrorKind, TransportError
from ratelimit import RateLimiter, get_rate_limiter

logger = logging.getLogger(__name__)

SUPPORTED_METHODS = frozenset({"GET", "POST", "PUT", "PATCH", "DELETE"})


@dataclass(frozen=True)
class Response:
    """Decoded provider response.

    Object bodies land in body, array bodies in body_array, so a caller
    listing a collection never mistakes an object for an empty list.
    """

    status_code: int = 200
    body: dict[str, Any] = field(default_factory=dict)
    body_array: list[Any] | None = None

    @property
    def is_array(self) -> bool:
        return self.body_array is not None


class TransportClient(Protocol):
    """Anything that can issue one REST call against the provider."""

    def do(self, method: str, path: str, body: Any = None) -> Response:
        """Issue one call. Raises TransportError on any failure."""
        ...


def parse_response(raw: Any, status_code: int = 200) -> Response:
    """Wrap a decoded JSON payload in a Response.

    Raises:
        TransportError: If the payload is neither an object nor an array.
    """
    if raw is None:
        return Response(status_code=status_code)
    if isinstance(raw, dict):
        return Response(status_code=status_code, body=raw)
    if isinstance(raw, list):
        return Response(status_code=status_code, body_array=raw)
    raise TransportError(
        ErrorKind.SERVICE_INTERNAL_ERROR,
        f"unexpected response payload of type {type(raw).__name__}",
        status_code,
    )


class OvhClient:
    """Thin wrapper around ovh.Client implementing TransportClient.

    One instance is shared by every provisioner; the underlying SDK client
    is created on first use.
    """

    def __init__(
        self,
        config: OvhConfig,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        self.config = config
        self._rate_limiter = rate_limiter
        self._client: ovh.Client | None = None
        self._lock = threading.Lock()

    @property
    def client(self) -> ovh.Client:
        """Get or create the SDK client."""
        with self._lock:
            if self._client is None:
                logger.info("Connecting to OVH API endpoint: %s", self.config.endpoint)
                self._client = ovh.Client(
                    endpoint=self.config.endpoint,
                    application_key=self.config.application_key,
                    application_secret=self.config.application_secret,
                    consumer_key=self.config.consumer_key,
                    timeout=self.config.timeout,
                )
            return self._client

    @property
    def rate_limiter(self) -> RateLimiter:
        if self._rate_limiter is None:
            self._rate_limiter = get_rate_limiter()
        return self._rate_limiter

    def do(self, method: str, path: str, body: Any = None) -> Response:
        """Issue one signed call against the OVH API.

        Raises:
            ValueError: If method is not a supported HTTP method.
            TransportError: If the call fails for any reason.
        """
        method = method.upper()
        if method not in SUPPORTED_METHODS:
            raise ValueError(f"unsupported HTTP method: {method}")

        data = body if method in ("POST", "PUT", "PATCH") else None
        start_time = time.monotonic()
        try:
            with self.rate_limiter.acquire():
                logger.debug("%s %s", method, path)
                raw = self.client.call(method, path, data, True)
        except ovh_exceptions.APIError as e:
            OVH_API_CALLS.labels(method=method, status="error").inc()
            error = to_transport_error(e)
            if error.kind is ErrorKind.THROTTLING:
                self.rate_limiter.throttled()
            logger.debug("%s %s failed: %s", method, path, error)
            raise error from e
        except (OSError, TimeoutError) as e:
            OVH_API_CALLS.labels(method=method, status="error").inc()
            raise TransportError(
                ErrorKind.SERVICE_INTERNAL_ERROR,
                f"{method} {path} failed: {e}",
            ) from e
        finally:
            OVH_API_DURATION.labels(method=method).observe(time.monotonic() - start_time)

        OVH_API_CALLS.labels(method=method, status="success").inc()
        return parse_response(raw)

    def close(self) -> None:
        """Drop the SDK client; a new one is created on next use."""
        with self._lock:
            self._client = None
