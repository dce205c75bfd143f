"""Operator configuration from environment variables and target configs."""

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from constants import PROJECT_CONFIG_KEYS, REGION_CONFIG_KEYS
from models import ConfigurationError

DEFAULT_ENDPOINT = "ovh-eu"
DEFAULT_REQUEST_TIMEOUT = 180.0


def _first_value(data: Mapping[str, Any], keys: tuple[str, ...]) -> str:
    for key in keys:
        value = data.get(key)
        if isinstance(value, str) and value:
            return value
    return ""


@dataclass(frozen=True)
class OvhConfig:
    """Credentials and endpoint for the OVH REST API.

    Credentials are only ever read from the environment, never from a
    target config, so they are never persisted by the host.
    """

    endpoint: str
    application_key: str
    application_secret: str
    consumer_key: str
    cloud_project_id: str = ""
    timeout: float = DEFAULT_REQUEST_TIMEOUT

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "OvhConfig":
        """Load configuration from environment variables.

        Environment variables:
            OVH_ENDPOINT: API endpoint name or URL (default: ovh-eu)
            OVH_APPLICATION_KEY: Application key (required)
            OVH_APPLICATION_SECRET: Application secret (required)
            OVH_CONSUMER_KEY: Consumer key (required)
            OVH_CLOUD_PROJECT_ID: Default cloud project (serviceName)
            OVH_REQUEST_TIMEOUT: Per-request timeout in seconds (default: 180)

        Raises:
            ConfigurationError: If a required variable is missing or invalid.
        """
        env = os.environ if environ is None else environ

        missing = [
            name
            for name in (
                "OVH_APPLICATION_KEY",
                "OVH_APPLICATION_SECRET",
                "OVH_CONSUMER_KEY",
            )
            if not env.get(name)
        ]
        if missing:
            raise ConfigurationError(
                f"missing required environment variables: {', '.join(missing)}"
            )

        raw_timeout = env.get("OVH_REQUEST_TIMEOUT", str(DEFAULT_REQUEST_TIMEOUT))
        try:
            timeout = float(raw_timeout)
        except ValueError as e:
            raise ConfigurationError(
                f"OVH_REQUEST_TIMEOUT must be a number, got {raw_timeout!r}"
            ) from e
        if timeout <= 0:
            raise ConfigurationError("OVH_REQUEST_TIMEOUT must be positive")

        return cls(
            endpoint=env.get("OVH_ENDPOINT") or DEFAULT_ENDPOINT,
            application_key=env["OVH_APPLICATION_KEY"],
            application_secret=env["OVH_APPLICATION_SECRET"],
            consumer_key=env["OVH_CONSUMER_KEY"],
            cloud_project_id=env.get("OVH_CLOUD_PROJECT_ID", ""),
            timeout=timeout,
        )

    def __repr__(self) -> str:
        return (
            f"OvhConfig(endpoint={self.endpoint!r}, "
            f"cloud_project_id={self.cloud_project_id!r}, timeout={self.timeout})"
        )


def parse_target_config(raw: Any) -> dict[str, Any]:
    """Normalize a target config (mapping, JSON text or bytes) to a dict.

    Raises:
        ConfigurationError: If the input is not a JSON object.
    """
    if raw is None:
        return {}
    if isinstance(raw, Mapping):
        return dict(raw)
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8")
    if isinstance(raw, str):
        if not raw.strip():
            return {}
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"invalid target config: {e}") from e
        if isinstance(parsed, dict):
            return parsed
    raise ConfigurationError("target config must be a JSON object")


def project_from(*sources: Mapping[str, Any] | None) -> str:
    """Return the first cloud project (serviceName) found in the sources."""
    for source in sources:
        if source:
            project = _first_value(source, PROJECT_CONFIG_KEYS)
            if project:
                return project
    return ""


def region_from(*sources: Mapping[str, Any] | None) -> str:
    """Return the first region found in the sources."""
    for source in sources:
        if source:
            region = _first_value(source, REGION_CONFIG_KEYS)
            if region:
                return region
    return ""


def with_default_project(target_config: Mapping[str, Any], project: str) -> dict[str, Any]:
    """Inject a default cloud project as serviceName when none is configured."""
    result = dict(target_config)
    if project and not project_from(result):
        result["serviceName"] = project
    return result
