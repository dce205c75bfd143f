"""Utility functions for the OVH resource operator."""

import datetime
import json
import re
from typing import Any

from models import (
    ConditionStatus,
    ErrorKind,
    Operation,
    OperationProgress,
    OperationStatus,
    Phase,
)

# Trailing availability-zone number, e.g. "7" in "GRA7" or "-1" in "US-EAST-VA-1"
_REGION_SUFFIX = re.compile(r"-?\d+$")

# Probe failures that say nothing about the resource itself
TRANSIENT_PROBE_ERROR_KINDS = frozenset(
    {ErrorKind.THROTTLING, ErrorKind.SERVICE_INTERNAL_ERROR}
)


def now_iso() -> str:
    """Return current UTC time in ISO format."""
    return datetime.datetime.now(datetime.UTC).isoformat()


def resolve_string(value: Any) -> str:
    """Render an identifier property as a string.

    JSON numbers arrive as int or float; a float holding an integral value
    is rendered without its fractional part.

    Example: 42.0 -> '42', 'abc' -> 'abc', None -> ''
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def derive_short_region(region: str) -> str:
    """Convert an OpenStack region code to an OVH cloud region code.

    OVH database and storage APIs expect the short form.

    Example: 'GRA7' -> 'GRA', 'US-EAST-VA-1' -> 'US-EAST-VA', 'DE' -> 'DE'
    """
    if not region:
        return ""
    return _REGION_SUFFIX.sub("", region)


def filter_nil_values(data: dict[str, Any]) -> dict[str, Any]:
    """Drop None values recursively; the OVH API rejects explicit nulls."""
    result: dict[str, Any] = {}
    for key, value in data.items():
        if value is None:
            continue
        if isinstance(value, dict):
            nested = filter_nil_values(value)
            if nested:
                result[key] = nested
            continue
        if isinstance(value, list):
            result[key] = [
                filter_nil_values(item) if isinstance(item, dict) else item
                for item in value
                if item is not None
            ]
            continue
        result[key] = value
    return result


def strip_keys(data: dict[str, Any], keys: tuple[str, ...] | list[str]) -> dict[str, Any]:
    """Return a copy of data without the given keys and without None values."""
    excluded = set(keys)
    return filter_nil_values({k: v for k, v in data.items() if k not in excluded})


def parse_properties(raw: Any) -> dict[str, Any]:
    """Parse resource properties handed over by the host.

    Accepts a mapping, JSON text, JSON bytes, or None (empty properties).

    Raises:
        ValueError: If the input is not a JSON object.
    """
    if raw is None:
        return {}
    if isinstance(raw, dict):
        return dict(raw)
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8")
    if isinstance(raw, str):
        if not raw.strip():
            return {}
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValueError(f"failed to parse properties: {e}") from e
        if not isinstance(parsed, dict):
            raise ValueError("properties must be a JSON object")
        return parsed
    raise ValueError(f"unsupported properties type: {type(raw).__name__}")


def set_condition(
    status: dict[str, Any],
    condition_type: str,
    condition_status: str,
    reason: str = "",
    message: str = "",
) -> None:
    """Set or update a condition in the status conditions list."""
    conditions: list[dict[str, str]] = status.setdefault("conditions", [])

    for condition in conditions:
        if condition["type"] == condition_type:
            if condition["status"] != condition_status:
                condition["status"] = condition_status
                condition["lastTransitionTime"] = now_iso()
            condition["reason"] = reason
            condition["message"] = message
            return

    conditions.append(
        {
            "type": condition_type,
            "status": condition_status,
            "reason": reason,
            "message": message,
            "lastTransitionTime": now_iso(),
        }
    )


def is_transient_probe_failure(progress: OperationProgress) -> bool:
    """True for a CheckStatus that failed without a terminal resource status."""
    return (
        progress.failed
        and progress.operation is Operation.CHECK_STATUS
        and progress.error_kind in TRANSIENT_PROBE_ERROR_KINDS
        and progress.properties is None
    )


def apply_progress(status: dict[str, Any], progress: OperationProgress) -> Phase:
    """Record an operation outcome in a custom resource status dict.

    A CheckStatus that failed before reaching the resource keeps the
    resource Provisioning so the next probe still runs. Returns the phase
    that was written.
    """
    if progress.native_id:
        status["nativeId"] = progress.native_id
    if progress.request_id:
        status["requestId"] = progress.request_id

    if progress.status is OperationStatus.SUCCESS:
        phase = Phase.READY
        status["errorCode"] = None
        if progress.properties is not None:
            status["properties"] = progress.properties
        set_condition(
            status, "Ready", ConditionStatus.TRUE.value, progress.operation.value, ""
        )
    elif progress.status is OperationStatus.IN_PROGRESS:
        phase = Phase.PROVISIONING
        set_condition(
            status, "Ready", ConditionStatus.FALSE.value, "InProgress", progress.message[:200]
        )
    else:
        phase = Phase.PROVISIONING if is_transient_probe_failure(progress) else Phase.ERROR
        kind = progress.error_kind.value if progress.error_kind else ""
        status["errorCode"] = kind
        set_condition(
            status, "Ready", ConditionStatus.FALSE.value, kind or "Error", progress.message[:200]
        )

    status["phase"] = phase.value
    status["lastSyncTime"] = now_iso()
    return phase
