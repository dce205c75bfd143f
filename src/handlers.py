"""Kopf handlers for the OvhResource CRD."""

import logging
import os
import sys
import time
from pathlib import Path
from typing import Any

# Add src directory to path for imports when run as script by Kopf
_src_dir = Path(__file__).parent
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

import kopf
from kubernetes import client as k8s_client
from prometheus_client import start_http_server

from config import parse_target_config
from constants import CRD_GROUP, CRD_PLURAL, CRD_VERSION, FINALIZER
from metrics import (
    RECONCILE_TOTAL,
    RECONCILE_DURATION,
    RECONCILE_IN_PROGRESS,
    set_operator_info,
    init_metrics,
)
from models import (
    ConditionStatus,
    ConfigurationError,
    ErrorKind,
    OperationProgress,
    OvhResourceSpec,
    Phase,
    ResourceStatus,
    TargetRefSpec,
)
from state import state, get_plugin
from utils import apply_progress, now_iso, set_condition

logger = logging.getLogger(__name__)

# Operator version
OPERATOR_VERSION = "0.1.0"

STATUS_POLL_INTERVAL = float(os.environ.get("STATUS_POLL_INTERVAL", "30"))

# Failures that will not go away by retrying the same request
PERMANENT_ERROR_KINDS = frozenset(
    {
        ErrorKind.INVALID_REQUEST,
        ErrorKind.ACCESS_DENIED,
        ErrorKind.NOT_UPDATABLE,
        ErrorKind.ALREADY_EXISTS,
    }
)


def load_target_config(spec: OvhResourceSpec, namespace: str) -> dict[str, Any]:
    """Assemble the target config from spec.targetRef and spec.target.

    The ConfigMap either holds a JSON object under the 'config' key or
    plain keys. Inline spec.target values take precedence.

    Raises:
        ConfigurationError: If the ConfigMap cannot be read or parsed.
    """
    target: dict[str, Any] = {}

    target_ref: TargetRefSpec = spec.get("targetRef") or {}
    cm_name = target_ref.get("configMapName")
    if cm_name:
        cm_namespace = target_ref.get("configMapNamespace", namespace)
        v1 = state.get_k8s_core_api()
        try:
            cm = v1.read_namespaced_config_map(cm_name, cm_namespace)
        except k8s_client.ApiException as e:
            raise ConfigurationError(
                f"failed to read ConfigMap {cm_namespace}/{cm_name}: {e.reason}"
            ) from e
        data = cm.data or {}
        if "config" in data:
            target.update(parse_target_config(data["config"]))
        else:
            target.update(data)

    target.update(parse_target_config(spec.get("target")))
    return target


def raise_for_failure(progress: OperationProgress, name: str) -> None:
    """Turn a Failure outcome into the matching kopf error."""
    if not progress.failed:
        return
    kind = progress.error_kind or ErrorKind.SERVICE_INTERNAL_ERROR
    message = f"{progress.operation.value} {name} failed ({kind.value}): {progress.message}"
    if kind in PERMANENT_ERROR_KINDS:
        raise kopf.PermanentError(message)
    raise kopf.TemporaryError(message, delay=60)


def _observe(resource_type: str, operation: str, status: str, start_time: float) -> None:
    RECONCILE_TOTAL.labels(
        resource_type=resource_type, operation=operation, status=status
    ).inc()
    RECONCILE_DURATION.labels(
        resource_type=resource_type, operation=operation
    ).observe(time.monotonic() - start_time)


def _status_label(progress: OperationProgress) -> str:
    if progress.succeeded:
        return "success"
    if progress.in_progress:
        return "in_progress"
    return "error"


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, **_: Any) -> None:
    """Configure operator settings on startup."""
    # Reduce logging noise
    settings.posting.level = logging.WARNING
    # Configure persistence
    settings.persistence.finalizer = FINALIZER
    # Set watching namespace - explicit cluster-wide or specific namespace
    # Can be overridden by WATCH_NAMESPACE env var
    watch_namespace = os.environ.get("WATCH_NAMESPACE", "")
    if watch_namespace:
        settings.watching.namespaces = [watch_namespace]
    else:
        settings.watching.clusterwide = True

    # Start Prometheus metrics server
    metrics_port = int(os.environ.get("METRICS_PORT", "9090"))
    try:
        start_http_server(metrics_port)
        logger.info("Prometheus metrics server started on port %d", metrics_port)
    except OSError as e:
        logger.warning("Failed to start metrics server on port %d: %s", metrics_port, e)

    # Fail fast on missing credentials and build the registry before any handler runs
    state.initialize()
    config = state.get_config()
    init_metrics(state.get_registry().resource_types())
    set_operator_info(OPERATOR_VERSION, config.endpoint)

    logger.info("OVH resource operator started (version %s)", OPERATOR_VERSION)


@kopf.on.cleanup()
def cleanup(**_: Any) -> None:
    """Clean up resources on operator shutdown."""
    logger.info("OVH resource operator shutting down")
    state.close()


@kopf.on.create(CRD_GROUP, CRD_VERSION, CRD_PLURAL)
def create_resource(
    spec: dict[str, Any],
    status: dict[str, Any],
    patch: kopf.Patch,
    name: str,
    namespace: str,
    **_: Any,
) -> None:
    """Handle OvhResource creation."""
    resource_type = spec["resourceType"]
    logger.info(f"Creating OvhResource: {name} ({resource_type})")

    if status.get("nativeId"):
        # A previous attempt already created the remote resource
        logger.info(f"OvhResource {name} already has nativeId {status['nativeId']}")
        return

    start_time = time.monotonic()
    RECONCILE_IN_PROGRESS.labels(resource_type=resource_type).inc()
    patch.status["phase"] = Phase.PROVISIONING.value

    try:
        try:
            target = load_target_config(spec, namespace)
        except ConfigurationError as e:
            patch.status["phase"] = Phase.PENDING.value
            set_condition(
                patch.status,
                "Ready",
                ConditionStatus.FALSE.value,
                "TargetConfig",
                str(e)[:200],
            )
            _observe(resource_type, "create", "error", start_time)
            raise kopf.TemporaryError(str(e), delay=60)

        progress = get_plugin().create(resource_type, spec.get("properties", {}), target)
        apply_progress(patch.status, progress)
        _observe(resource_type, "create", _status_label(progress), start_time)
        raise_for_failure(progress, name)

        logger.info(
            f"Created OvhResource: {name} "
            f"(nativeId={progress.native_id}, status={progress.status.value})"
        )
    finally:
        RECONCILE_IN_PROGRESS.labels(resource_type=resource_type).dec()


@kopf.on.update(CRD_GROUP, CRD_VERSION, CRD_PLURAL, field="spec.properties")
def update_resource(
    spec: dict[str, Any],
    status: dict[str, Any],
    patch: kopf.Patch,
    name: str,
    namespace: str,
    **_: Any,
) -> None:
    """Handle changes to spec.properties of an OvhResource."""
    resource_type = spec["resourceType"]
    native_id = status.get("nativeId")

    if not native_id:
        # Never created, treat as create
        create_resource(
            spec=spec, status=status, patch=patch, name=name, namespace=namespace
        )
        return

    logger.info(f"Updating OvhResource: {name} ({native_id})")
    start_time = time.monotonic()
    RECONCILE_IN_PROGRESS.labels(resource_type=resource_type).inc()

    try:
        try:
            target = load_target_config(spec, namespace)
        except ConfigurationError as e:
            _observe(resource_type, "update", "error", start_time)
            raise kopf.TemporaryError(str(e), delay=60)

        progress = get_plugin().update(
            resource_type, native_id, spec.get("properties", {}), target
        )
        apply_progress(patch.status, progress)
        _observe(resource_type, "update", _status_label(progress), start_time)
        raise_for_failure(progress, name)

        logger.info(f"Updated OvhResource: {name}")
    finally:
        RECONCILE_IN_PROGRESS.labels(resource_type=resource_type).dec()


@kopf.on.delete(CRD_GROUP, CRD_VERSION, CRD_PLURAL)
def delete_resource(
    spec: dict[str, Any],
    status: dict[str, Any],
    name: str,
    namespace: str,
    **_: Any,
) -> None:
    """Handle OvhResource deletion."""
    resource_type = spec["resourceType"]
    native_id = status.get("nativeId")

    if not native_id:
        logger.warning(f"No nativeId in status for {name}, nothing to delete")
        return

    logger.info(f"Deleting OvhResource: {name} ({native_id})")
    start_time = time.monotonic()
    RECONCILE_IN_PROGRESS.labels(resource_type=resource_type).inc()

    try:
        try:
            target = load_target_config(spec, namespace)
        except ConfigurationError as e:
            _observe(resource_type, "delete", "error", start_time)
            raise kopf.TemporaryError(str(e), delay=60)

        progress = get_plugin().delete(resource_type, native_id, target)
        _observe(resource_type, "delete", _status_label(progress), start_time)
        raise_for_failure(progress, name)

        logger.info(f"Deleted OvhResource: {name}")
    finally:
        RECONCILE_IN_PROGRESS.labels(resource_type=resource_type).dec()


@kopf.timer(CRD_GROUP, CRD_VERSION, CRD_PLURAL, interval=STATUS_POLL_INTERVAL)
def poll_status(
    spec: dict[str, Any],
    status: dict[str, Any],
    patch: kopf.Patch,
    name: str,
    namespace: str,
    **_: Any,
) -> None:
    """Probe provisioning resources once per tick until they settle.

    Each tick issues exactly one CheckStatus; the timer interval is the
    backoff between probes. A probe that fails without a terminal resource
    status leaves the phase at Provisioning.
    """
    current = ResourceStatus.from_dict(status)
    if current.phase is not Phase.PROVISIONING or not current.native_id:
        return
    native_id = current.native_id

    resource_type = spec["resourceType"]
    logger.debug(f"Polling status for {name}")
    start_time = time.monotonic()

    try:
        target = load_target_config(spec, namespace)
    except ConfigurationError as e:
        logger.error(f"Failed to poll status for {name}: {e}")
        return

    progress = get_plugin().check_status(
        resource_type, native_id, current.request_id or "", target
    )
    phase = apply_progress(patch.status, progress)
    _observe(resource_type, "check_status", _status_label(progress), start_time)

    if phase is Phase.READY:
        logger.info(f"OvhResource {name} is ready")
    elif phase is Phase.ERROR:
        logger.error(f"OvhResource {name} failed: {progress.message}")
    elif progress.failed:
        logger.warning(f"Status probe for {name} failed, retrying next tick: {progress.message}")


@kopf.timer(CRD_GROUP, CRD_VERSION, CRD_PLURAL, interval=300)
def reconcile_resource(
    spec: dict[str, Any],
    status: dict[str, Any],
    patch: kopf.Patch,
    name: str,
    namespace: str,
    **_: Any,
) -> None:
    """Periodic reconciliation to detect resources deleted out of band.

    A resource found gone goes back to Pending without a nativeId; the next
    change to spec.properties creates it again.
    """
    current = ResourceStatus.from_dict(status)
    if current.phase is not Phase.READY or not current.native_id:
        return
    native_id = current.native_id

    logger.debug(f"Reconciling OvhResource: {name}")

    try:
        target = load_target_config(spec, namespace)
    except ConfigurationError as e:
        logger.error(f"Reconciliation failed for {name}: {e}")
        return

    result = get_plugin().read(spec["resourceType"], native_id, target)
    if result.error_kind is ErrorKind.NOT_FOUND:
        logger.warning(f"Remote resource {native_id} not found, resetting to Pending")
        patch.status["phase"] = Phase.PENDING.value
        patch.status["nativeId"] = None
        set_condition(
            patch.status,
            "Ready",
            ConditionStatus.FALSE.value,
            "NotFound",
            result.message[:200],
        )
        return
    if not result.ok:
        logger.error(f"Reconciliation failed for {name}: {result.message}")
        return

    patch.status["properties"] = result.properties
    patch.status["lastSyncTime"] = now_iso()


def main() -> None:
    """Entry point for running the operator."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    watch_namespace = os.environ.get("WATCH_NAMESPACE", "")
    logger.info("Starting OVH resource operator...")
    kopf.run(
        clusterwide=not watch_namespace,
        namespaces=[watch_namespace] if watch_namespace else (),
    )


if __name__ == "__main__":
    main()
