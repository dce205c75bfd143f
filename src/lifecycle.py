"""Operation lifecycle for synchronous and asynchronous resource types.

A resource type is registered as exactly one of two variants:

- SynchronousResource: a successful create response means the resource is
  usable. CheckStatus has nothing to wait for.
- AsynchronousResource: a successful create response only means the
  provider started provisioning. The native ID is already valid, the
  operation is reported InProgress, and the host calls CheckStatus (one
  probe per call, with its own backoff) until the provider reports a
  terminal status.

  A Failure from such a probe carries the fetched resource body; a probe
  that never reached the resource carries none.

Delete is idempotent everywhere: "already gone" is reported as Success.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from error_classifier import classify_message
from models import (
    ErrorKind,
    Operation,
    OperationProgress,
    OperationStatus,
    TransportError,
)

logger = logging.getLogger(__name__)


def failure(
    operation: Operation,
    kind: ErrorKind,
    message: str,
    native_id: str = "",
    request_id: str = "",
    properties: dict[str, Any] | None = None,
) -> OperationProgress:
    """Build a Failure outcome."""
    return OperationProgress(
        operation=operation,
        status=OperationStatus.FAILURE,
        native_id=native_id,
        error_kind=kind,
        message=message,
        properties=dict(properties) if properties is not None else None,
        request_id=request_id,
    )


def success(
    operation: Operation,
    native_id: str,
    properties: dict[str, Any] | None = None,
    request_id: str = "",
) -> OperationProgress:
    """Build a Success outcome."""
    return OperationProgress(
        operation=operation,
        status=OperationStatus.SUCCESS,
        native_id=native_id,
        properties=dict(properties) if properties is not None else None,
        request_id=request_id,
    )


def transport_failure(
    operation: Operation,
    error: TransportError,
    native_id: str = "",
    request_id: str = "",
) -> OperationProgress:
    """Build a Failure outcome from a classified transport error."""
    return failure(operation, error.kind, error.message, native_id, request_id)


def not_updatable(native_id: str) -> OperationProgress:
    """Outcome of Update on a type that has no in-place update."""
    return failure(
        Operation.UPDATE,
        ErrorKind.NOT_UPDATABLE,
        "resource type does not support in-place update",
        native_id,
    )


def delete_outcome(native_id: str, error: TransportError | None) -> OperationProgress:
    """Outcome of a delete call; NotFound counts as deleted."""
    if error is None:
        return success(Operation.DELETE, native_id)
    if error.kind is ErrorKind.NOT_FOUND:
        logger.info("Resource %s already absent, treating delete as done", native_id)
        return success(Operation.DELETE, native_id)
    return transport_failure(Operation.DELETE, error, native_id)


@dataclass(frozen=True)
class StatusProbe:
    """Where a provider reports readiness and which values are terminal."""

    status_field: str = "status"
    ready_values: frozenset[str] = field(default_factory=lambda: frozenset({"READY"}))
    error_values: frozenset[str] = field(default_factory=lambda: frozenset({"ERROR"}))
    message_field: str = "message"


@dataclass(frozen=True)
class SynchronousResource:
    """Provider responses are final: created means ready."""

    @property
    def needs_probe(self) -> bool:
        return False

    def created(self, native_id: str, properties: dict[str, Any]) -> OperationProgress:
        return success(Operation.CREATE, native_id, properties)

    def check_status(self, native_id: str, request_id: str = "") -> OperationProgress:
        return success(Operation.CHECK_STATUS, native_id, request_id=request_id)


@dataclass(frozen=True)
class AsynchronousResource:
    """Provider provisions in the background; readiness is polled."""

    probe: StatusProbe = field(default_factory=StatusProbe)

    @property
    def needs_probe(self) -> bool:
        return True

    def created(self, native_id: str, properties: dict[str, Any]) -> OperationProgress:
        logger.info("Provisioning of %s started", native_id)
        return OperationProgress(
            operation=Operation.CREATE,
            status=OperationStatus.IN_PROGRESS,
            native_id=native_id,
            message="provisioning started",
            properties=dict(properties),
        )

    def evaluate(
        self, body: dict[str, Any], native_id: str, request_id: str = ""
    ) -> OperationProgress:
        """Turn one freshly fetched resource body into a CheckStatus outcome."""
        raw = body.get(self.probe.status_field)
        value = "" if raw is None else str(raw)

        if value in self.probe.ready_values:
            logger.info("Resource %s is %s", native_id, value)
            return success(Operation.CHECK_STATUS, native_id, body, request_id)

        if value in self.probe.error_values:
            provider_message = str(body.get(self.probe.message_field) or "")
            kind = classify_message(provider_message)
            if kind is ErrorKind.INVALID_REQUEST:
                kind = ErrorKind.SERVICE_INTERNAL_ERROR
            message = f"{self.probe.status_field} {value}"
            if provider_message:
                message += f": {provider_message}"
            logger.error("Resource %s reached terminal error: %s", native_id, message)
            return failure(
                Operation.CHECK_STATUS, kind, message, native_id, request_id, body
            )

        logger.debug("Resource %s still %s", native_id, value or "<unset>")
        return OperationProgress(
            operation=Operation.CHECK_STATUS,
            status=OperationStatus.IN_PROGRESS,
            native_id=native_id,
            message=f"Resource status: {value or 'unknown'}",
            request_id=request_id,
        )


ResourceDispatch = SynchronousResource | AsynchronousResource
