"""Domain models for the OVH resource operator.

This module defines typed data structures for all engine concepts,
making illegal states unrepresentable at the type level.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, NotRequired, TypedDict


# =============================================================================
# Enums for constrained values
# =============================================================================


class Operation(Enum):
    """Verb of the provisioner contract."""

    CREATE = "Create"
    READ = "Read"
    UPDATE = "Update"
    DELETE = "Delete"
    LIST = "List"
    CHECK_STATUS = "CheckStatus"


class OperationStatus(Enum):
    """Outcome of a mutating call or a status probe."""

    IN_PROGRESS = "InProgress"
    SUCCESS = "Success"
    FAILURE = "Failure"


class ErrorKind(Enum):
    """Closed error taxonomy handed to the host."""

    INVALID_REQUEST = "InvalidRequest"
    ACCESS_DENIED = "AccessDenied"
    NOT_FOUND = "NotFound"
    ALREADY_EXISTS = "AlreadyExists"
    THROTTLING = "Throttling"
    SERVICE_INTERNAL_ERROR = "ServiceInternalError"
    NOT_UPDATABLE = "NotUpdatable"


class Phase(Enum):
    """OvhResource lifecycle phase."""

    PENDING = "Pending"
    PROVISIONING = "Provisioning"
    READY = "Ready"
    ERROR = "Error"
    DELETING = "Deleting"


class ConditionStatus(Enum):
    """Kubernetes condition status."""

    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"


# =============================================================================
# TypedDicts for CRD spec (external data from Kubernetes)
# =============================================================================


class TargetRefSpec(TypedDict, total=False):
    """Reference to a ConfigMap holding target configuration."""

    configMapName: str
    configMapNamespace: str


class OvhResourceSpec(TypedDict):
    """Full OvhResource CRD spec."""

    resourceType: str
    properties: NotRequired[dict[str, Any]]
    target: NotRequired[dict[str, Any]]
    targetRef: NotRequired[TargetRefSpec]


# =============================================================================
# Dataclasses for engine data
# =============================================================================


@dataclass(frozen=True)
class PathContext:
    """Location of a resource in the provider's hierarchy.

    A resource without a parent is top-level. A nested resource always
    carries both parent_type and parent_id.
    """

    project: str = ""
    region: str = ""
    engine: str = ""
    parent_type: str = ""
    parent_id: str = ""
    resource_type: str = ""
    category: str = ""
    resource_id: str = ""

    def __post_init__(self) -> None:
        if bool(self.parent_type) != bool(self.parent_id):
            raise ValueError(
                f"parent_type and parent_id must be set together "
                f"(parent_type={self.parent_type!r}, parent_id={self.parent_id!r})"
            )

    @property
    def is_nested(self) -> bool:
        return bool(self.parent_id)

    def with_resource_id(self, resource_id: str) -> "PathContext":
        return replace(self, resource_id=resource_id)


@dataclass(frozen=True)
class OperationProgress:
    """Result of a mutating call or a CheckStatus probe."""

    operation: Operation
    status: OperationStatus
    native_id: str = ""
    error_kind: ErrorKind | None = None
    message: str = ""
    properties: dict[str, Any] | None = None
    request_id: str = ""

    @property
    def succeeded(self) -> bool:
        return self.status is OperationStatus.SUCCESS

    @property
    def in_progress(self) -> bool:
        return self.status is OperationStatus.IN_PROGRESS

    @property
    def failed(self) -> bool:
        return self.status is OperationStatus.FAILURE

    def to_dict(self) -> dict[str, Any]:
        """Convert to a camelCase dict for the host."""
        result: dict[str, Any] = {
            "operation": self.operation.value,
            "operationStatus": self.status.value,
        }
        if self.native_id:
            result["nativeId"] = self.native_id
        if self.error_kind is not None:
            result["errorCode"] = self.error_kind.value
        if self.message:
            result["statusMessage"] = self.message
        if self.properties is not None:
            result["resourceProperties"] = dict(self.properties)
        if self.request_id:
            result["requestId"] = self.request_id
        return result


@dataclass(frozen=True)
class ReadResult:
    """Result of a Read: either properties or an error kind."""

    properties: dict[str, Any] | None = None
    error_kind: ErrorKind | None = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.error_kind is None


@dataclass(frozen=True)
class ListResult:
    """Result of a List: native IDs, or an error kind."""

    native_ids: list[str] = field(default_factory=list)
    error_kind: ErrorKind | None = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.error_kind is None


# =============================================================================
# Dataclasses for Kubernetes status
# =============================================================================


@dataclass
class ResourceStatus:
    """Status of an OvhResource custom resource."""

    phase: Phase = Phase.PENDING
    native_id: str | None = None
    error_code: str | None = None
    message: str | None = None
    properties: dict[str, Any] | None = None
    request_id: str | None = None
    last_sync_time: str | None = None

    def to_dict(self) -> dict[str, object]:
        """Convert to dict for Kubernetes status."""
        result: dict[str, object] = {"phase": self.phase.value}
        if self.native_id:
            result["nativeId"] = self.native_id
        if self.error_code:
            result["errorCode"] = self.error_code
        if self.message:
            result["message"] = self.message
        if self.properties is not None:
            result["properties"] = self.properties
        if self.request_id:
            result["requestId"] = self.request_id
        if self.last_sync_time:
            result["lastSyncTime"] = self.last_sync_time
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ResourceStatus":
        """Create from Kubernetes status dict."""
        phase_str = data.get("phase", "Pending")
        try:
            phase = Phase(phase_str)
        except ValueError:
            phase = Phase.PENDING

        return cls(
            phase=phase,
            native_id=data.get("nativeId"),
            error_code=data.get("errorCode"),
            message=data.get("message"),
            properties=data.get("properties"),
            request_id=data.get("requestId"),
            last_sync_time=data.get("lastSyncTime"),
        )


# =============================================================================
# Exceptions
# =============================================================================


class OperatorError(Exception):
    """Base exception for operator errors."""

    pass


class ConfigurationError(OperatorError):
    """Invalid or missing configuration."""

    pass


class UnsupportedResourceTypeError(OperatorError):
    """No provisioner is registered for a resource type."""

    def __init__(self, resource_type: str) -> None:
        super().__init__(f"unsupported resource type: {resource_type}")
        self.resource_type = resource_type

    def __str__(self) -> str:
        return self.args[0]


class InvalidNativeIDError(OperatorError):
    """A native ID does not match the shape its resource type expects."""

    def __init__(self, native_id: str, reason: str) -> None:
        super().__init__(f"invalid native ID {native_id!r}: {reason}")
        self.native_id = native_id


class TransportError(OperatorError):
    """A classified failure of a provider call."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        http_status: int | None = None,
    ) -> None:
        super().__init__(f"{kind.value}: {message}")
        self.kind = kind
        self.message = message
        self.http_status = http_status
