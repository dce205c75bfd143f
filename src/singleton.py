"""Per-parent singleton configuration objects.

Some OVH sub-resources exist at most once under their parent and have no
identifier of their own, e.g. the OpenID Connect configuration of a Kube
cluster at /kube/{kubeId}/openIdConnect. They are addressed through the
parent: the native ID is project/parentId.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from config import parse_target_config, project_from
from constants import PROJECT_CONFIG_KEYS
from lifecycle import delete_outcome, failure, success, transport_failure
from models import (
    ConfigurationError,
    ErrorKind,
    InvalidNativeIDError,
    ListResult,
    Operation,
    OperationProgress,
    PathContext,
    ReadResult,
    TransportError,
)
from native_id import NativeIdCodec, NativeIdFormat, resource_path
from ovh_client import TransportClient
from utils import parse_properties, resolve_string, strip_keys

logger = logging.getLogger(__name__)

SINGLETON_OPERATIONS = frozenset(
    {
        Operation.CREATE,
        Operation.READ,
        Operation.UPDATE,
        Operation.DELETE,
        Operation.LIST,
    }
)


@dataclass(frozen=True)
class SingletonDefinition:
    """Configuration record describing one per-parent singleton type.

    Attributes:
        resource_type: Host-facing type name
        parent_type: REST segment of the parent collection, e.g. 'kube'
        parent_property: Property carrying the parent's id
        path_segment: REST segment under the parent, e.g. 'openIdConnect'
        create_method: HTTP method that brings the object into existence
    """

    resource_type: str
    parent_type: str
    parent_property: str
    path_segment: str
    create_method: str = "POST"

    def __post_init__(self) -> None:
        if self.create_method not in ("POST", "PUT"):
            raise ValueError(
                f"{self.resource_type}: create_method must be POST or PUT, "
                f"got {self.create_method!r}"
            )

    @property
    def operations(self) -> frozenset[Operation]:
        return SINGLETON_OPERATIONS

    @property
    def codec(self) -> NativeIdCodec:
        # The native ID addresses the parent itself
        return NativeIdCodec(format=NativeIdFormat.TOP_LEVEL, resource_type=self.parent_type)

    def build(self, client: TransportClient) -> "SingletonProvisioner":
        return SingletonProvisioner(self, client)


class SingletonProvisioner:
    """Provisioner for a configuration object that exists once per parent."""

    def __init__(self, definition: SingletonDefinition, client: TransportClient) -> None:
        self.definition = definition
        self.client = client
        self.codec = definition.codec

    def __repr__(self) -> str:
        return f"SingletonProvisioner({self.definition.resource_type!r})"

    def _parent(self, project: str, parent_id: str) -> PathContext:
        return PathContext(
            project=project,
            resource_type=self.definition.parent_type,
            resource_id=parent_id,
        )

    def _path(self, parent: PathContext) -> str:
        return f"{resource_path(parent)}/{self.definition.path_segment}"

    def _body(self, props: Mapping[str, Any]) -> dict[str, Any]:
        return strip_keys(
            dict(props), PROJECT_CONFIG_KEYS + (self.definition.parent_property,)
        )

    def create(self, properties: Any, target_config: Any = None) -> OperationProgress:
        definition = self.definition
        try:
            props = parse_properties(properties)
            target = parse_target_config(target_config)
        except (ValueError, ConfigurationError) as e:
            return failure(Operation.CREATE, ErrorKind.INVALID_REQUEST, str(e))

        project = project_from(props, target)
        parent_id = resolve_string(props.get(definition.parent_property))
        if not project or not parent_id:
            return failure(
                Operation.CREATE,
                ErrorKind.INVALID_REQUEST,
                f"serviceName and {definition.parent_property} are required",
            )

        parent = self._parent(project, parent_id)
        native_id = self.codec.encode(parent)
        try:
            response = self.client.do(
                definition.create_method, self._path(parent), self._body(props)
            )
        except TransportError as e:
            logger.error("Create %s failed: %s", definition.resource_type, e)
            return transport_failure(Operation.CREATE, e)

        logger.info("Configured %s on %s", definition.resource_type, native_id)
        return success(Operation.CREATE, native_id, response.body)

    def read(self, native_id: str, target_config: Any = None) -> ReadResult:
        try:
            parent = self.codec.decode(native_id)
        except InvalidNativeIDError as e:
            return ReadResult(error_kind=ErrorKind.INVALID_REQUEST, message=str(e))

        try:
            response = self.client.do("GET", self._path(parent))
        except TransportError as e:
            return ReadResult(error_kind=e.kind, message=e.message)
        return ReadResult(properties=response.body)

    def update(
        self, native_id: str, desired_properties: Any, target_config: Any = None
    ) -> OperationProgress:
        try:
            props = parse_properties(desired_properties)
            parent = self.codec.decode(native_id)
        except (ValueError, InvalidNativeIDError) as e:
            return failure(Operation.UPDATE, ErrorKind.INVALID_REQUEST, str(e), native_id)

        body = self._body(props)
        try:
            response = self.client.do("PUT", self._path(parent), body)
        except TransportError as e:
            logger.error("Update %s failed: %s", native_id, e)
            return transport_failure(Operation.UPDATE, e, native_id)

        return success(Operation.UPDATE, native_id, response.body or body)

    def delete(self, native_id: str, target_config: Any = None) -> OperationProgress:
        try:
            parent = self.codec.decode(native_id)
        except InvalidNativeIDError as e:
            return failure(Operation.DELETE, ErrorKind.INVALID_REQUEST, str(e), native_id)

        try:
            self.client.do("DELETE", self._path(parent))
        except TransportError as e:
            return delete_outcome(native_id, e)
        return delete_outcome(native_id, None)

    def list(
        self,
        target_config: Any = None,
        additional_properties: Mapping[str, Any] | None = None,
    ) -> ListResult:
        """At most one native ID: the parent's, when the object is configured."""
        extra = dict(additional_properties or {})
        try:
            target = parse_target_config(target_config)
        except ConfigurationError as e:
            return ListResult(error_kind=ErrorKind.INVALID_REQUEST, message=str(e))

        project = project_from(extra, target)
        parent_id = resolve_string(extra.get(self.definition.parent_property))
        if not project or not parent_id:
            return ListResult()

        parent = self._parent(project, parent_id)
        try:
            self.client.do("GET", self._path(parent))
        except TransportError as e:
            if e.kind is ErrorKind.NOT_FOUND:
                return ListResult()
            return ListResult(error_kind=e.kind, message=e.message)
        return ListResult(native_ids=[self.codec.encode(parent)])

    def check_status(
        self, native_id: str, request_id: str = "", target_config: Any = None
    ) -> OperationProgress:
        """Configuration writes are synchronous."""
        return success(Operation.CHECK_STATUS, native_id, request_id=request_id)
