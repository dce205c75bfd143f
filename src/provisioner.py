"""Generic provisioner for single OVH REST resources.

Every single-object resource type in the catalogue is a ResourceDefinition
record; RestProvisioner turns one into the six provisioner verbs. Provider
failures are reported through the returned outcome, never raised.
"""

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

from config import parse_target_config, project_from, region_from
from constants import ROUTING_PROPERTIES
from lifecycle import (
    ResourceDispatch,
    SynchronousResource,
    delete_outcome,
    failure,
    not_updatable,
    success,
    transport_failure,
)
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
from native_id import NativeIdCodec, NativeIdFormat, collection_path, resource_path
from ovh_client import TransportClient
from utils import parse_properties, resolve_string, strip_keys

logger = logging.getLogger(__name__)

RequestTransformer = Callable[[dict[str, Any]], dict[str, Any]]


class Provisioner(Protocol):
    """The six verbs a host can invoke on one resource type."""

    def create(
        self, properties: Any, target_config: Any = None
    ) -> OperationProgress: ...

    def read(self, native_id: str, target_config: Any = None) -> ReadResult: ...

    def update(
        self, native_id: str, desired_properties: Any, target_config: Any = None
    ) -> OperationProgress: ...

    def delete(self, native_id: str, target_config: Any = None) -> OperationProgress: ...

    def list(
        self,
        target_config: Any = None,
        additional_properties: Mapping[str, Any] | None = None,
    ) -> ListResult: ...

    def check_status(
        self, native_id: str, request_id: str = "", target_config: Any = None
    ) -> OperationProgress: ...


class InvalidInputError(ValueError):
    """Caller input that can be rejected before any network call."""


@dataclass(frozen=True)
class ResourceDefinition:
    """Configuration record describing one single-object resource type.

    Attributes:
        resource_type: Host-facing type name, e.g. 'OVH::Kube::Cluster'
        path_segment: REST collection segment, e.g. 'kube' or 'nodepool'
        id_format: Shape of the native ID
        dispatch: Synchronous or asynchronous lifecycle
        parent_type: REST segment of the parent collection, for nested types
        parent_property: Property carrying the parent's id
        id_field: Field of the create response holding the new id
        fixed_engine: Engine the type is bound to (e.g. 'kafka'), if any
        supports_update: Whether the provider allows in-place update
        update_method: HTTP method used for update
        strip_fields: Properties that never go into a request body
        immutable_fields: Properties dropped from update bodies only
        request_transformer: Rewrites the request body before sending
    """

    resource_type: str
    path_segment: str
    id_format: NativeIdFormat = NativeIdFormat.TOP_LEVEL
    dispatch: ResourceDispatch = field(default_factory=SynchronousResource)
    parent_type: str = ""
    parent_property: str = ""
    id_field: str = "id"
    fixed_engine: str = ""
    supports_update: bool = True
    update_method: str = "PUT"
    strip_fields: tuple[str, ...] = ()
    immutable_fields: tuple[str, ...] = ()
    request_transformer: RequestTransformer | None = None

    def __post_init__(self) -> None:
        if not self.resource_type or not self.path_segment:
            raise ValueError("resource_type and path_segment are required")
        if self.id_format.has_parent and not (self.parent_type and self.parent_property):
            raise ValueError(
                f"{self.resource_type}: {self.id_format.name} requires "
                "parent_type and parent_property"
            )

    @property
    def operations(self) -> frozenset[Operation]:
        ops = {Operation.CREATE, Operation.READ, Operation.DELETE, Operation.LIST}
        if self.supports_update:
            ops.add(Operation.UPDATE)
        if self.dispatch.needs_probe:
            ops.add(Operation.CHECK_STATUS)
        return frozenset(ops)

    @property
    def codec(self) -> NativeIdCodec:
        return NativeIdCodec(
            format=self.id_format,
            resource_type=self.path_segment,
            parent_type=self.parent_type,
            engine=self.fixed_engine,
        )

    @property
    def routing_fields(self) -> tuple[str, ...]:
        """Properties that address the resource instead of describing it."""
        fields = list(ROUTING_PROPERTIES)
        if self.parent_property:
            fields.append(self.parent_property)
        if "region" in self.id_format.fields:
            fields.append("region")
        return tuple(dict.fromkeys(fields + list(self.strip_fields)))

    def build(self, client: TransportClient) -> "RestProvisioner":
        return RestProvisioner(self, client)


class RestProvisioner:
    """Provisioner for one single-object REST resource type."""

    def __init__(self, definition: ResourceDefinition, client: TransportClient) -> None:
        self.definition = definition
        self.client = client
        self.codec = definition.codec

    def __repr__(self) -> str:
        return f"RestProvisioner({self.definition.resource_type!r})"

    # -------------------------------------------------------------------------
    # Input handling
    # -------------------------------------------------------------------------

    def _context(
        self, props: Mapping[str, Any], target: Mapping[str, Any]
    ) -> PathContext:
        """Build the collection context from properties, then target config."""
        definition = self.definition
        fmt = definition.id_format

        project = project_from(props, target)
        if not project:
            raise InvalidInputError("serviceName is required (properties or target config)")

        engine = ""
        if fmt.has_engine:
            engine = definition.fixed_engine or resolve_string(props.get("engine"))
            if not engine:
                raise InvalidInputError("engine is required")

        parent_id = ""
        if fmt.has_parent:
            parent_id = resolve_string(props.get(definition.parent_property))
            if not parent_id:
                raise InvalidInputError(f"{definition.parent_property} is required")

        region = ""
        if "region" in fmt.fields:
            region = region_from(props, target)
            if not region:
                raise InvalidInputError("region is required")

        return PathContext(
            project=project,
            region=region,
            engine=engine,
            parent_type=definition.parent_type if parent_id else "",
            parent_id=parent_id,
            resource_type=definition.path_segment,
        )

    def _request_body(
        self, props: Mapping[str, Any], for_update: bool = False
    ) -> dict[str, Any]:
        excluded = self.definition.routing_fields
        if for_update:
            excluded += self.definition.immutable_fields
        body = strip_keys(dict(props), excluded)
        if self.definition.request_transformer is not None:
            body = self.definition.request_transformer(body)
        return body

    @staticmethod
    def _target(target_config: Any) -> dict[str, Any]:
        try:
            return parse_target_config(target_config)
        except ConfigurationError as e:
            raise InvalidInputError(str(e)) from e

    # -------------------------------------------------------------------------
    # Verbs
    # -------------------------------------------------------------------------

    def create(self, properties: Any, target_config: Any = None) -> OperationProgress:
        """Create the resource and hand the result to the lifecycle."""
        try:
            props = parse_properties(properties)
            ctx = self._context(props, self._target(target_config))
        except ValueError as e:
            return failure(Operation.CREATE, ErrorKind.INVALID_REQUEST, str(e))

        path = collection_path(ctx)
        body = self._request_body(props)
        logger.info("Creating %s at %s", self.definition.resource_type, path)

        try:
            response = self.client.do("POST", path, body)
        except TransportError as e:
            logger.error("Create %s failed: %s", self.definition.resource_type, e)
            return transport_failure(Operation.CREATE, e)

        resource_id = resolve_string(response.body.get(self.definition.id_field))
        if not resource_id:
            return failure(
                Operation.CREATE,
                ErrorKind.SERVICE_INTERNAL_ERROR,
                f"create response has no {self.definition.id_field!r} field",
            )

        native_id = self.codec.encode(ctx.with_resource_id(resource_id))
        return self.definition.dispatch.created(native_id, response.body or body)

    def read(self, native_id: str, target_config: Any = None) -> ReadResult:
        """Fetch the current properties of the resource."""
        try:
            ctx = self.codec.decode(native_id)
        except InvalidNativeIDError as e:
            return ReadResult(error_kind=ErrorKind.INVALID_REQUEST, message=str(e))

        try:
            response = self.client.do("GET", resource_path(ctx))
        except TransportError as e:
            logger.debug("Read %s failed: %s", native_id, e)
            return ReadResult(error_kind=e.kind, message=e.message)

        return ReadResult(properties=response.body)

    def update(
        self, native_id: str, desired_properties: Any, target_config: Any = None
    ) -> OperationProgress:
        """Update the resource in place, if the type allows it."""
        if not self.definition.supports_update:
            return not_updatable(native_id)

        try:
            props = parse_properties(desired_properties)
            ctx = self.codec.decode(native_id)
        except (ValueError, InvalidNativeIDError) as e:
            return failure(Operation.UPDATE, ErrorKind.INVALID_REQUEST, str(e), native_id)

        body = self._request_body(props, for_update=True)
        method = self.definition.update_method
        logger.info("Updating %s %s", self.definition.resource_type, native_id)

        try:
            response = self.client.do(method, resource_path(ctx), body)
        except TransportError as e:
            logger.error("Update %s failed: %s", native_id, e)
            return transport_failure(Operation.UPDATE, e, native_id)

        return success(Operation.UPDATE, native_id, response.body or body)

    def delete(self, native_id: str, target_config: Any = None) -> OperationProgress:
        """Delete the resource; an already absent resource counts as deleted."""
        try:
            ctx = self.codec.decode(native_id)
        except InvalidNativeIDError as e:
            return failure(Operation.DELETE, ErrorKind.INVALID_REQUEST, str(e), native_id)

        logger.info("Deleting %s %s", self.definition.resource_type, native_id)
        try:
            self.client.do("DELETE", resource_path(ctx))
        except TransportError as e:
            return delete_outcome(native_id, e)
        return delete_outcome(native_id, None)

    def list(
        self,
        target_config: Any = None,
        additional_properties: Mapping[str, Any] | None = None,
    ) -> ListResult:
        """List the native IDs of every resource of this type in scope."""
        extra = dict(additional_properties or {})
        try:
            ctx = self._context(extra, self._target(target_config))
        except ValueError as e:
            logger.debug("Nothing to list for %s: %s", self.definition.resource_type, e)
            return ListResult()

        try:
            response = self.client.do("GET", collection_path(ctx))
        except TransportError as e:
            return ListResult(error_kind=e.kind, message=e.message)

        native_ids = []
        for item in response.body_array or []:
            if isinstance(item, dict):
                resource_id = resolve_string(item.get(self.definition.id_field))
            else:
                resource_id = resolve_string(item)
            if resource_id:
                native_ids.append(self.codec.encode(ctx.with_resource_id(resource_id)))
        return ListResult(native_ids=native_ids)

    def check_status(
        self, native_id: str, request_id: str = "", target_config: Any = None
    ) -> OperationProgress:
        """Probe the provider once for the readiness of the resource."""
        try:
            ctx = self.codec.decode(native_id)
        except InvalidNativeIDError as e:
            return failure(
                Operation.CHECK_STATUS,
                ErrorKind.INVALID_REQUEST,
                str(e),
                native_id,
                request_id,
            )

        dispatch = self.definition.dispatch
        if not dispatch.needs_probe:
            return dispatch.check_status(native_id, request_id)

        try:
            response = self.client.do("GET", resource_path(ctx))
        except TransportError as e:
            logger.debug("Status probe for %s failed: %s", native_id, e)
            return transport_failure(Operation.CHECK_STATUS, e, native_id, request_id)

        return dispatch.evaluate(response.body, native_id, request_id)
