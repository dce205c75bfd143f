"""Host-facing entry point: the six verbs keyed by resource type."""

import logging
from collections.abc import Mapping
from typing import Any

from config import parse_target_config, with_default_project
from lifecycle import failure
from metrics import PROVISIONER_OPERATIONS
from models import (
    ConfigurationError,
    ErrorKind,
    ListResult,
    Operation,
    OperationProgress,
    ReadResult,
    UnsupportedResourceTypeError,
)
from ovh_client import TransportClient
from registry import ResourceRegistry

logger = logging.getLogger(__name__)


def _outcome_label(progress: OperationProgress) -> str:
    if progress.succeeded:
        return "success"
    if progress.in_progress:
        return "in_progress"
    return "error"


class ResourcePlugin:
    """Dispatches host requests to the provisioner of each resource type.

    A cloud project configured on the plugin is injected as serviceName into
    every target config that names none.
    """

    def __init__(
        self,
        registry: ResourceRegistry,
        client: TransportClient,
        cloud_project_id: str = "",
    ) -> None:
        self.registry = registry
        self.client = client
        self.cloud_project_id = cloud_project_id or ""

    def supported_resources(self) -> list[str]:
        return self.registry.resource_types()

    def _target(self, target_config: Any) -> dict[str, Any]:
        return with_default_project(
            parse_target_config(target_config), self.cloud_project_id
        )

    def _record(self, resource_type: str, progress: OperationProgress) -> OperationProgress:
        PROVISIONER_OPERATIONS.labels(
            resource_type=resource_type,
            operation=progress.operation.value,
            status=_outcome_label(progress),
        ).inc()
        if progress.failed:
            logger.error(
                "%s %s failed (%s): %s",
                progress.operation.value,
                resource_type,
                progress.error_kind.value if progress.error_kind else "",
                progress.message,
            )
        else:
            logger.info(
                "%s %s %s: %s",
                progress.operation.value,
                resource_type,
                progress.status.value,
                progress.native_id,
            )
        return progress

    def _dispatch(
        self,
        operation: Operation,
        resource_type: str,
        native_id: str,
        target_config: Any,
        call: str,
        *args: Any,
        **kwargs: Any,
    ) -> OperationProgress:
        try:
            target = self._target(target_config)
            provisioner = self.registry.get(resource_type, self.client)
        except (UnsupportedResourceTypeError, ConfigurationError) as e:
            return self._record(
                resource_type,
                failure(operation, ErrorKind.INVALID_REQUEST, str(e), native_id),
            )
        progress = getattr(provisioner, call)(*args, target_config=target, **kwargs)
        return self._record(resource_type, progress)

    def create(
        self, resource_type: str, properties: Any, target_config: Any = None
    ) -> OperationProgress:
        return self._dispatch(
            Operation.CREATE, resource_type, "", target_config, "create", properties
        )

    def update(
        self,
        resource_type: str,
        native_id: str,
        desired_properties: Any,
        target_config: Any = None,
    ) -> OperationProgress:
        return self._dispatch(
            Operation.UPDATE,
            resource_type,
            native_id,
            target_config,
            "update",
            native_id,
            desired_properties,
        )

    def delete(
        self, resource_type: str, native_id: str, target_config: Any = None
    ) -> OperationProgress:
        return self._dispatch(
            Operation.DELETE, resource_type, native_id, target_config, "delete", native_id
        )

    def check_status(
        self,
        resource_type: str,
        native_id: str,
        request_id: str = "",
        target_config: Any = None,
    ) -> OperationProgress:
        return self._dispatch(
            Operation.CHECK_STATUS,
            resource_type,
            native_id,
            target_config,
            "check_status",
            native_id,
            request_id,
        )

    def read(
        self, resource_type: str, native_id: str, target_config: Any = None
    ) -> ReadResult:
        try:
            target = self._target(target_config)
            provisioner = self.registry.get(resource_type, self.client)
        except (UnsupportedResourceTypeError, ConfigurationError) as e:
            return ReadResult(error_kind=ErrorKind.INVALID_REQUEST, message=str(e))
        logger.debug("Read %s %s", resource_type, native_id)
        return provisioner.read(native_id, target_config=target)

    def list(
        self,
        resource_type: str,
        target_config: Any = None,
        additional_properties: Mapping[str, Any] | None = None,
    ) -> ListResult:
        try:
            target = self._target(target_config)
            provisioner = self.registry.get(resource_type, self.client)
        except (UnsupportedResourceTypeError, ConfigurationError) as e:
            return ListResult(error_kind=ErrorKind.INVALID_REQUEST, message=str(e))
        logger.debug("List %s", resource_type)
        return provisioner.list(
            target_config=target, additional_properties=additional_properties
        )
