"""Per-entry CRUD over replace-whole-list provider endpoints.

Some OVH sub-resources (IP restrictions) are not addressable objects: the
provider only lets you GET the whole list and PUT a whole new list. Each
entry is still exposed to the host as its own resource, identified by a
key field, and every mutation is a fetch, mutate, write-back sequence.

There is no optimistic concurrency: the provider exposes no version or
ETag, so two writers racing on the same list can lose an update. The host
serializes operations per resource, which covers entries of one parent
only when they are driven by the same host.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from config import parse_target_config, project_from
from lifecycle import failure, success, transport_failure
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
from native_id import NativeIdCodec, NativeIdFormat, collection_path
from ovh_client import TransportClient
from utils import parse_properties, resolve_string

logger = logging.getLogger(__name__)

SET_OPERATIONS = frozenset(
    {
        Operation.CREATE,
        Operation.READ,
        Operation.UPDATE,
        Operation.DELETE,
        Operation.LIST,
    }
)


@dataclass(frozen=True)
class SetDefinition:
    """Configuration record describing one set-valued resource type.

    Attributes:
        resource_type: Host-facing type name
        parent_type: REST segment of the parent collection, e.g. 'kube'
        parent_property: Property carrying the parent's id
        path_segment: REST segment of the list, e.g. 'ipRestrictions'
        key_field: Entry field that identifies an entry, e.g. 'ip'
        id_format: SET_ENTRY, or SET_ENTRY_CATEGORY when lists are per category
        categories: Allowed categories, empty when the type has none
        category_property: Property naming the category
        entry_fields: Optional fields copied from properties into a new entry
    """

    resource_type: str
    parent_type: str
    parent_property: str
    path_segment: str
    key_field: str
    id_format: NativeIdFormat = NativeIdFormat.SET_ENTRY
    categories: tuple[str, ...] = ()
    category_property: str = "type"
    entry_fields: tuple[str, ...] = ("description",)

    def __post_init__(self) -> None:
        if self.id_format not in (
            NativeIdFormat.SET_ENTRY,
            NativeIdFormat.SET_ENTRY_CATEGORY,
        ):
            raise ValueError(f"{self.resource_type}: unsupported format {self.id_format.name}")
        if (self.id_format is NativeIdFormat.SET_ENTRY_CATEGORY) != bool(self.categories):
            raise ValueError(
                f"{self.resource_type}: categories must be set exactly for "
                "SET_ENTRY_CATEGORY"
            )

    @property
    def operations(self) -> frozenset[Operation]:
        return SET_OPERATIONS

    @property
    def codec(self) -> NativeIdCodec:
        return NativeIdCodec(
            format=self.id_format,
            resource_type=self.path_segment,
            parent_type=self.parent_type,
        )

    def build(self, client: TransportClient) -> "SetReconciler":
        return SetReconciler(self, client)


class SetReconciler:
    """Provisioner for entries of a replace-whole-list endpoint."""

    def __init__(self, definition: SetDefinition, client: TransportClient) -> None:
        self.definition = definition
        self.client = client
        self.codec = definition.codec

    def __repr__(self) -> str:
        return f"SetReconciler({self.definition.resource_type!r})"

    # -------------------------------------------------------------------------
    # List access
    # -------------------------------------------------------------------------

    def _key_of(self, entry: Mapping[str, Any]) -> str:
        return resolve_string(entry.get(self.definition.key_field))

    def _fetch(self, ctx: PathContext) -> list[dict[str, Any]]:
        """GET the current list. Raises TransportError."""
        response = self.client.do("GET", collection_path(ctx))
        entries = []
        for item in response.body_array or []:
            if isinstance(item, dict):
                entries.append(item)
            elif isinstance(item, str) and item:
                entries.append({self.definition.key_field: item})
        return entries

    def _write(self, ctx: PathContext, entries: list[dict[str, Any]]) -> None:
        """PUT the whole list back, at most one entry per key. Raises TransportError."""
        seen: set[str] = set()
        unique = []
        for entry in entries:
            key = self._key_of(entry)
            if key in seen:
                continue
            seen.add(key)
            unique.append(entry)
        logger.info(
            "Writing %d %s entries to %s",
            len(unique),
            self.definition.resource_type,
            collection_path(ctx),
        )
        self.client.do("PUT", collection_path(ctx), unique)

    def _find(self, entries: list[dict[str, Any]], key: str) -> int:
        for index, entry in enumerate(entries):
            if self._key_of(entry) == key:
                return index
        return -1

    def _list_context(
        self, project: str, parent_id: str, category: str = "", key: str = ""
    ) -> PathContext:
        return PathContext(
            project=project,
            parent_type=self.definition.parent_type,
            parent_id=parent_id,
            resource_type=self.definition.path_segment,
            category=category,
            resource_id=key,
        )

    def _list_path_of(self, ctx: PathContext) -> PathContext:
        """The list endpoint addressing the entry's collection."""
        return self._list_context(ctx.project, ctx.parent_id, ctx.category)

    # -------------------------------------------------------------------------
    # Verbs
    # -------------------------------------------------------------------------

    def create(self, properties: Any, target_config: Any = None) -> OperationProgress:
        """Add an entry; an entry with the same key already present is reused."""
        definition = self.definition
        try:
            props = parse_properties(properties)
            target = parse_target_config(target_config)
        except (ValueError, ConfigurationError) as e:
            return failure(Operation.CREATE, ErrorKind.INVALID_REQUEST, str(e))

        project = project_from(props, target)
        parent_id = resolve_string(props.get(definition.parent_property))
        key = self._key_of(props)
        category = ""
        if definition.categories:
            category = resolve_string(props.get(definition.category_property))

        required = ["serviceName", definition.parent_property, definition.key_field]
        if definition.categories:
            required.append(definition.category_property)
        if not (project and parent_id and key and (category or not definition.categories)):
            return failure(
                Operation.CREATE,
                ErrorKind.INVALID_REQUEST,
                f"{', '.join(required)} are required",
            )
        if definition.categories and category not in definition.categories:
            return failure(
                Operation.CREATE,
                ErrorKind.INVALID_REQUEST,
                f"{definition.category_property} must be one of "
                f"{', '.join(definition.categories)}, got {category!r}",
            )

        ctx = self._list_context(project, parent_id, category, key)
        native_id = self.codec.encode(ctx)

        try:
            entries = self._fetch(ctx)
        except TransportError as e:
            return transport_failure(Operation.CREATE, e)

        index = self._find(entries, key)
        if index >= 0:
            logger.info("%s entry %s already present", definition.resource_type, native_id)
            return success(Operation.CREATE, native_id, entries[index])

        entry: dict[str, Any] = {definition.key_field: key}
        for name in definition.entry_fields:
            value = props.get(name)
            if value is not None and value != "":
                entry[name] = value

        try:
            self._write(ctx, entries + [entry])
        except TransportError as e:
            logger.error("Create %s failed: %s", native_id, e)
            return transport_failure(Operation.CREATE, e)

        return success(Operation.CREATE, native_id, entry)

    def read(self, native_id: str, target_config: Any = None) -> ReadResult:
        """Return the entry for the native ID's key."""
        try:
            ctx = self.codec.decode(native_id)
        except InvalidNativeIDError as e:
            return ReadResult(error_kind=ErrorKind.INVALID_REQUEST, message=str(e))

        try:
            entries = self._fetch(self._list_path_of(ctx))
        except TransportError as e:
            return ReadResult(error_kind=e.kind, message=e.message)

        index = self._find(entries, ctx.resource_id)
        if index < 0:
            return ReadResult(
                error_kind=ErrorKind.NOT_FOUND,
                message=f"{self.definition.key_field} {ctx.resource_id} not found",
            )
        return ReadResult(properties=entries[index])

    def update(
        self, native_id: str, desired_properties: Any, target_config: Any = None
    ) -> OperationProgress:
        """Merge the given fields into the entry; the key itself never changes."""
        definition = self.definition
        try:
            props = parse_properties(desired_properties)
            ctx = self.codec.decode(native_id)
        except (ValueError, InvalidNativeIDError) as e:
            return failure(Operation.UPDATE, ErrorKind.INVALID_REQUEST, str(e), native_id)

        list_ctx = self._list_path_of(ctx)
        try:
            entries = self._fetch(list_ctx)
        except TransportError as e:
            return transport_failure(Operation.UPDATE, e, native_id)

        index = self._find(entries, ctx.resource_id)
        if index < 0:
            return failure(
                Operation.UPDATE,
                ErrorKind.NOT_FOUND,
                f"{definition.key_field} {ctx.resource_id} not found",
                native_id,
            )

        ignored = {
            definition.key_field,
            definition.parent_property,
            definition.category_property,
            "serviceName",
        }
        entry = dict(entries[index])
        entry.update({k: v for k, v in props.items() if k not in ignored})
        entries[index] = entry

        try:
            self._write(list_ctx, entries)
        except TransportError as e:
            logger.error("Update %s failed: %s", native_id, e)
            return transport_failure(Operation.UPDATE, e, native_id)

        return success(Operation.UPDATE, native_id, entry)

    def delete(self, native_id: str, target_config: Any = None) -> OperationProgress:
        """Drop the entry, preserving the order of the others."""
        try:
            ctx = self.codec.decode(native_id)
        except InvalidNativeIDError as e:
            return failure(Operation.DELETE, ErrorKind.INVALID_REQUEST, str(e), native_id)

        list_ctx = self._list_path_of(ctx)
        try:
            entries = self._fetch(list_ctx)
        except TransportError as e:
            if e.kind is ErrorKind.NOT_FOUND:
                logger.warning("Parent of %s is gone, treating delete as done", native_id)
                return success(Operation.DELETE, native_id)
            return transport_failure(Operation.DELETE, e, native_id)

        remaining = [entry for entry in entries if self._key_of(entry) != ctx.resource_id]
        if len(remaining) == len(entries):
            logger.info("%s already absent, nothing to write", native_id)
            return success(Operation.DELETE, native_id)

        try:
            self._write(list_ctx, remaining)
        except TransportError as e:
            logger.error("Delete %s failed: %s", native_id, e)
            return transport_failure(Operation.DELETE, e, native_id)

        return success(Operation.DELETE, native_id)

    def list(
        self,
        target_config: Any = None,
        additional_properties: Mapping[str, Any] | None = None,
    ) -> ListResult:
        """List native IDs of every entry under the parent (and category)."""
        definition = self.definition
        extra = dict(additional_properties or {})
        try:
            target = parse_target_config(target_config)
        except ConfigurationError as e:
            return ListResult(error_kind=ErrorKind.INVALID_REQUEST, message=str(e))

        project = project_from(extra, target)
        parent_id = resolve_string(extra.get(definition.parent_property))
        if not project or not parent_id:
            return ListResult()

        categories: tuple[str, ...] = ("",)
        if definition.categories:
            requested = resolve_string(extra.get(definition.category_property))
            if requested and requested not in definition.categories:
                return ListResult(
                    error_kind=ErrorKind.INVALID_REQUEST,
                    message=f"{definition.category_property} must be one of "
                    f"{', '.join(definition.categories)}, got {requested!r}",
                )
            categories = (requested,) if requested else definition.categories

        native_ids = []
        for category in categories:
            ctx = self._list_context(project, parent_id, category)
            try:
                entries = self._fetch(ctx)
            except TransportError as e:
                return ListResult(error_kind=e.kind, message=e.message)
            for entry in entries:
                key = self._key_of(entry)
                if key:
                    native_ids.append(self.codec.encode(ctx.with_resource_id(key)))
        return ListResult(native_ids=native_ids)

    def check_status(
        self, native_id: str, request_id: str = "", target_config: Any = None
    ) -> OperationProgress:
        """List writes are synchronous: there is never anything to wait for."""
        return success(Operation.CHECK_STATUS, native_id, request_id=request_id)
