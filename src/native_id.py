"""Native identifier codec and REST path construction.

A native ID is the single opaque string the host persists to address a
resource across its lifetime. It is the '/'-joined serialization of the
PathContext fields a resource type needs, in a fixed order per format:

    TOP_LEVEL           project/resourceId
    REGIONAL            project/region/resourceId
    SERVICE             project/engine/clusterId
    NESTED              project/parentId/resourceId
    SERVICE_NESTED      project/engine/clusterId/resourceId
    SET_ENTRY           project/parentId/key
    SET_ENTRY_CATEGORY  project/parentId/category/key

The field order of a format never changes once a resource type ships: the
host stores these strings durably. Only the last field may contain '/'
(e.g. an IP block like 10.0.0.0/24); it is never escaped.
"""

from dataclasses import dataclass, replace
from enum import Enum
from urllib.parse import quote

from constants import CLOUD_PROJECT_ROOT
from models import InvalidNativeIDError, PathContext


class NativeIdFormat(Enum):
    """Shape of a native ID: the PathContext fields it carries, in order."""

    TOP_LEVEL = "top_level"
    REGIONAL = "regional"
    SERVICE = "service"
    NESTED = "nested"
    SERVICE_NESTED = "service_nested"
    SET_ENTRY = "set_entry"
    SET_ENTRY_CATEGORY = "set_entry_category"

    @property
    def fields(self) -> tuple[str, ...]:
        return _FORMAT_FIELDS[self]

    @property
    def arity(self) -> int:
        return len(self.fields)

    @property
    def has_parent(self) -> bool:
        return "parent_id" in self.fields

    @property
    def has_engine(self) -> bool:
        return "engine" in self.fields


# NESTED and SET_ENTRY share a shape but stay distinct formats
_FORMAT_FIELDS: dict[NativeIdFormat, tuple[str, ...]] = {
    NativeIdFormat.TOP_LEVEL: ("project", "resource_id"),
    NativeIdFormat.REGIONAL: ("project", "region", "resource_id"),
    NativeIdFormat.SERVICE: ("project", "engine", "resource_id"),
    NativeIdFormat.NESTED: ("project", "parent_id", "resource_id"),
    NativeIdFormat.SERVICE_NESTED: ("project", "engine", "parent_id", "resource_id"),
    NativeIdFormat.SET_ENTRY: ("project", "parent_id", "resource_id"),
    NativeIdFormat.SET_ENTRY_CATEGORY: ("project", "parent_id", "category", "resource_id"),
}


def encode(fmt: NativeIdFormat, ctx: PathContext) -> str:
    """Serialize a PathContext into a native ID.

    Raises:
        InvalidNativeIDError: If a field the format needs is empty.
    """
    parts = [getattr(ctx, name) for name in fmt.fields]
    missing = [name for name, part in zip(fmt.fields, parts) if not part]
    if missing:
        partial = "/".join(parts)
        raise InvalidNativeIDError(
            partial, f"{fmt.name} requires {', '.join(missing)}"
        )
    return "/".join(parts)


def decode(fmt: NativeIdFormat, native_id: str, **static: str) -> PathContext:
    """Parse a native ID into a PathContext.

    The split is bounded by the format's arity so the final field may itself
    contain '/'. Fields that are a property of the resource type rather than
    of the instance (resource_type, parent_type, ...) come in via static.

    Raises:
        InvalidNativeIDError: If the ID has the wrong number of parts or an
            empty part.
    """
    if not native_id:
        raise InvalidNativeIDError(native_id, "native ID is empty")

    parts = native_id.split("/", fmt.arity - 1)
    if len(parts) != fmt.arity:
        raise InvalidNativeIDError(
            native_id,
            f"expected {fmt.arity} '/'-separated parts for {fmt.name}, got {len(parts)}",
        )
    if any(not part for part in parts):
        raise InvalidNativeIDError(native_id, "empty segment")

    values = dict(static)
    values.update(zip(fmt.fields, parts))
    try:
        return PathContext(**values)
    except ValueError as e:
        raise InvalidNativeIDError(native_id, str(e)) from e


@dataclass(frozen=True)
class NativeIdCodec:
    """Native ID codec bound to one resource type.

    decode() restores the type-level fields, so decode(encode(ctx)) == ctx
    for every valid context of this type.
    """

    format: NativeIdFormat
    resource_type: str = ""
    parent_type: str = ""
    engine: str = ""

    def encode(self, ctx: PathContext) -> str:
        return encode(self.format, ctx)

    def decode(self, native_id: str) -> PathContext:
        static: dict[str, str] = {"resource_type": self.resource_type}
        if self.format.has_parent:
            static["parent_type"] = self.parent_type
        if self.engine:
            static["engine"] = self.engine
        ctx = decode(self.format, native_id, **static)
        if self.engine and ctx.engine != self.engine:
            raise InvalidNativeIDError(
                native_id, f"engine must be {self.engine!r}, got {ctx.engine!r}"
            )
        return ctx


def build_path(ctx: PathContext) -> str:
    """Build the REST path addressing a PathContext.

    Segments, in order: project scope, optional region, optional parent
    (with the engine qualifying a parent service), resource type, engine
    qualifying the resource itself, optional category, optional resource id.

    Example:
        PathContext(project="p1", parent_type="kube", parent_id="k1",
                    resource_type="nodepool", resource_id="np1")
        -> '/cloud/project/p1/kube/k1/nodepool/np1'
    """
    path = f"{CLOUD_PROJECT_ROOT}/{ctx.project}"

    if ctx.region:
        path += f"/region/{ctx.region}"

    if ctx.is_nested:
        path += f"/{ctx.parent_type}"
        if ctx.engine:
            path += f"/{ctx.engine}"
        path += f"/{ctx.parent_id}"

    if ctx.resource_type:
        path += f"/{ctx.resource_type}"

    if ctx.engine and not ctx.is_nested:
        path += f"/{ctx.engine}"

    if ctx.category:
        path += f"/{ctx.category}"

    if ctx.resource_id:
        path += "/" + quote(ctx.resource_id, safe="")

    return path


def collection_path(ctx: PathContext) -> str:
    """Path of the collection a resource belongs to."""
    return build_path(replace(ctx, resource_id=""))


def resource_path(ctx: PathContext) -> str:
    """Path of a single resource."""
    if not ctx.resource_id:
        raise ValueError("resource_id is required to address a single resource")
    return build_path(ctx)
