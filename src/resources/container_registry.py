"""Managed private registry resources (/cloud/project/{serviceName}/containerRegistry)."""

from lifecycle import AsynchronousResource
from native_id import NativeIdFormat
from provisioner import ResourceDefinition
from set_reconciler import SetDefinition
from singleton import SingletonDefinition

CONTAINER_REGISTRY = "containerRegistry"

REGISTRY = ResourceDefinition(
    resource_type="OVH::Registry::Registry",
    path_segment=CONTAINER_REGISTRY,
    dispatch=AsynchronousResource(),
    immutable_fields=("region",),
)

USER = ResourceDefinition(
    resource_type="OVH::Registry::User",
    path_segment="users",
    id_format=NativeIdFormat.NESTED,
    parent_type=CONTAINER_REGISTRY,
    parent_property="registryId",
    supports_update=False,
)

# Separate allow-lists for the management UI/API and the registry itself
IP_RESTRICTION = SetDefinition(
    resource_type="OVH::Registry::IpRestriction",
    parent_type=CONTAINER_REGISTRY,
    parent_property="registryId",
    path_segment="ipRestrictions",
    key_field="ipBlock",
    id_format=NativeIdFormat.SET_ENTRY_CATEGORY,
    categories=("management", "registry"),
)

OIDC = SingletonDefinition(
    resource_type="OVH::Registry::Oidc",
    parent_type=CONTAINER_REGISTRY,
    parent_property="registryId",
    path_segment="openIdConnect",
)

DEFINITIONS = [REGISTRY, USER, IP_RESTRICTION, OIDC]
