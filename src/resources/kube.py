"""Managed Kubernetes resources (/cloud/project/{serviceName}/kube)."""

from lifecycle import AsynchronousResource
from native_id import NativeIdFormat
from provisioner import ResourceDefinition
from set_reconciler import SetDefinition
from singleton import SingletonDefinition

KUBE = "kube"

CLUSTER = ResourceDefinition(
    resource_type="OVH::Kube::Cluster",
    path_segment=KUBE,
    dispatch=AsynchronousResource(),
    immutable_fields=(
        "region",
        "plan",
        "kubeProxyMode",
        "privateNetworkId",
        "privateNetworkConfiguration",
        "loadBalancersSubnetId",
        "nodesSubnetId",
    ),
)

NODE_POOL = ResourceDefinition(
    resource_type="OVH::Kube::NodePool",
    path_segment="nodepool",
    id_format=NativeIdFormat.NESTED,
    dispatch=AsynchronousResource(),
    parent_type=KUBE,
    parent_property="kubeId",
    immutable_fields=(
        "name",
        "flavorName",
        "antiAffinity",
        "monthlyBilled",
        "availabilityZones",
    ),
)

# The API only replaces the whole list of allowed source IPs
IP_RESTRICTION = SetDefinition(
    resource_type="OVH::Kube::IpRestriction",
    parent_type=KUBE,
    parent_property="kubeId",
    path_segment="ipRestrictions",
    key_field="ip",
)

# One OpenID Connect provider per cluster, configured with PUT
OIDC = SingletonDefinition(
    resource_type="OVH::Kube::Oidc",
    parent_type=KUBE,
    parent_property="kubeId",
    path_segment="openIdConnect",
    create_method="PUT",
)

DEFINITIONS = [CLUSTER, NODE_POOL, IP_RESTRICTION, OIDC]
