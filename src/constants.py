"""Constants used across the operator."""

# Root of every OVH public cloud API path
CLOUD_PROJECT_ROOT = "/cloud/project"

# Custom resource coordinates for the Kubernetes host adapter
CRD_GROUP = "ovh.operator.io"
CRD_VERSION = "v1alpha1"
CRD_PLURAL = "ovhresources"
CRD_KIND = "OvhResource"

FINALIZER = "ovh.operator.io/ovh-resource-operator"

# Target config keys that may carry the cloud project (serviceName)
PROJECT_CONFIG_KEYS = ("serviceName", "ServiceName", "projectId", "ProjectId")
REGION_CONFIG_KEYS = ("region", "Region")

# Routing properties that address a resource but never belong in a request body
ROUTING_PROPERTIES = ("serviceName", "engine", "clusterId")
