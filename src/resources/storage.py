"""Block storage resources (/cloud/project/{serviceName}/volume)."""

from lifecycle import AsynchronousResource, StatusProbe
from provisioner import ResourceDefinition

# Volumes report OpenStack-style lowercase states
VOLUME_PROBE = StatusProbe(
    ready_values=frozenset({"available", "in-use"}),
    error_values=frozenset({"error", "error_extending", "error_restoring"}),
)

VOLUME = ResourceDefinition(
    resource_type="OVH::Storage::Volume",
    path_segment="volume",
    dispatch=AsynchronousResource(VOLUME_PROBE),
    immutable_fields=("region", "imageId", "snapshotId", "type"),
)

DEFINITIONS = [VOLUME]
