"""Managed database resources (/cloud/project/{serviceName}/database)."""

import logging
from typing import Any

from lifecycle import AsynchronousResource
from native_id import NativeIdFormat
from provisioner import ResourceDefinition
from utils import derive_short_region

logger = logging.getLogger(__name__)

DATABASE = "database"


def shorten_nodes_pattern_region(body: dict[str, Any]) -> dict[str, Any]:
    """Rewrite nodesPattern.region to the short form the database API expects.

    Example: {'nodesPattern': {'region': 'GRA7'}} -> {'nodesPattern': {'region': 'GRA'}}
    """
    pattern = body.get("nodesPattern")
    if not isinstance(pattern, dict):
        return body
    region = pattern.get("region")
    if not isinstance(region, str) or not region:
        return body

    short = derive_short_region(region)
    if short != region:
        logger.debug("Rewriting nodesPattern.region %s -> %s", region, short)
    return {**body, "nodesPattern": {**pattern, "region": short}}


def _nested(
    resource_type: str,
    path_segment: str,
    *,
    supports_update: bool,
    id_field: str = "id",
    fixed_engine: str = "",
) -> ResourceDefinition:
    """A resource living under one database cluster."""
    return ResourceDefinition(
        resource_type=resource_type,
        path_segment=path_segment,
        id_format=NativeIdFormat.SERVICE_NESTED,
        parent_type=DATABASE,
        parent_property="clusterId",
        id_field=id_field,
        fixed_engine=fixed_engine,
        supports_update=supports_update,
    )


SERVICE = ResourceDefinition(
    resource_type="OVH::Database::Service",
    path_segment=DATABASE,
    id_format=NativeIdFormat.SERVICE,
    dispatch=AsynchronousResource(),
    request_transformer=shorten_nodes_pattern_region,
)

DEFINITIONS = [
    SERVICE,
    _nested("OVH::Database::Database", "database", supports_update=False),
    _nested("OVH::Database::User", "user", supports_update=True),
    _nested("OVH::Database::Integration", "integration", supports_update=False),
    _nested(
        "OVH::Database::IpRestriction",
        "ipRestriction",
        supports_update=True,
        id_field="ip",
    ),
    _nested(
        "OVH::Database::KafkaAcl",
        "acl",
        supports_update=False,
        fixed_engine="kafka",
    ),
    _nested(
        "OVH::Database::KafkaTopic",
        "topic",
        supports_update=True,
        fixed_engine="kafka",
    ),
    _nested(
        "OVH::Database::PostgresqlConnectionPool",
        "connectionPool",
        supports_update=True,
        fixed_engine="postgresql",
    ),
]
