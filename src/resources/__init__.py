"""OVH resource catalogue.

Nothing registers itself on import: build_registry() is called once at
process start and returns a sealed registry.
"""

from registry import ResourceRegistry
from resources import container_registry, database, kube, storage

CATALOGUE_MODULES = (database, kube, container_registry, storage)


def register_all(registry: ResourceRegistry) -> None:
    """Register every resource type of the catalogue."""
    for module in CATALOGUE_MODULES:
        for definition in module.DEFINITIONS:
            registry.register_definition(definition)


def build_registry() -> ResourceRegistry:
    """Build and seal the registry of every supported resource type."""
    registry = ResourceRegistry()
    register_all(registry)
    registry.seal()
    return registry
