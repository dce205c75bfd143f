"""Registry of provisioner factories keyed by resource type.

The registry is filled explicitly at process start (see
resources.build_registry) and sealed before the host starts dispatching.
After that it is only read, by any number of concurrent operations.
"""

import logging
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

from models import Operation, UnsupportedResourceTypeError
from ovh_client import TransportClient

logger = logging.getLogger(__name__)

ProvisionerFactory = Callable[[TransportClient], Any]


@dataclass
class ReadWriteLock:
    """A read-write lock allowing multiple concurrent readers or one writer."""

    _readers: int = 0
    _writer: bool = False
    _lock: threading.Lock = field(default_factory=threading.Lock)
    _read_ready: threading.Condition | None = None

    def __post_init__(self) -> None:
        if self._read_ready is None:
            self._read_ready = threading.Condition(self._lock)

    def acquire_read(self) -> None:
        with self._read_ready:
            self._read_ready.wait_for(lambda: not self._writer)
            self._readers += 1

    def release_read(self) -> None:
        with self._read_ready:
            self._readers -= 1
            if self._readers == 0:
                self._read_ready.notify_all()

    def acquire_write(self) -> None:
        with self._read_ready:
            self._read_ready.wait_for(lambda: not self._writer and self._readers == 0)
            self._writer = True

    def release_write(self) -> None:
        with self._read_ready:
            self._writer = False
            self._read_ready.notify_all()

    @contextmanager
    def read_locked(self) -> Iterator[None]:
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write_locked(self) -> Iterator[None]:
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()


@dataclass(frozen=True)
class RegistryEntry:
    """One registered resource type."""

    resource_type: str
    operations: frozenset[Operation]
    factory: ProvisionerFactory

    def supports(self, operation: Operation) -> bool:
        return operation in self.operations


class ResourceRegistry:
    """Thread-safe table of resource types and their provisioner factories."""

    def __init__(self) -> None:
        self._entries: dict[str, RegistryEntry] = {}
        self._lock = ReadWriteLock()
        self._sealed = False

    def register(
        self,
        resource_type: str,
        operations: frozenset[Operation] | set[Operation],
        factory: ProvisionerFactory,
    ) -> RegistryEntry:
        """Register a provisioner factory for a resource type.

        Raises:
            ValueError: If resource_type is empty or already registered.
            RuntimeError: If the registry is sealed.
        """
        if not resource_type:
            raise ValueError("resource type must not be empty")

        entry = RegistryEntry(resource_type, frozenset(operations), factory)
        with self._lock.write_locked():
            if self._sealed:
                raise RuntimeError(
                    f"cannot register {resource_type}: registry is sealed"
                )
            if resource_type in self._entries:
                raise ValueError(f"resource type already registered: {resource_type}")
            self._entries[resource_type] = entry

        logger.debug("Registered resource type %s", resource_type)
        return entry

    def register_definition(self, definition: Any) -> RegistryEntry:
        """Register a ResourceDefinition, SetDefinition or SingletonDefinition record."""
        return self.register(
            definition.resource_type, definition.operations, definition.build
        )

    def seal(self) -> None:
        """Refuse further registrations."""
        with self._lock.write_locked():
            self._sealed = True
        logger.info("Resource registry sealed with %d types", len(self._entries))

    @property
    def sealed(self) -> bool:
        with self._lock.read_locked():
            return self._sealed

    def lookup(self, resource_type: str) -> RegistryEntry:
        """Return the entry for a resource type.

        Raises:
            UnsupportedResourceTypeError: If the type is not registered.
        """
        with self._lock.read_locked():
            entry = self._entries.get(resource_type)
        if entry is None:
            raise UnsupportedResourceTypeError(resource_type)
        return entry

    def get(self, resource_type: str, client: TransportClient) -> Any:
        """Build a provisioner for a resource type bound to a transport client."""
        return self.lookup(resource_type).factory(client)

    def has(self, resource_type: str) -> bool:
        with self._lock.read_locked():
            return resource_type in self._entries

    def supported_operations(self, resource_type: str) -> frozenset[Operation]:
        return self.lookup(resource_type).operations

    def resource_types(self) -> list[str]:
        with self._lock.read_locked():
            return sorted(self._entries)

    def __len__(self) -> int:
        with self._lock.read_locked():
            return len(self._entries)
