"""Shared operator state - thread-safe singleton for OVH and Kubernetes clients."""

import threading
from dataclasses import dataclass, field

from kubernetes import client as k8s_client
from kubernetes import config as k8s_config

from config import OvhConfig
from ovh_client import OvhClient
from plugin import ResourcePlugin
from registry import ResourceRegistry
from resources import build_registry


@dataclass
class OperatorState:
    """Thread-safe operator state container.

    This class provides thread-safe access to shared operator resources:
    - OVH API client
    - Kubernetes API client
    - Resource registry and the plugin dispatching to it

    All handlers should use the global `state` instance rather than
    creating their own clients.
    """

    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _config: OvhConfig | None = field(default=None, repr=False)
    _ovh_client: OvhClient | None = field(default=None, repr=False)
    _registry: ResourceRegistry | None = field(default=None, repr=False)
    _plugin: ResourcePlugin | None = field(default=None, repr=False)
    _k8s_core_api: k8s_client.CoreV1Api | None = field(default=None, repr=False)
    _k8s_configured: bool = field(default=False, repr=False)

    def _ensure_k8s_config(self) -> None:
        """Ensure Kubernetes configuration is loaded (must hold lock)."""
        if not self._k8s_configured:
            try:
                k8s_config.load_incluster_config()
            except k8s_config.ConfigException:
                k8s_config.load_kube_config()
            self._k8s_configured = True

    def _ensure_registry(self) -> ResourceRegistry:
        """Build the registry once (must hold lock)."""
        if self._registry is None:
            self._registry = build_registry()
        return self._registry

    def initialize(self, config: OvhConfig | None = None) -> None:
        """Load configuration and build the registry before serving requests.

        Raises:
            ConfigurationError: If required OVH settings are missing.
        """
        with self._lock:
            if config is not None:
                self._config = config
            elif self._config is None:
                self._config = OvhConfig.from_env()
            self._ensure_registry()

    def get_config(self) -> OvhConfig:
        """Get the OVH configuration, loading it from the environment if needed."""
        with self._lock:
            if self._config is None:
                self._config = OvhConfig.from_env()
            return self._config

    def get_ovh_client(self) -> OvhClient:
        """Get or create the OVH client (thread-safe)."""
        config = self.get_config()
        with self._lock:
            if self._ovh_client is None:
                self._ovh_client = OvhClient(config)
            return self._ovh_client

    def get_registry(self) -> ResourceRegistry:
        """Get or build the resource registry (thread-safe)."""
        with self._lock:
            return self._ensure_registry()

    def get_plugin(self) -> ResourcePlugin:
        """Get or create the plugin bound to the shared client and registry."""
        client = self.get_ovh_client()
        registry = self.get_registry()
        with self._lock:
            if self._plugin is None:
                self._plugin = ResourcePlugin(
                    registry, client, self._config.cloud_project_id if self._config else ""
                )
            return self._plugin

    def get_k8s_core_api(self) -> k8s_client.CoreV1Api:
        """Get or create the Kubernetes CoreV1Api client (thread-safe)."""
        with self._lock:
            self._ensure_k8s_config()
            if self._k8s_core_api is None:
                self._k8s_core_api = k8s_client.CoreV1Api()
            return self._k8s_core_api

    def close(self) -> None:
        """Close all connections."""
        with self._lock:
            if self._ovh_client is not None:
                self._ovh_client.close()
                self._ovh_client = None
            self._plugin = None


# Global operator state singleton
state = OperatorState()


def get_plugin() -> ResourcePlugin:
    """Get the shared resource plugin."""
    return state.get_plugin()


def get_k8s_core_api() -> k8s_client.CoreV1Api:
    """Get the shared Kubernetes CoreV1Api client."""
    return state.get_k8s_core_api()
