"""Endpoint registry: persistence, versioned snapshots, settings and transfer."""

from .defaults import default_endpoints, seed_default_endpoints
from .settings import SettingsStore, estimate_resources
from .snapshot import RegistrySnapshot, RegistryView
from .store import EndpointStore, find_conflict, validate_endpoint
from .transfer import export_registry, import_registry

__all__ = [
    "EndpointStore",
    "RegistrySnapshot",
    "RegistryView",
    "SettingsStore",
    "default_endpoints",
    "estimate_resources",
    "export_registry",
    "find_conflict",
    "import_registry",
    "seed_default_endpoints",
    "validate_endpoint",
]
