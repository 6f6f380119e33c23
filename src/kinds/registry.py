"""
Kind Registry - Discovery and registration of resource kinds.

This module provides the central registry for resource kinds, handling
discovery, registration, and instantiation.
"""

from importlib.metadata import entry_points
from typing import Dict, List, Optional, Type

from kinds.base import ResourceKind, logger

ENTRY_POINT_GROUP = "harvester_provider.kinds"


class KindRegistry:
    """
    Central registry for resource kinds.

    Kind classes are registered by name; instances are created lazily and
    reused, since kinds hold no per-resource state.
    """

    def __init__(self):
        # Registered kind classes (not instantiated)
        self._kinds: Dict[str, Type[ResourceKind]] = {}

        # Cached kind metadata to avoid repeated instantiation
        self._kind_info: Dict[str, Dict[str, str]] = {}

        self._instances: Dict[str, ResourceKind] = {}

    def register_kind(self, kind_class: Type[ResourceKind]) -> None:
        """
        Register a resource kind class.

        Args:
            kind_class: The ResourceKind subclass to register
        """
        # Create temporary instance to get name/api (only once at registration)
        temp_instance = kind_class()
        name = temp_instance.name
        api = temp_instance.api

        if name in self._kinds:
            logger.warning(f"Overwriting existing resource kind: {name}")

        self._kinds[name] = kind_class
        self._kind_info[name] = {
            "name": name,
            "api_version": api.api_version,
            "kind": api.kind,
        }
        self._instances.pop(name, None)
        logger.info(f"Registered resource kind: {name} ({api.api_version} {api.kind})")

    def get_kind(self, name: str) -> ResourceKind:
        """
        Get a resource kind instance.

        Args:
            name: The kind name to retrieve

        Returns:
            A ResourceKind instance

        Raises:
            ValueError: If the kind name is not registered
        """
        if name not in self._kinds:
            available = ", ".join(self._kinds.keys()) or "none"
            raise ValueError(f"Unknown resource kind: {name}. Available kinds: {available}")

        if name not in self._instances:
            self._instances[name] = self._kinds[name]()

        return self._instances[name]

    def list_kinds(self) -> List[str]:
        """List all registered kind names."""
        return list(self._kinds.keys())

    def has_kind(self, name: str) -> bool:
        """Check if a kind is registered."""
        return name in self._kinds

    def get_kind_info(self, name: str) -> Optional[Dict[str, str]]:
        """
        Get information about a registered kind.

        Args:
            name: The kind name

        Returns:
            Dictionary with 'name', 'api_version' and 'kind', or None if not found
        """
        return self._kind_info.get(name)


# Global registry instance
_registry: Optional[KindRegistry] = None


def get_registry() -> KindRegistry:
    """Get the global kind registry singleton."""
    global _registry
    if _registry is None:
        _registry = KindRegistry()
    return _registry


def reset_registry() -> None:
    """Reset the global registry (mainly for testing)."""
    global _registry
    _registry = None


def register_builtin_kinds(registry: Optional[KindRegistry] = None) -> KindRegistry:
    """
    Register the built-in kinds and discover third-party kinds via entry points.

    Args:
        registry: Registry to populate; defaults to the global registry

    Returns:
        The populated registry.
    """
    registry = registry or get_registry()

    from kinds.loadbalancer import LoadBalancerKind
    from kinds.virtualmachine import VirtualMachineKind

    registry.register_kind(LoadBalancerKind)
    registry.register_kind(VirtualMachineKind)

    for ep in entry_points(group=ENTRY_POINT_GROUP):
        try:
            registry.register_kind(ep.load())
        except Exception as e:
            logger.warning(f"Could not load resource kind {ep.name}: {e}")

    return registry
