"""
Resource kinds for the Harvester provider.

Each kind maps one cluster API object type to a flat configuration record.
Third-party kinds are discovered via Python entry points
(group: 'harvester_provider.kinds').
"""

from kinds.base import DriftResult, LifecycleState, ResourceData, ResourceKind
from kinds.registry import KindRegistry, get_registry, register_builtin_kinds

__all__ = [
    "DriftResult",
    "LifecycleState",
    "ResourceData",
    "ResourceKind",
    "KindRegistry",
    "get_registry",
    "register_builtin_kinds",
]
