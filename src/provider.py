"""
Provider - Wires configuration, resource kinds and the cluster client.

One Provider lives for one run of the orchestrating process. It owns the
cluster client and hands out one ResourceAdapter per kind, so no component
reaches for a shared global client.
"""

import asyncio
import logging
from typing import Any, Dict, Optional, Tuple

from adapter import ResourceAdapter
from client import ClusterClient
from config import Config, get_config
from errors import NotFound, ValidationError
from identifiers import compose
from kinds.base import FIELD_NAME, FIELD_NAMESPACE, DriftResult, ResourceData
from kinds.registry import KindRegistry, get_registry, register_builtin_kinds

logger = logging.getLogger(__name__)

MANIFEST_KIND_KEY = "kind"


class Provider:
    """Entry point for applying, reading and deleting resources."""

    def __init__(
        self,
        config: Optional[Config] = None,
        registry: Optional[KindRegistry] = None,
        client: Optional[ClusterClient] = None,
    ):
        self.config = config or get_config()
        if registry is None:
            registry = get_registry()
            if not registry.list_kinds():
                register_builtin_kinds(registry)
        self.registry = registry
        self.client = client or ClusterClient(self.config.cluster)
        self._adapters: Dict[str, ResourceAdapter] = {}

    def adapter(self, kind_name: str) -> ResourceAdapter:
        """
        Get the adapter for a kind.

        Raises:
            ValueError: If the kind is unknown or not enabled.
        """
        if not self.config.kinds.is_enabled(kind_name):
            raise ValueError(f"Resource kind {kind_name} is not enabled")

        if kind_name not in self._adapters:
            kind = self.registry.get_kind(kind_name)
            self._adapters[kind_name] = ResourceAdapter(
                kind,
                self.client.resource(kind.api),
                timeouts=self.config.timeouts,
                wait=self.config.wait,
            )
        return self._adapters[kind_name]

    def parse_manifest(
        self, manifest: Dict[str, Any]
    ) -> Tuple[ResourceAdapter, Dict[str, Any]]:
        """
        Split a manifest into its kind's adapter and the configuration record.

        The namespace defaults to the configured default namespace.
        """
        if not isinstance(manifest, dict) or MANIFEST_KIND_KEY not in manifest:
            raise ValidationError(f"manifest must be a mapping with a '{MANIFEST_KIND_KEY}' key")

        values = dict(manifest)
        adapter = self.adapter(values.pop(MANIFEST_KIND_KEY))
        unknown = sorted(k for k in values if not adapter.kind.schema.has(k))
        if unknown:
            raise ValidationError(
                f"Unknown fields for {adapter.kind.name}: {', '.join(unknown)}"
            )
        values.setdefault(FIELD_NAMESPACE, self.config.kinds.default_namespace)
        return adapter, values

    async def apply(self, manifest: Dict[str, Any]) -> ResourceData:
        """
        Make the remote object match a manifest.

        Creates the object when absent, otherwise imports it and updates it
        to the full desired record: fields left out of the manifest go back
        to their defaults. Applying the same manifest twice leaves the remote
        object unchanged the second time.
        """
        adapter, values = self.parse_manifest(manifest)
        identifier = compose(values[FIELD_NAMESPACE], values.get(FIELD_NAME, ""))

        try:
            current = await adapter.import_resource(identifier)
        except NotFound:
            current = None

        if current is None:
            return await adapter.create(adapter.new_record(values))

        schema = adapter.kind.schema
        computed = set(schema.computed_keys())
        desired = {
            key: value
            for key, value in schema.fill(values).items()
            if key not in computed
        }
        return await adapter.update(current, desired)

    async def get(self, kind_name: str, identifier: str) -> Optional[ResourceData]:
        """Read a remote object as a present record, or None if absent."""
        adapter = self.adapter(kind_name)
        try:
            return await adapter.import_resource(identifier)
        except NotFound:
            return None

    async def destroy(
        self,
        kind_name: str,
        identifier: str,
        wait: bool = True,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> None:
        """Delete a remote object; absent objects are ignored."""
        await self.adapter(kind_name).delete(
            identifier, wait=wait, cancel_event=cancel_event
        )

    async def drift(self, manifest: Dict[str, Any]) -> DriftResult:
        """Report how the remote object differs from a manifest."""
        adapter, values = self.parse_manifest(manifest)
        identifier = compose(values[FIELD_NAMESPACE], values.get(FIELD_NAME, ""))
        data = ResourceData(adapter.kind.schema, values, id=identifier)
        return await adapter.detect_drift(data)
