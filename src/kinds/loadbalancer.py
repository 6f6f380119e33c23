"""
Load Balancer Kind - Harvester load balancers (loadbalancer.harvesterhci.io).

A load balancer exposes listeners on an address obtained by DHCP or from an
IP pool, and forwards traffic to the VMs (or guest cluster nodes) matched by
its backend selector.
"""

from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel

from client import APIResource
from kinds.base import ResourceKind
from kinds.common import (
    FIELD_MESSAGE,
    FIELD_STATE,
    build_metadata,
    common_fields,
    metadata_states,
    ready_condition,
)
from schema import Field, FieldType, Schema

LISTENER_SCHEMA = Schema(
    [
        Field("name", FieldType.STRING, required=True),
        Field("port", FieldType.INT, required=True, minimum=1, maximum=65535),
        Field("protocol", FieldType.STRING, default="TCP", choices=["TCP", "UDP"]),
        Field(
            "backend_port", FieldType.INT, required=True, minimum=1, maximum=65535
        ),
    ],
    title="Listener",
)

BACKEND_SELECTOR_SCHEMA = Schema(
    [
        Field("key", FieldType.STRING, required=True),
        Field("values", FieldType.LIST, required=True, elem=FieldType.STRING),
    ],
    title="BackendSelector",
)

HEALTHCHECK_SCHEMA = Schema(
    [
        Field("port", FieldType.INT, required=True, minimum=1, maximum=65535),
        Field("success_threshold", FieldType.INT, default=1, minimum=1),
        Field("failure_threshold", FieldType.INT, default=3, minimum=1),
        Field("period_seconds", FieldType.INT, default=5, minimum=1),
        Field("timeout_seconds", FieldType.INT, default=3, minimum=1),
    ],
    title="HealthCheck",
)

LOADBALANCER_SCHEMA = Schema(
    common_fields()
    + [
        Field(
            "workload_type", FieldType.STRING, default="vm", choices=["vm", "cluster"]
        ),
        Field("ipam", FieldType.STRING, default="dhcp", choices=["dhcp", "pool"]),
        Field("ip_pool", FieldType.STRING, description="Required when ipam is 'pool'"),
        Field("listener", FieldType.LIST, elem=LISTENER_SCHEMA),
        Field("backend_selector", FieldType.LIST, elem=BACKEND_SELECTOR_SCHEMA),
        Field("healthcheck", FieldType.LIST, elem=HEALTHCHECK_SCHEMA, max_items=1),
        Field("ip_address", FieldType.STRING, computed=True),
    ],
    title="LoadBalancerConfig",
)


class LoadBalancerKind(ResourceKind):
    """Resource kind for Harvester load balancers."""

    @property
    def name(self) -> str:
        return "harvester_loadbalancer"

    @property
    def api(self) -> APIResource:
        return APIResource(
            group="loadbalancer.harvesterhci.io",
            version="v1beta1",
            plural="loadbalancers",
            kind="LoadBalancer",
        )

    @property
    def schema(self) -> Schema:
        return LOADBALANCER_SCHEMA

    def validate(self, record: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
        if record.get("ipam") == "pool" and not record.get("ip_pool"):
            return False, "ip_pool must be set when ipam is 'pool'"

        ports = [listener["port"] for listener in record.get("listener", [])]
        duplicates = sorted({p for p in ports if ports.count(p) > 1})
        if duplicates:
            return False, f"listener ports must be unique, duplicated: {duplicates}"

        keys = [selector["key"] for selector in record.get("backend_selector", [])]
        duplicates = sorted({k for k in keys if keys.count(k) > 1})
        if duplicates:
            return (
                False,
                f"backend_selector keys must be unique, duplicated: {duplicates}",
            )

        return True, None

    def to_payload(
        self, config: BaseModel, namespace: str, name: str
    ) -> Dict[str, Any]:
        spec: Dict[str, Any] = {
            "workloadType": config.workload_type,
            "ipam": config.ipam,
            "listeners": [
                {
                    "name": listener.name,
                    "port": listener.port,
                    "protocol": listener.protocol,
                    "backendPort": listener.backend_port,
                }
                for listener in config.listener
            ],
            "backendServerSelector": {
                selector.key: list(selector.values)
                for selector in config.backend_selector
            },
        }
        if config.ip_pool:
            spec["ipPool"] = config.ip_pool
        if config.healthcheck:
            hc = config.healthcheck[0]
            spec["healthCheck"] = {
                "port": hc.port,
                "successThreshold": hc.success_threshold,
                "failureThreshold": hc.failure_threshold,
                "periodSeconds": hc.period_seconds,
                "timeoutSeconds": hc.timeout_seconds,
            }

        return {
            "apiVersion": self.api.api_version,
            "kind": self.api.kind,
            "metadata": build_metadata(config, namespace, name),
            "spec": spec,
        }

    def from_remote(self, obj: Dict[str, Any]) -> Dict[str, Any]:
        spec = obj.get("spec") or {}
        status = obj.get("status") or {}
        state, message = ready_condition(status)

        healthcheck = []
        hc = spec.get("healthCheck")
        if hc:
            healthcheck.append(
                {
                    "port": hc.get("port"),
                    "success_threshold": hc.get("successThreshold"),
                    "failure_threshold": hc.get("failureThreshold"),
                    "period_seconds": hc.get("periodSeconds"),
                    "timeout_seconds": hc.get("timeoutSeconds"),
                }
            )

        states = metadata_states(obj)
        states.update(
            {
                "workload_type": spec.get("workloadType"),
                "ipam": spec.get("ipam"),
                "ip_pool": spec.get("ipPool"),
                "listener": [
                    {
                        "name": listener.get("name"),
                        "port": listener.get("port"),
                        "protocol": listener.get("protocol"),
                        "backend_port": listener.get("backendPort"),
                    }
                    for listener in spec.get("listeners") or []
                ],
                "backend_selector": [
                    {"key": key, "values": list(values or [])}
                    for key, values in (spec.get("backendServerSelector") or {}).items()
                ],
                "healthcheck": healthcheck,
                "ip_address": status.get("address"),
                FIELD_STATE: state,
                FIELD_MESSAGE: message,
            }
        )
        return states
