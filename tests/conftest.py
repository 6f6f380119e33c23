"""Pytest configuration and fixtures."""

import copy

import pytest

from client import RemoteStore
from errors import NotFound, RemoteError
from kinds.loadbalancer import LoadBalancerKind
from kinds.registry import KindRegistry, register_builtin_kinds
from kinds.virtualmachine import VirtualMachineKind


def apply_merge_patch(target, patch):
    """Apply an RFC 7386 merge patch to a dict."""
    result = copy.deepcopy(target)
    for key, value in patch.items():
        if value is None:
            result.pop(key, None)
        elif isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = apply_merge_patch(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


class FakeStore(RemoteStore):
    """In-memory RemoteStore that echoes stored objects back."""

    def __init__(self, kind="LoadBalancer", status=None):
        self.kind = kind
        self.status = status or {}
        self.objects = {}
        self.calls = []

    async def create(self, namespace, obj):
        self.calls.append(("create", namespace, obj))
        name = obj["metadata"]["name"]
        if (namespace, name) in self.objects:
            raise RemoteError(f'{self.kind} "{name}" already exists', status=409)
        stored = copy.deepcopy(obj)
        stored["metadata"]["uid"] = f"uid-{name}"
        stored["status"] = copy.deepcopy(self.status)
        self.objects[(namespace, name)] = stored
        return copy.deepcopy(stored)

    async def get(self, namespace, name):
        self.calls.append(("get", namespace, name))
        if (namespace, name) not in self.objects:
            raise NotFound(self.kind, namespace, name)
        return copy.deepcopy(self.objects[(namespace, name)])

    async def patch(self, namespace, name, merge_patch):
        self.calls.append(("patch", namespace, name, merge_patch))
        if (namespace, name) not in self.objects:
            raise NotFound(self.kind, namespace, name)
        stored = apply_merge_patch(self.objects[(namespace, name)], merge_patch)
        self.objects[(namespace, name)] = stored
        return copy.deepcopy(stored)

    async def delete(self, namespace, name):
        self.calls.append(("delete", namespace, name))
        if (namespace, name) not in self.objects:
            raise NotFound(self.kind, namespace, name)
        del self.objects[(namespace, name)]

    def call_names(self):
        return [call[0] for call in self.calls]


@pytest.fixture
def lb_kind():
    return LoadBalancerKind()


@pytest.fixture
def vm_kind():
    return VirtualMachineKind()


@pytest.fixture
def lb_store():
    return FakeStore(
        kind="LoadBalancer",
        status={
            "address": "192.168.100.50",
            "conditions": [{"type": "Ready", "status": "True", "message": ""}],
        },
    )


@pytest.fixture
def vm_store():
    return FakeStore(kind="VirtualMachine", status={"printableStatus": "Starting"})


@pytest.fixture
def registry():
    return register_builtin_kinds(KindRegistry())


@pytest.fixture
def sample_lb_record():
    """Load balancer configuration with every list element fully specified."""
    return {
        "name": "lb1",
        "namespace": "default",
        "description": "frontend load balancer",
        "tags": {"team": "web"},
        "workload_type": "vm",
        "ipam": "pool",
        "ip_pool": "pool-1",
        "listener": [
            {"name": "http", "port": 80, "protocol": "TCP", "backend_port": 8080}
        ],
        "backend_selector": [{"key": "app", "values": ["web"]}],
        "healthcheck": [
            {
                "port": 8080,
                "success_threshold": 1,
                "failure_threshold": 3,
                "period_seconds": 5,
                "timeout_seconds": 3,
            }
        ],
    }


@pytest.fixture
def sample_vm_record():
    """Virtual machine configuration mirroring the acceptance test VM."""
    return {
        "name": "test-acc-foo",
        "namespace": "default",
        "description": "Terraform Harvester vm acceptance test",
        "tags": {"Foobar": "barfoo"},
        "cpu": 1,
        "memory": "1Gi",
        "run_strategy": "RerunOnFailure",
        "machine_type": "q35",
        "network_interface": [
            {
                "name": "default",
                "model": "virtio",
                "type": "bridge",
                "network_name": "",
                "mac_address": "",
            }
        ],
        "disk": [
            {
                "name": "rootdisk",
                "type": "disk",
                "bus": "virtio",
                "boot_order": 1,
                "container_image_name": "kubevirt/fedora-cloud-container-disk-demo:v0.35.0",
            }
        ],
    }
