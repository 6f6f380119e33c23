"""Unit tests for projection.py - State projector."""

import copy

import pytest

from errors import ValidationError
from kinds.common import CREATOR_LABEL, DESCRIPTION_ANNOTATION, TAG_LABEL_PREFIX
from projection import build, diff_payloads, project


class TestBuildLoadBalancer:
    """Tests for build() with the load balancer kind."""

    def test_payload_shape(self, lb_kind, sample_lb_record):
        payload = build(lb_kind, sample_lb_record, "default", "lb1")

        assert payload["apiVersion"] == "loadbalancer.harvesterhci.io/v1beta1"
        assert payload["kind"] == "LoadBalancer"
        assert payload["metadata"]["name"] == "lb1"
        assert payload["metadata"]["namespace"] == "default"
        assert payload["metadata"]["labels"][f"{TAG_LABEL_PREFIX}team"] == "web"
        assert payload["metadata"]["labels"][CREATOR_LABEL] == "harvester-provider"
        assert (
            payload["metadata"]["annotations"][DESCRIPTION_ANNOTATION]
            == "frontend load balancer"
        )
        assert payload["spec"] == {
            "workloadType": "vm",
            "ipam": "pool",
            "ipPool": "pool-1",
            "listeners": [
                {"name": "http", "port": 80, "protocol": "TCP", "backendPort": 8080}
            ],
            "backendServerSelector": {"app": ["web"]},
            "healthCheck": {
                "port": 8080,
                "successThreshold": 1,
                "failureThreshold": 3,
                "periodSeconds": 5,
                "timeoutSeconds": 3,
            },
        }

    def test_defaults_applied(self, lb_kind):
        payload = build(lb_kind, {"name": "lb1"}, "default", "lb1")
        assert payload["spec"]["workloadType"] == "vm"
        assert payload["spec"]["ipam"] == "dhcp"
        assert "ipPool" not in payload["spec"]
        assert "healthCheck" not in payload["spec"]
        assert "annotations" not in payload["metadata"]

    def test_listener_protocol_default(self, lb_kind):
        record = {
            "name": "lb1",
            "listener": [{"name": "dns", "port": 53, "backend_port": 53}],
        }
        payload = build(lb_kind, record, "default", "lb1")
        assert payload["spec"]["listeners"][0]["protocol"] == "TCP"

    def test_missing_required_field(self, lb_kind):
        with pytest.raises(ValidationError, match="name"):
            build(lb_kind, {"namespace": "default"}, "default", "lb1")

    def test_type_mismatch(self, lb_kind):
        record = {
            "name": "lb1",
            "listener": [{"name": "http", "port": "80", "backend_port": 8080}],
        }
        with pytest.raises(ValidationError, match="listener.0.port"):
            build(lb_kind, record, "default", "lb1")

    def test_unknown_field(self, lb_kind):
        with pytest.raises(ValidationError):
            build(lb_kind, {"name": "lb1", "size": 3}, "default", "lb1")

    def test_pool_requires_ip_pool(self, lb_kind):
        with pytest.raises(ValidationError, match="ip_pool"):
            build(lb_kind, {"name": "lb1", "ipam": "pool"}, "default", "lb1")

    def test_duplicate_listener_ports(self, lb_kind):
        record = {
            "name": "lb1",
            "listener": [
                {"name": "a", "port": 80, "backend_port": 80},
                {"name": "b", "port": 80, "backend_port": 81},
            ],
        }
        with pytest.raises(ValidationError, match="unique"):
            build(lb_kind, record, "default", "lb1")

    def test_duplicate_selector_keys(self, lb_kind):
        record = {
            "name": "lb1",
            "backend_selector": [
                {"key": "app", "values": ["a"]},
                {"key": "app", "values": ["b"]},
            ],
        }
        with pytest.raises(ValidationError, match="backend_selector keys"):
            build(lb_kind, record, "default", "lb1")

    def test_multiple_selectors_round_trip(self, lb_kind):
        selectors = [
            {"key": "app", "values": ["web", "api"]},
            {"key": "tier", "values": ["frontend"]},
        ]
        record = {"name": "lb1", "backend_selector": selectors}
        echo = build(lb_kind, record, "default", "lb1")
        assert project(lb_kind, echo)["backend_selector"] == selectors

    def test_at_most_one_healthcheck(self, lb_kind):
        record = {"name": "lb1", "healthcheck": [{"port": 80}, {"port": 81}]}
        with pytest.raises(ValidationError, match="healthcheck"):
            build(lb_kind, record, "default", "lb1")

    def test_identity_mismatch(self, lb_kind):
        with pytest.raises(ValidationError, match="name"):
            build(lb_kind, {"name": "lb1"}, "default", "lb2")

    def test_computed_fields_ignored(self, lb_kind):
        record = {"name": "lb1", "ip_address": "10.0.0.1", "state": "Active"}
        payload = build(lb_kind, record, "default", "lb1")
        assert "status" not in payload


class TestBuildVirtualMachine:
    """Tests for build() with the virtual machine kind."""

    def test_payload_shape(self, vm_kind, sample_vm_record):
        payload = build(vm_kind, sample_vm_record, "default", "test-acc-foo")

        assert payload["apiVersion"] == "kubevirt.io/v1"
        assert payload["kind"] == "VirtualMachine"
        assert payload["spec"]["runStrategy"] == "RerunOnFailure"

        template = payload["spec"]["template"]
        assert template["metadata"]["labels"] == {
            "harvesterhci.io/vmName": "test-acc-foo"
        }
        domain = template["spec"]["domain"]
        assert domain["machine"] == {"type": "q35"}
        assert domain["cpu"] == {"cores": 1, "sockets": 1, "threads": 1}
        assert domain["resources"]["limits"] == {"cpu": "1", "memory": "1Gi"}
        assert domain["devices"]["disks"] == [
            {"name": "rootdisk", "disk": {"bus": "virtio"}, "bootOrder": 1}
        ]
        assert domain["devices"]["interfaces"] == [
            {"name": "default", "model": "virtio", "bridge": {}}
        ]
        assert template["spec"]["networks"] == [{"name": "default", "pod": {}}]
        assert template["spec"]["volumes"] == [
            {
                "name": "rootdisk",
                "containerDisk": {
                    "image": "kubevirt/fedora-cloud-container-disk-demo:v0.35.0"
                },
            }
        ]

    def test_tags_become_labels(self, vm_kind, sample_vm_record):
        payload = build(vm_kind, sample_vm_record, "default", "test-acc-foo")
        assert payload["metadata"]["labels"]["tag.harvesterhci.io/Foobar"] == "barfoo"

    def test_cdrom_and_multus(self, vm_kind):
        record = {
            "name": "vm1",
            "disk": [{"name": "iso", "type": "cd-rom", "bus": "sata"}],
            "network_interface": [
                {"name": "nic-1", "network_name": "default/vlan1", "type": "masquerade"}
            ],
        }
        payload = build(vm_kind, record, "default", "vm1")
        spec = payload["spec"]["template"]["spec"]
        assert spec["domain"]["devices"]["disks"] == [
            {"name": "iso", "cdrom": {"bus": "sata"}}
        ]
        assert spec["domain"]["devices"]["interfaces"] == [
            {"name": "nic-1", "model": "virtio", "masquerade": {}}
        ]
        assert spec["networks"] == [
            {"name": "nic-1", "multus": {"networkName": "default/vlan1"}}
        ]
        assert spec["volumes"] == []

    def test_duplicate_boot_order(self, vm_kind):
        record = {
            "name": "vm1",
            "disk": [
                {"name": "a", "boot_order": 1},
                {"name": "b", "boot_order": 1},
            ],
        }
        with pytest.raises(ValidationError, match="boot_order"):
            build(vm_kind, record, "default", "vm1")

    def test_duplicate_disk_names(self, vm_kind):
        record = {"name": "vm1", "disk": [{"name": "a"}, {"name": "a"}]}
        with pytest.raises(ValidationError, match="disk names"):
            build(vm_kind, record, "default", "vm1")

    def test_cpu_type_mismatch(self, vm_kind):
        with pytest.raises(ValidationError, match="cpu"):
            build(vm_kind, {"name": "vm1", "cpu": "two"}, "default", "vm1")


class TestProject:
    """Tests for project()."""

    def test_missing_optional_fields_get_defaults(self, lb_kind):
        obj = {
            "metadata": {"name": "lb1", "namespace": "default"},
            "spec": {"listeners": [{"name": "http", "port": 80, "backendPort": 80}]},
        }
        record = project(lb_kind, obj)

        assert record["ip_pool"] == ""
        assert record["workload_type"] == "vm"
        assert record["ipam"] == "dhcp"
        assert record["description"] == ""
        assert record["tags"] == {}
        assert record["healthcheck"] == []
        assert record["ip_address"] == ""
        assert record["listener"] == [
            {"name": "http", "port": 80, "protocol": "TCP", "backend_port": 80}
        ]

    def test_empty_object(self, vm_kind):
        record = project(vm_kind, {})
        assert record == vm_kind.schema.zero_values()

    def test_every_key_declared(self, vm_kind, sample_vm_record):
        payload = build(vm_kind, sample_vm_record, "default", "test-acc-foo")
        record = project(vm_kind, payload)
        assert set(record) == set(vm_kind.schema.keys())

    def test_status_fields(self, lb_kind):
        obj = {
            "metadata": {"name": "lb1", "namespace": "default"},
            "status": {
                "address": "10.0.0.9",
                "conditions": [
                    {"type": "Ready", "status": "False", "message": "allocating"}
                ],
            },
        }
        record = project(lb_kind, obj)
        assert record["ip_address"] == "10.0.0.9"
        assert record["state"] == "Pending"
        assert record["message"] == "allocating"

    def test_vm_printable_status(self, vm_kind):
        obj = {"metadata": {"name": "vm1"}, "status": {"printableStatus": "Running"}}
        assert project(vm_kind, obj)["state"] == "Running"

    def test_only_prefixed_labels_are_tags(self, vm_kind):
        obj = {
            "metadata": {
                "name": "vm1",
                "labels": {
                    "tag.harvesterhci.io/env": "prod",
                    "harvesterhci.io/creator": "harvester-provider",
                },
            }
        }
        assert project(vm_kind, obj)["tags"] == {"env": "prod"}

    def test_lb_round_trip(self, lb_kind, sample_lb_record):
        echo = build(lb_kind, sample_lb_record, "default", "lb1")
        record = project(lb_kind, echo)
        for key, value in sample_lb_record.items():
            assert record[key] == value, key

    def test_vm_round_trip(self, vm_kind, sample_vm_record):
        echo = build(vm_kind, sample_vm_record, "default", "test-acc-foo")
        echo["status"] = {"printableStatus": "Starting"}
        echo["metadata"]["uid"] = "server-assigned"
        record = project(vm_kind, echo)
        for key, value in sample_vm_record.items():
            assert record[key] == value, key
        assert record["state"] == "Starting"


class TestDiffPayloads:
    """Tests for diff_payloads()."""

    def test_no_changes(self):
        payload = {"spec": {"a": 1, "b": [1, 2]}}
        assert diff_payloads(payload, copy.deepcopy(payload)) == {}

    def test_changed_nested_value(self):
        old = {"spec": {"limits": {"memory": "1Gi", "cpu": "1"}}}
        new = {"spec": {"limits": {"memory": "2Gi", "cpu": "1"}}}
        assert diff_payloads(old, new) == {"spec": {"limits": {"memory": "2Gi"}}}

    def test_removed_key(self):
        old = {"metadata": {"labels": {"a": "1", "b": "2"}}}
        new = {"metadata": {"labels": {"a": "1"}}}
        assert diff_payloads(old, new) == {"metadata": {"labels": {"b": None}}}

    def test_added_key(self):
        assert diff_payloads({"spec": {}}, {"spec": {"ipPool": "p"}}) == {
            "spec": {"ipPool": "p"}
        }

    def test_lists_replaced(self):
        old = {"spec": {"listeners": [{"port": 80}]}}
        new = {"spec": {"listeners": [{"port": 80}, {"port": 443}]}}
        assert diff_payloads(old, new) == {
            "spec": {"listeners": [{"port": 80}, {"port": 443}]}
        }

    def test_memory_update(self, vm_kind, sample_vm_record):
        old = build(vm_kind, sample_vm_record, "default", "test-acc-foo")
        updated = dict(sample_vm_record, memory="2Gi")
        new = build(vm_kind, updated, "default", "test-acc-foo")
        assert diff_payloads(old, new) == {
            "spec": {
                "template": {
                    "spec": {"domain": {"resources": {"limits": {"memory": "2Gi"}}}}
                }
            }
        }
