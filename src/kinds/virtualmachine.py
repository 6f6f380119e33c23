"""
Virtual Machine Kind - KubeVirt virtual machines managed by Harvester.

Disks backed by a container image get a containerDisk volume of the same
name. Network interfaces attach to the pod network unless a network name is
given, in which case they attach to that multus network.
"""

from typing import Any, Dict, List, Optional, Tuple

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

VM_NAME_LABEL = "harvesterhci.io/vmName"

# Disk type as configured -> KubeVirt disk target key
DISK_TARGETS = {"disk": "disk", "cd-rom": "cdrom"}

NETWORK_INTERFACE_SCHEMA = Schema(
    [
        Field("name", FieldType.STRING, required=True),
        Field("model", FieldType.STRING, default="virtio"),
        Field(
            "type",
            FieldType.STRING,
            default="bridge",
            choices=["bridge", "masquerade"],
        ),
        Field(
            "network_name",
            FieldType.STRING,
            description="Multus network '<namespace>/<name>'; empty for the pod network",
        ),
        Field("mac_address", FieldType.STRING),
    ],
    title="NetworkInterface",
)

DISK_SCHEMA = Schema(
    [
        Field("name", FieldType.STRING, required=True),
        Field("type", FieldType.STRING, default="disk", choices=list(DISK_TARGETS)),
        Field(
            "bus",
            FieldType.STRING,
            default="virtio",
            choices=["virtio", "sata", "scsi"],
        ),
        Field("boot_order", FieldType.INT, minimum=0),
        Field("container_image_name", FieldType.STRING),
    ],
    title="Disk",
)

VIRTUALMACHINE_SCHEMA = Schema(
    common_fields()
    + [
        Field("cpu", FieldType.INT, default=1, minimum=1),
        Field("memory", FieldType.STRING, default="1Gi"),
        Field("hostname", FieldType.STRING),
        Field(
            "run_strategy",
            FieldType.STRING,
            default="RerunOnFailure",
            choices=["Always", "RerunOnFailure", "Manual", "Halted"],
        ),
        Field("machine_type", FieldType.STRING, default="q35"),
        Field("network_interface", FieldType.LIST, elem=NETWORK_INTERFACE_SCHEMA),
        Field("disk", FieldType.LIST, elem=DISK_SCHEMA),
    ],
    title="VirtualMachineConfig",
)


def _duplicates(values: List[Any]) -> List[Any]:
    return sorted({v for v in values if values.count(v) > 1})


class VirtualMachineKind(ResourceKind):
    """Resource kind for KubeVirt virtual machines."""

    @property
    def name(self) -> str:
        return "harvester_virtualmachine"

    @property
    def api(self) -> APIResource:
        return APIResource(
            group="kubevirt.io",
            version="v1",
            plural="virtualmachines",
            kind="VirtualMachine",
        )

    @property
    def schema(self) -> Schema:
        return VIRTUALMACHINE_SCHEMA

    def validate(self, record: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
        disks = record.get("disk", [])
        interfaces = record.get("network_interface", [])

        duplicated = _duplicates([d["name"] for d in disks])
        if duplicated:
            return False, f"disk names must be unique, duplicated: {duplicated}"

        duplicated = _duplicates([i["name"] for i in interfaces])
        if duplicated:
            return (
                False,
                f"network_interface names must be unique, duplicated: {duplicated}",
            )

        boot_orders = [d.get("boot_order", 0) for d in disks if d.get("boot_order")]
        duplicated = _duplicates(boot_orders)
        if duplicated:
            return False, f"disk boot_order must be unique, duplicated: {duplicated}"

        return True, None

    def to_payload(
        self, config: BaseModel, namespace: str, name: str
    ) -> Dict[str, Any]:
        disks = []
        volumes = []
        for disk in config.disk:
            entry: Dict[str, Any] = {
                "name": disk.name,
                DISK_TARGETS[disk.type]: {"bus": disk.bus},
            }
            if disk.boot_order:
                entry["bootOrder"] = disk.boot_order
            disks.append(entry)
            if disk.container_image_name:
                volumes.append(
                    {
                        "name": disk.name,
                        "containerDisk": {"image": disk.container_image_name},
                    }
                )

        interfaces = []
        networks = []
        for nic in config.network_interface:
            interface: Dict[str, Any] = {
                "name": nic.name,
                "model": nic.model,
                nic.type: {},
            }
            if nic.mac_address:
                interface["macAddress"] = nic.mac_address
            interfaces.append(interface)

            if nic.network_name:
                networks.append(
                    {"name": nic.name, "multus": {"networkName": nic.network_name}}
                )
            else:
                networks.append({"name": nic.name, "pod": {}})

        template_spec: Dict[str, Any] = {
            "domain": {
                "machine": {"type": config.machine_type},
                "cpu": {"cores": config.cpu, "sockets": 1, "threads": 1},
                "resources": {
                    "limits": {"cpu": str(config.cpu), "memory": config.memory}
                },
                "devices": {"disks": disks, "interfaces": interfaces},
            },
            "networks": networks,
            "volumes": volumes,
        }
        if config.hostname:
            template_spec["hostname"] = config.hostname

        return {
            "apiVersion": self.api.api_version,
            "kind": self.api.kind,
            "metadata": build_metadata(config, namespace, name),
            "spec": {
                "runStrategy": config.run_strategy,
                "template": {
                    "metadata": {"labels": {VM_NAME_LABEL: name}},
                    "spec": template_spec,
                },
            },
        }

    def from_remote(self, obj: Dict[str, Any]) -> Dict[str, Any]:
        spec = obj.get("spec") or {}
        status = obj.get("status") or {}
        template_spec = (spec.get("template") or {}).get("spec") or {}
        domain = template_spec.get("domain") or {}
        devices = domain.get("devices") or {}
        limits = (domain.get("resources") or {}).get("limits") or {}

        images = {
            volume.get("name"): (volume.get("containerDisk") or {}).get("image")
            for volume in template_spec.get("volumes") or []
        }
        disks = []
        for disk in devices.get("disks") or []:
            disk_type = next((t for t, key in DISK_TARGETS.items() if key in disk), None)
            target = disk.get(DISK_TARGETS[disk_type]) if disk_type else None
            disks.append(
                {
                    "name": disk.get("name"),
                    "type": disk_type,
                    "bus": (target or {}).get("bus"),
                    "boot_order": disk.get("bootOrder"),
                    "container_image_name": images.get(disk.get("name")),
                }
            )

        multus_networks = {
            network.get("name"): (network.get("multus") or {}).get("networkName")
            for network in template_spec.get("networks") or []
        }
        interfaces = []
        for interface in devices.get("interfaces") or []:
            nic_type = next(
                (t for t in ("bridge", "masquerade") if t in interface), None
            )
            interfaces.append(
                {
                    "name": interface.get("name"),
                    "model": interface.get("model"),
                    "type": nic_type,
                    "network_name": multus_networks.get(interface.get("name")),
                    "mac_address": interface.get("macAddress"),
                }
            )

        _, message = ready_condition(status)

        states = metadata_states(obj)
        states.update(
            {
                "cpu": (domain.get("cpu") or {}).get("cores"),
                "memory": limits.get("memory")
                or (domain.get("memory") or {}).get("guest"),
                "hostname": template_spec.get("hostname"),
                "run_strategy": spec.get("runStrategy"),
                "machine_type": (domain.get("machine") or {}).get("type"),
                "network_interface": interfaces,
                "disk": disks,
                FIELD_STATE: status.get("printableStatus"),
                FIELD_MESSAGE: message,
            }
        )
        return states
