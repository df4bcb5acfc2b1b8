"""Source VM metadata collection."""

from typing import Any, Dict, List, Optional

from vmmover.errors import MigrationError, ResourceNotFound
from vmmover.errors_catalog import actionable_error
from vmmover.models import DiskDescriptor, DiskRole, MigrationContext, NetworkContext
from vmmover.services.identifier import resource_name


class MetadataService:
    """Reads the source VM, its disks and its primary NIC into the migration context."""

    def __init__(self, azure_cli, logger, console):
        self.azure_cli = azure_cli
        self.logger = logger
        self.console = console

    def collect(self, context: MigrationContext, network: NetworkContext):
        self.console.print("[blue]Retrieving VM metadata...[/blue]")
        vm = self.azure_cli.json(["vm", "show", "--ids", context.source_vm_id])
        if not vm:
            raise ResourceNotFound(
                actionable_error("resource_not_found", kind="Virtual machine", resource=context.source_vm_id)
            )

        storage = vm.get("storageProfile") or {}
        os_disk = storage.get("osDisk") or {}
        os_disk_id = self._managed_disk_id(os_disk, "OS disk")

        context.vm_size = (vm.get("hardwareProfile") or {}).get("vmSize") or ""
        context.location = vm.get("location") or ""
        context.os_type = os_disk.get("osType") or ""
        context.zone = (vm.get("zones") or [""])[0] or ""
        context.tags = {str(key): str(value) for key, value in (vm.get("tags") or {}).items()}

        context.disks = [
            DiskDescriptor(
                disk_id=os_disk_id,
                name=os_disk.get("name") or resource_name(os_disk_id),
                sku=self.get_disk_sku(os_disk_id),
                role=DiskRole.OS,
            )
        ]
        for index, data_disk in enumerate(storage.get("dataDisks") or []):
            disk_id = self._managed_disk_id(data_disk, f"Data disk {index}")
            context.disks.append(
                DiskDescriptor(
                    disk_id=disk_id,
                    name=data_disk.get("name") or resource_name(disk_id),
                    sku=self.get_disk_sku(disk_id),
                    role=DiskRole.DATA,
                    lun=int(data_disk.get("lun", index)),
                    index=index,
                )
            )

        network.source_nic_id = self._primary_nic_id(vm, context.source_vm_id)
        nic = self.azure_cli.json(["network", "nic", "show", "--ids", network.source_nic_id])
        if not nic:
            raise ResourceNotFound(
                actionable_error("resource_not_found", kind="Network interface", resource=network.source_nic_id)
            )

        context.accelerated_networking = bool(nic.get("enableAcceleratedNetworking") or False)
        network.source_nsg_id = (nic.get("networkSecurityGroup") or {}).get("id") or ""
        ip_configurations: List[Dict[str, Any]] = nic.get("ipConfigurations") or [{}]
        network.source_public_ip_id = (ip_configurations[0].get("publicIPAddress") or {}).get("id") or ""

        self._report(context, network)

    def get_disk_sku(self, disk_id: str) -> str:
        sku = self.azure_cli.tsv(["disk", "show", "--ids", disk_id, "--query", "sku.name"])
        if not sku:
            raise ResourceNotFound(actionable_error("resource_not_found", kind="Managed disk", resource=disk_id))
        return sku

    @staticmethod
    def _managed_disk_id(disk: Dict[str, Any], label: str) -> str:
        disk_id: Optional[str] = (disk.get("managedDisk") or {}).get("id")
        if not disk_id:
            raise MigrationError(
                f"{label} '{disk.get('name') or '<unnamed>'}' is not a managed disk and cannot be snapshotted."
            )
        return disk_id

    @staticmethod
    def _primary_nic_id(vm: Dict[str, Any], vm_id: str) -> str:
        interfaces = (vm.get("networkProfile") or {}).get("networkInterfaces") or []
        if not interfaces:
            raise ResourceNotFound(
                actionable_error("resource_not_found", kind="Network interface for VM", resource=vm_id)
            )
        for interface in interfaces:
            if interface.get("primary"):
                return interface["id"]
        return interfaces[0]["id"]

    def _report(self, context: MigrationContext, network: NetworkContext):
        lines = [
            ("VM Size", context.vm_size),
            ("Source Location", context.location),
            ("OS Disk", context.os_disk.name),
            ("OS Type", context.os_type),
            ("Data Disks", str(len(context.data_disks))),
            ("Availability Zone", context.zone or "none"),
            ("Accelerated Networking", str(context.accelerated_networking).lower()),
            ("Network Security Group", network.source_nsg_id or "none"),
            ("Public IP", network.source_public_ip_id or "none"),
        ]
        for label, value in lines:
            self.console.print(f"{label}: {value}")
            self.logger.debug("%s: %s", label, value)
