"""Target VM creation and data disk attachment."""

from typing import List

from vmmover.errors import MigrationError
from vmmover.models import MigrationContext, NetworkContext


class VmBuilderService:
    """Recreates the VM around the rebuilt OS disk and NIC."""

    def __init__(self, azure_cli, cleanup, logger, console):
        self.azure_cli = azure_cli
        self.cleanup = cleanup
        self.logger = logger
        self.console = console

    def create_vm(self, context: MigrationContext, network: NetworkContext):
        self.console.print(f"[blue]Creating VM {context.vm_name} in {context.target_region}...[/blue]")
        args: List[str] = [
            "vm",
            "create",
            "--resource-group",
            context.target_resource_group,
            "--name",
            context.vm_name,
            "--location",
            context.target_region,
            "--size",
            context.vm_size,
            "--attach-os-disk",
            context.os_disk.target_disk_id,
            "--os-type",
            context.os_type,
            "--nics",
            network.target_nic_id,
        ]
        if context.zone:
            args += ["--zone", context.zone]
        tags = context.serialized_tags()
        if tags:
            args += ["--tags"] + tags

        created = self.azure_cli.json(args) or {}
        context.target_vm_id = created.get("id") or ""
        if not context.target_vm_id:
            raise MigrationError(f"Azure returned no id for VM '{context.vm_name}'.")
        self.cleanup.register("virtual-machine", context.target_vm_id)
        self.console.print("[green]VM created successfully.[/green]")

    def attach_data_disks(self, context: MigrationContext):
        """Attach data disks at their original LUNs, in original order."""
        data_disks = context.data_disks
        if not data_disks:
            return

        for disk in data_disks:
            if not disk.target_disk_id:
                raise MigrationError(f"Data disk {disk.index} ({disk.name}) was not rebuilt in the target region.")
            self.console.print(f"Attaching disk {disk.target_disk_id} with LUN {disk.lun}")
            self.azure_cli.invoke(
                [
                    "vm",
                    "disk",
                    "attach",
                    "--resource-group",
                    context.target_resource_group,
                    "--vm-name",
                    context.vm_name,
                    "--name",
                    disk.target_disk_id,
                    "--lun",
                    str(disk.lun),
                ]
            )

        self.console.print("[green]All data disks attached.[/green]")
