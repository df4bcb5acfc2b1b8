"""Source VM deallocation and disk snapshots."""

from vmmover.errors import MigrationError
from vmmover.models import DiskDescriptor, MigrationContext, SnapshotDescriptor


class SnapshotService:
    """Deallocates the source VM and snapshots each of its disks."""

    def __init__(self, azure_cli, cleanup, logger, console, snapshot_sku: str = "Standard_LRS"):
        self.azure_cli = azure_cli
        self.cleanup = cleanup
        self.logger = logger
        self.console = console
        self.snapshot_sku = snapshot_sku

    def deallocate_source_vm(self, context: MigrationContext):
        self.console.print(f"[blue]Deallocating source VM {context.vm_name}...[/blue]")
        self.azure_cli.invoke(["vm", "deallocate", "--ids", context.source_vm_id])
        self.console.print("[green]VM deallocated successfully.[/green]")

    @staticmethod
    def snapshot_name(context: MigrationContext, disk: DiskDescriptor) -> str:
        return f"{context.vm_name}-{disk.label}-snapshot-{context.timestamp}"

    def create_snapshots(self, context: MigrationContext):
        """Snapshot the OS disk, then every data disk in original order."""
        context.snapshots = []
        for disk in [context.os_disk] + context.data_disks:
            name = self.snapshot_name(context, disk)
            self.console.print(f"Creating {disk.label} disk snapshot: {name}")
            snapshot_id = self.azure_cli.tsv(
                [
                    "snapshot",
                    "create",
                    "--resource-group",
                    context.source.resource_group,
                    "--name",
                    name,
                    "--source",
                    disk.disk_id,
                    "--location",
                    context.location,
                    "--incremental",
                    "true",
                    "--sku",
                    self.snapshot_sku,
                    "--query",
                    "id",
                ]
            )
            if not snapshot_id:
                raise MigrationError(f"Snapshot '{name}' was created but Azure returned no id.")

            self.cleanup.register("snapshot", snapshot_id)
            context.snapshots.append(
                SnapshotDescriptor(
                    role=disk.role,
                    index=disk.index,
                    source_name=name,
                    source_snapshot_id=snapshot_id,
                )
            )
            self.logger.info("Created snapshot %s", snapshot_id)

        self.console.print(f"[green]Created {len(context.snapshots)} snapshot(s).[/green]")
