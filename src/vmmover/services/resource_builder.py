"""Target region managed disks and network resources."""

from typing import List

from vmmover.errors import MigrationError, ResourceNotFound
from vmmover.errors_catalog import actionable_error
from vmmover.models import DiskDescriptor, MigrationContext, NetworkContext


class ResourceBuilderService:
    """Creates disks, NSG shell, public IP and NIC in the target resource group."""

    PUBLIC_IP_SKU = "Standard"
    PUBLIC_IP_ALLOCATION = "Static"

    def __init__(self, azure_cli, cleanup, logger, console):
        self.azure_cli = azure_cli
        self.cleanup = cleanup
        self.logger = logger
        self.console = console

    @staticmethod
    def target_disk_name(context: MigrationContext, disk: DiskDescriptor) -> str:
        if disk.index is None:
            return f"{context.vm_name}-os-disk"
        return f"{context.vm_name}-data-disk-{disk.index}"

    def create_disks(self, context: MigrationContext):
        self._create_disk(context, context.os_disk, context.os_snapshot.target_snapshot_id)

        copies = {snapshot.index: snapshot for snapshot in context.data_snapshots}
        for disk in context.data_disks:
            snapshot = copies.get(disk.index)
            if snapshot is None or not snapshot.target_snapshot_id:
                raise MigrationError(f"No copied snapshot found for data disk {disk.index} ({disk.name}).")
            self._create_disk(context, disk, snapshot.target_snapshot_id)

    def _create_disk(self, context: MigrationContext, disk: DiskDescriptor, snapshot_id: str):
        name = self.target_disk_name(context, disk)
        self.console.print(f"Creating {disk.label} disk: {name} ({disk.sku})")
        disk.target_disk_id = self._create(
            "disk",
            [
                "disk",
                "create",
                "--resource-group",
                context.target_resource_group,
                "--name",
                name,
                "--location",
                context.target_region,
                "--source",
                snapshot_id,
                "--sku",
                disk.sku,
            ],
        )

    def resolve_subnet(self, context: MigrationContext, network: NetworkContext):
        subnet_id = self.azure_cli.tsv(
            [
                "network",
                "vnet",
                "subnet",
                "show",
                "--resource-group",
                context.target_resource_group,
                "--vnet-name",
                context.target_vnet,
                "--name",
                context.target_subnet,
                "--query",
                "id",
            ]
        )
        if not subnet_id:
            raise ResourceNotFound(
                actionable_error(
                    "subnet_not_found",
                    subnet=context.target_subnet,
                    vnet=context.target_vnet,
                    resource_group=context.target_resource_group,
                )
            )
        network.target_subnet_id = subnet_id

    def build_network(self, context: MigrationContext, network: NetworkContext):
        self.resolve_subnet(context, network)

        if network.source_nsg_id:
            name = f"{context.vm_name}-nsg"
            self.console.print(f"Creating NSG: {name}")
            network.target_nsg_id = self._create(
                "network-security-group",
                [
                    "network",
                    "nsg",
                    "create",
                    "--resource-group",
                    context.target_resource_group,
                    "--name",
                    name,
                    "--location",
                    context.target_region,
                ],
            )
            self.console.print(
                "[yellow]Note: NSG rules are not copied. Recreate the rules of "
                f"{network.source_nsg_id} manually.[/yellow]"
            )

        if network.source_public_ip_id:
            name = f"{context.vm_name}-pip"
            self.console.print(f"Creating public IP: {name}")
            network.target_public_ip_id = self._create(
                "public-ip",
                [
                    "network",
                    "public-ip",
                    "create",
                    "--resource-group",
                    context.target_resource_group,
                    "--name",
                    name,
                    "--location",
                    context.target_region,
                    "--sku",
                    self.PUBLIC_IP_SKU,
                    "--allocation-method",
                    self.PUBLIC_IP_ALLOCATION,
                ],
            )

        name = f"{context.vm_name}-nic"
        self.console.print(f"Creating network interface: {name}")
        nic_args: List[str] = [
            "network",
            "nic",
            "create",
            "--resource-group",
            context.target_resource_group,
            "--name",
            name,
            "--location",
            context.target_region,
            "--subnet",
            network.target_subnet_id,
            "--accelerated-networking",
            "true" if context.accelerated_networking else "false",
        ]
        if network.target_nsg_id:
            nic_args += ["--network-security-group", network.target_nsg_id]
        if network.target_public_ip_id:
            nic_args += ["--public-ip-address", network.target_public_ip_id]
        network.target_nic_id = self._create("network-interface", nic_args)

    def _create(self, kind: str, args: List[str]) -> str:
        created = self.azure_cli.json(args) or {}
        # nic/nsg/public-ip create wrap the resource in a top-level key
        for key in ("NewNIC", "NewNSG", "publicIp"):
            if isinstance(created.get(key), dict):
                created = created[key]
                break

        resource_id = created.get("id") or ""
        if not resource_id:
            raise MigrationError(f"Azure returned no id for the new {kind}.")
        self.cleanup.register(kind, resource_id)
        self.logger.info("Created %s %s", kind, resource_id)
        return resource_id
