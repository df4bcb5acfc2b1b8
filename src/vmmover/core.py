import logging
import os
import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from rich.console import Console

from .errors import MigrationError
from .errors_catalog import actionable_error
from .models import MigrationContext, MigrationStage, NetworkContext
from .services.azure_cli import AzureCli
from .services.cleanup import CleanupRegistry
from .services.command_runner import CommandRunner
from .services.identifier import parse_vm_resource_id
from .services.journal import RunJournal
from .services.metadata import MetadataService
from .services.poller import Poller
from .services.replication import ReplicationService
from .services.resource_builder import ResourceBuilderService
from .services.snapshot import SnapshotService
from .services.vm_builder import VmBuilderService

console = Console()
logger = logging.getLogger("vmmover")


class VmMover:
    DEFAULT_OS_POLL_INTERVAL = 10.0
    DEFAULT_DATA_POLL_INTERVAL = 30.0
    DEFAULT_COPY_TIMEOUT_MINUTES = 360

    def __init__(
        self,
        vm_id: str,
        target_region: str,
        target_resource_group: str,
        target_vnet: str,
        target_subnet: str,
        journal_file: Optional[str] = None,
        os_poll_interval_seconds: float = DEFAULT_OS_POLL_INTERVAL,
        data_poll_interval_seconds: float = DEFAULT_DATA_POLL_INTERVAL,
        copy_timeout_minutes: int = DEFAULT_COPY_TIMEOUT_MINUTES,
        command_timeout_seconds: Optional[float] = None,
        retry_count: int = 0,
        retry_backoff_seconds: float = 5.0,
        snapshot_sku: str = "Standard_LRS",
        cleanup_on_failure: bool = False,
        dry_run: bool = False,
    ):
        inputs = {
            "target_region": target_region,
            "target_resource_group": target_resource_group,
            "target_vnet": target_vnet,
            "target_subnet": target_subnet,
        }
        missing = [key for key, value in inputs.items() if not (value or "").strip()]
        if missing:
            raise MigrationError(f"Missing required values: {', '.join(missing)}")
        if os_poll_interval_seconds <= 0 or data_poll_interval_seconds <= 0:
            raise MigrationError("Poll intervals must be greater than zero.")
        if copy_timeout_minutes <= 0:
            raise MigrationError("Copy timeout must be greater than zero.")
        if retry_count < 0:
            raise MigrationError("Retry count cannot be negative.")

        self.cleanup_on_failure = cleanup_on_failure
        self.dry_run = dry_run
        self.run_id = uuid.uuid4().hex[:10]

        source = parse_vm_resource_id(vm_id)
        self.context = MigrationContext(
            source=source,
            source_vm_id=vm_id.strip(),
            target_region=target_region.strip(),
            target_resource_group=target_resource_group.strip(),
            target_vnet=target_vnet.strip(),
            target_subnet=target_subnet.strip(),
            timestamp=datetime.now().strftime("%Y%m%d-%H%M%S"),
        )
        self.network = NetworkContext()

        self.journal_file = journal_file or os.path.join(os.getcwd(), "output", "run-journal.json")
        self.journal = RunJournal(journal_file=self.journal_file, logger=logger)
        self.current_step_name: Optional[str] = None

        self.command_runner = CommandRunner(
            logger=logger,
            default_timeout=command_timeout_seconds,
            retry_count=retry_count,
            retry_backoff_seconds=retry_backoff_seconds,
        )
        self.azure_cli = AzureCli(command_runner=self.command_runner, logger=logger)
        self.cleanup = CleanupRegistry(
            azure_cli=self.azure_cli,
            logger=logger,
            console=console,
            journal=self.journal,
        )
        copy_timeout_seconds = copy_timeout_minutes * 60
        self.metadata_service = MetadataService(azure_cli=self.azure_cli, logger=logger, console=console)
        self.snapshot_service = SnapshotService(
            azure_cli=self.azure_cli,
            cleanup=self.cleanup,
            logger=logger,
            console=console,
            snapshot_sku=snapshot_sku,
        )
        self.replication_service = ReplicationService(
            azure_cli=self.azure_cli,
            cleanup=self.cleanup,
            logger=logger,
            console=console,
            os_poller=Poller(logger, os_poll_interval_seconds, copy_timeout_seconds),
            data_poller=Poller(logger, data_poll_interval_seconds, copy_timeout_seconds),
            snapshot_sku=snapshot_sku,
        )
        self.resource_builder = ResourceBuilderService(
            azure_cli=self.azure_cli,
            cleanup=self.cleanup,
            logger=logger,
            console=console,
        )
        self.vm_builder = VmBuilderService(
            azure_cli=self.azure_cli,
            cleanup=self.cleanup,
            logger=logger,
            console=console,
        )

    def _build_journal_inputs(self) -> Dict[str, Any]:
        return {
            "source_vm_id": self.context.source_vm_id,
            "subscription": self.context.source.subscription,
            "source_resource_group": self.context.source.resource_group,
            "vm_name": self.context.vm_name,
            "target_region": self.context.target_region,
            "target_resource_group": self.context.target_resource_group,
            "target_vnet": self.context.target_vnet,
            "target_subnet": self.context.target_subnet,
            "cleanup_on_failure": self.cleanup_on_failure,
            "dry_run": self.dry_run,
        }

    def _run_step(self, name: str, callback, *args, stage: Optional[MigrationStage] = None):
        self.journal.step_started(name)
        self.current_step_name = name

        try:
            result = callback(*args)
            if stage is not None:
                self.context.advance(stage)
        except BaseException as exc:
            self.journal.step_finished(name, "failed", error=str(exc) or type(exc).__name__)
            raise

        if stage is not None:
            self.journal.set_stage(stage.value)
        self.journal.step_finished(name, "success")
        self.current_step_name = None
        return result

    def _section(self, title: str):
        console.print(f"\n[bold]=== {title} ===[/bold]")
        logger.info(title)

    def validate_azure_cli(self):
        console.print("[blue]Validating Azure CLI...[/blue]")
        version_line = self.azure_cli.version()
        console.print(f"[green]Azure CLI is available.[/green] {version_line}")

    def select_subscription(self):
        source = self.context.source
        console.print(f"Subscription: {source.subscription}")
        console.print(f"Resource Group: {source.resource_group}")
        console.print(f"VM Name: {source.name}")
        self.azure_cli.invoke(["account", "set", "--subscription", source.subscription])

    def collect_metadata(self):
        self.metadata_service.collect(self.context, self.network)

    def deallocate_source_vm(self):
        self.snapshot_service.deallocate_source_vm(self.context)

    def create_snapshots(self):
        self.snapshot_service.create_snapshots(self.context)

    def ensure_target_resource_group(self):
        self.replication_service.ensure_target_resource_group(self.context)

    def copy_snapshots(self):
        self.replication_service.copy_snapshots(self.context)

    def create_target_disks(self):
        self.resource_builder.create_disks(self.context)

    def build_network(self):
        self.resource_builder.build_network(self.context, self.network)

    def create_target_vm(self):
        self.vm_builder.create_vm(self.context, self.network)

    def attach_data_disks(self):
        self.vm_builder.attach_data_disks(self.context)

    def print_plan(self):
        context = self.context
        self._section("Migration Plan (dry run)")
        console.print(f"Deallocate: {context.source_vm_id}")
        for disk in [context.os_disk] + context.data_disks:
            snapshot_name = self.snapshot_service.snapshot_name(context, disk)
            target_disk = self.resource_builder.target_disk_name(context, disk)
            lun = f", LUN {disk.lun}" if disk.lun is not None else ""
            console.print(
                f"Disk {disk.name} ({disk.sku}{lun}) -> snapshot {snapshot_name} "
                f"-> {context.target_region}/{target_disk}"
            )
        if self.network.source_nsg_id:
            console.print(f"Create empty NSG: {context.vm_name}-nsg (rules are not copied)")
        if self.network.source_public_ip_id:
            console.print(f"Create static Standard public IP: {context.vm_name}-pip")
        console.print(
            f"Create NIC {context.vm_name}-nic on {context.target_vnet}/{context.target_subnet}"
        )
        console.print(
            f"Create VM {context.vm_name} ({context.vm_size}, {context.os_type}) "
            f"in {context.target_resource_group}/{context.target_region}"
        )

    def print_summary(self):
        context = self.context
        self._section("Migration Complete")
        console.print(f"Source VM: {context.vm_name} ({context.location})")
        console.print(f"Target VM: {context.vm_name} ({context.target_region})")
        console.print(f"Target Resource Group: {context.target_resource_group}")
        console.print("")
        console.print("Next steps:")
        console.print(
            "1. Start the target VM: az vm start --resource-group "
            f"{context.target_resource_group} --name {context.vm_name}"
        )
        console.print("2. Verify the VM is working correctly")
        console.print("3. Update DNS records if necessary")
        console.print("4. Consider deleting source VM and snapshots after verification")
        console.print("")
        console.print("Source snapshots created:")
        for snapshot in context.snapshots:
            console.print(f"  - {snapshot.source_name}")

    def _handle_failure(self):
        if not self.cleanup.resources:
            return

        if self.cleanup_on_failure:
            self.cleanup.rollback()
            return

        message = actionable_error(
            "partial_migration",
            step=self.current_step_name or "unknown",
            stage=self.context.stage.value,
            journal=self.journal_file,
        )
        console.print(f"[yellow]{message}[/yellow]")
        logger.warning(message)

    def run(self) -> int:
        exit_code = 1
        journal_status = "failed"
        journal_error: Optional[str] = None

        try:
            logger.info("Starting vmmover...")
            self.journal.start_run(run_id=self.run_id, inputs=self._build_journal_inputs())
            self.journal.set_stage(self.context.stage.value)

            self._section("Starting VM Migration")
            console.print(f"Source VM URI: {self.context.source_vm_id}")
            console.print(f"Target Region: {self.context.target_region}")
            console.print(f"Target Resource Group: {self.context.target_resource_group}")
            console.print(f"Target VNet: {self.context.target_vnet}")
            console.print(f"Target Subnet: {self.context.target_subnet}")

            self._run_step("validate_azure_cli", self.validate_azure_cli)
            self._run_step("select_subscription", self.select_subscription)

            self._section("Step 1: Retrieving VM Metadata")
            self._run_step("collect_metadata", self.collect_metadata, stage=MigrationStage.METADATA_COLLECTED)

            if self.dry_run:
                self.print_plan()
                journal_status = "dry_run"
                exit_code = 0
                return exit_code

            self._section("Step 2: Deallocating Source VM")
            self._run_step(
                "deallocate_source_vm",
                self.deallocate_source_vm,
                stage=MigrationStage.SOURCE_DEALLOCATED,
            )

            self._section("Step 3: Creating Disk Snapshots")
            self._run_step("create_snapshots", self.create_snapshots, stage=MigrationStage.SNAPSHOTS_CREATED)

            self._section("Step 4: Copying Snapshots to Target Region")
            self._run_step("ensure_target_resource_group", self.ensure_target_resource_group)
            self._run_step("copy_snapshots", self.copy_snapshots, stage=MigrationStage.SNAPSHOTS_COPIED)

            self._section("Step 5: Creating Managed Disks in Target Region")
            self._run_step("create_target_disks", self.create_target_disks, stage=MigrationStage.DISKS_CREATED)

            self._section("Step 6: Creating Network Resources")
            self._run_step("build_network", self.build_network, stage=MigrationStage.NETWORK_BUILT)

            self._section("Step 7: Creating VM in Target Region")
            self._run_step("create_target_vm", self.create_target_vm, stage=MigrationStage.VM_CREATED)

            if self.context.data_disks:
                self._section("Step 8: Attaching Data Disks")
            self._run_step("attach_data_disks", self.attach_data_disks, stage=MigrationStage.DISKS_ATTACHED)

            self.context.advance(MigrationStage.COMPLETE)
            self.journal.set_stage(self.context.stage.value)
            self.print_summary()
            journal_status = "success"
            exit_code = 0
            return exit_code

        except KeyboardInterrupt:
            console.print("[bold red]Operation cancelled by user.[/bold red]")
            logger.info("Operation cancelled by user")
            journal_status = "aborted"
            journal_error = "Operation cancelled by user."
            self._handle_failure()
            return exit_code
        except MigrationError as exc:
            console.print(f"[bold red]Error:[/bold red] {exc}")
            logger.error(str(exc))
            journal_error = str(exc)
            self._handle_failure()
            return exit_code
        except Exception as exc:
            console.print(f"[bold red]Unexpected error:[/bold red] {exc}")
            logger.exception("Unexpected error")
            journal_error = str(exc)
            self._handle_failure()
            return exit_code
        finally:
            self.journal.finalize(journal_status, error=journal_error)
