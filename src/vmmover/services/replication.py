"""Cross-region snapshot replication."""

from typing import Any, Dict, Optional

from vmmover.errors import MigrationError, PollTimeoutError
from vmmover.errors_catalog import actionable_error
from vmmover.models import DiskRole, MigrationContext, SnapshotDescriptor

FAILED_STATES = ("Failed", "Canceled")


def completion_percent(status: Dict[str, Any]) -> Optional[float]:
    value = status.get("percent")
    if value in (None, ""):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def copy_completed(status: Optional[Dict[str, Any]]) -> bool:
    """Return True once a snapshot copy has finished.

    `completionPercent` is authoritative when Azure reports it; otherwise a
    `Succeeded` provisioning state counts as done.
    """
    if not status:
        return False

    state = status.get("state") or ""
    if state in FAILED_STATES:
        raise MigrationError(
            actionable_error("copy_failed", snapshot=status.get("name") or "<unknown>", state=state)
        )

    percent = completion_percent(status)
    if percent is not None:
        return percent >= 100.0
    return state == "Succeeded"


class ReplicationService:
    """Copies snapshots into the target region and waits for each copy."""

    STATUS_QUERY = "{name:name, id:id, percent:completionPercent, state:provisioningState}"

    def __init__(self, azure_cli, cleanup, logger, console, os_poller, data_poller, snapshot_sku="Standard_LRS"):
        self.azure_cli = azure_cli
        self.cleanup = cleanup
        self.logger = logger
        self.console = console
        self.os_poller = os_poller
        self.data_poller = data_poller
        self.snapshot_sku = snapshot_sku

    def ensure_target_resource_group(self, context: MigrationContext):
        try:
            self.azure_cli.invoke(
                [
                    "group",
                    "create",
                    "--name",
                    context.target_resource_group,
                    "--location",
                    context.target_region,
                ]
            )
        except MigrationError as exc:
            self.logger.warning(
                "Could not create resource group %s, continuing: %s",
                context.target_resource_group,
                exc,
            )

    @staticmethod
    def target_snapshot_name(context: MigrationContext, snapshot: SnapshotDescriptor) -> str:
        return f"{snapshot.source_name}-{context.target_region}"

    def copy_snapshots(self, context: MigrationContext):
        for snapshot in [context.os_snapshot] + context.data_snapshots:
            poller = self.os_poller if snapshot.role == DiskRole.OS else self.data_poller
            self.copy_snapshot(context, snapshot, poller)

    def copy_snapshot(self, context: MigrationContext, snapshot: SnapshotDescriptor, poller):
        snapshot.target_name = self.target_snapshot_name(context, snapshot)
        self.console.print(
            f"Copying snapshot {snapshot.source_name} to {context.target_region} as {snapshot.target_name}..."
        )
        self.azure_cli.invoke(
            [
                "snapshot",
                "create",
                "--resource-group",
                context.target_resource_group,
                "--name",
                snapshot.target_name,
                "--location",
                context.target_region,
                "--source",
                snapshot.source_snapshot_id,
                "--sku",
                self.snapshot_sku,
                "--incremental",
                "true",
                "--copy-start",
                "true",
                "--no-wait",
            ]
        )
        snapshot.copy_status = "Copying"

        try:
            status = poller.wait_until(
                probe=lambda: self._copy_status(context, snapshot),
                is_done=copy_completed,
                description=f"Snapshot copy {snapshot.target_name}",
                on_pending=self._report_progress,
            )
        except PollTimeoutError as exc:
            snapshot.copy_status = "TimedOut"
            self._register_copy(context, snapshot)
            raise PollTimeoutError(
                actionable_error(
                    "copy_timeout",
                    snapshot=snapshot.target_name,
                    timeout=f"{poller.timeout_seconds:.0f}s",
                )
            ) from exc
        except MigrationError:
            snapshot.copy_status = "Failed"
            self._register_copy(context, snapshot)
            raise

        snapshot.copy_status = "Completed"
        snapshot.target_snapshot_id = status.get("id") or ""
        if not snapshot.target_snapshot_id:
            raise MigrationError(f"Copied snapshot '{snapshot.target_name}' has no id.")
        self.cleanup.register("snapshot", snapshot.target_snapshot_id)
        self.console.print(f"[green]Snapshot {snapshot.target_name} copied successfully.[/green]")

    def _copy_status(self, context: MigrationContext, snapshot: SnapshotDescriptor) -> Dict[str, Any]:
        return self.azure_cli.json(
            [
                "snapshot",
                "show",
                "--name",
                snapshot.target_name,
                "--resource-group",
                context.target_resource_group,
                "--query",
                self.STATUS_QUERY,
            ]
        ) or {}

    def _register_copy(self, context: MigrationContext, snapshot: SnapshotDescriptor):
        try:
            status = self._copy_status(context, snapshot)
        except MigrationError as exc:
            self.logger.warning("Could not look up copy %s: %s", snapshot.target_name, exc)
            return
        if status.get("id"):
            snapshot.target_snapshot_id = status["id"]
            self.cleanup.register("snapshot", status["id"])

    def _report_progress(self, status: Dict[str, Any]):
        percent = completion_percent(status or {})
        if percent is not None:
            self.console.print(f"Current completion: {percent}% - waiting...")
        else:
            self.console.print(f"Current state: {(status or {}).get('state') or 'unknown'} - waiting...")
