"""Registry of resources created by a run, for reporting and optional cleanup."""

from dataclasses import dataclass
from typing import List

from vmmover.errors import MigrationError

_DELETE_COMMANDS = {
    "snapshot": ["snapshot", "delete"],
    "disk": ["disk", "delete", "--yes"],
    "network-security-group": ["network", "nsg", "delete"],
    "public-ip": ["network", "public-ip", "delete"],
    "network-interface": ["network", "nic", "delete"],
    "virtual-machine": ["vm", "delete", "--yes"],
}


@dataclass(frozen=True)
class CreatedResource:
    kind: str
    resource_id: str


class CleanupRegistry:
    """Tracks created resources and deletes them in reverse order on request."""

    def __init__(self, azure_cli, logger, console, journal=None):
        self.azure_cli = azure_cli
        self.logger = logger
        self.console = console
        self.journal = journal
        self.resources: List[CreatedResource] = []

    def register(self, kind: str, resource_id: str):
        if kind not in _DELETE_COMMANDS:
            raise KeyError(f"Unknown resource kind: {kind}")
        if not resource_id:
            return

        self.resources.append(CreatedResource(kind=kind, resource_id=resource_id))
        self.logger.debug("Registered %s for cleanup: %s", kind, resource_id)
        if self.journal is not None:
            self.journal.add_resource(kind, resource_id)

    def rollback(self) -> List[CreatedResource]:
        """Delete every registered resource, newest first.

        Returns the resources that could not be deleted.
        """
        if not self.resources:
            return []

        self.console.print("[yellow]Removing resources created by this run...[/yellow]")
        failed: List[CreatedResource] = []
        for resource in reversed(self.resources):
            self.logger.info("Deleting %s %s", resource.kind, resource.resource_id)
            try:
                self.azure_cli.invoke(_DELETE_COMMANDS[resource.kind] + ["--ids", resource.resource_id])
            except MigrationError as exc:
                self.logger.warning("Could not delete %s: %s", resource.resource_id, exc)
                failed.append(resource)

        self.resources = list(reversed(failed))
        if failed:
            self.console.print(
                f"[yellow]{len(failed)} resource(s) could not be deleted and need manual cleanup.[/yellow]"
            )
        else:
            self.console.print("[green]Cleanup finished.[/green]")
        return failed
