"""Shared domain models for vmmover."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from vmmover.errors import MigrationError


@dataclass(frozen=True)
class ResourceId:
    """Subscription, resource group and name parsed from an ARM resource id."""

    subscription: str
    resource_group: str
    name: str


class DiskRole(str, Enum):
    OS = "os"
    DATA = "data"


class MigrationStage(str, Enum):
    STARTED = "Started"
    METADATA_COLLECTED = "MetadataCollected"
    SOURCE_DEALLOCATED = "SourceDeallocated"
    SNAPSHOTS_CREATED = "SnapshotsCreated"
    SNAPSHOTS_COPIED = "SnapshotsCopied"
    DISKS_CREATED = "DisksCreated"
    NETWORK_BUILT = "NetworkBuilt"
    VM_CREATED = "VmCreated"
    DISKS_ATTACHED = "DisksAttached"
    COMPLETE = "Complete"


STAGE_ORDER: List[MigrationStage] = list(MigrationStage)


@dataclass
class DiskDescriptor:
    """A source disk and, once rebuilt, its counterpart in the target region."""

    disk_id: str
    name: str
    sku: str
    role: DiskRole
    lun: Optional[int] = None
    index: Optional[int] = None
    target_disk_id: Optional[str] = None

    @property
    def label(self) -> str:
        if self.role == DiskRole.OS:
            return "os"
        return f"data{self.index}"


@dataclass
class SnapshotDescriptor:
    """A source snapshot and its copy in the target region."""

    role: DiskRole
    source_name: str
    source_snapshot_id: str
    index: Optional[int] = None
    target_name: Optional[str] = None
    target_snapshot_id: Optional[str] = None
    copy_status: str = "NotStarted"


@dataclass
class NetworkContext:
    """Network identifiers for the source VM and the rebuilt target NIC."""

    source_nic_id: str = ""
    source_nsg_id: str = ""
    source_public_ip_id: str = ""
    target_subnet_id: str = ""
    target_nsg_id: str = ""
    target_public_ip_id: str = ""
    target_nic_id: str = ""


@dataclass
class MigrationContext:
    """State accumulated while a single VM moves between regions.

    Each field is written by exactly one stage and read by the ones after it.
    """

    source: ResourceId
    source_vm_id: str
    target_region: str
    target_resource_group: str
    target_vnet: str
    target_subnet: str
    timestamp: str
    vm_size: str = ""
    location: str = ""
    os_type: str = ""
    zone: str = ""
    tags: Dict[str, str] = field(default_factory=dict)
    accelerated_networking: bool = False
    disks: List[DiskDescriptor] = field(default_factory=list)
    snapshots: List[SnapshotDescriptor] = field(default_factory=list)
    target_vm_id: Optional[str] = None
    stage: MigrationStage = MigrationStage.STARTED

    @property
    def vm_name(self) -> str:
        return self.source.name

    @property
    def os_disk(self) -> DiskDescriptor:
        for disk in self.disks:
            if disk.role == DiskRole.OS:
                return disk
        raise MigrationError("Migration context has no OS disk. Collect metadata first.")

    @property
    def data_disks(self) -> List[DiskDescriptor]:
        return [disk for disk in self.disks if disk.role == DiskRole.DATA]

    @property
    def os_snapshot(self) -> SnapshotDescriptor:
        for snapshot in self.snapshots:
            if snapshot.role == DiskRole.OS:
                return snapshot
        raise MigrationError("Migration context has no OS snapshot. Create snapshots first.")

    @property
    def data_snapshots(self) -> List[SnapshotDescriptor]:
        return [snapshot for snapshot in self.snapshots if snapshot.role == DiskRole.DATA]

    def serialized_tags(self) -> List[str]:
        return [f"{key}={value}" for key, value in self.tags.items()]

    def advance(self, stage: MigrationStage):
        current_index = STAGE_ORDER.index(self.stage)
        if STAGE_ORDER.index(stage) != current_index + 1:
            raise MigrationError(
                f"Invalid stage transition: {self.stage.value} -> {stage.value}."
            )
        self.stage = stage
