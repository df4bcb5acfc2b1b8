import pytest

from vmmover.errors import MigrationError
from vmmover.models import (
    DiskDescriptor,
    DiskRole,
    MigrationContext,
    MigrationStage,
    ResourceId,
)


def _context():
    return MigrationContext(
        source=ResourceId("S", "rg1", "vm1"),
        source_vm_id="/subscriptions/S/resourceGroups/rg1/providers/Microsoft.Compute/virtualMachines/vm1",
        target_region="eastus2",
        target_resource_group="rg-target",
        target_vnet="vnet-target",
        target_subnet="subnet-default",
        timestamp="20261016-120000",
    )


def test_stages_advance_one_step_at_a_time():
    context = _context()

    for stage in list(MigrationStage)[1:]:
        context.advance(stage)

    assert context.stage == MigrationStage.COMPLETE


def test_stage_cannot_skip_or_go_back():
    context = _context()
    context.advance(MigrationStage.METADATA_COLLECTED)

    with pytest.raises(MigrationError, match="Invalid stage transition"):
        context.advance(MigrationStage.SNAPSHOTS_CREATED)
    with pytest.raises(MigrationError, match="Invalid stage transition"):
        context.advance(MigrationStage.STARTED)


def test_tags_serialize_as_key_value_pairs():
    context = _context()
    context.tags = {"env": "prod", "cost-center": "42"}

    assert context.serialized_tags() == ["env=prod", "cost-center=42"]


def test_disk_accessors_split_os_and_data():
    context = _context()
    context.disks = [
        DiskDescriptor("/disks/os", "os", "Premium_LRS", DiskRole.OS),
        DiskDescriptor("/disks/d0", "d0", "Standard_LRS", DiskRole.DATA, lun=5, index=0),
    ]

    assert context.os_disk.label == "os"
    assert [disk.label for disk in context.data_disks] == ["data0"]


def test_os_disk_requires_metadata():
    with pytest.raises(MigrationError, match="no OS disk"):
        _context().os_disk
