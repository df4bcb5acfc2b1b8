import json
import logging

import pytest

import vmmover.core as core_module
from vmmover.core import VmMover
from vmmover.errors import MalformedIdentifier, MigrationError
from vmmover.models import MigrationStage

VM_ID = "/subscriptions/S/resourceGroups/rg1/providers/Microsoft.Compute/virtualMachines/vm1"
TARGET_RG_PREFIX = "/subscriptions/S/resourceGroups/rg-target/providers"


def _arg(args, flag):
    return args[args.index(flag) + 1]


def azure_world(data_disks=2, nsg=True, public_ip=True, zone="1", group_create_error=None, percent=100.0):
    """Build a handler that answers az calls for a single VM named vm1."""
    disk_skus = {"/disks/vm1-os": "Premium_LRS"}
    data_entries = []
    for index in range(data_disks):
        disk_id = f"/subscriptions/S/resourceGroups/rg1/providers/Microsoft.Compute/disks/vm1-data{index}"
        disk_skus[f"/disks/vm1-data{index}"] = "StandardSSD_LRS" if index % 2 else "Premium_LRS"
        data_entries.append({"lun": index + 3, "name": f"vm1-data{index}", "managedDisk": {"id": disk_id}})

    vm = {
        "location": "westeurope",
        "hardwareProfile": {"vmSize": "Standard_D4s_v5"},
        "storageProfile": {
            "osDisk": {
                "name": "vm1-os",
                "osType": "Linux",
                "managedDisk": {"id": "/subscriptions/S/resourceGroups/rg1/providers/Microsoft.Compute/disks/vm1-os"},
            },
            "dataDisks": data_entries,
        },
        "networkProfile": {"networkInterfaces": [{"id": "/subscriptions/S/nic/vm1-nic", "primary": True}]},
        "zones": [zone] if zone else None,
        "tags": {"env": "prod", "owner": "ops"},
    }
    nic = {
        "enableAcceleratedNetworking": True,
        "networkSecurityGroup": {"id": "/subscriptions/S/nsg/vm1-nsg"} if nsg else None,
        "ipConfigurations": [
            {"publicIPAddress": {"id": "/subscriptions/S/pip/vm1-pip"} if public_ip else None}
        ],
    }

    def handler(args):
        head = tuple(args[:3])
        if head[:2] == ("vm", "show"):
            return vm
        if head[:2] == ("disk", "show"):
            disk_id = _arg(args, "--ids")
            return next(sku for suffix, sku in disk_skus.items() if disk_id.endswith(suffix))
        if head == ("network", "nic", "show"):
            return nic
        if head[:2] == ("snapshot", "create"):
            if "--copy-start" in args:
                return None
            return f"/subscriptions/S/resourceGroups/rg1/providers/Microsoft.Compute/snapshots/{_arg(args, '--name')}"
        if head[:2] == ("group", "create") and group_create_error is not None:
            raise group_create_error
        if head[:2] == ("snapshot", "show"):
            name = _arg(args, "--name")
            return {
                "name": name,
                "id": f"{TARGET_RG_PREFIX}/Microsoft.Compute/snapshots/{name}",
                "percent": percent,
                "state": "Succeeded",
            }
        if head[:2] == ("disk", "create"):
            return {"id": f"{TARGET_RG_PREFIX}/Microsoft.Compute/disks/{_arg(args, '--name')}"}
        if head == ("network", "vnet", "subnet"):
            return f"{TARGET_RG_PREFIX}/Microsoft.Network/virtualNetworks/vnet-target/subnets/{_arg(args, '--name')}"
        if head == ("network", "nsg", "create"):
            return {"NewNSG": {"id": f"{TARGET_RG_PREFIX}/nsg/{_arg(args, '--name')}"}}
        if head == ("network", "public-ip", "create"):
            return {"publicIp": {"id": f"{TARGET_RG_PREFIX}/pip/{_arg(args, '--name')}"}}
        if head == ("network", "nic", "create"):
            return {"NewNIC": {"id": f"{TARGET_RG_PREFIX}/nic/{_arg(args, '--name')}"}}
        if head[:2] == ("vm", "create"):
            return {"id": f"{TARGET_RG_PREFIX}/Microsoft.Compute/virtualMachines/{_arg(args, '--name')}"}
        return None

    return handler


@pytest.fixture
def build_mover(tmp_path, monkeypatch, make_fake_cli, fake_time):
    def _build(handler, **kwargs):
        fake_cli = make_fake_cli(handler)
        monkeypatch.setattr(core_module, "AzureCli", lambda command_runner, logger: fake_cli)
        kwargs.setdefault("journal_file", str(tmp_path / "journal.json"))
        mover = VmMover(
            vm_id=VM_ID,
            target_region="eastus2",
            target_resource_group="rg-target",
            target_vnet="vnet-target",
            target_subnet="subnet-default",
            **kwargs,
        )
        return mover, fake_cli

    return _build


def test_constructor_rejects_malformed_identifier(tmp_path):
    with pytest.raises(MalformedIdentifier):
        VmMover(
            vm_id="/subscriptions/S/virtualMachines/vm1",
            target_region="eastus2",
            target_resource_group="rg-target",
            target_vnet="vnet-target",
            target_subnet="subnet-default",
            journal_file=str(tmp_path / "journal.json"),
        )


def test_constructor_rejects_blank_target_values(tmp_path):
    with pytest.raises(MigrationError, match="target_vnet"):
        VmMover(
            vm_id=VM_ID,
            target_region="eastus2",
            target_resource_group="rg-target",
            target_vnet=" ",
            target_subnet="subnet-default",
            journal_file=str(tmp_path / "journal.json"),
        )


def test_end_to_end_migration_rebuilds_vm_in_target(build_mover):
    mover, fake_cli = build_mover(azure_world(data_disks=2))

    assert mover.run() == 0

    context = mover.context
    assert context.source.subscription == "S"
    assert context.source.resource_group == "rg1"
    assert context.source.name == "vm1"
    assert context.stage == MigrationStage.COMPLETE

    vm_create = fake_cli.calls_starting_with("vm", "create")[0]
    assert _arg(vm_create, "--name") == "vm1"
    assert _arg(vm_create, "--resource-group") == "rg-target"
    assert _arg(vm_create, "--location") == "eastus2"
    assert _arg(vm_create, "--size") == "Standard_D4s_v5"
    assert _arg(vm_create, "--zone") == "1"
    assert vm_create[vm_create.index("--tags") + 1 :] == ["env=prod", "owner=ops"]
    assert _arg(vm_create, "--attach-os-disk").endswith("/disks/vm1-os-disk")

    nic_create = fake_cli.calls_starting_with("network", "nic", "create")[0]
    assert _arg(nic_create, "--subnet").endswith("/subnets/subnet-default")
    assert _arg(nic_create, "--accelerated-networking") == "true"
    assert _arg(nic_create, "--network-security-group").endswith("/nsg/vm1-nsg")
    assert _arg(nic_create, "--public-ip-address").endswith("/pip/vm1-pip")

    disk_creates = fake_cli.calls_starting_with("disk", "create")
    assert [_arg(call, "--sku") for call in disk_creates] == ["Premium_LRS", "Premium_LRS", "StandardSSD_LRS"]
    assert len(disk_creates) == len(context.disks) == 3


def test_data_disks_are_attached_after_vm_creation_at_original_luns(build_mover):
    mover, fake_cli = build_mover(azure_world(data_disks=3))

    assert mover.run() == 0

    vm_create_index = next(i for i, call in enumerate(fake_cli.calls) if call[:2] == ["vm", "create"])
    attach_indexes = [i for i, call in enumerate(fake_cli.calls) if call[:3] == ["vm", "disk", "attach"]]
    assert attach_indexes and all(index > vm_create_index for index in attach_indexes)

    attaches = fake_cli.calls_starting_with("vm", "disk", "attach")
    assert [_arg(call, "--lun") for call in attaches] == ["3", "4", "5"]
    assert [_arg(call, "--name").rsplit("/", 1)[-1] for call in attaches] == [
        "vm1-data-disk-0",
        "vm1-data-disk-1",
        "vm1-data-disk-2",
    ]


def test_zero_data_disks_skip_all_data_stages(build_mover):
    mover, fake_cli = build_mover(azure_world(data_disks=0, nsg=False, public_ip=False, zone=None))

    assert mover.run() == 0

    assert len(fake_cli.calls_starting_with("snapshot", "create")) == 2
    assert len(fake_cli.calls_starting_with("disk", "create")) == 1
    assert fake_cli.calls_starting_with("vm", "disk", "attach") == []
    assert fake_cli.calls_starting_with("network", "nsg", "create") == []
    assert fake_cli.calls_starting_with("network", "public-ip", "create") == []

    vm_create = fake_cli.calls_starting_with("vm", "create")[0]
    assert "--zone" not in vm_create
    assert mover.context.stage == MigrationStage.COMPLETE


def test_existing_target_resource_group_does_not_stop_migration(build_mover):
    error = MigrationError("Command failed (1): az group create\nResource group already exists")
    mover, fake_cli = build_mover(azure_world(data_disks=1, group_create_error=error))

    assert mover.run() == 0
    assert fake_cli.calls_starting_with("vm", "create")


def test_copy_that_never_reaches_100_times_out_and_halts(build_mover, tmp_path):
    mover, fake_cli = build_mover(azure_world(data_disks=1, percent=99.99), copy_timeout_minutes=1)

    assert mover.run() == 1

    assert fake_cli.calls_starting_with("disk", "create") == []
    assert mover.context.stage == MigrationStage.SNAPSHOTS_CREATED
    journal = json.loads((tmp_path / "journal.json").read_text(encoding="utf-8"))
    assert journal["status"] == "failed"
    assert "did not finish" in journal["error"]
    assert journal["steps"][-1]["name"] == "copy_snapshots"
    assert journal["steps"][-1]["status"] == "failed"


def test_failure_leaves_resources_without_cleanup_by_default(build_mover):
    handler = azure_world(data_disks=1)

    def failing_handler(args):
        if args[:2] == ["vm", "create"]:
            raise MigrationError("Command failed (1): az vm create\nQuotaExceeded")
        return handler(args)

    mover, fake_cli = build_mover(failing_handler)

    assert mover.run() == 1
    assert mover.context.stage == MigrationStage.NETWORK_BUILT
    assert fake_cli.calls_starting_with("disk", "delete") == []
    assert len(mover.cleanup.resources) == 9


def test_cleanup_on_failure_deletes_created_resources_in_reverse(build_mover):
    handler = azure_world(data_disks=1, nsg=False, public_ip=False)

    def failing_handler(args):
        if args[:2] == ["vm", "create"]:
            raise MigrationError("Command failed (1): az vm create\nQuotaExceeded")
        return handler(args)

    mover, fake_cli = build_mover(failing_handler, cleanup_on_failure=True)

    assert mover.run() == 1

    deletes = [call for call in fake_cli.calls if "delete" in call[:3]]
    kinds = [tuple(call[: call.index("delete")]) for call in deletes]
    assert kinds == [
        ("network", "nic"),
        ("disk",),
        ("disk",),
        ("snapshot",),
        ("snapshot",),
        ("snapshot",),
        ("snapshot",),
    ]
    assert mover.cleanup.resources == []


def test_dry_run_only_reads_source_configuration(build_mover, tmp_path):
    mover, fake_cli = build_mover(azure_world(data_disks=2), dry_run=True)

    assert mover.run() == 0

    mutating = [
        call
        for call in fake_cli.calls
        if call[:2] not in (["account", "set"], ["vm", "show"], ["disk", "show"])
        and call[:3] != ["network", "nic", "show"]
    ]
    assert mutating == []
    journal = json.loads((tmp_path / "journal.json").read_text(encoding="utf-8"))
    assert journal["status"] == "dry_run"
    assert journal["stage"] == "MetadataCollected"


def test_run_selects_source_subscription_first(build_mover):
    mover, fake_cli = build_mover(azure_world(data_disks=0))

    assert mover.run() == 0
    assert fake_cli.calls[0] == ["account", "set", "--subscription", "S"]


def test_journal_records_created_resources(build_mover, tmp_path):
    mover, _ = build_mover(azure_world(data_disks=1))

    assert mover.run() == 0

    journal = json.loads((tmp_path / "journal.json").read_text(encoding="utf-8"))
    assert journal["status"] == "success"
    assert journal["stage"] == "Complete"
    kinds = [resource["kind"] for resource in journal["resources"]]
    assert kinds.count("snapshot") == 4
    assert kinds[-1] == "virtual-machine"


def test_unwritable_journal_does_not_stop_migration(build_mover, tmp_path, caplog):
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    mover, fake_cli = build_mover(azure_world(data_disks=1), journal_file=str(blocker / "journal.json"))

    with caplog.at_level(logging.WARNING, logger="vmmover"):
        assert mover.run() == 0

    assert mover.context.stage == MigrationStage.COMPLETE
    assert fake_cli.calls_starting_with("vm", "create")
    assert any("Could not write journal file" in record.getMessage() for record in caplog.records)


def test_keyboard_interrupt_aborts_run(build_mover, tmp_path):
    handler = azure_world(data_disks=1)

    def interrupting_handler(args):
        if args[:2] == ["snapshot", "create"]:
            raise KeyboardInterrupt
        return handler(args)

    mover, fake_cli = build_mover(interrupting_handler)

    assert mover.run() == 1

    assert mover.context.stage == MigrationStage.SOURCE_DEALLOCATED
    assert fake_cli.calls_starting_with("group", "create") == []
    journal = json.loads((tmp_path / "journal.json").read_text(encoding="utf-8"))
    assert journal["status"] == "aborted"
    assert journal["error"] == "Operation cancelled by user."
    assert journal["steps"][-1]["name"] == "create_snapshots"
    assert journal["steps"][-1]["status"] == "failed"


def test_partial_migration_warning_names_failed_step(build_mover, caplog):
    handler = azure_world(data_disks=1)

    def failing_handler(args):
        if args[:3] == ["network", "nic", "create"]:
            raise MigrationError("Command failed (1): az network nic create\nSubnetIsFull")
        return handler(args)

    mover, _ = build_mover(failing_handler)

    with caplog.at_level(logging.WARNING, logger="vmmover"):
        assert mover.run() == 1

    messages = [record.getMessage() for record in caplog.records]
    assert any("during step build_network at stage DisksCreated" in message for message in messages)
