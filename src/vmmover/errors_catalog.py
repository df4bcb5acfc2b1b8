"""Actionable error catalog for vmmover."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "malformed_identifier": {
        "what": "Resource id is missing the '{segment}' segment: {resource_id}",
        "next": (
            "Pass the full VM id, e.g. "
            "/subscriptions/<id>/resourceGroups/<group>/providers/Microsoft.Compute/virtualMachines/<name>."
        ),
    },
    "az_not_found": {
        "what": "Azure CLI executable not found: {command}",
        "next": "Install the Azure CLI and sign in with `az login` before retrying.",
    },
    "resource_not_found": {
        "what": "{kind} not found: {resource}",
        "next": "Check the id and that the signed-in account can read the resource.",
    },
    "subnet_not_found": {
        "what": "Subnet '{subnet}' not found in virtual network '{vnet}' ({resource_group}).",
        "next": "Create the virtual network and subnet in the target resource group first.",
    },
    "copy_timeout": {
        "what": "Snapshot copy '{snapshot}' did not finish within {timeout}.",
        "next": "Check its progress with `az snapshot show` and raise --copy-timeout-minutes.",
    },
    "copy_failed": {
        "what": "Snapshot copy '{snapshot}' ended in state {state}.",
        "next": "Delete the failed copy in the target resource group and run the migration again.",
    },
    "partial_migration": {
        "what": "Migration stopped during step {step} at stage {stage}.",
        "next": "Review the resources listed in {journal} and delete them or finish the move manually.",
    },
}


def actionable_error(code: str, **kwargs: str) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"
