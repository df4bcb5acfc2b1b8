"""Azure resource id parsing."""

import re

from vmmover.errors import MalformedIdentifier
from vmmover.errors_catalog import actionable_error
from vmmover.models import ResourceId

_SEGMENT_PATTERNS = (
    ("subscriptions", re.compile(r"/subscriptions/([^/]+)", re.IGNORECASE)),
    ("resourceGroups", re.compile(r"/resourceGroups/([^/]+)", re.IGNORECASE)),
    ("virtualMachines", re.compile(r"/virtualMachines/([^/]+)", re.IGNORECASE)),
)


def parse_vm_resource_id(resource_id: str) -> ResourceId:
    """Extract subscription, resource group and VM name from a VM resource id.

    Raises MalformedIdentifier when any of the three segments is absent.
    """
    value = (resource_id or "").strip()
    segments = []
    for token, pattern in _SEGMENT_PATTERNS:
        match = pattern.search(value)
        if not match:
            raise MalformedIdentifier(
                actionable_error("malformed_identifier", segment=token, resource_id=value or "<empty>")
            )
        segments.append(match.group(1))

    subscription, resource_group, name = segments
    return ResourceId(subscription=subscription, resource_group=resource_group, name=name)


def resource_name(resource_id: str) -> str:
    """Return the trailing name segment of any ARM resource id."""
    return (resource_id or "").rstrip("/").rsplit("/", 1)[-1]
