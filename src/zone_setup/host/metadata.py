"""Access to the zone metadata agent."""

from __future__ import annotations

import json
from typing import Optional, Protocol

from zone_setup.errors import CommandError, MetadataError
from zone_setup.host.commands import CommandRunner

# Well-known metadata keys
ROLE_KEY = "sdc:tags.smartdc_role"
INSTANCE_ID_KEY = "sdc:uuid"
DATACENTER_KEY = "sdc:datacenter_name"
NICS_KEY = "sdc:nics"
REGISTRY_URL_KEY = "sapi-url"

# mdata-get exits 1 when the key does not exist
_NOT_FOUND_EXIT = 1


class MetadataAccessor(Protocol):
    def get(self, key: str) -> Optional[str]:
        """Return the value for key, or None when the key is not set."""
        ...


class MdataAccessor:
    """Looks up keys with the mdata-get tool."""

    def __init__(self, runner: Optional[CommandRunner] = None, tool: str = "mdata-get") -> None:
        self._runner = runner or CommandRunner()
        self._tool = tool

    def get(self, key: str) -> Optional[str]:
        try:
            result = self._runner.run([self._tool, key], check=False)
        except CommandError as e:
            raise MetadataError(f"unable to query metadata key {key!r}: {e}") from e

        if result.returncode == _NOT_FOUND_EXIT:
            return None
        if not result.ok:
            raise MetadataError(
                f"{self._tool} {key} exited {result.returncode}: {result.stderr.strip()}"
            )
        return result.stdout.rstrip("\n")


def admin_nic_mac(accessor: MetadataAccessor) -> Optional[str]:
    """Return the MAC address of the NIC tagged 'admin', if there is one."""
    raw = accessor.get(NICS_KEY)
    if not raw:
        return None
    try:
        nics = json.loads(raw)
    except json.JSONDecodeError as e:
        raise MetadataError(f"malformed {NICS_KEY} metadata: {e}") from e
    if not isinstance(nics, list):
        raise MetadataError(f"malformed {NICS_KEY} metadata: expected a list")

    for nic in nics:
        if isinstance(nic, dict) and nic.get("nic_tag") == "admin":
            return nic.get("mac") or None
    return None
