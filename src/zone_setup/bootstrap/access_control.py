"""RBAC profiles granting access to zone metadata.

The profiles are installed as shard files under prof_attr.d/exec_attr.d;
restarting the rbac service merges the shards into the primary databases.
Writing the shards (rather than appending to the databases) keeps repeated
runs from duplicating entries.
"""

from __future__ import annotations

import logging
from pathlib import Path

from zone_setup.host.files import atomic_write_text
from zone_setup.host.services import ServiceActivation

logger = logging.getLogger(__name__)

SHARD_NAME = "mdata"
SERVICES = ("pfexec", "rbac")
MANIFESTS = ("pfexecd.xml", "rbac.xml")

PROF_ATTR = """\
Metadata Reader:::Read access to zone metadata:help=Metadata.html
Metadata Writer:::Write access to zone metadata:help=Metadata.html
"""

EXEC_ATTR = """\
Metadata Reader:solaris:cmd:::/usr/sbin/mdata-get:privs=file_dac_search
Metadata Reader:solaris:cmd:::/usr/sbin/mdata-list:privs=file_dac_search
Metadata Writer:solaris:cmd:::/usr/sbin/mdata-put:privs=file_dac_search
Metadata Writer:solaris:cmd:::/usr/sbin/mdata-delete:privs=file_dac_search
"""


def install_metadata_rbac(
    services: ServiceActivation, security_dir: str, manifest_dir: str
) -> list[Path]:
    """Import and start pfexec/rbac, then install the metadata profile shards."""
    for manifest in MANIFESTS:
        services.import_manifest(str(Path(manifest_dir) / manifest))
    for fmri in SERVICES:
        services.enable(fmri, wait=True)

    shards = [
        Path(security_dir) / "prof_attr.d" / SHARD_NAME,
        Path(security_dir) / "exec_attr.d" / SHARD_NAME,
    ]
    atomic_write_text(shards[0], PROF_ATTR)
    atomic_write_text(shards[1], EXEC_ATTR)

    services.restart("rbac", wait=True)
    logger.info("Installed metadata RBAC profiles")
    return shards
